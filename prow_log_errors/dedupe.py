"""Near-duplicate line removal (sliding window, edit-distance similarity).

A line is kept only when its similarity to every line in the window of the last
`window_size` *kept* lines is below `threshold`. Blank lines are always
dropped. Output order always matches input order.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import Deque, Iterable, Iterator, List

logger = logging.getLogger(__name__)


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character inserts/deletes/substitutions turning `a` into `b`."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    # Two-row DP over the shorter string.
    prev: List[int] = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            cur[j] = min(
                prev[j] + 1,  # delete
                cur[j - 1] + 1,  # insert
                prev[j - 1] + (ca != cb),  # substitute
            )
        prev = cur
    return prev[-1]


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]: `1 - distance / max(len(a), len(b))`.

    Two empty strings are identical (1.0).
    """
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - float(levenshtein_distance(a, b)) / float(max_len)


def _bounded_distance(a: str, b: str, limit: int) -> int:
    """Edit distance when it is <= `limit`, otherwise `limit + 1`.

    Only the diagonal band |i - j| <= limit is filled, and the scan stops as
    soon as a whole row exceeds `limit`.
    """
    if len(a) < len(b):
        a, b = b, a
    over = limit + 1
    if len(a) - len(b) > limit:
        return over
    if not b:
        return len(a)

    prev: List[int] = [j if j <= limit else over for j in range(len(b) + 1)]
    for i, ca in enumerate(a, start=1):
        cur = [over] * (len(b) + 1)
        if i <= limit:
            cur[0] = i
        row_min = cur[0]
        for j in range(max(1, i - limit), min(len(b), i + limit) + 1):
            v = min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + (ca != b[j - 1]))
            if v > over:
                v = over
            cur[j] = v
            if v < row_min:
                row_min = v
        if row_min > limit:
            return over
        prev = cur
    return min(prev[-1], over)


def _similarity_at_least(a: str, b: str, threshold: float) -> bool:
    if threshold >= 1.0:
        return a == b
    if a == b:
        return True
    max_len = max(len(a), len(b))
    # sim >= t  <=>  distance <= (1 - t) * max_len; one extra step absorbs float rounding.
    limit = int(math.floor((1.0 - threshold) * max_len)) + 1
    dist = _bounded_distance(a, b, limit)
    if dist > limit:
        return False
    return 1.0 - float(dist) / float(max_len) >= threshold


class DedupWindow:
    """FIFO of the most recently kept lines, bounded at `capacity`."""

    def __init__(self, capacity: int):
        if int(capacity) < 1:
            raise ValueError(f"window size must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self._lines: Deque[str] = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(self._lines)

    def matches(self, line: str, threshold: float) -> bool:
        """True if `line` is at least `threshold`-similar to any window member (first match wins)."""
        for prev in self._lines:
            if _similarity_at_least(line, prev, threshold):
                return True
        return False

    def push(self, line: str) -> None:
        self._lines.append(line)


def _check_threshold(threshold: float) -> float:
    t = float(threshold)
    if not 0.0 <= t <= 1.0:
        raise ValueError(f"similarity threshold must be within [0, 1], got {threshold}")
    return t


def iter_deduplicated_lines(lines: Iterable[str], threshold: float, window_size: int) -> Iterator[str]:
    """Stream `lines` (trimmed), skipping blanks and near-duplicates of recently kept lines."""
    t = _check_threshold(threshold)
    window = DedupWindow(window_size)
    for raw in lines:
        line = raw.strip()
        if not line:
            continue
        if window.matches(line, t):
            continue
        window.push(line)
        yield line


def deduplicate_log_text(text: str, threshold: float, window_size: int = 5) -> str:
    """Deduplicate a whole log; every kept line is newline-terminated."""
    lines = (text or "").split("\n")
    kept = list(iter_deduplicated_lines(lines, threshold, window_size))
    logger.debug("dedupe: threshold=%.2f window=%d kept %d/%d lines", float(threshold), int(window_size), len(kept), len(lines))
    return "".join(line + "\n" for line in kept)
