"""Marker-delimited block extraction (failing / flaky / monitor-test blocks).

Results are tagged so callers can tell precise extraction (`Found`) from
best-effort salvage (`FallbackCompacted`): when the start marker never appears
the whole log is deduplicated at threshold 1.0 instead of raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from .config import (
    DEFAULT_DEDUP_WINDOW_SIZE,
    FAILING_TESTS_MARKERS,
    FLAKY_TESTS_MARKERS,
    MONITOR_TESTS_MARKERS,
    BlockMarkers,
)
from .dedupe import deduplicate_log_text

logger = logging.getLogger(__name__)

EXACT_DUPLICATES_THRESHOLD = 1.0


@dataclass(frozen=True)
class Found:
    text: str
    found = True


@dataclass(frozen=True)
class FallbackCompacted:
    text: str
    found = False


BlockExtraction = Union[Found, FallbackCompacted]


def find_block_lines(lines: Sequence[str], markers: BlockMarkers) -> Optional[List[str]]:
    """Return the block's lines (start-marker line included), or None if the start marker is absent."""
    start_idx: Optional[int] = None
    for i, line in enumerate(lines):
        if markers.start in line:
            start_idx = i
            break
    if start_idx is None:
        return None

    out = [lines[start_idx]]
    for line in lines[start_idx + 1:]:
        if any(end in line for end in markers.end):
            break
        out.append(line)
    return out


def extract_block(
    text: str,
    markers: BlockMarkers,
    *,
    window_size: int = DEFAULT_DEDUP_WINDOW_SIZE,
) -> BlockExtraction:
    """Slice the `markers` block out of `text`; degrade to exact-duplicate compaction if absent."""
    block = find_block_lines((text or "").split("\n"), markers)
    if block is None:
        logger.debug("block %s: start marker %r not found; compacting full log", markers.name, markers.start)
        return FallbackCompacted(deduplicate_log_text(text, EXACT_DUPLICATES_THRESHOLD, window_size))
    return Found("".join(line + "\n" for line in block))


def extract_failing_tests_block(text: str, *, markers: BlockMarkers = FAILING_TESTS_MARKERS, window_size: int = DEFAULT_DEDUP_WINDOW_SIZE) -> BlockExtraction:
    return extract_block(text, markers, window_size=window_size)


def extract_flaky_tests_block(text: str, *, markers: BlockMarkers = FLAKY_TESTS_MARKERS, window_size: int = DEFAULT_DEDUP_WINDOW_SIZE) -> BlockExtraction:
    return extract_block(text, markers, window_size=window_size)


def extract_monitor_tests_block(text: str, *, markers: BlockMarkers = MONITOR_TESTS_MARKERS, window_size: int = DEFAULT_DEDUP_WINDOW_SIZE) -> BlockExtraction:
    return extract_block(text, markers, window_size=window_size)
