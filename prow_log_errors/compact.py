"""Two-phase log compaction.

Phase 1 (structural, only when threshold > 0.6): in monitored test-run logs the
`started:` / `passed: ` / `skipped: ` status lines are high-volume and carry no
failure signal. Everything before the first `started:` line is dropped too.

Phase 2: sliding-window near-duplicate removal (see `dedupe.py`) over the
phase 1 output, or over the original text when phase 1 produced nothing.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Union

from .config import CompactionLevel, PipelineConfig
from .dedupe import deduplicate_log_text

logger = logging.getLogger(__name__)

BLOCK_START_PREFIX = "started:"
STATUS_LINE_PREFIXES = ("started:", "passed: ", "skipped: ")


def strip_status_lines(lines: Iterable[str]) -> List[str]:
    """Drop the pre-run preamble and per-test status lines; keep everything else."""
    out: List[str] = []
    in_block = False
    for line in lines:
        if not in_block and line.startswith(BLOCK_START_PREFIX):
            in_block = True
        if not in_block:
            continue
        if line.startswith(STATUS_LINE_PREFIXES):
            continue
        out.append(line)
    return out


def compact_test_logs(
    text: str,
    level: Union[CompactionLevel, str, float, None] = None,
    *,
    window_size: Optional[int] = None,
    structural_min_threshold: Optional[float] = None,
    config: Optional[PipelineConfig] = None,
) -> str:
    """Compact `text` at `level` (a CompactionLevel, its name, or a raw threshold; default `exact`).

    `window_size` and `structural_min_threshold` default to the values in `config`.
    """
    cfg = config or PipelineConfig()
    if window_size is None:
        window_size = cfg.dedup_window_size
    if structural_min_threshold is None:
        structural_min_threshold = cfg.structural_min_threshold
    threshold = cfg.threshold_for(level)
    lines = (text or "").split("\n")

    filtered: List[str] = []
    if threshold > structural_min_threshold:
        filtered = strip_status_lines(lines)
        logger.debug("compact: structural phase kept %d/%d lines", len(filtered), len(lines))

    if not filtered:
        logger.debug("compact: no monitored test-run block; deduplicating the full log")
        return deduplicate_log_text(text, threshold, window_size)
    return deduplicate_log_text("\n".join(filtered), threshold, window_size)
