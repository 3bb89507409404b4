"""
Prow CI log analysis library (prow-log-utils).

This package contains the *implementation* for:
- artifact location (job URL + build log -> step artifact URLs)
- block extraction (failing / flaky / monitor-test blocks)
- log compaction (status-line stripping + near-duplicate removal)
- aggregated-job failure resolution
- spyglass event timeline correlation

Public API is re-exported from:
- `prow_log_errors.pipeline` for the job-URL driven entry points
- `prow_log_errors.compact` / `prow_log_errors.dedupe` for text-only compaction
- `prow_log_errors.blocks` for block extraction
"""

from .blocks import (  # noqa: F401
    FallbackCompacted,
    Found,
    extract_block,
    extract_failing_tests_block,
    extract_flaky_tests_block,
    extract_monitor_tests_block,
)
from .compact import compact_test_logs  # noqa: F401
from .config import CompactionLevel, PipelineConfig, load_config  # noqa: F401
from .dedupe import deduplicate_log_text, similarity  # noqa: F401
from .pipeline import ProwJobAnalyzer, RawBuildLog  # noqa: F401

__all__ = [
    "CompactionLevel",
    "FallbackCompacted",
    "Found",
    "PipelineConfig",
    "ProwJobAnalyzer",
    "RawBuildLog",
    "compact_test_logs",
    "deduplicate_log_text",
    "extract_block",
    "extract_failing_tests_block",
    "extract_flaky_tests_block",
    "extract_monitor_tests_block",
    "load_config",
    "similarity",
]
