"""
Named configuration values for the log analysis pipeline.

Thresholds, block markers and URL roots live here (single source of truth) so
that test-format drift can be absorbed by editing config, not the algorithms.

Overrides are read from YAML. Resolution order for `load_config()`:
- explicit `path` argument
- $PROW_LOG_UTILS_CONFIG
- ~/.config/prow-log-utils.yaml
- built-in defaults
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from .exceptions import ConfigError, InvalidCompactionLevelError
from .regexes import SPY_FILE_NAME_RE

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PROW_LOG_UTILS_CONFIG"

#
# URL roots
#
DEFAULT_STORAGE_BASE_URL: str = "https://storage.googleapis.com/test-platform-results/logs"
# ^ Raw object storage; serves the top-level `build-log.txt` for a job run.
DEFAULT_GCSWEB_BASE_URL: str = "https://gcsweb-ci.apps.ci.l2s4.p1.openshiftapps.com/gcs/test-platform-results/logs"
# ^ gcsweb front-end; serves per-step artifacts and browsable directory listings.
DEFAULT_AGGREGATOR_SUBPATH: str = "release-analysis-aggregator/openshift-release-analysis-aggregator/artifacts/release-analysis-aggregator"
# ^ Artifact sub-path (under `<job>/<id>/artifacts/`) holding `<subjob>/<subjob>.log` files.

DEFAULT_REQUEST_TIMEOUT_S: int = 60

#
# Deduplication / compaction
#
DEFAULT_DEDUP_WINDOW_SIZE: int = 5
DEFAULT_STRUCTURAL_MIN_THRESHOLD: float = 0.6
# ^ Status-line stripping only runs when the resolved threshold is strictly above this.


class CompactionLevel(str, Enum):
    """Named compaction aggressiveness; `.threshold` is the similarity cut-off."""

    AGGRESSIVE = "aggressive"
    MODERATE = "moderate"
    CONSERVATIVE = "conservative"
    EXACT = "exact"

    @property
    def threshold(self) -> float:
        return COMPACTION_THRESHOLDS[self]

    @classmethod
    def from_name(cls, name: Optional[str]) -> "CompactionLevel":
        """Parse a level name (case-insensitive). Empty/None means `exact`."""
        s = str(name or "").strip().lower()
        if not s:
            return cls.EXACT
        try:
            return cls(s)
        except ValueError:
            valid = "|".join(m.value for m in cls)
            raise InvalidCompactionLevelError(f"unknown compaction level {name!r} (expected {valid})") from None


COMPACTION_THRESHOLDS: Dict[CompactionLevel, float] = {
    CompactionLevel.AGGRESSIVE: 0.5,
    CompactionLevel.MODERATE: 0.8,
    CompactionLevel.CONSERVATIVE: 0.9,
    CompactionLevel.EXACT: 1.0,
}

DEFAULT_COMPACTION_LEVEL = CompactionLevel.EXACT


@dataclass(frozen=True)
class BlockMarkers:
    """Start/end markers delimiting a named block in a test-run log.

    The block starts at the first line containing `start` and stops before the
    first later line containing any of `end`.
    """

    name: str
    start: str
    end: Tuple[str, ...]


FAILING_TESTS_MARKERS = BlockMarkers(
    name="failing-tests",
    start="Failing tests:",
    end=("Writing JUnit report to",),
)
FLAKY_TESTS_MARKERS = BlockMarkers(
    name="flaky-tests",
    start="Flaky tests:",
    # openshift-tests prints the flaky list before the failing list.
    end=("Failing tests:", "Writing JUnit report to"),
)
MONITOR_TESTS_MARKERS = BlockMarkers(
    name="monitor-tests",
    start="Monitor test failures:",
    end=("Writing JUnit report to",),
)

DEFAULT_SPYGLASS_FILE_PATTERN: str = SPY_FILE_NAME_RE.pattern


@dataclass(frozen=True)
class PipelineConfig:
    storage_base_url: str = DEFAULT_STORAGE_BASE_URL
    gcsweb_base_url: str = DEFAULT_GCSWEB_BASE_URL
    aggregator_subpath: str = DEFAULT_AGGREGATOR_SUBPATH
    request_timeout_s: int = DEFAULT_REQUEST_TIMEOUT_S
    dedup_window_size: int = DEFAULT_DEDUP_WINDOW_SIZE
    structural_min_threshold: float = DEFAULT_STRUCTURAL_MIN_THRESHOLD
    default_level: CompactionLevel = DEFAULT_COMPACTION_LEVEL
    compaction_thresholds: Mapping[CompactionLevel, float] = field(
        default_factory=lambda: dict(COMPACTION_THRESHOLDS)
    )
    failing_tests_markers: BlockMarkers = FAILING_TESTS_MARKERS
    flaky_tests_markers: BlockMarkers = FLAKY_TESTS_MARKERS
    monitor_tests_markers: BlockMarkers = MONITOR_TESTS_MARKERS
    spyglass_file_pattern: str = DEFAULT_SPYGLASS_FILE_PATTERN

    def threshold_for(self, level: Union["CompactionLevel", str, float, None]) -> float:
        """Resolve a level (enum, name, raw float, or None for the default) to a threshold."""
        if level is None:
            level = self.default_level
        if isinstance(level, (int, float)) and not isinstance(level, bool):
            return float(level)
        if not isinstance(level, CompactionLevel):
            level = CompactionLevel.from_name(str(level))
        return float(self.compaction_thresholds.get(level, COMPACTION_THRESHOLDS[level]))


_MARKER_KEYS = ("failing_tests_markers", "flaky_tests_markers", "monitor_tests_markers")


def _markers_from_yaml(key: str, raw: Any, default: BlockMarkers) -> BlockMarkers:
    if not isinstance(raw, dict):
        raise ConfigError(f"{key}: expected a mapping with 'start'/'end'")
    start = raw.get("start", default.start)
    end = raw.get("end", list(default.end))
    if isinstance(end, str):
        end = [end]
    if not isinstance(start, str) or not start or not isinstance(end, list) or not all(isinstance(e, str) and e for e in end):
        raise ConfigError(f"{key}: 'start' must be a non-empty string and 'end' a string or list of strings")
    return BlockMarkers(name=default.name, start=start, end=tuple(end))


def config_from_dict(data: Mapping[str, Any], *, base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """Overlay a parsed YAML mapping on top of `base` (defaults when None)."""
    cfg = base or PipelineConfig()
    known = {f.name for f in fields(PipelineConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")

    updates: Dict[str, Any] = {}
    for key, raw in data.items():
        if key in _MARKER_KEYS:
            updates[key] = _markers_from_yaml(key, raw, getattr(cfg, key))
        elif key == "default_level":
            updates[key] = CompactionLevel.from_name(str(raw))
        elif key == "compaction_thresholds":
            if not isinstance(raw, dict):
                raise ConfigError("compaction_thresholds: expected a mapping of level -> float")
            merged = dict(cfg.compaction_thresholds)
            for name, value in raw.items():
                try:
                    t = float(value)
                except (TypeError, ValueError):
                    raise ConfigError(f"compaction_thresholds.{name}: not a number: {value!r}") from None
                if not 0.0 <= t <= 1.0:
                    raise ConfigError(f"compaction_thresholds.{name}: must be within [0, 1], got {t}")
                merged[CompactionLevel.from_name(str(name))] = t
            updates[key] = merged
        elif key in ("request_timeout_s", "dedup_window_size"):
            try:
                n = int(raw)
            except (TypeError, ValueError):
                raise ConfigError(f"{key}: not an integer: {raw!r}") from None
            if n < 1:
                raise ConfigError(f"{key}: must be >= 1, got {n}")
            updates[key] = n
        elif key == "structural_min_threshold":
            try:
                updates[key] = float(raw)
            except (TypeError, ValueError):
                raise ConfigError(f"{key}: not a number: {raw!r}") from None
        else:
            updates[key] = str(raw or "").rstrip("/") if key.endswith("_url") else str(raw or "")
    return replace(cfg, **updates)


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "prow-log-utils.yaml"


def load_config(path: Optional[Path] = None) -> PipelineConfig:
    """Load pipeline config from YAML, falling back to built-in defaults.

    An explicitly requested file (argument or env var) must exist; the default
    location is optional.
    """
    explicit = path is not None or bool(os.environ.get(CONFIG_ENV_VAR, "").strip())
    cfg_path = Path(path).expanduser() if path is not None else default_config_path()
    if not cfg_path.exists():
        if explicit:
            raise ConfigError(f"config file not found: {cfg_path}")
        return PipelineConfig()

    try:
        with open(cfg_path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read config {cfg_path}: {e}") from e

    if data is None:
        return PipelineConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"config {cfg_path}: top level must be a mapping")
    logger.debug("Loaded pipeline config from %s", cfg_path)
    return config_from_dict(data)
