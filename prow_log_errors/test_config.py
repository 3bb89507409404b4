"""
Pytest tests for config.py (named thresholds/markers + YAML overrides).

Run from the repository root:
    pytest prow_log_errors/test_config.py -v
"""

import sys
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from prow_log_errors.config import (
    CONFIG_ENV_VAR,
    CompactionLevel,
    PipelineConfig,
    config_from_dict,
    load_config,
)
from prow_log_errors.exceptions import ConfigError, InvalidCompactionLevelError
from prow_log_errors.regexes import SPY_FILE_NAME_RE


# ============================================================================
# Tests for CompactionLevel
# ============================================================================

@pytest.mark.parametrize(
    "name,threshold",
    [("aggressive", 0.5), ("moderate", 0.8), ("conservative", 0.9), ("exact", 1.0), ("EXACT", 1.0), ("", 1.0), (None, 1.0)],
)
def test_level_thresholds(name, threshold):
    assert CompactionLevel.from_name(name).threshold == threshold


def test_unknown_level():
    with pytest.raises(InvalidCompactionLevelError):
        CompactionLevel.from_name("extreme")


def test_threshold_for_accepts_enum_name_and_float():
    cfg = PipelineConfig()
    assert cfg.threshold_for(CompactionLevel.MODERATE) == 0.8
    assert cfg.threshold_for("conservative") == 0.9
    assert cfg.threshold_for(0.42) == 0.42
    assert cfg.threshold_for(None) == 1.0


# ============================================================================
# Tests for config_from_dict() / load_config()
# ============================================================================

def test_config_from_dict_overrides_markers_and_thresholds():
    cfg = config_from_dict(
        {
            "failing_tests_markers": {"start": "Failed tests:", "end": "JUnit written"},
            "compaction_thresholds": {"moderate": 0.75},
            "gcsweb_base_url": "https://gcsweb.example/logs/",
            "default_level": "moderate",
        }
    )
    assert cfg.failing_tests_markers.start == "Failed tests:"
    assert cfg.failing_tests_markers.end == ("JUnit written",)
    assert cfg.threshold_for("moderate") == 0.75
    assert cfg.threshold_for(None) == 0.75
    assert cfg.gcsweb_base_url == "https://gcsweb.example/logs"
    # untouched values keep their defaults
    assert cfg.flaky_tests_markers == PipelineConfig().flaky_tests_markers


@pytest.mark.parametrize(
    "data",
    [
        {"no_such_key": 1},
        {"dedup_window_size": 0},
        {"compaction_thresholds": {"moderate": 1.5}},
        {"failing_tests_markers": "Failing tests:"},
    ],
)
def test_config_from_dict_rejects_bad_values(data):
    with pytest.raises(ConfigError):
        config_from_dict(data)


def test_default_spyglass_pattern_matches_regex_catalog():
    assert PipelineConfig().spyglass_file_pattern == SPY_FILE_NAME_RE.pattern


def test_load_config_defaults_when_no_file(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert load_config() == PipelineConfig()


def test_load_config_from_env_var(tmp_path, monkeypatch):
    cfg_file = tmp_path / "prow.yaml"
    cfg_file.write_text("dedup_window_size: 8\nmonitor_tests_markers:\n  start: 'Monitor failures:'\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(cfg_file))
    cfg = load_config()
    assert cfg.dedup_window_size == 8
    assert cfg.monitor_tests_markers.start == "Monitor failures:"


def test_load_config_explicit_missing_file_is_an_error(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.yaml")


def test_load_config_bad_yaml(tmp_path):
    cfg_file = tmp_path / "bad.yaml"
    cfg_file.write_text("key: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(cfg_file)
