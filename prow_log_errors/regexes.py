"""Regex catalog for `prow_log_errors`.

Goal: keep regexes *discoverable* and *stable*.

Conventions:
- URL_* : job URL parsing (test name discovery)
- LOG_* : primary build-log scanning (step failures)
- AGG_* : aggregator log parsing (job/PID/exit correlation)
- SPY_* : spyglass trace discovery

This module is intentionally "boring":
- no side effects
- no imports from other `prow_log_errors` modules (avoid cycles)
"""

from __future__ import annotations

import re
from typing import Pattern

#
# =============================================================================
# AGG_* (aggregator logs)
# =============================================================================
#

# Example: "[Tue Jun 10 19:10:22 UTC 2025] 4242 finished with ret=1"
AGG_FAILED_PID_RE: Pattern[str] = re.compile(r"\] (\d+) finished with ret=1")

# Example: "********** Starting testcase analysis for: aggregated-aws-ovn-upgrade-4.19-micro"
AGG_JOB_START_RE: Pattern[str] = re.compile(r"\*+ Starting testcase analysis for: (.+)")

# Lines are matched with str.startswith; the PID is whatever follows.
AGG_PID_LINE_PREFIX: str = "PID is "

#
# =============================================================================
# LOG_* (build logs)
# =============================================================================
#

# Example: "INFO[2025-06-10T19:10:22Z] Step e2e-aws-ovn-openshift-e2e-test failed after 1h2m3s."
LOG_STEP_FAILED_RE: Pattern[str] = re.compile(r"Step (.*?) failed after")

#
# =============================================================================
# SPY_* (spyglass traces)
# =============================================================================
#

# Example: "e2e-timelines_spyglass_20250610-184017.json"
SPY_FILE_NAME_RE: Pattern[str] = re.compile(r"e2e-timelines_spyglass_.*\.json$")

# gcsweb directory listings are plain HTML; only the anchor text matters.
SPY_LISTING_ANCHOR_RE: Pattern[str] = re.compile(r"<a\b[^>]*>(.*?)</a>", re.IGNORECASE | re.DOTALL)

#
# =============================================================================
# URL_* (job URLs)
# =============================================================================
#

# Example: ".../periodic-ci-openshift-release-master-nightly-4.19-e2e-aws-ovn/1932..." -> "e2e-aws-ovn"
URL_TEST_NAME_RE: Pattern[str] = re.compile(r"(?:ocp-)?e2e-[^/]+")
