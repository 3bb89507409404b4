"""
Pytest tests for pipeline.py (job URL -> step log -> extraction/compaction).

The network is replaced by an in-memory URL -> text map.

Run from the repository root:
    pytest prow_log_errors/test_pipeline.py -v
"""

import json
import sys
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from prow_log_errors.blocks import FallbackCompacted, Found
from prow_log_errors.config import PipelineConfig
from prow_log_errors.exceptions import NoStepFailureFoundError, StepTestMismatchError, UpstreamFailureError
from prow_log_errors.pipeline import NO_SPYGLASS_DATA, ProwJobAnalyzer, RawBuildLog

JOB_NAME = "periodic-ci-openshift-release-master-nightly-4.19-e2e-aws-ovn"
JOB_ID = "1932498112244551680"
JOB_URL = f"https://prow.ci.openshift.org/view/gs/test-platform-results/logs/{JOB_NAME}/{JOB_ID}"

STORAGE = "https://storage.googleapis.com/test-platform-results/logs"
GCSWEB = "https://gcsweb-ci.apps.ci.l2s4.p1.openshiftapps.com/gcs/test-platform-results/logs"
BUILD_LOG_URL = f"{STORAGE}/{JOB_NAME}/{JOB_ID}/build-log.txt"
ARTIFACTS = f"{GCSWEB}/{JOB_NAME}/{JOB_ID}/artifacts"
STEP_LOG_URL = f"{ARTIFACTS}/e2e-aws-ovn/openshift-e2e-test/build-log.txt"
JUNIT_URL = f"{ARTIFACTS}/e2e-aws-ovn/openshift-e2e-test/artifacts/junit/"

BUILD_LOG = (
    "INFO[2025-06-10T18:40:17Z] Running step e2e-aws-ovn-openshift-e2e-test.\n"
    "INFO[2025-06-10T19:52:40Z] Step e2e-aws-ovn-openshift-e2e-test failed after 1h12m23s.\n"
)

STEP_LOG = """started: 0/1/2 "[sig-node] test a"
passed: (1.0s) 2025-06-10T19:00:00 "[sig-node] test a"
started: 0/2/2 "[sig-storage] test c"
E0610 19:00:02.000001 volume attach timed out for pvc-1
E0610 19:00:03.000002 volume attach timed out for pvc-2
failed: (3.0s) 2025-06-10T19:00:05 "[sig-storage] test c"

Flaky tests:

[sig-network] Services should serve endpoints

Failing tests:

[sig-storage] test c

Monitor test failures:

[Monitor:node-lifecycle] node should not go unready

Writing JUnit report to /logs/artifacts/junit/junit_e2e.xml
"""


class FakeClient:
    def __init__(self, pages):
        self.pages = dict(pages)
        self.requested = []

    def fetch_text(self, url, *, label=None):
        self.requested.append(url)
        if url not in self.pages:
            raise UpstreamFailureError(status_code=404, url=url, message=f"404 for {url}")
        return self.pages[url]


def _analyzer(pages):
    client = FakeClient(pages)
    return ProwJobAnalyzer(client=client, config=PipelineConfig()), client


# ============================================================================
# Step location + block extraction
# ============================================================================

def test_failing_tests_follows_step_log():
    analyzer, client = _analyzer({BUILD_LOG_URL: BUILD_LOG, STEP_LOG_URL: STEP_LOG})
    result = analyzer.failing_tests(JOB_URL)
    assert isinstance(result, Found)
    assert result.text == "Failing tests:\n\n[sig-storage] test c\n\nMonitor test failures:\n\n[Monitor:node-lifecycle] node should not go unready\n\n"
    assert client.requested == [BUILD_LOG_URL, STEP_LOG_URL]


def test_flaky_and_monitor_blocks():
    analyzer, _ = _analyzer({BUILD_LOG_URL: BUILD_LOG, STEP_LOG_URL: STEP_LOG})
    flaky = analyzer.flaky_tests(JOB_URL)
    assert isinstance(flaky, Found)
    assert "[sig-network] Services should serve endpoints" in flaky.text
    assert "Failing tests:" not in flaky.text

    monitor = analyzer.monitor_test_failures(JOB_URL)
    assert isinstance(monitor, Found)
    assert monitor.text.startswith("Monitor test failures:\n")


def test_no_failed_step_returns_raw_build_log():
    raw = "INFO Running step e2e-aws-ovn-ipi-install.\nERROR some infra failure\n"
    analyzer, client = _analyzer({BUILD_LOG_URL: raw})
    result = analyzer.failing_tests(JOB_URL)
    assert isinstance(result, RawBuildLog)
    assert result.text == raw
    assert analyzer.analyze_job_failures(JOB_URL) == raw
    assert STEP_LOG_URL not in client.requested


def test_missing_block_falls_back_to_compacted_step_log():
    analyzer, _ = _analyzer({BUILD_LOG_URL: BUILD_LOG, STEP_LOG_URL: "line\nline\nother\n"})
    result = analyzer.failing_tests(JOB_URL)
    assert isinstance(result, FallbackCompacted)
    assert result.text == "line\nother\n"


def test_step_test_mismatch_is_fatal():
    build_log = "Step other-thing failed after 5m\n"
    analyzer, _ = _analyzer({BUILD_LOG_URL: build_log})
    with pytest.raises(StepTestMismatchError):
        analyzer.failing_tests(JOB_URL)


def test_fetch_errors_propagate():
    analyzer, _ = _analyzer({BUILD_LOG_URL: BUILD_LOG})
    with pytest.raises(UpstreamFailureError):
        analyzer.failing_tests(JOB_URL)


# ============================================================================
# analyze_job_failures()
# ============================================================================

def test_analyze_job_failures_compacts_and_appends_monitor_block():
    analyzer, _ = _analyzer({BUILD_LOG_URL: BUILD_LOG, STEP_LOG_URL: STEP_LOG})
    out = analyzer.analyze_job_failures(JOB_URL, "moderate")
    compacted, _, monitor = out.partition("\nMonitor test failures:\n")
    assert "passed: (1.0s)" not in compacted
    assert "E0610 19:00:02.000001 volume attach timed out for pvc-1" in compacted
    assert "E0610 19:00:03.000002 volume attach timed out for pvc-2" not in compacted
    assert "[Monitor:node-lifecycle] node should not go unready" in monitor


def test_gather_extra_url():
    analyzer, client = _analyzer({})
    assert analyzer.gather_extra_url(JOB_URL) == f"{ARTIFACTS}/e2e-aws-ovn/gather-extra/artifacts/"
    assert client.requested == []


# ============================================================================
# aggregate_job_failures()
# ============================================================================

def test_aggregate_job_failures():
    aggregator_log = "*** Starting testcase analysis for: jobA\nPID is 42\n[Tue Jun 10] 42 finished with ret=1\n"
    cfg = PipelineConfig()
    base = f"{ARTIFACTS}/{cfg.aggregator_subpath}"
    analyzer, client = _analyzer({BUILD_LOG_URL: aggregator_log, f"{base}/jobA/jobA.log": "x\nsummary: 1 failed\n"})
    assert analyzer.aggregate_job_failures(JOB_URL) == "summary: 1 failed\n\n---\n\n"
    assert client.requested[0] == BUILD_LOG_URL


# ============================================================================
# spyglass_events_for_test()
# ============================================================================

def test_spyglass_events_for_test():
    trace = json.dumps(
        {
            "items": [
                {
                    "level": "Error",
                    "source": "E2ETest",
                    "locator": {"type": "E2ETest", "keys": {"e2e-test": "[sig-storage] test c"}},
                    "message": {"reason": "Failed", "humanMessage": "volume attach timed out"},
                    "from": "2025-06-10T19:00:02Z",
                    "to": "2025-06-10T19:00:05Z",
                }
            ]
        }
    )
    listing = '<a href="x">e2e-timelines_spyglass_20250610-184017.json</a><a href="y">junit_e2e.xml</a>'
    analyzer, _ = _analyzer(
        {
            BUILD_LOG_URL: BUILD_LOG,
            JUNIT_URL: listing,
            JUNIT_URL + "e2e-timelines_spyglass_20250610-184017.json": trace,
        }
    )
    out = analyzer.spyglass_events_for_test(JOB_URL, "[sig-storage] test c")
    assert out.startswith("== e2e-timelines_spyglass_20250610-184017.json ==\n")
    assert "Locator: 'test: [sig-storage] test c'" in out


def test_spyglass_without_traces():
    analyzer, _ = _analyzer({BUILD_LOG_URL: BUILD_LOG, JUNIT_URL: "<html></html>"})
    assert analyzer.spyglass_events_for_test(JOB_URL, "t") == NO_SPYGLASS_DATA


def test_spyglass_requires_failed_step():
    analyzer, _ = _analyzer({BUILD_LOG_URL: "all good\n"})
    with pytest.raises(NoStepFailureFoundError):
        analyzer.spyglass_events_for_test(JOB_URL, "t")
