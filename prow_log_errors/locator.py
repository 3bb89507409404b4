"""Artifact path derivation from a Prow job URL and the job's own build log.

Job URLs look like:
  https://prow.ci.openshift.org/view/gs/test-platform-results/logs/<job_name>/<job_id>

The test name is the first `e2e-*` chunk of the URL; the failing step name comes
from the top-level build log (`Step <step> failed after ...`). Step artifacts
live under `artifacts/<test_name>/<step_name minus "<test_name>-">/`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple
from urllib.parse import urlparse

from .config import PipelineConfig
from .exceptions import (
    MalformedURLError,
    NoStepFailureFoundError,
    NoTestNameFoundError,
    StepTestMismatchError,
    UnexpectedPathShapeError,
)
from .regexes import LOG_STEP_FAILED_RE, URL_TEST_NAME_RE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobReference:
    job_name: str
    job_id: str


@dataclass(frozen=True)
class TestDescriptor:
    __test__ = False  # not a pytest class

    test_name: str


@dataclass(frozen=True)
class StepDescriptor:
    step_name: str
    step_folder: str


def _looks_like_host_path(s: str) -> bool:
    if not s or any(c.isspace() for c in s) or s.startswith("/"):
        return False
    return "." in s.split("/", 1)[0]


def parse_job_url(job_url: str) -> JobReference:
    """Job name and ID from the last two path segments of `job_url`.

    A host-form URL without a scheme (`prow.ci.openshift.org/view/...`) is read as https.
    """
    s = str(job_url or "").strip()
    try:
        parsed = urlparse(s)
        if not parsed.scheme and _looks_like_host_path(s):
            parsed = urlparse("https://" + s)
    except ValueError as e:
        raise MalformedURLError(s, f"invalid URL {s!r}: {e}") from e
    if not parsed.scheme or not parsed.netloc:
        raise MalformedURLError(s)

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 2:
        raise UnexpectedPathShapeError(s)
    return JobReference(job_name=parts[-2], job_id=parts[-1])


def extract_test_name(job_url: str) -> TestDescriptor:
    """First `e2e-*` (optionally `ocp-` prefixed) segment anywhere in the URL."""
    m = URL_TEST_NAME_RE.search(str(job_url or ""))
    if not m:
        raise NoTestNameFoundError(str(job_url or ""))
    return TestDescriptor(test_name=m.group(0).lstrip("/"))


def extract_step_name(log_text: str) -> str:
    """Name of the first failed step reported in a build log."""
    m = LOG_STEP_FAILED_RE.search(log_text or "")
    if not m or not m.group(1).strip():
        raise NoStepFailureFoundError("no failed step found in build log")
    return m.group(1).strip()


def resolve_step(step_name: str, test_name: str) -> StepDescriptor:
    """Split `step_name` into its artifact folder; it must belong to `test_name`."""
    prefix = f"{test_name}-"
    if not step_name.startswith(prefix):
        raise StepTestMismatchError(step_name=step_name, test_name=test_name)
    return StepDescriptor(step_name=step_name, step_folder=step_name[len(prefix):])


#
# URL derivation
# =============================================================================
#

def build_log_url(job: JobReference, config: PipelineConfig) -> str:
    return f"{config.storage_base_url.rstrip('/')}/{job.job_name}/{job.job_id}/build-log.txt"


def artifacts_root_url(job: JobReference, config: PipelineConfig) -> str:
    return f"{config.gcsweb_base_url.rstrip('/')}/{job.job_name}/{job.job_id}/artifacts"


def step_build_log_url(job: JobReference, test: TestDescriptor, step: StepDescriptor, config: PipelineConfig) -> str:
    return f"{artifacts_root_url(job, config)}/{test.test_name}/{step.step_folder}/build-log.txt"


def step_junit_url(job: JobReference, test: TestDescriptor, step: StepDescriptor, config: PipelineConfig) -> str:
    return f"{artifacts_root_url(job, config)}/{test.test_name}/{step.step_folder}/artifacts/junit/"


def gather_extra_url(job_url: str, config: PipelineConfig) -> str:
    """Base URL of the `gather-extra` diagnostics folder for a job."""
    job = parse_job_url(job_url)
    test = extract_test_name(job_url)
    return f"{artifacts_root_url(job, config)}/{test.test_name}/gather-extra/artifacts/"


def aggregator_base_url(job: JobReference, config: PipelineConfig) -> str:
    return f"{artifacts_root_url(job, config)}/{config.aggregator_subpath.strip('/')}"


def locate_step(job_url: str, build_log: str) -> Tuple[JobReference, TestDescriptor, StepDescriptor]:
    """(JobReference, TestDescriptor, StepDescriptor) for the failed step in `build_log`.

    Raises NoStepFailureFoundError (expected; callers fall back to the raw log)
    before checking the test name, so jobs that failed outside a step never need one.
    """
    job = parse_job_url(job_url)
    step_name = extract_step_name(build_log)
    test = extract_test_name(job_url)
    step = resolve_step(step_name, test.test_name)
    logger.debug("located step %s (folder %s) for test %s", step.step_name, step.step_folder, test.test_name)
    return job, test, step
