"""Job-URL driven orchestration of the log analysis pipeline.

Control flow for a job URL:
  job URL -> top-level build-log.txt -> failed step -> step build-log.txt
          -> block extraction (failing/flaky/monitor tests) or compaction

Every call is synchronous and builds its own state; an analyzer instance only
holds the fetch client and config.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Protocol, Union

from .aggregate import fetch_aggregate_job_failures
from .blocks import BlockExtraction, FallbackCompacted, Found, extract_block
from .compact import compact_test_logs
from .config import BlockMarkers, CompactionLevel, PipelineConfig
from .exceptions import NoStepFailureFoundError
from .fetch import ProwArtifactClient
from .locator import (
    JobReference,
    StepDescriptor,
    TestDescriptor,
    aggregator_base_url,
    build_log_url,
    gather_extra_url,
    locate_step,
    parse_job_url,
    step_build_log_url,
    step_junit_url,
)
from .timeline import correlate_events_to_test, parse_event_intervals, spyglass_file_names

logger = logging.getLogger(__name__)

NO_SPYGLASS_DATA = "no spyglass data"


class ArtifactFetcher(Protocol):
    def fetch_text(self, url: str, *, label: Optional[str] = None) -> str: ...


@dataclass(frozen=True)
class RawBuildLog:
    """The job did not fail at a step boundary; `text` is the untouched top-level build log."""

    text: str
    found = False


StepResult = Union[Found, FallbackCompacted, RawBuildLog]


@dataclass(frozen=True)
class StepLogLocation:
    job: JobReference
    build_log: str
    test: Optional[TestDescriptor] = None
    step: Optional[StepDescriptor] = None
    step_log_url: str = ""

    @property
    def has_failed_step(self) -> bool:
        return self.step is not None


class ProwJobAnalyzer:
    def __init__(self, client: Optional[ArtifactFetcher] = None, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()
        self.client = client or ProwArtifactClient(timeout=self.config.request_timeout_s)

    def _fetch(self, url: str, label: str) -> str:
        return self.client.fetch_text(url, label=label)

    def gather_extra_url(self, job_url: str) -> str:
        return gather_extra_url(job_url, self.config)

    def locate_step_log(self, job_url: str) -> StepLogLocation:
        """Fetch the top-level build log and resolve the failed step's log URL (if any)."""
        job = parse_job_url(job_url)
        build_log = self._fetch(build_log_url(job, self.config), "build_log")
        try:
            job, test, step = locate_step(job_url, build_log)
        except NoStepFailureFoundError:
            logger.info("No failed step in build log for %s/%s; returning the raw log", job.job_name, job.job_id)
            return StepLogLocation(job=job, build_log=build_log)
        return StepLogLocation(
            job=job,
            build_log=build_log,
            test=test,
            step=step,
            step_log_url=step_build_log_url(job, test, step, self.config),
        )

    def _step_block(self, job_url: str, markers: BlockMarkers) -> StepResult:
        loc = self.locate_step_log(job_url)
        if not loc.has_failed_step:
            return RawBuildLog(loc.build_log)
        step_log = self._fetch(loc.step_log_url, "step_log")
        result = extract_block(step_log, markers, window_size=self.config.dedup_window_size)
        if not result.found:
            logger.warning("No %r block in %s; returning the deduplicated step log", markers.start, loc.step_log_url)
        return result

    def failing_tests(self, job_url: str) -> StepResult:
        return self._step_block(job_url, self.config.failing_tests_markers)

    def flaky_tests(self, job_url: str) -> StepResult:
        return self._step_block(job_url, self.config.flaky_tests_markers)

    def monitor_test_failures(self, job_url: str) -> StepResult:
        return self._step_block(job_url, self.config.monitor_tests_markers)

    def analyze_job_failures(self, job_url: str, level: Union[CompactionLevel, str, float, None] = None) -> str:
        """Compacted step log, followed by the monitor-test failure block when present."""
        loc = self.locate_step_log(job_url)
        if not loc.has_failed_step:
            return loc.build_log
        step_log = self._fetch(loc.step_log_url, "step_log")
        compacted = compact_test_logs(step_log, level, config=self.config)
        monitor: BlockExtraction = extract_block(
            step_log, self.config.monitor_tests_markers, window_size=self.config.dedup_window_size
        )
        if isinstance(monitor, Found):
            return compacted + "\n" + monitor.text
        return compacted

    def aggregate_job_failures(self, job_url: str, aggregator_log: Optional[str] = None) -> str:
        """Summaries of the failed sub-jobs of an aggregated job.

        `aggregator_log` defaults to the job's top-level build log.
        """
        job = parse_job_url(job_url)
        if aggregator_log is None:
            aggregator_log = self._fetch(build_log_url(job, self.config), "build_log")
        base_url = aggregator_base_url(job, self.config)
        return fetch_aggregate_job_failures(base_url, aggregator_log, lambda url: self._fetch(url, "aggregate_job_log"))

    def spyglass_events_for_test(self, job_url: str, test_name: str, *, return_all_matches: bool = False) -> str:
        """Error/Warning spyglass events correlated with `test_name`, per trace file.

        Needs the failed step's artifacts, so NoStepFailureFoundError propagates here.
        """
        build_log = self._fetch(build_log_url(parse_job_url(job_url), self.config), "build_log")
        job, test, step = locate_step(job_url, build_log)
        junit_url = step_junit_url(job, test, step, self.config)
        names = spyglass_file_names(
            self._fetch(junit_url, "junit_listing"),
            re.compile(self.config.spyglass_file_pattern),
        )
        if not names:
            return NO_SPYGLASS_DATA

        sections: List[str] = []
        for name in names:
            events = parse_event_intervals(self._fetch(junit_url + name, "spyglass"))
            body = correlate_events_to_test(events, test_name, return_all_matches=return_all_matches)
            sections.append(f"== {name} ==\n{body.rstrip()}\n")
        return "\n".join(sections)
