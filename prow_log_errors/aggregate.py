"""Failure resolution for aggregated-analysis jobs.

An aggregator log fans out into many sub-job analyses and reports them like:

    ********** Starting testcase analysis for: aggregated-aws-ovn-upgrade-4.19-micro
    PID is 4242
    ...
    [Tue Jun 10 19:10:22 UTC 2025] 4242 finished with ret=1

A `PID is` line belongs to the most recently started job. If the same PID is
reported again under a later job, the later job owns it. A PID is failed only
when a matching `finished with ret=1` line exists; otherwise it succeeded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from .exceptions import NoFailedJobsFoundError, NoSummaryFoundError
from .regexes import AGG_FAILED_PID_RE, AGG_JOB_START_RE, AGG_PID_LINE_PREFIX

logger = logging.getLogger(__name__)

SUMMARY_MARKER = "summary:"
JOB_SEPARATOR = "\n---\n\n"


@dataclass(frozen=True)
class JobFailureRecord:
    job_name: str
    pid: str
    failed: bool


def parse_aggregate_records(log_text: str) -> List[JobFailureRecord]:
    """One record per distinct PID, in first-seen order, joined with the failure markers."""
    pid_jobs: Dict[str, str] = {}
    failed_pids: Set[str] = set()
    current_job: Optional[str] = None

    for line in (log_text or "").split("\n"):
        m = AGG_JOB_START_RE.search(line)
        if m:
            current_job = m.group(1).strip()
        if line.startswith(AGG_PID_LINE_PREFIX) and current_job:
            pid = line[len(AGG_PID_LINE_PREFIX):].strip()
            if pid:
                pid_jobs[pid] = current_job
        m = AGG_FAILED_PID_RE.search(line)
        if m:
            failed_pids.add(m.group(1))

    return [JobFailureRecord(job_name=job, pid=pid, failed=pid in failed_pids) for pid, job in pid_jobs.items()]


def extract_failed_jobs_from_aggregate(log_text: str) -> Dict[str, bool]:
    """Map job name -> failed (True when any of the job's PIDs failed)."""
    result: Dict[str, bool] = {}
    for rec in parse_aggregate_records(log_text):
        result[rec.job_name] = result.get(rec.job_name, False) or rec.failed
    return result


def extract_summary_tail(job_name: str, job_log: str) -> str:
    """Tail of a sub-job log starting at the first `summary:`."""
    idx = (job_log or "").find(SUMMARY_MARKER)
    if idx < 0:
        raise NoSummaryFoundError(job_name)
    return job_log[idx:]


def sub_job_log_url(base_url: str, job_name: str) -> str:
    return f"{base_url.rstrip('/')}/{job_name}/{job_name}.log"


def fetch_aggregate_job_failures(base_url: str, log_text: str, fetch: Callable[[str], str]) -> str:
    """Fetch and concatenate the summary tails of every failed sub-job.

    Each summary is followed by JOB_SEPARATOR. Callers must not rely on the
    order of jobs in the output.
    """
    failed_jobs = [job for job, failed in extract_failed_jobs_from_aggregate(log_text).items() if failed]
    if not failed_jobs:
        raise NoFailedJobsFoundError("no failed jobs found in the aggregator log")

    logger.info("aggregate: %d failed sub-job(s): %s", len(failed_jobs), ", ".join(failed_jobs))
    parts: List[str] = []
    for job in failed_jobs:
        data = fetch(sub_job_log_url(base_url, job))
        parts.append(extract_summary_tail(job, data))
        parts.append(JOB_SEPARATOR)
    return "".join(parts)
