"""Error types for prow_log_errors.

These are intentionally lightweight so callers (CLI, pipeline, tests) can catch
specific classes without importing the heavier modules.

Four families:
- MalformedInputError : unparsable job URL, trace JSON, level name or config
- NotFoundError       : an expected marker/line/segment is absent
- InconsistentError   : the artifact layout assumption is violated (always fatal)
- UpstreamFailureError: fetch error or non-2xx status (always fatal, no retry)

Some NotFound conditions are caught by the pipeline and turned into fallback
output (no failed step, no block); the others propagate.
"""

from __future__ import annotations

from typing import Optional


class ProwLogError(Exception):
    pass


class MalformedInputError(ProwLogError):
    pass


class MalformedURLError(MalformedInputError):
    def __init__(self, url: str, message: str = ""):
        super().__init__(message or f"invalid URL: {url!r}")
        self.url = str(url or "")


class UnexpectedPathShapeError(MalformedInputError):
    def __init__(self, url: str):
        super().__init__(f"unexpected URL path structure (need <job>/<id>): {url!r}")
        self.url = str(url or "")


class MalformedTraceError(MalformedInputError):
    pass


class InvalidCompactionLevelError(MalformedInputError):
    pass


class ConfigError(MalformedInputError):
    pass


class NotFoundError(ProwLogError):
    pass


class NoTestNameFoundError(NotFoundError):
    def __init__(self, url: str):
        super().__init__(f"no e2e test name found in URL: {url}")
        self.url = str(url or "")


class NoStepFailureFoundError(NotFoundError):
    pass


class NoFailedJobsFoundError(NotFoundError):
    pass


class NoSummaryFoundError(NotFoundError):
    def __init__(self, job_name: str):
        super().__init__(f"no summary: found in log for job {job_name!r}")
        self.job_name = str(job_name or "")


class InconsistentError(ProwLogError):
    pass


class StepTestMismatchError(InconsistentError):
    def __init__(self, *, step_name: str, test_name: str):
        super().__init__(f"step name {step_name!r} does not start with test name prefix {test_name + '-'!r}")
        self.step_name = str(step_name or "")
        self.test_name = str(test_name or "")


class UpstreamFailureError(ProwLogError):
    def __init__(self, *, status_code: Optional[int], url: str, message: str):
        super().__init__(message)
        self.status_code = int(status_code or 0)
        self.url = str(url or "")
