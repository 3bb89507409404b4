"""Artifact fetch client (plain HTTP GET of CI artifact text).

No retries: any transport error or non-2xx status is raised immediately as
`UpstreamFailureError`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import requests

from .config import DEFAULT_REQUEST_TIMEOUT_S
from .exceptions import UpstreamFailureError

logger = logging.getLogger(__name__)


class ProwArtifactClient:
    """HTTP client for Prow job artifacts (build logs, directory listings, traces)."""

    def __init__(self, timeout: int = DEFAULT_REQUEST_TIMEOUT_S, session: Optional[requests.Session] = None):
        self.timeout = int(timeout)
        self._session = session

        # Per-run REST stats (label-based).
        self._calls_total: int = 0
        self._calls_by_label: Dict[str, int] = {}
        self._success_total: int = 0
        self._errors_total: int = 0
        self._errors_by_status: Dict[int, int] = {}
        self._time_total_s: float = 0.0
        self._bytes_total: int = 0

    def _record(self, *, label: str, status_code: Optional[int], dt_s: float, nbytes: int = 0) -> None:
        lbl = str(label or "").strip() or "unknown"
        self._calls_total += 1
        self._calls_by_label[lbl] = int(self._calls_by_label.get(lbl, 0)) + 1
        self._time_total_s += max(0.0, float(dt_s))
        self._bytes_total += int(nbytes)
        if status_code is not None and 200 <= int(status_code) < 300:
            self._success_total += 1
        else:
            self._errors_total += 1
            sc = int(status_code or 0)
            self._errors_by_status[sc] = int(self._errors_by_status.get(sc, 0)) + 1

    def fetch_text(self, url: str, *, label: Optional[str] = None) -> str:
        """GET `url` and return the response body as text, or raise UpstreamFailureError."""
        t0 = time.monotonic()
        status_code: Optional[int] = None
        nbytes = 0
        getter = self._session.get if self._session is not None else requests.get
        logger.debug("GET %s", url)
        try:
            response = getter(url, timeout=self.timeout)
            status_code = int(response.status_code)
            if not 200 <= status_code < 300:
                raise UpstreamFailureError(
                    status_code=status_code,
                    url=url,
                    message=f"non-2xx response {status_code} for {url}",
                )
            body = response.text
            nbytes = len(response.content or b"")
            return body
        except requests.exceptions.RequestException as e:
            raise UpstreamFailureError(
                status_code=status_code,
                url=url,
                message=f"request failed for {url}: {e}",
            ) from e
        finally:
            dt = max(0.0, time.monotonic() - t0)
            self._record(label=str(label or ""), status_code=status_code, dt_s=dt, nbytes=nbytes)

    def get_call_stats(self) -> Dict[str, Any]:
        """Return best-effort fetch stats for the current process/run."""
        return {
            "calls_total": int(self._calls_total),
            "calls_by_label": dict(sorted(self._calls_by_label.items(), key=lambda kv: (-kv[1], kv[0]))),
            "success_total": int(self._success_total),
            "errors_total": int(self._errors_total),
            "errors_by_status": dict(sorted(self._errors_by_status.items())),
            "time_total_s": float(self._time_total_s),
            "bytes_total": int(self._bytes_total),
        }
