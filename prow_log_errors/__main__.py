#!/usr/bin/env python3
"""Module entrypoint for `prow_log_errors`.

Usage:
  - `python3 -m prow_log_errors failing-tests <prow job URL>`
  - `python3 -m prow_log_errors compact build-log.txt --level moderate`
"""

from __future__ import annotations

from .cli import _cli


if __name__ == "__main__":
    raise SystemExit(_cli())
