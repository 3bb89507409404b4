"""
CLI wrapper for prow_log_errors.

We keep CLI glue in its own module so the pipeline implementation stays easy to
reuse from other tools (e.g. an LLM tool-calling adapter).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import argparse
import logging
import sys

from . import compact
from . import dedupe
from .config import COMPACTION_THRESHOLDS, CompactionLevel, load_config
from .exceptions import ProwLogError
from .pipeline import ProwJobAnalyzer

logger = logging.getLogger(__name__)

_LEVEL_CHOICES = [lvl.value for lvl in CompactionLevel]


def _read_local_file(path_str: str) -> Optional[str]:
    path = Path(path_str).expanduser()
    if not path.exists():
        logger.error(f"ERROR: file not found: {path}")
        return None
    if not path.is_file():
        logger.error(f"ERROR: not a file: {path}")
        return None
    return path.read_text(encoding="utf-8", errors="replace")


def _write(text: str) -> None:
    sys.stdout.write(str(text or "") + ("\n" if not str(text or "").endswith("\n") else ""))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prow-log-utils",
        description="Locate, extract and compact OpenShift CI (Prow) job logs for failure analysis.",
        epilog="Examples:\n"
               "  %(prog)s failing-tests https://prow.ci.openshift.org/view/gs/test-platform-results/logs/<job>/<id>\n"
               "  %(prog)s analyze <job URL> --level moderate\n"
               "  %(prog)s compact ./build-log.txt --level aggressive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", default=None, help="YAML config file (default: $PROW_LOG_UTILS_CONFIG or ~/.config/prow-log-utils.yaml)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging (URLs fetched, per-phase line counts).")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("gather-extra", help="Print the gather-extra artifacts URL for a job.")
    p.add_argument("job_url")

    for name, help_text in (
        ("failing-tests", "Print the 'Failing tests:' block of the failed step's log."),
        ("flaky-tests", "Print the 'Flaky tests:' block of the failed step's log."),
        ("monitor-tests", "Print the monitor-test failures block of the failed step's log."),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("job_url")

    p = sub.add_parser("analyze", help="Compact the failed step's log for failure analysis.")
    p.add_argument("job_url")
    p.add_argument("--level", choices=_LEVEL_CHOICES, default=None, help="Compaction level (default: exact)")

    p = sub.add_parser("aggregate", help="Print summaries of the failed sub-jobs of an aggregated job.")
    p.add_argument("job_url")
    p.add_argument("--log-file", default=None, help="Local aggregator log to use instead of fetching the job's build log.")

    p = sub.add_parser("spyglass", help="Print Error/Warning spyglass events correlated with a test.")
    p.add_argument("job_url")
    p.add_argument("test_name")
    p.add_argument("--all-matches", action="store_true", help="Do not stop at the first event for the test.")

    p = sub.add_parser("compact", help="Compact a local log file.")
    p.add_argument("log_path")
    p.add_argument("--level", choices=_LEVEL_CHOICES, default=None, help="Compaction level (default: exact)")

    p = sub.add_parser("dedupe", help="Remove near-duplicate lines from a local log file.")
    p.add_argument("log_path")
    p.add_argument("--threshold", type=float, default=COMPACTION_THRESHOLDS[CompactionLevel.EXACT], help="Similarity threshold in [0, 1] (default: 1.0)")
    p.add_argument("--window", type=int, default=None, help="Window of recently kept lines (default: from config, 5)")
    return parser


def _cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")

    analyzer: Optional[ProwJobAnalyzer] = None
    try:
        config = load_config(Path(args.config) if args.config else None)

        if args.command in ("compact", "dedupe"):
            text = _read_local_file(args.log_path)
            if text is None:
                return 2
            if args.command == "compact":
                out = compact.compact_test_logs(text, args.level, config=config)
            else:
                window = int(args.window) if args.window is not None else config.dedup_window_size
                try:
                    out = dedupe.deduplicate_log_text(text, float(args.threshold), window)
                except ValueError as e:
                    logger.error(f"ERROR: {e}")
                    return 2
            _write(out)
            return 0

        analyzer = ProwJobAnalyzer(config=config)
        if args.command == "gather-extra":
            _write(analyzer.gather_extra_url(args.job_url))
        elif args.command == "failing-tests":
            _write(analyzer.failing_tests(args.job_url).text)
        elif args.command == "flaky-tests":
            _write(analyzer.flaky_tests(args.job_url).text)
        elif args.command == "monitor-tests":
            _write(analyzer.monitor_test_failures(args.job_url).text)
        elif args.command == "analyze":
            _write(analyzer.analyze_job_failures(args.job_url, args.level))
        elif args.command == "aggregate":
            log_text = None
            if args.log_file:
                log_text = _read_local_file(args.log_file)
                if log_text is None:
                    return 2
            _write(analyzer.aggregate_job_failures(args.job_url, aggregator_log=log_text))
        elif args.command == "spyglass":
            _write(analyzer.spyglass_events_for_test(args.job_url, args.test_name, return_all_matches=bool(args.all_matches)))
    except ProwLogError as e:
        logger.error(f"ERROR: {e}")
        return 1
    finally:
        if args.verbose and analyzer is not None:
            logger.debug("artifact fetch stats: %s", analyzer.client.get_call_stats())
    return 0
