"""Spyglass event-interval traces: parsing, filtering and test correlation.

A trace (`e2e-timelines_spyglass_*.json`) looks like:

    {"items": [{"level": "Error", "source": "KubeEvent",
                "locator": {"type": "Pod", "keys": {"e2e-test": "[sig-x] ..."}},
                "message": {"reason": "...", "cause": "", "humanMessage": "..."},
                "from": "2025-06-10T19:10:22Z", "to": "2025-06-10T19:10:23Z"}, ...]}
"""

from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Pattern, Sequence

from .exceptions import MalformedTraceError
from .regexes import SPY_FILE_NAME_RE, SPY_LISTING_ANCHOR_RE

logger = logging.getLogger(__name__)

RELEVANT_LEVELS = ("Error", "Warning")
TEST_LOCATOR_KEY = "e2e-test"
NOT_A_TEST = "Not a test"

NO_ERROR_OR_WARNING_EVENTS = "no errors and warnings!"
NO_COMPLETE_EVENTS = "no relevant data"
NO_EVENTS_FOR_TEST = "no events reference this test"


@dataclass(frozen=True)
class EventLocator:
    type: str = ""
    keys: Optional[Mapping[str, str]] = None


@dataclass(frozen=True)
class EventMessage:
    reason: str = ""
    cause: str = ""
    human_message: str = ""
    annotations: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EventInterval:
    level: str
    source: str
    locator: EventLocator
    message: EventMessage
    from_time: Optional[datetime]
    to_time: Optional[datetime]
    display: bool = False
    filename: str = ""

    @property
    def test_locator(self) -> str:
        return str((self.locator.keys or {}).get(TEST_LOCATOR_KEY) or "")

    def is_complete(self) -> bool:
        """True when the event can be attributed: source, message, keys and both timestamps set."""
        return bool(
            self.source
            and self.message.human_message
            and self.locator.keys is not None
            and self.from_time is not None
            and self.to_time is not None
        )


#
# Parsing
# =============================================================================
#

_FRACTION_RE: Pattern[str] = re.compile(r"\.(\d+)")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an RFC3339 timestamp (any fractional precision); None/empty -> None."""
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise MalformedTraceError(f"timestamp is not a string: {value!r}")
    s = value.strip()
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    # datetime only keeps microseconds; traces carry nanoseconds.
    s = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], s, count=1)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as e:
        raise MalformedTraceError(f"invalid timestamp {value!r}: {e}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(dt: datetime) -> str:
    """RFC3339 at second precision (`Z` for UTC)."""
    s = dt.replace(microsecond=0).isoformat()
    return s[:-6] + "Z" if s.endswith("+00:00") else s


def _str_map(raw: Any, what: str) -> Optional[Dict[str, str]]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedTraceError(f"{what} is not an object: {raw!r}")
    return {str(k): str(v if v is not None else "") for k, v in raw.items()}


def event_from_dict(raw: Mapping[str, Any]) -> EventInterval:
    if not isinstance(raw, dict):
        raise MalformedTraceError(f"event is not an object: {raw!r}")
    loc = raw.get("locator") or {}
    msg = raw.get("message") or {}
    if not isinstance(loc, dict) or not isinstance(msg, dict):
        raise MalformedTraceError("event locator/message must be objects")
    return EventInterval(
        level=str(raw.get("level") or ""),
        source=str(raw.get("source") or ""),
        locator=EventLocator(type=str(loc.get("type") or ""), keys=_str_map(loc.get("keys"), "locator.keys")),
        message=EventMessage(
            reason=str(msg.get("reason") or ""),
            cause=str(msg.get("cause") or ""),
            human_message=str(msg.get("humanMessage") or ""),
            annotations=_str_map(msg.get("annotations"), "message.annotations") or {},
        ),
        from_time=parse_timestamp(raw.get("from")),
        to_time=parse_timestamp(raw.get("to")),
        display=bool(raw.get("display", False)),
        filename=str(raw.get("filename") or ""),
    )


def parse_event_intervals(json_text: str) -> List[EventInterval]:
    """Parse a spyglass trace (`{"items": [...]}` or a bare list of events)."""
    try:
        data = json.loads(json_text)
    except (TypeError, ValueError) as e:
        raise MalformedTraceError(f"failed to decode spyglass trace: {e}") from e
    items = data.get("items") if isinstance(data, dict) else data
    if items is None:
        return []
    if not isinstance(items, list):
        raise MalformedTraceError("spyglass trace 'items' is not a list")
    return [event_from_dict(item) for item in items]


def spyglass_file_names(listing_html: str, pattern: Pattern[str] = SPY_FILE_NAME_RE) -> List[str]:
    """Spyglass trace file names linked from a gcsweb directory listing."""
    out: List[str] = []
    for m in SPY_LISTING_ANCHOR_RE.finditer(listing_html or ""):
        text = html.unescape(re.sub(r"<[^>]+>", "", m.group(1))).strip()
        if pattern.search(text):
            out.append(text)
    return out


#
# Filtering / rendering
# =============================================================================
#

def error_and_warning_events(events: Sequence[EventInterval]) -> List[EventInterval]:
    return [e for e in events if e.level in RELEVANT_LEVELS]


def format_event(event: EventInterval) -> str:
    if event.from_time is None or event.to_time is None:
        raise ValueError("cannot format an event without a time range")
    return (
        f"Source: {event.source} Type: {event.locator.type} "
        f"Locator: 'test: {event.test_locator or NOT_A_TEST}' "
        f"Reason: {event.message.reason} HumanMessage: {event.message.human_message} "
        f"From: {format_timestamp(event.from_time)} To: {format_timestamp(event.to_time)}"
    )


def summarize_error_and_warning_events(events: Sequence[EventInterval]) -> str:
    """Every complete Error/Warning event, one line each."""
    relevant = error_and_warning_events(events)
    if not relevant:
        return NO_ERROR_OR_WARNING_EVENTS
    lines = [format_event(e) for e in relevant if e.is_complete()]
    if not lines:
        return NO_COMPLETE_EVENTS
    return "\n".join(lines) + "\n"


def correlate_events_to_test(
    events: Sequence[EventInterval],
    test_name: str,
    *,
    return_all_matches: bool = False,
) -> str:
    """Render complete Error/Warning events up to and including the first one for `test_name`.

    With `return_all_matches`, scanning continues past the first hit and every
    complete event is rendered.
    """
    relevant = error_and_warning_events(events)
    if not relevant:
        return NO_ERROR_OR_WARNING_EVENTS
    complete = [e for e in relevant if e.is_complete()]
    if not complete:
        return NO_COMPLETE_EVENTS
    skipped = len(relevant) - len(complete)
    if skipped:
        logger.debug("timeline: skipped %d incomplete event(s)", skipped)

    if not any(e.test_locator == test_name for e in complete):
        return NO_EVENTS_FOR_TEST

    lines: List[str] = []
    for event in complete:
        lines.append(format_event(event))
        if event.test_locator == test_name and not return_all_matches:
            break
    return "\n".join(lines) + "\n"
