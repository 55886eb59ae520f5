"""
Interaction export parser for JourneyLens
Reads JSON and CSV exports of customer touchpoints into InteractionEvent lists
"""

import json
import logging
import math
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple
import pandas as pd

from .models import (
    Channel,
    InteractionEvent,
    JourneyStage,
    Sentiment,
    Tag,
    ensure_utc,
)

logger = logging.getLogger(__name__)

# Field aliases: canonical name -> accepted keys, first match wins
FIELD_ALIASES = {
    "id": ["id", "event_id", "eventId"],
    "customer_id": ["customer_id", "customerId", "customer"],
    "timestamp": ["timestamp", "ts", "time", "date"],
    "stage": ["stage", "journey_stage", "journeyStage"],
    "channel": ["channel"],
    "risk_score": ["risk_score", "riskScore", "risk"],
    "opportunity_score": ["opportunity_score", "opportunityScore", "opportunity"],
    "sentiment": ["sentiment"],
    "tags": ["tags"],
    "duration_sec": ["duration_sec", "durationSec", "duration"],
    "title": ["title"],
    "summary": ["summary"],
    "weight": ["weight"],
}

TAG_SEPARATORS = re.compile(r"[;|]")

SUPPORTED_EXTENSIONS = (".json", ".csv")


class EventParseError(ValueError):
    """Raised when a record cannot be turned into an InteractionEvent."""


def _pick(record: Dict[str, Any], field: str) -> Any:
    for key in FIELD_ALIASES[field]:
        value = record.get(key)
        if _is_missing(value):
            continue
        return value
    return None


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _to_score(value: Any) -> float:
    """Clamp a score into [0, 100]; unparseable or non-finite input becomes 0."""
    if _is_missing(value):
        return 0.0
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(score):
        return 0.0
    return max(0.0, min(100.0, score))


def _to_float(value: Any) -> float:
    if _is_missing(value):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) and number >= 0 else 0.0


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (trailing Z accepted) or datetime into aware UTC."""
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str):
        raise EventParseError(f"Unrecognized timestamp: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        raise EventParseError(f"Unrecognized timestamp: '{value}'")


def parse_tags(value: Any) -> Tuple[Tag, ...]:
    """Tags from a list or a `;` / `|` separated string, order preserved."""
    if _is_missing(value):
        return ()
    if isinstance(value, str):
        items = [part.strip() for part in TAG_SEPARATORS.split(value)]
    else:
        items = list(value)
    return tuple(Tag.from_value(item) for item in items if not _is_missing(item))


class EventParser:
    """Parse interaction exports into InteractionEvent lists."""

    def __init__(self, default_customer_id: Optional[str] = None):
        self.default_customer_id = default_customer_id

    def parse_file(self, file_path: str) -> List[InteractionEvent]:
        """Parse an export file from disk, dispatching on its extension."""
        path = Path(file_path)
        suffix = path.suffix.lower()

        if suffix == ".json":
            with open(path, "r", encoding="utf-8") as f:
                try:
                    payload = json.load(f)
                except json.JSONDecodeError as e:
                    raise EventParseError(f"Invalid JSON in {file_path}: {e}")
            return self.parse_payload(payload)

        if suffix == ".csv":
            df = pd.read_csv(path, dtype=str, keep_default_na=False)
            return self.parse_frame(df)

        raise EventParseError(
            f"Unsupported file type '{suffix}' (expected one of {', '.join(SUPPORTED_EXTENSIONS)})"
        )

    def parse_payload(self, payload: Any) -> List[InteractionEvent]:
        """Accept a bare list of records or an {"events": [...]} wrapper."""
        if isinstance(payload, dict) and "events" in payload:
            payload = payload["events"]
        if not isinstance(payload, list):
            raise EventParseError("Expected a list of events or an object with an 'events' list")
        return self.parse_records(payload)

    def parse_frame(self, df: pd.DataFrame) -> List[InteractionEvent]:
        return self.parse_records(df.to_dict(orient="records"))

    def parse_records(self, records: Iterable[Dict[str, Any]]) -> List[InteractionEvent]:
        events = []
        for i, record in enumerate(records):
            if not isinstance(record, dict):
                raise EventParseError(f"Record {i}: expected an object, got {type(record).__name__}")
            events.append(self.parse_record(record, index=i))

        logger.info(f"Parsed {len(events)} events for {len({e.customer_id for e in events})} customers")
        return events

    def parse_record(self, record: Dict[str, Any], index: int = 0) -> InteractionEvent:
        event_id = _pick(record, "id")
        if event_id is None:
            raise EventParseError(f"Record {index}: missing 'id'")

        raw_ts = _pick(record, "timestamp")
        if raw_ts is None:
            raise EventParseError(f"Record {index} ({event_id}): missing 'timestamp'")
        try:
            timestamp = parse_timestamp(raw_ts)
        except EventParseError as e:
            raise EventParseError(f"Record {index} ({event_id}): {e}")

        # Nested dashboard shape: "score": {"risk": .., "opportunity": ..}
        score = record.get("score")
        if isinstance(score, dict):
            risk = score.get("risk")
            opportunity = score.get("opportunity")
        else:
            risk = _pick(record, "risk_score")
            opportunity = _pick(record, "opportunity_score")

        customer_id = _pick(record, "customer_id") or self.default_customer_id or ""

        return InteractionEvent(
            id=str(event_id),
            customer_id=str(customer_id),
            timestamp=timestamp,
            stage=JourneyStage.from_value(_pick(record, "stage")),
            channel=Channel.from_value(_pick(record, "channel")),
            risk_score=_to_score(risk),
            opportunity_score=_to_score(opportunity),
            sentiment=Sentiment.from_value(_pick(record, "sentiment")),
            tags=parse_tags(_pick(record, "tags")),
            duration_sec=_to_float(_pick(record, "duration_sec")),
            title=str(_pick(record, "title") or ""),
            summary=str(_pick(record, "summary") or ""),
            weight=_to_score(_pick(record, "weight")),
        )


def validate_format(file_path: str) -> tuple[bool, str]:
    """
    Validate an interaction export.
    Returns (is_valid, reason).
    """
    path = Path(file_path)
    if not path.exists():
        return False, f"File not found: {file_path}"
    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        return False, f"Unsupported file type '{path.suffix}'"

    try:
        events = EventParser().parse_file(str(path))
    except (EventParseError, OSError, pd.errors.ParserError) as e:
        return False, str(e)

    if not events:
        return False, "No events found"
    return True, f"Format appears valid ({len(events)} events)"
