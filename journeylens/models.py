"""
Core data model for JourneyLens
Closed vocabularies, the immutable interaction event and the derived records
produced by scoring, gap detection and clustering.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
MS_PER_DAY = 24 * 60 * 60 * 1000


# ============================================================================
# VOCABULARIES
# ============================================================================

class JourneyStage(str, Enum):
    """Journey stage an interaction belongs to."""
    ACQUISITION = "Acquisition"
    ONBOARDING = "Onboarding"
    SUPPORT = "Support"
    RENEWAL = "Renewal"
    OTHER = "Other"

    @classmethod
    def from_value(cls, value: Any) -> "JourneyStage":
        return _lookup(cls, value, cls.OTHER)


JOURNEY_STAGE_ORDER = [
    JourneyStage.ACQUISITION,
    JourneyStage.ONBOARDING,
    JourneyStage.SUPPORT,
    JourneyStage.RENEWAL,
]


class Channel(str, Enum):
    VOICE = "voice"
    EMAIL = "email"
    CHAT = "chat"
    CRM = "crm"
    OTHER = "other"

    @classmethod
    def from_value(cls, value: Any) -> "Channel":
        return _lookup(cls, value, cls.OTHER)


class Tag(str, Enum):
    RISK = "risk"
    OPPORTUNITY = "opportunity"
    FLAG = "flag"
    COMPLIANCE = "compliance"
    COMPLAINT = "complaint"
    CHURN_SIGNAL = "churn-signal"
    UPSELL = "upsell"
    SUCCESS = "success"
    CHAMPION = "champion"
    OTHER = "other"

    @classmethod
    def from_value(cls, value: Any) -> "Tag":
        return _lookup(cls, value, cls.OTHER)


RISK_TAGS = frozenset({Tag.RISK, Tag.COMPLAINT, Tag.CHURN_SIGNAL})
OPPORTUNITY_TAGS = frozenset({Tag.OPPORTUNITY, Tag.UPSELL, Tag.SUCCESS})


class Sentiment(str, Enum):
    """Five-point ordinal sentiment scale."""
    VERY_POSITIVE = "very-positive"
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    VERY_NEGATIVE = "very-negative"

    @classmethod
    def from_value(cls, value: Any) -> "Sentiment":
        return _lookup(cls, value, cls.NEUTRAL)

    @property
    def is_negative(self) -> bool:
        return self in (Sentiment.NEGATIVE, Sentiment.VERY_NEGATIVE)


class RiskLevel(str, Enum):
    """Ordered risk classification, also used for gap severity."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return RISK_LEVEL_ORDER.index(self)


RISK_LEVEL_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


class CustomerStage(str, Enum):
    """Customer lifecycle stage (account level, not per event)."""
    PROSPECT = "prospect"
    ONBOARDING = "onboarding"
    ADOPTION = "adoption"
    ACTIVE = "active"
    AT_RISK = "at-risk"
    EXPANSION = "expansion"
    CHURNED = "churned"

    @classmethod
    def from_value(cls, value: Any) -> "CustomerStage":
        return _lookup(cls, value, cls.ACTIVE)


def _lookup(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    if value is None:
        return default
    text = str(value).strip().lower().replace("_", "-")
    for member in enum_cls:
        if member.value.lower() == text:
            return member
    return default


# ============================================================================
# TIME HELPERS
# ============================================================================

def ensure_utc(ts: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def epoch_ms(ts: datetime) -> int:
    """Whole milliseconds since the Unix epoch."""
    return (ensure_utc(ts) - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Floor of the millisecond difference divided by one day."""
    return (epoch_ms(end) - epoch_ms(start)) // MS_PER_DAY


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True)
class InteractionEvent:
    """One customer touchpoint. Never mutated after creation."""
    id: str
    customer_id: str
    timestamp: datetime
    stage: JourneyStage = JourneyStage.OTHER
    channel: Channel = Channel.OTHER
    risk_score: float = 0.0
    opportunity_score: float = 0.0
    sentiment: Sentiment = Sentiment.NEUTRAL
    tags: Tuple[Tag, ...] = field(default_factory=tuple)
    duration_sec: float = 0.0
    title: str = ""
    summary: str = ""
    weight: float = 0.0

    def __post_init__(self):
        # Tags become an ordered tuple; naive timestamps are taken as UTC
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))

    def has_tag(self, tag: Tag) -> bool:
        return tag in self.tags

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "timestamp": self.timestamp.isoformat(),
            "stage": self.stage.value,
            "channel": self.channel.value,
            "risk_score": self.risk_score,
            "opportunity_score": self.opportunity_score,
            "sentiment": self.sentiment.value,
            "tags": [t.value for t in self.tags],
            "duration_sec": self.duration_sec,
            "title": self.title,
            "summary": self.summary,
            "weight": self.weight,
        }


@dataclass(frozen=True)
class EngagementGap:
    """A silence between interactions (or since the last one) above the threshold."""
    start: datetime
    end: datetime
    duration_days: int
    severity: RiskLevel
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_days": self.duration_days,
            "severity": self.severity.value,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class HealthSummary:
    health_score: int
    risk_level: RiskLevel
    churn_probability: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "health_score": self.health_score,
            "risk_level": self.risk_level.value,
            "churn_probability": self.churn_probability,
        }


@dataclass(frozen=True)
class Cluster:
    """Events merged for display at the current zoom level."""
    id: str
    events: Tuple[InteractionEvent, ...]
    centroid: datetime
    dominant_tag: Tag
    dominant_channel: Channel
    bounds: Tuple[datetime, datetime]

    @property
    def size(self) -> int:
        return len(self.events)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "event_ids": [e.id for e in self.events],
            "size": self.size,
            "centroid": self.centroid.isoformat(),
            "dominant_tag": self.dominant_tag.value,
            "dominant_channel": self.dominant_channel.value,
            "bounds": {
                "start": self.bounds[0].isoformat(),
                "end": self.bounds[1].isoformat(),
            },
        }


@dataclass(frozen=True)
class RenderPartition:
    """Disjoint split of an event list into clusters and individual markers."""
    clusters: Tuple[Cluster, ...] = ()
    individual_events: Tuple[InteractionEvent, ...] = ()

    def all_event_ids(self) -> List[str]:
        ids = [e.id for c in self.clusters for e in c.events]
        ids.extend(e.id for e in self.individual_events)
        return ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clusters": [c.to_dict() for c in self.clusters],
            "individual_events": [e.id for e in self.individual_events],
        }


def latest_timestamp(events) -> Optional[datetime]:
    if not events:
        return None
    return max(e.timestamp for e in events)
