"""
Timeline filters for JourneyLens
Channel / stage / tag / free-text / time-window selection over an event list
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

from .models import Channel, InteractionEvent, JourneyStage, Tag, ensure_utc, utc_now


class TimeWindow(str, Enum):
    ALL = "all"
    TWELVE_MONTHS = "12m"
    NINETY_DAYS = "90d"
    THIRTY_DAYS = "30d"

    @property
    def days(self) -> Optional[int]:
        return TIME_WINDOW_DAYS.get(self)

    @classmethod
    def from_value(cls, value: Any) -> "TimeWindow":
        for member in cls:
            if member.value == value:
                return member
        return cls.ALL


TIME_WINDOW_DAYS = {
    TimeWindow.TWELVE_MONTHS: 365,
    TimeWindow.NINETY_DAYS: 90,
    TimeWindow.THIRTY_DAYS: 30,
}


@dataclass(frozen=True)
class TimelineFilters:
    """Empty selections mean no restriction on that dimension."""
    channels: FrozenSet[Channel] = field(default_factory=frozenset)
    stages: FrozenSet[JourneyStage] = field(default_factory=frozenset)
    tags: FrozenSet[Tag] = field(default_factory=frozenset)
    time_window: TimeWindow = TimeWindow.ALL
    search_query: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "TimelineFilters":
        data = data or {}
        return cls(
            channels=frozenset(Channel.from_value(c) for c in data.get("channels", [])),
            stages=frozenset(JourneyStage.from_value(s) for s in data.get("stages", [])),
            tags=frozenset(Tag.from_value(t) for t in data.get("tags", [])),
            time_window=TimeWindow.from_value(data.get("time_window", data.get("timeWindow", "all"))),
            search_query=data.get("search_query", data.get("searchQuery", "")) or "",
        )

    @property
    def is_empty(self) -> bool:
        return (
            not self.channels
            and not self.stages
            and not self.tags
            and self.time_window == TimeWindow.ALL
            and not self.search_query
        )


def apply_filters(
    events: Sequence[InteractionEvent],
    filters: TimelineFilters,
    now: Optional[datetime] = None,
) -> List[InteractionEvent]:
    """Return the events matching every active filter, in input order."""
    selected = list(events)

    if filters.channels:
        selected = [e for e in selected if e.channel in filters.channels]

    if filters.stages:
        selected = [e for e in selected if e.stage in filters.stages]

    if filters.tags:
        selected = [e for e in selected if any(t in filters.tags for t in e.tags)]

    if filters.search_query:
        query = filters.search_query.lower()
        selected = [
            e for e in selected
            if query in e.title.lower() or query in e.summary.lower()
        ]

    days = filters.time_window.days
    if days is not None:
        cutoff = ensure_utc(now or utc_now()) - timedelta(days=days)
        selected = [e for e in selected if e.timestamp >= cutoff]

    return selected
