"""
Engagement gap detection for JourneyLens
Finds and classifies periods of silence in a customer's interaction history
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from . import config
from .models import (
    EngagementGap,
    InteractionEvent,
    RiskLevel,
    utc_now,
    whole_days_between,
)

logger = logging.getLogger(__name__)

RECOMMENDATIONS = {
    RiskLevel.CRITICAL: "URGENT: {days} days of silence. Schedule executive escalation call immediately.",
    RiskLevel.HIGH: "High priority: {days} days of silence. Schedule check-in call within 24 hours.",
    RiskLevel.MEDIUM: "{days} days of silence. Schedule routine follow-up this week.",
    RiskLevel.LOW: "{days} days of silence. Consider reaching out soon.",
}


def classify_gap_severity(duration_days: int) -> RiskLevel:
    """Map a gap length in days to its severity tier."""
    thresholds = config.GAP_SEVERITY_THRESHOLDS
    if duration_days >= thresholds["critical"]:
        return RiskLevel.CRITICAL
    if duration_days >= thresholds["high"]:
        return RiskLevel.HIGH
    if duration_days >= thresholds["medium"]:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def gap_recommendation(duration_days: int, severity: RiskLevel) -> str:
    return RECOMMENDATIONS[severity].format(days=duration_days)


def _make_gap(start: datetime, end: datetime, duration_days: int) -> EngagementGap:
    severity = classify_gap_severity(duration_days)
    return EngagementGap(
        start=start,
        end=end,
        duration_days=duration_days,
        severity=severity,
        recommendation=gap_recommendation(duration_days, severity),
    )


def detect_gaps(
    events: Sequence[InteractionEvent],
    now: Optional[datetime] = None,
    threshold_days: Optional[int] = None,
) -> List[EngagementGap]:
    """
    Detect engagement gaps.

    Consecutive events (after a stable chronological sort) further apart than
    the threshold produce one gap each; the silence from the last event until
    `now` produces a final gap ending at `now`.

    Args:
        events: Interaction events in any order
        now: Evaluation time (default: current UTC time)
        threshold_days: Minimum whole days for a gap (default from config)

    Returns:
        Gaps ordered by start time ascending
    """
    if not events:
        return []

    now = now or utc_now()
    threshold = threshold_days if threshold_days is not None else config.GAP_THRESHOLD_DAYS

    ordered = sorted(events, key=lambda e: e.timestamp)
    gaps = []

    for prev, current in zip(ordered, ordered[1:]):
        gap_days = whole_days_between(prev.timestamp, current.timestamp)
        if gap_days >= threshold:
            gaps.append(_make_gap(prev.timestamp, current.timestamp, gap_days))

    last = ordered[-1]
    days_since_last = whole_days_between(last.timestamp, now)
    if days_since_last >= threshold:
        gaps.append(_make_gap(last.timestamp, now, days_since_last))

    logger.debug(f"Detected {len(gaps)} engagement gaps across {len(ordered)} events")
    return gaps
