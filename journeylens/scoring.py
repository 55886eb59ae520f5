"""
Customer health scoring for JourneyLens

Rule-based, interpretable scoring of one customer's interaction history.
No model training is involved: every signal is a small pure function so each
weight can be tested and tuned on its own.

OUTPUTS:
1. Health score (0-100 integer): additive point model around a base of 70
2. Risk level (low < medium < high < critical): first matching rule wins
3. Churn probability (0-100 integer): additive, then clamped

HEALTH SCORE TERMS (recent = last 30 days relative to evaluation time):
- engagement:   >=5 recent events +20, >=3 +10, none -20, otherwise -10
- sentiment:    mean sentiment points of recent events, added unscaled
- risk tags:    -5 per risk/complaint/churn-signal tag occurrence
- opportunity:  +3 per opportunity/upsell/success tag occurrence
- champion:     +5 once if any recent event carries a champion tag
- recency:      <=7 days +10, <=14 +5, >60 -20, >30 -10
- gaps:         -10 per supplied gap longer than 30 days
- stage:        at-risk -15, expansion +10, churned forces 0

All intermediate arithmetic is unclamped; clamping and half-up rounding
happen once at the end.
"""

import logging
import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence
import numpy as np

from . import config
from .models import (
    CustomerStage,
    EngagementGap,
    HealthSummary,
    InteractionEvent,
    OPPORTUNITY_TAGS,
    RISK_TAGS,
    RiskLevel,
    Sentiment,
    Tag,
    utc_now,
    whole_days_between,
)

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURABLE CONSTANTS
# ============================================================================

# Signed contribution of each sentiment label
SENTIMENT_POINTS: Dict[Sentiment, float] = {
    Sentiment.VERY_POSITIVE: 15.0,
    Sentiment.POSITIVE: 8.0,
    Sentiment.NEUTRAL: 0.0,
    Sentiment.NEGATIVE: -8.0,
    Sentiment.VERY_NEGATIVE: -15.0,
}

# Engagement frequency
ENGAGEMENT_HIGH_COUNT = 5
ENGAGEMENT_MEDIUM_COUNT = 3
ENGAGEMENT_HIGH_POINTS = 20.0
ENGAGEMENT_MEDIUM_POINTS = 10.0
ENGAGEMENT_NONE_POINTS = -20.0
ENGAGEMENT_LOW_POINTS = -10.0

# Tags
RISK_TAG_POINTS = -5.0
OPPORTUNITY_TAG_POINTS = 3.0
CHAMPION_POINTS = 5.0

# Last contact recency (days, points)
RECENCY_BANDS = {
    "fresh": (7, 10.0),
    "recent": (14, 5.0),
    "stale": (30, -10.0),
    "dormant": (60, -20.0),
}

GAP_PENALTY_POINTS = -10.0

# Lifecycle stage
STAGE_POINTS: Dict[CustomerStage, float] = {
    CustomerStage.AT_RISK: -15.0,
    CustomerStage.EXPANSION: 10.0,
}

# Risk level bands (exclusive upper bounds on health score)
RISK_CRITICAL_BELOW = 40
RISK_HIGH_BELOW = 60
RISK_MEDIUM_BELOW = 80
RISK_CHURN_SIGNAL_MIN_COUNT = 2

# Churn probability
CHURN_HEALTH_BANDS = [(40, 40.0), (60, 25.0), (80, 10.0)]
CHURN_NEGATIVE_EVENT_POINTS = 15.0
CHURN_SIGNAL_POINTS = 10.0
CHURN_CRITICAL_GAP_POINTS = 20.0
CHURN_AT_RISK_POINTS = 20.0


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def clamp(value: float, min_val: float = 0.0, max_val: float = 100.0) -> float:
    """Clamp value to [min_val, max_val]."""
    return max(min_val, min(max_val, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from -inf."""
    return int(math.floor(value + 0.5))


def sentiment_value(sentiment: Sentiment) -> float:
    """Signed numeric contribution of a sentiment label."""
    return SENTIMENT_POINTS.get(sentiment, 0.0)


def days_since(ts: datetime, now: datetime) -> int:
    return whole_days_between(ts, now)


def events_within(
    events: Iterable[InteractionEvent],
    days: int,
    now: datetime,
) -> List[InteractionEvent]:
    """Events no more than `days` whole days old at `now`."""
    return [e for e in events if days_since(e.timestamp, now) <= days]


def count_tags(events: Iterable[InteractionEvent], tags: frozenset) -> int:
    """Count tag occurrences (not events) belonging to a category."""
    return sum(1 for e in events for t in e.tags if t in tags)


# ============================================================================
# HEALTH SCORE TERMS
# ============================================================================

def engagement_points(recent_count: int) -> float:
    if recent_count >= ENGAGEMENT_HIGH_COUNT:
        return ENGAGEMENT_HIGH_POINTS
    if recent_count >= ENGAGEMENT_MEDIUM_COUNT:
        return ENGAGEMENT_MEDIUM_POINTS
    if recent_count == 0:
        return ENGAGEMENT_NONE_POINTS
    return ENGAGEMENT_LOW_POINTS


def sentiment_points(recent: Sequence[InteractionEvent]) -> float:
    """Average sentiment contribution; 0 when there are no recent events."""
    if not recent:
        return 0.0
    return float(np.mean([sentiment_value(e.sentiment) for e in recent]))


def risk_tag_points(recent: Sequence[InteractionEvent]) -> float:
    return RISK_TAG_POINTS * count_tags(recent, RISK_TAGS)


def opportunity_tag_points(recent: Sequence[InteractionEvent]) -> float:
    return OPPORTUNITY_TAG_POINTS * count_tags(recent, OPPORTUNITY_TAGS)


def champion_points(recent: Sequence[InteractionEvent]) -> float:
    if any(e.has_tag(Tag.CHAMPION) for e in recent):
        return CHAMPION_POINTS
    return 0.0


def recency_points(last_contact_days: Optional[int]) -> float:
    """Points for how long ago the customer was last contacted."""
    if last_contact_days is None:
        return 0.0

    fresh_days, fresh_points = RECENCY_BANDS["fresh"]
    recent_days, recent_points = RECENCY_BANDS["recent"]
    stale_days, stale_points = RECENCY_BANDS["stale"]
    dormant_days, dormant_points = RECENCY_BANDS["dormant"]

    if last_contact_days <= fresh_days:
        return fresh_points
    if last_contact_days <= recent_days:
        return recent_points
    if last_contact_days > dormant_days:
        return dormant_points
    if last_contact_days > stale_days:
        return stale_points
    return 0.0


def gap_penalty_points(gaps: Sequence[EngagementGap]) -> float:
    long_gaps = [g for g in gaps if g.duration_days > config.GAP_PENALTY_MIN_DAYS]
    return GAP_PENALTY_POINTS * len(long_gaps)


def apply_stage_adjustment(score: float, stage: CustomerStage) -> float:
    """Churned customers are pinned to zero; other stages shift the score."""
    if stage == CustomerStage.CHURNED:
        return 0.0
    return score + STAGE_POINTS.get(stage, 0.0)


# ============================================================================
# SCORING FUNCTIONS
# ============================================================================

def calculate_health_score(
    events: Sequence[InteractionEvent],
    last_contact_days: Optional[int],
    gaps: Sequence[EngagementGap] = (),
    stage: CustomerStage = CustomerStage.ACTIVE,
    now: Optional[datetime] = None,
) -> int:
    """
    Calculate health score (0-100).

    Args:
        events: Full interaction history (any order)
        last_contact_days: Days since last contact (None = unknown)
        gaps: Precomputed engagement gaps (may be empty)
        stage: Customer lifecycle stage
        now: Evaluation time (default: current UTC time)

    Returns:
        Integer health score clamped to [0, 100]
    """
    now = now or utc_now()
    recent = events_within(events, config.RECENT_WINDOW_DAYS, now)

    score = config.BASE_HEALTH_SCORE
    score += engagement_points(len(recent))
    score += sentiment_points(recent)
    score += risk_tag_points(recent)
    score += opportunity_tag_points(recent)
    score += champion_points(recent)
    score += recency_points(last_contact_days)
    score += gap_penalty_points(gaps)
    score = apply_stage_adjustment(score, stage)

    return round_half_up(clamp(score))


def calculate_risk_level(
    health_score: int,
    events: Sequence[InteractionEvent],
    gaps: Sequence[EngagementGap] = (),
    now: Optional[datetime] = None,
) -> RiskLevel:
    """Classify risk; rules are evaluated in order and the first match wins."""
    now = now or utc_now()

    if health_score < RISK_CRITICAL_BELOW:
        return RiskLevel.CRITICAL

    recent_churn_signals = [
        e for e in events_within(events, config.CHURN_SIGNAL_WINDOW_DAYS, now)
        if e.has_tag(Tag.CHURN_SIGNAL)
    ]
    if len(recent_churn_signals) >= RISK_CHURN_SIGNAL_MIN_COUNT:
        return RiskLevel.CRITICAL

    if health_score < RISK_HIGH_BELOW:
        return RiskLevel.HIGH
    if any(g.duration_days > config.GAP_HIGH_RISK_MIN_DAYS for g in gaps):
        return RiskLevel.HIGH

    if health_score < RISK_MEDIUM_BELOW:
        return RiskLevel.MEDIUM

    return RiskLevel.LOW


def health_band_churn_points(health_score: int) -> float:
    for upper, points in CHURN_HEALTH_BANDS:
        if health_score < upper:
            return points
    return 0.0


def calculate_churn_probability(
    health_score: int,
    events: Sequence[InteractionEvent],
    gaps: Sequence[EngagementGap] = (),
    stage: CustomerStage = CustomerStage.ACTIVE,
    now: Optional[datetime] = None,
) -> int:
    """Estimate near-term churn likelihood (0-100)."""
    now = now or utc_now()

    churn = health_band_churn_points(health_score)

    recent_negative = [
        e for e in events_within(events, config.NEGATIVE_SENTIMENT_WINDOW_DAYS, now)
        if e.sentiment.is_negative
    ]
    churn += CHURN_NEGATIVE_EVENT_POINTS * len(recent_negative)

    churn_signals = [e for e in events if e.has_tag(Tag.CHURN_SIGNAL)]
    churn += CHURN_SIGNAL_POINTS * len(churn_signals)

    critical_gaps = [g for g in gaps if g.severity == RiskLevel.CRITICAL]
    churn += CHURN_CRITICAL_GAP_POINTS * len(critical_gaps)

    if stage == CustomerStage.AT_RISK:
        churn += CHURN_AT_RISK_POINTS

    return round_half_up(clamp(churn))


def compute_health_summary(
    events: Sequence[InteractionEvent],
    last_contact_days: Optional[int],
    gaps: Optional[Sequence[EngagementGap]] = None,
    stage: CustomerStage = CustomerStage.ACTIVE,
    now: Optional[datetime] = None,
) -> HealthSummary:
    """
    Reduce a customer's interaction history to health, risk and churn.

    Pure and deterministic for a fixed `now`. An empty history is valid input.
    """
    now = now or utc_now()
    gaps = list(gaps or [])
    stage = CustomerStage.from_value(stage)

    health = calculate_health_score(events, last_contact_days, gaps, stage, now)
    risk = calculate_risk_level(health, events, gaps, now)
    churn = calculate_churn_probability(health, events, gaps, stage, now)

    logger.debug(
        f"Health summary for {len(events)} events: "
        f"health={health} risk={risk.value} churn={churn}"
    )
    return HealthSummary(health_score=health, risk_level=risk, churn_probability=churn)
