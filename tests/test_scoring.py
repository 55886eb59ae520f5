"""
Tests for health scoring, risk level and churn probability
"""

import pytest
from datetime import datetime, timedelta, timezone

from journeylens.models import (
    CustomerStage,
    EngagementGap,
    InteractionEvent,
    RiskLevel,
    Sentiment,
    Tag,
)
from journeylens.scoring import (
    apply_stage_adjustment,
    calculate_churn_probability,
    calculate_health_score,
    calculate_risk_level,
    compute_health_summary,
    engagement_points,
    events_within,
    gap_penalty_points,
    recency_points,
    round_half_up,
    sentiment_points,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_event(event_id, days_ago, sentiment=Sentiment.NEUTRAL, tags=(), **kwargs):
    return InteractionEvent(
        id=event_id,
        customer_id="cust-1",
        timestamp=NOW - timedelta(days=days_ago),
        sentiment=sentiment,
        tags=tags,
        **kwargs,
    )


def make_gap(days, severity=RiskLevel.MEDIUM):
    return EngagementGap(
        start=NOW - timedelta(days=days),
        end=NOW,
        duration_days=days,
        severity=severity,
        recommendation="",
    )


def test_dormant_customer_without_interactions():
    """No recent events and 45 days since last contact."""
    summary = compute_health_summary([], 45, [], CustomerStage.ACTIVE, now=NOW)

    assert summary.health_score == 40
    assert summary.risk_level == RiskLevel.HIGH
    assert summary.churn_probability == 25


def test_churned_stage_forces_zero():
    events = [
        make_event(f"e{i}", i + 1, Sentiment.VERY_POSITIVE, tags=(Tag.CHAMPION, Tag.UPSELL))
        for i in range(6)
    ]
    summary = compute_health_summary(events, 1, [], CustomerStage.CHURNED, now=NOW)

    assert summary.health_score == 0
    assert summary.risk_level == RiskLevel.CRITICAL
    assert summary.churn_probability == 40


def test_stage_accepts_string_values():
    summary = compute_health_summary([], None, None, "at_risk", now=NOW)
    # 70 - 20 (no engagement) - 15 (at-risk)
    assert summary.health_score == 35
    # 40 (health < 40) + 20 (at-risk)
    assert summary.churn_probability == 60

    assert compute_health_summary([], 3, None, "churned", now=NOW).health_score == 0


@pytest.mark.parametrize("count,expected", [
    (0, -20), (1, -10), (2, -10), (3, 10), (4, 10), (5, 20), (9, 20),
])
def test_engagement_points(count, expected):
    assert engagement_points(count) == expected


@pytest.mark.parametrize("days,expected", [
    (None, 0), (0, 10), (7, 10), (8, 5), (14, 5), (15, 0),
    (30, 0), (31, -10), (60, -10), (61, -20), (400, -20),
])
def test_recency_points(days, expected):
    assert recency_points(days) == expected


def test_sentiment_points_is_unscaled_average():
    events = [
        make_event("a", 1, Sentiment.POSITIVE),
        make_event("b", 2, Sentiment.VERY_NEGATIVE),
    ]
    assert sentiment_points(events) == pytest.approx(-3.5)
    assert sentiment_points([]) == 0


def test_recent_window_uses_whole_days():
    inside = InteractionEvent(id="in", customer_id="c", timestamp=NOW - timedelta(days=30, hours=23))
    outside = InteractionEvent(id="out", customer_id="c", timestamp=NOW - timedelta(days=31))

    recent = events_within([inside, outside], 30, NOW)
    assert [e.id for e in recent] == ["in"]


def test_health_score_combines_all_terms():
    events = [
        make_event("a", 2, Sentiment.POSITIVE, tags=(Tag.RISK,)),
        make_event("b", 10, Sentiment.NEUTRAL, tags=(Tag.OPPORTUNITY,)),
        make_event("c", 20, Sentiment.NEGATIVE),
    ]
    # 70 + 10 (3 recent) + 0 (sentiment) - 5 (risk) + 3 (opportunity) + 5 (10 days)
    score = calculate_health_score(events, 10, [], CustomerStage.ACTIVE, now=NOW)
    assert score == 83

    summary = compute_health_summary(events, 10, [], now=NOW)
    assert summary.risk_level == RiskLevel.LOW
    # The negative event is older than 14 days
    assert summary.churn_probability == 0


def test_tags_counted_per_occurrence():
    one_event = [make_event("a", 1, tags=(Tag.RISK, Tag.COMPLAINT, Tag.CHURN_SIGNAL))]
    # 70 - 10 (one recent event) - 15 (three risk tags)
    assert calculate_health_score(one_event, None, now=NOW) == 45


def test_tags_outside_recent_window_are_ignored():
    tagged = [make_event("a", 40, tags=(Tag.RISK, Tag.CHAMPION))]
    untagged = [make_event("a", 40)]

    assert calculate_health_score(tagged, None, now=NOW) == 50
    assert calculate_health_score(untagged, None, now=NOW) == 50


def test_champion_bonus_applies_once():
    events = [make_event(f"e{i}", i + 1, tags=(Tag.CHAMPION,)) for i in range(3)]
    # 70 + 10 (3 recent) + 5 (champion)
    assert calculate_health_score(events, None, now=NOW) == 85


def test_final_rounding_is_half_up():
    events = [
        make_event("a", 1, Sentiment.POSITIVE),
        make_event("b", 2, Sentiment.VERY_NEGATIVE),
    ]
    # 70 - 10 - 3.5 = 56.5
    summary = compute_health_summary(events, None, [], now=NOW)
    assert summary.health_score == 57
    assert summary.risk_level == RiskLevel.HIGH
    # 25 (health < 60) + 15 (one negative event in last 14 days)
    assert summary.churn_probability == 40


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2
    assert round_half_up(-0.5) == 0


def test_gap_penalty_only_counts_gaps_over_30_days():
    gaps = [make_gap(31), make_gap(30), make_gap(95, RiskLevel.CRITICAL)]
    assert gap_penalty_points(gaps) == -20


def test_stage_adjustment():
    assert apply_stage_adjustment(50, CustomerStage.AT_RISK) == 35
    assert apply_stage_adjustment(50, CustomerStage.EXPANSION) == 60
    assert apply_stage_adjustment(50, CustomerStage.ACTIVE) == 50
    assert apply_stage_adjustment(150, CustomerStage.CHURNED) == 0


def test_health_score_is_clamped_integer():
    glowing = [
        make_event(f"e{i}", i, Sentiment.VERY_POSITIVE, tags=(Tag.UPSELL, Tag.SUCCESS, Tag.CHAMPION))
        for i in range(10)
    ]
    dire = [
        make_event(f"e{i}", i, Sentiment.VERY_NEGATIVE, tags=(Tag.RISK, Tag.COMPLAINT, Tag.CHURN_SIGNAL))
        for i in range(10)
    ]
    gaps = [make_gap(100, RiskLevel.CRITICAL)] * 5

    high = calculate_health_score(glowing, 1, [], CustomerStage.EXPANSION, now=NOW)
    low = calculate_health_score(dire, 200, gaps, CustomerStage.AT_RISK, now=NOW)

    assert high == 100 and isinstance(high, int)
    assert low == 0 and isinstance(low, int)


class TestRiskLevel:
    def test_score_bands(self):
        assert calculate_risk_level(39, [], [], NOW) == RiskLevel.CRITICAL
        assert calculate_risk_level(40, [], [], NOW) == RiskLevel.HIGH
        assert calculate_risk_level(59, [], [], NOW) == RiskLevel.HIGH
        assert calculate_risk_level(60, [], [], NOW) == RiskLevel.MEDIUM
        assert calculate_risk_level(79, [], [], NOW) == RiskLevel.MEDIUM
        assert calculate_risk_level(80, [], [], NOW) == RiskLevel.LOW

    def test_recent_churn_signals_short_circuit(self):
        events = [
            make_event("a", 1, tags=(Tag.CHURN_SIGNAL,)),
            make_event("b", 14, tags=(Tag.CHURN_SIGNAL,)),
        ]
        assert calculate_risk_level(95, events, [], NOW) == RiskLevel.CRITICAL

    def test_old_churn_signals_do_not_short_circuit(self):
        events = [
            make_event("a", 15, tags=(Tag.CHURN_SIGNAL,)),
            make_event("b", 20, tags=(Tag.CHURN_SIGNAL,)),
        ]
        assert calculate_risk_level(95, events, [], NOW) == RiskLevel.LOW

    def test_long_gap_forces_high(self):
        assert calculate_risk_level(85, [], [make_gap(61, RiskLevel.HIGH)], NOW) == RiskLevel.HIGH
        assert calculate_risk_level(85, [], [make_gap(60, RiskLevel.HIGH)], NOW) == RiskLevel.LOW

    def test_risk_never_improves_as_score_drops(self):
        gaps = [make_gap(45)]
        ranks = [calculate_risk_level(score, [], gaps, NOW).rank for score in range(0, 101)]
        assert all(a >= b for a, b in zip(ranks, ranks[1:]))


class TestChurnProbability:
    def test_health_bands_are_exclusive(self):
        assert calculate_churn_probability(39, [], [], now=NOW) == 40
        assert calculate_churn_probability(59, [], [], now=NOW) == 25
        assert calculate_churn_probability(79, [], [], now=NOW) == 10
        assert calculate_churn_probability(80, [], [], now=NOW) == 0

    def test_recent_negative_events(self):
        events = [
            make_event("a", 1, Sentiment.NEGATIVE),
            make_event("b", 13, Sentiment.VERY_NEGATIVE),
            make_event("c", 20, Sentiment.NEGATIVE),
            make_event("d", 2, Sentiment.POSITIVE),
        ]
        assert calculate_churn_probability(85, events, [], now=NOW) == 30

    def test_churn_signals_count_across_history(self):
        events = [make_event(f"e{i}", 100 + i, tags=(Tag.CHURN_SIGNAL,)) for i in range(2)]
        assert calculate_churn_probability(85, events, [], now=NOW) == 20

    def test_clamped_to_100(self):
        events = [make_event(f"e{i}", 100 + i, tags=(Tag.CHURN_SIGNAL,)) for i in range(3)]
        gaps = [make_gap(120, RiskLevel.CRITICAL)]
        # 40 + 30 + 20 + 20 = 110
        churn = calculate_churn_probability(30, events, gaps, CustomerStage.AT_RISK, now=NOW)
        assert churn == 100

    def test_only_critical_gaps_count(self):
        gaps = [make_gap(70, RiskLevel.HIGH), make_gap(95, RiskLevel.CRITICAL)]
        assert calculate_churn_probability(85, [], gaps, now=NOW) == 20


def test_summary_is_deterministic():
    events = [make_event(f"e{i}", i * 3, Sentiment.NEGATIVE, tags=(Tag.COMPLAINT,)) for i in range(8)]
    first = compute_health_summary(events, 0, None, now=NOW)
    second = compute_health_summary(list(reversed(events)), 0, None, now=NOW)
    assert first == second
