"""
Unified analysis engine for JourneyLens
Orchestrates scoring, gap detection, KPIs and timeline rendering for one customer
"""

import logging
from collections import OrderedDict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .aggregator import compute_journey_kpis
from .cache import RenderCache, event_list_version
from .clustering import partition_for_render
from .filters import TimelineFilters, apply_filters
from .gaps import detect_gaps
from .layout import TimelineLayout, Viewport, layout_timeline
from .models import (
    CustomerStage,
    InteractionEvent,
    RiskLevel,
    Tag,
    latest_timestamp,
    utc_now,
    whole_days_between,
)
from .parser import EventParser
from .scoring import compute_health_summary, round_half_up
from .timescale import ZOOM_IDENTITY, ZoomTransform, apply_zoom, build_time_scale

logger = logging.getLogger(__name__)

# Shared by render_timeline when no cache is passed in
_render_cache = RenderCache()

__all__ = [
    "analyze_customer",
    "apply_zoom",
    "build_time_scale",
    "compute_health_summary",
    "detect_gaps",
    "group_by_customer",
    "partition_for_render",
    "render_timeline",
    "run_analysis",
    "summarize_portfolio",
]


def group_by_customer(events: Sequence[InteractionEvent]) -> "OrderedDict[str, List[InteractionEvent]]":
    """Split a mixed export into per-customer histories, first-seen order."""
    groups: "OrderedDict[str, List[InteractionEvent]]" = OrderedDict()
    for event in events:
        groups.setdefault(event.customer_id, []).append(event)
    return groups


def derive_last_contact_days(
    events: Sequence[InteractionEvent],
    now: datetime,
) -> Optional[int]:
    last = latest_timestamp(events)
    if last is None:
        return None
    return whole_days_between(last, now)


def analyze_customer(
    events: Sequence[InteractionEvent],
    last_contact_days: Optional[int] = None,
    stage: CustomerStage = CustomerStage.ACTIVE,
    now: Optional[datetime] = None,
    filters: Optional[TimelineFilters] = None,
) -> Dict[str, Any]:
    """
    Run the full analysis for one customer's history.

    Args:
        events: Interaction events in any order
        last_contact_days: Days since last contact (derived from the latest
            event when omitted)
        stage: Customer lifecycle stage
        now: Evaluation time (default: current UTC time)
        filters: Optional timeline filters applied before analysis

    Returns:
        {
            "customer_id": str | None,
            "evaluated_at": ISO timestamp,
            "stage": str,
            "summary": HealthSummary dict,
            "gaps": [EngagementGap dict, ...],
            "kpis": journey KPI dict,
            "metadata": {"total_events", "last_contact_days", "date_range"},
        }
    """
    now = now or utc_now()
    stage = CustomerStage.from_value(stage)

    if filters is not None and not filters.is_empty:
        events = apply_filters(events, filters, now=now)
        logger.info(f"Filters kept {len(events)} events")

    if last_contact_days is None:
        last_contact_days = derive_last_contact_days(events, now)

    logger.info(f"Analyzing {len(events)} events (stage={stage.value})")

    gaps = detect_gaps(events, now=now)
    summary = compute_health_summary(events, last_contact_days, gaps, stage, now)
    kpis = compute_journey_kpis(events, now=now)

    logger.info(
        f"Analysis complete: health={summary.health_score} "
        f"risk={summary.risk_level.value} churn={summary.churn_probability} gaps={len(gaps)}"
    )

    customer_ids = {e.customer_id for e in events}
    date_range = None
    if events:
        stamps = [e.timestamp for e in events]
        date_range = {"start": min(stamps).isoformat(), "end": max(stamps).isoformat()}

    return {
        "customer_id": customer_ids.pop() if len(customer_ids) == 1 else None,
        "evaluated_at": now.isoformat(),
        "stage": stage.value,
        "summary": summary.to_dict(),
        "gaps": [g.to_dict() for g in gaps],
        "kpis": kpis,
        "metadata": {
            "total_events": len(events),
            "last_contact_days": last_contact_days,
            "date_range": date_range,
        },
    }


PORTFOLIO_AT_RISK_LEVELS = (RiskLevel.HIGH.value, RiskLevel.CRITICAL.value)
PORTFOLIO_OPPORTUNITY_TAGS = (Tag.OPPORTUNITY, Tag.UPSELL)


def summarize_portfolio(
    groups: Dict[str, Sequence[InteractionEvent]],
    analyses: Dict[str, Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Totals across every analyzed customer.

    `analyses` maps customer id to an analyze_customer result (or a report
    built from one); both carry the health summary under "summary".
    """
    scores = [a["summary"]["health_score"] for a in analyses.values()]
    at_risk = [
        cid for cid, a in analyses.items()
        if a["summary"]["risk_level"] in PORTFOLIO_AT_RISK_LEVELS
    ]
    # One per interaction, however many opportunity tags it carries
    opportunities = sum(
        1
        for cid in analyses
        for e in groups.get(cid, ())
        if any(e.has_tag(t) for t in PORTFOLIO_OPPORTUNITY_TAGS)
    )

    return {
        "total_customers": len(analyses),
        "at_risk_count": len(at_risk),
        "at_risk_customers": at_risk,
        "avg_health_score": round_half_up(sum(scores) / len(scores)) if scores else 0,
        "active_opportunities": opportunities,
    }


def run_analysis(
    filepath: Path,
    last_contact_days: Optional[int] = None,
    stage: CustomerStage = CustomerStage.ACTIVE,
    now: Optional[datetime] = None,
    customer_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Parse an export file and analyze it.

    When the export holds several customers, `customer_id` selects one;
    otherwise every customer is analyzed and returned under "customers",
    with portfolio totals under "portfolio".

    Raises:
        EventParseError: If the file cannot be parsed
        FileNotFoundError: If filepath doesn't exist
    """
    logger.info(f"Input file: {filepath}")
    events = EventParser().parse_file(str(filepath))

    groups = group_by_customer(events)
    if customer_id is not None:
        if customer_id not in groups:
            raise ValueError(f"Customer '{customer_id}' not found in {filepath}")
        return analyze_customer(groups[customer_id], last_contact_days, stage, now)

    if len(groups) <= 1:
        return analyze_customer(events, last_contact_days, stage, now)

    analyses = {
        cid: analyze_customer(history, last_contact_days, stage, now)
        for cid, history in groups.items()
    }
    return {
        "customers": analyses,
        "portfolio": summarize_portfolio(groups, analyses),
    }


def render_timeline(
    events: Sequence[InteractionEvent],
    transform: ZoomTransform = ZOOM_IDENTITY,
    viewport: Optional[Viewport] = None,
    now: Optional[datetime] = None,
    cache: Optional[RenderCache] = None,
) -> TimelineLayout:
    """
    Lay out a timeline, reusing a cached layout for an unchanged render state.

    With no events the layout depends on `now`, so empty histories bypass
    the cache.
    """
    viewport = viewport or Viewport()
    cache = cache if cache is not None else _render_cache

    if not events:
        return layout_timeline(events, transform, viewport, now=now)

    key = cache.make_key(
        event_list_version(events), transform.k, transform.x, viewport.width, viewport.height
    )
    cached = cache.get(key)
    if cached is not None:
        return cached

    layout = layout_timeline(events, transform, viewport, now=now)
    cache.set(key, layout)
    return layout


def get_render_cache() -> RenderCache:
    return _render_cache
