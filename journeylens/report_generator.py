"""
Report generation functions for JourneyLens
Creates visualization-ready report payloads with chart data
"""

import pandas as pd
from typing import Dict, Any, Optional, List, Sequence

from .aggregator import events_to_frame
from .models import InteractionEvent, JOURNEY_STAGE_ORDER


def generate_chart_events_over_time(df: pd.DataFrame) -> Optional[Dict[str, Any]]:
    """Generate events over time chart data (daily counts)."""
    if len(df) == 0:
        return None

    # Group by UTC calendar date
    df_copy = df.copy()
    df_copy['date'] = df_copy['timestamp'].dt.date
    daily = df_copy.groupby('date').size().reset_index(name='count')

    return {
        "type": "line",
        "labels": [str(d) for d in daily['date']],
        "datasets": [{
            "label": "Interactions",
            "data": daily['count'].tolist()
        }]
    }


def generate_chart_events_by_stage(kpis: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Generate events by journey stage chart data."""
    volumes = kpis.get("stage_volumes", {})
    if not kpis.get("total_events"):
        return None

    stages = [stage.value for stage in JOURNEY_STAGE_ORDER]
    return {
        "type": "bar",
        "labels": stages,
        "datasets": [{
            "label": "Interactions",
            "data": [volumes.get(stage, 0) for stage in stages]
        }]
    }


def generate_chart_events_by_channel(kpis: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Generate events by channel chart data."""
    volumes = kpis.get("channel_volumes", {})
    if not volumes:
        return None

    return {
        "type": "bar",
        "labels": list(volumes.keys()),
        "datasets": [{
            "label": "Interactions",
            "data": list(volumes.values())
        }]
    }


def generate_chart_gap_durations(gaps: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Generate engagement gap chart data (one bar per gap, in days)."""
    if not gaps:
        return None

    return {
        "type": "bar",
        "labels": [g["start"][:10] for g in gaps],
        "datasets": [{
            "label": "Gap (days)",
            "data": [g["duration_days"] for g in gaps],
            "severity": [g["severity"] for g in gaps],
        }]
    }


def generate_report(
    analysis: Dict[str, Any],
    events: Optional[Sequence[InteractionEvent]] = None,
) -> Dict[str, Any]:
    """
    Generate complete report payload with summary, gaps, KPIs and chart data.

    `analysis` is the dict returned by analyze_customer. The events-over-time
    chart needs the events themselves and is None without them.
    """
    kpis = analysis.get("kpis", {})
    gaps = analysis.get("gaps", [])
    df = events_to_frame(events) if events is not None else pd.DataFrame()

    charts = {
        "events_over_time": generate_chart_events_over_time(df),
        "events_by_stage": generate_chart_events_by_stage(kpis),
        "events_by_channel": generate_chart_events_by_channel(kpis),
        "gap_durations": generate_chart_gap_durations(gaps),
    }

    summary = dict(analysis.get("summary", {}))
    metadata = analysis.get("metadata", {})
    summary.update({
        "customer_id": analysis.get("customer_id"),
        "stage": analysis.get("stage"),
        "total_events": metadata.get("total_events", kpis.get("total_events", 0)),
        "last_contact_days": metadata.get("last_contact_days"),
        "gap_count": len(gaps),
    })

    return {
        "summary": summary,
        "gaps": gaps,
        "kpis": kpis,
        "charts": charts,
    }
