"""
Aggregator for JourneyLens
Windowing and journey KPI computation
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
import pandas as pd
import numpy as np

from . import config
from .models import JOURNEY_STAGE_ORDER, InteractionEvent, ensure_utc, utc_now, whole_days_between
from .scoring import sentiment_value

logger = logging.getLogger(__name__)

FRAME_COLUMNS = [
    "id",
    "customer_id",
    "timestamp",
    "stage",
    "channel",
    "risk_score",
    "opportunity_score",
    "sentiment",
    "sentiment_points",
    "tags",
    "duration_sec",
    "weight",
]


def events_to_frame(events: Sequence[InteractionEvent]) -> pd.DataFrame:
    """
    Build a chronologically sorted DataFrame from events.

    Enum columns hold their string values; `tags` holds lists of tag values.
    """
    rows = [
        {
            "id": e.id,
            "customer_id": e.customer_id,
            "timestamp": e.timestamp,
            "stage": e.stage.value,
            "channel": e.channel.value,
            "risk_score": float(e.risk_score),
            "opportunity_score": float(e.opportunity_score),
            "sentiment": e.sentiment.value,
            "sentiment_points": sentiment_value(e.sentiment),
            "tags": [t.value for t in e.tags],
            "duration_sec": float(e.duration_sec),
            "weight": float(e.weight),
        }
        for e in events
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    if len(df) == 0:
        return df

    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    # mergesort is stable, so equal timestamps keep input order
    return df.sort_values("timestamp", kind="mergesort").reset_index(drop=True)


class JourneyAggregator:
    """Aggregate interaction events into journey KPIs."""

    def __init__(self):
        pass

    def create_time_window(
        self,
        df: pd.DataFrame,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> pd.DataFrame:
        """
        Create window of events from the last N days.

        Uses the same whole-day rule as the health score's recent window.

        Args:
            df: Full event DataFrame
            days: Number of days (default from config)
            now: Evaluation time (default: current UTC time)

        Returns:
            Windowed DataFrame
        """
        n_days = days if days is not None else config.RECENT_WINDOW_DAYS
        now = pd.Timestamp(ensure_utc(now or utc_now()))
        if len(df) == 0:
            return df.copy()

        # Floor of elapsed days, as whole_days_between does
        elapsed_days = (now - df["timestamp"]) // pd.Timedelta(days=1)
        return df[elapsed_days <= n_days].copy()

    def compute_metrics(
        self,
        df: pd.DataFrame,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Compute KPIs for a window.

        Returns dict with:
            - volume metrics (total, per stage, per channel)
            - risk / opportunity density
            - duration metrics
            - sentiment counts and trend
            - risk trend
            - stage progression and days since last event
        """
        if len(df) == 0:
            return self._empty_metrics()

        metrics = {"total_events": int(len(df))}

        metrics.update(self._compute_volumes(df))
        metrics.update(self._compute_density(df))
        metrics.update(self._compute_durations(df))
        metrics.update(self._compute_sentiment(df))
        metrics.update(self._compute_risk_trend(df))
        metrics["stage_progression"] = self._stage_progression(df)

        last = df["timestamp"].max().to_pydatetime()
        metrics["days_since_last_event"] = whole_days_between(last, now or utc_now())

        return metrics

    def _compute_volumes(self, df: pd.DataFrame) -> Dict[str, Any]:
        """Event counts per journey stage and per channel."""
        stage_counts = df["stage"].value_counts()
        stage_volumes = {
            stage.value: int(stage_counts.get(stage.value, 0))
            for stage in JOURNEY_STAGE_ORDER
        }
        channel_volumes = {
            channel: int(count) for channel, count in df["channel"].value_counts().items()
        }
        return {
            "stage_volumes": stage_volumes,
            "channel_volumes": channel_volumes,
        }

    def _compute_density(self, df: pd.DataFrame) -> Dict[str, float]:
        """Percentage of events with a high risk / opportunity score."""
        threshold = config.KPI_HIGH_SCORE_THRESHOLD
        total = len(df)
        return {
            "risk_density": float((df["risk_score"] > threshold).sum() / total * 100),
            "opportunity_density": float((df["opportunity_score"] > threshold).sum() / total * 100),
        }

    def _compute_durations(self, df: pd.DataFrame) -> Dict[str, Any]:
        durations = df["duration_sec"]
        return {
            "avg_duration_sec": float(durations.mean()),
            "long_interaction_count": int((durations > config.KPI_LONG_INTERACTION_SEC).sum()),
        }

    def _compute_sentiment(self, df: pd.DataFrame) -> Dict[str, Any]:
        points = df["sentiment_points"]
        return {
            "positive_count": int((points > 0).sum()),
            "negative_count": int((points < 0).sum()),
            "sentiment_trend": self._sentiment_trend(points.tolist()),
        }

    def _sentiment_trend(self, points: List[float]) -> str:
        """
        Compare the latest events with the earliest ones.

        Needs at least six events; the older sample
        is the first min(sample, n - 5) events.
        """
        sample = config.KPI_TREND_SAMPLE_SIZE
        older_count = min(sample, len(points) - 5)
        if older_count < 1:
            return "stable"

        recent = np.mean(points[-sample:])
        older = np.mean(points[:older_count])
        delta = recent - older

        if delta > config.KPI_TREND_DEAD_BAND:
            return "improving"
        if delta < -config.KPI_TREND_DEAD_BAND:
            return "declining"
        return "stable"

    def _compute_risk_trend(self, df: pd.DataFrame) -> Dict[str, float]:
        """Older mean risk minus recent mean risk; positive means risk is falling."""
        sample = config.KPI_TREND_SAMPLE_SIZE
        risk = df["risk_score"]
        older_count = min(sample, len(risk) - 5)
        if older_count < 1:
            return {"risk_trend_points": 0.0}

        older = risk.iloc[:older_count].mean()
        recent = risk.iloc[-sample:].mean()
        return {"risk_trend_points": float(older - recent)}

    def _stage_progression(self, df: pd.DataFrame) -> List[str]:
        """Journey stages in the order they were first reached."""
        return list(dict.fromkeys(df["stage"].tolist()))

    def _empty_metrics(self) -> Dict[str, Any]:
        """Return empty metrics dict."""
        return {
            "total_events": 0,
            "stage_volumes": {stage.value: 0 for stage in JOURNEY_STAGE_ORDER},
            "channel_volumes": {},
            "risk_density": 0.0,
            "opportunity_density": 0.0,
            "avg_duration_sec": 0.0,
            "long_interaction_count": 0,
            "positive_count": 0,
            "negative_count": 0,
            "sentiment_trend": "stable",
            "risk_trend_points": 0.0,
            "stage_progression": [],
            "days_since_last_event": None,
        }


def compute_journey_kpis(
    events: Sequence[InteractionEvent],
    now: Optional[datetime] = None,
    days: Optional[int] = None,
) -> Dict[str, Any]:
    """KPIs over all events, or over the last `days` days when given."""
    aggregator = JourneyAggregator()
    df = events_to_frame(events)
    if days is not None:
        df = aggregator.create_time_window(df, days=days, now=now)
    metrics = aggregator.compute_metrics(df, now=now)
    logger.debug(f"Computed KPIs over {metrics['total_events']} events")
    return metrics
