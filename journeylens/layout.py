"""
Timeline layout for JourneyLens
Resolves the render partition, axis ticks and the journey progress line to
screen coordinates for a given viewport and zoom transform.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import config
from .clustering import partition_for_render, sort_chronologically
from .models import Cluster, InteractionEvent, RenderPartition, Tag, epoch_ms, MS_PER_DAY
from .timescale import (
    TimeScale,
    ZoomBehavior,
    ZoomTransform,
    ZOOM_IDENTITY,
    apply_zoom,
    build_time_scale,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewport:
    width: float = config.DEFAULT_VIEWPORT_WIDTH
    height: float = config.DEFAULT_VIEWPORT_HEIGHT
    margin_top: float = config.VIEWPORT_MARGINS["top"]
    margin_right: float = config.VIEWPORT_MARGINS["right"]
    margin_bottom: float = config.VIEWPORT_MARGINS["bottom"]
    margin_left: float = config.VIEWPORT_MARGINS["left"]

    @property
    def inner_width(self) -> float:
        return max(0.0, self.width - self.margin_left - self.margin_right)

    @property
    def inner_height(self) -> float:
        return max(0.0, self.height - self.margin_top - self.margin_bottom)

    @property
    def center_y(self) -> float:
        return self.inner_height / 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "inner_width": self.inner_width,
            "inner_height": self.inner_height,
        }


@dataclass(frozen=True)
class AxisTick:
    timestamp: datetime
    x: float

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "x": self.x}


@dataclass(frozen=True)
class EventMarker:
    event: InteractionEvent
    x: float
    y: float
    size: float
    emphasis: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event.id,
            "x": self.x,
            "y": self.y,
            "size": self.size,
            "emphasis": self.emphasis,
            "channel": self.event.channel.value,
        }


@dataclass(frozen=True)
class ClusterMarker:
    cluster: Cluster
    x: float
    y: float
    radius: float = config.CLUSTER_RADIUS_PX

    def to_dict(self) -> Dict[str, Any]:
        data = self.cluster.to_dict()
        data.update({"x": self.x, "y": self.y, "radius": self.radius})
        return data


@dataclass(frozen=True)
class JourneySegment:
    """Progress line between two consecutive events."""
    start_event_id: str
    end_event_id: str
    x1: float
    x2: float
    gap_days: float
    is_large_gap: bool
    show_gap_label: bool
    label: str
    risk_band: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_event_id": self.start_event_id,
            "end_event_id": self.end_event_id,
            "x1": self.x1,
            "x2": self.x2,
            "gap_days": self.gap_days,
            "is_large_gap": self.is_large_gap,
            "show_gap_label": self.show_gap_label,
            "label": self.label,
            "risk_band": self.risk_band,
        }


@dataclass(frozen=True)
class TimelineLayout:
    viewport: Viewport
    transform: ZoomTransform
    partition: RenderPartition
    ticks: Tuple[AxisTick, ...] = ()
    markers: Tuple[EventMarker, ...] = ()
    clusters: Tuple[ClusterMarker, ...] = ()
    segments: Tuple[JourneySegment, ...] = ()
    center_y: float = 0.0
    is_empty: bool = field(default=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "viewport": self.viewport.to_dict(),
            "transform": self.transform.to_dict(),
            "center_y": self.center_y,
            "is_empty": self.is_empty,
            "ticks": [t.to_dict() for t in self.ticks],
            "markers": [m.to_dict() for m in self.markers],
            "clusters": [c.to_dict() for c in self.clusters],
            "segments": [s.to_dict() for s in self.segments],
            "partition": self.partition.to_dict(),
        }


# ============================================================================
# ENCODING
# ============================================================================

def marker_size(event: InteractionEvent) -> float:
    return config.MARKER_BASE_SIZE + event.weight / config.MARKER_WEIGHT_DIVISOR


def marker_emphasis(event: InteractionEvent) -> str:
    """Risk outranks opportunity; everything else is drawn by channel."""
    if event.has_tag(Tag.RISK) or event.risk_score > config.EMPHASIS_SCORE_THRESHOLD:
        return "risk"
    if event.has_tag(Tag.OPPORTUNITY) or event.opportunity_score > config.EMPHASIS_SCORE_THRESHOLD:
        return "opportunity"
    return "normal"


def risk_band(mean_risk: float) -> str:
    if mean_risk > config.SEGMENT_RISK_BANDS["high"]:
        return "high"
    if mean_risk > config.SEGMENT_RISK_BANDS["medium"]:
        return "medium"
    return "low"


def is_visible(x: float, inner_width: float, margin: float = config.CULL_MARGIN_PX) -> bool:
    return -margin <= x <= inner_width + margin


# ============================================================================
# LAYOUT
# ============================================================================

def layout_ticks(scale: TimeScale, inner_width: float, count: int) -> List[AxisTick]:
    ticks = []
    for tick in scale.tick_values(count):
        x = scale.position(tick)
        if 0 <= x <= inner_width:
            ticks.append(AxisTick(timestamp=tick, x=x))
    return ticks


def layout_segments(
    events: Sequence[InteractionEvent],
    scale: TimeScale,
    inner_width: float,
) -> List[JourneySegment]:
    """Journey progress line between consecutive events, culled to the viewport."""
    ordered = sort_chronologically(events)
    margin = config.CULL_MARGIN_PX
    segments = []

    for prev, current in zip(ordered, ordered[1:]):
        x1 = scale.position(prev.timestamp)
        x2 = scale.position(current.timestamp)
        if x2 < -margin or x1 > inner_width + margin:
            continue

        gap_days = (epoch_ms(current.timestamp) - epoch_ms(prev.timestamp)) / MS_PER_DAY
        show_label = gap_days > config.SEGMENT_LABEL_GAP_DAYS
        segments.append(JourneySegment(
            start_event_id=prev.id,
            end_event_id=current.id,
            x1=x1,
            x2=x2,
            gap_days=gap_days,
            is_large_gap=gap_days > config.SEGMENT_LARGE_GAP_DAYS,
            show_gap_label=show_label,
            label=f"{int(math.floor(gap_days + 0.5))}d gap" if show_label else "",
            risk_band=risk_band((prev.risk_score + current.risk_score) / 2),
        ))

    return segments


def layout_timeline(
    events: Sequence[InteractionEvent],
    transform: ZoomTransform = ZOOM_IDENTITY,
    viewport: Optional[Viewport] = None,
    now: Optional[datetime] = None,
    tick_count: Optional[int] = None,
) -> TimelineLayout:
    """
    Lay out one customer's events for rendering.

    Builds the base scale over the viewport's inner width, clamps the
    transform, partitions the events under the effective scale and resolves
    every visible element to screen coordinates.
    """
    viewport = viewport or Viewport()
    inner_width = viewport.inner_width
    center_y = viewport.center_y

    base = build_time_scale(events, inner_width, now=now)
    behavior = ZoomBehavior.for_scale(base)
    constrained = behavior.constrain(transform)
    effective = apply_zoom(base, constrained, behavior)

    partition = partition_for_render(events, effective)

    markers = []
    for event in partition.individual_events:
        x = effective.position(event.timestamp)
        if is_visible(x, inner_width):
            markers.append(EventMarker(
                event=event,
                x=x,
                y=center_y,
                size=marker_size(event),
                emphasis=marker_emphasis(event),
            ))

    cluster_markers = []
    for cluster in partition.clusters:
        x = effective.position(cluster.centroid)
        if is_visible(x, inner_width):
            cluster_markers.append(ClusterMarker(cluster=cluster, x=x, y=center_y))

    ticks = layout_ticks(effective, inner_width, tick_count or config.DEFAULT_TICK_COUNT)
    segments = layout_segments(events, effective, inner_width)

    logger.debug(
        f"Timeline layout k={constrained.k:.3f} x={constrained.x:.1f}: "
        f"{len(markers)} markers, {len(cluster_markers)} clusters, {len(ticks)} ticks"
    )

    return TimelineLayout(
        viewport=viewport,
        transform=constrained,
        partition=partition,
        ticks=tuple(ticks),
        markers=tuple(markers),
        clusters=tuple(cluster_markers),
        segments=tuple(segments),
        center_y=center_y,
        is_empty=not events,
    )
