"""
Tests for timeline layout
"""

import json
import pytest
from datetime import datetime, timedelta, timezone

from journeylens.layout import (
    Viewport,
    layout_timeline,
    marker_emphasis,
    marker_size,
    risk_band,
)
from journeylens.models import InteractionEvent, Tag
from journeylens.timescale import ZoomTransform

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def event(event_id, offset, **kwargs):
    return InteractionEvent(id=event_id, customer_id="cust-1", timestamp=T0 + offset, **kwargs)


@pytest.fixture
def five_minutes():
    return [event(f"e{i}", timedelta(minutes=i)) for i in range(5)]


def test_viewport_inner_dimensions():
    viewport = Viewport()
    assert viewport.inner_width == 900
    assert viewport.inner_height == 280
    assert viewport.center_y == 140


def test_layout_places_clusters_and_markers(five_minutes):
    # Inner width 900: markers sit 225px apart
    layout = layout_timeline(five_minutes, viewport=Viewport())

    assert [c.cluster.size for c in layout.clusters] == [3]
    assert layout.clusters[0].x == pytest.approx(225)
    assert layout.clusters[0].y == 140
    assert [m.event.id for m in layout.markers] == ["e3", "e4"]
    assert [m.x for m in layout.markers] == pytest.approx([675, 900])


def test_transform_is_clamped(five_minutes):
    layout = layout_timeline(five_minutes, ZoomTransform(100, 0))
    assert layout.transform.k == 20


def test_offscreen_markers_are_culled(five_minutes):
    layout = layout_timeline(five_minutes, ZoomTransform(20, 0))

    # Partition still covers every event; only the first is on screen
    assert len(layout.partition.individual_events) == 5
    assert [m.event.id for m in layout.markers] == ["e0"]
    # Only the segment leaving the visible marker survives culling
    assert [s.start_event_id for s in layout.segments] == ["e0"]


def test_ticks_are_inside_drawable_area(five_minutes):
    layout = layout_timeline(five_minutes, ZoomTransform(3, -400))
    assert layout.ticks
    assert all(0 <= t.x <= 900 for t in layout.ticks)
    assert len(layout.ticks) <= 10


def test_segments_describe_gaps():
    events = [
        event("a", timedelta(days=0), risk_score=70),
        event("b", timedelta(days=20), risk_score=60),
        event("c", timedelta(days=23), risk_score=10),
    ]
    layout = layout_timeline(events)

    first, second = layout.segments
    assert first.gap_days == pytest.approx(20)
    assert first.is_large_gap
    assert first.show_gap_label
    assert first.label == "20d gap"
    assert first.risk_band == "high"

    assert second.gap_days == pytest.approx(3)
    assert not second.is_large_gap
    assert not second.show_gap_label
    assert second.label == ""
    assert second.risk_band == "low"


def test_empty_layout():
    layout = layout_timeline([], now=T0)
    assert layout.is_empty
    assert layout.markers == ()
    assert layout.clusters == ()
    assert layout.segments == ()


def test_layout_is_json_serialisable(five_minutes):
    payload = layout_timeline(five_minutes, ZoomTransform(2, -100)).to_dict()
    decoded = json.loads(json.dumps(payload))
    assert decoded["transform"] == {"k": 2, "x": -100}
    assert decoded["viewport"]["inner_width"] == 900


def test_marker_size_grows_with_weight():
    assert marker_size(event("a", timedelta(0))) == 8
    assert marker_size(event("a", timedelta(0), weight=30)) == 10


@pytest.mark.parametrize("kwargs,expected", [
    ({"tags": (Tag.RISK,)}, "risk"),
    ({"risk_score": 61}, "risk"),
    ({"risk_score": 60}, "normal"),
    ({"tags": (Tag.OPPORTUNITY,)}, "opportunity"),
    ({"opportunity_score": 75}, "opportunity"),
    ({"tags": (Tag.RISK, Tag.OPPORTUNITY)}, "risk"),
    ({"tags": (Tag.COMPLIANCE,)}, "normal"),
])
def test_marker_emphasis(kwargs, expected):
    assert marker_emphasis(event("a", timedelta(0), **kwargs)) == expected


def test_risk_band():
    assert risk_band(61) == "high"
    assert risk_band(60) == "medium"
    assert risk_band(41) == "medium"
    assert risk_band(40) == "low"
