"""
Tests for the time scale, zoom transform and zoom clamping
"""

import pytest
from datetime import datetime, timedelta, timezone

from journeylens.models import InteractionEvent
from journeylens.timescale import (
    InvalidDomainError,
    TimeScale,
    ZOOM_IDENTITY,
    ZoomBehavior,
    ZoomTransform,
    apply_zoom,
    build_time_scale,
    time_ticks,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def minutes(n):
    return T0 + timedelta(minutes=n)


def events_at_minutes(*offsets):
    return [
        InteractionEvent(id=f"e{i}", customer_id="cust-1", timestamp=minutes(m))
        for i, m in enumerate(offsets)
    ]


class TestTimeScale:
    def test_inverted_domain_is_rejected(self):
        with pytest.raises(InvalidDomainError):
            TimeScale((minutes(5), minutes(0)), (0, 100))

    def test_invalid_domain_is_a_value_error(self):
        assert issubclass(InvalidDomainError, ValueError)

    def test_linear_mapping(self):
        scale = TimeScale((minutes(0), minutes(4)), (0, 1000))
        assert scale.position(minutes(0)) == 0
        assert scale.position(minutes(1)) == pytest.approx(250)
        assert scale(minutes(4)) == pytest.approx(1000)

    def test_invert(self):
        scale = TimeScale((minutes(0), minutes(4)), (0, 1000))
        assert scale.invert(500) == minutes(2)

    def test_degenerate_domain_maps_to_left_edge(self):
        scale = TimeScale((minutes(3), minutes(3)), (10, 500))
        assert scale.is_degenerate
        assert scale.position(minutes(3)) == 10
        assert scale.position(minutes(300)) == 10

    def test_naive_datetimes_are_utc(self):
        naive = datetime(2024, 3, 1, 9, 0)
        scale = TimeScale((naive, naive + timedelta(minutes=4)), (0, 1000))
        assert scale.domain()[0] == T0


class TestBuildTimeScale:
    def test_domain_spans_events(self):
        events = events_at_minutes(3, 0, 9)
        scale = build_time_scale(events, 800)
        assert scale.domain() == (minutes(0), minutes(9))
        assert scale.range() == (0.0, 800.0)

    def test_empty_events_collapse_to_now(self):
        scale = build_time_scale([], 800, now=T0)
        assert scale.domain() == (T0, T0)
        assert scale.position(minutes(10)) == 0

    def test_negative_width_is_rejected(self):
        with pytest.raises(ValueError):
            build_time_scale(events_at_minutes(0, 1), -1)


class TestRescale:
    @pytest.mark.parametrize("k,x", [(1.0, 0.0), (2.0, -137.25), (7.3, -3000.5), (20.0, -18000.0)])
    def test_rescaled_position_matches_inline_formula(self, k, x):
        events = events_at_minutes(0, 1, 2.5, 3, 4)
        base = build_time_scale(events, 1000)
        transform = ZoomTransform(k, x)
        rescaled = transform.rescale(base)

        for event in events:
            assert rescaled.position(event.timestamp) == k * base.position(event.timestamp) + x

    def test_rescaled_domain_is_visible_window(self):
        base = TimeScale((minutes(0), minutes(4)), (0, 1000))
        rescaled = ZoomTransform(2, -500).rescale(base)
        d0, d1 = rescaled.domain()
        assert d0 == minutes(1)
        assert d1 == minutes(3)

    def test_rescale_has_no_hidden_state(self):
        base = TimeScale((minutes(0), minutes(4)), (0, 1000))
        transform = ZoomTransform(3, -250)
        first = transform.rescale(base)
        second = transform.rescale(base)
        assert first.position(minutes(2)) == second.position(minutes(2))
        assert base.position(minutes(2)) == pytest.approx(500)


class TestZoomBehavior:
    def setup_method(self):
        self.behavior = ZoomBehavior(viewport=(0, 1000))

    def test_scale_is_clamped(self):
        assert self.behavior.constrain(ZoomTransform(100, 0)).k == 20
        assert self.behavior.constrain(ZoomTransform(0.1, 0)).k == 0.5

    def test_non_finite_scale_resets(self):
        assert self.behavior.constrain(ZoomTransform(float("nan"), 0)).k == 1.0

    def test_identity_is_unchanged(self):
        assert self.behavior.constrain(ZOOM_IDENTITY) == ZOOM_IDENTITY

    def test_pan_right_is_clamped_to_padding(self):
        assert self.behavior.constrain(ZoomTransform(1, 500)) == ZoomTransform(1, 50)

    def test_pan_left_is_clamped_to_padding(self):
        assert self.behavior.constrain(ZoomTransform(1, -500)) == ZoomTransform(1, -50)

    def test_zoomed_in_pan_within_bounds_is_kept(self):
        assert self.behavior.constrain(ZoomTransform(2, -400)) == ZoomTransform(2, -400)

    def test_zoomed_out_content_is_centred(self):
        constrained = self.behavior.constrain(ZoomTransform(0.5, 0))
        assert constrained.k == 0.5
        assert constrained.x == pytest.approx(250)

    def test_zoom_in_keeps_centre_fixed(self):
        zoomed = self.behavior.zoom_in(ZOOM_IDENTITY)
        assert zoomed.k == pytest.approx(1.3)
        assert zoomed.x == pytest.approx(-150)
        assert zoomed.apply(500) == pytest.approx(500)

    def test_zoom_out_from_identity(self):
        zoomed = self.behavior.zoom_out(ZOOM_IDENTITY)
        assert zoomed.k == pytest.approx(0.7)
        assert zoomed.apply(500) == pytest.approx(500)

    def test_translate_by_is_clamped(self):
        moved = self.behavior.translate_by(ZoomTransform(2, 0), -300)
        assert moved == ZoomTransform(2, -300)
        moved = self.behavior.translate_by(ZoomTransform(2, 0), 300)
        # padding is measured in base units, so k=2 allows x up to 100
        assert moved == ZoomTransform(2, 100)

    def test_reset(self):
        assert self.behavior.reset() == ZOOM_IDENTITY


def test_apply_zoom_uses_constrained_transform():
    base = build_time_scale(events_at_minutes(0, 4), 1000)
    effective = apply_zoom(base, ZoomTransform(50, 0))
    assert effective.transform.k == 20
    assert effective.position(minutes(1)) == 20 * base.position(minutes(1)) + effective.transform.x


class TestTicks:
    def test_never_more_than_count(self):
        for count in (1, 2, 5, 10, 20):
            for span in (timedelta(minutes=4), timedelta(days=3), timedelta(days=400), timedelta(days=3650)):
                ticks = time_ticks(T0, T0 + span, count)
                assert 1 <= len(ticks) <= count

    def test_ticks_are_ordered_and_inside_domain(self):
        ticks = time_ticks(T0, minutes(4), 10)
        assert ticks == sorted(ticks)
        assert all(T0 <= t <= minutes(4) for t in ticks)

    def test_minute_span_uses_half_minutes(self):
        ticks = time_ticks(T0, minutes(4), 10)
        assert ticks[0] == T0
        assert ticks[1] - ticks[0] == timedelta(seconds=30)

    def test_year_span_uses_quarters(self):
        start = datetime(2023, 1, 15, tzinfo=timezone.utc)
        end = datetime(2024, 1, 15, tzinfo=timezone.utc)
        ticks = time_ticks(start, end, 12)
        assert ticks == [
            datetime(2023, 4, 1, tzinfo=timezone.utc),
            datetime(2023, 7, 1, tzinfo=timezone.utc),
            datetime(2023, 10, 1, tzinfo=timezone.utc),
            datetime(2024, 1, 1, tzinfo=timezone.utc),
        ]

    def test_zero_count(self):
        assert time_ticks(T0, minutes(4), 0) == []

    def test_single_instant(self):
        assert time_ticks(T0, T0, 10) == [T0]

    def test_scale_tick_values(self):
        scale = TimeScale((minutes(0), minutes(4)), (0, 1000))
        assert len(scale.tick_values(5)) <= 5
