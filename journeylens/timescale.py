"""
Time scale and zoom transform for the JourneyLens timeline

TimeScale maps calendar time linearly onto a pixel interval. ZoomTransform is
the (k, x) pair of the current zoom/pan state; rescaling a TimeScale through it
yields the effective on-screen scale used for both layout and clustering.
ZoomBehavior owns the clamping rules (scale extent and pan bounds).
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple
import pandas as pd

from . import config
from .models import InteractionEvent, ensure_utc, epoch_ms, from_epoch_ms, utc_now

logger = logging.getLogger(__name__)

# Tick interval ladder, finest first: (kind, step, alignment offset in ms)
_MS_SECOND = 1000
_MS_MINUTE = 60 * _MS_SECOND
_MS_HOUR = 60 * _MS_MINUTE
_MS_DAY = 24 * _MS_HOUR
_WEEK_OFFSET_MS = 3 * _MS_DAY  # weeks start on Sunday; the epoch was a Thursday

TICK_INTERVALS = (
    [("fixed", step, 0) for step in (1, 2, 5, 10, 20, 50, 100, 200, 500)]
    + [("fixed", step * _MS_SECOND, 0) for step in (1, 5, 15, 30)]
    + [("fixed", step * _MS_MINUTE, 0) for step in (1, 5, 15, 30)]
    + [("fixed", step * _MS_HOUR, 0) for step in (1, 3, 6, 12)]
    + [("fixed", step * _MS_DAY, 0) for step in (1, 2)]
    + [("fixed", 7 * _MS_DAY, _WEEK_OFFSET_MS)]
    + [("month", step, 0) for step in (1, 3)]
    + [("year", step, 0) for step in (1, 2, 5, 10, 20, 50, 100, 200, 500, 1000)]
)

_APPROX_MS = {"month": 30 * _MS_DAY, "year": 365 * _MS_DAY}


class InvalidDomainError(ValueError):
    """Raised when a time scale domain starts after it ends."""


# ============================================================================
# TICKS
# ============================================================================

def _fixed_ticks(start_ms: int, end_ms: int, step: int, offset: int) -> List[datetime]:
    first = -((-(start_ms - offset)) // step) * step + offset
    return [from_epoch_ms(ms) for ms in range(first, end_ms + 1, step)]


def _calendar_ticks(start: datetime, end: datetime, kind: str, step: int) -> List[datetime]:
    if kind == "month":
        anchor = pd.Timestamp(year=start.year, month=start.month, day=1, tz="UTC")
        freq = "MS"
    else:
        anchor = pd.Timestamp(year=start.year, month=1, day=1, tz="UTC")
        freq = "YS"

    stamps = pd.date_range(start=anchor, end=pd.Timestamp(end), freq=freq)
    ticks = []
    for stamp in stamps:
        if stamp < pd.Timestamp(start):
            continue
        unit = stamp.month - 1 if kind == "month" else stamp.year
        if unit % step == 0:
            ticks.append(stamp.to_pydatetime())
    return ticks


def time_ticks(start: datetime, end: datetime, count: int = 10) -> List[datetime]:
    """
    Human-friendly tick timestamps within [start, end].

    Picks the finest interval from the ladder whose aligned ticks fit in
    `count`. Never returns more than `count` ticks.
    """
    if count < 1:
        return []
    start, end = ensure_utc(start), ensure_utc(end)
    if start > end:
        start, end = end, start
    if start == end:
        return [start]

    start_ms, end_ms = epoch_ms(start), epoch_ms(end)
    span_ms = end_ms - start_ms

    for kind, step, offset in TICK_INTERVALS:
        approx = step if kind == "fixed" else step * _APPROX_MS[kind]
        if span_ms / approx > count:
            continue

        if kind == "fixed":
            ticks = _fixed_ticks(start_ms, end_ms, step, offset)
        else:
            ticks = _calendar_ticks(start, end, kind, step)

        if len(ticks) <= count:
            return ticks or [start]

    return [start]


# ============================================================================
# SCALES
# ============================================================================

class TimeScale:
    """Continuous, invertible mapping from time to a pixel offset."""

    def __init__(
        self,
        domain: Tuple[datetime, datetime],
        range_: Tuple[float, float] = (0.0, 1.0),
    ):
        d0, d1 = ensure_utc(domain[0]), ensure_utc(domain[1])
        if d0 > d1:
            raise InvalidDomainError(
                f"Domain start {d0.isoformat()} is after domain end {d1.isoformat()}"
            )
        self._domain = (d0, d1)
        self._range = (float(range_[0]), float(range_[1]))

    def domain(self) -> Tuple[datetime, datetime]:
        return self._domain

    def range(self) -> Tuple[float, float]:
        return self._range

    @property
    def is_degenerate(self) -> bool:
        return self._domain[0] == self._domain[1]

    def position(self, t: datetime) -> float:
        """Pixel offset of `t`; the left edge for a single-instant domain."""
        d0, d1 = self._domain
        r0, r1 = self._range
        if d0 == d1:
            return r0
        fraction = (ensure_utc(t) - d0) / (d1 - d0)
        return r0 + fraction * (r1 - r0)

    __call__ = position

    def invert(self, px: float) -> datetime:
        d0, d1 = self._domain
        r0, r1 = self._range
        if d0 == d1 or r0 == r1:
            return d0
        fraction = (px - r0) / (r1 - r0)
        return d0 + (d1 - d0) * fraction

    def tick_values(self, count: int = 10) -> List[datetime]:
        d0, d1 = self.domain()
        return time_ticks(d0, d1, count)

    def __repr__(self):
        d0, d1 = self.domain()
        return f"{type(self).__name__}(domain=({d0.isoformat()}, {d1.isoformat()}), range={self._range})"


class RescaledTimeScale(TimeScale):
    """
    A TimeScale seen through a ZoomTransform.

    position(t) is computed as `k * base.position(t) + x` so markers placed
    with this scale match the inline formula exactly. domain() reports the
    visible time window.
    """

    def __init__(self, base: TimeScale, transform: "ZoomTransform"):
        self._base = base
        self._transform = transform
        self._range = base.range()
        r0, r1 = self._range
        self._domain = (self.invert(r0), self.invert(r1))

    @property
    def base(self) -> TimeScale:
        return self._base

    @property
    def transform(self) -> "ZoomTransform":
        return self._transform

    @property
    def is_degenerate(self) -> bool:
        return self._base.is_degenerate

    def position(self, t: datetime) -> float:
        return self._transform.k * self._base.position(t) + self._transform.x

    __call__ = position

    def invert(self, px: float) -> datetime:
        return self._base.invert(self._transform.invert(px))


# ============================================================================
# ZOOM
# ============================================================================

@dataclass(frozen=True)
class ZoomTransform:
    """Zoom/pan state: screen = k * base + x."""
    k: float = 1.0
    x: float = 0.0

    def apply(self, px: float) -> float:
        return self.k * px + self.x

    def invert(self, px: float) -> float:
        return (px - self.x) / self.k

    def translate(self, dx: float) -> "ZoomTransform":
        """Translate by `dx` base units (multiplied by k on screen)."""
        return ZoomTransform(self.k, self.x + self.k * dx)

    def rescale(self, scale: TimeScale) -> RescaledTimeScale:
        return RescaledTimeScale(scale, self)

    def to_dict(self) -> Dict[str, Any]:
        return {"k": self.k, "x": self.x}


ZOOM_IDENTITY = ZoomTransform()


class ZoomBehavior:
    """
    Clamping rules for zoom and pan.

    Scale k is kept inside `scale_extent`; translation is corrected so the
    visible window stays inside `translate_extent` (the viewport widened by a
    padding on both sides). Out-of-range input is corrected, never rejected.
    """

    def __init__(
        self,
        viewport: Tuple[float, float],
        scale_extent: Optional[Tuple[float, float]] = None,
        translate_extent: Optional[Tuple[float, float]] = None,
        padding: Optional[float] = None,
    ):
        self.viewport = (float(viewport[0]), float(viewport[1]))
        self.scale_extent = scale_extent or (config.ZOOM_SCALE_MIN, config.ZOOM_SCALE_MAX)

        if translate_extent is None:
            pad = config.ZOOM_PAN_PADDING_PX if padding is None else padding
            translate_extent = (self.viewport[0] - pad, self.viewport[1] + pad)
        self.translate_extent = (float(translate_extent[0]), float(translate_extent[1]))

    @classmethod
    def for_scale(cls, scale: TimeScale, padding: Optional[float] = None) -> "ZoomBehavior":
        return cls(viewport=scale.range(), padding=padding)

    def clamp_scale(self, k: float) -> float:
        lo, hi = self.scale_extent
        if not math.isfinite(k):
            k = 1.0
        return max(lo, min(hi, k))

    def constrain(self, transform: ZoomTransform) -> ZoomTransform:
        """Return the nearest transform that honours both extents."""
        x = transform.x if math.isfinite(transform.x) else 0.0
        t = ZoomTransform(self.clamp_scale(transform.k), x)

        v0, v1 = self.viewport
        e0, e1 = self.translate_extent
        dx0 = t.invert(v0) - e0
        dx1 = t.invert(v1) - e1

        if dx1 > dx0:
            # Window wider than the extent: centre it
            shift = (dx0 + dx1) / 2
        else:
            shift = min(0.0, dx0) or max(0.0, dx1)

        if shift == 0:
            return t
        return t.translate(shift)

    def scale_by(
        self,
        transform: ZoomTransform,
        factor: float,
        anchor: Optional[float] = None,
    ) -> ZoomTransform:
        """Zoom by `factor` keeping the screen point `anchor` fixed."""
        if anchor is None:
            anchor = (self.viewport[0] + self.viewport[1]) / 2
        base_point = transform.invert(anchor)
        k = self.clamp_scale(transform.k * factor)
        return self.constrain(ZoomTransform(k, anchor - base_point * k))

    def zoom_in(self, transform: ZoomTransform) -> ZoomTransform:
        return self.scale_by(transform, config.ZOOM_IN_FACTOR)

    def zoom_out(self, transform: ZoomTransform) -> ZoomTransform:
        return self.scale_by(transform, config.ZOOM_OUT_FACTOR)

    def translate_by(self, transform: ZoomTransform, dx_px: float) -> ZoomTransform:
        """Pan by a screen distance in pixels."""
        return self.constrain(ZoomTransform(transform.k, transform.x + dx_px))

    def reset(self) -> ZoomTransform:
        return self.constrain(ZOOM_IDENTITY)


# ============================================================================
# ENGINE OPERATIONS
# ============================================================================

def build_time_scale(
    events: Sequence[InteractionEvent],
    pixel_width: float,
    now: Optional[datetime] = None,
) -> TimeScale:
    """
    Base scale spanning the events' time extent over [0, pixel_width].

    With no events the domain collapses to `now`.
    """
    if pixel_width < 0:
        raise ValueError(f"pixel_width must be non-negative, got {pixel_width}")

    if events:
        stamps = [e.timestamp for e in events]
        domain = (min(stamps), max(stamps))
    else:
        instant = now or utc_now()
        domain = (instant, instant)

    return TimeScale(domain, (0.0, float(pixel_width)))


def apply_zoom(
    scale: TimeScale,
    transform: ZoomTransform,
    behavior: Optional[ZoomBehavior] = None,
) -> RescaledTimeScale:
    """Clamp `transform` for `scale` and return the effective scale."""
    behavior = behavior or ZoomBehavior.for_scale(scale)
    constrained = behavior.constrain(transform)
    if constrained != transform:
        logger.debug(f"Zoom transform {transform} clamped to {constrained}")
    return constrained.rescale(scale)
