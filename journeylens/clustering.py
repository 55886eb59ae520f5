"""
Density-aware clustering for the JourneyLens timeline

Events whose screen positions (under the current effective scale) fall within
a pixel threshold of a seed event are merged into one cluster marker. Groups
smaller than the minimum cluster size are rendered as individual markers.

The partition is a pure function of (events, effective scale) and is rebuilt
from scratch on every zoom/pan change; cluster ids are not stable across
zoom levels.
"""

import logging
from collections import Counter
from typing import List, Sequence

from . import config
from .models import (
    Channel,
    Cluster,
    InteractionEvent,
    RenderPartition,
    Tag,
    epoch_ms,
    from_epoch_ms,
)
from .timescale import TimeScale

logger = logging.getLogger(__name__)

# Fallbacks when no member carries a tag (clusters always have a channel)
DEFAULT_CLUSTER_TAG = Tag.FLAG
DEFAULT_CLUSTER_CHANNEL = Channel.VOICE


def sort_chronologically(events: Sequence[InteractionEvent]) -> List[InteractionEvent]:
    """Stable sort by timestamp; ties keep input order."""
    return sorted(events, key=lambda e: e.timestamp)


def dominant_value(values):
    """Most frequent value; ties go to the value encountered first."""
    counts = Counter(values)
    if not counts:
        return None
    # Counter keeps insertion order and max() returns the first maximum
    return max(counts, key=counts.get)


def build_cluster(members: Sequence[InteractionEvent]) -> Cluster:
    """Aggregate a chronologically ordered group into a Cluster."""
    stamps = [epoch_ms(e.timestamp) for e in members]
    centroid = from_epoch_ms(sum(stamps) // len(stamps))

    dominant_tag = dominant_value(t for e in members for t in e.tags)
    dominant_channel = dominant_value(e.channel for e in members)

    return Cluster(
        id=f"cluster-{members[0].id}",
        events=tuple(members),
        centroid=centroid,
        dominant_tag=dominant_tag or DEFAULT_CLUSTER_TAG,
        dominant_channel=dominant_channel or DEFAULT_CLUSTER_CHANNEL,
        bounds=(min(e.timestamp for e in members), max(e.timestamp for e in members)),
    )


def partition_for_render(
    events: Sequence[InteractionEvent],
    effective_scale: TimeScale,
) -> RenderPartition:
    """
    Partition events into clusters and individual markers.

    Single left-to-right sweep: each unprocessed event seeds a group with
    every later unprocessed event less than CLUSTER_THRESHOLD_PX to its
    right. The forward scan stops at the first event at or beyond the
    threshold, since sorted order guarantees nothing further can be closer.
    Groups below MIN_CLUSTER_SIZE are emitted as individual markers.

    Args:
        events: Events in any order
        effective_scale: Zoomed scale used to place markers

    Returns:
        RenderPartition whose clusters and individual events cover every
        input event exactly once
    """
    if not events:
        return RenderPartition()

    threshold = config.CLUSTER_THRESHOLD_PX
    min_size = config.MIN_CLUSTER_SIZE

    ordered = sort_chronologically(events)
    positions = [effective_scale.position(e.timestamp) for e in ordered]
    processed = [False] * len(ordered)

    clusters = []
    individual = []

    for i, event in enumerate(ordered):
        if processed[i]:
            continue

        x1 = positions[i]
        group = [event]

        for j in range(i + 1, len(ordered)):
            if positions[j] - x1 >= threshold:
                break
            if not processed[j]:
                group.append(ordered[j])
                processed[j] = True

        processed[i] = True

        if len(group) >= min_size:
            clusters.append(build_cluster(group))
        else:
            individual.extend(group)

    logger.debug(
        f"Partitioned {len(ordered)} events into {len(clusters)} clusters "
        f"and {len(individual)} individual markers"
    )
    return RenderPartition(clusters=tuple(clusters), individual_events=tuple(individual))
