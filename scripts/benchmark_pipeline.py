"""
Benchmark script for the JourneyLens timeline.
Measures layout time for a synthetic history across zoom levels.
"""

import time
import sys
import random
import logging
from datetime import datetime, timedelta, timezone

from journeylens.analysis_engine import analyze_customer, render_timeline
from journeylens.cache import RenderCache
from journeylens.models import Channel, InteractionEvent, JourneyStage, Sentiment, Tag
from journeylens.timescale import ZoomTransform

# Configure logging to show timing
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_history(n: int, seed: int = 7):
    rng = random.Random(seed)
    start = NOW - timedelta(days=365)
    events = []
    for i in range(n):
        ts = start + timedelta(minutes=rng.randint(0, 365 * 24 * 60))
        events.append(InteractionEvent(
            id=f"evt-{i}",
            customer_id="bench",
            timestamp=ts,
            stage=rng.choice(list(JourneyStage)),
            channel=rng.choice(list(Channel)),
            risk_score=rng.uniform(0, 100),
            opportunity_score=rng.uniform(0, 100),
            sentiment=rng.choice(list(Sentiment)),
            tags=rng.sample(list(Tag), k=rng.randint(0, 2)),
            duration_sec=rng.uniform(0, 1800),
            weight=rng.uniform(0, 100),
        ))
    return events


def run_benchmark(n: int):
    events = make_history(n)
    print(f"Starting benchmark on {n} events...")

    start_time = time.time()
    analyze_customer(events, now=NOW)
    print(f"Analysis: {time.time() - start_time:.3f} seconds")

    cache = RenderCache()
    for k in (0.5, 1, 2, 5, 10, 20):
        start_time = time.time()
        layout = render_timeline(events, ZoomTransform(k, 0.0), now=NOW, cache=cache)
        duration = time.time() - start_time
        print(
            f"k={k:>4}: {duration * 1000:8.1f} ms  "
            f"{len(layout.clusters)} clusters, {len(layout.markers)} markers"
        )

    start_time = time.time()
    render_timeline(events, ZoomTransform(20, 0.0), now=NOW, cache=cache)
    print(f"Cached re-render: {(time.time() - start_time) * 1000:.2f} ms")
    print(f"Cache stats: {cache.stats()}")


if __name__ == "__main__":
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 5000
    run_benchmark(count)
