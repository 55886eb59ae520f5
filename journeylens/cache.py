"""
Cache module for JourneyLens
In-memory LRU cache for rendered timeline layouts
"""

import hashlib
import logging
from collections import OrderedDict
from typing import Any, Dict, Optional, Sequence

from . import config
from .models import InteractionEvent, epoch_ms

logger = logging.getLogger(__name__)


def event_list_version(events: Sequence[InteractionEvent]) -> str:
    """
    Content hash of an event list.

    Two lists with the same ids and timestamps in the same order share a
    version, so a re-fetched but unchanged history still hits the cache.
    """
    digest = hashlib.sha256()
    for event in events:
        digest.update(f"{event.id}:{epoch_ms(event.timestamp)};".encode("utf-8"))
    return digest.hexdigest()


class RenderCache:
    """LRU cache for layouts keyed on (event-list version, transform, viewport)."""

    def __init__(self, max_size: Optional[int] = None):
        """
        Initialize cache.

        Args:
            max_size: Maximum number of cached layouts (default from config)
        """
        self.max_size = max_size or config.RENDER_CACHE_SIZE
        self._entries: "OrderedDict[str, Any]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def make_key(self, version: str, k: float, x: float, width: float, height: float) -> str:
        """Generate cache key from the event-list version and render state."""
        combined = f"{version}:{k!r}:{x!r}:{width!r}:{height!r}"
        return hashlib.sha256(combined.encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None; a hit refreshes recency."""
        if key not in self._entries:
            self.misses += 1
            logger.debug(f"Render cache miss for {key[:12]}")
            return None

        self._entries.move_to_end(key)
        self.hits += 1
        logger.debug(f"Render cache hit for {key[:12]}")
        return self._entries[key]

    def set(self, key: str, value: Any):
        """Store a value, evicting the least recently used entry when full."""
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = value

        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted render cache entry {evicted[:12]}")

    def delete(self, key: str) -> bool:
        if key in self._entries:
            del self._entries[key]
            return True
        return False

    def clear_all(self) -> int:
        """Clear entire cache."""
        deleted = len(self._entries)
        self._entries.clear()
        logger.info(f"Cleared all {deleted} render cache entries")
        return deleted

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        lookups = self.hits + self.misses
        return {
            "total_entries": len(self._entries),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / lookups if lookups else 0.0,
        }
