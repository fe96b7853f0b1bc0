"""Eviction policies — Which cache entries to drop under capacity pressure.

Each policy maps an entry to a score; the lowest scores are evicted first.
Candidates are picked with a bounded heap (``heapq.nsmallest``) instead of
sorting the whole cache.
"""

from __future__ import annotations

import heapq
from abc import ABC, abstractmethod
from collections.abc import Mapping

from oppaggregator.cache.entry import CacheEntry
from oppaggregator.config.settings import EvictionPolicyName


class EvictionPolicy(ABC):
    name: EvictionPolicyName

    @abstractmethod
    def score(self, entry: CacheEntry, now: float) -> float:
        """Eviction priority; lower is evicted sooner."""

    def select(self, entries: Mapping[str, CacheEntry], count: int, now: float) -> list[str]:
        """Keys of the *count* entries to evict. Ties keep insertion order."""
        if count <= 0:
            return []
        victims = heapq.nsmallest(count, entries.items(), key=lambda item: self.score(item[1], now))
        return [key for key, _ in victims]


class LRUPolicy(EvictionPolicy):
    name = EvictionPolicyName.LRU

    def score(self, entry: CacheEntry, now: float) -> float:
        return entry.last_access


class LFUPolicy(EvictionPolicy):
    name = EvictionPolicyName.LFU

    def score(self, entry: CacheEntry, now: float) -> float:
        return entry.access_count


class TTLPolicy(EvictionPolicy):
    name = EvictionPolicyName.TTL

    def score(self, entry: CacheEntry, now: float) -> float:
        return entry.expires_at


class HybridPolicy(EvictionPolicy):
    """Blend of frequency and recency.

    ``access_count * 0.6 - idle_ms * 0.0001``: every ten idle seconds cost
    as much as 1/0.6 reads.
    """

    name = EvictionPolicyName.HYBRID

    FREQUENCY_WEIGHT = 0.6
    IDLE_MS_WEIGHT = 0.0001

    def score(self, entry: CacheEntry, now: float) -> float:
        idle_ms = (now - entry.last_access) * 1000
        return entry.access_count * self.FREQUENCY_WEIGHT - idle_ms * self.IDLE_MS_WEIGHT


_POLICIES: dict[EvictionPolicyName, type[EvictionPolicy]] = {
    EvictionPolicyName.LRU: LRUPolicy,
    EvictionPolicyName.LFU: LFUPolicy,
    EvictionPolicyName.TTL: TTLPolicy,
    EvictionPolicyName.HYBRID: HybridPolicy,
}


def build_policy(name: EvictionPolicyName | str) -> EvictionPolicy:
    return _POLICIES[EvictionPolicyName(name)]()
