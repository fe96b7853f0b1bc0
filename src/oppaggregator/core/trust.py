"""Trust scoring for opportunities based on the domain they came from."""

from __future__ import annotations

import random
from collections.abc import Iterable


class TrustScorer:
    """Scores a domain 0-100.

    Trusted domains land in [85, 100], everything else in [50, 85]. The
    position inside each band comes from an explicitly seeded generator;
    without a seed the midpoint is used so scores are reproducible.

    Args:
        trusted_domains: Domains (or domain/path prefixes) considered reliable.
        seed: Seed for the jitter generator, or None for no jitter.
    """

    TRUSTED_BASE = 85.0
    TRUSTED_SPAN = 15.0
    OTHER_BASE = 50.0
    OTHER_SPAN = 35.0

    def __init__(self, trusted_domains: Iterable[str], seed: int | None = None) -> None:
        self._trusted = tuple(trusted_domains)
        self._rng = random.Random(seed) if seed is not None else None

    def _jitter(self) -> float:
        return self._rng.random() if self._rng is not None else 0.5

    def is_trusted(self, domain: str) -> bool:
        domain = domain.lower()
        return any(trusted in domain for trusted in self._trusted)

    def score(self, domain: str) -> float:
        if self.is_trusted(domain):
            return round(self.TRUSTED_BASE + self._jitter() * self.TRUSTED_SPAN, 2)
        return round(self.OTHER_BASE + self._jitter() * self.OTHER_SPAN, 2)
