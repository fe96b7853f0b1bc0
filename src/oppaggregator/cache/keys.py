"""Cache key derivation.

The key is a pure function of the search parameters: free text is
lower-cased and trimmed, array filters are de-duplicated and sorted, and
missing fields fall back to fixed sentinels, so any two requests that mean
the same search map to the same key.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from pydantic import BaseModel

from oppaggregator.models.query import SearchParams, SortBy, SortOrder

KEY_LENGTH = 32


def _filter_dump(model: BaseModel | None) -> dict[str, Any]:
    if model is None:
        return {}
    return model.model_dump(mode="json", exclude_none=True)


def normalize_params(params: SearchParams) -> dict[str, Any]:
    """Canonical, JSON-ready form of every filterable field."""
    return {
        "query": (params.query or "").lower().strip(),
        "types": sorted({t.value for t in params.types}),
        "location": _filter_dump(params.location),
        "compensation": _filter_dump(params.compensation),
        "experience": sorted({e.value for e in params.experience}),
        "date_range": _filter_dump(params.date_range),
        "tags": sorted(set(params.tags)),
        "sources": sorted(set(params.sources)),
        "limit": params.limit,
        "offset": params.offset,
        "sort_by": (params.sort_by or SortBy.RELEVANCE).value,
        "sort_order": (params.sort_order or SortOrder.DESC).value,
    }


def derive_cache_key(params: SearchParams) -> str:
    """Bounded-length opaque key for *params*."""
    canonical = json.dumps(normalize_params(params), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:KEY_LENGTH]
