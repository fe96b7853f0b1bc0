"""Base adapter interface — Abstract classes for opportunity source connectors."""

from oppaggregator.adapters.base.adapter import AdapterHealth, SourceAdapter, SourceStats
from oppaggregator.adapters.base.registry import AdapterRegistry

__all__ = ["AdapterHealth", "AdapterRegistry", "SourceAdapter", "SourceStats"]
