"""Adapter Registry — Maps adapter kinds to classes and builds them from config.

The coordinator owns live adapter instances; the registry only knows how
to construct them. This keeps the set of available source kinds open:
register a ``SourceAdapter`` subclass under a kind and reference that kind
from a ``SourceConfig``.
"""

from __future__ import annotations

import logging
from typing import Any

from oppaggregator.adapters.base.adapter import SourceAdapter
from oppaggregator.config.settings import SourceConfig

logger = logging.getLogger(__name__)


class AdapterNotFoundError(Exception):
    """Raised when a requested adapter kind is not registered."""


class AdapterRegistry:
    """Registry of source adapter classes.

    Example:
        >>> registry = AdapterRegistry()
        >>> registry.register("google", GoogleSearchAdapter)
        >>> adapter = await registry.create(SourceConfig(name="google", kind="google"))
    """

    def __init__(self) -> None:
        self._classes: dict[str, type[SourceAdapter]] = {}

    def register(self, kind: str, adapter_class: type[SourceAdapter]) -> None:
        """Register an adapter class.

        Args:
            kind: Unique name for this adapter type.
            adapter_class: The adapter class to register.
        """
        if kind in self._classes:
            logger.warning("Overwriting existing adapter registration: %s", kind)
        self._classes[kind] = adapter_class
        logger.debug("Registered adapter kind: %s", kind)

    def get_class(self, kind: str) -> type[SourceAdapter]:
        if kind not in self._classes:
            raise AdapterNotFoundError(
                f"No adapter registered with kind '{kind}'. Available adapters: {list(self._classes.keys())}"
            )
        return self._classes[kind]

    async def create(self, config: SourceConfig, **kwargs: Any) -> SourceAdapter:
        """Create and initialize an adapter instance for *config*.

        Args:
            config: Source configuration; ``config.kind`` selects the class.
            **kwargs: Extra constructor arguments (clock, sleep, http client).

        Returns:
            The initialized adapter.

        Raises:
            AdapterNotFoundError: If ``config.kind`` is not registered.
        """
        adapter_class = self.get_class(config.kind)
        adapter = adapter_class(config, **kwargs)
        await adapter.initialize()
        logger.info("Initialized source %s (kind=%s, priority=%d)", config.name, config.kind, config.priority)
        return adapter

    @property
    def registered_kinds(self) -> list[str]:
        return list(self._classes.keys())


def default_registry() -> AdapterRegistry:
    """Registry pre-populated with the built-in adapters."""
    from oppaggregator.adapters.google.adapter import GoogleSearchAdapter

    registry = AdapterRegistry()
    registry.register("google", GoogleSearchAdapter)
    return registry
