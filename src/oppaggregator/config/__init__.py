"""Configuration layer."""

from oppaggregator.config.settings import Settings

__all__ = ["Settings"]
