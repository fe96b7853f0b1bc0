"""oppaggregator — Multi-source opportunity aggregation with a self-managing result cache."""

__version__ = "0.1.0"
