"""Source adapter layer — Pluggable connectors for opportunity sources.

Built-in adapters:
  - google: Google Custom Search restricted to known opportunity sites

Implement ``SourceAdapter`` to connect your own source.
"""
