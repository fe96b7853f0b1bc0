"""Aggregation core: coordinator, ranking and the cached search engine."""
