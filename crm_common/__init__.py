"""
Shared utilities for the CRM HTTP access layer.

This package aggregates common building blocks consumed by the request layer:

- config: API client configuration via pydantic-settings
- logging: Structured logging with trace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry policy and backoff calculation

Nothing in here may import from crm_http to avoid import cycles.
"""
