"""
Shared utilities for the Pet Store authorization layer.

This package aggregates common building blocks:

- config: Engine configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- test_helpers: Test users, domain records and identity payloads

Runtime modules of shared/ do not import from service packages; only
test_helpers does.
"""
