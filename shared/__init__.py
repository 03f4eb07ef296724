"""
Shared utilities for the Privileges library and service.

This package aggregates the ambient building blocks used by the
privilege engine, its storage adapters and the HTTP surface:

- config: Service configuration via pydantic-settings
- logging: Structured logging with correlation context
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI application scaffolding

Do not import from service_* packages into shared/.
"""
