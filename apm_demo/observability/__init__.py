"""Request-scoped observability for the demo service.

Structured logging via structlog (request IDs bound through contextvars) and
the middleware that wraps each request in an APM transaction.
"""
