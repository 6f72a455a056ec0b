from __future__ import annotations


class ConfigurationError(Exception):
    """Raised when the agent application cannot be started with the given settings."""
