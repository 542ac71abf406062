"""Observability helpers for the account scoring engine.

Exports:
    configure_structlog: Configure structlog processors for the environment.
"""

from src.account360.observability.logging import configure_structlog

__all__ = ["configure_structlog"]
