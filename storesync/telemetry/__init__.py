"""
Telemetry Module
================

Observability stack for storesync.

Components:
- sentry.py: Error tracking for failed sync runs and API errors

Environment Variables:
- SENTRY_DSN: Sentry project DSN (optional; tracking is disabled without it)
- ENVIRONMENT: Environment name reported to Sentry

Usage:
    from storesync.telemetry import init_sentry, capture_exception

    init_sentry()  # once, on app startup
"""

from .sentry import capture_exception, init_sentry

__all__ = ["capture_exception", "init_sentry"]
