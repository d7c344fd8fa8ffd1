"""
Sentry Integration - Error Tracking & Monitoring

Sentry captures:
- Unhandled exceptions
- 5xx errors (ingestion and storage failures)
- Performance traces
"""
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from fleet_telemetry.core.config import settings
from fleet_telemetry.core.logging import get_logger

logger = get_logger(__name__)


def init_sentry() -> None:
    """
    Initialize Sentry SDK.

    Call this in application startup.
    """
    if not settings.sentry_dsn:
        logger.info("Sentry DSN not configured, skipping initialization")
        return

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"fleet-telemetry@{settings.app_version}",
        traces_sample_rate=settings.sentry_traces_sample_rate if settings.environment == "production" else 1.0,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        send_default_pii=False,
        before_send=_before_send,
    )

    logger.info(
        "Sentry initialized",
        environment=settings.environment,
        dsn_configured=True,
    )


def _before_send(event, hint):
    """
    Filter events before sending to Sentry.

    Client errors (validation, not found) are expected and never reported.
    """
    if "exception" in event:
        exc_info = hint.get("exc_info")
        if exc_info:
            _, exc_value, _ = exc_info
            if hasattr(exc_value, "status_code"):
                if 400 <= exc_value.status_code < 500:
                    return None

    if "request" in event and "headers" in event["request"]:
        headers = event["request"]["headers"]
        for header in ("authorization", "cookie", "x-api-key"):
            if header in headers:
                headers[header] = "[FILTERED]"

    return event
