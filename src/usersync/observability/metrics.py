"""Prometheus metrics.

Exposed by each service's FastAPI app at ``/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter, Info, make_asgi_app

# ---------------------------------------------------------------------------
# System metrics
# ---------------------------------------------------------------------------

SERVICE_INFO = Info("usersync_service", "usersync service information")

# ---------------------------------------------------------------------------
# Identity metrics
# ---------------------------------------------------------------------------

REGISTRATIONS_TOTAL = Counter(
    "usersync_registrations_total",
    "Registration attempts",
    ["outcome"],
)

LOGINS_TOTAL = Counter(
    "usersync_logins_total",
    "Login attempts",
    ["outcome"],
)

# ---------------------------------------------------------------------------
# Event bus metrics
# ---------------------------------------------------------------------------

EVENTS_PUBLISHED_TOTAL = Counter(
    "usersync_events_published_total",
    "Events handed to the broker",
    ["event_name"],
)

EVENTS_PUBLISH_FAILED_TOTAL = Counter(
    "usersync_events_publish_failed_total",
    "Events dropped because the broker was unreachable",
    ["event_name"],
)

EVENTS_HANDLED_TOTAL = Counter(
    "usersync_events_handled_total",
    "Events dispatched to a handler without error",
    ["event_name"],
)

EVENT_HANDLER_ERRORS_TOTAL = Counter(
    "usersync_event_handler_errors_total",
    "Events absorbed after a decode or handler failure",
    ["event_name", "reason"],
)


def set_service_info(service: str, version: str) -> None:
    SERVICE_INFO.info({"service": service, "version": version})


def metrics_asgi_app():
    """ASGI app serving the default registry, for mounting at /metrics."""
    return make_asgi_app()


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------


def record_registration(outcome: str) -> None:
    REGISTRATIONS_TOTAL.labels(outcome=outcome).inc()


def record_login(outcome: str) -> None:
    LOGINS_TOTAL.labels(outcome=outcome).inc()


def record_event_published(event_name: str) -> None:
    EVENTS_PUBLISHED_TOTAL.labels(event_name=event_name).inc()


def record_event_publish_failed(event_name: str) -> None:
    EVENTS_PUBLISH_FAILED_TOTAL.labels(event_name=event_name).inc()


def record_event_handled(event_name: str) -> None:
    EVENTS_HANDLED_TOTAL.labels(event_name=event_name).inc()


def record_event_handler_error(event_name: str, reason: str) -> None:
    """Record an absorbed failure (``reason`` is ``decode`` or ``handler``)."""
    EVENT_HANDLER_ERRORS_TOTAL.labels(event_name=event_name, reason=reason).inc()
