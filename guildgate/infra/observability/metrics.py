"""Prometheus metrics for the login flow and permission resolution."""

import logging

from prometheus_client import CollectorRegistry, Counter, generate_latest

logger = logging.getLogger(__name__)

_registry = CollectorRegistry()


login_attempts_total = Counter(
    "guildgate_login_attempts_total",
    "OAuth callback outcomes",
    ["outcome"],
    registry=_registry,
)

auth_checks_total = Counter(
    "guildgate_auth_checks_total",
    "Session authentication checks",
    ["status"],
    registry=_registry,
)

authz_checks_total = Counter(
    "guildgate_authz_checks_total",
    "Permission checks against a required level",
    ["required_level", "status"],
    registry=_registry,
)

permission_resolutions_total = Counter(
    "guildgate_permission_resolutions_total",
    "Permission resolutions by resulting level and deciding rule",
    ["level", "source"],
    registry=_registry,
)

session_rejections_total = Counter(
    "guildgate_session_rejections_total",
    "Session cookies rejected and cleared",
    ["reason"],
    registry=_registry,
)

guild_config_read_failures_total = Counter(
    "guildgate_guild_config_read_failures_total",
    "Guild configuration reads that fell back to the cached level",
    registry=_registry,
)


def get_registry() -> CollectorRegistry:
    """Get the metrics registry."""
    return _registry


def get_metrics_text() -> str:
    """Get metrics in Prometheus text format.

    Returns:
        Metrics in Prometheus exposition format
    """
    return generate_latest(_registry).decode("utf-8")


def record_login_attempt(outcome: str) -> None:
    """Record an OAuth callback outcome.

    Args:
        outcome: "success" or the redirect error code
    """
    login_attempts_total.labels(outcome=outcome).inc()


def record_auth_check(success: bool) -> None:
    """Record metrics for an authentication check.

    Args:
        success: Whether a valid session was present
    """
    status = "success" if success else "failed"
    auth_checks_total.labels(status=status).inc()


def record_authz_check(required_level: str, success: bool) -> None:
    """Record metrics for an authorization check.

    Args:
        required_level: Name of the level being checked
        success: Whether authorization succeeded
    """
    status = "allowed" if success else "denied"
    authz_checks_total.labels(required_level=required_level, status=status).inc()


def record_permission_resolution(level: str, source: str) -> None:
    permission_resolutions_total.labels(level=level, source=source).inc()


def record_session_rejection(reason: str) -> None:
    session_rejections_total.labels(reason=reason).inc()


def record_guild_config_read_failure() -> None:
    guild_config_read_failures_total.inc()
