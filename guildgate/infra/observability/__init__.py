"""Observability infrastructure for GuildGate.

Provides structured logging and Prometheus metrics.
"""

from guildgate.infra.observability.logging import (
    CorrelationIDFilter,
    JSONFormatter,
    correlation_id_var,
    get_correlation_id,
    set_correlation_id,
    setup_logging,
)
from guildgate.infra.observability.metrics import (
    get_metrics_text,
    get_registry,
    record_auth_check,
    record_authz_check,
    record_guild_config_read_failure,
    record_login_attempt,
    record_permission_resolution,
    record_session_rejection,
)

__all__ = [
    # Logging
    "correlation_id_var",
    "get_correlation_id",
    "set_correlation_id",
    "CorrelationIDFilter",
    "JSONFormatter",
    "setup_logging",
    # Metrics
    "get_registry",
    "get_metrics_text",
    "record_login_attempt",
    "record_auth_check",
    "record_authz_check",
    "record_permission_resolution",
    "record_session_rejection",
    "record_guild_config_read_failure",
]
