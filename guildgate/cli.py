"""Command-line interface for the GuildGate service.

Parses CLI arguments, loads configuration with file < environment < flag
precedence, configures logging, and serves the HTTP app with uvicorn.
"""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn
from pydantic import ValidationError

from guildgate import __version__
from guildgate.config import Settings, load_settings_from_file, set_settings
from guildgate.infra.observability import setup_logging

logger = logging.getLogger(__name__)


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="guildgate",
        description="GuildGate - Discord guild role based authorization service",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config", "-c", type=Path, help="Path to configuration file (YAML or TOML)"
    )

    parser.add_argument(
        "--environment", choices=["lab", "staging", "prod"], help="Deployment environment"
    )

    parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level",
    )

    parser.add_argument("--log-format", choices=["json", "text"], help="Log output format")

    # HTTP server
    parser.add_argument("--host", help="HTTP server bind address")

    parser.add_argument("--port", type=int, help="HTTP server port")

    parser.add_argument("--site-base-url", help="Public site URL for OAuth redirects")

    # Discord
    parser.add_argument("--guild-id", help="Discord guild whose roles drive permissions")

    # Guild configuration store
    parser.add_argument(
        "--guild-config-backend",
        choices=["memory", "database"],
        help="Guild configuration backend",
    )

    parser.add_argument("--database-url", help="Database connection URL (SQLite or PostgreSQL)")

    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")

    return parser


# argparse destination -> Settings field
_CLI_OVERRIDES = {
    "environment": "environment",
    "log_level": "log_level",
    "log_format": "log_format",
    "host": "http_host",
    "port": "http_port",
    "site_base_url": "site_base_url",
    "guild_id": "discord_guild_id",
    "guild_config_backend": "guild_config_backend",
    "database_url": "database_url",
}


def load_config_from_cli(args: list[str] | None = None) -> Settings:
    """Load configuration from CLI arguments and environment.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Configured Settings instance

    Example:
        settings = load_config_from_cli()
        settings = load_config_from_cli(["--config", "config/prod.yaml"])
    """
    parser = create_argument_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.config:
        settings = load_settings_from_file(parsed_args.config)
    else:
        settings = Settings()

    cli_overrides = {}
    for dest, field_name in _CLI_OVERRIDES.items():
        value = getattr(parsed_args, dest)
        if value is not None:
            cli_overrides[field_name] = value

    if parsed_args.debug:
        cli_overrides["debug"] = True

    if cli_overrides:
        settings = Settings(**{**settings.model_dump(), **cli_overrides})

    return settings


def main(args: list[str] | None = None) -> int:
    """Run the GuildGate HTTP server.

    Returns:
        Process exit code
    """
    try:
        settings = load_config_from_cli(args)
    except (ValidationError, ValueError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    set_settings(settings)
    setup_logging(
        level="DEBUG" if settings.debug else settings.log_level,
        json_format=settings.log_format == "json",
    )
    logger.info("Starting GuildGate", extra={"settings": settings.to_dict()})

    from guildgate.api.http import create_http_app

    app = create_http_app(settings)
    uvicorn.run(
        app,
        host=settings.http_host,
        port=settings.http_port,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
