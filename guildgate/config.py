"""Configuration module for GuildGate.

Implements Pydantic v2 Settings for configuration management with support for:
- Environment variables (GUILDGATE_* prefix)
- YAML/TOML configuration files
- Command-line argument overrides

Configuration priority (later overrides earlier):
1. Built-in defaults
2. Configuration file (YAML/TOML)
3. Environment variables
4. Command-line arguments

Discord credentials are intentionally optional here: a missing credential only
fails the endpoint that needs it, never the whole process.
"""

import warnings
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_LAB_SECRET = "INSECURE_LAB_SESSION_SECRET_DO_NOT_USE_IN_PRODUCTION"


class Settings(BaseSettings):
    """Application configuration with sensible defaults.

    Example:
        # Load from environment only
        settings = Settings()

        # Override specific values
        settings = Settings(environment="prod", session_secret="...")
    """

    model_config = SettingsConfigDict(
        env_prefix="GUILDGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Application Settings
    # ========================================

    environment: Literal["lab", "staging", "prod"] = Field(
        default="lab", description="Deployment environment"
    )

    debug: bool = Field(default=False, description="Enable debug mode with verbose logging")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    log_format: Literal["json", "text"] = Field(default="json", description="Log output format")

    # ========================================
    # HTTP Server
    # ========================================

    http_host: str = Field(
        default="127.0.0.1",
        description="HTTP server bind address (0.0.0.0 for all interfaces)",
    )

    http_port: int = Field(default=8080, ge=1, le=65535, description="HTTP server port")

    site_base_url: str | None = Field(
        default=None,
        description="Public site URL used to build the OAuth redirect URI. "
        "Falls back to the request origin when unset",
    )

    # ========================================
    # Discord OAuth
    # ========================================

    discord_client_id: str | None = Field(default=None, description="Discord OAuth client ID")

    discord_client_secret: str | None = Field(
        default=None, description="Discord OAuth client secret"
    )

    discord_guild_id: str | None = Field(
        default=None, description="Discord server (guild) whose roles drive permissions"
    )

    discord_bot_token: str | None = Field(
        default=None,
        description="Optional bot token, required to enumerate every guild role",
    )

    discord_api_base: str = Field(
        default="https://discord.com/api/v10", description="Discord REST API base URL"
    )

    discord_timeout_seconds: float = Field(
        default=10.0, ge=1.0, le=60.0, description="Timeout for each Discord API call"
    )

    # ========================================
    # Sessions & Cookies
    # ========================================

    session_secret: str | None = Field(
        default=None,
        description="Server-held secret used to encrypt and authenticate session cookies",
    )

    session_cookie_name: str = Field(
        default="gm_auth_session", description="Name of the session cookie"
    )

    session_max_age_days: int = Field(
        default=7, ge=1, le=90, description="Session cookie lifetime in days"
    )

    oauth_state_cookie_name: str = Field(
        default="oauth_state", description="Name of the OAuth CSRF state cookie"
    )

    oauth_state_max_age_seconds: int = Field(
        default=600, ge=60, le=600, description="OAuth CSRF state lifetime (max 10 minutes)"
    )

    # ========================================
    # Guild Configuration Store
    # ========================================

    guild_config_backend: Literal["memory", "database"] = Field(
        default="memory", description="Where guild configuration is stored"
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./guildgate.db",
        description="Database connection URL (SQLite or PostgreSQL)",
    )

    database_echo: bool = Field(
        default=False, description="Echo SQL statements to logs (debug only)"
    )

    # ========================================
    # Validators
    # ========================================

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not (v.startswith("sqlite") or v.startswith("postgresql")):
            raise ValueError(
                "database_url must be SQLite (sqlite+aiosqlite:///) or PostgreSQL "
                "(postgresql+asyncpg://)"
            )
        return v

    @field_validator("site_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize the site URL so redirect URIs never contain '//'."""
        return v.rstrip("/") if v else v

    @model_validator(mode="after")
    def validate_session_secret(self) -> "Settings":
        """Require a real session secret outside the lab."""
        if self.session_secret is None:
            if self.environment in ["staging", "prod"]:
                raise ValueError("session_secret is required for staging/prod environments")
            warnings.warn(
                "session_secret not set, using insecure default for lab only",
                UserWarning,
                stacklevel=2,
            )
            self.session_secret = _INSECURE_LAB_SECRET
        return self

    # ========================================
    # Helper Methods
    # ========================================

    @property
    def secure_cookies(self) -> bool:
        """Cookies carry the Secure flag in production."""
        return self.environment == "prod"

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_max_age_days * 24 * 60 * 60

    @property
    def discord_oauth_configured(self) -> bool:
        """Check whether both OAuth client credentials are present."""
        return bool(self.discord_client_id and self.discord_client_secret)

    def to_dict(self) -> dict:
        """Convert settings to dictionary, masking secrets."""
        data = self.model_dump()
        for key in ("discord_client_secret", "discord_bot_token", "session_secret"):
            if data.get(key):
                data[key] = "***REDACTED***"
        return data


# ========================================
# Global Settings Instance
# ========================================

_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set global settings instance.

    Args:
        settings: Settings instance to use globally
    """
    global _settings
    _settings = settings


def load_settings_from_file(config_file: Path | str) -> Settings:
    """Load settings from YAML or TOML configuration file.

    Args:
        config_file: Path to configuration file

    Returns:
        Settings instance loaded from file

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file format is invalid
    """
    config_path = Path(config_file)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    if suffix in [".yaml", ".yml"]:
        import yaml

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}
    elif suffix == ".toml":
        import tomllib

        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
    else:
        raise ValueError(f"Unsupported config file format: {suffix}. Use .yaml, .yml, or .toml")

    return Settings(**config_data)
