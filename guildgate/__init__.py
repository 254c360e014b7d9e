"""GuildGate - Discord guild role based authorization service.

Turns a Discord OAuth2 login into an encrypted session cookie and re-resolves
the holder's permission level against the live guild role mappings on every
request.
"""

__version__ = "0.1.0"

from guildgate.config import Settings, get_settings, load_settings_from_file, set_settings

__all__ = [
    "Settings",
    "__version__",
    "get_settings",
    "load_settings_from_file",
    "set_settings",
]
