"""Database infrastructure module.

Key components:
- models: SQLAlchemy ORM models
- session: Database session management
"""

from guildgate.infra.db.models import GUILD_CONFIG_ROW_ID, Base, GuildConfigRecord
from guildgate.infra.db.session import DatabaseSessionManager

__all__ = [
    # Models
    "Base",
    "GuildConfigRecord",
    "GUILD_CONFIG_ROW_ID",
    # Session management
    "DatabaseSessionManager",
]
