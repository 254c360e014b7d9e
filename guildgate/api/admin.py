"""Role-mapping administration routes.

All endpoints require ADMIN on the caller's freshly re-resolved level, so a
demoted administrator loses access on their next request.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from guildgate.api.dependencies import get_guild_config_store, require_permission
from guildgate.api.models import RoleMappingsResponse, RoleMappingsUpdate
from guildgate.domain.models import AuthenticatedUser, PermissionLevel
from guildgate.domain.role_mappings import save_role_mappings
from guildgate.infra.guild_config import GuildConfigStore, GuildConfigStoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["admin"])

require_admin = require_permission(PermissionLevel.ADMIN)


@router.get("/role-mappings", response_model=RoleMappingsResponse, response_model_by_alias=True)
async def get_role_mappings(
    user: AuthenticatedUser = Depends(require_admin),
    store: GuildConfigStore = Depends(get_guild_config_store),
) -> RoleMappingsResponse:
    """Return the current role mappings plus level metadata for the UI."""
    try:
        config = await store.read()
    except GuildConfigStoreError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Guild configuration store unavailable",
        )

    return RoleMappingsResponse.build(config.role_mappings if config else [])


@router.put("/role-mappings", response_model=RoleMappingsResponse, response_model_by_alias=True)
async def put_role_mappings(
    update: RoleMappingsUpdate,
    user: AuthenticatedUser = Depends(require_admin),
    store: GuildConfigStore = Depends(get_guild_config_store),
) -> RoleMappingsResponse:
    """Replace every role mapping. Duplicate role ids keep the last entry."""
    try:
        config = await save_role_mappings(store, update.role_mappings)
    except GuildConfigStoreError as e:
        logger.error(
            "Failed to save role mappings",
            extra={"user_sub": user.id, "error": str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Guild configuration store unavailable",
        )

    logger.info(
        "Role mappings replaced",
        extra={"user_sub": user.id, "mapping_count": len(config.role_mappings)},
    )
    return RoleMappingsResponse.build(config.role_mappings)
