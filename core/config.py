# core/config.py
from __future__ import annotations
from enum import Enum
from typing import Any, Optional

from core.state import AppState
from core.models import ConfigPatch, GuildConfig
from core.errors import InvalidConfigValue
from core.db import db_config_get, db_config_update


class ConfigField(str, Enum):
    MINIMUM_GAMES = "minimum_games"
    POINTS_GAINED = "points_gained"
    POINTS_LOST = "points_lost"
    POINTS_PER_DRAW = "points_per_draw"
    BASE_POINTS = "base_points"
    ENABLE_DRAWS = "enable_draws"
    DECK_LIMIT = "deck_limit"
    DISPUTE_ROLE = "dispute_role_id"


# non-negative integer fields; everything else is validated by its type
_NON_NEGATIVE = {
    ConfigField.MINIMUM_GAMES, ConfigField.POINTS_GAINED, ConfigField.POINTS_LOST,
    ConfigField.POINTS_PER_DRAW, ConfigField.DECK_LIMIT,
}


async def get_config(state: AppState, guild_id) -> GuildConfig:
    return await db_config_get(state, guild_id)


async def update_config(state: AppState, guild_id, patch: ConfigPatch) -> GuildConfig:
    return await db_config_update(state, guild_id, patch.changes())


async def set_or_get(state: AppState, guild_id, field: ConfigField, value: Optional[Any] = None) -> Any:
    """Write ``value`` when given, then return the field's effective value."""
    if value is None:
        config = await db_config_get(state, guild_id)
    else:
        if field in _NON_NEGATIVE and int(value) < 0:
            raise InvalidConfigValue()
        patch = ConfigPatch(**{field.value: value})
        config = await update_config(state, guild_id, patch)
    return getattr(config, field.value)


async def unset_dispute_role(state: AppState, guild_id) -> GuildConfig:
    return await update_config(state, guild_id, ConfigPatch(unset_dispute_role=True))
