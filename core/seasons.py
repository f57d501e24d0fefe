# core/seasons.py
from __future__ import annotations
import logging
from typing import Optional, Tuple

from core.state import AppState
from core.models import Season
from core.errors import InvalidName, NoOpenSeason, SeasonNotFound
from core.db import (
    db_season_current, db_season_by_name, db_season_list,
    db_season_start, db_season_end, db_season_reopen, db_season_match_count,
)

log = logging.getLogger(__name__)

async def current_season(state: AppState, guild_id) -> Optional[Season]:
    return await db_season_current(state, guild_id)

async def require_open_season(state: AppState, guild_id) -> Season:
    season = await db_season_current(state, guild_id)
    if not season:
        raise NoOpenSeason()
    return season

async def find_season(state: AppState, guild_id, name: str) -> Season:
    season = await db_season_by_name(state, guild_id, (name or "").strip())
    if not season:
        raise SeasonNotFound()
    return season

async def season_info(state: AppState, guild_id, name: Optional[str] = None) -> Tuple[Season, int]:
    """Season (open one when ``name`` is None) plus how many matches were logged in it."""
    season = await find_season(state, guild_id, name) if name else await require_open_season(state, guild_id)
    return season, await db_season_match_count(state, season.id)

async def list_seasons(state: AppState, guild_id) -> list[Season]:
    return await db_season_list(state, guild_id)

async def start_season(state: AppState, guild_id, name: str) -> Season:
    name = (name or "").strip()
    if not name:
        raise InvalidName()
    season = await db_season_start(state, guild_id, name)
    log.info("[season] started %r in guild %s", season.name, guild_id)
    return season

async def end_season(state: AppState, guild_id, season_id: Optional[int] = None) -> Season:
    """Close the open season. ``season_id`` pins the one the admin was shown."""
    if season_id is None:
        season_id = (await require_open_season(state, guild_id)).id
    season = await db_season_end(state, guild_id, season_id)
    log.info("[season] ended %r in guild %s", season.name, guild_id)
    return season

async def reopen_season(state: AppState, guild_id, name: str) -> Season:
    target = await find_season(state, guild_id, name)
    season = await db_season_reopen(state, guild_id, target.id)
    log.info("[season] reopened %r in guild %s", season.name, guild_id)
    return season
