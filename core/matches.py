"""Match lifecycle: logging, confirmation, disputes, cancellation and admin overrides.

Every state change that can race (confirm, accept, cancel) is a single store
transaction in ``core.db``; this module validates input and sequences the
steps around the Discord side effects, which the caller supplies.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from core.state import AppState
from core.models import Match, MatchPlayer, ResultKind, MIN_PLAYERS, MAX_PLAYERS, new_match_id
from core.errors import (
    NoActiveSeason, DuplicatePlayers, InvalidRoster, DrawsDisabled, NotAParticipant,
    MatchNotFound, DeckNotFound, SeasonNotFound,
)
from core.db import (
    db_config_get, db_season_current, db_season_by_name, db_profiles_fetch, db_deck_by_name,
    db_match_insert, db_match_get, db_match_by_message, db_matches_pending, db_matches_for_player,
    db_match_confirm_player, db_match_accept, db_match_accept_all, db_match_set_dispute_thread,
    db_match_cancel, db_match_delete,
)

log = logging.getLogger(__name__)

# receives the unsaved match (id already minted), returns the posted message id
PostMatch = Callable[[Match], Awaitable[int | str]]


@dataclass
class ConfirmOutcome:
    match: Match
    changed: bool     # this press flipped the player's flag
    finalized: bool   # this press completed the match and settled points


async def create_match(
    state: AppState,
    guild_id,
    channel_id,
    logger_id,
    other_ids: Sequence,
    kind: ResultKind,
    post: PostMatch,
) -> Match:
    gid = str(guild_id)
    season = await db_season_current(state, gid)
    if not season:
        raise NoActiveSeason()

    player_ids = [str(logger_id), *(str(u) for u in other_ids)]
    if not MIN_PLAYERS <= len(player_ids) <= MAX_PLAYERS:
        raise InvalidRoster()
    if len(set(player_ids)) != len(player_ids):
        raise DuplicatePlayers()

    if kind is ResultKind.DRAW:
        config = await db_config_get(state, gid)
        if not config.enable_draws:
            raise DrawsDisabled()

    profiles = await db_profiles_fetch(state, gid, player_ids)
    match = Match(
        id=new_match_id(),
        guild_id=gid,
        channel_id=str(channel_id) if channel_id is not None else None,
        season_id=season.id,
        winner_user_id=player_ids[0] if kind is ResultKind.WIN else None,
        players=[MatchPlayer(user_id=p.user_id, deck_id=p.current_deck_id) for p in profiles],
    )

    # the message embeds the id, so it goes out before the row is saved
    message_id = await post(match)
    match.message_id = str(message_id)
    await db_match_insert(state, match)
    log.info("[match] logged %s (%s) in guild %s season %s", match.id, kind.value, gid, season.id)
    return match


async def get_match(state: AppState, match_id: str) -> Match:
    match = await db_match_get(state, (match_id or "").strip())
    if not match:
        raise MatchNotFound()
    return match


async def match_for_message(state: AppState, message_id) -> Optional[Match]:
    return await db_match_by_message(state, message_id)


async def confirm_match(state: AppState, match_id: str, user_id) -> ConfirmOutcome:
    match, changed, finalized = await db_match_confirm_player(state, match_id, user_id)
    return ConfirmOutcome(match=match, changed=changed, finalized=finalized)


async def open_dispute(state: AppState, match_id: str, user_id) -> Match:
    """Check that ``user_id`` may dispute; the caller then creates or reuses the thread."""
    match = await get_match(state, match_id)
    if match.player(user_id) is None:
        raise NotAParticipant()
    return match


async def record_dispute_thread(state: AppState, match_id: str, thread_id) -> Match:
    return await db_match_set_dispute_thread(state, match_id, thread_id)


async def cancel_match(state: AppState, match_id: str, user_id) -> Match:
    match = await db_match_cancel(state, match_id, user_id)
    log.info("[match] %s cancelled by %s", match_id, user_id)
    return match


async def accept_match(state: AppState, guild_id, match_id: str) -> Match:
    return await db_match_accept(state, guild_id, (match_id or "").strip())


async def delete_match(state: AppState, guild_id, match_id: str) -> Match:
    match = await db_match_delete(state, guild_id, (match_id or "").strip())
    log.info("[match] %s deleted by admin in guild %s", match.id, guild_id)
    return match


async def _open_season_id(state: AppState, guild_id) -> int:
    season = await db_season_current(state, guild_id)
    if not season:
        raise NoActiveSeason()
    return season.id


async def pending_matches(state: AppState, guild_id) -> list[Match]:
    return await db_matches_pending(state, guild_id, await _open_season_id(state, guild_id))


async def disputed_matches(state: AppState, guild_id) -> list[Match]:
    return await db_matches_pending(state, guild_id, await _open_season_id(state, guild_id), disputed_only=True)


async def accept_all(state: AppState, guild_id) -> int:
    count = await db_match_accept_all(state, guild_id, await _open_season_id(state, guild_id))
    log.info("[match] accept-all in guild %s changed %d match(es)", guild_id, count)
    return count


async def player_matches(
    state: AppState,
    guild_id,
    user_id,
    *,
    deck_name: Optional[str] = None,
    season_name: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[Match]:
    deck_id = None
    if deck_name:
        deck = await db_deck_by_name(state, guild_id, user_id, deck_name)
        if not deck:
            raise DeckNotFound()
        deck_id = deck.id

    season_id = None
    if season_name:
        season = await db_season_by_name(state, guild_id, season_name)
        if not season:
            raise SeasonNotFound()
        season_id = season.id

    return await db_matches_for_player(state, guild_id, user_id, season_id=season_id, deck_id=deck_id, limit=limit)
