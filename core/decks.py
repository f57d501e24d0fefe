# core/decks.py
from __future__ import annotations
import logging
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse

from core.state import AppState
from core.models import Deck
from core.errors import DeckNotFound, InvalidDeckList, InvalidName
from core.db import (
    db_config_get, db_profile_get, db_profile_set_deck,
    db_deck_create, db_deck_by_name, db_deck_list, db_deck_rename,
    db_deck_set_list, db_deck_delete, db_deck_records,
)

log = logging.getLogger(__name__)

VALID_DECK_HOSTS = (
    "tappedout.net",
    "deckstats.net",
    "aetherhub.com",
    "moxfield.com",
    "tcgplayer.com",
    "archidekt.com",
    "scryfall.com",
)

def validate_deck_list(url: str) -> bool:
    """True when ``url`` is an absolute link to an allow-listed deck site."""
    try:
        parsed = urlparse((url or "").strip())
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host in VALID_DECK_HOSTS

def _clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidName()
    return name

def _clean_list(deck_list: Optional[str]) -> Optional[str]:
    if deck_list is None or not deck_list.strip():
        return None
    if not validate_deck_list(deck_list):
        raise InvalidDeckList()
    return deck_list.strip()

async def get_deck(state: AppState, guild_id, user_id, name: str) -> Deck:
    deck = await db_deck_by_name(state, guild_id, user_id, (name or "").strip())
    if not deck:
        raise DeckNotFound()
    return deck

async def create_deck(state: AppState, guild_id, user_id, name: str, deck_list: Optional[str] = None) -> Deck:
    url = _clean_list(deck_list)
    config = await db_config_get(state, guild_id)
    deck = await db_deck_create(state, guild_id, user_id, _clean_name(name), url, config.deck_limit)
    log.info("[deck] %s created %r in guild %s", user_id, deck.name, guild_id)
    return deck

async def rename_deck(state: AppState, guild_id, user_id, name: str, new_name: str) -> Deck:
    deck = await get_deck(state, guild_id, user_id, name)
    return await db_deck_rename(state, deck.id, _clean_name(new_name))

async def set_deck_list(state: AppState, guild_id, user_id, name: str, deck_list: Optional[str]) -> Deck:
    deck = await get_deck(state, guild_id, user_id, name)
    return await db_deck_set_list(state, deck.id, _clean_list(deck_list))

async def delete_deck(state: AppState, guild_id, user_id, name: str) -> Deck:
    deck = await get_deck(state, guild_id, user_id, name)
    await db_deck_delete(state, deck.id)
    log.info("[deck] %s deleted %r in guild %s", user_id, deck.name, guild_id)
    return deck

async def use_deck(state: AppState, guild_id, user_id, name: str) -> Deck:
    deck = await get_deck(state, guild_id, user_id, name)
    await db_profile_set_deck(state, guild_id, user_id, deck.id)
    return deck

async def list_decks(state: AppState, guild_id, user_id) -> Tuple[list[Deck], Optional[int]]:
    decks = await db_deck_list(state, guild_id, user_id)
    profile = await db_profile_get(state, guild_id, user_id)
    return decks, profile.current_deck_id

async def deck_records(state: AppState, guild_id, user_id) -> list[Tuple[Deck, Dict[str, int]]]:
    """(deck, record) for each of the user's decks, including decks with no games."""
    decks = await db_deck_list(state, guild_id, user_id)
    records = await db_deck_records(state, guild_id, user_id)
    empty = {"wins": 0, "losses": 0, "draws": 0, "games": 0}
    return [(d, records.get(d.id, dict(empty))) for d in decks]
