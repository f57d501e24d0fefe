from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

MIN_PLAYERS = 3
MAX_PLAYERS = 4


class ResultKind(str, Enum):
    WIN = "win"
    DRAW = "draw"


def new_match_id() -> str:
    """Mint a sortable 24-hex-char match id before the row exists.

    The first 8 chars are the unix time, so ids order by creation.
    """
    return f"{int(time.time()):08x}{secrets.token_hex(8)}"


@dataclass
class Season:
    id: int
    guild_id: str
    name: str
    start_ts: float
    end_ts: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.end_ts is None


@dataclass
class GuildConfig:
    guild_id: str
    minimum_games: int = 10
    points_gained: int = 3
    points_lost: int = 1
    points_per_draw: int = 1
    base_points: int = 1000
    enable_draws: bool = False
    deck_limit: int = 3
    dispute_role_id: Optional[str] = None


@dataclass
class ConfigPatch:
    """Partial config update. ``None`` leaves a field as it is."""
    minimum_games: Optional[int] = None
    points_gained: Optional[int] = None
    points_lost: Optional[int] = None
    points_per_draw: Optional[int] = None
    base_points: Optional[int] = None
    enable_draws: Optional[bool] = None
    deck_limit: Optional[int] = None
    dispute_role_id: Optional[str] = None
    unset_dispute_role: bool = False

    def changes(self) -> dict:
        out = {}
        for name in ("minimum_games", "points_gained", "points_lost", "points_per_draw",
                     "base_points", "enable_draws", "deck_limit", "dispute_role_id"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        if self.unset_dispute_role:
            out["dispute_role_id"] = None
        return out


@dataclass
class Deck:
    id: int
    guild_id: str
    user_id: str
    name: str
    deck_list: Optional[str] = None


@dataclass
class Profile:
    guild_id: str
    user_id: str
    points: int = 0
    current_deck_id: Optional[int] = None


@dataclass
class MatchPlayer:
    user_id: str
    deck_id: Optional[int] = None
    confirmed: bool = False


@dataclass
class Match:
    id: str
    guild_id: str
    channel_id: Optional[str]
    season_id: int
    players: list[MatchPlayer] = field(default_factory=list)
    message_id: Optional[str] = None
    winner_user_id: Optional[str] = None
    dispute_thread_id: Optional[str] = None
    confirmed_at: Optional[float] = None
    created_ts: float = field(default_factory=time.time)

    @property
    def kind(self) -> ResultKind:
        return ResultKind.WIN if self.winner_user_id else ResultKind.DRAW

    @property
    def player_ids(self) -> list[str]:
        return [p.user_id for p in self.players]

    @property
    def fully_confirmed(self) -> bool:
        return all(p.confirmed for p in self.players)

    @property
    def finalized(self) -> bool:
        return self.confirmed_at is not None

    def player(self, user_id) -> Optional[MatchPlayer]:
        uid = str(user_id)
        for p in self.players:
            if p.user_id == uid:
                return p
        return None
