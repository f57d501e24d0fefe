# core/points.py
from __future__ import annotations
from typing import Dict, Iterable, List, Tuple
from core.models import GuildConfig, Match, Profile, ResultKind

def settlement_deltas(match: Match, config: GuildConfig) -> Dict[str, int]:
    """Point change per player when ``match`` is finalized.

    No floor is applied; stored points may go negative.
    """
    if match.kind is ResultKind.DRAW:
        return {uid: int(config.points_per_draw) for uid in match.player_ids}

    out: Dict[str, int] = {}
    for uid in match.player_ids:
        if uid == match.winner_user_id:
            out[uid] = int(config.points_gained)
        else:
            out[uid] = -int(config.points_lost)
    return out

def display_points(points: int, config: GuildConfig) -> int:
    # base offset is presentation only
    return int(config.base_points) + int(points)

def points_label(points: int, config: GuildConfig) -> str:
    return f"{display_points(points, config)} pts"

def leaderboard(profiles: Iterable[Profile], games: Dict[str, int], config: GuildConfig,
                limit: int = 25) -> List[Tuple[Profile, int]]:
    """Profiles with at least ``minimum_games`` games, highest points first, plus their game counts."""
    eligible = [(p, int(games.get(p.user_id, 0))) for p in profiles]
    eligible = [(p, n) for p, n in eligible if n >= int(config.minimum_games)]
    eligible.sort(key=lambda pn: (-pn[0].points, pn[0].user_id))
    return eligible[:limit]
