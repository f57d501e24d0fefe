from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Tuple

import discord

from core.models import Deck, GuildConfig, Match, ResultKind, Season
from core.points import display_points

COLOR_WIN  = discord.Color.green()
COLOR_DRAW = discord.Color.blue()
COLOR_INFO = discord.Color.blue()
COLOR_WARN = discord.Color.gold()
COLOR_BAD  = discord.Color.red()

PAGE_SIZE = 4  # matches per list embed


def deck_label(deck: Optional[Deck], *, empty: str = "Not specified") -> str:
    if not deck:
        return empty
    return f"[{deck.name}]({deck.deck_list})" if deck.deck_list else deck.name


def _ts(value: Optional[float], style: str = "F") -> str:
    return f"<t:{int(value)}:{style}>" if value is not None else ""


def match_mentions(match: Match) -> str:
    return ", ".join(f"<@{uid}>" for uid in match.player_ids)


def confirmation_text(match: Match) -> str:
    confirmed = [f"<@{p.user_id}>" for p in match.players if p.confirmed]
    if not confirmed:
        return "Nobody has confirmed this match."
    if match.fully_confirmed:
        return "Everyone has confirmed this match."
    return "Confirmed by " + ", ".join(confirmed) + "."


def match_embed(match: Match, decks: Dict[int, Deck]) -> discord.Embed:
    is_win = match.kind is ResultKind.WIN
    if match.finalized:
        title = "Match Confirmed"
        desc = f"This match was recorded as a {'win for ' + f'<@{match.winner_user_id}>' if is_win else 'draw'}."
    else:
        title = "Match Confirmation"
        desc = (
            f"The match will be recorded as a {'win for the player who logged it' if is_win else 'draw'}. "
            "Click below to confirm whether or not the match details are correct."
        )
    embed = discord.Embed(title=title, description=desc, color=COLOR_WIN if is_win else COLOR_DRAW)
    embed.add_field(name="Player", value="\n".join(f"<@{uid}>" for uid in match.player_ids), inline=True)
    embed.add_field(
        name="Deck",
        value="\n".join(deck_label(decks.get(p.deck_id) if p.deck_id is not None else None) for p in match.players),
        inline=True,
    )
    embed.add_field(name="Confirmed", value=confirmation_text(match), inline=False)
    if match.dispute_thread_id:
        embed.add_field(name="Disputed", value=f"<#{match.dispute_thread_id}>", inline=False)
    embed.set_footer(text=f"Match Id: ({match.id})")
    return embed


def match_list_fields(matches: Iterable[Match], decks: Dict[int, Deck]) -> List[Tuple[str, str]]:
    fields = []
    for m in matches:
        if m.channel_id and m.message_id:
            logged = f"Logged at https://discord.com/channels/{m.guild_id}/{m.channel_id}/{m.message_id}"
        else:
            logged = "Has been logged"
        disputed = f"\nDisputed at <#{m.dispute_thread_id}>" if m.dispute_thread_id else ""
        lines = []
        for p in m.players:
            deck = decks.get(p.deck_id) if p.deck_id is not None else None
            deck_txt = f" ({deck_label(deck)})" if deck else ""
            lines.append(f"<@{p.user_id}>{deck_txt} - {'Confirmed' if p.confirmed else 'Not confirmed'}")
        fields.append((f"Match ({m.id})", f"{logged}{disputed}\n" + "\n".join(lines)))
    return fields


def match_list_embed(title: str, description: str, matches: List[Match], decks: Dict[int, Deck]) -> discord.Embed:
    embed = discord.Embed(title=title, description=description, color=COLOR_INFO)
    for name, value in match_list_fields(matches[:PAGE_SIZE], decks):
        embed.add_field(name=name, value=value[:1024], inline=False)
    if len(matches) > PAGE_SIZE:
        embed.set_footer(text=f"Showing {PAGE_SIZE} of {len(matches)}")
    return embed


def season_embed(season: Season, matches_played: int) -> discord.Embed:
    embed = discord.Embed(
        title=f"Season Information - {season.name}",
        description=(
            "This is information about the current season."
            if season.is_open else
            "This is information about a previous season, rather than the current season."
        ),
        color=COLOR_INFO,
    )
    embed.add_field(name="Start Date", value=_ts(season.start_ts), inline=False)
    embed.add_field(name="End Date", value=_ts(season.end_ts) if season.end_ts else "The season has not ended yet.", inline=False)
    embed.add_field(name="Matches Played",
                    value=f"{matches_played} {'game has' if matches_played == 1 else 'games have'} been played.", inline=False)
    return embed


def season_list_embed(seasons: List[Season]) -> discord.Embed:
    embed = discord.Embed(title="Seasons", color=COLOR_INFO)
    lines = []
    for s in seasons[:25]:
        span = f"{_ts(s.start_ts, 'd')} – {_ts(s.end_ts, 'd') if s.end_ts else 'now'}"
        lines.append(f"**{s.name}**{' (current)' if s.is_open else ''}: {span}")
    embed.description = "\n".join(lines) if lines else "No seasons have been started."
    return embed


def notice_embed(title: str, description: str, color: discord.Color = COLOR_INFO) -> discord.Embed:
    return discord.Embed(title=title, description=description, color=color)


def points_text(points: int, config: GuildConfig) -> str:
    return f"**{display_points(points, config)}**"
