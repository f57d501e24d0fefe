"""Tests for settlement and standings math."""

from core.models import GuildConfig, Match, MatchPlayer, Profile
from core.points import display_points, leaderboard, settlement_deltas


def _match(winner=None, players=("a", "b", "c", "d")) -> Match:
    return Match(
        id="x" * 24, guild_id="g", channel_id=None, season_id=1,
        players=[MatchPlayer(user_id=u) for u in players], winner_user_id=winner,
    )


def test_win_deltas() -> None:
    config = GuildConfig(guild_id="g", points_gained=10, points_lost=5)
    assert settlement_deltas(_match(winner="a"), config) == {"a": 10, "b": -5, "c": -5, "d": -5}


def test_draw_deltas() -> None:
    config = GuildConfig(guild_id="g", points_per_draw=2)
    assert settlement_deltas(_match(players=("a", "b", "c")), config) == {"a": 2, "b": 2, "c": 2}


def test_no_floor() -> None:
    config = GuildConfig(guild_id="g", points_lost=50)
    assert settlement_deltas(_match(winner="a"), config)["b"] == -50
    assert display_points(-50, GuildConfig(guild_id="g", base_points=0)) == -50


def test_display_adds_base_points() -> None:
    assert display_points(7, GuildConfig(guild_id="g")) == 1007


def test_leaderboard_filters_and_orders() -> None:
    config = GuildConfig(guild_id="g", minimum_games=2)
    profiles = [
        Profile(guild_id="g", user_id="a", points=5),
        Profile(guild_id="g", user_id="b", points=9),
        Profile(guild_id="g", user_id="c", points=9),
        Profile(guild_id="g", user_id="d", points=20),
    ]
    games = {"a": 3, "b": 2, "c": 4, "d": 1}

    rows = leaderboard(profiles, games, config)
    assert [(p.user_id, n) for p, n in rows] == [("b", 2), ("c", 4), ("a", 3)]
    assert len(leaderboard(profiles, games, config, limit=1)) == 1
