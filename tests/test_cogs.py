"""Tests for the cog layer, driven with fake Discord objects."""

import functools
import logging
from types import SimpleNamespace

import discord
import pytest
from discord import app_commands

import cogs.matches as matches_cog
import cogs.seasons as seasons_cog
from core.errors import GuildOnly, NoActiveSeason, NoOpenSeason, PermissionDenied
from core.interaction import GENERIC_FAILURE, report_failure, unwrap_app_command_error
from core.matches import create_match, pending_matches
from core.models import Match, ResultKind
from core.seasons import current_season
from core.views import MatchAction, PromptResult, bounded_wait
from core.state import AppState

GUILD = "100"


class FakeResponse:
    def __init__(self):
        self.sent = []
        self.edits = []
        self._done = False

    def is_done(self) -> bool:
        return self._done

    async def send_message(self, content=None, **kwargs):
        self._done = True
        self.sent.append(dict(kwargs, content=content))

    async def edit_message(self, **kwargs):
        self._done = True
        self.edits.append(kwargs)

    async def defer(self, **kwargs):
        self._done = True


class FakeFollowup:
    def __init__(self):
        self.sent = []

    async def send(self, content=None, **kwargs):
        self.sent.append(dict(kwargs, content=content))


class FakeInteraction:
    def __init__(self, user_id=1, message_id=None, manage_guild=True):
        self.user = SimpleNamespace(id=user_id)
        self.guild = SimpleNamespace(id=int(GUILD))
        self.guild_id = int(GUILD)
        self.channel_id = 300
        self.permissions = discord.Permissions(manage_guild=manage_guild)
        self.message = SimpleNamespace(id=message_id) if message_id is not None else None
        self.response = FakeResponse()
        self.followup = FakeFollowup()
        self.original_edits = []

    async def edit_original_response(self, **kwargs):
        self.original_edits.append(kwargs)


class Deletable:
    def __init__(self, error=None):
        self.error = error
        self.deleted = False

    async def delete(self):
        self.deleted = True
        if self.error:
            raise self.error


class FakeChannel(Deletable):
    def __init__(self, message: Deletable, error=None):
        super().__init__(error)
        self.message = message

    def get_partial_message(self, message_id):
        return self.message


class FakeBot:
    def __init__(self, state, channels=None):
        self.state = state
        self.channels = channels or {}
        self.views = []

    def add_view(self, view):
        self.views.append(view)

    def get_channel(self, channel_id):
        return self.channels.get(channel_id)

    async def fetch_channel(self, channel_id):
        raise discord.NotFound(SimpleNamespace(status=404, reason="Not Found"), "Unknown Channel")


def _not_found() -> discord.NotFound:
    return discord.NotFound(SimpleNamespace(status=404, reason="Not Found"), "Unknown Message")


async def _post(match):
    return 5000


def _private_texts(interaction: FakeInteraction) -> list:
    sent = interaction.response.sent + interaction.followup.sent
    return [m["content"] for m in sent if m.get("ephemeral")]


class TestMatchCleanup:
    async def test_failed_deletes_are_ignored(self, state) -> None:
        message = Deletable(error=_not_found())
        thread = Deletable(error=_not_found())
        channel = FakeChannel(message)
        bot = FakeBot(state, {300: channel, 400: thread})
        cog = matches_cog.Matches(bot)

        match = Match(id="a" * 24, guild_id=GUILD, channel_id="300", season_id=1,
                      message_id="5000", dispute_thread_id="400")
        await cog._cleanup(match)

        assert message.deleted
        assert thread.deleted

    async def test_missing_channel_is_ignored(self, state) -> None:
        cog = matches_cog.Matches(FakeBot(state))
        match = Match(id="a" * 24, guild_id=GUILD, channel_id="999", season_id=1, message_id="5000")
        await cog._cleanup(match)


class TestButtonDispatch:
    async def test_deleted_match_gets_private_reply(self, state, season) -> None:
        cog = matches_cog.Matches(FakeBot(state))
        interaction = FakeInteraction(message_id=123456)

        await cog.dispatch_match_action(interaction, MatchAction.CONFIRM)

        assert _private_texts(interaction) == ["That match no longer exists."]

    async def test_precondition_failure_gets_its_message(self, state, season) -> None:
        match = await create_match(state, GUILD, 300, 1, [2, 3], ResultKind.WIN, _post)
        cog = matches_cog.Matches(FakeBot(state))
        interaction = FakeInteraction(user_id=9, message_id=int(match.message_id))

        await cog.dispatch_match_action(interaction, MatchAction.CANCEL)

        assert _private_texts(interaction) == ["You are not a player in this match."]
        assert [m.id for m in await pending_matches(state, GUILD)] == [match.id]

    async def test_persistent_view_registered_on_load(self, state) -> None:
        bot = FakeBot(state)
        cog = matches_cog.Matches(bot)
        await cog.cog_load()
        assert bot.views == [cog.buttons]


class TestPromptTimeouts:
    async def test_accept_all_timeout_changes_nothing(self, state, season, monkeypatch) -> None:
        monkeypatch.setattr(matches_cog, "ACCEPT_ALL_TIMEOUT_SECONDS", 0.01)
        monkeypatch.setattr(matches_cog, "bounded_wait", functools.partial(bounded_wait, grace=0))
        match = await create_match(state, GUILD, 300, 1, [2, 3], ResultKind.WIN, _post)
        cog = matches_cog.Matches(FakeBot(state))
        interaction = FakeInteraction()

        await cog.match_accept_all.callback(cog, interaction)

        assert interaction.original_edits[-1]["embed"].title == "Timed Out"
        pending = await pending_matches(state, GUILD)
        assert [m.id for m in pending] == [match.id]
        assert not any(p.confirmed for p in pending[0].players)

    async def test_season_end_timeout_keeps_season_open(self, state, season, monkeypatch) -> None:
        monkeypatch.setattr(seasons_cog, "END_TIMEOUT_SECONDS", 0.01)
        monkeypatch.setattr(seasons_cog, "bounded_wait", functools.partial(bounded_wait, grace=0))
        cog = seasons_cog.Seasons(FakeBot(state))
        interaction = FakeInteraction()

        await cog.season_end.callback(cog, interaction)

        assert "timed out" in interaction.original_edits[-1]["content"]
        assert (await current_season(state, GUILD)).id == season.id

    async def test_confirmed_end_answers_press_before_writing(self, state, season, monkeypatch) -> None:
        press = FakeInteraction()

        async def answered(view):
            return PromptResult(responded=True, choice=True, interaction=press)

        async def ended_elsewhere(*args, **kwargs):
            raise NoOpenSeason()

        monkeypatch.setattr(seasons_cog, "bounded_wait", answered)
        monkeypatch.setattr(seasons_cog, "end_season", ended_elsewhere)
        cog = seasons_cog.Seasons(FakeBot(state))

        with pytest.raises(NoOpenSeason):
            await cog.season_end.callback(cog, FakeInteraction())
        assert press.response.edits == [{"content": "Ending the season…", "view": None}]

    async def test_admin_command_needs_manage_guild(self, state, season) -> None:
        cog = seasons_cog.Seasons(FakeBot(state))
        with pytest.raises(PermissionDenied):
            await cog.season_end.callback(cog, FakeInteraction(manage_guild=False))
        assert await current_season(state, GUILD) is not None


class TestFailureReporting:
    async def test_known_error_is_answered_privately(self) -> None:
        interaction = FakeInteraction()
        await report_failure(interaction, NoActiveSeason(), logging.getLogger("test"))
        assert _private_texts(interaction) == ["There is no current season."]

    async def test_unexpected_error_is_logged_and_generic(self, caplog) -> None:
        interaction = FakeInteraction()
        with caplog.at_level(logging.ERROR, logger="test"):
            await report_failure(interaction, RuntimeError("boom"), logging.getLogger("test"))
        assert _private_texts(interaction) == [GENERIC_FAILURE]
        assert any(r.exc_info and r.exc_info[0] is RuntimeError for r in caplog.records)

    async def test_answered_interaction_uses_followup(self) -> None:
        interaction = FakeInteraction()
        await interaction.response.defer()
        await report_failure(interaction, NoActiveSeason(), logging.getLogger("test"))
        assert interaction.followup.sent[0]["content"] == "There is no current season."


def test_app_command_errors_are_mapped() -> None:
    original = NoActiveSeason()
    invoke = app_commands.CommandInvokeError(SimpleNamespace(name="log"), original)
    assert unwrap_app_command_error(invoke) is original
    assert isinstance(unwrap_app_command_error(app_commands.MissingPermissions(["manage_guild"])), PermissionDenied)
    assert isinstance(unwrap_app_command_error(app_commands.NoPrivateMessage()), GuildOnly)

    other = app_commands.CheckFailure("nope")
    assert unwrap_app_command_error(other) is other


def test_app_state_holds_only_runtime_context() -> None:
    state = AppState(db_path="x.sqlite3")
    assert vars(state) == {"db_path": "x.sqlite3", "support_server": None, "closed": False}
