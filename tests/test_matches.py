"""Tests for the match lifecycle."""

import asyncio

import pytest

from core.db import (
    db_config_update, db_match_get, db_profile_get, db_profiles_fetch,
    db_player_record, db_season_games_by_player,
)
from core.errors import (
    AlreadyFinalized, AlreadyFullyConfirmed, CrossGuildMatch, DrawsDisabled, DuplicatePlayers,
    InvalidRoster, MatchNotFound, NoActiveSeason, NotAParticipant,
)
from core.matches import (
    accept_all, accept_match, cancel_match, confirm_match, create_match, delete_match,
    disputed_matches, match_for_message, open_dispute, pending_matches, player_matches,
    record_dispute_thread,
)
from core.models import ResultKind
from core.seasons import end_season
GUILD = "100"
OTHER_GUILD = "200"
CHANNEL = "300"
A, B, C, D = "1", "2", "3", "4"


async def _log(state, post, others=(B, C, D), kind=ResultKind.WIN, logger=A):
    return await create_match(state, GUILD, CHANNEL, logger, list(others), kind, post)


async def _points(state, *uids):
    return {p.user_id: p.points for p in await db_profiles_fetch(state, GUILD, uids)}


class TestCreateMatch:
    async def test_win_is_logged_with_logger_as_winner(self, state, season, post) -> None:
        match = await _log(state, post)

        assert match.winner_user_id == A
        assert match.player_ids == [A, B, C, D]
        assert match.season_id == season.id
        assert match.message_id == "5000"
        assert len(match.id) == 24
        assert not any(p.confirmed for p in match.players)

        stored = await db_match_get(state, match.id)
        assert stored is not None
        assert stored.confirmed_at is None
        assert stored.player_ids == [A, B, C, D]

    async def test_message_is_posted_before_row_exists(self, state, season) -> None:
        seen = {}

        async def post(match):
            seen["row"] = await db_match_get(state, match.id)
            return 1

        await _log(state, post)
        assert seen["row"] is None

    async def test_three_player_match(self, state, season, post) -> None:
        match = await _log(state, post, others=(B, C))
        assert match.player_ids == [A, B, C]

    async def test_no_open_season(self, state, post) -> None:
        with pytest.raises(NoActiveSeason):
            await _log(state, post)
        assert post.posted == []

    async def test_roster_too_small(self, state, season, post) -> None:
        with pytest.raises(InvalidRoster):
            await _log(state, post, others=(B,))

    async def test_duplicate_players(self, state, season, post) -> None:
        with pytest.raises(DuplicatePlayers):
            await _log(state, post, others=(B, B, C))
        assert post.posted == []

    async def test_logger_listed_again_is_duplicate(self, state, season, post) -> None:
        with pytest.raises(DuplicatePlayers):
            await _log(state, post, others=(A, B, C))

    async def test_draw_rejected_when_draws_disabled(self, state, season, post) -> None:
        with pytest.raises(DrawsDisabled):
            await _log(state, post, kind=ResultKind.DRAW)
        assert post.posted == []
        assert await pending_matches(state, GUILD) == []

    async def test_draw_allowed_when_enabled(self, state, season, post, draws_enabled) -> None:
        match = await _log(state, post, kind=ResultKind.DRAW)
        assert match.winner_user_id is None
        assert match.kind is ResultKind.DRAW

    async def test_failed_post_saves_nothing(self, state, season) -> None:
        async def post(match):
            raise RuntimeError("send failed")

        with pytest.raises(RuntimeError):
            await _log(state, post)
        assert await pending_matches(state, GUILD) == []

    async def test_lookup_by_message(self, state, season, post) -> None:
        match = await _log(state, post)
        found = await match_for_message(state, match.message_id)
        assert found is not None and found.id == match.id
        assert await match_for_message(state, "999999") is None


class TestConfirmation:
    async def test_full_confirmation_settles_once(self, state, season, post, draws_enabled) -> None:
        await db_config_update(state, GUILD, {"points_gained": 10, "points_lost": 5})
        match = await _log(state, post)

        for uid in (A, B, C):
            outcome = await confirm_match(state, match.id, uid)
            assert outcome.changed
            assert not outcome.finalized
            assert not outcome.match.finalized
        assert await _points(state, A, B, C, D) == {A: 0, B: 0, C: 0, D: 0}

        outcome = await confirm_match(state, match.id, D)
        assert outcome.finalized
        assert outcome.match.confirmed_at is not None
        assert await _points(state, A, B, C, D) == {A: 10, B: -5, C: -5, D: -5}

        again = await confirm_match(state, match.id, D)
        assert not again.changed
        assert not again.finalized
        assert await _points(state, A, B, C, D) == {A: 10, B: -5, C: -5, D: -5}

    async def test_draw_gives_everyone_draw_points(self, state, season, post, draws_enabled) -> None:
        await db_config_update(state, GUILD, {"points_per_draw": 2})
        match = await _log(state, post, others=(B, C), kind=ResultKind.DRAW)
        for uid in (A, B, C):
            await confirm_match(state, match.id, uid)
        assert await _points(state, A, B, C) == {A: 2, B: 2, C: 2}

    async def test_non_participant_cannot_confirm(self, state, season, post) -> None:
        match = await _log(state, post, others=(B, C))
        with pytest.raises(NotAParticipant):
            await confirm_match(state, match.id, D)

    async def test_unknown_match(self, state, season) -> None:
        with pytest.raises(MatchNotFound):
            await confirm_match(state, "0" * 24, A)

    async def test_concurrent_confirms_settle_exactly_once(self, state, season, post) -> None:
        match = await _log(state, post)
        outcomes = await asyncio.gather(
            *(confirm_match(state, match.id, uid) for uid in (A, B, C, D, A, B, C, D))
        )

        assert sum(1 for o in outcomes if o.finalized) == 1
        assert sum(1 for o in outcomes if o.changed) == 4
        assert await _points(state, A, B, C, D) == {A: 3, B: -1, C: -1, D: -1}

    async def test_confirmed_at_set_only_when_all_confirmed(self, state, season, post) -> None:
        match = await _log(state, post)
        for uid in (A, B, C, D):
            stored = await db_match_get(state, match.id)
            assert (stored.confirmed_at is not None) == stored.fully_confirmed
            await confirm_match(state, match.id, uid)
        stored = await db_match_get(state, match.id)
        assert stored.fully_confirmed and stored.finalized


class TestCancelAndDispute:
    async def test_cancel_by_player(self, state, season, post) -> None:
        match = await _log(state, post)
        deleted = await cancel_match(state, match.id, B)
        assert deleted.id == match.id
        assert await db_match_get(state, match.id) is None

    async def test_cancel_by_non_participant(self, state, season, post) -> None:
        match = await _log(state, post, others=(B, C))
        await confirm_match(state, match.id, B)

        with pytest.raises(NotAParticipant):
            await cancel_match(state, match.id, D)

        stored = await db_match_get(state, match.id)
        assert stored is not None
        assert stored.player(B).confirmed

    async def test_cancel_after_finalize(self, state, season, post) -> None:
        match = await _log(state, post, others=(B, C))
        for uid in (A, B, C):
            await confirm_match(state, match.id, uid)
        with pytest.raises(AlreadyFinalized):
            await cancel_match(state, match.id, A)
        assert await db_match_get(state, match.id) is not None

    async def test_dispute_records_thread(self, state, season, post) -> None:
        match = await _log(state, post)
        checked = await open_dispute(state, match.id, C)
        assert checked.id == match.id

        updated = await record_dispute_thread(state, match.id, 777)
        assert updated.dispute_thread_id == "777"
        assert [m.id for m in await disputed_matches(state, GUILD)] == [match.id]

    async def test_dispute_by_non_participant(self, state, season, post) -> None:
        match = await _log(state, post, others=(B, C))
        with pytest.raises(NotAParticipant):
            await open_dispute(state, match.id, D)


class TestAdminOverrides:
    async def test_accept_finalizes_and_settles(self, state, season, post) -> None:
        match = await _log(state, post)
        await confirm_match(state, match.id, B)

        accepted = await accept_match(state, GUILD, match.id)
        assert accepted.finalized
        assert await _points(state, A, B) == {A: 3, B: -1}

        with pytest.raises(AlreadyFullyConfirmed):
            await accept_match(state, GUILD, match.id)

    async def test_accept_from_other_guild(self, state, season, post) -> None:
        match = await _log(state, post)
        with pytest.raises(CrossGuildMatch):
            await accept_match(state, OTHER_GUILD, match.id)

    async def test_accept_all_counts_only_pending(self, state, season, post) -> None:
        done = await _log(state, post, others=(B, C))
        for uid in (A, B, C):
            await confirm_match(state, done.id, uid)
        pending = [await _log(state, post) for _ in range(3)]

        assert [m.id for m in await pending_matches(state, GUILD)] == [m.id for m in pending]
        assert await accept_all(state, GUILD) == 3
        assert await pending_matches(state, GUILD) == []
        assert await accept_all(state, GUILD) == 0
        # one confirmed win plus three accepted wins for A
        assert (await db_profile_get(state, GUILD, A)).points == 12

    async def test_delete(self, state, season, post) -> None:
        match = await _log(state, post)
        with pytest.raises(CrossGuildMatch):
            await delete_match(state, OTHER_GUILD, match.id)
        assert await db_match_get(state, match.id) is not None

        await delete_match(state, GUILD, match.id)
        assert await db_match_get(state, match.id) is None
        with pytest.raises(MatchNotFound):
            await delete_match(state, GUILD, match.id)

    async def test_pending_requires_open_season(self, state, season, post) -> None:
        await _log(state, post)
        await end_season(state, GUILD)
        with pytest.raises(NoActiveSeason):
            await pending_matches(state, GUILD)


class TestRecords:
    async def test_player_matches_newest_first(self, state, season, post) -> None:
        first = await _log(state, post)
        second = await _log(state, post, others=(B, C))
        assert [m.id for m in await player_matches(state, GUILD, B)] == [second.id, first.id]
        assert [m.id for m in await player_matches(state, GUILD, D)] == [first.id]

    async def test_records_count_confirmed_matches_only(self, state, season, post) -> None:
        match = await _log(state, post, others=(B, C))
        await _log(state, post, others=(B, C))
        for uid in (A, B, C):
            await confirm_match(state, match.id, uid)

        assert await db_player_record(state, GUILD, A, season.id) == {"wins": 1, "losses": 0, "draws": 0, "games": 1}
        assert await db_player_record(state, GUILD, B) == {"wins": 0, "losses": 1, "draws": 0, "games": 1}
        assert await db_season_games_by_player(state, GUILD, season.id) == {A: 1, B: 1, C: 1}
