import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.state import AppState
from core.models import Match, ResultKind
from core.db import db_decks_by_ids, db_config_get, db_match_get
from core.interaction import send_private, require_manage_guild, report_failure
from core.matches import (
    create_match, match_for_message, confirm_match, open_dispute, record_dispute_thread,
    cancel_match, accept_match, accept_all, delete_match,
    pending_matches, disputed_matches, player_matches,
)
from core.render import match_embed, match_mentions, match_list_embed, notice_embed, COLOR_WARN, COLOR_WIN, COLOR_BAD
from core.views import MatchAction, MatchButtonsView, ConfirmPromptView, bounded_wait

ACCEPT_ALL_TIMEOUT_SECONDS = 60


class Matches(commands.Cog):
    match_group = app_commands.Group(name="match", description="Manages logged matches.", guild_only=True)

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.state: AppState = bot.state
        self.logger = logging.getLogger(__name__)
        self.buttons = MatchButtonsView(self.dispatch_match_action)
        self._handlers = {
            MatchAction.CONFIRM: self._on_confirm,
            MatchAction.DISPUTE: self._on_dispute,
            MatchAction.CANCEL: self._on_cancel,
        }

    async def cog_load(self):
        # buttons keep working on messages posted before a restart
        self.bot.add_view(self.buttons)

    # ---------- rendering helpers ----------
    async def _embed_for(self, match: Match) -> discord.Embed:
        decks = await db_decks_by_ids(self.state, [p.deck_id for p in match.players])
        return match_embed(match, decks)

    async def _list_embed(self, title: str, description: str, matches: list[Match]) -> discord.Embed:
        deck_ids = [p.deck_id for m in matches for p in m.players]
        decks = await db_decks_by_ids(self.state, deck_ids)
        return match_list_embed(title, description, matches, decks)

    async def _resolve_channel(self, channel_id) -> Optional[discord.abc.GuildChannel]:
        if not channel_id:
            return None
        channel = self.bot.get_channel(int(channel_id))
        if channel is None:
            channel = await self.bot.fetch_channel(int(channel_id))
        return channel

    async def _refresh_message(self, match: Match):
        """Best-effort re-render of a match message after an out-of-band change."""
        try:
            channel = await self._resolve_channel(match.channel_id)
            if channel is None or not match.message_id:
                return
            message = channel.get_partial_message(int(match.message_id))
            await message.edit(embed=await self._embed_for(match), view=None if match.finalized else self.buttons)
        except Exception as exc:
            self.logger.debug("[match] could not refresh message for %s: %s", match.id, exc)

    async def _cleanup(self, match: Match):
        """Delete the match message and dispute thread; failures are ignored."""
        if match.message_id:
            try:
                channel = await self._resolve_channel(match.channel_id)
                if channel is not None:
                    await channel.get_partial_message(int(match.message_id)).delete()
            except Exception as exc:
                self.logger.debug("[match] could not delete message for %s: %s", match.id, exc)
        if match.dispute_thread_id:
            try:
                thread = await self._resolve_channel(match.dispute_thread_id)
                if thread is not None:
                    await thread.delete()
            except Exception as exc:
                self.logger.debug("[match] could not delete dispute thread for %s: %s", match.id, exc)

    # ---------- buttons ----------
    async def dispatch_match_action(self, interaction: discord.Interaction, action: MatchAction):
        try:
            match = await match_for_message(self.state, interaction.message.id) if interaction.message else None
            if not match:
                return await send_private(interaction, "That match no longer exists.")
            await self._handlers[action](interaction, match)
        except Exception as exc:
            await report_failure(interaction, exc, self.logger)

    async def _on_confirm(self, interaction: discord.Interaction, match: Match):
        outcome = await confirm_match(self.state, match.id, interaction.user.id)
        if not outcome.changed:
            return await send_private(interaction, "You have already confirmed this match.")
        await interaction.response.edit_message(
            embed=await self._embed_for(outcome.match),
            view=None if outcome.match.finalized else self.buttons,
        )
        if outcome.finalized:
            await interaction.followup.send("Every player has confirmed. The match has been recorded.", ephemeral=True)

    async def _on_dispute(self, interaction: discord.Interaction, match: Match):
        match = await open_dispute(self.state, match.id, interaction.user.id)
        if match.dispute_thread_id:
            try:
                await self._resolve_channel(match.dispute_thread_id)
                return await send_private(interaction, f"This match is already disputed in <#{match.dispute_thread_id}>.")
            except discord.NotFound:
                pass  # thread was deleted by hand; open a new one

        await interaction.response.defer(ephemeral=True, thinking=True)
        thread = await interaction.message.create_thread(name=f"Match Dispute ({match.id})")
        config = await db_config_get(self.state, match.guild_id)
        mentions = match_mentions(match)
        if config.dispute_role_id:
            mentions += f", <@&{config.dispute_role_id}>"
        await thread.send(
            f"{mentions}\n<@{interaction.user.id}> disputed this match. "
            "Please discuss it here; a moderator can accept or delete it once resolved.",
            allowed_mentions=discord.AllowedMentions(users=True, roles=True),
        )
        match = await record_dispute_thread(self.state, match.id, thread.id)
        await self._refresh_message(match)
        await interaction.followup.send(f"The match has been disputed in {thread.mention}.", ephemeral=True)

    async def _on_cancel(self, interaction: discord.Interaction, match: Match):
        deleted = await cancel_match(self.state, match.id, interaction.user.id)
        await send_private(interaction, "The match has been cancelled.")
        await self._cleanup(deleted)

    # ---------- logging ----------
    async def _log(self, interaction: discord.Interaction, others: list[Optional[discord.Member]], kind: ResultKind):
        other_ids = [m.id for m in others if m is not None]

        async def post(match: Match) -> int:
            await interaction.response.send_message(
                content=match_mentions(match),
                embed=await self._embed_for(match),
                view=self.buttons,
                allowed_mentions=discord.AllowedMentions(users=True),
            )
            message = await interaction.original_response()
            return message.id

        await create_match(self.state, interaction.guild_id, interaction.channel_id,
                           interaction.user.id, other_ids, kind, post)

    @app_commands.command(name="log", description="Logs a match with you as the winner.")
    @app_commands.guild_only()
    @app_commands.rename(player_1="player-1", player_2="player-2", player_3="player-3")
    @app_commands.describe(player_1="First player other than you.", player_2="Second player other than you.",
                           player_3="Third player other than you.")
    async def log_win(self, interaction: discord.Interaction, player_1: discord.Member, player_2: discord.Member,
                      player_3: Optional[discord.Member] = None):
        await self._log(interaction, [player_1, player_2, player_3], ResultKind.WIN)

    @app_commands.command(name="draw", description="Logs a match that ended as a draw.")
    @app_commands.guild_only()
    @app_commands.rename(player_1="player-1", player_2="player-2", player_3="player-3")
    @app_commands.describe(player_1="First player other than you.", player_2="Second player other than you.",
                           player_3="Third player other than you.")
    async def log_draw(self, interaction: discord.Interaction, player_1: discord.Member, player_2: discord.Member,
                       player_3: Optional[discord.Member] = None):
        await self._log(interaction, [player_1, player_2, player_3], ResultKind.DRAW)

    # ---------- /match ----------
    @match_group.command(name="pending", description="Lists pending matches.")
    async def match_pending(self, interaction: discord.Interaction):
        require_manage_guild(interaction)
        matches = await pending_matches(self.state, interaction.guild_id)
        if not matches:
            return await send_private(interaction, "There are no pending matches.")
        embed = await self._list_embed("Pending Matches", "These are matches that have not been confirmed yet.", matches)
        await send_private(interaction, embed=embed)

    @match_group.command(name="disputed", description="Lists disputed matches.")
    async def match_disputed(self, interaction: discord.Interaction):
        require_manage_guild(interaction)
        matches = await disputed_matches(self.state, interaction.guild_id)
        if not matches:
            return await send_private(interaction, "There are no disputed matches.")
        embed = await self._list_embed("Disputed Matches",
                                       "These are disputed matches that have not been confirmed yet.", matches)
        await send_private(interaction, embed=embed)

    @match_group.command(name="accept", description="Accepts a match.")
    @app_commands.describe(match="Id of the match to accept.")
    async def match_accept(self, interaction: discord.Interaction, match: str):
        require_manage_guild(interaction)
        accepted = await accept_match(self.state, interaction.guild_id, match)
        await send_private(interaction, "That match has been accepted.")
        await self._refresh_message(accepted)

    @match_group.command(name="accept-all", description="Accepts all pending matches.")
    async def match_accept_all(self, interaction: discord.Interaction):
        require_manage_guild(interaction)
        matches = await pending_matches(self.state, interaction.guild_id)
        if not matches:
            return await send_private(interaction, "There are no pending matches.")

        n = len(matches)
        view = ConfirmPromptView(interaction.user.id, timeout=ACCEPT_ALL_TIMEOUT_SECONDS,
                                 confirm_label="Accept All", confirm_style=discord.ButtonStyle.success)
        prompt = notice_embed(
            "Accept All Pending Matches",
            f"You are about to accept **{n}** pending match{'' if n == 1 else 'es'}.\n\n"
            "This will confirm all pending matches for the current season. Are you sure you want to proceed?",
            COLOR_WARN,
        )
        await interaction.response.send_message(embed=prompt, view=view, ephemeral=True)

        result = await bounded_wait(view)
        if not result.responded:
            return await interaction.edit_original_response(
                embed=notice_embed("Timed Out", "The confirmation has expired. No matches were accepted.", COLOR_BAD),
                view=None,
            )
        if not result.confirmed:
            return await result.interaction.response.edit_message(
                embed=notice_embed("Cancelled", "No matches were accepted.", COLOR_BAD), view=None)

        await result.interaction.response.edit_message(
            embed=notice_embed("Accepting…", f"Accepting {n} match{'' if n == 1 else 'es'}.", COLOR_WARN), view=None)
        count = await accept_all(self.state, interaction.guild_id)
        await interaction.edit_original_response(
            embed=notice_embed("Matches Accepted",
                               f"Successfully accepted **{count}** match{'' if count == 1 else 'es'}.", COLOR_WIN),
            view=None,
        )
        for m in matches:
            after = await db_match_get(self.state, m.id)
            if after:
                await self._refresh_message(after)

    @match_group.command(name="delete", description="Deletes a match.")
    @app_commands.describe(match="Id of the match to delete.")
    async def match_delete(self, interaction: discord.Interaction, match: str):
        require_manage_guild(interaction)
        deleted = await delete_match(self.state, interaction.guild_id, match)
        await send_private(interaction, "That match has been deleted.")
        await self._cleanup(deleted)

    @match_group.command(name="list", description="Displays your matches.")
    @app_commands.describe(deck="Filter by deck.", season="Filter by season.")
    async def match_list(self, interaction: discord.Interaction, deck: Optional[str] = None, season: Optional[str] = None):
        matches = await player_matches(self.state, interaction.guild_id, interaction.user.id,
                                       deck_name=deck, season_name=season)
        constraints = " with those constraints" if deck or season else ""
        if not matches:
            return await send_private(interaction, f"You have not played any matches{constraints}.")
        embed = await self._list_embed("Your Matches", f"These are the matches that you have played in{constraints}.",
                                       matches)
        await send_private(interaction, embed=embed)


async def setup(bot: commands.Bot):
    await bot.add_cog(Matches(bot))
