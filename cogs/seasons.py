from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.state import AppState
from core.interaction import send_private, require_manage_guild
from core.render import season_embed, season_list_embed
from core.seasons import (
    season_info, list_seasons, start_season, end_season, reopen_season,
    require_open_season, find_season, current_season,
)
from core.errors import SeasonAlreadyOpen, SeasonNotClosed
from core.views import ConfirmPromptView, bounded_wait

END_TIMEOUT_SECONDS = 60
REOPEN_TIMEOUT_SECONDS = 30


class Seasons(commands.Cog):
    season_group = app_commands.Group(name="season", description="Manages the current season.", guild_only=True)

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.state: AppState = bot.state

    async def _season_autocomplete(self, interaction: discord.Interaction, current: str) -> list[app_commands.Choice[str]]:
        current_lower = (current or "").lower()
        seasons = await list_seasons(self.state, interaction.guild_id)
        return [app_commands.Choice(name=s.name, value=s.name)
                for s in seasons if current_lower in s.name.lower()][:25]

    @season_group.command(name="info", description="Shows info about a season.")
    @app_commands.describe(name="Name of the season.")
    async def season_info_cmd(self, interaction: discord.Interaction, name: Optional[str] = None):
        season, played = await season_info(self.state, interaction.guild_id, name)
        await send_private(interaction, embed=season_embed(season, played))

    @season_info_cmd.autocomplete("name")
    async def _info_name_ac(self, interaction: discord.Interaction, current: str):
        return await self._season_autocomplete(interaction, current)

    @season_group.command(name="list", description="Lists every season on this server.")
    async def season_list(self, interaction: discord.Interaction):
        seasons = await list_seasons(self.state, interaction.guild_id)
        await send_private(interaction, embed=season_list_embed(seasons))

    @season_group.command(name="start", description="Starts a new season.")
    @app_commands.describe(name="Name of the season.")
    async def season_start(self, interaction: discord.Interaction, name: str):
        require_manage_guild(interaction)
        await start_season(self.state, interaction.guild_id, name)
        await send_private(interaction, "The season has been started.")

    @season_group.command(name="end", description="Ends the current season.")
    async def season_end(self, interaction: discord.Interaction):
        require_manage_guild(interaction)
        season = await require_open_season(self.state, interaction.guild_id)

        view = ConfirmPromptView(interaction.user.id, timeout=END_TIMEOUT_SECONDS)
        await interaction.response.send_message(
            f"You are about to end season {season.name}. Are you sure?", view=view, ephemeral=True)

        result = await bounded_wait(view)
        if not result.responded:
            return await interaction.edit_original_response(
                content="Confirmation timed out. Request to end the season cancelled.", view=None)
        if not result.confirmed:
            return await result.interaction.response.edit_message(
                content="Request to end the season cancelled.", view=None)

        await result.interaction.response.edit_message(content="Ending the season…", view=None)
        await end_season(self.state, interaction.guild_id, season.id)
        await interaction.edit_original_response(content="The current season is now over.")

    @season_group.command(name="reopen", description="Reopens a season that has ended.")
    @app_commands.describe(name="Name of the season to reopen.")
    async def season_reopen(self, interaction: discord.Interaction, name: str):
        require_manage_guild(interaction)
        target = await find_season(self.state, interaction.guild_id, name)
        # fail fast before prompting; the store re-checks on write
        if target.is_open:
            raise SeasonNotClosed()
        if await current_season(self.state, interaction.guild_id):
            raise SeasonAlreadyOpen()

        view = ConfirmPromptView(interaction.user.id, timeout=REOPEN_TIMEOUT_SECONDS)
        await interaction.response.send_message(
            f"You are about to reopen season {target.name}. New matches will count toward it. Are you sure?",
            view=view, ephemeral=True)

        result = await bounded_wait(view)
        if not result.responded:
            return await interaction.edit_original_response(
                content="Confirmation timed out. Request to reopen the season cancelled.", view=None)
        if not result.confirmed:
            return await result.interaction.response.edit_message(
                content="Request to reopen the season cancelled.", view=None)

        await result.interaction.response.edit_message(content="Reopening the season…", view=None)
        season = await reopen_season(self.state, interaction.guild_id, target.name)
        await interaction.edit_original_response(content=f"Season {season.name} has been reopened.")

    @season_reopen.autocomplete("name")
    async def _reopen_name_ac(self, interaction: discord.Interaction, current: str):
        return await self._season_autocomplete(interaction, current)


async def setup(bot: commands.Bot):
    await bot.add_cog(Seasons(bot))
