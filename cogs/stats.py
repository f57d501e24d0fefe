from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.state import AppState
from core.db import (
    db_config_get, db_profile_get, db_profiles_ranked, db_decks_by_ids,
    db_player_record, db_season_games_by_player,
)
from core.points import leaderboard, points_label
from core.render import deck_label, points_text, COLOR_INFO
from core.seasons import current_season, require_open_season


def _win_pct(wins: int, games: int) -> float:
    return (wins / games * 100.0) if games > 0 else 0.0


class Stats(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.state: AppState = bot.state

    @app_commands.command(name="profile", description="View a player's points, deck and record this season.")
    @app_commands.guild_only()
    @app_commands.describe(user="(Optional) Whose profile to view; defaults to you")
    async def profile(self, interaction: discord.Interaction, user: Optional[discord.Member] = None):
        target = user or interaction.user
        gid = interaction.guild_id
        config = await db_config_get(self.state, gid)
        profile = await db_profile_get(self.state, gid, target.id)
        decks = await db_decks_by_ids(self.state, [profile.current_deck_id])
        season = await current_season(self.state, gid)

        embed = discord.Embed(title=f"{target.display_name}'s Profile", color=COLOR_INFO)
        if target.display_avatar:
            embed.set_thumbnail(url=target.display_avatar.url)
        embed.add_field(name="Points", value=points_text(profile.points, config), inline=True)
        embed.add_field(name="Deck", value=deck_label(decks.get(profile.current_deck_id)), inline=True)

        if season:
            rec = await db_player_record(self.state, gid, target.id, season.id)
            embed.add_field(
                name=f"Record ({season.name})",
                value=(f"W: **{rec['wins']}** L: **{rec['losses']}** D: **{rec['draws']}**\n"
                       f"Win%: **{_win_pct(rec['wins'], rec['games']):.1f}%**"),
                inline=False,
            )
        else:
            embed.set_footer(text="There is no current season.")

        await interaction.response.send_message(embed=embed)

    @app_commands.command(name="leaderboard", description="Top players of the current season.")
    @app_commands.guild_only()
    async def leaderboard_cmd(self, interaction: discord.Interaction):
        gid = interaction.guild_id
        season = await require_open_season(self.state, gid)
        config = await db_config_get(self.state, gid)
        profiles = await db_profiles_ranked(self.state, gid)
        games = await db_season_games_by_player(self.state, gid, season.id)
        rows = leaderboard(profiles, games, config)

        embed = discord.Embed(title=f"Leaderboard: {season.name}", color=COLOR_INFO)
        if rows:
            embed.description = "\n".join(
                f"**{i}.** <@{p.user_id}> {points_label(p.points, config)} ({n} games)"
                for i, (p, n) in enumerate(rows, start=1)
            )
        else:
            embed.description = f"Nobody has played {config.minimum_games} confirmed games this season yet."
        embed.set_footer(text=f"Players need at least {config.minimum_games} games to be listed.")
        await interaction.response.send_message(embed=embed)


async def setup(bot: commands.Bot):
    await bot.add_cog(Stats(bot))
