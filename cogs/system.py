import discord
from discord.ext import commands
from discord import app_commands

from core.render import COLOR_INFO


class System(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @app_commands.command(name="ping", description="Bot up?")
    async def ping(self, interaction: discord.Interaction):
        await interaction.response.send_message(f"Pong! ({self.bot.latency * 1000:.0f} ms)", ephemeral=True)

    @app_commands.command(name="info", description="About this bot.")
    async def info(self, interaction: discord.Interaction):
        embed = discord.Embed(
            title="Thoracle",
            description=("Tracks league matches for 3 and 4 player games. "
                         "Log a win with `/log`, a draw with `/draw`, and check standings with `/leaderboard`."),
            color=COLOR_INFO,
        )
        support = self.bot.state.support_server
        if support:
            embed.add_field(name="Support", value=support, inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(System(bot))
