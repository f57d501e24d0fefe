from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.state import AppState
from core.config import ConfigField, set_or_get, unset_dispute_role
from core.interaction import send_private, require_manage_guild
from core.render import notice_embed

# field -> (sentence subject, how to show the value)
FIELD_TEXT = {
    ConfigField.MINIMUM_GAMES:   ("The minimum games per player", str),
    ConfigField.POINTS_GAINED:   ("The points gained per match win", str),
    ConfigField.POINTS_LOST:     ("The points lost per match loss", str),
    ConfigField.POINTS_PER_DRAW: ("The points gained per match logged as a draw", str),
    ConfigField.BASE_POINTS:     ("The points added to values when displayed", str),
    ConfigField.DECK_LIMIT:      ("The maximum decks a player can have", str),
    ConfigField.ENABLE_DRAWS:    ("Draws", lambda v: "enabled" if v else "disabled"),
    ConfigField.DISPUTE_ROLE:    ("The dispute role", lambda v: f"<@&{v}>" if v else "unset"),
}


def _sentence(field: ConfigField, value, changed: bool) -> str:
    subject, fmt = FIELD_TEXT[field]
    verb = "are" if field is ConfigField.ENABLE_DRAWS else "is"
    return f"{subject} {verb} {'now' if changed else 'currently'} {fmt(value)}."


class Config(commands.Cog):
    config_group = app_commands.Group(
        name="config",
        description="Manages the config.",
        guild_only=True,
        default_permissions=discord.Permissions(manage_guild=True),
    )

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.state: AppState = bot.state

    async def _handle(self, interaction: discord.Interaction, field: ConfigField, value=None):
        require_manage_guild(interaction)
        effective = await set_or_get(self.state, interaction.guild_id, field, value)
        await send_private(interaction, embed=notice_embed("Config", _sentence(field, effective, value is not None)))

    @config_group.command(name="minimum-games", description="Games required to be seen on the leaderboard.")
    @app_commands.describe(amount="Number of games.")
    async def minimum_games(self, interaction: discord.Interaction, amount: Optional[app_commands.Range[int, 0]] = None):
        await self._handle(interaction, ConfigField.MINIMUM_GAMES, amount)

    @config_group.command(name="points-gained", description="Points gained after winning a match.")
    @app_commands.describe(amount="Number of points gained.")
    async def points_gained(self, interaction: discord.Interaction, amount: Optional[app_commands.Range[int, 0]] = None):
        await self._handle(interaction, ConfigField.POINTS_GAINED, amount)

    @config_group.command(name="points-lost", description="Points lost after losing a match.")
    @app_commands.describe(amount="Number of points lost.")
    async def points_lost(self, interaction: discord.Interaction, amount: Optional[app_commands.Range[int, 0]] = None):
        await self._handle(interaction, ConfigField.POINTS_LOST, amount)

    @config_group.command(name="points-per-draw", description="Points gained after drawing a match.")
    @app_commands.describe(amount="Number of points gained.")
    async def points_per_draw(self, interaction: discord.Interaction, amount: Optional[app_commands.Range[int, 0]] = None):
        await self._handle(interaction, ConfigField.POINTS_PER_DRAW, amount)

    @config_group.command(name="base-points", description="Points added to values when displayed.")
    @app_commands.describe(amount="Number of points added.")
    async def base_points(self, interaction: discord.Interaction, amount: Optional[int] = None):
        await self._handle(interaction, ConfigField.BASE_POINTS, amount)

    @config_group.command(name="enable-draws", description="Whether or not players are allowed to log a match as a draw.")
    @app_commands.describe(enabled="Whether or not draws are enabled.")
    async def enable_draws(self, interaction: discord.Interaction, enabled: Optional[bool] = None):
        await self._handle(interaction, ConfigField.ENABLE_DRAWS, enabled)

    @config_group.command(name="deck-limit", description="Maximum decks a player can have.")
    @app_commands.describe(amount="Number of decks.")
    async def deck_limit(self, interaction: discord.Interaction, amount: Optional[app_commands.Range[int, 0]] = None):
        await self._handle(interaction, ConfigField.DECK_LIMIT, amount)

    @config_group.command(name="dispute-role", description="Role added to dispute threads.")
    @app_commands.describe(role="Dispute role.", unset="Removes the dispute role.")
    async def dispute_role(self, interaction: discord.Interaction, role: Optional[discord.Role] = None,
                           unset: Optional[bool] = None):
        if unset:
            require_manage_guild(interaction)
            config = await unset_dispute_role(self.state, interaction.guild_id)
            text = _sentence(ConfigField.DISPUTE_ROLE, config.dispute_role_id, True)
            return await send_private(interaction, embed=notice_embed("Config", text))
        await self._handle(interaction, ConfigField.DISPUTE_ROLE, str(role.id) if role else None)


async def setup(bot: commands.Bot):
    await bot.add_cog(Config(bot))
