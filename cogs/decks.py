from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.state import AppState
from core.db import db_deck_list
from core.decks import (
    create_deck, rename_deck, delete_deck, set_deck_list, use_deck, list_decks, deck_records,
)
from core.interaction import send_private
from core.render import deck_label, COLOR_INFO


class Decks(commands.Cog):
    deck_group = app_commands.Group(name="deck", description="Manages your decks.", guild_only=True)

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        self.state: AppState = bot.state

    async def _deck_autocomplete(self, interaction: discord.Interaction, current: str) -> list[app_commands.Choice[str]]:
        current_lower = (current or "").lower()
        decks = await db_deck_list(self.state, interaction.guild_id, interaction.user.id)
        return [app_commands.Choice(name=d.name, value=d.name) for d in decks if current_lower in d.name.lower()][:25]

    @deck_group.command(name="create", description="Creates a new deck.")
    @app_commands.describe(name="Name of the deck.", decklist="Link to the deck list.")
    async def deck_create(self, interaction: discord.Interaction, name: app_commands.Range[str, 1, 100],
                          decklist: Optional[str] = None):
        deck = await create_deck(self.state, interaction.guild_id, interaction.user.id, name, decklist)
        await send_private(interaction, f"Created deck {deck_label(deck)}. Use `/deck use` to play it.")

    @deck_group.command(name="rename", description="Renames one of your decks.")
    @app_commands.rename(new_name="new-name")
    @app_commands.describe(name="Current name of the deck.", new_name="New name of the deck.")
    async def deck_rename(self, interaction: discord.Interaction, name: str, new_name: app_commands.Range[str, 1, 100]):
        deck = await rename_deck(self.state, interaction.guild_id, interaction.user.id, name, new_name)
        await send_private(interaction, f"Renamed **{name}** to {deck_label(deck)}.")

    @deck_group.command(name="delete", description="Deletes one of your decks.")
    @app_commands.describe(name="Name of the deck.")
    async def deck_delete(self, interaction: discord.Interaction, name: str):
        deck = await delete_deck(self.state, interaction.guild_id, interaction.user.id, name)
        await send_private(interaction, f"Deleted deck **{deck.name}**.")

    @deck_group.command(name="decklist", description="Sets or removes the deck list link of one of your decks.")
    @app_commands.describe(name="Name of the deck.", decklist="Link to the deck list; leave empty to remove it.")
    async def deck_decklist(self, interaction: discord.Interaction, name: str, decklist: Optional[str] = None):
        deck = await set_deck_list(self.state, interaction.guild_id, interaction.user.id, name, decklist)
        if deck.deck_list:
            await send_private(interaction, f"Deck list for {deck_label(deck)} updated.")
        else:
            await send_private(interaction, f"Removed the deck list from **{deck.name}**.")

    @deck_group.command(name="use", description="Selects the deck you are currently playing.")
    @app_commands.describe(name="Name of the deck.")
    async def deck_use(self, interaction: discord.Interaction, name: str):
        deck = await use_deck(self.state, interaction.guild_id, interaction.user.id, name)
        await send_private(interaction, f"You are now playing {deck_label(deck)}.")

    @deck_group.command(name="list", description="Lists your decks.")
    async def deck_list(self, interaction: discord.Interaction):
        decks, current_id = await list_decks(self.state, interaction.guild_id, interaction.user.id)
        if not decks:
            return await send_private(interaction, "You have no decks. Create one with `/deck create`.")
        lines = [f"{deck_label(d)}{' (current)' if d.id == current_id else ''}" for d in decks]
        embed = discord.Embed(title="Your Decks", description="\n".join(lines), color=COLOR_INFO)
        await send_private(interaction, embed=embed)

    @deck_group.command(name="stats", description="Shows your record with each of your decks.")
    async def deck_stats(self, interaction: discord.Interaction):
        rows = await deck_records(self.state, interaction.guild_id, interaction.user.id)
        if not rows:
            return await send_private(interaction, "You have no decks. Create one with `/deck create`.")
        embed = discord.Embed(title="Deck Statistics", color=COLOR_INFO)
        for deck, rec in rows[:25]:
            pct = (rec["wins"] / rec["games"] * 100.0) if rec["games"] else 0.0
            embed.add_field(
                name=deck.name,
                value=f"W: **{rec['wins']}** L: **{rec['losses']}** D: **{rec['draws']}**\nWin%: **{pct:.1f}%**",
                inline=True,
            )
        await send_private(interaction, embed=embed)

    @deck_rename.autocomplete("name")
    @deck_delete.autocomplete("name")
    @deck_decklist.autocomplete("name")
    @deck_use.autocomplete("name")
    async def _name_ac(self, interaction: discord.Interaction, current: str):
        return await self._deck_autocomplete(interaction, current)


async def setup(bot: commands.Bot):
    await bot.add_cog(Decks(bot))
