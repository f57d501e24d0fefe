from __future__ import annotations
import logging
from typing import Optional

import discord
from discord import app_commands

from core.errors import ThoracleError, PermissionDenied, GuildOnly

GENERIC_FAILURE = "An error occurred while executing this command."


async def send_private(
    interaction: discord.Interaction,
    content: Optional[str] = None,
    *,
    embed: Optional[discord.Embed] = None,
):
    """Ephemeral reply that works whether or not the interaction was already answered."""
    kwargs = {"ephemeral": True}
    if content is not None:
        kwargs["content"] = content
    if embed is not None:
        kwargs["embed"] = embed
    if interaction.response.is_done():
        await interaction.followup.send(**kwargs)
    else:
        await interaction.response.send_message(**kwargs)


def require_manage_guild(interaction: discord.Interaction):
    perms = interaction.permissions
    if interaction.guild is None or perms is None or not perms.manage_guild:
        raise PermissionDenied()


def unwrap_app_command_error(error: BaseException) -> BaseException:
    """The exception to report for a failed slash command."""
    if isinstance(error, app_commands.CommandInvokeError):
        return error.original
    if isinstance(error, app_commands.MissingPermissions):
        return PermissionDenied()
    if isinstance(error, app_commands.NoPrivateMessage):
        return GuildOnly()
    return error


async def report_failure(interaction: discord.Interaction, error: BaseException, logger: logging.Logger):
    """Answer privately; expected failures show their message, anything else is logged."""
    if isinstance(error, ThoracleError):
        message = error.user_message
    else:
        logger.error("[interaction] unhandled error", exc_info=error)
        message = GENERIC_FAILURE
    try:
        await send_private(interaction, message)
    except discord.HTTPException as exc:
        logger.warning("[interaction] failed to send error reply: %s", exc)
