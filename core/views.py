from __future__ import annotations
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import discord


class MatchAction(str, Enum):
    CONFIRM = "match:confirm"
    DISPUTE = "match:dispute"
    CANCEL = "match:cancel"


MatchDispatch = Callable[[discord.Interaction, MatchAction], Awaitable[None]]


class MatchButtonsView(discord.ui.View):
    """Persistent buttons on a logged match; the handler is looked up by action."""

    def __init__(self, dispatch: MatchDispatch):
        super().__init__(timeout=None)
        self.dispatch = dispatch

    @discord.ui.button(label="Confirm", style=discord.ButtonStyle.success, custom_id=MatchAction.CONFIRM.value)
    async def confirm(self, interaction: discord.Interaction, _: discord.ui.Button):
        await self.dispatch(interaction, MatchAction.CONFIRM)

    @discord.ui.button(label="Dispute", style=discord.ButtonStyle.danger, custom_id=MatchAction.DISPUTE.value)
    async def dispute(self, interaction: discord.Interaction, _: discord.ui.Button):
        await self.dispatch(interaction, MatchAction.DISPUTE)

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.danger, custom_id=MatchAction.CANCEL.value)
    async def cancel(self, interaction: discord.Interaction, _: discord.ui.Button):
        await self.dispatch(interaction, MatchAction.CANCEL)


@dataclass
class PromptResult:
    responded: bool
    choice: Optional[bool] = None                        # True = confirm, False = cancel
    interaction: Optional[discord.Interaction] = None    # the press to answer, when responded

    @property
    def confirmed(self) -> bool:
        return self.responded and bool(self.choice)

    @classmethod
    def timed_out(cls) -> "PromptResult":
        return cls(responded=False)


class ConfirmPromptView(discord.ui.View):
    """Yes/no prompt only the requester can answer."""

    def __init__(
        self,
        requester_id: int,
        *,
        timeout: float = 60,
        confirm_label: str = "Confirm",
        cancel_label: str = "Cancel",
        confirm_style: discord.ButtonStyle = discord.ButtonStyle.danger,
    ):
        super().__init__(timeout=timeout)
        self.requester_id = int(requester_id)
        self.choice: Optional[bool] = None
        self.interaction: Optional[discord.Interaction] = None
        self.confirm_button.label = confirm_label
        self.confirm_button.style = confirm_style
        self.cancel_button.label = cancel_label

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        # other users' presses are dropped, not answered
        return interaction.user.id == self.requester_id

    def _resolve(self, interaction: discord.Interaction, choice: bool):
        if self.choice is not None:
            return
        self.choice = choice
        self.interaction = interaction
        for child in self.children:
            child.disabled = True
        self.stop()

    @discord.ui.button(label="Confirm", style=discord.ButtonStyle.danger)
    async def confirm_button(self, interaction: discord.Interaction, _: discord.ui.Button):
        self._resolve(interaction, True)

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary)
    async def cancel_button(self, interaction: discord.Interaction, _: discord.ui.Button):
        self._resolve(interaction, False)


async def bounded_wait(view: ConfirmPromptView, grace: float = 1.0) -> PromptResult:
    """Wait for the requester's answer or the view's timeout, whichever comes first.

    discord.py only arms a view's own timeout once it is attached to a sent
    message, so the wait is also capped at ``view.timeout + grace``.
    """
    limit = view.timeout + grace if view.timeout is not None else None
    try:
        timed_out = await asyncio.wait_for(view.wait(), timeout=limit)
    except asyncio.TimeoutError:
        view.stop()
        return PromptResult.timed_out()
    if timed_out or view.choice is None:
        return PromptResult.timed_out()
    return PromptResult(responded=True, choice=view.choice, interaction=view.interaction)
