"""Shared helpers for cogs."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, TypeVar

import discord
from discord import app_commands
from discord.ext import commands

from ..catalog import Catalog
from ..commands import CommandService
from ..economy import EconomyResult, Outcome, SelectionResult, WagerResult
from ..models.catalog import ItemKind
from ..utils import format_duration, format_number

log = logging.getLogger(__name__)

T = TypeVar("T")

OUTCOME_MESSAGES: dict[Outcome, str] = {
    Outcome.INSUFFICIENT_FUNDS: "You do not have enough tokens for that.",
    Outcome.ALREADY_OWNED: "You already own that.",
    Outcome.ITEM_NOT_FOUND: "That item is not in the catalog.",
    Outcome.NOT_OWNED: "You do not own that yet.",
    Outcome.INVALID_BET: "Bets must be between 10 and 100 tokens.",
    Outcome.COOLDOWN_ACTIVE: "The dice are still cooling down.",
    Outcome.INVALID_AMOUNT: "Amounts cannot be negative.",
    Outcome.INVALID_SLOT: "That slot does not exist.",
    Outcome.PRICE_MISMATCH: "The price has changed. Check the catalog and try again.",
    Outcome.THROTTLED: "Slow down! You are sending commands too quickly.",
    Outcome.NO_SESSION: "That player is not connected.",
}

WEAPON_SLOT_CHOICES: list[app_commands.Choice[str]] = [
    app_commands.Choice(name="Primary", value="primary"),
    app_commands.Choice(name="Secondary", value="secondary"),
]

DIRECTION_CHOICES: list[app_commands.Choice[int]] = [
    app_commands.Choice(name="Next", value=1),
    app_commands.Choice(name="Previous", value=-1),
]


def describe_failure(result: EconomyResult | SelectionResult | WagerResult) -> str:
    if isinstance(result, WagerResult) and result.outcome is Outcome.COOLDOWN_ACTIVE:
        return f"The dice are still cooling down. Try again in {format_duration(result.retry_after)}."
    if isinstance(result, EconomyResult) and result.outcome is Outcome.INSUFFICIENT_FUNDS:
        return (
            f"That costs {format_number(result.price)} tokens but you only have "
            f"{format_number(result.balance)}."
        )
    if isinstance(result, EconomyResult) and result.outcome is Outcome.PRICE_MISMATCH:
        return f"The current price is {format_number(result.price)} tokens. Try again."
    return OUTCOME_MESSAGES.get(result.outcome, "That did not work.")


def id_choices(catalog: Catalog, kind: ItemKind, current: str) -> list[app_commands.Choice[str]]:
    query = current.lower()
    choices: list[app_commands.Choice[str]] = []
    for item_id in catalog.all_ids(kind):
        item = catalog.get(kind, item_id)
        name = getattr(item, "display_name", item_id)
        if query and query not in item_id.lower() and query not in name.lower():
            continue
        choices.append(app_commands.Choice(name=f"{name} ({item_id})", value=item_id))
        if len(choices) >= 25:
            break
    return choices


class DomeCog(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def service(self) -> CommandService:
        return self.bot.service  # type: ignore[attr-defined]

    @property
    def catalog(self) -> Catalog:
        return self.service.catalog

    async def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking service call off the event loop."""

        return await asyncio.to_thread(functools.partial(func, *args, **kwargs))

    async def respond(
        self, interaction: discord.Interaction, message: str, *, ephemeral: bool = True
    ) -> None:
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=ephemeral)
        else:
            await interaction.response.send_message(message, ephemeral=ephemeral)

    async def send_result(
        self,
        interaction: discord.Interaction,
        result: EconomyResult | SelectionResult | WagerResult,
        success_message: str,
    ) -> None:
        if result.success:
            await self.respond(interaction, success_message)
        else:
            await self.respond(interaction, describe_failure(result))


__all__ = [
    "DIRECTION_CHOICES",
    "DomeCog",
    "OUTCOME_MESSAGES",
    "WEAPON_SLOT_CHOICES",
    "describe_failure",
    "id_choices",
]
