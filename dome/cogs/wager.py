from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from ..economy import WAGER_MAX_BET, WAGER_MIN_BET, WagerOutcome
from ..utils import format_number
from .base import DomeCog

_RESULT_TEXT = {
    WagerOutcome.WIN: "You win {payout} tokens!",
    WagerOutcome.LOSE: "The house wins. You lose {bet} tokens.",
    WagerOutcome.TIE: "A tie. Your {bet} tokens are refunded.",
}


class WagerCog(DomeCog):
    @app_commands.command(name="dice", description="Roll against the house for tokens")
    @app_commands.describe(bet=f"Tokens to bet ({WAGER_MIN_BET}-{WAGER_MAX_BET})")
    async def dice(
        self,
        interaction: discord.Interaction,
        bet: app_commands.Range[int, WAGER_MIN_BET, WAGER_MAX_BET],
    ) -> None:
        result = await self.call(self.service.play_wager, interaction.user.id, bet)
        if not result.success or result.result is None:
            await self.send_result(interaction, result, "")
            return
        summary = _RESULT_TEXT[result.result].format(
            payout=format_number(result.payout), bet=format_number(result.bet)
        )
        await self.respond(
            interaction,
            f"🎲 You rolled **{result.player_roll}**, the house rolled **{result.house_roll}**. "
            f"{summary} Balance: {format_number(result.balance)}.",
            ephemeral=False,
        )


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(WagerCog(bot))
