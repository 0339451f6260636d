from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from ..utils import format_number
from .base import DomeCog


def _is_guild_admin(interaction: discord.Interaction) -> bool:
    user = interaction.user
    return isinstance(user, discord.Member) and user.guild_permissions.administrator


class LobbyCog(DomeCog):
    @app_commands.command(name="join", description="Enter the dome and load your profile")
    async def join(self, interaction: discord.Interaction) -> None:
        session = await self.call(
            self.service.connect,
            interaction.user.id,
            is_admin=_is_guild_admin(interaction),
        )
        await self.respond(
            interaction,
            f"Welcome to the dome. You hold {format_number(session.profile.token_balance)} tokens.",
        )

    @app_commands.command(name="leave", description="Leave the dome and save your profile")
    async def leave(self, interaction: discord.Interaction) -> None:
        if interaction.user.id not in self.service.registry:
            await self.respond(interaction, "You are not in the dome.")
            return
        saved = await self.call(self.service.disconnect, interaction.user.id)
        if saved:
            await self.respond(interaction, "Your profile has been saved. See you next time.")
        else:
            await self.respond(
                interaction, "You left the dome, but your latest progress could not be saved."
            )

    @app_commands.command(name="stats", description="Show your dome statistics")
    async def stats(self, interaction: discord.Interaction) -> None:
        stats = await self.call(self.service.stats, interaction.user.id)
        if stats is None:
            await self.respond(interaction, "Join the dome first with /join.")
            return
        embed = discord.Embed(title="Dome Statistics", colour=discord.Colour.dark_red())
        embed.add_field(name="Blood Tokens", value=format_number(stats.token_balance))
        embed.add_field(name="Kills", value=format_number(stats.total_kills))
        embed.add_field(name="Deaths", value=format_number(stats.total_deaths))
        embed.add_field(name="K/D Ratio", value=f"{stats.kill_death_ratio:.2f}")
        embed.add_field(name="Matches Played", value=format_number(stats.matches_played))
        embed.add_field(name="VIP Status", value="Active" if stats.is_vip else "Inactive")
        embed.add_field(
            name="Collection",
            value=(
                f"{stats.owned_weapons} weapon(s), {stats.owned_skins} skin(s), "
                f"{stats.owned_armor} armor piece(s)"
            ),
            inline=False,
        )
        if stats.unknown_equipped:
            embed.set_footer(
                text="Retired items equipped: " + ", ".join(stats.unknown_equipped)
            )
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(LobbyCog(bot))
