from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from ..utils import format_number
from .base import DomeCog

log = logging.getLogger(__name__)


def require_admin() -> app_commands.Check:
    """Check ensuring the invoker is a guild administrator or the bot owner."""

    async def predicate(interaction: discord.Interaction) -> bool:
        guild = interaction.guild
        if guild is None:
            raise app_commands.CheckFailure("This command can only be used in a guild.")

        member: discord.Member | None
        user = interaction.user
        if isinstance(user, discord.Member):
            member = user
        else:
            member = guild.get_member(user.id)
            if member is None:
                try:
                    member = await guild.fetch_member(user.id)
                except discord.HTTPException:
                    member = None

        if member is not None and member.guild_permissions.administrator:
            return True

        client = interaction.client
        if isinstance(client, commands.Bot) and await client.is_owner(user):
            return True

        raise app_commands.CheckFailure(
            "Only server administrators or the bot owner may use this command."
        )

    return app_commands.check(predicate)


def _parse_identity(raw: str) -> int:
    text = raw.strip()
    if text.startswith("<@") and text.endswith(">"):
        text = text[2:-1].lstrip("!")
    if not text.isdigit():
        raise app_commands.AppCommandError("Player identity must be a numeric ID or a mention.")
    identity = int(text)
    if identity >= 2**64:
        raise app_commands.AppCommandError("Player identity is out of range.")
    return identity


class AdminCog(DomeCog):
    admin = app_commands.Group(
        name="dome_admin",
        description="Administrative dome commands",
        default_permissions=discord.Permissions(administrator=True),
        guild_only=True,
    )

    @admin.command(name="grant_skin", description="Give a skin to a connected player")
    @app_commands.describe(player="Player ID or mention", skin_id="Skin to grant")
    @require_admin()
    async def grant_skin(
        self, interaction: discord.Interaction, player: str, skin_id: str
    ) -> None:
        target = _parse_identity(player)
        result = await self.call(
            self.service.admin_grant_skin, interaction.user.id, target, skin_id
        )
        await self.send_result(interaction, result, f"Granted skin `{skin_id}` to {target}.")

    @admin.command(name="reset", description="Reset a player's profile to a fresh start")
    @app_commands.describe(player="Player ID or mention")
    @require_admin()
    async def reset(self, interaction: discord.Interaction, player: str) -> None:
        target = _parse_identity(player)
        result = await self.call(
            self.service.admin_reset_profile, interaction.user.id, target
        )
        await self.send_result(
            interaction,
            result,
            f"Reset the profile of {target}; balance is now {format_number(result.balance)}.",
        )

    @admin.command(name="reload_catalog", description="Reload weapons.toml and armor.toml")
    @require_admin()
    async def reload_catalog(self, interaction: discord.Interaction) -> None:
        catalog = await self.call(self.service.reload_catalog)
        counts = ", ".join(f"{value} {key}" for key, value in catalog.summary().items())
        await self.respond(interaction, f"Catalog reloaded from {catalog.source}: {counts}.")

    @admin.command(name="award_kill", description="Credit a kill between connected players")
    @app_commands.describe(attacker="Player credited with the kill", victim="Player who died")
    @require_admin()
    async def award_kill(
        self, interaction: discord.Interaction, attacker: str, victim: str | None = None
    ) -> None:
        attacker_id = _parse_identity(attacker)
        victim_id = _parse_identity(victim) if victim else None
        paid = await self.call(self.service.award_kill, attacker_id, victim_id)
        await self.respond(interaction, f"Awarded {format_number(paid)} tokens to {attacker_id}.")

    @admin.command(name="counters", description="Show economy event counters")
    @require_admin()
    async def counters(self, interaction: discord.Interaction) -> None:
        snapshot = self.service.counters.snapshot()
        lines = [f"{key.replace('_', ' ')}: {format_number(value)}" for key, value in snapshot.items()]
        lines.append(f"active sessions: {len(self.service.registry)}")
        await self.respond(interaction, "\n".join(lines))

    @admin.command(name="save_all", description="Save every connected player's profile now")
    @require_admin()
    async def save_all(self, interaction: discord.Interaction) -> None:
        saved = await self.call(self.service.autosave)
        await self.respond(interaction, f"Saved {format_number(saved)} profile(s).")

    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure) or type(error) is app_commands.AppCommandError:
            await self.respond(interaction, str(error))
            return
        log.error("Admin command failed", exc_info=error)
        await self.respond(interaction, "Something went wrong running that command.")


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(AdminCog(bot))
