from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from ..models.catalog import ARMOR_SLOT_ORDER, AttachmentSlot, ItemKind
from .base import DIRECTION_CHOICES, WEAPON_SLOT_CHOICES, DomeCog, id_choices

ARMOR_SLOT_CHOICES: list[app_commands.Choice[str]] = [
    app_commands.Choice(name=slot.value.title(), value=slot.value) for slot in ARMOR_SLOT_ORDER
]

ATTACHMENT_SLOT_CHOICES: list[app_commands.Choice[str]] = [
    app_commands.Choice(name=slot.value.title(), value=slot.value) for slot in AttachmentSlot
]


class LoadoutCog(DomeCog):
    @app_commands.command(name="loadout", description="Show your active loadout")
    async def loadout(self, interaction: discord.Interaction) -> None:
        loadout = await self.call(self.service.loadout_snapshot, interaction.user.id)
        if loadout is None:
            await self.respond(interaction, "Join the dome first with /join.")
            return
        lines = []
        for slot in ("primary", "secondary"):
            weapon_id = loadout.weapon_for(slot)
            weapon = self.catalog.weapons.get(weapon_id)
            name = weapon.display_name if weapon else weapon_id
            skin = loadout.skin_assignments.get(weapon_id, "0")
            attachments = loadout.attachments_for(slot)
            extras = ", ".join(f"{key}: {value}" for key, value in sorted(attachments.items()))
            line = f"**{slot.title()}**: {name} (skin `{skin}`)"
            if extras:
                line += f" [{extras}]"
            lines.append(line)
        for slot in ARMOR_SLOT_ORDER:
            lines.append(f"**{slot.value.title()}**: {loadout.armor_in(slot) or 'none'}")
        embed = discord.Embed(title=f"Loadout: {loadout.name}", description="\n".join(lines))
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="equip_skin", description="Apply an owned skin to a weapon slot")
    @app_commands.describe(weapon_slot="Weapon slot to skin", skin_id="Skin to apply (0 for default)")
    @app_commands.choices(weapon_slot=WEAPON_SLOT_CHOICES)
    async def equip_skin(
        self, interaction: discord.Interaction, weapon_slot: str, skin_id: str
    ) -> None:
        result = await self.call(
            self.service.equip_skin, interaction.user.id, weapon_slot, skin_id
        )
        await self.send_result(interaction, result, f"Equipped skin `{skin_id}`.")

    @equip_skin.autocomplete("skin_id")
    async def _skin_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return id_choices(self.catalog, ItemKind.SKIN, current)

    @app_commands.command(name="equip_attachment", description="Fit an attachment to a weapon")
    @app_commands.describe(
        weapon_slot="Weapon slot to modify",
        attachment_slot="Attachment mount",
        attachment_id="Attachment to fit",
    )
    @app_commands.choices(
        weapon_slot=WEAPON_SLOT_CHOICES, attachment_slot=ATTACHMENT_SLOT_CHOICES
    )
    async def equip_attachment(
        self,
        interaction: discord.Interaction,
        weapon_slot: str,
        attachment_slot: str,
        attachment_id: str,
    ) -> None:
        result = await self.call(
            self.service.equip_attachment,
            interaction.user.id,
            weapon_slot,
            attachment_slot,
            attachment_id,
        )
        await self.send_result(interaction, result, f"Fitted `{attachment_id}`.")

    @equip_attachment.autocomplete("attachment_id")
    async def _attachment_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return id_choices(self.catalog, ItemKind.ATTACHMENT, current)

    @app_commands.command(name="cycle_weapon", description="Switch the weapon in a slot")
    @app_commands.choices(weapon_slot=WEAPON_SLOT_CHOICES, direction=DIRECTION_CHOICES)
    async def cycle_weapon(
        self, interaction: discord.Interaction, weapon_slot: str, direction: int = 1
    ) -> None:
        result = await self.call(
            self.service.cycle_weapon, interaction.user.id, weapon_slot, direction
        )
        await self.send_result(
            interaction, result, f"{weapon_slot.title()} weapon is now `{result.item_id}`."
        )

    @app_commands.command(name="cycle_armor", description="Switch the armor piece in a slot")
    @app_commands.choices(slot=ARMOR_SLOT_CHOICES, direction=DIRECTION_CHOICES)
    async def cycle_armor(
        self, interaction: discord.Interaction, slot: str, direction: int = 1
    ) -> None:
        result = await self.call(self.service.cycle_armor, interaction.user.id, slot, direction)
        await self.send_result(interaction, result, f"{slot.title()} armor is now `{result.item_id}`.")


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(LoadoutCog(bot))
