from __future__ import annotations

import discord
from discord import app_commands
from discord.ext import commands

from ..models.catalog import ItemKind
from ..utils import format_number
from .base import DomeCog, id_choices

CATEGORY_CHOICES: list[app_commands.Choice[str]] = [
    app_commands.Choice(name="Weapons", value="weapons"),
    app_commands.Choice(name="Armor", value="armor"),
    app_commands.Choice(name="Attachments", value="attachments"),
]


class StoreCog(DomeCog):
    def _catalog_lines(self, category: str, owned: frozenset[str]) -> list[str]:
        catalog = self.catalog
        lines: list[str] = []
        if category == "weapons":
            for weapon in catalog.weapons.values():
                mark = "✓" if weapon.id in owned else " "
                price = format_number(catalog.price_of(weapon))
                lines.append(f"`{mark}` **{weapon.display_name}** (`{weapon.id}`) {price} tokens")
                for skin in weapon.skins:
                    if skin.is_default:
                        continue
                    lines.append(
                        f"   • {skin.display_name} (`{skin.id}`, {skin.rarity.label}) "
                        f"{format_number(catalog.price_of(skin))} tokens"
                    )
        elif category == "armor":
            for piece in catalog.armor.values():
                mark = "✓" if piece.id in owned else " "
                lines.append(
                    f"`{mark}` **{piece.display_name}** (`{piece.id}`, {piece.slot.value}) "
                    f"{format_number(catalog.price_of(piece))} tokens"
                )
        else:
            for attachment in catalog.attachments.values():
                lines.append(
                    f"• **{attachment.display_name}** (`{attachment.id}`, {attachment.slot.value})"
                )
        return lines

    @app_commands.command(name="catalog", description="Browse weapons, armor and attachments")
    @app_commands.describe(category="Which part of the catalog to show")
    @app_commands.choices(category=CATEGORY_CHOICES)
    async def catalog_command(
        self, interaction: discord.Interaction, category: str = "weapons"
    ) -> None:
        owned = await self.call(self.service.browse_catalog, interaction.user.id, category)
        lines = self._catalog_lines(category, owned)
        if not lines:
            await self.respond(interaction, "Nothing is listed in that category.")
            return
        embed = discord.Embed(
            title=f"Dome Store: {category.title()}",
            description="\n".join(lines)[:4000],
            colour=discord.Colour.dark_red(),
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="buy_weapon", description="Buy a weapon with tokens")
    @app_commands.describe(weapon_id="Weapon to buy")
    async def buy_weapon(self, interaction: discord.Interaction, weapon_id: str) -> None:
        result = await self.call(self.service.purchase_weapon, interaction.user.id, weapon_id)
        await self.send_result(
            interaction,
            result,
            f"Purchased `{weapon_id}` for {format_number(result.price)} tokens. "
            f"Balance: {format_number(result.balance)}.",
        )

    @buy_weapon.autocomplete("weapon_id")
    async def _weapon_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return id_choices(self.catalog, ItemKind.WEAPON, current)

    @app_commands.command(name="buy_skin", description="Buy a skin for a weapon you own")
    @app_commands.describe(weapon_id="Weapon the skin belongs to", skin_id="Skin to buy")
    async def buy_skin(
        self, interaction: discord.Interaction, weapon_id: str, skin_id: str
    ) -> None:
        result = await self.call(
            self.service.purchase_skin, interaction.user.id, weapon_id, skin_id
        )
        await self.send_result(
            interaction,
            result,
            f"Purchased skin `{skin_id}` for {format_number(result.price)} tokens. "
            f"Balance: {format_number(result.balance)}.",
        )

    @buy_skin.autocomplete("weapon_id")
    async def _skin_weapon_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return id_choices(self.catalog, ItemKind.WEAPON, current)

    @buy_skin.autocomplete("skin_id")
    async def _skin_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        weapon_id = getattr(interaction.namespace, "weapon_id", None)
        weapon = self.catalog.weapons.get(weapon_id) if weapon_id else None
        if weapon is None:
            return []
        query = current.lower()
        return [
            app_commands.Choice(name=f"{skin.display_name} ({skin.id})", value=skin.id)
            for skin in weapon.skins
            if not skin.is_default and (not query or query in skin.display_name.lower())
        ][:25]

    @app_commands.command(name="buy_armor", description="Buy an armor piece")
    @app_commands.describe(
        armor_id="Armor piece to buy",
        cost="Price you expect to pay, as shown in the catalog",
    )
    async def buy_armor(
        self, interaction: discord.Interaction, armor_id: str, cost: int | None = None
    ) -> None:
        result = await self.call(
            self.service.purchase_armor, interaction.user.id, armor_id, cost
        )
        await self.send_result(
            interaction,
            result,
            f"Purchased `{armor_id}` for {format_number(result.price)} tokens. "
            f"Balance: {format_number(result.balance)}.",
        )

    @buy_armor.autocomplete("armor_id")
    async def _armor_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return id_choices(self.catalog, ItemKind.ARMOR, current)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(StoreCog(bot))
