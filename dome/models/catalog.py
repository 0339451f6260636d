"""Catalog domain models: weapons, skins, armor, attachments and pricing."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from ._validation import (
    FieldSpec,
    ModelValidator,
    SequenceSpec,
    is_non_empty_str,
    is_non_negative_int,
    validate_dataclass_payload,
)

# Skin id every profile owns implicitly; it is never stored or charged for.
DEFAULT_SKIN_ID = "0"

DEFAULT_WEAPON_COST = 500


class RarityTier(str, Enum):
    """Rarity tiers used to derive default prices."""

    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @classmethod
    def from_value(
        cls, value: "RarityTier | str | None", *, default: "RarityTier | None" = None
    ) -> "RarityTier":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            return default or cls.COMMON

    @property
    def label(self) -> str:
        return self.value.title()


class ArmorSlot(str, Enum):
    """Body positions an armor piece can occupy."""

    HEAD = "head"
    CHEST = "chest"
    LEGS = "legs"
    HANDS = "hands"
    FEET = "feet"

    @classmethod
    def from_value(cls, value: "ArmorSlot | str") -> "ArmorSlot":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown armor slot: {value}") from exc


ARMOR_SLOT_ORDER: tuple[ArmorSlot, ...] = tuple(ArmorSlot)


class AttachmentSlot(str, Enum):
    """Mount points on a weapon."""

    OPTIC = "optic"
    BARREL = "barrel"
    MAGAZINE = "magazine"
    UNDERBARREL = "underbarrel"

    @classmethod
    def from_value(cls, value: "AttachmentSlot | str") -> "AttachmentSlot":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        aliases = {"mag": "magazine", "scope": "optic", "scopes": "optic", "silencers": "barrel"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown attachment slot: {value}") from exc


class ItemKind(str, Enum):
    """Catalog sections an id can be looked up in."""

    WEAPON = "weapon"
    SKIN = "skin"
    ARMOR = "armor"
    ATTACHMENT = "attachment"

    @classmethod
    def from_value(cls, value: "ItemKind | str") -> "ItemKind":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().rstrip("s")
        try:
            return cls(normalized)
        except ValueError as exc:
            raise ValueError(f"Unknown item kind: {value}") from exc


def _is_rarity_name(value: Any) -> bool:
    # Unknown names are accepted and priced as common.
    return isinstance(value, str)


def _is_armor_slot(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower() in {
        slot.value for slot in ArmorSlot
    }


@dataclass(frozen=True, slots=True)
class PricingTable:
    """Default cost for each rarity tier."""

    common: int = 250
    rare: int = 400
    epic: int = 600
    legendary: int = 800

    def cost_for(self, rarity: RarityTier | str | None) -> int:
        tier = RarityTier.from_value(rarity)
        return int(getattr(self, tier.value))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PricingTable":
        payload = validate_dataclass_payload(cls, data)
        defaults = cls()
        return cls(
            **{
                tier.value: int(payload.get(tier.value, defaults.cost_for(tier)))
                for tier in RarityTier
            }
        )

    def to_mapping(self) -> dict[str, int]:
        return {tier.value: self.cost_for(tier) for tier in RarityTier}


class PricingTableValidator(ModelValidator):
    model = PricingTable
    fields = {
        tier.value: FieldSpec(is_non_negative_int, "a non-negative cost", required=False)
        for tier in RarityTier
    }


PricingTable.validator = PricingTableValidator


@dataclass(frozen=True, slots=True)
class SkinDefinition:
    id: str
    display_name: str = "Default"
    cost: int = 0
    rarity: RarityTier = RarityTier.COMMON
    tag: str = ""

    @property
    def is_default(self) -> bool:
        return self.id == DEFAULT_SKIN_ID

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SkinDefinition":
        payload = validate_dataclass_payload(cls, data)
        return cls(
            id=str(payload["id"]).strip(),
            display_name=str(payload.get("display_name") or payload["id"]),
            cost=int(payload.get("cost", 0)),
            rarity=RarityTier.from_value(payload.get("rarity")),
            tag=str(payload.get("tag") or ""),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "cost": self.cost,
            "rarity": self.rarity.value,
            "tag": self.tag,
        }


class SkinDefinitionValidator(ModelValidator):
    model = SkinDefinition
    fields = {
        "id": FieldSpec(is_non_empty_str, "a skin id"),
        "display_name": FieldSpec(str, "a display name", required=False),
        "cost": FieldSpec(is_non_negative_int, "a non-negative cost", required=False),
        "rarity": FieldSpec(_is_rarity_name, "a rarity name", required=False),
        "tag": FieldSpec(str, "a label", required=False),
    }


SkinDefinition.validator = SkinDefinitionValidator


@dataclass(frozen=True, slots=True)
class WeaponDefinition:
    id: str
    display_name: str
    external_item_key: str
    base_cost: int = DEFAULT_WEAPON_COST
    default_skin_id: str = DEFAULT_SKIN_ID
    skins: tuple[SkinDefinition, ...] = field(default_factory=tuple)

    def skin(self, skin_id: str) -> SkinDefinition | None:
        for skin in self.skins:
            if skin.id == skin_id:
                return skin
        return None

    @property
    def skin_ids(self) -> tuple[str, ...]:
        return tuple(skin.id for skin in self.skins)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WeaponDefinition":
        payload = validate_dataclass_payload(cls, data)
        skins: list[SkinDefinition] = []
        seen: set[str] = set()
        for entry in payload.get("skins", ()):
            skin = SkinDefinition.from_mapping(entry)
            if skin.id in seen:
                continue
            seen.add(skin.id)
            skins.append(skin)
        return cls(
            id=str(payload["id"]).strip(),
            display_name=str(payload.get("display_name") or payload["id"]),
            external_item_key=str(payload["external_item_key"]),
            base_cost=int(payload.get("base_cost", DEFAULT_WEAPON_COST)),
            default_skin_id=str(payload.get("default_skin_id") or DEFAULT_SKIN_ID),
            skins=tuple(skins),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "external_item_key": self.external_item_key,
            "base_cost": self.base_cost,
            "default_skin_id": self.default_skin_id,
            "skins": [skin.to_mapping() for skin in self.skins],
        }


class WeaponDefinitionValidator(ModelValidator):
    model = WeaponDefinition
    fields = {
        "id": FieldSpec(is_non_empty_str, "a weapon id"),
        "display_name": FieldSpec(str, "a display name", required=False),
        "external_item_key": FieldSpec(is_non_empty_str, "the game item key"),
        "base_cost": FieldSpec(is_non_negative_int, "a non-negative cost", required=False),
        "default_skin_id": FieldSpec(str, "a skin id", required=False),
        "skins": FieldSpec(SequenceSpec(dict), "a list of skin tables", required=False),
    }


WeaponDefinition.validator = WeaponDefinitionValidator


@dataclass(frozen=True, slots=True)
class ArmorDefinition:
    id: str
    display_name: str
    slot: ArmorSlot
    cost: int = 0
    rarity: RarityTier = RarityTier.COMMON
    tag: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ArmorDefinition":
        payload = validate_dataclass_payload(cls, data)
        return cls(
            id=str(payload["id"]).strip(),
            display_name=str(payload.get("display_name") or payload["id"]),
            slot=ArmorSlot.from_value(payload["slot"]),
            cost=int(payload.get("cost", 0)),
            rarity=RarityTier.from_value(payload.get("rarity")),
            tag=str(payload.get("tag") or ""),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "slot": self.slot.value,
            "cost": self.cost,
            "rarity": self.rarity.value,
            "tag": self.tag,
        }


class ArmorDefinitionValidator(ModelValidator):
    model = ArmorDefinition
    fields = {
        "id": FieldSpec(is_non_empty_str, "an armor id"),
        "display_name": FieldSpec(str, "a display name", required=False),
        "slot": FieldSpec(_is_armor_slot, "one of head, chest, legs, hands, feet"),
        "cost": FieldSpec(is_non_negative_int, "a non-negative cost", required=False),
        "rarity": FieldSpec(_is_rarity_name, "a rarity name", required=False),
        "tag": FieldSpec(str, "a label", required=False),
    }


ArmorDefinition.validator = ArmorDefinitionValidator


@dataclass(frozen=True, slots=True)
class AttachmentDefinition:
    id: str
    display_name: str
    slot: AttachmentSlot

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AttachmentDefinition":
        payload = validate_dataclass_payload(cls, data)
        return cls(
            id=str(payload["id"]).strip(),
            display_name=str(payload.get("display_name") or payload["id"]),
            slot=AttachmentSlot.from_value(payload["slot"]),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {"id": self.id, "display_name": self.display_name, "slot": self.slot.value}


def _is_attachment_slot(value: Any) -> bool:
    try:
        AttachmentSlot.from_value(value)
    except ValueError:
        return False
    return True


class AttachmentDefinitionValidator(ModelValidator):
    model = AttachmentDefinition
    fields = {
        "id": FieldSpec(is_non_empty_str, "an attachment id"),
        "display_name": FieldSpec(str, "a display name", required=False),
        "slot": FieldSpec(_is_attachment_slot, "an attachment slot"),
    }


AttachmentDefinition.validator = AttachmentDefinitionValidator


CatalogItem = WeaponDefinition | SkinDefinition | ArmorDefinition | AttachmentDefinition


__all__ = [
    "ARMOR_SLOT_ORDER",
    "ArmorDefinition",
    "ArmorSlot",
    "AttachmentDefinition",
    "AttachmentSlot",
    "CatalogItem",
    "DEFAULT_SKIN_ID",
    "ItemKind",
    "PricingTable",
    "RarityTier",
    "SkinDefinition",
    "WeaponDefinition",
]
