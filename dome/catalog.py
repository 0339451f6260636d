"""Registry of purchasable weapons, skins, armor and attachments.

A :class:`Catalog` is immutable once built.  Reloading builds a complete new
catalog and publishes it through :class:`CatalogHolder` with a single
reference swap, so readers observe either the old or the new catalog in full.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

import tomllib

from .models import ModelValidationError
from .models.catalog import (
    ArmorDefinition,
    ArmorSlot,
    AttachmentDefinition,
    AttachmentSlot,
    CatalogItem,
    DEFAULT_SKIN_ID,
    ItemKind,
    PricingTable,
    RarityTier,
    SkinDefinition,
    WeaponDefinition,
)
from .storage import load_toml, write_toml

log = logging.getLogger(__name__)

WEAPONS_FILE = "weapons.toml"
ARMOR_FILE = "armor.toml"

DEFAULT_SKIN = SkinDefinition(id=DEFAULT_SKIN_ID, display_name="Default")


class CatalogLoadError(ValueError):
    """Raised when a catalog source document cannot be turned into definitions."""


def _frozen(mapping: dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class Catalog:
    weapons: Mapping[str, WeaponDefinition]
    armor: Mapping[str, ArmorDefinition]
    attachments: Mapping[str, AttachmentDefinition]
    pricing: PricingTable = field(default_factory=PricingTable)
    source: str = "builtin"
    _skins: Mapping[str, SkinDefinition] = field(default_factory=dict, repr=False)

    @classmethod
    def build(
        cls,
        *,
        weapons: Iterable[WeaponDefinition],
        armor: Iterable[ArmorDefinition] = (),
        attachments: Iterable[AttachmentDefinition] = (),
        pricing: PricingTable | None = None,
        source: str = "builtin",
    ) -> "Catalog":
        """Index definitions by id; the first definition of a duplicate id wins."""

        weapon_index: dict[str, WeaponDefinition] = {}
        skin_index: dict[str, SkinDefinition] = {}
        for weapon in weapons:
            if weapon.id in weapon_index:
                log.warning("Ignoring duplicate weapon id %r in %s", weapon.id, source)
                continue
            weapon_index[weapon.id] = weapon
            for skin in weapon.skins:
                skin_index.setdefault(skin.id, skin)

        armor_index: dict[str, ArmorDefinition] = {}
        for piece in armor:
            if piece.id in armor_index:
                log.warning("Ignoring duplicate armor id %r in %s", piece.id, source)
                continue
            armor_index[piece.id] = piece

        attachment_index: dict[str, AttachmentDefinition] = {}
        for attachment in attachments:
            attachment_index.setdefault(attachment.id, attachment)

        return cls(
            weapons=_frozen(weapon_index),
            armor=_frozen(armor_index),
            attachments=_frozen(attachment_index),
            pricing=pricing or PricingTable(),
            source=source,
            _skins=_frozen(skin_index),
        )

    def _section(self, kind: ItemKind) -> Mapping[str, CatalogItem]:
        if kind is ItemKind.WEAPON:
            return self.weapons
        if kind is ItemKind.SKIN:
            return self._skins
        if kind is ItemKind.ARMOR:
            return self.armor
        return self.attachments

    def get(self, kind: ItemKind | str, item_id: str) -> CatalogItem | None:
        """Return the definition for ``item_id`` or ``None`` when it is unknown."""

        resolved = ItemKind.from_value(kind)
        item = self._section(resolved).get(str(item_id))
        if item is None and resolved is ItemKind.SKIN and item_id == DEFAULT_SKIN_ID:
            return DEFAULT_SKIN
        return item

    def contains(self, kind: ItemKind | str, item_id: str) -> bool:
        return self.get(kind, item_id) is not None

    def all_ids(self, kind: ItemKind | str) -> tuple[str, ...]:
        """Return ids of ``kind`` in source-document order."""

        return tuple(self._section(ItemKind.from_value(kind)).keys())

    def price_of(self, item: CatalogItem) -> int:
        """Explicit cost when set, otherwise the tier default; never negative."""

        if isinstance(item, SkinDefinition):
            if item.is_default:
                return 0
            return item.cost if item.cost > 0 else self.pricing.cost_for(item.rarity)
        if isinstance(item, ArmorDefinition):
            return item.cost if item.cost > 0 else self.pricing.cost_for(item.rarity)
        if isinstance(item, WeaponDefinition):
            return item.base_cost if item.base_cost > 0 else self.pricing.cost_for(RarityTier.COMMON)
        return 0

    def skin_for(self, weapon_id: str, skin_id: str) -> SkinDefinition | None:
        weapon = self.weapons.get(weapon_id)
        if weapon is None:
            return None
        skin = weapon.skin(skin_id)
        if skin is None and skin_id == DEFAULT_SKIN_ID:
            return DEFAULT_SKIN
        return skin

    def armor_for_slot(self, slot: ArmorSlot | str) -> tuple[ArmorDefinition, ...]:
        resolved = ArmorSlot.from_value(slot)
        return tuple(piece for piece in self.armor.values() if piece.slot is resolved)

    def summary(self) -> dict[str, int]:
        return {
            "weapons": len(self.weapons),
            "skins": len(self._skins),
            "armor": len(self.armor),
            "attachments": len(self.attachments),
        }

    def weapons_document(self) -> dict[str, Any]:
        return {
            "pricing": self.pricing.to_mapping(),
            "weapons": [weapon.to_mapping() for weapon in self.weapons.values()],
            "attachments": [item.to_mapping() for item in self.attachments.values()],
        }

    def armor_document(self) -> dict[str, Any]:
        return {"armor": [piece.to_mapping() for piece in self.armor.values()]}


# ---------------------------------------------------------------------------
# Source document parsing
# ---------------------------------------------------------------------------


def _parse_entries(
    payload: Mapping[str, Any], key: str, factory: Any, *, document: str
) -> list[Any]:
    raw = payload.get(key, [])
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        raise CatalogLoadError(f"{document}: '{key}' must be an array of tables")
    entries = []
    for index, entry in enumerate(raw):
        try:
            entries.append(factory(entry))
        except (ModelValidationError, TypeError, ValueError) as exc:
            raise CatalogLoadError(f"{document}: {key}[{index}]: {exc}") from exc
    return entries


def parse_weapons_document(
    payload: Mapping[str, Any],
) -> tuple[list[WeaponDefinition], PricingTable, list[AttachmentDefinition]]:
    if not isinstance(payload, Mapping):
        raise CatalogLoadError(f"{WEAPONS_FILE}: document must be a table")
    weapons = _parse_entries(
        payload, "weapons", WeaponDefinition.from_mapping, document=WEAPONS_FILE
    )
    if not weapons:
        raise CatalogLoadError(f"{WEAPONS_FILE}: no weapons defined")
    pricing_payload = payload.get("pricing", {})
    try:
        pricing = PricingTable.from_mapping(pricing_payload)
    except ModelValidationError as exc:
        raise CatalogLoadError(f"{WEAPONS_FILE}: pricing: {exc}") from exc
    attachments = _parse_entries(
        payload, "attachments", AttachmentDefinition.from_mapping, document=WEAPONS_FILE
    )
    return weapons, pricing, attachments


def parse_armor_document(payload: Mapping[str, Any]) -> list[ArmorDefinition]:
    if not isinstance(payload, Mapping):
        raise CatalogLoadError(f"{ARMOR_FILE}: document must be a table")
    return _parse_entries(payload, "armor", ArmorDefinition.from_mapping, document=ARMOR_FILE)


def parse_catalog(
    weapons_payload: Mapping[str, Any],
    armor_payload: Mapping[str, Any],
    *,
    source: str = "documents",
) -> Catalog:
    """Build a catalog from parsed documents, raising :class:`CatalogLoadError`."""

    weapons, pricing, attachments = parse_weapons_document(weapons_payload)
    armor = parse_armor_document(armor_payload)
    if not attachments:
        attachments = list(_default_attachments())
    return Catalog.build(
        weapons=weapons,
        armor=armor,
        attachments=attachments,
        pricing=pricing,
        source=source,
    )


def _read_document(path: Path, default: Mapping[str, Any], *, write_missing: bool) -> Mapping[str, Any]:
    try:
        return load_toml(path)
    except FileNotFoundError:
        log.info("%s not found; using the built-in defaults", path.name)
        if write_missing:
            try:
                write_toml(path, default)
            except OSError:
                log.warning("Could not write default %s", path, exc_info=True)
        return default
    except (tomllib.TOMLDecodeError, OSError, UnicodeDecodeError) as exc:
        log.error("Failed to read %s: %s; using the built-in defaults", path, exc)
        return default


def load_catalog(source_dir: Path | None, *, write_missing: bool = True) -> Catalog:
    """Load the catalog from ``source_dir``.

    Missing documents are replaced by the built-in defaults (and written out
    so operators have a template to edit).  Malformed documents are logged and
    also replaced by the defaults, but left untouched on disk.
    """

    builtin = default_catalog()
    if source_dir is None:
        return builtin

    directory = Path(source_dir)
    weapons_payload = _read_document(
        directory / WEAPONS_FILE, builtin.weapons_document(), write_missing=write_missing
    )
    armor_payload = _read_document(
        directory / ARMOR_FILE, builtin.armor_document(), write_missing=write_missing
    )

    try:
        weapons, pricing, attachments = parse_weapons_document(weapons_payload)
    except CatalogLoadError as exc:
        log.error("Invalid weapon catalog: %s; using the built-in weapons", exc)
        weapons = list(builtin.weapons.values())
        pricing = builtin.pricing
        attachments = list(builtin.attachments.values())
    try:
        armor = parse_armor_document(armor_payload)
    except CatalogLoadError as exc:
        log.error("Invalid armor catalog: %s; using the built-in armor", exc)
        armor = list(builtin.armor.values())

    catalog = Catalog.build(
        weapons=weapons,
        armor=armor,
        attachments=attachments or builtin.attachments.values(),
        pricing=pricing,
        source=str(directory),
    )
    counts = catalog.summary()
    log.info(
        "Loaded %s weapons with %s skins, %s armor pieces and %s attachments",
        counts["weapons"],
        counts["skins"],
        counts["armor"],
        counts["attachments"],
    )
    return catalog


class CatalogHolder:
    """Publishes the current :class:`Catalog` and swaps it on reload."""

    def __init__(self, source_dir: Path | None, catalog: Catalog | None = None) -> None:
        self._source_dir = Path(source_dir) if source_dir is not None else None
        self._reload_lock = threading.Lock()
        self._catalog = catalog if catalog is not None else load_catalog(self._source_dir)

    @property
    def current(self) -> Catalog:
        return self._catalog

    def publish(self, catalog: Catalog) -> None:
        self._catalog = catalog

    def reload(self) -> Catalog:
        """Rebuild the catalog from its source and publish it in one step."""

        with self._reload_lock:
            catalog = load_catalog(self._source_dir)
            self._catalog = catalog
        return catalog


# ---------------------------------------------------------------------------
# Built-in defaults
# ---------------------------------------------------------------------------


def _skin(skin_id: str, name: str, cost: int, rarity: RarityTier, tag: str = "") -> SkinDefinition:
    return SkinDefinition(id=skin_id, display_name=name, cost=cost, rarity=rarity, tag=tag)


def _default_weapons() -> tuple[WeaponDefinition, ...]:
    rows = [
        ("ak47", "AK-47", "rifle.ak", 500, [
            _skin("3602286295", "Tempered AK47", 600, RarityTier.EPIC, "HOT"),
            _skin("3102802323", "Glory AK47", 800, RarityTier.LEGENDARY, "NEW"),
            _skin("2854463727", "Alien Red", 400, RarityTier.RARE),
        ]),
        ("lr300", "LR-300", "rifle.lr300", 500, [
            _skin("2561668054", "Gold LR300", 800, RarityTier.LEGENDARY, "POPULAR"),
        ]),
        ("m249", "M249", "lmg.m249", 600, [
            _skin("2854146553", "Chrome M249", 600, RarityTier.EPIC),
        ]),
        ("mp5", "MP5A4", "smg.mp5", 400, [
            _skin("2561668055", "Tactical MP5", 400, RarityTier.RARE),
        ]),
        ("thompson", "Thompson", "smg.thompson", 400, [
            _skin("2561668056", "Dragon Thompson", 600, RarityTier.EPIC, "NEW"),
        ]),
        ("python", "Python Revolver", "pistol.python", 300, [
            _skin("2561668057", "Black Python", 400, RarityTier.RARE),
        ]),
        ("bolt", "Bolt Action Rifle", "rifle.bolt", 550, []),
        ("sarpistol", "Semi-Auto Pistol", "pistol.semiauto", 250, []),
        ("custom", "Custom SMG", "smg.2", 350, []),
        ("m39", "M39 Rifle", "rifle.m39", 450, []),
    ]
    weapons = []
    for weapon_id, name, item_key, cost, skins in rows:
        weapons.append(
            WeaponDefinition(
                id=weapon_id,
                display_name=name,
                external_item_key=item_key,
                base_cost=cost,
                skins=(DEFAULT_SKIN, *skins),
            )
        )
    return tuple(weapons)


def _default_armor() -> tuple[ArmorDefinition, ...]:
    rows = [
        ("metal.facemask", "Metal Facemask", ArmorSlot.HEAD, 300, RarityTier.COMMON),
        ("coffeecan.helmet", "Coffee Can Helmet", ArmorSlot.HEAD, 250, RarityTier.COMMON),
        ("metal.plate.torso", "Metal Chest Plate", ArmorSlot.CHEST, 400, RarityTier.RARE),
        ("roadsign.jacket", "Road Sign Jacket", ArmorSlot.CHEST, 300, RarityTier.COMMON),
        ("heavy.plate.pants", "Heavy Plate Pants", ArmorSlot.LEGS, 400, RarityTier.RARE),
        ("roadsign.kilt", "Road Sign Kilt", ArmorSlot.LEGS, 300, RarityTier.COMMON),
        ("tactical.gloves", "Tactical Gloves", ArmorSlot.HANDS, 200, RarityTier.COMMON),
        ("shoes.boots", "Heavy Plate Boots", ArmorSlot.FEET, 250, RarityTier.COMMON),
    ]
    return tuple(
        ArmorDefinition(id=item_id, display_name=name, slot=slot, cost=cost, rarity=rarity)
        for item_id, name, slot, cost, rarity in rows
    )


def _default_attachments() -> tuple[AttachmentDefinition, ...]:
    return (
        AttachmentDefinition(id="reflex", display_name="Reflex Sight", slot=AttachmentSlot.OPTIC),
        AttachmentDefinition(id="silencer", display_name="Silencer", slot=AttachmentSlot.BARREL),
        AttachmentDefinition(
            id="extended_mag", display_name="Extended Magazine", slot=AttachmentSlot.MAGAZINE
        ),
    )


def default_catalog() -> Catalog:
    """Return the catalog used when no usable source documents exist."""

    return Catalog.build(
        weapons=_default_weapons(),
        armor=_default_armor(),
        attachments=_default_attachments(),
        pricing=PricingTable(),
        source="builtin",
    )


__all__ = [
    "ARMOR_FILE",
    "Catalog",
    "CatalogHolder",
    "CatalogLoadError",
    "WEAPONS_FILE",
    "default_catalog",
    "load_catalog",
    "parse_catalog",
]
