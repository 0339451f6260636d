"""Player-centric domain models: profiles and loadouts."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from ._validation import (
    FieldSpec,
    MappingSpec,
    ModelValidator,
    SequenceSpec,
    is_identity,
    is_non_negative_int,
    validate_dataclass_payload,
)
from .catalog import ARMOR_SLOT_ORDER, ArmorSlot

DEFAULT_LOADOUT_NAME = "Default"
DEFAULT_PRIMARY_WEAPON = "ak47"
DEFAULT_SECONDARY_WEAPON = "python"

# TOML integers are signed 64-bit; larger identities are written as strings.
_TOML_INT_MAX = 2**63 - 1


def _string_set(value: Any) -> Set[str]:
    if value is None:
        return set()
    if isinstance(value, str):
        return {value} if value else set()
    return {str(item) for item in value if str(item)}


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): str(item) for key, item in value.items() if item is not None}


def _optional_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(slots=True)
class Loadout:
    name: str = DEFAULT_LOADOUT_NAME
    primary_weapon_id: str = DEFAULT_PRIMARY_WEAPON
    secondary_weapon_id: str = DEFAULT_SECONDARY_WEAPON
    primary_attachments: Dict[str, str] = field(default_factory=dict)
    secondary_attachments: Dict[str, str] = field(default_factory=dict)
    skin_assignments: Dict[str, str] = field(default_factory=dict)
    armor_head: Optional[str] = None
    armor_chest: Optional[str] = None
    armor_legs: Optional[str] = None
    armor_hands: Optional[str] = None
    armor_feet: Optional[str] = None

    def weapon_for(self, slot: str) -> str:
        if slot == "primary":
            return self.primary_weapon_id
        if slot == "secondary":
            return self.secondary_weapon_id
        raise ValueError(f"Unknown weapon slot: {slot}")

    def set_weapon(self, slot: str, weapon_id: str) -> None:
        if slot == "primary":
            self.primary_weapon_id = weapon_id
        elif slot == "secondary":
            self.secondary_weapon_id = weapon_id
        else:
            raise ValueError(f"Unknown weapon slot: {slot}")

    def attachments_for(self, slot: str) -> Dict[str, str]:
        if slot == "primary":
            return self.primary_attachments
        if slot == "secondary":
            return self.secondary_attachments
        raise ValueError(f"Unknown weapon slot: {slot}")

    def armor_in(self, slot: ArmorSlot | str) -> Optional[str]:
        resolved = ArmorSlot.from_value(slot)
        return getattr(self, f"armor_{resolved.value}")

    def set_armor(self, slot: ArmorSlot | str, armor_id: Optional[str]) -> None:
        resolved = ArmorSlot.from_value(slot)
        setattr(self, f"armor_{resolved.value}", armor_id)

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": self.name,
            "primary_weapon_id": self.primary_weapon_id,
            "secondary_weapon_id": self.secondary_weapon_id,
            "primary_attachments": dict(self.primary_attachments),
            "secondary_attachments": dict(self.secondary_attachments),
            "skin_assignments": dict(self.skin_assignments),
        }
        for slot in ARMOR_SLOT_ORDER:
            value = self.armor_in(slot)
            if value:
                payload[f"armor_{slot.value}"] = value
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Loadout":
        payload = validate_dataclass_payload(cls, data)
        loadout = cls(
            name=str(payload.get("name") or DEFAULT_LOADOUT_NAME),
            primary_weapon_id=str(payload.get("primary_weapon_id") or DEFAULT_PRIMARY_WEAPON),
            secondary_weapon_id=str(
                payload.get("secondary_weapon_id") or DEFAULT_SECONDARY_WEAPON
            ),
            primary_attachments=_string_map(payload.get("primary_attachments")),
            secondary_attachments=_string_map(payload.get("secondary_attachments")),
            skin_assignments=_string_map(payload.get("skin_assignments")),
        )
        for slot in ARMOR_SLOT_ORDER:
            loadout.set_armor(slot, _optional_id(payload.get(f"armor_{slot.value}")))
        return loadout


class LoadoutValidator(ModelValidator):
    model = Loadout
    fields = {
        "name": FieldSpec(str, "a loadout name", required=False),
        "primary_weapon_id": FieldSpec(str, "a weapon id", required=False),
        "secondary_weapon_id": FieldSpec(str, "a weapon id", required=False),
        "primary_attachments": FieldSpec(
            MappingSpec(str, str), "a table of slot to attachment id", required=False
        ),
        "secondary_attachments": FieldSpec(
            MappingSpec(str, str), "a table of slot to attachment id", required=False
        ),
        "skin_assignments": FieldSpec(
            MappingSpec(str, str), "a table of weapon id to skin id", required=False
        ),
    }


Loadout.validator = LoadoutValidator


@dataclass(slots=True)
class PlayerProfile:
    identity: int
    token_balance: int = 0
    owned_weapons: Set[str] = field(default_factory=set)
    owned_skins: Set[str] = field(default_factory=set)
    owned_armor: Set[str] = field(default_factory=set)
    loadouts: List[Loadout] = field(default_factory=list)
    total_kills: int = 0
    total_deaths: int = 0
    matches_played: int = 0
    is_vip: bool = False
    last_daily_refill: float = 0.0
    last_updated: float = 0.0

    def __post_init__(self) -> None:
        if not self.loadouts:
            self.loadouts.append(Loadout())

    @classmethod
    def fresh(
        cls, identity: int, starting_tokens: int, *, now: float | None = None
    ) -> "PlayerProfile":
        """Return a brand new profile holding the starting token grant."""

        timestamp = time.time() if now is None else now
        return cls(
            identity=int(identity),
            token_balance=max(0, int(starting_tokens)),
            last_updated=timestamp,
        )

    @property
    def active_loadout(self) -> Loadout:
        if not self.loadouts:
            self.loadouts.append(Loadout())
        return self.loadouts[0]

    def owned_set(self, kind: str) -> Set[str]:
        if kind == "weapon":
            return self.owned_weapons
        if kind == "skin":
            return self.owned_skins
        if kind == "armor":
            return self.owned_armor
        raise ValueError(f"Profiles do not track ownership of {kind!r}")

    def ownership_snapshot(self) -> tuple[int, frozenset[str], frozenset[str], frozenset[str]]:
        return (
            self.token_balance,
            frozenset(self.owned_weapons),
            frozenset(self.owned_skins),
            frozenset(self.owned_armor),
        )

    def to_mapping(self) -> dict[str, Any]:
        identity: int | str = self.identity
        if self.identity > _TOML_INT_MAX:
            identity = str(self.identity)
        return {
            "identity": identity,
            "token_balance": self.token_balance,
            "owned_weapons": sorted(self.owned_weapons),
            "owned_skins": sorted(self.owned_skins),
            "owned_armor": sorted(self.owned_armor),
            "loadouts": [loadout.to_mapping() for loadout in self.loadouts],
            "total_kills": self.total_kills,
            "total_deaths": self.total_deaths,
            "matches_played": self.matches_played,
            "is_vip": self.is_vip,
            "last_daily_refill": float(self.last_daily_refill),
            "last_updated": float(self.last_updated),
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PlayerProfile":
        payload = validate_dataclass_payload(cls, data)
        loadouts = [Loadout.from_mapping(entry) for entry in payload.get("loadouts", ())]
        return cls(
            identity=int(payload["identity"]),
            token_balance=int(payload.get("token_balance", 0)),
            owned_weapons=_string_set(payload.get("owned_weapons")),
            owned_skins=_string_set(payload.get("owned_skins")),
            owned_armor=_string_set(payload.get("owned_armor")),
            loadouts=loadouts,
            total_kills=int(payload.get("total_kills", 0)),
            total_deaths=int(payload.get("total_deaths", 0)),
            matches_played=int(payload.get("matches_played", 0)),
            is_vip=bool(payload.get("is_vip", False)),
            last_daily_refill=float(payload.get("last_daily_refill", 0.0)),
            last_updated=float(payload.get("last_updated", 0.0)),
        )


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


class PlayerProfileValidator(ModelValidator):
    model = PlayerProfile
    fields = {
        "identity": FieldSpec(is_identity, "a 64-bit unsigned player identity"),
        "token_balance": FieldSpec(is_non_negative_int, "a non-negative token balance"),
        "owned_weapons": FieldSpec(SequenceSpec(str), "a list of weapon ids", required=False),
        "owned_skins": FieldSpec(SequenceSpec(str), "a list of skin ids", required=False),
        "owned_armor": FieldSpec(SequenceSpec(str), "a list of armor ids", required=False),
        "loadouts": FieldSpec(SequenceSpec(dict), "a list of loadout tables", required=False),
        "total_kills": FieldSpec(is_non_negative_int, "a kill count", required=False),
        "total_deaths": FieldSpec(is_non_negative_int, "a death count", required=False),
        "matches_played": FieldSpec(is_non_negative_int, "a match count", required=False),
        "is_vip": FieldSpec(bool, "a boolean", required=False),
        "last_daily_refill": FieldSpec(_is_timestamp, "a POSIX timestamp", required=False),
        "last_updated": FieldSpec(_is_timestamp, "a POSIX timestamp", required=False),
    }


PlayerProfile.validator = PlayerProfileValidator


def iter_equipped_ids(loadout: Loadout) -> Iterable[str]:
    """Yield every catalog id referenced by ``loadout``."""

    yield loadout.primary_weapon_id
    yield loadout.secondary_weapon_id
    yield from loadout.skin_assignments.values()
    yield from loadout.primary_attachments.values()
    yield from loadout.secondary_attachments.values()
    for slot in ARMOR_SLOT_ORDER:
        value = loadout.armor_in(slot)
        if value:
            yield value


__all__ = [
    "DEFAULT_LOADOUT_NAME",
    "DEFAULT_PRIMARY_WEAPON",
    "DEFAULT_SECONDARY_WEAPON",
    "Loadout",
    "PlayerProfile",
    "iter_equipped_ids",
]
