from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from dome.models import ModelValidationError
from dome.models._validation import is_identity
from dome.models.catalog import ArmorDefinition, RarityTier, WeaponDefinition
from dome.models.profiles import Loadout, PlayerProfile


def test_validation_error_lists_every_problem() -> None:
    with pytest.raises(ModelValidationError) as excinfo:
        PlayerProfile.from_mapping(
            {"identity": -1, "token_balance": "lots", "owned_weapons": "ak47"}
        )

    errors = excinfo.value.errors
    assert len(errors) == 3
    assert any("identity" in error for error in errors)
    assert any("token_balance" in error for error in errors)
    assert excinfo.value.model is PlayerProfile


def test_missing_required_fields() -> None:
    with pytest.raises(ModelValidationError) as excinfo:
        WeaponDefinition.from_mapping({"display_name": "Nameless"})

    assert any("Missing required field 'id'" in error for error in excinfo.value.errors)
    assert any("external_item_key" in error for error in excinfo.value.errors)


def test_unknown_keys_are_ignored_when_building() -> None:
    loadout = Loadout.from_mapping({"name": "Rush", "future_field": 3})

    assert loadout.name == "Rush"
    assert loadout.primary_weapon_id == "ak47"


def test_unknown_rarity_falls_back_to_common() -> None:
    hat = ArmorDefinition.from_mapping({"id": "hat", "slot": "head", "rarity": "mythic"})

    assert hat.rarity is RarityTier.COMMON
    with pytest.raises(ModelValidationError):
        ArmorDefinition.from_mapping({"id": "hat", "slot": "head", "rarity": 3})

    assert RarityTier.from_value("mythic") is RarityTier.COMMON
    assert RarityTier.from_value(" Epic ") is RarityTier.EPIC


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, True),
        (2**64 - 1, True),
        (2**64, False),
        (-1, False),
        ("18446744073709551615", True),
        ("12a", False),
        (True, False),
        (1.5, False),
    ],
)
def test_identity_range(value: object, expected: bool) -> None:
    assert is_identity(value) is expected


def test_profile_always_has_an_active_loadout() -> None:
    profile = PlayerProfile.from_mapping({"identity": 5, "token_balance": 0, "loadouts": []})

    assert profile.active_loadout.name == "Default"
    assert profile.active_loadout.secondary_weapon_id == "python"


def test_nested_tables_are_checked_entry_by_entry() -> None:
    with pytest.raises(ModelValidationError) as excinfo:
        Loadout.from_mapping({"primary_attachments": {"optic": 5}, "name": None})

    assert len(excinfo.value.errors) == 2
    with pytest.raises(ModelValidationError):
        PlayerProfile.from_mapping({"identity": 1, "token_balance": True})
    assert PlayerProfile.from_mapping({"identity": 1, "token_balance": 0, "owned_skins": []}).owned_skins == set()
