from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from dome import economy
from dome.catalog import Catalog, default_catalog
from dome.economy import Outcome
from dome.models.catalog import (
    ArmorDefinition,
    ArmorSlot,
    ItemKind,
    SkinDefinition,
    WeaponDefinition,
)
from dome.models.profiles import PlayerProfile


@pytest.fixture
def catalog() -> Catalog:
    return default_catalog()


def _fresh(balance: int = 500) -> PlayerProfile:
    return PlayerProfile.fresh(76561198000000001, balance, now=0.0)


def test_award_adds_tokens_and_rejects_negative_amounts() -> None:
    profile = _fresh(100)

    assert economy.award(profile, 25).success
    assert profile.token_balance == 125

    result = economy.award(profile, -5)
    assert result.outcome is Outcome.INVALID_AMOUNT
    assert profile.token_balance == 125


def test_spend_fails_without_mutation_when_short() -> None:
    profile = _fresh(40)

    result = economy.spend(profile, 50)

    assert result.outcome is Outcome.INSUFFICIENT_FUNDS
    assert profile.token_balance == 40
    assert economy.spend(profile, 40).success
    assert profile.token_balance == 0


def test_first_weapon_purchase_scenario(catalog: Catalog) -> None:
    profile = _fresh(500)

    first = economy.purchase_item(profile, catalog, ItemKind.WEAPON, "ak47")
    assert first.success
    assert first.price == 500
    assert profile.token_balance == 0
    assert "ak47" in profile.owned_weapons

    second = economy.purchase_item(profile, catalog, "weapon", "ak47")
    assert second.outcome is Outcome.ALREADY_OWNED
    assert profile.token_balance == 0


def test_purchase_unknown_item_reports_not_found(catalog: Catalog) -> None:
    profile = _fresh()
    before = profile.ownership_snapshot()

    result = economy.purchase_item(profile, catalog, ItemKind.ARMOR, "gold.crown")

    assert result.outcome is Outcome.ITEM_NOT_FOUND
    assert profile.ownership_snapshot() == before


def test_default_skin_is_always_owned(catalog: Catalog) -> None:
    profile = _fresh()

    result = economy.purchase_item(profile, catalog, ItemKind.SKIN, "0")

    assert result.outcome is Outcome.ALREADY_OWNED
    assert "0" not in profile.owned_skins
    assert economy.is_owned(profile, ItemKind.SKIN, "0")


def test_random_purchase_sequences_never_go_negative_or_half_apply(catalog: Catalog) -> None:
    rng = random.Random(20240518)
    kinds = [ItemKind.WEAPON, ItemKind.SKIN, ItemKind.ARMOR]
    candidates = {kind: list(catalog.all_ids(kind)) + ["missing"] for kind in kinds}

    for _ in range(40):
        profile = _fresh(rng.randint(0, 1500))
        for _ in range(30):
            roll = rng.random()
            before = profile.ownership_snapshot()
            if roll < 0.2:
                economy.award(profile, rng.randint(-50, 300))
            elif roll < 0.4:
                result = economy.spend(profile, rng.randint(0, 600))
                if not result.success:
                    assert profile.ownership_snapshot() == before
            else:
                kind = rng.choice(kinds)
                result = economy.purchase_item(
                    profile, catalog, kind, rng.choice(candidates[kind])
                )
                if result.success:
                    assert profile.token_balance == before[0] - result.price
                else:
                    assert profile.ownership_snapshot() == before
            assert profile.token_balance >= 0


def test_purchase_skin_requires_the_weapon(catalog: Catalog) -> None:
    profile = _fresh(2000)
    before = profile.ownership_snapshot()

    result = economy.purchase_skin(profile, catalog, "ak47", "3602286295")
    assert result.outcome is Outcome.NOT_OWNED
    assert profile.ownership_snapshot() == before

    profile.owned_weapons.add("ak47")
    result = economy.purchase_skin(profile, catalog, "ak47", "3602286295")
    assert result.success
    assert result.price == 600
    assert profile.token_balance == 1400
    assert "3602286295" in profile.owned_skins


def test_purchase_skin_rejects_skin_from_another_weapon(catalog: Catalog) -> None:
    profile = _fresh(2000)
    profile.owned_weapons.add("mp5")

    result = economy.purchase_skin(profile, catalog, "mp5", "3602286295")

    assert result.outcome is Outcome.ITEM_NOT_FOUND
    assert profile.token_balance == 2000


def test_tier_default_applies_when_cost_is_zero() -> None:
    skin = SkinDefinition(id="s1", display_name="Plain", cost=0, rarity="epic")
    weapon = WeaponDefinition(
        id="gun", display_name="Gun", external_item_key="gun", base_cost=0, skins=(skin,)
    )
    armor = ArmorDefinition(id="hat", display_name="Hat", slot=ArmorSlot.HEAD, cost=0, rarity="rare")
    catalog = Catalog.build(weapons=[weapon], armor=[armor])
    profile = _fresh(5000)

    assert economy.purchase_item(profile, catalog, ItemKind.WEAPON, "gun").price == 250
    assert economy.purchase_item(profile, catalog, ItemKind.ARMOR, "hat").price == 400
    assert economy.purchase_skin(profile, catalog, "gun", "s1").price == 600
    assert profile.token_balance == 5000 - 250 - 400 - 600


def test_equip_unowned_skin_leaves_loadout_untouched() -> None:
    profile = _fresh()
    assignments = dict(profile.active_loadout.skin_assignments)

    result = economy.equip_weapon_skin(profile, "ak47", "3102802323")

    assert result.outcome is Outcome.NOT_OWNED
    assert profile.active_loadout.skin_assignments == assignments


def test_equip_owned_and_default_skins() -> None:
    profile = _fresh()
    profile.owned_skins.add("3102802323")

    assert economy.equip_weapon_skin(profile, "ak47", "3102802323").success
    assert profile.active_loadout.skin_assignments["ak47"] == "3102802323"

    assert economy.equip_weapon_skin(profile, "ak47", "0").success
    assert profile.active_loadout.skin_assignments["ak47"] == "0"


def test_items_missing_from_reloaded_catalog_do_not_break_reads(catalog: Catalog) -> None:
    profile = _fresh()
    profile.owned_weapons.add("retired_gun")
    profile.owned_skins.add("retired_skin")

    smaller = Catalog.build(weapons=[catalog.weapons["python"]])

    assert smaller.get(ItemKind.WEAPON, "retired_gun") is None
    assert smaller.get(ItemKind.SKIN, "retired_skin") is None
    assert economy.equip_weapon_skin(profile, "retired_gun", "retired_skin").success
    assert economy.purchase_item(profile, smaller, ItemKind.WEAPON, "ak47").outcome is (
        Outcome.ITEM_NOT_FOUND
    )


def test_cycle_weapon_wraps_in_both_directions(catalog: Catalog) -> None:
    profile = _fresh()
    weapon_ids = catalog.all_ids(ItemKind.WEAPON)
    profile.active_loadout.primary_weapon_id = weapon_ids[-1]

    assert economy.cycle_weapon_selection(profile, catalog, "primary", 1) == weapon_ids[0]
    assert economy.cycle_weapon_selection(profile, catalog, "primary", -1) == weapon_ids[-1]
    assert profile.active_loadout.primary_weapon_id == weapon_ids[-1]


def test_cycle_weapon_treats_unknown_current_as_first(catalog: Catalog) -> None:
    profile = _fresh()
    weapon_ids = catalog.all_ids(ItemKind.WEAPON)
    profile.active_loadout.secondary_weapon_id = "retired_gun"

    selected = economy.cycle_weapon_selection(profile, catalog, "secondary", 1)

    assert selected == weapon_ids[1]
    assert profile.active_loadout.secondary_weapon_id == weapon_ids[1]


def test_cycle_armor_walks_owned_pieces_for_slot(catalog: Catalog) -> None:
    profile = _fresh()

    assert economy.cycle_armor(profile, catalog, "head", 1).outcome is Outcome.NOT_OWNED

    profile.owned_armor.update({"metal.facemask", "coffeecan.helmet", "roadsign.jacket"})
    first = economy.cycle_armor(profile, catalog, ArmorSlot.HEAD, 1)
    second = economy.cycle_armor(profile, catalog, ArmorSlot.HEAD, 1)

    assert first.item_id == "coffeecan.helmet"
    assert second.item_id == "metal.facemask"
    assert profile.active_loadout.armor_head == "metal.facemask"
    assert economy.cycle_armor(profile, catalog, "waist", 1).outcome is Outcome.INVALID_SLOT


def test_equip_attachment_checks_catalog_and_slot(catalog: Catalog) -> None:
    profile = _fresh()

    ok = economy.equip_attachment(profile, catalog, "primary", "optic", "reflex")
    assert ok.success
    assert profile.active_loadout.primary_attachments == {"optic": "reflex"}

    wrong_slot = economy.equip_attachment(profile, catalog, "primary", "barrel", "reflex")
    assert wrong_slot.outcome is Outcome.ITEM_NOT_FOUND
    unknown = economy.equip_attachment(profile, catalog, "secondary", "optic", "thermal")
    assert unknown.outcome is Outcome.ITEM_NOT_FOUND
    bad_weapon = economy.equip_attachment(profile, catalog, "melee", "optic", "reflex")
    assert bad_weapon.outcome is Outcome.INVALID_SLOT
    assert profile.active_loadout.secondary_attachments == {}


def test_record_kill_rewards_attacker_and_counts_death() -> None:
    attacker = _fresh(0)
    victim = PlayerProfile.fresh(2, 0, now=0.0)

    paid = economy.record_kill(attacker, victim, 10)

    assert paid == 10
    assert attacker.token_balance == 10
    assert attacker.total_kills == 1
    assert victim.total_deaths == 1


def test_record_kill_ignores_self_kills() -> None:
    profile = _fresh(0)

    assert economy.record_kill(profile, profile, 10) == 0
    assert profile.total_kills == 0
    assert profile.total_deaths == 0
    assert profile.token_balance == 0


def test_daily_refill_runs_once_per_day() -> None:
    profile = _fresh(12)

    assert economy.apply_daily_refill(profile, 10000, now=100_000.0)
    assert profile.token_balance == 10000
    profile.token_balance = 3

    assert not economy.apply_daily_refill(profile, 10000, now=100_000.0 + 3600)
    assert profile.token_balance == 3
    assert economy.apply_daily_refill(profile, 10000, now=100_000.0 + 86_400)
    assert profile.token_balance == 10000


def test_grant_skin_validates_catalog(catalog: Catalog) -> None:
    profile = _fresh()

    assert economy.grant_skin(profile, catalog, "2561668054").success
    assert economy.grant_skin(profile, catalog, "2561668054").outcome is Outcome.ALREADY_OWNED
    assert economy.grant_skin(profile, catalog, "404").outcome is Outcome.ITEM_NOT_FOUND
    assert profile.token_balance == 500


def test_reset_profile_returns_starting_state() -> None:
    profile = economy.reset_profile(99, 500, now=12.0)

    assert profile.identity == 99
    assert profile.token_balance == 500
    assert not profile.owned_weapons
    assert profile.active_loadout.primary_weapon_id == "ak47"


def test_record_kill_without_attacker_leaves_victim_untouched() -> None:
    victim = _fresh(0)

    assert economy.record_kill(None, victim, 10) == 0
    assert economy.record_kill(_fresh(0), None, 10) == 0
    assert victim.total_deaths == 0
