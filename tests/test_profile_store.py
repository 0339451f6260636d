from __future__ import annotations

import gc
import logging
import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from dome.models.profiles import Loadout, PlayerProfile
from dome.storage import CorruptProfileError, ProfileStore


def _populated_profile(identity: int) -> PlayerProfile:
    profile = PlayerProfile.fresh(identity, 500, now=10.0)
    profile.token_balance = 1234
    profile.owned_weapons.update({"ak47", "python", "mp5"})
    profile.owned_skins.update({"3602286295", "2561668057"})
    profile.owned_armor.add("metal.facemask")
    profile.total_kills = 12
    profile.total_deaths = 4
    profile.matches_played = 3
    profile.is_vip = True
    profile.last_daily_refill = 1716038400.25
    active = profile.active_loadout
    active.skin_assignments["ak47"] = "3602286295"
    active.primary_attachments["optic"] = "reflex"
    active.armor_head = "metal.facemask"
    profile.loadouts.append(Loadout(name="Sniper", primary_weapon_id="bolt"))
    return profile


def test_save_then_load_round_trips(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path)
    profile = _populated_profile(76561198000000001)

    assert store.save(profile, now=99.5)
    loaded = store.load(profile.identity)

    assert profile.last_updated == 99.5
    assert loaded == profile
    assert [loadout.name for loadout in loaded.loadouts] == ["Default", "Sniper"]


def test_round_trip_for_identity_beyond_signed_range(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path)
    identity = 2**64 - 1
    profile = _populated_profile(identity)

    assert store.save(profile, now=1.0)

    assert store.load(identity) == profile


def test_missing_record_yields_fresh_profile(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path, starting_tokens=750)

    profile = store.load(42, now=5.0)

    assert profile.identity == 42
    assert profile.token_balance == 750
    assert not store.exists(42)


def test_corrupt_record_is_logged_and_replaced(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    store = ProfileStore(tmp_path)
    store.directory.mkdir(parents=True)
    store.path_for(42).write_text("identity = 42\ntoken_balance = [", encoding="utf8")

    with caplog.at_level(logging.ERROR, logger="dome.storage"):
        profile = store.load(42)

    assert profile.token_balance == 500
    assert "corrupt profile for 42" in caplog.text


def test_invalid_fields_count_as_corruption(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path)
    store.directory.mkdir(parents=True)
    store.path_for(42).write_text("identity = 42\ntoken_balance = -5\n", encoding="utf8")

    with pytest.raises(CorruptProfileError):
        store.read(42)
    assert store.load(42).token_balance == 500


def test_record_for_another_identity_is_rejected(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path)
    store.save(PlayerProfile.fresh(7, 100, now=0.0))
    store.path_for(7).rename(store.path_for(8))

    with pytest.raises(CorruptProfileError):
        store.read(8)


def test_delete_removes_record(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path)
    store.save(PlayerProfile.fresh(7, 100, now=0.0))

    store.delete(7)
    store.delete(7)

    assert not store.exists(7)


def test_same_identity_uses_one_lock(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path)

    assert store.lock_for(1) is store.lock_for(1)
    assert store.lock_for(1) is not store.lock_for(2)


def test_identity_locks_are_released_after_use(tmp_path: Path) -> None:
    store = ProfileStore(tmp_path)
    held = store.lock_for(1)

    for identity in range(2, 50):
        store.save(PlayerProfile.fresh(identity, 500, now=0.0))
    gc.collect()

    assert store.lock_for(1) is held
    assert set(store._locks.keys()) == {1}
