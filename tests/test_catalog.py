from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from dome.catalog import (
    ARMOR_FILE,
    WEAPONS_FILE,
    Catalog,
    CatalogHolder,
    CatalogLoadError,
    default_catalog,
    load_catalog,
    parse_catalog,
    parse_weapons_document,
)
from dome.models.catalog import ArmorDefinition, ArmorSlot, ItemKind, RarityTier, WeaponDefinition

WEAPONS_TOML = """
[pricing]
common = 100
rare = 200

[[weapons]]
id = "ak47"
display_name = "AK-47"
external_item_key = "rifle.ak"
base_cost = 500

[[weapons.skins]]
id = "111"
display_name = "Glory"
cost = 0
rarity = "Rare"

[[weapons.skins]]
id = "222"
display_name = "Tempered"
cost = 650
rarity = "epic"
tag = "HOT"

[[weapons]]
id = "mp5"
external_item_key = "smg.mp5"
base_cost = 0

[[attachments]]
id = "holo"
display_name = "Holo Sight"
slot = "scope"
"""

ARMOR_TOML = """
[[armor]]
id = "metal.facemask"
display_name = "Metal Facemask"
slot = "head"
cost = 0
rarity = "legendary"

[[armor]]
id = "boots"
slot = "feet"
cost = 120
"""


def _write_sources(directory: Path) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / WEAPONS_FILE).write_text(WEAPONS_TOML, encoding="utf8")
    (directory / ARMOR_FILE).write_text(ARMOR_TOML, encoding="utf8")


def test_load_catalog_reads_documents(tmp_path: Path) -> None:
    _write_sources(tmp_path)

    catalog = load_catalog(tmp_path)

    assert catalog.all_ids(ItemKind.WEAPON) == ("ak47", "mp5")
    assert catalog.all_ids("armor") == ("metal.facemask", "boots")
    assert catalog.get(ItemKind.ATTACHMENT, "holo") is not None
    assert catalog.pricing.common == 100
    assert catalog.pricing.epic == 600


def test_price_function_is_explicit_cost_then_tier(tmp_path: Path) -> None:
    _write_sources(tmp_path)
    catalog = load_catalog(tmp_path)

    assert catalog.price_of(catalog.get(ItemKind.SKIN, "111")) == 200
    assert catalog.price_of(catalog.get(ItemKind.SKIN, "222")) == 650
    assert catalog.price_of(catalog.get(ItemKind.SKIN, "0")) == 0
    assert catalog.price_of(catalog.get(ItemKind.WEAPON, "ak47")) == 500
    assert catalog.price_of(catalog.get(ItemKind.WEAPON, "mp5")) == 100
    assert catalog.price_of(catalog.get(ItemKind.ARMOR, "metal.facemask")) == 800
    assert catalog.price_of(catalog.get(ItemKind.ARMOR, "boots")) == 120


def test_missing_sources_fall_back_and_write_defaults(tmp_path: Path) -> None:
    source = tmp_path / "catalog"

    catalog = load_catalog(source)

    builtin = default_catalog()
    assert catalog.all_ids(ItemKind.WEAPON) == builtin.all_ids(ItemKind.WEAPON)
    assert (source / WEAPONS_FILE).exists()
    assert (source / ARMOR_FILE).exists()

    reloaded = load_catalog(source)
    assert reloaded.weapons == catalog.weapons
    assert reloaded.armor == catalog.armor
    assert reloaded.attachments == catalog.attachments


def test_malformed_source_uses_defaults_and_is_left_alone(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    _write_sources(tmp_path)
    broken = "[[weapons]\nid = "
    (tmp_path / WEAPONS_FILE).write_text(broken, encoding="utf8")

    with caplog.at_level(logging.ERROR, logger="dome.catalog"):
        catalog = load_catalog(tmp_path)

    assert catalog.all_ids(ItemKind.WEAPON) == default_catalog().all_ids(ItemKind.WEAPON)
    assert catalog.all_ids(ItemKind.ARMOR) == ("metal.facemask", "boots")
    assert (tmp_path / WEAPONS_FILE).read_text(encoding="utf8") == broken
    assert WEAPONS_FILE in caplog.text


def test_invalid_entry_falls_back_for_that_document(tmp_path: Path) -> None:
    _write_sources(tmp_path)
    (tmp_path / ARMOR_FILE).write_text(
        '[[armor]]\nid = "cape"\nslot = "shoulders"\n', encoding="utf8"
    )

    catalog = load_catalog(tmp_path)

    assert catalog.all_ids(ItemKind.WEAPON) == ("ak47", "mp5")
    assert catalog.all_ids(ItemKind.ARMOR) == default_catalog().all_ids(ItemKind.ARMOR)


def test_weapons_document_without_weapons_is_rejected() -> None:
    with pytest.raises(CatalogLoadError):
        parse_weapons_document({"weapons": []})


def test_reload_with_identical_sources_is_idempotent(tmp_path: Path) -> None:
    _write_sources(tmp_path)
    holder = CatalogHolder(tmp_path)
    before = holder.current

    after = holder.reload()

    assert after is not before
    for kind in ItemKind:
        assert after.all_ids(kind) == before.all_ids(kind)
        for item_id in before.all_ids(kind):
            assert after.get(kind, item_id) == before.get(kind, item_id)
            assert after.price_of(after.get(kind, item_id)) == before.price_of(
                before.get(kind, item_id)
            )


def test_readers_see_whole_catalogs_during_reload(tmp_path: Path) -> None:
    _write_sources(tmp_path)
    holder = CatalogHolder(tmp_path)
    stop = threading.Event()
    mixed: list[tuple[int, int]] = []

    def _reader() -> None:
        while not stop.is_set():
            catalog = holder.current
            counts = (len(catalog.weapons), len(catalog.armor))
            if counts not in {(2, 2), (10, 8)}:
                mixed.append(counts)

    reader = threading.Thread(target=_reader)
    reader.start()
    try:
        for index in range(20):
            if index % 2:
                _write_sources(tmp_path)
            else:
                (tmp_path / WEAPONS_FILE).unlink()
                (tmp_path / ARMOR_FILE).unlink()
            holder.reload()
    finally:
        stop.set()
        reader.join()

    assert mixed == []


def test_unknown_ids_report_not_found() -> None:
    catalog = default_catalog()

    assert catalog.get(ItemKind.WEAPON, "railgun") is None
    assert not catalog.contains("skins", "nope")
    assert catalog.skin_for("ak47", "2561668054") is None
    assert catalog.skin_for("railgun", "0") is None
    assert catalog.skin_for("ak47", "0") is not None


def test_duplicate_ids_keep_first_definition() -> None:
    first = WeaponDefinition(id="ak47", display_name="First", external_item_key="a")
    second = WeaponDefinition(id="ak47", display_name="Second", external_item_key="b")

    catalog = Catalog.build(weapons=[first, second])

    assert catalog.weapons["ak47"].display_name == "First"


def test_parse_catalog_normalises_tiers_and_slots() -> None:
    catalog = parse_catalog(
        {"weapons": [{"id": "gun", "external_item_key": "g", "skins": [{"id": "9", "rarity": "LEGENDARY"}]}]},
        {"armor": [{"id": "hood", "slot": "Head"}]},
    )

    assert catalog.get(ItemKind.SKIN, "9").rarity is RarityTier.LEGENDARY
    assert catalog.get(ItemKind.ARMOR, "hood").slot is ArmorSlot.HEAD
    assert catalog.all_ids(ItemKind.ATTACHMENT) == ("reflex", "silencer", "extended_mag")


def test_armor_without_cost_is_priced_by_tier(tmp_path: Path) -> None:
    _write_sources(tmp_path)
    (tmp_path / ARMOR_FILE).write_text(
        '[[armor]]\nid = "visor"\nslot = "head"\nrarity = "epic"\n\n'
        '[[armor]]\nid = "wraps"\nslot = "hands"\n',
        encoding="utf8",
    )

    catalog = load_catalog(tmp_path)
    builtin = default_catalog()

    assert catalog.price_of(catalog.get(ItemKind.ARMOR, "visor")) == 600
    assert catalog.price_of(catalog.get(ItemKind.ARMOR, "wraps")) == 100
    assert builtin.price_of(ArmorDefinition.from_mapping({"id": "x", "slot": "head", "rarity": "epic"})) == 600
    assert builtin.price_of(ArmorDefinition.from_mapping({"id": "y", "slot": "legs"})) == 250


def test_unknown_rarity_keeps_the_document_and_prices_as_common(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    (tmp_path / WEAPONS_FILE).write_text(
        '[[weapons]]\nid = "custom_gun"\nexternal_item_key = "rifle.custom"\n\n'
        '[[weapons.skins]]\nid = "77"\nrarity = "Mythic"\n',
        encoding="utf8",
    )

    with caplog.at_level(logging.ERROR, logger="dome.catalog"):
        catalog = load_catalog(tmp_path)

    assert catalog.all_ids(ItemKind.WEAPON) == ("custom_gun",)
    skin = catalog.skin_for("custom_gun", "77")
    assert skin is not None
    assert skin.rarity is RarityTier.COMMON
    assert catalog.price_of(skin) == catalog.pricing.common
    assert not [record for record in caplog.records if record.levelno >= logging.ERROR]
