"""Wallet and ownership mutations applied to a single player profile.

Every operation either applies completely or leaves the profile untouched,
and reports the result as a typed value.  Validation failures are ordinary
outcomes here, never exceptions.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .catalog import Catalog
from .models.catalog import (
    DEFAULT_SKIN_ID,
    ArmorSlot,
    AttachmentDefinition,
    AttachmentSlot,
    CatalogItem,
    ItemKind,
)
from .models.profiles import PlayerProfile

log = logging.getLogger(__name__)

WAGER_MIN_BET = 10
WAGER_MAX_BET = 100
WAGER_COOLDOWN_SECONDS = 30.0
WAGER_DIE_FACES = 6

DAILY_REFILL_INTERVAL_SECONDS = 24 * 60 * 60

WEAPON_SLOTS = ("primary", "secondary")


class Outcome(str, Enum):
    """Result kinds reported to the command layer."""

    SUCCESS = "success"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ALREADY_OWNED = "already_owned"
    ITEM_NOT_FOUND = "item_not_found"
    NOT_OWNED = "not_owned"
    INVALID_BET = "invalid_bet"
    COOLDOWN_ACTIVE = "cooldown_active"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_SLOT = "invalid_slot"
    PRICE_MISMATCH = "price_mismatch"
    THROTTLED = "throttled"
    NO_SESSION = "no_session"

    @property
    def is_success(self) -> bool:
        return self is Outcome.SUCCESS


class WagerOutcome(str, Enum):
    WIN = "win"
    LOSE = "lose"
    TIE = "tie"


@dataclass(frozen=True, slots=True)
class EconomyResult:
    outcome: Outcome
    balance: int
    item_id: Optional[str] = None
    price: int = 0

    @property
    def success(self) -> bool:
        return self.outcome.is_success


@dataclass(frozen=True, slots=True)
class SelectionResult:
    outcome: Outcome
    item_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome.is_success


@dataclass(frozen=True, slots=True)
class WagerResult:
    outcome: Outcome
    balance: int
    bet: int = 0
    result: Optional[WagerOutcome] = None
    player_roll: int = 0
    house_roll: int = 0
    payout: int = 0
    played_at: Optional[float] = None
    retry_after: float = 0.0

    @property
    def success(self) -> bool:
        return self.outcome.is_success

    @property
    def net(self) -> int:
        return self.payout - self.bet if self.success else 0


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


def award(profile: PlayerProfile, amount: int) -> EconomyResult:
    if amount < 0:
        return EconomyResult(Outcome.INVALID_AMOUNT, profile.token_balance)
    profile.token_balance += amount
    log.debug(
        "Awarded %s tokens to %s; balance %s", amount, profile.identity, profile.token_balance
    )
    return EconomyResult(Outcome.SUCCESS, profile.token_balance, price=amount)


def spend(profile: PlayerProfile, amount: int) -> EconomyResult:
    if amount < 0:
        return EconomyResult(Outcome.INVALID_AMOUNT, profile.token_balance)
    if profile.token_balance < amount:
        return EconomyResult(Outcome.INSUFFICIENT_FUNDS, profile.token_balance, price=amount)
    profile.token_balance -= amount
    return EconomyResult(Outcome.SUCCESS, profile.token_balance, price=amount)


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


def _owned_set_for(profile: PlayerProfile, kind: ItemKind) -> Optional[set[str]]:
    if kind is ItemKind.ATTACHMENT:
        return None
    return profile.owned_set(kind.value)


def is_owned(profile: PlayerProfile, kind: ItemKind | str, item_id: str) -> bool:
    resolved = ItemKind.from_value(kind)
    if resolved is ItemKind.SKIN and item_id == DEFAULT_SKIN_ID:
        return True
    owned = _owned_set_for(profile, resolved)
    return owned is not None and item_id in owned


def _complete_purchase(
    profile: PlayerProfile,
    owned: set[str],
    item_id: str,
    price: int,
) -> EconomyResult:
    if profile.token_balance < price:
        return EconomyResult(
            Outcome.INSUFFICIENT_FUNDS, profile.token_balance, item_id=item_id, price=price
        )
    # Both steps below are infallible once the balance check has passed.
    profile.token_balance -= price
    owned.add(item_id)
    log.debug("Player %s purchased %s for %s tokens", profile.identity, item_id, price)
    return EconomyResult(Outcome.SUCCESS, profile.token_balance, item_id=item_id, price=price)


def purchase_item(
    profile: PlayerProfile,
    catalog: Catalog,
    kind: ItemKind | str,
    item_id: str,
) -> EconomyResult:
    """Buy ``item_id`` of ``kind`` at its catalog price."""

    resolved = ItemKind.from_value(kind)
    owned = _owned_set_for(profile, resolved)
    item = catalog.get(resolved, item_id)
    if item is None or owned is None:
        return EconomyResult(Outcome.ITEM_NOT_FOUND, profile.token_balance, item_id=item_id)
    if is_owned(profile, resolved, item_id):
        return EconomyResult(Outcome.ALREADY_OWNED, profile.token_balance, item_id=item_id)
    return _complete_purchase(profile, owned, item_id, catalog.price_of(item))


def purchase_skin(
    profile: PlayerProfile,
    catalog: Catalog,
    weapon_id: str,
    skin_id: str,
) -> EconomyResult:
    """Buy a skin listed for ``weapon_id``; the weapon itself must be owned."""

    skin = catalog.skin_for(weapon_id, skin_id)
    if skin is None:
        return EconomyResult(Outcome.ITEM_NOT_FOUND, profile.token_balance, item_id=skin_id)
    if is_owned(profile, ItemKind.SKIN, skin_id):
        return EconomyResult(Outcome.ALREADY_OWNED, profile.token_balance, item_id=skin_id)
    if weapon_id not in profile.owned_weapons:
        return EconomyResult(Outcome.NOT_OWNED, profile.token_balance, item_id=weapon_id)
    return _complete_purchase(profile, profile.owned_skins, skin_id, catalog.price_of(skin))


def quote(catalog: Catalog, kind: ItemKind | str, item_id: str) -> Optional[int]:
    item: Optional[CatalogItem] = catalog.get(kind, item_id)
    if item is None:
        return None
    return catalog.price_of(item)


def grant_skin(profile: PlayerProfile, catalog: Catalog, skin_id: str) -> EconomyResult:
    """Give ``skin_id`` to ``profile`` free of charge."""

    if catalog.get(ItemKind.SKIN, skin_id) is None:
        return EconomyResult(Outcome.ITEM_NOT_FOUND, profile.token_balance, item_id=skin_id)
    if is_owned(profile, ItemKind.SKIN, skin_id):
        return EconomyResult(Outcome.ALREADY_OWNED, profile.token_balance, item_id=skin_id)
    profile.owned_skins.add(skin_id)
    return EconomyResult(Outcome.SUCCESS, profile.token_balance, item_id=skin_id)


# ---------------------------------------------------------------------------
# Loadout editing
# ---------------------------------------------------------------------------


def equip_weapon_skin(profile: PlayerProfile, weapon_id: str, skin_id: str) -> EconomyResult:
    """Assign ``skin_id`` to ``weapon_id`` in the active loadout.

    Ownership is checked only here; an assignment made while owned stays in
    place even if the skin is later revoked or dropped from the catalog.
    """

    if not is_owned(profile, ItemKind.SKIN, skin_id):
        return EconomyResult(Outcome.NOT_OWNED, profile.token_balance, item_id=skin_id)
    profile.active_loadout.skin_assignments[weapon_id] = skin_id
    return EconomyResult(Outcome.SUCCESS, profile.token_balance, item_id=skin_id)


def equip_attachment(
    profile: PlayerProfile,
    catalog: Catalog,
    weapon_slot: str,
    attachment_slot: AttachmentSlot | str,
    attachment_id: str,
) -> EconomyResult:
    if weapon_slot not in WEAPON_SLOTS:
        return EconomyResult(Outcome.INVALID_SLOT, profile.token_balance, item_id=attachment_id)
    try:
        slot = AttachmentSlot.from_value(attachment_slot)
    except ValueError:
        return EconomyResult(Outcome.INVALID_SLOT, profile.token_balance, item_id=attachment_id)
    attachment = catalog.get(ItemKind.ATTACHMENT, attachment_id)
    if not isinstance(attachment, AttachmentDefinition) or attachment.slot is not slot:
        return EconomyResult(Outcome.ITEM_NOT_FOUND, profile.token_balance, item_id=attachment_id)
    profile.active_loadout.attachments_for(weapon_slot)[slot.value] = attachment_id
    return EconomyResult(Outcome.SUCCESS, profile.token_balance, item_id=attachment_id)


def _step(direction: int) -> int:
    return 1 if direction >= 0 else -1


def cycle_weapon_selection(
    profile: PlayerProfile, catalog: Catalog, slot: str, direction: int
) -> str:
    """Move the weapon in ``slot`` one step through the catalog, wrapping around.

    Ownership is not required; an unrecognised current weapon counts as index 0.
    """

    loadout = profile.active_loadout
    current = loadout.weapon_for(slot)
    weapon_ids = catalog.all_ids(ItemKind.WEAPON)
    if not weapon_ids:
        return current
    try:
        index = weapon_ids.index(current)
    except ValueError:
        index = 0
    selected = weapon_ids[(index + _step(direction)) % len(weapon_ids)]
    loadout.set_weapon(slot, selected)
    return selected


def cycle_armor(
    profile: PlayerProfile, catalog: Catalog, slot: ArmorSlot | str, direction: int
) -> SelectionResult:
    """Move the armor in ``slot`` one step through the owned pieces for that slot."""

    try:
        resolved = ArmorSlot.from_value(slot)
    except ValueError:
        return SelectionResult(Outcome.INVALID_SLOT)
    owned = [
        piece.id for piece in catalog.armor_for_slot(resolved) if piece.id in profile.owned_armor
    ]
    if not owned:
        return SelectionResult(Outcome.NOT_OWNED)
    loadout = profile.active_loadout
    current = loadout.armor_in(resolved)
    index = owned.index(current) if current in owned else 0
    selected = owned[(index + _step(direction)) % len(owned)]
    loadout.set_armor(resolved, selected)
    return SelectionResult(Outcome.SUCCESS, selected)


# ---------------------------------------------------------------------------
# Wager minigame
# ---------------------------------------------------------------------------


def play_wager_round(
    profile: PlayerProfile,
    bet: int,
    *,
    last_played_at: Optional[float] = None,
    now: Optional[float] = None,
    rng: Optional[random.Random] = None,
    cooldown: float = WAGER_COOLDOWN_SECONDS,
) -> WagerResult:
    """Roll one die for the player and one for the house.

    The bet is taken up front.  A higher player roll pays twice the bet, a
    lower roll pays nothing and a tie refunds the bet.
    """

    current = time.time() if now is None else now
    if last_played_at is not None:
        elapsed = current - last_played_at
        if elapsed < cooldown:
            return WagerResult(
                Outcome.COOLDOWN_ACTIVE,
                profile.token_balance,
                bet=bet,
                retry_after=cooldown - elapsed,
            )
    if not WAGER_MIN_BET <= bet <= WAGER_MAX_BET:
        return WagerResult(Outcome.INVALID_BET, profile.token_balance, bet=bet)
    if profile.token_balance < bet:
        return WagerResult(Outcome.INSUFFICIENT_FUNDS, profile.token_balance, bet=bet)

    profile.token_balance -= bet
    roller = rng if rng is not None else random
    player_roll = roller.randint(1, WAGER_DIE_FACES)
    house_roll = roller.randint(1, WAGER_DIE_FACES)

    if player_roll > house_roll:
        result, payout = WagerOutcome.WIN, bet * 2
    elif player_roll < house_roll:
        result, payout = WagerOutcome.LOSE, 0
    else:
        result, payout = WagerOutcome.TIE, bet
    profile.token_balance += payout
    log.debug(
        "Wager for %s: bet %s, rolls %s vs %s, %s",
        profile.identity,
        bet,
        player_roll,
        house_roll,
        result.value,
    )
    return WagerResult(
        Outcome.SUCCESS,
        profile.token_balance,
        bet=bet,
        result=result,
        player_roll=player_roll,
        house_roll=house_roll,
        payout=payout,
        played_at=current,
    )


# ---------------------------------------------------------------------------
# Match rewards and allowances
# ---------------------------------------------------------------------------


def record_kill(
    attacker: Optional[PlayerProfile],
    victim: Optional[PlayerProfile],
    reward: int,
) -> int:
    """Credit a kill to ``attacker`` and a death to ``victim``; returns tokens paid.

    Nothing is recorded unless a different player made the kill.
    """

    if attacker is None or victim is None or attacker.identity == victim.identity:
        return 0
    victim.total_deaths += 1
    attacker.total_kills += 1
    paid = max(0, int(reward))
    attacker.token_balance += paid
    return paid


def apply_daily_refill(
    profile: PlayerProfile,
    amount: int,
    *,
    now: Optional[float] = None,
    interval: float = DAILY_REFILL_INTERVAL_SECONDS,
) -> bool:
    """Reset the balance to ``amount`` once per ``interval``; returns whether it ran."""

    current = time.time() if now is None else now
    if current - profile.last_daily_refill < interval:
        return False
    profile.token_balance = max(0, int(amount))
    profile.last_daily_refill = current
    return True


def reset_profile(
    identity: int, starting_tokens: int, *, now: Optional[float] = None
) -> PlayerProfile:
    """Return a replacement profile for ``identity`` holding only the starting grant."""

    return PlayerProfile.fresh(identity, starting_tokens, now=now)


__all__ = [
    "EconomyResult",
    "Outcome",
    "SelectionResult",
    "WAGER_COOLDOWN_SECONDS",
    "WAGER_MAX_BET",
    "WAGER_MIN_BET",
    "WagerOutcome",
    "WagerResult",
    "apply_daily_refill",
    "award",
    "cycle_armor",
    "cycle_weapon_selection",
    "equip_attachment",
    "equip_weapon_skin",
    "grant_skin",
    "is_owned",
    "play_wager_round",
    "purchase_item",
    "purchase_skin",
    "quote",
    "record_kill",
    "reset_profile",
    "spend",
]
