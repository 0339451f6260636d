"""Command handling between the chat surface and the economy core.

Every mutating command follows the same path: the rate limiter admits it,
the registry resolves the caller's session, the economy operation runs under
the session lock and a successful mutation is saved before the lock is
released.  Results are always typed values from :mod:`dome.economy`.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from . import economy
from .catalog import Catalog, CatalogHolder
from .config import DomeConfig
from .economy import EconomyResult, Outcome, SelectionResult, WagerResult
from .models.catalog import DEFAULT_SKIN_ID, ItemKind
from .models.profiles import Loadout, PlayerProfile, iter_equipped_ids
from .ratelimit import RateLimiter
from .sessions import Session, SessionRegistry
from .utils import kill_death_ratio

log = logging.getLogger(__name__)

R = TypeVar("R", EconomyResult, SelectionResult, WagerResult)


@dataclass(slots=True)
class EventCounters:
    kills: int = 0
    purchases: int = 0
    wagers: int = 0
    tokens_awarded: int = 0
    tokens_spent: int = 0
    throttled: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def bump(self, **amounts: int) -> None:
        with self._lock:
            for name, amount in amounts.items():
                setattr(self, name, getattr(self, name) + amount)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {
                "kills": self.kills,
                "purchases": self.purchases,
                "wagers": self.wagers,
                "tokens_awarded": self.tokens_awarded,
                "tokens_spent": self.tokens_spent,
                "throttled": self.throttled,
            }


@dataclass(frozen=True, slots=True)
class ProfileStats:
    identity: int
    token_balance: int
    total_kills: int
    total_deaths: int
    matches_played: int
    kill_death_ratio: float
    is_vip: bool
    owned_weapons: int
    owned_skins: int
    owned_armor: int
    loadout_name: str
    primary_weapon_id: str
    secondary_weapon_id: str
    unknown_equipped: tuple[str, ...] = ()


class CommandService:
    def __init__(
        self,
        registry: SessionRegistry,
        catalogs: CatalogHolder,
        limiter: RateLimiter | None = None,
        config: DomeConfig | None = None,
    ) -> None:
        self.config = config or DomeConfig()
        self.registry = registry
        self.catalogs = catalogs
        self.limiter = limiter or registry.limiter or RateLimiter(
            self.config.rate_limit, self.config.rate_window
        )
        self.counters = EventCounters()

    @property
    def catalog(self) -> Catalog:
        return self.catalogs.current

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _balance_of(self, identity: int) -> int:
        session = self.registry.get(identity)
        return session.profile.token_balance if session is not None else 0

    def _admit(self, identity: int, now: float | None) -> bool:
        if self.limiter.allow(identity, now=now):
            return True
        self.counters.bump(throttled=1)
        log.debug("Throttled command from %s", identity)
        return False

    def _run_locked(
        self,
        session_for: Callable[[], Optional[Session]],
        action: Callable[[Session], R],
        missing: Callable[[], R],
        *,
        now: float | None,
    ) -> R:
        while True:
            session = session_for()
            if session is None:
                return missing()
            with session.lock:
                if session.closed:
                    continue
                result = action(session)
                if result.success:
                    self.registry.store.save(session.profile, now=now)
                return result

    def _mutate(
        self,
        identity: int,
        action: Callable[[Session], R],
        rejected: Callable[[Outcome], R],
        *,
        now: float | None,
    ) -> R:
        if not self._admit(identity, now):
            return rejected(Outcome.THROTTLED)
        return self._run_locked(
            lambda: self.registry.get_or_create(identity, now=now),
            action,
            lambda: rejected(Outcome.NO_SESSION),
            now=now,
        )

    def _economy_rejection(self, identity: int) -> Callable[[Outcome], EconomyResult]:
        return lambda outcome: EconomyResult(outcome, self._balance_of(identity))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(
        self, identity: int, *, is_admin: bool = False, now: float | None = None
    ) -> Session:
        session = self.registry.get_or_create(identity, now=now)
        if is_admin and self.config.daily_refill:
            with session.lock:
                refilled = economy.apply_daily_refill(
                    session.profile, self.config.admin_daily_tokens, now=now
                )
                if refilled:
                    self.registry.store.save(session.profile, now=now)
                    log.info(
                        "Admin %s received the daily refill of %s tokens",
                        identity,
                        self.config.admin_daily_tokens,
                    )
        return session

    def disconnect(self, identity: int, *, now: float | None = None) -> bool:
        return self.registry.remove(identity, now=now)

    def autosave(self, *, now: float | None = None) -> int:
        return self.registry.save_all(now=now)

    def reload_catalog(self) -> Catalog:
        catalog = self.catalogs.reload()
        log.info("Catalog reloaded: %s", catalog.summary())
        return catalog

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def _record_purchase(self, result: EconomyResult) -> EconomyResult:
        if result.success:
            self.counters.bump(purchases=1, tokens_spent=result.price)
        return result

    def purchase_weapon(
        self, identity: int, weapon_id: str, *, now: float | None = None
    ) -> EconomyResult:
        return self._mutate(
            identity,
            lambda session: self._record_purchase(
                economy.purchase_item(session.profile, self.catalog, ItemKind.WEAPON, weapon_id)
            ),
            self._economy_rejection(identity),
            now=now,
        )

    def purchase_skin(
        self, identity: int, weapon_id: str, skin_id: str, *, now: float | None = None
    ) -> EconomyResult:
        return self._mutate(
            identity,
            lambda session: self._record_purchase(
                economy.purchase_skin(session.profile, self.catalog, weapon_id, skin_id)
            ),
            self._economy_rejection(identity),
            now=now,
        )

    def purchase_armor(
        self,
        identity: int,
        item_id: str,
        quoted_cost: int | None = None,
        *,
        now: float | None = None,
    ) -> EconomyResult:
        """Buy armor; a quoted cost that disagrees with the catalog is refused."""

        def action(session: Session) -> EconomyResult:
            catalog = self.catalog
            price = economy.quote(catalog, ItemKind.ARMOR, item_id)
            if price is not None and quoted_cost is not None and quoted_cost != price:
                log.debug(
                    "Quoted cost %s for %s does not match catalog price %s",
                    quoted_cost,
                    item_id,
                    price,
                )
                return EconomyResult(
                    Outcome.PRICE_MISMATCH,
                    session.profile.token_balance,
                    item_id=item_id,
                    price=price,
                )
            return self._record_purchase(
                economy.purchase_item(session.profile, catalog, ItemKind.ARMOR, item_id)
            )

        return self._mutate(identity, action, self._economy_rejection(identity), now=now)

    # ------------------------------------------------------------------
    # Loadout
    # ------------------------------------------------------------------

    def equip_skin(
        self, identity: int, weapon_slot: str, skin_id: str, *, now: float | None = None
    ) -> EconomyResult:
        def action(session: Session) -> EconomyResult:
            loadout = session.profile.active_loadout
            try:
                weapon_id = loadout.weapon_for(weapon_slot)
            except ValueError:
                return EconomyResult(
                    Outcome.INVALID_SLOT, session.profile.token_balance, item_id=skin_id
                )
            return economy.equip_weapon_skin(session.profile, weapon_id, skin_id)

        return self._mutate(identity, action, self._economy_rejection(identity), now=now)

    def equip_attachment(
        self,
        identity: int,
        weapon_slot: str,
        attachment_slot: str,
        attachment_id: str,
        *,
        now: float | None = None,
    ) -> EconomyResult:
        return self._mutate(
            identity,
            lambda session: economy.equip_attachment(
                session.profile, self.catalog, weapon_slot, attachment_slot, attachment_id
            ),
            self._economy_rejection(identity),
            now=now,
        )

    def cycle_weapon(
        self, identity: int, slot: str, direction: int, *, now: float | None = None
    ) -> SelectionResult:
        def action(session: Session) -> SelectionResult:
            if slot not in economy.WEAPON_SLOTS:
                return SelectionResult(Outcome.INVALID_SLOT)
            selected = economy.cycle_weapon_selection(
                session.profile, self.catalog, slot, direction
            )
            session.navigation.editing_slot = slot
            return SelectionResult(Outcome.SUCCESS, selected)

        return self._mutate(identity, action, SelectionResult, now=now)

    def cycle_armor(
        self, identity: int, slot: str, direction: int, *, now: float | None = None
    ) -> SelectionResult:
        return self._mutate(
            identity,
            lambda session: economy.cycle_armor(session.profile, self.catalog, slot, direction),
            SelectionResult,
            now=now,
        )

    # ------------------------------------------------------------------
    # Wager
    # ------------------------------------------------------------------

    def play_wager(self, identity: int, bet: int, *, now: float | None = None) -> WagerResult:
        current = time.time() if now is None else now

        def action(session: Session) -> WagerResult:
            result = economy.play_wager_round(
                session.profile,
                bet,
                last_played_at=session.last_wager_at,
                now=current,
                cooldown=self.config.wager_cooldown,
            )
            if result.success:
                session.last_wager_at = result.played_at
                self.counters.bump(wagers=1)
            return result

        return self._mutate(
            identity,
            action,
            lambda outcome: WagerResult(outcome, self._balance_of(identity), bet=bet),
            now=now,
        )

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def admin_grant_skin(
        self, admin_identity: int, target: int, skin_id: str, *, now: float | None = None
    ) -> EconomyResult:
        """Give ``skin_id`` to a connected player."""

        if not self._admit(admin_identity, now):
            return EconomyResult(Outcome.THROTTLED, self._balance_of(target), item_id=skin_id)
        result = self._run_locked(
            lambda: self.registry.get(target),
            lambda session: economy.grant_skin(session.profile, self.catalog, skin_id),
            lambda: EconomyResult(Outcome.NO_SESSION, 0, item_id=skin_id),
            now=now,
        )
        if result.success:
            log.info("Admin %s granted skin %s to %s", admin_identity, skin_id, target)
        return result

    def admin_reset_profile(
        self, admin_identity: int, target: int, *, now: float | None = None
    ) -> EconomyResult:
        """Replace ``target``'s profile with a fresh one, online or not."""

        if not self._admit(admin_identity, now):
            return EconomyResult(Outcome.THROTTLED, self._balance_of(target))
        profile = economy.reset_profile(target, self.registry.store.starting_tokens, now=now)
        session = self.registry.get(target)
        if session is not None:
            with session.lock:
                self.registry.replace_profile(target, profile)
                self.registry.store.save(profile, now=now)
        else:
            self.registry.store.save(profile, now=now)
        log.info("Admin %s reset the profile of %s", admin_identity, target)
        return EconomyResult(Outcome.SUCCESS, profile.token_balance)

    # ------------------------------------------------------------------
    # Match events and reads
    # ------------------------------------------------------------------

    def award_kill(
        self, attacker: Optional[int], victim: Optional[int], *, now: float | None = None
    ) -> int:
        """Credit a kill between resident players; returns tokens paid."""

        attacker_session = self.registry.get(attacker) if attacker is not None else None
        victim_session = self.registry.get(victim) if victim is not None else None
        sessions = [s for s in (attacker_session, victim_session) if s is not None]
        if attacker_session is victim_session and attacker_session is not None:
            sessions = [attacker_session]
        sessions.sort(key=lambda s: s.identity)

        for session in sessions:
            session.lock.acquire()
        try:
            paid = economy.record_kill(
                attacker_session.profile if attacker_session else None,
                victim_session.profile if victim_session else None,
                self.config.tokens_per_kill,
            )
            for session in sessions:
                if not session.closed:
                    self.registry.store.save(session.profile, now=now)
        finally:
            for session in reversed(sessions):
                session.lock.release()
        if paid:
            self.counters.bump(kills=1, tokens_awarded=paid)
        return paid

    def record_match(self, identities: list[int], *, now: float | None = None) -> int:
        counted = 0
        for identity in identities:
            session = self.registry.get(identity)
            if session is None:
                continue
            with session.lock:
                session.profile.matches_played += 1
                self.registry.store.save(session.profile, now=now)
            counted += 1
        return counted

    def stats(self, identity: int) -> Optional[ProfileStats]:
        """Snapshot a resident profile without loading one as a side effect."""

        session = self.registry.get(identity)
        if session is None:
            return None
        catalog = self.catalog
        with session.lock:
            profile: PlayerProfile = session.profile
            loadout = profile.active_loadout
            known = set(catalog.all_ids(ItemKind.WEAPON))
            known.update(catalog.all_ids(ItemKind.SKIN))
            known.update(catalog.all_ids(ItemKind.ARMOR))
            known.update(catalog.all_ids(ItemKind.ATTACHMENT))
            unknown = tuple(
                sorted(
                    {
                        item_id
                        for item_id in iter_equipped_ids(loadout)
                        if item_id not in known and item_id != DEFAULT_SKIN_ID
                    }
                )
            )
            return ProfileStats(
                identity=profile.identity,
                token_balance=profile.token_balance,
                total_kills=profile.total_kills,
                total_deaths=profile.total_deaths,
                matches_played=profile.matches_played,
                kill_death_ratio=kill_death_ratio(profile.total_kills, profile.total_deaths),
                is_vip=profile.is_vip,
                owned_weapons=len(profile.owned_weapons),
                owned_skins=len(profile.owned_skins),
                owned_armor=len(profile.owned_armor),
                loadout_name=loadout.name,
                primary_weapon_id=loadout.primary_weapon_id,
                secondary_weapon_id=loadout.secondary_weapon_id,
                unknown_equipped=unknown,
            )

    def loadout_snapshot(self, identity: int) -> Optional[Loadout]:
        """Copy of the active loadout of a resident player."""

        session = self.registry.get(identity)
        if session is None:
            return None
        with session.lock:
            return copy.deepcopy(session.profile.active_loadout)

    def browse_catalog(self, identity: int, category: str) -> frozenset[str]:
        """Remember the browsed category and return the weapon and armor ids owned."""

        session = self.registry.get(identity)
        if session is None:
            return frozenset()
        with session.lock:
            session.navigation.store_category = category
            return frozenset(session.profile.owned_weapons | session.profile.owned_armor)


__all__ = ["CommandService", "EventCounters", "ProfileStats"]
