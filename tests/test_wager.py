from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from dome.economy import Outcome, WagerOutcome, play_wager_round
from dome.models.profiles import PlayerProfile


def _rig_dice(monkeypatch: pytest.MonkeyPatch, *rolls: int) -> list[tuple[int, int]]:
    sequence = iter(rolls)
    calls: list[tuple[int, int]] = []

    def _roll(low: int, high: int) -> int:
        calls.append((low, high))
        return next(sequence)

    monkeypatch.setattr("dome.economy.random.randint", _roll)
    return calls


@pytest.mark.parametrize(
    ("player_roll", "house_roll", "expected", "balance", "payout"),
    [
        (6, 2, WagerOutcome.WIN, 150, 100),
        (1, 4, WagerOutcome.LOSE, 50, 0),
        (3, 3, WagerOutcome.TIE, 100, 50),
    ],
)
def test_wager_payouts_are_exact(
    monkeypatch: pytest.MonkeyPatch,
    player_roll: int,
    house_roll: int,
    expected: WagerOutcome,
    balance: int,
    payout: int,
) -> None:
    calls = _rig_dice(monkeypatch, player_roll, house_roll)
    profile = PlayerProfile.fresh(1, 100, now=0.0)

    result = play_wager_round(profile, 50, now=1000.0)

    assert result.success
    assert result.result is expected
    assert (result.player_roll, result.house_roll) == (player_roll, house_roll)
    assert result.payout == payout
    assert result.balance == balance
    assert profile.token_balance == balance
    assert result.played_at == 1000.0
    assert calls == [(1, 6), (1, 6)]


@pytest.mark.parametrize("bet", [0, 9, 101, -10])
def test_bets_outside_range_are_rejected(bet: int) -> None:
    profile = PlayerProfile.fresh(1, 1000, now=0.0)

    result = play_wager_round(profile, bet, now=0.0)

    assert result.outcome is Outcome.INVALID_BET
    assert profile.token_balance == 1000


def test_bet_bounds_are_inclusive(monkeypatch: pytest.MonkeyPatch) -> None:
    _rig_dice(monkeypatch, 2, 2, 2, 2)
    profile = PlayerProfile.fresh(1, 1000, now=0.0)

    assert play_wager_round(profile, 10, now=0.0).success
    assert play_wager_round(profile, 100, now=60.0).success


def test_wager_requires_funds(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _rig_dice(monkeypatch)
    profile = PlayerProfile.fresh(1, 30, now=0.0)

    result = play_wager_round(profile, 50, now=0.0)

    assert result.outcome is Outcome.INSUFFICIENT_FUNDS
    assert profile.token_balance == 30
    assert calls == []


def test_cooldown_blocks_rounds_within_thirty_seconds() -> None:
    profile = PlayerProfile.fresh(1, 500, now=0.0)

    blocked = play_wager_round(profile, 20, last_played_at=100.0, now=120.0)
    assert blocked.outcome is Outcome.COOLDOWN_ACTIVE
    assert blocked.retry_after == pytest.approx(10.0)
    assert profile.token_balance == 500

    allowed = play_wager_round(
        profile, 20, last_played_at=100.0, now=130.0, rng=random.Random(3)
    )
    assert allowed.success


def test_rolls_tie_about_one_sixth_of_the_time() -> None:
    rng = random.Random(8675309)
    trials = 6000
    ties = 0
    net = 0
    for _ in range(trials):
        profile = PlayerProfile.fresh(1, 100, now=0.0)
        result = play_wager_round(profile, 10, now=0.0, rng=rng)
        assert 1 <= result.player_roll <= 6
        assert 1 <= result.house_roll <= 6
        if result.result is WagerOutcome.TIE:
            ties += 1
            assert profile.token_balance == 100
        net += profile.token_balance - 100

    assert abs(ties / trials - 1 / 6) < 0.02
    assert abs(net / trials) < 1.0
