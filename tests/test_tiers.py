from tokenvet.models import LpLock, Tier
from tokenvet.tiers import BURNED_LOCK_MONTHS, classify, effective_lock_months, lock_months


NOW = 1_700_000_000.0
DAY = 86400


def test_top_tier_for_mature_locked_token():
    assert classify(72, 65, 100, 30, 150_000) == Tier.STELLAR


def test_tiers_step_down_with_requirements():
    assert classify(72, 65, 100, 30, 60_000) == Tier.BLOOM
    assert classify(55, 25, 100, 13, 25_000) == Tier.SPROUT
    assert classify(35, 15, 100, 7, 12_000) == Tier.SEED
    assert classify(29, 15, 100, 7, 12_000) == Tier.NONE


def test_lower_bounds_are_inclusive():
    assert classify(30, 14, 100, 6, 10_000) == Tier.SEED
    assert classify(70, 60, 100, 24, 100_000) == Tier.STELLAR


def test_tier_never_drops_when_inputs_improve():
    order = [Tier.NONE, Tier.NEW, Tier.SEED, Tier.SPROUT, Tier.BLOOM, Tier.STELLAR]
    base = classify(50, 20, 100, 10, 15_000)
    better = classify(80, 90, 100, 40, 500_000)
    assert order.index(better) >= order.index(base)


def test_fallback_uses_lock_percentage_when_horizon_unknown():
    assert classify(72, 65, 95, None, 150_000) == Tier.STELLAR
    # Fallback thresholds are stricter than the known-horizon ones
    assert classify(55, 35, 95, None, 60_000) == Tier.SPROUT
    assert classify(72, 65, 40, None, 150_000) == Tier.NONE


def test_new_tier_for_young_liquid_tokens():
    assert classify(65, 3, None, None, 6_000) == Tier.NEW
    assert classify(59, 3, None, None, 6_000) == Tier.NONE
    assert classify(65, 3, None, None, 4_000) == Tier.NONE
    assert classify(100, 13, 100, 100, 1_000_000) == Tier.NEW


def test_effective_lock_months():
    assert effective_lock_months(99) == 12
    assert effective_lock_months(90) == 12
    assert effective_lock_months(50) == 6
    assert effective_lock_months(49.9) == 0
    assert effective_lock_months(None) == 0


def test_lock_months():
    assert lock_months([], NOW) is None
    assert lock_months([LpLock(tag="Locked")], NOW) is None
    assert lock_months([LpLock(tag="Burned")], NOW) == BURNED_LOCK_MONTHS

    locks = [
        LpLock(tag="Locked", unlock_at=NOW + 60 * DAY),
        LpLock(tag="Locked", unlock_at=NOW + 30 * DAY),
    ]
    assert lock_months(locks, NOW) == 2.0
    assert lock_months([LpLock(tag="Locked", unlock_at=NOW - DAY)], NOW) == 0.0
