import time
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import LpLock, Tier


BURNED_LOCK_MONTHS = 999.0
SECONDS_PER_MONTH = 30 * 24 * 3600


@dataclass(frozen=True)
class TierRule:
    tier: Tier
    min_age_days: float
    min_liquidity: float
    min_lock_months: float
    min_score: int
    fallback_score: int


# Highest first; the first rule a token satisfies is its tier
TIER_RULES = (
    TierRule(Tier.STELLAR, 60, 100_000, 24, 70, 70),
    TierRule(Tier.BLOOM, 30, 50_000, 24, 50, 60),
    TierRule(Tier.SPROUT, 21, 20_000, 12, 50, 55),
    TierRule(Tier.SEED, 14, 10_000, 6, 30, 50),
)

NEW_MAX_AGE_DAYS = 14
NEW_MIN_LIQUIDITY = 5_000
NEW_MIN_SCORE = 60


def lock_months(locks: Iterable[LpLock], now: Optional[float] = None) -> Optional[float]:
    """Longest remaining lock horizon in months, 999 for burned LP, None if unknown."""
    now = time.time() if now is None else now
    best: Optional[float] = None
    for lock in locks:
        if lock.is_burned:
            return BURNED_LOCK_MONTHS
        if lock.unlock_at is None:
            continue
        months = max(0.0, (lock.unlock_at - now) / SECONDS_PER_MONTH)
        if best is None or months > best:
            best = months
    return best


def effective_lock_months(lp_lock_percent: Optional[float]) -> int:
    pct = lp_lock_percent or 0.0
    if pct >= 90:
        return 12
    if pct >= 50:
        return 6
    return 0


def classify(
    score: int,
    age_days: float,
    lp_lock_percent: Optional[float],
    lp_lock_months: Optional[float],
    liquidity_usd: Optional[float],
) -> Tier:
    liquidity = liquidity_usd or 0.0
    for rule in TIER_RULES:
        if age_days < rule.min_age_days or liquidity < rule.min_liquidity:
            continue
        if lp_lock_months is not None:
            if lp_lock_months >= rule.min_lock_months and score >= rule.min_score:
                return rule.tier
        elif score >= rule.fallback_score and effective_lock_months(lp_lock_percent) > 0:
            return rule.tier

    if age_days < NEW_MAX_AGE_DAYS and liquidity >= NEW_MIN_LIQUIDITY and score >= NEW_MIN_SCORE:
        return Tier.NEW
    return Tier.NONE
