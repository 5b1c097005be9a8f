"""Deterministic risk scoring over assembled vetting data.

Four component scorers each start at 100 and apply banded deductions. Missing
inputs never abort scoring; they cost points and leave a flag explaining why.
"""
import time
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from .models import (
    ComponentScore,
    DeveloperInfo,
    HolderInfo,
    RiskLevel,
    SecurityInfo,
    TokenVettingData,
    TradingInfo,
    VettingResults,
)
from .tiers import classify, lock_months


# Integer percents so the combination can't drift from exactly 100
WEIGHTS = {
    "distribution": 25,
    "liquidity": 35,
    "dev_abandonment": 20,
    "technical": 20,
}

LOW_RISK_MIN = 70
MEDIUM_RISK_MIN = 50

# Missing any of these makes the result "not data sufficient"
CRITICAL_DATA = ("holder_distribution", "lp_lock", "authority")


def _clamp(score: int) -> int:
    return max(0, min(100, score))


def _fmt_usd(value: float) -> str:
    return f"${value:,.0f}"


def score_distribution(holders: HolderInfo, token_age: float) -> ComponentScore:
    score = 100
    flags: List[str] = []
    top = holders.top_holders

    if not top:
        score -= 5
        flags.append("Holder distribution data not available (-5)")
        if holders.count is None:
            score -= 15
            flags.append("Holder count unknown (-15)")
    else:
        top1 = top[0].percentage or 0.0
        top5 = sum(h.percentage or 0.0 for h in top[:5])
        top10 = sum(h.percentage or 0.0 for h in top[:10])

        if top1 > 20:
            score -= 40
            flags.append(f"Top holder owns {top1:.2f}% (>20% critical risk)")
        elif top1 > 15:
            score -= 25
            flags.append(f"Top holder owns {top1:.2f}% (>15% high risk)")
        elif top1 > 10:
            score -= 15
            flags.append(f"Top holder owns {top1:.2f}% (>10% concerning)")
        elif top1 < 5:
            flags.append(f"Top holder owns {top1:.2f}% (excellent distribution)")

        if top5 > 60:
            score -= 30
            flags.append(f"Top 5 holders own {top5:.2f}% (>60% critical centralization)")
        elif top5 > 45:
            score -= 20
            flags.append(f"Top 5 holders own {top5:.2f}% (>45% high risk)")
        elif top5 > 30:
            score -= 10
            flags.append(f"Top 5 holders own {top5:.2f}% (>30% concerning)")

        if top10 > 80:
            score -= 25
            flags.append(f"Top 10 holders own {top10:.2f}% (>80% critical centralization)")
        elif top10 > 65:
            score -= 15
            flags.append(f"Top 10 holders own {top10:.2f}% (>65% high risk)")

    count = holders.count
    if count is not None:
        if token_age >= 30 and count < 100:
            score -= 20
            flags.append(f"Low holder count: {count} after {token_age:.0f} days")
        elif token_age >= 60 and count < 250:
            score -= 10
            flags.append(f"Limited growth: {count} holders after {token_age:.0f} days")

    return ComponentScore(_clamp(score), tuple(flags))


def score_liquidity(security: SecurityInfo, trading: TradingInfo, token_age: float) -> ComponentScore:
    score = 100
    flags: List[str] = []
    pct = security.lp_lock_percentage
    burned = security.lp_burned

    if pct is None or pct <= 0:
        score -= 5
        flags.append("LP lock data not available (-5)")
    elif pct >= 99:
        flags.append(f"{pct:g}% LP {'burned' if burned else 'locked'} OK")
    elif pct >= 90:
        score -= 10
        flags.append(f"{pct:g}% LP locked (recommended 99%+)")
    elif pct >= 80:
        score -= 20
        flags.append(f"Only {pct:g}% LP locked - MEDIUM RISK")
    elif pct >= 50:
        score -= 40
        flags.append(f"Only {pct:g}% LP locked - HIGH RISK")
    else:
        score -= 60
        flags.append(f"Only {pct:g}% LP locked - CRITICAL RISK")

    if burned and pct is not None and pct >= 90:
        score += 5
        flags.append("LP burned (stronger than lock) OK")

    liquidity = trading.liquidity
    if liquidity is None or liquidity <= 0:
        flags.append("Liquidity data not available")
    elif liquidity < 10_000 and token_age > 14:
        score -= 15
        flags.append(f"Low liquidity: {_fmt_usd(liquidity)} (<$10k minimum)")
    elif liquidity >= 50_000:
        flags.append(f"Strong liquidity: {_fmt_usd(liquidity)}")
    elif liquidity >= 20_000:
        flags.append(f"Adequate liquidity: {_fmt_usd(liquidity)}")

    if (pct is None or pct <= 0) and (liquidity is None or liquidity <= 0):
        score -= 10
        flags.append("No LP lock or liquidity data (-10)")

    return ComponentScore(_clamp(score), tuple(flags))


def score_dev_abandonment(developer: DeveloperInfo, token_age: float) -> ComponentScore:
    score = 100
    flags: List[str] = []

    if not developer.creator_address:
        score -= 10
        flags.append("No creator address found (data limited)")
    else:
        balance = developer.creator_balance or 0.0
        status = (developer.creator_status or "").lower()
        if balance > 10 or status in ("holding", "creator_hold"):
            score -= 30
            flags.append(f"Creator likely holds {balance:.2f}% (>10% is concerning)")
        elif balance > 5:
            score -= 15
            flags.append(f"Creator likely holds {balance:.2f}% (>5% is yellow flag)")
        elif status in ("sold", "creator_sold"):
            flags.append("Creator likely sold position - community takeover possible")
        else:
            flags.append(f"Creator holds {balance:.2f}% (acceptable for community token)")

        launched = developer.twitter_create_token_count or 0
        if launched > 5:
            score -= 15
            flags.append(f"Creator launched {launched} tokens (serial launcher - HIGH RISK)")
        elif launched > 2:
            score -= 5
            flags.append(f"Creator launched {launched} tokens previously")

    rate = developer.top10_holder_rate
    if rate is not None:
        if rate > 1:
            rate = rate / 100.0
        if rate > 0.5:
            score -= 20
            flags.append(f"Top 10 holders control {rate * 100:.0f}% (>50% is risky)")
        elif rate > 0.35:
            score -= 10
            flags.append(f"Top 10 holders control {rate * 100:.0f}%")

    if token_age < 14:
        score -= 40
        flags.append(f"Token only {token_age:.1f} days old (<14 days required for community tokens)")
    else:
        flags.append(f"Token {token_age:.0f} days old (good maturity) OK")

    return ComponentScore(_clamp(score), tuple(flags))


def score_technical(security: SecurityInfo) -> ComponentScore:
    score = 100
    flags: List[str] = []

    if security.is_mintable is None and security.is_freezable is None:
        score -= 30
        flags.append("Mint/freeze authority data not available, assuming worst case (-30)")
    else:
        if security.is_mintable is True:
            score -= 50
            flags.append("Mint authority NOT renounced - CRITICAL RISK")
        elif security.is_mintable is False:
            flags.append("Mint authority renounced OK")

        if security.is_freezable is True:
            score -= 40
            flags.append("Freeze authority active - HIGH RISK")
        elif security.is_freezable is False:
            flags.append("Freeze authority renounced OK")

    total = security.total_supply or 0.0
    circulating = security.circulating_supply or 0.0
    if total > 0 and circulating > 0:
        ratio = circulating / total * 100.0
        if ratio < 80:
            score -= 15
            flags.append(f"Only {ratio:.0f}% circulating (locked supply risk)")
        elif ratio >= 95:
            flags.append(f"{ratio:.0f}% circulating (good supply distribution)")

    return ComponentScore(_clamp(score), tuple(flags))


def combine(distribution: int, liquidity: int, dev_abandonment: int, technical: int) -> int:
    """Weighted sum rounded half up, kept in integer arithmetic."""
    total = (
        WEIGHTS["distribution"] * distribution
        + WEIGHTS["liquidity"] * liquidity
        + WEIGHTS["dev_abandonment"] * dev_abandonment
        + WEIGHTS["technical"] * technical
    )
    return _clamp((total + 50) // 100)


def risk_level(overall: int) -> RiskLevel:
    if overall >= LOW_RISK_MIN:
        return RiskLevel.LOW
    if overall >= MEDIUM_RISK_MIN:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def missing_data(data: TokenVettingData) -> Tuple[str, ...]:
    missing = []
    if not data.holders.top_holders:
        missing.append("holder_distribution")
    if data.holders.count is None:
        missing.append("holder_count")
    if not data.security.lp_lock_percentage:
        missing.append("lp_lock")
    if data.trading.liquidity is None or data.trading.liquidity <= 0:
        missing.append("liquidity")
    if data.security.is_mintable is None and data.security.is_freezable is None:
        missing.append("authority")
    if not data.developer.creator_address:
        missing.append("creator")
    return tuple(missing)


def score(data: TokenVettingData, now: Optional[float] = None) -> VettingResults:
    now = time.time() if now is None else now
    age = data.token_age

    distribution = score_distribution(data.holders, age)
    liquidity = score_liquidity(data.security, data.trading, age)
    dev = score_dev_abandonment(data.developer, age)
    technical = score_technical(data.security)

    overall = combine(distribution.score, liquidity.score, dev.score, technical.score)
    months = lock_months(data.security.lp_locks, now)
    tier = classify(overall, age, data.security.lp_lock_percentage, months, data.trading.liquidity)
    missing = missing_data(data)

    return VettingResults(
        distribution=distribution,
        liquidity=liquidity,
        dev_abandonment=dev,
        technical=technical,
        overall_score=overall,
        risk_level=risk_level(overall),
        eligible_tier=tier,
        all_flags=distribution.flags + liquidity.flags + dev.flags + technical.flags,
        data_sufficient=not any(m in CRITICAL_DATA for m in missing),
        missing_data=missing,
        calculated_at=datetime.fromtimestamp(now, timezone.utc).isoformat(),
        lp_lock_months=months,
    )
