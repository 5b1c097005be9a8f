from tokenvet import scoring
from tokenvet.models import (
    Chain,
    DeveloperInfo,
    HolderEntry,
    HolderInfo,
    LpLock,
    RiskLevel,
    SecurityInfo,
    Tier,
    TokenVettingData,
    TradingInfo,
)


MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
NOW = 1_700_000_000.0


def _holders(*pcts):
    return [HolderEntry(address=f"holder{i}", balance=p * 1000, percentage=p) for i, p in enumerate(pcts)]


def _healthy_token(**overrides):
    data = TokenVettingData(
        chain=Chain.SOLANA,
        address=MINT,
        security=SecurityInfo(
            is_mintable=False,
            is_freezable=False,
            lp_lock_percentage=100,
            total_supply=1_000_000_000,
            lp_locks=[LpLock(tag="Burned")],
        ),
        holders=HolderInfo(count=5000, top_holders=_holders(*([2.0] * 10))),
        developer=DeveloperInfo(
            creator_address="creator1",
            creator_balance=0.5,
            creator_status="sold",
            top10_holder_rate=0.2,
        ),
        trading=TradingInfo(price=0.4, liquidity=150_000, volume_24h=80_000),
        token_age=90,
    )
    for name, value in overrides.items():
        setattr(data, name, value)
    return data


def test_weights_sum_to_hundred():
    assert sum(scoring.WEIGHTS.values()) == 100


def test_concentrated_top_holder_costs_forty_points():
    holders = HolderInfo(count=1000, top_holders=_holders(25, 1, 1, 1, 1))
    result = scoring.score_distribution(holders, token_age=5)
    assert result.score == 60
    assert any("25.00%" in f for f in result.flags)


def test_live_mint_and_freeze_authority():
    result = scoring.score_technical(SecurityInfo(is_mintable=True, is_freezable=True))
    assert result.score == 10
    assert "Mint authority NOT renounced - CRITICAL RISK" in result.flags
    assert "Freeze authority active - HIGH RISK" in result.flags


def test_unknown_authority_assumes_worst_case():
    result = scoring.score_technical(SecurityInfo())
    assert result.score == 70


def test_locked_supply_penalty():
    security = SecurityInfo(is_mintable=False, is_freezable=False, total_supply=100, circulating_supply=50)
    assert scoring.score_technical(security).score == 85


def test_lp_lock_bands():
    trading = TradingInfo(liquidity=30_000)
    expected = {99: 100, 95: 90, 85: 80, 60: 60, 10: 40}
    for pct, score in expected.items():
        result = scoring.score_liquidity(SecurityInfo(lp_lock_percentage=pct), trading, token_age=30)
        assert result.score == score, pct


def test_thin_liquidity_only_penalized_after_two_weeks():
    security = SecurityInfo(lp_lock_percentage=100)
    young = scoring.score_liquidity(security, TradingInfo(liquidity=5_000), token_age=3)
    old = scoring.score_liquidity(security, TradingInfo(liquidity=5_000), token_age=30)
    assert young.score == 100
    assert old.score == 85


def test_dev_abandonment_penalties():
    serial = DeveloperInfo(creator_address="c", creator_balance=12, twitter_create_token_count=8)
    result = scoring.score_dev_abandonment(serial, token_age=30)
    assert result.score == 100 - 30 - 15

    young = scoring.score_dev_abandonment(DeveloperInfo(creator_address="c", creator_balance=0.1), token_age=2)
    assert young.score == 60

    # Percent-style rates are accepted too
    pct_rate = scoring.score_dev_abandonment(
        DeveloperInfo(creator_address="c", creator_balance=0.1, top10_holder_rate=55), token_age=30
    )
    assert pct_rate.score == 80


def test_missing_data_penalizes_and_continues():
    data = TokenVettingData(chain=Chain.SOLANA, address=MINT)
    results = scoring.score(data, now=NOW)

    assert results.distribution.score == 80
    assert results.liquidity.score == 85
    assert results.dev_abandonment.score == 50
    assert results.technical.score == 70
    assert results.overall_score == 74
    assert results.risk_level == RiskLevel.LOW
    assert results.eligible_tier == Tier.NONE
    assert results.data_sufficient is False
    assert set(scoring.CRITICAL_DATA) <= set(results.missing_data)
    assert results.lp_lock_months is None


def test_healthy_token_scores_full_marks():
    results = scoring.score(_healthy_token(), now=NOW)
    assert results.overall_score == 100
    assert results.risk_level == RiskLevel.LOW
    assert results.eligible_tier == Tier.STELLAR
    assert results.data_sufficient is True
    assert results.missing_data == ()
    assert results.lp_lock_months == 999.0
    assert "LP burned (stronger than lock) OK" in results.all_flags


def test_all_scores_within_bounds():
    worst = _healthy_token(
        security=SecurityInfo(is_mintable=True, is_freezable=True, lp_lock_percentage=1,
                              total_supply=100, circulating_supply=1),
        holders=HolderInfo(count=3, top_holders=_holders(90, 5, 2, 1, 1, 0.5)),
        developer=DeveloperInfo(creator_address="c", creator_balance=50, twitter_create_token_count=20,
                                top10_holder_rate=0.99),
        trading=TradingInfo(liquidity=100),
        token_age=45,
    )
    results = scoring.score(worst, now=NOW)
    for component in (results.distribution, results.liquidity, results.dev_abandonment, results.technical):
        assert 0 <= component.score <= 100
    assert 0 <= results.overall_score <= 100
    assert results.risk_level == RiskLevel.HIGH


def test_combine_rounds_half_up():
    assert scoring.combine(100, 100, 100, 100) == 100
    assert scoring.combine(0, 0, 0, 0) == 0
    assert scoring.combine(2, 0, 0, 0) == 1
    assert scoring.combine(1, 0, 0, 0) == 0


def test_risk_level_boundaries():
    assert scoring.risk_level(70) == RiskLevel.LOW
    assert scoring.risk_level(69) == RiskLevel.MEDIUM
    assert scoring.risk_level(50) == RiskLevel.MEDIUM
    assert scoring.risk_level(49) == RiskLevel.HIGH


def test_results_serialize_with_camel_case_keys():
    payload = scoring.score(_healthy_token(), now=NOW).to_dict()
    assert payload["eligibleTier"] == "stellar"
    assert payload["componentScores"]["devAbandonment"]["score"] == 100
    assert isinstance(payload["allFlags"], list)
