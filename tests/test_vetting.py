import asyncio
import time
from dataclasses import replace

import pytest

from tokenvet.dexscreener import DexScreenerClient
from tokenvet.errors import PersistenceError
from tokenvet.models import Chain, HolderEntry, Listing, RiskLevel, Tier, TokenRecord
from tokenvet.rugcheck import RugcheckClient
from tokenvet.store import ListingStore
from tokenvet.vetting import VettingOrchestrator, circulating_supply, creator_status, token_age_days


POPCAT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
DAY = 86400
NOW = 1_700_000_000.0


REPORT = {
    "tokenMeta": {"name": "Popcat", "symbol": "POPCAT"},
    "token": {"mintAuthority": None, "freezeAuthority": None, "supply": 1_000_000_000_000, "decimals": 6},
    "markets": [{"lp": {"lpLockedPct": 100}}],
    "totalHolders": 5000,
    "topHolders": [{"owner": f"h{i}", "pct": 2.0, "uiAmount": 20_000} for i in range(10)],
    "creator": "creator1",
    "creatorBalance": 1_000_000_000,
}


def _pair(age_days=90):
    return {
        "baseToken": {"address": POPCAT, "symbol": "POPCAT", "name": "Popcat"},
        "priceUsd": "0.45",
        "liquidity": {"usd": 150_000},
        "volume": {"h24": 80_000},
        "txns": {"h24": {"buys": 40, "sells": 30}},
        "pairCreatedAt": (time.time() - age_days * DAY) * 1000,
    }


class FakeDex:
    best_pair = staticmethod(DexScreenerClient.best_pair)

    def __init__(self, delay=0.0):
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def token_pairs(self, address):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        return [_pair()]


class FakeRugcheck:
    summarize = staticmethod(RugcheckClient.summarize)
    extract = staticmethod(RugcheckClient.extract)

    def __init__(self, report=REPORT):
        self.report = report
        self.calls = 0

    async def fetch_report(self, mint):
        self.calls += 1
        return self.report


class FakeOnchain:
    def __init__(self, result=None):
        self.result = result
        self.calls = 0

    async def analyze(self, mint):
        self.calls += 1
        return self.result


class FakeStore:
    def __init__(self, unvetted=(), fail=False):
        self.unvetted = list(unvetted)
        self.fail = fail
        self.saved = []

    async def find_one(self, address, chain=None):
        return None

    async def save_vetting_results(self, data, results):
        if self.fail:
            raise PersistenceError("disk full")
        self.saved.append((data, results))

    async def list_by_filter(self, **kwargs):
        return list(self.unvetted)


def test_token_age_accepts_seconds_and_milliseconds():
    created = NOW - 10 * DAY
    assert token_age_days(created, None, NOW) == pytest.approx(10.0)
    assert token_age_days(created * 1000, None, NOW) == pytest.approx(10.0)
    assert token_age_days(None, NOW - 2 * DAY, NOW) == pytest.approx(2.0)
    assert token_age_days(None, None, NOW) == 0.0
    assert token_age_days(NOW + DAY, None, NOW) == 0.0


def test_creator_status():
    assert creator_status(None) == "unknown"
    assert creator_status(0.2) == "sold"
    assert creator_status(5) == "partial"
    assert creator_status(25) == "holding"


def test_vet_token_persists_results(settings, tmp_path):
    store = ListingStore(str(tmp_path / "listings.db"))
    orch = VettingOrchestrator(settings, store, FakeDex(), FakeRugcheck(), FakeOnchain())
    orch.enqueue(Chain.SOLANA, POPCAT)

    async def scenario():
        results = await orch.vet_token(Chain.SOLANA, POPCAT)
        return results, await store.find_one(POPCAT, Chain.SOLANA)

    results, listing = asyncio.run(scenario())
    assert results.overall_score == 100
    assert results.risk_level == RiskLevel.LOW
    assert results.eligible_tier == Tier.STELLAR
    assert results.data_sufficient is True
    assert listing.vetted is True
    assert listing.tier == Tier.STELLAR
    assert listing.record.symbol == "POPCAT"
    assert listing.token_age == pytest.approx(90.0, abs=0.01)
    assert orch.pending_count == 0
    assert orch.onchain.calls == 0


def test_assemble_falls_back_to_chain_data(settings):
    onchain = FakeOnchain({
        "supply_total": 1_000_000.0,
        "top_holders": [HolderEntry(address="whale", balance=300_000.0, percentage=30.0)],
        "is_mintable": True,
        "is_freezable": False,
    })
    orch = VettingOrchestrator(settings, FakeStore(), FakeDex(), FakeRugcheck(report=None), onchain)
    listing = Listing(record=TokenRecord(chain=Chain.SOLANA, address=POPCAT, symbol="POP"), created_at=NOW)

    data = asyncio.run(orch.assemble(Chain.SOLANA, POPCAT, listing))
    assert onchain.calls == 1
    assert data.security.total_supply == 1_000_000.0
    assert data.security.is_mintable is True
    assert data.holders.top_holders[0].address == "whale"
    assert data.developer.top10_holder_rate == pytest.approx(0.3)
    assert data.developer.creator_status == "unknown"
    assert data.token_info.symbol == "POPCAT"
    assert data.trading.buys_24h == 40
    assert data.trading.sells_24h == 30
    assert data.security.circulating_supply == 1_000_000.0


def test_circulating_supply_excludes_burned_and_locked_holders():
    holders = [
        HolderEntry(address="1nc1nerator11111111111111111111111111111111", balance=0, percentage=15.0),
        HolderEntry(address="locker-owner", balance=0, percentage=10.0),
        HolderEntry(address="whale", balance=0, percentage=30.0),
    ]
    assert circulating_supply(1_000.0, holders, ["locker-owner"]) == pytest.approx(750.0)
    assert circulating_supply(1_000.0, []) == 1_000.0
    assert circulating_supply(None, holders) is None
    assert circulating_supply(0.0, holders) is None


def test_assemble_derives_circulating_supply_from_report(settings):
    report = dict(REPORT)
    report["topHolders"] = REPORT["topHolders"][:8] + [
        {"owner": "1nc1nerator11111111111111111111111111111111", "pct": 20.0, "uiAmount": 200_000},
        {"owner": "streamflow", "pct": 5.0, "uiAmount": 50_000},
    ]
    report["lockers"] = {"l1": {"owner": "streamflow", "tokenAccount": "ta1", "unlockDate": 0}}
    orch = VettingOrchestrator(settings, FakeStore(), FakeDex(), FakeRugcheck(report=report), FakeOnchain())
    data = asyncio.run(orch.assemble(Chain.SOLANA, POPCAT))
    assert data.security.total_supply == 1_000_000.0
    assert data.security.circulating_supply == pytest.approx(750_000.0)


def test_non_solana_tokens_skip_security_report(settings):
    rugcheck = FakeRugcheck()
    orch = VettingOrchestrator(settings, FakeStore(), FakeDex(), rugcheck, FakeOnchain())
    data = asyncio.run(orch.assemble(Chain.ETHEREUM, WETH))
    assert rugcheck.calls == 0
    assert data.security.is_mintable is None
    assert data.trading.liquidity == 150_000


def test_same_token_is_never_vetted_concurrently(settings):
    dex = FakeDex(delay=0.01)
    store = FakeStore()
    orch = VettingOrchestrator(settings, store, dex, FakeRugcheck(), FakeOnchain())

    async def scenario():
        await asyncio.gather(orch.vet_token(Chain.SOLANA, POPCAT), orch.vet_token(Chain.SOLANA, POPCAT))
        same_key = dex.max_active
        dex.max_active = 0
        await asyncio.gather(orch.vet_token(Chain.SOLANA, POPCAT), orch.vet_token(Chain.SOLANA, BONK))
        return same_key, dex.max_active

    same_key, different_keys = asyncio.run(scenario())
    assert same_key == 1
    assert different_keys == 2
    assert len(store.saved) == 4
    assert orch._locks == {}
    assert orch._lock_users == {}


def test_persistence_failure_surfaces_but_keeps_result(settings):
    orch = VettingOrchestrator(settings, FakeStore(fail=True), FakeDex(), FakeRugcheck(), FakeOnchain())
    orch.enqueue(Chain.SOLANA, POPCAT)

    with pytest.raises(PersistenceError):
        asyncio.run(orch.vet_token(Chain.SOLANA, POPCAT))
    assert orch.unsaved[f"SOLANA|{POPCAT}"].overall_score == 100
    assert orch.pending_count == 1
    assert orch._locks == {}

    orch.store.fail = False
    asyncio.run(orch.vet_token(Chain.SOLANA, POPCAT))
    assert orch.unsaved == {}
    assert orch.pending_count == 0


def test_backlog_combines_queue_and_unvetted_listings(settings):
    unvetted = [Listing(record=TokenRecord(chain=Chain.SOLANA, address=BONK)),
                Listing(record=TokenRecord(chain=Chain.SOLANA, address=POPCAT))]
    store = FakeStore(unvetted=unvetted)
    orch = VettingOrchestrator(replace(settings, vetting_batch_size=5), store, FakeDex(), FakeRugcheck(),
                               FakeOnchain())
    orch.enqueue(Chain.SOLANA, POPCAT)

    summary = asyncio.run(orch.run_backlog())
    assert summary.succeeded == 2
    assert summary.failed == 0
    assert summary.api_calls == 4
    assert sorted(d.address for d, _ in store.saved) == sorted([BONK, POPCAT])


def test_backlog_counts_failures(settings):
    orch = VettingOrchestrator(settings, FakeStore(fail=True), FakeDex(), FakeRugcheck(), FakeOnchain())
    orch.enqueue(Chain.SOLANA, POPCAT)
    summary = asyncio.run(orch.run_backlog())
    assert (summary.succeeded, summary.failed) == (0, 1)
