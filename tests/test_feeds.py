import asyncio

from tokenvet.cache import MemoryCache
from tokenvet.feeds import FeedCollector
from tokenvet.images import LogoResolver, identicon_url, trustwallet_url
from tokenvet.models import Chain
from tokenvet.payloads import AggregatorPayload, DexPairsPayload, MarketCapPayload


BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"


class FakeFeed:
    def __init__(self, result, enabled=True):
        self.result = result
        self.enabled = enabled
        self.calls = 0

    async def _fetch(self, *args, **kwargs):
        self.calls += 1
        return self.result

    search_many = trending = top_tokens = _fetch


def _collector(settings, cache, **overrides):
    feeds = {
        "dex": FakeFeed([{"chainId": "solana", "baseToken": {"address": BONK}}]),
        "birdeye": FakeFeed([{"address": BONK}]),
        "moralis": FakeFeed(None, enabled=False),
        "solscan": FakeFeed([{"address": BONK, "holder": 10}]),
    }
    feeds.update(overrides)
    return FeedCollector(settings, cache, feeds["dex"], feeds["birdeye"], feeds["moralis"], feeds["solscan"]), feeds


def test_collect_tags_payloads_and_counts_calls(settings):
    collector, feeds = _collector(settings, MemoryCache())
    collected = asyncio.run(collector.collect())

    kinds = sorted(type(p).__name__ for p in collected.payloads)
    assert kinds == sorted([DexPairsPayload.__name__, AggregatorPayload.__name__, MarketCapPayload.__name__])
    assert collected.api_calls == 3
    assert feeds["moralis"].calls == 0


def test_fresh_results_come_from_cache(settings):
    cache = MemoryCache()
    collector, feeds = _collector(settings, cache)

    async def scenario():
        await collector.collect()
        return await collector.collect()

    second = asyncio.run(scenario())
    assert second.api_calls == 0
    assert len(second.payloads) == 3
    assert feeds["dex"].calls == 1


def test_empty_feed_is_left_out(settings):
    collector, _ = _collector(settings, MemoryCache(), dex=FakeFeed([]))
    collected = asyncio.run(collector.collect())
    assert not any(isinstance(p, DexPairsPayload) for p in collected.payloads)


class FakeJupiter:
    def __init__(self, url=None):
        self.url = url
        self.calls = 0

    async def logo_for(self, mint):
        self.calls += 1
        return self.url


class FakeProbe:
    def __init__(self, ok):
        self.ok = ok
        self.calls = 0
        self.urls = []

    async def head_ok(self, url):
        self.calls += 1
        self.urls.append(url)
        return self.ok


def test_logo_prefers_jupiter_for_solana():
    resolver = LogoResolver(FakeJupiter("https://jup/icon.png"), FakeProbe(True), MemoryCache())
    assert asyncio.run(resolver.resolve(Chain.SOLANA, BONK)) == "https://jup/icon.png"
    assert resolver.probe.calls == 0


def test_logo_falls_back_to_trustwallet_then_identicon():
    found = LogoResolver(FakeJupiter(), FakeProbe(True), MemoryCache())
    assert asyncio.run(found.resolve(Chain.ETHEREUM, WETH)) == trustwallet_url(Chain.ETHEREUM, WETH)
    assert found.jupiter.calls == 0

    missing = LogoResolver(FakeJupiter(), FakeProbe(False), MemoryCache())
    assert asyncio.run(missing.resolve(Chain.SOLANA, BONK, "BONK")) == identicon_url(BONK)


def test_logo_lookups_are_cached_including_misses():
    resolver = LogoResolver(FakeJupiter(), FakeProbe(False), MemoryCache())

    async def scenario():
        first = await resolver.resolve(Chain.SOLANA, BONK)
        second = await resolver.resolve(Chain.SOLANA, BONK)
        return first, second

    first, second = asyncio.run(scenario())
    assert first == second
    assert resolver.jupiter.calls == 1
    assert resolver.probe.calls == 1


def test_trustwallet_url_only_for_known_chains():
    assert trustwallet_url(Chain.BSC, WETH).endswith(f"/smartchain/assets/{WETH}/logo.png")
    assert trustwallet_url(Chain.SUI, "0x2::sui::SUI") is None


def test_collect_evicts_expired_cache_entries(settings):
    cache = MemoryCache()
    collector, _ = _collector(settings, cache)

    async def scenario():
        await cache.set("stale", {"v": 1}, 0)
        await collector.collect()

    asyncio.run(scenario())
    assert "stale" not in cache._entries
