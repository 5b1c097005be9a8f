import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from .birdeye import BirdEyeClient
from .cache import cache_key
from .config import Settings
from .dexscreener import DexScreenerClient
from .marketcap import MoralisClient, SolscanClient
from .payloads import AggregatorPayload, DexPairsPayload, MarketCapPayload, ProviderPayload


@dataclass
class CollectedFeeds:
    payloads: List[ProviderPayload] = field(default_factory=list)
    api_calls: int = 0


class FeedCollector:
    """Fetches every feed concurrently, serving fresh results from the cache."""

    def __init__(
        self,
        settings: Settings,
        cache,
        dex: DexScreenerClient,
        birdeye: BirdEyeClient,
        moralis: MoralisClient,
        solscan: SolscanClient,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.dex = dex
        self.birdeye = birdeye
        self.moralis = moralis
        self.solscan = solscan

    async def _cached(
        self,
        name: str,
        params: dict,
        ttl: int,
        fetch: Callable[[], Awaitable[Optional[Any]]],
        client,
    ) -> Tuple[Optional[Any], int]:
        key = cache_key(f"feed:{name}", params)
        hit = await self.cache.get(key)
        if hit is not None:
            return hit, 0
        before = client.calls
        try:
            data = await fetch()
        except Exception:
            # Clients already swallow transport errors; this guards parsing bugs
            logging.exception(f"feed {name} failed")
            data = None
        calls = client.calls - before
        if data:
            await self.cache.set(key, data, ttl)
        return data, calls

    async def _dex(self) -> Tuple[Optional[ProviderPayload], int]:
        s = self.settings
        pairs, calls = await self._cached(
            "dex", {"queries": s.search_queries, "max": s.max_pairs_per_cycle}, s.dex_feed_ttl,
            lambda: self.dex.search_many(s.search_queries, s.max_pairs_per_cycle), self.dex,
        )
        return (DexPairsPayload(pairs=pairs) if pairs else None), calls

    async def _birdeye(self) -> Tuple[Optional[ProviderPayload], int]:
        if not self.birdeye.enabled:
            return None, 0
        tokens, calls = await self._cached(
            "birdeye", {"chain": "solana"}, self.settings.birdeye_feed_ttl,
            lambda: self.birdeye.trending("solana"), self.birdeye,
        )
        return (AggregatorPayload(tokens=tokens, chain="solana") if tokens else None), calls

    async def _moralis(self) -> Tuple[Optional[ProviderPayload], int]:
        if not self.moralis.enabled:
            return None, 0
        tokens, calls = await self._cached(
            "moralis", {"chain": "solana"}, self.settings.marketcap_feed_ttl,
            lambda: self.moralis.top_tokens("solana"), self.moralis,
        )
        return (MarketCapPayload(tokens=tokens, source="moralis") if tokens else None), calls

    async def _solscan(self) -> Tuple[Optional[ProviderPayload], int]:
        if not self.solscan.enabled:
            return None, 0
        tokens, calls = await self._cached(
            "solscan", {"chain": "solana"}, self.settings.marketcap_feed_ttl,
            self.solscan.top_tokens, self.solscan,
        )
        return (MarketCapPayload(tokens=tokens, source="solscan") if tokens else None), calls

    async def collect(self) -> CollectedFeeds:
        await self.cache.clear_expired()
        results = await asyncio.gather(self._dex(), self._birdeye(), self._moralis(), self._solscan())
        out = CollectedFeeds()
        for payload, calls in results:
            out.api_calls += calls
            if payload is not None:
                out.payloads.append(payload)
        logging.info(f"📡 Collected {len(out.payloads)} feeds ({out.api_calls} API calls)")
        return out

    async def close(self) -> None:
        for client in (self.dex, self.birdeye, self.moralis, self.solscan):
            await client.close()
