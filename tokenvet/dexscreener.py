import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from .jsonclient import JsonClient
from .payloads import to_number


class DexScreenerClient(JsonClient):
    provider = "dexscreener"

    async def search(self, query: str) -> List[Dict[str, Any]]:
        data = await self.get_json("dex/search", params={"q": query})
        pairs = (data or {}).get("pairs") if isinstance(data, dict) else None
        return pairs if isinstance(pairs, list) else []

    async def search_many(self, queries: Iterable[str], max_pairs: int) -> List[Dict[str, Any]]:
        """Fan out over search queries and de-duplicate by chain and base token."""
        results = await asyncio.gather(*(self.search(q) for q in queries))
        by_key: Dict[str, Dict[str, Any]] = {}
        for pairs in results:
            for pair in pairs:
                if not isinstance(pair, dict):
                    continue
                address = (pair.get("baseToken") or {}).get("address") or pair.get("pairAddress")
                if not address:
                    continue
                by_key.setdefault(f"{pair.get('chainId') or 'unknown'}|{address}", pair)
        merged = list(by_key.values())[:max_pairs]
        logging.debug(f"dexscreener: {len(merged)} unique pairs from {len(results)} queries")
        return merged

    async def token_pairs(self, address: str) -> List[Dict[str, Any]]:
        data = await self.get_json(f"dex/tokens/{address}")
        pairs = (data or {}).get("pairs") if isinstance(data, dict) else None
        return pairs if isinstance(pairs, list) else []

    @staticmethod
    def best_pair(pairs: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Deepest pool by USD liquidity."""
        best = None
        best_liq = -1.0
        for pair in pairs:
            liq = to_number((pair.get("liquidity") or {}).get("usd")) or 0.0
            if liq > best_liq:
                best, best_liq = pair, liq
        return best
