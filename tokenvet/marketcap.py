from typing import Any, Dict, List, Optional

from .jsonclient import JsonClient


class MoralisClient(JsonClient):
    provider = "moralis"

    def __init__(self, base_url: str, api_key: str, timeout_ms: int, retries: int = 3) -> None:
        super().__init__(base_url, timeout_ms, retries, headers={"X-API-Key": api_key} if api_key else None)
        self.enabled = bool(api_key)

    async def top_tokens(self, chain: str = "solana", limit: int = 100) -> Optional[List[Dict[str, Any]]]:
        if not self.enabled:
            return None
        data = await self.get_json(
            f"market-data/{chain}/tokens",
            params={"limit": limit, "sort": "market_cap"},
        )
        rows = (data or {}).get("result") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            return None
        tokens = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            tokens.append({
                "address": row.get("token_address"),
                "symbol": row.get("symbol"),
                "name": row.get("name"),
                "price_usd": row.get("price_usd"),
                "liquidity_usd": row.get("liquidity_usd"),
                "market_cap": row.get("market_cap"),
                "volume_24h": row.get("volume_24h"),
                "holders": row.get("holders"),
                "holder_count": row.get("holder_count"),
                "chain": chain,
            })
        return tokens


class SolscanClient(JsonClient):
    provider = "solscan"

    def __init__(self, base_url: str, api_key: str, timeout_ms: int, retries: int = 3) -> None:
        super().__init__(base_url, timeout_ms, retries, headers={"token": api_key} if api_key else None)
        self.enabled = bool(api_key)

    async def top_tokens(self, limit: int = 100) -> Optional[List[Dict[str, Any]]]:
        if not self.enabled:
            return None
        data = await self.get_json(
            "token/list",
            params={"sortBy": "market_cap", "direction": "desc", "limit": limit, "offset": 0},
        )
        rows = (data or {}).get("data") if isinstance(data, dict) else None
        if not isinstance(rows, list):
            return None
        tokens = []
        for row in rows:
            if not isinstance(row, dict) or not row.get("address") or not row.get("symbol"):
                continue
            tokens.append({
                "address": row.get("address"),
                "symbol": row.get("symbol"),
                "name": row.get("name") or row.get("symbol"),
                "price": row.get("priceUsd"),
                "liquidity": row.get("liquidity"),
                "marketCap": row.get("marketCap"),
                "volume24h": row.get("volume24h"),
                "holder": row.get("holder"),
                "priceChange24h": row.get("priceChange24h"),
                "chain": "solana",
            })
        return tokens
