from typing import Any, Dict, List, Optional

from .jsonclient import JsonClient


class BirdEyeClient(JsonClient):
    """Trending-token feed. Carries prices but no transaction counts."""

    provider = "birdeye"

    def __init__(self, base_url: str, api_key: str, timeout_ms: int, retries: int = 3) -> None:
        super().__init__(base_url, timeout_ms, retries, headers={"X-API-KEY": api_key} if api_key else None)
        self.enabled = bool(api_key)

    async def trending(self, chain: str = "solana", limit: int = 100) -> Optional[List[Dict[str, Any]]]:
        if not self.enabled:
            return None
        data = await self.get_json(
            "defi/v3/tokens/trending",
            params={"chain": chain, "sort_by": "volume_h24", "limit": limit},
            headers={"x-chain": chain},
        )
        if not isinstance(data, dict):
            return None
        body = data.get("data")
        tokens = body.get("tokens") if isinstance(body, dict) else body
        return tokens if isinstance(tokens, list) else None
