import logging
from typing import Optional
from urllib.parse import quote

from .cache import cache_key
from .jsonclient import JsonClient
from .models import Chain


TRUSTWALLET_BASE = "https://raw.githubusercontent.com/trustwallet/assets/master/blockchains"
IDENTICON_URL = "https://api.dicebear.com/7.x/identicon/svg?seed={seed}"

_TRUSTWALLET_CHAINS = {
    Chain.SOLANA: "solana",
    Chain.ETHEREUM: "ethereum",
    Chain.BSC: "smartchain",
    Chain.BASE: "base",
}


def trustwallet_url(chain: Chain, address: str) -> Optional[str]:
    folder = _TRUSTWALLET_CHAINS.get(chain)
    addr = (address or "").strip()
    if not folder or not addr:
        return None
    return f"{TRUSTWALLET_BASE}/{folder}/assets/{addr}/logo.png"


def identicon_url(seed: str) -> str:
    return IDENTICON_URL.format(seed=quote(seed or "token", safe=""))


class JupiterClient(JsonClient):
    provider = "jupiter"

    def __init__(self, base_url: str, api_key: str, timeout_ms: int, retries: int = 2) -> None:
        super().__init__(base_url, timeout_ms, retries, headers={"x-api-key": api_key} if api_key else None)
        self.enabled = bool(api_key)

    async def logo_for(self, mint: str) -> Optional[str]:
        if not self.enabled:
            return None
        data = await self.get_json("tokens/v2/search", params={"query": mint})
        if not isinstance(data, list):
            return None
        for token in data:
            if isinstance(token, dict) and (token.get("id") or token.get("address")) == mint:
                return token.get("icon") or token.get("logoURI")
        return None


class LogoResolver:
    """Jupiter (Solana) -> TrustWallet assets -> deterministic identicon.

    Always yields a URL. Results are cached for ``ttl_seconds``.
    """

    def __init__(self, jupiter: JupiterClient, probe: JsonClient, cache, ttl_seconds: int = 86400) -> None:
        self.jupiter = jupiter
        self.probe = probe
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def resolve(self, chain: Chain, address: str, symbol: Optional[str] = None) -> str:
        key = cache_key("logo", {"chain": chain.value, "address": address})
        cached = await self.cache.get(key)
        if isinstance(cached, dict) and cached.get("url"):
            return cached["url"]

        url = await self._resolve_network(chain, address)
        if url is None:
            url = identicon_url(address or symbol or "token")
        # Negative lookups are cached as the identicon too
        await self.cache.set(key, {"url": url}, self.ttl_seconds)
        return url

    async def _resolve_network(self, chain: Chain, address: str) -> Optional[str]:
        if chain == Chain.SOLANA:
            jup = await self.jupiter.logo_for(address)
            if jup:
                return jup
        tw = trustwallet_url(chain, address)
        if tw and await self.probe.head_ok(tw):
            return tw
        logging.debug(f"logo: no hosted image for {chain.value}|{address}")
        return None
