from typing import Any, Dict, List, Optional, Tuple

from .jsonclient import JsonClient
from .models import HolderEntry


class OnchainAnalyzer(JsonClient):
    """Lightweight Solana JSON-RPC reader.

    Used as a fallback when the security report is missing supply, authority
    or top-holder data. Best-effort: every method degrades to empty values.
    """

    provider = "solana_rpc"

    def __init__(self, rpc_url: str, timeout_ms: int = 8000, retries: int = 2) -> None:
        super().__init__(rpc_url, timeout_ms, retries, headers={"content-type": "application/json"})

    async def _rpc(self, method: str, params: List[Any]) -> Optional[dict]:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        res = await self.post_json(self.base_url, payload)
        return res if isinstance(res, dict) else None

    @staticmethod
    def _to_float(amount_str: str, decimals: int) -> float:
        try:
            return int(amount_str) / float(10 ** max(0, decimals))
        except (TypeError, ValueError):
            return 0.0

    async def fetch_token_supply(self, mint: str) -> Tuple[float, int]:
        """Return (total_supply, decimals) in human units."""
        res = await self._rpc("getTokenSupply", [mint])
        val = ((res or {}).get("result") or {}).get("value") or {}
        amount = val.get("amount")
        try:
            decimals = int(val.get("decimals", 0))
        except (TypeError, ValueError):
            decimals = 0
        if isinstance(amount, str):
            return (self._to_float(amount, decimals), decimals)
        return (0.0, 0)

    async def fetch_largest_accounts(self, mint: str, decimals: int) -> List[Tuple[str, float]]:
        res = await self._rpc("getTokenLargestAccounts", [mint, {"commitment": "confirmed"}])
        values = ((res or {}).get("result") or {}).get("value") or []
        accounts = []
        for v in values if isinstance(values, list) else []:
            amt = v.get("amount") if isinstance(v, dict) else None
            if isinstance(amt, str):
                accounts.append((str(v.get("address") or ""), self._to_float(amt, decimals)))
        accounts.sort(key=lambda a: a[1], reverse=True)
        return accounts

    async def fetch_authorities(self, mint: str) -> Tuple[Optional[bool], Optional[bool]]:
        """Return (mint authority active, freeze authority active); None if unknown."""
        res = await self._rpc("getAccountInfo", [mint, {"encoding": "jsonParsed"}])
        value = ((res or {}).get("result") or {}).get("value")
        if not isinstance(value, dict):
            return (None, None)
        info = ((value.get("data") or {}).get("parsed") or {}).get("info")
        if not isinstance(info, dict):
            return (None, None)
        return (info.get("mintAuthority") is not None, info.get("freezeAuthority") is not None)

    async def analyze(self, mint: str) -> Optional[Dict[str, Any]]:
        """Best-effort combined analysis.

        Returns dict with: supply_total, top_holders, is_mintable,
        is_freezable. Holder percentages are relative to total supply.
        """
        supply_total, decimals = await self.fetch_token_supply(mint)
        if supply_total <= 0.0:
            return None
        accounts = await self.fetch_largest_accounts(mint, decimals)
        is_mintable, is_freezable = await self.fetch_authorities(mint)

        top_holders = [
            HolderEntry(address=addr, balance=amt, percentage=max(0.0, min(100.0, amt / supply_total * 100.0)))
            for addr, amt in accounts[:10]
        ]
        return {
            "supply_total": supply_total,
            "top_holders": top_holders,
            "is_mintable": is_mintable,
            "is_freezable": is_freezable,
        }
