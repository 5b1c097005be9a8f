"""Provider payload shapes and their normalization.

Every feed response is wrapped in one of three payload types before it
reaches the merger. Each type knows how to turn its raw items into
``Candidate`` records, so the merger never has to probe raw JSON for
optional fields.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from .chains import is_quote_symbol


def to_number(value: Any) -> Optional[float]:
    """Parse a JSON scalar into a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def to_int(value: Any) -> Optional[int]:
    num = to_number(value)
    return int(num) if num is not None else None


@dataclass
class Candidate:
    """One provider's view of one token, field names already normalized."""

    chain_id: str
    address: str
    source: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    price_usd: Optional[float] = None
    liquidity_usd: Optional[float] = None
    volume_h24: Optional[float] = None
    fdv: Optional[float] = None
    price_change: Dict[str, Optional[float]] = field(default_factory=dict)
    txns: Optional[Dict[str, Any]] = None
    holders: Optional[int] = None
    pair_address: Optional[str] = None
    pair_created_at: Optional[float] = None
    logo_url: Optional[str] = None

    def has_txn_counts(self) -> bool:
        for window in ("h1", "h24"):
            bucket = (self.txns or {}).get(window)
            if not isinstance(bucket, dict):
                continue
            if bucket.get("buys") is not None or bucket.get("sells") is not None:
                return True
        return False


# ---------------------------------------------------------------------------
# Market-pairs provider (DexScreener)
# ---------------------------------------------------------------------------


def normalize_dex_pair(pair: Dict[str, Any]) -> Optional[Candidate]:
    if not isinstance(pair, dict):
        return None
    base = pair.get("baseToken") or {}
    quote = pair.get("quoteToken") or {}
    side = base
    if is_quote_symbol(base.get("symbol")) and quote.get("address"):
        side = quote
    address = side.get("address")
    if not address:
        return None

    changes = pair.get("priceChange") or {}
    info = pair.get("info") or {}
    txns = pair.get("txns")
    return Candidate(
        chain_id=str(pair.get("chainId") or ""),
        address=str(address),
        source="dexscreener",
        symbol=side.get("symbol"),
        name=side.get("name"),
        price_usd=to_number(pair.get("priceUsd")),
        liquidity_usd=to_number((pair.get("liquidity") or {}).get("usd")),
        volume_h24=to_number((pair.get("volume") or {}).get("h24")),
        fdv=to_number(pair.get("fdv")),
        price_change={w: to_number(changes.get(w)) for w in ("m5", "h1", "h6", "h24")},
        txns=txns if isinstance(txns, dict) else None,
        pair_address=pair.get("pairAddress"),
        pair_created_at=to_number(pair.get("pairCreatedAt")),
        logo_url=info.get("imageUrl") or side.get("imageUrl") or side.get("logoURI"),
    )


@dataclass
class DexPairsPayload:
    pairs: List[Dict[str, Any]]
    source: str = "dexscreener"

    def candidates(self) -> Iterator[Candidate]:
        for pair in self.pairs:
            cand = normalize_dex_pair(pair)
            if cand is not None:
                yield cand


# ---------------------------------------------------------------------------
# Secondary aggregator (BirdEye trending)
# ---------------------------------------------------------------------------


def normalize_aggregator_token(token: Dict[str, Any], default_chain: str) -> Optional[Candidate]:
    if not isinstance(token, dict):
        return None
    address = token.get("address") or token.get("mint") or token.get("tokenAddress")
    if not address:
        return None
    price = token.get("priceUsd")
    if price is None:
        price = token.get("price")
    volume = token.get("volume24hUSD")
    if volume is None:
        volume = token.get("volume24h", token.get("v24hUSD"))
    return Candidate(
        chain_id=str(token.get("chain") or token.get("chainId") or default_chain),
        address=str(address),
        source="birdeye",
        symbol=token.get("symbol"),
        name=token.get("name"),
        price_usd=to_number(price),
        liquidity_usd=to_number(token.get("liquidity")),
        volume_h24=to_number(volume),
        fdv=to_number(token.get("fdv")),
        price_change={
            "h1": to_number(token.get("priceChange1h")),
            "h6": to_number(token.get("priceChange6h")),
            "h24": to_number(token.get("priceChange24h", token.get("price24hChangePercent"))),
        },
        logo_url=token.get("logoURI") or token.get("logo"),
    )


@dataclass
class AggregatorPayload:
    tokens: List[Dict[str, Any]]
    chain: str = "solana"
    source: str = "birdeye"

    def candidates(self) -> Iterator[Candidate]:
        for token in self.tokens:
            cand = normalize_aggregator_token(token, self.chain)
            if cand is not None:
                yield cand


# ---------------------------------------------------------------------------
# Chain-specific market-cap providers (Moralis, Solscan)
# ---------------------------------------------------------------------------

_HOLDER_FIELDS = ("holders", "holderCount", "holder_count", "holder", "total_holders")


def parse_holders(item: Dict[str, Any]) -> Optional[int]:
    """Holder counts show up under several names; take the first parseable one."""
    for name in _HOLDER_FIELDS:
        count = to_int(item.get(name))
        if count is not None and count >= 0:
            return count
    return None


def _first_number(item: Dict[str, Any], *names: str) -> Optional[float]:
    for name in names:
        num = to_number(item.get(name))
        if num is not None:
            return num
    return None


def normalize_market_cap_token(token: Dict[str, Any], default_chain: str, source: str) -> Optional[Candidate]:
    if not isinstance(token, dict):
        return None
    address = token.get("address") or token.get("token_address")
    if not address:
        return None
    changes = token.get("priceChange") if isinstance(token.get("priceChange"), dict) else {}
    return Candidate(
        chain_id=str(token.get("chain") or default_chain),
        address=str(address),
        source=source,
        symbol=token.get("symbol") or None,
        name=token.get("name") or None,
        price_usd=_first_number(token, "priceUsd", "price_usd", "price"),
        liquidity_usd=_first_number(token, "liquidityUsd", "liquidity_usd", "liquidity"),
        volume_h24=_first_number(token, "volume24h", "volume_24h"),
        fdv=_first_number(token, "fdv", "marketCap", "market_cap"),
        price_change={
            "h1": to_number(changes.get("h1", token.get("priceChange1h"))),
            "h24": to_number(changes.get("h24", token.get("priceChange24h"))),
        },
        holders=parse_holders(token),
    )


@dataclass
class MarketCapPayload:
    tokens: List[Dict[str, Any]]
    source: str
    chain: str = "solana"

    def candidates(self) -> Iterator[Candidate]:
        for token in self.tokens:
            cand = normalize_market_cap_token(token, self.chain, self.source)
            if cand is not None:
                yield cand


ProviderPayload = Union[DexPairsPayload, AggregatorPayload, MarketCapPayload]
