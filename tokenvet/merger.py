import logging
from collections import Counter
from dataclasses import asdict, replace
from typing import Dict, Iterable, List, Optional

from .chains import canonical_address, is_valid_address, resolve_chain
from .errors import UnsupportedChainError
from .models import Chain, MarketData, PriceChange, TokenRecord, Volume, token_key
from .payloads import AggregatorPayload, Candidate, DexPairsPayload, MarketCapPayload, ProviderPayload


log = logging.getLogger(__name__)

MAX_PAIRS_PER_PAYLOAD = 800
MAX_TOKENS_PER_PAYLOAD = 400

MEME_HINTS = ("pepe", "wojak", "doge", "bonk", "elon", "meme", "cat", "kitten", "baby", "moon", "pump")


def _accept_chain(cand: Candidate, drops: Counter) -> Optional[Chain]:
    try:
        chain = resolve_chain(cand.chain_id)
    except UnsupportedChainError:
        drops["unsupported_chain"] += 1
        log.debug(f"drop {cand.source} {cand.address}: unsupported chain {cand.chain_id!r}")
        return None
    if not is_valid_address(chain, cand.address):
        drops["invalid_address"] += 1
        log.debug(f"drop {cand.source} {cand.address}: bad {chain.value} address")
        return None
    cand.address = canonical_address(chain, cand.address)
    return chain


def _price_change(values: Dict[str, Optional[float]], fallback: Optional[PriceChange] = None) -> PriceChange:
    fallback = fallback or PriceChange()
    out = PriceChange()
    for window in ("m5", "h1", "h6", "h24"):
        value = values.get(window)
        setattr(out, window, value if value is not None else getattr(fallback, window))
    return out


def _fold_dex(records: Dict[str, TokenRecord], payload: DexPairsPayload, drops: Counter) -> None:
    for cand in _take(payload.candidates(), MAX_PAIRS_PER_PAYLOAD):
        chain = _accept_chain(cand, drops)
        if chain is None:
            continue
        if cand.price_usd is None or cand.liquidity_usd is None or cand.volume_h24 is None:
            drops["non_numeric_market"] += 1
            continue
        if not cand.has_txn_counts():
            drops["missing_txns"] += 1
            continue

        key = token_key(chain, cand.address)
        existing = records.get(key)
        if existing is not None and existing.market.source == "dexscreener":
            # Same token seen through another pool: keep the deeper one
            if not cand.liquidity_usd > (existing.market.liquidity_usd or 0.0):
                continue

        records[key] = TokenRecord(
            chain=chain,
            address=cand.address,
            symbol=cand.symbol,
            name=cand.name,
            market=MarketData(
                price_usd=cand.price_usd,
                liquidity_usd=cand.liquidity_usd,
                fdv=cand.fdv,
                volume=Volume(h24=cand.volume_h24),
                price_change=_price_change(cand.price_change),
                txns=cand.txns,
                holders=None,
                pair_address=cand.pair_address,
                pair_created_at=cand.pair_created_at,
                source="dexscreener",
            ),
            logo_url=cand.logo_url,
        )


def _fold_aggregator(records: Dict[str, TokenRecord], payload: AggregatorPayload, drops: Counter) -> None:
    for cand in _take(payload.candidates(), MAX_TOKENS_PER_PAYLOAD):
        chain = _accept_chain(cand, drops)
        if chain is None:
            continue
        key = token_key(chain, cand.address)
        existing = records.get(key)
        if existing is None or not existing.market.txns:
            drops["aggregator_without_txns"] += 1
            continue

        market = existing.market
        price = cand.price_usd if cand.price_usd is not None else market.price_usd
        liquidity = cand.liquidity_usd if cand.liquidity_usd is not None else market.liquidity_usd
        volume = cand.volume_h24 if cand.volume_h24 is not None else market.volume.h24
        if price is None or liquidity is None or volume is None:
            drops["non_numeric_market"] += 1
            continue

        records[key] = replace(
            existing,
            symbol=cand.symbol or existing.symbol,
            name=cand.name or existing.name,
            market=replace(
                market,
                price_usd=price,
                liquidity_usd=liquidity,
                fdv=cand.fdv if cand.fdv is not None else market.fdv,
                volume=Volume(h24=volume),
                price_change=_price_change(cand.price_change, market.price_change),
                txns=market.txns,
                source=cand.source,
            ),
            logo_url=cand.logo_url or existing.logo_url,
        )


def _reported(current: Optional[float], incoming: Optional[float]) -> Optional[float]:
    # Zero and None both mean no provider has reported the field yet
    return current if current else incoming


def _fold_market_cap(records: Dict[str, TokenRecord], payload: MarketCapPayload, drops: Counter) -> None:
    for cand in _take(payload.candidates(), MAX_TOKENS_PER_PAYLOAD):
        chain = _accept_chain(cand, drops)
        if chain is None:
            continue
        key = token_key(chain, cand.address)
        existing = records.get(key)
        if existing is None:
            # Gaps stay None so a later provider can fill them; normalize_record zero-fills
            records[key] = TokenRecord(
                chain=chain,
                address=cand.address,
                symbol=cand.symbol,
                name=cand.name,
                market=MarketData(
                    price_usd=cand.price_usd,
                    liquidity_usd=cand.liquidity_usd,
                    fdv=cand.fdv,
                    volume=Volume(h24=cand.volume_h24),
                    price_change=_price_change(cand.price_change),
                    holders=cand.holders,
                    source=cand.source,
                ),
            )
            continue

        # Union: only fill gaps, the first reporter of a field keeps it
        market = existing.market
        holders = market.holders
        if holders is None:
            holders = cand.holders
        elif cand.holders and cand.holders > holders:
            holders = cand.holders
        records[key] = replace(
            existing,
            symbol=existing.symbol or cand.symbol,
            name=existing.name or cand.name,
            market=replace(
                market,
                price_usd=_reported(market.price_usd, cand.price_usd),
                liquidity_usd=_reported(market.liquidity_usd, cand.liquidity_usd),
                fdv=_reported(market.fdv, cand.fdv),
                volume=Volume(h24=_reported(market.volume.h24, cand.volume_h24)),
                price_change=_price_change(asdict(market.price_change), _price_change(cand.price_change)),
                holders=holders,
            ),
        )


def _take(items: Iterable[Candidate], limit: int) -> Iterable[Candidate]:
    for i, item in enumerate(items):
        if i >= limit:
            return
        yield item


def normalize_record(record: TokenRecord) -> TokenRecord:
    """Guarantee every market field callers read is present."""
    market = record.market
    volume = market.volume if market.volume is not None else Volume()
    if volume.h24 is None:
        volume = Volume(h24=0.0)
    return replace(
        record,
        market=replace(
            market,
            price_usd=market.price_usd if market.price_usd is not None else 0.0,
            liquidity_usd=market.liquidity_usd if market.liquidity_usd is not None else 0.0,
            volume=volume,
            price_change=market.price_change if market.price_change is not None else PriceChange(),
        ),
    )


def merge_feeds(
    payloads: Iterable[Optional[ProviderPayload]],
    drops: Optional[Counter] = None,
) -> Dict[str, TokenRecord]:
    """Fold provider payloads into one record per ``CHAIN|address``.

    Market-pair payloads are folded first, then the secondary aggregator
    (which can only enrich records that already carry transaction counts),
    then market-cap providers. The result does not depend on the order the
    payloads were fetched in. ``drops`` receives per-reason counts of
    discarded candidates when given.
    """
    if drops is None:
        drops = Counter()
    dex: List[DexPairsPayload] = []
    aggregators: List[AggregatorPayload] = []
    market_caps: List[MarketCapPayload] = []
    for payload in payloads:
        if isinstance(payload, DexPairsPayload):
            dex.append(payload)
        elif isinstance(payload, AggregatorPayload):
            aggregators.append(payload)
        elif isinstance(payload, MarketCapPayload):
            market_caps.append(payload)

    records: Dict[str, TokenRecord] = {}
    for p in dex:
        _fold_dex(records, p, drops)
    for p in aggregators:
        _fold_aggregator(records, p, drops)
    for p in market_caps:
        _fold_market_cap(records, p, drops)

    return {key: normalize_record(rec) for key, rec in records.items()}


def classify_category(record: TokenRecord) -> str:
    symbol = (record.symbol or "").lower()
    name = (record.name or "").lower()
    if any(h in symbol or h in name for h in MEME_HINTS):
        return "MEME"
    fdv = record.market.fdv or 0.0
    liq = record.market.liquidity_usd or 0.0
    if 0 < fdv < 10_000_000 and 0 < liq < 2_000_000:
        return "MEME"
    return "OTHER"
