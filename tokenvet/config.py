import os
from dataclasses import dataclass
from typing import List, Optional


DEFAULT_SEARCH_QUERIES: List[str] = [
    'sol trending',
    'sol top',
    'sol jupiter',
    'sol raydium',
    'sol usdc',
    'sol pump',
    'sol volume',
    'eth trending',
    'eth uniswap',
    'bsc trending',
    'bsc pancakeswap',
    'base trending',
]


def _parse_queries(value: str) -> List[str]:
    """Parse DEX_SEARCH_QUERIES env (comma-separated).

    If env is empty, default to DEFAULT_SEARCH_QUERIES.
    """
    if not value:
        return list(DEFAULT_SEARCH_QUERIES)
    parsed = [q.strip() for q in value.split(",") if q.strip()]
    return parsed or list(DEFAULT_SEARCH_QUERIES)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    data_dir: str
    db_path: str
    redis_url: Optional[str]
    notify_stream_key: str
    metrics_port: int

    # Providers
    dexscreener_url: str
    birdeye_url: str
    birdeye_api_key: str
    moralis_url: str
    moralis_api_key: str
    solscan_url: str
    solscan_api_key: str
    rugcheck_url: str
    rpc_url: str
    jupiter_url: str
    jupiter_api_key: str
    provider_timeout_ms: int
    provider_retries: int
    search_queries: List[str]
    max_pairs_per_cycle: int

    # Fresh-result cache TTLs (seconds)
    dex_feed_ttl: int
    birdeye_feed_ttl: int
    marketcap_feed_ttl: int
    logo_ttl: int

    # Vetting
    vetting_batch_size: int
    vetting_concurrency: int

    # Monitoring
    monitoring_batch_size: int
    monitoring_concurrency: int
    monitoring_batch_delay_ms: int
    monitoring_stale_seconds: int
    monitoring_enabled: bool

    # Scheduler cadences (seconds)
    ingest_interval_seconds: int = 1800
    vetting_interval_seconds: int = 600
    monitoring_interval_seconds: int = 1800


def load_settings() -> Settings:
    data_dir = os.getenv("DATA_DIR", "data")
    db_path = os.path.join(data_dir, os.getenv("DB_FILE", "listings.db"))

    return Settings(
        data_dir=data_dir,
        db_path=db_path,
        redis_url=os.getenv("REDIS_URL") or None,
        notify_stream_key=os.getenv("NOTIFY_STREAM_KEY", "listing_updates"),
        metrics_port=int(os.getenv("METRICS_PORT", "9110")),
        dexscreener_url=os.getenv("DEXSCREENER_URL", "https://api.dexscreener.com/latest"),
        birdeye_url=os.getenv("BIRDEYE_URL", "https://public-api.birdeye.so"),
        birdeye_api_key=os.getenv("BIRDEYE_API_KEY", ""),
        moralis_url=os.getenv("MORALIS_URL", "https://deep-index.moralis.io/api/v2.2"),
        moralis_api_key=os.getenv("MORALIS_API_KEY", ""),
        solscan_url=os.getenv("SOLSCAN_URL", "https://pro-api.solscan.io/v2.0"),
        solscan_api_key=os.getenv("SOLSCAN_API_KEY", ""),
        rugcheck_url=os.getenv("RUGCHECK_URL", "https://api.rugcheck.xyz/v1"),
        rpc_url=os.getenv("RPC_URL", "https://api.mainnet-beta.solana.com"),
        jupiter_url=os.getenv("JUPITER_URL", "https://api.jup.ag"),
        jupiter_api_key=os.getenv("JUPITER_API_KEY", ""),
        provider_timeout_ms=int(os.getenv("PROVIDER_TIMEOUT_MS", "8000")),
        provider_retries=int(os.getenv("PROVIDER_RETRIES", "3")),
        search_queries=_parse_queries(os.getenv("DEX_SEARCH_QUERIES", "")),
        max_pairs_per_cycle=int(os.getenv("MAX_PAIRS_PER_CYCLE", "600")),
        dex_feed_ttl=int(os.getenv("DEX_FEED_TTL", "5")),
        birdeye_feed_ttl=int(os.getenv("BIRDEYE_FEED_TTL", "30")),
        marketcap_feed_ttl=int(os.getenv("MARKETCAP_FEED_TTL", "15")),
        logo_ttl=int(os.getenv("LOGO_TTL", "86400")),  # 24h
        vetting_batch_size=int(os.getenv("VETTING_BATCH_SIZE", "25")),
        vetting_concurrency=int(os.getenv("VETTING_CONCURRENCY", "3")),
        monitoring_batch_size=int(os.getenv("TOKEN_MONITORING_BATCH_SIZE", "100")),
        monitoring_concurrency=int(os.getenv("MONITORING_CONCURRENCY", "10")),
        monitoring_batch_delay_ms=int(os.getenv("MONITORING_BATCH_DELAY_MS", "2000")),
        monitoring_stale_seconds=int(os.getenv("MONITORING_STALE_SECONDS", "1800")),  # 30m
        monitoring_enabled=_parse_bool(os.getenv("TOKEN_MONITORING_ENABLED", "true")),
        ingest_interval_seconds=int(os.getenv("INGEST_INTERVAL_SECONDS", "1800")),
        vetting_interval_seconds=int(os.getenv("VETTING_INTERVAL_SECONDS", "600")),
        monitoring_interval_seconds=int(os.getenv("MONITORING_INTERVAL_SECONDS", "1800")),
    )
