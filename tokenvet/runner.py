import asyncio
import logging
from typing import Awaitable, Callable

from .birdeye import BirdEyeClient
from .cache import make_cache
from .config import Settings
from .dexscreener import DexScreenerClient
from .events import CycleSummary
from .feeds import FeedCollector
from .images import JupiterClient, LogoResolver
from .ingestion import IngestionWorker
from .jsonclient import JsonClient
from .marketcap import MoralisClient, SolscanClient
from .metrics import start_metrics_server
from .monitoring import MonitoringSampler
from .notifier import make_publisher
from .onchain import OnchainAnalyzer
from .rugcheck import RugcheckClient
from .store import ListingStore
from .vetting import VettingOrchestrator


class Service:
    """Wires settings into clients, store and the three pipelines."""

    def __init__(self, settings: Settings) -> None:
        s = settings
        self.settings = s
        timeout, retries = s.provider_timeout_ms, s.provider_retries

        self.cache = make_cache(s.redis_url)
        self.store = ListingStore(s.db_path)
        self.publisher = make_publisher(s.redis_url, s.notify_stream_key)

        self.dex = DexScreenerClient(s.dexscreener_url, timeout, retries)
        self.birdeye = BirdEyeClient(s.birdeye_url, s.birdeye_api_key, timeout, retries)
        self.moralis = MoralisClient(s.moralis_url, s.moralis_api_key, timeout, retries)
        self.solscan = SolscanClient(s.solscan_url, s.solscan_api_key, timeout, retries)
        self.rugcheck = RugcheckClient(s.rugcheck_url, timeout, retries)
        self.onchain = OnchainAnalyzer(s.rpc_url, timeout)
        self.jupiter = JupiterClient(s.jupiter_url, s.jupiter_api_key, timeout)
        self.probe = JsonClient("", min(timeout, 3000), retries=1)
        self.probe.provider = "logo_probe"

        self.collector = FeedCollector(s, self.cache, self.dex, self.birdeye, self.moralis, self.solscan)
        self.logos = LogoResolver(self.jupiter, self.probe, self.cache, s.logo_ttl)
        self.vetting = VettingOrchestrator(s, self.store, self.dex, self.rugcheck, self.onchain)
        self.ingestion = IngestionWorker(self.collector, self.store, self.logos, self.publisher, self.vetting)
        self.monitoring = MonitoringSampler(s, self.store, self.dex, self.rugcheck, self.publisher)

    async def close(self) -> None:
        for client in (self.dex, self.birdeye, self.moralis, self.solscan,
                       self.rugcheck, self.onchain, self.jupiter, self.probe):
            await client.close()
        await self.cache.close()
        await self.publisher.close()


async def _every(name: str, interval_seconds: int, cycle: Callable[[], Awaitable[CycleSummary]]) -> None:
    while True:
        try:
            await cycle()
        except Exception:
            # Cycles catch their own failures; this keeps the loop alive regardless
            logging.exception(f"{name} loop iteration failed")
        await asyncio.sleep(max(1, interval_seconds))


async def serve(service: Service) -> None:
    s = service.settings
    start_metrics_server(s.metrics_port)
    loops = [
        _every("ingest", s.ingest_interval_seconds, service.ingestion.run_cycle),
        _every("vet", s.vetting_interval_seconds, service.vetting.run_backlog),
    ]
    if s.monitoring_enabled:
        loops.append(_every("monitor", s.monitoring_interval_seconds, service.monitoring.run_cycle))
    else:
        logging.info("Token monitoring disabled (TOKEN_MONITORING_ENABLED=false)")
    logging.info("🚀 tokenvet serving: ingest/vet/monitor loops started")
    try:
        await asyncio.gather(*loops)
    finally:
        await service.close()
