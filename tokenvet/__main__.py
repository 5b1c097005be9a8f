import argparse
import asyncio
import logging
import os
from typing import List, Optional

from dotenv import load_dotenv

from .chains import canonical_address, is_valid_address, resolve_chain
from .config import Settings, load_settings
from .errors import TokenVetError
from .runner import Service, serve


def setup_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    for noisy in ("aiohttp", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tokenvet", description="Token listing ingestion, vetting and monitoring")
    parser.add_argument("command", choices=("ingest", "vet", "monitor", "serve"))
    parser.add_argument("--address", help="vet/monitor a single token instead of the backlog")
    parser.add_argument("--chain", default="solana", help="chain of --address (default: solana)")
    return parser


async def _run_once(settings: Settings, command: str, address: Optional[str], chain_raw: str) -> int:
    service = Service(settings)
    try:
        if command == "ingest":
            summary = await service.ingestion.run_cycle()
            return 1 if summary.failed and not summary.succeeded else 0

        if address:
            chain = resolve_chain(chain_raw)
            if not is_valid_address(chain, address):
                logging.error(f"{address} is not a valid {chain.value} address")
                return 2
            address = canonical_address(chain, address)
            if command == "vet":
                results = await service.vetting.vet_token(chain, address)
                logging.info(f"Result: {results.to_dict()}")
            else:
                snap = await service.monitoring.sample(chain, address)
                if snap is None:
                    return 1
            return 0

        if command == "vet":
            summary = await service.vetting.run_backlog()
        else:
            summary = await service.monitoring.run_cycle()
        return 1 if summary.failed and not summary.succeeded else 0
    finally:
        await service.close()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    setup_logging()
    args = build_parser().parse_args(argv)
    settings = load_settings()

    # Ensure data directory exists for the database
    os.makedirs(settings.data_dir, exist_ok=True)

    if args.command == "serve":
        asyncio.run(serve(Service(settings)))
        return 0
    try:
        return asyncio.run(_run_once(settings, args.command, args.address, args.chain))
    except TokenVetError as e:
        logging.error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
