from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Dict

from aiohttp import web

from store_scrap.config import YamlConfigLoader
from store_scrap.config.models import AppConfig, ConfigLoadRequest
from store_scrap.core.catalog import CountryCatalog
from store_scrap.logging import init_logging
from store_scrap.refresh.orchestrator import RefreshOrchestrator
from store_scrap.refresh.snapshot import SnapshotBuilder
from store_scrap.server.app import create_app
from store_scrap.sources.apple import AppleSource
from store_scrap.sources.google import GoogleSource
from store_scrap.sources.http import HttpClient
from store_scrap.sources.interfaces import DataSource
from store_scrap.storage.store import JsonFileStore

logger = logging.getLogger(__name__)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1: {value}")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="store-scrap", description="New and updated game listings per country")
    parser.add_argument(
        "--config",
        default="data/config/config.yaml",
        help="Path to config.yaml (default: data/config/config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    # Command: serve
    serve_parser = subparsers.add_parser("serve", help="Serve listings on demand over HTTP")
    serve_parser.add_argument("--port", type=int, default=None, help="Override server.port")

    # Command: build
    build_parser = subparsers.add_parser("build", help="Refresh countries and write JSON snapshots")
    mode = build_parser.add_mutually_exclusive_group()
    mode.add_argument("--full", action="store_true", help="Refresh every country in the catalog")
    mode.add_argument("--incremental", action="store_true", help="Refresh the next round-robin batch (default)")
    build_parser.add_argument("--limit", type=_positive_int, default=None, help="Countries per incremental run")
    build_parser.add_argument(
        "--countries",
        default=None,
        help="Comma separated country codes to refresh; bypasses the round robin",
    )

    return parser


async def _load_config(args: argparse.Namespace) -> AppConfig:
    loader = YamlConfigLoader()
    request = ConfigLoadRequest(
        yaml_path=args.config,
    )
    return await loader.load(request)


def _build_sources(config: AppConfig, http: HttpClient) -> Dict[str, DataSource]:
    return {
        "apple": AppleSource(
            config=config.apple,
            refresh=config.refresh,
            http=http,
            lookup_cache_path=config.storage.lookup_cache_path,
        ),
        "google": GoogleSource(config=config.google, refresh=config.refresh, http=http),
    }


async def _serve(args: argparse.Namespace) -> None:
    config = await _load_config(args)
    init_logging(config.logging)
    catalog = CountryCatalog.load(config.storage.countries_path)
    port = args.port if args.port is not None else config.server.port

    async with HttpClient(config.refresh) as http:
        orchestrator = RefreshOrchestrator(
            catalog=catalog,
            sources=_build_sources(config, http),
            cache_ttl_seconds=config.refresh.cache_ttl_seconds,
        )
        runner = web.AppRunner(create_app(orchestrator))
        await runner.setup()
        site = web.TCPSite(runner, host=config.server.host, port=port)
        await site.start()
        logger.info(
            "Server running. url=http://localhost:%d cache_ttl_seconds=%s countries=%d",
            port,
            config.refresh.cache_ttl_seconds,
            len(catalog),
        )
        try:
            await asyncio.Event().wait()
        finally:
            await runner.cleanup()


async def _build(args: argparse.Namespace) -> None:
    config = await _load_config(args)
    init_logging(config.logging)
    catalog = CountryCatalog.load(config.storage.countries_path)
    countries = [code for code in args.countries.split(",") if code.strip()] if args.countries else None

    async with HttpClient(config.refresh) as http:
        builder = SnapshotBuilder(
            catalog=catalog,
            sources=_build_sources(config, http),
            store=JsonFileStore(config.storage.data_dir),
            concurrency=config.refresh.batch_concurrency,
            incremental_size=config.refresh.incremental_size,
        )
        report = await builder.run(
            run_type="full" if args.full else "incremental",
            limit=args.limit,
            countries=countries,
        )
    logger.info("Processed %d countries. next_cursor=%d", len(report.processed), report.next_cursor)


async def _main_async() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "serve":
        await _serve(args)
    elif args.command == "build":
        await _build(args)


def main() -> None:
    try:
        asyncio.run(_main_async())
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    except Exception:
        logger.exception("Command failed.")
        sys.exit(1)


if __name__ == "__main__":
    main()
