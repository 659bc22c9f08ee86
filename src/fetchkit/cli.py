"""Command line entry point: fetch a URL and print each state change."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import Dict, List, Optional, TextIO

from .config import STORE_BACKENDS, EngineSettings, HttpMethod, RequestConfig, postgres_dsn_from_env
from .engine import FetchEngine
from .models import LifecycleState, Phase
from .transport import Transport

logger = logging.getLogger("fetchkit.cli")


def _parse_headers(values: List[str]) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Header must look like 'Name: value', got {value!r}")
        headers[name.strip()] = content.strip()
    return headers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fetchkit", description="Fetch a JSON resource and print state changes")
    parser.add_argument("url")
    parser.add_argument("--method", default="GET", choices=[m.value for m in HttpMethod])
    parser.add_argument("--header", dest="headers", action="append", default=[], help="'Name: value', repeatable")
    parser.add_argument("--data", help="JSON request body")
    parser.add_argument("--cache-key")
    parser.add_argument("--cache-expiration-ms", type=int, default=60000)
    parser.add_argument("--poll-ms", type=int, help="Re-fetch interval in milliseconds")
    parser.add_argument("--duration", type=float, default=0.0, help="Seconds to keep polling before exiting")
    parser.add_argument("--store", choices=STORE_BACKENDS, help="Cache store backend (default from FETCHKIT_STORE)")
    parser.add_argument("--store-path", help="Path for the file store")
    return parser


def build_request(args: argparse.Namespace) -> RequestConfig:
    return RequestConfig(
        url=args.url,
        method=args.method,
        body=json.loads(args.data) if args.data else None,
        headers=_parse_headers(args.headers),
        cache_key=args.cache_key,
        cache_expiration_ms=args.cache_expiration_ms,
        polling_interval_ms=args.poll_ms,
    )


def build_settings(args: argparse.Namespace) -> EngineSettings:
    settings = EngineSettings.from_env()
    overrides = {}
    if args.store:
        overrides["store_backend"] = args.store
    if args.store_path:
        overrides["store_path"] = args.store_path
    if overrides.get("store_backend") == "postgres" and not settings.postgres_dsn:
        overrides["postgres_dsn"] = postgres_dsn_from_env()
    return replace(settings, **overrides) if overrides else settings


async def run(
    args: argparse.Namespace,
    *,
    transport: Optional[Transport] = None,
    out: TextIO = sys.stdout,
) -> LifecycleState:
    config = build_request(args)
    settings = build_settings(args)

    def emit(state: LifecycleState) -> None:
        out.write(state.model_dump_json() + "\n")
        out.flush()

    async with FetchEngine.from_settings(config, settings, transport=transport) as engine:
        engine.subscribe(emit)
        engine.start()
        await engine.drain()
        if config.polling_enabled and args.duration > 0:
            await asyncio.sleep(args.duration)
            await engine.drain()
        return engine.state


def main(argv: Optional[List[str]] = None) -> int:  # pragma: no cover - CLI wiring
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=EngineSettings.from_env().log_level)
    try:
        state = asyncio.run(run(args))
    except ValueError as exc:
        logger.error("Invalid arguments: %s", exc)
        return 2
    return 0 if state.phase is Phase.SUCCESS else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
