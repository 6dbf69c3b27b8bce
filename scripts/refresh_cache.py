#!/usr/bin/env python3
"""CLI script to inspect or refresh the Pipedrive deal cache.

Usage:
    uv run python scripts/refresh_cache.py --status
    uv run python scripts/refresh_cache.py

Connects directly to the database using DATABASE_URL from environment or .env file.
Runs one refresh cycle in this process; a refresh already running inside the
API process is not visible to this lock.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.salesdash
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def run(status_only: bool) -> int:
    """Print cache status, then refresh unless status_only."""
    from src.salesdash.api.middleware.logging import configure_structlog
    from src.salesdash.cache.refresh import CacheRefresher
    from src.salesdash.cache.store import DealCacheStore
    from src.salesdash.config import get_settings
    from src.salesdash.core.database import close_db, get_session, init_db
    from src.salesdash.crm.pipedrive import PipedriveSource

    settings = get_settings()
    configure_structlog()
    await init_db()

    source = PipedriveSource(
        api_token=settings.PIPEDRIVE_API_TOKEN,
        base_url=settings.PIPEDRIVE_BASE_URL,
        timeout=settings.PIPEDRIVE_TIMEOUT_SECONDS,
    )
    refresher = CacheRefresher(source, DealCacheStore(get_session), settings)

    try:
        status = await refresher.get_status()
        print(f"Cache '{settings.CACHE_KEY}':")
        print(f"  Status:    {status.status.value}")
        print(f"  Last sync: {status.last_sync_at or '-'}")
        print(f"  Records:   {status.total_records}")
        print(f"  Stale:     {status.is_stale}")
        if status.error:
            print(f"  Error:     {status.error}")
        if status_only:
            return 0

        print("Refreshing...")
        result = await refresher.refresh()
        print(result.message)
        return 0 if result.success else 1
    finally:
        await source.aclose()
        await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect or refresh the deal cache")
    parser.add_argument("--status", action="store_true", help="Only print the cache status")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args.status)))


if __name__ == "__main__":
    main()
