#!/usr/bin/env python3
"""
Run one pipeline cycle from the command line.

Examples:
    python scripts/run_cycle.py crawl --keyword Python --remote
    python scripts/run_cycle.py fanout
    python scripts/run_cycle.py enrich
    python scripts/run_cycle.py cleanup
    python scripts/run_cycle.py init-db
"""
import sys
import json
import asyncio
import logging
import argparse
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from app.config import Settings
from core.errors import BrowserUnavailableError, ConfigurationMissingError
from core.models import SearchQuery, DEFAULT_LOCATION
from orchestrator import build_pipeline

logger = logging.getLogger("run_cycle")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run one JobMatch pipeline cycle")
    sub = parser.add_subparsers(dest="command", required=True)

    crawl = sub.add_parser("crawl", help="Crawl a single query")
    crawl.add_argument("--keyword", default="")
    crawl.add_argument("--location", default=DEFAULT_LOCATION)
    crawl.add_argument("--no-last24h", action="store_true", help="Do not restrict to the last 24 hours")
    crawl.add_argument("--remote", action="store_true", help="Only remote postings")

    sub.add_parser("fanout", help="Crawl once per distinct active-user keyword")
    sub.add_parser("enrich", help="Enrich one batch of pending postings")
    sub.add_parser("cleanup", help="Delete postings past the retention window")
    sub.add_parser("init-db", help="Create the jobs table if missing")
    return parser.parse_args(argv)


async def run(args) -> dict:
    pipeline = build_pipeline(Settings.from_env())
    try:
        if args.command == "crawl":
            query = SearchQuery(
                keyword=args.keyword,
                location=args.location,
                last_24h=not args.no_last24h,
                remote=args.remote,
            )
            return (await pipeline.run_crawl_cycle(query)).to_dict()
        if args.command == "fanout":
            return (await pipeline.run_crawl_cycle()).to_dict()
        if args.command == "enrich":
            return pipeline.run_enrichment_cycle().to_dict()
        if args.command == "cleanup":
            return {"deleted": pipeline.run_retention_sweep()}
        if args.command == "init-db":
            pipeline.store.ensure_schema()
            return {"schema": "ok"}
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await pipeline.close()


def main(argv=None) -> int:
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    args = parse_args(argv)

    try:
        result = asyncio.run(run(args))
    except ConfigurationMissingError as e:
        print(f"[ERROR] {e}")
        return 2
    except BrowserUnavailableError as e:
        print(f"[ERROR] Browser session unavailable: {e}")
        return 3

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
