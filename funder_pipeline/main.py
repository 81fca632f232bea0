"""Command line entry point: 360Giving sync and AI funder matching.

    python -m funder_pipeline.main sync [--max-orgs N] [--max-grants N] [--offset N] [--force]
    python -m funder_pipeline.main match PROFILE.json|yaml [--force-refresh]
    python -m funder_pipeline.main purge-cache
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

import yaml

from .config import Config, load_config
from .database import SupabaseStore
from .matching import FunderMatcher, MatchCache, ScoringClient
from .models import CharityProfile, SyncOptions
from .sync import SyncOrchestrator
from .threesixty import RateLimiter, ThreeSixtyGivingClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


@dataclass
class Services:
    """The process-wide instances, built once and passed explicitly."""

    config: Config
    store: SupabaseStore
    rate_limiter: RateLimiter
    grant_data: ThreeSixtyGivingClient
    cache: MatchCache


def build_services(config: Config) -> Services:
    store = SupabaseStore(config.supabase_url, config.supabase_key)
    rate_limiter = RateLimiter(min_interval=config.rate_limit_interval_seconds)
    return Services(
        config=config,
        store=store,
        rate_limiter=rate_limiter,
        grant_data=ThreeSixtyGivingClient(rate_limiter, base_url=config.threesixty_base_url),
        cache=MatchCache(store, ttl=timedelta(days=config.cache_ttl_days)),
    )


def build_matcher(services: Services) -> FunderMatcher:
    config = services.config
    scoring = ScoringClient(
        api_key=config.anthropic_api_key,
        model=config.anthropic_model,
        max_tokens=config.anthropic_max_tokens,
        temperature=config.anthropic_temperature,
    )
    return FunderMatcher(services.store, scoring, services.cache, currency=config.default_currency)


async def run_sync(services: Services, options: SyncOptions) -> dict:
    """Run one sync and return the caller-facing result."""
    orchestrator = SyncOrchestrator(services.grant_data, services.store, cache=services.cache)
    logger.info("=" * 60)
    logger.info("Starting sync")
    logger.info("=" * 60)
    try:
        result = await orchestrator.run_sync(options)
    finally:
        await services.grant_data.aclose()
    return {"success": True, **result.model_dump(mode="json")}


def load_profile(path: Path) -> CharityProfile:
    """Load a charity profile from a JSON or YAML file."""
    if not path.exists():
        raise FileNotFoundError(f"Charity profile not found: {path}")

    if path.suffix == ".json":
        with open(path, "r") as f:
            data = json.load(f)
    elif path.suffix in [".yaml", ".yml"]:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    else:
        raise ValueError(f"Unsupported file format: {path.suffix}. Use .json, .yaml, or .yml")

    # Accept either the bare profile or a {"charityProfile": {...}} request body
    if isinstance(data, dict) and "charityProfile" in data:
        data = data["charityProfile"]
    return CharityProfile.model_validate(data)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="360Giving sync and AI funder matching")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Sync organisations and grants from 360Giving")
    sync_parser.add_argument("--max-orgs", type=int, default=None, help="Organisations to fetch")
    sync_parser.add_argument("--max-grants", type=int, default=None, help="Grant cap for this run")
    sync_parser.add_argument("--offset", type=int, default=0, help="Organisation directory offset")
    sync_parser.add_argument("--force", action="store_true", help="Force a full sync")

    match_parser = subparsers.add_parser("match", help="Match a charity with funders")
    match_parser.add_argument("profile", type=Path, help="Charity profile (.json, .yaml, .yml)")
    match_parser.add_argument("--force-refresh", action="store_true", help="Bypass the match cache")

    subparsers.add_parser("purge-cache", help="Delete expired match cache entries")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    services = None

    try:
        config = load_config()
        logging.getLogger().setLevel(config.log_level)
        services = build_services(config)

        if args.command == "sync":
            options = SyncOptions(
                max_organisations=args.max_orgs if args.max_orgs is not None else config.sync_max_organisations,
                max_grants=args.max_grants if args.max_grants is not None else config.sync_max_grants,
                offset=args.offset,
                force_full_sync=args.force,
            )
            output = asyncio.run(run_sync(services, options))
        elif args.command == "match":
            profile = load_profile(args.profile)
            matches = build_matcher(services).match_funders(profile, force_refresh=args.force_refresh)
            output = {
                "success": True,
                "matches": [m.model_dump(mode="json") for m in matches],
                "message": f"Successfully matched {len(matches)} funders",
            }
        else:
            output = {"success": True, "removed": services.cache.purge_expired()}
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        print(json.dumps({"success": False, "error": str(e) or type(e).__name__}))
        return 1
    finally:
        # run_sync closes the client inside its own event loop
        if services is not None and args.command != "sync":
            asyncio.run(services.grant_data.aclose())

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
