"""Command line entry point.

Usage:
    python -m curve_scout analyze [--sources on_chain technical] [--json]
    python -m curve_scout cached [--json]
    python -m curve_scout config
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import aiohttp
from redis.asyncio import Redis

from curve_scout.config import ConfigurationError, Settings, get_settings
from curve_scout.ingestor.fetcher import CandidateFetcher
from curve_scout.ingestor.subgraph import SubgraphClient
from curve_scout.pipeline import AnalysisResult, RecommendationPipeline
from curve_scout.recommender.client import RecommendationClient, RecommendationConfig
from curve_scout.recommender.schema import SOURCE_KEYS, RecommendationResponse
from curve_scout.storage.cache import RecommendationCache

logger = logging.getLogger("curve_scout")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="curve_scout", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Run one live analysis and cache the result")
    analyze.add_argument(
        "--sources",
        nargs="+",
        choices=SOURCE_KEYS,
        default=None,
        help="Data sources to include (default: PIPELINE_ENABLED_SOURCES)",
    )
    analyze.add_argument("--json", action="store_true", help="Print the raw JSON response")

    cached = sub.add_parser("cached", help="Print the cached result, if still fresh")
    cached.add_argument("--json", action="store_true", help="Print the raw JSON response")

    sub.add_parser("config", help="Print the redacted settings summary")
    return parser


def _render(response: RecommendationResponse) -> str:
    lines = [response.market_summary, ""]
    for rank, rec in enumerate(response.recommendations, start=1):
        lines.append(
            f"{rank:>2}. {rec.name} (${rec.symbol}) score={rec.score:.0f} "
            f"action={rec.suggested_action} risk={rec.risk_level}"
        )
        lines.append(f"    {rec.explanation}")
    return "\n".join(lines)


def _print_response(response: RecommendationResponse, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(response.to_json_dict(), indent=2))
    else:
        print(_render(response))


async def _run_analyze(settings: Settings, args: argparse.Namespace) -> int:
    sources = args.sources if args.sources is not None else settings.pipeline.enabled_sources
    config = RecommendationConfig.from_sources(sources)

    redis = Redis.from_url(settings.redis.url)
    try:
        async with aiohttp.ClientSession() as session:
            subgraph = SubgraphClient(
                settings.subgraph.url,
                session=session,
                timeout_seconds=settings.subgraph.timeout_seconds,
            )
            fetcher = CandidateFetcher(
                subgraph,
                batch_size=settings.pipeline.batch_size,
                trades_limit=settings.pipeline.trades_per_candidate,
                positions_limit=settings.pipeline.positions_per_candidate,
                graduation_threshold_eth=settings.pipeline.graduation_threshold_eth,
            )
            client = RecommendationClient(settings.openai, fetcher, pipeline_settings=settings.pipeline)
            pipeline = RecommendationPipeline.from_settings(settings, client=client, redis=redis)

            result: AnalysisResult = await pipeline.analyze(
                config,
                on_progress=lambda step: logger.info("Analysis step: %s", step),
            )
    finally:
        await redis.aclose()

    if result.error:
        print(result.error, file=sys.stderr)
    _print_response(result.response, as_json=args.json)
    return 0


async def _run_cached(settings: Settings, args: argparse.Namespace) -> int:
    redis = Redis.from_url(settings.redis.url)
    try:
        cache = RecommendationCache(redis, key=settings.cache.key, ttl_seconds=settings.cache.ttl_seconds)
        cached = await cache.get_cached()
    finally:
        await redis.aclose()

    if cached is None:
        print("No cached recommendations.", file=sys.stderr)
        return 1
    _print_response(cached.data, as_json=args.json)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.get_logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "config":
        print(json.dumps(settings.redacted_summary(), indent=2))
        return 0

    try:
        if args.command == "analyze":
            settings.validate_requirements()
            return asyncio.run(_run_analyze(settings, args))
        return asyncio.run(_run_cached(settings, args))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
