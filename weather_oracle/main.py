#!/usr/bin/env python3
"""Weather Oracle.

Resolves on-chain temperature-bracket markets: discovers pending markets from
the MarketFactory event log, and at each market's resolution time aggregates
the city temperature from several weather providers and submits the outcome.

Configure via CLI arguments or environment variables (CLI takes precedence).
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path

from .src.fetchers import get_available_fetchers, retry_budget
from .src.MarketConfig import MarketConfig
from .src.WeatherOracle import DEFAULT_SOURCES, WeatherOracle

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

ENVIRONMENTS = ("development", "production", "test")


def parse_api_keys(api_key_str: str | None) -> dict[str, str]:
    """Parse comma-separated API key string into a dictionary.

    Format: source1=key1,source2=key2
    Example: openweathermap=abc123,tomorrow=xyz789

    :param api_key_str: Comma-separated API key string.
    :returns: Dict mapping source names to API keys.
    """
    if not api_key_str:
        return {}

    api_keys = {}
    for item in api_key_str.split(","):
        item = item.strip()
        if "=" in item:
            source, key = item.split("=", 1)
            api_keys[source.strip().lower()] = key.strip()
    return api_keys


def parse_env_api_keys(environ: dict[str, str] | None = None) -> dict[str, str]:
    """Parse API keys from individual environment variables.

    Looks for: API_KEY_TOMORROW, APIKEY_TOMORROW and TOMORROW_API_KEY style
    variables (e.g. OPENWEATHERMAP_API_KEY).

    :param environ: Environment mapping (default: os.environ).
    :returns: Dict mapping source names to API keys.
    """
    environ = os.environ if environ is None else environ
    api_keys = {}
    prefixes = ["API_KEY_", "APIKEY_"]
    suffix = "_API_KEY"

    for key, value in environ.items():
        if not value:
            continue
        for prefix in prefixes:
            if key.startswith(prefix):
                api_keys[key[len(prefix):].lower()] = value
                break
        else:
            if key.endswith(suffix) and len(key) > len(suffix):
                api_keys[key[: -len(suffix)].lower()] = value

    return api_keys


def load_markets_file(path: str) -> list[MarketConfig]:
    """Load manually configured markets from a JSON file.

    The file holds a list of objects with conditionId, city, resolutionTime,
    lowerBound, upperBound and optionally questionId.

    :param path: Path to the JSON file.
    :returns: Parsed markets.
    :raises ValueError: If the file is not a list or an entry is invalid.
    """
    data = json.loads(Path(path).read_text())
    if not isinstance(data, list):
        raise ValueError(f"Markets file {path} must contain a JSON list")
    return [MarketConfig.from_dict(entry) for entry in data]


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser, defaulting options from the environment."""
    available_sources = get_available_fetchers()

    parser = argparse.ArgumentParser(
        description="Weather Oracle: multi-source temperature resolution for prediction markets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available weather sources:
  {', '.join(available_sources)}

Examples:
  # Resolve discovered markets on Base
  python -m weather_oracle.main --rpc-url https://mainnet.base.org \\
      --factory-address 0xFactory... \\
      --api-keys openweathermap=abc,tomorrow=xyz

  # Keyless sources only, with a manual market list
  python -m weather_oracle.main --sources openmeteo,openweathermap \\
      --markets-file markets.json

Environment variables (CLI args take precedence):
  RPC_URL (or BASE_RPC_URL), ORACLE_PRIVATE_KEY, MARKET_FACTORY_ADDRESS,
  SOURCES, MIN_SOURCES, FETCH_TIMEOUT, AGGREGATION_TIMEOUT, GRACE_PERIOD,
  MARKETS_FILE, ENVIRONMENT (or NODE_ENV), STATUS_PERIOD,
  API_KEYS, API_KEY_OPENWEATHERMAP, TOMORROW_API_KEY, etc.
""",
    )

    parser.add_argument(
        "--rpc-url",
        dest="rpc_url",
        type=str,
        help="RPC endpoint of the chain hosting the MarketFactory",
        default=os.environ.get("RPC_URL") or os.environ.get("BASE_RPC_URL"),
    )

    parser.add_argument(
        "--factory-address",
        dest="factory_address",
        type=str,
        help="Address of the MarketFactory contract",
        default=os.environ.get("MARKET_FACTORY_ADDRESS"),
    )

    parser.add_argument(
        "--sources",
        type=str,
        help=f"Comma-separated weather sources. Available: {', '.join(available_sources)}",
        default=os.environ.get("SOURCES") or ",".join(DEFAULT_SOURCES),
    )

    parser.add_argument(
        "--api-keys",
        dest="api_keys",
        type=str,
        help="Comma-separated API keys (e.g., openweathermap=abc,tomorrow=xyz)",
        default=os.environ.get("API_KEYS"),
    )

    parser.add_argument(
        "--min-sources",
        dest="min_sources",
        type=int,
        help="Minimum agreeing sources required to resolve (default: 2)",
        default=int(os.environ.get("MIN_SOURCES") or "2"),
    )

    parser.add_argument(
        "--fetch-timeout",
        dest="fetch_timeout",
        type=float,
        help="Timeout for each provider request attempt in seconds (default: 10.0)",
        default=float(os.environ.get("FETCH_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "--aggregation-timeout",
        dest="aggregation_timeout",
        type=float,
        help=(
            "Timeout for querying all providers in seconds; must cover every "
            "retry of one provider (default: that budget plus 10s, at least 45.0)"
        ),
        default=(
            float(os.environ["AGGREGATION_TIMEOUT"])
            if os.environ.get("AGGREGATION_TIMEOUT")
            else None
        ),
    )

    parser.add_argument(
        "--grace-period",
        dest="grace_period",
        type=int,
        help="Seconds to wait after a market's resolution time (default: 60)",
        default=int(os.environ.get("GRACE_PERIOD") or "60"),
    )

    parser.add_argument(
        "--markets-file",
        dest="markets_file",
        type=str,
        help="JSON file with manually configured markets",
        default=os.environ.get("MARKETS_FILE"),
    )

    parser.add_argument(
        "--environment",
        type=str,
        choices=ENVIRONMENTS,
        help="Deployment environment (default: production)",
        default=os.environ.get("ENVIRONMENT") or os.environ.get("NODE_ENV") or "production",
    )

    parser.add_argument(
        "--status-period",
        dest="status_period",
        type=int,
        help="Seconds between scheduled-markets status lines (default: 300)",
        default=int(os.environ.get("STATUS_PERIOD") or "300"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Weather Oracle CLI."""
    available_sources = get_available_fetchers()
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose or args.environment == "development":
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.min_sources < 2:
        parser.error("--min-sources must be at least 2")

    if args.fetch_timeout <= 0:
        parser.error("--fetch-timeout must be positive")

    if args.aggregation_timeout is not None:
        required = retry_budget(args.fetch_timeout)
        if args.aggregation_timeout < required:
            parser.error(
                f"--aggregation-timeout ({args.aggregation_timeout}s) must be at least "
                f"{required}s to allow every retry at --fetch-timeout {args.fetch_timeout}s"
            )

    if args.grace_period < 0:
        parser.error("--grace-period must not be negative")

    sources = [s.strip().lower() for s in args.sources.split(",") if s.strip()]
    if not sources:
        parser.error("At least one source must be specified")

    invalid_sources = [s for s in sources if s not in available_sources]
    if invalid_sources:
        parser.error(
            f"Unknown sources: {invalid_sources}. "
            f"Available: {', '.join(available_sources)}"
        )

    if args.min_sources > len(sources):
        parser.error(
            f"--min-sources ({args.min_sources}) exceeds the number of sources ({len(sources)})"
        )

    private_key = os.environ.get("ORACLE_PRIVATE_KEY") or None
    if private_key and not private_key.startswith("0x"):
        parser.error("ORACLE_PRIVATE_KEY must start with 0x")

    if args.factory_address and not args.factory_address.startswith("0x"):
        parser.error("MARKET_FACTORY_ADDRESS must start with 0x")

    # Parse API keys (CLI + environment)
    api_keys = parse_env_api_keys()
    api_keys.update(parse_api_keys(args.api_keys))

    markets: list[MarketConfig] = []
    if args.markets_file:
        try:
            markets = load_markets_file(args.markets_file)
        except (OSError, ValueError) as e:
            parser.error(f"Invalid markets file: {e}")

    # Log configuration
    logger.info("=" * 60)
    logger.info("Weather Oracle - Market Resolution Service")
    logger.info("=" * 60)
    logger.info(f"Environment:       {args.environment}")
    logger.info(f"RPC URL:           {args.rpc_url or 'not set'}")
    logger.info(f"Market Factory:    {args.factory_address or 'not set'}")
    logger.info(f"Oracle Key:        {'set' if private_key else 'not set'}")
    logger.info(f"Sources:           {', '.join(sources)}")
    logger.info(f"Min Sources:       {args.min_sources}")
    logger.info(f"Fetch Timeout:     {args.fetch_timeout}s")
    aggregation = f"{args.aggregation_timeout}s" if args.aggregation_timeout else "auto"
    logger.info(f"Aggregation:       {aggregation}")
    logger.info(f"Grace Period:      {args.grace_period}s")
    logger.info(f"Manual Markets:    {len(markets)}")
    if api_keys:
        logger.info(f"API Keys:          {', '.join(sorted(api_keys.keys()))}")
    logger.info("=" * 60)

    try:
        weather_oracle = WeatherOracle(
            sources=sources,
            api_keys=api_keys,
            rpc_url=args.rpc_url,
            private_key=private_key,
            factory_address=args.factory_address,
            min_sources=args.min_sources,
            fetch_timeout=args.fetch_timeout,
            aggregation_timeout=args.aggregation_timeout,
            grace_period=timedelta(seconds=args.grace_period),
            markets=markets,
            environment=args.environment,
            status_period=args.status_period,
        )
        asyncio.run(weather_oracle.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
