"""CLI for tokenscope."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Optional, Sequence

from .chains import detect_chain
from .config import Settings, validate_settings
from .service import TokenDataService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tokenscope")
    parser.add_argument("--log-level", default="WARNING", help="Logging level for stderr output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    bundle_parser = subparsers.add_parser("bundle", help="Fetch the standardized token bundle")
    bundle_parser.add_argument("address", help="Token contract or mint address")
    bundle_parser.add_argument("--chain", choices=["bsc", "solana"], help="Chain hint; detection wins on mismatch")
    bundle_parser.add_argument("--analyze", action="store_true", help="Append the AI narrative")
    bundle_parser.add_argument("--lang", default="en", choices=["en", "zh"], help="Narrative language")
    bundle_parser.add_argument("--env-file", default=".env", help="Path to a .env file")

    analytics_parser = subparsers.add_parser("analytics", help="Fetch Moralis trading analytics")
    analytics_parser.add_argument("address", help="Token contract address")
    analytics_parser.add_argument("--chain", default="bsc", choices=["bsc", "solana"])
    analytics_parser.add_argument("--env-file", default=".env", help="Path to a .env file")

    detect_parser = subparsers.add_parser("detect", help="Print the chain detected for an address")
    detect_parser.add_argument("address", help="Token address")
    detect_parser.add_argument("--strict", action="store_true", help="Report unknown instead of defaulting to solana")

    return parser


def _print(status: int, body: dict) -> int:
    print(json.dumps(body, indent=2, ensure_ascii=False))
    return 0 if status == 200 else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s %(message)s")

    if args.command == "detect":
        chain = detect_chain(args.address, strict=args.strict)
        print(chain or "unknown")
        return 0 if chain else 1

    if args.command in ("bundle", "analytics"):
        settings = Settings.from_env(args.env_file)
        validate_settings(settings)
        service = TokenDataService.from_settings(settings)
        if args.command == "bundle":
            status, body = asyncio.run(service.handle(args.chain, args.address, args.analyze, args.lang))
        else:
            status, body = asyncio.run(service.token_analytics(args.chain, args.address))
        return _print(status, body)

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
