from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .config import ConfigError, ServerConfig, build_config, require_secret
from .mcp_server import serve as mcp_serve
from .state import ToolContext
from .tools.errors import PixelLabError

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pixellab-mcp",
        description="MCP server for PixelLab pixel art generation and editing.",
    )
    parser.add_argument("--secret", help="PixelLab API secret (default: $PIXELLAB_SECRET)")
    parser.add_argument("--base-url", dest="base_url", help="API base URL (default: https://api.pixellab.ai/v1)")
    parser.add_argument("--config", type=Path, help="YAML config file (default: ~/.config/pixellab-mcp/config.yml)")
    parser.add_argument("--timeout", type=float, help="HTTP timeout in seconds (default: 120)")
    parser.add_argument("--max-retries", dest="max_retries", type=int, help="Retries after a rate limit (default: 3)")
    parser.add_argument("--base-delay", dest="base_delay", type=float, help="First retry delay in seconds (default: 2)")
    parser.add_argument("--log-level", dest="log_level", help="Logging level (default: INFO)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="Run the MCP server over stdio (default)")
    subparsers.add_parser("balance", help="Print the account balance and exit")
    return parser


def _config_from_args(args: argparse.Namespace) -> ServerConfig:
    overrides = {
        "secret": args.secret,
        "base_url": args.base_url,
        "timeout": args.timeout,
        "max_retries": args.max_retries,
        "base_delay": args.base_delay,
        "log_level": args.log_level,
    }
    return require_secret(build_config(overrides, config_path=args.config))


def _setup_logging(cfg: ServerConfig) -> None:
    # stdout carries the protocol
    logging.basicConfig(
        level=cfg.log_level_value,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def balance_command(ctx: ToolContext) -> int:
    try:
        balance = asyncio.run(ctx.client.get_balance())
    except PixelLabError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"PixelLab Balance: ${balance.usd} USD")
    return 0


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    try:
        cfg = _config_from_args(args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    _setup_logging(cfg)
    log.info("config: %s", cfg.redacted())
    ctx = ToolContext.from_config(cfg)

    if args.command in (None, "serve"):
        mcp_serve(ctx)
        return
    if args.command == "balance":
        sys.exit(balance_command(ctx))
    parser.print_help()
    sys.exit(2)


if __name__ == "__main__":
    main()
