"""
Command line entry point for the production client.

Usage:
    zeroclient                                   # Use default config
    zeroclient --config config/production.yaml   # Use custom config
    zeroclient --gpus 0 --gpus 1 --games 2       # Two games on each of two GPUs
    zeroclient --keep kept/sgf --debug kept/dbg  # Keep local copies of games
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from zeroclient.production.services import run_production
from zeroclient.shared.config import Config
from zeroclient.shared.config_loader import load_config
from zeroclient.shared.errors import FatalClientError

EXIT_FAILURE = 1


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Play self-play games with the best network and upload them"
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: use built-in defaults)",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Server URL (overrides config)",
    )
    parser.add_argument(
        "--gpus",
        "-u",
        action="append",
        default=None,
        help="GPU id to use; repeat for several GPUs (overrides config)",
    )
    parser.add_argument(
        "--games",
        "-g",
        type=int,
        default=None,
        help="Number of games played in parallel on each GPU (overrides config)",
    )
    parser.add_argument(
        "--keep",
        "-k",
        default=None,
        help="Directory to keep a copy of every game record in",
    )
    parser.add_argument(
        "--debug",
        "-d",
        default=None,
        help="Directory to keep training and debug data in",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (overrides config)",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    """Config file plus command line overrides."""
    return load_config(
        args.config,
        server__url=args.url,
        engine__gpus=args.gpus,
        engine__games_per_gpu=args.games,
        storage__keep_dir=args.keep,
        storage__debug_dir=args.debug,
        system__log_level=args.log_level,
    )


def main(argv: list[str] | None = None) -> int:
    """Run the client; returns the process exit status."""
    args = parse_args(argv)
    config = build_config(args)

    logging.basicConfig(
        level=getattr(logging, config.system.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    print("Configuration Summary:")
    print(f"  Server: {config.server.url}")
    print(f"  Client version: {config.client.version}")
    print(f"  Workers: {config.engine.gpu_count} GPU(s) x {config.engine.games_per_gpu} game(s)")
    if config.storage.keep_dir:
        print(f"  Keeping game records in: {config.storage.keep_dir}")
    if config.storage.debug_dir:
        print(f"  Keeping debug data in: {config.storage.debug_dir}")

    try:
        run_production(config)
    except FatalClientError as e:
        print(f"\nFatal: {e}", file=sys.stderr, flush=True)
        return EXIT_FAILURE
    return 0


if __name__ == "__main__":
    sys.exit(main())
