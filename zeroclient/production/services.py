"""Service-layer APIs for wiring and running the production client."""

from __future__ import annotations

import logging
from pathlib import Path

from zeroclient.network.model_store import ModelStore
from zeroclient.network.transfer import HttpTransferAgent, TransferAgent
from zeroclient.production.coordinator import Production
from zeroclient.production.upload import UploadPipeline
from zeroclient.shared.config import Config

logger = logging.getLogger(__name__)


def prepare_directories(config: Config) -> None:
    """Create the local directories the run writes to."""
    storage = config.storage
    for directory in (storage.networks_dir, storage.games_dir, storage.keep_dir, storage.debug_dir):
        if directory:
            Path(directory).mkdir(parents=True, exist_ok=True)


def create_production(config: Config, transfer: TransferAgent | None = None) -> Production:
    """Build a coordinator with its model store and upload pipeline."""
    transfer = transfer or HttpTransferAgent(timeout=config.server.timeout_seconds)
    return Production(
        config,
        model_store=ModelStore(transfer, config),
        uploader=UploadPipeline(transfer, config),
    )


def run_production(config: Config, production: Production | None = None) -> Production:
    """
    Run the client until every worker has stopped.

    Ctrl+C asks workers to finish their current game teardown and waits for
    them; a second Ctrl+C propagates.

    Raises:
        FatalClientError: the run cannot continue (client too old, server
            unreachable for too long, unusable network file).
    """
    prepare_directories(config)
    production = production or create_production(config)
    logger.info(
        f"Starting production: {config.engine.num_slots} workers, "
        f"server {config.server.url}, client version {config.client.version}"
    )
    production.start()
    try:
        production.wait()
    except KeyboardInterrupt:
        print("\n[!] Interrupt received, finishing current games...", flush=True)
        production.stop()
        production.wait()
    logger.info(f"Production finished after {production.games_played} game(s)")
    return production
