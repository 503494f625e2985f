"""Submission of finished games to the server."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from zeroclient.network.transfer import TransferAgent
from zeroclient.selfplay.game import GameRecord
from zeroclient.shared.config import Config
from zeroclient.shared.errors import TransferError

logger = logging.getLogger(__name__)


class UploadPipeline:
    """
    Packages and submits one game at a time.

    Upload failures are reported and swallowed: losing a single game is
    acceptable, stopping the run is not. Local copies outside the retention
    directories are removed after every attempt.
    """

    def __init__(self, transfer: TransferAgent, config: Config):
        self.transfer = transfer
        self.submit_url = config.server.endpoint(config.server.submit_path)
        self.client_version = config.client.version
        self.keep_dir = Path(config.storage.keep_dir) if config.storage.keep_dir else None
        self.debug_dir = Path(config.storage.debug_dir) if config.storage.debug_dir else None

    def upload(self, record: GameRecord, network: str) -> bool:
        """
        Submit ``record`` as played with ``network``.

        Returns:
            True if the server accepted the submission.
        """
        sgf = record.sgf_path
        if not sgf.exists():
            logger.warning(f"No game record found for {record.name}, nothing to upload")
            return False

        training = record.training_path
        debug = record.debug_path

        if self.keep_dir is not None:
            self._retain(sgf, self.keep_dir)
        if self.debug_dir is not None:
            self._retain(training, self.debug_dir)
            self._retain(debug, self.debug_dir)

        compressed: Path | None = None
        accepted = False
        try:
            compressed = self.transfer.compress(sgf)
            fields = {"networkhash": network, "clientversion": str(self.client_version)}
            files = {"sgf": compressed, "trainingdata": training}
            print(f"Uploading {compressed.name} to {self.submit_url}", flush=True)
            response = self.transfer.submit(self.submit_url, fields, files)
            print(response, flush=True)
            accepted = True
        except TransferError as e:
            print(f"Upload failed: {e}", flush=True)
            print("Continuing...", flush=True)
        except OSError as e:
            print(f"Could not compress {sgf.name}: {e}", flush=True)
            print("Continuing...", flush=True)
        finally:
            for path in (compressed, sgf, training, debug):
                if path is not None:
                    self._discard(path)
        return accepted

    @staticmethod
    def _retain(path: Path, directory: Path) -> None:
        if not path.exists():
            return
        try:
            directory.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, directory / path.name)
        except OSError as e:
            logger.warning(f"Could not keep a copy of {path.name} in {directory}: {e}")

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove {path}: {e}")
