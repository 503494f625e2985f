"""
Best-network tracking and retrieval.

The model store is the only owner of the active network identifier. A refresh
asks the server for the best network hash, checks that this client is still
new enough, and downloads and verifies the network when it has changed.
Transient network failures are retried with capped exponential backoff.
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable

from zeroclient.network.transfer import GZIP_SUFFIX, TransferAgent
from zeroclient.shared.config import Config, RetryConfig
from zeroclient.shared.errors import CorruptModelError, FatalClientError, NetworkError

logger = logging.getLogger(__name__)

UPDATES_URL = "https://github.com/gcp/leela-zero"

Digest = Callable[[BinaryIO], str]

_IDENTIFIER_RE = re.compile(r"[0-9a-fA-F]+")


def is_network_identifier(name: str) -> bool:
    """Network identifiers are hex digests, never paths."""
    return _IDENTIFIER_RE.fullmatch(name) is not None


def sha256_stream(stream: BinaryIO) -> str:
    """Hex SHA-256 of a binary stream, read in chunks."""
    digest = hashlib.sha256()
    for chunk in iter(lambda: stream.read(1024 * 1024), b""):
        digest.update(chunk)
    return digest.hexdigest()


@dataclass(frozen=True)
class RetryPolicy:
    """Capped exponential backoff with a bounded number of attempts."""

    min_delay: int = 30
    max_delay: int = 60 * 60
    multiplier: float = 1.5
    max_retries: int = 4 * 24

    @classmethod
    def from_config(cls, retry: RetryConfig) -> "RetryPolicy":
        return cls(
            min_delay=retry.min_delay_seconds,
            max_delay=retry.max_delay_seconds,
            multiplier=retry.multiplier,
            max_retries=retry.max_retries,
        )

    def delay(self, attempt: int) -> int:
        """Seconds to wait after the failed attempt number ``attempt`` (0-based)."""
        return int(min(self.min_delay * self.multiplier**attempt, self.max_delay))


@dataclass(frozen=True)
class BestNetwork:
    """Parsed answer of the best-network-hash endpoint."""

    hash: str
    required_version: int


class ModelStore:
    """
    Tracks and refreshes the best network.

    The identifier is only committed once the file on disk hashes to it, so
    a refresh that fails half way leaves the previous network active and the
    next refresh tries again.
    """

    def __init__(
        self,
        transfer: TransferAgent,
        config: Config,
        digest: Digest = sha256_stream,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            transfer: Agent used for all HTTP traffic and decompression
            config: Client configuration (server, client, retry, storage sections)
            digest: Hash function applied to network files
            sleep: Blocking sleep used between retries
        """
        self.transfer = transfer
        self.server = config.server
        self.client_version = config.client.version
        self.networks_dir = Path(config.storage.networks_dir)
        self.retry_policy = RetryPolicy.from_config(config.retry)
        self._digest = digest
        self._sleep = sleep
        self._current = ""

    @property
    def current(self) -> str:
        """Identifier of the active network ("" before the first refresh)."""
        return self._current

    def network_path(self, identifier: str | None = None) -> Path:
        """Local path of a network file (the active one by default)."""
        return self.networks_dir / (identifier if identifier is not None else self._current)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self) -> bool:
        """
        Bring the active network in line with the server.

        Returns:
            True if the best network is unchanged, False if a new one is now active.

        Raises:
            FatalClientError: client too old, unusable network file, or the
                retry budget was exhausted.
        """
        policy = self.retry_policy
        for attempt in range(policy.max_retries):
            try:
                return self._refresh_once()
            except NetworkError as e:
                delay = policy.delay(attempt)
                print("Network connection to server failed.", flush=True)
                print(str(e), flush=True)
                print(f"Retrying in {delay} s.", flush=True)
                logger.warning(
                    f"Refresh attempt {attempt + 1}/{policy.max_retries} failed: {e}"
                )
                self._sleep(delay)
        print("Maximum number of retries exceeded. Giving up.", flush=True)
        raise FatalClientError(
            f"Could not reach the server after {policy.max_retries} attempts"
        )

    def _refresh_once(self) -> bool:
        best = self.fetch_best_hash()
        self.check_client_version(best.required_version)
        if best.hash == self._current:
            return True
        self._current = self.fetch_best_network(best.hash)
        logger.info(f"Active network is now {self._current}")
        return False

    def fetch_best_hash(self) -> BestNetwork:
        """Query the server for the best network hash and required client version."""
        output = self.transfer.fetch_text(self.server.endpoint(self.server.hash_path))
        fields = output.rstrip().split("\n")
        if len(fields) != 2:
            print(f"Unexpected output from server:\n{output}", flush=True)
            raise NetworkError("Unexpected output from server")

        best_hash = fields[0].strip()
        if not is_network_identifier(best_hash):
            raise NetworkError(f"Server sent an invalid network hash: {best_hash!r}")
        try:
            required = int(fields[1].strip())
        except ValueError as e:
            raise NetworkError(f"Unexpected client version from server: {fields[1]!r}") from e

        print(f"Best network hash: {best_hash}", flush=True)
        return BestNetwork(hash=best_hash, required_version=required)

    def check_client_version(self, required: int) -> None:
        """Refuse to run when the server needs a newer client protocol."""
        if required > self.client_version:
            print(f"Required client version: {required}", flush=True)
            print(
                f"Server requires client version {required} "
                f"but we are version {self.client_version}",
                flush=True,
            )
            print(f"Check {UPDATES_URL} for updates.", flush=True)
            raise FatalClientError(
                f"Client version {self.client_version} is older than required {required}"
            )
        print(f"Required client version: {required} (OK)", flush=True)

    # ------------------------------------------------------------------
    # Network files
    # ------------------------------------------------------------------

    def fetch_best_network(self, best_hash: str) -> str:
        """
        Make sure the best network is on disk and verified.

        Returns:
            The identifier (file name) of the verified network.
        """
        if self.network_exists(best_hash):
            print("Already downloaded network.", flush=True)
            return best_hash

        # Downloads never overwrite, so clear out a stale archive first.
        self._remove_network(self.network_path(best_hash + GZIP_SUFFIX))

        url = self.server.endpoint(self.server.network_path)
        print(f"Downloading {url}", flush=True)
        archive = self.transfer.download(url, self.networks_dir)
        print(f"Downloaded file: {archive.name}", flush=True)
        network_file = self.transfer.decompress(archive)
        identifier = network_file.name
        print(f"Net filename: {identifier}", flush=True)
        if not is_network_identifier(identifier):
            self._remove_network(network_file)
            raise CorruptModelError(f"Downloaded network has an invalid name: {identifier!r}")

        if not self.network_exists(identifier):
            raise CorruptModelError(f"Downloaded network {identifier} failed verification")
        return identifier

    def network_exists(self, identifier: str) -> bool:
        """
        True if the network file exists and hashes to its own name.

        A file that cannot be opened, or whose hash does not match, is removed
        so the next fetch downloads it again.
        """
        if not is_network_identifier(identifier):
            return False
        path = self.network_path(identifier)
        if not path.exists():
            return False

        try:
            handle = open(path, "rb")
        except OSError:
            print("Unable to open network file for reading.", flush=True)
            self._remove_network(path)
            return False

        with handle:
            try:
                result = self._digest(handle)
            except OSError as e:
                print("Reading network file failed.", flush=True)
                raise FatalClientError(f"Reading network file {path} failed: {e}") from e

        if result == identifier:
            return True

        print("Downloaded network hash doesn't match.", flush=True)
        self._remove_network(path)
        return False

    @staticmethod
    def _remove_network(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            print("Unable to delete the network file. Check permissions.", flush=True)
            raise FatalClientError(f"Unable to delete network file {path}: {e}") from e
