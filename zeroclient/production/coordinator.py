"""Coordinator for a pool of self-play workers."""

from __future__ import annotations

import contextlib
import threading
from typing import Callable

from zeroclient.network.model_store import ModelStore
from zeroclient.production.stats import ThroughputStats
from zeroclient.production.upload import UploadPipeline
from zeroclient.selfplay.game import GameRecord
from zeroclient.selfplay.worker import ResultCallback, Worker
from zeroclient.shared.config import Config
from zeroclient.shared.errors import FatalClientError

WorkerFactory = Callable[[int, str | None, str, ResultCallback], Worker]


class Production:
    """
    Runs one worker per compute slot and aggregates their results.

    ARCHITECTURE:
    - The initial refresh happens before any worker exists, under the
      optional startup lock, so no game starts on a stale network
    - Workers report finished games through ``on_result``, which holds the
      aggregation lock for the whole of stats, upload, refresh and broadcast
    - Only this class changes worker state (NET_CHANGE / FINISHING)
    - Workers get the network identifier by value; the model store owns it
    - Workers hand unrecoverable errors to ``report_fatal``; ``wait`` re-raises
    """

    def __init__(
        self,
        config: Config,
        model_store: ModelStore,
        uploader: UploadPipeline,
        worker_factory: WorkerFactory | None = None,
        startup_lock: threading.Lock | None = None,
        stats: ThroughputStats | None = None,
    ):
        """
        Args:
            config: Client configuration
            model_store: Owner of the active network
            uploader: Submits finished games
            worker_factory: Builds a worker from (slot, gpu, network, callback)
            startup_lock: Held while the first network is fetched and workers start
            stats: Throughput counters (a fresh set by default)
        """
        self.config = config
        self.model_store = model_store
        self.uploader = uploader
        self.worker_factory = worker_factory or self._default_worker
        self.startup_lock = startup_lock
        self.stats = stats or ThroughputStats()

        self.workers: list[Worker] = []
        self.fatal_error: FatalClientError | None = None
        self._sync_lock = threading.Lock()
        self._stopped = threading.Event()

    def _default_worker(
        self, slot: int, gpu: str | None, network: str, on_result: ResultCallback
    ) -> Worker:
        storage = self.config.storage
        return Worker(
            worker_id=slot,
            engine=self.config.engine,
            network=network,
            networks_dir=storage.networks_dir,
            games_dir=storage.games_dir,
            on_result=on_result,
            on_fatal=self.report_fatal,
            gpu=gpu,
            dump_debug=storage.debug_dir is not None,
        )

    @staticmethod
    def _log(message: str) -> None:
        print(f"[Production] {message}", flush=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Fetch the best network, then start every worker on it."""
        engine = self.config.engine
        self.stats.restart_clock()
        lock = self.startup_lock if self.startup_lock is not None else contextlib.nullcontext()
        with lock:
            self.model_store.refresh()
            network = self.model_store.current
            self._log(f"Starting {engine.num_slots} workers on network {network[:16]}")
            for gpu_index in range(engine.gpu_count):
                gpu = engine.gpus[gpu_index] if engine.gpus else None
                for game in range(engine.games_per_gpu):
                    slot = gpu_index * engine.games_per_gpu + game
                    worker = self.worker_factory(slot, gpu, network, self.on_result)
                    self.workers.append(worker)
                    worker.start()

    def on_result(self, record: GameRecord, duration: float) -> None:
        """Aggregate one finished game. Calls are never concurrent."""
        with self._sync_lock:
            if self.fatal_error is not None:
                return
            self.stats.record_game(record.moves)
            summary = self.stats.summary(duration)
            if summary is not None:
                self._log(summary)

            # Label the game with the network it was played with.
            self.uploader.upload(record, record.network or self.model_store.current)

            try:
                unchanged = self.model_store.refresh()
            except FatalClientError as e:
                self._record_fatal(e)
                return

            if not unchanged:
                network = self.model_store.current
                self._log(f"New best network {network[:16]}: restarting workers.")
                for worker in self.workers:
                    worker.new_network(network)

    def report_fatal(self, error: FatalClientError) -> None:
        """Stop the run because a worker hit an unrecoverable error."""
        with self._sync_lock:
            self._record_fatal(error)

    def _record_fatal(self, error: FatalClientError) -> None:
        # Called with the aggregation lock held; the first error wins.
        if self.fatal_error is not None:
            return
        self._log(f"Fatal error: {error}")
        self.fatal_error = error
        self._finish_workers()
        self._stopped.set()

    def stop(self) -> None:
        """Ask every worker to finish its current game teardown and exit."""
        self._log("Stopping workers.")
        self._finish_workers()

    def _finish_workers(self) -> None:
        for worker in self.workers:
            worker.finish()

    def wait(self, poll_interval: float = 1.0) -> None:
        """
        Block until all workers have exited.

        Raises:
            FatalClientError: an aggregation step hit an unrecoverable error;
                remaining engines are killed first.
        """
        while any(worker.is_alive() for worker in self.workers):
            if self._stopped.wait(poll_interval):
                break

        if self.fatal_error is not None:
            for worker in self.workers:
                worker.kill()
            raise self.fatal_error

    @property
    def games_played(self) -> int:
        return self.stats.games_played
