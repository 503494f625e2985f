"""Self-play worker thread: plays games back to back on one compute slot."""

from __future__ import annotations

import logging
import random
import sys
import threading
import time
import traceback
from pathlib import Path
from typing import Callable

from zeroclient.selfplay.engine import GtpEngine
from zeroclient.selfplay.game import GameRecord, GameSession
from zeroclient.selfplay.protocol import RunState
from zeroclient.shared.config import EngineConfig
from zeroclient.shared.errors import EngineError, FatalClientError

logger = logging.getLogger(__name__)

ResultCallback = Callable[[GameRecord, float], None]
SessionFactory = Callable[[list[str]], GameSession]
FatalCallback = Callable[[FatalClientError], None]


def build_engine_args(
    engine: EngineConfig,
    network_path: Path,
    resign_percent: int,
    gpu: str | None = None,
) -> list[str]:
    """Command line for one game: resign rate, GPU, base options, then the network."""
    args = [*engine.command, "-r", str(resign_percent)]
    if gpu:
        args.append(f"--gpu={gpu}")
    args.extend(engine.options)
    # The network must come last.
    args.extend(["-w", str(network_path)])
    return args


class Worker(threading.Thread):
    """
    Runs self-play games until told to finish.

    STATE MACHINE:
    - RUNNING: play; a decisive game is saved and reported
    - NET_CHANGE: set by the coordinator; the current game is dropped and the
      worker goes back to RUNNING with the new network
    - FINISHING: set by the coordinator; the worker stops its engine and exits

    The coordinator is the only outside writer of ``state``; the worker itself
    only ever moves NET_CHANGE back to RUNNING.

    An engine failure stops only this worker. A ``FatalClientError`` or any
    unexpected error is handed to ``on_fatal`` so the whole run can stop.
    """

    def __init__(
        self,
        worker_id: int,
        engine: EngineConfig,
        network: str,
        networks_dir: Path | str,
        games_dir: Path | str,
        on_result: ResultCallback,
        on_fatal: FatalCallback | None = None,
        gpu: str | None = None,
        dump_debug: bool = False,
        session_factory: SessionFactory | None = None,
        rng: random.Random | None = None,
    ):
        """
        Args:
            worker_id: Index of this worker's compute slot
            engine: Engine section of the configuration
            network: Identifier of the network to start with
            networks_dir: Directory holding network files
            games_dir: Directory the engine writes game files to
            on_result: Called with (record, duration) for each decisive game
            on_fatal: Told about an error that must end the whole run; when
                unset the error propagates out of ``run``
            gpu: GPU id passed to the engine, None to let it choose
            dump_debug: Also dump debug data for each saved game
            session_factory: Builds a session from engine arguments (tests)
            rng: Random source for the resign policy draw
        """
        super().__init__(name=f"worker-{worker_id}", daemon=True)
        self.worker_id = worker_id
        self.engine = engine
        self.networks_dir = Path(networks_dir)
        self.games_dir = Path(games_dir)
        self.on_result = on_result
        self.on_fatal = on_fatal
        self.gpu = gpu
        self.dump_debug = dump_debug
        self.session_factory = session_factory or self._default_session
        self.rng = rng or random.Random()

        self.state = RunState.RUNNING
        self.games_completed = 0
        self._network = network
        self._lock = threading.Lock()
        self._session: GameSession | None = None

    def _default_session(self, args: list[str]) -> GameSession:
        return GameSession(
            GtpEngine(args, cwd=self.games_dir),
            directory=self.games_dir,
            board_size=self.engine.board_size,
            move_timeout=self.engine.move_timeout_seconds,
        )

    def _log(self, message: str) -> None:
        print(f"[Worker {self.worker_id}] {message}", flush=True)

    # ------------------------------------------------------------------
    # Coordinator interface
    # ------------------------------------------------------------------

    @property
    def network(self) -> str:
        with self._lock:
            return self._network

    def new_network(self, network: str) -> None:
        """Switch to ``network`` and abandon the game in progress."""
        with self._lock:
            self._network = network
            if self.state is not RunState.FINISHING:
                self.state = RunState.NET_CHANGE

    def finish(self) -> None:
        """Stop after the current game's teardown. One-way."""
        with self._lock:
            self.state = RunState.FINISHING

    def kill(self) -> None:
        """Kill the engine of the game in progress, if any."""
        session = self._session
        if session is not None:
            session.kill()

    # ------------------------------------------------------------------
    # Game loop
    # ------------------------------------------------------------------

    def pick_resign_percent(self) -> int:
        # Some games must be played out so the resign rate can be checked.
        if self.rng.random() < self.engine.no_resign_probability:
            return 0
        return self.engine.resign_percent

    def run(self) -> None:
        try:
            while self.state is not RunState.FINISHING:
                if not self._play_one_game():
                    self._log("Stopping: engine failure.")
                    return
        except FatalClientError as e:
            self._log(f"Fatal error: {e}")
            if self.on_fatal is None:
                raise
            self.on_fatal(e)
        except Exception as e:
            print(f"[Worker {self.worker_id}] Fatal error: {e}", file=sys.stderr, flush=True)
            traceback.print_exc()
            if self.on_fatal is None:
                raise
            self.on_fatal(FatalClientError(f"Worker {self.worker_id} failed: {e}"))
        finally:
            self._session = None

    def _play_one_game(self) -> bool:
        """Play and dispatch one game. False if the worker must stop."""
        start = time.monotonic()
        resign_percent = self.pick_resign_percent()
        with self._lock:
            # A game that has not started yet already uses the newest network.
            if self.state is RunState.NET_CHANGE:
                self.state = RunState.RUNNING
            network = self._network
        args = build_engine_args(
            self.engine, self.networks_dir / network, resign_percent, gpu=self.gpu
        )
        self._log(f"option={' '.join(args[len(self.engine.command):])}")

        session = self.session_factory(args)
        self._session = session
        stopped = False
        try:
            if not session.start(self.engine.min_version):
                return False

            while True:
                session.move()
                if not session.wait_for_move():
                    return False
                session.read_move()
                if not session.next_move() or self.state is not RunState.RUNNING:
                    break

            state = self.state
            if state is RunState.RUNNING:
                self._log("Game has ended.")
                try:
                    if session.get_score():
                        session.write_sgf()
                        session.dump_training()
                        if self.dump_debug:
                            session.dump_debug()
                        duration = time.monotonic() - start
                        self.games_completed += 1
                        self.on_result(session.record(duration, network), duration)
                except EngineError as e:
                    self._log(f"Could not save game: {e}")
                    return False
            elif state is RunState.NET_CHANGE:
                self._log("Best Network has changed: restarting.")
                with self._lock:
                    if self.state is RunState.NET_CHANGE:
                        self.state = RunState.RUNNING
            else:
                self._log("Program ends: exiting.")

            self._log("Stopping engine.")
            session.quit()
            stopped = True
            return True
        finally:
            # Never leave an engine process behind.
            if not stopped:
                session.kill()
