"""
A single self-play game driven through a GTP engine.

The session follows a start / move / wait / read contract so the worker can
check its run state between moves and abandon a game at any move boundary.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from zeroclient.selfplay.protocol import Color
from zeroclient.shared.errors import EngineError, FatalClientError

logger = logging.getLogger(__name__)

SGF_SUFFIX = ".sgf"
TRAINING_SUFFIX = ".txt.0.gz"
DEBUG_SUFFIX = ".txt.debug.0.gz"

_VERSION_PART_RE = re.compile(r"\d+")


@dataclass(frozen=True)
class GameRecord:
    """A finished game and the files it left in ``directory``."""

    name: str
    directory: Path
    duration: float = 0.0
    moves: int = 0
    network: str = ""  # Network the game was played with

    @property
    def sgf_path(self) -> Path:
        return self.directory / (self.name + SGF_SUFFIX)

    @property
    def training_path(self) -> Path:
        return self.directory / (self.name + TRAINING_SUFFIX)

    @property
    def debug_path(self) -> Path:
        return self.directory / (self.name + DEBUG_SUFFIX)


class Engine(Protocol):
    """What a game session needs from an engine process."""

    def start(self) -> None: ...

    def send(self, command: str) -> None: ...

    def read_response(self, timeout: float | None = None) -> str: ...

    def request(self, command: str, timeout: float | None = None) -> str: ...

    def quit(self, timeout: float = 30.0) -> None: ...

    def kill(self) -> None: ...


def parse_version(text: str) -> tuple[int, ...]:
    """Numeric components of a version string ("0.17-dev" -> (0, 17))."""
    parts = []
    for piece in text.strip().split("."):
        match = _VERSION_PART_RE.match(piece)
        if match is None:
            break
        parts.append(int(match.group()))
    return tuple(parts)


class GameSession:
    """One self-play game against a single engine process."""

    def __init__(
        self,
        engine: Engine,
        directory: Path | str = ".",
        name: str | None = None,
        board_size: int = 19,
        move_timeout: float | None = None,
    ):
        self.engine = engine
        self.directory = Path(directory)
        self.name = name or uuid.uuid4().hex
        self.board_size = board_size
        self.move_timeout = move_timeout

        self.to_move = Color.BLACK
        self.moves = 0
        self.passes = 0
        self.resigned: Color | None = None
        self.winner: Color | None = None
        self.result = ""
        self._last_response = ""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, min_version: str) -> bool:
        """
        Launch the engine and check it is recent enough.

        Returns:
            False if the engine could not be started or talked to.

        Raises:
            FatalClientError: the engine is older than ``min_version``; no
                game on this machine can be played until it is upgraded.
        """
        try:
            self.engine.start()
            version = self.engine.request("version", timeout=self.move_timeout)
        except EngineError as e:
            print(f"Engine failed to start: {e}", flush=True)
            self.kill()
            return False

        if parse_version(version) < parse_version(min_version):
            print(
                f"Engine version {version} is too old, "
                f"version {min_version} or newer is required.",
                flush=True,
            )
            self.kill()
            raise FatalClientError(
                f"Engine version {version} is older than required {min_version}"
            )

        print(f"Engine has started (version {version}).", flush=True)
        return True

    def quit(self) -> None:
        self.engine.quit()

    def kill(self) -> None:
        self.engine.kill()

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def move(self) -> None:
        """Ask the engine for the next move of the side to play."""
        self.engine.send(f"genmove {self.to_move.value}")

    def wait_for_move(self) -> bool:
        """Block until the engine answers the last genmove. False if it died."""
        try:
            self._last_response = self.engine.read_response(self.move_timeout)
        except EngineError as e:
            print(f"Engine stopped responding: {e}", flush=True)
            return False
        return True

    def read_move(self) -> str:
        """Apply the move received by ``wait_for_move``."""
        vertex = self._last_response.strip().lower()
        self.moves += 1
        if vertex == "resign":
            self.resigned = self.to_move
        elif vertex == "pass":
            self.passes += 1
        else:
            self.passes = 0
        logger.debug(f"[{self.name[:8]}] {self.moves} ({self.to_move.value}) {vertex}")
        return vertex

    def next_move(self) -> bool:
        """Hand the turn over; False once the game is over."""
        if self.game_over:
            return False
        self.to_move = self.to_move.other
        return True

    @property
    def game_over(self) -> bool:
        return (
            self.resigned is not None
            or self.passes >= 2
            or self.moves > self.board_size * self.board_size * 2
        )

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def get_score(self) -> bool:
        """Determine the winner. True if the game has a decisive result."""
        if self.resigned is not None:
            self.winner = self.resigned.other
            self.result = f"{self.winner.name[0]}+Resign"
        else:
            try:
                score = self.engine.request("final_score", timeout=self.move_timeout)
            except EngineError as e:
                print(f"Could not score the game: {e}", flush=True)
                return False
            self.result = score.strip()
            prefix = self.result[:2].upper()
            if prefix == "B+":
                self.winner = Color.BLACK
            elif prefix == "W+":
                self.winner = Color.WHITE
            else:
                self.winner = None

        if self.winner is None:
            print(f"Game has no winner ({self.result or 'no score'}).", flush=True)
            return False
        print(f"Score: {self.result}", flush=True)
        return True

    def write_sgf(self) -> None:
        self.engine.request(f"printsgf {self.name}{SGF_SUFFIX}", timeout=self.move_timeout)

    def dump_training(self) -> None:
        if self.winner is None:
            raise EngineError("Cannot dump training data without a winner")
        winner = "black" if self.winner is Color.BLACK else "white"
        self.engine.request(f"dump_training {winner} {self.name}.txt", timeout=self.move_timeout)

    def dump_debug(self) -> None:
        self.engine.request(f"dump_debug {self.name}.txt.debug", timeout=self.move_timeout)

    def record(self, duration: float, network: str = "") -> GameRecord:
        return GameRecord(
            name=self.name,
            directory=self.directory,
            duration=duration,
            moves=self.moves,
            network=network,
        )
