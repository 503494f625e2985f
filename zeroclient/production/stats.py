"""Throughput counters for a production run."""

from __future__ import annotations

import time
from typing import Callable


class ThroughputStats:
    """
    Games and moves contributed since the run started.

    Not thread-safe on its own; the coordinator only touches it while holding
    its aggregation lock. Counters are never reset during a run.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.start_time = clock()
        self.games_played = 0
        self.moves_made = 0

    def restart_clock(self) -> None:
        self.start_time = self._clock()

    def record_game(self, moves: int) -> None:
        self.games_played += 1
        self.moves_made += moves

    def elapsed(self) -> float:
        return self._clock() - self.start_time

    def summary(self, last_duration: float) -> str | None:
        """Human readable throughput line, or None before anything was played."""
        if self.moves_made == 0 or self.games_played == 0:
            return None
        total_s = int(self.elapsed())
        return (
            f"{self.games_played} game(s) played in {total_s // 60} minutes = "
            f"{total_s // self.games_played} seconds/game, "
            f"{total_s * 1000 // self.moves_made} ms/move, "
            f"last game took {int(last_duration)} seconds."
        )
