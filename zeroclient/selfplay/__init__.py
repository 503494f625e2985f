"""
Self-play: engine processes, single games and the worker threads that run them.
"""

from zeroclient.selfplay.game import GameRecord, GameSession
from zeroclient.selfplay.protocol import RunState
from zeroclient.selfplay.worker import Worker

__all__ = ["GameRecord", "GameSession", "RunState", "Worker"]
