"""Test helpers for production client tests."""

from __future__ import annotations

import gzip
from collections import deque
from pathlib import Path
from typing import Callable

from zeroclient.network.transfer import compress_file, decompress_file
from zeroclient.shared.config import Config
from zeroclient.shared.config_loader import load_config
from zeroclient.shared.errors import EngineError


def make_config(tmp_path: Path, **overrides) -> Config:
    """Defaults with all local directories inside ``tmp_path``."""
    base = {
        "storage__networks_dir": str(tmp_path / "networks"),
        "storage__games_dir": str(tmp_path / "games"),
        "server__url": "http://test.invalid",
    }
    base.update(overrides)
    return load_config(**base)


def content_digest(stream) -> str:
    """
    Stand-in hash: a file "hashes" to its own text content.

    Lets tests pick network names freely: a file containing ``abc123`` is a
    valid network called ``abc123``.
    """
    return stream.read().decode()


class FakeTransferAgent:
    """
    In-memory TransferAgent.

    ``hash_responses`` are returned (or raised, for exceptions) in order by
    ``fetch_text``; the last one repeats once the list runs out.
    """

    def __init__(
        self,
        hash_responses: list[str | Exception] | None = None,
        payload: bytes = b"abc123",
        download_name: str = "abc123.gz",
        submit_result: str | Exception = "Upload OK",
    ):
        self.hash_responses = deque(hash_responses or ["abc123\n1"])
        self.payload = payload
        self.download_name = download_name
        self.submit_result = submit_result

        self.fetches: list[str] = []
        self.downloads: list[str] = []
        self.submissions: list[dict] = []

    def fetch_text(self, url: str) -> str:
        self.fetches.append(url)
        response = (
            self.hash_responses.popleft() if len(self.hash_responses) > 1 else self.hash_responses[0]
        )
        if isinstance(response, Exception):
            raise response
        return response

    def download(self, url: str, dest_dir: Path) -> Path:
        self.downloads.append(url)
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        target = dest_dir / self.download_name
        with gzip.open(target, "wb") as f:
            f.write(self.payload)
        return target

    def submit(self, url: str, fields: dict[str, str], files: dict[str, Path]) -> str:
        self.submissions.append(
            {
                "url": url,
                "fields": dict(fields),
                "files": {name: Path(path).name for name, path in files.items()},
            }
        )
        if isinstance(self.submit_result, Exception):
            raise self.submit_result
        return self.submit_result

    def compress(self, path: Path) -> Path:
        return compress_file(path)

    def decompress(self, path: Path) -> Path:
        return decompress_file(path)


class ScriptedEngine:
    """
    GTP engine double that plays a fixed list of moves.

    File-writing commands create small files in ``directory`` the way the
    real engine does. Running out of moves behaves like the engine dying.
    """

    def __init__(
        self,
        moves: list[str],
        directory: Path | None = None,
        version: str = "0.17",
        score: str = "B+3.5",
        on_genmove: Callable[[int], None] | None = None,
        fail_start: bool = False,
    ):
        self.moves = deque(moves)
        self.directory = Path(directory) if directory is not None else None
        self.version = version
        self.score = score
        self.on_genmove = on_genmove
        self.fail_start = fail_start

        self.commands: list[str] = []
        self.genmoves = 0
        self.started = False
        self.quit_called = False
        self.killed = False
        self._pending: deque = deque()

    def start(self) -> None:
        if self.fail_start:
            raise EngineError("No such engine")
        self.started = True

    def send(self, command: str) -> None:
        self.commands.append(command)
        self._pending.append(self._answer(command))

    def read_response(self, timeout: float | None = None) -> str:
        if not self._pending:
            raise EngineError("Engine process exited")
        answer = self._pending.popleft()
        if isinstance(answer, Exception):
            raise answer
        return answer

    def request(self, command: str, timeout: float | None = None) -> str:
        self.send(command)
        return self.read_response(timeout)

    def quit(self, timeout: float = 30.0) -> None:
        self.quit_called = True

    def kill(self) -> None:
        self.killed = True

    def _answer(self, command: str):
        name, *args = command.split()
        if name == "version":
            return self.version
        if name == "genmove":
            if self.on_genmove is not None:
                self.on_genmove(self.genmoves)
            self.genmoves += 1
            if not self.moves:
                return EngineError("Engine process exited")
            return self.moves.popleft()
        if name == "final_score":
            return self.score
        if name == "printsgf":
            self._write(args[0], b"(;GM[1]FF[4])")
        elif name == "dump_training":
            self._write(args[1] + ".0.gz", b"training")
        elif name == "dump_debug":
            self._write(args[0] + ".0.gz", b"debug")
        return ""

    def _write(self, name: str, data: bytes) -> None:
        if self.directory is not None:
            self.directory.mkdir(parents=True, exist_ok=True)
            (self.directory / name).write_bytes(data)


class FakeWorker:
    """Records what the coordinator asks of a worker."""

    def __init__(self, slot: int, gpu: str | None, network: str, on_result):
        self.slot = slot
        self.gpu = gpu
        self.network = network
        self.on_result = on_result
        self.networks: list[str] = []
        self.started = False
        self.finished = False
        self.killed = False
        self.alive = True

    def start(self) -> None:
        self.started = True

    def new_network(self, network: str) -> None:
        self.networks.append(network)
        self.network = network

    def finish(self) -> None:
        self.finished = True
        self.alive = False

    def kill(self) -> None:
        self.killed = True

    def is_alive(self) -> bool:
        return self.alive
