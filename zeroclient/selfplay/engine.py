"""
GTP engine process wrapper.

Runs the engine as a subprocess and talks Go Text Protocol over its
stdin/stdout. A reader thread feeds stdout lines into a queue so that waiting
for a response can time out.
"""

from __future__ import annotations

import logging
import queue
import subprocess
import threading
from pathlib import Path

from zeroclient.shared.errors import EngineError

logger = logging.getLogger(__name__)

_EOF = None


class GtpEngine:
    """One engine process speaking GTP."""

    def __init__(self, args: list[str], cwd: Path | str = "."):
        """
        Args:
            args: Full command line (program followed by its options)
            cwd: Working directory; game files are written here
        """
        self.args = list(args)
        self.cwd = Path(cwd)
        self._process: subprocess.Popen | None = None
        self._lines: queue.Queue = queue.Queue()
        self._reader: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self) -> None:
        """Launch the engine process."""
        self.cwd.mkdir(parents=True, exist_ok=True)
        try:
            self._process = subprocess.Popen(
                self.args,
                cwd=self.cwd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise EngineError(f"Could not start engine {self.args[0]}: {e}") from e
        self._reader = threading.Thread(target=self._read_stdout, daemon=True)
        self._reader.start()
        logger.debug(f"Started engine pid={self._process.pid}: {' '.join(self.args)}")

    def _read_stdout(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        for line in self._process.stdout:
            self._lines.put(line.rstrip("\r\n"))
        self._lines.put(_EOF)

    def send(self, command: str) -> None:
        """Write one GTP command."""
        if self._process is None or self._process.stdin is None:
            raise EngineError("Engine is not running")
        try:
            self._process.stdin.write(command + "\n")
            self._process.stdin.flush()
        except (BrokenPipeError, OSError) as e:
            raise EngineError(f"Engine stopped accepting commands: {e}") from e

    def read_response(self, timeout: float | None = None) -> str:
        """
        Wait for one GTP response and return its text without the status marker.

        Raises:
            EngineError: the engine exited, timed out, or answered ``?``.
        """
        lines: list[str] = []
        while True:
            try:
                line = self._lines.get(timeout=timeout)
            except queue.Empty:
                raise EngineError(f"Engine did not answer within {timeout} s") from None
            if line is _EOF:
                raise EngineError("Engine process exited")
            if not lines:
                if not line.strip():
                    continue
                if line[0] not in "=?":
                    # Chatter outside of a response.
                    continue
            elif not line.strip():
                break
            lines.append(line)

        status, first = lines[0][0], lines[0][1:].strip()
        # Strip an optional numeric command id.
        if first.split(" ", 1)[0].isdigit():
            first = first.split(" ", 1)[1] if " " in first else ""
        text = "\n".join([first, *lines[1:]]).strip()
        if status == "?":
            raise EngineError(f"Engine error: {text}")
        return text

    def request(self, command: str, timeout: float | None = None) -> str:
        """Send a command and wait for its response."""
        self.send(command)
        return self.read_response(timeout)

    def quit(self, timeout: float = 30.0) -> None:
        """Ask the engine to quit and wait for it; kill it if it does not."""
        if self._process is None:
            return
        try:
            if self.running:
                self.request("quit", timeout=timeout)
        except EngineError as e:
            logger.debug(f"Engine quit was not acknowledged: {e}")
        try:
            self._process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self.kill()

    def kill(self) -> None:
        """Terminate the engine immediately."""
        if self._process is not None and self._process.poll() is None:
            self._process.kill()
            self._process.wait()
