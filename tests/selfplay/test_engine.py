"""Tests for GtpEngine against a small scripted GTP process."""

import sys

import pytest

from zeroclient.selfplay.engine import GtpEngine
from zeroclient.shared.errors import EngineError

FAKE_GTP = """
import sys
for line in sys.stdin:
    cmd = line.split()
    if not cmd:
        continue
    if cmd[0] == "version":
        print("= 0.17\\n", flush=True)
    elif cmd[0] == "multi":
        print("=7 first\\nsecond\\n", flush=True)
    elif cmd[0] == "chatter":
        print("loading weights...", flush=True)
        print("= ready\\n", flush=True)
    elif cmd[0] == "silent":
        pass
    elif cmd[0] == "exit":
        sys.exit(0)
    elif cmd[0] == "quit":
        print("=\\n", flush=True)
        break
    else:
        print("? unknown command\\n", flush=True)
"""


@pytest.fixture
def engine(tmp_path):
    gtp = GtpEngine([sys.executable, "-c", FAKE_GTP], cwd=tmp_path / "games")
    gtp.start()
    yield gtp
    gtp.kill()


class TestGtpEngine:
    """Tests for GtpEngine."""

    def test_request(self, engine):
        """A request returns the response text without the status marker."""
        assert engine.request("version", timeout=10) == "0.17"
        assert engine.running

    def test_multiline_response_with_id(self, engine):
        """Multi-line responses are joined and the command id is stripped."""
        assert engine.request("multi", timeout=10) == "first\nsecond"

    def test_chatter_before_response_is_skipped(self, engine):
        """Output before a response marker is ignored."""
        assert engine.request("chatter", timeout=10) == "ready"

    def test_error_response(self, engine):
        """A ? response raises EngineError."""
        with pytest.raises(EngineError, match="unknown command"):
            engine.request("frobnicate", timeout=10)

    def test_timeout(self, engine):
        """A missing response times out."""
        with pytest.raises(EngineError, match="did not answer"):
            engine.request("silent", timeout=0.2)

    def test_process_exit(self, engine):
        """An exiting engine raises EngineError."""
        with pytest.raises(EngineError, match="exited"):
            engine.request("exit", timeout=10)

    def test_quit(self, engine):
        """quit() stops the process."""
        engine.quit(timeout=10)

        assert not engine.running

    def test_kill(self, engine):
        """kill() stops the process."""
        engine.kill()

        assert not engine.running

    def test_working_directory_is_created(self, engine, tmp_path):
        """The working directory is created on start."""
        assert (tmp_path / "games").is_dir()

    def test_missing_program(self, tmp_path):
        """A missing engine binary raises EngineError."""
        gtp = GtpEngine([str(tmp_path / "no-such-engine")], cwd=tmp_path)

        with pytest.raises(EngineError, match="Could not start"):
            gtp.start()

    def test_send_before_start(self, tmp_path):
        """Sending before start raises EngineError."""
        with pytest.raises(EngineError, match="not running"):
            GtpEngine(["leelaz"], cwd=tmp_path).send("version")
