"""Tests for the HTTP transfer agent and gzip helpers."""

import gzip
from unittest.mock import MagicMock

import pytest
import requests

from zeroclient.network.transfer import (
    HttpTransferAgent,
    compress_file,
    decompress_file,
    filename_from_response,
)
from zeroclient.shared.errors import TransferError


def make_response(status=200, body=b"", headers=None, url="http://test.invalid/best-network"):
    response = requests.Response()
    response.status_code = status
    response._content = body
    response._content_consumed = True
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    response.url = url
    return response


class TestGzipHelpers:
    """Tests for compress_file / decompress_file."""

    def test_compress_replaces_original(self, tmp_path):
        """compress_file writes FILE.gz and removes FILE."""
        path = tmp_path / "game.sgf"
        path.write_bytes(b"(;GM[1])")

        compressed = compress_file(path)

        assert compressed == tmp_path / "game.sgf.gz"
        assert not path.exists()
        assert gzip.decompress(compressed.read_bytes()) == b"(;GM[1])"

    def test_decompress_strips_suffix(self, tmp_path):
        """decompress_file writes FILE and removes FILE.gz."""
        archive = tmp_path / "abc123.gz"
        archive.write_bytes(gzip.compress(b"weights"))

        network = decompress_file(archive)

        assert network == tmp_path / "abc123"
        assert network.read_bytes() == b"weights"
        assert not archive.exists()

    def test_decompress_rejects_other_names(self, tmp_path):
        """Only .gz names can be decompressed."""
        path = tmp_path / "abc123.zip"
        path.write_bytes(b"")

        with pytest.raises(TransferError, match="Not a gzip"):
            decompress_file(path)

    def test_decompress_corrupt_archive(self, tmp_path):
        """A corrupt archive raises TransferError and leaves no partial output."""
        archive = tmp_path / "abc123.gz"
        archive.write_bytes(b"definitely not gzip")

        with pytest.raises(TransferError, match="decompress"):
            decompress_file(archive)

        assert not (tmp_path / "abc123").exists()


class TestFilenameFromResponse:
    """Tests for naming downloads."""

    def test_content_disposition(self):
        """The quoted Content-Disposition filename is used."""
        response = make_response(headers={"Content-Disposition": 'attachment; filename="abc123.gz"'})

        assert filename_from_response(response) == "abc123.gz"

    def test_unquoted_content_disposition(self):
        """An unquoted Content-Disposition filename is used."""
        response = make_response(headers={"Content-Disposition": "attachment; filename=abc123.gz"})

        assert filename_from_response(response) == "abc123.gz"

    def test_falls_back_to_url(self):
        """Without Content-Disposition the last URL segment is used."""
        response = make_response(url="http://test.invalid/networks/def456.gz")

        assert filename_from_response(response) == "def456.gz"

    def test_directory_components_are_dropped(self):
        """Directory parts in a server-supplied name are stripped."""
        response = make_response(
            headers={"Content-Disposition": 'attachment; filename="../../etc/abc123.gz"'}
        )

        assert filename_from_response(response) == "abc123.gz"


class TestHttpTransferAgent:
    """Tests for HttpTransferAgent against a mocked requests session."""

    def test_fetch_text(self):
        """fetch_text returns the body of a successful GET."""
        session = MagicMock()
        session.get.return_value = make_response(body=b"abc123\n16")
        agent = HttpTransferAgent(timeout=5, session=session)

        assert agent.fetch_text("http://test.invalid/best-network-hash") == "abc123\n16"
        session.get.assert_called_once_with("http://test.invalid/best-network-hash", timeout=5)

    def test_fetch_text_http_error(self):
        """An error status becomes a TransferError."""
        session = MagicMock()
        session.get.return_value = make_response(status=503)
        agent = HttpTransferAgent(session=session)

        with pytest.raises(TransferError):
            agent.fetch_text("http://test.invalid/best-network-hash")

    def test_fetch_text_connection_error(self):
        """A connection failure becomes a TransferError."""
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("refused")
        agent = HttpTransferAgent(session=session)

        with pytest.raises(TransferError, match="refused"):
            agent.fetch_text("http://test.invalid/best-network-hash")

    def test_download_writes_named_file(self, tmp_path):
        """download saves the body under the server-supplied name."""
        payload = gzip.compress(b"weights")
        response = make_response(
            body=payload,
            headers={
                "Content-Disposition": 'attachment; filename="abc123.gz"',
                "Content-Length": str(len(payload)),
            },
        )
        session = MagicMock()
        session.get.return_value = response
        agent = HttpTransferAgent(session=session, show_progress=False)

        saved = agent.download("http://test.invalid/best-network", tmp_path / "networks")

        assert saved == tmp_path / "networks" / "abc123.gz"
        assert saved.read_bytes() == payload

    def test_submit_posts_fields_and_files(self, tmp_path):
        """submit posts form fields and named files, then closes the files."""
        sgf = tmp_path / "game.sgf.gz"
        sgf.write_bytes(b"sgf")
        training = tmp_path / "game.txt.0.gz"
        training.write_bytes(b"data")
        session = MagicMock()
        session.post.return_value = make_response(body=b"Thanks")
        agent = HttpTransferAgent(timeout=7, session=session)

        body = agent.submit(
            "http://test.invalid/submit",
            {"networkhash": "abc123", "clientversion": "16"},
            {"sgf": sgf, "trainingdata": training},
        )

        assert body == "Thanks"
        _, kwargs = session.post.call_args
        assert kwargs["data"] == {"networkhash": "abc123", "clientversion": "16"}
        assert kwargs["files"]["sgf"][0] == "game.sgf.gz"
        assert kwargs["files"]["trainingdata"][0] == "game.txt.0.gz"
        assert kwargs["files"]["sgf"][1].closed

    def test_submit_missing_file(self, tmp_path):
        """A missing upload file becomes a TransferError."""
        agent = HttpTransferAgent(session=MagicMock())

        with pytest.raises(TransferError, match="upload file"):
            agent.submit("http://test.invalid/submit", {}, {"sgf": tmp_path / "missing.gz"})
