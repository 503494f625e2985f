"""
Transfer agent: HTTP fetch/download/submit plus gzip helpers.

The model store and upload pipeline only depend on the ``TransferAgent``
protocol, so tests can swap in an in-memory fake.
"""

from __future__ import annotations

import gzip
import logging
import re
import shutil
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

import requests
from tqdm import tqdm

from zeroclient.shared.errors import TransferError

logger = logging.getLogger(__name__)

GZIP_SUFFIX = ".gz"
_CHUNK_SIZE = 1024 * 1024
_FILENAME_RE = re.compile(r"""filename\*?=(?:UTF-8'')?["']?([^"';]+)["']?""", re.IGNORECASE)


class TransferAgent(Protocol):
    """Capabilities the client needs from the network and the compressor."""

    def fetch_text(self, url: str) -> str: ...

    def download(self, url: str, dest_dir: Path) -> Path: ...

    def submit(self, url: str, fields: dict[str, str], files: dict[str, Path]) -> str: ...

    def compress(self, path: Path) -> Path: ...

    def decompress(self, path: Path) -> Path: ...


def compress_file(path: Path) -> Path:
    """Gzip ``path`` to ``path.gz`` and remove the original, like ``gzip FILE``."""
    path = Path(path)
    target = path.with_name(path.name + GZIP_SUFFIX)
    with open(path, "rb") as src, gzip.open(target, "wb") as dst:
        shutil.copyfileobj(src, dst)
    path.unlink()
    return target


def decompress_file(path: Path) -> Path:
    """Gunzip ``FILE.gz`` to ``FILE`` and remove the archive, like ``gunzip FILE``."""
    path = Path(path)
    if path.suffix != GZIP_SUFFIX:
        raise TransferError(f"Not a gzip file name: {path.name}")
    target = path.with_suffix("")
    try:
        with gzip.open(path, "rb") as src, open(target, "wb") as dst:
            shutil.copyfileobj(src, dst)
        path.unlink()
    except (OSError, EOFError) as e:
        target.unlink(missing_ok=True)
        raise TransferError(f"Failed to decompress {path.name}: {e}") from e
    return target


def filename_from_response(response: requests.Response) -> str:
    """
    Name a download the way ``curl -O -J`` does.

    Uses the Content-Disposition filename when the server sends one, and the
    last segment of the final URL otherwise.
    """
    disposition = response.headers.get("Content-Disposition", "")
    match = _FILENAME_RE.search(disposition)
    if match:
        name = unquote(match.group(1).strip())
    else:
        name = unquote(urlparse(response.url).path.rsplit("/", 1)[-1])
    # Never let the server pick a directory.
    name = Path(name).name
    if not name:
        raise TransferError(f"Server did not provide a file name for {response.url}")
    return name


class HttpTransferAgent:
    """TransferAgent backed by a ``requests`` session."""

    def __init__(
        self,
        timeout: float = 60.0,
        session: requests.Session | None = None,
        show_progress: bool = True,
    ):
        """
        Args:
            timeout: Connect/read timeout for each request, in seconds
            session: Optional preconfigured session (shared connection pool)
            show_progress: Show a tqdm bar while downloading
        """
        self.timeout = timeout
        self.session = session or requests.Session()
        self.show_progress = show_progress

    def fetch_text(self, url: str) -> str:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransferError(f"GET {url} failed: {e}") from e
        return response.text

    def download(self, url: str, dest_dir: Path) -> Path:
        """Stream ``url`` into ``dest_dir`` and return the saved path."""
        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        try:
            with self.session.get(url, timeout=self.timeout, stream=True) as response:
                response.raise_for_status()
                target = dest_dir / filename_from_response(response)
                total = int(response.headers.get("Content-Length", 0)) or None
                with (
                    open(target, "wb") as f,
                    tqdm(
                        total=total,
                        unit="B",
                        unit_scale=True,
                        desc=target.name[:16],
                        disable=not self.show_progress,
                    ) as bar,
                ):
                    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                        f.write(chunk)
                        bar.update(len(chunk))
        except requests.RequestException as e:
            raise TransferError(f"Download of {url} failed: {e}") from e
        except OSError as e:
            raise TransferError(f"Could not save download of {url}: {e}") from e
        logger.info(f"Downloaded {target.name} ({target.stat().st_size / 1024 / 1024:.1f} MB)")
        return target

    def submit(self, url: str, fields: dict[str, str], files: dict[str, Path]) -> str:
        """POST a multipart form and return the response body."""
        handles = {}
        try:
            for name, path in files.items():
                handles[name] = (Path(path).name, open(path, "rb"))
            response = self.session.post(url, data=fields, files=handles, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransferError(f"POST {url} failed: {e}") from e
        except OSError as e:
            raise TransferError(f"Could not read upload file: {e}") from e
        finally:
            for _, handle in handles.values():
                handle.close()
        return response.text

    def compress(self, path: Path) -> Path:
        return compress_file(path)

    def decompress(self, path: Path) -> Path:
        return decompress_file(path)
