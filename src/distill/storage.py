"""Durable key → bytes storage for uploaded sources and generated summaries.

The pipeline treats a blob URL as an opaque retrieval key. ``LocalBlobStore``
keeps blobs under a root directory and hands out ``file://`` URLs; any
object satisfying :class:`BlobStore` can stand in for it.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlparse

from distill.errors import BlobFetchError

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def put(self, path: str, data: bytes | str, content_type: str | None = None) -> str: ...

    def get(self, url: str) -> bytes: ...

    def delete(self, urls: list[str]) -> None: ...


class LocalBlobStore:
    """Filesystem-backed blob store.

    Paths are confined to *root*; a path that resolves outside it
    (``../../etc/passwd``) is rejected with ``ValueError``.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()

    def put(self, path: str, data: bytes | str, content_type: str | None = None) -> str:
        """Write *data* at *path* (atomically) and return its URL."""
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = data.encode("utf-8") if isinstance(data, str) else data

        fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".blob-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
            os.replace(tmp, target)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

        logger.debug("blob.put path=%s bytes=%d type=%s", path, len(payload), content_type)
        return target.as_uri()

    def get(self, url: str) -> bytes:
        """Read the blob behind *url*.

        Raises:
            BlobFetchError: URL is not a readable file:// URL under the root.
        """
        try:
            target = self._path_from_url(url)
            return target.read_bytes()
        except (OSError, ValueError) as exc:
            raise BlobFetchError(f"Failed to fetch blob {url!r}: {exc}") from exc

    def delete(self, urls: list[str]) -> None:
        """Delete blobs; missing files are ignored."""
        for url in urls:
            target = self._path_from_url(url)
            target.unlink(missing_ok=True)
            logger.debug("blob.deleted url=%s", url)

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            raise ValueError(f"Blob path escapes the storage root: {path!r}")
        return target

    def _path_from_url(self, url: str) -> Path:
        parsed = urlparse(url)
        if parsed.scheme != "file":
            raise ValueError(f"Not a file:// blob URL: {url!r}")
        target = Path(unquote(parsed.path)).resolve()
        if not target.is_relative_to(self.root):
            raise ValueError(f"Blob URL is outside the storage root: {url!r}")
        return target
