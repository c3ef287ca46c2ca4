"""
Content-addressable determinism cache.

age encryption is probabilistic, so re-encrypting unchanged plaintext would
make git see every encrypted file as modified. The cache remembers, per
path, the hash of the last plaintext that went through the filter together
with the digest of the ciphertext it was paired with. An unchanged file can
reuse the ciphertext staged in the index, but only while the index still
holds exactly that ciphertext.

Layout: one small JSON record per path under the cache directory, named
after the digest of the path. Writers to different paths never share a
file, and every write is an atomic replace.

Cache problems are never fatal: anything unreadable is a miss.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .exceptions import CacheCorrupt, CacheError, CacheIOError
from .utils import atomic_write, path_digest

log = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


@dataclass(frozen=True)
class CacheEntry:
    hash: str
    blob: str

    def matches(self, digest: str, blob_digest: str) -> bool:
        return self.hash == digest and self.blob == blob_digest


class ContentCache:
    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def record_path(self, path: str) -> Path:
        return self.directory / (path_digest(path) + RECORD_SUFFIX)

    # ------------------------------------------------------------------
    # Raw record access
    # ------------------------------------------------------------------

    def _read(self, path: str) -> Optional[CacheEntry]:
        record = self.record_path(path)
        try:
            raw = record.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheIOError(f"Cannot read cache record {record}: {e}") from e

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise CacheCorrupt(f"Corrupt cache record {record}") from e

        if not isinstance(data, dict) or data.get("path") != path:
            raise CacheCorrupt(f"Cache record {record} does not belong to {path}")
        if not isinstance(data.get("hash"), str) or not isinstance(data.get("blob"), str):
            raise CacheCorrupt(f"Cache record {record} is incomplete")
        return CacheEntry(hash=data["hash"], blob=data["blob"])

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, path: str) -> Optional[CacheEntry]:
        """Return the cached entry for ``path``, or None on a miss."""
        try:
            return self._read(path)
        except CacheError as e:
            log.warning("Ignoring cache entry: %s", e)
            return None

    def put(self, path: str, digest: str, blob_digest: str) -> None:
        """
        Record that plaintext ``digest`` pairs with ciphertext ``blob_digest``.

        Raises:
            CacheIOError: if the record could not be written
        """

        payload = json.dumps({"path": path, "hash": digest, "blob": blob_digest}).encode("utf-8")
        try:
            atomic_write(self.record_path(path), payload)
        except OSError as e:
            raise CacheIOError(f"Cannot write cache record for {path}: {e}") from e

    def discard(self, path: str) -> None:
        try:
            self.record_path(path).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise CacheIOError(f"Cannot remove cache record for {path}: {e}") from e
