"""
Export file storage.

put() never overwrites: if the requested key already exists the file is
stored under the next free suffixed key (NAME_2.txt, NAME_3.txt, ...) and the
key actually used is returned, so a same-day re-run keeps the earlier file.
"""
from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Dict, Optional

from directdebit.core.errors import DependencyError, NotFound
from directdebit.observability.logging import log_error
from directdebit.settings import settings


def _suffixed(key: str, n: int) -> str:
    stem, dot, ext = key.rpartition(".")
    if not dot:
        return f"{key}_{n}"
    return f"{stem}_{n}.{ext}"


class BlobStore:
    def put(self, key: str, data: bytes, content_type: str = "text/plain") -> str:
        raise NotImplementedError

    def get(self, key: str) -> bytes:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def free_key(self, key: str) -> str:
        if not self.exists(key):
            return key
        n = 2
        while self.exists(_suffixed(key, n)):
            n += 1
        return _suffixed(key, n)


class FilesystemBlobStore(BlobStore):
    """Stores blobs as files under a root directory (flat key space)."""

    def __init__(self, root: Optional[str] = None):
        self._root = Path(root or settings.EXPORT_DIR)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        safe = Path(key).name
        if not safe or safe != key:
            raise ValueError(f"invalid blob key: {key!r}")
        return self._root / safe

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def put(self, key: str, data: bytes, content_type: str = "text/plain") -> str:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            final_key = self.free_key(key)
            target = self._path(final_key)
            # Write-then-rename so a reader never sees a partial file
            tmp = target.with_name(f".{target.name}.tmp")
            with open(tmp, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, target)
        except OSError as e:
            log_error("blob_store_error", e, op="put", key=key)
            raise DependencyError("export storage unavailable") from e
        return final_key

    def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise NotFound("unknown export file")
        try:
            return path.read_bytes()
        except OSError as e:
            raise DependencyError("export storage unavailable") from e


class InMemoryBlobStore(BlobStore):
    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def exists(self, key: str) -> bool:
        return key in self._blobs

    def put(self, key: str, data: bytes, content_type: str = "text/plain") -> str:
        with self._lock:
            final_key = self.free_key(key)
            self._blobs[final_key] = bytes(data)
        return final_key

    def get(self, key: str) -> bytes:
        try:
            return self._blobs[key]
        except KeyError:
            raise NotFound("unknown export file") from None

    def keys(self):
        return sorted(self._blobs)
