"""Blob storage protocol shared by the document pipeline and verifier."""

from __future__ import annotations

from typing import Protocol


class BlobStoreError(RuntimeError):
    """Raised when a blob cannot be stored, fetched or removed."""


class BlobStore(Protocol):
    """Opaque content store for rendered documents."""

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Persist bytes under ``key`` and return a URL that ``fetch`` accepts."""

    def fetch(self, url: str) -> bytes:
        """Return the exact bytes previously stored at ``url``."""

    def delete(self, key: str) -> None:
        """Remove the object stored under ``key``."""


class InMemoryBlobStore:
    """Dictionary-backed store used by tests and local development."""

    scheme = "memory://"

    def __init__(self) -> None:
        self._store: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        self._store[key] = bytes(data)
        self.content_types[key] = content_type
        return f"{self.scheme}{key}"

    def fetch(self, url: str) -> bytes:
        if not url.startswith(self.scheme):
            raise BlobStoreError(f"Unsupported URL: {url}")
        key = url[len(self.scheme):]
        try:
            return self._store[key]
        except KeyError as exc:
            raise BlobStoreError(f"Object not found: {key}") from exc

    def delete(self, key: str) -> None:
        self._store.pop(key, None)
        self.content_types.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._store)

    def replace(self, url: str, data: bytes) -> None:
        """Overwrite an existing object in place, leaving its URL unchanged."""

        key = url[len(self.scheme):]
        if key not in self._store:
            raise BlobStoreError(f"Object not found: {key}")
        self._store[key] = bytes(data)


__all__ = ["BlobStore", "BlobStoreError", "InMemoryBlobStore"]
