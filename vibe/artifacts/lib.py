"""Artifact storage for generated HTML.

Two backends implement the same `ArtifactStore` protocol:

- LocalArtifactStore: files under a directory, written via temp file +
  rename so a `put` is never observed half-written.
- HttpArtifactStore: a Supabase-style object storage bucket over httpx.

Paths are deterministic in (owner, session, variant index[, iteration]) so
that retries overwrite instead of accumulating orphans; revert snapshots get
a fresh timestamped path every time.

Example:
    >>> store = LocalArtifactStore("/tmp/artifacts")
    >>> url = await store.put(variant_path("u1", "s1", 2), b"<html>...</html>")
    >>> await store.get(url)
    b'<html>...</html>'
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote, urlparse
from uuid import uuid4

import httpx

from ..config import EnvVar, get_artifact_dir, get_environment
from ..core.errors import ArtifactStoreError, ConfigurationError

logger = logging.getLogger(__name__)

ANONYMOUS_OWNER = "anonymous"


# =============================================================================
# Path Scheme
# =============================================================================


def _prefix(owner: str | None, session_id: str) -> str:
    return f"{owner or ANONYMOUS_OWNER}/{session_id}"


def variant_path(owner: str | None, session_id: str, variant_index: int) -> str:
    """Path of a variant's generated artifact."""
    return f"{_prefix(owner, session_id)}/variant_{variant_index}.html"


def iteration_path(
    owner: str | None, session_id: str, variant_index: int, iteration_number: int
) -> str:
    """Path of the artifact produced by one iteration."""
    return (
        f"{_prefix(owner, session_id)}/"
        f"variant_{variant_index}_iter_{iteration_number}.html"
    )


def revert_path(owner: str | None, session_id: str, variant_index: int) -> str:
    """Fresh path for a revert snapshot (millisecond timestamp plus a nonce)."""
    stamp = time.time_ns() // 1_000_000
    return (
        f"{_prefix(owner, session_id)}/"
        f"variant_{variant_index}_reverted_{stamp}_{uuid4().hex[:6]}.html"
    )


def _validate_path(path: str) -> str:
    parts = path.split("/")
    if not path or path.startswith("/") or any(p in ("", ".", "..") for p in parts):
        raise ArtifactStoreError(f"Invalid artifact path: {path!r}")
    return path


# =============================================================================
# Protocol
# =============================================================================


class ArtifactStore(Protocol):
    """Blob storage addressed by path."""

    async def put(
        self, path: str, data: bytes, content_type: str = "text/html"
    ) -> str:
        """Store bytes atomically at path, replacing any existing blob.

        Returns:
            Public URL of the stored blob.

        Raises:
            ArtifactStoreError: If the write fails.
        """
        ...

    async def get(self, url: str) -> bytes:
        """Fetch the bytes behind a URL returned by `put`.

        Raises:
            ArtifactStoreError: If the blob cannot be read.
        """
        ...

    async def close(self) -> None:
        """Release resources."""
        ...


# =============================================================================
# Local Filesystem Backend
# =============================================================================


class LocalArtifactStore:
    """Filesystem artifact store.

    Args:
        root: Directory that holds artifacts.
        base_url: Public URL prefix; file:// URLs are returned when None.
    """

    def __init__(self, root: Path | str, base_url: str | None = None):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/") if base_url else None

    def url_for(self, path: str) -> str:
        """Public URL for an artifact path."""
        if self.base_url:
            return f"{self.base_url}/{quote(path)}"
        return (self.root / path).as_uri()

    def _path_from_url(self, url: str) -> Path:
        if self.base_url and url.startswith(self.base_url + "/"):
            rel = unquote(url[len(self.base_url) + 1 :])
            return self.root / _validate_path(rel)
        parsed = urlparse(url)
        if parsed.scheme == "file":
            target = Path(unquote(parsed.path)).resolve()
            if self.root in target.parents:
                return target
        raise ArtifactStoreError(f"URL does not belong to this store: {url}")

    def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".tmp-", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, target)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def put(
        self, path: str, data: bytes, content_type: str = "text/html"
    ) -> str:
        """Write bytes to root/path atomically."""
        target = self.root / _validate_path(path)
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as e:
            raise ArtifactStoreError(f"Failed to store {path}: {e}", path=path) from e
        logger.debug(f"Stored artifact {path} ({len(data)} bytes)")
        return self.url_for(path)

    async def get(self, url: str) -> bytes:
        """Read the bytes behind a URL returned by `put`."""
        target = self._path_from_url(url)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as e:
            raise ArtifactStoreError(f"Failed to read {url}: {e}") from e

    async def close(self) -> None:
        """Nothing to release."""


# =============================================================================
# HTTP Object Storage Backend
# =============================================================================


class HttpArtifactStore:
    """Object storage bucket over HTTP (Supabase storage API layout).

    Uploads go to ``{base}/storage/v1/object/{bucket}/{path}`` with
    ``x-upsert: true``; public URLs are
    ``{base}/storage/v1/object/public/{bucket}/{path}``.

    Args:
        base_url: Storage service URL.
        bucket: Bucket name.
        api_key: Service key sent as bearer token.
        client: Optional preconfigured httpx.AsyncClient (tests inject one
            with a MockTransport).
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        bucket: str,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self, content_type: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
            headers["apikey"] = self._api_key
        if content_type:
            headers["Content-Type"] = content_type
            headers["x-upsert"] = "true"
        return headers

    def url_for(self, path: str) -> str:
        """Public URL for an object path."""
        return (
            f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(path)}"
        )

    async def put(
        self, path: str, data: bytes, content_type: str = "text/html"
    ) -> str:
        """Upload bytes in a single request."""
        _validate_path(path)
        upload_url = f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(path)}"
        try:
            response = await self._client.post(
                upload_url, content=data, headers=self._headers(content_type)
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ArtifactStoreError(
                f"Upload of {path} rejected: HTTP {e.response.status_code}",
                path=path,
            ) from e
        except httpx.HTTPError as e:
            raise ArtifactStoreError(f"Upload of {path} failed: {e}", path=path) from e
        logger.debug(f"Uploaded artifact {path} ({len(data)} bytes)")
        return self.url_for(path)

    async def get(self, url: str) -> bytes:
        """Download the object behind a public URL."""
        try:
            response = await self._client.get(url, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ArtifactStoreError(f"Download of {url} failed: {e}") from e
        return response.content

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


# =============================================================================
# Factory
# =============================================================================


def create_artifact_store(
    root: Path | str | None = None,
    storage_url: str | None = None,
) -> ArtifactStore:
    """Create the configured artifact store.

    Resolution: explicit storage_url / VIBE_STORAGE_URL selects the HTTP
    store; otherwise a local store under root / VIBE_ARTIFACT_DIR.

    Raises:
        ConfigurationError: If remote storage is selected without a bucket.
    """
    storage_url = storage_url or get_environment(EnvVar.VIBE_STORAGE_URL)
    if storage_url:
        bucket = get_environment(EnvVar.VIBE_STORAGE_BUCKET)
        if not bucket:
            raise ConfigurationError("VIBE_STORAGE_BUCKET must be set")
        logger.info(f"Using HTTP artifact store {storage_url} bucket={bucket}")
        return HttpArtifactStore(
            storage_url, bucket, api_key=get_environment(EnvVar.VIBE_STORAGE_KEY)
        )

    directory = get_artifact_dir(root)
    logger.info(f"Using local artifact store at {directory}")
    return LocalArtifactStore(
        directory, base_url=get_environment(EnvVar.VIBE_ARTIFACT_BASE_URL)
    )


__all__ = [
    "ArtifactStore",
    "LocalArtifactStore",
    "HttpArtifactStore",
    "create_artifact_store",
    "variant_path",
    "iteration_path",
    "revert_path",
]
