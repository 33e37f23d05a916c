"""Tests for artifact stores and the path scheme."""

import httpx
import pytest

from vibe.core.errors import ArtifactStoreError

from .lib import (
    HttpArtifactStore,
    LocalArtifactStore,
    create_artifact_store,
    iteration_path,
    revert_path,
    variant_path,
)

# =============================================================================
# Path Scheme
# =============================================================================


class TestPaths:
    """Tests for deterministic artifact paths."""

    @pytest.mark.unit
    def test_variant_path(self):
        assert variant_path("u1", "s1", 3) == "u1/s1/variant_3.html"

    @pytest.mark.unit
    def test_anonymous_owner(self):
        assert variant_path(None, "s1", 1) == "anonymous/s1/variant_1.html"

    @pytest.mark.unit
    def test_iteration_path(self):
        assert iteration_path("u1", "s1", 2, 5) == "u1/s1/variant_2_iter_5.html"

    @pytest.mark.unit
    def test_revert_paths_are_distinct(self):
        a = revert_path("u1", "s1", 2)
        b = revert_path("u1", "s1", 2)
        assert a != b
        assert a.startswith("u1/s1/variant_2_reverted_")
        assert a != variant_path("u1", "s1", 2)


# =============================================================================
# Local Store
# =============================================================================


class TestLocalArtifactStore:
    """Tests for the filesystem backend."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_put_get_file_url(self, tmp_path):
        store = LocalArtifactStore(tmp_path)
        url = await store.put("u/s/variant_1.html", b"<html>1</html>")

        assert url.startswith("file://")
        assert await store.get(url) == b"<html>1</html>"
        assert (tmp_path / "u/s/variant_1.html").read_bytes() == b"<html>1</html>"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_put_overwrites(self, tmp_path):
        store = LocalArtifactStore(tmp_path)
        await store.put("a/b.html", b"old")
        url = await store.put("a/b.html", b"new")
        assert await store.get(url) == b"new"
        # No temp files left behind
        assert [p.name for p in (tmp_path / "a").iterdir()] == ["b.html"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_base_url(self, tmp_path):
        store = LocalArtifactStore(tmp_path, base_url="http://cdn.test/files/")
        url = await store.put("u/s/variant_2.html", b"x")
        assert url == "http://cdn.test/files/u/s/variant_2.html"
        assert await store.get(url) == b"x"

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["../escape.html", "/abs.html", "a//b.html", ""])
    async def test_rejects_bad_paths(self, tmp_path, path):
        with pytest.raises(ArtifactStoreError):
            await LocalArtifactStore(tmp_path).put(path, b"x")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_foreign_url_rejected(self, tmp_path):
        with pytest.raises(ArtifactStoreError):
            await LocalArtifactStore(tmp_path).get("https://elsewhere.test/x.html")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        store = LocalArtifactStore(tmp_path)
        with pytest.raises(ArtifactStoreError):
            await store.get(store.url_for("nope/missing.html"))


# =============================================================================
# HTTP Store
# =============================================================================


def _bucket_transport(objects: dict[str, bytes], fail_upload: bool = False):
    """In-memory stand-in for the storage service."""

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "POST" and path.startswith("/storage/v1/object/files/"):
            if fail_upload:
                return httpx.Response(500, json={"error": "disk full"})
            assert request.headers["x-upsert"] == "true"
            assert request.headers["authorization"] == "Bearer svc-key"
            objects[path.removeprefix("/storage/v1/object/files/")] = request.content
            return httpx.Response(200, json={"Key": path})
        if request.method == "GET" and path.startswith(
            "/storage/v1/object/public/files/"
        ):
            key = path.removeprefix("/storage/v1/object/public/files/")
            if key in objects:
                return httpx.Response(200, content=objects[key])
            return httpx.Response(404)
        return httpx.Response(405)

    return httpx.MockTransport(handler)


class TestHttpArtifactStore:
    """Tests for the HTTP bucket backend."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upload_and_download(self):
        objects: dict[str, bytes] = {}
        client = httpx.AsyncClient(transport=_bucket_transport(objects))
        store = HttpArtifactStore(
            "https://store.test", "files", api_key="svc-key", client=client
        )

        url = await store.put("u1/s1/variant_1.html", b"<html/>")

        assert url == (
            "https://store.test/storage/v1/object/public/files/u1/s1/variant_1.html"
        )
        assert objects == {"u1/s1/variant_1.html": b"<html/>"}
        assert await store.get(url) == b"<html/>"
        await store.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upload_failure(self):
        client = httpx.AsyncClient(transport=_bucket_transport({}, fail_upload=True))
        store = HttpArtifactStore(
            "https://store.test", "files", api_key="svc-key", client=client
        )
        with pytest.raises(ArtifactStoreError, match="HTTP 500"):
            await store.put("u1/s1/variant_1.html", b"<html/>")
        await store.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_download_missing(self):
        client = httpx.AsyncClient(transport=_bucket_transport({}))
        store = HttpArtifactStore("https://store.test", "files", client=client)
        with pytest.raises(ArtifactStoreError):
            await store.get(store.url_for("u/s/none.html"))
        await store.close()


class TestCreateArtifactStore:
    """Tests for backend selection."""

    @pytest.mark.unit
    def test_local_default(self, monkeypatch, tmp_path):
        monkeypatch.delenv("VIBE_STORAGE_URL", raising=False)
        store = create_artifact_store(root=tmp_path)
        assert isinstance(store, LocalArtifactStore)
        assert store.root == tmp_path.resolve()

    @pytest.mark.unit
    def test_remote_when_configured(self, monkeypatch):
        monkeypatch.setenv("VIBE_STORAGE_URL", "https://store.test")
        monkeypatch.setenv("VIBE_STORAGE_BUCKET", "files")
        store = create_artifact_store()
        assert isinstance(store, HttpArtifactStore)
        assert store.bucket == "files"
