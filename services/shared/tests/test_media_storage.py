"""Tests for generated media persistence."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from halcyon_shared.blob import (
    MediaKind,
    MediaStorage,
    build_blob_path,
    extension_for,
    is_temporary_url,
    sanitize_path_component,
    sanitize_url_for_logging,
)
from halcyon_shared.config import AzureStorageSettings

REPLICATE_URL = "https://replicate.delivery/pbxt/abc123/output.mp4"


def make_blob_client(url: str = "https://halcyon.blob.core.windows.net/videos/p/s/x.mp4"):
    blob = MagicMock()
    blob.ensure_container = AsyncMock()
    blob.upload_blob = AsyncMock(return_value=url)
    return blob


def make_http_client(content_type: str = "video/mp4", status_code: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code,
            content=b"\x00\x01media",
            headers={"content-type": content_type},
        )

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def storage_settings() -> AzureStorageSettings:
    return AzureStorageSettings(connection_string="UseDevelopmentStorage=true")


# ============================================================================
# Helpers
# ============================================================================


class TestMediaHelpers:
    """Tests for path, URL and content type helpers."""

    def test_temporary_url_detection(self):
        assert is_temporary_url(REPLICATE_URL) is True
        assert is_temporary_url("https://oaidalleapiprodscus.blob.core.windows.net/img.png") is True
        assert is_temporary_url("https://halcyon.blob.core.windows.net/videos/x.mp4") is False
        assert is_temporary_url(None) is False

    def test_sanitize_path_component(self):
        assert sanitize_path_component("../../etc/passwd") == "______etc_passwd"
        assert sanitize_path_component("scene-1_a") == "scene-1_a"
        assert sanitize_path_component("") == "unknown"

    def test_sanitize_url_for_logging_drops_query(self):
        url = "https://replicate.delivery/out.mp4?token=secret#frag"
        assert sanitize_url_for_logging(url) == "https://replicate.delivery/out.mp4"

    def test_sanitize_data_url_keeps_only_header(self):
        assert sanitize_url_for_logging("data:audio/mpeg;base64,AAAA") == "data:audio/mpeg;base64"

    def test_build_blob_path_with_project_and_scene(self):
        path = build_blob_path("mp4", project_id="proj 1", scene_id="scene/2")
        project, scene, filename = path.split("/")
        assert project == "proj_1"
        assert scene == "scene_2"
        assert filename.endswith(".mp4")

    def test_build_blob_path_for_owner(self):
        path = build_blob_path("mp3", owner_id="auth0|alice")
        assert path.startswith("auth0_alice/")

    def test_extension_for_unknown_type_uses_default(self):
        assert extension_for("video/quicktime", MediaKind.VIDEO) == "mov"
        assert extension_for("application/octet-stream", MediaKind.AUDIO) == "mp3"


# ============================================================================
# Persistence
# ============================================================================


class TestPersistUrl:
    """Tests for copying provider URLs into storage."""

    @pytest.mark.asyncio
    async def test_persists_video(self, storage_settings):
        """A downloadable HTTPS URL is uploaded and returned as permanent."""
        blob = make_blob_client()
        storage = MediaStorage(blob_client=blob, settings=storage_settings, http_client=make_http_client())

        result = await storage.persist_video(REPLICATE_URL, "project-1", "scene-1")

        assert result.url_type == "permanent"
        assert result.url == "https://halcyon.blob.core.windows.net/videos/p/s/x.mp4"
        container, blob_path, data = blob.upload_blob.call_args.args
        assert container == "videos"
        assert blob_path.startswith("project-1/scene-1/")
        assert blob_path.endswith(".mp4")
        assert data == b"\x00\x01media"

    @pytest.mark.asyncio
    async def test_container_verified_once(self, storage_settings):
        """The container check runs once per storage instance and container."""
        blob = make_blob_client()
        verified: set[str] = set()
        storage = MediaStorage(
            blob_client=blob,
            settings=storage_settings,
            http_client=make_http_client(content_type="audio/mpeg"),
            verified_containers=verified,
        )

        await storage.persist_audio(REPLICATE_URL, "p")
        await storage.persist_audio(REPLICATE_URL, "p")

        blob.ensure_container.assert_awaited_once_with("audio")
        assert verified == {"audio"}

    @pytest.mark.asyncio
    async def test_non_https_url_falls_back(self, storage_settings):
        """Plain HTTP URLs are never downloaded."""
        blob = make_blob_client()
        storage = MediaStorage(blob_client=blob, settings=storage_settings, http_client=make_http_client())

        result = await storage.persist_video("http://example.com/v.mp4", "p")

        assert result.url == "http://example.com/v.mp4"
        assert result.url_type == "temporary"
        blob.upload_blob.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_download_failure_falls_back(self, storage_settings):
        """A failed download returns the provider URL flagged temporary."""
        storage = MediaStorage(
            blob_client=make_blob_client(),
            settings=storage_settings,
            http_client=make_http_client(status_code=404),
        )

        result = await storage.persist_video(REPLICATE_URL, "p")

        assert result.url == REPLICATE_URL
        assert result.url_type == "temporary"

    @pytest.mark.asyncio
    async def test_upload_failure_falls_back(self, storage_settings):
        """A failed upload returns the provider URL flagged temporary."""
        blob = make_blob_client()
        blob.upload_blob.side_effect = RuntimeError("storage down")
        storage = MediaStorage(blob_client=blob, settings=storage_settings, http_client=make_http_client())

        result = await storage.persist_video(REPLICATE_URL, "p")

        assert result.url == REPLICATE_URL
        assert result.url_type == "temporary"

    @pytest.mark.asyncio
    async def test_unexpected_content_type_still_uploads(self, storage_settings):
        """Content type mismatches only produce a warning."""
        blob = make_blob_client()
        storage = MediaStorage(
            blob_client=blob,
            settings=storage_settings,
            http_client=make_http_client(content_type="application/octet-stream"),
        )

        result = await storage.persist_video(REPLICATE_URL, "p")

        assert result.url_type == "permanent"
        assert blob.upload_blob.call_args.args[1].endswith(".mp4")

    @pytest.mark.asyncio
    async def test_unconfigured_storage_keeps_provider_url(self):
        """Without credentials nothing is attempted."""
        storage = MediaStorage(settings=AzureStorageSettings(), http_client=make_http_client())

        result = await storage.persist_image("https://replicate.delivery/x.png", "p")

        assert result.url == "https://replicate.delivery/x.png"
        assert result.url_type == "temporary"


class TestPersistBytes:
    """Tests for storing raw generated bytes."""

    @pytest.mark.asyncio
    async def test_stores_voiceover_under_owner(self, storage_settings):
        blob = make_blob_client(url="https://halcyon.blob.core.windows.net/voiceovers/a.mp3")
        storage = MediaStorage(blob_client=blob, settings=storage_settings)

        result = await storage.persist_bytes(
            b"ID3", "audio/mpeg", MediaKind.VOICEOVER, owner_id="auth0|alice"
        )

        assert result.url_type == "permanent"
        container, blob_path, _ = blob.upload_blob.call_args.args
        assert container == "voiceovers"
        assert blob_path.startswith("auth0_alice/")

    @pytest.mark.asyncio
    async def test_failure_returns_data_url(self, storage_settings):
        blob = make_blob_client()
        blob.upload_blob.side_effect = RuntimeError("storage down")
        storage = MediaStorage(blob_client=blob, settings=storage_settings)

        result = await storage.persist_bytes(b"ID3", "audio/mpeg", MediaKind.VOICEOVER)

        assert result.url == "data:audio/mpeg;base64,SUQz"
        assert result.url_type == "temporary"
