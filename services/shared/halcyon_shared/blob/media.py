"""Persistence of generated media into blob storage.

Providers hand back short-lived URLs (Replicate delivery links, OpenAI image
blobs) or raw bytes. Everything is copied into our own containers so that
stored projects keep working. When the copy fails the caller still gets a
usable URL, flagged ``temporary`` so it can warn the user.
"""

import base64
import re
import uuid
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

import httpx

from ..config import AzureStorageSettings, get_settings
from ..logging import get_logger
from .client import BlobClient, get_blob_client

logger = get_logger(__name__)

URL_TYPE_PERMANENT = "permanent"
URL_TYPE_TEMPORARY = "temporary"


class MediaKind(str, Enum):
    """Kinds of generated media, one storage container each."""

    VIDEO = "video"
    AUDIO = "audio"
    VOICEOVER = "voiceover"
    IMAGE = "image"


CONTENT_TYPE_EXTENSIONS: dict[str, str] = {
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/ogg": "ogg",
    "audio/webm": "webm",
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
}

DEFAULT_EXTENSIONS: dict[MediaKind, str] = {
    MediaKind.VIDEO: "mp4",
    MediaKind.AUDIO: "mp3",
    MediaKind.VOICEOVER: "mp3",
    MediaKind.IMAGE: "png",
}

DEFAULT_CONTENT_TYPES: dict[MediaKind, str] = {
    MediaKind.VIDEO: "video/mp4",
    MediaKind.AUDIO: "audio/mpeg",
    MediaKind.VOICEOVER: "audio/mpeg",
    MediaKind.IMAGE: "image/png",
}

# Hosts whose URLs expire within hours of generation.
TEMPORARY_URL_MARKERS = (
    "replicate.delivery",
    "replicate.com/api/models",
    "oaidalleapiprodscus.blob.core.windows.net",
    "dalleproduse.blob.core.windows.net",
)


@dataclass(frozen=True)
class PersistedMedia:
    """Where a generated asset ended up."""

    url: str
    url_type: str
    blob_path: str | None = None

    @property
    def is_permanent(self) -> bool:
        return self.url_type == URL_TYPE_PERMANENT


def is_temporary_url(url: str | None) -> bool:
    """Check whether a URL points at a provider's expiring delivery host."""
    if not url:
        return False
    return any(marker in url for marker in TEMPORARY_URL_MARKERS)


def sanitize_path_component(value: str | None, fallback: str = "unknown") -> str:
    """Make a value safe to use as one segment of a blob path."""
    if not value:
        return fallback
    cleaned = re.sub(r"[^A-Za-z0-9_-]", "_", value)[:100]
    return cleaned or fallback


def sanitize_url_for_logging(url: str | None) -> str:
    """Strip query string and fragment (signatures, tokens) from a URL."""
    if not url:
        return ""
    if url.startswith("data:"):
        return url.split(",", 1)[0]
    try:
        parts = urlsplit(url)
    except ValueError:
        return "[invalid url]"
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


def extension_for(content_type: str | None, kind: MediaKind) -> str:
    """File extension for a content type, falling back to the kind's default."""
    if content_type and content_type in CONTENT_TYPE_EXTENSIONS:
        return CONTENT_TYPE_EXTENSIONS[content_type]
    return DEFAULT_EXTENSIONS[kind]


def build_blob_path(
    extension: str,
    project_id: str | None = None,
    scene_id: str | None = None,
    owner_id: str | None = None,
) -> str:
    """Build ``{project}/{scene}/{uuid}.{ext}`` (or ``{owner}/{uuid}.{ext}``)."""
    parts: list[str] = []
    if project_id:
        parts.append(sanitize_path_component(project_id))
        if scene_id:
            parts.append(sanitize_path_component(scene_id))
    else:
        parts.append(sanitize_path_component(owner_id, fallback="unassigned"))
    parts.append(f"{uuid.uuid4()}.{extension}")
    return "/".join(parts)


def to_data_url(data: bytes, content_type: str) -> str:
    """Encode bytes as a ``data:`` URL."""
    return f"data:{content_type};base64,{base64.b64encode(data).decode()}"


class MediaStorage:
    """Copies generated media into blob storage."""

    def __init__(
        self,
        blob_client: BlobClient | None = None,
        settings: AzureStorageSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        verified_containers: set[str] | None = None,
    ):
        """Initialize media storage.

        Args:
            blob_client: Blob client, defaults to the global one.
            settings: Storage settings, defaults to application settings.
            http_client: Client used to download provider output.
            verified_containers: Containers already known to exist.
        """
        self._settings = settings or get_settings().storage
        self._blob_client = blob_client
        self._http_client = http_client
        self._verified_containers = verified_containers if verified_containers is not None else set()

    @property
    def blob_client(self) -> BlobClient:
        if self._blob_client is None:
            self._blob_client = get_blob_client()
        return self._blob_client

    @property
    def is_configured(self) -> bool:
        """Whether uploads can be attempted at all."""
        return self._blob_client is not None or self._settings.is_configured

    def container_for(self, kind: MediaKind) -> str:
        return {
            MediaKind.VIDEO: self._settings.videos_container,
            MediaKind.AUDIO: self._settings.audio_container,
            MediaKind.VOICEOVER: self._settings.voiceovers_container,
            MediaKind.IMAGE: self._settings.images_container,
        }[kind]

    async def _ensure_container(self, container: str) -> None:
        if container in self._verified_containers:
            return
        await self.blob_client.ensure_container(container)
        self._verified_containers.add(container)

    async def _download(self, url: str, kind: MediaKind) -> tuple[bytes, str]:
        """Download provider output over HTTPS.

        Returns:
            The body and its content type (parameters stripped).
        """
        if urlsplit(url).scheme != "https":
            raise ValueError("Only HTTPS URLs can be persisted")

        timeout = self._settings.download_timeout_seconds
        if self._http_client is not None:
            response = await self._http_client.get(url, timeout=timeout, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                response = await client.get(url)
        response.raise_for_status()

        header = response.headers.get("content-type", "")
        content_type = header.split(";")[0].strip().lower() or DEFAULT_CONTENT_TYPES[kind]
        expected_prefix = "audio/" if kind in (MediaKind.AUDIO, MediaKind.VOICEOVER) else f"{kind.value}/"
        if not content_type.startswith(expected_prefix):
            logger.warning(
                "Unexpected content type for generated media",
                kind=kind.value,
                content_type=content_type,
                url=sanitize_url_for_logging(url),
            )
        return response.content, content_type

    async def _upload(
        self,
        data: bytes,
        content_type: str,
        kind: MediaKind,
        project_id: str | None,
        scene_id: str | None,
        owner_id: str | None,
    ) -> PersistedMedia:
        container = self.container_for(kind)
        await self._ensure_container(container)
        blob_path = build_blob_path(
            extension_for(content_type, kind),
            project_id=project_id,
            scene_id=scene_id,
            owner_id=owner_id,
        )
        url = await self.blob_client.upload_blob(
            container,
            blob_path,
            data,
            content_type=content_type,
        )
        logger.info(
            "Persisted generated media",
            kind=kind.value,
            container=container,
            blob_path=blob_path,
            size=len(data),
        )
        return PersistedMedia(url=url, url_type=URL_TYPE_PERMANENT, blob_path=blob_path)

    async def persist_url(
        self,
        temporary_url: str,
        kind: MediaKind,
        project_id: str | None,
        scene_id: str | None = None,
    ) -> PersistedMedia:
        """Copy a provider URL into storage.

        Never raises for storage problems: on any failure the input URL is
        returned flagged ``temporary``.
        """
        if not self.is_configured:
            logger.warning("Media storage not configured, keeping provider URL", kind=kind.value)
            return PersistedMedia(url=temporary_url, url_type=URL_TYPE_TEMPORARY)

        try:
            data, content_type = await self._download(temporary_url, kind)
            return await self._upload(data, content_type, kind, project_id, scene_id, None)
        except Exception as e:
            logger.warning(
                "Failed to persist generated media, using provider URL",
                kind=kind.value,
                url=sanitize_url_for_logging(temporary_url),
                error=str(e),
            )
            return PersistedMedia(url=temporary_url, url_type=URL_TYPE_TEMPORARY)

    async def persist_video(
        self, temporary_url: str, project_id: str | None, scene_id: str | None = None
    ) -> PersistedMedia:
        return await self.persist_url(temporary_url, MediaKind.VIDEO, project_id, scene_id)

    async def persist_audio(
        self, temporary_url: str, project_id: str | None, scene_id: str | None = None
    ) -> PersistedMedia:
        return await self.persist_url(temporary_url, MediaKind.AUDIO, project_id, scene_id)

    async def persist_image(
        self, temporary_url: str, project_id: str | None, scene_id: str | None = None
    ) -> PersistedMedia:
        return await self.persist_url(temporary_url, MediaKind.IMAGE, project_id, scene_id)

    async def persist_bytes(
        self,
        data: bytes,
        content_type: str,
        kind: MediaKind,
        project_id: str | None = None,
        scene_id: str | None = None,
        owner_id: str | None = None,
    ) -> PersistedMedia:
        """Store generated bytes, falling back to an inline ``data:`` URL."""
        if self.is_configured:
            try:
                return await self._upload(data, content_type, kind, project_id, scene_id, owner_id)
            except Exception as e:
                logger.warning(
                    "Failed to store generated media, returning inline data",
                    kind=kind.value,
                    size=len(data),
                    error=str(e),
                )
        else:
            logger.warning("Media storage not configured, returning inline data", kind=kind.value)
        return PersistedMedia(url=to_data_url(data, content_type), url_type=URL_TYPE_TEMPORARY)
