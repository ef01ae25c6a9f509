"""Episode assembly: stitch clips, music, voiceover and titles with Shotstack.

Rendering is charged at 50 credits per minute of output with a half
minute minimum.
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from halcyon_shared.blob import MediaStorage
from halcyon_shared.config import ShotstackSettings, get_settings
from halcyon_shared.logging import get_logger
from halcyon_shared.telemetry import get_tracer, record_exception_on_span

from .outcome import GeneratedMedia, MediaType, Outcome, media_outcome

logger = get_logger(__name__)
tracer = get_tracer(__name__)

CREDITS_PER_MINUTE = 50
MIN_BILLED_MINUTES = 0.5
DEFAULT_CLIP_SECONDS = 5.0

TransitionType = Literal["cut", "fade", "dissolve", "wipe"]
Resolution = Literal["720p", "1080p", "4k"]

TRANSITION_NAMES = {"fade": "fade", "dissolve": "fade", "wipe": "wipeRight"}
RESOLUTION_NAMES = {"720p": "hd", "1080p": "fhd", "4k": "uhd"}
RENDER_STATUSES = {
    "queued": "queued",
    "fetching": "queued",
    "rendering": "rendering",
    "saving": "rendering",
    "done": "completed",
    "failed": "failed",
}


@dataclass(frozen=True)
class VideoClip:
    url: str
    duration: float | None = None
    start_time: float | None = None
    trim_start: float | None = None


@dataclass(frozen=True)
class AudioTrack:
    url: str
    type: Literal["music", "voiceover", "sfx"]
    volume: float | None = None
    start_time: float | None = None


@dataclass(frozen=True)
class TextOverlay:
    text: str
    start_time: float
    duration: float


@dataclass
class AssemblyOptions:
    """Everything needed to render one video."""

    project_id: str
    clips: list[VideoClip]
    scene_id: str | None = None
    audio_tracks: list[AudioTrack] = field(default_factory=list)
    text_overlays: list[TextOverlay] = field(default_factory=list)
    resolution: Resolution = "1080p"
    aspect_ratio: str = "16:9"
    fps: int = 30
    transition_type: TransitionType | None = None
    transition_duration: float | None = None
    format: Literal["mp4", "webm", "gif"] = "mp4"
    quality: Literal["low", "medium", "high"] | None = None


@dataclass(frozen=True)
class RenderStatus:
    status: Literal["queued", "rendering", "completed", "failed"]
    progress: float | None = None
    url: str | None = None
    error: str | None = None


def map_render_status(status: str | None) -> str:
    """Map a Shotstack render status onto ours (unknown means still rendering)."""
    return RENDER_STATUSES.get(status or "", "rendering")


def total_clip_seconds(options: AssemblyOptions) -> float:
    return sum(clip.duration or DEFAULT_CLIP_SECONDS for clip in options.clips)


def estimate_assembly_credits(options: AssemblyOptions) -> int:
    """Credits for rendering, after overlap from non-cut transitions."""
    seconds = total_clip_seconds(options)
    if options.transition_type and options.transition_type != "cut":
        transition = options.transition_duration or 1
        seconds -= (len(options.clips) - 1) * transition * 0.5
    minutes = max(MIN_BILLED_MINUTES, seconds / 60)
    return math.ceil(minutes * CREDITS_PER_MINUTE)


def build_edit(options: AssemblyOptions) -> dict[str, Any]:
    """Build the Shotstack edit document for the timeline."""
    tracks: list[dict[str, Any]] = []
    transition = None
    if options.transition_type and options.transition_type != "cut":
        transition = TRANSITION_NAMES.get(options.transition_type, "fade")

    video_clips = []
    cursor = 0.0
    last = len(options.clips) - 1
    for i, clip in enumerate(options.clips):
        length = clip.duration or DEFAULT_CLIP_SECONDS
        start = clip.start_time if clip.start_time is not None else cursor
        asset: dict[str, Any] = {"type": "video", "src": clip.url}
        if clip.trim_start is not None:
            asset["trim"] = clip.trim_start
        entry: dict[str, Any] = {"asset": asset, "start": start, "length": length, "fit": "cover"}
        if transition:
            transitions = {}
            if i > 0:
                transitions["in"] = transition
            if i < last:
                transitions["out"] = transition
            if transitions:
                entry["transition"] = transitions
        video_clips.append(entry)
        cursor = start + length
    tracks.append({"clips": video_clips})

    music, voice = [], []
    for track in options.audio_tracks:
        default_volume = 0.3 if track.type == "music" else 1.0
        entry = {
            "asset": {
                "type": "audio",
                "src": track.url,
                "volume": track.volume if track.volume is not None else default_volume,
            },
            "start": track.start_time or 0,
            "length": cursor,
        }
        (music if track.type == "music" else voice).append(entry)
    if music:
        tracks.append({"clips": music})
    if voice:
        tracks.append({"clips": voice})

    if options.text_overlays:
        tracks.append({
            "clips": [
                {
                    "asset": {"type": "title", "text": overlay.text},
                    "start": overlay.start_time,
                    "length": overlay.duration,
                }
                for overlay in options.text_overlays
            ]
        })

    output: dict[str, Any] = {
        "format": options.format,
        "resolution": RESOLUTION_NAMES.get(options.resolution, "fhd"),
        "aspectRatio": options.aspect_ratio,
        "fps": options.fps,
    }
    if options.quality:
        output["quality"] = options.quality

    return {"timeline": {"tracks": tracks, "background": "#000000"}, "output": output}


class VideoAssembler:
    """Submits renders to Shotstack and waits for the result."""

    def __init__(
        self,
        storage: MediaStorage,
        settings: ShotstackSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.storage = storage
        self.settings = settings or get_settings().shotstack
        self._http_client = http_client
        self._sleep = sleep
        self._clock = clock

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.api_key)

    @property
    def base_url(self) -> str:
        return f"https://api.shotstack.io/{self.settings.env}"

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.request_timeout_seconds)
        return self._http_client

    async def get_render_status(self, render_id: str) -> RenderStatus:
        """Fetch one render's status. Network problems read as failed."""
        try:
            response = await self.http_client.get(
                f"{self.base_url}/render/{render_id}",
                headers={"x-api-key": self.settings.api_key},
                timeout=self.settings.request_timeout_seconds,
            )
        except httpx.HTTPError as e:
            return RenderStatus(status="failed", error=str(e) or "Failed to check status")
        if response.status_code >= 400:
            return RenderStatus(status="failed", error="Failed to get render status")

        body = response.json().get("response") or {}
        return RenderStatus(
            status=map_render_status(body.get("status")),
            progress=body.get("progress"),
            url=body.get("url"),
            error=body.get("error"),
        )

    async def _wait_for_render(self, render_id: str) -> RenderStatus:
        deadline = self._clock() + self.settings.max_wait_seconds
        while self._clock() < deadline:
            await self._sleep(self.settings.poll_interval_seconds)
            status = await self.get_render_status(render_id)
            if status.status in ("completed", "failed"):
                return status
        minutes = int(self.settings.max_wait_seconds // 60)
        return RenderStatus(status="failed", error=f"Render timed out after {minutes} minutes")

    async def assemble(self, options: AssemblyOptions) -> Outcome[GeneratedMedia]:
        """Render the timeline and persist the output."""
        if not self.is_configured:
            return Outcome.failed("Video assembly is not configured")
        if not options.clips:
            return Outcome.failed("At least one video clip is required for assembly.")

        with tracer.start_as_current_span("assembly.render") as span:
            span.set_attribute("assembly.clips", len(options.clips))
            try:
                response = await self.http_client.post(
                    f"{self.base_url}/render",
                    json=build_edit(options),
                    headers={"x-api-key": self.settings.api_key},
                    timeout=self.settings.request_timeout_seconds,
                )
            except httpx.HTTPError as e:
                record_exception_on_span(span, e)
                logger.error("Shotstack request failed", error=str(e))
                return Outcome.failed("Failed to start video assembly")

            if response.status_code >= 400:
                logger.error("Shotstack API error", status_code=response.status_code)
                return Outcome.failed("Failed to start video assembly")

            body = response.json()
            render_id = (body.get("response") or {}).get("id")
            if not body.get("success") or not render_id:
                return Outcome.failed(body.get("message") or "Failed to queue render job")

            span.set_attribute("shotstack.render_id", render_id)
            logger.info("Render queued", render_id=render_id, project_id=options.project_id)

            final = await self._wait_for_render(render_id)
            if final.status != "completed" or not final.url:
                logger.warning("Render did not complete", render_id=render_id, error=final.error)
                return Outcome.failed(final.error or "Video assembly failed")

            persisted = await self.storage.persist_video(final.url, options.project_id, options.scene_id)

        return media_outcome(
            GeneratedMedia(
                url=persisted.url,
                media_type=MediaType.VIDEO,
                credits=estimate_assembly_credits(options),
                url_type=persisted.url_type,
                duration=total_clip_seconds(options),
                metadata={"render_id": render_id},
            )
        )
