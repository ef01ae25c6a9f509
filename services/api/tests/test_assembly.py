"""Tests for Shotstack episode assembly."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from halcyon_api.services.generation import (
    AssemblyOptions,
    AudioTrack,
    OutcomeStatus,
    TextOverlay,
    VideoAssembler,
    VideoClip,
    estimate_assembly_credits,
)
from halcyon_api.services.generation.assembly import build_edit, map_render_status
from halcyon_shared.blob import PersistedMedia
from halcyon_shared.config import ShotstackSettings

RENDER_URL = "https://cdn.shotstack.io/au/stage/render.mp4"
BLOB_URL = "https://halcyon.blob.core.windows.net/videos/episode.mp4"


class FakeTime:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def clips(*durations: float) -> list[VideoClip]:
    return [VideoClip(url=f"https://clips/{i}.mp4", duration=d) for i, d in enumerate(durations)]


def make_assembler(handler, fake_time: FakeTime, api_key: str = "shotstack-key") -> tuple[VideoAssembler, MagicMock]:
    storage = MagicMock()
    storage.persist_video = AsyncMock(return_value=PersistedMedia(url=BLOB_URL, url_type="permanent"))
    assembler = VideoAssembler(
        storage,
        settings=ShotstackSettings(api_key=api_key),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=fake_time.sleep,
        clock=fake_time.clock,
    )
    return assembler, storage


class TestCredits:
    """Tests for render credit estimates."""

    def test_half_minute_minimum(self):
        assert estimate_assembly_credits(AssemblyOptions(project_id="p", clips=clips(5, 5, 5))) == 25

    def test_clips_without_duration_count_five_seconds(self):
        options = AssemblyOptions(project_id="p", clips=[VideoClip(url="https://c/1.mp4")] * 12)
        assert estimate_assembly_credits(options) == 50

    def test_transitions_overlap(self):
        options = AssemblyOptions(project_id="p", clips=clips(30, 30, 30), transition_type="fade")
        # 90s less two half-second overlaps
        assert estimate_assembly_credits(options) == 75

    def test_cut_has_no_overlap(self):
        options = AssemblyOptions(project_id="p", clips=clips(60, 60), transition_type="cut")
        assert estimate_assembly_credits(options) == 100


class TestBuildEdit:
    """Tests for the Shotstack edit document."""

    def test_clips_laid_end_to_end(self):
        edit = build_edit(AssemblyOptions(project_id="p", clips=clips(4, 6)))
        video = edit["timeline"]["tracks"][0]["clips"]
        assert [c["start"] for c in video] == [0.0, 4]
        assert [c["length"] for c in video] == [4, 6]
        assert edit["output"]["resolution"] == "fhd"

    def test_transitions_skip_outer_edges(self):
        edit = build_edit(AssemblyOptions(project_id="p", clips=clips(3, 3, 3), transition_type="wipe"))
        video = edit["timeline"]["tracks"][0]["clips"]
        assert video[0]["transition"] == {"out": "wipeRight"}
        assert video[1]["transition"] == {"in": "wipeRight", "out": "wipeRight"}
        assert video[2]["transition"] == {"in": "wipeRight"}

    def test_audio_and_titles_get_their_own_tracks(self):
        options = AssemblyOptions(
            project_id="p",
            clips=clips(10),
            audio_tracks=[
                AudioTrack(url="https://a/music.mp3", type="music"),
                AudioTrack(url="https://a/voice.mp3", type="voiceover", volume=0.8),
            ],
            text_overlays=[TextOverlay(text="The End", start_time=8, duration=2)],
            resolution="4k",
        )
        tracks = build_edit(options)["timeline"]["tracks"]

        assert len(tracks) == 4
        assert tracks[1]["clips"][0]["asset"]["volume"] == 0.3
        assert tracks[1]["clips"][0]["length"] == 10
        assert tracks[2]["clips"][0]["asset"]["volume"] == 0.8
        assert tracks[3]["clips"][0]["asset"] == {"type": "title", "text": "The End"}

    @pytest.mark.parametrize(
        "raw,expected",
        [("fetching", "queued"), ("saving", "rendering"), ("done", "completed"), ("mystery", "rendering")],
    )
    def test_status_mapping(self, raw, expected):
        assert map_render_status(raw) == expected


class TestVideoAssembler:
    """Tests for render submission and polling."""

    @pytest.mark.asyncio
    async def test_assembles_and_persists(self):
        polls = iter(["queued", "rendering", "done"])
        submitted = {}

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["x-api-key"] == "shotstack-key"
            if request.method == "POST":
                submitted["path"] = request.url.path
                return httpx.Response(201, json={"success": True, "response": {"id": "render-1"}})
            status = next(polls)
            return httpx.Response(
                200,
                json={"response": {"status": status, "url": RENDER_URL if status == "done" else None}},
            )

        fake_time = FakeTime()
        assembler, storage = make_assembler(handler, fake_time)

        outcome = await assembler.assemble(AssemblyOptions(project_id="p1", clips=clips(10, 10)))

        assert outcome.status == OutcomeStatus.OK
        assert outcome.value.url == BLOB_URL
        assert outcome.value.credits == 25
        assert outcome.value.metadata == {"render_id": "render-1"}
        assert submitted["path"] == "/stage/render"
        assert fake_time.sleeps == [5.0, 5.0, 5.0]
        storage.persist_video.assert_awaited_once_with(RENDER_URL, "p1", None)

    @pytest.mark.asyncio
    async def test_render_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(201, json={"success": True, "response": {"id": "render-1"}})
            return httpx.Response(200, json={"response": {"status": "rendering"}})

        fake_time = FakeTime()
        assembler, storage = make_assembler(handler, fake_time)

        outcome = await assembler.assemble(AssemblyOptions(project_id="p1", clips=clips(10)))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error == "Render timed out after 10 minutes"
        assert len(fake_time.sleeps) == 120
        storage.persist_video.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_render_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(201, json={"success": True, "response": {"id": "render-1"}})
            return httpx.Response(200, json={"response": {"status": "failed", "error": "Bad asset"}})

        assembler, _ = make_assembler(handler, FakeTime())

        outcome = await assembler.assemble(AssemblyOptions(project_id="p1", clips=clips(10)))

        assert outcome.error == "Bad asset"

    @pytest.mark.asyncio
    async def test_submit_error(self):
        assembler, _ = make_assembler(lambda request: httpx.Response(500, json={}), FakeTime())

        outcome = await assembler.assemble(AssemblyOptions(project_id="p1", clips=clips(10)))

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error == "Failed to start video assembly"

    @pytest.mark.asyncio
    async def test_requires_clips(self):
        assembler, _ = make_assembler(lambda request: httpx.Response(500), FakeTime())

        outcome = await assembler.assemble(AssemblyOptions(project_id="p1", clips=[]))

        assert outcome.error == "At least one video clip is required for assembly."

    @pytest.mark.asyncio
    async def test_not_configured(self):
        assembler, _ = make_assembler(lambda request: httpx.Response(500), FakeTime(), api_key="")

        outcome = await assembler.assemble(AssemblyOptions(project_id="p1", clips=clips(10)))

        assert outcome.error == "Video assembly is not configured"
