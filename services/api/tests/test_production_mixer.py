"""Tests for the single-scene production mixer."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from halcyon_api.services import ProductionMixer, ProductionRequest, ProductionStage
from halcyon_api.services.generation import GeneratedMedia, MediaType, Outcome
from halcyon_api.services.production_mixer import (
    ProductionOptions,
    build_music_prompt,
    build_video_prompt,
    mixer_voiceover_credits,
)
from halcyon_api.services.profiles import get_profile
from halcyon_api.services.progress import ProgressChannel, SimpleEventSink

VIDEO_URL = "https://blob/videos/scene.mp4"
MUSIC_URL = "https://blob/audio/scene.mp3"
VOICE_URL = "https://blob/voiceovers/scene.mp3"
MIX_URL = "https://blob/videos/mix.mp4"


def ok(url: str, media_type: MediaType, credits: int, duration: float | None = None) -> Outcome:
    return Outcome.ok(GeneratedMedia(url=url, media_type=media_type, credits=credits, duration=duration))


def generator(outcome: Outcome) -> MagicMock:
    fake = MagicMock()
    fake.generate = AsyncMock(return_value=outcome)
    return fake


def make_mixer(
    video: Outcome | None = None,
    music: Outcome | None = None,
    voiceover: Outcome | None = None,
    assembler: MagicMock | None = None,
) -> tuple[ProductionMixer, SimpleEventSink]:
    channel = ProgressChannel()
    sink = SimpleEventSink()
    channel.add_sink(sink)
    mixer = ProductionMixer(
        video=generator(video or ok(VIDEO_URL, MediaType.VIDEO, 10, duration=3)),
        music=generator(music or ok(MUSIC_URL, MediaType.MUSIC, 5)),
        voiceover=generator(voiceover or ok(VOICE_URL, MediaType.VOICEOVER, 1)),
        assembler=assembler,
        channel=channel,
    )
    return mixer, sink


def request(**options) -> ProductionRequest:
    return ProductionRequest(
        project_id="proj-1",
        scene_id="scene-1",
        prompt="A lighthouse in a storm",
        options=ProductionOptions(**options) if options else None,
        user_id="auth0|user",
    )


class TestPrompts:
    """Tests for prompt enrichment."""

    def test_video_prompt_adds_modifiers(self):
        prompt = build_video_prompt("A lighthouse", get_profile("cinematic-premium").video)
        assert prompt.startswith("A lighthouse. cinematic style, filmic-warm color grading")
        assert "anamorphic widescreen" in prompt

    def test_music_prompt_includes_vocals(self):
        prompt = build_music_prompt("A lighthouse", get_profile("cinematic-premium").audio)
        assert prompt.startswith("orchestral, epic mood, dynamic tempo, with cinematic-choir vocals soundtrack for")

    @pytest.mark.parametrize("length,expected", [(1, 2), (1000, 2), (1500, 4), (2001, 6)])
    def test_voiceover_credits(self, length, expected):
        assert mixer_voiceover_credits("x" * length) == expected


class TestProductionMixer:
    """Tests for running a scene through the mixer."""

    @pytest.mark.asyncio
    async def test_video_and_music_by_default(self):
        mixer, sink = make_mixer()

        result = await mixer.produce(request())

        assert result.success
        assert result.profile.id == "standard"
        assert result.video_url == VIDEO_URL
        assert result.audio_url == MUSIC_URL
        assert result.voiceover_url is None
        assert result.credits_used == 15
        assert result.progress.stage == ProductionStage.COMPLETE
        assert sink.stages == [
            ProductionStage.INITIALIZING,
            ProductionStage.GENERATING_VIDEO,
            ProductionStage.GENERATING_VIDEO,
            ProductionStage.GENERATING_AUDIO,
            ProductionStage.GENERATING_AUDIO,
            ProductionStage.COMPLETE,
        ]
        kwargs = mixer.video.generate.call_args.kwargs
        assert kwargs["quality_tier"] == "standard"
        assert kwargs["project_id"] == "proj-1"
        assert kwargs["scene_id"] == "scene-1"

    @pytest.mark.asyncio
    async def test_video_failure_fails_the_run(self):
        mixer, sink = make_mixer(video=Outcome.failed("Video generation request timed out"))

        result = await mixer.produce(request())

        assert not result.success
        assert result.error == "Video generation request timed out"
        assert result.video_url is None
        assert result.progress.stage == ProductionStage.FAILED
        assert result.credits_used == 0
        assert result.progress.progress == 0
        mixer.music.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_music_failure_is_recorded(self):
        mixer, _ = make_mixer(music=Outcome.failed("Music generation failed"))

        result = await mixer.produce(request())

        assert result.success
        assert result.audio_url is None
        assert result.credits_used == 10
        assert result.progress.errors == ["audio: Music generation failed"]

    @pytest.mark.asyncio
    async def test_music_can_be_skipped(self):
        mixer, _ = make_mixer()

        result = await mixer.produce(request(include_music=False))

        assert result.success
        assert result.video_url == VIDEO_URL
        assert result.audio_url is None
        assert result.credits_used == 10
        mixer.music.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_voiceover_billed_per_thousand_characters(self):
        mixer, _ = make_mixer()
        script = "Waves crash. " * 100

        result = await mixer.produce(request(script=script, include_voiceover=True, content_type="documentary"))

        assert result.voiceover_url == VOICE_URL
        assert result.stage_outcomes["voiceover"].value.credits == mixer_voiceover_credits(script)
        assert result.credits_used == 10 + 5 + mixer_voiceover_credits(script)
        assert mixer.voiceover.generate.call_args.kwargs["voice"] == "onyx"

    @pytest.mark.asyncio
    async def test_auto_selects_profile_from_options(self):
        mixer, _ = make_mixer()

        result = await mixer.produce(request(content_type="documentary"))

        assert result.profile.id == "documentary-professional"
        assert mixer.video.generate.call_args.kwargs["duration"] == "long"

    @pytest.mark.asyncio
    async def test_explicit_profile(self):
        mixer, _ = make_mixer()
        req = request()
        req.profile_id = "social-viral"

        result = await mixer.produce(req)

        assert result.profile.id == "social-viral"
        assert mixer.video.generate.call_args.kwargs["aspect_ratio"] == "9:16"

    @pytest.mark.asyncio
    async def test_captions(self):
        mixer, _ = make_mixer()

        result = await mixer.produce(request(script="Hello there. General Kenobi.", include_captions=True))

        assert result.captions_url.startswith("data:text/vtt;base64,")

    @pytest.mark.asyncio
    async def test_mixing_combines_tracks(self):
        assembler = MagicMock()
        assembler.is_configured = True
        assembler.assemble = AsyncMock(return_value=ok(MIX_URL, MediaType.VIDEO, 25))
        mixer, _ = make_mixer(assembler=assembler)

        result = await mixer.produce(request(assemble=True))

        assert result.combined_url == MIX_URL
        assert result.credits_used == 40
        options = assembler.assemble.call_args.args[0]
        assert [clip.url for clip in options.clips] == [VIDEO_URL]
        assert [track.type for track in options.audio_tracks] == ["music"]

    @pytest.mark.asyncio
    async def test_mixing_skipped_without_assembler(self):
        mixer, sink = make_mixer()

        result = await mixer.produce(request(assemble=True))

        assert result.combined_url is None
        assert ProductionStage.MIXING not in sink.stages

    @pytest.mark.asyncio
    async def test_video_only(self):
        mixer, sink = make_mixer()

        result = await mixer.produce(
            request(
                script="Narration that should not be read.",
                include_music=False,
                include_voiceover=False,
                include_captions=False,
            )
        )

        assert result.success
        assert result.video_url == VIDEO_URL
        assert result.audio_url is None
        assert result.voiceover_url is None
        assert result.captions_url is None
        assert result.combined_url is None
        assert result.credits_used == 10
        assert sink.stages == [
            ProductionStage.INITIALIZING,
            ProductionStage.GENERATING_VIDEO,
            ProductionStage.GENERATING_VIDEO,
            ProductionStage.COMPLETE,
        ]
        mixer.voiceover.generate.assert_not_awaited()


class TestMixerReuse:
    """Tests for running several productions on one mixer."""

    @pytest.mark.asyncio
    async def test_second_run_on_same_mixer(self):
        mixer, sink = make_mixer()

        first = await mixer.produce(request())
        second = await mixer.produce(request())

        assert first.success and second.success
        assert second.credits_used == 15
        assert second.progress.stage == ProductionStage.COMPLETE
        assert sink.progress_values == [0, 5, 40, 45, 65, 100] * 2

    @pytest.mark.asyncio
    async def test_run_after_failed_run(self):
        mixer, _ = make_mixer()
        mixer.video.generate.side_effect = [
            Outcome.failed("Video generation request timed out"),
            ok(VIDEO_URL, MediaType.VIDEO, 10),
        ]

        failed = await mixer.produce(request())
        recovered = await mixer.produce(request())

        assert not failed.success
        assert recovered.success
        assert recovered.progress.errors == []

    @pytest.mark.asyncio
    async def test_concurrent_runs_keep_their_own_profile(self):
        mixer, sink = make_mixer()
        viral = request()
        viral.profile_id = "social-viral"

        results = await asyncio.gather(
            mixer.produce(viral),
            mixer.produce(request(content_type="documentary")),
            mixer.produce(request()),
        )

        assert [r.profile.id for r in results] == [
            "social-viral",
            "documentary-professional",
            "standard",
        ]
        assert all(r.success for r in results)
        assert mixer.profile.id == "standard"
        assert sink.stages.count(ProductionStage.COMPLETE) == 3
