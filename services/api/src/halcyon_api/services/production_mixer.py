"""Production mixer: one scene through video, music, voiceover, captions and mixing.

The mixer picks a production profile, tunes each adapter call from it, and
runs the stages on a ``Pipeline`` so progress is reported uniformly.
Video is mandatory; every later stage may fail without failing the run.
"""

import math
from dataclasses import dataclass, field, replace

from halcyon_shared.logging import LogContext, get_logger

from .captions import build_caption_track
from .generation.assembly import AssemblyOptions, AudioTrack, VideoAssembler, VideoClip
from .generation.music import VALID_GENRES, VALID_MOODS, VALID_TEMPOS, MusicGenerator
from .generation.outcome import GeneratedMedia, Outcome
from .generation.video import ASPECT_RATIO_SIZES, VideoGenerator
from .generation.voiceover import VALID_MODELS, VALID_VOICES, VoiceoverGenerator
from .pipeline import FailurePolicy, Pipeline, StageSpec
from .profiles import (
    AudioConfig,
    ProductionProfile,
    VideoConfig,
    get_optimal_audio_settings,
    get_optimal_caption_settings,
    get_optimal_voiceover_settings,
    get_profile,
    select_best_profile,
)
from .progress import ProductionStage, ProgressChannel, ProgressUpdate

logger = get_logger(__name__)


@dataclass
class ProductionOptions:
    """Hints that steer profile selection and per-stage settings."""

    content_type: str | None = None
    target_platform: str | None = None
    quality_tier: str | None = None
    genre: str | None = None
    mood: str | None = None
    pacing: str | None = None
    has_dialogue: bool = False
    script: str | None = None
    include_voiceover: bool = False
    include_captions: bool = False
    include_music: bool = True
    assemble: bool = False
    accessibility_required: bool = False


@dataclass
class ProductionRequest:
    project_id: str
    scene_id: str
    prompt: str
    profile_id: str | None = None
    options: ProductionOptions | None = None
    user_id: str | None = None


@dataclass(frozen=True)
class ProductionResult:
    """Everything a mixer run produced."""

    success: bool
    profile: ProductionProfile
    credits_used: int
    processing_time: float
    video_url: str | None = None
    audio_url: str | None = None
    voiceover_url: str | None = None
    captions_url: str | None = None
    combined_url: str | None = None
    progress: ProgressUpdate | None = None
    error: str | None = None
    warnings: tuple[str, ...] = ()
    stage_outcomes: dict[str, Outcome] = field(default_factory=dict)


def build_video_prompt(prompt: str, video: VideoConfig) -> str:
    """Add production-quality style modifiers to a scene prompt."""
    modifiers = [
        f"{video.style} style",
        f"{video.color_grading} color grading",
        f"{video.motion_intensity} motion",
        f"{video.resolution} quality",
        f"cinematic {video.fps}fps",
    ]
    if video.aspect_ratio == "21:9":
        modifiers.append("anamorphic widescreen")
    return f"{prompt}. {', '.join(modifiers)}. Professional cinematography, high production value."


def build_music_prompt(prompt: str, audio: AudioConfig) -> str:
    """Describe the soundtrack for a scene from the audio config."""
    modifiers = []
    if audio.genre:
        modifiers.append(audio.genre)
    if audio.mood:
        modifiers.append(f"{audio.mood} mood")
    if audio.tempo:
        modifiers.append(f"{audio.tempo} tempo")
    if audio.include_vocals and audio.vocal_style:
        modifiers.append(f"with {audio.vocal_style} vocals")
    return f"{', '.join(modifiers)} soundtrack for: {prompt}. Professional production, modern sound design."


def mixer_voiceover_credits(script: str) -> int:
    """Voiceover charge inside a production: 2 credits per started 1000 characters."""
    return math.ceil(len(script) / 1000) * 2


def _allowed(value: str | None, allowed: tuple[str, ...]) -> str | None:
    return value if value in allowed else None


@dataclass
class _MixContext:
    request: ProductionRequest
    options: ProductionOptions
    profile: ProductionProfile
    outcomes: dict[str, Outcome] = field(default_factory=dict)

    def url_of(self, name: str) -> str | None:
        outcome = self.outcomes.get(name)
        if outcome is None or not outcome.usable:
            return None
        return outcome.value.url


class ProductionMixer:
    """Coordinates the generation adapters for a single scene."""

    def __init__(
        self,
        video: VideoGenerator,
        music: MusicGenerator,
        voiceover: VoiceoverGenerator,
        assembler: VideoAssembler | None = None,
        channel: ProgressChannel | None = None,
        profile_id: str | None = None,
    ):
        self.video = video
        self.music = music
        self.voiceover = voiceover
        self.assembler = assembler
        self.channel = channel or ProgressChannel()
        self.profile = get_profile(profile_id)

    def set_profile(self, profile: ProductionProfile) -> None:
        self.profile = profile

    def auto_select_profile(self, options: ProductionOptions) -> ProductionProfile:
        self.profile = self.choose_profile(options)
        return self.profile

    @staticmethod
    def choose_profile(options: ProductionOptions) -> ProductionProfile:
        return select_best_profile(
            content_type=options.content_type,
            target_platform=options.target_platform,
            quality_tier=options.quality_tier,
            genre=options.genre,
            mood=options.mood,
        )

    def profile_for(self, request: ProductionRequest) -> ProductionProfile:
        """The profile one run uses, leaving the mixer's default untouched."""
        if request.profile_id:
            return get_profile(request.profile_id)
        if request.options is not None:
            return self.choose_profile(request.options)
        return self.profile

    async def _video_stage(self, ctx: _MixContext) -> Outcome:
        video = ctx.profile.video
        return await self.video.generate(
            build_video_prompt(ctx.request.prompt, video),
            duration="long" if video.duration == "long" else "short",
            aspect_ratio=video.aspect_ratio if video.aspect_ratio in ASPECT_RATIO_SIZES else "16:9",
            quality_tier=ctx.options.quality_tier or ctx.profile.quality_tier,
            project_id=ctx.request.project_id,
            scene_id=ctx.request.scene_id,
        )

    async def _audio_stage(self, ctx: _MixContext) -> Outcome:
        options = ctx.options
        optimal = get_optimal_audio_settings(
            mood=options.mood or "neutral",
            pacing=options.pacing or "medium",
            has_dialogue=options.has_dialogue,
        )
        audio = replace(
            ctx.profile.audio,
            genre=optimal["genre"] or ctx.profile.audio.genre,
            mood=optimal["mood"] or ctx.profile.audio.mood,
            tempo=optimal["tempo"] or ctx.profile.audio.tempo,
            include_vocals=optimal["include_vocals"],
        )
        return await self.music.generate(
            build_music_prompt(ctx.request.prompt, audio),
            duration=ctx.profile.audio.duration,
            genre=_allowed(audio.genre, VALID_GENRES),
            mood=_allowed(audio.mood, VALID_MOODS),
            tempo=_allowed(audio.tempo, VALID_TEMPOS),
            project_id=ctx.request.project_id,
            scene_id=ctx.request.scene_id,
        )

    async def _voiceover_stage(self, ctx: _MixContext) -> Outcome:
        script = ctx.options.script or ""
        profile_voice = ctx.profile.voiceover
        optimal = get_optimal_voiceover_settings(
            content_type=ctx.options.content_type or "narrative",
            emotional_tone=ctx.options.mood or "engaging",
        )
        voice = next((v for v in (optimal["voice"], profile_voice.voice) if v in VALID_VOICES), "nova")
        outcome = await self.voiceover.generate(
            script,
            voice=voice,
            model=profile_voice.model if profile_voice.model in VALID_MODELS else "tts-1",
            speed=optimal["speed"] or profile_voice.speed,
            project_id=ctx.request.project_id,
            scene_id=ctx.request.scene_id,
            user_id=ctx.request.user_id,
        )
        if not outcome.usable:
            return outcome
        # Productions bill narration per started thousand characters.
        media = replace(outcome.value, credits=mixer_voiceover_credits(script))
        return replace(outcome, value=media)

    async def _captions_stage(self, ctx: _MixContext) -> Outcome:
        config = get_optimal_caption_settings(
            platform=ctx.options.target_platform or ctx.profile.target_platform,
            is_accessibility_required=ctx.options.accessibility_required,
        )
        track = build_caption_track(ctx.options.script or "", config.timing)
        if track.cue_count == 0:
            return Outcome.failed("Script produced no caption segments")
        return Outcome.ok(track)

    async def _mixing_stage(self, ctx: _MixContext) -> Outcome:
        tracks = []
        if music_url := ctx.url_of("audio"):
            tracks.append(AudioTrack(url=music_url, type="music"))
        if voice_url := ctx.url_of("voiceover"):
            tracks.append(AudioTrack(url=voice_url, type="voiceover"))

        video = ctx.profile.video
        video_media: GeneratedMedia = ctx.outcomes["video"].value
        return await self.assembler.assemble(
            AssemblyOptions(
                project_id=ctx.request.project_id,
                scene_id=ctx.request.scene_id,
                clips=[VideoClip(url=video_media.url, duration=video_media.duration)],
                audio_tracks=tracks,
                resolution=video.resolution if video.resolution in ("720p", "1080p", "4k") else "1080p",
                aspect_ratio=video.aspect_ratio,
                fps=video.fps,
            )
        )

    def _tracked(self, name: str, stage_run):
        async def run(ctx: _MixContext) -> Outcome:
            outcome = await stage_run(ctx)
            ctx.outcomes[name] = outcome
            return outcome

        return run

    def build_stages(self) -> list[StageSpec]:
        """The mixer's stage table."""
        return [
            StageSpec(
                name="video",
                stage=ProductionStage.GENERATING_VIDEO,
                start_progress=5,
                end_progress=40,
                task="Generating video content...",
                done_task="Video generation complete",
                eta_seconds=120,
                on_failure=FailurePolicy.ABORT,
                run=self._tracked("video", self._video_stage),
            ),
            StageSpec(
                name="audio",
                stage=ProductionStage.GENERATING_AUDIO,
                start_progress=45,
                end_progress=65,
                task="Composing soundtrack...",
                done_task="Soundtrack complete",
                eta_seconds=60,
                should_run=lambda ctx: ctx.options.include_music is not False,
                run=self._tracked("audio", self._audio_stage),
            ),
            StageSpec(
                name="voiceover",
                stage=ProductionStage.GENERATING_VOICEOVER,
                start_progress=70,
                end_progress=85,
                task="Recording voiceover...",
                done_task="Voiceover complete",
                eta_seconds=30,
                should_run=lambda ctx: bool(ctx.options.include_voiceover and ctx.options.script),
                run=self._tracked("voiceover", self._voiceover_stage),
            ),
            StageSpec(
                name="captions",
                stage=ProductionStage.GENERATING_CAPTIONS,
                start_progress=88,
                end_progress=95,
                task="Generating captions...",
                done_task="Captions complete",
                eta_seconds=10,
                should_run=lambda ctx: bool(ctx.options.include_captions and ctx.options.script),
                run=self._tracked("captions", self._captions_stage),
            ),
            StageSpec(
                name="mixing",
                stage=ProductionStage.MIXING,
                start_progress=96,
                end_progress=99,
                task="Mixing final output...",
                done_task="Mixing complete",
                eta_seconds=120,
                should_run=lambda ctx: bool(
                    ctx.options.assemble
                    and self.assembler is not None
                    and self.assembler.is_configured
                    and ctx.url_of("video")
                ),
                run=self._tracked("mixing", self._mixing_stage),
            ),
        ]

    async def produce(self, request: ProductionRequest) -> ProductionResult:
        """Produce one scene.

        Args:
            request: Scene prompt, ids and production options.

        Returns:
            The result. ``success`` is False only when the video stage fails;
            other stage failures show up in ``progress.errors``.
        """
        options = request.options or ProductionOptions()
        ctx = _MixContext(request=request, options=options, profile=self.profile_for(request))

        with LogContext(project_id=request.project_id, scene_id=request.scene_id):
            logger.info("Production started", profile=ctx.profile.id)
            run = await Pipeline(self.build_stages(), self.channel).run(ctx)
            logger.info(
                "Production finished",
                success=run.success,
                credits_used=run.credits_used,
                failed_stage=run.failed_stage,
            )

        return ProductionResult(
            success=run.success,
            profile=ctx.profile,
            credits_used=run.credits_used,
            processing_time=run.processing_time,
            video_url=ctx.url_of("video") if run.success else None,
            audio_url=ctx.url_of("audio"),
            voiceover_url=ctx.url_of("voiceover"),
            captions_url=ctx.url_of("captions"),
            combined_url=ctx.url_of("mixing"),
            progress=run.progress,
            error=run.error,
            warnings=tuple(run.warnings),
            stage_outcomes=dict(run.outcomes),
        )
