"""Full episode production: prompt or scenes in, one assembled video out.

Scenes are broken into five-second shots, each shot becomes a video clip,
music and narration are layered on top and Shotstack renders the result.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Any

from halcyon_shared.config import Settings, get_settings
from halcyon_shared.logging import LogContext, get_logger

from .captions import build_caption_track
from .generation.assembly import (
    CREDITS_PER_MINUTE,
    MIN_BILLED_MINUTES,
    AssemblyOptions,
    AudioTrack,
    VideoAssembler,
    VideoClip,
)
from .generation.music import MUSIC_CREDIT_COST, VALID_GENRES, VALID_MOODS, MusicGenerator
from .generation.outcome import GenerationValidationError, Outcome
from .generation.video import VIDEO_CREDIT_COST, VideoGenerator
from .generation.voiceover import MAX_TEXT_LENGTH, VALID_VOICES, VoiceoverGenerator
from .pipeline import FailurePolicy, Pipeline, StageSpec
from .progress import ProductionStage, ProgressChannel, ProgressUpdate

logger = get_logger(__name__)

DEFAULT_TARGET_DURATION = 60
SHOT_SECONDS = 5
DEFAULT_SCENE_SECONDS = 10
SCENE_SECONDS = 20
MAX_MUSIC_SECONDS = 30
SHOT_TYPES = ("establishing wide shot", "medium shot", "close-up", "dynamic tracking shot")


@dataclass
class SceneInput:
    id: str
    description: str
    title: str | None = None
    dialogue: list[str] = field(default_factory=list)
    duration: float | None = None
    mood: str | None = None
    setting: str | None = None


@dataclass
class AudioPreferences:
    include_music_track: bool = True
    include_voiceover: bool = True
    include_captions: bool = False
    music_volume: float | None = None
    voiceover_volume: float | None = None
    default_voice: str | None = None


@dataclass
class GenerationPreferences:
    music_mood: str | None = None
    music_genre: str | None = None


@dataclass
class AssemblyPreferences:
    resolution: str = "1080p"
    aspect_ratio: str = "16:9"
    transition_type: str = "fade"
    transition_duration: float = 0.5
    format: str = "mp4"
    quality: str = "high"


@dataclass
class ProductionSettings:
    """User preferences for an episode."""

    audio: AudioPreferences = field(default_factory=AudioPreferences)
    generation: GenerationPreferences = field(default_factory=GenerationPreferences)
    assembly: AssemblyPreferences = field(default_factory=AssemblyPreferences)


@dataclass
class EpisodeRequest:
    project_id: str
    user_id: str
    prompt: str | None = None
    scenes: list[SceneInput] = field(default_factory=list)
    title: str | None = None
    genre: str | None = None
    target_duration: float | None = None
    settings: ProductionSettings = field(default_factory=ProductionSettings)


@dataclass(frozen=True)
class CreditEstimate:
    total: int
    video: int
    music: int
    voiceover: int
    assembly: int

    def breakdown(self) -> dict[str, int]:
        return {
            "video": self.video,
            "music": self.music,
            "voiceover": self.voiceover,
            "assembly": self.assembly,
        }


@dataclass
class GeneratedShot:
    id: str
    scene_id: str
    description: str
    order: int
    duration: float = SHOT_SECONDS
    video_url: str | None = None


@dataclass(frozen=True)
class ShotClips:
    """The clips that rendered, in shot order."""

    shots: tuple[GeneratedShot, ...]
    credits: int


@dataclass
class EpisodeAssets:
    video_clips: list[dict[str, Any]] = field(default_factory=list)
    music_track: dict[str, Any] | None = None
    voiceover_track: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization (camelCase for frontend)."""
        return {
            "videoClips": list(self.video_clips),
            "musicTrack": self.music_track,
            "voiceoverTrack": self.voiceover_track,
        }


@dataclass(frozen=True)
class EpisodeResult:
    success: bool
    credits_used: int
    progress: ProgressUpdate | None
    video_url: str | None = None
    duration: float | None = None
    captions_url: str | None = None
    error: str | None = None
    warnings: tuple[str, ...] = ()
    assets: EpisodeAssets = field(default_factory=EpisodeAssets)


def estimate_production_credits(request: EpisodeRequest) -> CreditEstimate:
    """Estimate the credits an episode will cost before running it.

    Args:
        request: The episode to estimate.

    Returns:
        The total and its per-stage breakdown.
    """
    duration = request.target_duration or DEFAULT_TARGET_DURATION

    if request.scenes:
        shot_count = len(request.scenes) * 2.5
    else:
        shot_count = math.ceil(duration / SHOT_SECONDS)
    video = math.ceil(shot_count) * VIDEO_CREDIT_COST

    # Narration runs about 500 characters a minute when no dialogue is given.
    chars = sum(len(" ".join(scene.dialogue)) for scene in request.scenes)
    if not chars:
        chars = duration / 60 * 500
    # Narration past the speech limit is cut before it is sent.
    chars = min(chars, MAX_TEXT_LENGTH)
    voiceover = max(2, math.ceil(chars / 1000) * 2)

    assembly = math.ceil(max(MIN_BILLED_MINUTES, duration / 60) * CREDITS_PER_MINUTE)

    music = MUSIC_CREDIT_COST
    return CreditEstimate(
        total=video + music + voiceover + assembly,
        video=video,
        music=music,
        voiceover=voiceover,
        assembly=assembly,
    )


def generate_scenes_from_prompt(prompt: str, target_duration: float) -> list[SceneInput]:
    """Split a prompt into opening, development and conclusion scenes of up to 20s."""
    count = max(1, math.ceil(target_duration / SCENE_SECONDS))
    scenes = []
    for i in range(count):
        if i == 0:
            description = f"Opening: {prompt}"
        elif i == count - 1:
            description = f"Conclusion: {prompt}"
        else:
            description = f"Development: {prompt}"
        scenes.append(
            SceneInput(
                id=f"scene-{i + 1}",
                title=f"Scene {i + 1}",
                description=description,
                duration=min(SCENE_SECONDS, target_duration / count),
                mood="cinematic",
            )
        )
    return scenes


def build_shot_description(scene: SceneInput, index: int, total: int) -> str:
    """Describe one shot of a scene, cycling through shot types."""
    parts = [SHOT_TYPES[index % len(SHOT_TYPES)], scene.description]
    if scene.setting:
        parts.append(f"in {scene.setting}")
    if scene.mood:
        parts.append(f"{scene.mood} mood")
    parts.append("cinematic, high quality, 8K")

    if index == 0:
        parts.insert(0, "Opening")
    elif index == total - 1:
        parts.insert(0, "Final")
    return ", ".join(parts)


def fit_narration(text: str, limit: int = MAX_TEXT_LENGTH) -> str:
    """Cut narration to the speech limit at the last sentence break that fits."""
    text = text.strip()
    if len(text) <= limit:
        return text
    cut = text[:limit]
    boundary = cut.rfind(". ")
    return cut[: boundary + 1] if boundary > 0 else cut.rstrip()


def build_shots(scenes: list[SceneInput]) -> list[GeneratedShot]:
    shots = []
    for scene in scenes:
        count = math.ceil((scene.duration or DEFAULT_SCENE_SECONDS) / SHOT_SECONDS)
        for i in range(count):
            shots.append(
                GeneratedShot(
                    id=f"shot-{scene.id}-{i}",
                    scene_id=scene.id,
                    description=build_shot_description(scene, i, count),
                    order=len(shots),
                )
            )
    return shots


def get_missing_configurations(settings: Settings | None = None) -> list[str]:
    """Provider credentials episode production still needs."""
    settings = settings or get_settings()
    missing = []
    if not settings.replicate.api_token:
        missing.append("REPLICATE_API_TOKEN (video)")
        missing.append("REPLICATE_API_TOKEN (music)")
    if not settings.openai.api_key:
        missing.append("OPENAI_API_KEY (voiceover)")
    if not settings.shotstack.api_key:
        missing.append("SHOTSTACK_API_KEY (assembly)")
    return missing


def is_production_configured(settings: Settings | None = None) -> bool:
    return not get_missing_configurations(settings)


@dataclass
class _EpisodeContext:
    request: EpisodeRequest
    pipeline: Pipeline
    scenes: list[SceneInput] = field(default_factory=list)
    shots: list[GeneratedShot] = field(default_factory=list)
    assets: EpisodeAssets = field(default_factory=EpisodeAssets)
    music_url: str | None = None
    voiceover_url: str | None = None

    @property
    def dialogue(self) -> str:
        return ". ".join(line for scene in self.scenes for line in scene.dialogue)


class EpisodeProducer:
    """Runs the episode pipeline against the generation adapters."""

    def __init__(
        self,
        video: VideoGenerator,
        music: MusicGenerator,
        voiceover: VoiceoverGenerator,
        assembler: VideoAssembler,
        channel: ProgressChannel | None = None,
    ):
        self.video = video
        self.music = music
        self.voiceover = voiceover
        self.assembler = assembler
        self.channel = channel or ProgressChannel()

    async def _prepare(self, ctx: _EpisodeContext) -> Outcome:
        request = ctx.request
        scenes = list(request.scenes)
        if not scenes and request.prompt:
            scenes = generate_scenes_from_prompt(
                request.prompt, request.target_duration or DEFAULT_TARGET_DURATION
            )
        if not scenes:
            return Outcome.failed("No scenes provided and no prompt to generate from")

        ctx.scenes = scenes
        ctx.shots = build_shots(scenes)
        logger.info("Shot list prepared", scenes=len(scenes), shots=len(ctx.shots))
        return Outcome.ok(ShotClips(shots=tuple(ctx.shots), credits=0))

    async def _generate_clips(self, ctx: _EpisodeContext) -> Outcome:
        total = len(ctx.shots)
        credits = 0

        for done, shot in enumerate(ctx.shots):
            await ctx.pipeline.report(
                20 + int(done / total * 40),
                f"Generating video {done + 1}/{total}: {shot.description[:50]}...",
            )
            try:
                outcome = await self.video.generate(
                    shot.description,
                    duration="short",
                    aspect_ratio="16:9",
                    project_id=ctx.request.project_id,
                    scene_id=shot.scene_id,
                )
            except GenerationValidationError as e:
                outcome = Outcome.failed(str(e))

            if outcome.usable:
                shot.video_url = outcome.value.url
                credits += outcome.value.credits
                ctx.assets.video_clips.append(
                    {"sceneId": shot.scene_id, "url": shot.video_url, "duration": shot.duration}
                )
            else:
                reason = outcome.error or outcome.warning or "no output"
                ctx.pipeline.add_error(f"Failed to generate video for shot {shot.id}: {reason}")

        rendered = tuple(shot for shot in ctx.shots if shot.video_url)
        if not rendered:
            return Outcome.failed("No video clips were successfully generated")
        return Outcome.ok(ShotClips(shots=rendered, credits=credits))

    async def _generate_music(self, ctx: _EpisodeContext) -> Outcome:
        request = ctx.request
        prefs = request.settings.generation
        total_seconds = sum(shot.duration for shot in ctx.shots)
        mood = prefs.music_mood or request.genre or "cinematic"
        genre = prefs.music_genre or "cinematic"

        outcome = await self.music.generate(
            f"{mood} background music for {request.genre or 'film'} scene",
            duration=min(MAX_MUSIC_SECONDS, total_seconds),
            mood=mood if mood in VALID_MOODS else None,
            genre=genre if genre in VALID_GENRES else None,
            project_id=request.project_id,
        )
        if outcome.usable:
            ctx.music_url = outcome.value.url
            ctx.assets.music_track = {"url": ctx.music_url, "duration": outcome.value.duration or MAX_MUSIC_SECONDS}
        return outcome

    async def _generate_voiceover(self, ctx: _EpisodeContext) -> Outcome:
        dialogue = ctx.dialogue.strip()
        text = fit_narration(dialogue)
        voice = ctx.request.settings.audio.default_voice
        outcome = await self.voiceover.generate(
            text,
            voice=voice if voice in VALID_VOICES else "nova",
            model="tts-1",
            speed=1.0,
            project_id=ctx.request.project_id,
            user_id=ctx.request.user_id,
        )
        if not outcome.usable:
            return outcome

        ctx.voiceover_url = outcome.value.url
        ctx.assets.voiceover_track = {"url": ctx.voiceover_url, "duration": outcome.value.duration or 0}
        media = replace(outcome.value, credits=max(2, math.ceil(len(text) / 1000) * 2))
        if len(text) < len(dialogue):
            logger.warning("Narration truncated", kept=len(text), total=len(dialogue))
            warning = f"Narration truncated to {len(text)} of {len(dialogue)} characters"
            if outcome.warning:
                warning = f"{outcome.warning}; {warning}"
            return Outcome.degraded(media, warning)
        return replace(outcome, value=media)

    async def _generate_captions(self, ctx: _EpisodeContext) -> Outcome:
        track = build_caption_track(ctx.dialogue, "phrase")
        if track.cue_count == 0:
            return Outcome.failed("Dialogue produced no caption segments")
        return Outcome.ok(track)

    async def _assemble(self, ctx: _EpisodeContext) -> Outcome:
        audio_prefs = ctx.request.settings.audio
        prefs = ctx.request.settings.assembly

        tracks = []
        if ctx.music_url:
            volume = audio_prefs.music_volume if audio_prefs.music_volume is not None else 0.3
            tracks.append(AudioTrack(url=ctx.music_url, type="music", volume=volume))
        if ctx.voiceover_url:
            volume = audio_prefs.voiceover_volume if audio_prefs.voiceover_volume is not None else 1.0
            tracks.append(AudioTrack(url=ctx.voiceover_url, type="voiceover", volume=volume))

        outcome = await self.assembler.assemble(
            AssemblyOptions(
                project_id=ctx.request.project_id,
                clips=[
                    VideoClip(url=shot.video_url, duration=shot.duration)
                    for shot in ctx.shots
                    if shot.video_url
                ],
                audio_tracks=tracks,
                resolution=prefs.resolution,
                aspect_ratio=prefs.aspect_ratio,
                transition_type=prefs.transition_type,
                transition_duration=prefs.transition_duration,
                format=prefs.format,
                quality=prefs.quality,
            )
        )
        if not outcome.usable:
            return Outcome.failed(f"Assembly failed: {outcome.error or outcome.warning}")
        return outcome

    def build_stages(self, request: EpisodeRequest) -> list[StageSpec]:
        """The episode stage table."""
        audio = request.settings.audio
        return [
            StageSpec(
                name="prepare",
                stage=ProductionStage.INITIALIZING,
                start_progress=5,
                end_progress=20,
                task="Preparing scenes and shot list...",
                done_task="Shot list generated",
                on_failure=FailurePolicy.ABORT,
                run=self._prepare,
            ),
            StageSpec(
                name="video",
                stage=ProductionStage.GENERATING_VIDEO,
                start_progress=20,
                end_progress=60,
                task="Generating video clips...",
                done_task="Video clips generated",
                on_failure=FailurePolicy.ABORT,
                run=self._generate_clips,
            ),
            StageSpec(
                name="audio",
                stage=ProductionStage.GENERATING_AUDIO,
                start_progress=65,
                end_progress=70,
                task="Generating background music...",
                done_task="Background music generated",
                should_run=lambda ctx: audio.include_music_track is not False,
                run=self._generate_music,
            ),
            StageSpec(
                name="voiceover",
                stage=ProductionStage.GENERATING_VOICEOVER,
                start_progress=75,
                end_progress=80,
                task="Generating voiceover...",
                done_task="Voiceover generated",
                should_run=lambda ctx: audio.include_voiceover is not False and bool(ctx.dialogue),
                run=self._generate_voiceover,
            ),
            StageSpec(
                name="captions",
                stage=ProductionStage.GENERATING_CAPTIONS,
                start_progress=82,
                end_progress=84,
                task="Generating captions...",
                done_task="Captions generated",
                should_run=lambda ctx: bool(audio.include_captions and ctx.dialogue),
                run=self._generate_captions,
            ),
            StageSpec(
                name="assembly",
                stage=ProductionStage.MIXING,
                start_progress=85,
                end_progress=95,
                task="Assembling final video...",
                done_task="Video assembled",
                on_failure=FailurePolicy.ABORT,
                run=self._assemble,
            ),
        ]

    async def produce(self, request: EpisodeRequest) -> EpisodeResult:
        """Produce an episode.

        A failed run still reports the credits its completed stages used, so
        callers can log them; those are not meant to be billed.
        """
        pipeline = Pipeline(self.build_stages(request), self.channel)
        ctx = _EpisodeContext(request=request, pipeline=pipeline)

        with LogContext(project_id=request.project_id, user_id=request.user_id):
            logger.info("Episode production started", scenes=len(request.scenes))
            run = await pipeline.run(ctx)
            logger.info(
                "Episode production finished",
                success=run.success,
                credits_used=run.credits_used,
                failed_stage=run.failed_stage,
            )

        final = run.value_of("assembly")
        captions = run.value_of("captions")
        return EpisodeResult(
            success=run.success,
            credits_used=run.credits_used,
            progress=run.progress,
            video_url=final.url if final else None,
            duration=final.duration if final else None,
            captions_url=captions.url if captions else None,
            error=run.error,
            warnings=tuple(run.warnings),
            assets=ctx.assets,
        )

    async def quick_produce(
        self,
        project_id: str,
        user_id: str,
        prompt: str,
        duration: float = 30,
        genre: str | None = None,
    ) -> EpisodeResult:
        """One-click production: music, no narration, faded 1080p cuts."""
        return await self.produce(
            EpisodeRequest(
                project_id=project_id,
                user_id=user_id,
                prompt=prompt,
                genre=genre,
                target_duration=duration,
                settings=ProductionSettings(
                    audio=AudioPreferences(
                        include_music_track=True,
                        include_voiceover=False,
                        music_volume=0.4,
                    ),
                    assembly=AssemblyPreferences(resolution="1080p", transition_type="fade", quality="high"),
                ),
            )
        )
