"""Series and movie production: many episodes produced one after another.

A series is a list of episodes and a movie is a list of acts. Every segment
goes through ``EpisodeProducer`` with a prompt that carries the shared story
context (genre, setting, cast), so the segments read as one work. A segment
that fails is recorded and the batch moves on to the next one; the batch
succeeds when at least one segment produced a video.
"""

import copy
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from halcyon_shared.logging import LogContext, get_logger

from .episode import (
    DEFAULT_TARGET_DURATION,
    EpisodeProducer,
    EpisodeRequest,
    EpisodeResult,
    ProductionSettings,
    SceneInput,
    estimate_production_credits,
)

logger = get_logger(__name__)

BatchType = Literal["series", "movie"]

CHARACTER_ROLES = ("protagonist", "antagonist", "supporting", "minor")
DEFAULT_ACT_COUNT = 3
DEFAULT_MOVIE_MINUTES = 5
DEFAULT_EPISODE_COUNT = 6
DEFAULT_GENRE = "drama"

PREMIERE_NOTE = "This is the series premiere - establish the world and characters"
FINALE_NOTE = "This is the season finale - resolve major plot threads"
SETUP_NOTE = "Act 1 - Setup: Establish the world, introduce characters, present the inciting incident"
CONFRONTATION_NOTE = "Act 2 - Confrontation: Rising action, obstacles, character development"
RESOLUTION_NOTE = "Act 3 - Resolution: Climax and resolution, character arcs complete"


class SegmentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CharacterProfile:
    name: str
    description: str
    role: str = "supporting"
    traits: list[str] = field(default_factory=list)


@dataclass
class EpisodeConfig:
    episode_number: int
    title: str
    synopsis: str
    scenes: list[SceneInput] = field(default_factory=list)
    plot_points: list[str] = field(default_factory=list)


@dataclass
class SeriesConfig:
    """A season of episodes. ``episode_duration`` is in seconds."""

    title: str
    synopsis: str
    genre: str = DEFAULT_GENRE
    episodes: list[EpisodeConfig] = field(default_factory=list)
    episode_count: int = 0
    episode_duration: float | None = None
    season_number: int | None = None
    main_characters: list[CharacterProfile] = field(default_factory=list)
    setting: str | None = None
    overarching_plot: str | None = None


@dataclass
class ActConfig:
    """One act of a movie. ``duration`` is in minutes."""

    act_number: int
    title: str
    synopsis: str
    duration: float
    scenes: list[SceneInput] = field(default_factory=list)
    plot_points: list[str] = field(default_factory=list)


@dataclass
class MovieConfig:
    """A movie split into acts. ``target_duration`` is in minutes."""

    title: str
    synopsis: str
    genre: str = DEFAULT_GENRE
    target_duration: float = DEFAULT_MOVIE_MINUTES
    acts: list[ActConfig] = field(default_factory=list)
    main_characters: list[CharacterProfile] = field(default_factory=list)
    setting: str | None = None


@dataclass
class SegmentResult:
    segment_id: str
    title: str
    status: SegmentStatus = SegmentStatus.PENDING
    video_url: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "segmentId": self.segment_id,
            "title": self.title,
            "status": self.status.value,
        }
        if self.video_url:
            data["videoUrl"] = self.video_url
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class BatchProgress:
    type: BatchType
    title: str
    segment_results: list[SegmentResult] = field(default_factory=list)
    completed_segments: int = 0
    current_segment: str | None = None
    overall_progress: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total_segments(self) -> int:
        return len(self.segment_results)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "totalSegments": self.total_segments,
            "completedSegments": self.completed_segments,
            "overallProgress": self.overall_progress,
            "segmentResults": [segment.to_dict() for segment in self.segment_results],
            "errors": list(self.errors),
        }
        if self.current_segment:
            data["currentSegment"] = self.current_segment
        return data


@dataclass(frozen=True)
class BatchVideo:
    segment_id: str
    title: str
    video_url: str
    duration: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "segmentId": self.segment_id,
            "title": self.title,
            "videoUrl": self.video_url,
            "duration": self.duration,
        }


@dataclass(frozen=True)
class BatchResult:
    success: bool
    type: BatchType
    title: str
    videos: tuple[BatchVideo, ...]
    total_duration: float
    credits_used: int
    progress: BatchProgress
    error: str | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class BatchEstimate:
    total: int
    per_segment: int
    segments: int
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


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _scaled_estimate(target_duration: float | None, segments: int) -> BatchEstimate:
    per = estimate_production_credits(EpisodeRequest(project_id="", user_id="", target_duration=target_duration))
    return BatchEstimate(
        total=per.total * segments,
        per_segment=per.total,
        segments=segments,
        video=per.video * segments,
        music=per.music * segments,
        voiceover=per.voiceover * segments,
        assembly=per.assembly * segments,
    )


def estimate_series_credits(config: SeriesConfig) -> BatchEstimate:
    """Estimate a series as one episode estimate times the episode count."""
    count = len(config.episodes) or config.episode_count
    return _scaled_estimate(config.episode_duration, count)


def estimate_movie_credits(config: MovieConfig) -> BatchEstimate:
    """Estimate a movie as equal-length acts that share its running time."""
    count = len(config.acts) or DEFAULT_ACT_COUNT
    return _scaled_estimate(config.target_duration * 60 / count, count)


def describe_characters(characters: list[CharacterProfile]) -> str:
    return ". ".join(f"{c.name} ({c.role}): {c.description}" for c in characters)


def build_episode_prompt(
    episode: EpisodeConfig,
    series: SeriesConfig,
    is_first: bool = False,
    is_last: bool = False,
) -> str:
    """Build the generation prompt for one episode of a series.

    The prompt repeats the series context on every episode, marks the
    premiere and the finale, and ends with the series arc when there is one.
    """
    parts = [f'{series.genre} TV series: "{series.title}"']
    if series.setting:
        parts.append(f"Setting: {series.setting}")
    parts.append(f'Episode {episode.episode_number}: "{episode.title}"')
    parts.append(episode.synopsis)
    if series.main_characters:
        parts.append(f"Characters: {describe_characters(series.main_characters)}")
    if episode.plot_points:
        parts.append(f"Key moments: {', '.join(episode.plot_points)}")
    if is_first:
        parts.append(PREMIERE_NOTE)
    elif is_last:
        parts.append(FINALE_NOTE)
    if series.overarching_plot:
        parts.append(f"Series arc: {series.overarching_plot}")
    return ". ".join(parts)


def build_act_prompt(act: ActConfig, movie: MovieConfig, is_first: bool = False, is_last: bool = False) -> str:
    """Build the generation prompt for one act, with three-act structure guidance."""
    parts = [f'{movie.genre} film: "{movie.title}"']
    if movie.setting:
        parts.append(f"Setting: {movie.setting}")
    parts.append(f'Act {act.act_number}: "{act.title}"')
    parts.append(act.synopsis)
    if movie.main_characters:
        parts.append(f"Characters: {describe_characters(movie.main_characters)}")
    if act.plot_points:
        parts.append(f"Key moments: {', '.join(act.plot_points)}")
    if is_first:
        parts.append(SETUP_NOTE)
    elif is_last:
        parts.append(RESOLUTION_NOTE)
    else:
        parts.append(CONFRONTATION_NOTE)
    return ". ".join(parts)


def generate_default_acts(config: MovieConfig) -> list[ActConfig]:
    """Split a movie into setup, confrontation and resolution (1:2:1)."""
    total = config.target_duration
    return [
        ActConfig(
            act_number=1,
            title="Setup",
            synopsis=(
                f'Opening of "{config.title}". {config.synopsis} '
                "Establish the world and introduce the main characters."
            ),
            duration=max(1, _round_half_up(total * 0.25)),
        ),
        ActConfig(
            act_number=2,
            title="Confrontation",
            synopsis=f'Middle section of "{config.title}". Rising action, challenges, and character development.',
            duration=max(1, _round_half_up(total * 0.5)),
        ),
        ActConfig(
            act_number=3,
            title="Resolution",
            synopsis=f'Climax and ending of "{config.title}". Final confrontation and resolution.',
            duration=max(1, _round_half_up(total * 0.25)),
        ),
    ]


@dataclass(frozen=True)
class _Segment:
    segment_id: str
    title: str
    label: str
    duration: float
    request: EpisodeRequest


ProgressCallback = Callable[[BatchProgress], Awaitable[None]]


class BatchProducer:
    """Produces a series or a movie one segment at a time.

    Segments run in order so a batch never holds more than one episode's
    worth of provider jobs. ``on_progress`` receives a copy of the batch
    progress before and after every segment and once at the end.
    """

    def __init__(self, producer: EpisodeProducer, on_progress: ProgressCallback | None = None):
        self.producer = producer
        self.on_progress = on_progress

    async def _notify(self, progress: BatchProgress) -> None:
        logger.debug(
            "Batch progress",
            completed=progress.completed_segments,
            total=progress.total_segments,
            overall_progress=progress.overall_progress,
        )
        if self.on_progress is not None:
            await self.on_progress(copy.deepcopy(progress))

    async def _produce_segment(self, segment: _Segment) -> tuple[EpisodeResult | None, str | None]:
        with LogContext(segment_id=segment.segment_id):
            try:
                result = await self.producer.produce(segment.request)
            except Exception as e:
                logger.exception("Segment production raised", segment=segment.label)
                return None, str(e) or type(e).__name__
        if result.success and result.video_url:
            return result, None
        return None, result.error or "No video was produced"

    async def _run(
        self,
        batch_type: BatchType,
        project_id: str,
        title: str,
        segments: list[_Segment],
        empty_error: str,
    ) -> BatchResult:
        progress = BatchProgress(
            type=batch_type,
            title=title,
            segment_results=[SegmentResult(segment_id=s.segment_id, title=s.title) for s in segments],
        )
        videos: list[BatchVideo] = []
        warnings: list[str] = []
        credits_used = 0

        logger.info(
            "Batch production started", batch_type=batch_type, project_id=project_id, segments=len(segments)
        )
        for i, segment in enumerate(segments):
            entry = progress.segment_results[i]
            entry.status = SegmentStatus.PROCESSING
            progress.current_segment = segment.title
            progress.overall_progress = _round_half_up(i / len(segments) * 100)
            await self._notify(progress)

            result, error = await self._produce_segment(segment)
            if result is not None:
                entry.status = SegmentStatus.COMPLETED
                entry.video_url = result.video_url
                videos.append(
                    BatchVideo(
                        segment_id=segment.segment_id,
                        title=segment.title,
                        video_url=result.video_url,
                        duration=result.duration or segment.duration,
                    )
                )
                credits_used += result.credits_used
                warnings.extend(f"{segment.label}: {warning}" for warning in result.warnings)
            else:
                entry.status = SegmentStatus.FAILED
                entry.error = error
                progress.errors.append(f"{segment.label} failed: {error}")

            progress.completed_segments += 1
            await self._notify(progress)

        progress.overall_progress = 100
        await self._notify(progress)

        success = bool(videos)
        logger.info(
            "Batch production finished",
            batch_type=batch_type,
            project_id=project_id,
            success=success,
            produced=len(videos),
            failed=len(segments) - len(videos),
            credits_used=credits_used,
        )
        return BatchResult(
            success=success,
            type=batch_type,
            title=title,
            videos=tuple(videos),
            total_duration=sum(video.duration for video in videos),
            credits_used=credits_used,
            progress=progress,
            error=None if success else empty_error,
            warnings=tuple(warnings),
        )

    async def produce_series(
        self,
        project_id: str,
        user_id: str,
        config: SeriesConfig,
        settings: ProductionSettings | None = None,
    ) -> BatchResult:
        """Produce every episode of a series in order."""
        season = config.season_number or 1
        last = len(config.episodes) - 1
        segments = [
            _Segment(
                segment_id=f"episode-{episode.episode_number}",
                title=f"S{season}E{episode.episode_number}: {episode.title}",
                label=f"Episode {episode.episode_number}",
                duration=config.episode_duration or DEFAULT_TARGET_DURATION,
                request=EpisodeRequest(
                    project_id=project_id,
                    user_id=user_id,
                    prompt=build_episode_prompt(episode, config, is_first=i == 0, is_last=i == last),
                    scenes=list(episode.scenes),
                    title=episode.title,
                    genre=config.genre,
                    target_duration=config.episode_duration,
                    settings=settings or ProductionSettings(),
                ),
            )
            for i, episode in enumerate(config.episodes)
        ]
        return await self._run(
            "series", project_id, config.title, segments, "No episodes were successfully produced"
        )

    async def produce_movie(
        self,
        project_id: str,
        user_id: str,
        config: MovieConfig,
        settings: ProductionSettings | None = None,
    ) -> BatchResult:
        """Produce a movie act by act, falling back to a three-act split."""
        acts = config.acts or generate_default_acts(config)
        last = len(acts) - 1
        segments = [
            _Segment(
                segment_id=f"act-{act.act_number}",
                title=f"Act {act.act_number}: {act.title}",
                label=f"Act {act.act_number}",
                duration=act.duration * 60,
                request=EpisodeRequest(
                    project_id=project_id,
                    user_id=user_id,
                    prompt=build_act_prompt(act, config, is_first=i == 0, is_last=i == last),
                    scenes=list(act.scenes),
                    title=f"{config.title} - Act {act.act_number}",
                    genre=config.genre,
                    target_duration=act.duration * 60,
                    settings=settings or ProductionSettings(),
                ),
            )
            for i, act in enumerate(acts)
        ]
        return await self._run("movie", project_id, config.title, segments, "No acts were successfully produced")

    async def quick_series(
        self,
        project_id: str,
        user_id: str,
        title: str,
        synopsis: str,
        episode_count: int = DEFAULT_EPISODE_COUNT,
        episode_duration: float = DEFAULT_TARGET_DURATION,
        genre: str = DEFAULT_GENRE,
    ) -> BatchResult:
        """Produce a series from a title and synopsis alone."""
        episodes = []
        for number in range(1, episode_count + 1):
            if number == 1:
                synopsis_line = f"Pilot: {synopsis}"
            elif number == episode_count:
                synopsis_line = f"Finale: Conclusion of {title}"
            else:
                synopsis_line = f"Chapter {number} of {title}"
            episodes.append(EpisodeConfig(episode_number=number, title=f"Episode {number}", synopsis=synopsis_line))

        config = SeriesConfig(
            title=title,
            synopsis=synopsis,
            genre=genre,
            episodes=episodes,
            episode_count=episode_count,
            episode_duration=episode_duration,
        )
        return await self.produce_series(project_id, user_id, config)

    async def quick_movie(
        self,
        project_id: str,
        user_id: str,
        title: str,
        synopsis: str,
        target_duration: float = DEFAULT_MOVIE_MINUTES,
        genre: str = DEFAULT_GENRE,
    ) -> BatchResult:
        """Produce a three-act movie from a title and synopsis alone."""
        config = MovieConfig(title=title, synopsis=synopsis, genre=genre, target_duration=target_duration)
        config.acts = generate_default_acts(config)
        return await self.produce_movie(project_id, user_id, config)
