"""Series and movie batch production endpoint."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from halcyon_shared.db import DatabaseConnection

from ..dependencies.auth import AuthenticatedUser
from ..dependencies.credits import require_credits
from ..dependencies.csrf import require_auth_with_csrf
from ..dependencies.providers import get_batch_producer, get_database
from ..dependencies.rate_limit import RateLimitGuard
from ..models.production import (
    BatchEstimateResponse,
    BatchVideoResponse,
    ProduceBatchRequest,
    ProduceBatchResponse,
)
from ..services.episode import SceneInput
from ..services.series import (
    CHARACTER_ROLES,
    DEFAULT_GENRE,
    DEFAULT_MOVIE_MINUTES,
    ActConfig,
    BatchProducer,
    BatchResult,
    CharacterProfile,
    EpisodeConfig,
    MovieConfig,
    SeriesConfig,
    estimate_movie_credits,
    estimate_series_credits,
)
from .production import (
    DEFERRED_DEDUCTION_MESSAGE,
    bad_request,
    bill_production,
    parse_scenes,
    require_production_configured,
    to_production_settings,
)

router = APIRouter(prefix="/api", tags=["Production"])

BATCH_TYPES = ("series", "movie")
MAX_EPISODES = 12
MAX_ACTS = 5
MAX_EPISODE_SECONDS = 180
MAX_MOVIE_MINUTES = 30

batch_rate_limit = RateLimitGuard(
    "produce_batch",
    key_prefix="produce-batch",
    message="Rate limit exceeded. Batch productions are limited to once per 30 minutes.",
)


def _text(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _number(raw: dict[str, Any], key: str) -> float | None:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _positive_int(raw: dict[str, Any], key: str) -> int | None:
    value = _number(raw, key)
    if value is None or value <= 0 or value != int(value):
        return None
    return int(value)


def _strings(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(item) for item in raw if item]


def _scenes(raw: Any) -> list[SceneInput]:
    return parse_scenes(raw if isinstance(raw, list) else None)


def parse_characters(raw: Any) -> list[CharacterProfile]:
    """Keep the characters that have a name and a description."""
    if not isinstance(raw, list):
        return []
    characters = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name, description = _text(item, "name"), _text(item, "description")
        if not name or not description:
            continue
        role = item.get("role")
        characters.append(
            CharacterProfile(
                name=name,
                description=description,
                role=role if role in CHARACTER_ROLES else "supporting",
                traits=_strings(item.get("traits")),
            )
        )
    return characters


def parse_series_config(raw: dict[str, Any] | None) -> SeriesConfig:
    """Validate a ``seriesConfig`` body.

    Raises:
        HTTPException: 400 with the first problem found.
    """
    if not raw:
        raise bad_request("seriesConfig is required for series production")
    title, synopsis = _text(raw, "title"), _text(raw, "synopsis")
    if not title:
        raise bad_request("seriesConfig.title is required")
    if not synopsis:
        raise bad_request("seriesConfig.synopsis is required")

    raw_episodes = raw.get("episodes")
    if not isinstance(raw_episodes, list) or not raw_episodes:
        raise bad_request("seriesConfig.episodes is required and must not be empty")
    if len(raw_episodes) > MAX_EPISODES:
        raise bad_request(f"Maximum {MAX_EPISODES} episodes allowed per batch")

    duration = _number(raw, "episodeDuration")
    if duration is not None and duration > MAX_EPISODE_SECONDS:
        raise bad_request(f"Maximum episode duration is {MAX_EPISODE_SECONDS} seconds")

    episodes = []
    for i, item in enumerate(raw_episodes):
        fields = item if isinstance(item, dict) else {}
        number = _positive_int(fields, "episodeNumber")
        episode_title, episode_synopsis = _text(fields, "title"), _text(fields, "synopsis")
        if number is None or not episode_title or not episode_synopsis:
            raise bad_request(f"Episode {i + 1} is missing required fields (episodeNumber, title, synopsis)")
        episodes.append(
            EpisodeConfig(
                episode_number=number,
                title=episode_title,
                synopsis=episode_synopsis,
                scenes=_scenes(fields.get("scenes")),
                plot_points=_strings(fields.get("plotPoints")),
            )
        )

    return SeriesConfig(
        title=title,
        synopsis=synopsis,
        genre=_text(raw, "genre") or DEFAULT_GENRE,
        episodes=episodes,
        episode_count=len(episodes),
        episode_duration=duration if duration and duration > 0 else None,
        season_number=_positive_int(raw, "seasonNumber"),
        main_characters=parse_characters(raw.get("mainCharacters")),
        setting=_text(raw, "setting"),
        overarching_plot=_text(raw, "overarchingPlot"),
    )


def parse_movie_config(raw: dict[str, Any] | None) -> MovieConfig:
    """Validate a ``movieConfig`` body.

    Acts are optional. An act without a duration gets an equal share of the
    movie's running time.

    Raises:
        HTTPException: 400 with the first problem found.
    """
    if not raw:
        raise bad_request("movieConfig is required for movie production")
    title, synopsis = _text(raw, "title"), _text(raw, "synopsis")
    if not title:
        raise bad_request("movieConfig.title is required")
    if not synopsis:
        raise bad_request("movieConfig.synopsis is required")

    target = _number(raw, "targetDuration")
    if target is not None and target > MAX_MOVIE_MINUTES:
        raise bad_request(f"Maximum movie duration is {MAX_MOVIE_MINUTES} minutes")
    target = target if target and target > 0 else DEFAULT_MOVIE_MINUTES

    raw_acts = raw.get("acts") or []
    if not isinstance(raw_acts, list):
        raise bad_request("movieConfig.acts must be a list")
    if len(raw_acts) > MAX_ACTS:
        raise bad_request(f"Maximum {MAX_ACTS} acts allowed")

    acts = []
    for i, item in enumerate(raw_acts):
        fields = item if isinstance(item, dict) else {}
        number = _positive_int(fields, "actNumber")
        act_title, act_synopsis = _text(fields, "title"), _text(fields, "synopsis")
        if number is None or not act_title or not act_synopsis:
            raise bad_request(f"Act {i + 1} is missing required fields (actNumber, title, synopsis)")
        duration = _number(fields, "duration")
        acts.append(
            ActConfig(
                act_number=number,
                title=act_title,
                synopsis=act_synopsis,
                duration=duration if duration and duration > 0 else target / len(raw_acts),
                scenes=_scenes(fields.get("scenes")),
                plot_points=_strings(fields.get("plotPoints")),
            )
        )

    return MovieConfig(
        title=title,
        synopsis=synopsis,
        genre=_text(raw, "genre") or DEFAULT_GENRE,
        target_duration=target,
        acts=acts,
        main_characters=parse_characters(raw.get("mainCharacters")),
        setting=_text(raw, "setting"),
    )


def _response(result: BatchResult, **extra: Any) -> ProduceBatchResponse:
    return ProduceBatchResponse(
        success=True,
        type=result.type,
        title=result.title,
        videos=[
            BatchVideoResponse(
                segment_id=video.segment_id,
                title=video.title,
                video_url=video.video_url,
                duration=video.duration,
            )
            for video in result.videos
        ],
        total_duration=result.total_duration,
        credits_used=result.credits_used,
        progress=result.progress.to_dict(),
        warnings=list(result.warnings),
        **extra,
    )


@router.post(
    "/produce-batch",
    response_model=ProduceBatchResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_production_configured)],
    summary="Produce Batch",
    description="Produce a series of episodes or a movie in acts, or estimate its cost",
)
async def produce_batch(
    body: ProduceBatchRequest,
    user: AuthenticatedUser = Depends(require_auth_with_csrf),
    _: Any = Depends(batch_rate_limit),
    db: DatabaseConnection = Depends(get_database),
    batch: BatchProducer = Depends(get_batch_producer),
) -> ProduceBatchResponse | JSONResponse:
    """Produce a series or movie and bill the segments that completed.

    A batch fails only when no segment produced a video, and then nothing is
    billed. Otherwise the credits of the completed segments are deducted the
    same way as for a single episode.
    """
    if not body.project_id or not body.project_id.strip():
        raise bad_request("projectId is required")
    if body.type not in BATCH_TYPES:
        raise bad_request('type must be "series" or "movie"')

    project_id = body.project_id.strip()
    if body.type == "series":
        series = parse_series_config(body.series_config)
        estimate = estimate_series_credits(series)
    else:
        movie = parse_movie_config(body.movie_config)
        estimate = estimate_movie_credits(movie)

    if body.estimate_only:
        estimate_body = BatchEstimateResponse(
            type=body.type,
            estimated_credits=estimate.total,
            per_segment=estimate.per_segment,
            segments=estimate.segments,
            **estimate.breakdown(),
        )
        return JSONResponse(content=estimate_body.model_dump(by_alias=True))

    await require_credits(
        user.sub,
        estimate.total,
        db,
        f"Insufficient credits. This production requires approximately {estimate.total} credits.",
    )

    settings = to_production_settings(body.settings)
    if body.type == "series":
        result = await batch.produce_series(project_id, user.sub, series, settings)
        description = f"Series production: {series.title} ({len(result.videos)} episodes)"
    else:
        result = await batch.produce_movie(project_id, user.sub, movie, settings)
        description = f"Movie production: {movie.title} ({len(result.videos)} acts)"

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": result.error or "Batch production failed",
                "progress": result.progress.to_dict(),
                "creditsUsed": result.credits_used,
            },
        )

    if result.credits_used <= 0:
        return _response(result)

    remaining = await bill_production(user.sub, result.credits_used, description, project_id, db)
    if remaining is None:
        return _response(result, error=DEFERRED_DEDUCTION_MESSAGE)
    return _response(result, credits_remaining=remaining)
