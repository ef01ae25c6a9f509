"""Full episode production endpoint."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from halcyon_shared.credits import CreditError, CreditErrorCode, TransactionType, deduct_credits
from halcyon_shared.db import DatabaseConnection
from halcyon_shared.logging import get_logger

from ..dependencies.auth import AuthenticatedUser
from ..dependencies.credits import CREDITS_USED_ELSEWHERE, require_credits
from ..dependencies.csrf import require_auth_with_csrf
from ..dependencies.providers import get_database, get_episode_producer
from ..dependencies.rate_limit import RateLimitGuard
from ..models.base import ProgressResponse
from ..models.production import (
    CreditEstimateResponse,
    ProduceEpisodeRequest,
    ProduceEpisodeResponse,
    ProductionSettingsModel,
)
from ..services.episode import (
    AssemblyPreferences,
    AudioPreferences,
    EpisodeProducer,
    EpisodeRequest,
    EpisodeResult,
    GenerationPreferences,
    ProductionSettings,
    SceneInput,
    estimate_production_credits,
    get_missing_configurations,
)
from ..services.progress import ProgressUpdate

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Production"])

MAX_PROMPT_LENGTH = 2000
MAX_SCENES = 20
MIN_DURATION_SECONDS = 10
MAX_DURATION_SECONDS = 300
DEFAULT_DURATION_SECONDS = 30

DEFERRED_DEDUCTION_MESSAGE = "Credit deduction delayed - will be processed later"

produce_rate_limit = RateLimitGuard(
    "produce",
    message="Rate limit exceeded. Please wait before starting another production.",
)


async def require_production_configured() -> None:
    """Reject the request while any production provider lacks credentials."""
    missing = get_missing_configurations()
    if missing:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": "Full production is not fully configured.", "missingConfig": missing},
        )


def bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def parse_scenes(raw_scenes: list[dict[str, Any]] | None) -> list[SceneInput]:
    """Validate and convert the scenes of a request body.

    Raises:
        HTTPException: 400 if there are too many scenes or one is incomplete.
    """
    if not raw_scenes:
        return []
    if len(raw_scenes) > MAX_SCENES:
        raise bad_request(f"Maximum {MAX_SCENES} scenes allowed")

    scenes = []
    for i, scene in enumerate(raw_scenes):
        if not isinstance(scene, dict) or not scene.get("id") or not scene.get("description"):
            raise bad_request(f"Scene {i} is missing required fields (id, description)")
        dialogue = scene.get("dialogue")
        duration = scene.get("duration")
        scenes.append(
            SceneInput(
                id=str(scene["id"]),
                title=str(scene["title"]) if scene.get("title") else None,
                description=str(scene["description"]),
                dialogue=[str(line) for line in dialogue] if isinstance(dialogue, list) else [],
                duration=duration if isinstance(duration, (int, float)) and not isinstance(duration, bool) else None,
                mood=str(scene["mood"]) if scene.get("mood") else None,
                setting=str(scene["setting"]) if scene.get("setting") else None,
            )
        )
    return scenes


def clamp_target_duration(value: float | None) -> float:
    if value is None:
        return DEFAULT_DURATION_SECONDS
    return max(MIN_DURATION_SECONDS, min(MAX_DURATION_SECONDS, value))


def to_production_settings(model: ProductionSettingsModel | None) -> ProductionSettings:
    if model is None:
        return ProductionSettings()
    audio, generation, assembly = model.audio, model.generation, model.assembly
    return ProductionSettings(
        audio=AudioPreferences(
            include_music_track=audio.include_music_track,
            include_voiceover=audio.include_voiceover,
            include_captions=audio.include_captions,
            music_volume=audio.music_volume,
            voiceover_volume=audio.voiceover_volume,
            default_voice=audio.default_voice,
        ),
        generation=GenerationPreferences(
            music_mood=generation.music_mood,
            music_genre=generation.music_genre,
        ),
        assembly=AssemblyPreferences(
            resolution=assembly.resolution,
            aspect_ratio=assembly.aspect_ratio,
            transition_type=assembly.transition_type,
            transition_duration=assembly.transition_duration,
            format=assembly.format,
            quality=assembly.quality,
        ),
    )


def build_episode_request(body: ProduceEpisodeRequest, user_id: str) -> EpisodeRequest:
    """Turn a request body into an ``EpisodeRequest``.

    Raises:
        HTTPException: 400 with the first problem found.
    """
    if not body.project_id or not body.project_id.strip():
        raise bad_request("projectId is required")

    if not body.prompt and not body.scenes:
        raise bad_request("Either prompt or scenes must be provided")

    if body.prompt:
        if not body.prompt.strip():
            raise bad_request("Prompt must be a non-empty string")
        if len(body.prompt) > MAX_PROMPT_LENGTH:
            raise bad_request(f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters")

    return EpisodeRequest(
        project_id=body.project_id.strip(),
        user_id=user_id,
        prompt=body.prompt.strip() if body.prompt else None,
        scenes=parse_scenes(body.scenes),
        title=body.title,
        genre=body.genre,
        target_duration=clamp_target_duration(body.target_duration),
        settings=to_production_settings(body.settings),
    )


async def bill_production(
    user_id: str,
    credits: int,
    description: str,
    project_id: str,
    db: DatabaseConnection,
) -> int | None:
    """Deduct the credits a finished production used.

    Returns:
        The remaining balance, or None when the ledger was unreachable and
        the deduction is left for reconciliation.

    Raises:
        HTTPException: 402 if the balance was spent while the production
            ran, 500 for any other ledger failure.
    """
    try:
        balance = await deduct_credits(
            user_id,
            credits,
            description,
            project_id,
            TransactionType.GENERATION,
            db=db,
        )
    except CreditError as e:
        logger.error(
            "Failed to deduct credits",
            user_id=user_id,
            project_id=project_id,
            credits_used=credits,
            code=e.code.value,
        )
        if e.code == CreditErrorCode.INSUFFICIENT_CREDITS:
            raise HTTPException(
                status_code=status.HTTP_402_PAYMENT_REQUIRED,
                detail={"message": CREDITS_USED_ELSEWHERE, "creditsRemaining": 0},
            ) from e
        if e.code == CreditErrorCode.DB_UNAVAILABLE:
            logger.error(
                "Production delivered without billing",
                alert="credit_reconciliation_gap",
                user_id=user_id,
                project_id=project_id,
                credits_used=credits,
            )
            return None
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process credits. Please contact support.",
        ) from e
    return balance.credits_remaining


def _progress(update: ProgressUpdate | None) -> ProgressResponse | None:
    if update is None:
        return None
    return ProgressResponse.model_validate(update.to_dict())


def _response(result: EpisodeResult, **extra: Any) -> ProduceEpisodeResponse:
    return ProduceEpisodeResponse(
        success=True,
        video_url=result.video_url,
        duration=result.duration,
        captions_url=result.captions_url,
        credits_used=result.credits_used,
        progress=_progress(result.progress),
        assets=result.assets.to_dict(),
        warnings=list(result.warnings),
        **extra,
    )


@router.post(
    "/produce-episode",
    response_model=ProduceEpisodeResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_production_configured)],
    summary="Produce Episode",
    description="Produce a complete episode from a prompt or scenes, or estimate its cost",
)
async def produce_episode(
    body: ProduceEpisodeRequest,
    user: AuthenticatedUser = Depends(require_auth_with_csrf),
    _: Any = Depends(produce_rate_limit),
    db: DatabaseConnection = Depends(get_database),
    producer: EpisodeProducer = Depends(get_episode_producer),
) -> ProduceEpisodeResponse | JSONResponse:
    """Produce an episode and bill the credits it used.

    Nothing is billed when the production fails. If the ledger cannot be
    reached after a successful production the result is still returned and
    the missing deduction is logged for reconciliation.
    """
    request = build_episode_request(body, user.sub)
    estimate = estimate_production_credits(request)

    if body.estimate_only:
        estimate_body = CreditEstimateResponse(estimated_credits=estimate.total, **estimate.breakdown())
        return JSONResponse(content=estimate_body.model_dump(by_alias=True))

    await require_credits(
        user.sub,
        estimate.total,
        db,
        f"Insufficient credits. This production requires approximately {estimate.total} credits.",
    )

    if body.quick_mode and request.prompt:
        result = await producer.quick_produce(
            request.project_id,
            user.sub,
            request.prompt,
            duration=request.target_duration,
            genre=request.genre,
        )
    else:
        result = await producer.produce(request)

    if not result.success:
        progress = _progress(result.progress)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": result.error or "Production failed",
                "progress": progress.model_dump(by_alias=True) if progress else None,
                "creditsUsed": result.credits_used,
            },
        )

    if result.credits_used <= 0:
        return _response(result)

    minutes = round((result.duration or 0) / 60, 1)
    remaining = await bill_production(
        user.sub, result.credits_used, f"Full episode production ({minutes} min)", request.project_id, db
    )
    if remaining is None:
        return _response(result, error=DEFERRED_DEDUCTION_MESSAGE)
    return _response(result, credits_remaining=remaining)
