"""Single-asset generation endpoints: music, voiceover, video and image."""

from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response, status

from halcyon_shared.db import DatabaseConnection
from halcyon_shared.logging import get_logger

from ..dependencies.auth import AuthenticatedUser, require_auth
from ..dependencies.credits import charge_credits, require_credits
from ..dependencies.csrf import require_auth_with_csrf
from ..dependencies.providers import (
    get_database,
    get_image_generator,
    get_music_generator,
    get_video_generator,
    get_voiceover_generator,
)
from ..dependencies.rate_limit import RateLimitGuard
from ..models.generation import (
    GenerationResponse,
    ImageRequest,
    MusicRequest,
    VideoRequest,
    VoiceoverRequest,
)
from ..services.generation import (
    IMAGE_CREDIT_COST,
    MUSIC_CREDIT_COST,
    GeneratedMedia,
    GenerationValidationError,
    ImageGenerator,
    MediaType,
    MusicGenerator,
    Outcome,
    OutcomeStatus,
    VideoGenerator,
    VoiceoverGenerator,
    video_credit_cost,
    voiceover_credit_cost,
)
from ..services.generation.image import validate_image_request
from ..services.generation.music import clamp_duration, validate_music_request
from ..services.generation.video import VIDEO_QUALITY_RESOLUTIONS, validate_video_request
from ..services.generation.voiceover import validate_voiceover_request

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Generation"])

music_rate_limit = RateLimitGuard(
    "music", message="Rate limit exceeded. Please wait before generating more music."
)
voiceover_rate_limit = RateLimitGuard(
    "voiceover", message="Rate limit exceeded. Please wait before generating more voiceovers."
)
video_rate_limit = RateLimitGuard(
    "video", message="Rate limit exceeded. Please wait before generating more videos."
)
image_rate_limit = RateLimitGuard(
    "image_generation", message="Rate limit exceeded. Please wait before generating more images."
)


def _not_configured(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message)


async def require_music_configured(generator: MusicGenerator = Depends(get_music_generator)) -> None:
    if not generator.is_configured:
        raise _not_configured("Music generation is not configured. Please set REPLICATE_API_TOKEN.")


async def require_voiceover_configured(
    generator: VoiceoverGenerator = Depends(get_voiceover_generator),
) -> None:
    if not generator.is_configured:
        raise _not_configured("Voiceover generation is not configured. Please set OPENAI_API_KEY.")


async def require_video_configured(generator: VideoGenerator = Depends(get_video_generator)) -> None:
    if not generator.is_configured:
        raise _not_configured("Video generation is not configured. Please set REPLICATE_API_TOKEN.")


async def require_image_configured(generator: ImageGenerator = Depends(get_image_generator)) -> None:
    if not generator.is_configured:
        raise _not_configured("Image generation is not configured. Please set OPENAI_API_KEY.")


def _validated(check: Callable[[], Any]) -> Any:
    try:
        return check()
    except GenerationValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


async def _run(generate: Awaitable[Outcome[GeneratedMedia]]) -> Outcome[GeneratedMedia]:
    try:
        return await generate
    except GenerationValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


async def settle(
    outcome: Outcome[GeneratedMedia],
    media_type: MediaType,
    user_id: str,
    reason: str,
    reference_id: str | None,
    db: DatabaseConnection,
    response: Response,
) -> GenerationResponse:
    """Bill a usable outcome and shape the response.

    A pending outcome answers 202 with the prediction to poll and bills
    nothing. A failed outcome answers 500 and bills nothing.
    """
    if outcome.status == OutcomeStatus.PENDING:
        response.status_code = status.HTTP_202_ACCEPTED
        return GenerationResponse(
            success=True,
            status="processing",
            media_type=media_type.value,
            prediction_id=outcome.prediction_id,
            warning=outcome.warning,
        )

    if not outcome.usable:
        logger.warning("Generation failed", media_type=media_type.value, error=outcome.error)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=outcome.error or f"{media_type.value.capitalize()} generation failed",
        )

    media = outcome.value
    balance = await charge_credits(
        user_id,
        media.credits,
        reason,
        media.prediction_id or reference_id,
        db,
    )
    return GenerationResponse(
        success=True,
        status="completed",
        url=media.url,
        url_type=media.url_type,
        media_type=media_type.value,
        prediction_id=media.prediction_id,
        duration=media.duration,
        credits_used=media.credits,
        credits_remaining=balance.credits_remaining,
        warning=outcome.warning,
        metadata=media.metadata,
    )


@router.post(
    "/generate-music",
    response_model=GenerationResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_music_configured)],
    summary="Generate Music",
    description="Generate an instrumental music track",
)
async def generate_music(
    body: MusicRequest,
    response: Response,
    user: AuthenticatedUser = Depends(require_auth),
    _: Any = Depends(music_rate_limit),
    db: DatabaseConnection = Depends(get_database),
    generator: MusicGenerator = Depends(get_music_generator),
) -> GenerationResponse:
    _validated(lambda: validate_music_request(body.prompt, body.genre, body.mood, body.tempo))
    await require_credits(
        user.sub,
        MUSIC_CREDIT_COST,
        db,
        f"Insufficient credits. Music generation requires {MUSIC_CREDIT_COST} credits.",
    )

    outcome = await _run(
        generator.generate(
            body.prompt,
            duration=body.duration,
            genre=body.genre,
            mood=body.mood,
            tempo=body.tempo,
            project_id=body.project_id,
            scene_id=body.scene_id,
        )
    )
    return await settle(
        outcome,
        MediaType.MUSIC,
        user.sub,
        f"Music generation ({clamp_duration(body.duration)}s)",
        body.project_id,
        db,
        response,
    )


@router.post(
    "/generate-voiceover",
    response_model=GenerationResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_voiceover_configured)],
    summary="Generate Voiceover",
    description="Turn narration text into speech",
)
async def generate_voiceover(
    body: VoiceoverRequest,
    response: Response,
    user: AuthenticatedUser = Depends(require_auth),
    _: Any = Depends(voiceover_rate_limit),
    db: DatabaseConnection = Depends(get_database),
    generator: VoiceoverGenerator = Depends(get_voiceover_generator),
) -> GenerationResponse:
    text = _validated(lambda: validate_voiceover_request(body.text, body.voice, body.model))
    cost = voiceover_credit_cost(text)
    await require_credits(
        user.sub,
        cost,
        db,
        f"Insufficient credits. This voiceover requires {cost} credits.",
    )

    outcome = await _run(
        generator.generate(
            text,
            voice=body.voice,
            model=body.model,
            speed=body.speed,
            project_id=body.project_id,
            scene_id=body.scene_id,
            user_id=user.sub,
        )
    )
    return await settle(
        outcome,
        MediaType.VOICEOVER,
        user.sub,
        f"Voiceover generation ({len(text)} characters)",
        body.project_id,
        db,
        response,
    )


@router.post(
    "/generate-video",
    response_model=GenerationResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_video_configured)],
    summary="Generate Video",
    description="Generate a short video clip from a prompt or an image",
)
async def generate_video(
    body: VideoRequest,
    response: Response,
    user: AuthenticatedUser = Depends(require_auth_with_csrf),
    _: Any = Depends(video_rate_limit),
    db: DatabaseConnection = Depends(get_database),
    generator: VideoGenerator = Depends(get_video_generator),
) -> GenerationResponse:
    _validated(
        lambda: validate_video_request(
            body.prompt, body.image_url, body.duration, body.aspect_ratio, body.quality_tier
        )
    )
    cost = video_credit_cost(body.quality_tier)
    resolution = VIDEO_QUALITY_RESOLUTIONS[body.quality_tier]
    await require_credits(
        user.sub,
        cost,
        db,
        f"Insufficient credits. {body.quality_tier} video ({resolution}) requires {cost} credits.",
    )

    outcome = await _run(
        generator.generate(
            body.prompt,
            image_url=body.image_url,
            duration=body.duration,
            aspect_ratio=body.aspect_ratio,
            quality_tier=body.quality_tier,
            project_id=body.project_id,
            scene_id=body.scene_id,
        )
    )
    return await settle(
        outcome,
        MediaType.VIDEO,
        user.sub,
        f"Video generation ({body.quality_tier}, {resolution})",
        body.project_id,
        db,
        response,
    )


@router.post(
    "/generate-image",
    response_model=GenerationResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_image_configured)],
    summary="Generate Image",
    description="Generate a concept frame",
)
async def generate_image(
    body: ImageRequest,
    response: Response,
    user: AuthenticatedUser = Depends(require_auth),
    _: Any = Depends(image_rate_limit),
    db: DatabaseConnection = Depends(get_database),
    generator: ImageGenerator = Depends(get_image_generator),
) -> GenerationResponse:
    model = body.model or generator.settings.image_model
    _validated(lambda: validate_image_request(body.prompt, body.size, body.quality, body.style, model))
    await require_credits(
        user.sub,
        IMAGE_CREDIT_COST,
        db,
        f"Insufficient credits. Image generation requires {IMAGE_CREDIT_COST} credits.",
    )

    outcome = await _run(
        generator.generate(
            body.prompt,
            size=body.size,
            quality=body.quality,
            style=body.style,
            model=model,
            project_id=body.project_id,
            scene_id=body.scene_id,
        )
    )
    return await settle(
        outcome,
        MediaType.IMAGE,
        user.sub,
        "Image generation",
        body.project_id,
        db,
        response,
    )
