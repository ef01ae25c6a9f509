"""Prediction status polling for long-running video and music generations."""

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status

from halcyon_shared.logging import get_logger

from ..dependencies.auth import AuthenticatedUser, require_auth
from ..dependencies.providers import get_replicate_client
from ..models.generation import PredictionStatusResponse
from ..services.error_sanitizer import sanitize_generation_error
from ..services.generation import (
    PredictionNotFoundError,
    ReplicateClient,
    ReplicateError,
    is_valid_prediction_id,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Generation"])


async def require_replicate_configured(
    replicate: ReplicateClient = Depends(get_replicate_client),
) -> None:
    if not replicate.is_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Prediction status check is not configured. Please set REPLICATE_API_TOKEN.",
        )


@router.get(
    "/prediction-status/{prediction_id}",
    response_model=PredictionStatusResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_replicate_configured)],
    summary="Prediction Status",
    description="Check a video or music prediction that was still running when its request returned",
)
async def get_prediction_status(
    prediction_id: str,
    type_: str | None = Query(default=None, alias="type"),
    user: AuthenticatedUser = Depends(require_auth),
    replicate: ReplicateClient = Depends(get_replicate_client),
) -> PredictionStatusResponse:
    if not is_valid_prediction_id(prediction_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid prediction ID format")

    media_type = "music" if type_ == "music" else "video"

    try:
        prediction = await replicate.get_prediction(prediction_id)
    except PredictionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prediction not found") from e
    except (httpx.HTTPError, ReplicateError) as e:
        logger.error("Prediction status check failed", prediction_id=prediction_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=sanitize_generation_error(e, media_type),
        ) from e

    return PredictionStatusResponse(
        success=prediction.succeeded,
        status=prediction.status,
        output=prediction.first_output,
        error=sanitize_generation_error(prediction.error, media_type) if prediction.error else None,
    )
