"""Request and response models for single-asset generation."""

from typing import Any

from pydantic import BaseModel, Field

from .base import BaseResponse


class MusicRequest(BaseModel):
    prompt: str | None = None
    duration: float | None = None
    genre: str | None = None
    mood: str | None = None
    tempo: str | None = None
    project_id: str | None = Field(default=None, alias="projectId")
    scene_id: str | None = Field(default=None, alias="sceneId")

    model_config = {"populate_by_name": True}


class VoiceoverRequest(BaseModel):
    text: str | None = None
    voice: str = "nova"
    model: str = "tts-1"
    speed: float = 1.0
    project_id: str | None = Field(default=None, alias="projectId")
    scene_id: str | None = Field(default=None, alias="sceneId")

    model_config = {"populate_by_name": True}


class VideoRequest(BaseModel):
    prompt: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    duration: str = "short"
    aspect_ratio: str = Field(default="16:9", alias="aspectRatio")
    quality_tier: str = Field(default="standard", alias="qualityTier")
    project_id: str | None = Field(default=None, alias="projectId")
    scene_id: str | None = Field(default=None, alias="sceneId")

    model_config = {"populate_by_name": True}


class ImageRequest(BaseModel):
    prompt: str | None = None
    size: str = "1024x1024"
    quality: str = "standard"
    style: str = "vivid"
    model: str | None = None
    project_id: str | None = Field(default=None, alias="projectId")
    scene_id: str | None = Field(default=None, alias="sceneId")

    model_config = {"populate_by_name": True}


class GenerationResponse(BaseResponse):
    """Result of a generation request.

    ``status`` is ``completed`` with a URL, or ``processing`` with a
    ``predictionId`` to poll.
    """

    success: bool
    status: str
    url: str | None = None
    url_type: str | None = Field(default=None, alias="urlType")
    media_type: str = Field(alias="mediaType")
    prediction_id: str | None = Field(default=None, alias="predictionId")
    duration: float | None = None
    credits_used: int = Field(default=0, alias="creditsUsed")
    credits_remaining: int | None = Field(default=None, alias="creditsRemaining")
    warning: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class PredictionStatusResponse(BaseResponse):
    success: bool
    status: str
    output: str | None = None
    error: str | None = None
