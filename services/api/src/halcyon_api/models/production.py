"""Request and response models for episode production."""

from typing import Any

from pydantic import BaseModel, Field

from .base import BaseResponse, ProgressResponse


class AudioSettingsModel(BaseModel):
    include_music_track: bool = Field(default=True, alias="includeMusicTrack")
    include_voiceover: bool = Field(default=True, alias="includeVoiceover")
    include_captions: bool = Field(default=False, alias="includeCaptions")
    music_volume: float | None = Field(default=None, ge=0, le=1, alias="musicVolume")
    voiceover_volume: float | None = Field(default=None, ge=0, le=1, alias="voiceoverVolume")
    default_voice: str | None = Field(default=None, alias="defaultVoice")

    model_config = {"populate_by_name": True}


class GenerationSettingsModel(BaseModel):
    music_mood: str | None = Field(default=None, alias="musicMood")
    music_genre: str | None = Field(default=None, alias="musicGenre")

    model_config = {"populate_by_name": True}


class AssemblySettingsModel(BaseModel):
    resolution: str = "1080p"
    aspect_ratio: str = Field(default="16:9", alias="aspectRatio")
    transition_type: str = Field(default="fade", alias="transitionType")
    transition_duration: float = Field(default=0.5, ge=0, alias="transitionDuration")
    format: str = "mp4"
    quality: str = "high"

    model_config = {"populate_by_name": True}


class ProductionSettingsModel(BaseModel):
    audio: AudioSettingsModel = Field(default_factory=AudioSettingsModel)
    generation: GenerationSettingsModel = Field(default_factory=GenerationSettingsModel)
    assembly: AssemblySettingsModel = Field(default_factory=AssemblySettingsModel)


class ProduceEpisodeRequest(BaseModel):
    """Body of ``POST /api/produce-episode``.

    Field presence and limits are checked by the route so that it can answer
    with 400 and a specific message.
    """

    project_id: str | None = Field(default=None, alias="projectId")
    prompt: str | None = None
    scenes: list[dict[str, Any]] | None = None
    title: str | None = None
    genre: str | None = None
    target_duration: float | None = Field(default=None, alias="targetDuration")
    settings: ProductionSettingsModel | None = None
    estimate_only: bool = Field(default=False, alias="estimateOnly")
    quick_mode: bool = Field(default=False, alias="quickMode")

    model_config = {"populate_by_name": True}


class CreditEstimateResponse(BaseResponse):
    success: bool = True
    estimated_credits: int = Field(alias="estimatedCredits")
    video: int
    music: int
    voiceover: int
    assembly: int


class ProduceEpisodeResponse(BaseResponse):
    success: bool
    video_url: str | None = Field(default=None, alias="videoUrl")
    duration: float | None = None
    captions_url: str | None = Field(default=None, alias="captionsUrl")
    credits_used: int = Field(default=0, alias="creditsUsed")
    credits_remaining: int | None = Field(default=None, alias="creditsRemaining")
    progress: ProgressResponse | None = None
    assets: dict[str, Any] | None = None
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None


class ProduceBatchRequest(BaseModel):
    """Body of ``POST /api/produce-batch``.

    The series and movie configs stay raw so the route can report the first
    missing field with a 400.
    """

    project_id: str | None = Field(default=None, alias="projectId")
    type: str | None = None
    series_config: dict[str, Any] | None = Field(default=None, alias="seriesConfig")
    movie_config: dict[str, Any] | None = Field(default=None, alias="movieConfig")
    settings: ProductionSettingsModel | None = None
    estimate_only: bool = Field(default=False, alias="estimateOnly")

    model_config = {"populate_by_name": True}


class BatchEstimateResponse(BaseResponse):
    success: bool = True
    type: str
    estimated_credits: int = Field(alias="estimatedCredits")
    per_segment: int = Field(alias="perSegment")
    segments: int
    video: int
    music: int
    voiceover: int
    assembly: int


class BatchVideoResponse(BaseResponse):
    segment_id: str = Field(alias="segmentId")
    title: str
    video_url: str = Field(alias="videoUrl")
    duration: float


class ProduceBatchResponse(BaseResponse):
    success: bool
    type: str
    title: str
    videos: list[BatchVideoResponse] = Field(default_factory=list)
    total_duration: float = Field(default=0, alias="totalDuration")
    credits_used: int = Field(default=0, alias="creditsUsed")
    credits_remaining: int | None = Field(default=None, alias="creditsRemaining")
    progress: dict[str, Any] | None = None
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None
