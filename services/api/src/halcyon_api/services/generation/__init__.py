"""Generation adapters for images, music, voiceover, video and assembly."""

from .assembly import (
    AssemblyOptions,
    AudioTrack,
    TextOverlay,
    VideoAssembler,
    VideoClip,
    estimate_assembly_credits,
)
from .image import IMAGE_CREDIT_COST, ImageGenerator, build_cinematic_prompt
from .music import (
    MUSIC_CREDIT_COST,
    VALID_GENRES,
    VALID_MOODS,
    VALID_TEMPOS,
    MusicGenerator,
)
from .outcome import (
    GeneratedMedia,
    GenerationValidationError,
    MediaType,
    Outcome,
    OutcomeStatus,
)
from .replicate import (
    Prediction,
    PredictionNotFoundError,
    PredictionStatus,
    ReplicateClient,
    ReplicateError,
    is_valid_prediction_id,
)
from .video import VIDEO_CREDIT_COST, VideoGenerator, video_credit_cost
from .voiceover import VoiceoverGenerator, voiceover_credit_cost

__all__ = [
    "AssemblyOptions",
    "AudioTrack",
    "GeneratedMedia",
    "GenerationValidationError",
    "IMAGE_CREDIT_COST",
    "ImageGenerator",
    "MUSIC_CREDIT_COST",
    "MediaType",
    "MusicGenerator",
    "Outcome",
    "OutcomeStatus",
    "Prediction",
    "PredictionNotFoundError",
    "PredictionStatus",
    "ReplicateClient",
    "ReplicateError",
    "TextOverlay",
    "VALID_GENRES",
    "VALID_MOODS",
    "VALID_TEMPOS",
    "VIDEO_CREDIT_COST",
    "VideoAssembler",
    "VideoClip",
    "VideoGenerator",
    "VoiceoverGenerator",
    "build_cinematic_prompt",
    "estimate_assembly_credits",
    "is_valid_prediction_id",
    "video_credit_cost",
    "voiceover_credit_cost",
]
