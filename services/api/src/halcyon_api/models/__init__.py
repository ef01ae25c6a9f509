"""API request and response models."""

from .base import BaseResponse, ErrorDetail, ErrorResponse, ProgressResponse
from .credits import CreditBalanceModel, CreditsResponse, CreditTransactionModel
from .generation import (
    GenerationResponse,
    ImageRequest,
    MusicRequest,
    PredictionStatusResponse,
    VideoRequest,
    VoiceoverRequest,
)
from .production import (
    BatchEstimateResponse,
    BatchVideoResponse,
    CreditEstimateResponse,
    ProduceBatchRequest,
    ProduceBatchResponse,
    ProduceEpisodeRequest,
    ProduceEpisodeResponse,
    ProductionSettingsModel,
)

__all__ = [
    "BaseResponse",
    "BatchEstimateResponse",
    "BatchVideoResponse",
    "CreditBalanceModel",
    "CreditEstimateResponse",
    "CreditTransactionModel",
    "CreditsResponse",
    "ErrorDetail",
    "ErrorResponse",
    "GenerationResponse",
    "ImageRequest",
    "MusicRequest",
    "PredictionStatusResponse",
    "ProduceBatchRequest",
    "ProduceBatchResponse",
    "ProduceEpisodeRequest",
    "ProduceEpisodeResponse",
    "ProductionSettingsModel",
    "ProgressResponse",
    "VideoRequest",
    "VoiceoverRequest",
]
