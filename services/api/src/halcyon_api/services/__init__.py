"""API services package."""

from .episode import EpisodeProducer, EpisodeRequest, EpisodeResult
from .production_mixer import ProductionMixer, ProductionRequest, ProductionResult
from .progress import ProductionStage, ProgressChannel, ProgressUpdate
from .series import BatchProducer, BatchResult, MovieConfig, SeriesConfig

__all__ = [
    "BatchProducer",
    "BatchResult",
    "EpisodeProducer",
    "EpisodeRequest",
    "EpisodeResult",
    "MovieConfig",
    "ProductionMixer",
    "ProductionRequest",
    "ProductionResult",
    "ProductionStage",
    "ProgressChannel",
    "ProgressUpdate",
    "SeriesConfig",
]
