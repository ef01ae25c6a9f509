"""Factories for the database, storage and provider adapters.

Routes receive adapters through ``Depends`` so tests can swap them with
``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends

from halcyon_shared.blob import MediaStorage
from halcyon_shared.db import DatabaseConnection, get_db

from ..services.episode import EpisodeProducer
from ..services.generation import (
    ImageGenerator,
    MusicGenerator,
    ReplicateClient,
    VideoAssembler,
    VideoGenerator,
    VoiceoverGenerator,
)
from ..services.progress import LoggingEventSink, ProgressChannel
from ..services.series import BatchProducer


def get_database() -> DatabaseConnection:
    return get_db()


@lru_cache
def get_media_storage() -> MediaStorage:
    return MediaStorage()


@lru_cache
def get_replicate_client() -> ReplicateClient:
    return ReplicateClient()


def get_music_generator(
    replicate: ReplicateClient = Depends(get_replicate_client),
    storage: MediaStorage = Depends(get_media_storage),
) -> MusicGenerator:
    return MusicGenerator(replicate, storage)


def get_video_generator(
    replicate: ReplicateClient = Depends(get_replicate_client),
    storage: MediaStorage = Depends(get_media_storage),
) -> VideoGenerator:
    return VideoGenerator(replicate, storage)


def get_voiceover_generator(
    storage: MediaStorage = Depends(get_media_storage),
) -> VoiceoverGenerator:
    return VoiceoverGenerator(storage)


def get_image_generator(
    storage: MediaStorage = Depends(get_media_storage),
) -> ImageGenerator:
    return ImageGenerator(storage)


def get_video_assembler(
    storage: MediaStorage = Depends(get_media_storage),
) -> VideoAssembler:
    return VideoAssembler(storage)


def get_episode_producer(
    video: VideoGenerator = Depends(get_video_generator),
    music: MusicGenerator = Depends(get_music_generator),
    voiceover: VoiceoverGenerator = Depends(get_voiceover_generator),
    assembler: VideoAssembler = Depends(get_video_assembler),
) -> EpisodeProducer:
    """A producer with its own progress channel, logged as it runs."""
    channel = ProgressChannel()
    channel.add_sink(LoggingEventSink(component="episode"))
    return EpisodeProducer(video, music, voiceover, assembler, channel=channel)


def get_batch_producer(
    producer: EpisodeProducer = Depends(get_episode_producer),
) -> BatchProducer:
    return BatchProducer(producer)
