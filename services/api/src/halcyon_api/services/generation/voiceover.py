"""Voiceover generation with OpenAI text-to-speech."""

import math

from openai import APIError, APITimeoutError, AsyncOpenAI

from halcyon_shared.blob import MediaKind, MediaStorage
from halcyon_shared.config import OpenAISettings, get_settings
from halcyon_shared.logging import get_logger
from halcyon_shared.telemetry import get_tracer, record_exception_on_span

from ..error_sanitizer import sanitize_generation_error
from .outcome import GeneratedMedia, GenerationValidationError, MediaType, Outcome, media_outcome

logger = get_logger(__name__)
tracer = get_tracer(__name__)

MAX_TEXT_LENGTH = 4096
VALID_VOICES = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")
VALID_MODELS = ("tts-1", "tts-1-hd")
MIN_SPEED = 0.25
MAX_SPEED = 4.0

CREDITS_PER_1K_CHARS = 2
# Average narration pace used to estimate clip length.
CHARS_PER_MINUTE = 750


def voiceover_credit_cost(text: str) -> int:
    """Credits for a voiceover: 2 per started 1000 characters, at least 1."""
    return max(1, math.ceil(len(text) / 1000 * CREDITS_PER_1K_CHARS))


def estimate_voiceover_duration(text: str, speed: float = 1.0) -> int:
    """Approximate spoken length in seconds."""
    return round(len(text) / CHARS_PER_MINUTE * 60 / speed)


def clamp_speed(speed: float | None) -> float:
    if not speed:
        return 1.0
    return min(MAX_SPEED, max(MIN_SPEED, float(speed)))


def validate_voiceover_request(text: str | None, voice: str = "nova", model: str = "tts-1") -> str:
    """Validate and trim voiceover text.

    Returns:
        The trimmed text.

    Raises:
        GenerationValidationError: If text, voice or model is not allowed.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        raise GenerationValidationError("Text is required")
    if len(trimmed) > MAX_TEXT_LENGTH:
        raise GenerationValidationError(f"Text exceeds maximum length of {MAX_TEXT_LENGTH} characters")
    if voice not in VALID_VOICES:
        raise GenerationValidationError(f"Invalid voice. Must be one of: {', '.join(VALID_VOICES)}")
    if model not in VALID_MODELS:
        raise GenerationValidationError(f"Invalid model. Must be one of: {', '.join(VALID_MODELS)}")
    return trimmed


class VoiceoverGenerator:
    """Turns narration text into speech and stores the MP3."""

    def __init__(
        self,
        storage: MediaStorage,
        settings: OpenAISettings | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.storage = storage
        self.settings = settings or get_settings().openai
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None or bool(self.settings.api_key)

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                timeout=self.settings.tts_timeout_seconds,
            )
        return self._client

    async def generate(
        self,
        text: str,
        voice: str = "nova",
        model: str = "tts-1",
        speed: float = 1.0,
        project_id: str | None = None,
        scene_id: str | None = None,
        user_id: str | None = None,
    ) -> Outcome[GeneratedMedia]:
        """Synthesize speech.

        The MP3 is stored in the voiceovers container. If storage fails the
        audio is returned inline as a ``data:`` URL flagged temporary.

        Raises:
            GenerationValidationError: If an input is not allowed.
        """
        trimmed = validate_voiceover_request(text, voice, model)
        if not self.is_configured:
            return Outcome.failed("Voiceover generation is not configured")

        speed = clamp_speed(speed)

        with tracer.start_as_current_span("voiceover.generate") as span:
            span.set_attributes({"tts.voice": voice, "tts.model": model, "tts.characters": len(trimmed)})
            try:
                response = await self.client.audio.speech.create(
                    model=model,
                    voice=voice,
                    input=trimmed,
                    response_format="mp3",
                    speed=speed,
                    timeout=self.settings.tts_timeout_seconds,
                )
                audio = response.content
            except APITimeoutError as e:
                record_exception_on_span(span, e)
                logger.warning("Voiceover generation request timed out")
                return Outcome.failed("Voiceover generation request timed out")
            except APIError as e:
                record_exception_on_span(span, e)
                logger.error("Voiceover generation failed", error=str(e))
                return Outcome.failed(sanitize_generation_error(e, "voiceover"))

            persisted = await self.storage.persist_bytes(
                audio,
                "audio/mpeg",
                MediaKind.VOICEOVER,
                project_id=project_id,
                scene_id=scene_id,
                owner_id=user_id,
            )

        return media_outcome(
            GeneratedMedia(
                url=persisted.url,
                media_type=MediaType.VOICEOVER,
                credits=voiceover_credit_cost(trimmed),
                url_type=persisted.url_type,
                duration=estimate_voiceover_duration(trimmed, speed),
                metadata={"voice": voice, "model": model, "characters": len(trimmed)},
            )
        )
