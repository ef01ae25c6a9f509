"""Background music generation with MusicGen on Replicate."""

import httpx

from halcyon_shared.blob import URL_TYPE_PERMANENT, URL_TYPE_TEMPORARY, MediaStorage, is_temporary_url
from halcyon_shared.logging import get_logger
from halcyon_shared.telemetry import get_tracer, record_exception_on_span

from ..error_sanitizer import sanitize_generation_error
from .outcome import GeneratedMedia, GenerationValidationError, MediaType, Outcome, media_outcome
from .replicate import ReplicateClient, ReplicateError

logger = get_logger(__name__)
tracer = get_tracer(__name__)

MUSICGEN_VERSION = "b05b1dff1d8c6dc63d14b0cdb42135378dcb87f6373b0d3d341ede46e59e2b38"

MUSIC_CREDIT_COST = 5

MIN_DURATION_SECONDS = 5
MAX_DURATION_SECONDS = 30
DEFAULT_DURATION_SECONDS = 10

VALID_GENRES = (
    "ambient",
    "cinematic",
    "classical",
    "electronic",
    "folk",
    "hip-hop",
    "jazz",
    "lo-fi",
    "orchestral",
    "pop",
    "rock",
    "synthwave",
    "world",
)

VALID_MOODS = (
    "calm",
    "dark",
    "dramatic",
    "energetic",
    "happy",
    "hopeful",
    "intense",
    "melancholic",
    "mysterious",
    "peaceful",
    "romantic",
    "tense",
    "uplifting",
)

VALID_TEMPOS = ("slow", "moderate", "fast", "very fast")


def clamp_duration(duration: float | None) -> int:
    """Clamp a requested duration to what MusicGen accepts."""
    if duration is None:
        return DEFAULT_DURATION_SECONDS
    return int(min(MAX_DURATION_SECONDS, max(MIN_DURATION_SECONDS, duration)))


def build_music_prompt(
    prompt: str,
    genre: str | None = None,
    mood: str | None = None,
    tempo: str | None = None,
) -> str:
    """Append genre, mood and tempo hints to the user's prompt."""
    enhanced = prompt.strip()
    if genre:
        enhanced += f", {genre} genre"
    if mood:
        enhanced += f", {mood} mood"
    if tempo:
        enhanced += f", {tempo} tempo"
    return enhanced


def validate_music_request(
    prompt: str | None,
    genre: str | None = None,
    mood: str | None = None,
    tempo: str | None = None,
) -> None:
    """Reject prompts and hints outside the allow-lists.

    Raises:
        GenerationValidationError: With a message naming the allowed values.
    """
    if not prompt or not prompt.strip():
        raise GenerationValidationError("Prompt is required")
    if genre and genre not in VALID_GENRES:
        raise GenerationValidationError(f"Invalid genre. Must be one of: {', '.join(VALID_GENRES)}")
    if mood and mood not in VALID_MOODS:
        raise GenerationValidationError(f"Invalid mood. Must be one of: {', '.join(VALID_MOODS)}")
    if tempo and tempo not in VALID_TEMPOS:
        raise GenerationValidationError(f"Invalid tempo. Must be one of: {', '.join(VALID_TEMPOS)}")


class MusicGenerator:
    """Generates instrumental music and persists it to storage."""

    credit_cost = MUSIC_CREDIT_COST

    def __init__(self, replicate: ReplicateClient, storage: MediaStorage):
        self.replicate = replicate
        self.storage = storage

    @property
    def is_configured(self) -> bool:
        return self.replicate.is_configured

    async def generate(
        self,
        prompt: str,
        duration: float | None = DEFAULT_DURATION_SECONDS,
        genre: str | None = None,
        mood: str | None = None,
        tempo: str | None = None,
        project_id: str | None = None,
        scene_id: str | None = None,
    ) -> Outcome[GeneratedMedia]:
        """Generate a music track.

        Args:
            prompt: Description of the music.
            duration: Seconds, clamped to 5..30.
            genre: Optional genre from VALID_GENRES.
            mood: Optional mood from VALID_MOODS.
            tempo: Optional tempo from VALID_TEMPOS.
            project_id: Project to store the track under.
            scene_id: Scene to store the track under.

        Returns:
            ``ok``/``degraded`` with the track, ``pending`` if MusicGen is
            still running after the wait budget, or ``failed``.

        Raises:
            GenerationValidationError: If an input is not allowed.
        """
        validate_music_request(prompt, genre, mood, tempo)
        if not self.is_configured:
            return Outcome.failed("Music generation is not configured")

        seconds = clamp_duration(duration)
        enhanced_prompt = build_music_prompt(prompt, genre, mood, tempo)

        with tracer.start_as_current_span("music.generate") as span:
            span.set_attribute("music.duration", seconds)
            try:
                prediction = await self.replicate.run(
                    MUSICGEN_VERSION,
                    {
                        "prompt": enhanced_prompt,
                        "duration": seconds,
                        "model_version": "stereo-large",
                        "output_format": "mp3",
                        "normalization_strategy": "loudness",
                    },
                )
            except httpx.TimeoutException as e:
                record_exception_on_span(span, e)
                logger.warning("Music generation request timed out")
                return Outcome.failed("Music generation request timed out")
            except (httpx.HTTPError, ReplicateError) as e:
                record_exception_on_span(span, e)
                logger.error("Music generation request failed", error=str(e))
                return Outcome.failed(sanitize_generation_error(e, "music"))

            span.set_attribute("replicate.prediction_id", prediction.id)

            if not prediction.is_terminal:
                return Outcome.pending(prediction.id, "Music generation is still processing")
            if not prediction.succeeded or not prediction.first_output:
                logger.warning(
                    "Music prediction did not succeed",
                    prediction_id=prediction.id,
                    status=prediction.status,
                )
                return Outcome.failed(
                    sanitize_generation_error(prediction.error or "Music generation failed", "music")
                )

            url = prediction.first_output
            if project_id:
                persisted = await self.storage.persist_audio(url, project_id, scene_id)
                url, url_type = persisted.url, persisted.url_type
            else:
                url_type = URL_TYPE_TEMPORARY if is_temporary_url(url) else URL_TYPE_PERMANENT

        return media_outcome(
            GeneratedMedia(
                url=url,
                media_type=MediaType.MUSIC,
                credits=MUSIC_CREDIT_COST,
                url_type=url_type,
                prediction_id=prediction.id,
                duration=seconds,
            )
        )
