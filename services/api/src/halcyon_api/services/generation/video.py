"""Video clip generation on Replicate (Zeroscope text-to-video, SVD image-to-video)."""

from urllib.parse import urlsplit

import httpx

from halcyon_shared.blob import URL_TYPE_PERMANENT, URL_TYPE_TEMPORARY, MediaStorage, is_temporary_url
from halcyon_shared.logging import get_logger
from halcyon_shared.telemetry import get_tracer, record_exception_on_span

from ..error_sanitizer import sanitize_generation_error
from .outcome import GeneratedMedia, GenerationValidationError, MediaType, Outcome, media_outcome
from .replicate import ReplicateClient, ReplicateError

logger = get_logger(__name__)
tracer = get_tracer(__name__)

ZEROSCOPE_VERSION = "9f747673945c62801b13b84701c783929c0ee784e4748ec062204894dda1a351"
STABLE_VIDEO_DIFFUSION_VERSION = "3f0457e4619daac51203dedb472816fd4af51f3149fa7a9e0b5ffcf1b8172438"

NEGATIVE_PROMPT = "blurry, low quality, distorted, watermark"

VIDEO_QUALITY_CREDITS = {
    "standard": 10,
    "professional": 15,
    "premium": 25,
}
VIDEO_QUALITY_RESOLUTIONS = {
    "standard": "720p",
    "professional": "1080p",
    "premium": "4K",
}

ASPECT_RATIO_SIZES = {
    "16:9": (1024, 576),
    "9:16": (576, 1024),
    "1:1": (768, 768),
}

VALID_DURATIONS = ("short", "long")

VIDEO_CREDIT_COST = VIDEO_QUALITY_CREDITS["standard"]

# Zeroscope renders at 8 fps; 24 frames make a ~3s clip, 48 a ~6s clip.
FRAMES_BY_DURATION = {"short": 24, "long": 48}
ZEROSCOPE_FPS = 8


def video_credit_cost(quality_tier: str = "standard") -> int:
    """Credits charged for one clip at the given quality tier."""
    return VIDEO_QUALITY_CREDITS[quality_tier]


def build_video_input(
    prompt: str,
    image_url: str | None = None,
    duration: str = "short",
    aspect_ratio: str = "16:9",
) -> tuple[str, dict]:
    """Pick the model and build its input.

    Returns:
        The Replicate model version and the prediction input.
    """
    if image_url:
        return STABLE_VIDEO_DIFFUSION_VERSION, {
            "input_image": image_url,
            "motion_bucket_id": 127,
            "cond_aug": 0.02,
            "decoding_t": 14,
            "fps": 6,
        }

    width, height = ASPECT_RATIO_SIZES[aspect_ratio]
    return ZEROSCOPE_VERSION, {
        "prompt": prompt.strip(),
        "negative_prompt": NEGATIVE_PROMPT,
        "num_frames": FRAMES_BY_DURATION[duration],
        "width": width,
        "height": height,
        "fps": ZEROSCOPE_FPS,
    }


def validate_video_request(
    prompt: str | None,
    image_url: str | None = None,
    duration: str = "short",
    aspect_ratio: str = "16:9",
    quality_tier: str = "standard",
) -> None:
    """Reject inputs outside the allow-lists.

    Raises:
        GenerationValidationError: If any input is not allowed.
    """
    if not prompt or not prompt.strip():
        raise GenerationValidationError("Prompt is required")
    if duration not in VALID_DURATIONS:
        raise GenerationValidationError(f"Invalid duration. Must be one of: {', '.join(VALID_DURATIONS)}")
    if aspect_ratio not in ASPECT_RATIO_SIZES:
        raise GenerationValidationError(
            f"Invalid aspect ratio. Must be one of: {', '.join(ASPECT_RATIO_SIZES)}"
        )
    if quality_tier not in VIDEO_QUALITY_CREDITS:
        raise GenerationValidationError(
            f"Invalid quality tier. Must be one of: {', '.join(VIDEO_QUALITY_CREDITS)}"
        )
    if image_url is not None and urlsplit(image_url).scheme != "https":
        raise GenerationValidationError("imageUrl must be an https URL")


class VideoGenerator:
    """Generates short video clips and persists them to storage."""

    def __init__(self, replicate: ReplicateClient, storage: MediaStorage):
        self.replicate = replicate
        self.storage = storage

    @property
    def is_configured(self) -> bool:
        return self.replicate.is_configured

    async def generate(
        self,
        prompt: str,
        image_url: str | None = None,
        duration: str = "short",
        aspect_ratio: str = "16:9",
        quality_tier: str = "standard",
        project_id: str | None = None,
        scene_id: str | None = None,
    ) -> Outcome[GeneratedMedia]:
        """Generate one clip.

        Raises:
            GenerationValidationError: If an input is not allowed.
        """
        validate_video_request(prompt, image_url, duration, aspect_ratio, quality_tier)
        if not self.is_configured:
            return Outcome.failed("Video generation is not configured")

        version, model_input = build_video_input(prompt, image_url, duration, aspect_ratio)
        credits = video_credit_cost(quality_tier)

        with tracer.start_as_current_span("video.generate") as span:
            span.set_attributes({
                "video.mode": "image" if image_url else "text",
                "video.quality_tier": quality_tier,
                "video.aspect_ratio": aspect_ratio,
            })
            try:
                prediction = await self.replicate.run(version, model_input)
            except httpx.TimeoutException as e:
                record_exception_on_span(span, e)
                logger.warning("Video generation request timed out")
                return Outcome.failed("Video generation request timed out")
            except (httpx.HTTPError, ReplicateError) as e:
                record_exception_on_span(span, e)
                logger.error("Video generation request failed", error=str(e))
                return Outcome.failed(sanitize_generation_error(e, "video"))

            span.set_attribute("replicate.prediction_id", prediction.id)

            if not prediction.is_terminal:
                return Outcome.pending(prediction.id, "Video generation is still processing")
            if not prediction.succeeded or not prediction.first_output:
                logger.warning(
                    "Video prediction did not succeed",
                    prediction_id=prediction.id,
                    status=prediction.status,
                )
                return Outcome.failed(
                    sanitize_generation_error(prediction.error or "Video generation failed", "video")
                )

            url = prediction.first_output
            if project_id:
                persisted = await self.storage.persist_video(url, project_id, scene_id)
                url, url_type = persisted.url, persisted.url_type
            else:
                url_type = URL_TYPE_TEMPORARY if is_temporary_url(url) else URL_TYPE_PERMANENT

        return media_outcome(
            GeneratedMedia(
                url=url,
                media_type=MediaType.VIDEO,
                credits=credits,
                url_type=url_type,
                prediction_id=prediction.id,
                metadata={
                    "quality_tier": quality_tier,
                    "resolution": VIDEO_QUALITY_RESOLUTIONS[quality_tier],
                },
            )
        )
