"""Still image generation with OpenAI image models."""

import base64
import binascii
from typing import Any

from openai import APIError, APITimeoutError, AsyncOpenAI

from halcyon_shared.blob import (
    URL_TYPE_PERMANENT,
    URL_TYPE_TEMPORARY,
    MediaKind,
    MediaStorage,
    is_temporary_url,
)
from halcyon_shared.config import OpenAISettings, get_settings
from halcyon_shared.logging import get_logger
from halcyon_shared.telemetry import get_tracer, record_exception_on_span

from ..error_sanitizer import sanitize_generation_error
from .outcome import GeneratedMedia, GenerationValidationError, MediaType, Outcome, media_outcome

logger = get_logger(__name__)
tracer = get_tracer(__name__)

VALID_SIZES = ("1024x1024", "1792x1024", "1024x1792")
VALID_QUALITIES = ("standard", "hd")
VALID_STYLES = ("vivid", "natural")
VALID_MODELS = ("dall-e-3", "gpt-image-1.5")

IMAGE_CREDIT_COST = 1

# GPT Image has no standard/hd; map onto its own quality scale.
GPT_IMAGE_QUALITY = {"standard": "medium", "hd": "high"}


def build_cinematic_prompt(
    prompt: str,
    shot_type: str | None = None,
    style: str | None = None,
    lighting: str | None = None,
    mood: str | None = None,
) -> str:
    """Decorate a prompt with shot, style, lighting and mood hints."""
    parts = []
    if shot_type:
        parts.append(f"{shot_type} shot")
    parts.append(prompt)
    if style:
        parts.append(f"in {style} style")
    if lighting:
        parts.append(f"with {lighting} lighting")
    if mood:
        parts.append(f"{mood} mood")
    parts.append("cinematic quality, high detail, professional cinematography")
    return ", ".join(parts)


def build_image_request(
    prompt: str,
    model: str,
    size: str,
    quality: str,
    style: str,
) -> dict[str, Any]:
    """Build model-specific request parameters."""
    params: dict[str, Any] = {"model": model, "prompt": prompt, "n": 1, "size": size}
    if model == "dall-e-3":
        params["quality"] = quality
        params["style"] = style
    else:
        params["quality"] = GPT_IMAGE_QUALITY[quality]
    return params


def validate_image_request(
    prompt: str | None,
    size: str,
    quality: str,
    style: str,
    model: str,
) -> None:
    """Raise GenerationValidationError for inputs outside the allow-lists."""
    if not prompt or not prompt.strip():
        raise GenerationValidationError("Prompt is required")
    if size not in VALID_SIZES:
        raise GenerationValidationError(f"Invalid size. Must be one of: {', '.join(VALID_SIZES)}")
    if quality not in VALID_QUALITIES:
        raise GenerationValidationError(f"Invalid quality. Must be one of: {', '.join(VALID_QUALITIES)}")
    if style not in VALID_STYLES:
        raise GenerationValidationError(f"Invalid style. Must be one of: {', '.join(VALID_STYLES)}")
    if model not in VALID_MODELS:
        raise GenerationValidationError(f"Invalid model. Must be one of: {', '.join(VALID_MODELS)}")


class ImageGenerator:
    """Generates concept frames and stores them."""

    credit_cost = IMAGE_CREDIT_COST

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
                timeout=self.settings.image_timeout_seconds,
            )
        return self._client

    async def generate(
        self,
        prompt: str,
        size: str = "1024x1024",
        quality: str = "standard",
        style: str = "vivid",
        model: str | None = None,
        project_id: str | None = None,
        scene_id: str | None = None,
    ) -> Outcome[GeneratedMedia]:
        """Generate one image.

        Raises:
            GenerationValidationError: If an input is not allowed.
        """
        model = model or self.settings.image_model
        validate_image_request(prompt, size, quality, style, model)
        if not self.is_configured:
            return Outcome.failed("Image generation is not configured")

        with tracer.start_as_current_span("image.generate") as span:
            span.set_attributes({"image.model": model, "image.size": size})
            try:
                response = await self.client.images.generate(
                    **build_image_request(prompt, model, size, quality, style)
                )
            except APITimeoutError as e:
                record_exception_on_span(span, e)
                return Outcome.failed("Image generation request timed out")
            except APIError as e:
                record_exception_on_span(span, e)
                logger.error("Image generation failed", model=model, error=str(e))
                return Outcome.failed(sanitize_generation_error(e, "image"))

            data = response.data[0] if response.data else None
            image_url = getattr(data, "url", None)
            b64_json = getattr(data, "b64_json", None)
            revised_prompt = getattr(data, "revised_prompt", None)

            if image_url:
                if project_id:
                    persisted = await self.storage.persist_image(image_url, project_id, scene_id)
                    url, url_type = persisted.url, persisted.url_type
                else:
                    url = image_url
                    url_type = URL_TYPE_TEMPORARY if is_temporary_url(image_url) else URL_TYPE_PERMANENT
            elif b64_json:
                try:
                    image_bytes = base64.b64decode(b64_json)
                except (binascii.Error, ValueError):
                    return Outcome.failed("Image generation returned unreadable data")
                persisted = await self.storage.persist_bytes(
                    image_bytes,
                    "image/png",
                    MediaKind.IMAGE,
                    project_id=project_id,
                    scene_id=scene_id,
                )
                url, url_type = persisted.url, persisted.url_type
            else:
                return Outcome.failed("No image data returned from API")

        metadata = {"model": model}
        if revised_prompt:
            metadata["revised_prompt"] = revised_prompt
        return media_outcome(
            GeneratedMedia(
                url=url,
                media_type=MediaType.IMAGE,
                credits=IMAGE_CREDIT_COST,
                url_type=url_type,
                metadata=metadata,
            )
        )
