"""Tests for provider error sanitization."""

import pytest

from halcyon_api.services.error_sanitizer import sanitize_generation_error


class TestSanitizeGenerationError:
    """Provider errors never reach users verbatim when they leak details."""

    def test_billing_errors_are_replaced(self):
        message = sanitize_generation_error(
            "You have insufficient credit to run this model. "
            "Go to https://replicate.com/account/billing#billing to purchase credit.",
            "video",
        )

        assert "replicate.com" not in message
        assert "billing" not in message.lower()
        assert message.startswith("Video generation is temporarily unavailable.")

    def test_rate_limit_errors_are_replaced(self):
        message = sanitize_generation_error("429 Too Many Requests", "music")

        assert message == "Music generation rate limit exceeded. Please wait a moment and try again."

    def test_auth_errors_are_replaced(self):
        message = sanitize_generation_error(Exception("Invalid API key provided"), "voiceover")

        assert message == "Voiceover generation service is currently unavailable. Please try again later."

    def test_urls_are_stripped_from_other_errors(self):
        message = sanitize_generation_error(
            "Prediction failed: see https://example.com/logs/abc for details", "video"
        )

        assert "https://" not in message
        assert message == "Prediction failed: see for details"

    def test_url_only_error_falls_back_to_generic_message(self):
        message = sanitize_generation_error("https://example.com/x", "image")

        assert message == "Image generation failed. Please try again."

    def test_plain_errors_pass_through(self):
        assert sanitize_generation_error("CUDA out of memory", "video") == "CUDA out of memory"

    @pytest.mark.parametrize("error", [None, "", "   "])
    def test_empty_errors(self, error):
        assert sanitize_generation_error(error, "music") == "Music generation failed"

    def test_defaults_to_video_label(self):
        assert sanitize_generation_error(None) == "Video generation failed"

    @pytest.mark.parametrize("media_type", ["video", "image", "music", "voiceover"])
    @pytest.mark.parametrize(
        "error",
        [
            "You have insufficient credit. Go to https://replicate.com/account/billing#billing",
            "429 Too Many Requests",
            "Invalid API key provided",
            "https://example.com/x",
            "Prediction failed: see https://example.com/logs/abc for details",
            "",
            "CUDA out of memory",
        ],
    )
    def test_sanitizing_twice_changes_nothing(self, error, media_type):
        once = sanitize_generation_error(error, media_type)

        assert sanitize_generation_error(once, media_type) == once
