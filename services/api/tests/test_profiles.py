"""Tests for production profiles and per-scene tuning."""

import pytest

from halcyon_api.services.profiles import (
    ACCESSIBLE_CAPTIONS,
    PLATFORM_CAPTIONS,
    PRODUCTION_PROFILES,
    get_optimal_audio_settings,
    get_optimal_caption_settings,
    get_optimal_voiceover_settings,
    get_profile,
    select_best_profile,
)


class TestGetProfile:
    """Tests for profile lookup."""

    def test_known_profile(self):
        assert get_profile("social-viral").video.aspect_ratio == "9:16"

    @pytest.mark.parametrize("profile_id", [None, "", "does-not-exist"])
    def test_falls_back_to_standard(self, profile_id):
        assert get_profile(profile_id).id == "standard"

    def test_all_profiles_keyed_by_id(self):
        assert all(key == profile.id for key, profile in PRODUCTION_PROFILES.items())


class TestSelectBestProfile:
    """Tests for scoring profiles against project hints."""

    def test_no_hints_keeps_standard(self):
        assert select_best_profile().id == "standard"

    def test_content_type_wins(self):
        assert select_best_profile(content_type="documentary").id == "documentary-professional"

    def test_tie_keeps_earlier_profile(self):
        # Three profiles target streaming; streaming-professional is listed first.
        assert select_best_profile(target_platform="streaming").id == "streaming-professional"

    def test_genre_matches_substring(self):
        assert select_best_profile(genre="Orch").id == "cinematic-premium"

    def test_scores_add_up(self):
        profile = select_best_profile(target_platform="streaming", quality_tier="standard")
        assert profile.id == "standard"


class TestOptimalSettings:
    """Tests for scene-level audio, voiceover and caption tuning."""

    def test_audio_under_dialogue(self):
        settings = get_optimal_audio_settings(mood="tense", pacing="fast", has_dialogue=True, emotional_intensity=90)
        assert settings == {
            "genre": "suspense",
            "mood": "tense",
            "tempo": "fast",
            "include_vocals": False,
            "instrumental_balance": 85,
            "loudness_target": -20,
        }

    def test_audio_vocals_for_intense_scenes(self):
        settings = get_optimal_audio_settings(mood="unknown", emotional_intensity=80)
        assert settings["include_vocals"] is True
        assert settings["genre"] == "cinematic"
        assert settings["tempo"] == "moderate"

    def test_voiceover_for_documentary(self):
        settings = get_optimal_voiceover_settings(content_type="documentary")
        assert settings["voice"] == "onyx"
        assert settings["speed"] == 0.9
        assert settings["clarity"] == "broadcast"

    def test_voiceover_falls_back_to_audience(self):
        settings = get_optimal_voiceover_settings(content_type="short_form", target_audience="children")
        assert settings["voice"] == "shimmer"
        assert settings["speed"] == 1.1

    def test_voiceover_default_voice(self):
        assert get_optimal_voiceover_settings(content_type="other")["voice"] == "nova"

    def test_captions_accessibility_overrides_platform(self):
        assert get_optimal_caption_settings("social_media", is_accessibility_required=True) is ACCESSIBLE_CAPTIONS

    def test_captions_by_platform(self):
        assert get_optimal_caption_settings("social_media").timing == "word"
        assert get_optimal_caption_settings("somewhere") is PLATFORM_CAPTIONS["streaming"]
