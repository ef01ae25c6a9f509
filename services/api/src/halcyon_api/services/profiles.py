"""Production profiles and per-scene tuning for video, music, voiceover and captions.

A profile bundles the settings for every stage of a production. Profiles are
picked explicitly by id or scored against the project's content type,
platform, quality tier, genre and mood.
"""

from dataclasses import dataclass
from typing import Literal

ContentType = Literal["cinematic", "documentary", "commercial", "music_video", "short_form", "narrative"]
TargetPlatform = Literal["cinema", "streaming", "social_media", "broadcast"]
QualityTier = Literal["standard", "professional", "premium"]
CaptionTiming = Literal["word", "phrase", "sentence"]


@dataclass(frozen=True)
class VideoConfig:
    provider: str
    model: str
    resolution: str
    aspect_ratio: str
    fps: int
    duration: str
    style: str
    motion_intensity: str
    color_grading: str


@dataclass(frozen=True)
class AudioConfig:
    provider: str
    model: str
    genre: str
    mood: str
    tempo: str
    duration: int
    include_vocals: bool
    instrumental_balance: int
    loudness_target: int
    stereo_width: str
    vocal_style: str | None = None


@dataclass(frozen=True)
class VoiceoverConfig:
    provider: str
    model: str
    voice: str
    speed: float
    pitch: int
    emotional_tone: str
    clarity: str


@dataclass(frozen=True)
class CaptionConfig:
    style: str
    position: str
    font_size: str
    font_family: str
    background_color: str
    animation: str
    timing: CaptionTiming
    text_color: str = "#ffffff"
    enabled: bool = True


@dataclass(frozen=True)
class ProductionProfile:
    id: str
    name: str
    description: str
    content_type: ContentType
    target_platform: TargetPlatform
    quality_tier: QualityTier
    video: VideoConfig
    audio: AudioConfig
    voiceover: VoiceoverConfig
    captions: CaptionConfig


CINEMA_CAPTIONS = CaptionConfig(
    style="cinematic",
    position="bottom",
    font_size="medium",
    font_family="Inter",
    background_color="rgba(0,0,0,0.6)",
    animation="fade",
    timing="phrase",
)
SOCIAL_CAPTIONS = CaptionConfig(
    style="social",
    position="center",
    font_size="large",
    font_family="Montserrat",
    background_color="transparent",
    animation="typewriter",
    timing="word",
)
ACCESSIBLE_CAPTIONS = CaptionConfig(
    style="accessible",
    position="bottom",
    font_size="large",
    font_family="Open Sans",
    background_color="rgba(0,0,0,0.9)",
    animation="none",
    timing="sentence",
)

PRODUCTION_PROFILES: dict[str, ProductionProfile] = {
    "cinematic-premium": ProductionProfile(
        id="cinematic-premium",
        name="Cinematic Premium",
        description="Hollywood-quality production with cinematic visuals, orchestral score, and professional voiceover",
        content_type="cinematic",
        target_platform="cinema",
        quality_tier="premium",
        video=VideoConfig(
            provider="runway",
            model="gen-3-alpha",
            resolution="4k",
            aspect_ratio="21:9",
            fps=24,
            duration="medium",
            style="cinematic",
            motion_intensity="dynamic",
            color_grading="filmic-warm",
        ),
        audio=AudioConfig(
            provider="suno",
            model="v3.5",
            genre="orchestral",
            mood="epic",
            tempo="dynamic",
            duration=30,
            include_vocals=True,
            vocal_style="cinematic-choir",
            instrumental_balance=70,
            loudness_target=-14,
            stereo_width="wide",
        ),
        voiceover=VoiceoverConfig(
            provider="elevenlabs",
            model="eleven_multilingual_v2",
            voice="narrator-deep",
            speed=0.95,
            pitch=0,
            emotional_tone="dramatic",
            clarity="broadcast",
        ),
        captions=CINEMA_CAPTIONS,
    ),
    "streaming-professional": ProductionProfile(
        id="streaming-professional",
        name="Streaming Professional",
        description="High-quality production optimized for streaming platforms",
        content_type="narrative",
        target_platform="streaming",
        quality_tier="professional",
        video=VideoConfig(
            provider="runway",
            model="gen-3-alpha",
            resolution="1080p",
            aspect_ratio="16:9",
            fps=30,
            duration="medium",
            style="modern-cinematic",
            motion_intensity="moderate",
            color_grading="natural-enhanced",
        ),
        audio=AudioConfig(
            provider="suno",
            model="v3.5",
            genre="cinematic",
            mood="emotional",
            tempo="moderate",
            duration=30,
            include_vocals=True,
            vocal_style="contemporary",
            instrumental_balance=60,
            loudness_target=-16,
            stereo_width="standard",
        ),
        voiceover=VoiceoverConfig(
            provider="openai",
            model="tts-1-hd",
            voice="nova",
            speed=1.0,
            pitch=0,
            emotional_tone="engaging",
            clarity="natural",
        ),
        captions=CaptionConfig(
            style="standard",
            position="bottom",
            font_size="medium",
            font_family="Roboto",
            background_color="rgba(0,0,0,0.7)",
            animation="fade",
            timing="phrase",
        ),
    ),
    "social-viral": ProductionProfile(
        id="social-viral",
        name="Social Media Viral",
        description="Fast-paced, attention-grabbing content for social platforms",
        content_type="short_form",
        target_platform="social_media",
        quality_tier="professional",
        video=VideoConfig(
            provider="runway",
            model="gen-3-alpha",
            resolution="1080p",
            aspect_ratio="9:16",
            fps=30,
            duration="short",
            style="trendy",
            motion_intensity="dynamic",
            color_grading="vibrant",
        ),
        audio=AudioConfig(
            provider="suno",
            model="v3.5",
            genre="pop",
            mood="energetic",
            tempo="fast",
            duration=15,
            include_vocals=True,
            vocal_style="modern-pop",
            instrumental_balance=40,
            loudness_target=-14,
            stereo_width="wide",
        ),
        voiceover=VoiceoverConfig(
            provider="openai",
            model="tts-1-hd",
            voice="shimmer",
            speed=1.1,
            pitch=0,
            emotional_tone="energetic",
            clarity="natural",
        ),
        captions=SOCIAL_CAPTIONS,
    ),
    "documentary-professional": ProductionProfile(
        id="documentary-professional",
        name="Documentary Professional",
        description="Authentic, story-driven content with natural aesthetics",
        content_type="documentary",
        target_platform="streaming",
        quality_tier="professional",
        video=VideoConfig(
            provider="runway",
            model="gen-3-alpha",
            resolution="1080p",
            aspect_ratio="16:9",
            fps=24,
            duration="long",
            style="documentary",
            motion_intensity="subtle",
            color_grading="natural",
        ),
        audio=AudioConfig(
            provider="suno",
            model="v3.5",
            genre="ambient",
            mood="contemplative",
            tempo="slow",
            duration=60,
            include_vocals=False,
            instrumental_balance=100,
            loudness_target=-18,
            stereo_width="standard",
        ),
        voiceover=VoiceoverConfig(
            provider="elevenlabs",
            model="eleven_multilingual_v2",
            voice="narrator-warm",
            speed=0.9,
            pitch=0,
            emotional_tone="thoughtful",
            clarity="broadcast",
        ),
        captions=CaptionConfig(
            style="accessible",
            position="bottom",
            font_size="medium",
            font_family="Open Sans",
            background_color="rgba(0,0,0,0.8)",
            animation="none",
            timing="sentence",
        ),
    ),
    "standard": ProductionProfile(
        id="standard",
        name="Standard Quality",
        description="Good quality production for everyday content",
        content_type="narrative",
        target_platform="streaming",
        quality_tier="standard",
        video=VideoConfig(
            provider="replicate",
            model="zeroscope-v2-xl",
            resolution="720p",
            aspect_ratio="16:9",
            fps=24,
            duration="short",
            style="natural",
            motion_intensity="moderate",
            color_grading="balanced",
        ),
        audio=AudioConfig(
            provider="replicate",
            model="musicgen-stereo-large",
            genre="cinematic",
            mood="neutral",
            tempo="moderate",
            duration=30,
            include_vocals=False,
            instrumental_balance=100,
            loudness_target=-16,
            stereo_width="standard",
        ),
        voiceover=VoiceoverConfig(
            provider="openai",
            model="tts-1",
            voice="nova",
            speed=1.0,
            pitch=0,
            emotional_tone="neutral",
            clarity="natural",
        ),
        captions=CaptionConfig(
            style="standard",
            position="bottom",
            font_size="medium",
            font_family="Arial",
            background_color="rgba(0,0,0,0.7)",
            animation="none",
            timing="phrase",
        ),
    ),
}

DEFAULT_PROFILE_ID = "standard"


def get_profile(profile_id: str | None) -> ProductionProfile:
    """Look up a profile, falling back to the standard one."""
    return PRODUCTION_PROFILES.get(profile_id or "", PRODUCTION_PROFILES[DEFAULT_PROFILE_ID])


def select_best_profile(
    content_type: str | None = None,
    target_platform: str | None = None,
    quality_tier: str | None = None,
    genre: str | None = None,
    mood: str | None = None,
) -> ProductionProfile:
    """Pick the profile that best matches the project.

    Scores: content type 30, platform 25, tier 20, genre substring 15,
    mood substring 10. Ties keep the earlier profile; a zero score keeps
    the standard profile.
    """
    best = PRODUCTION_PROFILES[DEFAULT_PROFILE_ID]
    best_score = 0

    for profile in PRODUCTION_PROFILES.values():
        score = 0
        if content_type and profile.content_type == content_type:
            score += 30
        if target_platform and profile.target_platform == target_platform:
            score += 25
        if quality_tier and profile.quality_tier == quality_tier:
            score += 20
        if genre and genre.lower() in profile.audio.genre.lower():
            score += 15
        if mood and mood.lower() in profile.audio.mood.lower():
            score += 10

        if score > best_score:
            best_score = score
            best = profile

    return best


MOOD_TO_GENRE = {
    "happy": "upbeat",
    "sad": "melancholic",
    "tense": "suspense",
    "epic": "orchestral",
    "romantic": "romantic",
    "mysterious": "ambient",
    "action": "electronic",
    "peaceful": "ambient",
    "dark": "dark-ambient",
    "hopeful": "inspirational",
    "neutral": "cinematic",
}
PACING_TO_TEMPO = {"slow": "slow", "medium": "moderate", "fast": "fast"}


def get_optimal_audio_settings(
    mood: str = "neutral",
    pacing: str = "medium",
    has_dialogue: bool = False,
    emotional_intensity: int = 50,
) -> dict:
    """Music hints for a scene: quieter and instrumental under dialogue."""
    return {
        "genre": MOOD_TO_GENRE.get(mood, "cinematic"),
        "mood": mood,
        "tempo": PACING_TO_TEMPO.get(pacing, "moderate"),
        "include_vocals": not has_dialogue and emotional_intensity > 60,
        "instrumental_balance": 85 if has_dialogue else 60,
        "loudness_target": -20 if has_dialogue else -16,
    }


VOICE_BY_CONTEXT = {
    "cinematic": "echo",
    "documentary": "onyx",
    "commercial": "nova",
    "narrative": "nova",
    "children": "shimmer",
    "young_adult": "alloy",
}
SPEED_BY_CONTENT = {
    "cinematic": 0.95,
    "documentary": 0.9,
    "commercial": 1.05,
    "short_form": 1.1,
    "narrative": 1.0,
}


def get_optimal_voiceover_settings(
    content_type: str = "narrative",
    target_audience: str = "general",
    emotional_tone: str = "engaging",
) -> dict:
    voice = VOICE_BY_CONTEXT.get(content_type) or VOICE_BY_CONTEXT.get(target_audience) or "nova"
    return {
        "voice": voice,
        "speed": SPEED_BY_CONTENT.get(content_type, 1.0),
        "emotional_tone": emotional_tone,
        "clarity": "broadcast" if content_type == "documentary" else "natural",
    }


PLATFORM_CAPTIONS: dict[str, CaptionConfig] = {
    "cinema": CINEMA_CAPTIONS,
    "streaming": CaptionConfig(
        style="standard",
        position="bottom",
        font_size="medium",
        font_family="Roboto",
        background_color="rgba(0,0,0,0.75)",
        animation="fade",
        timing="phrase",
    ),
    "social_media": SOCIAL_CAPTIONS,
    "broadcast": CaptionConfig(
        style="standard",
        position="bottom",
        font_size="medium",
        font_family="Arial",
        background_color="rgba(0,0,0,0.8)",
        animation="none",
        timing="sentence",
    ),
}


def get_optimal_caption_settings(
    platform: str = "streaming",
    is_accessibility_required: bool = False,
) -> CaptionConfig:
    """Caption styling for a platform. Accessibility wins over platform."""
    if is_accessibility_required:
        return ACCESSIBLE_CAPTIONS
    return PLATFORM_CAPTIONS.get(platform, PLATFORM_CAPTIONS["streaming"])


