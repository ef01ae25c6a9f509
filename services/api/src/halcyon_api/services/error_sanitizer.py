"""Turn raw provider errors into messages that are safe to show users.

Provider errors can leak billing pages, account URLs and key problems on our
side. Those are replaced with generic, media-specific wording; anything else
is passed through with URLs removed.
"""

import re

MEDIA_LABELS = {
    "video": "Video",
    "image": "Image",
    "music": "Music",
    "voiceover": "Voiceover",
}

_BILLING_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"insufficient credit",
        r"purchase credit",
        r"replicate\.com/account/billing",
        r"go to https?://replicate",
        r"billing#billing",
    )
]

_RATE_LIMIT_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"rate limit", r"too many requests", r"quota exceeded")
]

_AUTH_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"api key", r"authentication", r"unauthorized", r"forbidden", r"invalid.*token")
]

_URL_PATTERN = re.compile(r"https?://\S+", re.IGNORECASE)

MIN_USEFUL_MESSAGE_LENGTH = 10


def _label(media_type: str) -> str:
    return MEDIA_LABELS.get(media_type, media_type[:1].upper() + media_type[1:])


def _message_of(error: object) -> str:
    if error is None:
        return ""
    return str(error).strip()


def sanitize_generation_error(error: object, media_type: str = "video") -> str:
    """Map a provider error to a user-facing message.

    Args:
        error: Exception, string or None.
        media_type: One of video, image, music, voiceover.

    Returns:
        A message that never contains provider URLs or billing details.
    """
    label = _label(media_type)
    message = _message_of(error)

    if not message:
        return f"{label} generation failed"

    if any(p.search(message) for p in _BILLING_PATTERNS):
        return (
            f"{label} generation is temporarily unavailable. "
            "Please try again later or contact support if the issue persists."
        )

    if any(p.search(message) for p in _RATE_LIMIT_PATTERNS):
        return f"{label} generation rate limit exceeded. Please wait a moment and try again."

    if any(p.search(message) for p in _AUTH_PATTERNS):
        return f"{label} generation service is currently unavailable. Please try again later."

    if _URL_PATTERN.search(message):
        stripped = re.sub(r"\s+", " ", _URL_PATTERN.sub("", message)).strip()
        if len(stripped) < MIN_USEFUL_MESSAGE_LENGTH:
            return f"{label} generation failed. Please try again."
        return stripped

    return message
