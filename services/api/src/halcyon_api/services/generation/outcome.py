"""Result types shared by all generation adapters."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from halcyon_shared.blob import URL_TYPE_PERMANENT, URL_TYPE_TEMPORARY

T = TypeVar("T")

TEMPORARY_URL_WARNING = (
    "Generated media could not be saved to permanent storage. "
    "The link will expire, download it soon."
)


class MediaType(str, Enum):
    """Kinds of media the adapters generate."""

    VIDEO = "video"
    IMAGE = "image"
    MUSIC = "music"
    VOICEOVER = "voiceover"


class OutcomeStatus(str, Enum):
    """How a generation attempt ended."""

    OK = "ok"
    DEGRADED = "degraded"  # usable, with a caveat (e.g. temporary URL)
    PENDING = "pending"  # still running at the provider
    FAILED = "failed"


class GenerationValidationError(ValueError):
    """Raised before any provider call when an input is not allowed."""


@dataclass(frozen=True)
class GeneratedMedia:
    """A generated asset and what it cost."""

    url: str
    media_type: MediaType
    credits: int
    url_type: str = URL_TYPE_PERMANENT
    prediction_id: str | None = None
    duration: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_temporary(self) -> bool:
        return self.url_type == URL_TYPE_TEMPORARY


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one generation step.

    Exactly one of these holds:
    - ``ok``: ``value`` is set.
    - ``degraded``: ``value`` is set and ``warning`` explains the caveat.
    - ``pending``: ``prediction_id`` identifies work still running.
    - ``failed``: ``error`` holds a user-safe message.
    """

    status: OutcomeStatus
    value: T | None = None
    error: str | None = None
    warning: str | None = None
    prediction_id: str | None = None

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        """Create a successful outcome."""
        return cls(status=OutcomeStatus.OK, value=value)

    @classmethod
    def degraded(cls, value: T, warning: str) -> "Outcome[T]":
        """Create a usable outcome that carries a warning."""
        return cls(status=OutcomeStatus.DEGRADED, value=value, warning=warning)

    @classmethod
    def pending(cls, prediction_id: str, message: str | None = None) -> "Outcome[T]":
        """Create an outcome for work the provider has not finished yet."""
        return cls(status=OutcomeStatus.PENDING, prediction_id=prediction_id, warning=message)

    @classmethod
    def failed(cls, error: str) -> "Outcome[T]":
        """Create a failed outcome."""
        return cls(status=OutcomeStatus.FAILED, error=error)

    @property
    def usable(self) -> bool:
        """Whether ``value`` can be handed to the user."""
        return self.status in (OutcomeStatus.OK, OutcomeStatus.DEGRADED)


def media_outcome(media: GeneratedMedia) -> Outcome[GeneratedMedia]:
    """Wrap generated media, degrading it when only a temporary URL exists."""
    if media.is_temporary:
        return Outcome.degraded(media, TEMPORARY_URL_WARNING)
    return Outcome.ok(media)
