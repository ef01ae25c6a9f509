"""Replicate prediction client with bounded polling."""

import asyncio
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from halcyon_shared.config import ReplicateSettings, get_settings
from halcyon_shared.logging import get_logger

logger = get_logger(__name__)

PREDICTION_ID_PATTERN = re.compile(r"^[a-z0-9]{20,}$", re.IGNORECASE)


class PredictionStatus(str, Enum):
    """Lifecycle states reported by Replicate."""

    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


TERMINAL_STATUSES = frozenset(
    {PredictionStatus.SUCCEEDED.value, PredictionStatus.FAILED.value, PredictionStatus.CANCELED.value}
)


class ReplicateError(Exception):
    """Replicate returned a non-success HTTP response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PredictionNotFoundError(ReplicateError):
    """The prediction id is unknown to Replicate."""


@dataclass(frozen=True)
class Prediction:
    """Snapshot of a Replicate prediction."""

    id: str
    status: str
    output: Any = None
    error: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Prediction":
        error = data.get("error")
        return cls(
            id=str(data.get("id", "")),
            status=str(data.get("status", PredictionStatus.STARTING.value)),
            output=data.get("output"),
            error=str(error) if error else None,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def succeeded(self) -> bool:
        return self.status == PredictionStatus.SUCCEEDED.value

    @property
    def first_output(self) -> str | None:
        """The first output URL (video and music models return a list or a string)."""
        if isinstance(self.output, list):
            return self.output[0] if self.output else None
        return self.output


def is_valid_prediction_id(prediction_id: str | None) -> bool:
    """Check a prediction id before it is put into an upstream URL."""
    return bool(prediction_id) and PREDICTION_ID_PATTERN.match(prediction_id) is not None


class ReplicateClient:
    """Creates predictions and polls them until they finish or time out."""

    def __init__(
        self,
        settings: ReplicateSettings | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the client.

        Args:
            settings: Replicate settings, defaults to application settings.
            http_client: HTTP client, created lazily if not provided.
            sleep: Awaitable sleep used between polls.
            clock: Monotonic clock in seconds used for the polling deadline.
        """
        self.settings = settings or get_settings().replicate
        self._http_client = http_client
        self._sleep = sleep
        self._clock = clock

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.api_token)

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.request_timeout_seconds)
        return self._http_client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Token {self.settings.api_token}",
            "Content-Type": "application/json",
        }

    async def create_prediction(self, version: str, model_input: dict[str, Any]) -> Prediction:
        """Start a prediction. Not retried, since every call is billed.

        Raises:
            ReplicateError: If Replicate rejects the request.
            httpx.HTTPError: On network failure or timeout.
        """
        response = await self.http_client.post(
            f"{self.settings.base_url}/predictions",
            json={"version": version, "input": model_input},
            headers=self._headers(),
            timeout=self.settings.request_timeout_seconds,
        )
        if response.status_code >= 400:
            raise ReplicateError(
                f"Replicate API error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        prediction = Prediction.from_api(response.json())
        logger.info("Prediction created", prediction_id=prediction.id, status=prediction.status)
        return prediction

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def get_prediction(self, prediction_id: str) -> Prediction:
        """Fetch the current state of a prediction.

        Raises:
            PredictionNotFoundError: If Replicate answers 404.
            ReplicateError: For any other non-success response.
        """
        response = await self.http_client.get(
            f"{self.settings.base_url}/predictions/{prediction_id}",
            headers=self._headers(),
            timeout=self.settings.request_timeout_seconds,
        )
        if response.status_code == 404:
            raise PredictionNotFoundError("Prediction not found", status_code=404)
        if response.status_code >= 400:
            raise ReplicateError(
                f"Replicate API error: {response.status_code}",
                status_code=response.status_code,
            )
        return Prediction.from_api(response.json())

    async def wait_for_prediction(
        self,
        prediction: Prediction,
        max_wait: float | None = None,
    ) -> Prediction:
        """Poll until the prediction is terminal or the wait budget is spent.

        Individual poll failures are ignored; the last known state is kept.

        Returns:
            The terminal prediction, or the last non-terminal snapshot if the
            deadline passed first.
        """
        max_wait = self.settings.max_wait_seconds if max_wait is None else max_wait
        deadline = self._clock() + max_wait
        current = prediction

        while not current.is_terminal:
            if self._clock() >= deadline:
                logger.warning(
                    "Prediction still running after max wait",
                    prediction_id=current.id,
                    status=current.status,
                    max_wait=max_wait,
                )
                return current
            await self._sleep(self.settings.poll_interval_seconds)
            try:
                current = await self.get_prediction(current.id)
            except (httpx.HTTPError, ReplicateError) as e:
                logger.debug("Prediction poll failed", prediction_id=current.id, error=str(e))

        return current

    async def run(
        self,
        version: str,
        model_input: dict[str, Any],
        max_wait: float | None = None,
    ) -> Prediction:
        """Create a prediction and wait for it."""
        prediction = await self.create_prediction(version, model_input)
        return await self.wait_for_prediction(prediction, max_wait=max_wait)

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
