"""Tests for the Replicate prediction client."""

import httpx
import pytest

from halcyon_api.services.generation import (
    Prediction,
    PredictionNotFoundError,
    ReplicateClient,
    ReplicateError,
    is_valid_prediction_id,
)
from halcyon_shared.config import ReplicateSettings

PREDICTION_ID = "abcdefghij0123456789xyz"


class FakeTime:
    """Clock in seconds that only moves when the client sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_client(handler, fake_time: FakeTime | None = None) -> ReplicateClient:
    fake_time = fake_time or FakeTime()
    return ReplicateClient(
        settings=ReplicateSettings(api_token="r8_test"),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=fake_time.sleep,
        clock=fake_time.clock,
    )


class TestPrediction:
    """Tests for prediction snapshots."""

    def test_first_output_from_list(self):
        prediction = Prediction.from_api(
            {"id": PREDICTION_ID, "status": "succeeded", "output": ["https://a/1.mp4", "https://a/2.mp4"]}
        )
        assert prediction.succeeded
        assert prediction.is_terminal
        assert prediction.first_output == "https://a/1.mp4"

    def test_first_output_from_string(self):
        prediction = Prediction.from_api({"id": PREDICTION_ID, "status": "succeeded", "output": "https://a/1.mp3"})
        assert prediction.first_output == "https://a/1.mp3"

    def test_empty_output(self):
        prediction = Prediction.from_api({"id": PREDICTION_ID, "status": "processing", "output": []})
        assert prediction.first_output is None
        assert not prediction.is_terminal

    def test_prediction_id_format(self):
        assert is_valid_prediction_id(PREDICTION_ID)
        assert not is_valid_prediction_id("short")
        assert not is_valid_prediction_id("../../etc/passwd/aaaaaaaaaaaa")
        assert not is_valid_prediction_id(None)


class TestReplicateClient:
    """Tests for creating and polling predictions."""

    @pytest.mark.asyncio
    async def test_create_sends_version_and_token(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["url"] = str(request.url)
            return httpx.Response(201, json={"id": PREDICTION_ID, "status": "starting"})

        client = make_client(handler)
        prediction = await client.create_prediction("v1", {"prompt": "rain"})

        assert prediction.id == PREDICTION_ID
        assert seen["auth"] == "Token r8_test"
        assert seen["url"] == "https://api.replicate.com/v1/predictions"

    @pytest.mark.asyncio
    async def test_create_error_raises(self):
        client = make_client(lambda request: httpx.Response(402, json={"detail": "billing"}))

        with pytest.raises(ReplicateError) as exc_info:
            await client.create_prediction("v1", {})

        assert exc_info.value.status_code == 402

    @pytest.mark.asyncio
    async def test_get_missing_prediction(self):
        client = make_client(lambda request: httpx.Response(404, json={"detail": "Not found"}))

        with pytest.raises(PredictionNotFoundError):
            await client.get_prediction(PREDICTION_ID)

    @pytest.mark.asyncio
    async def test_run_polls_every_two_seconds_until_done(self):
        polls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(201, json={"id": PREDICTION_ID, "status": "starting"})
            polls["count"] += 1
            status = "succeeded" if polls["count"] == 3 else "processing"
            return httpx.Response(200, json={"id": PREDICTION_ID, "status": status, "output": ["https://o/x.mp4"]})

        fake_time = FakeTime()
        client = make_client(handler, fake_time)

        prediction = await client.run("v1", {"prompt": "rain"})

        assert prediction.succeeded
        assert polls["count"] == 3
        assert fake_time.sleeps == [2.0, 2.0, 2.0]

    @pytest.mark.asyncio
    async def test_run_gives_up_after_max_wait(self):
        """A prediction still running after 90 seconds is returned as is."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": PREDICTION_ID, "status": "processing"})

        fake_time = FakeTime()
        client = make_client(handler, fake_time)

        prediction = await client.run("v1", {})

        assert prediction.status == "processing"
        assert not prediction.is_terminal
        assert fake_time.now == pytest.approx(90.0)
        assert len(fake_time.sleeps) == 45

    @pytest.mark.asyncio
    async def test_poll_errors_are_ignored(self):
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(201, json={"id": PREDICTION_ID, "status": "starting"})
            calls["count"] += 1
            if calls["count"] == 1:
                return httpx.Response(500, text="upstream error")
            return httpx.Response(200, json={"id": PREDICTION_ID, "status": "failed", "error": "NSFW"})

        client = make_client(handler)

        prediction = await client.run("v1", {})

        assert prediction.status == "failed"
        assert prediction.error == "NSFW"
