"""Progress reporting for productions.

A ``ProgressChannel`` fans typed ``ProgressUpdate`` events out to async
subscribers and to registered sinks.

Usage:
    channel = ProgressChannel()
    channel.add_sink(LoggingEventSink())

    async def watch():
        async for update in channel.subscribe():
            print(update.to_dict())

    await channel.publish(ProgressUpdate(ProductionStage.INITIALIZING, 0, "Preparing..."))
    await channel.close()
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from halcyon_shared.logging import get_logger

logger = get_logger(__name__)


class ProductionStage(str, Enum):
    """Stage of a production run."""

    INITIALIZING = "initializing"
    GENERATING_VIDEO = "generating_video"
    GENERATING_AUDIO = "generating_audio"
    GENERATING_VOICEOVER = "generating_voiceover"
    GENERATING_CAPTIONS = "generating_captions"
    MIXING = "mixing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ProgressUpdate:
    """One progress event - matches the frontend schema."""

    stage: ProductionStage
    progress: int
    current_task: str
    estimated_time_remaining: int | None = None
    completed_steps: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization (camelCase for frontend)."""
        return {
            "stage": self.stage.value,
            "progress": self.progress,
            "currentTask": self.current_task,
            "estimatedTimeRemaining": self.estimated_time_remaining,
            "completedSteps": list(self.completed_steps),
            "errors": list(self.errors),
        }


class EventSink(Protocol):
    """Protocol for receiving progress updates."""

    async def emit(self, update: ProgressUpdate) -> None:
        ...


class SimpleEventSink:
    """Collects updates in memory, for tests or batch delivery."""

    def __init__(self):
        self.updates: list[ProgressUpdate] = []

    async def emit(self, update: ProgressUpdate) -> None:
        self.updates.append(update)

    @property
    def stages(self) -> list[ProductionStage]:
        return [u.stage for u in self.updates]

    @property
    def progress_values(self) -> list[int]:
        return [u.progress for u in self.updates]

    def clear(self) -> None:
        self.updates = []


class LoggingEventSink:
    """Writes every update to the structured log."""

    def __init__(self, **context: Any):
        self.context = context

    async def emit(self, update: ProgressUpdate) -> None:
        logger.info(
            "Production progress",
            stage=update.stage.value,
            progress=update.progress,
            task=update.current_task,
            **self.context,
        )


_CLOSED = object()


class ProgressChannel:
    """Broadcasts progress updates to subscribers and sinks.

    Progress never goes backwards, except that a transition to ``failed``
    reports 0. The ordering holds per channel, so each production run
    publishes on its own ``open_run()`` scope, which forwards to this one.
    """

    def __init__(self, parent: ProgressChannel | None = None):
        self._parent = parent
        self._queues: list[asyncio.Queue] = []
        self._sinks: list[EventSink] = []
        self._closed = False
        self.latest: ProgressUpdate | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def subscribe(self) -> AsyncIterator[ProgressUpdate]:
        """Start receiving updates published from now on.

        The returned iterator ends when the channel is closed.
        """
        queue: asyncio.Queue = asyncio.Queue()
        if self._closed:
            queue.put_nowait(_CLOSED)
        else:
            self._queues.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue) -> AsyncIterator[ProgressUpdate]:
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    async def publish(self, update: ProgressUpdate) -> None:
        """Deliver an update to every subscriber and sink.

        Raises:
            RuntimeError: If the channel is closed.
            ValueError: If progress would go backwards outside of a failure.
        """
        if self._closed:
            raise RuntimeError("Progress channel is closed")
        if (
            self.latest is not None
            and update.stage != ProductionStage.FAILED
            and update.progress < self.latest.progress
        ):
            raise ValueError(
                f"Progress cannot decrease from {self.latest.progress} to {update.progress}"
            )

        await self._deliver(update)

    async def _deliver(self, update: ProgressUpdate) -> None:
        self.latest = update
        for queue in self._queues:
            queue.put_nowait(update)
        for sink in self._sinks:
            await sink.emit(update)
        if self._parent is not None and not self._parent.closed:
            await self._parent._deliver(update)

    def open_run(self) -> ProgressChannel:
        """A channel for one production run.

        It starts with no progress baseline and forwards every update to this
        channel's subscribers and sinks.
        """
        return ProgressChannel(parent=self)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for queue in self._queues:
            queue.put_nowait(_CLOSED)
