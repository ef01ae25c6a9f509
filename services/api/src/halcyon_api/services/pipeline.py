"""Staged production pipeline.

A pipeline is an ordered list of ``StageSpec``s. Each stage reports its start
and end progress, runs inside a span, and returns an ``Outcome``. A failed
stage either aborts the run or is recorded and skipped, depending on its
``FailurePolicy``.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from halcyon_shared.logging import LogContext, get_logger
from halcyon_shared.telemetry import get_tracer, record_exception_on_span

from .generation.outcome import Outcome
from .progress import ProductionStage, ProgressChannel, ProgressUpdate

logger = get_logger(__name__)
tracer = get_tracer(__name__)

STAGE_ORDER = [
    ProductionStage.INITIALIZING,
    ProductionStage.GENERATING_VIDEO,
    ProductionStage.GENERATING_AUDIO,
    ProductionStage.GENERATING_VOICEOVER,
    ProductionStage.GENERATING_CAPTIONS,
    ProductionStage.MIXING,
    ProductionStage.COMPLETE,
]

# A stage may repeat itself or move forward; any live stage may fail.
TRANSITIONS: dict[ProductionStage, frozenset[ProductionStage]] = {
    stage: frozenset(STAGE_ORDER[i:]) | {ProductionStage.FAILED}
    for i, stage in enumerate(STAGE_ORDER[:-1])
}
TRANSITIONS[ProductionStage.COMPLETE] = frozenset()
TRANSITIONS[ProductionStage.FAILED] = frozenset()


class InvalidTransitionError(Exception):
    """Raised when a production stage change is not allowed."""

    def __init__(self, current: ProductionStage, target: ProductionStage):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from {current.value} to {target.value}")


def validate_transition(current: ProductionStage, target: ProductionStage) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is legal."""
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)


class FailurePolicy(str, Enum):
    ABORT = "abort"
    CONTINUE = "continue"


def _always(ctx: Any) -> bool:
    return True


@dataclass
class StageSpec:
    """One step of a pipeline."""

    name: str
    stage: ProductionStage
    start_progress: int
    end_progress: int
    task: str
    done_task: str
    run: Callable[[Any], Awaitable[Outcome]]
    eta_seconds: int | None = None
    on_failure: FailurePolicy = FailurePolicy.CONTINUE
    should_run: Callable[[Any], bool] = _always


@dataclass
class PipelineRun:
    """What happened during a pipeline run."""

    success: bool = False
    outcomes: dict[str, Outcome] = field(default_factory=dict)
    credits_used: int = 0
    completed_steps: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    failed_stage: str | None = None
    error: str | None = None
    progress: ProgressUpdate | None = None
    processing_time: float = 0.0

    def value_of(self, name: str) -> Any:
        """The value of a stage that produced a usable outcome, else None."""
        outcome = self.outcomes.get(name)
        if outcome is None or not outcome.usable:
            return None
        return outcome.value


def outcome_credits(outcome: Outcome) -> int:
    """Credits carried by a usable outcome's value."""
    if not outcome.usable:
        return 0
    return int(getattr(outcome.value, "credits", 0) or 0)


class Pipeline:
    """Runs stages in order and reports progress on a channel."""

    def __init__(self, stages: list[StageSpec], channel: ProgressChannel | None = None):
        self.stages = stages
        self.channel = channel or ProgressChannel()
        self._run_channel = self.channel
        self._stage: ProductionStage | None = None
        self._errors: list[str] = []
        self._completed: list[str] = []

    async def _emit(
        self,
        stage: ProductionStage,
        progress: int,
        task: str,
        eta: int | None = None,
    ) -> ProgressUpdate:
        if self._stage is not None:
            validate_transition(self._stage, stage)
        self._stage = stage
        update = ProgressUpdate(
            stage=stage,
            progress=progress,
            current_task=task,
            estimated_time_remaining=eta,
            completed_steps=list(self._completed),
            errors=list(self._errors),
        )
        await self._run_channel.publish(update)
        return update

    def add_error(self, message: str) -> None:
        """Record a non-fatal problem inside the running stage."""
        self._errors.append(message)

    async def report(self, progress: int, task: str) -> None:
        """Publish intermediate progress for the running stage."""
        await self._emit(self._stage, progress, task)

    async def _run_stage(self, spec: StageSpec, ctx: Any) -> Outcome:
        with tracer.start_as_current_span(f"pipeline.{spec.name}") as span:
            span.set_attribute("pipeline.stage", spec.stage.value)
            try:
                outcome = await spec.run(ctx)
            except Exception as e:
                record_exception_on_span(span, e)
                logger.exception("Pipeline stage raised", stage=spec.name)
                return Outcome.failed(str(e) or f"{spec.name} stage failed")
            span.set_attribute("pipeline.outcome", outcome.status.value)
            return outcome

    async def run(self, ctx: Any) -> PipelineRun:
        """Run every applicable stage.

        Exceptions raised by stages are turned into failed outcomes and never
        escape.

        Args:
            ctx: Mutable state shared between stages.

        Returns:
            The run record, with ``success`` False if an aborting stage failed.
        """
        started = time.monotonic()
        result = PipelineRun()
        self._run_channel = self.channel.open_run()
        self._stage = None
        self._errors = []
        self._completed = []

        await self._emit(ProductionStage.INITIALIZING, 0, "Preparing production pipeline...")

        for spec in self.stages:
            if not spec.should_run(ctx):
                continue

            with LogContext(pipeline_stage=spec.name):
                await self._emit(spec.stage, spec.start_progress, spec.task, spec.eta_seconds)
                outcome = await self._run_stage(spec, ctx)
                result.outcomes[spec.name] = outcome

                if outcome.usable:
                    result.credits_used += outcome_credits(outcome)
                    self._completed.append(spec.name)
                    if outcome.warning:
                        result.warnings.append(outcome.warning)
                else:
                    message = outcome.error or outcome.warning or f"{spec.name} did not complete"
                    self._errors.append(f"{spec.name}: {message}")
                    if spec.on_failure == FailurePolicy.ABORT:
                        logger.warning("Aborting production", stage=spec.name, error=message)
                        result.failed_stage = spec.name
                        result.error = message
                        result.errors = list(self._errors)
                        result.completed_steps = list(self._completed)
                        result.progress = await self._emit(ProductionStage.FAILED, 0, "Production failed")
                        result.processing_time = time.monotonic() - started
                        return result
                    logger.info("Stage failed, continuing", stage=spec.name, error=message)

                await self._emit(spec.stage, spec.end_progress, spec.done_task)

        result.success = True
        result.errors = list(self._errors)
        result.completed_steps = list(self._completed)
        result.progress = await self._emit(ProductionStage.COMPLETE, 100, "Production complete!")
        result.processing_time = time.monotonic() - started
        return result
