"""
Staged generate-and-verify pipeline for deletion proofs.

State machine for one run::

    idle -> preparing -> validating -> executing -> verifying -> valid | invalid
                 \\___________\\____________\\____________\\-> failed

Stages run strictly in order, each is timed with a monotonic clock, and
the first failure ends the run in ``failed``. A proof that verifies as
false ends in ``invalid``, which is a completed run, not an error.
"""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence

import cbor2
import trio

from .artifact import LazyCircuit
from .assembler import InputAssembler
from .config import REPORT_VERSION
from .exceptions import (
    BusyError,
    CollaboratorError,
    DeletionProofError,
    MissingFieldError,
)
from .interfaces import ProvingBackend, maybe_await
from .types import CombinedInputs, DeletionProofInputs, JwtRequest, LeafLike

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    VALIDATING = "validating"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    VALID = "valid"
    INVALID = "invalid"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STAGES


TERMINAL_STAGES = frozenset(
    {PipelineStage.VALID, PipelineStage.INVALID, PipelineStage.FAILED}
)

_TRANSITIONS: Dict[PipelineStage, frozenset] = {
    PipelineStage.IDLE: frozenset({PipelineStage.PREPARING}),
    PipelineStage.PREPARING: frozenset({PipelineStage.VALIDATING, PipelineStage.FAILED}),
    PipelineStage.VALIDATING: frozenset({PipelineStage.EXECUTING, PipelineStage.FAILED}),
    PipelineStage.EXECUTING: frozenset({PipelineStage.VERIFYING, PipelineStage.FAILED}),
    PipelineStage.VERIFYING: frozenset(
        {PipelineStage.VALID, PipelineStage.INVALID, PipelineStage.FAILED}
    ),
}


class EventStatus(str, Enum):
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class StageEvent:
    """
    One status update for a stage.

    A stage emits a ``processing`` event and later a ``success`` or
    ``failure`` event carrying the same ``event_id``.
    """

    event_id: str
    correlation_id: str
    stage: PipelineStage
    status: EventStatus
    message: str
    duration: Optional[float] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "correlation_id": self.correlation_id,
            "stage": self.stage.value,
            "status": self.status.value,
            "message": self.message,
            "duration": self.duration,
            "timestamp": self.timestamp,
        }


class EventLog:
    """Append-only, ordered record of stage events."""

    def __init__(self) -> None:
        self._events: List[StageEvent] = []

    def append(self, event: StageEvent) -> None:
        self._events.append(event)

    def __iter__(self) -> Iterator[StageEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def latest(self) -> List[StageEvent]:
        """One event per event id, in first-seen order, with the newest status."""
        order: List[str] = []
        newest: Dict[str, StageEvent] = {}
        for event in self._events:
            if event.event_id not in newest:
                order.append(event.event_id)
            newest[event.event_id] = event
        return [newest[event_id] for event_id in order]

    def outcomes(self) -> List[tuple[PipelineStage, EventStatus]]:
        return [(event.stage, event.status) for event in self.latest()]


@dataclass
class PipelineRun:
    """Everything observable about one run: state, events, timings, result."""

    correlation_id: str
    stage: PipelineStage = PipelineStage.IDLE
    events: EventLog = field(default_factory=EventLog)
    timings: Dict[str, float] = field(default_factory=dict)
    inputs: Optional[CombinedInputs] = None
    proof: Any = None
    verified: Optional[bool] = None
    error: Optional[DeletionProofError] = None
    failed_stage: Optional[PipelineStage] = None
    diagnostics: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.stage is PipelineStage.VALID

    @property
    def finished(self) -> bool:
        return self.stage.terminal

    def advance(self, stage: PipelineStage) -> None:
        allowed = _TRANSITIONS.get(self.stage, frozenset())
        if stage not in allowed:
            raise RuntimeError(
                f"illegal transition {self.stage.value} -> {stage.value}"
            )
        self.stage = stage

    def to_dict(self) -> dict:
        return {
            "v": REPORT_VERSION,
            "correlation_id": self.correlation_id,
            "stage": self.stage.value,
            "verified": self.verified,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "error": str(self.error) if self.error else None,
            "diagnostics": list(self.diagnostics),
            "timings": dict(self.timings),
            "events": [event.to_dict() for event in self.events],
        }

    def serialize(self) -> bytes:
        """CBOR-encoded run report (proof bytes included when available)."""
        data = self.to_dict()
        if isinstance(self.proof, (bytes, bytearray)):
            data["proof"] = bytes(self.proof)
        return cbor2.dumps(data)


def validate_combined_inputs(
    inputs: Optional[CombinedInputs],
    required_jwt_keys: Sequence[str],
    required_deletion_keys: Sequence[str],
) -> None:
    """
    Structural check only: non-empty and both input halves present.

    Raises:
        MissingFieldError: Listing every missing key
    """
    if not inputs:
        raise MissingFieldError([])
    missing = [
        key
        for key in (*required_jwt_keys, *required_deletion_keys)
        if key not in inputs
    ]
    if missing:
        raise MissingFieldError(missing)


class DeletionProofPipeline:
    """
    Sequence assembly, validation, proving and verification for one run
    at a time.

    Example:
        pipeline = DeletionProofPipeline(assembler, LazyCircuit(source, runtime), backend)
        run = await pipeline.run(jwt_request, precomputed=vector)
        print(run.stage, run.timings)
    """

    def __init__(
        self,
        assembler: InputAssembler,
        circuit: LazyCircuit,
        prover: ProvingBackend,
        *,
        clock: Callable[[], float] = time.monotonic,
        event_sink: Optional[Callable[[StageEvent], None]] = None,
    ) -> None:
        self._assembler = assembler
        self._circuit = circuit
        self._prover = prover
        self._clock = clock
        self._event_sink = event_sink
        self._run_ids = itertools.count(1)
        self._active: Optional[str] = None
        self._last_run: Optional[PipelineRun] = None

    @property
    def active_run(self) -> Optional[str]:
        return self._active

    @property
    def last_run(self) -> Optional[PipelineRun]:
        """Record of the most recent run, including one that was cancelled."""
        return self._last_run

    async def run(
        self,
        jwt_request: JwtRequest,
        leaves: Optional[Sequence[LeafLike]] = None,
        target_index: Optional[int] = None,
        depth: Optional[int] = None,
        *,
        nullifier: Any = None,
        precomputed: Optional[DeletionProofInputs] = None,
        correlation_id: Optional[str] = None,
    ) -> PipelineRun:
        """
        Execute one run to a terminal stage.

        Cancellation is honored only between stages; a cancelled run ends
        in ``failed`` with a closing ``failure`` event, stays reachable as
        ``last_run`` and the cancellation propagates.

        Raises:
            BusyError: If another run is active
        """
        if self._active is not None:
            raise BusyError(self._active)
        if correlation_id is None:
            correlation_id = f"run-{next(self._run_ids)}"
        self._active = correlation_id

        run = PipelineRun(correlation_id=correlation_id)
        self._last_run = run
        cfg = self._assembler.config
        started = self._clock()
        logger.info("[%s] starting proof generation sequence", correlation_id)
        try:
            inputs = await self._stage(
                run,
                PipelineStage.PREPARING,
                "Preparing circuit inputs",
                lambda: self._prepare(
                    jwt_request, leaves, target_index, depth, nullifier, precomputed
                ),
            )
            run.inputs = inputs

            await self._stage(
                run,
                PipelineStage.VALIDATING,
                "Input validation",
                lambda: self._validate(
                    inputs, cfg.required_jwt_keys, cfg.required_deletion_keys
                ),
            )

            run.proof = await self._stage(
                run,
                PipelineStage.EXECUTING,
                "Executing circuit and generating proof",
                lambda: self._execute(inputs),
            )

            run.verified = await self._stage(
                run,
                PipelineStage.VERIFYING,
                "Verifying proof",
                lambda: self._verify(run.proof),
            )
            run.advance(PipelineStage.VALID if run.verified else PipelineStage.INVALID)
        except DeletionProofError:
            pass
        except trio.Cancelled:
            if not run.finished:
                interrupted = run.stage
                logger.warning("[%s] cancelled after %s", correlation_id, interrupted.value)
                run.error = CollaboratorError(interrupted.value, "run cancelled")
                run.diagnostics.append(f"Cancelled after stage {interrupted.value!r}")
                run.stage = PipelineStage.FAILED
                self._emit(
                    run,
                    f"{correlation_id}/cancelled",
                    interrupted,
                    EventStatus.FAILURE,
                    f"Run cancelled after stage {interrupted.value!r}",
                )
            raise
        finally:
            run.timings["total"] = self._clock() - started
            self._active = None

        logger.info(
            "[%s] finished in state %s (%.3fs)",
            correlation_id,
            run.stage.value,
            run.timings["total"],
        )
        return run

    async def _stage(
        self,
        run: PipelineRun,
        stage: PipelineStage,
        message: str,
        action: Callable[[], Awaitable[Any]],
    ) -> Any:
        # cancellation lands here, never inside a stage
        await trio.lowlevel.checkpoint_if_cancelled()
        run.advance(stage)
        event_id = f"{run.correlation_id}/{stage.value}"
        self._emit(run, event_id, stage, EventStatus.PROCESSING, f"{message}...")

        start = self._clock()
        try:
            with trio.CancelScope(shield=True):
                result = await action()
        except Exception as exc:
            duration = self._clock() - start
            error = self._attribute(stage, exc)
            run.timings[stage.value] = duration
            run.error = error
            run.failed_stage = stage
            if isinstance(error, MissingFieldError):
                run.diagnostics.extend(
                    f"Missing required input {key!r}" for key in error.missing
                )
            run.advance(PipelineStage.FAILED)
            self._emit(run, event_id, stage, EventStatus.FAILURE, str(error), duration)
            if error is exc:
                raise
            raise error from exc

        duration = self._clock() - start
        run.timings[stage.value] = duration
        if stage is PipelineStage.VERIFYING:
            done = f"Proof verification: {'VALID' if result else 'INVALID'}"
        else:
            done = f"{message} complete"
        self._emit(run, event_id, stage, EventStatus.SUCCESS, done, duration)
        return result

    async def _prepare(self, jwt_request, leaves, target_index, depth, nullifier, precomputed):
        return self._assembler.assemble(
            jwt_request,
            leaves,
            target_index,
            depth,
            nullifier=nullifier,
            precomputed=precomputed,
        )

    async def _validate(self, inputs, required_jwt_keys, required_deletion_keys):
        validate_combined_inputs(inputs, required_jwt_keys, required_deletion_keys)

    async def _execute(self, inputs: CombinedInputs) -> Any:
        witness = await self._circuit.execute(inputs)
        return await maybe_await(self._prover.generate_proof(witness))

    async def _verify(self, proof: Any) -> bool:
        result = await maybe_await(self._prover.verify_proof(proof))
        if not isinstance(result, bool):
            raise CollaboratorError(
                PipelineStage.VERIFYING.value,
                f"verifier returned {type(result).__name__}, expected bool",
            )
        return result

    def _attribute(self, stage: PipelineStage, exc: Exception) -> DeletionProofError:
        if isinstance(exc, DeletionProofError):
            logger.error("%s failed: %s", stage.value, exc)
            return exc
        logger.exception("%s failed in collaborator", stage.value)
        return CollaboratorError(stage.value, str(exc) or type(exc).__name__)

    def _emit(
        self,
        run: PipelineRun,
        event_id: str,
        stage: PipelineStage,
        status: EventStatus,
        message: str,
        duration: Optional[float] = None,
    ) -> None:
        event = StageEvent(
            event_id=event_id,
            correlation_id=run.correlation_id,
            stage=stage,
            status=status,
            message=message,
            duration=duration,
        )
        run.events.append(event)
        if self._event_sink is None:
            return
        try:
            self._event_sink(event)
        except Exception:
            logger.exception("[%s] event sink failed on %s", run.correlation_id, event_id)
