"""Local error taxonomy for tess-prewhiten.

The compute layer raises the typed exceptions below. Hosts that need a
transport-neutral shape can translate any of them into an ``ErrorEnvelope``
via ``to_envelope``.

Nothing in this package retries: every failure is either absorbed by a
well-defined numeric fallback inside the compute layer or is fatal to the run.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    INVALID_CONFIG = "INVALID_CONFIG"
    INVALID_DATA = "INVALID_DATA"
    DEGENERATE_FIT = "DEGENERATE_FIT"
    WORKER_PROTOCOL = "WORKER_PROTOCOL"
    WORKER_TIMEOUT = "WORKER_TIMEOUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: ErrorType
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


def make_error(error_type: ErrorType, message: str, **context: Any) -> ErrorEnvelope:
    return ErrorEnvelope(type=error_type, message=message, context=dict(context))


class PrewhitenError(Exception):
    """Base class for all errors raised by tess-prewhiten."""

    error_type: ErrorType = ErrorType.INTERNAL_ERROR


class ConfigurationError(PrewhitenError, ValueError):
    """Raised for invalid options; always raised before any worker starts."""

    error_type = ErrorType.INVALID_CONFIG


class InvalidTimeSeriesError(ConfigurationError):
    """Raised when a time series violates its construction invariants."""

    error_type = ErrorType.INVALID_DATA


class DegenerateFitError(PrewhitenError, ArithmeticError):
    """Raised when a fit has no finite uncertainty (zero amplitude or zero span).

    Attributes:
        iteration: Zero-based prewhitening iteration, when known.
        reason: Short machine-readable reason string.
    """

    error_type = ErrorType.DEGENERATE_FIT

    def __init__(self, reason: str, *, iteration: int | None = None) -> None:
        self.reason = reason
        self.iteration = iteration
        where = f" at iteration {iteration}" if iteration is not None else ""
        super().__init__(f"Degenerate fit{where}: {reason}")


class WorkerProtocolError(PrewhitenError, RuntimeError):
    """Raised when the orchestrator/worker request-response discipline is broken.

    This signals a bug in the orchestration, never a data condition.
    """

    error_type = ErrorType.WORKER_PROTOCOL

    def __init__(self, message: str, *, worker_id: int | None = None) -> None:
        self.worker_id = worker_id
        prefix = f"Worker {worker_id}: " if worker_id is not None else ""
        super().__init__(prefix + message)


class WorkerTimeoutError(PrewhitenError, TimeoutError):
    """Raised when a periodogram barrier does not complete in time."""

    error_type = ErrorType.WORKER_TIMEOUT

    def __init__(self, pending_workers: list[int], timeout_seconds: float) -> None:
        self.pending_workers = list(pending_workers)
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Periodogram scan timed out after {timeout_seconds:.1f}s; "
            f"workers still running: {self.pending_workers}"
        )


def to_envelope(exc: BaseException) -> ErrorEnvelope:
    """Translate an exception into a stable ``ErrorEnvelope``."""
    if isinstance(exc, DegenerateFitError):
        return make_error(exc.error_type, str(exc), reason=exc.reason, iteration=exc.iteration)
    if isinstance(exc, WorkerTimeoutError):
        return make_error(
            exc.error_type,
            str(exc),
            pending_workers=exc.pending_workers,
            timeout_seconds=exc.timeout_seconds,
        )
    if isinstance(exc, WorkerProtocolError):
        return make_error(exc.error_type, str(exc), worker_id=exc.worker_id)
    if isinstance(exc, PrewhitenError):
        return make_error(exc.error_type, str(exc))
    return make_error(ErrorType.INTERNAL_ERROR, str(exc), exception=type(exc).__name__)
