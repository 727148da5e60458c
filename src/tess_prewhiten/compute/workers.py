"""Periodogram worker pool.

A fixed set of ``PeriodogramWorker`` objects evaluates Lomb-Scargle power over
assigned index ranges of a frequency grid. Every worker holds the same
read-only time buffer; the flux to analyze travels inside each ``ScanRequest``
as a read-only snapshot, so no worker ever sees memory the orchestrator mutates.

Each worker follows a strict request/response discipline modeled as a small
state machine::

    IDLE --begin--> BUSY --complete--> IDLE
    IDLE/BUSY --stop--> STOPPED

Breaking the discipline (starting a busy worker, completing an idle one, a
response that does not match the outstanding request, any use after stop) is an
orchestration bug and raises ``WorkerProtocolError``.

Each dispatched request runs on its own daemon thread (the heavy kernels are
numpy calls that release the GIL). A worker that stalls past the barrier
timeout is abandoned, never joined, so it cannot keep the process alive.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from time import monotonic
from typing import TYPE_CHECKING

import numpy as np

from tess_prewhiten.compute.lomb_scargle import frequency_grid, lomb_scargle_powers
from tess_prewhiten.errors import ConfigurationError, WorkerProtocolError, WorkerTimeoutError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

logger = logging.getLogger(__name__)


def read_only_view(arr: NDArray[np.float64]) -> NDArray[np.float64]:
    """Return a read-only float64 view of ``arr`` (copying only if the dtype differs)."""
    view = np.asarray(arr, dtype=np.float64).view()
    view.flags.writeable = False
    return view


class WorkerState(str, Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass(frozen=True, eq=False)
class ScanRequest:
    """Command for one worker: evaluate grid indices ``[start_index, end_index)``.

    ``frequency_range`` overrides the worker's configured range when set.
    """

    iteration: int
    start_index: int
    end_index: int
    flux: NDArray[np.float64]
    include_frequencies: bool = False
    frequency_range: tuple[float, float] | None = None


@dataclass(frozen=True, eq=False)
class ScanResponse:
    """Result of one ``ScanRequest``; ``frequencies`` is None unless requested."""

    worker_id: int
    iteration: int
    start_index: int
    end_index: int
    frequencies: NDArray[np.float64] | None
    powers: NDArray[np.float64]


class PeriodogramWorker:
    """One compute unit of the pool."""

    def __init__(
        self,
        worker_id: int,
        time: NDArray[np.float64],
        frequency_range: tuple[float, float],
        samples: int,
    ) -> None:
        self.worker_id = worker_id
        self.frequency_range = (float(frequency_range[0]), float(frequency_range[1]))
        self.samples = int(samples)
        self._time: NDArray[np.float64] | None = read_only_view(time)
        self._state = WorkerState.IDLE
        self._pending: ScanRequest | None = None

    @property
    def state(self) -> WorkerState:
        return self._state

    def begin(self, request: ScanRequest) -> None:
        """Mark ``request`` as outstanding. Only valid from IDLE."""
        if self._state is WorkerState.BUSY:
            raise WorkerProtocolError("received a command while busy", worker_id=self.worker_id)
        if self._state is WorkerState.STOPPED:
            raise WorkerProtocolError("received a command after stop", worker_id=self.worker_id)
        if not 0 <= request.start_index <= request.end_index <= self.samples:
            raise WorkerProtocolError(
                f"index range [{request.start_index}, {request.end_index}) outside grid "
                f"of {self.samples} samples",
                worker_id=self.worker_id,
            )
        self._pending = request
        self._state = WorkerState.BUSY

    def run(self, request: ScanRequest) -> ScanResponse:
        """Evaluate the periodogram for ``request``. Runs on a pool thread."""
        time = self._time
        if time is None:
            raise WorkerProtocolError("worker has released its buffers", worker_id=self.worker_id)
        f_min, f_max = request.frequency_range or self.frequency_range
        freqs = frequency_grid(f_min, f_max, self.samples, request.start_index, request.end_index)
        powers = lomb_scargle_powers(freqs, time, request.flux)
        return ScanResponse(
            worker_id=self.worker_id,
            iteration=request.iteration,
            start_index=request.start_index,
            end_index=request.end_index,
            frequencies=freqs if request.include_frequencies else None,
            powers=powers,
        )

    def complete(self, response: ScanResponse) -> ScanResponse:
        """Accept ``response`` for the outstanding request and return to IDLE."""
        pending = self._pending
        if self._state is not WorkerState.BUSY or pending is None:
            raise WorkerProtocolError(
                f"response with no outstanding request (state={self._state.value})",
                worker_id=self.worker_id,
            )
        if (
            response.worker_id != self.worker_id
            or response.iteration != pending.iteration
            or response.start_index != pending.start_index
            or response.end_index != pending.end_index
        ):
            raise WorkerProtocolError(
                f"response for iteration {response.iteration} "
                f"[{response.start_index}, {response.end_index}) does not match request for "
                f"iteration {pending.iteration} [{pending.start_index}, {pending.end_index})",
                worker_id=self.worker_id,
            )
        if len(response.powers) != pending.end_index - pending.start_index:
            raise WorkerProtocolError(
                f"response carries {len(response.powers)} powers for "
                f"{pending.end_index - pending.start_index} requested frequencies",
                worker_id=self.worker_id,
            )
        self._pending = None
        self._state = WorkerState.IDLE
        return response

    def stop(self) -> None:
        """Release buffers and terminate. Valid exactly once."""
        if self._state is WorkerState.STOPPED:
            raise WorkerProtocolError("stop sent twice", worker_id=self.worker_id)
        self._pending = None
        self._time = None
        self._state = WorkerState.STOPPED


class _ScanJob:
    """One ``PeriodogramWorker.run`` call on a daemon thread."""

    def __init__(self, worker: PeriodogramWorker, request: ScanRequest) -> None:
        self.worker = worker
        self.response: ScanResponse | None = None
        self.error: BaseException | None = None
        self.thread = threading.Thread(
            target=self._runner,
            args=(request,),
            name=f"periodogram-worker-{worker.worker_id}",
            daemon=True,
        )

    def _runner(self, request: ScanRequest) -> None:
        try:
            self.response = self.worker.run(request)
        except BaseException as exc:  # re-raised by WorkerPool.dispatch
            self.error = exc

    def start(self) -> _ScanJob:
        self.thread.start()
        return self

    def join(self, deadline: float) -> None:
        self.thread.join(timeout=max(0.0, deadline - monotonic()))

    @property
    def stalled(self) -> bool:
        return self.thread.is_alive()


class WorkerPool:
    """Fixed-size pool of periodogram workers sharing one read-only time buffer.

    Use as a context manager so the workers are stopped exactly once::

        with WorkerPool(series.time, workers=4, frequency_range=(0.1, 10.0), samples=10_000) as pool:
            responses = pool.dispatch(requests)
    """

    def __init__(
        self,
        time: NDArray[np.float64],
        *,
        workers: int,
        frequency_range: tuple[float, float],
        samples: int,
        timeout_seconds: float = 600.0,
    ) -> None:
        if workers < 1:
            raise ConfigurationError(f"worker count must be >= 1, got {workers}")
        if samples < 1:
            raise ConfigurationError(f"periodogram samples must be >= 1, got {samples}")
        if timeout_seconds <= 0:
            raise ConfigurationError(f"worker timeout must be positive, got {timeout_seconds}")
        if len(time) < 2:
            raise ConfigurationError(f"time buffer needs at least 2 samples, got {len(time)}")

        self.frequency_range = (float(frequency_range[0]), float(frequency_range[1]))
        self.samples = int(samples)
        self.timeout_seconds = float(timeout_seconds)
        self._time = read_only_view(time)
        self._workers = [
            PeriodogramWorker(i, self._time, self.frequency_range, self.samples)
            for i in range(workers)
        ]
        self._closed = False
        logger.debug(f"Started {workers} periodogram workers for {self.samples} grid samples")

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    @property
    def size(self) -> int:
        return len(self._workers)

    @property
    def n_points(self) -> int:
        return len(self._time)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def workers(self) -> tuple[PeriodogramWorker, ...]:
        return tuple(self._workers)

    def dispatch(self, requests: Sequence[ScanRequest]) -> list[ScanResponse]:
        """Send one request per worker and block until all have answered.

        Responses are returned in worker order. Raises ``WorkerTimeoutError``
        when the barrier does not complete within ``timeout_seconds``.
        """
        if self._closed:
            raise WorkerProtocolError("dispatch after pool shutdown")
        if len(requests) != len(self._workers):
            raise WorkerProtocolError(
                f"expected {len(self._workers)} requests (one per worker), got {len(requests)}"
            )

        for worker, request in zip(self._workers, requests):
            worker.begin(request)

        jobs = [_ScanJob(w, r).start() for w, r in zip(self._workers, requests)]
        deadline = monotonic() + self.timeout_seconds
        for job in jobs:
            job.join(deadline)
        stalled = [job.worker.worker_id for job in jobs if job.stalled]
        if stalled:
            logger.warning(f"Abandoning stalled periodogram workers {stalled}")
            raise WorkerTimeoutError(stalled, self.timeout_seconds)

        responses: list[ScanResponse] = []
        for job in jobs:
            if job.error is not None:
                raise job.error
            responses.append(job.worker.complete(job.response))  # type: ignore[arg-type]
        return responses

    def shutdown(self) -> None:
        """Stop every worker exactly once. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        for worker in self._workers:
            worker.stop()
        logger.debug(f"Stopped {len(self._workers)} periodogram workers")
