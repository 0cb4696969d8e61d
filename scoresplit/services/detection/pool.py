import asyncio
import os
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Tuple

from scoresplit.kernel.system.errors import DetectionError, PoolTerminatedError
from scoresplit.kernel.system.logging import get_logger
from scoresplit.services.detection.protocol import (
    ErrorResponse,
    Message,
    WorkerRequest,
    WorkerSuccessResponse,
    response_from_message,
)
from scoresplit.services.detection.worker import ExecutionUnit, ProcessUnit, ThreadUnit

logger = get_logger(__name__)

UnitFactory = Callable[[int], ExecutionUnit]


def default_pool_size() -> int:
    """
    Hardware concurrency, or 4 when the platform does not report it.
    """
    return os.cpu_count() or 4


def _process_unit_factory(index: int) -> ExecutionUnit:
    return ProcessUnit(name=f"scoresplit-detect-{index}")


def thread_unit_factory(index: int) -> ExecutionUnit:
    return ThreadUnit(name=f"scoresplit-detect-{index}")


@dataclass
class _UnitSlot:
    unit: ExecutionUnit
    busy: bool = False
    task_id: Optional[str] = None


class DetectionWorkerPool:
    """
    Fixed set of execution units fed from a FIFO queue.

    Responses arrive on unit threads and are handed to the event loop, where
    they are matched to the caller's future by task id. Must be created from
    inside a running event loop unless one is passed explicitly.
    """

    def __init__(
        self,
        pool_size: Optional[int] = None,
        unit_factory: Optional[UnitFactory] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._pool_size = pool_size if pool_size and pool_size > 0 else default_pool_size()
        self._loop = loop or asyncio.get_running_loop()
        self._queue: Deque[Tuple[WorkerRequest, asyncio.Future]] = deque()
        self._pending: Dict[str, Tuple[asyncio.Future, _UnitSlot]] = {}
        self._terminated = False

        factory = unit_factory or _process_unit_factory
        self._slots: List[_UnitSlot] = []
        for i in range(self._pool_size):
            slot = _UnitSlot(unit=factory(i))
            slot.unit.start(self._listen)
            self._slots.append(slot)

        logger.info(f"Detection pool started with {self._pool_size} units")

    @property
    def pool_size(self) -> int:
        return self._pool_size

    @property
    def queued(self) -> int:
        return len(self._queue)

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def _listen(self, message: Message) -> None:
        # Called on a unit's thread
        if self._terminated:
            return
        try:
            self._loop.call_soon_threadsafe(self._on_message, message)
        except RuntimeError:
            logger.debug("Event loop closed, dropping late unit message")

    def submit_task(self, request: WorkerRequest) -> "asyncio.Future[WorkerSuccessResponse]":
        """
        Schedules a request and returns a future for its response.

        The request buffer belongs to the pool from here on.
        """
        if self._terminated:
            raise PoolTerminatedError("Cannot submit to a terminated detection pool")
        if request.task_id in self._pending or any(
            queued.task_id == request.task_id for queued, _ in self._queue
        ):
            raise ValueError(f"Task id already in use: {request.task_id}")

        future: asyncio.Future = self._loop.create_future()
        slot = next((s for s in self._slots if not s.busy), None)
        if slot is not None:
            self._dispatch(slot, request, future)
        else:
            self._queue.append((request, future))
            logger.debug(f"Queued task {request.task_id} ({len(self._queue)} waiting)")
        return future

    def _dispatch(self, slot: _UnitSlot, request: WorkerRequest, future: asyncio.Future) -> None:
        slot.busy = True
        slot.task_id = request.task_id
        self._pending[request.task_id] = (future, slot)
        logger.debug(f"Dispatching task {request.task_id} (page {request.page_index})")
        try:
            slot.unit.send(request.to_message())
        except Exception as e:
            self._pending.pop(request.task_id, None)
            if not future.done():
                future.set_exception(DetectionError(str(e), request.task_id))
            self._release(slot)

    def _release(self, slot: _UnitSlot) -> None:
        slot.busy = False
        slot.task_id = None
        if self._queue:
            request, future = self._queue.popleft()
            self._dispatch(slot, request, future)

    def _on_message(self, message: Message) -> None:
        if self._terminated:
            return

        task_id = message.get("taskId") if isinstance(message, dict) else None
        entry = self._pending.pop(task_id, None) if task_id is not None else None
        if entry is None:
            logger.debug(f"Ignoring message for unknown task {task_id!r}")
            return

        future, owner = entry
        try:
            response = response_from_message(message)
        except Exception as e:
            logger.error(f"Malformed response for task {task_id}: {e!r}")
            if not future.done():
                future.set_exception(DetectionError(str(e) or type(e).__name__, task_id))
            self._release(owner)
            return

        if isinstance(response, ErrorResponse):
            logger.error(f"Detection task {task_id} failed: {response.message}")
            if not future.done():
                future.set_exception(DetectionError(response.message, task_id))
        elif response is not None:
            if not future.done():
                future.set_result(response)
        else:
            # Unknown response type: keep waiting for this task
            self._pending[task_id] = entry
            return

        self._release(owner)

    def terminate(self) -> None:
        """
        Stops every unit. Futures still pending are left unresolved.
        """
        if self._terminated:
            return
        self._terminated = True
        for slot in self._slots:
            slot.unit.stop()
        abandoned = len(self._pending) + len(self._queue)
        self._slots.clear()
        self._queue.clear()
        self._pending.clear()
        logger.info(f"Detection pool terminated ({abandoned} tasks abandoned)")
