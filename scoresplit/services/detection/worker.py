import multiprocessing
import platform
import queue
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from scoresplit.features.detection.logic import detect_page, detect_staffs, detect_systems
from scoresplit.kernel.system.logging import get_logger
from scoresplit.services.detection.protocol import (
    DetectPageRequest,
    DetectPageResponse,
    DetectStaffsRequest,
    DetectStaffsResponse,
    DetectSystemsRequest,
    DetectSystemsResponse,
    ErrorResponse,
    Message,
    WorkerRequest,
    WorkerSuccessResponse,
    request_from_message,
)

logger = get_logger(__name__)

MessageCallback = Callable[[Message], None]

REQUEST_TYPES = frozenset(
    {DetectSystemsRequest.type, DetectStaffsRequest.type, DetectPageRequest.type}
)


def run_request(request: WorkerRequest) -> WorkerSuccessResponse:
    """
    Executes one decoded request against the detection pipeline.
    """
    if isinstance(request, DetectSystemsRequest):
        systems = detect_systems(
            request.buffer, request.width, request.height, request.system_gap_height
        )
        return DetectSystemsResponse(request.task_id, request.page_index, tuple(systems))

    if isinstance(request, DetectStaffsRequest):
        groups = detect_staffs(
            request.buffer,
            request.width,
            request.height,
            request.system_boundaries,
            request.part_gap_height,
        )
        return DetectStaffsResponse(
            request.task_id, request.page_index, tuple(tuple(g) for g in groups)
        )

    systems = detect_page(
        request.buffer,
        request.width,
        request.height,
        request.system_gap_height,
        request.part_gap_height,
    )
    return DetectPageResponse(request.task_id, request.page_index, systems)


def handle_message(message: Any) -> Optional[Message]:
    """
    The unit boundary. Turns one inbound message into one outbound message.

    Faults never escape: they come back as an ERROR message. Messages of an
    unknown type produce no response at all.
    """
    if not isinstance(message, dict) or message.get("type") not in REQUEST_TYPES:
        return None

    task_id = str(message.get("taskId", ""))
    try:
        request = request_from_message(message)
        return run_request(request).to_message()
    except Exception as e:
        logger.warning(f"Task {task_id} failed: {e!r}")
        return ErrorResponse(task_id=task_id, message=str(e) or type(e).__name__).to_message()


def worker_main(inbox: Any, outbox: Any) -> None:
    """
    Process entry point. Serves requests until the None sentinel arrives.
    """
    try:
        while True:
            message = inbox.get()
            if message is None:
                break
            response = handle_message(message)
            if response is not None:
                outbox.put(response)
    finally:
        outbox.put(None)


def _get_mp_context() -> multiprocessing.context.BaseContext:
    """
    Returns the multiprocessing context for the current platform.
    Uses "spawn" on macOS for stability with C-libraries, and defaults to
    system standards elsewhere.
    """
    start_method = "spawn" if platform.system() == "Darwin" else None
    return multiprocessing.get_context(start_method)


def is_process_pool_available() -> bool:
    """
    Reports whether this interpreter can run process-backed units.
    """
    try:
        ctx = _get_mp_context()
        probe = ctx.Queue()
        probe.close()
        probe.join_thread()
        return True
    except (ImportError, OSError, NotImplementedError):
        return False


class ExecutionUnit(ABC):
    """
    An isolated actor that runs detection requests.

    Messages go in through send(); responses come back through the callback
    given to start(), on a thread owned by the unit.
    """

    @abstractmethod
    def start(self, on_message: MessageCallback) -> None: ...

    @abstractmethod
    def send(self, message: Message) -> None: ...

    @abstractmethod
    def stop(self) -> None: ...


class ProcessUnit(ExecutionUnit):
    """
    Runs the pipeline in a child process. Nothing is shared but the two queues.
    """

    def __init__(self, name: str = "scoresplit-detect", ctx: Any = None) -> None:
        self._ctx = ctx or _get_mp_context()
        self._inbox = self._ctx.Queue()
        self._outbox = self._ctx.Queue()
        self._process = self._ctx.Process(
            target=worker_main,
            args=(self._inbox, self._outbox),
            name=name,
            daemon=True,
        )
        self._reader: Optional[threading.Thread] = None

    def start(self, on_message: MessageCallback) -> None:
        self._process.start()
        self._reader = threading.Thread(
            target=self._pump, args=(on_message,), name=f"{self._process.name}-reader", daemon=True
        )
        self._reader.start()

    def _pump(self, on_message: MessageCallback) -> None:
        while True:
            message = self._outbox.get()
            if message is None:
                break
            on_message(message)

    def send(self, message: Message) -> None:
        self._inbox.put(message)

    def stop(self) -> None:
        if self._process.is_alive():
            self._inbox.put(None)
            self._process.join(timeout=2.0)
            if self._process.is_alive():
                self._process.terminate()
                self._process.join()

        if self._reader is not None and self._reader.is_alive():
            self._outbox.put(None)
            self._reader.join(timeout=2.0)

        self._inbox.close()
        self._outbox.close()


class ThreadUnit(ExecutionUnit):
    """
    In-process unit on a daemon thread. Used where child processes are unavailable.
    """

    def __init__(self, name: str = "scoresplit-detect") -> None:
        self._name = name
        self._inbox: "queue.Queue[Optional[Message]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def start(self, on_message: MessageCallback) -> None:
        self._thread = threading.Thread(
            target=self._serve, args=(on_message,), name=self._name, daemon=True
        )
        self._thread.start()

    def _serve(self, on_message: MessageCallback) -> None:
        while True:
            message = self._inbox.get()
            if message is None:
                break
            response = handle_message(message)
            if response is not None:
                on_message(response)

    def send(self, message: Message) -> None:
        self._inbox.put(message)

    def stop(self) -> None:
        self._inbox.put(None)
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
