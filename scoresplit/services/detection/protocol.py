"""
Message schema between the task pool and its execution units.

Requests and responses are frozen dataclasses on the caller side and plain
dicts on the wire, keyed by "type". Unknown types decode to None so that
peers speaking a newer protocol are ignored rather than crashed.
"""

import uuid
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from scoresplit.features.detection.models import PixelBoundary, SystemDetection

Message = Dict[str, Any]


def new_task_id(prefix: str = "task") -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


@dataclass(frozen=True)
class DetectSystemsRequest:
    type: ClassVar[str] = "DETECT_SYSTEMS"

    task_id: str
    page_index: int
    buffer: bytes
    width: int
    height: int
    system_gap_height: int

    def to_message(self) -> Message:
        return {
            "type": self.type,
            "taskId": self.task_id,
            "pageIndex": self.page_index,
            "buffer": self.buffer,
            "width": self.width,
            "height": self.height,
            "systemGapHeight": self.system_gap_height,
        }


@dataclass(frozen=True)
class DetectStaffsRequest:
    type: ClassVar[str] = "DETECT_STAFFS"

    task_id: str
    page_index: int
    buffer: bytes
    width: int
    height: int
    system_boundaries: Tuple[PixelBoundary, ...]
    part_gap_height: int

    def to_message(self) -> Message:
        return {
            "type": self.type,
            "taskId": self.task_id,
            "pageIndex": self.page_index,
            "buffer": self.buffer,
            "width": self.width,
            "height": self.height,
            "systemBoundaries": [b.to_dict() for b in self.system_boundaries],
            "partGapHeight": self.part_gap_height,
        }


@dataclass(frozen=True)
class DetectPageRequest:
    type: ClassVar[str] = "DETECT_PAGE"

    task_id: str
    page_index: int
    buffer: bytes
    width: int
    height: int
    system_gap_height: int
    part_gap_height: int

    def to_message(self) -> Message:
        return {
            "type": self.type,
            "taskId": self.task_id,
            "pageIndex": self.page_index,
            "buffer": self.buffer,
            "width": self.width,
            "height": self.height,
            "systemGapHeight": self.system_gap_height,
            "partGapHeight": self.part_gap_height,
        }


@dataclass(frozen=True)
class DetectSystemsResponse:
    type: ClassVar[str] = "DETECT_SYSTEMS_RESULT"

    task_id: str
    page_index: int
    systems: Tuple[PixelBoundary, ...]

    def to_message(self) -> Message:
        return {
            "type": self.type,
            "taskId": self.task_id,
            "pageIndex": self.page_index,
            "systems": [b.to_dict() for b in self.systems],
        }


@dataclass(frozen=True)
class DetectStaffsResponse:
    type: ClassVar[str] = "DETECT_STAFFS_RESULT"

    task_id: str
    page_index: int
    staffs_by_system: Tuple[Tuple[PixelBoundary, ...], ...]

    def to_message(self) -> Message:
        return {
            "type": self.type,
            "taskId": self.task_id,
            "pageIndex": self.page_index,
            "staffsBySystem": [[b.to_dict() for b in group] for group in self.staffs_by_system],
        }


@dataclass(frozen=True)
class DetectPageResponse:
    type: ClassVar[str] = "DETECT_PAGE_RESULT"

    task_id: str
    page_index: int
    systems: Tuple[SystemDetection, ...]

    def to_message(self) -> Message:
        return {
            "type": self.type,
            "taskId": self.task_id,
            "pageIndex": self.page_index,
            "systems": [s.to_dict() for s in self.systems],
        }


@dataclass(frozen=True)
class ErrorResponse:
    type: ClassVar[str] = "ERROR"

    task_id: str
    message: str

    def to_message(self) -> Message:
        return {"type": self.type, "taskId": self.task_id, "message": self.message}


WorkerRequest = Union[DetectSystemsRequest, DetectStaffsRequest, DetectPageRequest]
WorkerSuccessResponse = Union[DetectSystemsResponse, DetectStaffsResponse, DetectPageResponse]
WorkerResponse = Union[WorkerSuccessResponse, ErrorResponse]


def request_from_message(message: Message) -> Optional[WorkerRequest]:
    kind = message.get("type")
    if kind == DetectSystemsRequest.type:
        return DetectSystemsRequest(
            task_id=message["taskId"],
            page_index=int(message["pageIndex"]),
            buffer=message["buffer"],
            width=int(message["width"]),
            height=int(message["height"]),
            system_gap_height=int(message["systemGapHeight"]),
        )
    if kind == DetectStaffsRequest.type:
        return DetectStaffsRequest(
            task_id=message["taskId"],
            page_index=int(message["pageIndex"]),
            buffer=message["buffer"],
            width=int(message["width"]),
            height=int(message["height"]),
            system_boundaries=tuple(
                PixelBoundary.from_dict(b) for b in message["systemBoundaries"]
            ),
            part_gap_height=int(message["partGapHeight"]),
        )
    if kind == DetectPageRequest.type:
        return DetectPageRequest(
            task_id=message["taskId"],
            page_index=int(message["pageIndex"]),
            buffer=message["buffer"],
            width=int(message["width"]),
            height=int(message["height"]),
            system_gap_height=int(message["systemGapHeight"]),
            part_gap_height=int(message["partGapHeight"]),
        )
    return None


def response_from_message(message: Message) -> Optional[WorkerResponse]:
    kind = message.get("type")
    if kind == ErrorResponse.type:
        return ErrorResponse(task_id=message["taskId"], message=str(message["message"]))
    if kind == DetectSystemsResponse.type:
        return DetectSystemsResponse(
            task_id=message["taskId"],
            page_index=int(message["pageIndex"]),
            systems=tuple(PixelBoundary.from_dict(b) for b in message["systems"]),
        )
    if kind == DetectStaffsResponse.type:
        return DetectStaffsResponse(
            task_id=message["taskId"],
            page_index=int(message["pageIndex"]),
            staffs_by_system=tuple(
                tuple(PixelBoundary.from_dict(b) for b in group)
                for group in message["staffsBySystem"]
            ),
        )
    if kind == DetectPageResponse.type:
        return DetectPageResponse(
            task_id=message["taskId"],
            page_index=int(message["pageIndex"]),
            systems=tuple(SystemDetection.from_dict(s) for s in message["systems"]),
        )
    return None
