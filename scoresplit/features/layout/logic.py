import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from scoresplit.domain.models import PageDimension, Part, Staff, System
from scoresplit.features.detection.models import SystemDetection
from scoresplit.features.layout.models import (
    MIN_SPLIT_HEIGHT,
    MIN_STAFF_HEIGHT,
    STAFF_HALF_HEIGHT,
    Separator,
)

IdFactory = Callable[[], str]


def _new_id() -> str:
    return str(uuid.uuid4())


# --- Coordinate mapping ---
#
# Pixel space: origin top-left, y grows downward, units are raster pixels.
# Document space: origin bottom-left, y grows upward, units are points (1/72 in).


def get_scale(dpi: float) -> float:
    """Pixels per document point at the given rasterization DPI."""
    return dpi / 72.0


def pixel_to_document_y(pixel_y: float, page_height: float, scale: float) -> float:
    return page_height - pixel_y / scale


def document_to_pixel_y(doc_y: float, page_height: float, scale: float) -> float:
    return (page_height - doc_y) * scale


def build_page_records(
    detections: Sequence[SystemDetection],
    page_index: int,
    page: PageDimension,
    scale: float,
    id_factory: IdFactory = _new_id,
) -> Tuple[List[System], List[Staff]]:
    """
    Converts one page of pixel-space detections into document-space records.

    Every staff references the system it was detected in. Labels start empty.
    """
    systems: List[System] = []
    staffs: List[Staff] = []

    for detection in detections:
        system = System(
            id=id_factory(),
            page_index=page_index,
            top=pixel_to_document_y(detection.top_px, page.height, scale),
            bottom=pixel_to_document_y(detection.bottom_px, page.height, scale),
        )
        systems.append(system)
        for part in detection.parts:
            staffs.append(
                Staff(
                    id=id_factory(),
                    page_index=page_index,
                    top=pixel_to_document_y(part.top_px, page.height, scale),
                    bottom=pixel_to_document_y(part.bottom_px, page.height, scale),
                    label="",
                    system_id=system.id,
                )
            )

    return systems, staffs


# --- Queries ---


def get_page_systems(systems: Sequence[System], page_index: int) -> List[System]:
    """Systems on a page in reading order (top of page first)."""
    return sorted(
        (s for s in systems if s.page_index == page_index),
        key=lambda s: s.top,
        reverse=True,
    )


def get_system_ordinal(systems: Sequence[System], page_index: int, system_id: str) -> int:
    for i, s in enumerate(get_page_systems(systems, page_index)):
        if s.id == system_id:
            return i
    return -1


def staffs_match_systems(staffs: Sequence[Staff], systems: Sequence[System]) -> bool:
    """
    True when there are staffs and each one points at a system on its own page.
    """
    pages = {s.id: s.page_index for s in systems}
    return len(staffs) > 0 and all(pages.get(s.system_id) == s.page_index for s in staffs)


def group_by_system(staffs: Sequence[Staff]) -> Dict[str, List[Staff]]:
    """Staffs bucketed per system, each bucket in reading order."""
    grouped: Dict[str, List[Staff]] = {}
    for s in staffs:
        grouped.setdefault(s.system_id, []).append(s)
    for group in grouped.values():
        group.sort(key=lambda s: s.top, reverse=True)
    return grouped


def apply_system_labels_to_all(
    staffs: Sequence[Staff], template_system_id: str
) -> Tuple[Staff, ...]:
    """
    Copies labels from the template system onto every other system by position.
    """
    grouped = group_by_system(staffs)
    template = grouped.get(template_system_id, [])
    if not template:
        return tuple(staffs)

    result = []
    for staff in staffs:
        if staff.system_id == template_system_id:
            result.append(staff)
            continue
        idx = grouped[staff.system_id].index(staff)
        if idx < len(template):
            result.append(replace(staff, label=template[idx].label))
        else:
            result.append(staff)
    return tuple(result)


def derive_parts_from_staffs(
    staffs: Sequence[Staff], systems: Optional[Sequence[System]] = None
) -> List[Part]:
    """
    Groups labeled staffs into parts, ordered by first appearance in the score.

    Unlabeled staffs are left out.
    """
    ordinals: Dict[Tuple[int, str], int] = {}
    if systems:
        for page_index in {s.page_index for s in systems}:
            for i, s in enumerate(get_page_systems(systems, page_index)):
                ordinals[(page_index, s.id)] = i

    def reading_key(staff: Staff) -> tuple:
        if systems:
            system_key = (ordinals.get((staff.page_index, staff.system_id), -1), "")
        else:
            system_key = (0, staff.system_id)
        return (staff.page_index, system_key, -staff.top)

    by_label: Dict[str, List[Staff]] = {}
    for staff in staffs:
        if staff.label:
            by_label.setdefault(staff.label, []).append(staff)

    parts = [
        Part(label=label, staffs=tuple(sorted(group, key=reading_key)))
        for label, group in by_label.items()
    ]
    parts.sort(key=lambda p: reading_key(p.staffs[0]))
    return parts


# --- Manual edits ---


def add_staff_at_position(
    staffs: Sequence[Staff],
    page_index: int,
    y: float,
    page_height: float,
    system_id: str = "",
    id_factory: IdFactory = _new_id,
) -> Tuple[Staff, ...]:
    """
    Appends a default-height staff centered at y, kept inside [0, page_height].
    """
    height = 2 * STAFF_HALF_HEIGHT
    top = y + STAFF_HALF_HEIGHT
    bottom = y - STAFF_HALF_HEIGHT

    if top > page_height:
        top, bottom = page_height, page_height - height
    if bottom < 0:
        top, bottom = height, 0.0

    staff = Staff(
        id=id_factory(),
        page_index=page_index,
        top=top,
        bottom=bottom,
        label="",
        system_id=system_id,
    )
    return tuple(staffs) + (staff,)


def split_staff_at_position(
    staffs: Sequence[Staff],
    staff_id: str,
    split_y: float,
    id_factory: IdFactory = _new_id,
) -> Tuple[Staff, ...]:
    """
    Splits a staff in two at split_y.

    The original keeps its id and the upper half. The lower half is a new staff
    inserted right after it. Both halves keep at least MIN_SPLIT_HEIGHT.
    """
    idx = next((i for i, s in enumerate(staffs) if s.id == staff_id), -1)
    if idx < 0:
        return tuple(staffs)

    staff = staffs[idx]
    cut = max(staff.bottom + MIN_SPLIT_HEIGHT, min(split_y, staff.top - MIN_SPLIT_HEIGHT))
    upper = replace(staff, bottom=cut)
    lower = replace(staff, id=id_factory(), top=cut)
    return tuple(staffs[:idx]) + (upper, lower) + tuple(staffs[idx + 1 :])


def merge_staffs(
    staffs: Sequence[Staff], staff_above_id: str, staff_below_id: str
) -> Tuple[Staff, ...]:
    """
    Joins two adjacent staffs. The upper one survives and takes the lower bottom.
    """
    above = next((s for s in staffs if s.id == staff_above_id), None)
    below = next((s for s in staffs if s.id == staff_below_id), None)
    if above is None or below is None:
        return tuple(staffs)

    merged = replace(above, bottom=below.bottom)
    return tuple(
        merged if s.id == staff_above_id else s
        for s in staffs
        if s.id != staff_below_id
    )


def compute_separators(page_staffs: Sequence[Staff]) -> List[Separator]:
    if not page_staffs:
        return []

    ordered = sorted(page_staffs, key=lambda s: s.top, reverse=True)
    separators = [Separator("edge", ordered[0].top, None, ordered[0].id)]
    for current, nxt in zip(ordered, ordered[1:]):
        separators.append(
            Separator("part", (current.bottom + nxt.top) / 2, current.id, nxt.id)
        )
    last = ordered[-1]
    separators.append(Separator("edge", last.bottom, last.id, None))
    return separators


def apply_separator_drag(
    staffs: Sequence[Staff],
    page_staffs: Sequence[Staff],
    separator_index: int,
    new_y: float,
    min_height: float = MIN_STAFF_HEIGHT,
) -> Tuple[Staff, ...]:
    """
    Moves a separator, resizing the staffs on either side of it.
    Neither staff may shrink below min_height.
    """
    separators = compute_separators(page_staffs)
    if not 0 <= separator_index < len(separators):
        return tuple(staffs)

    sep = separators[separator_index]
    by_id = {s.id: s for s in staffs}
    updates: Dict[str, Staff] = {}

    above = by_id.get(sep.staff_above_id) if sep.staff_above_id else None
    if above is not None:
        updates[above.id] = replace(above, bottom=min(new_y, above.top - min_height))

    below = by_id.get(sep.staff_below_id) if sep.staff_below_id else None
    if below is not None:
        updates[below.id] = replace(below, top=max(new_y, below.bottom + min_height))

    return tuple(updates.get(s.id, s) for s in staffs)
