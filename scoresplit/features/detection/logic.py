from typing import List, Sequence, Tuple, Union

import cv2
import numpy as np

from scoresplit.features.detection.models import (
    INK_LUMA_THRESHOLD,
    PixelBoundary,
    SystemDetection,
)
from scoresplit.kernel.system.errors import BufferSizeError

PixelSource = Union[bytes, bytearray, memoryview, np.ndarray]
Run = Tuple[bool, int, int]


def rgba_to_array(buffer: PixelSource, width: int, height: int) -> np.ndarray:
    """
    Views an RGBA byte sequence as a (height, width, 4) uint8 array without copying.

    Raises BufferSizeError when the byte count is not width * height * 4.
    """
    if isinstance(buffer, np.ndarray):
        flat = np.ascontiguousarray(buffer).view(np.uint8).reshape(-1)
    else:
        flat = np.frombuffer(buffer, dtype=np.uint8)

    if width < 0 or height < 0 or flat.size != width * height * 4:
        raise BufferSizeError(int(flat.size), width, height)
    return flat.reshape(height, width, 4)


def ink_rows(rgba: np.ndarray) -> np.ndarray:
    """
    Classifies every row as ink (True) or white (False).

    A pixel is ink when its luma is below INK_LUMA_THRESHOLD. Alpha is ignored.
    """
    h, w = rgba.shape[:2]
    if h == 0 or w == 0:
        return np.zeros(h, dtype=bool)

    # cv2 wants a contiguous, writeable array; frombuffer views are read-only
    src = np.require(rgba, dtype=np.uint8, requirements=("C", "W"))
    gray = cv2.cvtColor(src, cv2.COLOR_RGBA2GRAY)
    return np.any(gray < INK_LUMA_THRESHOLD, axis=1)


def run_lengths(mask: Sequence[bool]) -> List[Run]:
    """
    Run-length encodes a row mask into (is_ink, start, length) triples.
    """
    arr = np.asarray(mask, dtype=bool)
    if arr.size == 0:
        return []

    changes = np.flatnonzero(np.diff(arr.astype(np.int8))) + 1
    starts = np.concatenate(([0], changes))
    ends = np.concatenate((changes, [arr.size]))
    return [(bool(arr[s]), int(s), int(e - s)) for s, e in zip(starts, ends)]


def merge_regions(
    mask: Sequence[bool], gap_height: int, offset: int = 0
) -> List[PixelBoundary]:
    """
    Merges ink runs separated by white runs shorter than gap_height.

    A white run of gap_height rows or more closes the current region.
    Leading and trailing white runs never produce a region.
    """
    regions: List[PixelBoundary] = []
    top = bottom = -1

    for is_ink, start, length in run_lengths(mask):
        if is_ink:
            if top < 0:
                top = start
            bottom = start + length
        elif top >= 0 and length >= gap_height:
            regions.append(PixelBoundary(top + offset, bottom + offset))
            top = -1

    if top >= 0:
        regions.append(PixelBoundary(top + offset, bottom + offset))
    return regions


def _staffs_in_system(
    mask: np.ndarray, system: PixelBoundary, part_gap_height: int
) -> List[PixelBoundary]:
    top = min(max(system.top_px, 0), mask.size)
    bottom = min(max(system.bottom_px, top), mask.size)

    parts = merge_regions(mask[top:bottom], part_gap_height, offset=top)
    if len(parts) <= 1:
        # A single region (or none) spans the whole system
        return [system]
    return parts


def detect_systems(
    buffer: PixelSource, width: int, height: int, system_gap_height: int
) -> List[PixelBoundary]:
    """
    Locates system boundaries on a page, ordered top to bottom.
    """
    mask = ink_rows(rgba_to_array(buffer, width, height))
    return merge_regions(mask, system_gap_height)


def detect_staffs(
    buffer: PixelSource,
    width: int,
    height: int,
    system_boundaries: Sequence[PixelBoundary],
    part_gap_height: int,
) -> List[List[PixelBoundary]]:
    """
    Splits each system boundary into staff boundaries.

    The result holds one list per input boundary, in the same order. Only the
    rows inside a system are considered when splitting it.
    """
    if not system_boundaries:
        return []

    mask = ink_rows(rgba_to_array(buffer, width, height))
    return [_staffs_in_system(mask, s, part_gap_height) for s in system_boundaries]


def detect_page(
    buffer: PixelSource,
    width: int,
    height: int,
    system_gap_height: int,
    part_gap_height: int,
) -> Tuple[SystemDetection, ...]:
    """
    Runs system and staff detection in a single pass over the page.
    """
    mask = ink_rows(rgba_to_array(buffer, width, height))
    systems = merge_regions(mask, system_gap_height)
    return tuple(
        SystemDetection(
            top_px=s.top_px,
            bottom_px=s.bottom_px,
            parts=tuple(_staffs_in_system(mask, s, part_gap_height)),
        )
        for s in systems
    )
