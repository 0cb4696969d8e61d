from dataclasses import dataclass
from typing import Protocol, Sequence

from scoresplit.domain.models import PageDimension


@dataclass(frozen=True)
class RasterPage:
    """
    One rendered page: tightly packed RGBA rows, top row first.
    """

    buffer: bytes
    width: int
    height: int


class PageRasterizer(Protocol):
    """
    Renders a page of the loaded document to pixels at a given DPI.
    """

    def rasterize(self, page_index: int, dpi: float) -> RasterPage: ...


class DocumentLoader(Protocol):
    """
    Opens a score document and reports its page geometry in points.
    """

    @property
    def page_count(self) -> int: ...

    @property
    def page_dimensions(self) -> Sequence[PageDimension]: ...
