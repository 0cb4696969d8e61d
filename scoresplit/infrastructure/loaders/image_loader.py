import os
from typing import List, Sequence

from PIL import Image, ImageSequence

from scoresplit.domain.interfaces import RasterPage
from scoresplit.domain.models import PageDimension
from scoresplit.kernel.system.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp"}

# Used when an image carries no resolution metadata
DEFAULT_SOURCE_DPI = 150.0


class ImagePageLoader:
    """
    Treats a set of page images (or one multi-frame TIFF) as a score document.

    Page dimensions are derived from pixel size and the embedded DPI, so the
    same document geometry holds whatever DPI detection later renders at.
    """

    def __init__(self, paths: Sequence[str], source_dpi: float = DEFAULT_SOURCE_DPI):
        self._frames: List[Image.Image] = []
        self._dpis: List[float] = []
        self.file_name = os.path.basename(paths[0]) if paths else ""

        for path in paths:
            with Image.open(path) as img:
                dpi = float(img.info.get("dpi", (source_dpi, source_dpi))[1] or source_dpi)
                for frame in ImageSequence.Iterator(img):
                    self._frames.append(frame.convert("RGBA"))
                    self._dpis.append(dpi)

        logger.info(f"Loaded {len(self._frames)} page(s) from {len(paths)} file(s)")

    @property
    def page_count(self) -> int:
        return len(self._frames)

    @property
    def page_dimensions(self) -> List[PageDimension]:
        return [
            PageDimension(width=f.width * 72.0 / dpi, height=f.height * 72.0 / dpi)
            for f, dpi in zip(self._frames, self._dpis)
        ]

    def rasterize(self, page_index: int, dpi: float) -> RasterPage:
        frame = self._frames[page_index]
        ratio = dpi / self._dpis[page_index]
        if abs(ratio - 1.0) > 1e-6:
            size = (max(1, round(frame.width * ratio)), max(1, round(frame.height * ratio)))
            frame = frame.resize(size, Image.Resampling.BILINEAR)
        return RasterPage(buffer=frame.tobytes(), width=frame.width, height=frame.height)
