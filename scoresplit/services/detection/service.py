import asyncio
import time
from typing import Callable, List, Optional, Sequence

from scoresplit.domain.actions import SetStaffsAndSystems
from scoresplit.domain.interfaces import PageRasterizer
from scoresplit.domain.models import PageDimension, Staff, System
from scoresplit.features.detection.models import SystemDetection
from scoresplit.features.layout.logic import build_page_records, get_scale
from scoresplit.kernel.system.config import APP_CONFIG, DEFAULT_DETECTION_CONFIG, DetectionConfig
from scoresplit.kernel.system.logging import get_logger
from scoresplit.services.detection.pool import DetectionWorkerPool, thread_unit_factory
from scoresplit.services.detection.protocol import DetectPageRequest
from scoresplit.services.detection.worker import is_process_pool_available

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]
PoolFactory = Callable[[], DetectionWorkerPool]


class DetectionService:
    """
    Runs detection over every page of a document and turns the results into
    System and Staff records ready to dispatch.

    Pages always go through a DetectionWorkerPool. Where child processes are
    unavailable its units are threads, so faults surface the same way.
    """

    def __init__(
        self,
        config: DetectionConfig = DEFAULT_DETECTION_CONFIG,
        pool_factory: Optional[PoolFactory] = None,
        use_processes: Optional[bool] = None,
        pool_size: Optional[int] = None,
    ) -> None:
        self.config = config
        self.pool_size = pool_size or APP_CONFIG.pool_size
        self._use_processes = (
            is_process_pool_available() if use_processes is None else use_processes
        )
        self._pool_factory = pool_factory or self._default_pool

    def _default_pool(self) -> DetectionWorkerPool:
        if self._use_processes:
            return DetectionWorkerPool(pool_size=self.pool_size)
        logger.info("Process pool unavailable, detecting on worker threads")
        return DetectionWorkerPool(pool_size=self.pool_size, unit_factory=thread_unit_factory)

    async def detect_pages(
        self,
        rasterizer: PageRasterizer,
        page_count: int,
        progress_cb: Optional[ProgressCallback] = None,
    ) -> List[Sequence[SystemDetection]]:
        """
        Returns the detections of each page, indexed by page.
        """
        dpi = self.config.detect_dpi
        completed = 0

        def report() -> None:
            nonlocal completed
            completed += 1
            if progress_cb:
                progress_cb(completed, page_count)

        pool = self._pool_factory()
        try:
            futures = []
            for page_index in range(page_count):
                page = rasterizer.rasterize(page_index, dpi)
                futures.append(
                    pool.submit_task(
                        DetectPageRequest(
                            task_id=f"page-{page_index}",
                            page_index=page_index,
                            buffer=page.buffer,
                            width=page.width,
                            height=page.height,
                            system_gap_height=self.config.system_gap_height,
                            part_gap_height=self.config.part_gap_height,
                        )
                    )
                )
                futures[-1].add_done_callback(lambda _: report())

            responses = await asyncio.gather(*futures)
        finally:
            pool.terminate()

        by_page: List[Sequence[SystemDetection]] = [()] * page_count
        for response in responses:
            by_page[response.page_index] = response.systems
        return by_page

    async def detect_document(
        self,
        rasterizer: PageRasterizer,
        page_dimensions: Sequence[PageDimension],
        progress_cb: Optional[ProgressCallback] = None,
    ) -> SetStaffsAndSystems:
        """
        Detects systems and staffs on every page and builds the edit action.
        """
        start_time = time.perf_counter()
        page_results = await self.detect_pages(rasterizer, len(page_dimensions), progress_cb)

        scale = get_scale(self.config.detect_dpi)
        systems: List[System] = []
        staffs: List[Staff] = []
        for page_index, detections in enumerate(page_results):
            page_systems, page_staffs = build_page_records(
                detections, page_index, page_dimensions[page_index], scale
            )
            systems.extend(page_systems)
            staffs.extend(page_staffs)

        elapsed = time.perf_counter() - start_time
        logger.info(
            f"Detected {len(systems)} systems and {len(staffs)} staffs "
            f"on {len(page_dimensions)} pages in {elapsed:.2f}s"
        )
        return SetStaffsAndSystems(staffs=tuple(staffs), systems=tuple(systems))
