from typing import Iterable, Tuple

import numpy as np
import pytest


@pytest.fixture(scope="session")
def qapp():
    """Shared Qt core application for QObject based tests."""
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


def _make_page(
    height: int,
    width: int,
    bands: Iterable[Tuple[int, int]] = (),
    ink: Tuple[int, int, int] = (0, 0, 0),
) -> bytes:
    """White RGBA page with ink rows over each [start, stop) band."""
    page = np.full((height, width, 4), 255, dtype=np.uint8)
    for start, stop in bands:
        page[start:stop, :, :3] = ink
    return page.tobytes()


@pytest.fixture
def make_page():
    return _make_page
