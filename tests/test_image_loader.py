import numpy as np
import pytest
from PIL import Image

from scoresplit.features.detection.logic import detect_systems
from scoresplit.infrastructure.loaders.image_loader import ImagePageLoader


def _page(height, width, dark_rows=()):
    data = np.full((height, width, 3), 255, dtype=np.uint8)
    for start, stop in dark_rows:
        data[start:stop] = 0
    return Image.fromarray(data)


def test_dimensions_follow_embedded_dpi(tmp_path):
    path = tmp_path / "page.tif"
    _page(300, 150).save(path, dpi=(300, 300))

    loader = ImagePageLoader([str(path)])

    assert loader.page_count == 1
    assert loader.file_name == "page.tif"
    dim = loader.page_dimensions[0]
    assert dim.width == pytest.approx(36.0, rel=1e-3)
    assert dim.height == pytest.approx(72.0, rel=1e-3)


def test_missing_dpi_uses_source_dpi(tmp_path):
    path = tmp_path / "page.png"
    _page(144, 72).save(path)

    dim = ImagePageLoader([str(path)], source_dpi=72).page_dimensions[0]
    assert (dim.width, dim.height) == (72.0, 144.0)


def test_rasterize_returns_rgba_at_requested_dpi(tmp_path):
    path = tmp_path / "page.tif"
    _page(200, 100, [(40, 60)]).save(path, dpi=(100, 100))
    loader = ImagePageLoader([str(path)])

    same = loader.rasterize(0, 100)
    assert (same.width, same.height) == (100, 200)
    assert len(same.buffer) == 100 * 200 * 4
    assert [(b.top_px, b.bottom_px) for b in detect_systems(same.buffer, 100, 200, 10)] == [(40, 60)]

    half = loader.rasterize(0, 50)
    assert (half.width, half.height) == (50, 100)
    assert len(half.buffer) == 50 * 100 * 4


def test_multi_frame_tiff_and_several_files(tmp_path):
    multi = tmp_path / "score.tif"
    frames = [_page(100, 50), _page(120, 50), _page(140, 50)]
    frames[0].save(multi, save_all=True, append_images=frames[1:], dpi=(150, 150))
    single = tmp_path / "extra.png"
    _page(80, 50).save(single)

    loader = ImagePageLoader([str(multi), str(single)])

    assert loader.page_count == 4
    assert [loader.rasterize(i, loader._dpis[i]).height for i in range(4)] == [100, 120, 140, 80]
