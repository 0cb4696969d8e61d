"""Tests for scoresplit.cli.detect, the command line detector."""

import json
import os
from unittest.mock import patch

import numpy as np
import pytest
from PIL import Image

from scoresplit.cli import detect as cli
from scoresplit.cli.detect import (
    build_config,
    build_parser,
    discover_files,
    generate_default_config,
    layout_to_json,
    load_user_config,
    main,
)


def _write_page(path, height=300, width=40, bands=((20, 60), (80, 120), (200, 240)), dpi=150):
    page = np.full((height, width, 3), 255, dtype=np.uint8)
    for start, stop in bands:
        page[start:stop] = 0
    Image.fromarray(page).save(path, dpi=(dpi, dpi))
    return str(path)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "cfg" / "config.json"
    with patch.object(cli, "CONFIG_DIR", str(path.parent)), patch.object(
        cli, "CONFIG_FILE", str(path)
    ):
        yield path


class TestBuildParser:
    def test_defaults(self):
        args = build_parser().parse_args(["page.png"])
        assert args.inputs == ["page.png"]
        assert args.system_gap is None
        assert args.part_gap is None
        assert args.dpi is None
        assert args.workers is None
        assert args.in_process is False
        assert args.output is None
        assert args.verbose is False
        assert args.init_config is False

    def test_all_flags(self):
        args = build_parser().parse_args(
            [
                "--system-gap", "60",
                "--part-gap", "12",
                "--dpi", "200",
                "--workers", "3",
                "--in-process",
                "--output", "out.json",
                "--verbose",
                "a.png", "b.tif",
            ]
        )
        assert (args.system_gap, args.part_gap, args.dpi, args.workers) == (60, 12, 200, 3)
        assert args.in_process and args.verbose
        assert args.output == "out.json"
        assert args.inputs == ["a.png", "b.tif"]


class TestBuildConfig:
    def test_defaults_only(self):
        config = build_config(build_parser().parse_args([]), {"detection": {}})
        assert (config.system_gap_height, config.part_gap_height) == (50, 15)

    def test_user_config_then_flags(self):
        user = {"detection": {"system_gap_height": 70, "part_gap_height": 20, "unknown": 1}}
        args = build_parser().parse_args(["--part-gap", "9"])
        config = build_config(args, user)
        assert config.system_gap_height == 70
        assert config.part_gap_height == 9


class TestDiscoverFiles:
    def test_files_and_directories(self, tmp_path, capsys):
        pages = tmp_path / "pages"
        pages.mkdir()
        _write_page(pages / "b.png")
        _write_page(pages / "a.png")
        (pages / "notes.txt").write_text("x")
        stray = tmp_path / "readme.md"
        stray.write_text("x")

        files = discover_files([str(pages), str(stray), str(tmp_path / "missing.png")])

        assert [os.path.basename(f) for f in files] == ["a.png", "b.png"]
        err = capsys.readouterr().err
        assert "unsupported" in err
        assert "not found" in err


class TestUserConfig:
    def test_missing_config(self, config_file):
        assert load_user_config() == {"cli": {}, "detection": {}}

    def test_generate_then_refuse_overwrite(self, config_file):
        assert generate_default_config() == 0
        data = json.loads(config_file.read_text())
        assert data["detection"]["system_gap_height"] == 50
        assert generate_default_config() == 1

    def test_invalid_json_fails(self, config_file, tmp_path):
        config_file.parent.mkdir(parents=True)
        config_file.write_text("{not json")
        assert main([_write_page(tmp_path / "p.png"), "--in-process"]) == 1


class TestMain:
    def test_no_inputs(self, config_file):
        assert main([]) == 1

    def test_writes_layout(self, config_file, tmp_path):
        page = _write_page(tmp_path / "score.png")
        out = tmp_path / "layout.json"

        assert main([page, "--in-process", "--output", str(out)]) == 0

        layout = json.loads(out.read_text())
        assert layout["source"] == "score.png"
        assert layout["pageCount"] == 1
        first = layout["pages"][0]
        assert len(first["systems"]) == 2
        assert len(first["staffs"]) == 3
        system_ids = {s["id"] for s in first["systems"]}
        assert all(s["systemId"] in system_ids for s in first["staffs"])
        assert all(s["top"] > s["bottom"] for s in first["staffs"])

    def test_user_gap_is_applied(self, config_file, tmp_path, capsys):
        config_file.parent.mkdir(parents=True)
        config_file.write_text(json.dumps({"detection": {"system_gap_height": 100}}))
        page = _write_page(tmp_path / "score.png")

        assert main([page, "--in-process"]) == 0
        layout = json.loads(capsys.readouterr().out)
        assert len(layout["pages"][0]["systems"]) == 1

    def test_unreadable_image(self, config_file, tmp_path):
        bad = tmp_path / "broken.png"
        bad.write_bytes(b"not an image")
        assert main([str(bad), "--in-process"]) == 1


def test_layout_to_json_groups_by_page():
    from scoresplit.domain.models import PageDimension, ProjectState, Staff, System

    project = ProjectState(
        page_count=2,
        page_dimensions=(PageDimension(100, 200), PageDimension(100, 200)),
        systems=(System("s", 1, 150, 100),),
        staffs=(Staff("a", 1, 150, 100, "Oboe", "s"),),
    )
    payload = layout_to_json("doc", project)
    assert payload["pages"][0]["systems"] == []
    assert payload["pages"][1]["staffs"][0]["label"] == "Oboe"
