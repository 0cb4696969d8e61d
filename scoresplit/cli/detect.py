"""scoresplit command line detector.

Finds systems and staffs on rasterized score pages and prints them as JSON.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import time
from typing import Any, Dict, List, Optional

from scoresplit.domain.actions import LoadDocument
from scoresplit.domain.interfaces import DocumentLoader
from scoresplit.domain.reducer import INITIAL_COMBINED, combined_reducer
from scoresplit.infrastructure.loaders.image_loader import (
    SUPPORTED_IMAGE_EXTENSIONS,
    ImagePageLoader,
)
from scoresplit.kernel.system.config import APP_CONFIG, DEFAULT_DETECTION_CONFIG, DetectionConfig
from scoresplit.kernel.system.errors import ScoreSplitError
from scoresplit.kernel.system.logging import setup_logging
from scoresplit.services.detection.service import DetectionService

CONFIG_DIR = APP_CONFIG.user_dir
CONFIG_FILE = os.path.join(CONFIG_DIR, "config.json")


def load_user_config() -> dict:
    """Loads ~/.scoresplit/config.json if it exists. Returns {"cli": {}, "detection": {}}."""
    if not os.path.isfile(CONFIG_FILE):
        return {"cli": {}, "detection": {}}
    with open(CONFIG_FILE, "r") as f:
        data = json.load(f)
    return {
        "cli": data.get("cli", {}),
        "detection": data.get("detection", {}),
    }


def generate_default_config() -> int:
    """Creates ~/.scoresplit/config.json with defaults. Returns 0 on success, 1 if exists."""
    if os.path.isfile(CONFIG_FILE):
        print(f"Config already exists: {CONFIG_FILE}", file=sys.stderr)
        return 1
    os.makedirs(CONFIG_DIR, exist_ok=True)
    default = {
        "cli": {"workers": None, "in_process": False},
        "detection": DEFAULT_DETECTION_CONFIG.to_dict(),
    }
    with open(CONFIG_FILE, "w") as f:
        json.dump(default, f, indent=4)
    print(f"Config created: {CONFIG_FILE}", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scoresplit",
        description="scoresplit -- detect systems and staffs on score pages",
        epilog="Example: scoresplit --system-gap 60 --output layout.json page1.png page2.png",
    )

    parser.add_argument(
        "inputs",
        nargs="*",
        metavar="FILE_OR_DIR",
        help="Page images (PNG, JPEG, TIFF, BMP) or directories containing them",
    )

    parser.add_argument(
        "--system-gap",
        type=int,
        default=None,
        metavar="PX",
        help="Minimum white gap between systems in pixels (default: 50)",
    )

    parser.add_argument(
        "--part-gap",
        type=int,
        default=None,
        metavar="PX",
        help="Minimum white gap between staffs in pixels (default: 15)",
    )

    parser.add_argument(
        "--dpi",
        type=int,
        default=None,
        metavar="INT",
        help="Rasterization DPI the gap thresholds refer to (default: 150)",
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        metavar="INT",
        help="Number of detection processes (default: CPU count)",
    )

    parser.add_argument(
        "--in-process",
        action="store_true",
        default=False,
        help="Detect on worker threads in this process instead of child processes",
    )

    parser.add_argument(
        "--output",
        default=None,
        metavar="FILE",
        help="Write JSON to FILE instead of stdout",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Log pool activity to stderr",
    )

    parser.add_argument(
        "--init-config",
        action="store_true",
        default=False,
        help="Generate default config at ~/.scoresplit/config.json and exit",
    )

    return parser


def discover_files(inputs: List[str]) -> List[str]:
    """Resolves input paths to a list of page images, directories sorted by name."""
    files = []
    for input_path in inputs:
        path = os.path.abspath(input_path)
        if os.path.isfile(path):
            ext = os.path.splitext(path)[1].lower()
            if ext in SUPPORTED_IMAGE_EXTENSIONS:
                files.append(path)
            else:
                print(f"Warning: Skipping unsupported file: {path}", file=sys.stderr)
        elif os.path.isdir(path):
            for fname in sorted(os.listdir(path)):
                fpath = os.path.join(path, fname)
                if os.path.isfile(fpath) and os.path.splitext(fname)[1].lower() in SUPPORTED_IMAGE_EXTENSIONS:
                    files.append(fpath)
        else:
            print(f"Warning: Path not found: {path}", file=sys.stderr)
    return files


def build_config(args: argparse.Namespace, user_config: dict) -> DetectionConfig:
    """Builds DetectionConfig with loading priority:
    DEFAULT -> user config -> CLI flags
    """
    base = DEFAULT_DETECTION_CONFIG.to_dict()
    base.update(user_config.get("detection", {}))

    if args.system_gap is not None:
        base["system_gap_height"] = args.system_gap
    if args.part_gap is not None:
        base["part_gap_height"] = args.part_gap
    if args.dpi is not None:
        base["detect_dpi"] = args.dpi

    return DetectionConfig.from_dict(base)


def load_action(file_name: str, loader: DocumentLoader) -> LoadDocument:
    return LoadDocument(
        file_name=file_name,
        source_bytes=b"",
        document=loader,
        page_count=loader.page_count,
        page_dimensions=tuple(loader.page_dimensions),
    )


def layout_to_json(file_name: str, project: Any) -> Dict[str, Any]:
    pages = []
    for page_index, dim in enumerate(project.page_dimensions):
        pages.append(
            {
                "pageIndex": page_index,
                "width": dim.width,
                "height": dim.height,
                "systems": [s.to_dict() for s in project.systems if s.page_index == page_index],
                "staffs": [s.to_dict() for s in project.staffs if s.page_index == page_index],
            }
        )
    return {"source": file_name, "pageCount": project.page_count, "pages": pages}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns 0 on success, 1 on failure."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.init_config:
        return generate_default_config()

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        user_config = load_user_config()
    except json.JSONDecodeError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    cli_defaults = user_config.get("cli", {})
    if args.workers is None and cli_defaults.get("workers"):
        args.workers = cli_defaults["workers"]
    if not args.in_process and cli_defaults.get("in_process"):
        args.in_process = True

    files = discover_files(args.inputs)
    if not files:
        print("Error: No supported page images found.", file=sys.stderr)
        return 1

    try:
        config = build_config(args, user_config)
        loader = ImagePageLoader(files)
    except (OSError, ValueError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    state = combined_reducer(INITIAL_COMBINED, load_action(loader.file_name, loader))

    workers = args.workers or APP_CONFIG.pool_size
    service = DetectionService(
        config,
        pool_size=workers,
        use_processes=False if args.in_process else None,
    )

    def progress(done: int, total: int) -> None:
        print(f"  [{done}/{total}] pages detected", file=sys.stderr)

    t_start = time.monotonic()
    try:
        action = asyncio.run(
            service.detect_document(loader, state.project.page_dimensions, progress)
        )
    except ScoreSplitError as e:
        print(f"Error: detection failed: {e}", file=sys.stderr)
        return 1

    state = combined_reducer(state, action)
    payload = json.dumps(layout_to_json(loader.file_name, state.project), indent=2)

    if args.output:
        with open(args.output, "w") as f:
            f.write(payload)
    else:
        print(payload)

    print(
        f"Done: {len(state.project.systems)} systems, {len(state.project.staffs)} staffs "
        f"in {time.monotonic() - t_start:.1f}s",
        file=sys.stderr,
    )
    return 0


def cli_entry() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    sys.exit(main())
