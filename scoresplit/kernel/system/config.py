import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from scoresplit.domain.history import MAX_UNDO


@dataclass(frozen=True)
class DetectionConfig:
    """
    Thresholds for the projection pipeline, in pixels at detect_dpi.
    """

    system_gap_height: int = 50
    part_gap_height: int = 15
    detect_dpi: int = 150

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionConfig":
        known = {k: int(v) for k, v in data.items() if k in cls.__dataclass_fields__ and v is not None}
        return replace(cls(), **known)

    def to_dict(self) -> Dict[str, int]:
        return {
            "system_gap_height": self.system_gap_height,
            "part_gap_height": self.part_gap_height,
            "detect_dpi": self.detect_dpi,
        }


@dataclass(frozen=True)
class AppConfig:
    """
    Process-wide settings resolved once at import time.
    """

    pool_size: Optional[int]
    detect_dpi: int
    max_undo: int
    user_dir: str


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# User dir env (config.json lives here)
BASE_USER_DIR = os.path.abspath(
    os.path.expanduser(os.getenv("SCORESPLIT_USER_DIR", "~/.scoresplit"))
)

APP_CONFIG = AppConfig(
    pool_size=_env_int("SCORESPLIT_POOL_SIZE", None),
    detect_dpi=_env_int("SCORESPLIT_DETECT_DPI", 150) or 150,
    max_undo=_env_int("SCORESPLIT_MAX_UNDO", MAX_UNDO) or MAX_UNDO,
    user_dir=BASE_USER_DIR,
)

DEFAULT_DETECTION_CONFIG = DetectionConfig(detect_dpi=APP_CONFIG.detect_dpi)
