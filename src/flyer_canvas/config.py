"""Engine configuration loaded from / saved to a JSON file"""

import os
import json
import logging
from dataclasses import dataclass, asdict, fields
from typing import Optional, Tuple

from flyer_canvas.constants import (
    DEFAULT_CANVAS_WIDTH, DEFAULT_CANVAS_HEIGHT, DEFAULT_BACKGROUND,
    SNAP_TOLERANCE, ROTATION_SNAP_TOLERANCE,
    TRANSFORM_HANDLE_SIZE, TRANSFORM_HIT_TOLERANCE, TRANSFORM_ROTATION_HANDLE_OFFSET,
    NUDGE_FINE, NUDGE_NORMAL, NUDGE_COARSE,
    MAX_HISTORY_ENTRIES, DEFAULT_FRAME_RATE, DEFAULT_EXPORT_WORKERS,
)
from flyer_canvas.utils.logger import loggerRaise

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """Tunables for the interaction engine, history and export pipeline.

    Unknown keys in a config file are ignored so older engines can read
    newer files.
    """
    canvas_width: int = DEFAULT_CANVAS_WIDTH
    canvas_height: int = DEFAULT_CANVAS_HEIGHT
    background: Tuple[int, int, int, int] = DEFAULT_BACKGROUND

    snapping_enabled: bool = True
    snap_tolerance: float = SNAP_TOLERANCE
    rotation_snap_tolerance: float = ROTATION_SNAP_TOLERANCE

    handle_size: float = TRANSFORM_HANDLE_SIZE
    hit_tolerance: float = TRANSFORM_HIT_TOLERANCE
    rotation_handle_offset: float = TRANSFORM_ROTATION_HANDLE_OFFSET

    nudge_fine: float = NUDGE_FINE
    nudge_normal: float = NUDGE_NORMAL
    nudge_coarse: float = NUDGE_COARSE

    # None = unbounded
    max_history: Optional[int] = MAX_HISTORY_ENTRIES

    frame_rate: float = DEFAULT_FRAME_RATE
    export_workers: int = DEFAULT_EXPORT_WORKERS

    @classmethod
    def from_dict(cls, data: dict) -> 'EngineConfig':
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if 'background' in values:
            values['background'] = tuple(values['background'])
        return cls(**values)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['background'] = list(self.background)
        return data

    @classmethod
    def load(cls, path) -> 'EngineConfig':
        """Load config from a JSON file

        A missing file gives the defaults. A malformed file is logged and
        also gives the defaults, so a broken settings file never blocks the
        editor from starting.
        """
        if not os.path.exists(path):
            logger.debug("No config at %s, using defaults", path)
            return cls()
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read config %s (%s), using defaults", path, e)
            return cls()
        if not isinstance(data, dict):
            logger.warning("Config %s is not a JSON object, using defaults", path)
            return cls()
        return cls.from_dict(data)

    def save(self, path):
        """Save config as JSON, creating the parent directory if needed"""
        try:
            directory = os.path.dirname(os.fspath(path))
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(self.to_dict(), f, indent=2)
        except OSError as e:
            loggerRaise(e, f"Error saving config to {path}")
