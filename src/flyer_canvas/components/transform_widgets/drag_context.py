"""Drag context dataclass for the interaction engine.

Unified gesture state management instead of multiple boolean flags.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

from flyer_canvas.models.transform import Transform
from .handles import Handle, HandleFrame


@dataclass
class DragContext:
    """State captured at pointer-down and kept for the whole gesture."""
    operation: str  # 'translate', 'resize', 'rotate', 'marquee'
    start_x: float
    start_y: float
    modifiers: FrozenSet[str] = frozenset()
    handle: Optional[Handle] = None
    start_frame: Optional[HandleFrame] = None
    # layer_id -> transform at gesture start
    start_transforms: Dict[str, Transform] = field(default_factory=dict)
    # Selection before the gesture (marquee adds to it when shift is held)
    base_selection: FrozenSet[str] = frozenset()
    additive: bool = False

    @property
    def is_multi_selection(self) -> bool:
        return len(self.start_transforms) > 1
