"""
Flyer Canvas - Layer Data Model

A Layer is one positioned visual element of a Scene:
- UUID-based identification (stable across reordering and undo/redo)
- Tagged content (image, text, sticker)
- Base transform plus optional keyframes
- Visibility flag, optional time window and colour effects

Layers are immutable values. Edits produce a new Layer through the with_*
helpers; the Scene swaps it in. This is part of the MODEL layer - pure data,
no UI logic.
"""

import math
import uuid as uuid_module
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from flyer_canvas.models.content import Content
from flyer_canvas.models.transform import Transform, IDENTITY
from flyer_canvas.errors import InvalidGeometryError


def new_layer_id() -> str:
    return str(uuid_module.uuid4())


@dataclass(frozen=True)
class Effects:
    """Per-layer colour adjustments and blur

    Factors follow Pillow ImageEnhance: 1.0 leaves the channel unchanged,
    0.0 gives black (brightness), flat grey (contrast) or greyscale
    (saturation). blur is a Gaussian radius in content pixels.
    """
    brightness: float = 1.0
    contrast: float = 1.0
    saturation: float = 1.0
    blur: float = 0.0

    def __post_init__(self):
        values = (self.brightness, self.contrast, self.saturation, self.blur)
        if not all(math.isfinite(v) and v >= 0 for v in values):
            raise InvalidGeometryError(f"Effects must be finite and non-negative, got {values}")

    @property
    def is_identity(self) -> bool:
        return self == NO_EFFECTS


NO_EFFECTS = Effects(1.0, 1.0, 1.0, 0.0)


@dataclass(frozen=True)
class Keyframe:
    """Animated offset over the layer's base transform at a point in time.

    The delta is applied on top of the base transform: offsets add to the
    position, scale factors multiply, rotation adds, opacity multiplies.

    Args:
        time: Seconds from the start of the scene timeline
        dx, dy: Position offset in canvas pixels
        scale_x, scale_y: Scale factors
        rotation: Rotation offset in degrees
        opacity: Opacity factor
    """
    time: float
    dx: float = 0.0
    dy: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    rotation: float = 0.0
    opacity: float = 1.0

    def __post_init__(self):
        values = (self.time, self.dx, self.dy, self.scale_x, self.scale_y, self.rotation, self.opacity)
        if not all(math.isfinite(v) for v in values):
            raise InvalidGeometryError(f"Non-finite keyframe values: {values}")


@dataclass(frozen=True)
class Layer:
    """Object-oriented wrapper for one layer

    Properties:
        id: Stable UUID string
        content: ImageContent | TextContent | StickerContent | BlurContent
        transform: Base Transform (position, scale, rotation, opacity)
        visible: Hidden layers are skipped by the renderer and hit testing
        keyframes: Tuple of Keyframe sorted by time
        name: Display name for layer lists
        start: Seconds into the timeline at which the layer appears
        duration: Seconds the layer stays on screen; None means until the end
        effects: Colour adjustments and blur applied to the content raster
    """
    content: Content
    transform: Transform = IDENTITY
    visible: bool = True
    keyframes: Tuple[Keyframe, ...] = ()
    name: str = ''
    start: float = 0.0
    duration: Optional[float] = None
    effects: Effects = NO_EFFECTS
    id: str = field(default_factory=new_layer_id)

    def __post_init__(self):
        ordered = tuple(sorted(self.keyframes, key=lambda k: k.time))
        object.__setattr__(self, 'keyframes', ordered)
        if not self.name:
            object.__setattr__(self, 'name', self.content.kind.value)
        if not math.isfinite(self.start):
            raise InvalidGeometryError(f"Layer start must be finite, got {self.start}")
        if self.duration is not None and not (math.isfinite(self.duration) and self.duration > 0):
            raise InvalidGeometryError(f"Layer duration must be positive, got {self.duration}")

    # ========================================
    # Derived data
    # ========================================

    @property
    def width(self) -> float:
        return self.content.width

    @property
    def height(self) -> float:
        return self.content.height

    @property
    def is_windowed(self) -> bool:
        return self.start != 0 or self.duration is not None

    @property
    def is_animated(self) -> bool:
        """True if the layer changes over time (keyframes or a time window)"""
        return bool(self.keyframes) or self.is_windowed

    @property
    def end(self) -> Optional[float]:
        return None if self.duration is None else self.start + self.duration

    def active_at(self, t: Optional[float]) -> bool:
        """Whether the layer is on screen at time t

        The window is half-open, [start, start + duration). A static render
        (t is None) shows every layer.
        """
        if t is None:
            return True
        if t < self.start:
            return False
        return self.duration is None or t < self.start + self.duration

    # ========================================
    # Functional updates
    # ========================================

    def with_transform(self, transform: Transform) -> 'Layer':
        return replace(self, transform=transform)

    def with_visible(self, visible: bool) -> 'Layer':
        return replace(self, visible=bool(visible))

    def with_opacity(self, opacity: float) -> 'Layer':
        return replace(self, transform=self.transform.with_opacity(opacity))

    def with_keyframes(self, keyframes) -> 'Layer':
        return replace(self, keyframes=tuple(keyframes))

    def with_name(self, name: str) -> 'Layer':
        return replace(self, name=name)

    def with_content(self, content: Content) -> 'Layer':
        return replace(self, content=content)

    def with_window(self, start: float, duration: Optional[float]) -> 'Layer':
        return replace(self, start=float(start), duration=duration)

    def with_effects(self, effects: Effects) -> 'Layer':
        return replace(self, effects=effects)

    def find_keyframe(self, time: float) -> Optional[Keyframe]:
        for kf in self.keyframes:
            if kf.time == time:
                return kf
        return None
