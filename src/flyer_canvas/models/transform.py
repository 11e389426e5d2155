"""Transform data structures for coordinate and state representation."""
from dataclasses import dataclass, replace
import math

from flyer_canvas.constants import (
    DEFAULT_POSITION_X, DEFAULT_POSITION_Y,
    DEFAULT_SCALE_X, DEFAULT_SCALE_Y,
    DEFAULT_ROTATION, DEFAULT_OPACITY,
    MIN_SCALE, TRANSFORM_EPSILON,
)
from flyer_canvas.errors import InvalidGeometryError


@dataclass(frozen=True)
class Vec2:
    """2D vector for coordinate pairs.

    Used for any x/y coordinate pair across spaces:
    - Canvas pixels (top-left origin, y-down)
    - Layer-local pixels (centre origin)
    """
    x: float
    y: float

    def __iter__(self):
        """Allow tuple unpacking: x, y = vec2"""
        return iter((self.x, self.y))


def normalize_angle(degrees: float) -> float:
    """Map an angle in degrees into [0, 360)."""
    angle = math.fmod(degrees, 360.0)
    if angle < 0:
        angle += 360.0
    # fmod(-1e-17, 360) + 360 rounds to 360.0
    if angle >= 360.0:
        angle = 0.0
    return angle


def clamp_scale(value: float) -> float:
    """Clamp a scale factor to the strictly positive minimum."""
    return value if value >= MIN_SCALE else MIN_SCALE


@dataclass(frozen=True)
class Transform:
    """Layer transform: position, scale, rotation and opacity.

    Position is the layer centre in canvas pixels. Rotation is in degrees,
    clockwise on screen (y-down). Values are normalised on construction:
    the angle lands in [0, 360), scales are clamped to MIN_SCALE and
    opacity to [0, 1]. Non-finite values raise InvalidGeometryError.
    """
    x: float = DEFAULT_POSITION_X
    y: float = DEFAULT_POSITION_Y
    scale_x: float = DEFAULT_SCALE_X
    scale_y: float = DEFAULT_SCALE_Y
    rotation: float = DEFAULT_ROTATION
    opacity: float = DEFAULT_OPACITY

    def __post_init__(self):
        values = (self.x, self.y, self.scale_x, self.scale_y, self.rotation, self.opacity)
        if not all(math.isfinite(v) for v in values):
            raise InvalidGeometryError(f"Non-finite transform values: {values}")
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, 'x', float(self.x))
        object.__setattr__(self, 'y', float(self.y))
        object.__setattr__(self, 'scale_x', clamp_scale(float(self.scale_x)))
        object.__setattr__(self, 'scale_y', clamp_scale(float(self.scale_y)))
        object.__setattr__(self, 'rotation', normalize_angle(float(self.rotation)))
        object.__setattr__(self, 'opacity', min(1.0, max(0.0, float(self.opacity))))

    @property
    def pos(self) -> Vec2:
        return Vec2(self.x, self.y)

    @property
    def scale(self) -> Vec2:
        return Vec2(self.scale_x, self.scale_y)

    def moved_by(self, dx: float, dy: float) -> 'Transform':
        return replace(self, x=self.x + dx, y=self.y + dy)

    def with_position(self, x: float, y: float) -> 'Transform':
        return replace(self, x=x, y=y)

    def with_scale(self, scale_x: float, scale_y: float) -> 'Transform':
        return replace(self, scale_x=scale_x, scale_y=scale_y)

    def with_rotation(self, rotation: float) -> 'Transform':
        return replace(self, rotation=rotation)

    def with_opacity(self, opacity: float) -> 'Transform':
        return replace(self, opacity=opacity)

    def as_tuple(self):
        """(tx, ty, sx, sy, theta) geometry tuple, opacity excluded"""
        return (self.x, self.y, self.scale_x, self.scale_y, self.rotation)

    def is_close(self, other: 'Transform', eps: float = TRANSFORM_EPSILON) -> bool:
        """Approximate equality; rotation compared on the circle"""
        if other is None:
            return False
        diff = abs(self.rotation - other.rotation)
        rot_diff = min(diff, 360.0 - diff)
        return (abs(self.x - other.x) <= eps and abs(self.y - other.y) <= eps
                and abs(self.scale_x - other.scale_x) <= eps
                and abs(self.scale_y - other.scale_y) <= eps
                and rot_diff <= eps
                and abs(self.opacity - other.opacity) <= eps)


IDENTITY = Transform()
