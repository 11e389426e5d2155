"""
Flyer Canvas - Transform Math Utilities

This module provides mathematical functions for coordinate transformations
and geometry calculations used in layer manipulation.

These pure math functions handle coordinate system conversions and geometric
calculations without any UI dependencies. Every function is side-effect free.

Conventions:
- Canvas space: pixels, origin top-left, y grows downward
- Layer-local space: pixels of the unscaled content box, origin at its centre
- A layer's matrix maps local -> canvas as  T(x, y) . R(rotation) . S(sx, sy)
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np

from flyer_canvas.models.transform import Transform, normalize_angle
from flyer_canvas.errors import InvalidGeometryError


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box in canvas pixels"""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2.0

    @property
    def center_y(self) -> float:
        return (self.top + self.bottom) / 2.0

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom

    def intersects(self, other: 'Bounds') -> bool:
        return not (other.left > self.right or other.right < self.left
                    or other.top > self.bottom or other.bottom < self.top)

    def contains_bounds(self, other: 'Bounds') -> bool:
        return (self.left <= other.left and self.right >= other.right
                and self.top <= other.top and self.bottom >= other.bottom)

    @classmethod
    def from_points(cls, x1: float, y1: float, x2: float, y2: float) -> 'Bounds':
        """Normalised box spanning two arbitrary corner points (marquee)"""
        return cls(min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))


# ======================================================================
# MATRICES
# ======================================================================

def transform_matrix(t: Transform) -> np.ndarray:
    """Build the 3x3 affine matrix (local -> canvas) for a transform

    Args:
        t: Transform with position, scale and rotation (opacity ignored)

    Returns:
        3x3 float64 numpy array
    """
    rad = math.radians(t.rotation)
    cos_r = math.cos(rad)
    sin_r = math.sin(rad)
    return np.array([
        [cos_r * t.scale_x, -sin_r * t.scale_y, t.x],
        [sin_r * t.scale_x, cos_r * t.scale_y, t.y],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)


def inverse_matrix(t: Transform) -> np.ndarray:
    """Build the inverse affine matrix (canvas -> local) for a transform

    Computed analytically; scales are clamped positive by Transform, so the
    matrix is always invertible.
    """
    rad = math.radians(t.rotation)
    cos_r = math.cos(rad)
    sin_r = math.sin(rad)
    inv_sx = 1.0 / t.scale_x
    inv_sy = 1.0 / t.scale_y
    # S^-1 . R^-1 . T^-1
    return np.array([
        [cos_r * inv_sx, sin_r * inv_sx, -(cos_r * t.x + sin_r * t.y) * inv_sx],
        [-sin_r * inv_sy, cos_r * inv_sy, (sin_r * t.x - cos_r * t.y) * inv_sy],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)


def matrix_to_transform(matrix: np.ndarray, opacity: float = 1.0) -> Transform:
    """Decompose an affine matrix into position, scale and rotation

    Exact for matrices built from T.R.S. When the matrix carries shear
    (a non-uniformly scaled parent composed with a rotated child) the shear
    component is dropped.
    """
    a, c, tx = matrix[0]
    b, d, ty = matrix[1]
    if not np.all(np.isfinite(matrix)):
        raise InvalidGeometryError("Matrix contains non-finite values")
    scale_x = math.hypot(a, b)
    if scale_x == 0.0:
        raise InvalidGeometryError("Degenerate matrix: zero x scale")
    rotation = math.degrees(math.atan2(b, a))
    scale_y = (a * d - b * c) / scale_x
    return Transform(tx, ty, scale_x, scale_y, rotation, opacity)


def compose(parent: Transform, child: Transform) -> Transform:
    """Apply child relative to parent (parent . child)

    Order-sensitive: compose(a, b) != compose(b, a) in general.
    Opacity multiplies.
    """
    matrix = transform_matrix(parent) @ transform_matrix(child)
    return matrix_to_transform(matrix, parent.opacity * child.opacity)


def inverse(t: Transform) -> Transform:
    """Transform that undoes t (exact for uniform scale)"""
    return matrix_to_transform(inverse_matrix(t), t.opacity)


# ======================================================================
# POINTS
# ======================================================================

def local_to_canvas(t: Transform, local_x: float, local_y: float) -> Tuple[float, float]:
    """Map a layer-local point to canvas pixels"""
    p = transform_matrix(t) @ np.array([local_x, local_y, 1.0])
    return float(p[0]), float(p[1])


def canvas_to_local(t: Transform, canvas_x: float, canvas_y: float) -> Tuple[float, float]:
    """Map a canvas point (e.g. the pointer) into layer-local space"""
    p = inverse_matrix(t) @ np.array([canvas_x, canvas_y, 1.0])
    return float(p[0]), float(p[1])


def rect_corners(t: Transform, width: float, height: float) -> List[Tuple[float, float]]:
    """Canvas positions of a content box's corners: tl, tr, br, bl"""
    hw = width / 2.0
    hh = height / 2.0
    local = np.array([
        [-hw, hw, hw, -hw],
        [-hh, -hh, hh, hh],
        [1.0, 1.0, 1.0, 1.0],
    ])
    pts = transform_matrix(t) @ local
    return [(float(pts[0, i]), float(pts[1, i])) for i in range(4)]


def bounding_box(t: Transform, width: float, height: float) -> Bounds:
    """Axis-aligned bounding box of a rotated, scaled content box

    Args:
        t: Layer transform
        width, height: Unscaled content box size

    Returns:
        Bounds in canvas pixels
    """
    rad = math.radians(t.rotation)
    hw = width * t.scale_x / 2.0
    hh = height * t.scale_y / 2.0
    cos_r = abs(math.cos(rad))
    sin_r = abs(math.sin(rad))
    ext_x = hw * cos_r + hh * sin_r
    ext_y = hw * sin_r + hh * cos_r
    return Bounds(t.x - ext_x, t.y - ext_y, t.x + ext_x, t.y + ext_y)


def union_bounds(boxes: Iterable[Bounds]) -> Optional[Bounds]:
    """Smallest box containing every box, or None for an empty input"""
    boxes = list(boxes)
    if not boxes:
        return None
    return Bounds(
        min(b.left for b in boxes),
        min(b.top for b in boxes),
        max(b.right for b in boxes),
        max(b.bottom for b in boxes),
    )


def point_in_rect(t: Transform, width: float, height: float,
                  x: float, y: float, tolerance: float = 0.0) -> bool:
    """Hit test a canvas point against a rotated, scaled content box

    Args:
        t: Layer transform
        width, height: Unscaled content box size
        x, y: Canvas point
        tolerance: Extra canvas pixels accepted around the box

    Returns:
        True if the point lies inside (or on the edge of) the box
    """
    # Transform point to local (unrotated) space, in canvas-pixel units
    dx = x - t.x
    dy = y - t.y
    rad = -math.radians(t.rotation)
    cos_r = math.cos(rad)
    sin_r = math.sin(rad)
    local_x = dx * cos_r - dy * sin_r
    local_y = dx * sin_r + dy * cos_r
    half_w = width * t.scale_x / 2.0 + tolerance
    half_h = height * t.scale_y / 2.0 + tolerance
    return abs(local_x) <= half_w and abs(local_y) <= half_h


# ======================================================================
# INTERPOLATION AND ANGLES
# ======================================================================

def lerp(a: float, b: float, f: float) -> float:
    return a + (b - a) * f


def shortest_angle_delta(from_deg: float, to_deg: float) -> float:
    """Signed delta in (-180, 180] that rotates from_deg onto to_deg"""
    delta = math.fmod(to_deg - from_deg, 360.0)
    if delta > 180.0:
        delta -= 360.0
    elif delta <= -180.0:
        delta += 360.0
    return delta


def lerp_angle(a: float, b: float, f: float) -> float:
    """Interpolate two angles along the shortest arc, result in [0, 360)"""
    return normalize_angle(a + shortest_angle_delta(a, b) * f)


def angle_of(cx: float, cy: float, x: float, y: float) -> float:
    """Angle in degrees of the vector centre -> point (clockwise, y-down)"""
    return math.degrees(math.atan2(y - cy, x - cx))


def rotate_point(x: float, y: float, cx: float, cy: float, degrees: float) -> Tuple[float, float]:
    """Rotate a point around a centre (ferris-wheel rotation of a group)"""
    rad = math.radians(degrees)
    cos_r = math.cos(rad)
    sin_r = math.sin(rad)
    dx = x - cx
    dy = y - cy
    return cx + dx * cos_r - dy * sin_r, cy + dx * sin_r + dy * cos_r
