"""Snapping for layer drags and rotations.

While dragging, the moving selection's left/centre/right (and top/centre/
bottom) lines are compared against reference lines from the canvas and
from every other visible layer. Each axis snaps independently to the
closest reference within tolerance. Rotations snap to the right angles.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from flyer_canvas.constants import SNAP_TOLERANCE, ROTATION_SNAP_ANGLES, ROTATION_SNAP_TOLERANCE
from flyer_canvas.models.scene import Scene
from flyer_canvas.models.transform import normalize_angle
from flyer_canvas.utils.transform_math import Bounds, bounding_box, shortest_angle_delta

logger = logging.getLogger(__name__)

CANVAS = 'canvas'

# Which line of the moving box matched
EDGE_MIN = 'min'
EDGE_CENTER = 'center'
EDGE_MAX = 'max'


@dataclass(frozen=True)
class SnapGuide:
    """A reference line the selection snapped to, for the host UI to draw

    axis is 'x' (vertical line at x=position) or 'y' (horizontal line at
    y=position). source is 'canvas' or the ID of the layer providing it.
    edge says which line of the moving box sits on it.
    """
    axis: str
    position: float
    source: str
    edge: str


@dataclass(frozen=True)
class SnapResult:
    dx: float = 0.0
    dy: float = 0.0
    x_guide: Optional[SnapGuide] = None
    y_guide: Optional[SnapGuide] = None

    @property
    def guides(self) -> Tuple[SnapGuide, ...]:
        return tuple(g for g in (self.x_guide, self.y_guide) if g is not None)


class SnapEngine:
    """Computes snap corrections against canvas and layer reference lines"""

    def __init__(self, tolerance: float = SNAP_TOLERANCE,
                 rotation_tolerance: float = ROTATION_SNAP_TOLERANCE,
                 angles: Iterable[float] = ROTATION_SNAP_ANGLES):
        self.tolerance = tolerance
        self.rotation_tolerance = rotation_tolerance
        self.angles = tuple(angles)

    def reference_lines(self, scene: Scene, exclude: Iterable[str] = ()):
        """Candidate snap lines: canvas first, then layers bottom to top

        Returns:
            (xs, ys): lists of (position, source) pairs
        """
        exclude = set(exclude)
        xs = [(0.0, CANVAS), (scene.width / 2.0, CANVAS), (float(scene.width), CANVAS)]
        ys = [(0.0, CANVAS), (scene.height / 2.0, CANVAS), (float(scene.height), CANVAS)]
        for layer in scene.layers:
            if layer.id in exclude or not layer.visible:
                continue
            box = bounding_box(layer.transform, layer.width, layer.height)
            xs.extend([(box.left, layer.id), (layer.transform.x, layer.id), (box.right, layer.id)])
            ys.extend([(box.top, layer.id), (layer.transform.y, layer.id), (box.bottom, layer.id)])
        return xs, ys

    def snap_bounds(self, bounds: Bounds, scene: Scene, exclude: Iterable[str] = (),
                    center: Optional[Tuple[float, float]] = None) -> SnapResult:
        """Snap correction for a moving box

        Args:
            bounds: Box of the moving selection at the raw pointer position
            scene: Scene providing reference lines
            exclude: IDs of the moving layers (never snap to themselves)
            center: Centre line to test instead of the box midpoint

        Returns:
            SnapResult with the offsets to add on each axis
        """
        xs, ys = self.reference_lines(scene, exclude)
        cx, cy = center if center is not None else (bounds.center_x, bounds.center_y)
        x_guide, dx = self._best('x', ((bounds.left, EDGE_MIN), (cx, EDGE_CENTER),
                                       (bounds.right, EDGE_MAX)), xs)
        y_guide, dy = self._best('y', ((bounds.top, EDGE_MIN), (cy, EDGE_CENTER),
                                       (bounds.bottom, EDGE_MAX)), ys)
        return SnapResult(dx, dy, x_guide, y_guide)

    def _best(self, axis: str, moving, references: List[Tuple[float, str]]):
        best = None
        best_dist = None
        for ref, source in references:
            for value, edge in moving:
                dist = abs(ref - value)
                if dist > self.tolerance:
                    continue
                if best_dist is None or dist < best_dist:
                    best_dist = dist
                    best = (SnapGuide(axis, ref, source, edge), ref - value)
        if best is None:
            return None, 0.0
        return best

    def snap_rotation(self, angle: float) -> Tuple[float, bool]:
        """Snap an angle to the nearest snap angle within tolerance

        Returns:
            (angle, snapped): angle normalised to [0, 360)
        """
        angle = normalize_angle(angle)
        for target in self.angles:
            if abs(shortest_angle_delta(angle, target)) <= self.rotation_tolerance:
                return normalize_angle(target), True
        return angle, False
