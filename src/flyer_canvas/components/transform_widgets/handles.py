"""Transform handle system - ABC-based handle architecture.

Each handle type is a class that knows:
- Where it sits on a HandleFrame (the box drawn around the selection)
- How to test if a pointer position hits it
- How a drag from a start position changes the frame

Handles carry no drawing code; the host UI draws them from the geometry
the interaction engine reports. All coordinates are canvas pixels.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Optional, Tuple
import math

from flyer_canvas.utils.transform_math import rotate_point, angle_of


@dataclass(frozen=True)
class HandleFrame:
    """Box the handles are laid out on.

    For a single selected layer this is the layer's own rotated box; for a
    multi-selection it is the axis-aligned box around all selected layers.
    """
    center_x: float
    center_y: float
    half_w: float
    half_h: float
    rotation: float = 0.0

    def to_local(self, x: float, y: float) -> Tuple[float, float]:
        """Canvas point -> frame-local offset from centre (unrotated)"""
        lx, ly = rotate_point(x, y, self.center_x, self.center_y, -self.rotation)
        return lx - self.center_x, ly - self.center_y

    def to_canvas(self, local_x: float, local_y: float) -> Tuple[float, float]:
        """Frame-local offset -> canvas point"""
        return rotate_point(self.center_x + local_x, self.center_y + local_y,
                            self.center_x, self.center_y, self.rotation)

    def point_at(self, norm_x: float, norm_y: float) -> Tuple[float, float]:
        """Canvas point at a normalised frame position (-1..1 on each axis)"""
        return self.to_canvas(norm_x * self.half_w, norm_y * self.half_h)

    def corners(self):
        """Canvas corners: tl, tr, br, bl"""
        return [self.point_at(-1, -1), self.point_at(1, -1),
                self.point_at(1, 1), self.point_at(-1, 1)]


def _within(x, y, px, py, radius):
    return math.hypot(x - px, y - py) <= radius


class Handle(ABC):
    """Abstract base class for transform handles."""

    # 'resize', 'rotate' or 'move'
    operation = None

    def __init__(self, name: str, handle_size: float = 8, hit_tolerance: float = 4):
        self.name = name
        self.handle_size = handle_size
        self.hit_tolerance = hit_tolerance

    @abstractmethod
    def position(self, frame: HandleFrame) -> Optional[Tuple[float, float]]:
        """Canvas position of the handle marker, or None if it has none"""

    def hit_test(self, x: float, y: float, frame: HandleFrame) -> bool:
        """Test if a pointer position hits this handle.

        Args:
            x, y: Pointer position in canvas pixels
            frame: Current handle frame

        Returns:
            bool: True if the pointer hits this handle
        """
        pos = self.position(frame)
        if pos is None:
            return False
        return _within(x, y, pos[0], pos[1], self.handle_size + self.hit_tolerance)

    @abstractmethod
    def drag(self, x: float, y: float, start_x: float, start_y: float,
             start_frame: HandleFrame, modifiers: FrozenSet[str]) -> HandleFrame:
        """Frame produced by dragging this handle.

        Args:
            x, y: Current pointer position
            start_x, start_y: Pointer position at gesture start
            start_frame: Frame at gesture start
            modifiers: Subset of {'shift', 'alt', 'ctrl'}

        Returns:
            HandleFrame: Updated frame
        """


class CornerHandle(Handle):
    """Corner handle for diagonal scaling.

    Scales uniformly from the centre by default. Alt anchors the opposite
    corner; Shift frees the aspect ratio.
    """
    operation = 'resize'

    NORMALS = {
        'tl': (-1, -1),
        'tr': (1, -1),
        'bl': (-1, 1),
        'br': (1, 1),
    }

    def __init__(self, corner_type, handle_size=8, hit_tolerance=4):
        """
        Args:
            corner_type: 'tl', 'tr', 'bl', 'br'
            handle_size: Visual size of handle in pixels
            hit_tolerance: Extra pixels for hit detection
        """
        super().__init__(corner_type, handle_size, hit_tolerance)
        self.norm_x, self.norm_y = self.NORMALS[corner_type]

    def position(self, frame):
        return frame.point_at(self.norm_x, self.norm_y)

    def drag(self, x, y, start_x, start_y, start_frame, modifiers):
        mx, my = start_frame.to_local(x, y)
        smx, smy = start_frame.to_local(start_x, start_y)

        if 'alt' in modifiers:
            # Anchor the opposite corner
            ax = -self.norm_x * start_frame.half_w
            ay = -self.norm_y * start_frame.half_h
        else:
            ax, ay = 0.0, 0.0

        if 'shift' in modifiers:
            start_dx, start_dy = smx - ax, smy - ay
            if start_dx == 0 or start_dy == 0:
                return start_frame
            fx = abs((mx - ax) / start_dx)
            fy = abs((my - ay) / start_dy)
        else:
            start_dist = math.hypot(smx - ax, smy - ay)
            if start_dist == 0:
                return start_frame
            fx = fy = math.hypot(mx - ax, my - ay) / start_dist

        # Keep the anchor fixed: centre' = anchor + (centre - anchor) * f
        local_cx = ax + (0.0 - ax) * fx
        local_cy = ay + (0.0 - ay) * fy
        cx, cy = start_frame.to_canvas(local_cx, local_cy)
        return replace(start_frame, center_x=cx, center_y=cy,
                       half_w=start_frame.half_w * fx, half_h=start_frame.half_h * fy)


class EdgeHandle(Handle):
    """Edge handle for single-axis scaling."""
    operation = 'resize'

    NORMALS = {
        't': (0, -1),
        'r': (1, 0),
        'b': (0, 1),
        'l': (-1, 0),
    }

    def __init__(self, edge_type, handle_size=8, hit_tolerance=4):
        """
        Args:
            edge_type: 't', 'r', 'b', 'l'
            handle_size: Visual size of handle in pixels
            hit_tolerance: Extra pixels for hit detection
        """
        super().__init__(edge_type, handle_size, hit_tolerance)
        self.norm_x, self.norm_y = self.NORMALS[edge_type]

    def position(self, frame):
        return frame.point_at(self.norm_x, self.norm_y)

    def drag(self, x, y, start_x, start_y, start_frame, modifiers):
        mx, my = start_frame.to_local(x, y)
        smx, smy = start_frame.to_local(start_x, start_y)
        horizontal = self.edge_type_is_horizontal()

        mouse = mx if horizontal else my
        start_mouse = smx if horizontal else smy
        half = start_frame.half_w if horizontal else start_frame.half_h
        normal = self.norm_x if horizontal else self.norm_y

        if 'alt' in modifiers:
            # Anchor opposite edge; centre is midpoint between anchor and pointer
            anchor = -normal * half
            new_center = (anchor + mouse) / 2.0
            new_half = abs(mouse - new_center)
        else:
            # Scale from centre symmetrically
            if start_mouse == 0:
                return start_frame
            new_center = 0.0
            new_half = half * abs(mouse) / abs(start_mouse)

        if horizontal:
            cx, cy = start_frame.to_canvas(new_center, 0.0)
            return replace(start_frame, center_x=cx, center_y=cy, half_w=new_half)
        cx, cy = start_frame.to_canvas(0.0, new_center)
        return replace(start_frame, center_x=cx, center_y=cy, half_h=new_half)

    def edge_type_is_horizontal(self):
        """Left/right edges scale width, top/bottom scale height"""
        return self.name in ('l', 'r')


class RotationHandle(Handle):
    """Rotation handle (dot above the top edge)."""
    operation = 'rotate'

    # Shift snaps rotation to this increment
    STEP = 15.0

    def __init__(self, offset=30, handle_size=8, hit_tolerance=4):
        """
        Args:
            offset: Distance above top edge in pixels
            handle_size: Visual size of handle in pixels
            hit_tolerance: Extra pixels for hit detection
        """
        super().__init__('rotate', handle_size, hit_tolerance)
        self.offset = offset

    def position(self, frame):
        return frame.to_canvas(0.0, -frame.half_h - self.offset)

    def drag(self, x, y, start_x, start_y, start_frame, modifiers):
        """Rotate around centre by the angle swept by the pointer."""
        cx, cy = start_frame.center_x, start_frame.center_y
        delta = angle_of(cx, cy, x, y) - angle_of(cx, cy, start_x, start_y)
        new_rot = start_frame.rotation + delta
        if 'shift' in modifiers:
            new_rot = round(new_rot / self.STEP) * self.STEP
        return replace(start_frame, rotation=new_rot)


class BodyHandle(Handle):
    """Whole frame area - translation."""
    operation = 'move'

    def __init__(self):
        super().__init__('body', 0, 0)

    def position(self, frame):
        return None

    def hit_test(self, x, y, frame):
        """Test if pointer is inside the rotated frame."""
        lx, ly = frame.to_local(x, y)
        return abs(lx) <= frame.half_w and abs(ly) <= frame.half_h

    def drag(self, x, y, start_x, start_y, start_frame, modifiers):
        return replace(start_frame,
                       center_x=start_frame.center_x + (x - start_x),
                       center_y=start_frame.center_y + (y - start_y))


class HandleSet:
    """Full bounding-box handle set: corners, edges, rotation and body."""

    # Check order: rotation -> corners -> edges -> body
    CHECK_ORDER = ('rotate', 'tl', 'tr', 'bl', 'br', 't', 'r', 'b', 'l', 'body')

    def __init__(self, handle_size=8, hit_tolerance=4, rotation_offset=30):
        self.handles: Dict[str, Handle] = {
            # Corners (diagonal scaling)
            'tl': CornerHandle('tl', handle_size, hit_tolerance),
            'tr': CornerHandle('tr', handle_size, hit_tolerance),
            'bl': CornerHandle('bl', handle_size, hit_tolerance),
            'br': CornerHandle('br', handle_size, hit_tolerance),

            # Edges (single-axis scaling)
            't': EdgeHandle('t', handle_size, hit_tolerance),
            'r': EdgeHandle('r', handle_size, hit_tolerance),
            'b': EdgeHandle('b', handle_size, hit_tolerance),
            'l': EdgeHandle('l', handle_size, hit_tolerance),

            'rotate': RotationHandle(rotation_offset, handle_size, hit_tolerance),
            'body': BodyHandle(),
        }

    def get_handle_at_pos(self, x, y, frame, include_body=True) -> Optional[Handle]:
        """Find which handle (if any) is at the pointer position."""
        for name in self.CHECK_ORDER:
            if name == 'body' and not include_body:
                continue
            handle = self.handles[name]
            if handle.hit_test(x, y, frame):
                return handle
        return None

    def marker_positions(self, frame) -> Dict[str, Tuple[float, float]]:
        """Canvas positions of every drawable handle (for the host UI)"""
        positions = {}
        for name, handle in self.handles.items():
            pos = handle.position(frame)
            if pos is not None:
                positions[name] = pos
        return positions
