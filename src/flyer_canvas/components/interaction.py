"""Interaction engine - turns pointer gestures into scene commands.

An explicit state machine driven by discrete events from the host UI:

    IDLE --pointer_down--> DRAGGING | RESIZING | ROTATING | MARQUEE_SELECTING
    active --pointer_move--> same state, preview scene (nothing recorded)
    active --pointer_up--> IDLE, exactly one command for the whole gesture
    active --cancel--> IDLE, preview discarded

Gesture state is cached at pointer-down (start transforms, start frame) and
every move is computed from that cache, never incrementally, so pointer
jitter cannot compound. The engine works in canvas pixels; the host converts
widget coordinates before calling in.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

from flyer_canvas.config import EngineConfig
from flyer_canvas.constants import MARQUEE_MIN_SIZE
from flyer_canvas.errors import CanvasError, Status
from flyer_canvas.models.scene import Scene
from flyer_canvas.models.transform import Transform
from flyer_canvas.services.commands import BatchTransform, SetTransform
from flyer_canvas.services.history_manager import HistoryManager
from flyer_canvas.utils.transform_math import (
    Bounds, bounding_box, union_bounds, point_in_rect, rotate_point
)
from .snapping import EDGE_CENTER, SnapEngine, SnapGuide
from .transform_widgets import DragContext, HandleFrame, HandleSet


class GestureState(Enum):
    IDLE = 'idle'
    DRAGGING = 'dragging'
    RESIZING = 'resizing'
    ROTATING = 'rotating'
    MARQUEE_SELECTING = 'marquee_selecting'


# Arrow keys -> unit direction (y-down)
NUDGE_DIRECTIONS = {
    'left': (-1, 0),
    'right': (1, 0),
    'up': (0, -1),
    'down': (0, 1),
}

# Undo labels per gesture
_LABELS = {
    'translate': ("Move layer", "Move layers"),
    'resize': ("Resize layer", "Resize layers"),
    'rotate': ("Rotate layer", "Rotate layers"),
    'nudge': ("Nudge layer", "Nudge layers"),
}


@dataclass(frozen=True)
class PointerEvent:
    """Pointer input from the host UI

    Args:
        x, y: Canvas pixels
        button: 'left', 'right' or 'middle'; only left starts gestures
        modifiers: Any of 'shift', 'alt', 'ctrl'
    """
    x: float
    y: float
    button: str = 'left'
    modifiers: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, 'modifiers', frozenset(self.modifiers))

    @property
    def shift(self) -> bool:
        return 'shift' in self.modifiers

    @property
    def alt(self) -> bool:
        return 'alt' in self.modifiers

    @property
    def ctrl(self) -> bool:
        return 'ctrl' in self.modifiers


@dataclass(frozen=True)
class HandleGeometry:
    """What the host UI needs to draw the selection overlay"""
    frame: Optional[HandleFrame] = None
    corners: Tuple[Tuple[float, float], ...] = ()
    handles: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    guides: Tuple[SnapGuide, ...] = ()
    marquee: Optional[Bounds] = None


class InteractionEngine:
    """Single-threaded gesture state machine over a HistoryManager

    Args:
        history: History manager owning the committed scene
        config: Tolerances, handle sizes and nudge amounts
        snap_engine: Custom snap engine (built from config otherwise)
    """

    def __init__(self, history: HistoryManager, config: Optional[EngineConfig] = None,
                 snap_engine: Optional[SnapEngine] = None):
        self.history = history
        self.config = config or EngineConfig()
        self.snap_engine = snap_engine or SnapEngine(
            self.config.snap_tolerance, self.config.rotation_snap_tolerance)
        self.handle_set = HandleSet(self.config.handle_size, self.config.hit_tolerance,
                                    self.config.rotation_handle_offset)
        self.logger = logging.getLogger('InteractionEngine')

        self._state = GestureState.IDLE
        self._drag: Optional[DragContext] = None
        self._preview: Optional[Scene] = None
        self._preview_selection: Optional[FrozenSet[str]] = None
        self._marquee: Optional[Bounds] = None
        self._guides: Tuple[SnapGuide, ...] = ()
        self._preview_listeners: List[Callable[[Scene], None]] = []

    # ========================================
    # State
    # ========================================

    @property
    def state(self) -> GestureState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is not GestureState.IDLE

    @property
    def scene(self) -> Scene:
        """Scene to display: the live preview during a gesture, else the committed scene"""
        return self._preview if self._preview is not None else self.history.scene

    @property
    def selection(self) -> FrozenSet[str]:
        if self._preview_selection is not None:
            return self._preview_selection
        return self.history.scene.selection

    @property
    def guides(self) -> Tuple[SnapGuide, ...]:
        return self._guides

    @property
    def marquee(self) -> Optional[Bounds]:
        return self._marquee

    # ========================================
    # Hit testing and geometry
    # ========================================

    def hit_test(self, x: float, y: float, scene: Optional[Scene] = None) -> Optional[str]:
        """ID of the topmost visible layer under a canvas point, or None"""
        scene = scene or self.history.scene
        for layer in reversed(scene.layers):
            if layer.visible and point_in_rect(layer.transform, layer.width, layer.height, x, y):
                return layer.id
        return None

    def selection_frame(self, scene: Optional[Scene] = None,
                        ids: Optional[FrozenSet[str]] = None) -> Optional[HandleFrame]:
        """Handle frame around the selection

        A single layer gets its own rotated box; several layers get the
        axis-aligned box around all of them.
        """
        scene = scene or self.scene
        ids = scene.selection if ids is None else ids
        layers = [layer for layer in scene.layers if layer.id in ids]
        if not layers:
            return None
        if len(layers) == 1:
            t = layers[0].transform
            return HandleFrame(t.x, t.y, layers[0].width * t.scale_x / 2.0,
                               layers[0].height * t.scale_y / 2.0, t.rotation)
        box = union_bounds(bounding_box(l.transform, l.width, l.height) for l in layers)
        return HandleFrame(box.center_x, box.center_y, box.width / 2.0, box.height / 2.0, 0.0)

    def handle_geometry(self) -> HandleGeometry:
        """Current selection overlay for the host UI to draw"""
        scene = self.scene
        ids = self.selection if self._state is GestureState.MARQUEE_SELECTING else None
        frame = self.selection_frame(scene, ids)
        if frame is None:
            return HandleGeometry(guides=self._guides, marquee=self._marquee)
        return HandleGeometry(
            frame=frame,
            corners=tuple(frame.corners()),
            handles=self.handle_set.marker_positions(frame),
            guides=self._guides,
            marquee=self._marquee,
        )

    # ========================================
    # Pointer events
    # ========================================

    def pointer_down(self, event: PointerEvent) -> GestureState:
        """Start a gesture; returns the state entered"""
        if self.is_active:
            self.logger.debug("pointer_down ignored during %s", self._state.value)
            return self._state
        if event.button != 'left':
            return self._state

        scene = self.history.scene

        # Handles of the current selection win over layers beneath them
        frame = self.selection_frame(scene)
        if frame is not None:
            handle = self.handle_set.get_handle_at_pos(event.x, event.y, frame, include_body=False)
            if handle is not None:
                state = GestureState.RESIZING if handle.operation == 'resize' else GestureState.ROTATING
                self._begin(state, handle.operation, event, scene, handle=handle, frame=frame)
                return self._state

        hit = self.hit_test(event.x, event.y, scene)

        if hit is None:
            # Empty canvas: plain click clears, shift keeps the selection for an additive marquee
            base = scene.selection if event.shift else frozenset()
            if not event.shift:
                self.history.set_selection(())
            self._drag = DragContext('marquee', event.x, event.y, event.modifiers,
                                     base_selection=base, additive=event.shift)
            self._marquee = Bounds.from_points(event.x, event.y, event.x, event.y)
            self._preview_selection = base
            self._state = GestureState.MARQUEE_SELECTING
            return self._state

        if event.shift:
            if hit in scene.selection:
                # Shift-click on a selected layer deselects it, no drag
                self.history.set_selection(scene.selection - {hit})
                return self._state
            self.history.set_selection(scene.selection | {hit})
        elif hit not in scene.selection:
            self.history.set_selection({hit})

        scene = self.history.scene
        self._begin(GestureState.DRAGGING, 'translate', event, scene,
                    frame=self.selection_frame(scene))
        return self._state

    def pointer_move(self, event: PointerEvent) -> Optional[Scene]:
        """Update the active gesture; returns the preview scene (None when idle)"""
        if not self.is_active:
            return None

        if self._state is GestureState.MARQUEE_SELECTING:
            self._update_marquee(event)
            self._notify_preview(self.history.scene)
            return self.history.scene

        try:
            transforms = self._gesture_transforms(event)
        except CanvasError as e:
            self.logger.warning("Ignoring pointer move: %s", e)
            return self.scene
        self._preview = self.history.scene.set_transforms(transforms)
        self._notify_preview(self._preview)
        return self._preview

    def pointer_up(self, event: PointerEvent) -> Status:
        """Finish the gesture, committing at most one command

        Returns:
            Status of the commit; NO_OP if the gesture changed nothing
        """
        if not self.is_active:
            return Status.NO_OP

        if self._state is GestureState.MARQUEE_SELECTING:
            self._update_marquee(event)
            ctx = self._drag
            marquee = self._marquee
            if marquee.width < MARQUEE_MIN_SIZE and marquee.height < MARQUEE_MIN_SIZE:
                selection = ctx.base_selection
            else:
                selection = self._preview_selection
            self._finish()
            return self.history.set_selection(selection)

        operation = self._drag.operation
        try:
            transforms = self._gesture_transforms(event)
        except CanvasError as e:
            self.logger.warning("Gesture %s aborted: %s", operation, e)
            self._finish()
            self._notify_preview(self.history.scene)
            return e.status
        self._finish()
        status = self._commit(transforms, operation)
        self._notify_preview(self.history.scene)
        return status

    def cancel(self) -> bool:
        """Abort the active gesture without committing (escape key)

        Returns:
            True if a gesture was cancelled
        """
        if not self.is_active:
            return False
        self.logger.debug("Gesture cancelled: %s", self._state.value)
        self._finish()
        self._notify_preview(self.history.scene)
        return True

    # ========================================
    # Keyboard and selection helpers
    # ========================================

    def nudge(self, direction: str, modifiers=()) -> Status:
        """Move the selection with an arrow key

        Alt nudges by the fine amount, Ctrl by the coarse amount.

        Raises:
            ValueError: Unknown direction
        """
        if direction not in NUDGE_DIRECTIONS:
            raise ValueError(f"Unknown nudge direction: {direction}")
        if self.is_active:
            return Status.NO_OP

        modifiers = frozenset(modifiers)
        if 'alt' in modifiers:
            amount = self.config.nudge_fine
        elif 'ctrl' in modifiers:
            amount = self.config.nudge_coarse
        else:
            amount = self.config.nudge_normal

        ux, uy = NUDGE_DIRECTIONS[direction]
        scene = self.history.scene
        transforms = {layer.id: layer.transform.moved_by(ux * amount, uy * amount)
                      for layer in scene.selected_layers()}
        if not transforms:
            return Status.NO_OP
        return self._commit(transforms, 'nudge')

    def select_all(self) -> Status:
        if self.is_active:
            return Status.NO_OP
        return self.history.set_selection(self.history.scene.layer_ids)

    def clear_selection(self) -> Status:
        if self.is_active:
            return Status.NO_OP
        return self.history.set_selection(())

    # ========================================
    # Preview listeners
    # ========================================

    def add_preview_listener(self, callback: Callable[[Scene], None]):
        """
        Add a listener called with the scene to display after every pointer event

        Args:
            callback: Function receiving the preview (or committed) scene
        """
        self._preview_listeners.append(callback)

    def remove_preview_listener(self, callback):
        if callback in self._preview_listeners:
            self._preview_listeners.remove(callback)

    def _notify_preview(self, scene: Scene):
        for callback in list(self._preview_listeners):
            callback(scene)

    # ========================================
    # Gesture internals
    # ========================================

    def _begin(self, state, operation, event, scene, handle=None, frame=None):
        start = {layer.id: layer.transform for layer in scene.selected_layers()}
        self._drag = DragContext(operation, event.x, event.y, event.modifiers,
                                 handle=handle, start_frame=frame,
                                 start_transforms=start, base_selection=scene.selection)
        self._state = state
        self.logger.debug("Gesture start: %s on %d layer(s)", operation, len(start))

    def _finish(self):
        self._state = GestureState.IDLE
        self._drag = None
        self._preview = None
        self._preview_selection = None
        self._marquee = None
        self._guides = ()

    def _snapping(self, event) -> bool:
        # Ctrl suspends snapping for the current move
        return self.config.snapping_enabled and not event.ctrl

    def _gesture_transforms(self, event) -> Dict[str, Transform]:
        if self._state is GestureState.DRAGGING:
            return self._drag_transforms(event)
        if self._state is GestureState.RESIZING:
            return self._resize_transforms(event)
        return self._rotate_transforms(event)

    def _drag_transforms(self, event) -> Dict[str, Transform]:
        ctx = self._drag
        dx = event.x - ctx.start_x
        dy = event.y - ctx.start_y
        self._guides = ()
        if dx == 0 and dy == 0:
            # A click without movement never snaps
            return dict(ctx.start_transforms)
        moved = {i: t.moved_by(dx, dy) for i, t in ctx.start_transforms.items()}
        if not moved or not self._snapping(event):
            return moved

        scene = self.history.scene
        boxes = [bounding_box(t, scene.get_layer(i).width, scene.get_layer(i).height)
                 for i, t in moved.items()]
        single = None if ctx.is_multi_selection else next(iter(moved.items()))
        center = (single[1].x, single[1].y) if single else None
        result = self.snap_engine.snap_bounds(union_bounds(boxes), scene,
                                              exclude=moved.keys(), center=center)
        self._guides = result.guides
        if not result.guides:
            return moved

        snapped = {i: t.moved_by(result.dx, result.dy) for i, t in moved.items()}
        if single:
            # Centre snaps land exactly on the guide
            layer_id, t = single[0], snapped[single[0]]
            x = result.x_guide.position if self._is_center(result.x_guide) else t.x
            y = result.y_guide.position if self._is_center(result.y_guide) else t.y
            snapped[layer_id] = t.with_position(x, y)
        return snapped

    @staticmethod
    def _is_center(guide: Optional[SnapGuide]) -> bool:
        return guide is not None and guide.edge == EDGE_CENTER

    def _resize_transforms(self, event) -> Dict[str, Transform]:
        ctx = self._drag
        start = ctx.start_frame
        new = ctx.handle.drag(event.x, event.y, ctx.start_x, ctx.start_y, start, event.modifiers)
        fx = new.half_w / start.half_w if start.half_w > 0 else 1.0
        fy = new.half_h / start.half_h if start.half_h > 0 else 1.0

        result = {}
        for layer_id, t in ctx.start_transforms.items():
            if ctx.is_multi_selection:
                # Scale each layer's offset from the group centre
                x = new.center_x + (t.x - start.center_x) * fx
                y = new.center_y + (t.y - start.center_y) * fy
            else:
                x, y = new.center_x, new.center_y
            result[layer_id] = Transform(x, y, t.scale_x * fx, t.scale_y * fy, t.rotation, t.opacity)
        return result

    def _rotate_transforms(self, event) -> Dict[str, Transform]:
        ctx = self._drag
        start = ctx.start_frame
        new = ctx.handle.drag(event.x, event.y, ctx.start_x, ctx.start_y, start, event.modifiers)
        target = new.rotation
        if self._snapping(event):
            target, _ = self.snap_engine.snap_rotation(target)

        if not ctx.is_multi_selection:
            return {i: t.with_rotation(target) for i, t in ctx.start_transforms.items()}

        # Ferris wheel: positions orbit the group centre, each layer turns by the same delta
        delta = target - start.rotation
        result = {}
        for layer_id, t in ctx.start_transforms.items():
            x, y = rotate_point(t.x, t.y, start.center_x, start.center_y, delta)
            result[layer_id] = Transform(x, y, t.scale_x, t.scale_y, t.rotation + delta, t.opacity)
        return result

    def _update_marquee(self, event):
        ctx = self._drag
        self._marquee = Bounds.from_points(ctx.start_x, ctx.start_y, event.x, event.y)
        scene = self.history.scene
        inside = {
            layer.id for layer in scene.layers
            if layer.visible and self._marquee.intersects(
                bounding_box(layer.transform, layer.width, layer.height))
        }
        self._preview_selection = frozenset(ctx.base_selection | inside)

    def _commit(self, transforms: Dict[str, Transform], operation: str) -> Status:
        """Record one command for the gesture, or nothing if unchanged"""
        scene = self.history.scene
        changed = {i: t for i, t in transforms.items()
                   if not t.is_close(scene.get_layer(i).transform)}
        if not changed:
            self.logger.debug("Gesture %s changed nothing, no command", operation)
            return Status.NO_OP

        single_label, multi_label = _LABELS[operation]
        if len(changed) == 1:
            layer_id, t = next(iter(changed.items()))
            command = SetTransform(layer_id, t, label=single_label)
        else:
            command = BatchTransform.of(changed, label=multi_label)
        return self.history.execute(command)
