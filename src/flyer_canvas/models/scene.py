"""
Flyer Canvas - Scene Data Model

THE MODEL for one canvas. Owns canvas properties, the ordered layer list
(index 0 = bottom) and the selection.

The Scene is an immutable value:
- Every operation returns a new Scene; the original is never touched, so an
  export can hold a snapshot while editing continues
- An operation that references a missing layer raises NotFoundError before
  building anything, so there is no partial mutation
- Selection is reconciled on every operation - IDs of removed layers are
  pruned, never left dangling

The editing session does not call these operations directly. They are
applied by Commands executed through the HistoryManager (services/), which
keeps undo/redo in sync.

Usage:
    scene = Scene(width=1080, height=1350)
    scene = scene.add_layer(Layer(ImageContent('asset://flyer-bg')))
    scene = scene.set_transform(layer_id, Transform(x=540, y=675))
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from flyer_canvas.constants import (
    DEFAULT_CANVAS_WIDTH, DEFAULT_CANVAS_HEIGHT, DEFAULT_BACKGROUND,
)
from flyer_canvas.errors import NotFoundError, InvalidGeometryError
from flyer_canvas.models.layer import Layer
from flyer_canvas.models.transform import Transform

logger = logging.getLogger('Scene')


@dataclass(frozen=True)
class Scene:
    """Canvas state: size, background, ordered layers and selection

    Properties:
        width, height: Canvas size in pixels
        background: RGBA tuple
        layers: Tuple of Layer, bottom to top
        selection: Frozen set of selected layer IDs
        duration: Timeline length in seconds for animated scenes, or None
    """
    width: int = DEFAULT_CANVAS_WIDTH
    height: int = DEFAULT_CANVAS_HEIGHT
    background: Tuple[int, int, int, int] = DEFAULT_BACKGROUND
    layers: Tuple[Layer, ...] = ()
    selection: FrozenSet[str] = field(default_factory=frozenset)
    duration: Optional[float] = None

    def __post_init__(self):
        if int(self.width) <= 0 or int(self.height) <= 0:
            raise InvalidGeometryError(f"Canvas must be positive, got {self.width}x{self.height}")
        object.__setattr__(self, 'width', int(self.width))
        object.__setattr__(self, 'height', int(self.height))
        object.__setattr__(self, 'background', tuple(int(c) for c in self.background))
        object.__setattr__(self, 'layers', tuple(self.layers))

        ids = [layer.id for layer in self.layers]
        if len(ids) != len(set(ids)):
            raise ValueError("A layer may appear only once in a scene")

        # Prune stale selection IDs
        known = set(ids)
        object.__setattr__(self, 'selection', frozenset(i for i in self.selection if i in known))

    # ========================================
    # Query API
    # ========================================

    def __len__(self) -> int:
        return len(self.layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self.layers)

    @property
    def layer_count(self) -> int:
        return len(self.layers)

    @property
    def layer_ids(self) -> List[str]:
        return [layer.id for layer in self.layers]

    def has_layer(self, layer_id: str) -> bool:
        return any(layer.id == layer_id for layer in self.layers)

    def index_of(self, layer_id: str) -> int:
        """Z-index of a layer

        Raises:
            NotFoundError: If the layer is not in the scene
        """
        for index, layer in enumerate(self.layers):
            if layer.id == layer_id:
                return index
        raise NotFoundError(layer_id)

    def get_layer(self, layer_id: str) -> Layer:
        return self.layers[self.index_of(layer_id)]

    def selected_layers(self) -> List[Layer]:
        """Selected layers in z-order (bottom first)"""
        return [layer for layer in self.layers if layer.id in self.selection]

    def transforms(self) -> Dict[str, Transform]:
        return {layer.id: layer.transform for layer in self.layers}

    @property
    def is_animated(self) -> bool:
        return any(layer.is_animated for layer in self.layers)

    # ========================================
    # Operations (return a new Scene)
    # ========================================

    def add_layer(self, layer: Layer, index: Optional[int] = None) -> 'Scene':
        """Insert a layer (on top by default)

        Args:
            layer: Layer to insert; its ID must not already be present
            index: Target z-index, clamped into [0, layer_count]
        """
        if self.has_layer(layer.id):
            raise ValueError(f"Layer {layer.id} is already in the scene")
        layers = list(self.layers)
        if index is None:
            index = len(layers)
        index = max(0, min(len(layers), index))
        layers.insert(index, layer)
        return replace(self, layers=tuple(layers))

    def remove_layer(self, layer_id: str) -> 'Scene':
        index = self.index_of(layer_id)
        layers = self.layers[:index] + self.layers[index + 1:]
        return replace(self, layers=layers)

    def clamp_index(self, index: int) -> int:
        """Clamp a z-index into [0, layer_count - 1]"""
        return max(0, min(len(self.layers) - 1, index))

    def reorder(self, layer_id: str, new_index: int) -> 'Scene':
        """Move a layer to a new z-index (clamped into range)"""
        old_index = self.index_of(layer_id)
        new_index = self.clamp_index(new_index)
        if new_index == old_index:
            return self
        layers = list(self.layers)
        layer = layers.pop(old_index)
        layers.insert(new_index, layer)
        return replace(self, layers=tuple(layers))

    def replace_layer(self, layer: Layer) -> 'Scene':
        """Swap in a new version of an existing layer (matched by ID)"""
        index = self.index_of(layer.id)
        layers = self.layers[:index] + (layer,) + self.layers[index + 1:]
        return replace(self, layers=layers)

    def set_transform(self, layer_id: str, transform: Transform) -> 'Scene':
        return self.replace_layer(self.get_layer(layer_id).with_transform(transform))

    def set_transforms(self, transforms: Dict[str, Transform]) -> 'Scene':
        """Set several transforms at once; all IDs are validated first"""
        for layer_id in transforms:
            self.index_of(layer_id)
        layers = tuple(
            layer.with_transform(transforms[layer.id]) if layer.id in transforms else layer
            for layer in self.layers
        )
        return replace(self, layers=layers)

    def set_visibility(self, layer_id: str, visible: bool) -> 'Scene':
        return self.replace_layer(self.get_layer(layer_id).with_visible(visible))

    def set_opacity(self, layer_id: str, opacity: float) -> 'Scene':
        return self.replace_layer(self.get_layer(layer_id).with_opacity(opacity))

    def set_keyframes(self, layer_id: str, keyframes: Iterable) -> 'Scene':
        return self.replace_layer(self.get_layer(layer_id).with_keyframes(keyframes))

    def set_window(self, layer_id: str, start: float, duration: Optional[float]) -> 'Scene':
        return self.replace_layer(self.get_layer(layer_id).with_window(start, duration))

    def set_effects(self, layer_id: str, effects) -> 'Scene':
        return self.replace_layer(self.get_layer(layer_id).with_effects(effects))

    def set_selection(self, ids: Iterable[str]) -> 'Scene':
        """Replace the selection

        Raises:
            NotFoundError: If any ID is not a layer of this scene
        """
        ids = frozenset(ids)
        for layer_id in ids:
            if not self.has_layer(layer_id):
                raise NotFoundError(layer_id)
        return replace(self, selection=ids)

    def set_canvas(self, width: int, height: int, background=None) -> 'Scene':
        if background is None:
            background = self.background
        return replace(self, width=width, height=height, background=background)

    def with_duration(self, duration: Optional[float]) -> 'Scene':
        if duration is not None and not duration > 0:
            raise InvalidGeometryError(f"Duration must be positive, got {duration}")
        return replace(self, duration=duration)

    def without_selection(self) -> 'Scene':
        """Same scene with an empty selection (for snapshots and comparisons)"""
        return replace(self, selection=frozenset())

    # ========================================
    # Comparison
    # ========================================

    def same_content(self, other: 'Scene') -> bool:
        """Observational equality ignoring selection

        Compares canvas size, background, duration, layer set, order,
        transforms, visibility, keyframes, time windows and effects.
        """
        return self.without_selection() == other.without_selection()
