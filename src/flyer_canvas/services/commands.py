"""
Flyer Canvas - Scene Commands

Every scene edit is a Command: an immutable, reversible description of one
atomic change. A command is built with only the NEW values; prepare(scene)
returns a bound copy that also records the OLD values, which is what the
HistoryManager stores. apply() and undo() are pure functions Scene -> Scene.

Invariant: bound.undo(bound.apply(scene)) is observationally equal to scene.

Usage:
    cmd = SetTransform(layer_id, Transform(x=100, y=80))
    bound = cmd.prepare(scene)          # raises NotFoundError if missing
    after = bound.apply(scene)
    assert bound.undo(after).same_content(scene)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

from flyer_canvas.models.layer import Effects, Layer
from flyer_canvas.models.scene import Scene
from flyer_canvas.models.transform import Transform


class Command(ABC):
    """Abstract base for reversible scene edits."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Short label for status bars and history lists"""

    def prepare(self, scene: Scene) -> 'Command':
        """Return a copy bound to scene, with the values undo needs

        Raises:
            NotFoundError: If the command references a missing layer
        """
        return self

    @abstractmethod
    def apply(self, scene: Scene) -> Scene:
        """Return the scene with this edit applied"""

    @abstractmethod
    def undo(self, scene: Scene) -> Scene:
        """Return the scene with this edit reverted"""

    def is_noop(self, scene: Scene) -> bool:
        """True if applying this (bound) command would not change scene"""
        return self.apply(scene).same_content(scene)


# ======================================================================
# Layer set and order
# ======================================================================

@dataclass(frozen=True)
class AddLayer(Command):
    layer: Layer
    index: Optional[int] = None

    @property
    def description(self):
        return f"Add {self.layer.name}"

    def prepare(self, scene):
        if self.index is None:
            return replace(self, index=len(scene))
        return replace(self, index=max(0, min(len(scene), self.index)))

    def apply(self, scene):
        return scene.add_layer(self.layer, self.index)

    def undo(self, scene):
        return scene.remove_layer(self.layer.id)

    def is_noop(self, scene):
        return False


@dataclass(frozen=True)
class RemoveLayer(Command):
    layer_id: str
    layer: Optional[Layer] = None
    index: Optional[int] = None

    @property
    def description(self):
        name = self.layer.name if self.layer else self.layer_id
        return f"Remove {name}"

    def prepare(self, scene):
        index = scene.index_of(self.layer_id)
        return replace(self, layer=scene.layers[index], index=index)

    def apply(self, scene):
        return scene.remove_layer(self.layer_id)

    def undo(self, scene):
        # Restore to the original z-index
        return scene.add_layer(self.layer, self.index)

    def is_noop(self, scene):
        return False


@dataclass(frozen=True)
class ReorderLayer(Command):
    layer_id: str
    new_index: int
    old_index: Optional[int] = None

    @property
    def description(self):
        return "Reorder layer"

    def prepare(self, scene):
        old_index = scene.index_of(self.layer_id)
        return replace(self, new_index=scene.clamp_index(self.new_index), old_index=old_index)

    def apply(self, scene):
        return scene.reorder(self.layer_id, self.new_index)

    def undo(self, scene):
        return scene.reorder(self.layer_id, self.old_index)

    def is_noop(self, scene):
        return self.new_index == self.old_index


# ======================================================================
# Transforms
# ======================================================================

@dataclass(frozen=True)
class SetTransform(Command):
    layer_id: str
    transform: Transform
    old: Optional[Transform] = None
    label: str = "Transform layer"

    @property
    def description(self):
        return self.label

    def prepare(self, scene):
        return replace(self, old=scene.get_layer(self.layer_id).transform)

    def apply(self, scene):
        return scene.set_transform(self.layer_id, self.transform)

    def undo(self, scene):
        return scene.set_transform(self.layer_id, self.old)

    def is_noop(self, scene):
        return self.transform.is_close(self.old)


@dataclass(frozen=True)
class BatchTransform(Command):
    """Transform change for several layers committed as one undo step

    changes: tuple of (layer_id, old, new); old is None until prepared.
    """
    changes: Tuple[Tuple[str, Optional[Transform], Transform], ...]
    label: str = "Transform layers"

    @classmethod
    def of(cls, transforms: Dict[str, Transform], label: str = "Transform layers") -> 'BatchTransform':
        return cls(tuple((layer_id, None, t) for layer_id, t in transforms.items()), label)

    @property
    def description(self):
        return self.label

    @property
    def layer_ids(self):
        return [layer_id for layer_id, _, _ in self.changes]

    def prepare(self, scene):
        bound = tuple(
            (layer_id, scene.get_layer(layer_id).transform, new)
            for layer_id, _, new in self.changes
        )
        return replace(self, changes=bound)

    def apply(self, scene):
        return scene.set_transforms({layer_id: new for layer_id, _, new in self.changes})

    def undo(self, scene):
        return scene.set_transforms({layer_id: old for layer_id, old, _ in self.changes})

    def is_noop(self, scene):
        return all(new.is_close(old) for _, old, new in self.changes)


# ======================================================================
# Layer properties
# ======================================================================

@dataclass(frozen=True)
class SetVisibility(Command):
    layer_id: str
    visible: bool
    old: Optional[bool] = None

    @property
    def description(self):
        return "Show layer" if self.visible else "Hide layer"

    def prepare(self, scene):
        return replace(self, old=scene.get_layer(self.layer_id).visible)

    def apply(self, scene):
        return scene.set_visibility(self.layer_id, self.visible)

    def undo(self, scene):
        return scene.set_visibility(self.layer_id, self.old)

    def is_noop(self, scene):
        return bool(self.visible) == self.old


@dataclass(frozen=True)
class SetOpacity(Command):
    layer_id: str
    opacity: float
    old: Optional[float] = None

    @property
    def description(self):
        return "Change opacity"

    def prepare(self, scene):
        return replace(self, old=scene.get_layer(self.layer_id).transform.opacity)

    def apply(self, scene):
        return scene.set_opacity(self.layer_id, self.opacity)

    def undo(self, scene):
        return scene.set_opacity(self.layer_id, self.old)


@dataclass(frozen=True)
class SetKeyframes(Command):
    layer_id: str
    keyframes: tuple
    old: Optional[tuple] = None

    @property
    def description(self):
        return "Edit animation"

    def prepare(self, scene):
        return replace(self, keyframes=tuple(self.keyframes),
                       old=scene.get_layer(self.layer_id).keyframes)

    def apply(self, scene):
        return scene.set_keyframes(self.layer_id, self.keyframes)

    def undo(self, scene):
        return scene.set_keyframes(self.layer_id, self.old)


@dataclass(frozen=True)
class SetLayerWindow(Command):
    """Set when a layer appears and for how long (None: until the end)"""
    layer_id: str
    start: float
    duration: Optional[float] = None
    old: Optional[tuple] = None  # (start, duration)

    @property
    def description(self):
        return "Change timing"

    def prepare(self, scene):
        layer = scene.get_layer(self.layer_id)
        return replace(self, old=(layer.start, layer.duration))

    def apply(self, scene):
        return scene.set_window(self.layer_id, self.start, self.duration)

    def undo(self, scene):
        start, duration = self.old
        return scene.set_window(self.layer_id, start, duration)


@dataclass(frozen=True)
class SetEffects(Command):
    layer_id: str
    effects: Effects
    old: Optional[Effects] = None

    @property
    def description(self):
        return "Adjust effects"

    def prepare(self, scene):
        return replace(self, old=scene.get_layer(self.layer_id).effects)

    def apply(self, scene):
        return scene.set_effects(self.layer_id, self.effects)

    def undo(self, scene):
        return scene.set_effects(self.layer_id, self.old)


@dataclass(frozen=True)
class RenameLayer(Command):
    layer_id: str
    name: str
    old: Optional[str] = None

    @property
    def description(self):
        return f"Rename to {self.name}"

    def prepare(self, scene):
        return replace(self, old=scene.get_layer(self.layer_id).name)

    def apply(self, scene):
        return scene.replace_layer(scene.get_layer(self.layer_id).with_name(self.name))

    def undo(self, scene):
        return scene.replace_layer(scene.get_layer(self.layer_id).with_name(self.old))


# ======================================================================
# Canvas
# ======================================================================

@dataclass(frozen=True)
class SetCanvas(Command):
    width: int
    height: int
    background: Optional[tuple] = None
    old: Optional[tuple] = None  # (width, height, background)

    @property
    def description(self):
        return "Canvas settings"

    def prepare(self, scene):
        background = tuple(self.background) if self.background is not None else scene.background
        return replace(self, background=background,
                       old=(scene.width, scene.height, scene.background))

    def apply(self, scene):
        return scene.set_canvas(self.width, self.height, self.background)

    def undo(self, scene):
        width, height, background = self.old
        return scene.set_canvas(width, height, background)


# ======================================================================
# Grouping
# ======================================================================

@dataclass(frozen=True)
class CompositeCommand(Command):
    """Several commands applied in order and undone in reverse as one step"""
    commands: Tuple[Command, ...]
    label: str = "Multiple changes"

    @property
    def description(self):
        return self.label

    def prepare(self, scene):
        bound = []
        for command in self.commands:
            prepared = command.prepare(scene)
            scene = prepared.apply(scene)
            bound.append(prepared)
        return replace(self, commands=tuple(bound))

    def apply(self, scene):
        for command in self.commands:
            scene = command.apply(scene)
        return scene

    def undo(self, scene):
        for command in reversed(self.commands):
            scene = command.undo(scene)
        return scene
