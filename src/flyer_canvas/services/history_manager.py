"""
Undo/Redo History Manager for the canvas editing session

Owns the committed Scene and two command stacks (past, future). All scene
mutations of an editing session go through execute(); undo()/redo() replay
the stored commands. Granularity is one command per user action - a whole
drag gesture over five layers is a single BatchTransform, so one undo
reverts the gesture.

Errors from the model never escape: execute/undo/redo return a Status and
leave scene and stacks untouched on failure.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional

from flyer_canvas.constants import MAX_HISTORY_ENTRIES
from flyer_canvas.errors import CanvasError, Status
from flyer_canvas.models.scene import Scene
from flyer_canvas.services.commands import Command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """A bound command plus the selection around it"""
    command: Command
    selection_before: FrozenSet[str]
    selection_after: FrozenSet[str]

    @property
    def description(self) -> str:
        return self.command.description


class HistoryManager:
    """Manages undo/redo history with reversible commands"""

    def __init__(self, scene: Optional[Scene] = None, max_history: Optional[int] = MAX_HISTORY_ENTRIES):
        """
        Initialize the history manager

        Args:
            scene: Starting scene (a default Scene if omitted)
            max_history: Maximum number of undo steps to keep; None = unbounded
        """
        if max_history is not None and max_history < 1:
            raise ValueError("max_history must be at least 1 or None")
        self.max_history = max_history
        self._scene = scene if scene is not None else Scene()
        self._past = deque()
        self._future = []
        self._listeners = []  # Callbacks to notify on state changes

    # ========================================
    # State
    # ========================================

    @property
    def scene(self) -> Scene:
        """The committed scene"""
        return self._scene

    @property
    def past(self) -> List[HistoryEntry]:
        return list(self._past)

    @property
    def future(self) -> List[HistoryEntry]:
        """Redo stack, next redo first"""
        return list(reversed(self._future))

    def can_undo(self) -> bool:
        return bool(self._past)

    def can_redo(self) -> bool:
        return bool(self._future)

    # ========================================
    # Operations
    # ========================================

    def execute(self, command: Command) -> Status:
        """Apply a command, push it onto the undo stack and clear redo

        Returns:
            Status.OK, Status.NO_OP (nothing changed, nothing recorded), or
            the failure status of the rejected command
        """
        before = self._scene
        try:
            bound = command.prepare(before)
            if bound.is_noop(before):
                logger.debug("No-op command ignored: %s", bound.description)
                return Status.NO_OP
            after = bound.apply(before)
        except CanvasError as e:
            logger.warning("Rejected '%s': %s", command.description, e)
            return e.status

        self._scene = after
        self._past.append(HistoryEntry(bound, before.selection, after.selection))
        self._future.clear()

        # Trim history if it exceeds max_history
        if self.max_history is not None and len(self._past) > self.max_history:
            self._past.popleft()

        logger.debug("Executed: %s (undo depth: %d)", bound.description, len(self._past))
        self._notify_listeners()
        return Status.OK

    def undo(self) -> Status:
        """Revert the most recent command"""
        if not self._past:
            logger.debug("Cannot undo - at beginning of history")
            return Status.NOTHING_TO_UNDO

        entry = self._past.pop()
        scene = entry.command.undo(self._scene)
        self._scene = self._restore_selection(scene, entry.selection_before)
        self._future.append(entry)

        logger.debug("Undo: %s", entry.description)
        self._notify_listeners()
        return Status.OK

    def redo(self) -> Status:
        """Re-apply the most recently undone command"""
        if not self._future:
            logger.debug("Cannot redo - at end of history")
            return Status.NOTHING_TO_REDO

        entry = self._future.pop()
        scene = entry.command.apply(self._scene)
        self._scene = self._restore_selection(scene, entry.selection_after)
        self._past.append(entry)

        logger.debug("Redo: %s", entry.description)
        self._notify_listeners()
        return Status.OK

    def set_selection(self, ids: Iterable[str]) -> Status:
        """Change the selection without recording an undo step"""
        try:
            scene = self._scene.set_selection(ids)
        except CanvasError as e:
            logger.warning("Rejected selection: %s", e)
            return e.status
        if scene.selection == self._scene.selection:
            return Status.NO_OP
        self._scene = scene
        self._notify_listeners()
        return Status.OK

    def reset(self, scene: Scene):
        """Replace the scene (new document / load) and drop all history"""
        self._scene = scene
        self.clear()

    def clear(self):
        """Clear all history"""
        self._past.clear()
        self._future.clear()
        self._notify_listeners()
        logger.debug("History cleared")

    @staticmethod
    def _restore_selection(scene: Scene, selection: FrozenSet[str]) -> Scene:
        # Filter out IDs that no longer exist
        return scene.set_selection(i for i in selection if scene.has_layer(i))

    # ========================================
    # Listeners
    # ========================================

    def add_listener(self, callback: Callable[[bool, bool], None]):
        """
        Add a listener to be notified when history state changes

        Args:
            callback: Function to call when history changes (receives can_undo, can_redo)
        """
        self._listeners.append(callback)

    def remove_listener(self, callback):
        """Remove a listener"""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify_listeners(self):
        """Notify all listeners of history state change"""
        for callback in list(self._listeners):
            callback(self.can_undo(), self.can_redo())

    # ========================================
    # Descriptions
    # ========================================

    def get_current_description(self) -> str:
        """Get the description of the last applied command"""
        return self._past[-1].description if self._past else ""

    def get_undo_description(self) -> str:
        """Get the description of the command that undo would revert"""
        return self.get_current_description()

    def get_redo_description(self) -> str:
        """Get the description of the command that redo would re-apply"""
        return self._future[-1].description if self._future else ""
