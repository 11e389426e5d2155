"""Interaction components: transform handles, snapping and the gesture state machine"""

from .interaction import GestureState, HandleGeometry, InteractionEngine, PointerEvent
from .snapping import SnapEngine, SnapGuide, SnapResult

__all__ = [
    'GestureState', 'HandleGeometry', 'InteractionEngine', 'PointerEvent',
    'SnapEngine', 'SnapGuide', 'SnapResult',
]
