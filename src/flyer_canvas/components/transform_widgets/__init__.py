"""
Flyer Canvas - Transform Widget Components

This package contains the transform handle architecture:
- handles.py: ABC-based handle classes (CornerHandle, EdgeHandle, etc.) and the HandleSet
- drag_context.py: Unified drag state management
"""

from .handles import (
    HandleFrame, Handle, CornerHandle, EdgeHandle, RotationHandle, BodyHandle, HandleSet
)
from .drag_context import DragContext

__all__ = [
    'HandleFrame', 'Handle', 'CornerHandle', 'EdgeHandle', 'RotationHandle',
    'BodyHandle', 'HandleSet', 'DragContext',
]
