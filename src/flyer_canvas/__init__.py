"""
Flyer Canvas - layered canvas composition and export engine

Scene model with undo/redo, pointer-driven transform editing with snapping,
a deterministic renderer and a cancellable frame export pipeline.
"""

__version__ = '0.1.0'
