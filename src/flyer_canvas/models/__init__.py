"""
Flyer Canvas - Data Models

This module contains the immutable data model for one canvas.
This is the MODEL in MVC architecture.

Public API: import Scene, Layer, Keyframe, Transform and the content kinds
from flyer_canvas.models.
"""

from .transform import Vec2, Transform, IDENTITY, normalize_angle, clamp_scale
from .content import ContentKind, ImageContent, TextContent, StickerContent, BlurContent, CONTENT_TYPES
from .layer import Layer, Keyframe, Effects, NO_EFFECTS, new_layer_id
from .scene import Scene

__all__ = [
    'Vec2', 'Transform', 'IDENTITY', 'normalize_angle', 'clamp_scale',
    'ContentKind', 'ImageContent', 'TextContent', 'StickerContent', 'BlurContent', 'CONTENT_TYPES',
    'Layer', 'Keyframe', 'Effects', 'NO_EFFECTS', 'new_layer_id',
    'Scene',
]
