"""Layer content: a closed, tagged set of content kinds.

Each kind carries only what the renderer needs. Asset references are opaque
strings resolved by the host's asset storage; the engine never fetches them.
The renderer switches on `kind` rather than calling into the content.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Tuple, Union

from flyer_canvas.constants import (
    DEFAULT_CONTENT_WIDTH, DEFAULT_CONTENT_HEIGHT,
    FIT_CONTAIN, FIT_MODES,
    DEFAULT_TEXT_COLOR, DEFAULT_FONT_SIZE, TEXT_ALIGNMENTS,
    BLUR_SHAPES, BLUR_SHAPE_RECT, DEFAULT_BLUR_INTENSITY, MIN_BLUR_INTENSITY, MAX_BLUR_INTENSITY,
)
from flyer_canvas.errors import InvalidGeometryError


class ContentKind(Enum):
    IMAGE = 'image'
    TEXT = 'text'
    STICKER = 'sticker'
    BLUR = 'blur'


def _check_box(width, height):
    if not (width > 0 and height > 0):
        raise InvalidGeometryError(f"Content box must be positive, got {width}x{height}")


@dataclass(frozen=True)
class ImageContent:
    """Raster media (photo, video still) fitted into a width x height box.

    Args:
        asset_ref: Opaque asset identifier or URL
        width, height: Content box in unscaled pixels
        fit_mode: 'contain', 'cover' or 'fill' - how the media fills the box
    """
    kind: ClassVar[ContentKind] = ContentKind.IMAGE

    asset_ref: str
    width: float = DEFAULT_CONTENT_WIDTH
    height: float = DEFAULT_CONTENT_HEIGHT
    fit_mode: str = FIT_CONTAIN

    def __post_init__(self):
        _check_box(self.width, self.height)
        if self.fit_mode not in FIT_MODES:
            raise ValueError(f"Unknown fit mode: {self.fit_mode}")


@dataclass(frozen=True)
class TextContent:
    """Text overlay drawn inside a width x height box."""
    kind: ClassVar[ContentKind] = ContentKind.TEXT

    text: str
    width: float = DEFAULT_CONTENT_WIDTH
    height: float = DEFAULT_CONTENT_HEIGHT
    font_size: int = DEFAULT_FONT_SIZE
    color: Tuple[int, int, int, int] = DEFAULT_TEXT_COLOR
    align: str = 'center'

    def __post_init__(self):
        _check_box(self.width, self.height)
        if self.align not in TEXT_ALIGNMENTS:
            raise ValueError(f"Unknown text alignment: {self.align}")
        object.__setattr__(self, 'color', tuple(self.color))


@dataclass(frozen=True)
class StickerContent:
    """Pre-cut graphic with its own alpha, stretched to the box."""
    kind: ClassVar[ContentKind] = ContentKind.STICKER

    asset_ref: str
    width: float = DEFAULT_CONTENT_WIDTH
    height: float = DEFAULT_CONTENT_HEIGHT

    def __post_init__(self):
        _check_box(self.width, self.height)


@dataclass(frozen=True)
class BlurContent:
    """Blur overlay: blurs whatever lies beneath the box on the canvas.

    Draws nothing of its own. intensity is a Gaussian radius in canvas
    pixels, clamped to [MIN_BLUR_INTENSITY, MAX_BLUR_INTENSITY]; a circle
    is inscribed in the box with a diameter of its shorter side.
    """
    kind: ClassVar[ContentKind] = ContentKind.BLUR

    width: float = DEFAULT_CONTENT_WIDTH
    height: float = DEFAULT_CONTENT_HEIGHT
    intensity: float = DEFAULT_BLUR_INTENSITY
    shape: str = BLUR_SHAPE_RECT

    def __post_init__(self):
        _check_box(self.width, self.height)
        if self.shape not in BLUR_SHAPES:
            raise ValueError(f"Unknown blur shape: {self.shape}")
        if not math.isfinite(self.intensity):
            raise InvalidGeometryError(f"Blur intensity must be finite, got {self.intensity}")
        intensity = min(MAX_BLUR_INTENSITY, max(MIN_BLUR_INTENSITY, self.intensity))
        object.__setattr__(self, 'intensity', float(intensity))


Content = Union[ImageContent, TextContent, StickerContent, BlurContent]

CONTENT_TYPES = {
    ContentKind.IMAGE: ImageContent,
    ContentKind.TEXT: TextContent,
    ContentKind.STICKER: StickerContent,
    ContentKind.BLUR: BlurContent,
}
