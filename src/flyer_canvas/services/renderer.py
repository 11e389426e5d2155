"""Scene Renderer Service.

Rasterises a Scene (optionally at an animation time t) into a fixed-size
RGBA frame. Used for the live preview and, through the export pipeline, for
every exported frame.

Rendering is deterministic: the same scene and time always produce
byte-identical output. Nothing here reads the clock or random state;
placeholder colours derive from a digest of the asset reference.

Pipeline per visible layer active at t, bottom to top:
    1. Build the content raster (image/sticker via the asset resolver,
       text via Pillow) at the content box size, then apply its effects
    2. Resample it into canvas space with the inverse layer matrix
       (Pillow affine transform, restricted to the layer's bounding box)
    3. Alpha-composite it over the accumulated frame with numpy

Blur overlays draw nothing themselves: their warped box becomes a mask
through which a Gaussian-blurred copy of the frame so far shows.
"""

import math
import hashlib
import logging
import threading
from collections import OrderedDict
from typing import Callable, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageEnhance, ImageFilter, ImageFont

from flyer_canvas.constants import BLUR_SHAPE_CIRCLE, FIT_CONTAIN, FIT_COVER, FIT_FILL, RASTER_CACHE_SIZE
from flyer_canvas.errors import RenderFailure
from flyer_canvas.models.content import ContentKind
from flyer_canvas.models.layer import Effects, Layer
from flyer_canvas.models.scene import Scene
from flyer_canvas.models.transform import Transform
from flyer_canvas.services.animation import transform_at
from flyer_canvas.utils.transform_math import bounding_box, inverse_matrix

logger = logging.getLogger(__name__)

# asset_ref -> PIL image, or None when the asset is not available
AssetResolver = Callable[[str], Optional[Image.Image]]


def fit_size(src_w: int, src_h: int, box_w: int, box_h: int, fit_mode: str):
    """Size of media after object-fit into a box

    - contain: scale to fit entirely within the box, keeping aspect ratio
    - cover: scale to fill the box completely, keeping aspect ratio
    - fill: stretch to the box exactly
    """
    if fit_mode == FIT_FILL:
        return box_w, box_h
    src_aspect = src_w / src_h
    box_aspect = box_w / box_h
    wider = src_aspect > box_aspect
    if (fit_mode == FIT_CONTAIN and wider) or (fit_mode == FIT_COVER and not wider):
        return box_w, max(1, int(round(box_w / src_aspect)))
    return max(1, int(round(box_h * src_aspect))), box_h


def placeholder_color(asset_ref: str):
    """Stable RGB colour for an unresolved asset"""
    digest = hashlib.md5(asset_ref.encode('utf-8')).digest()
    return digest[0], digest[1], digest[2]


def apply_effects(raster: Image.Image, effects: Effects) -> Image.Image:
    """Colour adjustments then blur on a straight-alpha RGBA raster"""
    if effects.is_identity:
        return raster
    alpha = raster.getchannel('A')
    rgb = raster.convert('RGB')
    if effects.brightness != 1.0:
        rgb = ImageEnhance.Brightness(rgb).enhance(effects.brightness)
    if effects.contrast != 1.0:
        rgb = ImageEnhance.Contrast(rgb).enhance(effects.contrast)
    if effects.saturation != 1.0:
        rgb = ImageEnhance.Color(rgb).enhance(effects.saturation)
    out = rgb.convert('RGBA')
    out.putalpha(alpha)
    if effects.blur > 0:
        # Premultiplied, so transparent pixels do not bleed black into the edges
        out = out.convert('RGBa').filter(ImageFilter.GaussianBlur(effects.blur)).convert('RGBA')
    return out


class Renderer:
    """Deterministic software renderer producing numpy RGBA frames

    Args:
        asset_resolver: Callable turning an asset reference into a PIL image.
            Without one, image and sticker layers render as placeholders.
        font_path: Optional TrueType font for text layers; Pillow's default
            font otherwise
        cache_size: Content rasters kept between frames, least recently
            used dropped first. Placeholders for unresolved assets are never
            kept, so an asset that becomes available shows on the next render.
    """

    def __init__(self, asset_resolver: Optional[AssetResolver] = None, font_path: Optional[str] = None,
                 cache_size: int = RASTER_CACHE_SIZE):
        self.asset_resolver = asset_resolver
        self.font_path = font_path
        self.cache_size = cache_size
        self._raster_cache: 'OrderedDict[object, Image.Image]' = OrderedDict()
        self._cache_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def render(self, scene: Scene, t: Optional[float] = None) -> np.ndarray:
        """Render the scene to a (height, width, 4) uint8 RGBA array

        Args:
            scene: Scene to render
            t: Animation time in seconds; None renders base transforms

        Raises:
            RenderFailure: If any layer cannot be produced
        """
        height, width = scene.height, scene.width

        # Premultiplied float accumulator
        frame = np.empty((height, width, 4), dtype=np.float32)
        bg = np.asarray(scene.background, dtype=np.float32) / 255.0
        frame[..., :3] = bg[:3] * bg[3]
        frame[..., 3] = bg[3]

        for layer in scene.layers:
            if not layer.visible or not layer.active_at(t):
                continue
            try:
                transform = transform_at(layer, t)
                if transform.opacity <= 0.0:
                    continue
                self._composite_layer(frame, layer, transform)
            except RenderFailure:
                raise
            except Exception as e:
                raise RenderFailure(f"Failed to render layer {layer.id}: {e}",
                                    layer_id=layer.id, time=t) from e

        return self._to_uint8(frame)

    def render_image(self, scene: Scene, t: Optional[float] = None) -> Image.Image:
        """Render the scene to a PIL RGBA image (live preview convenience)"""
        return Image.fromarray(self.render(scene, t), 'RGBA')

    def clear_cache(self):
        with self._cache_lock:
            self._raster_cache.clear()

    @property
    def cached_rasters(self) -> int:
        with self._cache_lock:
            return len(self._raster_cache)

    # ------------------------------------------------------------------
    # Content rasters
    # ------------------------------------------------------------------

    def _content_raster(self, layer: Layer) -> Image.Image:
        """RGBA raster of the layer content at its unscaled box size, effects applied"""
        content = layer.content
        key = (content, layer.effects)
        with self._cache_lock:
            cached = self._raster_cache.get(key)
            if cached is not None:
                self._raster_cache.move_to_end(key)
                return cached

        box_w = max(1, int(round(content.width)))
        box_h = max(1, int(round(content.height)))

        keep = True
        kind = content.kind
        if kind is ContentKind.IMAGE:
            raster, keep = self._media_raster(content.asset_ref, box_w, box_h, content.fit_mode)
        elif kind is ContentKind.STICKER:
            raster, keep = self._media_raster(content.asset_ref, box_w, box_h, FIT_FILL)
        elif kind is ContentKind.TEXT:
            raster = self._text_raster(content, box_w, box_h)
        elif kind is ContentKind.BLUR:
            # Mask only; effects do not apply to an overlay
            return self._blur_mask(content, box_w, box_h)
        else:
            raise RenderFailure(f"Unknown content kind: {kind}", layer_id=layer.id)

        raster = apply_effects(raster, layer.effects)
        if not keep:
            return raster

        with self._cache_lock:
            self._raster_cache[key] = raster
            while len(self._raster_cache) > self.cache_size:
                self._raster_cache.popitem(last=False)
        return raster

    def _media_raster(self, asset_ref: str, box_w: int, box_h: int,
                      fit_mode: str) -> Tuple[Image.Image, bool]:
        """Fitted media raster and whether the asset actually resolved"""
        source = self.asset_resolver(asset_ref) if self.asset_resolver else None
        if source is None:
            logger.debug("Asset %s unresolved, drawing placeholder", asset_ref)
            return self._placeholder_raster(asset_ref, box_w, box_h), False

        source = source.convert('RGBA')
        fit_w, fit_h = fit_size(source.width, source.height, box_w, box_h, fit_mode)
        resized = source.resize((fit_w, fit_h), Image.Resampling.LANCZOS)

        # Centre in the box; cover crops the overflow
        box = Image.new('RGBA', (box_w, box_h), (0, 0, 0, 0))
        box.paste(resized, ((box_w - fit_w) // 2, (box_h - fit_h) // 2))
        return box, True

    def _placeholder_raster(self, asset_ref: str, box_w: int, box_h: int) -> Image.Image:
        r, g, b = placeholder_color(asset_ref)
        img = Image.new('RGBA', (box_w, box_h), (r, g, b, 255))
        draw = ImageDraw.Draw(img)
        draw.rectangle((0, 0, box_w - 1, box_h - 1), outline=(r // 2, g // 2, b // 2, 255), width=2)
        return img

    def _font(self, size: int):
        if self.font_path:
            return ImageFont.truetype(self.font_path, size)
        return ImageFont.load_default(size=size)

    def _text_raster(self, content, box_w: int, box_h: int) -> Image.Image:
        img = Image.new('RGBA', (box_w, box_h), (0, 0, 0, 0))
        if not content.text:
            return img
        draw = ImageDraw.Draw(img)
        font = self._font(content.font_size)

        left, top, right, bottom = draw.multiline_textbbox((0, 0), content.text, font=font,
                                                           align=content.align)
        text_w = right - left
        text_h = bottom - top
        if content.align == 'left':
            x = -left
        elif content.align == 'right':
            x = box_w - text_w - left
        else:
            x = (box_w - text_w) / 2 - left
        y = (box_h - text_h) / 2 - top

        draw.multiline_text((x, y), content.text, font=font, fill=content.color,
                            align=content.align)
        return img

    def _blur_mask(self, content, box_w: int, box_h: int) -> Image.Image:
        """White box (or inscribed circle) whose alpha marks the blurred area"""
        mask = Image.new('RGBA', (box_w, box_h), (255, 255, 255, 0))
        draw = ImageDraw.Draw(mask)
        if content.shape == BLUR_SHAPE_CIRCLE:
            d = min(box_w, box_h)
            left = (box_w - d) / 2
            top = (box_h - d) / 2
            draw.ellipse((left, top, left + d - 1, top + d - 1), fill=(255, 255, 255, 255))
        else:
            draw.rectangle((0, 0, box_w - 1, box_h - 1), fill=(255, 255, 255, 255))
        return mask

    # ------------------------------------------------------------------
    # Compositing
    # ------------------------------------------------------------------

    def _composite_layer(self, frame: np.ndarray, layer: Layer, transform: Transform):
        height, width = frame.shape[:2]

        # Restrict work to the layer's bounding box on the canvas
        bounds = bounding_box(transform, layer.width, layer.height)
        x0 = max(0, int(math.floor(bounds.left)))
        y0 = max(0, int(math.floor(bounds.top)))
        x1 = min(width, int(math.ceil(bounds.right)))
        y1 = min(height, int(math.ceil(bounds.bottom)))
        if x1 <= x0 or y1 <= y0:
            return

        raster = self._content_raster(layer)
        raster_w, raster_h = raster.size

        # canvas (region-relative) -> layer local -> raster pixels
        to_raster = np.array([
            [raster_w / layer.width, 0.0, raster_w / 2.0],
            [0.0, raster_h / layer.height, raster_h / 2.0],
            [0.0, 0.0, 1.0],
        ])
        region_offset = np.array([
            [1.0, 0.0, x0],
            [0.0, 1.0, y0],
            [0.0, 0.0, 1.0],
        ])
        matrix = to_raster @ inverse_matrix(transform) @ region_offset
        coeffs = tuple(float(v) for v in matrix[:2].flatten())

        warped = raster.transform((x1 - x0, y1 - y0), Image.Transform.AFFINE, coeffs,
                                  resample=Image.Resampling.BILINEAR)

        src = np.asarray(warped, dtype=np.float32) / 255.0
        src_a = src[..., 3:4] * transform.opacity
        if layer.content.kind is ContentKind.BLUR:
            self._blur_under(frame, layer.content.intensity, (x0, y0, x1, y1), src_a)
            return

        dst = frame[y0:y1, x0:x1]
        # Porter-Duff "over", premultiplied destination
        dst[..., :3] = src[..., :3] * src_a + dst[..., :3] * (1.0 - src_a)
        dst[..., 3:4] = src_a + dst[..., 3:4] * (1.0 - src_a)

    @staticmethod
    def _blur_under(frame: np.ndarray, radius: float, region, coverage: np.ndarray):
        """Blend a blurred copy of the frame into region, weighted by coverage"""
        height, width = frame.shape[:2]
        x0, y0, x1, y1 = region

        # Blur a padded patch so pixels just outside the region still contribute
        pad = int(math.ceil(radius * 3))
        px0, py0 = max(0, x0 - pad), max(0, y0 - pad)
        px1, py1 = min(width, x1 + pad), min(height, y1 + pad)

        patch = np.rint(np.clip(frame[py0:py1, px0:px1], 0.0, 1.0) * 255.0).astype(np.uint8)
        blurred = Image.fromarray(patch, 'RGBA').filter(ImageFilter.GaussianBlur(radius))
        blurred = np.asarray(blurred, dtype=np.float32)[y0 - py0:y1 - py0, x0 - px0:x1 - px0] / 255.0

        dst = frame[y0:y1, x0:x1]
        dst[...] = blurred * coverage + dst * (1.0 - coverage)

    @staticmethod
    def _to_uint8(frame: np.ndarray) -> np.ndarray:
        alpha = frame[..., 3:4]
        rgb = np.divide(frame[..., :3], alpha, out=np.zeros_like(frame[..., :3]), where=alpha > 0)
        out = np.empty(frame.shape, dtype=np.uint8)
        out[..., :3] = np.rint(np.clip(rgb, 0.0, 1.0) * 255.0)
        out[..., 3] = np.rint(np.clip(alpha[..., 0], 0.0, 1.0) * 255.0)
        return out
