"""
Shared fixtures for Flyer Canvas tests.

Provides reusable scenes, layers, a history manager and solid-colour assets.
"""
import sys
import os
import pytest

# Ensure src is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

# Qt widgets/threads without a display
os.environ.setdefault('QT_QPA_PLATFORM', 'offscreen')

from PIL import Image

from flyer_canvas.models import Layer, Scene, StickerContent, ImageContent, Transform, Keyframe
from flyer_canvas.services.history_manager import HistoryManager


# ── Solid colour assets ──────────────────────────────────────────────

ASSET_COLORS = {
    'red': (255, 0, 0, 255),
    'green': (0, 255, 0, 255),
    'blue': (0, 0, 255, 255),
    'white': (255, 255, 255, 255),
}


def solid_resolver(asset_ref):
    """Asset resolver returning a 16x16 solid image for known colour names"""
    color = ASSET_COLORS.get(asset_ref)
    if color is None:
        return None
    return Image.new('RGBA', (16, 16), color)


def make_layer(asset='red', x=0.0, y=0.0, width=100, height=100, layer_id=None, **transform):
    """Sticker layer of a solid colour at (x, y)"""
    kwargs = {'id': layer_id} if layer_id else {}
    return Layer(StickerContent(asset, width, height), Transform(x=x, y=y, **transform), **kwargs)


# ── Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def resolver():
    return solid_resolver


@pytest.fixture
def empty_scene():
    """1000x800 canvas, no layers"""
    return Scene(width=1000, height=800)


@pytest.fixture
def three_layer_scene():
    """Three 100x100 layers side by side, ids a/b/c bottom to top"""
    scene = Scene(width=1000, height=800)
    scene = scene.add_layer(make_layer('red', 200, 200, layer_id='a'))
    scene = scene.add_layer(make_layer('green', 400, 200, layer_id='b'))
    scene = scene.add_layer(make_layer('blue', 600, 200, layer_id='c'))
    return scene


@pytest.fixture
def history(three_layer_scene):
    return HistoryManager(three_layer_scene)


@pytest.fixture
def animated_layer():
    """Layer at the origin moving from x=0 (t=0) to x=100 (t=1)"""
    return Layer(
        ImageContent('red', 10, 10),
        Transform(0, 0),
        keyframes=(Keyframe(0.0, dx=0, dy=0), Keyframe(1.0, dx=100, dy=0)),
        id='anim',
    )
