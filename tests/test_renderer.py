"""
Tests for the deterministic renderer.

Covers:
- Determinism (byte-identical frames)
- Placement, rotation, z-order, visibility and opacity compositing
- Placeholders for unresolved assets, fit modes
- Animated layers rendered at a time t
- Time windows, per-layer effects and blur overlays
- Raster cache: resolved once, placeholders not kept, bounded size
- Failures surfaced as RenderFailure
"""
import numpy as np
import pytest

from conftest import make_layer, solid_resolver
from flyer_canvas.errors import RenderFailure
from flyer_canvas.models import BlurContent, Effects, ImageContent, Layer, Scene, TextContent, Transform
from flyer_canvas.services.renderer import Renderer, fit_size, placeholder_color

BLACK = (0, 0, 0, 255)
RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
WHITE = (255, 255, 255, 255)


def pixel(frame, x, y):
    return tuple(int(v) for v in frame[y, x])


@pytest.fixture
def renderer(resolver):
    return Renderer(resolver)


@pytest.fixture
def small_scene():
    """60x60 black canvas with a 20x20 red square in the middle"""
    return Scene(width=60, height=60, background=BLACK).add_layer(
        make_layer('red', 30, 30, 20, 20, layer_id='sq'))


# ══════════════════════════════════════════════════════════════════════════
# Output format and determinism
# ══════════════════════════════════════════════════════════════════════════

class TestFrameOutput:

    def test_shape_and_dtype(self, renderer, small_scene):
        frame = renderer.render(small_scene)
        assert frame.shape == (60, 60, 4)
        assert frame.dtype == np.uint8

    def test_empty_scene_is_background(self, renderer):
        frame = renderer.render(Scene(width=8, height=4, background=(10, 20, 30, 255)))
        assert (frame == np.array([10, 20, 30, 255], dtype=np.uint8)).all()

    def test_deterministic(self, resolver, small_scene):
        scene = small_scene.set_transform('sq', Transform(31.3, 28.7, 1.2, 0.8, 17, 0.7))
        first = Renderer(resolver).render(scene)
        second = Renderer(resolver).render(scene)
        assert first.tobytes() == second.tobytes()

    def test_deterministic_at_time(self, renderer, animated_layer):
        scene = Scene(width=120, height=40).add_layer(animated_layer.with_transform(Transform(10, 20)))
        assert renderer.render(scene, 0.37).tobytes() == renderer.render(scene, 0.37).tobytes()

    def test_render_image(self, renderer, small_scene):
        image = renderer.render_image(small_scene)
        assert image.size == (60, 60)
        assert image.mode == 'RGBA'


# ══════════════════════════════════════════════════════════════════════════
# Compositing
# ══════════════════════════════════════════════════════════════════════════

class TestCompositing:

    def test_layer_placed_at_centre(self, renderer, small_scene):
        frame = renderer.render(small_scene)
        assert pixel(frame, 30, 30) == RED
        assert pixel(frame, 25, 25) == RED
        assert pixel(frame, 5, 5) == BLACK
        assert pixel(frame, 45, 30) == BLACK

    def test_rotation(self, renderer):
        scene = Scene(width=60, height=60, background=BLACK).add_layer(
            make_layer('red', 30, 30, 40, 4, rotation=90))
        frame = renderer.render(scene)
        assert pixel(frame, 30, 45) == RED
        assert pixel(frame, 45, 30) == BLACK

    def test_scale(self, renderer, small_scene):
        scene = small_scene.set_transform('sq', Transform(30, 30, 2, 2))
        frame = renderer.render(scene)
        assert pixel(frame, 12, 30) == RED

    def test_z_order(self, renderer, small_scene):
        scene = small_scene.add_layer(make_layer('blue', 30, 30, 10, 10, layer_id='top'))
        frame = renderer.render(scene)
        assert pixel(frame, 30, 30) == BLUE
        assert pixel(frame, 22, 22) == RED

    def test_reorder_changes_output(self, renderer, small_scene):
        scene = small_scene.add_layer(make_layer('blue', 30, 30, 10, 10, layer_id='top'))
        frame = renderer.render(scene.reorder('top', 0))
        assert pixel(frame, 30, 30) == RED

    def test_hidden_layer_skipped(self, renderer, small_scene):
        frame = renderer.render(small_scene.set_visibility('sq', False))
        assert pixel(frame, 30, 30) == BLACK

    def test_half_opacity_blends(self, renderer, small_scene):
        frame = renderer.render(small_scene.set_opacity('sq', 0.5))
        r, g, b, a = pixel(frame, 30, 30)
        assert r == pytest.approx(128, abs=1)
        assert (g, b, a) == (0, 0, 255)

    def test_zero_opacity_invisible(self, renderer, small_scene):
        frame = renderer.render(small_scene.set_opacity('sq', 0.0))
        assert pixel(frame, 30, 30) == BLACK

    def test_transparent_background(self, renderer):
        scene = Scene(width=20, height=20, background=(0, 0, 0, 0)).add_layer(
            make_layer('red', 10, 10, 6, 6))
        frame = renderer.render(scene)
        assert pixel(frame, 10, 10) == RED
        assert pixel(frame, 1, 1)[3] == 0

    def test_layer_partly_off_canvas(self, renderer):
        scene = Scene(width=20, height=20, background=BLACK).add_layer(make_layer('red', 0, 0, 10, 10))
        frame = renderer.render(scene)
        assert pixel(frame, 2, 2) == RED
        assert pixel(frame, 10, 10) == BLACK

    def test_layer_fully_off_canvas(self, renderer):
        scene = Scene(width=20, height=20, background=BLACK).add_layer(make_layer('red', 500, 500))
        assert (renderer.render(scene) == np.array(BLACK, dtype=np.uint8)).all()


# ══════════════════════════════════════════════════════════════════════════
# Content kinds
# ══════════════════════════════════════════════════════════════════════════

class TestContent:

    def test_unresolved_asset_uses_placeholder(self):
        scene = Scene(width=40, height=40, background=BLACK).add_layer(
            make_layer('asset://missing', 20, 20, 20, 20))
        frame = Renderer().render(scene)
        assert pixel(frame, 20, 20) == placeholder_color('asset://missing') + (255,)

    def test_text_layer_draws_inside_box(self):
        scene = Scene(width=200, height=100, background=BLACK).add_layer(
            Layer(TextContent('HELLO', 160, 60, font_size=32), Transform(100, 50)))
        frame = Renderer().render(scene)
        inside = frame[20:80, 20:180, :3]
        assert inside.max() > 0
        # Nothing drawn outside the text box
        assert frame[0:15, :, :3].max() == 0

    def test_empty_text_draws_nothing(self):
        scene = Scene(width=50, height=50, background=BLACK).add_layer(
            Layer(TextContent('', 40, 40), Transform(25, 25)))
        assert (Renderer().render(scene)[..., :3] == 0).all()

    @pytest.mark.parametrize("mode,expected", [
        ('contain', (100, 50)),
        ('cover', (200, 100)),
        ('fill', (100, 100)),
    ])
    def test_fit_size(self, mode, expected):
        assert fit_size(400, 200, 100, 100, mode) == expected

    def test_contain_letterboxes(self, resolver):
        # 16x16 source into a 40x20 box: 20x20 red in the middle, clear sides
        scene = Scene(width=40, height=20, background=BLACK).add_layer(
            Layer(ImageContent('red', 40, 20, 'contain'), Transform(20, 10)))
        frame = Renderer(resolver).render(scene)
        assert pixel(frame, 20, 10) == RED
        assert pixel(frame, 3, 10) == BLACK

    def test_animated_layer_moves(self, renderer, animated_layer):
        scene = Scene(width=140, height=40, background=BLACK).add_layer(
            animated_layer.with_transform(Transform(20, 20)))
        at_start = renderer.render(scene, 0.0)
        at_end = renderer.render(scene, 1.0)
        assert pixel(at_start, 20, 20) == RED
        assert pixel(at_start, 120, 20) == BLACK
        assert pixel(at_end, 120, 20) == RED
        assert pixel(at_end, 20, 20) == BLACK


# ══════════════════════════════════════════════════════════════════════════
# Time windows, effects and blur overlays
# ══════════════════════════════════════════════════════════════════════════

class TestTimeWindow:

    @pytest.mark.parametrize("t,expected", [
        (None, RED),
        (0.5, BLACK),
        (1.0, RED),
        (1.99, RED),
        (2.0, BLACK),
    ])
    def test_layer_shown_only_inside_window(self, renderer, small_scene, t, expected):
        scene = small_scene.set_window('sq', 1.0, 1.0)
        assert pixel(renderer.render(scene, t), 30, 30) == expected

    def test_open_ended_window(self, renderer, small_scene):
        scene = small_scene.set_window('sq', 2.0, None)
        assert pixel(renderer.render(scene, 1.0), 30, 30) == BLACK
        assert pixel(renderer.render(scene, 60.0), 30, 30) == RED


class TestEffects:

    @pytest.fixture
    def white_scene(self):
        return Scene(width=60, height=60, background=WHITE).add_layer(
            make_layer('red', 30, 30, 20, 20, layer_id='sq'))

    def test_zero_brightness_is_black(self, renderer, white_scene):
        scene = white_scene.set_effects('sq', Effects(brightness=0.0))
        assert pixel(renderer.render(scene), 30, 30) == BLACK

    def test_half_brightness(self, renderer, white_scene):
        scene = white_scene.set_effects('sq', Effects(brightness=0.5))
        r, g, b, a = pixel(renderer.render(scene), 30, 30)
        assert r == pytest.approx(128, abs=1)
        assert (g, b, a) == (0, 0, 255)

    def test_zero_saturation_is_grey(self, renderer, white_scene):
        scene = white_scene.set_effects('sq', Effects(saturation=0.0))
        r, g, b, _ = pixel(renderer.render(scene), 30, 30)
        assert r == g == b
        assert 0 < r < 255

    def test_blur_softens_edges_only(self, renderer, small_scene):
        scene = small_scene.set_effects('sq', Effects(blur=2.0))
        frame = renderer.render(scene)
        assert pixel(frame, 30, 30) == RED
        edge = pixel(frame, 20, 30)
        assert 0 < edge[0] < 255
        assert edge[1:] == (0, 0, 255)

    def test_effects_are_per_layer(self, renderer):
        # Same content twice; only the right copy is darkened
        scene = Scene(width=60, height=20, background=WHITE)
        scene = scene.add_layer(make_layer('red', 10, 10, 20, 20, layer_id='left'))
        scene = scene.add_layer(make_layer('red', 50, 10, 20, 20, layer_id='right'))
        scene = scene.set_effects('right', Effects(brightness=0.0))
        frame = renderer.render(scene)
        assert pixel(frame, 10, 10) == RED
        assert pixel(frame, 50, 10) == BLACK


class TestBlurOverlay:

    @pytest.fixture
    def split_scene(self):
        """40x20 canvas, white on the left half and black on the right"""
        return Scene(width=40, height=20, background=BLACK).add_layer(
            make_layer('white', 10, 10, 20, 20, layer_id='left'))

    def test_blurs_what_is_beneath(self, renderer, split_scene):
        scene = split_scene.add_layer(Layer(BlurContent(20, 20, intensity=4), Transform(20, 10)))
        frame = renderer.render(scene)
        assert 0 < pixel(frame, 19, 10)[0] < 255
        assert 0 < pixel(frame, 20, 10)[0] < 255
        # Outside the overlay nothing changes
        assert pixel(frame, 5, 10) == WHITE
        assert pixel(frame, 35, 10) == BLACK

    def test_circle_leaves_box_corners(self, renderer, split_scene):
        rect = split_scene.add_layer(Layer(BlurContent(20, 20, intensity=6), Transform(20, 10)))
        circle = split_scene.add_layer(Layer(BlurContent(20, 20, intensity=6, shape='circle'),
                                             Transform(20, 10)))
        assert pixel(renderer.render(rect), 11, 1)[0] < 255
        assert pixel(renderer.render(circle), 11, 1) == WHITE
        assert 0 < pixel(renderer.render(circle), 20, 10)[0] < 255

    def test_overlay_outside_window_does_nothing(self, renderer, split_scene):
        scene = split_scene.add_layer(Layer(BlurContent(20, 20), Transform(20, 10),
                                            start=1.0, duration=1.0))
        assert renderer.render(scene, 0.0).tobytes() == renderer.render(split_scene, 0.0).tobytes()
        assert renderer.render(scene, 1.5).tobytes() != renderer.render(split_scene, 1.5).tobytes()


# ══════════════════════════════════════════════════════════════════════════
# Raster cache
# ══════════════════════════════════════════════════════════════════════════

class TestRasterCache:

    def test_asset_resolved_once(self, small_scene):
        calls = []

        def counting(asset_ref):
            calls.append(asset_ref)
            return solid_resolver(asset_ref)

        renderer = Renderer(counting)
        renderer.render(small_scene)
        renderer.render(small_scene.set_transform('sq', Transform(20, 20)))
        assert calls == ['red']

    def test_placeholder_replaced_once_asset_arrives(self, small_scene):
        available = set()

        def late(asset_ref):
            return solid_resolver(asset_ref) if asset_ref in available else None

        renderer = Renderer(late)
        assert pixel(renderer.render(small_scene), 30, 30) == placeholder_color('red') + (255,)
        available.add('red')
        assert pixel(renderer.render(small_scene), 30, 30) == RED

    def test_bounded(self, resolver):
        scene = Scene(width=60, height=20)
        for i, asset in enumerate(('red', 'green', 'blue')):
            scene = scene.add_layer(make_layer(asset, 10 + 20 * i, 10, 20, 20))
        renderer = Renderer(resolver, cache_size=2)
        frame = renderer.render(scene)
        assert renderer.cached_rasters == 2
        assert pixel(frame, 10, 10) == RED
        assert pixel(frame, 50, 10) == BLUE

    def test_cache_can_be_cleared(self, renderer, small_scene):
        first = renderer.render(small_scene)
        renderer.clear_cache()
        assert renderer.cached_rasters == 0
        assert renderer.render(small_scene).tobytes() == first.tobytes()


# ══════════════════════════════════════════════════════════════════════════
# Failures
# ══════════════════════════════════════════════════════════════════════════

class TestFailures:

    def test_resolver_error_is_render_failure(self, small_scene):
        def broken(asset_ref):
            raise IOError("storage offline")

        with pytest.raises(RenderFailure) as info:
            Renderer(broken).render(small_scene, 0.5)
        assert info.value.layer_id == 'sq'
        assert info.value.time == 0.5

