"""Tests for the snap engine (reference lines, per-axis snapping, rotation snapping)."""
import pytest

from conftest import make_layer
from flyer_canvas.components.snapping import CANVAS, EDGE_CENTER, EDGE_MAX, SnapEngine
from flyer_canvas.models import Scene
from flyer_canvas.utils.transform_math import Bounds


@pytest.fixture
def engine():
    return SnapEngine(tolerance=8, rotation_tolerance=5)


@pytest.fixture
def scene():
    """1000x800 canvas with one 100x100 layer 'other' at (300, 600)"""
    return Scene(width=1000, height=800).add_layer(make_layer(x=300, y=600, layer_id='other'))


def box_at(cx, cy, size=100):
    half = size / 2
    return Bounds(cx - half, cy - half, cx + half, cy + half)


class TestReferenceLines:

    def test_canvas_lines_first(self, engine, scene):
        xs, ys = engine.reference_lines(scene)
        assert xs[:3] == [(0.0, CANVAS), (500.0, CANVAS), (1000.0, CANVAS)]
        assert ys[:3] == [(0.0, CANVAS), (400.0, CANVAS), (800.0, CANVAS)]

    def test_layer_edges_and_centre(self, engine, scene):
        xs, _ = engine.reference_lines(scene)
        assert (250.0, 'other') in xs
        assert (300.0, 'other') in xs
        assert (350.0, 'other') in xs

    def test_excluded_layers_ignored(self, engine, scene):
        xs, _ = engine.reference_lines(scene, exclude=['other'])
        assert len(xs) == 3

    def test_hidden_layers_ignored(self, engine, scene):
        xs, _ = engine.reference_lines(scene.set_visibility('other', False))
        assert len(xs) == 3


class TestSnapBounds:

    def test_centre_snaps_to_canvas_centre(self, engine, scene):
        result = engine.snap_bounds(box_at(503, 150), scene)
        assert result.dx == pytest.approx(-3)
        assert result.x_guide.position == 500
        assert result.x_guide.edge == EDGE_CENTER
        assert result.x_guide.source == CANVAS

    def test_axes_snap_independently(self, engine, scene):
        result = engine.snap_bounds(box_at(503, 150), scene)
        assert result.y_guide is None
        assert result.dy == 0.0
        assert result.guides == (result.x_guide,)

    def test_outside_tolerance_no_snap(self, engine, scene):
        result = engine.snap_bounds(box_at(520, 150), scene)
        assert result.x_guide is None
        assert result.dx == 0.0

    def test_edge_snaps_to_other_layer(self, engine, scene):
        # left edge 355 is 5px from 'other' right edge 350
        result = engine.snap_bounds(box_at(405, 150), scene)
        assert result.x_guide.source == 'other'
        assert result.x_guide.position == 350
        assert result.dx == pytest.approx(-5)

    def test_closest_candidate_wins(self, engine, scene):
        # bottom edge 797 -> canvas bottom (3px); centre 747 is far from 800/400
        result = engine.snap_bounds(box_at(150, 747), scene)
        assert result.y_guide.position == 800
        assert result.y_guide.edge == EDGE_MAX
        assert result.dy == pytest.approx(3)

    def test_explicit_centre_used(self, engine, scene):
        result = engine.snap_bounds(box_at(560, 150, size=10), scene, center=(502, 150))
        assert result.x_guide.edge == EDGE_CENTER
        assert result.dx == pytest.approx(-2)


class TestRotationSnap:

    @pytest.mark.parametrize("angle,expected,snapped", [
        (87, 90, True),
        (93, 90, True),
        (80, 80, False),
        (357, 0, True),
        (-3, 0, True),
        (184, 180, True),
        (265, 270, True),
        (45, 45, False),
    ])
    def test_snap_rotation(self, engine, angle, expected, snapped):
        result, did_snap = engine.snap_rotation(angle)
        assert result == pytest.approx(expected)
        assert did_snap is snapped
