"""
Tests for the geometry library.

Covers:
- Transform normalisation (angles, scale clamp, opacity, non-finite values)
- Matrix composition and inverse
- Bounding boxes of rotated boxes
- Point-in-rotated-rectangle hit testing
- Angle helpers
"""
import math
import pytest

from flyer_canvas.errors import InvalidGeometryError
from flyer_canvas.models.transform import Transform, normalize_angle, clamp_scale
from flyer_canvas.utils.transform_math import (
    Bounds, bounding_box, canvas_to_local, compose, inverse, lerp_angle,
    local_to_canvas, point_in_rect, rect_corners, rotate_point,
    shortest_angle_delta, union_bounds,
)


# ══════════════════════════════════════════════════════════════════════════
# Transform values
# ══════════════════════════════════════════════════════════════════════════

class TestTransformNormalisation:

    @pytest.mark.parametrize("angle,expected", [
        (0, 0), (360, 0), (450, 90), (-90, 270), (-720, 0), (359.5, 359.5),
    ])
    def test_angles_normalised(self, angle, expected):
        assert Transform(rotation=angle).rotation == pytest.approx(expected)

    def test_normalize_angle_never_returns_360(self):
        assert 0.0 <= normalize_angle(-1e-17) < 360.0

    def test_small_scale_clamped_not_rejected(self):
        t = Transform(scale_x=0.0, scale_y=-3)
        assert t.scale_x == 0.01
        assert t.scale_y == 0.01

    def test_clamp_scale_keeps_valid_values(self):
        assert clamp_scale(2.5) == 2.5

    def test_opacity_clamped(self):
        assert Transform(opacity=1.7).opacity == 1.0
        assert Transform(opacity=-0.2).opacity == 0.0

    @pytest.mark.parametrize("field", ['x', 'y', 'scale_x', 'scale_y', 'rotation', 'opacity'])
    def test_non_finite_rejected(self, field):
        with pytest.raises(InvalidGeometryError):
            Transform(**{field: math.nan})
        with pytest.raises(InvalidGeometryError):
            Transform(**{field: math.inf})

    def test_is_close_compares_rotation_on_circle(self):
        assert Transform(rotation=359.9999999999).is_close(Transform(rotation=0))

    def test_is_close_none_is_false(self):
        assert not Transform().is_close(None)


# ══════════════════════════════════════════════════════════════════════════
# Matrices
# ══════════════════════════════════════════════════════════════════════════

class TestComposition:

    def test_compose_translation(self):
        result = compose(Transform(10, 20), Transform(5, 5))
        assert (result.x, result.y) == pytest.approx((15, 25))

    def test_compose_is_order_sensitive(self):
        parent = Transform(100, 0, rotation=90)
        child = Transform(10, 0)
        a = compose(parent, child)
        b = compose(child, parent)
        assert (a.x, a.y) != pytest.approx((b.x, b.y))

    def test_child_applied_in_parent_space(self):
        # Parent rotated 90deg clockwise: child's +x offset points down
        result = compose(Transform(100, 100, rotation=90), Transform(10, 0))
        assert result.x == pytest.approx(100)
        assert result.y == pytest.approx(110)
        assert result.rotation == pytest.approx(90)

    def test_compose_multiplies_uniform_scale(self):
        result = compose(Transform(scale_x=2, scale_y=2), Transform(scale_x=3, scale_y=3))
        assert result.scale_x == pytest.approx(6)

    def test_inverse_round_trip(self):
        t = Transform(120, -40, 2.0, 2.0, 33)
        identity = compose(t, inverse(t))
        assert identity.x == pytest.approx(0, abs=1e-9)
        assert identity.y == pytest.approx(0, abs=1e-9)
        assert identity.scale_x == pytest.approx(1)
        assert identity.scale_y == pytest.approx(1)

    def test_pointer_to_local_and_back(self):
        t = Transform(300, 200, 1.5, 0.75, 60)
        lx, ly = canvas_to_local(t, 320, 260)
        x, y = local_to_canvas(t, lx, ly)
        assert (x, y) == pytest.approx((320, 260))


# ══════════════════════════════════════════════════════════════════════════
# Bounds and hit testing
# ══════════════════════════════════════════════════════════════════════════

class TestBounds:

    def test_unrotated_box(self):
        box = bounding_box(Transform(100, 50), 40, 20)
        assert (box.left, box.top, box.right, box.bottom) == pytest.approx((80, 40, 120, 60))

    def test_scaled_box(self):
        box = bounding_box(Transform(0, 0, scale_x=2, scale_y=3), 10, 10)
        assert box.width == pytest.approx(20)
        assert box.height == pytest.approx(30)

    def test_rotated_90_swaps_extent(self):
        box = bounding_box(Transform(0, 0, rotation=90), 40, 20)
        assert box.width == pytest.approx(20)
        assert box.height == pytest.approx(40)

    def test_rotated_45_square(self):
        box = bounding_box(Transform(0, 0, rotation=45), 10, 10)
        assert box.width == pytest.approx(10 * math.sqrt(2))

    def test_bbox_contains_all_corners(self):
        t = Transform(50, 60, 1.3, 0.7, 27)
        box = bounding_box(t, 80, 30)
        for x, y in rect_corners(t, 80, 30):
            assert box.left - 1e-9 <= x <= box.right + 1e-9
            assert box.top - 1e-9 <= y <= box.bottom + 1e-9

    def test_union_bounds(self):
        box = union_bounds([Bounds(0, 0, 10, 10), Bounds(5, -5, 20, 8)])
        assert box == Bounds(0, -5, 20, 10)

    def test_union_of_nothing(self):
        assert union_bounds([]) is None

    def test_from_points_normalises(self):
        assert Bounds.from_points(10, 10, 0, 5) == Bounds(0, 5, 10, 10)

    def test_intersects(self):
        assert Bounds(0, 0, 10, 10).intersects(Bounds(5, 5, 15, 15))
        assert not Bounds(0, 0, 10, 10).intersects(Bounds(11, 0, 20, 10))


class TestPointInRect:

    def test_centre_hits(self):
        assert point_in_rect(Transform(100, 100), 50, 50, 100, 100)

    def test_outside_misses(self):
        assert not point_in_rect(Transform(100, 100), 50, 50, 130, 100)

    def test_rotation_changes_hit(self):
        # 100x10 bar; rotated 90deg it becomes vertical
        t = Transform(0, 0, rotation=90)
        assert point_in_rect(t, 100, 10, 0, 40)
        assert not point_in_rect(t, 100, 10, 40, 0)

    def test_corner_of_aabb_misses_rotated_box(self):
        t = Transform(0, 0, rotation=45)
        box = bounding_box(t, 10, 10)
        assert not point_in_rect(t, 10, 10, box.left + 0.5, box.top + 0.5)

    def test_tolerance_extends_box(self):
        assert point_in_rect(Transform(0, 0), 10, 10, 7, 0, tolerance=3)


# ══════════════════════════════════════════════════════════════════════════
# Angles
# ══════════════════════════════════════════════════════════════════════════

class TestAngles:

    @pytest.mark.parametrize("a,b,expected", [
        (0, 90, 90), (350, 10, 20), (10, 350, -20), (0, 180, 180), (90, 0, -90),
    ])
    def test_shortest_delta(self, a, b, expected):
        assert shortest_angle_delta(a, b) == pytest.approx(expected)

    def test_lerp_angle_wraps(self):
        assert lerp_angle(350, 10, 0.5) == pytest.approx(0, abs=1e-9)

    def test_rotate_point_clockwise(self):
        x, y = rotate_point(10, 0, 0, 0, 90)
        assert (x, y) == pytest.approx((0, 10), abs=1e-9)
