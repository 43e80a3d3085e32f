import math

import pytest

from fanpanel.curve import (
    DEFAULT_AXIS,
    DEFAULT_CURVE_POINTS,
    AxisConfig,
    clamp_duty,
    clamp_temperature,
    default_curve,
    duty_at,
    from_display,
    reorder_by_temperature,
    reorder_tracking,
    to_display_path,
    validate_curve,
    validate_points,
)
from fanpanel.models import ControlMode, CurvePoint, FanCurve, ValidationError

from .conftest import BASE_POINTS


class TestClamp:
    def test_temperature_rounds_to_nearest(self):
        assert clamp_temperature(41.4) == 41
        assert clamp_temperature(41.5) == 42

    def test_temperature_saturates_at_axis(self):
        assert clamp_temperature(-50) == 20
        assert clamp_temperature(19.9) == 20
        assert clamp_temperature(100.4) == 100
        assert clamp_temperature(1e9) == 100

    def test_temperature_custom_domain(self):
        assert clamp_temperature(5, temp_min=0, temp_max=90) == 5
        assert clamp_temperature(95, temp_min=0, temp_max=90) == 90

    def test_duty_saturates(self):
        assert clamp_duty(-3) == 0
        assert clamp_duty(100.6) == 100
        assert clamp_duty(49.5) == 50

    def test_never_throws_on_nan(self):
        assert clamp_temperature(math.nan) == 20
        assert clamp_duty(math.nan) == 0

    def test_range_invariant(self):
        for raw in (-1e6, -1, 0, 0.49, 19.5, 20, 55.5, 99.5, 100, 101, 1e6, math.inf, -math.inf):
            assert 20 <= clamp_temperature(raw) <= 100
            assert 0 <= clamp_duty(raw) <= 100


class TestReorder:
    def test_sorts_ascending(self):
        points = [CurvePoint(70, 60), CurvePoint(30, 30), CurvePoint(50, 45)]
        assert [p.temperature_c for p in reorder_by_temperature(points)] == [30, 50, 70]

    def test_stable_for_ties(self):
        points = [CurvePoint(50, 10), CurvePoint(30, 30), CurvePoint(50, 20)]
        ordered = reorder_by_temperature(points)
        assert ordered == (CurvePoint(30, 30), CurvePoint(50, 10), CurvePoint(50, 20))

    def test_tracking_follows_moved_point(self):
        points = list(BASE_POINTS)
        points[1] = CurvePoint(70, 35)
        ordered, index = reorder_tracking(points, 1)
        assert ordered[index] == CurvePoint(70, 35)
        assert index == 4


class TestAxis:
    def test_plot_size(self):
        assert DEFAULT_AXIS.plot_width == 428
        assert DEFAULT_AXIS.plot_height == 196

    def test_forward_corners(self):
        path = to_display_path([CurvePoint(20, 0), CurvePoint(100, 100)])
        assert path[0] == pytest.approx((0, 196))
        assert path[1] == pytest.approx((428, 0))

    def test_inverse_mapping(self):
        assert DEFAULT_AXIS.x_to_temperature(214) == 60
        assert DEFAULT_AXIS.y_to_duty(98) == 50
        assert from_display(-40, 500) == CurvePoint(20, 0)
        assert from_display(1000, -10) == CurvePoint(100, 100)

    def test_inverse_of_forward(self):
        for point in DEFAULT_CURVE_POINTS:
            (x, y), = to_display_path([point])
            assert from_display(x, y) == point

    def test_path_agnostic_to_count(self):
        assert to_display_path([]) == []
        assert len(to_display_path(BASE_POINTS[:3])) == 3

    def test_resized_keeps_domain(self):
        axis = AxisConfig(temp_min=0, temp_max=90).resized(900, 400)
        assert axis.temp_max == 90
        assert axis.plot_width == 900 - 36 - 16
        assert axis.temperature_to_x(90) == pytest.approx(axis.plot_width)

    def test_widget_offsets(self):
        assert DEFAULT_AXIS.widget_to_plot(36, 16) == (0, 0)
        assert DEFAULT_AXIS.plot_to_widget(0, 0) == (36, 16)


class TestValidation:
    def test_valid_curve_is_reordered(self):
        shuffled = list(reversed(BASE_POINTS))
        assert validate_points(shuffled) == BASE_POINTS

    def test_wrong_arity(self):
        with pytest.raises(ValidationError, match="exactly 8"):
            validate_points(BASE_POINTS[:7])

    def test_duplicate_temperature(self):
        points = list(BASE_POINTS)
        points[2] = CurvePoint(35, 90)
        with pytest.raises(ValidationError, match="Duplicate"):
            validate_points(points)

    def test_duty_out_of_range(self):
        points = list(BASE_POINTS)
        points[7] = CurvePoint(95, 101)
        with pytest.raises(ValidationError):
            validate_points(points)

    def test_non_integer_values(self):
        points = list(BASE_POINTS)
        points[0] = CurvePoint(25.5, 30)
        with pytest.raises(ValidationError, match="integer"):
            validate_points(points)

    def test_validate_curve_keeps_identity(self):
        curve = FanCurve(3, ControlMode.DC, tuple(reversed(BASE_POINTS)))
        validated = validate_curve(curve)
        assert validated.header_id == 3
        assert validated.mode == ControlMode.DC
        assert validated.points == BASE_POINTS

    def test_default_curve_is_valid(self):
        curve = default_curve(0, ControlMode.PWM)
        assert validate_curve(curve) == curve


class TestDutyAt:
    def test_interpolates(self):
        assert duty_at(DEFAULT_CURVE_POINTS, 45) == pytest.approx(40)
        assert duty_at(DEFAULT_CURVE_POINTS, 85) == pytest.approx(92.5)

    def test_saturates_at_ends(self):
        assert duty_at(DEFAULT_CURVE_POINTS, 10) == 30
        assert duty_at(DEFAULT_CURVE_POINTS, 99) == 100

    def test_empty_curve(self):
        with pytest.raises(ValueError):
            duty_at([], 50)
