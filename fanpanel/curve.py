"""
FanPanel - Curve Model

Pure geometry and validation for 8-point fan curves: clamping, stable
reordering, the mapping between (temperature, duty) and the plot area
of the curve editor, and the rules a curve must satisfy before it may be
written to firmware.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .models import (
    CURVE_POINT_COUNT,
    DUTY_LIMIT_MAX,
    DUTY_LIMIT_MIN,
    TEMP_LIMIT_MAX,
    TEMP_LIMIT_MIN,
    ControlMode,
    CurvePoint,
    FanCurve,
    ValidationError,
)

# Default temperature axis of the editor (degrees Celsius)
DEFAULT_TEMP_MIN = 20
DEFAULT_TEMP_MAX = 100

# Gentle ramp from 30% at 30C to 100% at 90C
DEFAULT_CURVE_POINTS: Tuple[CurvePoint, ...] = (
    CurvePoint(30, 30),
    CurvePoint(40, 35),
    CurvePoint(50, 45),
    CurvePoint(60, 55),
    CurvePoint(70, 65),
    CurvePoint(75, 75),
    CurvePoint(80, 85),
    CurvePoint(90, 100),
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _saturate(value: float, low: int, high: int) -> int:
    if value != value:  # NaN
        return low
    if value <= low:
        return low
    if value >= high:
        return high
    return _round_half_up(value)


def clamp_temperature(raw: float, temp_min: int = DEFAULT_TEMP_MIN,
                      temp_max: int = DEFAULT_TEMP_MAX) -> int:
    """Round to the nearest degree and saturate at the axis edges."""
    return _saturate(raw, temp_min, temp_max)


def clamp_duty(raw: float) -> int:
    """Round to the nearest percent and saturate at 0..100."""
    return _saturate(raw, DUTY_LIMIT_MIN, DUTY_LIMIT_MAX)


def reorder_by_temperature(points: Iterable[CurvePoint]) -> Tuple[CurvePoint, ...]:
    """Stable sort ascending by temperature."""
    return tuple(sorted(points, key=lambda p: p.temperature_c))


def reorder_tracking(points: Sequence[CurvePoint], index: int) -> Tuple[Tuple[CurvePoint, ...], int]:
    """
    Reorder points and report where the point at ``index`` ended up.

    Used while dragging so the dragged index follows its point when it
    crosses a neighbour.
    """
    order = sorted(range(len(points)), key=lambda i: points[i].temperature_c)
    return tuple(points[i] for i in order), order.index(index)


def validate_points(points: Sequence[CurvePoint]) -> Tuple[CurvePoint, ...]:
    """
    Check a point set before it leaves the editor.

    Returns:
        The stably reordered points.

    Raises:
        ValidationError: wrong arity, non-integer or out-of-range values,
            or duplicate temperatures.
    """
    if len(points) != CURVE_POINT_COUNT:
        raise ValidationError(
            f"Curve must have exactly {CURVE_POINT_COUNT} points, got {len(points)}"
        )

    for p in points:
        for name, value, low, high in (
            ("temperature", p.temperature_c, TEMP_LIMIT_MIN, TEMP_LIMIT_MAX),
            ("duty", p.duty_pct, DUTY_LIMIT_MIN, DUTY_LIMIT_MAX),
        ):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"Point {name} must be an integer, got {value!r}")
            if not low <= value <= high:
                raise ValidationError(f"Point {name} {value} outside {low}..{high}")

    ordered = reorder_by_temperature(points)
    for a, b in zip(ordered, ordered[1:]):
        if a.temperature_c == b.temperature_c:
            raise ValidationError(f"Duplicate temperature {a.temperature_c}°C in curve")
    return ordered


def validate_curve(curve: FanCurve) -> FanCurve:
    """Validate a curve, returning it with its points reordered."""
    return FanCurve(curve.header_id, curve.mode, validate_points(curve.points))


def default_curve(header_id: int, mode: ControlMode) -> FanCurve:
    """A sensible default curve for any header."""
    return FanCurve(header_id, mode, DEFAULT_CURVE_POINTS)


def duty_at(points: Sequence[CurvePoint], temperature: float) -> float:
    """
    Linearly interpolate the duty a curve gives at ``temperature``.

    Saturates at the first and last point.
    """
    if not points:
        raise ValueError("Cannot interpolate an empty curve")

    ordered = reorder_by_temperature(points)
    if temperature <= ordered[0].temperature_c:
        return float(ordered[0].duty_pct)
    if temperature >= ordered[-1].temperature_c:
        return float(ordered[-1].duty_pct)

    for a, b in zip(ordered, ordered[1:]):
        if a.temperature_c <= temperature <= b.temperature_c:
            span = b.temperature_c - a.temperature_c
            if span == 0:
                return float(b.duty_pct)
            return a.duty_pct + (b.duty_pct - a.duty_pct) * (temperature - a.temperature_c) / span
    return float(ordered[-1].duty_pct)


@dataclass(frozen=True)
class AxisConfig:
    """
    Geometry of the curve plot.

    Plot space has its origin at the top-left of the plot area:
    temperature grows to the right, duty grows upwards (y is inverted).
    Widget space adds the paddings around the plot.
    """
    temp_min: int = DEFAULT_TEMP_MIN
    temp_max: int = DEFAULT_TEMP_MAX
    duty_min: int = DUTY_LIMIT_MIN
    duty_max: int = DUTY_LIMIT_MAX
    width: float = 480
    height: float = 240
    pad_left: float = 36
    pad_top: float = 16
    pad_right: float = 16
    pad_bottom: float = 28

    @property
    def plot_width(self) -> float:
        return max(1.0, self.width - self.pad_left - self.pad_right)

    @property
    def plot_height(self) -> float:
        return max(1.0, self.height - self.pad_top - self.pad_bottom)

    def resized(self, width: float, height: float) -> "AxisConfig":
        return AxisConfig(
            self.temp_min, self.temp_max, self.duty_min, self.duty_max,
            width, height, self.pad_left, self.pad_top, self.pad_right, self.pad_bottom,
        )

    # Forward mapping (domain -> plot space)

    def temperature_to_x(self, temperature: float) -> float:
        return (temperature - self.temp_min) / (self.temp_max - self.temp_min) * self.plot_width

    def duty_to_y(self, duty: float) -> float:
        return (1 - (duty - self.duty_min) / (self.duty_max - self.duty_min)) * self.plot_height

    # Inverse mapping (plot space -> domain), clamped

    def x_to_temperature(self, x: float) -> int:
        raw = self.temp_min + x / self.plot_width * (self.temp_max - self.temp_min)
        return clamp_temperature(raw, self.temp_min, self.temp_max)

    def y_to_duty(self, y: float) -> int:
        raw = self.duty_max - y / self.plot_height * (self.duty_max - self.duty_min)
        return clamp_duty(raw)

    # Widget space

    def widget_to_plot(self, x: float, y: float) -> Tuple[float, float]:
        return x - self.pad_left, y - self.pad_top

    def plot_to_widget(self, x: float, y: float) -> Tuple[float, float]:
        return x + self.pad_left, y + self.pad_top


DEFAULT_AXIS = AxisConfig()


def to_display_path(points: Iterable[CurvePoint], axis: AxisConfig = DEFAULT_AXIS) -> List[Tuple[float, float]]:
    """Map points to plot-space (x, y) pairs, in the given order."""
    return [(axis.temperature_to_x(p.temperature_c), axis.duty_to_y(p.duty_pct)) for p in points]


def from_display(x: float, y: float, axis: AxisConfig = DEFAULT_AXIS) -> CurvePoint:
    """Inverse of ``to_display_path`` for a single plot-space position."""
    return CurvePoint(axis.x_to_temperature(x), axis.y_to_duty(y))
