"""
FanPanel - Data Model

Typed values exchanged with the privileged backend: fan headers, policies,
8-point curves, live readings and the laptop-style fan/profile values.

All values are immutable. State holders replace them wholesale instead of
mutating fields, so a reader never observes a half-updated object.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Number of control points in a firmware fan table
CURVE_POINT_COUNT = 8

# Data range of a single curve point
TEMP_LIMIT_MIN = 0
TEMP_LIMIT_MAX = 100
DUTY_LIMIT_MIN = 0
DUTY_LIMIT_MAX = 100


# =============================================================================
# Errors
# =============================================================================

class FanPanelError(Exception):
    """Base exception for all FanPanel errors."""
    pass


class BackendError(FanPanelError):
    """Raised when the backend could not complete a call."""
    pass


class TransientBackendError(BackendError):
    """Poll or write failed; retried on the next tick, never fatal."""
    pass


class UnsupportedModeError(BackendError):
    """The header does not support the requested control mode."""
    pass


class ValidationError(FanPanelError):
    """A curve is malformed and must not be sent to firmware."""
    pass


class ExportFormatError(FanPanelError):
    """An export document could not be understood."""
    pass


# =============================================================================
# Enums
# =============================================================================

class ControlMode(Enum):
    """Electrical scheme a desktop header is driven with."""
    PWM = "PWM"
    DC = "DC"
    AUTO = "AUTO"


class FanProfile(Enum):
    """Whether firmware uses its built-in table or the user curve."""
    STANDARD = "STANDARD"
    MANUAL = "MANUAL"


class FanTarget(Enum):
    """Fan headers exposed by laptop-style boards."""
    CPU = "cpu"
    GPU = "gpu"
    MID = "mid"


class ThermalProfile(Enum):
    """Laptop thermal-profile presets."""
    STANDARD = "standard"
    PERFORMANCE = "performance"
    SILENT = "silent"


HEADER_NAMES: Dict[int, str] = {
    0: "CPU Fan",
    1: "Chassis Fan 1",
    2: "Chassis Fan 2",
    3: "Chassis Fan 3",
    4: "Chassis Fan 4",
    5: "Chassis Fan 5",
    6: "Chassis Fan 6",
    7: "Chassis Fan 7",
}

FAN_TARGET_LABELS: Dict[FanTarget, str] = {
    FanTarget.CPU: "CPU",
    FanTarget.GPU: "GPU",
    FanTarget.MID: "Chassis",
}


def header_display_name(header_id: int) -> str:
    """Get the display name for a desktop fan header."""
    return HEADER_NAMES.get(header_id, f"Fan {header_id}")


# =============================================================================
# Desktop surface
# =============================================================================

@dataclass(frozen=True)
class FanHeader:
    """One controllable fan output."""
    header_id: int
    display_name: str = ""

    def __post_init__(self):
        if not self.display_name:
            object.__setattr__(self, "display_name", header_display_name(self.header_id))


@dataclass(frozen=True)
class FanPolicy:
    """One header's control configuration."""
    header_id: int
    mode: ControlMode
    profile: FanProfile = FanProfile.STANDARD
    temperature_source: str = ""
    low_rpm_limit: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fan_type": self.header_id,
            "mode": self.mode.value,
            "profile": self.profile.value,
            "source": self.temperature_source,
            "low_limit": self.low_rpm_limit,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FanPolicy":
        return cls(
            header_id=int(data["fan_type"]),
            mode=ControlMode(data["mode"]),
            profile=FanProfile(data.get("profile", "STANDARD")),
            temperature_source=data.get("source", "") or "",
            low_rpm_limit=int(data.get("low_limit", 0)),
        )


@dataclass(frozen=True)
class CurvePoint:
    """A single temperature -> duty-cycle mapping point."""
    temperature_c: int
    duty_pct: int

    def to_dict(self) -> Dict[str, int]:
        return {"temp_c": self.temperature_c, "duty_pct": self.duty_pct}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CurvePoint":
        return cls(temperature_c=data["temp_c"], duty_pct=data["duty_pct"])


@dataclass(frozen=True)
class FanCurve:
    """
    An 8-point curve for one (header, mode) pair.

    Points are kept as a tuple; firmware linearly interpolates between
    adjacent points sorted by ascending temperature.
    """
    header_id: int
    mode: ControlMode
    points: Tuple[CurvePoint, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.points, tuple):
            object.__setattr__(self, "points", tuple(self.points))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fan_type": self.header_id,
            "mode": self.mode.value,
            "points": [p.to_dict() for p in self.points],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FanCurve":
        return cls(
            header_id=int(data["fan_type"]),
            mode=ControlMode(data["mode"]),
            points=tuple(CurvePoint.from_dict(p) for p in data.get("points", [])),
        )


@dataclass(frozen=True)
class Reading:
    """A live sensor value (temperature, fan RPM, voltage, ...)."""
    identifier: str
    name: str
    kind: str
    value: float
    unit: str = ""
    channel: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "name": self.name,
            "kind": self.kind,
            "value": self.value,
            "unit": self.unit,
            "channel": self.channel,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reading":
        return cls(
            identifier=str(data["identifier"]),
            name=data.get("name", data["identifier"]),
            kind=data.get("kind", "temperature"),
            value=float(data["value"]),
            unit=data.get("unit", ""),
            channel=data.get("channel"),
        )


# Display order and titles for reading kinds
READING_KIND_LABELS: Dict[str, str] = {
    "temperature": "Temperatures",
    "fan": "Fan Speeds",
    "voltage": "Voltages",
    "power": "Power",
    "clock": "Clocks",
}


def group_readings(readings: Iterable[Reading]) -> List[Tuple[str, List[Reading]]]:
    """
    Group readings by kind.

    Known kinds come first in READING_KIND_LABELS order, then any other
    kind in the order it was first seen. Readings keep the backend's
    order within a group, and empty groups are left out.
    """
    groups: Dict[str, List[Reading]] = {}
    for reading in readings:
        groups.setdefault(reading.kind, []).append(reading)

    known = [kind for kind in READING_KIND_LABELS if kind in groups]
    other = [kind for kind in groups if kind not in READING_KIND_LABELS]
    return [(kind, groups[kind]) for kind in known + other]


def reading_kind_label(kind: str) -> str:
    return READING_KIND_LABELS.get(kind, kind.replace("_", " ").title())


# =============================================================================
# Laptop surface
# =============================================================================

@dataclass(frozen=True)
class FanSpeed:
    """RPM snapshot for a single laptop fan header."""
    target: FanTarget
    rpm: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FanSpeed":
        return cls(target=FanTarget(data["target"]), rpm=int(data["rpm"]))
