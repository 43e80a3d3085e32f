"""Shared fixtures: an in-memory backend and a runner driven by the test."""

import pytest

from fanpanel.backend import BACKEND_DESKTOP, FanBackend
from fanpanel.curve import AxisConfig
from fanpanel.models import (
    ControlMode,
    CurvePoint,
    FanCurve,
    FanPolicy,
    FanProfile,
    FanSpeed,
    FanTarget,
    Reading,
    ThermalProfile,
    TransientBackendError,
)
from fanpanel.sync import DesktopFanSync, LaptopFanSync

BASE_POINTS = (
    CurvePoint(25, 30),
    CurvePoint(35, 35),
    CurvePoint(45, 40),
    CurvePoint(55, 50),
    CurvePoint(65, 60),
    CurvePoint(75, 70),
    CurvePoint(85, 80),
    CurvePoint(95, 100),
)


class ManualRunner:
    """Holds submitted calls until the test completes them."""

    def __init__(self):
        self.pending = []
        self.timers = {}
        self.cancelled = []
        self._next_handle = 1

    def submit(self, func, callback):
        self.pending.append((func, callback))

    def schedule(self, interval_ms, func):
        handle = self._next_handle
        self._next_handle += 1
        self.timers[handle] = (interval_ms, func)
        return handle

    def cancel(self, handle):
        self.cancelled.append(handle)
        self.timers.pop(handle, None)

    def complete(self, index=0):
        """Run a pending call now and deliver its outcome."""
        func, callback = self.pending.pop(index)
        try:
            result = func()
        except Exception as e:
            callback(None, e)
        else:
            callback(result, None)

    def complete_with(self, index=0, result=None, error=None):
        """Deliver a chosen outcome for a pending call without running it."""
        _func, callback = self.pending.pop(index)
        callback(result, error)

    def run_all(self, limit=100):
        """Complete calls (including ones they trigger) until none are left."""
        for _ in range(limit):
            if not self.pending:
                return
            self.complete(0)
        raise AssertionError("Runner did not settle")

    def tick(self):
        for handle, (_interval, func) in list(self.timers.items()):
            if not func():
                self.timers.pop(handle, None)


class FakeBackend(FanBackend):
    """In-memory hardware. Methods named in ``fail`` raise a transient error."""

    def __init__(self):
        self.policies = {
            0: FanPolicy(0, ControlMode.PWM, FanProfile.MANUAL, "cpu_temp", 300),
            1: FanPolicy(1, ControlMode.DC, FanProfile.STANDARD, "mb_temp", 200),
        }
        self.curves = {
            (0, ControlMode.PWM): FanCurve(0, ControlMode.PWM, BASE_POINTS),
            (0, ControlMode.DC): FanCurve(0, ControlMode.DC, BASE_POINTS),
            (1, ControlMode.DC): FanCurve(1, ControlMode.DC, BASE_POINTS),
        }
        self.readings = [
            Reading("cpu_temp", "CPU", "temperature", 48.0, "°C"),
            Reading("fan0", "CPU Fan", "fan", 1250.0, "RPM", channel=0),
        ]
        self.modes = {0: [ControlMode.PWM, ControlMode.DC, ControlMode.AUTO], 1: [ControlMode.DC]}
        self.fan_speeds = [FanSpeed(FanTarget.CPU, 2100), FanSpeed(FanTarget.GPU, 1800)]
        self.thermal_profile = ThermalProfile.STANDARD
        self.fail = set()
        self.calls = []

    def _call(self, name, *args):
        self.calls.append((name, args))
        if name in self.fail:
            raise TransientBackendError(f"{name} failed")

    def count(self, name):
        return sum(1 for call, _args in self.calls if call == name)

    def backend_type(self):
        return BACKEND_DESKTOP

    def list_fan_policies(self):
        self._call("list_fan_policies")
        return [self.policies[h] for h in sorted(self.policies)]

    def set_fan_policy(self, policy):
        self._call("set_fan_policy", policy)
        self.policies[policy.header_id] = policy

    def get_fan_curve(self, header_id, mode):
        self._call("get_fan_curve", header_id, mode)
        return self.curves.get((header_id, mode))

    def set_fan_curve(self, curve):
        self._call("set_fan_curve", curve)
        self.curves[(curve.header_id, curve.mode)] = curve

    def list_readings(self):
        self._call("list_readings")
        return list(self.readings) if self.readings is not None else None

    def probe_supported_modes(self, header_id):
        self._call("probe_supported_modes", header_id)
        return list(self.modes.get(header_id, []))

    def list_fan_speeds(self):
        self._call("list_fan_speeds")
        return list(self.fan_speeds)

    def get_thermal_profile(self):
        self._call("get_thermal_profile")
        return self.thermal_profile

    def set_thermal_profile(self, profile):
        self._call("set_thermal_profile", profile)
        self.thermal_profile = profile


def widget_xy(axis: AxisConfig, temperature, duty):
    """Widget-space position of a (temperature, duty) point."""
    return axis.plot_to_widget(axis.temperature_to_x(temperature), axis.duty_to_y(duty))


@pytest.fixture
def runner():
    return ManualRunner()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def desktop(backend, runner):
    """A started desktop controller with its first refresh applied."""
    sync = DesktopFanSync(backend, runner, interval_ms=2000)
    sync.start()
    runner.run_all()
    yield sync
    sync.stop()


@pytest.fixture
def laptop(backend, runner):
    sync = LaptopFanSync(backend, runner, interval_ms=2000)
    sync.start()
    runner.run_all()
    yield sync
    sync.stop()
