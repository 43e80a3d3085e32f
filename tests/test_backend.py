import json
import subprocess

import pytest

from fanpanel import backend as backend_module
from fanpanel.backend import BACKEND_UNAVAILABLE, HelperBackend
from fanpanel.models import (
    ControlMode,
    CurvePoint,
    FanCurve,
    FanPolicy,
    FanProfile,
    FanTarget,
    ThermalProfile,
    TransientBackendError,
    UnsupportedModeError,
)

from .conftest import BASE_POINTS


class FakeHelper:
    """Stands in for subprocess.run, recording commands."""

    def __init__(self):
        self.commands = []
        self.replies = []

    def reply(self, payload=None, returncode=0, stderr="", stdout=None):
        if stdout is None:
            stdout = json.dumps(payload)
        self.replies.append((returncode, stdout, stderr))

    def __call__(self, cmd, capture_output, text, timeout):
        self.commands.append(cmd)
        returncode, stdout, stderr = self.replies.pop(0)
        if isinstance(returncode, BaseException):
            raise returncode
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)


@pytest.fixture
def helper(monkeypatch):
    fake = FakeHelper()
    monkeypatch.setattr(backend_module.subprocess, "run", fake)
    monkeypatch.setattr(backend_module.shutil, "which", lambda name: "/usr/bin/pkexec")
    return fake


@pytest.fixture
def backend(helper):
    return HelperBackend(helper_command="fanpanel-helper", use_pkexec=True, timeout_seconds=3)


def test_list_policies(helper, backend):
    helper.reply({"success": True, "policies": [
        {"fan_type": 0, "mode": "PWM", "profile": "MANUAL", "source": "cpu_temp", "low_limit": 300},
        {"fan_type": 2, "mode": "DC"},
    ]})
    policies = backend.list_fan_policies()
    assert policies[0] == FanPolicy(0, ControlMode.PWM, FanProfile.MANUAL, "cpu_temp", 300)
    assert policies[1].profile == FanProfile.STANDARD
    assert helper.commands == [["fanpanel-helper", "get-fan-policies"]]
    assert [h.display_name for h in _headers(helper, backend)] == ["CPU Fan"]


def _headers(helper, backend):
    helper.reply({"success": True, "policies": [{"fan_type": 0, "mode": "PWM"}]})
    return backend.list_headers()


def test_get_curve(helper, backend):
    curve = FanCurve(0, ControlMode.PWM, BASE_POINTS)
    helper.reply({"success": True, "curve": curve.to_dict()})
    assert backend.get_fan_curve(0, ControlMode.PWM) == curve
    assert helper.commands[0] == ["fanpanel-helper", "get-fan-curve", "0", "PWM"]


def test_get_curve_unsupported(helper, backend):
    helper.reply({"success": False, "kind": "unsupported", "error": "DC not supported"})
    assert backend.get_fan_curve(1, ControlMode.DC) is None
    helper.reply({"success": True, "curve": None})
    assert backend.get_fan_curve(1, ControlMode.DC) is None


def test_unsupported_error_kind(helper, backend):
    helper.reply({"success": False, "kind": "unsupported", "error": "no such mode"})
    with pytest.raises(UnsupportedModeError):
        backend.probe_supported_modes(4)


def test_writes_use_pkexec(helper, backend):
    helper.reply({"success": True})
    policy = FanPolicy(1, ControlMode.DC, FanProfile.MANUAL, "mb_temp", 200)
    backend.set_fan_policy(policy)
    cmd = helper.commands[0]
    assert cmd[:3] == ["/usr/bin/pkexec", "fanpanel-helper", "set-fan-policy"]
    assert FanPolicy.from_dict(json.loads(cmd[3])) == policy

    helper.reply({"success": True})
    backend.set_fan_curve(FanCurve(1, ControlMode.DC, BASE_POINTS))
    assert json.loads(helper.commands[1][3])["points"][0] == {"temp_c": 25, "duty_pct": 30}


def test_writes_without_pkexec(helper):
    backend = HelperBackend(use_pkexec=False)
    helper.reply({"success": True})
    backend.set_thermal_profile(ThermalProfile.SILENT)
    assert helper.commands == [["fanpanel-helper", "set-thermal-profile", "silent"]]


def test_write_rejected(helper, backend):
    helper.reply({"success": False, "error": "EC write failed"})
    with pytest.raises(TransientBackendError, match="EC write failed"):
        backend.set_fan_curve(FanCurve(0, ControlMode.PWM, BASE_POINTS))


def test_authentication_cancelled(helper, backend):
    helper.reply(returncode=126, stdout="", stderr="Request dismissed")
    with pytest.raises(TransientBackendError, match="Authentication cancelled"):
        backend.set_thermal_profile(ThermalProfile.PERFORMANCE)


def test_timeout(helper, backend):
    helper.replies.append((subprocess.TimeoutExpired("fanpanel-helper", 3), "", ""))
    with pytest.raises(TransientBackendError, match="timed out"):
        backend.list_fan_policies()


def test_missing_helper(helper, backend):
    helper.replies.append((FileNotFoundError(), "", ""))
    with pytest.raises(TransientBackendError, match="Helper not found"):
        backend.list_fan_policies()


def test_garbage_output(helper, backend):
    helper.reply(stdout="segfault")
    with pytest.raises(TransientBackendError, match="Invalid helper response"):
        backend.list_fan_policies()
    helper.reply(stdout="[]")
    with pytest.raises(TransientBackendError):
        backend.list_fan_policies()


def test_malformed_payload(helper, backend):
    helper.reply({"success": True, "policies": [{"mode": "PWM"}]})
    with pytest.raises(TransientBackendError, match="Malformed"):
        backend.list_fan_policies()
    helper.reply({"success": True})
    with pytest.raises(TransientBackendError, match="missing"):
        backend.list_fan_policies()


def test_backend_type(helper, backend):
    helper.reply({"success": True, "backend": "laptop"})
    assert backend.backend_type() == "laptop"
    helper.reply(returncode=1, stdout="", stderr="no EC")
    assert backend.backend_type() == BACKEND_UNAVAILABLE


def test_readings(helper, backend):
    helper.reply({"success": True, "readings": [
        {"identifier": "fan0", "name": "CPU Fan", "kind": "fan", "value": 1200, "unit": "RPM", "channel": 0},
        {"identifier": "cpu_temp", "value": 51.5},
    ]})
    readings = backend.list_readings()
    assert readings[0].channel == 0
    assert readings[1].kind == "temperature"
    assert readings[1].name == "cpu_temp"

    helper.reply({"success": True, "readings": None})
    assert backend.list_readings() is None


def test_laptop_reads(helper, backend):
    helper.reply({"success": True, "fans": [{"target": "cpu", "rpm": 2400}]})
    assert backend.list_fan_speeds()[0].target == FanTarget.CPU
    helper.reply({"success": True, "profile": "performance"})
    assert backend.get_thermal_profile() == ThermalProfile.PERFORMANCE


def test_probe_modes(helper, backend):
    helper.reply({"success": True, "modes": ["PWM", "AUTO"]})
    assert backend.probe_supported_modes(0) == [ControlMode.PWM, ControlMode.AUTO]


def test_curve_point_wire_names():
    assert CurvePoint.from_dict({"temp_c": 40, "duty_pct": 55}) == CurvePoint(40, 55)
