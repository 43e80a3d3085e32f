"""
FanPanel - Backend Adapter

Call boundary to the privileged fan-control backend.

The backend itself (firmware access, elevation, hardware enumeration)
lives in a separate helper executable. This module only knows how to
invoke it and how to turn its JSON replies into model objects.

Read operations run the helper directly (no root needed).
Write operations run the helper via pkexec.
"""

import json
import logging
import shutil
import subprocess
from typing import Any, Dict, List, Optional, Sequence

from .models import (
    BackendError,
    ControlMode,
    FanCurve,
    FanHeader,
    FanPolicy,
    FanSpeed,
    Reading,
    ThermalProfile,
    TransientBackendError,
    UnsupportedModeError,
)

logger = logging.getLogger(__name__)

DEFAULT_HELPER_COMMAND = "fanpanel-helper"
DEFAULT_TIMEOUT_SECONDS = 10.0

BACKEND_DESKTOP = "desktop"
BACKEND_LAPTOP = "laptop"
BACKEND_UNAVAILABLE = "unavailable"


class FanBackend:
    """
    Operations the sync controllers consume.

    Every method may block; callers run them off the main loop. Failures
    are reported by raising ``BackendError`` subclasses.
    """

    def backend_type(self) -> str:
        """Return "desktop", "laptop" or "unavailable"."""
        raise NotImplementedError

    # Desktop surface

    def list_headers(self) -> List[FanHeader]:
        return [FanHeader(p.header_id) for p in self.list_fan_policies()]

    def list_fan_policies(self) -> List[FanPolicy]:
        raise NotImplementedError

    def set_fan_policy(self, policy: FanPolicy) -> None:
        raise NotImplementedError

    def get_fan_curve(self, header_id: int, mode: ControlMode) -> Optional[FanCurve]:
        """Return the curve, or None when the header does not support ``mode``."""
        raise NotImplementedError

    def set_fan_curve(self, curve: FanCurve) -> None:
        raise NotImplementedError

    def list_readings(self) -> Optional[List[Reading]]:
        """Live sensor values. Optional; None means "not available"."""
        return None

    def probe_supported_modes(self, header_id: int) -> List[ControlMode]:
        return list(ControlMode)

    # Laptop surface

    def list_fan_speeds(self) -> List[FanSpeed]:
        raise NotImplementedError

    def get_thermal_profile(self) -> ThermalProfile:
        raise NotImplementedError

    def set_thermal_profile(self, profile: ThermalProfile) -> None:
        raise NotImplementedError


class HelperBackend(FanBackend):
    """
    Backend that talks to the privileged helper executable.

    Each call runs ``<helper> <command> [args...]`` and expects exactly one
    JSON object on stdout: ``{"success": true, ...}`` or
    ``{"success": false, "error": "...", "kind": "unsupported"}``.
    """

    def __init__(
        self,
        helper_command: str = DEFAULT_HELPER_COMMAND,
        use_pkexec: bool = True,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._helper = helper_command
        self._use_pkexec = use_pkexec
        self._timeout = timeout_seconds
        self._pkexec_path = shutil.which("pkexec")

        if use_pkexec and not self._pkexec_path:
            logger.warning("pkexec not found, privileged operations may fail")

    def _build_command(self, privileged: bool, args: Sequence[Any]) -> List[str]:
        cmd = [self._helper, *[str(a) for a in args]]
        if privileged and self._use_pkexec:
            cmd.insert(0, self._pkexec_path or "pkexec")
        return cmd

    def _run_helper(self, *args, privileged: bool = False) -> Dict[str, Any]:
        """
        Run the helper and return its parsed JSON response.

        Raises:
            TransientBackendError: timeout, cancelled authentication,
                helper failure or malformed output.
            UnsupportedModeError: the helper reported kind "unsupported".
        """
        cmd = self._build_command(privileged, args)
        logger.debug(f"Running helper: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            raise TransientBackendError("Operation timed out")
        except FileNotFoundError:
            raise TransientBackendError(f"Helper not found: {cmd[0]}")

        if result.returncode != 0 and not result.stdout:
            # pkexec was cancelled or failed before running the helper
            if "dismissed" in result.stderr.lower() or result.returncode == 126:
                raise TransientBackendError("Authentication cancelled")
            raise TransientBackendError(
                result.stderr.strip() or f"Helper failed with code {result.returncode}"
            )

        try:
            response = json.loads(result.stdout)
        except json.JSONDecodeError:
            raise TransientBackendError(f"Invalid helper response: {result.stdout!r}")

        if not isinstance(response, dict):
            raise TransientBackendError(f"Invalid helper response: {result.stdout!r}")

        if not response.get("success"):
            message = response.get("error", "Unknown error")
            if response.get("kind") == "unsupported":
                raise UnsupportedModeError(message)
            raise TransientBackendError(message)

        return response

    def _field(self, response: Dict[str, Any], name: str) -> Any:
        if name not in response:
            raise TransientBackendError(f"Helper response missing '{name}'")
        return response[name]

    def _decode(self, factory, payload):
        try:
            return factory(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise TransientBackendError(f"Malformed helper payload: {e}")

    # =========================================================================
    # Read operations
    # =========================================================================

    def backend_type(self) -> str:
        try:
            response = self._run_helper("backend-type")
        except BackendError as e:
            logger.warning(f"Backend unavailable: {e}")
            return BACKEND_UNAVAILABLE
        return response.get("backend", BACKEND_UNAVAILABLE)

    def list_fan_policies(self) -> List[FanPolicy]:
        response = self._run_helper("get-fan-policies")
        return [self._decode(FanPolicy.from_dict, p) for p in self._field(response, "policies")]

    def get_fan_curve(self, header_id: int, mode: ControlMode) -> Optional[FanCurve]:
        try:
            response = self._run_helper("get-fan-curve", header_id, mode.value)
        except UnsupportedModeError:
            return None
        curve = response.get("curve")
        if curve is None:
            return None
        return self._decode(FanCurve.from_dict, curve)

    def list_readings(self) -> Optional[List[Reading]]:
        response = self._run_helper("get-readings")
        readings = response.get("readings")
        if readings is None:
            return None
        return [self._decode(Reading.from_dict, r) for r in readings]

    def probe_supported_modes(self, header_id: int) -> List[ControlMode]:
        response = self._run_helper("probe-modes", header_id)
        modes = self._field(response, "modes")
        return [self._decode(ControlMode, m) for m in modes]

    def list_fan_speeds(self) -> List[FanSpeed]:
        response = self._run_helper("get-fan-speeds")
        return [self._decode(FanSpeed.from_dict, f) for f in self._field(response, "fans")]

    def get_thermal_profile(self) -> ThermalProfile:
        response = self._run_helper("get-thermal-profile")
        return self._decode(ThermalProfile, self._field(response, "profile"))

    # =========================================================================
    # Write operations (via pkexec)
    # =========================================================================

    def set_fan_policy(self, policy: FanPolicy) -> None:
        self._run_helper("set-fan-policy", json.dumps(policy.to_dict()), privileged=True)
        logger.info(
            f"Header {policy.header_id} policy set to {policy.mode.value}/{policy.profile.value}"
        )

    def set_fan_curve(self, curve: FanCurve) -> None:
        self._run_helper("set-fan-curve", json.dumps(curve.to_dict()), privileged=True)
        logger.info(f"Header {curve.header_id} {curve.mode.value} curve written")

    def set_thermal_profile(self, profile: ThermalProfile) -> None:
        self._run_helper("set-thermal-profile", profile.value, privileged=True)
        logger.info(f"Thermal profile set to {profile.value}")
