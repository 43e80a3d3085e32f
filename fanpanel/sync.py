"""
FanPanel - Sync Controllers

Keeps the local view of hardware state consistent with the backend:
periodic refresh, optimistic writes, and rollback by re-fetch.

Every managed resource (the policy batch, the reading set, one curve,
...) is tracked under a key with its own Idle/Fetching/Writing state.
Backend calls never run on the caller's thread; they are handed to a
runner which delivers the outcome back on the main loop, so all state
mutation happens on one thread.

A runner provides:
    submit(func, callback)       run func() off-loop, then callback(result, error)
    schedule(interval_ms, func)  repeating timer, returns a handle; func returns
                                 True to keep running
    cancel(handle)               stop a timer
"""

import itertools
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from .cache import ABSENT, CurveCache
from .curve import validate_curve
from .models import (
    ControlMode,
    FanCurve,
    FanHeader,
    FanPolicy,
    FanSpeed,
    Reading,
    ThermalProfile,
    UnsupportedModeError,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 2000

CompletionCallback = Callable[[bool, Optional[BaseException]], None]


class SyncState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    WRITING = "writing"


class CurveStatus(Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    UNSUPPORTED = "unsupported"
    READY = "ready"


@dataclass
class _Resource:
    """Bookkeeping for one key."""
    fetch_in_flight: bool = False
    fetch_seq: int = 0
    write_seq: int = 0
    pending_writes: int = 0

    @property
    def state(self) -> SyncState:
        if self.pending_writes:
            return SyncState.WRITING
        if self.fetch_in_flight:
            return SyncState.FETCHING
        return SyncState.IDLE


@dataclass(frozen=True)
class FailedWrite:
    """
    A user intent the backend rejected, kept so it can be reissued.

    ``key`` identifies the intent (one header's policy, one curve, ...),
    which can be narrower than the resource the write locks.
    """
    key: Hashable
    description: str
    retry: Callable[[], None]


class SyncController:
    """
    Base state machine shared by the desktop and laptop surfaces.

    Subclasses implement ``_refresh(force)`` to issue their timer-driven
    fetches and set ``primary_key`` to the resource whose first result
    ends the initial loading state.
    """

    primary_key: Hashable = None

    def __init__(self, backend, runner, interval_ms: int = DEFAULT_POLL_INTERVAL_MS):
        self._backend = backend
        self._runner = runner
        self._interval_ms = interval_ms
        self._timer = None
        self._alive = False
        self._generation = 0
        self._seq = itertools.count(1)
        self._resources: Dict[Hashable, _Resource] = {}
        self._listeners: List[Callable[["SyncController"], None]] = []

        self.loading = True
        self.last_error: Optional[str] = None
        self._error_origin: Optional[Tuple[str, Hashable]] = None
        # Rejected intents by intent key, oldest first
        self.failed_writes: Dict[Hashable, FailedWrite] = {}
        self._intent_seq: Dict[Hashable, int] = {}

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._alive

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def start(self) -> None:
        """Fetch immediately and start the refresh timer."""
        if self._alive:
            return
        self._alive = True
        self._refresh(force=True)
        self._timer = self._runner.schedule(self._interval_ms, self._on_tick)
        logger.info(f"{type(self).__name__} started ({self._interval_ms}ms)")

    def stop(self) -> None:
        """Stop the timer and ignore results of calls still in flight."""
        if not self._alive:
            return
        self._alive = False
        self._generation += 1
        if self._timer is not None:
            self._runner.cancel(self._timer)
            self._timer = None
        for resource in self._resources.values():
            resource.fetch_in_flight = False
            resource.pending_writes = 0
        logger.info(f"{type(self).__name__} stopped")

    def set_interval(self, interval_ms: int) -> None:
        """Change the refresh cadence, restarting the timer if running."""
        self._interval_ms = interval_ms
        if self._alive:
            if self._timer is not None:
                self._runner.cancel(self._timer)
            self._timer = self._runner.schedule(interval_ms, self._on_tick)
        logger.info(f"Refresh interval updated to {interval_ms}ms")

    def refresh(self) -> None:
        """Explicit refresh request."""
        if self._alive:
            self._refresh(force=True)

    def _refresh(self, force: bool) -> None:
        raise NotImplementedError

    def _on_tick(self) -> bool:
        if not self._alive:
            return False
        self._refresh(force=False)
        return True

    # =========================================================================
    # Observation
    # =========================================================================

    def connect_changed(self, callback: Callable[["SyncController"], None]) -> None:
        self._listeners.append(callback)

    def disconnect_changed(self, callback: Callable[["SyncController"], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Change listener failed: {e}")

    def state_of(self, key: Hashable) -> SyncState:
        resource = self._resources.get(key)
        return resource.state if resource else SyncState.IDLE

    def dismiss_error(self) -> None:
        if self.last_error is not None:
            self.last_error = None
            self._error_origin = None
            self._notify()

    @property
    def error_origin(self) -> Optional[str]:
        """Where the error in the slot came from: "fetch", "write" or None."""
        return self._error_origin[0] if self._error_origin else None

    @property
    def last_failed_write(self) -> Optional[FailedWrite]:
        """Most recently rejected intent still waiting for a retry."""
        if not self.failed_writes:
            return None
        return next(reversed(list(self.failed_writes.values())))

    @property
    def error_action(self) -> Optional[str]:
        """
        What an error display should offer: "retry", "dismiss" or None.

        A fetch error is dismissed even while rejected writes wait, since
        retrying them would not address the error on show.
        """
        if self.last_error is not None and self.error_origin != "write":
            return "dismiss"
        if self.failed_writes:
            return "retry"
        if self.last_error is not None:
            return "dismiss"
        return None

    def retry_failed_write(self, intent: Optional[Hashable] = None) -> bool:
        """
        Reissue one rejected write, the most recent unless ``intent`` is given.

        Returns False if there is nothing to retry.
        """
        if intent is None:
            failed = self.last_failed_write
        else:
            failed = self.failed_writes.get(intent)
        if failed is None or not self._alive:
            return False
        logger.info(f"Retrying: {failed.description}")
        del self.failed_writes[failed.key]
        failed.retry()
        return True

    def retry_failed_writes(self) -> int:
        """Reissue every rejected write. Returns how many were reissued."""
        count = 0
        for intent in list(self.failed_writes):
            if self.retry_failed_write(intent):
                count += 1
        return count

    # =========================================================================
    # Protocol
    # =========================================================================

    def _resource(self, key: Hashable) -> _Resource:
        resource = self._resources.get(key)
        if resource is None:
            resource = self._resources[key] = _Resource()
        return resource

    def _record_error(self, origin: str, key: Hashable, error: BaseException) -> None:
        self.last_error = str(error) or type(error).__name__
        self._error_origin = (origin, key)

    def _clear_error_for(self, origin: Optional[str], key: Hashable) -> None:
        if self._error_origin is None:
            return
        error_origin, error_key = self._error_origin
        if error_key == key and (origin is None or origin == error_origin):
            self.last_error = None
            self._error_origin = None

    def _fetch(
        self,
        key: Hashable,
        call: Callable[[], Any],
        apply: Callable[[Any], None],
        force: bool = False,
        quiet: bool = False,
        on_error: Optional[Callable[[BaseException], bool]] = None,
    ) -> bool:
        """
        Issue a fetch for ``key``.

        Skipped while a write on the key is pending (its completion
        refreshes), and, unless forced, while a fetch is already in flight.
        Only the latest issued fetch may apply, and only if no write was
        issued after it.

        Returns True if a call was issued.
        """
        if not self._alive:
            return False
        resource = self._resource(key)
        if resource.pending_writes:
            return False
        if resource.fetch_in_flight and not force:
            return False

        seq = next(self._seq)
        generation = self._generation
        resource.fetch_seq = seq
        resource.fetch_in_flight = True

        def done(result, error):
            if not self._alive or generation != self._generation:
                return
            if seq != resource.fetch_seq:
                logger.debug(f"Dropping superseded fetch for {key!r}")
                return
            resource.fetch_in_flight = False
            if seq < resource.write_seq:
                logger.debug(f"Dropping fetch for {key!r} issued before a write")
                return

            if error is not None:
                if on_error is not None and on_error(error):
                    self._clear_error_for("fetch", key)
                elif quiet:
                    logger.warning(f"Fetch {key!r} failed: {error}")
                else:
                    logger.error(f"Fetch {key!r} failed: {error}")
                    self._record_error("fetch", key, error)
            else:
                apply(result)
                self._clear_error_for("fetch", key)

            if key == self.primary_key:
                self.loading = False
            self._notify()

        self._runner.submit(call, done)
        return True

    def _write(
        self,
        key: Hashable,
        call: Callable[[], Any],
        optimistic: Callable[[], None],
        refresh: Callable[[], Any],
        description: str,
        on_complete: Optional[CompletionCallback] = None,
        intent: Optional[Hashable] = None,
    ) -> bool:
        """
        Apply ``optimistic`` now, then run ``call`` on the backend.

        ``key`` is the resource whose fetches the write holds off;
        ``intent`` (defaults to ``key``) names what the user changed and
        owns the error and the retry entry.

        Success keeps the optimistic value; failure records the error and
        keeps the intent for ``retry_failed_write``. Either way ``refresh``
        runs on completion so the cache converges on hardware truth.
        """
        if not self._alive:
            logger.warning(f"Ignoring write while stopped: {description}")
            return False

        if intent is None:
            intent = key
        resource = self._resource(key)
        seq = next(self._seq)
        generation = self._generation
        resource.write_seq = seq
        resource.pending_writes += 1
        self._intent_seq[intent] = seq

        optimistic()
        self._notify()

        def done(result, error):
            if not self._alive or generation != self._generation:
                return
            resource.pending_writes = max(0, resource.pending_writes - 1)
            latest = self._intent_seq.get(intent) == seq

            if error is not None and not latest:
                logger.warning(f"{description} failed after a newer change: {error}")
            elif error is not None:
                logger.error(f"{description} failed: {error}")
                self._record_error("write", intent, error)
                self.failed_writes.pop(intent, None)
                self.failed_writes[intent] = FailedWrite(
                    intent,
                    description,
                    lambda: self._write(key, call, optimistic, refresh, description,
                                        on_complete, intent),
                )
            elif latest:
                logger.info(f"{description} confirmed")
                self._clear_error_for(None, intent)
                self.failed_writes.pop(intent, None)
            else:
                logger.debug(f"{description} confirmed after a newer change")

            self._notify()
            if on_complete is not None:
                try:
                    on_complete(error is None, error)
                except Exception as e:
                    logger.error(f"Write completion callback failed: {e}")
            refresh()

        self._runner.submit(call, done)
        return True


# =============================================================================
# Desktop surface: per-header policy + curves
# =============================================================================

POLICIES = "policies"
READINGS = "readings"


def curve_key(header_id: int, mode: ControlMode) -> Tuple[str, int, ControlMode]:
    return ("curve", header_id, mode)


def modes_key(header_id: int) -> Tuple[str, int]:
    return ("modes", header_id)


def policy_key(header_id: int) -> Tuple[str, int]:
    return ("policy", header_id)


class DesktopFanSync(SyncController):
    """
    Desktop boards: per-header policies and readings on the timer, curves
    fetched lazily once per (header, mode) selection.
    """

    primary_key = POLICIES

    def __init__(self, backend, runner, interval_ms: int = DEFAULT_POLL_INTERVAL_MS):
        super().__init__(backend, runner, interval_ms)
        self.policies: Tuple[FanPolicy, ...] = ()
        self.readings: Tuple[Reading, ...] = ()
        self.curves = CurveCache()
        self.supported_modes: Dict[int, Tuple[ControlMode, ...]] = {}

    def _refresh(self, force: bool) -> None:
        self._fetch_policies(force)
        # Readings are optional: a failure keeps the previous set and is
        # never surfaced as an error.
        self._fetch(READINGS, self._backend.list_readings, self._apply_readings,
                    force=force, quiet=True)

    def _fetch_policies(self, force: bool = True) -> bool:
        return self._fetch(POLICIES, self._backend.list_fan_policies, self._apply_policies,
                           force=force)

    def _apply_policies(self, policies) -> None:
        self.policies = tuple(policies)

    def _apply_readings(self, readings) -> None:
        self.readings = tuple(readings) if readings else ()

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def headers(self) -> Tuple[FanHeader, ...]:
        return tuple(FanHeader(p.header_id) for p in self.policies)

    def policy(self, header_id: int) -> Optional[FanPolicy]:
        for p in self.policies:
            if p.header_id == header_id:
                return p
        return None

    def rpm_for_header(self, header_id: int) -> Optional[float]:
        """RPM of the fan reading wired to this header, if any."""
        for r in self.readings:
            if r.kind == "fan" and r.channel == header_id:
                return r.value
        return None

    def reading(self, identifier: str) -> Optional[Reading]:
        for r in self.readings:
            if r.identifier == identifier:
                return r
        return None

    def curve_status(self, header_id: int, mode: ControlMode) -> CurveStatus:
        entry = self.curves.entry(header_id, mode)
        if entry is ABSENT:
            return CurveStatus.UNSUPPORTED
        if entry is not None:
            return CurveStatus.READY
        if self.state_of(curve_key(header_id, mode)) == SyncState.FETCHING:
            return CurveStatus.LOADING
        return CurveStatus.NOT_LOADED

    # =========================================================================
    # Policy
    # =========================================================================

    def update_policy(self, policy: FanPolicy, on_complete: Optional[CompletionCallback] = None) -> bool:
        """Optimistically replace one header's policy and write it."""
        def optimistic():
            self.policies = tuple(
                policy if p.header_id == policy.header_id else p for p in self.policies
            )

        return self._write(
            POLICIES,
            lambda: self._backend.set_fan_policy(policy),
            optimistic,
            self._fetch_policies,
            f"Set header {policy.header_id} policy to {policy.mode.value}/{policy.profile.value}",
            on_complete,
            intent=policy_key(policy.header_id),
        )

    def change_mode(self, header_id: int, mode: ControlMode) -> bool:
        """Switch a header's control mode and load that mode's curve."""
        current = self.policy(header_id)
        if current is None:
            logger.warning(f"No policy known for header {header_id}")
            return False
        issued = self.update_policy(replace(current, mode=mode))
        self.load_curve(header_id, mode)
        return issued

    # =========================================================================
    # Curves
    # =========================================================================

    def load_curve(self, header_id: int, mode: ControlMode, force: bool = False) -> bool:
        """
        Fetch a curve unless it is already cached (or known unsupported).

        ``force`` is an explicit reload and also retries unsupported keys.
        """
        if not force and self.curves.entry(header_id, mode) is not None:
            return False

        def apply(curve):
            if curve is None:
                self.curves.mark_absent(header_id, mode)
            else:
                self.curves.put(header_id, mode, FanCurve(header_id, mode, curve.points))

        def unsupported(error):
            if isinstance(error, UnsupportedModeError):
                self.curves.mark_absent(header_id, mode)
                return True
            return False

        return self._fetch(
            curve_key(header_id, mode),
            lambda: self._backend.get_fan_curve(header_id, mode),
            apply,
            force=force,
            on_error=unsupported,
        )

    def reload_curve(self, header_id: int, mode: ControlMode) -> bool:
        return self.load_curve(header_id, mode, force=True)

    def save_curve(self, curve: FanCurve, on_complete: Optional[CompletionCallback] = None) -> bool:
        """
        Validate, optimistically cache, and write a curve.

        Raises:
            ValidationError: the curve is malformed; nothing is written.
        """
        curve = validate_curve(curve)
        header_id, mode = curve.header_id, curve.mode

        return self._write(
            curve_key(header_id, mode),
            lambda: self._backend.set_fan_curve(curve),
            lambda: self.curves.put(header_id, mode, curve),
            lambda: self.load_curve(header_id, mode, force=True),
            f"Write header {header_id} {mode.value} curve",
            on_complete,
        )

    # =========================================================================
    # Modes
    # =========================================================================

    def probe_modes(self, header_id: int, force: bool = False) -> bool:
        if not force and header_id in self.supported_modes:
            return False

        def apply(modes):
            updated = dict(self.supported_modes)
            updated[header_id] = tuple(modes)
            self.supported_modes = updated

        return self._fetch(
            modes_key(header_id),
            lambda: self._backend.probe_supported_modes(header_id),
            apply,
            force=force,
            quiet=True,
        )


# =============================================================================
# Laptop surface: fan RPM + thermal profile
# =============================================================================

FANS = "fans"
PROFILE = "profile"


class LaptopFanSync(SyncController):
    """Laptop boards: per-target RPM and the active thermal profile."""

    primary_key = FANS

    def __init__(self, backend, runner, interval_ms: int = DEFAULT_POLL_INTERVAL_MS):
        super().__init__(backend, runner, interval_ms)
        self.fans: Tuple[FanSpeed, ...] = ()
        self.profile: ThermalProfile = ThermalProfile.STANDARD

    def _refresh(self, force: bool) -> None:
        self._fetch(FANS, self._backend.list_fan_speeds, self._apply_fans, force=force)
        self._fetch_profile(force)

    def _fetch_profile(self, force: bool = True) -> bool:
        return self._fetch(PROFILE, self._backend.get_thermal_profile, self._apply_profile,
                           force=force)

    def _apply_fans(self, fans) -> None:
        self.fans = tuple(fans)

    def _apply_profile(self, profile) -> None:
        self.profile = profile

    def change_profile(self, profile: ThermalProfile,
                       on_complete: Optional[CompletionCallback] = None) -> bool:
        def optimistic():
            self.profile = profile

        return self._write(
            PROFILE,
            lambda: self._backend.set_thermal_profile(profile),
            optimistic,
            self._fetch_profile,
            f"Set thermal profile to {profile.value}",
            on_complete,
        )
