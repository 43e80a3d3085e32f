"""
FanPanel - Temperature Alerts

Watches temperature readings and notifies when one crosses the
configured threshold, at most once per sensor per cooldown window.
"""

import logging
import time
from typing import Callable, Dict, Iterable, List, Optional

from .models import Reading

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 60.0


class TempAlertMonitor:
    """Fires ``notify(reading)`` for over-threshold temperature readings."""

    def __init__(
        self,
        threshold_celsius: float,
        notify: Callable[[Reading], None],
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.threshold_celsius = threshold_celsius
        self.cooldown_seconds = cooldown_seconds
        self.enabled = enabled
        self._notify = notify
        self._clock = clock
        self._last_alert: Dict[str, float] = {}

    def check(self, readings: Iterable[Reading]) -> List[Reading]:
        """Check a reading set; returns the readings that alerted."""
        if not self.enabled:
            return []

        now = self._clock()
        fired = []
        for reading in readings:
            if reading.kind != "temperature" or reading.value < self.threshold_celsius:
                continue
            last = self._last_alert.get(reading.identifier)
            if last is not None and now - last < self.cooldown_seconds:
                continue
            self._last_alert[reading.identifier] = now
            logger.warning(
                f"{reading.name} at {reading.value:.0f}°C exceeds {self.threshold_celsius:.0f}°C"
            )
            self._notify(reading)
            fired.append(reading)
        return fired

    def configure(
        self,
        threshold_celsius: Optional[float] = None,
        cooldown_seconds: Optional[float] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        """Apply changed settings; unchanged arguments are left as None."""
        if threshold_celsius is not None:
            self.threshold_celsius = threshold_celsius
        if cooldown_seconds is not None:
            self.cooldown_seconds = cooldown_seconds
        if enabled is not None:
            if enabled and not self.enabled:
                self.reset()
            self.enabled = enabled
        logger.info(
            f"Temperature alerts {'on' if self.enabled else 'off'}, "
            f"threshold {self.threshold_celsius:.0f}°C, cooldown {self.cooldown_seconds:.0f}s"
        )

    def reset(self) -> None:
        self._last_alert.clear()
