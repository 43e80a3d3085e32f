"""
FanPanel - GLib Runner

Runs backend calls on worker threads and hands their outcome back to
the GLib main loop, where the sync controllers mutate state. Timers are
plain GLib timeout sources owned through their source id.
"""

from gi.repository import GLib

import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class GLibRunner:
    """Runner backed by worker threads and the default GLib main context."""

    def submit(self, func: Callable[[], Any],
               callback: Callable[[Any, Optional[BaseException]], None]) -> None:
        def _work():
            try:
                result = func()
            except Exception as e:
                GLib.idle_add(self._deliver, callback, None, e)
            else:
                GLib.idle_add(self._deliver, callback, result, None)

        thread = threading.Thread(target=_work, daemon=True)
        thread.start()

    @staticmethod
    def _deliver(callback, result, error) -> bool:
        try:
            callback(result, error)
        except Exception as e:
            logger.error(f"Result callback failed: {e}")
        return GLib.SOURCE_REMOVE

    def schedule(self, interval_ms: int, func: Callable[[], bool]) -> int:
        return GLib.timeout_add(interval_ms, func)

    def cancel(self, handle: int) -> None:
        GLib.source_remove(handle)
