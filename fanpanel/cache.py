"""
FanPanel - Curve Cache

Two-level keyed store (header -> mode -> curve) of the last known or
in-flight curve for every (header, mode) pair.

The store never mutates a level in place: every put replaces the
header's inner mapping with a new one, so a renderer holding a snapshot
never sees a half-written entry.
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union

from .models import ControlMode, FanCurve

logger = logging.getLogger(__name__)


class _Absent:
    """Marker for a (header, mode) the backend reported as unsupported."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()

CacheEntry = Union[FanCurve, _Absent]
CurveKey = Tuple[int, ControlMode]


class CurveCache:
    """Last-known curves keyed by header and mode. No eviction."""

    def __init__(self):
        self._store: Mapping[int, Mapping[ControlMode, CacheEntry]] = MappingProxyType({})

    @staticmethod
    def key(header_id: int, mode: ControlMode) -> CurveKey:
        return (header_id, mode)

    def get(self, header_id: int, mode: ControlMode) -> Optional[FanCurve]:
        """Get a curve, or None when not fetched yet or unsupported."""
        entry = self.entry(header_id, mode)
        return entry if isinstance(entry, FanCurve) else None

    def entry(self, header_id: int, mode: ControlMode) -> Optional[CacheEntry]:
        """Get the raw entry: a curve, ABSENT, or None when never fetched."""
        return self._store.get(header_id, {}).get(mode)

    def is_absent(self, header_id: int, mode: ControlMode) -> bool:
        return self.entry(header_id, mode) is ABSENT

    def put(self, header_id: int, mode: ControlMode, curve: FanCurve) -> None:
        """Total replace of one entry."""
        if curve.header_id != header_id or curve.mode != mode:
            raise ValueError(
                f"Curve for ({curve.header_id}, {curve.mode.value}) stored under "
                f"({header_id}, {mode.value})"
            )
        self._replace(header_id, mode, curve)

    def mark_absent(self, header_id: int, mode: ControlMode) -> None:
        logger.debug(f"Marking ({header_id}, {mode.value}) unsupported")
        self._replace(header_id, mode, ABSENT)

    def _replace(self, header_id: int, mode: ControlMode, entry: CacheEntry) -> None:
        inner = dict(self._store.get(header_id, {}))
        inner[mode] = entry
        outer = dict(self._store)
        outer[header_id] = MappingProxyType(inner)
        self._store = MappingProxyType(outer)

    def keys(self) -> Iterator[CurveKey]:
        for header_id, modes in self._store.items():
            for mode in modes:
                yield (header_id, mode)

    def snapshot(self) -> Dict[CurveKey, FanCurve]:
        """Copy of every cached curve, skipping unsupported markers."""
        return {
            (header_id, mode): entry
            for header_id, modes in self._store.items()
            for mode, entry in modes.items()
            if isinstance(entry, FanCurve)
        }

    def __len__(self) -> int:
        return sum(len(modes) for modes in self._store.values())

    def __contains__(self, key: CurveKey) -> bool:
        header_id, mode = key
        return self.entry(header_id, mode) is not None
