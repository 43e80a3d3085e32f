"""
FanPanel - Curve and Policy Export

Versioned JSON document holding every header's policy and every cached
curve:

    {
      "version": 1,
      "timestamp": "2026-01-01T12:00:00",
      "policies": [{"fan_type": 0, "mode": "PWM", ...}],
      "curves": {"0_PWM": {"fan_type": 0, "mode": "PWM", "points": [...]}}
    }

Import replays a curve write for each entry; policies are informational.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple

from .curve import validate_curve
from .models import (
    ControlMode,
    ExportFormatError,
    FanCurve,
    FanPolicy,
    FanPanelError,
)

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1


def export_key(header_id: int, mode: ControlMode) -> str:
    return f"{header_id}_{mode.value}"


@dataclass
class ExportDocument:
    """Parsed export document."""
    timestamp: str
    policies: List[FanPolicy] = field(default_factory=list)
    curves: Dict[str, FanCurve] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": EXPORT_VERSION,
            "timestamp": self.timestamp,
            "policies": [p.to_dict() for p in self.policies],
            "curves": {key: c.to_dict() for key, c in self.curves.items()},
        }


def build_export(
    policies: Iterable[FanPolicy],
    curves: Mapping[Tuple[int, ControlMode], FanCurve],
) -> ExportDocument:
    """Create a document from the current policies and cached curves."""
    return ExportDocument(
        timestamp=datetime.now().isoformat(timespec="seconds"),
        policies=list(policies),
        curves={export_key(h, m): c for (h, m), c in sorted(
            curves.items(), key=lambda item: (item[0][0], item[0][1].value)
        )},
    )


def parse_export(data: Any) -> ExportDocument:
    """
    Validate and decode an export document.

    Raises:
        ExportFormatError: unknown version or malformed content.
    """
    if not isinstance(data, dict):
        raise ExportFormatError("Export document must be a JSON object")

    version = data.get("version")
    if type(version) is not int or version != EXPORT_VERSION:
        raise ExportFormatError(f"Unsupported export version: {version!r}")

    try:
        policies = [FanPolicy.from_dict(p) for p in data.get("policies", [])]
        curves = {}
        for key, raw in (data.get("curves") or {}).items():
            curve = validate_curve(FanCurve.from_dict(raw))
            if key != export_key(curve.header_id, curve.mode):
                raise ExportFormatError(
                    f"Curve key {key!r} does not match its content "
                    f"({export_key(curve.header_id, curve.mode)!r})"
                )
            curves[key] = curve
    except ExportFormatError:
        raise
    except (FanPanelError, KeyError, TypeError, ValueError, AttributeError) as e:
        raise ExportFormatError(f"Malformed export document: {e}")

    return ExportDocument(
        timestamp=str(data.get("timestamp", "")),
        policies=policies,
        curves=curves,
    )


def write_export(path: Path, document: ExportDocument) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(document.to_dict(), f, indent=2)
    logger.info(f"Exported {len(document.curves)} curves to {path}")


def read_export(path: Path) -> ExportDocument:
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ExportFormatError(f"Invalid JSON in {path}: {e}")
    return parse_export(data)


def import_curves(document: ExportDocument, write_curve: Callable[[FanCurve], Any]) -> int:
    """
    Replay a curve write for every curve in the document.

    Returns the number of curves written.
    """
    count = 0
    for key, curve in document.curves.items():
        logger.info(f"Importing curve {key}")
        write_curve(curve)
        count += 1
    return count
