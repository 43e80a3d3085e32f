"""
FanPanel - Curve Editor Interaction

Turns pointer input into curve edits without any rendering surface.

The editor is either Viewing (no drag) or Dragging one point. Drags
only ever change the local draft; the cache and the backend are touched
by ``commit`` alone. While a draft exists it is what gets rendered, so a
poll landing mid-drag cannot disturb the edit.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .curve import (
    DEFAULT_AXIS,
    DEFAULT_CURVE_POINTS,
    AxisConfig,
    reorder_tracking,
    to_display_path,
    validate_points,
)
from .models import ControlMode, CurvePoint, FanCurve
from .sync import CurveStatus, DesktopFanSync

logger = logging.getLogger(__name__)

# Pointer hit radius around a control point, in pixels
HIT_RADIUS = 10.0


class EditorState(Enum):
    VIEWING = "viewing"
    DRAGGING = "dragging"


@dataclass(frozen=True)
class DraftEdit:
    """Unsaved pointer-drag changes for one (header, mode)."""
    header_id: int
    mode: ControlMode
    points: Tuple[CurvePoint, ...]


class CurveEditor:
    """Drag state machine for one header's curve."""

    def __init__(
        self,
        sync: DesktopFanSync,
        header_id: int,
        mode: ControlMode,
        axis: AxisConfig = DEFAULT_AXIS,
    ):
        self._sync = sync
        self.header_id = header_id
        self.mode = mode
        self.axis = axis
        self.state = EditorState.VIEWING
        self.drag_index: Optional[int] = None
        self.draft: Optional[DraftEdit] = None
        self._committing: Optional[Tuple[CurvePoint, ...]] = None
        self._callbacks: List[Callable[["CurveEditor"], None]] = []

    def connect_changed(self, callback: Callable[["CurveEditor"], None]) -> None:
        self._callbacks.append(callback)

    def _notify_change(self) -> None:
        for callback in list(self._callbacks):
            callback(self)

    # =========================================================================
    # What to render
    # =========================================================================

    @property
    def is_dirty(self) -> bool:
        return self.draft is not None

    @property
    def is_saving(self) -> bool:
        return self._committing is not None

    @property
    def status(self) -> CurveStatus:
        return self._sync.curve_status(self.header_id, self.mode)

    def displayed_points(self) -> Optional[Tuple[CurvePoint, ...]]:
        """Draft if one exists, otherwise the cached curve, otherwise None."""
        if self.draft is not None:
            return self.draft.points
        curve = self._sync.curves.get(self.header_id, self.mode)
        return curve.points if curve is not None else None

    def display_path(self) -> List[Tuple[float, float]]:
        points = self.displayed_points()
        return to_display_path(points, self.axis) if points else []

    # =========================================================================
    # Geometry
    # =========================================================================

    def resize(self, width: float, height: float) -> None:
        self.axis = self.axis.resized(width, height)

    def hit_test(self, x: float, y: float) -> Optional[int]:
        """Index of the point under widget position (x, y), if any."""
        px, py = self.axis.widget_to_plot(x, y)
        best = None
        best_distance = None
        for i, (cx, cy) in enumerate(self.display_path()):
            distance = (px - cx) ** 2 + (py - cy) ** 2
            if distance <= HIT_RADIUS ** 2:
                if best_distance is None or distance < best_distance:
                    best, best_distance = i, distance
        return best

    def point_at(self, x: float, y: float) -> CurvePoint:
        """Clamped (temperature, duty) under widget position (x, y)."""
        px, py = self.axis.widget_to_plot(x, y)
        return CurvePoint(self.axis.x_to_temperature(px), self.axis.y_to_duty(py))

    # =========================================================================
    # Pointer events
    # =========================================================================

    def pointer_down(self, x: float, y: float) -> Optional[int]:
        """Start dragging the point under the pointer."""
        index = self.hit_test(x, y)
        if index is None:
            return None
        self.state = EditorState.DRAGGING
        self.drag_index = index
        self._notify_change()
        return index

    def start_drag(self, index: int) -> None:
        """Start dragging a point chosen by index (e.g. keyboard focus)."""
        points = self.displayed_points()
        if points is None or not 0 <= index < len(points):
            raise IndexError(f"No point {index} to drag")
        self.state = EditorState.DRAGGING
        self.drag_index = index
        self._notify_change()

    def pointer_move(self, x: float, y: float) -> None:
        if self.state != EditorState.DRAGGING or self.drag_index is None:
            return
        points = self.displayed_points()
        if points is None:
            return

        working = list(points)
        working[self.drag_index] = self.point_at(x, y)
        ordered, self.drag_index = reorder_tracking(working, self.drag_index)

        self.draft = DraftEdit(self.header_id, self.mode, ordered)
        self._notify_change()

    def pointer_up(self) -> None:
        if self.state == EditorState.VIEWING:
            return
        self.state = EditorState.VIEWING
        self.drag_index = None
        self._notify_change()

    def pointer_leave(self) -> None:
        self.pointer_up()

    # =========================================================================
    # Draft lifecycle
    # =========================================================================

    def commit(self) -> bool:
        """
        Write the draft through the sync controller.

        Returns False when there is nothing to commit.

        Raises:
            ValidationError: the draft is invalid; it is kept for editing.
        """
        if self.draft is None:
            return False
        self.pointer_up()

        points = validate_points(self.draft.points)
        self._committing = points
        curve = FanCurve(self.header_id, self.mode, points)

        issued = self._sync.save_curve(curve, on_complete=self._on_commit_done)
        if not issued:
            self._committing = None
        self._notify_change()
        return issued

    def _on_commit_done(self, success: bool, error: Optional[BaseException]) -> None:
        committed, self._committing = self._committing, None
        if success and self.draft is not None and self.draft.points == committed:
            self.draft = None
        elif not success:
            logger.warning(f"Curve commit failed, keeping draft: {error}")
        self._notify_change()

    def discard(self) -> None:
        """Drop the draft; the last confirmed curve becomes visible again."""
        self.state = EditorState.VIEWING
        self.drag_index = None
        if self.draft is not None:
            self.draft = None
            logger.debug(f"Discarded draft for header {self.header_id} {self.mode.value}")
        self._notify_change()

    def reset_to_default(self) -> None:
        """Draft the default curve for review before committing."""
        self.draft = DraftEdit(self.header_id, self.mode, DEFAULT_CURVE_POINTS)
        self._notify_change()

    def select_mode(self, mode: ControlMode) -> None:
        """
        Show another mode's curve.

        A draft of the previous mode is discarded without prompting; curves
        of different modes are independent resources.
        """
        if mode == self.mode:
            return
        if self.draft is not None:
            logger.info(f"Discarding header {self.header_id} draft on mode switch")
        self.mode = mode
        self.draft = None
        self._committing = None
        self.state = EditorState.VIEWING
        self.drag_index = None
        self._sync.load_curve(self.header_id, mode)
        self._notify_change()
