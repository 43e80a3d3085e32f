"""
FanPanel - Curve View

Cairo rendering of a CurveEditor and the gesture glue that feeds it
pointer events.
"""

import gi
gi.require_version('Gtk', '4.0')
from gi.repository import Gtk

import math
import logging
from typing import Optional

from ..curve import duty_at
from ..editor import CurveEditor

logger = logging.getLogger(__name__)

TEMP_TICKS = (20, 30, 40, 50, 60, 70, 80, 90, 100)
DUTY_TICKS = (0, 25, 50, 75, 100)


class CurveView(Gtk.DrawingArea):
    """Visual fan curve editor - drag a point to move it."""

    def __init__(self, editor: CurveEditor):
        super().__init__()

        self.editor = editor
        self._current_temp: Optional[float] = None

        self.set_content_width(int(editor.axis.width))
        self.set_content_height(int(editor.axis.height))
        self.set_hexpand(True)
        self.set_draw_func(self._draw)
        self.connect("resize", self._on_resize)

        drag = Gtk.GestureDrag()
        drag.connect("drag-begin", self._on_drag_begin)
        drag.connect("drag-update", self._on_drag_update)
        drag.connect("drag-end", self._on_drag_end)
        self.add_controller(drag)

        motion = Gtk.EventControllerMotion()
        motion.connect("leave", lambda *_: self.editor.pointer_leave())
        self.add_controller(motion)

        editor.connect_changed(lambda _editor: self.queue_draw())

    def set_current_temperature(self, temp: Optional[float]) -> None:
        """Show the operating point of the curve at this temperature."""
        if temp != self._current_temp:
            self._current_temp = temp
            self.queue_draw()

    # =========================================================================
    # Input
    # =========================================================================

    def _on_resize(self, area, width, height) -> None:
        self.editor.resize(width, height)

    def _on_drag_begin(self, gesture, x, y) -> None:
        if self.editor.pointer_down(x, y) is None:
            gesture.set_state(Gtk.EventSequenceState.DENIED)

    def _on_drag_update(self, gesture, offset_x, offset_y) -> None:
        success, start_x, start_y = gesture.get_start_point()
        if not success:
            return
        self.editor.pointer_move(start_x + offset_x, start_y + offset_y)

    def _on_drag_end(self, gesture, offset_x, offset_y) -> None:
        self.editor.pointer_up()

    # =========================================================================
    # Drawing
    # =========================================================================

    def _draw(self, area, cr, width, height) -> None:
        axis = self.editor.axis
        left, top = axis.pad_left, axis.pad_top
        plot_w, plot_h = axis.plot_width, axis.plot_height

        def to_widget(x, y):
            return axis.plot_to_widget(x, y)

        # Background
        cr.set_source_rgb(0.078, 0.094, 0.125)
        cr.rectangle(0, 0, width, height)
        cr.fill()

        # Grid
        cr.set_source_rgba(0.141, 0.165, 0.212, 0.7)
        cr.set_line_width(0.5)
        for temp in TEMP_TICKS:
            x, _ = to_widget(axis.temperature_to_x(temp), 0)
            cr.move_to(x, top)
            cr.line_to(x, top + plot_h)
        for duty in DUTY_TICKS:
            _, y = to_widget(0, axis.duty_to_y(duty))
            cr.move_to(left, y)
            cr.line_to(left + plot_w, y)
        cr.stroke()

        # Axis labels
        cr.set_source_rgb(0.494, 0.529, 0.604)
        cr.select_font_face("Sans", 0, 0)
        cr.set_font_size(9)
        for temp in TEMP_TICKS:
            x, _ = to_widget(axis.temperature_to_x(temp), 0)
            cr.move_to(x - 8, height - 4)
            cr.show_text(f"{temp}°")
        for duty in DUTY_TICKS:
            _, y = to_widget(0, axis.duty_to_y(duty))
            cr.move_to(4, y + 3)
            cr.show_text(f"{duty}%")

        points = self.editor.displayed_points()
        if not points:
            return

        path = [to_widget(x, y) for x, y in self.editor.display_path()]
        _, base_y = to_widget(0, axis.duty_to_y(0))

        # Fill under the curve
        cr.set_source_rgba(0.3, 0.6, 0.9, 0.15)
        cr.move_to(path[0][0], base_y)
        for x, y in path:
            cr.line_to(x, y)
        cr.line_to(path[-1][0], base_y)
        cr.close_path()
        cr.fill()

        # Curve line (dashed while the draft is unsaved)
        cr.set_source_rgb(0.184, 0.486, 0.965)
        cr.set_line_width(2)
        if self.editor.is_dirty:
            cr.set_dash([6, 4])
        cr.move_to(*path[0])
        for x, y in path[1:]:
            cr.line_to(x, y)
        cr.stroke()
        cr.set_dash([])

        # Control points
        for i, (x, y) in enumerate(path):
            radius = 7 if i == self.editor.drag_index else 5
            if i == self.editor.drag_index:
                cr.set_source_rgb(0.965, 0.769, 0.271)
            else:
                cr.set_source_rgb(0.090, 0.102, 0.125)
            cr.arc(x, y, radius, 0, 2 * math.pi)
            cr.fill()
            cr.set_source_rgb(1.0, 1.0, 1.0)
            cr.set_line_width(2)
            cr.arc(x, y, radius, 0, 2 * math.pi)
            cr.stroke()

        # Tooltip for the dragged point
        if self.editor.drag_index is not None:
            point = points[self.editor.drag_index]
            x, y = path[self.editor.drag_index]
            label = f"{point.temperature_c}° → {point.duty_pct}%"
            cr.set_source_rgb(1.0, 1.0, 1.0)
            cr.rectangle(x - 30, y - 28, 60, 18)
            cr.fill()
            cr.set_source_rgb(0.078, 0.094, 0.125)
            cr.set_font_size(10)
            extents = cr.text_extents(label)
            cr.move_to(x - extents.width / 2, y - 15)
            cr.show_text(label)

        # Current operating point
        if self._current_temp is not None:
            duty = duty_at(points, self._current_temp)
            x, y = to_widget(
                axis.temperature_to_x(min(max(self._current_temp, axis.temp_min), axis.temp_max)),
                axis.duty_to_y(duty),
            )
            cr.set_source_rgb(0.965, 0.769, 0.271)
            cr.arc(x, y, 4, 0, 2 * math.pi)
            cr.fill()
