"""
FanPanel - Sensors Page

Every live reading the backend reports, grouped by kind
(temperatures, fan speeds, voltages, ...).
"""

import gi
gi.require_version('Gtk', '4.0')
gi.require_version('Adw', '1')
from gi.repository import Gtk, Adw

import logging
from typing import Dict, List, Tuple

from ..models import Reading, group_readings, reading_kind_label
from ..sync import DesktopFanSync

logger = logging.getLogger(__name__)

# Decimal places per reading kind
VALUE_DECIMALS = {
    "temperature": 1,
    "fan": 0,
    "voltage": 3,
}


def format_reading(reading: Reading) -> str:
    decimals = VALUE_DECIMALS.get(reading.kind, 1)
    text = f"{reading.value:,.{decimals}f}"
    return f"{text} {reading.unit}" if reading.unit else text


class SensorsPage(Gtk.Box):
    """All readings of a desktop board, one group per kind."""

    def __init__(self, sync: DesktopFanSync):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=16)

        self.sync = sync
        self._layout: List[Tuple[str, Tuple[str, ...]]] = []
        self._groups: List[Adw.PreferencesGroup] = []
        self._rows: Dict[str, Adw.ActionRow] = {}

        self.set_margin_top(24)
        self.set_margin_bottom(24)
        self.set_margin_start(24)
        self.set_margin_end(24)

        title = Gtk.Label(label="Sensors")
        title.add_css_class("title-2")
        title.set_halign(Gtk.Align.START)
        self.append(title)

        self.stack = Gtk.Stack()
        self.stack.set_vexpand(True)

        spinner = Gtk.Spinner()
        spinner.start()
        spinner.set_valign(Gtk.Align.CENTER)
        self.stack.add_named(spinner, "loading")

        empty = Adw.StatusPage(
            icon_name="dialog-information-symbolic",
            title="No sensors",
            description="The backend did not report any sensor readings.",
        )
        self.stack.add_named(empty, "empty")

        self.groups_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=16)
        self.stack.add_named(self.groups_box, "readings")

        self.append(self.stack)

        sync.connect_changed(lambda _sync: self.update())
        self.update()

    def update(self) -> None:
        if self.sync.loading:
            self.stack.set_visible_child_name("loading")
            return
        if not self.sync.readings:
            self.stack.set_visible_child_name("empty")
            return

        grouped = group_readings(self.sync.readings)
        layout = [(kind, tuple(r.identifier for r in readings)) for kind, readings in grouped]
        if layout != self._layout:
            self._rebuild(grouped)
            self._layout = layout

        for _kind, readings in grouped:
            for reading in readings:
                self._rows[reading.identifier].set_subtitle(format_reading(reading))
        self.stack.set_visible_child_name("readings")

    def _rebuild(self, grouped) -> None:
        """Recreate the groups when the set of sensors changes."""
        for group in self._groups:
            self.groups_box.remove(group)
        self._groups = []
        self._rows = {}

        for kind, readings in grouped:
            group = Adw.PreferencesGroup(title=reading_kind_label(kind))
            for reading in readings:
                row = Adw.ActionRow(title=reading.name)
                group.add(row)
                self._rows[reading.identifier] = row
            self.groups_box.append(group)
            self._groups.append(group)

        logger.debug(f"Showing {len(self._rows)} readings in {len(self._groups)} groups")
