"""
FanPanel - Settings UI Component

Application settings page: refresh cadence, temperature alerts and
appearance. Every change is saved immediately and applied to the
running window.
"""

import gi
gi.require_version('Gtk', '4.0')
gi.require_version('Adw', '1')
from gi.repository import Gtk
import logging

from ..config import POLL_INTERVAL_CHOICES_MS, get_config, poll_interval_choice, save_config

logger = logging.getLogger(__name__)

INTERVAL_LABELS = ["1 second", "2 seconds", "5 seconds", "10 seconds"]


class SettingsPage(Gtk.Box):
    """Application settings and configuration page."""

    def __init__(self, window, show_alerts: bool = True):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=16)

        self.window = window
        self.config = get_config()

        self.set_margin_top(24)
        self.set_margin_bottom(24)
        self.set_margin_start(24)
        self.set_margin_end(24)

        title = Gtk.Label(label="Settings")
        title.add_css_class("title-2")
        title.set_halign(Gtk.Align.START)
        self.append(title)

        # ===== MONITORING SECTION =====
        monitor_box = self._add_section("Monitoring")

        self.interval_combo = Gtk.DropDown()
        self.interval_combo.set_model(Gtk.StringList.new(INTERVAL_LABELS))
        self.interval_combo.set_selected(poll_interval_choice(self.config.poll_interval_ms))
        self.interval_combo.connect("notify::selected", self._on_interval_changed)
        monitor_box.append(self._row("Refresh interval", self.interval_combo))

        # ===== ALERTS SECTION =====
        if show_alerts:
            alerts_box = self._add_section("Temperature Alerts")

            self.alert_switch = Gtk.Switch()
            self.alert_switch.set_active(self.config.temp_alert_enabled)
            self.alert_switch.set_valign(Gtk.Align.CENTER)
            self.alert_switch.connect("notify::active", self._on_alert_enabled_changed)
            alerts_box.append(self._row("Notify when a sensor runs hot", self.alert_switch))

            self.threshold_spin = Gtk.SpinButton.new_with_range(40, 110, 1)
            self.threshold_spin.set_value(self.config.temp_alert_threshold_celsius)
            self.threshold_spin.connect("value-changed", self._on_threshold_changed)
            alerts_box.append(self._row("Threshold (°C)", self.threshold_spin))

            self.cooldown_spin = Gtk.SpinButton.new_with_range(10, 600, 10)
            self.cooldown_spin.set_value(self.config.temp_alert_cooldown_seconds)
            self.cooldown_spin.connect("value-changed", self._on_cooldown_changed)
            alerts_box.append(self._row("Repeat after (seconds)", self.cooldown_spin))

        # ===== APPEARANCE SECTION =====
        appearance_box = self._add_section("Appearance")

        self.dark_switch = Gtk.Switch()
        self.dark_switch.set_active(self.config.dark_mode)
        self.dark_switch.set_valign(Gtk.Align.CENTER)
        self.dark_switch.connect("notify::active", self._on_dark_mode_changed)
        appearance_box.append(self._row("Dark mode", self.dark_switch))

    def _add_section(self, title: str) -> Gtk.Box:
        frame = Gtk.Frame()
        frame.add_css_class("control-section")

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=12)
        box.set_margin_top(16)
        box.set_margin_bottom(16)
        box.set_margin_start(16)
        box.set_margin_end(16)

        label = Gtk.Label(label=title)
        label.add_css_class("heading")
        label.set_halign(Gtk.Align.START)
        box.append(label)

        frame.set_child(box)
        self.append(frame)
        return box

    @staticmethod
    def _row(text: str, control: Gtk.Widget) -> Gtk.Box:
        row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=12)
        label = Gtk.Label(label=text)
        label.set_hexpand(True)
        label.set_halign(Gtk.Align.START)
        row.append(label)
        row.append(control)
        return row

    def _on_interval_changed(self, combo, param) -> None:
        selected = combo.get_selected()
        if selected >= len(POLL_INTERVAL_CHOICES_MS):
            return
        interval = POLL_INTERVAL_CHOICES_MS[selected]
        self.config.poll_interval_ms = interval
        save_config(self.config)
        self.window.set_refresh_interval(interval)

    def _on_alert_enabled_changed(self, switch, param) -> None:
        self.config.temp_alert_enabled = switch.get_active()
        save_config(self.config)
        self.window.configure_alerts(enabled=self.config.temp_alert_enabled)

    def _on_threshold_changed(self, spin) -> None:
        self.config.temp_alert_threshold_celsius = spin.get_value_as_int()
        save_config(self.config)
        self.window.configure_alerts(threshold_celsius=self.config.temp_alert_threshold_celsius)

    def _on_cooldown_changed(self, spin) -> None:
        self.config.temp_alert_cooldown_seconds = spin.get_value_as_int()
        save_config(self.config)
        self.window.configure_alerts(cooldown_seconds=self.config.temp_alert_cooldown_seconds)

    def _on_dark_mode_changed(self, switch, param) -> None:
        self.config.dark_mode = switch.get_active()
        save_config(self.config)
        self.window.apply_color_scheme(self.config.dark_mode)
