"""
FanPanel - Policy Card

One desktop fan header: live RPM, temperature source, low RPM limit,
mode and profile selectors, and the curve editor for the active mode.
"""

import gi
gi.require_version('Gtk', '4.0')
gi.require_version('Adw', '1')
from gi.repository import Gtk, Adw

import logging
from dataclasses import replace

from ..curve import AxisConfig
from ..editor import CurveEditor
from ..models import ControlMode, FanProfile, ValidationError, header_display_name
from ..sync import CurveStatus, DesktopFanSync
from .curve_view import CurveView

logger = logging.getLogger(__name__)

MODE_LABELS = {
    ControlMode.PWM: "PWM (pulse width)",
    ControlMode.DC: "DC (voltage)",
    ControlMode.AUTO: "Auto",
}

PROFILE_LABELS = {
    FanProfile.STANDARD: "Standard (firmware curve)",
    FanProfile.MANUAL: "Manual (custom curve)",
}


class PolicyCard(Gtk.Box):
    """Card showing one header's policy with inline editing and curve view."""

    def __init__(self, sync: DesktopFanSync, header_id: int, axis: AxisConfig):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=12)

        self.sync = sync
        self.header_id = header_id
        self._updating = False  # Reentrancy guard
        self._modes = list(ControlMode)
        self._profiles = list(FanProfile)

        policy = sync.policy(header_id)
        mode = policy.mode if policy else ControlMode.PWM
        self.editor = CurveEditor(sync, header_id, mode, axis)
        self.editor.connect_changed(lambda _editor: self._update_curve_area())

        self.add_css_class("card")
        self.set_margin_top(8)
        self.set_margin_bottom(8)

        inner = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=12)
        inner.set_margin_top(16)
        inner.set_margin_bottom(16)
        inner.set_margin_start(16)
        inner.set_margin_end(16)
        self.append(inner)

        # Header row
        header_row = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        name_label = Gtk.Label(label=header_display_name(header_id))
        name_label.add_css_class("heading")
        name_label.set_hexpand(True)
        name_label.set_halign(Gtk.Align.START)
        header_row.append(name_label)

        self.rpm_label = Gtk.Label(label=f"#{header_id}")
        self.rpm_label.add_css_class("numeric")
        header_row.append(self.rpm_label)
        inner.append(header_row)

        # Info row
        self.info_label = Gtk.Label(label="")
        self.info_label.add_css_class("dim-label")
        self.info_label.set_halign(Gtk.Align.START)
        inner.append(self.info_label)

        # Mode / profile selectors
        selectors = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=12)

        self.mode_dropdown = Gtk.DropDown.new_from_strings([MODE_LABELS[m] for m in self._modes])
        self.mode_dropdown.set_hexpand(True)
        self.mode_dropdown.connect("notify::selected", self._on_mode_changed)
        selectors.append(self.mode_dropdown)

        self.profile_dropdown = Gtk.DropDown.new_from_strings(
            [PROFILE_LABELS[p] for p in self._profiles]
        )
        self.profile_dropdown.set_hexpand(True)
        self.profile_dropdown.connect("notify::selected", self._on_profile_changed)
        selectors.append(self.profile_dropdown)
        inner.append(selectors)

        # Curve area
        curve_header = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        self.curve_title = Gtk.Label(label="")
        self.curve_title.add_css_class("caption-heading")
        self.curve_title.set_hexpand(True)
        self.curve_title.set_halign(Gtk.Align.START)
        curve_header.append(self.curve_title)

        self.discard_btn = Gtk.Button(label="Discard")
        self.discard_btn.connect("clicked", lambda _btn: self.editor.discard())
        curve_header.append(self.discard_btn)

        self.save_btn = Gtk.Button(label="Apply")
        self.save_btn.add_css_class("suggested-action")
        self.save_btn.connect("clicked", self._on_save)
        curve_header.append(self.save_btn)

        reset_btn = Gtk.Button(icon_name="edit-undo-symbolic")
        reset_btn.set_tooltip_text("Reset to default curve")
        reset_btn.connect("clicked", lambda _btn: self.editor.reset_to_default())
        curve_header.append(reset_btn)

        reload_btn = Gtk.Button(icon_name="view-refresh-symbolic")
        reload_btn.set_tooltip_text("Reload curve from hardware")
        reload_btn.connect("clicked", self._on_reload)
        curve_header.append(reload_btn)
        inner.append(curve_header)

        self.curve_stack = Gtk.Stack()
        self.curve_stack.set_transition_type(Gtk.StackTransitionType.CROSSFADE)

        self.curve_view = CurveView(self.editor)
        self.curve_stack.add_named(self.curve_view, "curve")

        spinner = Gtk.Spinner()
        spinner.start()
        spinner.set_size_request(32, 32)
        self.curve_stack.add_named(spinner, "loading")

        unsupported = Gtk.Label(label="This header has no curve for the selected mode")
        unsupported.add_css_class("dim-label")
        self.curve_stack.add_named(unsupported, "unsupported")

        not_loaded = Gtk.Label(label="Curve not loaded")
        not_loaded.add_css_class("dim-label")
        self.curve_stack.add_named(not_loaded, "not-loaded")

        inner.append(self.curve_stack)

        sync.probe_modes(header_id)
        sync.load_curve(header_id, mode)
        self.update()

    def _show_toast(self, message: str) -> None:
        """Show a toast notification."""
        parent = self.get_root()
        if hasattr(parent, 'show_toast'):
            parent.show_toast(message)
        else:
            logger.info(f"Toast: {message}")

    # =========================================================================
    # Handlers
    # =========================================================================

    def _on_mode_changed(self, dropdown, param) -> None:
        if self._updating:
            return
        mode = self._modes[dropdown.get_selected()]
        policy = self.sync.policy(self.header_id)
        if policy is None or policy.mode == mode:
            return
        self.editor.select_mode(mode)
        self.sync.change_mode(self.header_id, mode)

    def _on_profile_changed(self, dropdown, param) -> None:
        if self._updating:
            return
        profile = self._profiles[dropdown.get_selected()]
        policy = self.sync.policy(self.header_id)
        if policy is None or policy.profile == profile:
            return
        self.sync.update_policy(replace(policy, profile=profile))

    def _on_save(self, button) -> None:
        try:
            if self.editor.commit():
                self._show_toast(f"Writing {header_display_name(self.header_id)} curve")
        except ValidationError as e:
            self._show_toast(f"Curve not saved: {e}")
            logger.warning(f"Rejected curve for header {self.header_id}: {e}")

    def _on_reload(self, button) -> None:
        self.editor.discard()
        self.sync.reload_curve(self.header_id, self.editor.mode)
        self._update_curve_area()

    # =========================================================================
    # Refresh from controller state
    # =========================================================================

    def update(self) -> None:
        """Refresh widgets from the sync controller."""
        policy = self.sync.policy(self.header_id)
        if policy is None:
            return

        self._updating = True
        try:
            self.mode_dropdown.set_selected(self._modes.index(policy.mode))
            self.profile_dropdown.set_selected(self._profiles.index(policy.profile))

            supported = self.sync.supported_modes.get(self.header_id)
            self.mode_dropdown.set_sensitive(supported is None or len(supported) > 1)
        finally:
            self._updating = False

        # Hardware (or a rollback) changed the mode under us
        if policy.mode != self.editor.mode:
            self.editor.select_mode(policy.mode)

        rpm = self.sync.rpm_for_header(self.header_id)
        self.rpm_label.set_label(f"{rpm:,.0f} RPM" if rpm is not None else f"#{self.header_id}")
        self.info_label.set_label(
            f"Source: {policy.temperature_source or '-'}    Min: {policy.low_rpm_limit} RPM"
        )

        reading = self.sync.reading(policy.temperature_source) if policy.temperature_source else None
        self.curve_view.set_current_temperature(reading.value if reading else None)
        self._update_curve_area()

    def _update_curve_area(self) -> None:
        self.curve_title.set_label(f"Fan curve ({self.editor.mode.value})")
        dirty = self.editor.is_dirty
        self.save_btn.set_visible(dirty)
        self.discard_btn.set_visible(dirty)
        self.save_btn.set_sensitive(not self.editor.is_saving)

        if dirty:
            self.curve_stack.set_visible_child_name("curve")
            return
        status = self.editor.status
        if status == CurveStatus.READY:
            self.curve_stack.set_visible_child_name("curve")
        elif status == CurveStatus.LOADING:
            self.curve_stack.set_visible_child_name("loading")
        elif status == CurveStatus.UNSUPPORTED:
            self.curve_stack.set_visible_child_name("unsupported")
        else:
            self.curve_stack.set_visible_child_name("not-loaded")
