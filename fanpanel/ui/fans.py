"""
FanPanel - Fan Pages

Desktop page (one policy card per header) and laptop page (fan RPM and
thermal profile). Both render from a sync controller and re-render when
it reports a change.
"""

import gi
gi.require_version('Gtk', '4.0')
gi.require_version('Adw', '1')
from gi.repository import Gtk, Adw

import logging
from typing import Dict

from ..curve import AxisConfig
from ..models import FAN_TARGET_LABELS, ThermalProfile
from ..sync import DesktopFanSync, LaptopFanSync
from .policy_card import PolicyCard

logger = logging.getLogger(__name__)

PROFILE_LABELS = {
    ThermalProfile.SILENT: "Silent",
    ThermalProfile.STANDARD: "Standard",
    ThermalProfile.PERFORMANCE: "Performance",
}


class DesktopFansPage(Gtk.Box):
    """Fan headers of a desktop board."""

    def __init__(self, sync: DesktopFanSync, axis: AxisConfig):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=16)

        self.sync = sync
        self._axis = axis
        self._cards: Dict[int, PolicyCard] = {}

        self.set_margin_top(24)
        self.set_margin_bottom(24)
        self.set_margin_start(24)
        self.set_margin_end(24)

        title = Gtk.Label(label="Fan Headers")
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
            title="No fan headers",
            description="The backend did not report any controllable fan headers.",
        )
        self.stack.add_named(empty, "empty")

        scroll = Gtk.ScrolledWindow()
        scroll.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        self.cards_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=8)
        scroll.set_child(self.cards_box)
        self.stack.add_named(scroll, "cards")

        self.append(self.stack)

        sync.connect_changed(lambda _sync: self.update())
        self.update()

    def update(self) -> None:
        if self.sync.loading:
            self.stack.set_visible_child_name("loading")
            return
        if not self.sync.policies:
            self.stack.set_visible_child_name("empty")
            return

        for policy in self.sync.policies:
            card = self._cards.get(policy.header_id)
            if card is None:
                card = PolicyCard(self.sync, policy.header_id, self._axis)
                self._cards[policy.header_id] = card
                self.cards_box.append(card)
            card.update()
        self.stack.set_visible_child_name("cards")


class LaptopFansPage(Gtk.Box):
    """Fan RPM and thermal profile of a laptop board."""

    def __init__(self, sync: LaptopFanSync):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=24)

        self.sync = sync
        self._updating = False  # Reentrancy guard
        self._profiles = list(PROFILE_LABELS)

        self.set_margin_top(24)
        self.set_margin_bottom(24)
        self.set_margin_start(24)
        self.set_margin_end(24)

        title = Gtk.Label(label="Fans")
        title.add_css_class("title-2")
        title.set_halign(Gtk.Align.START)
        self.append(title)

        group = Adw.PreferencesGroup(title="Thermal Profile")
        self.profile_row = Adw.ComboRow(title="Profile")
        self.profile_row.set_model(
            Gtk.StringList.new([PROFILE_LABELS[p] for p in self._profiles])
        )
        self.profile_row.connect("notify::selected", self._on_profile_changed)
        group.add(self.profile_row)
        self.append(group)

        self.fans_group = Adw.PreferencesGroup(title="Fan Speeds")
        self._fan_rows: Dict[str, Adw.ActionRow] = {}
        self.append(self.fans_group)

        sync.connect_changed(lambda _sync: self.update())
        self.update()

    def _on_profile_changed(self, row, param) -> None:
        if self._updating:
            return
        profile = self._profiles[row.get_selected()]
        if profile != self.sync.profile:
            self.sync.change_profile(profile)

    def update(self) -> None:
        self._updating = True
        try:
            self.profile_row.set_selected(self._profiles.index(self.sync.profile))
        finally:
            self._updating = False

        for fan in self.sync.fans:
            row = self._fan_rows.get(fan.target.value)
            if row is None:
                row = Adw.ActionRow(title=FAN_TARGET_LABELS[fan.target])
                self._fan_rows[fan.target.value] = row
                self.fans_group.add(row)
            row.set_subtitle(f"{fan.rpm:,} RPM")
