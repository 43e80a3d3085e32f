"""
FanPanel - Main Window

Hosts the pages for the detected backend (fans, sensors, settings),
the error banner and toasts, and owns the sync controller's lifetime.
"""

import gi
gi.require_version('Gtk', '4.0')
gi.require_version('Adw', '1')
from gi.repository import Gtk, Adw, Gio, GLib

import logging
from typing import Optional

from .alerts import TempAlertMonitor
from .backend import BACKEND_DESKTOP, BACKEND_LAPTOP, FanBackend
from .config import get_config
from .curve import AxisConfig
from .export import build_export, import_curves, read_export, write_export
from .models import FanPanelError
from .runner import GLibRunner
from .sync import DesktopFanSync, LaptopFanSync, SyncController
from .ui.fans import DesktopFansPage, LaptopFansPage
from .ui.sensors import SensorsPage
from .ui.settings import SettingsPage

logger = logging.getLogger(__name__)


class MainWindow(Adw.ApplicationWindow):
    """Main application window."""

    def __init__(self, app: Adw.Application, backend: FanBackend, backend_type: str):
        super().__init__(application=app)

        self.backend = backend
        self.sync: Optional[SyncController] = None
        self._alerts: Optional[TempAlertMonitor] = None

        config = get_config()
        self.apply_color_scheme(config.dark_mode)
        self.set_default_size(config.window_width, config.window_height)
        self.set_title("FanPanel")

        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)

        # ===== HEADER BAR =====
        header = Adw.HeaderBar()

        self.page_stack = Gtk.Stack()
        self.page_stack.set_transition_type(Gtk.StackTransitionType.CROSSFADE)
        self.page_stack.set_transition_duration(150)
        switcher = Gtk.StackSwitcher(stack=self.page_stack)
        header.set_title_widget(switcher)

        refresh_button = Gtk.Button(icon_name="view-refresh-symbolic")
        refresh_button.set_tooltip_text("Refresh now")
        refresh_button.connect("clicked", lambda _btn: self.sync and self.sync.refresh())
        header.pack_start(refresh_button)

        menu_button = Gtk.MenuButton()
        menu_button.set_icon_name("open-menu-symbolic")
        menu = Gio.Menu()
        if backend_type == BACKEND_DESKTOP:
            menu.append("Export Curves…", "win.export")
            menu.append("Import Curves…", "win.import")
        menu.append("About", "app.about")
        menu.append("Quit", "app.quit")
        menu_button.set_menu_model(menu)
        header.pack_end(menu_button)

        main_box.append(header)

        # ===== ERROR BANNER =====
        self.banner = Adw.Banner()
        self.banner.connect("button-clicked", self._on_banner_clicked)
        main_box.append(self.banner)

        # ===== CONTENT =====
        self.toast_overlay = Adw.ToastOverlay()
        self.toast_overlay.set_vexpand(True)

        axis = AxisConfig(temp_min=config.temp_min_celsius, temp_max=config.temp_max_celsius)
        runner = GLibRunner()

        if backend_type == BACKEND_DESKTOP:
            self.sync = DesktopFanSync(backend, runner, config.poll_interval_ms)
            self._add_page("fans", "Fans", DesktopFansPage(self.sync, axis))
            self._add_page("sensors", "Sensors", SensorsPage(self.sync))
            self._alerts = TempAlertMonitor(
                config.temp_alert_threshold_celsius,
                self._on_temp_alert,
                cooldown_seconds=config.temp_alert_cooldown_seconds,
                enabled=config.temp_alert_enabled,
            )
        elif backend_type == BACKEND_LAPTOP:
            self.sync = LaptopFanSync(backend, runner, config.poll_interval_ms)
            self._add_page("fans", "Fans", LaptopFansPage(self.sync))
        else:
            self._add_page("fans", "Fans", Adw.StatusPage(
                icon_name="dialog-error-symbolic",
                title="Fan control unavailable",
                description="The fan-control backend could not be reached.",
            ))

        self._add_page(
            "settings", "Settings",
            SettingsPage(self, show_alerts=self._alerts is not None),
        )
        self.toast_overlay.set_child(self.page_stack)
        main_box.append(self.toast_overlay)

        self.set_content(main_box)

        self._install_actions()

        if self.sync is not None:
            self.sync.connect_changed(self._on_sync_changed)
            self.sync.start()

    def _add_page(self, name: str, title: str, page: Gtk.Widget) -> None:
        scroll = Gtk.ScrolledWindow()
        scroll.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        scroll.set_child(page)
        self.page_stack.add_titled(scroll, name, title)

    def _install_actions(self) -> None:
        export_action = Gio.SimpleAction.new("export", None)
        export_action.connect("activate", self._on_export)
        self.add_action(export_action)

        import_action = Gio.SimpleAction.new("import", None)
        import_action.connect("activate", self._on_import)
        self.add_action(import_action)

    # =========================================================================
    # Sync state
    # =========================================================================

    def _on_sync_changed(self, sync: SyncController) -> None:
        action = sync.error_action
        if action is None:
            self.banner.set_revealed(False)
        else:
            if sync.last_error:
                self.banner.set_title(sync.last_error)
            else:
                count = len(sync.failed_writes)
                self.banner.set_title(f"{count} change{'s' if count > 1 else ''} not applied")
            self.banner.set_button_label("Retry" if action == "retry" else "Dismiss")
            self.banner.set_revealed(True)

        if self._alerts is not None and isinstance(sync, DesktopFanSync):
            self._alerts.check(sync.readings)

    def _on_banner_clicked(self, banner) -> None:
        if self.sync is None:
            return
        if self.sync.error_action == "retry":
            self.sync.retry_failed_writes()
        else:
            self.sync.dismiss_error()

    # =========================================================================
    # Settings
    # =========================================================================

    def set_refresh_interval(self, interval_ms: int) -> None:
        """Update the refresh interval dynamically."""
        if self.sync is not None:
            self.sync.set_interval(interval_ms)

    def configure_alerts(self, **settings) -> None:
        if self._alerts is not None:
            self._alerts.configure(**settings)

    @staticmethod
    def apply_color_scheme(dark_mode: bool) -> None:
        scheme = Adw.ColorScheme.FORCE_DARK if dark_mode else Adw.ColorScheme.DEFAULT
        Adw.StyleManager.get_default().set_color_scheme(scheme)

    def _on_temp_alert(self, reading) -> None:
        self.show_toast(f"{reading.name} is at {reading.value:.0f}°C")

    def show_toast(self, message: str) -> None:
        """Show a toast notification."""
        toast = Adw.Toast(title=message)
        toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)

    # =========================================================================
    # Export / import
    # =========================================================================

    def _on_export(self, action, param) -> None:
        dialog = Gtk.FileDialog(title="Export Fan Curves", initial_name="fan-curves.json")
        dialog.save(self, None, self._on_export_chosen)

    def _on_export_chosen(self, dialog, result) -> None:
        try:
            file = dialog.save_finish(result)
        except GLib.Error:
            return  # Cancelled
        if not isinstance(self.sync, DesktopFanSync):
            return

        document = build_export(self.sync.policies, self.sync.curves.snapshot())
        try:
            write_export(file.get_path(), document)
            self.show_toast(f"Exported {len(document.curves)} curves")
        except OSError as e:
            logger.error(f"Export failed: {e}")
            self.show_toast(f"Export failed: {e}")

    def _on_import(self, action, param) -> None:
        dialog = Gtk.FileDialog(title="Import Fan Curves")
        dialog.open(self, None, self._on_import_chosen)

    def _on_import_chosen(self, dialog, result) -> None:
        try:
            file = dialog.open_finish(result)
        except GLib.Error:
            return  # Cancelled
        if not isinstance(self.sync, DesktopFanSync):
            return

        try:
            document = read_export(file.get_path())
            count = import_curves(document, self.sync.save_curve)
            self.show_toast(f"Importing {count} curves")
        except (FanPanelError, OSError) as e:
            logger.error(f"Import failed: {e}")
            self.show_toast(f"Import failed: {e}")

    def do_close_request(self) -> bool:
        """Handle window close."""
        if self.sync is not None:
            self.sync.stop()
        return False  # Allow close
