#!/usr/bin/env python3
"""
FanPanel - Fan header control panel

Main application entry point.
"""

import gi
gi.require_version('Gtk', '4.0')
gi.require_version('Adw', '1')
from gi.repository import Gtk, Adw, Gio, GLib

import sys
import logging
from pathlib import Path
from typing import Optional

from .backend import BACKEND_UNAVAILABLE, HelperBackend
from .config import get_config
from .export import build_export, import_curves, read_export, write_export
from .models import FanPanelError, UnsupportedModeError
from .window import MainWindow

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_backend() -> HelperBackend:
    """Build the helper backend from the current configuration."""
    config = get_config()
    return HelperBackend(
        helper_command=config.helper_command,
        use_pkexec=config.use_pkexec,
        timeout_seconds=config.backend_timeout_seconds,
    )


class FanPanelApplication(Adw.Application):
    """Main FanPanel GTK4 Application."""

    def __init__(self):
        super().__init__(
            application_id="io.github.fanpanel",
            flags=Gio.ApplicationFlags.NON_UNIQUE
        )

        self.window: Optional[MainWindow] = None
        self.backend: Optional[HelperBackend] = None

        # Add command line options
        self.add_main_option(
            "version", ord('v'),
            GLib.OptionFlags.NONE,
            GLib.OptionArg.NONE,
            "Show version information",
            None
        )

        self.add_main_option(
            "status", ord('s'),
            GLib.OptionFlags.NONE,
            GLib.OptionArg.NONE,
            "Show fan policies and readings and exit",
            None
        )

        self.add_main_option(
            "export", ord('e'),
            GLib.OptionFlags.NONE,
            GLib.OptionArg.FILENAME,
            "Export policies and curves to FILE and exit",
            "FILE"
        )

        self.add_main_option(
            "import", ord('i'),
            GLib.OptionFlags.NONE,
            GLib.OptionArg.FILENAME,
            "Write every curve in FILE to the hardware and exit",
            "FILE"
        )

    def do_handle_local_options(self, options: GLib.VariantDict) -> int:
        """Handle command line options."""
        if options.contains("version"):
            from . import __version__
            print(f"FanPanel version {__version__}")
            return 0

        if options.contains("status"):
            return self._show_status()

        if options.contains("export"):
            return self._export(self._filename_option(options, "export"))

        if options.contains("import"):
            return self._import(self._filename_option(options, "import"))

        return -1  # Continue to do_activate

    @staticmethod
    def _filename_option(options: GLib.VariantDict, name: str) -> Path:
        value = options.lookup_value(name, GLib.VariantType.new("ay"))
        return Path(value.get_bytestring().decode())

    def _show_status(self) -> int:
        """Print fan policies and readings to console."""
        backend = create_backend()
        try:
            for policy in backend.list_fan_policies():
                print(
                    f"Header {policy.header_id}: {policy.mode.value} / {policy.profile.value}"
                    f" (source: {policy.temperature_source or '-'}, min {policy.low_rpm_limit} RPM)"
                )
            for reading in backend.list_readings() or []:
                print(f"{reading.name}: {reading.value:g} {reading.unit}")
            return 0
        except FanPanelError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    def _export(self, path: Path) -> int:
        """Read every supported curve from the hardware and export it."""
        backend = create_backend()
        try:
            policies = backend.list_fan_policies()
            curves = {}
            for policy in policies:
                for mode in backend.probe_supported_modes(policy.header_id):
                    try:
                        curve = backend.get_fan_curve(policy.header_id, mode)
                    except UnsupportedModeError:
                        curve = None
                    if curve is not None:
                        curves[(policy.header_id, mode)] = curve
            write_export(path, build_export(policies, curves))
            print(f"Exported {len(curves)} curves to {path}")
            return 0
        except (FanPanelError, OSError) as e:
            print(f"Export failed: {e}", file=sys.stderr)
            return 1

    def _import(self, path: Path) -> int:
        """Replay every curve of an export document on the hardware."""
        backend = create_backend()
        try:
            count = import_curves(read_export(path), backend.set_fan_curve)
            print(f"Imported {count} curves from {path}")
            return 0
        except (FanPanelError, OSError) as e:
            print(f"Import failed: {e}", file=sys.stderr)
            return 1

    def do_activate(self) -> None:
        """Activate the application."""
        if self.window is not None:
            self.window.present()
            return

        self.backend = create_backend()
        backend_type = self.backend.backend_type()
        if backend_type == BACKEND_UNAVAILABLE:
            logger.error("Fan-control backend unavailable")
        else:
            logger.info(f"Using {backend_type} backend")

        self.window = MainWindow(self, self.backend, backend_type)

        about_action = Gio.SimpleAction.new("about", None)
        about_action.connect("activate", self._on_about)
        self.add_action(about_action)

        quit_action = Gio.SimpleAction.new("quit", None)
        quit_action.connect("activate", self._on_quit)
        self.add_action(quit_action)

        self.window.present()

    def _on_about(self, action: Gio.SimpleAction, param) -> None:
        """Show about dialog."""
        from . import __version__

        about = Adw.AboutWindow(
            application_name="FanPanel",
            application_icon="preferences-system-symbolic",
            developer_name="FanPanel Contributors",
            version=__version__,
            license_type=Gtk.License.MIT_X11,
            comments="Fan header policy and curve control",
        )
        about.set_transient_for(self.window)
        about.present()

    def _on_quit(self, action: Gio.SimpleAction, param) -> None:
        """Quit the application."""
        if self.window:
            self.window.close()
        self.quit()


def main() -> int:
    """Main entry point."""
    app = FanPanelApplication()
    return app.run(sys.argv)


if __name__ == "__main__":
    sys.exit(main())
