"""
FanPanel - Fan header control panel

Keeps a local view of per-header fan policies and 8-point fan curves in
sync with a privileged fan-control backend, with optimistic writes and
an interactive curve editor.

License: MIT
"""

__version__ = "0.1.0"
__author__ = "FanPanel Contributors"
__license__ = "MIT"

from .models import (
    FanPanelError,
    BackendError,
    TransientBackendError,
    UnsupportedModeError,
    ValidationError,
    ExportFormatError,
    ControlMode,
    FanProfile,
    FanTarget,
    ThermalProfile,
    FanHeader,
    FanPolicy,
    CurvePoint,
    FanCurve,
    Reading,
    FanSpeed,
)

from .cache import ABSENT, CurveCache

from .sync import (
    SyncState,
    CurveStatus,
    SyncController,
    DesktopFanSync,
    LaptopFanSync,
)

from .editor import CurveEditor, DraftEdit, EditorState

from .backend import FanBackend, HelperBackend

from .config import (
    AppConfig,
    ConfigManager,
    get_config,
    get_config_manager,
)

__all__ = [
    # Errors
    "FanPanelError",
    "BackendError",
    "TransientBackendError",
    "UnsupportedModeError",
    "ValidationError",
    "ExportFormatError",
    # Model
    "ControlMode",
    "FanProfile",
    "FanTarget",
    "ThermalProfile",
    "FanHeader",
    "FanPolicy",
    "CurvePoint",
    "FanCurve",
    "Reading",
    "FanSpeed",
    # Engine
    "ABSENT",
    "CurveCache",
    "SyncState",
    "CurveStatus",
    "SyncController",
    "DesktopFanSync",
    "LaptopFanSync",
    "CurveEditor",
    "DraftEdit",
    "EditorState",
    # Backend
    "FanBackend",
    "HelperBackend",
    # Config
    "AppConfig",
    "ConfigManager",
    "get_config",
    "get_config_manager",
]
