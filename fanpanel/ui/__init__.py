"""
FanPanel - UI Package

GTK4 user interface components.
"""

from .curve_view import CurveView
from .policy_card import PolicyCard
from .fans import DesktopFansPage, LaptopFansPage
from .sensors import SensorsPage
from .settings import SettingsPage

__all__ = [
    "CurveView",
    "PolicyCard",
    "DesktopFansPage",
    "LaptopFansPage",
    "SensorsPage",
    "SettingsPage",
]
