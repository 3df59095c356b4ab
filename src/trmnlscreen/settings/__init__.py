"""Settings management.

This package provides:
- UserSettings: User-configurable settings persisted in the state file
- SettingsStore: Loading and flushing of the persisted state
- AppPaths / RefreshType: Internal application paths and display modes
"""

from trmnlscreen.settings.application import AppPaths, RefreshType
from trmnlscreen.settings.store import PersistedState, SettingsStore
from trmnlscreen.settings.user import UserSettings

__all__ = [
    "AppPaths",
    "PersistedState",
    "RefreshType",
    "SettingsStore",
    "UserSettings",
]
