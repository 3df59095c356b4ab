"""System module for device status, power and network seams."""

from trmnlscreen.system.device import (
    DeviceInfo,
    SysfsDeviceInfo,
    build_device_context,
    detect_device_identifier,
    resolve_device_id,
)
from trmnlscreen.system.network import AlwaysOnlineNetwork, NetworkManager
from trmnlscreen.system.standby import NullStandby, StandbyController, SystemdInhibitStandby

__all__ = [
    "AlwaysOnlineNetwork",
    "DeviceInfo",
    "NetworkManager",
    "NullStandby",
    "StandbyController",
    "SysfsDeviceInfo",
    "SystemdInhibitStandby",
    "build_device_context",
    "detect_device_identifier",
    "resolve_device_id",
]
