"""Device information: battery, screen size and hardware identifier."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from trmnlscreen.api.models import DeviceContext
from trmnlscreen.constants import DEFAULT_DEVICE_ID
from trmnlscreen.settings import UserSettings

logger: Final = logging.getLogger(__name__)

SYS_NET: Final = Path("/sys/class/net")
SYS_POWER_SUPPLY: Final = Path("/sys/class/power_supply")

# IFF_UP and IFF_LOOPBACK from <net/if.h>
_IFF_UP: Final = 0x1
_IFF_LOOPBACK: Final = 0x8


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return None


def detect_device_identifier(sys_net: Path = SYS_NET) -> str | None:
    """Return the MAC address of the first wireless interface that is up.

    Args:
        sys_net: Root of the kernel's network interface tree

    Returns:
        MAC address as ``XX:XX:XX:XX:XX:XX``, or None if none was found
    """
    try:
        interfaces = sorted(p for p in sys_net.iterdir() if p.is_dir())
    except OSError as exc:
        logger.warning("Could not list network interfaces: %s", exc)
        return None

    for iface in interfaces:
        if not (iface / "wireless").exists():
            continue
        flags = _read(iface / "flags")
        try:
            flag_bits = int(flags, 16) if flags else 0
        except ValueError:
            flag_bits = 0
        if not flag_bits & _IFF_UP or flag_bits & _IFF_LOOPBACK:
            continue
        address = _read(iface / "address")
        if address and address != DEFAULT_DEVICE_ID:
            mac = address.upper()
            logger.info("Auto-detected MAC address: %s", mac)
            return mac

    logger.info("No wireless interface MAC address found")
    return None


def read_battery_percentage(power_supply: Path = SYS_POWER_SUPPLY) -> int | None:
    """Return the charge of the first battery, or None without a battery."""
    try:
        supplies = sorted(power_supply.iterdir())
    except OSError:
        return None

    for supply in supplies:
        if _read(supply / "type") != "Battery":
            continue
        capacity = _read(supply / "capacity")
        if capacity is None:
            continue
        try:
            return max(0, min(100, int(capacity)))
        except ValueError:
            logger.debug("Unreadable battery capacity %r in %s", capacity, supply)
    return None


@runtime_checkable
class DeviceInfo(Protocol):
    """Protocol for the device facts sent with each request."""

    def battery_percentage(self) -> int | None:
        """Battery charge 0-100, or None if the device has no battery."""
        ...

    def detect_device_identifier(self) -> str | None:
        """Hardware identifier (wireless MAC), or None if unavailable."""
        ...


class SysfsDeviceInfo:
    """DeviceInfo reading Linux sysfs."""

    def __init__(self, sys_net: Path = SYS_NET, power_supply: Path = SYS_POWER_SUPPLY) -> None:
        self.sys_net = sys_net
        self.power_supply = power_supply

    def battery_percentage(self) -> int | None:
        return read_battery_percentage(self.power_supply)

    def detect_device_identifier(self) -> str | None:
        return detect_device_identifier(self.sys_net)


def resolve_device_id(settings: UserSettings, device: DeviceInfo) -> str:
    """Pick the device id: manual override → auto-detected → all-zero sentinel."""
    if settings.mac_address:
        logger.debug("Using manual MAC address: %s", settings.mac_address)
        return settings.mac_address
    mac = device.detect_device_identifier() or DEFAULT_DEVICE_ID
    logger.debug("Using MAC address: %s", mac)
    return mac


def build_device_context(settings: UserSettings, device: DeviceInfo) -> DeviceContext:
    """Collect the device information for a metadata request."""
    battery = device.battery_percentage()
    return DeviceContext(
        battery_percentage=battery if battery is not None else 0,
        width=settings.display_width,
        height=settings.display_height,
        device_id=resolve_device_id(settings, device),
        device_id_header=settings.device_id_header,
    )
