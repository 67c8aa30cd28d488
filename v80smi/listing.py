"""Listing of the V80 cards present on the PCI bus."""

from __future__ import annotations

import os
from collections.abc import Iterator

from v80smi.vrtbin import SEPARATOR

VENDOR_ID = 0x10EE
DEVICE_ID = 0x50B4
PCI_DEVICES_ROOT = "/sys/bus/pci/devices"


def _read_id(path: str) -> int | None:
    try:
        with open(path) as handle:
            line = handle.readline()
    except OSError:
        return None
    return int(line.strip(), 16) & 0xFFFF


def find_devices(vendor_id=VENDOR_ID, device_id=DEVICE_ID, root=PCI_DEVICES_ROOT) -> Iterator[str]:
    """Yield the names of the PCI devices under ``root`` with the given ids."""
    for name in sorted(os.listdir(root)):
        path = os.path.join(root, name)
        vendor = _read_id(os.path.join(path, "vendor"))
        device = _read_id(os.path.join(path, "device"))
        if vendor is None or device is None:
            continue
        if vendor == vendor_id and device == device_id:
            yield name


def list_devices(vendor_id=VENDOR_ID, device_id=DEVICE_ID, root=PCI_DEVICES_ROOT) -> list[str]:
    """Print the matching devices and return their names."""
    print(f"{SEPARATOR}\nListing V80 devices \n{SEPARATOR}")
    found = []
    for name in find_devices(vendor_id, device_id, root):
        print(f"V80 device found with BDF: {name}\n{SEPARATOR}")
        found.append(name)
    return found