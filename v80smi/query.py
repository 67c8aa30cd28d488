"""Querying a device: its kernels, design information and DMA queues."""

from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta

from v80smi.inspect import KernelInfo, format_kernel, parse_system_map
from v80smi.vrtbin import SEPARATOR, print_design_info

DEV_ROOT = "/dev"
PCI_DEVICES_ROOT = "/sys/bus/pci/devices"

_MFG_EPOCH = datetime(1996, 2, 1)
_QMAX_READ_SIZE = 1023


def format_manufacturing_date(minutes) -> str:
    """Return the manufacturing date, given in minutes since 1 Feb 1996, in locale form."""
    minutes = int(minutes)
    if not minutes:
        raise ValueError("Invalid manufacturing date minutes")
    try:
        moment = _MFG_EPOCH + timedelta(minutes=minutes)
    except OverflowError as exc:
        raise ValueError("manufacturing date out of range") from exc
    return moment.strftime("%c")


def _device_dir(ami_home: str, bdf: str) -> str:
    return os.path.join(ami_home, f"{bdf}:00.0")


def query_kernels(bdf: str, ami_home=None) -> list[KernelInfo]:
    """Print the design information and kernels stored for ``bdf``; return the kernels."""
    if ami_home is None:
        ami_home = os.environ.get("AMI_HOME")
    if not ami_home:
        raise RuntimeError("AMI_HOME environment variable is not set")
    directory = _device_dir(ami_home, bdf)
    map_path = os.path.join(directory, "system_map.xml")
    try:
        system_map = parse_system_map(map_path)
    except ValueError as exc:
        raise ValueError(f"could not parse file {map_path}") from exc
    print_design_info(os.path.join(directory, "version.json"))
    for kernel in system_map.kernels:
        print(format_kernel(kernel, "\t"), end="")
    return system_map.kernels


def query_queues(bdf: str, dev_root=DEV_ROOT, sysfs_root=PCI_DEVICES_ROOT) -> str:
    """Print the state of the device's memory-mapped DMA queue; return the queue limit."""
    print(f"{SEPARATOR}\nQDMA Queue Status\n{SEPARATOR}")
    queue_path = os.path.join(dev_root, f"qdma{bdf}001-MM-0")
    qmax_path = os.path.join(sysfs_root, f"0000:{bdf}:00.1", "qdma", "qmax")

    try:
        fd = os.open(queue_path, os.O_RDONLY)
    except OSError as exc:
        raise RuntimeError(f"QDMA MM Queue not present. Expected queue {queue_path}") from exc
    os.close(fd)
    print(f"QDMA MM Queue present at {queue_path}, mode bi")

    try:
        fd = os.open(qmax_path, os.O_RDONLY)
    except OSError as exc:
        raise RuntimeError(f"Could not open QMAX file {qmax_path}") from exc
    try:
        data = os.read(fd, _QMAX_READ_SIZE)
    except OSError as exc:
        raise RuntimeError(f"Error reading from QMAX file {qmax_path}") from exc
    finally:
        os.close(fd)
    qmax = data.decode(errors="replace")
    print(f"Max allocable queues: {qmax}")
    return qmax


def query_device(bdf: str, ami_home=None) -> None:
    """Print the kernels and queue state of device ``bdf``; failures go to stderr."""
    if not bdf:
        print("Error: BDF is required for query", file=sys.stderr)
        return
    try:
        query_kernels(bdf, ami_home)
    except (RuntimeError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
    try:
        query_queues(bdf)
    except RuntimeError as exc:
        print(exc, file=sys.stderr)