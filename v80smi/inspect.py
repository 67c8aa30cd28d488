"""Inspection of a .vrtbin archive before it is programmed."""

from __future__ import annotations

import os
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from v80smi.vrtbin import SEPARATOR, extract, print_design_info

_INDENTED_SEPARATOR_WIDTH = 60


@dataclass(frozen=True)
class KernelInfo:
    """A kernel entry of a system map."""

    name: str = ""
    base_address: str = ""
    range: str = ""


@dataclass
class SystemMap:
    """Platform details and kernels described by a system map."""

    platform: str | None = None
    type: str | None = None
    clock_frequency: str | None = None
    kernels: list[KernelInfo] = field(default_factory=list)


def _text(element: ET.Element) -> str:
    return "".join(element.itertext())


def parse_system_map(path) -> SystemMap:
    """Read a system map file; raise ValueError if it cannot be parsed."""
    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as exc:
        raise ValueError(f"could not read system map file {path}") from exc
    system_map = SystemMap()
    for node in root:
        if node.tag == "Platform":
            system_map.platform = _text(node)
        elif node.tag == "Type":
            system_map.type = _text(node)
        elif node.tag == "ClockFrequency":
            system_map.clock_frequency = _text(node)
        elif node.tag == "Kernel":
            values = {}
            for child in node:
                if child.tag == "Name":
                    values["name"] = _text(child)
                elif child.tag == "BaseAddress":
                    values["base_address"] = _text(child)
                elif child.tag == "Range":
                    values["range"] = _text(child)
            system_map.kernels.append(KernelInfo(**values))
    return system_map


def format_platform(system_map: SystemMap) -> str:
    """Render the VRTBIN information block."""
    lines = [SEPARATOR, "VRTBIN Information", SEPARATOR]
    if system_map.platform is not None:
        lines.append(f"Platform                    | {system_map.platform}")
    if system_map.type is not None:
        lines.append(f"Type                        | {system_map.type}")
    if system_map.clock_frequency is not None:
        lines.append(f"Max clock Frequency         | {system_map.clock_frequency} Hz")
    return "\n".join(lines) + "\n\n"


def format_kernel(kernel: KernelInfo, indent: str = "") -> str:
    """Render one kernel block; an indented block uses a shorter rule."""
    separator = indent + ("-" * _INDENTED_SEPARATOR_WIDTH if indent else SEPARATOR)
    lines = [
        separator,
        f"{indent}Kernel Information",
        separator,
        f"{indent}Kernel Name                 | {kernel.name}",
        f"{indent}Base Address                | {kernel.base_address}",
        f"{indent}Range                       | {kernel.range}",
    ]
    return "\n".join(lines) + "\n\n"


def inspect_image(image_path, workdir="/tmp") -> None:
    """Unpack ``image_path`` into ``workdir`` and print what it holds."""
    extract(image_path, workdir)
    try:
        system_map = parse_system_map(os.path.join(workdir, "system_map.xml"))
    except ValueError:
        print("Error: could not read system map file", file=sys.stderr)
        return
    print(format_platform(system_map), end="")
    print_design_info(os.path.join(workdir, "version.json"))
    for kernel in system_map.kernels:
        print(format_kernel(kernel), end="")