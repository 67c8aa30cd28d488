"""Resource utilization reports of the programmed shell."""

from __future__ import annotations

import os
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from dataclasses import dataclass, field

_USAGE = re.compile(r"(\d+)\((\d+\.\d+)%\)")

_USAGE_FIELDS = {
    "TotalLUTs": "total_luts",
    "LogicLUTs": "logic_luts",
    "LUTRAMs": "lut_rams",
    "SRLs": "srls",
    "FFs": "ffs",
    "RAMB36": "ramb36",
    "RAMB18": "ramb18",
    "URAM": "uram",
    "DSPBlocks": "dsp_blocks",
}

EXCLUDED_KERNELS = (
    "axi_smbus_rpu",
    "gcq_m2r",
    "hw_discovery",
    "pcie_slr0_mgmt_sc",
    "rpu_sc",
    "uuid_rom",
    "clk_wiz",
    "sys_rst",
    "noc_xbar",
)

_SEPARATOR = "+" + ("-" * 20 + "+") * 7
_HEADER = (
    "| Name               | TotalLUTs          | LogicLUTs          | FFs                | "
    "BlockRAM Tiles     | URAM               | DSPBlocks          |"
)


@dataclass(frozen=True)
class Usage:
    """A resource count and the share of the device it takes, in percent."""

    count: int = 0
    percent: float = 0.0

    def __str__(self) -> str:
        return f"{self.count}({self.percent:.2f}%)"


@dataclass
class Instance:
    """One design instance of the utilization report and the instances inside it."""

    name: str = ""
    module: str = ""
    total_luts: Usage = field(default_factory=Usage)
    logic_luts: Usage = field(default_factory=Usage)
    lut_rams: Usage = field(default_factory=Usage)
    srls: Usage = field(default_factory=Usage)
    ffs: Usage = field(default_factory=Usage)
    ramb36: Usage = field(default_factory=Usage)
    ramb18: Usage = field(default_factory=Usage)
    uram: Usage = field(default_factory=Usage)
    dsp_blocks: Usage = field(default_factory=Usage)
    children: list[Instance] = field(default_factory=list)

    @property
    def block_ram(self) -> Usage:
        """Block RAM tiles: one RAMB36 per tile, two RAMB18 per tile."""
        return Usage(
            self.ramb36.count + self.ramb18.count // 2,
            self.ramb36.percent + self.ramb18.percent / 2,
        )


def parse_usage(text: str) -> Usage:
    """Read a value such as "120(3.45%)"; anything else counts as no usage."""
    match = _USAGE.search(text)
    if not match:
        return Usage()
    return Usage(int(match.group(1)), float(match.group(2)))


def _text(element: ET.Element) -> str:
    return "".join(element.itertext())


def _collect(elements, parent: Instance) -> None:
    for element in elements:
        if element.tag == "UtilizationReport":
            _collect(list(element), parent)
            continue
        if element.tag != "Instance":
            continue
        values: dict[str, object] = {}
        for child in element:
            if child.tag == "Name":
                values["name"] = _text(child)
            elif child.tag == "Module":
                values["module"] = _text(child)
            elif child.tag in _USAGE_FIELDS:
                values[_USAGE_FIELDS[child.tag]] = parse_usage(_text(child))
        instance = Instance(**values)
        _collect(list(element), instance)
        parent.children.append(instance)


def parse_report(source) -> Instance:
    """Parse a utilization report (path or file object) into an unnamed root instance."""
    try:
        tree = ET.parse(source)
    except (ET.ParseError, OSError) as exc:
        raise ValueError(f"Failed to parse XML file: {source}") from exc
    root = Instance()
    _collect([tree.getroot()], root)
    return root


def find_instance(root: Instance, name: str) -> Iterator[Instance]:
    """Yield every instance called ``name``, without looking inside a match."""
    if root.name == name:
        yield root
        return
    for child in root.children:
        yield from find_instance(child, name)


def format_header() -> str:
    """Return the table header."""
    return f"{_SEPARATOR}\n{_HEADER}\n{_SEPARATOR}\n"


def format_row(instance: Instance) -> str:
    """Return the table row of one instance with the line below it."""
    cells = (
        instance.name,
        str(instance.total_luts),
        str(instance.logic_luts),
        str(instance.ffs),
        str(instance.block_ram),
        str(instance.uram),
        str(instance.dsp_blocks),
    )
    row = "| " + " | ".join(f"{cell:<18}" for cell in cells) + " |"
    return f"{row}\n{_SEPARATOR}\n"


def render_report(root: Instance) -> str:
    """Render total, base-logic and user-kernel usage as the tool prints it."""
    parts = ["Total usage\n"]
    for instance in find_instance(root, "top_wrapper"):
        parts.append(format_header() + format_row(instance))
    parts.append("Base logic usage. AVED + VRT + User kernels\n")
    base_logic = list(find_instance(root, "base_logic"))
    for instance in base_logic:
        parts.append(format_header() + format_row(instance))
    parts.append("User kernels usage\n")
    kernels = [
        child
        for instance in base_logic
        for child in instance.children
        if child.name not in EXCLUDED_KERNELS
    ]
    if kernels:
        parts.append(format_header())
        parts.extend(format_row(kernel) for kernel in kernels)
    return "".join(parts)


def report_utilization(device: str, ami_home=None) -> str:
    """Print and return the utilization report stored for ``device`` under AMI_HOME."""
    if ami_home is None:
        ami_home = os.environ.get("AMI_HOME", "")
    if not ami_home:
        raise RuntimeError("AMI_HOME environment variable is not set.")
    path = os.path.join(ami_home, f"{device}:00.0", "report_utilization.xml")
    text = render_report(parse_report(path))
    print(text, end="")
    return text