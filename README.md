# v80smi

A Python library for working with V80 accelerator cards on Linux. It reads
`.vrtbin` design archives and the metadata inside them, parses system maps and
resource utilization reports, finds installed cards on the PCI bus, reports
the state of a card's memory-mapped DMA queue and runs DMA bandwidth checks
against HBM and DDR.

## Installation

```
pip install .
```

Running the tests needs the `test` extra:

```
pip install ".[test]"
pytest
```

## Modules

- `v80smi.vrtbin` – `extract(source, destination)` unpacks an archive with
  `tar`; `copy`, `extract_uuid(path)`, `parse_design_info(path)` returning a
  `DesignInfo`, `format_design_info`, `print_design_info`, and
  `progress_bar(...)`, which builds one progress-bar line and returns it with
  the next spinner state.
- `v80smi.inspect` – `parse_system_map(path)` returns a `SystemMap` with its
  `KernelInfo` entries; `format_platform`, `format_kernel`, and
  `inspect_image(image_path, workdir="/tmp")`, which unpacks an image and prints
  its platform, design and kernel information.
- `v80smi.resources` – `parse_usage`, `parse_report(source)` returning a tree
  of `Instance` objects with `Usage` values, `find_instance`, `format_header`,
  `format_row`, `render_report(root)`, and `report_utilization(device,
  ami_home=None)`, which prints the report kept in
  `$AMI_HOME/<bus>:00.0/report_utilization.xml`.
- `v80smi.listing` – `find_devices(vendor_id, device_id, root)` yields the PCI
  device names with matching ids under `/sys/bus/pci/devices`;
  `list_devices(...)` prints and returns them.
- `v80smi.query` – `query_kernels(bdf, ami_home=None)` prints the design and
  kernel information kept under `$AMI_HOME/<bus>:00.0/`;
  `query_queues(bdf, dev_root, sysfs_root)` checks the `qdma<bus>001-MM-0`
  queue and returns the queue limit; `query_device(bdf, ami_home=None)` does
  both; `format_manufacturing_date(minutes)`.
- `v80smi.validate` – `validate_device(device, dev_root="/dev")` runs the
  sequential, simultaneous and PCIe bandwidth DMA tests on the device's queue
  and returns whether all passed. The single tests (`test_dma_write`,
  `test_dma_read`, `test_dma_write_pcie`, `run_sim_seq_rw`,
  `run_sim_rw_per_memory`, `run_pcie_bw_test`) return `DmaResult` values or
  bandwidths; failed transfers raise `TransferError`.
- `v80smi.args` – `parse_args(argv)` parses `<command> [-d device] [-i image]
  [-p partition] [-h]` into a `ParsedArgs`, raising `UsageError` on bad usage;
  `convert_bdf` reduces `0000:21:00.0` or `21:00.0` to the bus `21`;
  `help_text()` returns the usage message.
- `v80smi.version` – `get_version()` returns the version tag.

## Example

```python
from v80smi.vrtbin import parse_design_info, format_design_info
from v80smi.resources import parse_report, render_report
from v80smi.listing import find_devices

print(format_design_info(parse_design_info("version.json")))
print(render_report(parse_report("report_utilization.xml")))
print(list(find_devices(0x10EE, 0x50B4, "/sys/bus/pci/devices")))
```

## What it does not do

- It installs no command-line program. `parse_args` only parses arguments;
  nothing in the package dispatches the parsed command.
- It does not program a card's flash, load a partial image, reset a card or
  reload its PCIe handler, although `parse_args` accepts the `program`,
  `partial_program`, `reset` and `reload` command names.
- It does not read device details such as name, state, firmware versions,
  manufacturing data or PCI link status from the card's management interface;
  querying covers the stored design files and the DMA queue only.