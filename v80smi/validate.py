"""Validation of a device's memory-mapped DMA path: HBM, DDR and PCIe bandwidth."""

from __future__ import annotations

import enum
import math
import os
import sys
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

DEV_ROOT = "/dev"

ADDR_START_HBM = 0x4000000000
ADDR_START_DDR = 0x50000000000
ADDR_START_DIMM_DDR = 0x60000000000
SIZE_PER_HBM_CHANNEL = 0x20000000
RW_MAX_SIZE = 0x7FFFF000
DEFAULT_TEST_SIZE = 0x4000000
DEFAULT_COUNT_TIMES = 10
GB_DIV = 1_000_000_000
NSEC_DIV = 1_000_000_000
PCIE_THREADS = 8
PCIE_ADDR_STRIDE = 0x80000000

_ALIGNMENT = 4096
_print_lock = threading.Lock()

# Device address windows with a name of their own; anything else counts as DDR.
_MEMORY_REGIONS = (("HBM", ADDR_START_HBM, ADDR_START_DDR),)
_DEFAULT_MEMORY = "DDR"

_VERBOSE_SEPARATOR = (
    "+----------------+----------------+----------------+----------------+----------------+"
    "----------------+-----------------+"
)
_VERBOSE_HEADER = (
    "| Test Type      | Device         | Memory Type    | Total Time (ns)| Avg Time (ns)  "
    "| Size (GB)      | Bandwidth (GB/s)|"
)
_VERBOSE_FOOTER = (
    "+----------------+----------------+----------------+----------------+----------------+"
    "----------------+-----------------"
)
_SHORT_SEPARATOR = "+----------------+----------------+-----------------+"
_SHORT_HEADER = "| Test Type      | Memory Type    | Bandwidth (GB/s)|"
_PCIE_SEPARATOR = "+---------------------------------------------------+"


class TransferError(Exception):
    """Raised when a DMA transfer to or from the device fails."""


class TestType(enum.Enum):
    """Direction of a DMA test."""

    __test__ = False

    READ = "Read"
    WRITE = "Write"


def memory_type(addr: int) -> str:
    """Name the memory that device address ``addr`` falls in."""
    for name, start, end in _MEMORY_REGIONS:
        if start <= addr < end:
            return name
    return _DEFAULT_MEMORY


@dataclass(frozen=True)
class DmaResult:
    """Timing of one DMA test; times in seconds, bandwidth in bytes per second."""

    devname: str
    addr: int
    total_time: float
    avg_time: float
    size: int
    bandwidth: float
    test_type: TestType

    @property
    def memory_type(self) -> str:
        return memory_type(self.addr)


def _emit(text: str, stream=None) -> None:
    with _print_lock:
        print(text, file=stream or sys.stdout, flush=True)


def _seek(fd: int, offset: int) -> None:
    try:
        position = os.lseek(fd, offset, os.SEEK_SET)
    except OSError as exc:
        raise TransferError(f"seek off 0x{offset:x} failed: {exc}") from exc
    if position != offset:
        raise TransferError(f"seek off 0x{position:x} != 0x{offset:x}")


def write_from_buffer(fd: int, buffer, base: int) -> int:
    """Write ``buffer`` to the device at address ``base`` in bounded chunks; return the count."""
    view = memoryview(buffer).cast("B")
    size = len(view)
    count = 0
    offset = base
    while True:
        chunk = min(size - count, RW_MAX_SIZE)
        if offset:
            _seek(fd, offset)
        try:
            written = os.write(fd, view[count:count + chunk])
        except OSError as exc:
            raise TransferError(f"W off 0x{offset:x}, 0x{chunk:x} failed: {exc}") from exc
        if written != chunk:
            raise TransferError(f"W off 0x{offset:x}, 0x{written:x} != 0x{chunk:x}")
        count += chunk
        offset += chunk
        if count >= size:
            break
    return count


def read_to_buffer(fd: int, size: int, base: int) -> bytes:
    """Read ``size`` bytes from the device at address ``base`` in bounded chunks."""
    parts: list[bytes] = []
    count = 0
    offset = base
    while True:
        chunk = min(size - count, RW_MAX_SIZE)
        if offset:
            _seek(fd, offset)
        try:
            data = os.read(fd, chunk)
        except OSError as exc:
            raise TransferError(f"read off 0x{offset:x} + 0x{chunk:x} failed: {exc}") from exc
        if len(data) != chunk:
            raise TransferError(f"R off 0x{count:x}, 0x{len(data):x} != 0x{chunk:x}")
        parts.append(data)
        count += chunk
        offset += chunk
        if count >= size:
            break
    return b"".join(parts)


def _open_device(devname: str, flags: int) -> int:
    try:
        return os.open(devname, flags)
    except OSError as exc:
        raise TransferError(f"unable to open device {devname}: {exc}") from exc


def _host_buffer(size: int, offset: int) -> memoryview:
    if not 0 <= offset <= _ALIGNMENT:
        raise ValueError(f"buffer offset must be between 0 and {_ALIGNMENT}")
    return memoryview(bytearray(size + _ALIGNMENT))[offset:offset + size]


def _check_count(count: int) -> None:
    if count < 1:
        raise ValueError("count must be positive")


def _bandwidth(size: int, avg_time: float) -> float:
    if avg_time > 0:
        return size / avg_time
    return 0.0 if size == 0 else math.inf


def _timed(count: int, action: Callable[[], object], report: Callable[[int, int], str] | None):
    total = 0.0
    for i in range(count):
        start = time.monotonic_ns()
        action()
        elapsed = time.monotonic_ns() - start
        total += elapsed / NSEC_DIV
        if report is not None:
            _emit(report(i, elapsed))
    return total


def _clock_text(elapsed_ns: int) -> str:
    seconds, nanos = divmod(elapsed_ns, NSEC_DIV)
    return f"CLOCK_MONOTONIC {seconds}.{nanos:09d} sec."


def test_dma_write(devname, addr, size, offset, count, verbose) -> DmaResult:
    """Write ``size`` bytes to ``addr`` ``count`` times, print and return the timing."""
    _check_count(count)
    buffer = _host_buffer(size, offset)
    fd = _open_device(devname, os.O_RDWR)
    try:
        if verbose:
            _emit(f"host buffer 0x{size + _ALIGNMENT:x}")
        report = (
            (lambda i, ns: f"{_clock_text(ns)} write {size} bytes") if verbose else None
        )
        total = _timed(count, lambda: write_from_buffer(fd, buffer, addr), report)
    finally:
        os.close(fd)
    avg = total / count
    result = DmaResult(devname, addr, total, avg, size, _bandwidth(size, avg), TestType.WRITE)
    _emit(format_results(result, verbose))
    return result


def test_dma_read(devname, addr, size, offset, count, verbose) -> DmaResult:
    """Read ``size`` bytes from ``addr`` ``count`` times, print and return the timing."""
    _check_count(count)
    buffer = _host_buffer(size, offset)
    fd = _open_device(devname, os.O_RDWR | os.O_NONBLOCK)

    def action() -> None:
        buffer[:] = read_to_buffer(fd, size, addr)

    try:
        if verbose:
            _emit(f"host buffer 0x{size + _ALIGNMENT:x}")
        report = (
            (lambda i, ns: f"#{i}: {_clock_text(ns)} read {size} bytes") if verbose else None
        )
        total = _timed(count, action, report)
    finally:
        os.close(fd)
    avg = total / count
    result = DmaResult(devname, addr, total, avg, size, _bandwidth(size, avg), TestType.READ)
    _emit(format_results(result, verbose))
    return result


def test_dma_write_pcie(devname, addr, size, offset, count) -> float:
    """Write ``size`` bytes at the queue's current position ``count`` times; return bytes/s."""
    _check_count(count)
    buffer = _host_buffer(size, offset)
    fd = _open_device(devname, os.O_RDWR)

    def action() -> None:
        try:
            os.write(fd, buffer)
        except OSError as exc:
            raise TransferError(f"Could not write to device buffer: {exc}") from exc

    try:
        total = _timed(count, action, None)
    finally:
        os.close(fd)
    return _bandwidth(size, total / count)


def format_results(result: DmaResult, verbose) -> str:
    """Render the result table of one DMA test."""
    bandwidth = result.bandwidth / GB_DIV
    if verbose:
        row = (
            f"| {result.test_type.value:<14} | {result.devname:<14} | {result.memory_type:<14} "
            f"| {result.total_time:<14.2f} | {result.avg_time:<14.2f} "
            f"| {result.size / GB_DIV:<14.2f} | {bandwidth:<14.2f}  |"
        )
        lines = [_VERBOSE_SEPARATOR, _VERBOSE_HEADER, _VERBOSE_SEPARATOR, row, _VERBOSE_FOOTER]
    else:
        row = f"| {result.test_type.value:<14} | {result.memory_type:<14} | {bandwidth:<14.2f}  |"
        lines = [_SHORT_SEPARATOR, _SHORT_HEADER, _SHORT_SEPARATOR, row, _SHORT_SEPARATOR]
    return "\n".join(lines)


def format_pci_bandwidth(value) -> str:
    """Render the total PCIe bandwidth, given in GB/s."""
    return "\n".join(
        [_PCIE_SEPARATOR, f"| Total PCIe Bandwidth (GB/s): {value:<19.2f} |", _PCIE_SEPARATOR]
    )


def _concurrently(*calls: Callable[[], DmaResult]) -> list:
    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(call) for call in calls]
        return [future.result() for future in futures]


def run_sim_seq_rw(devname, size, offset, count, verbose) -> list[DmaResult]:
    """Read and write HBM at once, then DDR at once; return the four results."""
    results = []
    for label, addr in (("HBM", ADDR_START_HBM), ("DDR", ADDR_START_DDR)):
        _emit(f"Performing simultaneous RW test for {label}")
        results.extend(
            _concurrently(
                lambda a=addr: test_dma_read(devname, a, size, offset, count, verbose),
                lambda a=addr: test_dma_write(devname, a, size, offset, count, verbose),
            )
        )
    return results


def run_sim_rw_per_memory(devname, addr, size, offset, count, verbose, mem_type) -> list[DmaResult]:
    """Write two channels at once, then read them at once; return the four results."""
    _emit("Running bandwidth test for HBM memory")
    _emit("Running simultaneous write test on multiple HBM channels")
    second = addr + 2 * SIZE_PER_HBM_CHANNEL if mem_type == "hbm" else ADDR_START_DIMM_DDR
    channels = (addr, second)
    writes = _concurrently(
        *(
            (lambda a=a: test_dma_write(devname, a, size, offset, count, verbose))
            for a in channels
        )
    )
    reads = _concurrently(
        *(
            (lambda a=a: test_dma_read(devname, a, size, offset, count, verbose))
            for a in channels
        )
    )
    return writes + reads


def run_pcie_bw_test(devname, size, offset, count, verbose) -> float:
    """Write from several threads at once; print and return the summed bandwidth in GB/s."""
    addresses = [ADDR_START_DDR + i * PCIE_ADDR_STRIDE for i in range(PCIE_THREADS)]
    with ThreadPoolExecutor(max_workers=PCIE_THREADS) as pool:
        futures = [
            pool.submit(test_dma_write_pcie, devname, a, size, offset, count) for a in addresses
        ]
        total = sum(future.result() / GB_DIV for future in futures)
    _emit(format_pci_bandwidth(total))
    return total


def _run_suite(devname: str, size: int, offset: int, count: int, verbose: int) -> bool:
    addr = ADDR_START_DDR
    steps: list[tuple[str | None, str, Callable[[], object]]] = [
        ("Performing seq RW test for HBM", "Error: Write test failed",
         lambda: test_dma_write(devname, ADDR_START_HBM, size, offset, count, verbose)),
        (None, "Error: Read test failed",
         lambda: test_dma_read(devname, ADDR_START_HBM, size, offset, count, verbose)),
        ("Performing seq RW test for DDR", "Error: Write test failed",
         lambda: test_dma_write(devname, addr, size, offset, count, verbose)),
        (None, "Error: Read test failed",
         lambda: test_dma_read(devname, addr, size, offset, count, verbose)),
        (None, "Error: Simultaneous RW test failed",
         lambda: run_sim_seq_rw(devname, size, offset, count, verbose)),
        (None, "Error: Simultaneous RW test per memory failed",
         lambda: run_sim_rw_per_memory(devname, addr, size, offset, count, verbose, "hbm")),
        (None, "Error: Simultaneous RW test per memory failed",
         lambda: run_sim_rw_per_memory(devname, addr, size, offset, count, verbose, "ddr")),
        (None, "Error: PCIe bandwidth test failed",
         lambda: run_pcie_bw_test(devname, size, offset, count, verbose)),
    ]
    for announcement, failure, step in steps:
        if announcement:
            _emit(announcement)
        try:
            step()
        except TransferError as exc:
            _emit(f"{exc}\n{failure}", sys.stderr)
            return False
    return True


def validate_device(device, dev_root=DEV_ROOT) -> bool:
    """Run the DMA validation suite on ``device``; return whether every test passed."""
    if not device:
        raise ValueError("Device is required for validation")
    print(f"Running validation for device: {device}")
    queue = os.path.join(dev_root, f"qdma{device}001-MM-0")
    if not os.path.exists(queue):
        raise FileNotFoundError(
            f"Device {queue} does not exist. "
            f"Please run as root: /usr/local/vrt/setup_queues.sh {queue} --mm 0 bi"
        )
    passed = _run_suite(queue, DEFAULT_TEST_SIZE, 0, DEFAULT_COUNT_TIMES, 0)
    if passed:
        print("All tests passed")
    return passed