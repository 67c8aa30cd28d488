from datetime import datetime

import pytest

from v80smi.query import (
    format_manufacturing_date,
    query_device,
    query_kernels,
    query_queues,
)

SYSTEM_MAP = """<?xml version="1.0"?>
<SystemMap>
  <Platform>hardware</Platform>
  <Kernel>
    <Name>vadd</Name>
    <BaseAddress>0x20100000000</BaseAddress>
    <Range>0x10000</Range>
  </Kernel>
  <Kernel>
    <Name>vmul</Name>
    <BaseAddress>0x20100010000</BaseAddress>
    <Range>0x20000</Range>
  </Kernel>
</SystemMap>
"""

VERSION = """{
  "design": {
    "name": "demo_design",
    "release": "2024.2",
    "logic_uuid": "abcdefabcdefabcdefabcdefabcdefab",
    "application": "demo_app"
  }
}
"""


@pytest.fixture
def ami_home(tmp_path):
    directory = tmp_path / "21:00.0"
    directory.mkdir()
    (directory / "system_map.xml").write_text(SYSTEM_MAP)
    (directory / "version.json").write_text(VERSION)
    return tmp_path


def test_manufacturing_date_zero_is_invalid():
    with pytest.raises(ValueError):
        format_manufacturing_date(0)


def test_manufacturing_date_c_locale():
    assert format_manufacturing_date(60) == "Thu Feb  1 01:00:00 1996"


def test_manufacturing_date_round_trip():
    text = format_manufacturing_date(1440 * 3 + 30)
    parsed = datetime.strptime(text, "%c")
    assert (parsed.year, parsed.month, parsed.day) == (1996, 2, 4)
    assert (parsed.hour, parsed.minute) == (0, 30)


def test_query_kernels_returns_kernels(ami_home, capsys):
    kernels = query_kernels("21", str(ami_home))
    assert [k.name for k in kernels] == ["vadd", "vmul"]
    assert kernels[0].base_address == "0x20100000000"
    out = capsys.readouterr().out
    assert "\tKernel Name                 | vadd\n" in out
    assert "\tRange                       | 0x20000\n" in out
    assert "Design Name                 | demo_design\n" in out


def test_query_kernels_uses_environment(ami_home, monkeypatch):
    monkeypatch.setenv("AMI_HOME", str(ami_home))
    assert len(query_kernels("21")) == 2


def test_query_kernels_without_ami_home(monkeypatch):
    monkeypatch.delenv("AMI_HOME", raising=False)
    with pytest.raises(RuntimeError, match="AMI_HOME"):
        query_kernels("21")


def test_query_kernels_missing_map(tmp_path):
    with pytest.raises(ValueError, match="could not parse file"):
        query_kernels("21", str(tmp_path))


def _queue_setup(tmp_path, qmax="256\n"):
    dev_root = tmp_path / "dev"
    dev_root.mkdir()
    (dev_root / "qdma21001-MM-0").write_text("")
    qmax_dir = tmp_path / "sys" / "0000:21:00.1" / "qdma"
    qmax_dir.mkdir(parents=True)
    (qmax_dir / "qmax").write_text(qmax)
    return str(dev_root), str(tmp_path / "sys")


def test_query_queues_reads_qmax(tmp_path, capsys):
    dev_root, sys_root = _queue_setup(tmp_path)
    assert query_queues("21", dev_root, sys_root) == "256\n"
    out = capsys.readouterr().out
    assert "QDMA Queue Status" in out
    assert "mode bi" in out
    assert "Max allocable queues: 256" in out


def test_query_queues_missing_queue(tmp_path):
    with pytest.raises(RuntimeError, match="QDMA MM Queue not present"):
        query_queues("21", str(tmp_path), str(tmp_path))


def test_query_queues_missing_qmax(tmp_path):
    dev_root, _ = _queue_setup(tmp_path)
    with pytest.raises(RuntimeError, match="Could not open QMAX file"):
        query_queues("21", dev_root, str(tmp_path / "nowhere"))


def test_query_device_requires_bdf(capsys):
    query_device("")
    assert "BDF is required" in capsys.readouterr().err


def test_query_device_reports_kernels_and_missing_queue(ami_home, capsys):
    query_device("21", str(ami_home))
    captured = capsys.readouterr()
    assert "\tKernel Name                 | vmul\n" in captured.out
    assert "QDMA MM Queue not present" in captured.err


def test_query_device_reports_missing_map(tmp_path, capsys):
    query_device("21", str(tmp_path))
    assert "could not parse file" in capsys.readouterr().err