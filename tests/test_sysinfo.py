from collections import namedtuple

import pytest

from satnogs_monitor import sysinfo
from satnogs_monitor.sysinfo import SysInfo

Mem = namedtuple("Mem", "total available")
Temp = namedtuple("Temp", "label current high critical")


@pytest.fixture
def fake_psutil(monkeypatch):
    monkeypatch.setattr(sysinfo.psutil, "cpu_percent", lambda interval, percpu: [10.0, 30.0])
    monkeypatch.setattr(sysinfo.psutil, "virtual_memory", lambda: Mem(8000, 6000))
    monkeypatch.setattr(sysinfo.psutil, "boot_time", lambda: 0.0)
    monkeypatch.setattr(sysinfo.psutil, "sensors_temperatures",
                        lambda: {"acpitz": [Temp("", 40.0, None, None)], "coretemp": [Temp("", 55.0, None, None)]},
                        raising=False)


def test_sample(fake_psutil):
    info = sysinfo.sample(interval=0)
    assert info.cpu_load == [10.0, 30.0]
    assert info.cpu_temp == 55.0
    assert info.mem_total == 8000
    assert info.mem_available == 6000
    assert info.mem_used_percent == 25.0
    assert info.uptime > 0


def test_no_sensors(fake_psutil, monkeypatch):
    monkeypatch.setattr(sysinfo.psutil, "sensors_temperatures", lambda: {}, raising=False)
    assert sysinfo.sample(interval=0).cpu_temp is None


def test_empty_snapshot():
    assert SysInfo().mem_used_percent is None
