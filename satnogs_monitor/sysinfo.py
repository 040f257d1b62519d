import time
from dataclasses import dataclass
from typing import List, Optional

import psutil

# sensor names that carry the cpu package temperature, most specific first
CPU_SENSORS = ["coretemp", "k10temp", "cpu_thermal", "cpu-thermal", "soc_thermal", "acpitz"]


@dataclass
class SysInfo:
    cpu_load: Optional[List[float]] = None
    cpu_temp: Optional[float] = None
    mem_total: Optional[int] = None
    mem_available: Optional[int] = None
    uptime: Optional[float] = None

    @property
    def mem_used_percent(self):
        if not self.mem_total or self.mem_available is None:
            return None
        return 100.0 * (self.mem_total - self.mem_available) / self.mem_total


def cpu_temperature():
    if not hasattr(psutil, "sensors_temperatures"):
        return None
    try:
        temps = psutil.sensors_temperatures()
    except OSError:
        return None
    for name in CPU_SENSORS:
        if temps.get(name):
            return temps[name][0].current
    for entries in temps.values():
        if entries:
            return entries[0].current
    return None


def sample(interval=1.0):
    """Snapshot of this host. Blocks for `interval` seconds to measure cpu load."""
    info = SysInfo()
    try:
        info.cpu_load = psutil.cpu_percent(interval=interval, percpu=True)
    except OSError:
        pass
    info.cpu_temp = cpu_temperature()
    try:
        mem = psutil.virtual_memory()
        info.mem_total = mem.total
        info.mem_available = mem.available
    except OSError:
        pass
    try:
        info.uptime = time.time() - psutil.boot_time()
    except OSError:
        pass
    return info
