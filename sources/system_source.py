"""System data sources -- CPU, RAM, GPU, battery, active app.

Reads from /proc and /sys on Linux. No external dependencies.
Only the metrics switched on in preferences are sampled; a metric that
cannot be read reports None and displays as "--".

CPU usage is a delta between two /proc/stat samples, so the very first
sample after start reports 0%.
"""

import glob
import logging
import os
import subprocess
from typing import Any, Dict, Optional, Tuple

from core.data_source import DataSource
from core.registry import register_source

logger = logging.getLogger(__name__)

PLACEHOLDER = "--"


def battery_icon(percent: int, charging: bool) -> str:
    if charging:
        return "battery_charging"
    if percent < 20:
        return "battery_0"
    if percent < 45:
        return "battery_25"
    if percent < 70:
        return "battery_50"
    if percent < 90:
        return "battery_75"
    return "battery_100"


def parse_cpu_times(text: str) -> Optional[Tuple[int, int]]:
    """(busy, total) jiffies from the aggregate "cpu" line of /proc/stat."""
    for line in text.splitlines():
        parts = line.split()
        if parts and parts[0] == "cpu":
            values = [int(v) for v in parts[1:]]
            # user nice system idle iowait irq softirq steal
            idle = values[3] + (values[4] if len(values) > 4 else 0)
            total = sum(values[:8])
            return total - idle, total
    return None


def parse_meminfo(text: str) -> Dict[str, int]:
    """/proc/meminfo as {key: kB}."""
    meminfo = {}
    for line in text.splitlines():
        parts = line.split(":")
        if len(parts) == 2:
            fields = parts[1].strip().split()
            if fields:
                meminfo[parts[0].strip()] = int(fields[0])
    return meminfo


@register_source("stats")
class StatsSource(DataSource):
    """Publishes cpu / ram / gpu / battery readings."""

    def __init__(self, source_id: str, config: Dict, prefs=None):
        config.setdefault("interval", 1.5)
        config.setdefault("timeout", 2.0)
        super().__init__(source_id, config)
        self.prefs = prefs
        self._proc = config.get("proc_root", "/proc")
        self._sys = config.get("sys_root", "/sys")
        self._last_cpu: Optional[Tuple[int, int]] = None

    def _enabled(self, key: str) -> bool:
        if self.prefs is None:
            return True
        return bool(self.prefs.get(key))

    def fetch(self) -> Optional[Dict[str, Any]]:
        data: Dict[str, Any] = {}

        if self._enabled("show_cpu"):
            percent = self.cpu_percent()
            data["cpu_percent"] = percent
            data["cpu"] = f"{round(percent)}%" if percent is not None else PLACEHOLDER

        if self._enabled("show_ram"):
            used = self.memory_used_gb()
            data["ram_gb"] = used
            data["ram"] = f"{used:.1f} GB" if used is not None else PLACEHOLDER

        if self._enabled("show_gpu"):
            busy = self.gpu_percent()
            data["gpu_percent"] = busy
            data["gpu"] = f"{busy}%" if busy is not None else PLACEHOLDER

        if self._enabled("show_battery"):
            reading = self.battery()
            if reading is None:
                data["battery_percent"] = None
                data["battery"] = "N/A"
                data["battery_icon"] = "battery_100"
                data["charging"] = False
            else:
                percent, charging = reading
                data["battery_percent"] = percent
                data["battery"] = f"{percent}%"
                data["battery_icon"] = battery_icon(percent, charging)
                data["charging"] = charging

        return data

    # ------------------------------------------------------------------
    # Metric readers
    # ------------------------------------------------------------------

    def cpu_percent(self) -> Optional[float]:
        try:
            with open(os.path.join(self._proc, "stat")) as f:
                current = parse_cpu_times(f.read())
        except (OSError, ValueError, IndexError) as exc:
            logger.debug("cpu read failed: %s", exc)
            return None
        if current is None:
            return None

        previous, self._last_cpu = self._last_cpu, current
        if previous is None:
            return 0.0
        busy = current[0] - previous[0]
        total = current[1] - previous[1]
        if total <= 0:
            return None
        return max(0.0, min(100.0, busy / total * 100.0))

    def memory_used_gb(self) -> Optional[float]:
        try:
            with open(os.path.join(self._proc, "meminfo")) as f:
                meminfo = parse_meminfo(f.read())
        except (OSError, ValueError) as exc:
            logger.debug("meminfo read failed: %s", exc)
            return None
        total = meminfo.get("MemTotal")
        available = meminfo.get("MemAvailable")
        if not total or available is None:
            return None
        return (total - available) * 1024 / (1024 ** 3)

    def gpu_percent(self) -> Optional[int]:
        """Busy percent of the first DRM card that reports one (amdgpu, i915 via xe)."""
        pattern = os.path.join(self._sys, "class", "drm", "card*", "device", "gpu_busy_percent")
        for path in sorted(glob.glob(pattern)):
            try:
                with open(path) as f:
                    return int(f.read().strip())
            except (OSError, ValueError):
                continue
        return None

    def battery(self) -> Optional[Tuple[int, bool]]:
        """(percent, charging) of the first battery, or None on desktops."""
        pattern = os.path.join(self._sys, "class", "power_supply", "BAT*")
        for base in sorted(glob.glob(pattern)):
            try:
                with open(os.path.join(base, "capacity")) as f:
                    percent = int(f.read().strip())
            except (OSError, ValueError):
                continue
            charging = False
            try:
                with open(os.path.join(base, "status")) as f:
                    charging = f.read().strip().lower() == "charging"
            except OSError:
                pass
            return percent, charging
        return None


def parse_wm_class(output: str) -> Optional[str]:
    """Class part of xprop's 'WM_CLASS(STRING) = "instance", "Class"'."""
    if "=" not in output:
        return None
    names = [part.strip().strip('"') for part in output.split("=", 1)[1].split(",")]
    names = [name for name in names if name]
    return names[-1].lower() if names else None


@register_source("app")
class ActiveAppSource(DataSource):
    """Frontmost application id (X11 WM_CLASS), for automatic profiles."""

    def __init__(self, source_id: str, config: Dict):
        config.setdefault("interval", 2.0)
        config.setdefault("timeout", 2.0)
        super().__init__(source_id, config)

    def _xprop(self, *args: str) -> Optional[str]:
        try:
            result = subprocess.run(
                ["xprop", *args], capture_output=True, text=True, timeout=1,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("xprop failed: %s", exc)
            return None
        return result.stdout if result.returncode == 0 else None

    def fetch(self) -> Optional[Dict[str, Any]]:
        root = self._xprop("-root", "_NET_ACTIVE_WINDOW")
        if not root or "#" not in root:
            return {"app_id": None}
        window = root.rsplit("#", 1)[1].split(",")[0].strip()
        if window in ("0x0", ""):
            return {"app_id": None}
        wm_class = self._xprop("-id", window, "WM_CLASS")
        return {"app_id": parse_wm_class(wm_class) if wm_class else None}
