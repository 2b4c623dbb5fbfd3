"""Network data sources -- ping latency and interface throughput.

PingSource runs a single ping against a fixed host (1.1.1.1 by default)
and reports "NN ms" or "Timeout". ThroughputSource diffs the rx/tx byte
counters in /proc/net/dev (loopback excluded) and reports B/s .. GB/s,
plus whether a VPN-style interface is up.

No external dependencies beyond stdlib.

Config example:
    cadences:
      network: 8
"""

import logging
import os
import re
import subprocess
import time
from typing import Any, Dict, Iterable, Optional, Tuple

from config import PING_HOST, VPN_INTERFACE_PREFIXES
from core.data_source import DataSource
from core.registry import register_source

logger = logging.getLogger(__name__)

_PING_TIME = re.compile(r"time[=<]([\d.]+)")


def parse_ping_ms(output: str) -> Optional[int]:
    """Round-trip time in whole ms from ping's "time=12.3 ms", or None."""
    match = _PING_TIME.search(output)
    if not match:
        return None
    try:
        return int(round(float(match.group(1))))
    except ValueError:
        return None


def format_rate(bytes_per_second: float) -> str:
    units = ["B/s", "KB/s", "MB/s", "GB/s"]
    amount = bytes_per_second
    index = 0
    while amount >= 1024 and index < len(units) - 1:
        amount /= 1024
        index += 1
    if index == 0:
        return f"{int(amount)} {units[0]}"
    return f"{amount:.1f} {units[index]}"


def parse_net_dev(text: str) -> Dict[str, Tuple[int, int]]:
    """/proc/net/dev as {interface: (rx_bytes, tx_bytes)}."""
    counters = {}
    for line in text.splitlines()[2:]:
        if ":" not in line:
            continue
        name, fields = line.split(":", 1)
        parts = fields.split()
        if len(parts) < 9:
            continue
        counters[name.strip()] = (int(parts[0]), int(parts[8]))
    return counters


def vpn_active(interfaces: Iterable[str], prefixes=VPN_INTERFACE_PREFIXES) -> bool:
    return any(name.startswith(prefixes) for name in interfaces)


@register_source("ping")
class PingSource(DataSource):
    """Latency probe, independent of the panel's expand state."""

    def __init__(self, source_id: str, config: Dict):
        config.setdefault("interval", 8.0)
        config.setdefault("timeout", 3.0)
        super().__init__(source_id, config)
        self._host = config.get("ping_host", PING_HOST)

    def fetch(self) -> Optional[Dict[str, Any]]:
        try:
            result = subprocess.run(
                ["ping", "-c", "1", "-W", "1", self._host],
                capture_output=True, text=True, timeout=2,
            )
            ms = parse_ping_ms(result.stdout) if result.returncode == 0 else None
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.debug("ping %s failed: %s", self._host, exc)
            ms = None

        return {
            "host": self._host,
            "ping_ms": ms,
            "ping": f"{ms} ms" if ms is not None else "Timeout",
        }


@register_source("throughput")
class ThroughputSource(DataSource):
    """Down/up rate since the previous sample."""

    def __init__(self, source_id: str, config: Dict, clock=time.monotonic):
        config.setdefault("interval", 1.5)
        config.setdefault("timeout", 2.0)
        super().__init__(source_id, config)
        self._proc = config.get("proc_root", "/proc")
        self._sys = config.get("sys_root", "/sys")
        self._clock = clock
        self._last: Optional[Tuple[float, int, int]] = None

    def _up_interfaces(self, names: Iterable[str]) -> Iterable[str]:
        up = []
        for name in names:
            try:
                with open(os.path.join(self._sys, "class", "net", name, "operstate")) as f:
                    state = f.read().strip()
            except OSError:
                state = "unknown"
            # tun devices often report "unknown" while carrying traffic
            if state != "down":
                up.append(name)
        return up

    def fetch(self) -> Optional[Dict[str, Any]]:
        try:
            with open(os.path.join(self._proc, "net", "dev")) as f:
                counters = parse_net_dev(f.read())
        except (OSError, ValueError) as exc:
            logger.debug("net/dev read failed: %s", exc)
            return {"down": "--", "up": "--", "vpn": "--", "vpn_enabled": None}

        counters.pop("lo", None)
        vpn = vpn_active(self._up_interfaces(counters))
        rx = sum(c[0] for c in counters.values())
        tx = sum(c[1] for c in counters.values())
        now = self._clock()

        previous, self._last = self._last, (now, rx, tx)
        if previous is None:
            down, up = "0 B/s", "0 B/s"
        else:
            elapsed = now - previous[0]
            if elapsed <= 0:
                down, up = "--", "--"
            else:
                down = format_rate(max(0, rx - previous[1]) / elapsed)
                up = format_rate(max(0, tx - previous[2]) / elapsed)

        return {
            "down": down,
            "up": up,
            "vpn": "On" if vpn else "Off",
            "vpn_enabled": vpn,
        }
