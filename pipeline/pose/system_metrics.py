# pipeline/pose/system_metrics.py
import os
import time

import psutil

THERMAL_ZONE = "/sys/class/thermal/thermal_zone0/temp"


def read_cpu_temperature(path=THERMAL_ZONE):
    """SoC temperature in °C, or None where the thermal zone is not exposed."""
    try:
        with open(path) as f:
            return int(f.read()) / 1000.0
    except (OSError, ValueError):
        return None


def get_health(db_path="."):
    """Heartbeat snapshot: cpu / ram / disk usage in percent and temperature."""
    disk_dir = os.path.dirname(os.path.abspath(db_path)) if db_path != ":memory:" else "."
    return {
        "cpu": psutil.cpu_percent(),
        "ram": psutil.virtual_memory().percent,
        "disk": psutil.disk_usage(disk_dir).percent,
        "temp": read_cpu_temperature(),
        "ts": time.time(),
    }
