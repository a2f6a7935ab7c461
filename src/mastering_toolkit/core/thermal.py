"""Worker count and load checks for concurrent mastering jobs."""

from __future__ import annotations

import logging
import time

import psutil

LOG = logging.getLogger(__name__)

# Temperature thresholds (Celsius)
TEMP_HIGH = 70
TEMP_MODERATE = 60

# Memory usage threshold (percentage)
MEMORY_THRESHOLD = 80

# Worker limits
DEFAULT_WORKERS = 4
FALLBACK_WORKERS = 2
CPU_LOAD_THRESHOLD = 70
THROTTLE_CPU_THRESHOLD = 90


def get_safe_worker_count(configured_workers: int | None) -> int:
    """
    Get a number of concurrent jobs that doesn't overwhelm the system.

    Every job runs several ffmpeg passes back to back, so at most half the
    physical cores are used and never more than ``DEFAULT_WORKERS``.

    Args:
        configured_workers: The configured worker count, or None for auto-detection

    Returns:
        Safe number of workers considering load, memory and temperature

    """
    if configured_workers is not None and configured_workers > 0:
        safe_workers = min(configured_workers, _get_thermal_limit())
        if safe_workers < configured_workers:
            LOG.warning(
                "Reducing configured workers from %d to %d due to thermal/system load constraints",
                configured_workers,
                safe_workers,
            )
        return safe_workers

    try:
        physical_cores = psutil.cpu_count(logical=False) or 1
        cpu_percent = psutil.cpu_percent(interval=1.0)

        max_workers = min(max(1, physical_cores // 2), _get_thermal_limit())

        if cpu_percent > CPU_LOAD_THRESHOLD:
            max_workers = max(1, max_workers // 2)
            LOG.warning("High CPU load detected (%.1f%%), reducing workers to %d", cpu_percent, max_workers)

        max_workers = min(max_workers, DEFAULT_WORKERS)
        LOG.info(
            "%d physical cores, CPU load %.1f%%. Using %d mastering workers.",
            physical_cores,
            cpu_percent,
            max_workers,
        )
    except (OSError, AttributeError, ValueError) as e:
        LOG.warning("Failed to detect system specs with psutil: %s. Using 1 worker.", e)
        return 1
    else:
        return max_workers


def _get_max_temperature() -> float:
    """Get maximum current temperature from all available sensors."""
    if not hasattr(psutil, "sensors_temperatures"):
        return 0.0

    temps = psutil.sensors_temperatures()
    if not temps:
        return 0.0

    max_temp = 0.0
    for entries in temps.values():
        for entry in entries:
            if entry.current and entry.current > max_temp:
                max_temp = entry.current
    return max_temp


def _get_thermal_limit() -> int:
    """Maximum recommended workers considering temperature and memory."""
    try:
        max_temp = _get_max_temperature()
        if max_temp > TEMP_HIGH:
            return 1
        if max_temp > TEMP_MODERATE:
            return FALLBACK_WORKERS

        if psutil.virtual_memory().percent > MEMORY_THRESHOLD:
            return FALLBACK_WORKERS
    except (OSError, AttributeError, ValueError):
        return FALLBACK_WORKERS
    else:
        return DEFAULT_WORKERS


def check_thermal_throttling() -> None:
    """Pause briefly between jobs when the CPU is saturated."""
    try:
        cpu_percent = psutil.cpu_percent(interval=0.1)
        if cpu_percent > THROTTLE_CPU_THRESHOLD:
            LOG.warning("High CPU usage detected during mastering: %.1f%%", cpu_percent)
            time.sleep(1.0)
    except (OSError, AttributeError):
        LOG.debug("Could not check thermal throttling")
