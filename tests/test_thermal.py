"""Test worker limits under system load."""

from types import SimpleNamespace
from unittest.mock import patch

from mastering_toolkit.core.thermal import check_thermal_throttling, get_safe_worker_count


def _sensors(celsius: float) -> dict:
    return {"coretemp": [SimpleNamespace(current=celsius)]}


def test_configured_workers_kept_when_cool() -> None:
    """A modest configured count passes through unchanged."""
    with (
        patch("mastering_toolkit.core.thermal.psutil.sensors_temperatures", return_value=_sensors(45.0), create=True),
        patch("mastering_toolkit.core.thermal.psutil.virtual_memory", return_value=SimpleNamespace(percent=30.0)),
    ):
        expected_workers = 3
        assert get_safe_worker_count(expected_workers) == expected_workers


def test_configured_workers_reduced_when_hot() -> None:
    """High temperature limits work to a single job."""
    with patch("mastering_toolkit.core.thermal.psutil.sensors_temperatures", return_value=_sensors(85.0), create=True):
        assert get_safe_worker_count(8) == 1


def test_memory_pressure_uses_fallback() -> None:
    """High memory usage limits work to the fallback count."""
    with (
        patch("mastering_toolkit.core.thermal.psutil.sensors_temperatures", return_value={}, create=True),
        patch("mastering_toolkit.core.thermal.psutil.virtual_memory", return_value=SimpleNamespace(percent=95.0)),
    ):
        expected_workers = 2
        assert get_safe_worker_count(6) == expected_workers


def test_auto_detection_halves_cores() -> None:
    """Without a configured count half the physical cores are used, capped at four."""
    with (
        patch("mastering_toolkit.core.thermal.psutil.cpu_count", return_value=16),
        patch("mastering_toolkit.core.thermal.psutil.cpu_percent", return_value=10.0),
        patch("mastering_toolkit.core.thermal.psutil.sensors_temperatures", return_value={}, create=True),
        patch("mastering_toolkit.core.thermal.psutil.virtual_memory", return_value=SimpleNamespace(percent=30.0)),
    ):
        expected_workers = 4
        assert get_safe_worker_count(None) == expected_workers


def test_auto_detection_under_load() -> None:
    """A busy CPU halves the auto-detected count."""
    with (
        patch("mastering_toolkit.core.thermal.psutil.cpu_count", return_value=4),
        patch("mastering_toolkit.core.thermal.psutil.cpu_percent", return_value=85.0),
        patch("mastering_toolkit.core.thermal.psutil.sensors_temperatures", return_value={}, create=True),
        patch("mastering_toolkit.core.thermal.psutil.virtual_memory", return_value=SimpleNamespace(percent=30.0)),
    ):
        assert get_safe_worker_count(None) == 1


def test_psutil_failure_uses_one_worker() -> None:
    """Detection errors fall back to sequential mastering."""
    with patch("mastering_toolkit.core.thermal.psutil.cpu_count", side_effect=OSError("no /proc")):
        assert get_safe_worker_count(None) == 1


def test_throttling_sleeps_when_saturated() -> None:
    """A saturated CPU pauses the batch briefly."""
    with (
        patch("mastering_toolkit.core.thermal.psutil.cpu_percent", return_value=99.0),
        patch("mastering_toolkit.core.thermal.time.sleep") as sleep,
    ):
        check_thermal_throttling()
    sleep.assert_called_once_with(1.0)


def test_throttling_idle() -> None:
    """No pause below the threshold."""
    with (
        patch("mastering_toolkit.core.thermal.psutil.cpu_percent", return_value=20.0),
        patch("mastering_toolkit.core.thermal.time.sleep") as sleep,
    ):
        check_thermal_throttling()
    sleep.assert_not_called()
