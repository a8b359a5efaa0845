"""Clock frequency and temperature sensors for cpubar."""

import logging
import os
from typing import Protocol

import psutil

from cpubar.models import TemperatureReading

logger = logging.getLogger(__name__)

SYSFS_CPU_ROOT = "/sys/devices/system/cpu"


class FrequencyProvider(Protocol):
    """Anything that can report the current clock speed of a core."""

    def current_mhz(self, core_id: int) -> float | None:
        """Current clock speed of core_id in MHz, or None if unknown."""
        ...


class TemperatureProvider(Protocol):
    """Anything that can report a temperature reading."""

    def read(self) -> TemperatureReading | None:
        """First available reading, or None if no sensor reports one."""
        ...


class SystemFrequencyProvider:
    """
    Frequency provider using cpufreq sysfs files, with psutil as a fallback.

    The sysfs file is keyed by the real core id; psutil only reports a list
    in core order, so it is used when sysfs has nothing for a core.
    """

    def __init__(self, sysfs_root: str = SYSFS_CPU_ROOT, use_psutil: bool = True) -> None:
        self._sysfs_root = sysfs_root
        self._use_psutil = use_psutil

    def current_mhz(self, core_id: int) -> float | None:
        """Current clock speed of core_id in MHz, or None if unknown."""
        mhz = self._read_sysfs(core_id)
        if mhz is None and self._use_psutil:
            mhz = self._read_psutil(core_id)
        return mhz

    def _read_sysfs(self, core_id: int) -> float | None:
        path = os.path.join(self._sysfs_root, f"cpu{core_id}", "cpufreq", "scaling_cur_freq")
        try:
            with open(path, encoding="ascii") as freq_file:
                khz = int(freq_file.read().strip())
        except (OSError, ValueError):
            return None
        return max(0.0, khz / 1000.0)

    @staticmethod
    def _read_psutil(core_id: int) -> float | None:
        try:
            frequencies = psutil.cpu_freq(percpu=True)
        except (NotImplementedError, OSError, RuntimeError):
            return None
        if not frequencies or core_id >= len(frequencies):
            return None
        current = frequencies[core_id].current
        return max(0.0, float(current)) if current else None


class PsutilTemperatureProvider:
    """Temperature provider reading the first sensor psutil reports."""

    def read(self) -> TemperatureReading | None:
        """First available reading, or None if no sensor reports one."""
        # Not available on every platform
        sensors = getattr(psutil, "sensors_temperatures", None)
        if sensors is None:
            return None

        try:
            readings = sensors()
        except (OSError, RuntimeError):
            logger.debug("Reading temperature sensors failed", exc_info=True)
            return None

        for chip, entries in readings.items():
            for entry in entries:
                if entry.current is None:
                    continue
                return TemperatureReading(label=entry.label or chip, celsius=float(entry.current))
        return None
