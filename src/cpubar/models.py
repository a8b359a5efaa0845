"""Data models for cpubar."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class CoreCounters:
    """Cumulative time counters of one logical core, as read from the source."""

    core_id: int
    user: int
    nice: int
    system: int
    idle: int  # idle + iowait
    total: int  # sum of every field the source provided


@dataclass(slots=True, frozen=True)
class CounterSnapshot:
    """One point-in-time read of all known cores, in discovery order."""

    cores: tuple[CoreCounters, ...]

    @property
    def core_ids(self) -> tuple[int, ...]:
        """Core ids in the order they appear in the snapshot."""
        return tuple(core.core_id for core in self.cores)

    def by_id(self) -> dict[int, CoreCounters]:
        """Map core id to its counters."""
        return {core.core_id: core for core in self.cores}

    def __len__(self) -> int:
        return len(self.cores)


@dataclass(slots=True, frozen=True)
class CoreUsage:
    """Usage of one core between two snapshots."""

    core_id: int
    usage_percent: float  # 0.0 - 100.0
    frequency_mhz: float | None = None  # None when the clock speed is unknown


@dataclass(slots=True, frozen=True)
class TemperatureReading:
    """First available thermal sensor reading."""

    label: str
    celsius: float
