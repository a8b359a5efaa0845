"""Per-core CPU usage sampling for cpubar."""

import logging
import re
import time
from collections.abc import Callable, Iterable

from cpubar.errors import CpubarError, PartialRead, SourceUnavailable
from cpubar.models import CoreCounters, CoreUsage, CounterSnapshot
from cpubar.providers import FrequencyProvider

logger = logging.getLogger(__name__)

# Only per-core lines ("cpu0", "cpu1", ...), never the aggregate "cpu" line
_CORE_LINE = re.compile(r"^cpu(\d+)\s")

REQUIRED_FIELDS = 4  # user, nice, system, idle
MAX_FIELDS = 10  # + iowait, irq, softirq, steal, guest, guest_nice
IOWAIT_FIELD = 4


def parse_core_line(line: str) -> CoreCounters | None:
    """
    Parse one counter source line into CoreCounters.

    Returns None for lines that are not per-core lines or that carry fewer
    than the four required fields. Trailing optional fields that are absent
    count as zero; iowait is folded into idle and every field read is summed
    into total.
    """
    match = _CORE_LINE.match(line)
    if match is None:
        return None

    values: list[int] = []
    for token in line.split()[1 : MAX_FIELDS + 1]:
        if not token.isdigit():
            break
        values.append(int(token))

    if len(values) < REQUIRED_FIELDS:
        return None

    user, nice, system, idle = values[:REQUIRED_FIELDS]
    iowait = values[IOWAIT_FIELD] if len(values) > IOWAIT_FIELD else 0
    return CoreCounters(
        core_id=int(match.group(1)),
        user=user,
        nice=nice,
        system=system,
        idle=idle + iowait,
        total=sum(values),
    )


class ProcStatSource:
    """Counter source backed by a /proc/stat style file."""

    def __init__(self, path: str = "/proc/stat") -> None:
        self._path = path

    @property
    def path(self) -> str:
        """Path of the file being read."""
        return self._path

    def read(self) -> list[CoreCounters]:
        """
        Read every per-core line of the source, in file order.

        Raises:
            SourceUnavailable: If the file cannot be opened or read.
        """
        try:
            with open(self._path, encoding="ascii", errors="replace") as stat_file:
                lines = stat_file.readlines()
        except OSError as exc:
            raise SourceUnavailable(f"cannot read {self._path}: {exc.strerror or exc}") from exc

        cores = []
        for line in lines:
            counters = parse_core_line(line)
            if counters is not None:
                cores.append(counters)
        return cores


def _usage(prev: CoreCounters, curr: CoreCounters) -> float:
    # Counters only ever grow within a boot; clamp anything else to zero
    total_diff = max(0, curr.total - prev.total)
    idle_diff = min(max(0, curr.idle - prev.idle), total_diff)
    if total_diff == 0:
        return 0.0
    return 100.0 * (total_diff - idle_diff) / total_diff


class StatSampler:
    """
    Turns two reads of the counter source into per-core usage percentages.

    The set and order of cores is fixed by the first discover() call and
    reused by every later read.
    """

    def __init__(
        self,
        source: ProcStatSource,
        sample_interval: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the StatSampler.

        Args:
            source: Where raw counters are read from.
            sample_interval: Seconds between the two reads of one sample.
            sleep: Wait function used between the two reads.
        """
        self._source = source
        self._sample_interval = sample_interval
        self._sleep = sleep
        self._core_ids: tuple[int, ...] = ()
        self.last_error: CpubarError | None = None

    @property
    def core_ids(self) -> tuple[int, ...]:
        """Core ids in discovery order; empty before discover()."""
        return self._core_ids

    @property
    def sample_interval(self) -> float:
        """Seconds between the two reads of one sample."""
        return self._sample_interval

    def discover(self) -> CounterSnapshot:
        """
        Read the source and fix the canonical core ordering.

        Only the first successful call establishes the ordering; later calls
        behave like resample().

        Raises:
            SourceUnavailable: If the source cannot be read or has no cores.
        """
        if self._core_ids:
            return self.resample()

        cores = self._unique(self._source.read())
        if not cores:
            raise SourceUnavailable(f"no per-core counters found in {self._source.path}")

        self._core_ids = tuple(core.core_id for core in cores)
        logger.info("Discovered %d cores in %s", len(cores), self._source.path)
        return CounterSnapshot(cores=tuple(cores))

    def resample(self, known_ids: Iterable[int] | None = None) -> CounterSnapshot:
        """
        Re-read the source, keeping only known cores in their known order.

        A known core missing from the read is left out of the snapshot and
        recorded as a PartialRead in last_error.

        Raises:
            SourceUnavailable: If the source cannot be read.
        """
        ids = tuple(known_ids) if known_ids is not None else self._core_ids
        current = {core.core_id: core for core in self._unique(self._source.read())}

        cores = []
        missing = []
        for core_id in ids:
            counters = current.get(core_id)
            if counters is None:
                missing.append(core_id)
            else:
                cores.append(counters)

        if missing:
            self.last_error = PartialRead(tuple(missing))
            logger.warning("Partial read: %s", self.last_error)

        return CounterSnapshot(cores=tuple(cores))

    @staticmethod
    def delta(prev: CounterSnapshot, curr: CounterSnapshot) -> list[CoreUsage]:
        """
        Compute usage for every core present in both snapshots.

        Cores are returned in the order of curr.
        """
        previous = prev.by_id()
        usages = []
        for counters in curr.cores:
            before = previous.get(counters.core_id)
            if before is None:
                continue
            usages.append(CoreUsage(core_id=counters.core_id, usage_percent=_usage(before, counters)))
        return usages

    def sample(
        self,
        frequency: FrequencyProvider | None = None,
        wait: Callable[[float], None] | None = None,
    ) -> list[CoreUsage]:
        """
        Take two reads sample_interval apart and return per-core usage.

        Args:
            frequency: Optional provider used to fill in clock speeds.
            wait: Replaces the sampler's sleep function for this sample.

        Raises:
            SourceUnavailable: If the source cannot be read.
        """
        self.last_error = None
        prev = self.resample()
        (wait or self._sleep)(self._sample_interval)
        curr = self.resample()

        usages = self.delta(prev, curr)
        if frequency is None:
            return usages
        return [
            CoreUsage(
                core_id=usage.core_id,
                usage_percent=usage.usage_percent,
                frequency_mhz=self._frequency_of(frequency, usage.core_id),
            )
            for usage in usages
        ]

    @staticmethod
    def _frequency_of(frequency: FrequencyProvider, core_id: int) -> float | None:
        try:
            return frequency.current_mhz(core_id)
        except Exception:
            logger.debug("Frequency lookup failed for cpu%d", core_id, exc_info=True)
            return None

    @staticmethod
    def _unique(cores: list[CoreCounters]) -> list[CoreCounters]:
        seen: set[int] = set()
        unique = []
        for core in cores:
            if core.core_id in seen:
                continue
            seen.add(core.core_id)
            unique.append(core)
        return unique
