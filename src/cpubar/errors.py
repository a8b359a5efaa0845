"""Error types raised by cpubar."""


class CpubarError(Exception):
    """Base class for all cpubar errors."""


class SourceUnavailable(CpubarError):
    """The counter source cannot be opened or holds no per-core lines."""


class PartialRead(CpubarError):
    """Some known cores were missing from a re-read of the counter source."""

    def __init__(self, missing_ids: tuple[int, ...]) -> None:
        self.missing_ids = missing_ids
        names = ", ".join(f"cpu{core_id}" for core_id in missing_ids)
        super().__init__(f"missing from counter source: {names}")


class TerminalModeError(CpubarError):
    """Switching the terminal into or out of raw mode failed."""


class RenderOverflow(CpubarError):
    """A formatted line is longer than the renderer accepts."""

    def __init__(self, length: int, limit: int) -> None:
        self.length = length
        self.limit = limit
        super().__init__(f"line of {length} columns exceeds limit of {limit}")
