"""Run configuration, option parsing and logging setup for cpubar."""

import argparse
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_STAT_PATH = "/proc/stat"

DEFAULT_SAMPLE_INTERVAL_MS = 200
SAMPLE_INTERVAL_RANGE = (1, 59999)

DEFAULT_BAR_WIDTH = 40
BAR_WIDTH_RANGE = (5, 200)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(slots=True, frozen=True)
class RunConfig:
    """Immutable settings read once at startup."""

    sample_interval_ms: int = DEFAULT_SAMPLE_INTERVAL_MS
    bar_width: int = DEFAULT_BAR_WIDTH
    use_color: bool = True
    show_temperature: bool = False
    stat_path: str = DEFAULT_STAT_PATH
    log_file: str | None = None
    log_level: str = "WARNING"

    @property
    def sample_interval(self) -> float:
        """Sample interval in seconds."""
        return self.sample_interval_ms / 1000.0

    @classmethod
    def from_options(
        cls,
        sample_interval_ms: int | None = None,
        bar_width: int | None = None,
        use_color: bool = True,
        show_temperature: bool = False,
        stat_path: str = DEFAULT_STAT_PATH,
        log_file: str | None = None,
        log_level: str = "WARNING",
    ) -> "RunConfig":
        """
        Build a RunConfig, keeping defaults for missing or out-of-range values.

        Out-of-range values are ignored with a warning rather than rejected.
        """
        interval = _bounded("sample interval", sample_interval_ms, SAMPLE_INTERVAL_RANGE, DEFAULT_SAMPLE_INTERVAL_MS)
        width = _bounded("bar width", bar_width, BAR_WIDTH_RANGE, DEFAULT_BAR_WIDTH)
        return cls(
            sample_interval_ms=interval,
            bar_width=width,
            use_color=use_color,
            show_temperature=show_temperature,
            stat_path=stat_path,
            log_file=log_file,
            log_level=log_level,
        )


def _bounded(name: str, value: int | None, bounds: tuple[int, int], default: int) -> int:
    if value is None:
        return default
    low, high = bounds
    if not low <= value <= high:
        logger.warning("Ignoring %s %d outside %d-%d, using %d", name, value, low, high, default)
        return default
    return value


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        prog="cpubar",
        description="Live per-core CPU usage, frequency and temperature bars.",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=int,
        default=None,
        metavar="MS",
        help=f"Sampling window in milliseconds, {SAMPLE_INTERVAL_RANGE[0]}-{SAMPLE_INTERVAL_RANGE[1]} "
        f"(default {DEFAULT_SAMPLE_INTERVAL_MS}).",
    )
    parser.add_argument(
        "-w",
        "--width",
        type=int,
        default=None,
        metavar="N",
        help=f"Bar width in columns, {BAR_WIDTH_RANGE[0]}-{BAR_WIDTH_RANGE[1]} (default {DEFAULT_BAR_WIDTH}).",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Draw plain bars without ANSI colors.",
    )
    parser.add_argument(
        "-t",
        "--temperature",
        action="store_true",
        help="Show the first available temperature sensor below the cores.",
    )
    parser.add_argument(
        "--stat-path",
        default=DEFAULT_STAT_PATH,
        metavar="PATH",
        help=f"Counter source to read (default {DEFAULT_STAT_PATH}).",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        metavar="PATH",
        help="Append diagnostics to this file. Nothing is logged otherwise.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for --log-file (default WARNING).",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> RunConfig:
    """Parse command line arguments into a RunConfig."""
    args = build_parser().parse_args(argv)
    return RunConfig.from_options(
        sample_interval_ms=args.interval,
        bar_width=args.width,
        use_color=not args.no_color,
        show_temperature=args.temperature,
        stat_path=args.stat_path,
        log_file=args.log_file,
        log_level=args.log_level,
    )


def configure_logging(log_file: str | None, level: str = "WARNING") -> logging.Logger:
    """
    Configure the package logger.

    Logs only ever go to a file: anything written to stdout or stderr would
    tear the live screen apart.

    Args:
        log_file: Path to append log records to, or None to discard them.
        level: Name of the minimum level to record.
    """
    package_logger = logging.getLogger("cpubar")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    if log_file:
        handler: logging.Handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = logging.NullHandler()

    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False
    return package_logger
