"""cpubar - command line entry point."""

import logging
import sys

from cpubar.config import configure_logging, parse_args
from cpubar.lifecycle import LifecycleManager, SignalFlags, install_signal_handlers
from cpubar.providers import PsutilTemperatureProvider, SystemFrequencyProvider
from cpubar.render import RenderEngine
from cpubar.sampler import ProcStatSource, StatSampler
from cpubar.terminal import TerminalController

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Entry point for cpubar. Returns the process exit code."""
    config = parse_args(argv)
    try:
        configure_logging(config.log_file, config.log_level)
    except OSError as exc:
        print(f"cpubar: cannot open log file: {exc}", file=sys.stderr)
        return 1

    sampler = StatSampler(ProcStatSource(config.stat_path), sample_interval=config.sample_interval)
    renderer = RenderEngine(config)
    terminal = TerminalController()
    flags = SignalFlags()
    manager = LifecycleManager(
        sampler,
        renderer,
        terminal,
        flags=flags,
        frequency=SystemFrequencyProvider(),
        temperature=PsutilTemperatureProvider() if config.show_temperature else None,
    )

    restore_handlers = install_signal_handlers(flags)
    try:
        code = manager.run()
    except Exception as exc:
        logger.exception("Unexpected error")
        terminal.restore()
        print(f"cpubar: unexpected error: {exc}", file=sys.stderr)
        return 1
    finally:
        restore_handlers()

    if code != 0:
        print(f"cpubar: {manager.last_error}", file=sys.stderr)
        return code

    renderer.write_line("Exiting...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
