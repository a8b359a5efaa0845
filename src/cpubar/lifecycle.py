"""Refresh loop, signal handling and shutdown for cpubar."""

import logging
import signal
import time
from collections.abc import Callable
from enum import Enum

from cpubar.errors import SourceUnavailable, TerminalModeError
from cpubar.models import CoreUsage, TemperatureReading
from cpubar.providers import FrequencyProvider, TemperatureProvider
from cpubar.render import RenderEngine
from cpubar.sampler import StatSampler
from cpubar.terminal import TerminalController

logger = logging.getLogger(__name__)

POLL_SLICES = 20
POLL_SLICE_SECONDS = 0.05
QUIT_KEYS = frozenset({"q", "Q", "\x1b"})

TERMINATE_SIGNALS = ("SIGINT", "SIGTERM", "SIGHUP")
RESIZE_SIGNALS = ("SIGWINCH",)


class LifecycleState(Enum):
    """States of the refresh loop."""

    RUNNING = "running"
    SAMPLING = "sampling"
    RENDERING = "rendering"
    POLLING = "polling"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class SignalFlags:
    """Flags written by signal handlers and read by the refresh loop."""

    __slots__ = ("should_terminate", "size_changed")

    def __init__(self) -> None:
        self.should_terminate = False
        self.size_changed = False

    def request_terminate(self, signum: int | None = None, frame: object = None) -> None:
        """Signal handler: ask the loop to stop."""
        self.should_terminate = True

    def mark_resized(self, signum: int | None = None, frame: object = None) -> None:
        """Signal handler: note that the terminal size changed."""
        self.size_changed = True

    def consume_resize(self) -> bool:
        """Clear the resize flag, returning whether it was set."""
        changed = self.size_changed
        self.size_changed = False
        return changed


def install_signal_handlers(flags: SignalFlags) -> Callable[[], None]:
    """
    Route termination and resize signals to flags.

    Signals the platform does not have are skipped.

    Returns:
        A function that puts the previous handlers back.
    """
    previous: dict[signal.Signals, object] = {}
    handlers = [(name, flags.request_terminate) for name in TERMINATE_SIGNALS]
    handlers += [(name, flags.mark_resized) for name in RESIZE_SIGNALS]

    for name, handler in handlers:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        previous[signum] = signal.signal(signum, handler)

    def restore_handlers() -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    return restore_handlers


class LifecycleManager:
    """
    Drives sampling, rendering and input polling until asked to stop.

    The terminal is always restored before run() returns, whichever way
    the loop ends.
    """

    def __init__(
        self,
        sampler: StatSampler,
        renderer: RenderEngine,
        terminal: TerminalController,
        flags: SignalFlags | None = None,
        frequency: FrequencyProvider | None = None,
        temperature: TemperatureProvider | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize the LifecycleManager.

        Args:
            sampler: Source of per-core usage for each frame.
            renderer: Lays out and draws frames.
            terminal: Owns raw mode; always restored before run() returns.
            flags: Signal flags to watch. A fresh SignalFlags by default.
            frequency: Optional clock speed provider.
            temperature: Optional sensor for the temperature row.
            sleep: Wait function used for sampling and polling slices.
        """
        self._sampler = sampler
        self._renderer = renderer
        self._terminal = terminal
        self.flags = flags if flags is not None else SignalFlags()
        self._frequency = frequency
        self._temperature = temperature
        self._sleep = sleep
        self.state = LifecycleState.RUNNING
        self.last_error: Exception | None = None
        self._quit_requested = False

    @property
    def stopping(self) -> bool:
        """Whether a quit key or termination signal has been seen."""
        return self._quit_requested or self.flags.should_terminate

    def run(self) -> int:
        """
        Run until a quit key or termination signal.

        Returns:
            Process exit code: 0 on a clean quit, 1 on a startup failure.
        """
        try:
            self._sampler.discover()
        except SourceUnavailable as exc:
            logger.error("Cannot start: %s", exc)
            self.last_error = exc
            self.state = LifecycleState.TERMINATED
            return 1

        try:
            self._terminal.enter_raw_mode()
        except TerminalModeError as exc:
            logger.error("Cannot start: %s", exc)
            self.last_error = exc
            self._shutdown()
            return 1

        try:
            while self.run_cycle():
                pass
        finally:
            self._shutdown()
        return 0

    def run_cycle(self) -> bool:
        """
        Sample, draw one frame and poll for input.

        Returns:
            False once the loop should stop.
        """
        if self.stopping:
            self.state = LifecycleState.SHUTTING_DOWN
            return False

        self.state = LifecycleState.SAMPLING
        usages, status = self._sample()
        if self.stopping:
            self.state = LifecycleState.SHUTTING_DOWN
            return False

        self.state = LifecycleState.RENDERING
        self._render(usages, status)

        self.state = LifecycleState.POLLING
        self._poll_input()

        if self.stopping:
            self.state = LifecycleState.SHUTTING_DOWN
            return False
        self.state = LifecycleState.RUNNING
        return True

    def _sample(self) -> tuple[list[CoreUsage], str | None]:
        try:
            usages = self._sampler.sample(frequency=self._frequency, wait=self._interruptible_wait)
        except SourceUnavailable as exc:
            logger.warning("Skipping sample: %s", exc)
            return self._idle_usages(), f"counter source unavailable: {exc}"

        error = self._sampler.last_error
        return usages, str(error) if error is not None else None

    def _idle_usages(self) -> list[CoreUsage]:
        return [CoreUsage(core_id=core_id, usage_percent=0.0) for core_id in self._sampler.core_ids]

    def _render(self, usages: list[CoreUsage], status: str | None) -> None:
        if self.flags.consume_resize():
            self._renderer.refresh_size()

        temperature = self._read_temperature()
        frame = self._renderer.build_frame(usages, temperature=temperature, status=status)
        self._renderer.draw(frame)

    def _read_temperature(self) -> TemperatureReading | None:
        if self._temperature is None:
            return None
        try:
            return self._temperature.read()
        except Exception:
            logger.debug("Temperature read failed", exc_info=True)
            return None

    def _poll_input(self) -> None:
        for _ in range(POLL_SLICES):
            key = self._terminal.poll_key()
            if key in QUIT_KEYS:
                logger.info("Quit key pressed")
                self._quit_requested = True
            if self.stopping:
                return
            self._sleep(POLL_SLICE_SECONDS)

    def _interruptible_wait(self, seconds: float) -> None:
        # Wait in poll-sized slices so a termination signal is seen quickly
        remaining = seconds
        while remaining > 0 and not self.flags.should_terminate:
            step = min(remaining, POLL_SLICE_SECONDS)
            self._sleep(step)
            remaining -= step

    def _shutdown(self) -> None:
        self.state = LifecycleState.SHUTTING_DOWN
        self._terminal.restore()
        self.state = LifecycleState.TERMINATED
        logger.info("Terminated")
