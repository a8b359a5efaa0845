"""Raw-mode terminal input handling for cpubar."""

import logging
import os
import select
import sys
import termios
from dataclasses import dataclass
from typing import Any, Protocol, TextIO

from cpubar.errors import TerminalModeError

logger = logging.getLogger(__name__)

# Index of the local-mode flags and control characters in a termios attribute list
LFLAG = 3
CC = 6


@dataclass(slots=True)
class TerminalState:
    """Terminal settings saved before entering raw mode."""

    original_mode: list[Any] | None = None
    modified: bool = False


class TerminalBackend(Protocol):
    """The operating system calls TerminalController relies on."""

    def isatty(self, fd: int) -> bool: ...

    def tcgetattr(self, fd: int) -> list[Any]: ...

    def tcsetattr(self, fd: int, attrs: list[Any]) -> None: ...

    def read_char(self, fd: int) -> str | None: ...


class PosixTerminalBackend:
    """
    TerminalBackend using termios, select and os.

    Never sets O_NONBLOCK: the flag belongs to the open file description
    that stdin shares with stdout on a terminal. Reads only happen after
    select() reports pending input.
    """

    def isatty(self, fd: int) -> bool:
        return os.isatty(fd)

    def tcgetattr(self, fd: int) -> list[Any]:
        return termios.tcgetattr(fd)

    def tcsetattr(self, fd: int, attrs: list[Any]) -> None:
        termios.tcsetattr(fd, termios.TCSANOW, attrs)

    def read_char(self, fd: int) -> str | None:
        try:
            ready, _, _ = select.select([fd], [], [], 0)
            if not ready:
                return None
            data = os.read(fd, 1)
        except InterruptedError:
            return None
        if not data:
            return None
        return data.decode("latin-1")


def raw_attributes(attrs: list[Any]) -> list[Any]:
    """Copy of attrs with canonical mode and echo off and reads returning at once."""
    raw = list(attrs)
    raw[LFLAG] = attrs[LFLAG] & ~(termios.ICANON | termios.ECHO)
    control_chars = list(attrs[CC])
    control_chars[termios.VMIN] = 0
    control_chars[termios.VTIME] = 0
    raw[CC] = control_chars
    return raw


class TerminalController:
    """
    Owns the terminal mode of standard input.

    enter_raw_mode() switches the terminal to non-canonical, non-echoing
    input whose reads never wait, and restore() puts it back. restore() may
    be called any number of times.
    """

    def __init__(self, stream: TextIO | None = None, backend: TerminalBackend | None = None) -> None:
        """
        Initialize the TerminalController.

        Args:
            stream: Input stream to control. Default sys.stdin.
            backend: OS call layer. Default PosixTerminalBackend.
        """
        self._stream = stream if stream is not None else sys.stdin
        self._backend = backend if backend is not None else PosixTerminalBackend()
        self.state = TerminalState()

    @property
    def fd(self) -> int:
        """File descriptor of the controlled stream."""
        return self._stream.fileno()

    @property
    def is_raw(self) -> bool:
        """Whether raw mode is currently active."""
        return self.state.modified

    def enter_raw_mode(self) -> None:
        """
        Save the current mode and switch to raw input.

        Raises:
            TerminalModeError: If input is not a terminal or the mode
                cannot be changed.
        """
        if self.state.modified:
            return

        try:
            fd = self.fd
            if not self._backend.isatty(fd):
                raise TerminalModeError("standard input is not a terminal")
            self.state.original_mode = self._backend.tcgetattr(fd)
            self.state.modified = True
            self._backend.tcsetattr(fd, raw_attributes(self.state.original_mode))
        except (OSError, ValueError, termios.error) as exc:
            self.restore()
            raise TerminalModeError(f"cannot switch terminal to raw mode: {exc}") from exc
        except TerminalModeError:
            self.restore()
            raise

        logger.debug("Terminal switched to raw mode")

    def poll_key(self) -> str | None:
        """Return one pending character, or None if there is none."""
        if not self.state.modified:
            return None
        try:
            return self._backend.read_char(self.fd)
        except (OSError, ValueError):
            logger.debug("Reading input failed", exc_info=True)
            return None

    def restore(self) -> None:
        """Put back the saved terminal mode. Does nothing if none is saved."""
        if not self.state.modified:
            return

        state = self.state
        self.state = TerminalState()
        try:
            fd = self.fd
        except (OSError, ValueError):
            logger.warning("Cannot restore terminal: input stream is closed")
            return

        if state.original_mode is not None:
            try:
                self._backend.tcsetattr(fd, state.original_mode)
            except (OSError, termios.error):
                logger.warning("Restoring terminal attributes failed", exc_info=True)

        logger.debug("Terminal restored")

    def __enter__(self) -> "TerminalController":
        self.enter_raw_mode()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.restore()
