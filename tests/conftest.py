"""Shared fixtures for cpubar tests."""

import io
import logging
import termios

import pytest

from cpubar.config import RunConfig
from cpubar.render import RenderEngine
from cpubar.terminal import TerminalController

NCCS = 32


def stat_text(rows: dict[int, tuple[int, ...]]) -> str:
    """Build /proc/stat style content with an aggregate line and per-core lines."""
    lines = ["cpu  1 2 3 4 5 6 7 0 0 0"]
    for core_id, values in rows.items():
        lines.append(f"cpu{core_id} " + " ".join(str(v) for v in values))
    lines.append("intr 12345 0 0")
    lines.append("ctxt 987654")
    return "\n".join(lines) + "\n"


class FakeBackend:
    """In-memory stand-in for the termios, select and os calls."""

    def __init__(self, tty: bool = True, keys: str = "", fail_tcsetattr: bool = False) -> None:
        self.tty = tty
        self.keys = list(keys)
        self.fail_tcsetattr = fail_tcsetattr
        cc = [b"\x00"] * NCCS
        self.attrs = [0o2400, 0o5, 0o277, termios.ICANON | termios.ECHO | termios.ISIG, 0o17, 0o17, cc]
        self.original_attrs = self.copy_attrs()
        self.set_calls = 0

    def copy_attrs(self) -> list:
        return self.attrs[:6] + [list(self.attrs[6])]

    @property
    def restored(self) -> bool:
        return self.attrs == self.original_attrs

    def isatty(self, fd: int) -> bool:
        return self.tty

    def tcgetattr(self, fd: int) -> list:
        return self.copy_attrs()

    def tcsetattr(self, fd: int, attrs: list) -> None:
        self.set_calls += 1
        if self.fail_tcsetattr:
            raise termios.error(5, "Input/output error")
        self.attrs = attrs[:6] + [list(attrs[6])]

    def read_char(self, fd: int) -> str | None:
        if self.attrs[3] & termios.ICANON:
            raise AssertionError("read while in canonical mode")
        return self.keys.pop(0) if self.keys else None


class FakeStdin:
    """Input stream with a file descriptor but no data."""

    def fileno(self) -> int:
        return 0


class TtyStringIO(io.StringIO):
    """StringIO that claims to be an interactive terminal."""

    def isatty(self) -> bool:
        return True


class SequenceSource:
    """Counter source returning prepared reads in order, repeating the last."""

    path = "<memory>"

    def __init__(self, *reads) -> None:
        self._reads = list(reads)
        self.read_count = 0

    def read(self):
        self.read_count += 1
        item = self._reads.pop(0) if len(self._reads) > 1 else self._reads[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def write_stat(tmp_path):
    """Write per-core rows to a stat file and return its path."""
    path = tmp_path / "stat"

    def write(rows: dict[int, tuple[int, ...]]) -> str:
        path.write_text(stat_text(rows))
        return str(path)

    return write


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def fake_terminal(fake_backend):
    return TerminalController(stream=FakeStdin(), backend=fake_backend)


@pytest.fixture
def screen():
    return io.StringIO()


@pytest.fixture
def renderer(screen):
    return RenderEngine(RunConfig(bar_width=10), out=screen, width_fn=lambda: 80)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo configure_logging() between tests."""
    yield
    package_logger = logging.getLogger("cpubar")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
