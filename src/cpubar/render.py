"""Frame layout and drawing for cpubar."""

import logging
import math
import re
import shutil
import sys
from collections.abc import Callable
from enum import Enum
from typing import Any, TextIO

from cpubar.config import RunConfig
from cpubar.errors import RenderOverflow
from cpubar.models import CoreUsage, TemperatureReading

logger = logging.getLogger(__name__)

CSI = "\033["
CLEAR_SCREEN = f"{CSI}H{CSI}J"
COLOR_RESET = f"{CSI}0m"
ANSI_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")

DEFAULT_WIDTH = 80
MAX_LINE_LENGTH = 512

TITLE = "=== CPU Usage & Frequency per Core ==="
QUIT_HINT = "Press 'q' or ESC to quit."

FILL_GLYPH = "█"
EMPTY_GLYPH = " "
PLAIN_FILL_GLYPH = "#"
PLAIN_EMPTY_GLYPH = "."


class Tier(Enum):
    """Usage bands, each drawn in its own color."""

    LOW = f"{CSI}32m"  # green
    MID = f"{CSI}33m"  # yellow
    HIGH = f"{CSI}31m"  # red


def usage_tier(percent: float) -> Tier:
    """Pick the color band for a usage percentage."""
    if percent < 50:
        return Tier.LOW
    if percent < 80:
        return Tier.MID
    return Tier.HIGH


def filled_segments(percent: float, bar_width: int) -> int:
    """Number of filled cells for percent in a bar of bar_width cells."""
    filled = math.floor(percent * bar_width / 100)
    return min(max(filled, 0), bar_width)


def render_bar(percent: float, bar_width: int, color: bool) -> str:
    """
    Render a usage bar.

    With color the bar is wrapped in the tier's SGR code; without it the
    result contains no escape sequences at all.
    """
    filled = filled_segments(percent, bar_width)
    if not color:
        return "[" + PLAIN_FILL_GLYPH * filled + PLAIN_EMPTY_GLYPH * (bar_width - filled) + "]"
    body = FILL_GLYPH * filled + EMPTY_GLYPH * (bar_width - filled)
    return f"{usage_tier(percent).value}[{body}]{COLOR_RESET}"


def visible_length(text: str) -> int:
    """Length of text as shown on screen, escape sequences excluded."""
    return len(ANSI_RE.sub("", text))


def center_line(text: str, width: int) -> str:
    """Left-pad text so it sits in the middle of a width-column line."""
    pad = max(0, (width - visible_length(text)) // 2)
    return " " * pad + text


def format_core_label(usage: CoreUsage) -> str:
    """Fixed-width label printed before a core's bar."""
    if usage.frequency_mhz is None:
        frequency = " " * 12
    else:
        frequency = f"{usage.frequency_mhz:8.2f} MHz"
    return f"CPU {usage.core_id:<3d} {usage.usage_percent:6.1f}%  {frequency}  "


def format_temperature_label(reading: TemperatureReading) -> str:
    """Fixed-width label printed before the temperature bar."""
    return f"TEMP {reading.label[:12]:<12s} {reading.celsius:6.1f}°C  "


def _terminal_width() -> int:
    return shutil.get_terminal_size((DEFAULT_WIDTH, 24)).columns


class RenderEngine:
    """Builds and draws one full screen of bars per refresh."""

    def __init__(
        self,
        config: RunConfig,
        out: TextIO | None = None,
        width_fn: Callable[[], int] = _terminal_width,
    ) -> None:
        """
        Initialize the RenderEngine.

        Args:
            config: Run configuration (bar width, color).
            out: Stream frames are written to. Default sys.stdout.
            width_fn: Returns the current terminal width in columns.
        """
        self._config = config
        self._out = out if out is not None else sys.stdout
        self._width_fn = width_fn
        self._width: int | None = None
        self.color = config.use_color and self._is_terminal(self._out)

    @property
    def width(self) -> int:
        """Terminal width used for centering, queried lazily."""
        if self._width is None:
            self._width = self._query_width()
        return self._width

    def refresh_size(self) -> None:
        """Forget the cached width so the next frame queries it again."""
        self._width = None

    def _query_width(self) -> int:
        try:
            width = int(self._width_fn())
        except (OSError, ValueError):
            logger.debug("Terminal width query failed", exc_info=True)
            return DEFAULT_WIDTH
        return width if width > 0 else DEFAULT_WIDTH

    @staticmethod
    def _is_terminal(stream: TextIO) -> bool:
        try:
            return stream.isatty()
        except (AttributeError, ValueError):
            return False

    def core_row(self, usage: CoreUsage) -> str:
        """Label and bar of one core, centered as one unit."""
        bar = render_bar(usage.usage_percent, self._config.bar_width, self.color)
        return self._centered(format_core_label(usage) + bar)

    def temperature_row(self, reading: TemperatureReading) -> str:
        """Temperature label and bar, using the clamped reading as percent."""
        percent = min(max(reading.celsius, 0.0), 100.0)
        bar = render_bar(percent, self._config.bar_width, self.color)
        return self._centered(format_temperature_label(reading) + bar)

    def _centered(self, text: str) -> str:
        length = visible_length(text)
        if length > MAX_LINE_LENGTH:
            raise RenderOverflow(length, MAX_LINE_LENGTH)
        return center_line(text, self.width)

    def _header(self) -> str:
        # Align the column titles with the first column of the core rows
        sample = format_core_label(CoreUsage(core_id=0, usage_percent=0.0, frequency_mhz=0.0))
        row_length = len(sample) + self._config.bar_width + 2
        pad = " " * max(0, (self.width - row_length) // 2)
        return f"{pad}{'Core':<7} {'   Usage':<8} {'  Frequency':<12}  Load"

    def build_frame(
        self,
        usages: list[CoreUsage],
        temperature: TemperatureReading | None = None,
        status: str | None = None,
    ) -> list[str]:
        """
        Lay out every line of one frame.

        A row that cannot be formatted is left out; the rest of the frame
        is kept.
        """
        lines = [center_line(TITLE, self.width), "", self._header()]

        for usage in usages:
            self._append_row(lines, self.core_row, usage)
        if temperature is not None:
            self._append_row(lines, self.temperature_row, temperature)

        lines.append("")
        if status:
            lines.append(center_line(status[: max(1, self.width)], self.width))
        lines.append(center_line(QUIT_HINT, self.width))
        return lines

    @staticmethod
    def _append_row(lines: list[str], format_row: Callable[[Any], str], item: Any) -> None:
        try:
            lines.append(format_row(item))
        except RenderOverflow as exc:
            logger.warning("Skipping row: %s", exc)

    def draw(self, lines: list[str]) -> bool:
        """
        Clear the screen and write the frame in one write and one flush.

        Returns:
            False if the output would block and the frame was dropped.
        """
        try:
            self._out.write(CLEAR_SCREEN + "\n".join(lines) + "\n")
            self._out.flush()
        except BlockingIOError:
            logger.warning("Output is not draining, frame dropped")
            return False
        return True

    def write_line(self, text: str) -> None:
        """Write a single centered line outside of a frame."""
        self._out.write(center_line(text, self.width) + "\n")
        self._out.flush()
