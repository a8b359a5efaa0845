"""Tests for the cpubar entry point."""

import io
import signal
import sys

from conftest import stat_text
from cpubar.app import main


def test_missing_source_exits_non_zero(tmp_path, capsys):
    """Test a missing counter source exits 1 with a message."""
    code = main(["--stat-path", str(tmp_path / "absent")])

    assert code == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.startswith("cpubar: cannot read")


def test_non_terminal_input_exits_non_zero(tmp_path, capsys, monkeypatch):
    """Test input that is not a terminal exits 1 without drawing."""
    path = tmp_path / "stat"
    path.write_text(stat_text({0: (1, 0, 1, 8)}))
    monkeypatch.setattr(sys, "stdin", io.StringIO(""))

    code = main(["--stat-path", str(path)])

    assert code == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "raw mode" in captured.err


def test_signal_handlers_put_back(tmp_path, capsys):
    """Test main leaves the process signal handlers as it found them."""
    before = signal.getsignal(signal.SIGTERM)

    main(["--stat-path", str(tmp_path / "absent")])

    assert signal.getsignal(signal.SIGTERM) == before


def test_unwritable_log_file(tmp_path, capsys):
    """Test a log file that cannot be opened is a startup failure."""
    code = main(["--log-file", str(tmp_path / "missing-dir" / "cpubar.log")])

    assert code == 1
    assert "cannot open log file" in capsys.readouterr().err
