"""cpubar - live per-core CPU usage bars for the terminal."""

__version__ = "0.1.0"
