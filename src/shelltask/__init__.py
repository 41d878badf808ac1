"""shelltask - run named shell tasks behind a command-safety gate."""

__version__ = "0.1.0"
