"""procwarden: PID-file supervisor for a single long-running command."""

__version__ = "0.1.0"
