"""threadrelay — fan-out/fan-in thread relay for Slack."""

__version__ = "0.1.0"
