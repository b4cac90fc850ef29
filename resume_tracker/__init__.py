"""Resume view tracking and engagement classification backend."""

__version__ = "0.1.0"
