"""Lane and group session booking service."""

__version__ = "1.0.0"
