"""Core module with errors, units, logging and config."""

__all__ = [
    "config",
    "errors",
    "logging",
    "units",
]
