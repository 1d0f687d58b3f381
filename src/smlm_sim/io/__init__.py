"""Stack persistence."""

from .tiff import read_stack, write_stack

__all__ = ["read_stack", "write_stack"]
