"""
Utility modules for the course video pipeline.
"""

from .file_utils import (
    ensure_directory,
    escape_file_name,
    remove_files,
    move_file,
)

__all__ = [
    "ensure_directory",
    "escape_file_name",
    "remove_files",
    "move_file",
]
