"""
File utility functions for the course video pipeline.
"""

import re
import shutil
from pathlib import Path
from typing import Iterable, List, Union

from ..logging_config import get_logger

logger = get_logger(__name__)

# Characters not allowed in Windows file names, plus control characters
_WINDOWS_RESERVED = re.compile(r'[<>:"/\\|?*\x00-\x1F]')
# Characters not allowed in macOS file names
_MAC_RESERVED = re.compile(r'[/\x00-\x1F]')


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to create

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Directory ensured", path=str(path))
    return path


def escape_file_name(file_name: str, max_length: int = 200) -> str:
    """
    Make a file name safe on every platform we deliver to.

    Whitespace and reserved characters become underscores and the result
    is truncated to ``max_length`` characters.
    """
    safe_name = file_name.strip()
    safe_name = re.sub(r"\s", "_", safe_name)
    safe_name = _WINDOWS_RESERVED.sub("_", safe_name)
    safe_name = _MAC_RESERVED.sub("_", safe_name)
    return safe_name[:max_length]


def remove_files(paths: Iterable[Union[str, Path]]) -> List[Path]:
    """
    Delete files, logging instead of raising on failure.

    Args:
        paths: Files to delete; missing files are ignored

    Returns:
        Paths that could not be deleted
    """
    failed: List[Path] = []
    for path in paths:
        path = Path(path)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to remove file", path=str(path), error=str(e))
            failed.append(path)
    return failed


def move_file(src: Union[str, Path], dst: Union[str, Path]) -> Path:
    """
    Move a file to a new location.

    Args:
        src: Source file path
        dst: Destination file path

    Returns:
        The destination path
    """
    src = Path(src)
    dst = Path(dst)

    if not src.exists():
        raise FileNotFoundError(f"Source file not found: {src}")

    # Ensure destination directory exists
    ensure_directory(dst.parent)

    shutil.move(str(src), str(dst))

    logger.info("File moved", src=str(src), dst=str(dst))
    return dst
