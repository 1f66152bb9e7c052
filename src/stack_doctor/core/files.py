"""Bounded file reading helpers"""
import os
from pathlib import Path
from typing import List, Union

BLOCK_SIZE = 64 * 1024


def tail_lines(path: Union[str, Path], limit: int) -> List[str]:
    """Read the last lines of a file without loading all of it

    Seeks backwards from the end in blocks until enough line breaks have
    been seen, so the cost depends on `limit`, not on the file size.

    Args:
        path: File to read
        limit: Maximum number of lines to return

    Returns:
        Up to `limit` lines, oldest first, without line endings

    Raises:
        OSError: If the file cannot be opened or read
    """
    if limit <= 0:
        return []

    with open(path, "rb") as f:
        f.seek(0, os.SEEK_END)
        position = f.tell()
        data = b""

        # One extra line break covers a file ending with a newline.
        while position > 0 and data.count(b"\n") <= limit:
            step = min(BLOCK_SIZE, position)
            position -= step
            f.seek(position)
            data = f.read(step) + data

    lines = data.decode("utf-8", errors="replace").splitlines()
    return lines[-limit:]
