"""File operations for chat documents.

Reads record the file's modification time; writes go through an atomic
temp-file-rename and refuse to clobber a file changed on disk since it was
read.
"""

import os
import structlog
from pathlib import Path
from typing import Optional

from chatblocks.services.exceptions import FileModifiedError

logger = structlog.get_logger()


def read_text_with_mtime(path: Path) -> tuple[str, float]:
    """
    Read a document and the modification time it was read at.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    text = path.read_text(encoding="utf-8")
    return text, path.stat().st_mtime


def _is_modified(path: Path, expected_mtime: Optional[float]) -> bool:
    if expected_mtime is None or not path.exists():
        return False
    return path.stat().st_mtime != expected_mtime


def atomic_write(
    path: Path,
    content: str,
    expected_mtime: Optional[float] = None
) -> float:
    """
    Atomically write content to file with temp-file-rename pattern.

    1. Early modification check (before write)
    2. Write to temporary file
    3. fsync to ensure data is on disk
    4. Late modification check (after write, before rename)
    5. Atomic rename to replace original file

    Args:
        path: Target file path
        content: Content to write
        expected_mtime: Modification time recorded when the file was read.
                        None skips the concurrent-modification checks.

    Returns:
        Modification time of the written file

    Raises:
        FileModifiedError: If file was modified since expected_mtime
        OSError: On file I/O errors
    """
    if _is_modified(path, expected_mtime):
        raise FileModifiedError(
            str(path),
            "File was modified before write (early check)"
        )

    # Same directory keeps the rename on one filesystem
    temp_path = path.parent / f".{path.name}.tmp.{os.getpid()}"

    try:
        temp_path.write_text(content, encoding="utf-8")

        with open(temp_path, "r+", encoding="utf-8") as f:
            f.flush()
            os.fsync(f.fileno())

        if _is_modified(path, expected_mtime):
            raise FileModifiedError(
                str(path),
                "File was modified during write (late check)"
            )

        temp_path.replace(path)

        logger.debug(
            "atomic_write_success",
            path=str(path),
            size=len(content)
        )
        return path.stat().st_mtime

    except FileModifiedError:
        if temp_path.exists():
            temp_path.unlink()
        raise

    except Exception as e:
        if temp_path.exists():
            temp_path.unlink()
        logger.error(
            "atomic_write_failed",
            path=str(path),
            error=str(e)
        )
        raise
