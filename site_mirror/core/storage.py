"""
File storage helpers for a job's working directory.
"""

import logging
import shutil
from pathlib import Path

log = logging.getLogger("site-mirror")


def save_file(local_path: Path, content: bytes) -> None:
    """Write *content* to *local_path*, creating parent directories."""
    local_path.parent.mkdir(parents=True, exist_ok=True)
    local_path.write_bytes(content)
    log.debug("Saved → %s (%d bytes)", local_path, len(content))


def remove_path(path: Path) -> bool:
    """Delete a file or directory tree.

    A path that is already gone is not an error.  Returns ``True`` when
    something was removed.
    """
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        # Someone else is deleting the same tree; finish what is left
        if not path.exists():
            return False
        shutil.rmtree(path, ignore_errors=True)
    return True


def tree_size(path: Path) -> int:
    """Total size in bytes of a file or directory tree.

    Entries that vanish while being measured count as zero.
    """
    try:
        if not path.is_dir() or path.is_symlink():
            return path.stat().st_size
    except FileNotFoundError:
        return 0
    total = 0
    for child in path.rglob("*"):
        try:
            if child.is_file() and not child.is_symlink():
                total += child.stat().st_size
        except FileNotFoundError:
            continue
    return total
