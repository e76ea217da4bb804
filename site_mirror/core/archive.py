"""
Packaging of a job's working directory into a ZIP archive.
"""

import logging
import os
import zipfile
from pathlib import Path

log = logging.getLogger("site-mirror")


def create_archive(source_dir: Path, zip_path: Path) -> Path:
    """Compress everything under *source_dir* into *zip_path*.

    Entries are stored relative to *source_dir*.  The archive is written
    under a temporary name and moved into place once complete, so a reader
    never sees a half-written file.
    """
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = zip_path.with_name(zip_path.name + ".part")
    count = 0
    try:
        with zipfile.ZipFile(
            tmp_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
        ) as zf:
            for file_path in sorted(source_dir.rglob("*")):
                if file_path.is_file():
                    zf.write(file_path, file_path.relative_to(source_dir).as_posix())
                    count += 1
        os.replace(tmp_path, zip_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    log.debug("Archived %d file(s) → %s", count, zip_path)
    return zip_path
