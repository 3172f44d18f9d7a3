"""Package a build context directory into a zip archive."""

from __future__ import annotations

import fnmatch
import zipfile
from pathlib import Path

from promoter.observability.logging import get_logger

log = get_logger(__name__)

# Matched against the archive-relative POSIX path
DEFAULT_EXCLUDES = ("*.git*", "*.DS_Store")


class BundleError(Exception):
    """Raised when the source directory cannot be packaged."""

    def __init__(self, source_dir: Path, reason: str) -> None:
        self.source_dir = source_dir
        super().__init__(f"Cannot package {source_dir}: {reason}")


def is_excluded(relative_path: str, patterns: tuple[str, ...] = DEFAULT_EXCLUDES) -> bool:
    return any(fnmatch.fnmatch(relative_path, pattern) for pattern in patterns)


def package_source(
    source_dir: Path,
    destination: Path,
    excludes: tuple[str, ...] = DEFAULT_EXCLUDES,
) -> Path:
    """Zip every file under ``source_dir`` into ``destination``.

    Paths inside the archive are relative to ``source_dir``, so the build
    sees the directory contents at its root.

    Args:
        source_dir: Directory to package.
        destination: Path of the zip file to write.
        excludes: fnmatch patterns of relative paths to leave out.

    Returns:
        The destination path.

    Raises:
        BundleError: If the directory does not exist or nothing is left to package.
    """
    if not source_dir.is_dir():
        raise BundleError(source_dir, "not a directory")

    count = 0
    with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(source_dir.rglob("*")):
            if not path.is_file():
                continue
            relative = path.relative_to(source_dir).as_posix()
            if is_excluded(relative, excludes):
                continue
            archive.write(path, arcname=relative)
            count += 1

    if count == 0:
        destination.unlink(missing_ok=True)
        raise BundleError(source_dir, "no files to package")

    log.info("source_packaged", source_dir=str(source_dir), files=count, archive=str(destination))
    return destination
