"""Distribution packaging.

Collects the files needed to rebuild a project without gbuild (sources, the
generated build script and Makefiles, ``target.gb`` files, README and any
extra paths listed in ``dist.gb``) and copies them into a fresh ``_dist_``
directory with the same relative layout.
"""

import logging
import shutil
from pathlib import Path
from typing import Iterable, Iterator

from .. import output
from ..layout import DIST_DIR
from ..packages.source_parser import TARGET_FILE
from ..packages.unit import PackageUnit
from .makefile import BUILD_SCRIPT_NAME, MAKEFILE_NAME
from .scan import display_dir

logger = logging.getLogger(__name__)

DIST_LIST_FILE = "dist.gb"
README_FILE = "README"


class DistributionError(Exception):
    """Raised when a distribution file cannot be found or copied."""

    pass


def read_dist_list(root: Path) -> list[str]:
    """Extra paths listed one per line in dist.gb (blank lines and # comments skipped)."""
    path = root / DIST_LIST_FILE
    if not path.is_file():
        return []
    entries = []
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            entries.append(line)
    return entries


def collect_distribution_files(root: Path, units: Iterable[PackageUnit]) -> Iterator[str]:
    """Yield root-relative paths that belong in the distribution.

    Each path is yielded once, in the order first seen.
    """
    seen: set[str] = set()

    def emit(relative: str) -> Iterator[str]:
        if relative not in seen:
            seen.add(relative)
            yield relative

    for name in (BUILD_SCRIPT_NAME, README_FILE):
        if (root / name).is_file():
            yield from emit(name)

    for entry in read_dist_list(root):
        yield from emit(entry)

    for unit in units:
        directory = display_dir(unit.directory, root)
        prefix = "" if directory == "." else directory + "/"
        for name in unit.source_files + unit.test_source_files + unit.asm_files:
            yield from emit(prefix + name)
        for name in (TARGET_FILE, MAKEFILE_NAME):
            if (unit.directory / name).is_file():
                yield from emit(prefix + name)


def make_dist(root: Path, files: Iterable[str]) -> int:
    """Copy files into a fresh _dist_ directory.

    Args:
        root: Project root
        files: Root-relative paths

    Returns:
        Number of files copied

    Raises:
        DistributionError: If a listed file does not exist
    """
    dist_dir = root / DIST_DIR
    output.log(f"Removing {DIST_DIR}")
    shutil.rmtree(dist_dir, ignore_errors=True)
    dist_dir.mkdir(parents=True)

    output.log(f"Copying distribution files to {DIST_DIR}")
    copied = 0
    for relative in files:
        source = root / relative
        if not source.exists():
            raise DistributionError(f"Couldn't find '{relative}' for copy to {DIST_DIR}.")
        destination = dist_dir / relative
        destination.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir():
            shutil.copytree(source, destination, dirs_exist_ok=True)
        else:
            shutil.copy2(source, destination)
        copied += 1

    logger.debug("copied %d files into %s", copied, dist_dir)
    return copied
