"""Clean - remove build outputs of listed units."""

import logging
import shutil
from pathlib import Path
from typing import Iterable

from .. import output
from ..layout import BuildLayout
from ..packages.unit import PackageUnit

logger = logging.getLogger(__name__)


def remove_path(path: Path) -> bool:
    """Remove a file or directory tree.

    Returns:
        True if something was removed
    """
    if path.is_dir() and not path.is_symlink():
        output.log(f"Removing {path}")
        shutil.rmtree(path)
        return True
    if path.exists() or path.is_symlink():
        output.log(f"Removing {path}")
        path.unlink()
        return True
    return False


def clean_units(units: Iterable[PackageUnit], layout: BuildLayout, remove_shared: bool = False, nuke: bool = False) -> int:
    """Remove intermediates and artifacts.

    Args:
        units: Listed units
        layout: Path conventions
        remove_shared: Also remove the shared library and command directories
            (used when no targets were listed)
        nuke: Also remove installed copies

    Returns:
        Number of paths removed
    """
    removed = 0
    if remove_shared:
        removed += remove_path(layout.pkg_dir)
        removed += remove_path(layout.cmd_dir)

    for unit in units:
        removed += remove_path(layout.object_dir(unit))
        removed += remove_path(layout.test_dir(unit))
        artifact = layout.artifact_path(unit)
        # Toolchain-tree units build straight to their installed path
        if not unit.in_toolchain_root or nuke:
            removed += remove_path(artifact)
        if nuke:
            installed = layout.install_path(unit)
            if installed != artifact:
                removed += remove_path(installed)

    logger.debug("clean removed %d paths", removed)
    return removed
