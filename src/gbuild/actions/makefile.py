"""Makefile generation.

Writes one Makefile per listed unit in the toolchain's Make.inc style, plus a
root ``build`` shell script that runs make in every unit directory in
dependency order. The generated files let a project be built without gbuild.
"""

import logging
import os
import stat
from pathlib import Path
from typing import Callable, Iterable, Optional

from .. import output
from ..packages.unit import PackageUnit
from .scan import display_dir

logger = logging.getLogger(__name__)

MAKEFILE_NAME = "Makefile"
BUILD_SCRIPT_NAME = "build"

_MAKEFILE_HEADER = "# Makefile generated by gbuild\n"


def _file_list(variable: str, names: list[str]) -> str:
    lines = [f"{variable}=\\"]
    lines += [f"\t{name}\\" for name in names]
    return "\n".join(lines) + "\n"


def render_makefile(unit: PackageUnit) -> str:
    """Makefile text for one unit."""
    parts = [
        _MAKEFILE_HEADER,
        "include $(GOROOT)/src/Make.inc\n",
        "\n",
        f"TARG={unit.name}\n",
        _file_list("GOFILES", unit.source_files),
    ]
    if unit.asm_files:
        objects = [Path(name).stem + ".$O" for name in unit.asm_files]
        parts += ["\n", _file_list("OFILES", objects)]
    parts += ["\n", "include $(GOROOT)/src/Make.cmd\n" if unit.is_command else "include $(GOROOT)/src/Make.pkg\n"]
    return "".join(parts)


def render_build_script(units: Iterable[PackageUnit], root: Path) -> str:
    """Shell script running make in each unit directory.

    Args:
        units: Units in dependency-first order
        root: Project root the script lives in

    Returns:
        Script text; the first argument selects the make target (default install)
    """
    lines = [
        "#!/bin/sh",
        "# Build script generated by gbuild",
        "# Runs make in each unit directory in dependency order",
        "",
        "set -e",
        'TARGET="${1:-install}"',
        "",
    ]
    for unit in units:
        directory = display_dir(unit.directory, root)
        lines.append(f'echo "(in {directory}) make $TARGET"')
        lines.append(f'(cd "{directory}" && make "$TARGET")')
    return "\n".join(lines) + "\n"


def ask_overwrite(path: Path) -> bool:
    response = input(f"'{path.name}' exists; overwrite? (y/n) ").strip().lower()
    return response in ("y", "yes")


def write_makefiles(units: Iterable[PackageUnit]) -> list[Path]:
    """Write a Makefile into every unit directory.

    Returns:
        Paths written
    """
    written = []
    for unit in units:
        path = unit.directory / MAKEFILE_NAME
        output.log_unit(str(unit.directory), "generating Makefile")
        path.write_text(render_makefile(unit), encoding="utf-8")
        written.append(path)
    return written


def write_build_script(
    units: list[PackageUnit],
    root: Path,
    force: bool = False,
    confirm: Optional[Callable[[Path], bool]] = None,
) -> Optional[Path]:
    """Write the root build script.

    An existing script is only replaced when force is set or confirm()
    agrees.

    Args:
        units: Units in dependency-first order
        root: Project root
        force: Overwrite without asking
        confirm: Overwrite prompt (defaults to asking on stdin)

    Returns:
        The script path, or None if the existing script was kept
    """
    path = root / BUILD_SCRIPT_NAME
    if path.exists() and not force:
        ask = confirm if confirm is not None else ask_overwrite
        if not ask(path):
            output.log(f"Keeping existing {path}")
            return None

    output.log("(in .) generating build script")
    path.write_text(render_build_script(units, root), encoding="utf-8")
    if os.name != "nt":
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    logger.debug("wrote %s for %d units", path, len(units))
    return path
