"""Source file header parsing.

Extracts what the scanner needs from a source file without a full parser:
the package clause, the import paths and an optional ``//target:<name>``
directive. Only the file header (everything before the first top-level
declaration) is examined, which is where the language requires package and
import clauses to live.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

SOURCE_SUFFIX = ".go"
TEST_SUFFIX = "_test.go"
ASM_SUFFIX = ".s"
TARGET_FILE = "target.gb"

_TARGET_DIRECTIVE = re.compile(r"^\s*//\s*target:\s*(\S+)\s*$", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"//[^\n]*")
_DECLARATION = re.compile(r"^(func|type|var|const)\b", re.MULTILINE)
_PACKAGE_CLAUSE = re.compile(r"^\s*package\s+([A-Za-z_][A-Za-z0-9_]*)", re.MULTILINE)
_IMPORT_BLOCK = re.compile(r"\bimport\s*\((.*?)\)", re.DOTALL)
_IMPORT_SINGLE = re.compile(r"\bimport\s+(?:[A-Za-z_.][A-Za-z0-9_]*\s+)?\"([^\"]+)\"")
_QUOTED = re.compile(r"\"([^\"]+)\"")


@dataclass
class SourceInfo:
    """Header facts extracted from one source file."""

    package_name: Optional[str] = None
    imports: list[str] = field(default_factory=list)
    target: Optional[str] = None


def parse_source(text: str) -> SourceInfo:
    """Parse the header of a source file.

    Args:
        text: Full file contents

    Returns:
        SourceInfo with package name, imports (in order, de-duplicated)
        and target directive if present
    """
    info = SourceInfo()

    directive = _TARGET_DIRECTIVE.search(text)
    if directive:
        info.target = directive.group(1)

    code = _BLOCK_COMMENT.sub("", text)
    code = _LINE_COMMENT.sub("", code)
    decl = _DECLARATION.search(code)
    header = code[: decl.start()] if decl else code

    clause = _PACKAGE_CLAUSE.search(header)
    if clause:
        info.package_name = clause.group(1)

    seen: set[str] = set()
    for block in _IMPORT_BLOCK.finditer(header):
        for path in _QUOTED.findall(block.group(1)):
            if path not in seen:
                seen.add(path)
                info.imports.append(path)
    for path in _IMPORT_SINGLE.findall(_IMPORT_BLOCK.sub("", header)):
        if path not in seen:
            seen.add(path)
            info.imports.append(path)

    return info


def parse_source_file(path: Path) -> SourceInfo:
    """Read and parse a source file."""
    return parse_source(path.read_text(encoding="utf-8", errors="replace"))


def read_target_file(directory: Path) -> Optional[str]:
    """Return the first non-empty line of ``target.gb`` in a directory, if any."""
    target_file = directory / TARGET_FILE
    if not target_file.is_file():
        return None
    for line in target_file.read_text(encoding="utf-8", errors="replace").splitlines():
        line = line.strip()
        if line:
            return line
    return None


def is_ignored_name(name: str) -> bool:
    return name.startswith(".") or name.startswith("_")


def is_test_source(name: str) -> bool:
    return name.endswith(TEST_SUFFIX) and not is_ignored_name(name)


def is_source(name: str) -> bool:
    return name.endswith(SOURCE_SUFFIX) and not name.endswith(TEST_SUFFIX) and not is_ignored_name(name)


def is_asm_source(name: str) -> bool:
    return name.endswith(ASM_SUFFIX) and not is_ignored_name(name)
