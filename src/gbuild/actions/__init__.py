"""Secondary actions run over the listed units: scan, clean, test, format,
makefile generation and distribution packaging."""

from .clean import clean_units, remove_path
from .dist import DistributionError, collect_distribution_files, make_dist
from .format import format_units
from .makefile import render_build_script, render_makefile, write_build_script, write_makefiles
from .scan import UnitReport, build_reports, display_dir, print_scan
from .test import run_tests

__all__ = [
    "DistributionError",
    "UnitReport",
    "build_reports",
    "clean_units",
    "collect_distribution_files",
    "display_dir",
    "format_units",
    "make_dist",
    "print_scan",
    "remove_path",
    "render_build_script",
    "render_makefile",
    "run_tests",
    "write_build_script",
    "write_makefiles",
]
