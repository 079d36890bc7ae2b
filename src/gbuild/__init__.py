"""gbuild - configuration-free builds for package trees.

Discovers buildable units in a directory tree, infers their dependencies from
the sources, works out which ones are stale and drives the external toolchain
to bring them up to date in dependency order.
"""

__version__ = "0.3.0"
