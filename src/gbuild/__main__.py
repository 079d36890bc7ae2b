"""Allow running gbuild as a module: python -m gbuild."""

from gbuild.cli import main

if __name__ == "__main__":
    main()
