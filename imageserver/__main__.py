"""
Main entry point for running the package as a module.

Usage:
    python -m imageserver init-db
    python -m imageserver serve
    python -m imageserver generate --all
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
