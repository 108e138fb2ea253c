"""
CCPM Analysis Engine
====================

Runs the bundled example project through the engine and prints a report.
"""

import logging
import sys

from .examples.simple_project import main

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    sys.exit(main())
