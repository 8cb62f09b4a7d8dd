#!/usr/bin/env python3
"""Run the qzanki CLI from a source checkout."""

import sys

from qzanki.cli import main

if __name__ == "__main__":
    sys.exit(main())
