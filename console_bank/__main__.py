#!/usr/bin/env python3
"""Main entry point for the console bank"""

import sys

from .shell import main

if __name__ == "__main__":
    sys.exit(main())
