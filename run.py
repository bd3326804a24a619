#!/usr/bin/env python3
"""
Console Bank Entry Point

Loads the ledger file, runs the interactive menu and saves on exit.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from console_bank.shell import main


if __name__ == "__main__":
    try:
        sys.exit(main())
    except OSError as e:
        print(f"❌ Could not save ledger: {e}", file=sys.stderr)
        sys.exit(1)
