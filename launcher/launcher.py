#!/usr/bin/env python3
"""
Mindustry launcher entry point
------------------------------
    python launcher.py --version be-latest -- -Xmx2g
"""

import sys

from mindustry_launcher.cli import main

if __name__ == "__main__":
    sys.exit(main())
