#!/usr/bin/env python
"""
Browser conformance CLI entry point.

Usage:
    python cli.py                               # All suites, configured matrix
    python cli.py --suite security              # One suite
    python cli.py --config conformance.yaml     # Matrix from YAML
    python cli.py --engine firefox -v           # Engine override, verbose
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from browser_conformance.cli import main

if __name__ == "__main__":
    main()
