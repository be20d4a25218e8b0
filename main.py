#!/usr/bin/env python3
"""Invigilator Timer — entry point.

Run with:
    python main.py
    python -m invigilator
"""

import sys

from invigilator.__main__ import main


if __name__ == "__main__":
    sys.exit(main())
