#!/usr/bin/env python3
"""
slidecanvas - Main Entry Point
Exports canvas slides (JSON) to PowerPoint decks or PDF handouts.
"""

import sys

from slidecanvas.cli import main


if __name__ == '__main__':
    sys.exit(main())
