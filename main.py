#!/usr/bin/env python3
"""
LumenForge - An offline physically-based path tracer

Main entry point for rendering scenes.
"""

import sys

from lumenforge.cli import main

if __name__ == '__main__':
    sys.exit(main())
