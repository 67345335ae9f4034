#!/usr/bin/env python3
"""
Convenience shim to run ReelName from a source checkout.
Usage: python reelname.py [--config PATH] COMMAND ...
"""

from reelname.cli import main


if __name__ == "__main__":
    main()
