"""
purgeless — entry point.

Usage:
    python -m purgeless part.gcode
    python -m purgeless -v -t=76 -skip=4.5 part.gcode
"""

import sys

from purgeless.app import main


if __name__ == "__main__":
    sys.exit(main())
