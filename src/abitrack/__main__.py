"""Allow ``python -m abitrack``."""

import sys

from abitrack.ui.cli import main

if __name__ == "__main__":
    sys.exit(main())
