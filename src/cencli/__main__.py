"""Allow ``python -m cencli``."""

import sys

from cencli.cli import main

if __name__ == "__main__":
    sys.exit(main())
