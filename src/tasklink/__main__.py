"""Allow ``python -m tasklink``."""

import sys

from tasklink.cli import main

if __name__ == "__main__":
    sys.exit(main())
