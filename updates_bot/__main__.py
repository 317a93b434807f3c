"""Allow ``python -m updates_bot``."""

import sys

from .cli_handler import main

if __name__ == "__main__":
    sys.exit(main())
