"""Module entry point for ``python -m gazer``."""

import sys

from gazer.main import main

if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
