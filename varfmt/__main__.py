"""Entry point for ``python -m varfmt``."""

import sys

from varfmt.main import main

if __name__ == "__main__":
    sys.exit(main())
