#!/usr/bin/env python3
"""
varfmt_addon.py
===============

Cppcheck addon wrapper for varfmt::

    cppcheck --addon=addons/varfmt_addon.py file.c

Cppcheck runs the script as ``varfmt_addon.py --cli file.c.dump`` and reads
one JSON object per finding from stdout.  The ``varfmt`` package has to be
importable by the interpreter cppcheck starts.
"""

import sys

from varfmt.main import main


if __name__ == "__main__":
    sys.exit(main())
