"""
varfmt — report variables passed as format strings to printf-like functions.

While this isn't necessarily a problem, and sometimes is very intentional,
accidental use of potentially unvetted strings can result in garbage
conversions or worse showing up in formatted output.  varfmt reports all
uses of variables as format strings, except those that are merely
pass-throughs in a wrapper of a printf-like function.

Runs on Cppcheck dump files::

    cppcheck --dump file.c
    python -m varfmt file.c.dump

or from Python::

    >>> from varfmt import check_configuration
    >>> for diag in check_configuration(cfg):
    ...     print(diag.to_gcc_format())
"""

__version__ = "0.1.0"

from varfmt.checkers import (  # noqa: E402
    CheckerRunner,
    SuppressionManager,
    VarFmtChecker,
    check_configuration,
)
from varfmt.config import VarFmtConfig, load_config  # noqa: E402
from varfmt.diagnostics import Diagnostic, DiagnosticSeverity  # noqa: E402
from varfmt.errors import VarFmtConfigError, VarFmtError  # noqa: E402

__all__ = [
    "__version__",
    "CheckerRunner",
    "Diagnostic",
    "DiagnosticSeverity",
    "SuppressionManager",
    "VarFmtChecker",
    "VarFmtConfig",
    "VarFmtConfigError",
    "VarFmtError",
    "check_configuration",
    "load_config",
]
