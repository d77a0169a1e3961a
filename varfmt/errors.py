"""
varfmt/errors.py

Exceptions raised outside the analysis proper.  The analysis itself never
raises for odd program shapes; it degrades to "non-constant" instead.
"""

from __future__ import annotations

from typing import Optional


class VarFmtError(Exception):
    """Base class for varfmt errors."""


class VarFmtConfigError(VarFmtError):
    """Invalid configuration file or command-line setting."""

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        self.message = message
        self.source = source
        super().__init__(message)

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message
