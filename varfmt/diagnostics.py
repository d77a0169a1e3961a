"""
varfmt/diagnostics.py
═════════════════════

Diagnostic model and the synthesizer that turns a non-constant verdict
into one readable finding.

Output formats
──────────────

  gcc   ``file:line:col: warning: message [variableFormat]``
        followed by one ``file:line:col: note: ...`` line per related
        location
  json  one line of cppcheck's addon protocol
  sexp  ``(diagnostic (file "a.c") (line 3) ...)`` via ``sexpdata``
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Tuple

import sexpdata
from sexpdata import Symbol as SexpSymbol

from varfmt.expr import Expr, ExprKind, ExprPrinter, Renderer, SourceLocation, SymbolKind
from varfmt.provenance import ConstantProvenance, CulpritSet

ADDON_NAME = "varfmt"
ERROR_ID = "variableFormat"
CWE_UNCONTROLLED_FORMAT = 134

# Culprits rendered at least this long are summarised instead of quoted.
MAX_QUOTED_CULPRIT = 32


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — DIAGNOSTIC MODEL
# ═══════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """cppcheck-compatible severity levels."""
    ERROR = "error"
    WARNING = "warning"
    STYLE = "style"
    PERFORMANCE = "performance"
    PORTABILITY = "portability"
    INFORMATION = "information"


class Confidence(Enum):
    """
    How certain we are that the diagnostic is a true positive.

    HIGH   — the format is a plain variable
    MEDIUM — the format is an expression with a non-constant piece
    """
    HIGH = auto()
    MEDIUM = auto()


@dataclass(frozen=True)
class RelatedLocation:
    """A secondary location attached to a diagnostic."""
    location: SourceLocation
    message: str
    end: Optional[SourceLocation] = None


@dataclass(frozen=True)
class Diagnostic:
    """
    A single diagnostic finding.

    Attributes
    ----------
    error_id     : ``variableFormat`` for findings, ``checkerInternalError``
                   when a checker crashed
    message      : Human-readable description
    severity     : DiagnosticSeverity
    location     : Start of the offending format argument
    end          : End of the offending format argument
    confidence   : Confidence level
    cwe          : CWE identifier (0 = none)
    checker_name : Name of the checker that produced this
    addon        : Addon name for cppcheck protocol
    extra        : Additional context string
    related      : Notes at other locations, in source order
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    end: Optional[SourceLocation] = None
    confidence: Confidence = Confidence.MEDIUM
    cwe: int = 0
    checker_name: str = ""
    addon: str = ADDON_NAME
    extra: str = ""
    related: Tuple[RelatedLocation, ...] = ()

    def to_cppcheck_json(self) -> Dict[str, Any]:
        """Serialize to cppcheck's JSON addon output format."""
        result: Dict[str, Any] = {
            "file": self.location.file,
            "linenr": self.location.line,
            "column": self.location.column,
            "severity": self.severity.value,
            "message": self.message,
            "addon": self.addon,
            "errorId": self.error_id,
            "extra": self.extra,
        }
        if self.cwe:
            result["cwe"] = self.cwe
        return result

    def to_json_str(self) -> str:
        """Single-line JSON string for cppcheck addon stdout."""
        return json.dumps(self.to_cppcheck_json())

    def to_gcc_format(self, notes: bool = True) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message."""
        sev = self.severity.value
        lines = [f"{self.location}: {sev}: {self.message} [{self.error_id}]"]
        if notes:
            lines.extend(f"{r.location}: note: {r.message}" for r in self.related)
        return "\n".join(lines)

    def to_sexp(self) -> str:
        """One S-expression per diagnostic."""
        form: List[Any] = [
            SexpSymbol("diagnostic"),
            [SexpSymbol("id"), self.error_id],
            [SexpSymbol("severity"), SexpSymbol(self.severity.value)],
            [SexpSymbol("file"), self.location.file],
            [SexpSymbol("line"), self.location.line],
            [SexpSymbol("column"), self.location.column],
            [SexpSymbol("message"), self.message],
        ]
        if self.cwe:
            form.append([SexpSymbol("cwe"), self.cwe])
        for r in self.related:
            form.append([
                SexpSymbol("note"),
                r.location.file, r.location.line, r.location.column,
                r.message,
            ])
        return sexpdata.dumps(form)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — SYNTHESIZER
# ═══════════════════════════════════════════════════════════════════════════

class DiagnosticSynthesizer:
    """
    Build the one diagnostic for an offending format argument.

    Both the engine and the messages use the injected ``render`` callable,
    so a caller with access to the original source text can substitute
    its own printer.
    """

    def __init__(
        self,
        render: Optional[Renderer] = None,
        checker_name: str = ADDON_NAME,
        severity: DiagnosticSeverity = DiagnosticSeverity.WARNING,
    ) -> None:
        self.render: Renderer = render or ExprPrinter()
        self.engine = ConstantProvenance(self.render)
        self.checker_name = checker_name
        self.severity = severity

    def synthesize(
        self,
        arg: Expr,
        function: Expr,
        passthrough: bool = False,
    ) -> Optional[Diagnostic]:
        """
        ``arg`` is the format argument, ``function`` the callee as written.
        ``passthrough`` is true when ``arg`` is a registered pass-through
        parameter.  Returns ``None`` when nothing is wrong.
        """
        if passthrough:
            return None
        fname = self.render(function)

        if arg.kind is ExprKind.IDENT and arg.symbol is not None:
            kind = arg.symbol.kind
            if kind is SymbolKind.CONSTANT:
                return None
            if kind is SymbolKind.VARIABLE:
                related: Tuple[RelatedLocation, ...] = ()
                if arg.symbol.declared_at is not None:
                    related = (RelatedLocation(arg.symbol.declared_at, "defined here"),)
                return self._diagnostic(
                    f"variable `{self.render(arg)}` used for {fname} format parameter",
                    arg, related, Confidence.HIGH,
                )

        culprits = CulpritSet()
        if self.engine.is_constant(arg, culprits):
            return None

        ordered = culprits.ordered()
        msg = "non-constant expression"
        if len(ordered) == 1:
            text = self.render(ordered[0])
            if len(text) < MAX_QUOTED_CULPRIT:
                msg = f"variable `{text}`"
        related = tuple(
            RelatedLocation(x.location, f"Non-constant: {self.render(x)}", x.end_location)
            for x in ordered
        )
        return self._diagnostic(
            f"{msg} used for {fname} format parameter",
            arg, related, Confidence.MEDIUM,
        )

    def _diagnostic(
        self,
        message: str,
        arg: Expr,
        related: Tuple[RelatedLocation, ...],
        confidence: Confidence,
    ) -> Diagnostic:
        return Diagnostic(
            error_id=ERROR_ID,
            message=message,
            severity=self.severity,
            location=arg.location,
            end=arg.end_location,
            confidence=confidence,
            cwe=CWE_UNCONTROLLED_FORMAT,
            checker_name=self.checker_name,
            related=related,
        )
