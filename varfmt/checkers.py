"""
varfmt/checkers.py
══════════════════

Checker framework and the varfmt checker itself.

Architecture
────────────

  ┌─────────────────────────────────────────────────────────┐
  │                   CheckerRunner                         │
  │  ┌───────────────────────────────────────────────────┐  │
  │  │                 VarFmtChecker                     │  │
  │  │   Lowering ─ PrintfClassifier ─ PassThroughRegistry│  │
  │  └──────────────────────────┬────────────────────────┘  │
  │                             │ FormatSite                │
  │  ┌──────────────────────────▼────────────────────────┐  │
  │  │    DiagnosticSynthesizer (ConstantProvenance)     │  │
  │  └──────────────────────────┬────────────────────────┘  │
  │                             │                           │
  │  ┌──────────────────────────▼────────────────────────┐  │
  │  │           SuppressionManager                      │  │
  │  │  // cppcheck-suppress  │  file-level  │  global   │  │
  │  └───────────────────────────────────────────────────┘  │
  └─────────────────────────────────────────────────────────┘

Each Checker follows a four-phase lifecycle:

  1. **configure()**        — read options, build per-run state
  2. **collect_evidence()** — walk the token list, record format sites
  3. **diagnose()**         — turn sites into Diagnostics
  4. **report()**           — return Diagnostics not suppressed
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from fnmatch import fnmatch
from typing import (
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from varfmt.ast_helper import (
    get_call_arguments,
    is_assignment,
    is_function_call,
    is_increment_decrement,
    tok_op1,
)
from varfmt.config import VarFmtConfig
from varfmt.diagnostics import (
    CWE_UNCONTROLLED_FORMAT,
    ERROR_ID,
    Diagnostic,
    DiagnosticSeverity,
    DiagnosticSynthesizer,
)
from varfmt.expr import Expr, ExprKind, ExprPrinter, Renderer, SourceLocation
from varfmt.lowering import Lowering, callee_symbol, lower_assignment_targets, symbol_for_function
from varfmt.passthrough import PassThroughRegistry
from varfmt.printers import PrintfClassifier, parameter_symbols

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — SUPPRESSIONS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Suppression:
    """
    One suppression rule.

    ``error_id`` may be ``"*"``.  Without ``file`` the rule is global; with
    ``file`` but no ``line`` it covers every matching file (exact name,
    path suffix or fnmatch pattern); with both it is an inline
    ``// cppcheck-suppress`` comment and covers that line and the next.
    """
    error_id: str
    file: str = ""
    line: int = 0

    def matches(self, diag: Diagnostic) -> bool:
        if self.error_id not in ("*", diag.error_id):
            return False
        if not self.file:
            return True
        loc = diag.location
        if self.line:
            return self.file == loc.file and loc.line in (self.line, self.line + 1)
        return (
            self.file == loc.file
            or loc.file.endswith(self.file)
            or fnmatch(loc.file, self.file)
        )


class SuppressionManager:
    """
    The suppression rules in force for one run.

    Rules come from the dump (``cppcheck-suppress`` comments and
    ``--suppress`` entries Cppcheck recorded) and from varfmt's own
    settings::

        sm = SuppressionManager()
        sm.load_inline_suppressions(data)
        sm.add("legacy/*")
        reported = sm.filter_diagnostics(diags)
    """

    def __init__(self) -> None:
        self._rules: Set[Suppression] = set()

    def __len__(self) -> int:
        return len(self._rules)

    def load_inline_suppressions(self, source: Any) -> None:
        """
        Read the suppressions Cppcheck parsed from the source.

        ``source`` is either a configuration or the whole dump; Cppcheck
        writes ``<suppressions>`` once per dump.
        """
        for supp in getattr(source, "suppressions", None) or []:
            error_id = getattr(supp, "errorId", None)
            if not error_id:
                continue
            try:
                line = int(getattr(supp, "lineNumber", 0) or 0)
            except (TypeError, ValueError):
                line = 0
            file = getattr(supp, "fileName", "") or ""
            self._rules.add(Suppression(error_id, file, line if file else 0))

    def add_file_suppression(self, error_id: str, file_pattern: str) -> None:
        self._rules.add(Suppression(error_id, file_pattern))

    def add_global_suppression(self, error_id: str) -> None:
        self._rules.add(Suppression(error_id))

    def add(self, entry: str) -> None:
        """
        Suppress by error id (``variableFormat``) or by file pattern
        (anything containing a path separator, wildcard or dot).
        """
        if any(c in entry for c in "/\\*?[."):
            self.add_file_suppression("*", entry)
        else:
            self.add_global_suppression(entry)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        return any(rule.matches(diag) for rule in self._rules)

    def filter_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        return [d for d in diagnostics if not self.is_suppressed(d)]


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — CHECKER BASE CLASS
# ═════════════════════════════════════════════════════════════════════════

class Checker(ABC):
    """
    Abstract base class for checkers.

    Lifecycle
    ─────────
      1. ``configure(ctx)``        — receive context, read options
      2. ``collect_evidence(ctx)``  — gather suspicious sites
      3. ``diagnose(ctx)``          — turn evidence into diagnostics
      4. ``report(ctx)``            — return final diagnostics

    Subclass Contract
    ─────────────────
      - Override ``name``, ``description``, ``error_ids``
      - Implement ``collect_evidence()`` and ``diagnose()``
    """

    name: ClassVar[str] = "base-checker"
    description: ClassVar[str] = ""
    error_ids: ClassVar[FrozenSet[str]] = frozenset()
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING
    cwe_ids: ClassVar[Dict[str, int]] = {}  # error_id → CWE number

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def configure(self, ctx: CheckerContext) -> None:
        pass

    @abstractmethod
    def collect_evidence(self, ctx: CheckerContext) -> None:
        ...

    @abstractmethod
    def diagnose(self, ctx: CheckerContext) -> None:
        ...

    def report(self, ctx: CheckerContext) -> List[Diagnostic]:
        """Return final diagnostics, filtered by suppressions."""
        return ctx.suppressions.filter_diagnostics(self._diagnostics)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"


@dataclass
class CheckerContext:
    """
    Shared context passed to every checker during execution.

    Attributes
    ----------
    cfg          : cppcheckdata.Configuration
    suppressions : SuppressionManager
    options      : user-provided options; ``"config"`` holds a VarFmtConfig
    stats        : mutable dict for timing / counting statistics
    """
    cfg: Any  # cppcheckdata.Configuration
    suppressions: SuppressionManager = field(default_factory=SuppressionManager)
    options: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    def get_option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — VARFMT CHECKER
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FormatSite:
    """A call to a format-consuming function, as seen during the walk."""
    call: Any
    callee: Expr
    arg: Expr
    passthrough: bool


class VarFmtChecker(Checker):
    """
    Reports format strings that are not built from literals and declared
    constants.

    The walk is a single pass over the token list.  Function bodies are
    the only scopes that matter: entering one registers its format
    parameter (if the function is printf-like), assignments drop it again,
    and each call to a printf-like function becomes a :class:`FormatSite`
    recording whether its format argument was a live pass-through at that
    point.
    """

    name: ClassVar[str] = "varfmt"
    description: ClassVar[str] = "Non-constant format string passed to a printf-like function"
    error_ids: ClassVar[FrozenSet[str]] = frozenset({ERROR_ID})
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING
    cwe_ids: ClassVar[Dict[str, int]] = {ERROR_ID: CWE_UNCONTROLLED_FORMAT}

    # callee shapes that are never classified; anything else unexpected is logged
    _SKIPPED_CALLEES = frozenset({
        ExprKind.INDEX, ExprKind.CALL, ExprKind.PAREN,
        ExprKind.DEREF, ExprKind.TYPE_ASSERT,
    })

    def __init__(self, render: Optional[Renderer] = None) -> None:
        super().__init__()
        self.render: Renderer = render or ExprPrinter()
        self.config = VarFmtConfig()
        self.classifier = PrintfClassifier()
        self.registry = PassThroughRegistry(self.classifier)
        self.lowering = Lowering()
        self.sites: List[FormatSite] = []

    def configure(self, ctx: CheckerContext) -> None:
        self.config = ctx.get_option("config") or VarFmtConfig()
        self.classifier = PrintfClassifier(self.config.funcs)
        self.registry = PassThroughRegistry(self.classifier)
        self.lowering = Lowering(getattr(ctx.cfg, "tokenlist", None) or [])
        self.sites = []
        self._diagnostics = []
        if self.config.infer_wrappers:
            wrappers = self.classifier.infer_wrappers(ctx.cfg)
            ctx.stats["wrappers"] = len(wrappers)

    def collect_evidence(self, ctx: CheckerContext) -> None:
        bodies: Dict[int, Any] = {}
        ends: Set[int] = set()
        for scope in getattr(ctx.cfg, "scopes", None) or []:
            if getattr(scope, "type", "") != "Function":
                continue
            start = getattr(scope, "bodyStart", None)
            end = getattr(scope, "bodyEnd", None)
            if start is not None:
                bodies[id(start)] = scope
            if end is not None:
                ends.add(id(end))

        for tok in getattr(ctx.cfg, "tokenlist", None) or []:
            scope = bodies.get(id(tok))
            if scope is not None:
                self._enter(scope)
            elif id(tok) in ends:
                self.registry.exit()
            elif is_assignment(tok) or is_increment_decrement(tok):
                self.registry.invalidate_on_assign(lower_assignment_targets(tok))
            elif is_function_call(tok):
                self._visit_call(tok)

        ctx.stats["sites"] = len(self.sites)

    def diagnose(self, ctx: CheckerContext) -> None:
        synth = DiagnosticSynthesizer(self.render, self.name, self.default_severity)
        for site in self.sites:
            diag = synth.synthesize(site.arg, site.callee, site.passthrough)
            if diag is not None:
                self._diagnostics.append(diag)

    # ── walk ─────────────────────────────────────────────────────────

    def _enter(self, scope: Any) -> None:
        func = getattr(scope, "function", None)
        if func is None:
            self.registry.enter()
            return
        self.registry.enter(symbol_for_function(func), parameter_symbols(func))

    def _visit_call(self, tok: Any) -> None:
        callee = self.lowering.lower(tok_op1(tok))
        if callee.kind in (ExprKind.IDENT, ExprKind.MEMBER):
            index = self.classifier.fmtarg(callee_symbol(tok))
        elif callee.kind in self._SKIPPED_CALLEES:
            return
        else:
            logger.debug("unhandled callee %s: %s", callee.kind.name, self.render(callee))
            return
        if index < 0:
            return

        args = get_call_arguments(tok)
        if index >= len(args):
            logger.debug("%s: %s called with %d argument(s), format is #%d",
                         callee.location, self.render(callee), len(args), index)
            return
        if self.config.suppress_no_args and len(args) - 1 <= index:
            return

        arg = self.lowering.lower(args[index])
        passthrough = arg.kind is ExprKind.IDENT and self.registry.is_passthrough(arg.symbol)
        self.sites.append(FormatSite(tok, callee, arg, passthrough))


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — RUNNER
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CheckerRunResults:
    """
    Findings of one run, over one configuration or a whole dump.

    ``stats`` counts per checker: ``<name>_sites`` (format calls seen),
    ``<name>_wrappers`` (inferred printf wrappers) and
    ``<name>_elapsed_ms``.  Counts add up across configurations.
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    stats: Counter = field(default_factory=Counter)
    checker_names: List[str] = field(default_factory=list)
    configurations: List[str] = field(default_factory=list)
    _seen: Set[Tuple[Any, ...]] = field(default_factory=set, repr=False, compare=False)

    def add(self, diag: Diagnostic) -> bool:
        """Record ``diag`` unless the same finding is already there."""
        key = (diag.error_id, diag.location, diag.message)
        if key in self._seen:
            return False
        self._seen.add(key)
        self.diagnostics.append(diag)
        return True

    def absorb(self, other: CheckerRunResults) -> None:
        for diag in other.diagnostics:
            self.add(diag)
        self.stats.update(other.stats)
        self.configurations.extend(other.configurations)
        for name in other.checker_names:
            if name not in self.checker_names:
                self.checker_names.append(name)

    @property
    def warning_count(self) -> int:
        return sum(d.severity is DiagnosticSeverity.WARNING for d in self.diagnostics)

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def by_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.location.file == file]

    def by_checker(self, name: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.checker_name == name]

    def to_json_lines(self) -> str:
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def to_sexp_lines(self) -> str:
        return "\n".join(d.to_sexp() for d in self.diagnostics)

    def summary(self) -> str:
        lines = [
            f"{self.total_count} finding(s), {self.warning_count} warning(s) "
            f"in {len(self.configurations)} configuration(s)",
        ]
        for name in self.checker_names:
            lines.append(
                f"  {name}: {len(self.by_checker(name))} finding(s), "
                f"{self.stats[name + '_sites']} format call(s), "
                f"{self.stats[name + '_wrappers']} wrapper(s), "
                f"{self.stats[name + '_elapsed_ms']:.1f}ms"
            )
        return "\n".join(lines)


class CheckerRunner:
    """
    Runs checkers over Cppcheck configurations.

    Every configuration gets fresh checker instances; only the
    suppression rules and the options are shared.

    >>> runner = CheckerRunner(options={"config": VarFmtConfig()})
    >>> results = runner.run_all_configurations(data)
    >>> print(results.summary())
    """

    def __init__(
        self,
        checkers: Optional[Sequence[Type[Checker]]] = None,
        suppressions: Optional[SuppressionManager] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.checkers: List[Type[Checker]] = list(checkers or [VarFmtChecker])
        self.suppressions = suppressions or SuppressionManager()
        self.options = options or {}

    def run(self, cfg: Any) -> CheckerRunResults:
        """Run every checker against a single configuration."""
        cfg_name = getattr(cfg, "name", "") or ""
        results = CheckerRunResults(configurations=[cfg_name])
        self.suppressions.load_inline_suppressions(cfg)

        for cls in self.checkers:
            ctx = CheckerContext(cfg=cfg, suppressions=self.suppressions, options=self.options)
            results.checker_names.append(cls.name)
            started = time.monotonic()
            try:
                diags = self._run_checker(cls(), ctx)
            except Exception as exc:
                logger.debug("checker %s failed on %r", cls.name, cfg_name, exc_info=True)
                diags = [Diagnostic(
                    error_id="checkerInternalError",
                    message=f"Checker '{cls.name}' failed: {exc}",
                    severity=DiagnosticSeverity.INFORMATION,
                    location=SourceLocation(),
                    checker_name=cls.name,
                )]
            elapsed_ms = (time.monotonic() - started) * 1000.0
            logger.info("%s: configuration %r: %d finding(s) in %.1fms",
                        cls.name, cfg_name, len(diags), elapsed_ms)

            for diag in diags:
                results.add(diag)
            results.stats[f"{cls.name}_elapsed_ms"] += elapsed_ms
            for key, val in ctx.stats.items():
                results.stats[f"{cls.name}_{key}"] += val

        return results

    @staticmethod
    def _run_checker(checker: Checker, ctx: CheckerContext) -> List[Diagnostic]:
        checker.configure(ctx)
        checker.collect_evidence(ctx)
        checker.diagnose(ctx)
        return checker.report(ctx)

    def run_all_configurations(self, data: Any) -> CheckerRunResults:
        """
        Run over every configuration of a dump.

        Cppcheck writes one configuration per preprocessor variant, so the
        same finding often appears more than once; it is reported once.
        """
        self.suppressions.load_inline_suppressions(data)
        combined = CheckerRunResults()
        for cfg in getattr(data, "configurations", None) or []:
            combined.absorb(self.run(cfg))
        return combined


def check_configuration(
    cfg: Any,
    config: Optional[VarFmtConfig] = None,
) -> List[Diagnostic]:
    """Run varfmt on one configuration and return its diagnostics."""
    config = config or VarFmtConfig()
    suppressions = SuppressionManager()
    for entry in config.suppress:
        suppressions.add(entry)
    runner = CheckerRunner(suppressions=suppressions, options={"config": config})
    return runner.run(cfg).diagnostics


__all__ = [
    "Suppression",
    "SuppressionManager",
    "Checker",
    "CheckerContext",
    "FormatSite",
    "VarFmtChecker",
    "CheckerRunResults",
    "CheckerRunner",
    "check_configuration",
]
