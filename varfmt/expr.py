"""
varfmt/expr.py
══════════════

Closed expression model consumed by the provenance engine.

Cppcheck hands us a token list where the AST is threaded through
``astOperand1`` / ``astOperand2``.  That representation is convenient for
walking, but it drops grouping parentheses and mixes casts, calls and
grouping under the same ``(`` token.  The lowering pass in
:mod:`varfmt.lowering` translates it into the small, closed set of node
kinds below so the engine can be a plain ``match`` over ``ExprKind``.

    ┌──────────────┬──────────────────────────────────────────────┐
    │ ExprKind     │ operands                                     │
    ├──────────────┼──────────────────────────────────────────────┤
    │ LITERAL      │ ()                                           │
    │ IDENT        │ ()            symbol = binding               │
    │ BINARY       │ (lhs, rhs)    op = operator                  │
    │ MEMBER       │ (object,)     symbol = member binding        │
    │ INDEX        │ (container, key)                             │
    │ SLICE        │ (x, [low], [high], [max])                    │
    │ CALL         │ args          callee = function expression   │
    │ PAREN        │ (inner,)                                     │
    │ UNARY        │ (operand,)    op = operator                  │
    │ DEREF        │ (operand,)                                   │
    │ TYPE_ASSERT  │ (operand,)    op = asserted type text        │
    │ KEY_VALUE    │ (key, value)                                 │
    │ CONDITIONAL  │ (cond, then, else)                           │
    │ UNKNOWN      │ ()            text = raw source              │
    └──────────────┴──────────────────────────────────────────────┘

Nodes compare by identity: the same text may appear twice in one
expression and each occurrence is a distinct culprit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Hashable, Optional, Tuple


class ExprKind(Enum):
    LITERAL = auto()
    IDENT = auto()
    BINARY = auto()
    MEMBER = auto()
    INDEX = auto()
    SLICE = auto()
    CALL = auto()
    PAREN = auto()
    UNARY = auto()
    DEREF = auto()
    TYPE_ASSERT = auto()
    KEY_VALUE = auto()
    CONDITIONAL = auto()
    UNKNOWN = auto()


class SymbolKind(Enum):
    """Declaration kind of a resolved name."""
    CONSTANT = "constant"
    VARIABLE = "variable"
    FUNCTION = "function"
    TYPE = "type"


@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"

    def sort_key(self) -> Tuple[str, int, int]:
        return (self.file, self.line, self.column)


@dataclass(frozen=True)
class Symbol:
    """
    Identity of a named entity resolved by Cppcheck.

    Only ``key`` and ``name`` take part in equality, so every occurrence of
    a variable maps to the same registry slot regardless of which token it
    was resolved from.
    """
    key: Hashable
    name: str
    kind: SymbolKind = field(compare=False)
    declared_at: Optional[SourceLocation] = field(default=None, compare=False)
    declaration: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True, eq=False)
class Expr:
    """One node of a lowered expression tree."""
    kind: ExprKind
    operands: Tuple["Expr", ...] = ()
    op: str = ""
    text: str = ""
    symbol: Optional[Symbol] = None
    callee: Optional["Expr"] = None
    location: SourceLocation = field(default_factory=SourceLocation)
    end: Optional[SourceLocation] = None
    # SLICE: which of low/high/max are present, in that order
    slots: Tuple[bool, bool, bool] = (False, False, False)
    # UNARY: operator written after the operand (x++)
    postfix: bool = False
    # CALL: C-style cast, rendered ``(T)x``
    cast: bool = False
    origin: Any = field(default=None, repr=False)

    @property
    def end_location(self) -> SourceLocation:
        return self.end if self.end is not None else self.location

    def __repr__(self) -> str:
        return f"<Expr {self.kind.name} {ExprPrinter().render(self)!r}>"


Renderer = Callable[[Expr], str]


# ═══════════════════════════════════════════════════════════════════════════
#  PRETTY PRINTER
# ═══════════════════════════════════════════════════════════════════════════

class ExprPrinter:
    """
    Render an :class:`Expr` back to source-like text.

    Spacing follows the usual C style: binary operators are surrounded by
    single spaces, member access, subscripts and unary operators are not.
    Grouping parentheses are printed only where the source had them, which
    is what makes ``v1 + c1`` and ``(v1 + c1)`` render differently.
    """

    def render(self, expr: Expr) -> str:
        return self._render(expr)

    __call__ = render

    def _render(self, x: Optional[Expr]) -> str:
        if x is None:
            return ""
        k = x.kind
        ops = x.operands
        r = self._render

        if k in (ExprKind.LITERAL, ExprKind.IDENT, ExprKind.UNKNOWN):
            return x.text
        if k is ExprKind.PAREN:
            return f"({r(ops[0])})"
        if k is ExprKind.BINARY:
            if x.op == ",":
                return f"{r(ops[0])}, {r(ops[1])}"
            return f"{r(ops[0])} {x.op} {r(ops[1])}"
        if k is ExprKind.MEMBER:
            obj = r(ops[0]) if ops else ""
            return f"{obj}{x.op or '.'}{x.text}"
        if k is ExprKind.INDEX:
            return f"{r(ops[0])}[{r(ops[1])}]"
        if k is ExprKind.SLICE:
            parts = []
            rest = iter(ops[1:])
            for present in x.slots:
                parts.append(r(next(rest)) if present else "")
            while len(parts) > 2 and not x.slots[len(parts) - 1]:
                parts.pop()
            return f"{r(ops[0])}[{':'.join(parts)}]"
        if k is ExprKind.CALL:
            args = ", ".join(r(a) for a in ops)
            if x.cast:
                return f"({r(x.callee)}){args}"
            return f"{r(x.callee)}({args})"
        if k is ExprKind.UNARY:
            if x.postfix:
                return f"{r(ops[0])}{x.op}"
            if x.op.isalpha():
                return f"{x.op}({r(ops[0])})"
            return f"{x.op}{r(ops[0])}"
        if k is ExprKind.DEREF:
            return f"*{r(ops[0])}"
        if k is ExprKind.TYPE_ASSERT:
            if x.op.endswith(">"):
                return f"{x.op}({r(ops[0])})"
            return f"{r(ops[0])}.({x.op})"
        if k is ExprKind.KEY_VALUE:
            sep = x.op or ": "
            return f"{r(ops[0])}{sep}{r(ops[1])}"
        if k is ExprKind.CONDITIONAL:
            return f"{r(ops[0])} ? {r(ops[1])} : {r(ops[2])}"
        return x.text


# ═══════════════════════════════════════════════════════════════════════════
#  CONSTRUCTORS
# ═══════════════════════════════════════════════════════════════════════════
#
#  Used by the lowering pass and by tests that build trees by hand.

def literal(text: str, location: Optional[SourceLocation] = None, **kw: Any) -> Expr:
    return Expr(ExprKind.LITERAL, text=text, location=location or SourceLocation(), **kw)


def ident(
    text: str,
    symbol: Optional[Symbol] = None,
    location: Optional[SourceLocation] = None,
    **kw: Any,
) -> Expr:
    return Expr(ExprKind.IDENT, text=text, symbol=symbol,
                location=location or SourceLocation(), **kw)


def binary(op: str, lhs: Expr, rhs: Expr, **kw: Any) -> Expr:
    kw.setdefault("location", lhs.location)
    kw.setdefault("end", rhs.end_location)
    return Expr(ExprKind.BINARY, operands=(lhs, rhs), op=op, **kw)


def paren(inner: Expr, **kw: Any) -> Expr:
    kw.setdefault("location", inner.location)
    kw.setdefault("end", inner.end_location)
    return Expr(ExprKind.PAREN, operands=(inner,), **kw)


def call(callee: Expr, *args: Expr, cast: bool = False, **kw: Any) -> Expr:
    kw.setdefault("location", callee.location)
    return Expr(ExprKind.CALL, operands=tuple(args), callee=callee, cast=cast, **kw)
