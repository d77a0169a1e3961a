"""
varfmt/provenance.py
════════════════════

Decide whether a format-argument expression is built only from literal
or declared-constant text, and if not, which pieces are to blame.

Composite nodes follow one combination rule:

  * every operand non-constant → forget the operands, blame the parent
  * some operands constant     → keep the blame on the bad operands

so ``v1 + v2 + v3`` is reported as one piece while ``v1 + "x"`` points at
``v1``.  The rule removes only the immediate operands from the culprit
set, never their descendants; that is why ``(v1 + c1)`` ends up with two
culprits, ``v1`` and the parenthesised whole.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Sequence

from varfmt.expr import Expr, ExprKind, ExprPrinter, Renderer, SymbolKind

logger = logging.getLogger(__name__)


class CulpritSet:
    """Insertion-ordered set of :class:`Expr` nodes, keyed by identity."""

    def __init__(self) -> None:
        self._items: Dict[int, Expr] = {}

    def add(self, expr: Expr) -> None:
        self._items[id(expr)] = expr

    def discard(self, expr: Expr) -> None:
        self._items.pop(id(expr), None)

    def __contains__(self, expr: object) -> bool:
        return id(expr) in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Expr]:
        return iter(list(self._items.values()))

    def ordered(self) -> List[Expr]:
        """Culprits by source position; ties keep insertion order."""
        return sorted(self._items.values(), key=lambda x: x.location.sort_key())


class ConstantProvenance:
    """
    The constant-provenance engine.

    ``render`` is only used for debug logging of shapes the engine does
    not understand.
    """

    def __init__(self, render: Optional[Renderer] = None) -> None:
        self._render: Renderer = render or ExprPrinter()

    def is_constant(self, expr: Expr, culprits: CulpritSet) -> bool:
        k = expr.kind

        if k is ExprKind.LITERAL:
            return True

        if k in (ExprKind.IDENT, ExprKind.MEMBER):
            if expr.symbol is not None and expr.symbol.kind is SymbolKind.CONSTANT:
                return True

        elif k in (
            ExprKind.BINARY,
            ExprKind.PAREN,
            ExprKind.UNARY,
            ExprKind.DEREF,
            ExprKind.TYPE_ASSERT,
            ExprKind.SLICE,
            ExprKind.KEY_VALUE,
        ):
            return self._combine(expr, expr.operands, culprits)

        elif k is ExprKind.CONDITIONAL:
            # the selector only picks a branch
            return self._combine(expr, expr.operands[1:], culprits)

        elif k is ExprKind.CALL:
            if (
                len(expr.operands) == 1
                and _is_type_conversion(expr.callee)
                and self.is_constant(expr.operands[0], culprits)
            ):
                return True

        elif k is ExprKind.INDEX:
            pass

        else:
            logger.debug("unhandled expression %s: %s", k.name, self._render(expr))

        culprits.add(expr)
        return False

    def _combine(self, parent: Expr, operands: Sequence[Expr], culprits: CulpritSet) -> bool:
        all_good = True
        all_bad = True
        for x in operands:
            if self.is_constant(x, culprits):
                all_bad = False
            else:
                all_good = False
        if all_bad:
            for x in operands:
                culprits.discard(x)
            culprits.add(parent)
        return all_good


def _is_type_conversion(callee: Optional[Expr]) -> bool:
    if callee is None or callee.kind not in (ExprKind.IDENT, ExprKind.MEMBER):
        return False
    return callee.symbol is not None and callee.symbol.kind is SymbolKind.TYPE
