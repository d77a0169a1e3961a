"""
varfmt/lowering.py
══════════════════

Translate Cppcheck token ASTs into :class:`varfmt.expr.Expr` trees and
resolve names to :class:`varfmt.expr.Symbol` values.

Two things Cppcheck leaves implicit are made explicit here:

* **Grouping parentheses.**  ``(v1 + c1)`` has no node of its own in the
  Cppcheck AST.  We recover it from the token stream: a node whose first
  token is preceded by a ``(`` that is not itself an AST node, and whose
  last token is followed by that paren's ``)``, is wrapped in ``PAREN``.

* **Declared constants.**  C has no ``const`` declarations in the Go or
  Pascal sense, so a variable counts as a declared constant only when it
  cannot be re-pointed or re-assigned: ``const`` arrays, pointers that
  are ``const`` at every level, ``constexpr`` and enumerators.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from varfmt.ast_helper import (
    ASSERTING_CASTS,
    BINARY_OPS,
    CONVERSION_CASTS,
    TYPE_KEYWORDS,
    UNARY_OPS,
    Token,
    get_call_arguments,
    is_cast,
    is_function_call,
    is_grouping_paren,
    is_identifier,
    is_literal,
    join_tokens,
    tok_function,
    tok_line,
    tok_column,
    tok_link,
    tok_location,
    tok_next,
    tok_op1,
    tok_op2,
    tok_previous,
    tok_str,
    tok_value_type,
    tok_values,
    tok_variable,
    variable_type_tokens,
)
from varfmt.expr import Expr, ExprKind, SourceLocation, Symbol, SymbolKind

logger = logging.getLogger(__name__)

# Past this depth the remaining subtree is kept as opaque source text.
MAX_DEPTH = 200


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — SYMBOL RESOLUTION
# ═══════════════════════════════════════════════════════════════════════════

def is_declared_constant(var: Any) -> bool:
    """
    Whether a Cppcheck ``Variable`` holds compile-time fixed text.

    Parameters never qualify: ``const char *const fmt`` as a parameter
    still receives whatever the caller passed.
    """
    if var is None or getattr(var, "isArgument", False):
        return False

    type_toks = variable_type_tokens(var)
    if "constexpr" in type_toks:
        return True

    vt = tok_value_type(getattr(var, "nameToken", None))
    if vt is not None:
        constness = int(getattr(vt, "constness", 0) or 0)
        depth = int(getattr(vt, "pointer", 0) or 0)
        if getattr(var, "isArray", False):
            # the array itself cannot be re-pointed; its elements must be const
            return bool(constness & 1)
        if depth:
            every_level = (1 << (depth + 1)) - 1
            return constness & every_level == every_level
        return bool(getattr(var, "isConst", False))

    if getattr(var, "isPointer", False):
        if "*" not in type_toks:
            return False
        # const before and after the last '*'
        last_star = len(type_toks) - 1 - type_toks[::-1].index("*")
        return (
            "const" in type_toks[:last_star]
            and "const" in type_toks[last_star:]
        )
    if getattr(var, "isArray", False):
        return "const" in type_toks
    return bool(getattr(var, "isConst", False))


def _variable_name(var: Any) -> str:
    nt = getattr(var, "nameToken", None)
    if nt is not None:
        return tok_str(nt)
    return getattr(var, "name", "") or ""


def symbol_for_variable(var: Any) -> Symbol:
    nt = getattr(var, "nameToken", None)
    kind = SymbolKind.CONSTANT if is_declared_constant(var) else SymbolKind.VARIABLE
    key = getattr(var, "Id", None)
    return Symbol(
        key=("var", key if key is not None else id(var)),
        name=_variable_name(var),
        kind=kind,
        declared_at=tok_location(nt) if nt is not None else None,
        declaration=var,
    )


def symbol_for_function(func: Any, name: str = "") -> Symbol:
    td = getattr(func, "tokenDef", None)
    fname = tok_str(td) if td is not None else (getattr(func, "name", "") or name)
    key = getattr(func, "Id", None)
    return Symbol(
        key=("function", key if key is not None else fname),
        name=fname,
        kind=SymbolKind.FUNCTION,
        declared_at=tok_location(td) if td is not None else None,
        declaration=func,
    )


def symbol_for_library_function(name: str) -> Symbol:
    """A callee with no declaration in the unit, e.g. ``printf``."""
    return Symbol(key=("function", name), name=name, kind=SymbolKind.FUNCTION)


def _is_type_token(tok: Token) -> bool:
    if tok_str(tok) in TYPE_KEYWORDS:
        return True
    if getattr(tok, "type", None) is not None:
        return True
    return getattr(tok, "typeScope", None) is not None and tok_variable(tok) is None


def _has_known_value(tok: Token) -> bool:
    return any(getattr(v, "valueKind", "") == "known" for v in tok_values(tok))


def resolve_symbol(tok: Token, as_callee: bool = False) -> Optional[Symbol]:
    """
    Resolve a name token.

    Resolution order: variable, function, type, enumerator-like name with
    a known value.  Unresolved names in callee position become library
    function symbols keyed by name; anywhere else they stay ``None``.
    """
    if tok is None or not is_identifier(tok):
        return None
    var = tok_variable(tok)
    if var is not None:
        return symbol_for_variable(var)
    func = tok_function(tok)
    if func is not None:
        return symbol_for_function(func, tok_str(tok))
    if _is_type_token(tok):
        return Symbol(key=("type", tok_str(tok)), name=tok_str(tok), kind=SymbolKind.TYPE)
    if as_callee:
        return symbol_for_library_function(tok_str(tok))
    if not getattr(tok, "varId", 0) and _has_known_value(tok):
        return Symbol(key=("enum", tok_str(tok)), name=tok_str(tok), kind=SymbolKind.CONSTANT)
    return None


def member_name_token(tok: Token) -> Optional[Token]:
    """
    The name on the right of ``.`` or ``::``.

    A leading ``::`` is a unary operator in the Cppcheck AST, so
    ``::printf`` keeps its name in astOperand1 and has no astOperand2.
    """
    s = tok_str(tok)
    if s not in ('.', '::'):
        return None
    op2 = tok_op2(tok)
    if op2 is None and s == '::':
        return tok_op1(tok)
    return op2


def callee_token(call_tok: Token) -> Optional[Token]:
    """The name token that identifies the called function, if any."""
    fn = tok_op1(call_tok)
    if tok_str(fn) in ('.', '::'):
        return member_name_token(fn)
    if is_identifier(fn):
        return fn
    return None


def callee_symbol(call_tok: Token) -> Optional[Symbol]:
    return resolve_symbol(callee_token(call_tok), as_callee=True)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — TOKEN ORDER
# ═══════════════════════════════════════════════════════════════════════════

class TokenOrder:
    """
    Position lookup for tokens of one configuration.

    Falls back to (line, column) for tokens that are not in the list,
    which keeps hand-built token fragments usable.
    """

    def __init__(self, tokens: Iterable[Token] = ()) -> None:
        self._pos: Dict[int, int] = {id(t): i for i, t in enumerate(tokens)}

    def key(self, tok: Token) -> Tuple[int, int, int]:
        pos = self._pos.get(id(tok))
        if pos is not None:
            return (0, pos, 0)
        return (1, tok_line(tok), tok_column(tok))

    def span(self, root: Token) -> Tuple[Token, Token]:
        """First and last token covered by an AST subtree."""
        toks: List[Token] = []
        stack = [root]
        seen = set()
        while stack:
            t = stack.pop()
            if t is None or id(t) in seen:
                continue
            seen.add(id(t))
            toks.append(t)
            if tok_str(t) in ('(', '[', '{'):
                link = tok_link(t)
                if link is not None:
                    toks.append(link)
            stack.append(tok_op1(t))
            stack.append(tok_op2(t))
        first = min(toks, key=self.key)
        last = max(toks, key=self.key)
        return first, last


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — LOWERING
# ═══════════════════════════════════════════════════════════════════════════

class Lowering:
    """
    Cppcheck token AST → :class:`Expr`.

    One instance per configuration; it only caches token positions.
    """

    def __init__(self, tokens: Iterable[Token] = ()) -> None:
        self.order = TokenOrder(tokens)

    def lower(self, tok: Token) -> Expr:
        return self._lower(tok, 0)

    # ── dispatch ─────────────────────────────────────────────────────

    def _lower(self, tok: Token, depth: int) -> Expr:
        first, last = self.order.span(tok)
        if depth > MAX_DEPTH:
            logger.debug("%s: expression nested deeper than %d", tok_location(first), MAX_DEPTH)
            node = self._opaque(tok, first, last)
        else:
            node = self._lower_node(tok, first, last, depth + 1)
        return self._wrap_parens(node, first, last)

    def _lower_node(self, tok: Token, first: Token, last: Token, depth: int) -> Expr:
        s = tok_str(tok)
        op1 = tok_op1(tok)
        op2 = tok_op2(tok)
        loc = tok_location(first)
        end = tok_location(last)

        if is_literal(tok):
            return Expr(ExprKind.LITERAL, text=s, location=loc, end=end, origin=tok)

        if op1 is None and op2 is None:
            if is_identifier(tok):
                return Expr(ExprKind.IDENT, text=s, symbol=resolve_symbol(tok),
                            location=loc, end=end, origin=tok)
            return self._opaque(tok, first, last)

        if s == '(':
            if is_cast(tok):
                return self._lower_cast(tok, op1, depth, loc, end)
            if is_function_call(tok):
                return self._lower_call(tok, op1, depth, loc, end)
            return self._opaque(tok, first, last)

        if s == '[' and op1 is not None and op2 is not None:
            return Expr(ExprKind.INDEX,
                        operands=(self._lower(op1, depth), self._lower(op2, depth)),
                        location=loc, end=end, origin=tok)

        name = member_name_token(tok)
        if is_identifier(name):
            obj = op1 if name is op2 else None
            operands = (self._lower(obj, depth),) if obj is not None else ()
            arrow = getattr(tok, "originalName", "") or s
            return Expr(ExprKind.MEMBER, operands=operands, op=arrow,
                        text=tok_str(name), symbol=resolve_symbol(name),
                        location=loc, end=end, origin=tok)

        if s == '?' and tok_str(op2) == ':':
            return Expr(ExprKind.CONDITIONAL,
                        operands=(self._lower(op1, depth),
                                  self._lower(tok_op1(op2), depth),
                                  self._lower(tok_op2(op2), depth)),
                        location=loc, end=end, origin=tok)

        if op2 is None and s in UNARY_OPS:
            inner = self._lower(op1, depth)
            if s == '*':
                return Expr(ExprKind.DEREF, operands=(inner,),
                            location=loc, end=end, origin=tok)
            postfix = self.order.key(op1) < self.order.key(tok)
            return Expr(ExprKind.UNARY, operands=(inner,), op=s, postfix=postfix,
                        location=loc, end=end, origin=tok)

        if op1 is not None and op2 is not None and s in BINARY_OPS:
            return Expr(ExprKind.BINARY,
                        operands=(self._lower(op1, depth), self._lower(op2, depth)),
                        op=s, location=loc, end=end, origin=tok)

        return self._opaque(tok, first, last)

    # ── calls and casts ──────────────────────────────────────────────

    def _lower_cast(self, tok: Token, op1: Token, depth: int,
                    loc: SourceLocation, end: SourceLocation) -> Expr:
        close = tok_link(tok)
        type_text = join_tokens(tok_next(tok), tok_previous(close)) if close is not None else ""
        target = Expr(ExprKind.IDENT, text=type_text,
                      symbol=Symbol(key=("type", type_text), name=type_text,
                                    kind=SymbolKind.TYPE),
                      location=tok_location(tok_next(tok)))
        return Expr(ExprKind.CALL, operands=(self._lower(op1, depth),),
                    callee=target, cast=True, location=loc, end=end, origin=tok)

    def _lower_call(self, tok: Token, fn: Token, depth: int,
                    loc: SourceLocation, end: SourceLocation) -> Expr:
        args = tuple(self._lower(a, depth) for a in get_call_arguments(tok))
        name = tok_str(fn)

        if name in CONVERSION_CASTS or name in ASSERTING_CASTS:
            # static_cast<T>(x): template arguments sit between name and '('
            spelled = join_tokens(fn, tok_previous(tok)).replace(" <", "<").replace("< ", "<").replace(" >", ">")
            if name in ASSERTING_CASTS and len(args) == 1:
                return Expr(ExprKind.TYPE_ASSERT, operands=args, op=spelled,
                            location=loc, end=end, origin=tok)
            callee = Expr(ExprKind.IDENT, text=spelled,
                          symbol=Symbol(key=("type", spelled), name=spelled,
                                        kind=SymbolKind.TYPE),
                          location=tok_location(fn))
            return Expr(ExprKind.CALL, operands=args, callee=callee,
                        location=loc, end=end, origin=tok)

        if is_identifier(fn):
            callee = Expr(ExprKind.IDENT, text=name,
                          symbol=resolve_symbol(fn, as_callee=True),
                          location=tok_location(fn), origin=fn)
            callee = self._wrap_parens(callee, fn, fn)
        else:
            callee = self._lower(fn, depth)
            if callee.kind is ExprKind.MEMBER and callee.symbol is None:
                # obj->log(...) on a type Cppcheck could not see
                member = tok_op2(fn)
                callee = Expr(ExprKind.MEMBER, operands=callee.operands,
                              op=callee.op, text=callee.text,
                              symbol=resolve_symbol(member, as_callee=True),
                              location=callee.location, end=callee.end,
                              origin=callee.origin)
        return Expr(ExprKind.CALL, operands=args, callee=callee,
                    location=loc, end=end, origin=tok)

    # ── helpers ──────────────────────────────────────────────────────

    def _opaque(self, tok: Token, first: Token, last: Token) -> Expr:
        return Expr(ExprKind.UNKNOWN, text=join_tokens(first, last),
                    location=tok_location(first), end=tok_location(last),
                    origin=tok)

    def _wrap_parens(self, node: Expr, first: Token, last: Token) -> Expr:
        before = tok_previous(first)
        after = tok_next(last)
        while (
            before is not None
            and after is not None
            and is_grouping_paren(before)
            and tok_link(before) is after
        ):
            node = Expr(ExprKind.PAREN, operands=(node,),
                        location=tok_location(before), end=tok_location(after),
                        origin=before)
            before = tok_previous(before)
            after = tok_next(after)
        return node


def lower_assignment_targets(tok: Token) -> List[Symbol]:
    """
    Symbols re-bound by an assignment or increment token.

    Only bare identifiers count; ``p->fmt = x`` changes a member, not the
    parameter ``p``.
    """
    target = tok_op1(tok)
    sym = resolve_symbol(target) if is_identifier(target) else None
    return [sym] if sym is not None else []
