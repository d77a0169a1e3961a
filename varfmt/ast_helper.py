#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
varfmt/ast_helper.py
════════════════════

Read-only helpers for the Cppcheck token AST.

Every accessor tolerates ``None`` and missing attributes, so the checker
keeps working on partial dumps and on the light-weight mock tokens used in
the test-suite.  Nothing here ever mutates a token.

    ┌─────────────────────────────────────────────────────────────────┐
    │  Safe accessors       tok_str, tok_op1, tok_variable, ...       │
    │  Predicates           is_literal, is_cast, is_function_call ... │
    │  Call helpers         get_call_arguments                        │
    │  Token sequences      iter_tokens_in_range, iter_tokens_in_scope│
    │  Declarations         function_arguments, is_variadic           │
    └─────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from typing import Any, FrozenSet, Iterator, List, Optional

from varfmt.expr import SourceLocation

# Cppcheck tokens are plain objects; we never import cppcheckdata here.
Token = Any


# ═══════════════════════════════════════════════════════════════════════════
#  CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

ASSIGNMENT_OPS: FrozenSet[str] = frozenset({
    '=', '+=', '-=', '*=', '/=', '%=',
    '&=', '|=', '^=', '<<=', '>>=',
})

# Binary operators that produce a value from both operands.  Assignments
# are absent: ``f(fmt = x)`` is lowered as unknown.
BINARY_OPS: FrozenSet[str] = frozenset({
    '+', '-', '*', '/', '%',
    '&', '|', '^', '<<', '>>',
    '==', '!=', '<', '>', '<=', '>=', '<=>',
    '&&', '||',
    ',', '.*', '->*',
})

UNARY_OPS: FrozenSet[str] = frozenset({
    '++', '--',
    '+', '-',
    '!', '~',
    '*', '&',
    'sizeof', 'alignof', 'typeof', 'decltype',
})

# Keyword casts that behave like a named-type conversion.
CONVERSION_CASTS: FrozenSet[str] = frozenset({
    'static_cast', 'const_cast', 'reinterpret_cast',
})

# Keyword casts that check the dynamic type of their operand.
ASSERTING_CASTS: FrozenSet[str] = frozenset({
    'dynamic_cast',
})

# Builtin type keywords that can head a functional cast, e.g. ``char(x)``.
TYPE_KEYWORDS: FrozenSet[str] = frozenset({
    'void', 'bool', '_Bool', 'char', 'wchar_t', 'char8_t', 'char16_t',
    'char32_t', 'short', 'int', 'long', 'float', 'double', 'signed',
    'unsigned', 'size_t', 'ssize_t', 'ptrdiff_t', 'intptr_t', 'uintptr_t',
})

VA_LIST_TYPES: FrozenSet[str] = frozenset({
    'va_list', '__builtin_va_list', '__gnuc_va_list',
})


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1 — SAFE ACCESSORS
# ═══════════════════════════════════════════════════════════════════════════

def tok_str(tok: Token) -> str:
    """The token text, or ``""``."""
    if tok is None:
        return ""
    return getattr(tok, "str", "") or ""


def tok_op1(tok: Token) -> Optional[Token]:
    if tok is None:
        return None
    return getattr(tok, "astOperand1", None)


def tok_op2(tok: Token) -> Optional[Token]:
    if tok is None:
        return None
    return getattr(tok, "astOperand2", None)


def tok_variable(tok: Token) -> Optional[Any]:
    """The ``Variable`` a name token refers to, or ``None``."""
    if tok is None:
        return None
    return getattr(tok, "variable", None)


def tok_function(tok: Token) -> Optional[Any]:
    """The ``Function`` a name token refers to, or ``None``."""
    if tok is None:
        return None
    return getattr(tok, "function", None)


def tok_value_type(tok: Token) -> Optional[Any]:
    if tok is None:
        return None
    return getattr(tok, "valueType", None)


def tok_values(tok: Token) -> List[Any]:
    """ValueFlow values attached to a token (empty if none)."""
    if tok is None:
        return []
    vals = getattr(tok, "values", None)
    return list(vals) if vals else []


def tok_link(tok: Token) -> Optional[Token]:
    """The matching bracket of ``(``, ``[``, ``{`` or ``<``."""
    if tok is None:
        return None
    return getattr(tok, "link", None)


def tok_next(tok: Token) -> Optional[Token]:
    if tok is None:
        return None
    return getattr(tok, "next", None)


def tok_previous(tok: Token) -> Optional[Token]:
    if tok is None:
        return None
    return getattr(tok, "previous", None)


def tok_file(tok: Token) -> str:
    if tok is None:
        return ""
    return getattr(tok, "file", "") or ""


def tok_line(tok: Token) -> int:
    if tok is None:
        return 0
    return int(getattr(tok, "linenr", 0) or 0)


def tok_column(tok: Token) -> int:
    if tok is None:
        return 0
    return int(getattr(tok, "column", 0) or 0)


def tok_location(tok: Token) -> SourceLocation:
    return SourceLocation(
        file=tok_file(tok), line=tok_line(tok), column=tok_column(tok)
    )


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2 — AST PREDICATES
# ═══════════════════════════════════════════════════════════════════════════

def is_identifier(tok: Token) -> bool:
    if tok is None:
        return False
    return bool(getattr(tok, "isName", False))


def is_literal(tok: Token) -> bool:
    """Number, string, char or boolean literal."""
    if tok is None:
        return False
    return (
        bool(getattr(tok, "isNumber", False)) or
        bool(getattr(tok, "isString", False)) or
        bool(getattr(tok, "isChar", False)) or
        bool(getattr(tok, "isBoolean", False)) or
        tok_str(tok) == "nullptr"
    )


def is_cast(tok: Token) -> bool:
    if tok is None:
        return False
    return bool(getattr(tok, "isCast", False))


def is_assignment(tok: Token) -> bool:
    """Assignment, including compound assignment."""
    if tok is None:
        return False
    return bool(getattr(tok, "isAssignmentOp", False)) or tok_str(tok) in ASSIGNMENT_OPS


def is_increment_decrement(tok: Token) -> bool:
    return tok_str(tok) in ('++', '--') and tok_op1(tok) is not None


def is_function_call(tok: Token) -> bool:
    """
    In the Cppcheck AST a call is a ``(`` token whose astOperand1 is the
    called expression.  Casts share the ``(`` token and are excluded.
    """
    if tok is None or tok_str(tok) != '(':
        return False
    if tok_op1(tok) is None:
        return False
    if is_cast(tok):
        return False
    return True


def is_grouping_paren(tok: Token) -> bool:
    """A ``(`` that takes no part in the AST, i.e. plain grouping."""
    if tok_str(tok) != '(':
        return False
    return tok_op1(tok) is None and tok_op2(tok) is None and not is_cast(tok)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3 — FUNCTION CALLS
# ═══════════════════════════════════════════════════════════════════════════

def get_call_arguments(call_tok: Token) -> List[Token]:
    """
    Argument root tokens of a call, left to right.

    ``f(a, b, c)`` hangs its arguments off astOperand2 as a left-leaning
    tree of commas::

        (
         ├─ f
         └─ ,
             ├─ ,
             │   ├─ a
             │   └─ b
             └─ c
    """
    if call_tok is None or tok_str(call_tok) != '(':
        return []
    args: List[Token] = []
    # explicit stack: the comma chain is as deep as the argument list is long
    pending = [tok_op2(call_tok)]
    while pending:
        tok = pending.pop()
        if tok is None:
            continue
        if tok_str(tok) == ',':
            pending.append(tok_op2(tok))
            pending.append(tok_op1(tok))
        else:
            args.append(tok)
    return args


# ═══════════════════════════════════════════════════════════════════════════
#  PART 4 — TOKEN SEQUENCES
# ═══════════════════════════════════════════════════════════════════════════

def iter_tokens_in_range(start: Token, end: Token) -> Iterator[Token]:
    """Tokens from ``start`` to ``end`` inclusive, following ``next``."""
    current = start
    while current is not None:
        yield current
        if current is end:
            break
        current = tok_next(current)


def iter_tokens_in_scope(scope: Any) -> Iterator[Token]:
    """Tokens of a scope body, braces included."""
    if scope is None:
        return
    start = getattr(scope, "bodyStart", None)
    end = getattr(scope, "bodyEnd", None)
    if start is None or end is None:
        return
    yield from iter_tokens_in_range(start, end)


def join_tokens(start: Token, end: Token) -> str:
    """Space-joined token text, used for shapes we do not model."""
    return " ".join(tok_str(t) for t in iter_tokens_in_range(start, end))


# ═══════════════════════════════════════════════════════════════════════════
#  PART 5 — DECLARATIONS
# ═══════════════════════════════════════════════════════════════════════════

def function_arguments(func: Any) -> List[Any]:
    """Named parameters in declaration order (Cppcheck numbers them from 1)."""
    argmap = getattr(func, "argument", None) or {}
    return [argmap[k] for k in sorted(argmap)]


def is_variadic(func: Any) -> bool:
    """True when the parameter list ends in ``...``."""
    td = getattr(func, "tokenDef", None)
    open_paren = tok_next(td)
    if tok_str(open_paren) != '(':
        return False
    close_paren = tok_link(open_paren)
    for tok in iter_tokens_in_range(open_paren, close_paren):
        if tok_str(tok) == '...':
            return True
    return False


def variable_type_name(var: Any) -> str:
    vt = tok_value_type(getattr(var, "nameToken", None))
    name = getattr(vt, "originalTypeName", "") if vt is not None else ""
    if name:
        return name
    return tok_str(getattr(var, "typeStartToken", None))


def is_va_list(var: Any) -> bool:
    return variable_type_name(var) in VA_LIST_TYPES


def variable_type_tokens(var: Any) -> List[str]:
    start = getattr(var, "typeStartToken", None)
    end = getattr(var, "typeEndToken", None)
    if start is None:
        return []
    return [tok_str(t) for t in iter_tokens_in_range(start, end or start)]
