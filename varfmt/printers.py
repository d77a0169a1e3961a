"""
varfmt/printers.py
══════════════════

Which callables consume a printf-style format string, and where.

:meth:`PrintfClassifier.fmtarg` answers with the zero-based index of the
format parameter, or ``-1``.  Knowledge comes from three places, checked
in this order:

  1. extra functions from configuration (``log_msg``, ``die:1``)
  2. the C library printf family below
  3. wrappers inferred from the translation unit itself
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Hashable, List, Mapping, Optional

from varfmt.ast_helper import (
    function_arguments,
    get_call_arguments,
    is_function_call,
    is_identifier,
    is_va_list,
    is_variadic,
    iter_tokens_in_scope,
    tok_variable,
)
from varfmt.expr import Symbol, SymbolKind
from varfmt.lowering import callee_symbol, symbol_for_function, symbol_for_variable

logger = logging.getLogger(__name__)

NOT_FORMAT = -1

# function name → zero-based index of the format argument
PRINTF_FAMILY: Dict[str, int] = {
    "printf": 0,
    "fprintf": 1,
    "sprintf": 1,
    "snprintf": 2,
    "dprintf": 1,
    "asprintf": 1,
    "printf_s": 0,
    "fprintf_s": 1,
    "sprintf_s": 2,
    "snprintf_s": 3,
    "vprintf": 0,
    "vfprintf": 1,
    "vsprintf": 1,
    "vsnprintf": 2,
    "vdprintf": 1,
    "vasprintf": 1,
    "vprintf_s": 0,
    "vfprintf_s": 1,
    "vsprintf_s": 2,
    "vsnprintf_s": 3,
    "syslog": 1,
    "vsyslog": 1,
    "err": 1,
    "errx": 1,
    "warn": 0,
    "warnx": 0,
    "verr": 1,
    "verrx": 1,
    "vwarn": 0,
    "vwarnx": 0,
}


def format_param_index(func: Any) -> int:
    """
    Format index implied by a C declaration.

    ``f(..., const char *fmt, ...)`` → index of ``fmt``;
    ``f(..., const char *fmt, va_list ap)`` → index of ``fmt``;
    anything else → ``-1``.
    """
    if func is None:
        return NOT_FORMAT
    params = function_arguments(func)
    if is_variadic(func):
        return len(params) - 1 if params else NOT_FORMAT
    if len(params) >= 2 and is_va_list(params[-1]):
        return len(params) - 2
    return NOT_FORMAT


class PrintfClassifier:
    """
    Maps function symbols to their format-argument index.

    Parameters
    ----------
    funcs    : extra functions; a ``None`` index means "use the declaration
               convention, or 0 when there is no declaration"
    builtins : the library table, :data:`PRINTF_FAMILY` by default
    """

    def __init__(
        self,
        funcs: Optional[Mapping[str, Optional[int]]] = None,
        builtins: Optional[Mapping[str, int]] = None,
    ) -> None:
        self._extra: Dict[str, Optional[int]] = dict(funcs or {})
        self._builtin: Dict[str, int] = dict(PRINTF_FAMILY if builtins is None else builtins)
        self._inferred: Dict[Hashable, int] = {}

    def fmtarg(self, symbol: Optional[Symbol]) -> int:
        if symbol is None or symbol.kind is not SymbolKind.FUNCTION:
            return NOT_FORMAT
        if symbol.name in self._extra:
            index = self._extra[symbol.name]
            if index is not None:
                return index
            declared = format_param_index(symbol.declaration)
            return declared if declared >= 0 else 0
        if symbol.name in self._builtin:
            return self._builtin[symbol.name]
        return self._inferred.get(symbol.key, NOT_FORMAT)

    def add_wrapper(self, symbol: Symbol, index: int) -> None:
        self._inferred[symbol.key] = index

    # ── wrapper inference ────────────────────────────────────────────

    def infer_wrappers(self, cfg: Any) -> List[Symbol]:
        """
        Recognise functions of this unit that forward their format
        parameter into a format-consuming call.

        Repeats until nothing changes, so a wrapper of a wrapper is found
        regardless of definition order.  Returns the new wrappers.
        """
        candidates = []
        for scope in getattr(cfg, "scopes", None) or []:
            if getattr(scope, "type", "") != "Function":
                continue
            func = getattr(scope, "function", None)
            index = format_param_index(func)
            if index < 0:
                continue
            sym = symbol_for_function(func)
            if self.fmtarg(sym) >= 0:
                continue
            param = function_arguments(func)[index]
            candidates.append((scope, sym, index, param))

        found: List[Symbol] = []
        changed = True
        while changed:
            changed = False
            for scope, sym, index, param in candidates:
                if sym.key in self._inferred:
                    continue
                if self._forwards(scope, param):
                    self.add_wrapper(sym, index)
                    found.append(sym)
                    changed = True
                    logger.debug("inferred printf wrapper %s (format arg %d)", sym.name, index)
        return found

    def _forwards(self, scope: Any, param: Any) -> bool:
        for tok in iter_tokens_in_scope(scope):
            if not is_function_call(tok):
                continue
            index = self.fmtarg(callee_symbol(tok))
            if index < 0:
                continue
            args = get_call_arguments(tok)
            if index >= len(args):
                continue
            arg = args[index]
            if is_identifier(arg) and _same_variable(tok_variable(arg), param):
                return True
        return False


def _same_variable(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return False
    if a is b:
        return True
    a_id = getattr(a, "Id", None)
    return a_id is not None and a_id == getattr(b, "Id", None)


def parameter_symbols(func: Any) -> List[Symbol]:
    """Symbols of a function's named parameters, in order."""
    return [symbol_for_variable(v) for v in function_arguments(func)]
