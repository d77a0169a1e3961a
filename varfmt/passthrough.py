"""
varfmt/passthrough.py
═════════════════════

Format parameters that a wrapper forwards untouched.

::

    void log_msg(int level, const char *fmt, ...)
    {
        va_list ap;
        va_start(ap, fmt);
        vfprintf(stderr, fmt, ap);      /* fine: fmt is the caller's format */
        va_end(ap);
    }

While the driver walks ``log_msg`` the registry holds ``fmt``.  An
assignment to ``fmt`` (or ``fmt++``) removes it for the rest of the body.
The registry is emptied whenever a function body starts or ends.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Set

from varfmt.expr import Symbol
from varfmt.printers import PrintfClassifier

logger = logging.getLogger(__name__)


class PassThroughRegistry:

    def __init__(self, classifier: PrintfClassifier) -> None:
        self._classifier = classifier
        self._entries: Set[Symbol] = set()

    def enter(
        self,
        function: Optional[Symbol] = None,
        parameters: Sequence[Symbol] = (),
    ) -> None:
        """Start a function body."""
        self._entries.clear()
        if function is not None:
            self.register_if_wrapper(function, parameters)

    def exit(self) -> None:
        self._entries.clear()

    def register_if_wrapper(
        self, function: Symbol, parameters: Sequence[Symbol]
    ) -> Optional[Symbol]:
        """Register the format parameter of ``function``, if it has one."""
        index = self._classifier.fmtarg(function)
        if index < 0 or index >= len(parameters):
            return None
        param = parameters[index]
        self._entries.add(param)
        logger.debug("%s: %s is a pass-through format", function.name, param.name)
        return param

    def invalidate_on_assign(self, targets: Iterable[Symbol]) -> None:
        for sym in targets:
            if sym in self._entries:
                logger.debug("%s reassigned, no longer a pass-through", sym.name)
                self._entries.discard(sym)

    def is_passthrough(self, symbol: Optional[Symbol]) -> bool:
        return symbol is not None and symbol in self._entries

    __contains__ = is_passthrough

    def __len__(self) -> int:
        return len(self._entries)
