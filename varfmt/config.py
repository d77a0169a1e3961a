"""
varfmt/config.py
════════════════

Checker settings.

Defaults are overridden by an S-expression file, which is overridden by
command-line flags::

    (varfmt
      (no-args #t)                 ; skip calls with nothing to format
      (funcs log_msg (die 1))      ; extra printf-like functions
      (infer-wrappers #t)
      (suppress "legacy/*" "variableFormat"))

A bare name in ``funcs`` takes its format index from the function's
declaration when the unit defines it, else 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import sexpdata
from sexpdata import Symbol

from varfmt.errors import VarFmtConfigError

logger = logging.getLogger(__name__)

_TRUE = frozenset({"#t", "t", "true", "yes", "on"})
_FALSE = frozenset({"#f", "nil", "false", "no", "off"})


@dataclass
class VarFmtConfig:
    suppress_no_args: bool = False
    funcs: Dict[str, Optional[int]] = field(default_factory=dict)
    infer_wrappers: bool = True
    suppress: List[str] = field(default_factory=list)

    def merged(
        self,
        suppress_no_args: Optional[bool] = None,
        funcs: Optional[Dict[str, Optional[int]]] = None,
        infer_wrappers: Optional[bool] = None,
        suppress: Iterable[str] = (),
    ) -> "VarFmtConfig":
        """A copy with the given settings layered on top."""
        merged_funcs = dict(self.funcs)
        merged_funcs.update(funcs or {})
        return VarFmtConfig(
            suppress_no_args=self.suppress_no_args if suppress_no_args is None else suppress_no_args,
            funcs=merged_funcs,
            infer_wrappers=self.infer_wrappers if infer_wrappers is None else infer_wrappers,
            suppress=list(self.suppress) + [s for s in suppress if s not in self.suppress],
        )


# ═══════════════════════════════════════════════════════════════════════════
#  COMMAND-LINE SYNTAX
# ═══════════════════════════════════════════════════════════════════════════

def parse_func_spec(spec: str) -> Tuple[str, Optional[int]]:
    """``"die:1"`` → ``("die", 1)``; ``"log_msg"`` → ``("log_msg", None)``."""
    name, sep, index = spec.strip().partition(":")
    name = name.strip()
    if not name or not (name[0].isalpha() or name[0] == "_"):
        raise VarFmtConfigError(f"invalid function name in {spec!r}")
    if not sep:
        return name, None
    try:
        value = int(index)
    except ValueError:
        raise VarFmtConfigError(f"invalid format index in {spec!r}") from None
    if value < 0:
        raise VarFmtConfigError(f"negative format index in {spec!r}")
    return name, value


def parse_funcs(text: str) -> Dict[str, Optional[int]]:
    """Comma-separated list as accepted by ``--funcs``."""
    return dict(parse_func_spec(part) for part in text.split(",") if part.strip())


# ═══════════════════════════════════════════════════════════════════════════
#  S-EXPRESSION FILE
# ═══════════════════════════════════════════════════════════════════════════

def _atom_name(x: Any) -> Optional[str]:
    if isinstance(x, Symbol):
        return x.value()
    return None


def _as_bool(x: Any, key: str) -> bool:
    if isinstance(x, bool):
        return x
    name = _atom_name(x)
    if name is not None and name.lower() in _TRUE:
        return True
    if name is not None and name.lower() in _FALSE:
        return False
    raise VarFmtConfigError(f"({key} ...) expects #t or #f, got {x!r}")


def _as_func(x: Any) -> Tuple[str, Optional[int]]:
    if isinstance(x, (Symbol, str)):
        return parse_func_spec(_atom_name(x) or x)
    if isinstance(x, list) and len(x) == 2 and isinstance(x[1], int) and not isinstance(x[1], bool):
        name = _atom_name(x[0])
        if name is None and isinstance(x[0], str):
            name = x[0]
        if name is not None:
            func, index = parse_func_spec(name)
            if index is not None:
                raise VarFmtConfigError(f"index given twice for {name!r}")
            if x[1] < 0:
                raise VarFmtConfigError(f"negative format index for {name!r}")
            return func, x[1]
    raise VarFmtConfigError(f"malformed funcs entry {x!r}")


def _as_pattern(x: Any) -> str:
    if isinstance(x, str) and not isinstance(x, Symbol):
        return x
    name = _atom_name(x)
    if name is not None:
        return name
    raise VarFmtConfigError(f"malformed suppress entry {x!r}")


def parse_config(text: str, source: Optional[str] = None) -> VarFmtConfig:
    """Parse the ``(varfmt ...)`` form."""
    try:
        raw = sexpdata.loads(text, nil=None, true=None, false=None)
    except Exception as exc:
        raise VarFmtConfigError(f"S-expression syntax error: {exc}", source) from exc

    if not isinstance(raw, list) or not raw or _atom_name(raw[0]) != "varfmt":
        raise VarFmtConfigError("expected a (varfmt ...) form", source)

    config = VarFmtConfig()
    try:
        for entry in raw[1:]:
            if not isinstance(entry, list) or not entry or _atom_name(entry[0]) is None:
                raise VarFmtConfigError(f"malformed entry {entry!r}")
            key = _atom_name(entry[0])
            values = entry[1:]
            if key == "no-args":
                config.suppress_no_args = _as_bool(_single(values, key), key)
            elif key == "infer-wrappers":
                config.infer_wrappers = _as_bool(_single(values, key), key)
            elif key == "funcs":
                config.funcs.update(_as_func(v) for v in values)
            elif key == "suppress":
                config.suppress.extend(_as_pattern(v) for v in values)
            else:
                raise VarFmtConfigError(f"unknown setting {key!r}")
    except VarFmtConfigError as exc:
        if exc.source is None and source is not None:
            raise VarFmtConfigError(exc.message, source) from None
        raise
    return config


def _single(values: List[Any], key: str) -> Any:
    if len(values) != 1:
        raise VarFmtConfigError(f"({key} ...) takes exactly one value")
    return values[0]


def load_config(path: str) -> VarFmtConfig:
    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise VarFmtConfigError(f"cannot read config: {exc.strerror}", str(p)) from exc
    logger.info("Loaded configuration from %s", p)
    return parse_config(text, str(p))
