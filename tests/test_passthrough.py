# tests/test_passthrough.py
"""
Tests for the pass-through format registry.
"""

from varfmt.expr import Symbol, SymbolKind
from varfmt.passthrough import PassThroughRegistry
from varfmt.printers import PrintfClassifier


def fn(name):
    return Symbol(("function", name), name, SymbolKind.FUNCTION)


def param(name):
    return Symbol(("var", name), name, SymbolKind.VARIABLE)


def registry(**funcs):
    return PassThroughRegistry(PrintfClassifier(funcs=funcs))


class TestRegistration:

    def test_wrapper_parameter_is_registered(self):
        reg = registry(log_msg=1)
        level, fmt = param("level"), param("fmt")
        reg.enter(fn("log_msg"), [level, fmt])
        assert reg.is_passthrough(fmt)
        assert level not in reg
        assert len(reg) == 1

    def test_non_wrapper_registers_nothing(self):
        reg = registry()
        reg.enter(fn("helper"), [param("fmt")])
        assert len(reg) == 0

    def test_index_past_parameters(self):
        reg = registry(die=3)
        assert reg.register_if_wrapper(fn("die"), [param("fmt")]) is None
        assert len(reg) == 0

    def test_register_returns_parameter(self):
        reg = registry()
        fmt = param("format")
        assert reg.register_if_wrapper(fn("printf"), [fmt]) == fmt

    def test_none_is_never_passthrough(self):
        assert not registry().is_passthrough(None)


class TestLifetime:

    def test_enter_clears_previous_function(self):
        reg = registry(log_msg=0)
        fmt = param("fmt")
        reg.enter(fn("log_msg"), [fmt])
        reg.enter(fn("other"), [param("x")])
        assert fmt not in reg

    def test_enter_without_function(self):
        reg = registry(log_msg=0)
        reg.enter(fn("log_msg"), [param("fmt")])
        reg.enter()
        assert len(reg) == 0

    def test_exit_clears(self):
        reg = registry(log_msg=0)
        reg.enter(fn("log_msg"), [param("fmt")])
        reg.exit()
        assert len(reg) == 0

    def test_assignment_invalidates(self):
        reg = registry(log_msg=0)
        fmt = param("fmt")
        reg.enter(fn("log_msg"), [fmt])
        reg.invalidate_on_assign([param("other")])
        assert fmt in reg
        reg.invalidate_on_assign([param("fmt")])
        assert fmt not in reg

    def test_invalidation_is_permanent_for_the_body(self):
        reg = registry(log_msg=0)
        fmt = param("fmt")
        reg.enter(fn("log_msg"), [fmt])
        reg.invalidate_on_assign([fmt])
        reg.invalidate_on_assign([fmt])
        assert not reg.is_passthrough(fmt)
