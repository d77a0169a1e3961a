# tests/conftest.py
"""
Light-weight stand-ins for the objects ``cppcheckdata`` builds from a dump,
plus :class:`CUnit`, a builder that lays out a C token stream and wires
its AST the way Cppcheck does:

  * a call is ``(`` with astOperand1 = callee, astOperand2 = argument
    (or a left-leaning ``,`` tree of arguments)
  * grouping parentheses are plain tokens outside the AST
  * a C cast is ``(`` with ``isCast`` and astOperand1 = operand
  * ``a->b`` is a ``.`` token whose originalName is ``->``
  * a leading ``::`` is unary: ``::printf`` has astOperand1 = ``printf``

Expressions are described with the small node classes below and emitted
in source order, one statement per line.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest


# ═══════════════════════════════════════════════════════════════════════════
#  MOCK CPPCHECK OBJECTS
# ═══════════════════════════════════════════════════════════════════════════

_TOKEN_DEFAULTS: Dict[str, Any] = {
    "str": "",
    "originalName": "",
    "next": None,
    "previous": None,
    "link": None,
    "astParent": None,
    "astOperand1": None,
    "astOperand2": None,
    "file": "test.c",
    "linenr": 1,
    "column": 1,
    "isName": False,
    "isNumber": False,
    "isString": False,
    "isChar": False,
    "isBoolean": False,
    "isOp": False,
    "isCast": False,
    "isAssignmentOp": False,
    "varId": 0,
    "variable": None,
    "function": None,
    "type": None,
    "typeScope": None,
    "valueType": None,
    "values": None,
}


class MockToken:
    """A Cppcheck ``Token``; hashes by identity like the real one."""

    def __init__(self, **kw: Any) -> None:
        for key, value in _TOKEN_DEFAULTS.items():
            setattr(self, key, value)
        for key, value in kw.items():
            setattr(self, key, value)

    def __repr__(self) -> str:
        return f"<MockToken {self.str!r} {self.linenr}:{self.column}>"


class MockValueType:
    def __init__(self, pointer: int = 0, constness: int = 0,
                 originalTypeName: str = "", type: str = "char") -> None:
        self.pointer = pointer
        self.constness = constness
        self.originalTypeName = originalTypeName
        self.type = type


class MockValue:
    def __init__(self, intvalue: Optional[int] = None, valueKind: str = "known") -> None:
        self.intvalue = intvalue
        self.valueKind = valueKind


_ids = itertools.count(100)


class MockVariable:
    def __init__(self, nameToken: Any = None, **kw: Any) -> None:
        self.Id = str(next(_ids))
        self.nameToken = nameToken
        self.typeStartToken = None
        self.typeEndToken = None
        self.isArgument = False
        self.isArray = False
        self.isPointer = False
        self.isConst = False
        self.isGlobal = False
        self.isLocal = False
        for key, value in kw.items():
            setattr(self, key, value)


class MockFunction:
    def __init__(self, name: str = "", tokenDef: Any = None, **kw: Any) -> None:
        self.Id = str(next(_ids))
        self.name = name
        self.tokenDef = tokenDef
        self.argument: Dict[int, MockVariable] = {}
        self.type = "Function"
        for key, value in kw.items():
            setattr(self, key, value)


class MockScope:
    def __init__(self, type: str = "Function", **kw: Any) -> None:
        self.Id = str(next(_ids))
        self.type = type
        self.bodyStart = None
        self.bodyEnd = None
        self.function = None
        self.className = ""
        for key, value in kw.items():
            setattr(self, key, value)


class MockSuppression:
    def __init__(self, errorId: str, fileName: str = "", lineNumber: Any = None) -> None:
        self.errorId = errorId
        self.fileName = fileName
        self.lineNumber = lineNumber


class MockConfiguration:
    def __init__(self, **kw: Any) -> None:
        self.name = ""
        self.tokenlist: List[MockToken] = []
        self.scopes: List[MockScope] = []
        self.functions: List[MockFunction] = []
        self.variables: List[MockVariable] = []
        self.suppressions: List[MockSuppression] = []
        for key, value in kw.items():
            setattr(self, key, value)


class MockDump:
    def __init__(self, configurations: Sequence[MockConfiguration] = (), **kw: Any) -> None:
        self.configurations = list(configurations)
        self.suppressions: List[MockSuppression] = []
        for key, value in kw.items():
            setattr(self, key, value)


def make_token_chain(specs: Sequence[Dict[str, Any]]) -> List[MockToken]:
    """Tokens from attribute dicts, linked through next/previous."""
    tokens = [MockToken(**spec) for spec in specs]
    for a, b in zip(tokens, tokens[1:]):
        a.next = b
        b.previous = a
    return tokens


# ═══════════════════════════════════════════════════════════════════════════
#  C EXPRESSION NODES
# ═══════════════════════════════════════════════════════════════════════════

class Node:
    pass


@dataclass
class Ref(Node):
    """A use of a declared variable."""
    var: MockVariable


@dataclass
class Name(Node):
    """A bare name token; ``attrs`` go straight onto the token."""
    text: str
    attrs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Str(Node):
    text: str


@dataclass
class Num(Node):
    text: str


@dataclass
class Bool(Node):
    text: str


@dataclass
class Bin(Node):
    op: str
    lhs: Node
    rhs: Node


@dataclass
class Paren(Node):
    inner: Node


class Call(Node):
    """``callee`` is a Node, a MockFunction, or a plain name."""

    def __init__(self, callee: Any, *args: Node) -> None:
        self.callee = callee
        self.args: Tuple[Node, ...] = args

    def __repr__(self) -> str:
        return f"Call({self.callee!r}, {', '.join(map(repr, self.args))})"


@dataclass
class KeywordCast(Node):
    """``static_cast<T>(x)`` and friends."""
    keyword: str
    type_words: Tuple[str, ...]
    operand: Node


@dataclass
class Index(Node):
    container: Node
    key: Node


@dataclass
class Member(Node):
    obj: Optional[Node]
    name: str
    op: str = "."
    attrs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Cast(Node):
    type_words: Tuple[str, ...]
    operand: Node


@dataclass
class Unary(Node):
    op: str
    operand: Node
    postfix: bool = False


@dataclass
class Assign(Node):
    target: Node
    value: Node
    op: str = "="


@dataclass
class Cond(Node):
    cond: Node
    then: Node
    other: Node


# ═══════════════════════════════════════════════════════════════════════════
#  TOKEN-STREAM BUILDER
# ═══════════════════════════════════════════════════════════════════════════

def _set_ast(parent: MockToken, op1: Optional[MockToken], op2: Optional[MockToken] = None) -> None:
    parent.astOperand1 = op1
    parent.astOperand2 = op2
    if op1 is not None:
        op1.astParent = parent
    if op2 is not None:
        op2.astParent = parent


class CUnit:
    """
    Builds one configuration's token list.

    >>> u = CUnit()
    >>> fn, params = u.begin_function("wrap", [u.param("format")], variadic=True)
    >>> u.stmt(Call("vprintf", Ref(params[0]), Ref(ap)))
    >>> u.end_function()
    >>> cfg = u.configuration()
    """

    def __init__(self, file: str = "test.c") -> None:
        self.file = file
        self.tokens: List[MockToken] = []
        self.scopes: List[MockScope] = []
        self.functions: List[MockFunction] = []
        self.variables: List[MockVariable] = []
        self.suppressions: List[MockSuppression] = []
        self.line = 1
        self.column = 1
        self._open: Optional[MockScope] = None
        self._pending: List[MockToken] = []

    # ── raw tokens ───────────────────────────────────────────────────

    def tok(self, text: str, **attrs: Any) -> MockToken:
        t = MockToken(str=text, file=self.file, linenr=self.line, column=self.column, **attrs)
        if self.tokens:
            self.tokens[-1].next = t
            t.previous = self.tokens[-1]
        self.tokens.append(t)
        self.column += len(text) + 1
        return t

    def newline(self) -> None:
        self.line += 1
        self.column = 1

    def _open_bracket(self, text: str, **attrs: Any) -> MockToken:
        t = self.tok(text, **attrs)
        self._pending.append(t)
        return t

    def _close_bracket(self, text: str) -> MockToken:
        opener = self._pending.pop()
        t = self.tok(text)
        opener.link = t
        t.link = opener
        return t

    # ── declarations ─────────────────────────────────────────────────

    def _declare_tokens(
        self,
        name: str,
        type_words: Sequence[str],
        pointer: int,
        constness: int,
        **var_attrs: Any,
    ) -> MockVariable:
        start = end = None
        for word in type_words:
            t = self.tok(word, isName=word.isidentifier())
            start = start or t
            end = t
        var = MockVariable(**var_attrs)
        name_tok = self.tok(
            name, isName=True, varId=int(var.Id),
            valueType=MockValueType(pointer=pointer, constness=constness),
        )
        name_tok.variable = var
        var.nameToken = name_tok
        var.typeStartToken = start
        var.typeEndToken = end
        var.isPointer = pointer > 0 and not var_attrs.get("isArray", False)
        self.variables.append(var)
        return var

    def param(
        self,
        name: str,
        type_words: Sequence[str] = ("const", "char", "*"),
        pointer: int = 1,
        constness: int = 1,
    ) -> Dict[str, Any]:
        """Parameter description for :meth:`begin_function`."""
        return {"name": name, "type_words": tuple(type_words),
                "pointer": pointer, "constness": constness}

    def va_list_param(self, name: str = "ap") -> Dict[str, Any]:
        return {"name": name, "type_words": ("va_list",), "pointer": 0,
                "constness": 0, "originalTypeName": "va_list"}

    def array_param(self, name: str) -> Dict[str, Any]:
        return {"name": name, "type_words": ("int",), "pointer": 0,
                "constness": 0, "array": True}

    def begin_function(
        self,
        name: str,
        params: Sequence[Dict[str, Any]] = (),
        variadic: bool = False,
    ) -> Tuple[MockFunction, List[MockVariable]]:
        self.tok("void", isName=True)
        name_tok = self.tok(name, isName=True)
        func = MockFunction(name=name, tokenDef=name_tok)
        name_tok.function = func
        self._open_bracket("(")
        variables: List[MockVariable] = []
        for i, spec in enumerate(params):
            if i:
                self.tok(",")
            var = self._declare_tokens(
                spec["name"], spec["type_words"], spec["pointer"], spec["constness"],
                isArgument=True, isConst=False,
            )
            if spec.get("originalTypeName"):
                var.nameToken.valueType.originalTypeName = spec["originalTypeName"]
            if spec.get("array"):
                self._open_bracket("[")
                self._close_bracket("]")
                var.isArray = True
                var.isPointer = True
            func.argument[i + 1] = var
            variables.append(var)
        if variadic:
            if params:
                self.tok(",")
            self.tok("...")
        self._close_bracket(")")
        self.newline()
        scope = MockScope(type="Function", function=func, className=name)
        scope.bodyStart = self._open_bracket("{")
        self.newline()
        self.scopes.append(scope)
        self.functions.append(func)
        self._open = scope
        return func, variables

    def end_function(self) -> MockScope:
        scope = self._open
        assert scope is not None
        scope.bodyEnd = self._close_bracket("}")
        self.newline()
        self._open = None
        return scope

    def declare(
        self,
        name: str,
        type_words: Sequence[str] = ("char", "*"),
        pointer: int = 1,
        constness: int = 0,
        array: bool = False,
        init: Optional[Node] = None,
        **var_attrs: Any,
    ) -> MockVariable:
        """
        ``char *name = init;`` (or ``type name[] = init;`` with ``array``).

        ``constness`` is Cppcheck's bit mask: bit 0 the pointed-to data,
        bit n the n-th pointer level.
        """
        var = self._declare_tokens(
            name, type_words, pointer, constness,
            isArray=array, isConst=bool(constness & 1) and not pointer,
            isLocal=self._open is not None, isGlobal=self._open is None,
            **var_attrs,
        )
        if array:
            self._open_bracket("[")
            self._close_bracket("]")
        if init is not None:
            eq = self.tok("=", isOp=True, isAssignmentOp=True)
            _set_ast(eq, var.nameToken, self.emit(init))
        self.tok(";")
        self.newline()
        return var

    def const_string(self, name: str, text: str = '"%d\\n"') -> MockVariable:
        """``static const char NAME[] = "...";``"""
        return self.declare(name, ("static", "const", "char"), pointer=1,
                            constness=1, array=True, init=Str(text))

    def const_pointer(self, name: str, text: str = '"%s\\n"') -> MockVariable:
        """``const char *const NAME = "...";``"""
        return self.declare(name, ("const", "char", "*", "const"), pointer=1,
                            constness=3, init=Str(text))

    def string_var(self, name: str, init: Optional[Node] = None) -> MockVariable:
        """``const char *name`` that can be re-pointed."""
        return self.declare(name, ("const", "char", "*"), pointer=1,
                            constness=1, init=init)

    def va_list(self, name: str = "ap") -> MockVariable:
        var = self.declare(name, ("va_list",), pointer=0, constness=0)
        var.nameToken.valueType.originalTypeName = "va_list"
        return var

    # ── statements and expressions ───────────────────────────────────

    def stmt(self, node: Node) -> MockToken:
        root = self.emit(node)
        self.tok(";")
        self.newline()
        return root

    def emit(self, node: Node) -> MockToken:
        """Append the tokens of ``node``; return its AST root."""
        if isinstance(node, Ref):
            t = self.tok(node.var.nameToken.str, isName=True,
                         varId=node.var.nameToken.varId,
                         valueType=node.var.nameToken.valueType)
            t.variable = node.var
            return t
        if isinstance(node, Name):
            return self.tok(node.text, isName=True, **node.attrs)
        if isinstance(node, Str):
            return self.tok(node.text, isString=True)
        if isinstance(node, Num):
            return self.tok(node.text, isNumber=True)
        if isinstance(node, Bool):
            return self.tok(node.text, isName=True, isBoolean=True)
        if isinstance(node, Bin):
            lhs = self.emit(node.lhs)
            op = self.tok(node.op, isOp=True)
            _set_ast(op, lhs, self.emit(node.rhs))
            return op
        if isinstance(node, Paren):
            self._open_bracket("(")
            root = self.emit(node.inner)
            self._close_bracket(")")
            return root
        if isinstance(node, Call):
            callee = self._emit_callee(node.callee)
            paren = self._open_bracket("(")
            _set_ast(paren, callee, self._emit_args(node.args))
            self._close_bracket(")")
            return paren
        if isinstance(node, KeywordCast):
            kw = self.tok(node.keyword, isName=True)
            self._open_bracket("<")
            for word in node.type_words:
                self.tok(word, isName=word.isidentifier())
            self._close_bracket(">")
            paren = self._open_bracket("(")
            _set_ast(paren, kw, self.emit(node.operand))
            self._close_bracket(")")
            return paren
        if isinstance(node, Index):
            container = self.emit(node.container)
            bracket = self._open_bracket("[")
            _set_ast(bracket, container, self.emit(node.key))
            self._close_bracket("]")
            return bracket
        if isinstance(node, Member):
            obj = self.emit(node.obj) if node.obj is not None else None
            if node.op == "->":
                dot = self.tok(".", isOp=True, originalName="->")
            else:
                dot = self.tok(node.op, isOp=True)
            member = self.tok(node.name, isName=True, **node.attrs)
            if obj is None:
                # leading ``::`` is unary
                _set_ast(dot, member)
            else:
                _set_ast(dot, obj, member)
            return dot
        if isinstance(node, Cast):
            paren = self._open_bracket("(", isCast=True)
            for word in node.type_words:
                self.tok(word, isName=word.isidentifier())
            self._close_bracket(")")
            _set_ast(paren, self.emit(node.operand))
            return paren
        if isinstance(node, Unary):
            if node.postfix:
                operand = self.emit(node.operand)
                op = self.tok(node.op, isOp=True)
            else:
                op = self.tok(node.op, isOp=True)
                operand = self.emit(node.operand)
            _set_ast(op, operand)
            return op
        if isinstance(node, Assign):
            target = self.emit(node.target)
            op = self.tok(node.op, isOp=True, isAssignmentOp=True)
            _set_ast(op, target, self.emit(node.value))
            return op
        if isinstance(node, Cond):
            cond = self.emit(node.cond)
            q = self.tok("?", isOp=True)
            then = self.emit(node.then)
            colon = self.tok(":", isOp=True)
            _set_ast(colon, then, self.emit(node.other))
            _set_ast(q, cond, colon)
            return q
        raise TypeError(f"cannot emit {node!r}")

    def _emit_callee(self, callee: Any) -> MockToken:
        if isinstance(callee, MockFunction):
            return self.tok(callee.name, isName=True, function=callee)
        if isinstance(callee, str):
            return self.tok(callee, isName=True)
        return self.emit(callee)

    def _emit_args(self, args: Sequence[Node]) -> Optional[MockToken]:
        root: Optional[MockToken] = None
        for i, arg in enumerate(args):
            if i == 0:
                root = self.emit(arg)
                continue
            comma = self.tok(",", isOp=True)
            _set_ast(comma, root, self.emit(arg))
            root = comma
        return root

    # ── result ───────────────────────────────────────────────────────

    def suppress(self, error_id: str, line: Optional[int] = None) -> None:
        """``// cppcheck-suppress error_id`` above the given line."""
        self.suppressions.append(
            MockSuppression(error_id, self.file, str(line if line is not None else self.line))
        )

    def configuration(self, name: str = "") -> MockConfiguration:
        return MockConfiguration(
            name=name,
            tokenlist=list(self.tokens),
            scopes=list(self.scopes),
            functions=list(self.functions),
            variables=list(self.variables),
            suppressions=list(self.suppressions),
        )


@pytest.fixture
def unit() -> CUnit:
    return CUnit()
