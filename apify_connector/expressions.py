"""Sandboxed formula language for state-mapping updates.

Formulas come straight from request payloads, so they are never handed to
`eval`. Instead a small regex tokenizer and recursive-descent parser build an
expression tree that is interpreted against a whitelist of names:

    start_date                      bound variable: the run's start timestamp
    format_date(ts, "%Y-%m-%d")     timestamp -> string (strftime pattern)
    sub_days(ts, 7)                 timestamp -> timestamp, N days earlier

Supported syntax: string literals ("..." or '...', backslash escapes), integer
literals, unary minus, parentheses, `+` (string concatenation or integer
addition), function calls and method-call sugar where the receiver becomes the
first argument, e.g. `start_date.sub_days(1).format_date("%Y-%m-%d")`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import ExpressionError


TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<number>\d+)
    |(?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    |(?P<name>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<op>[(),.+\-;])
    """,
    flags=re.VERBOSE,
)

ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}

MAX_SOURCE_LEN = 1024


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    pos: int


def _unescape(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(r"\\(.)", lambda m: ESCAPES.get(m.group(1), m.group(1)), body)


def tokenize(source: str) -> List[Token]:
    """Split a formula into tokens, rejecting anything outside the grammar."""
    if len(source) > MAX_SOURCE_LEN:
        raise ExpressionError(f"expression longer than {MAX_SOURCE_LEN} characters")

    tokens: List[Token] = []
    pos = 0
    while pos < len(source):
        m = TOKEN_RE.match(source, pos)
        if m is None:
            raise ExpressionError(f"unexpected character {source[pos]!r} at position {pos}")
        kind = m.lastgroup or ""
        if kind != "ws":
            tokens.append(Token(kind, m.group(), pos))
        pos = m.end()
    return tokens


# ---------------------------------------------------------------------------
# Expression tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class Call:
    func: str
    args: Tuple[Any, ...]


@dataclass(frozen=True)
class Add:
    left: Any
    right: Any


@dataclass(frozen=True)
class Negate:
    operand: Any


class _Parser:
    def __init__(self, tokens: List[Token]) -> None:
        self._tokens = tokens
        self._i = 0

    def _peek(self) -> Optional[Token]:
        return self._tokens[self._i] if self._i < len(self._tokens) else None

    def _next(self) -> Token:
        tok = self._peek()
        if tok is None:
            raise ExpressionError("unexpected end of expression")
        self._i += 1
        return tok

    def _accept(self, value: str) -> bool:
        tok = self._peek()
        if tok is not None and tok.kind == "op" and tok.value == value:
            self._i += 1
            return True
        return False

    def _expect(self, value: str) -> None:
        tok = self._next()
        if tok.kind != "op" or tok.value != value:
            raise ExpressionError(f"expected {value!r} at position {tok.pos}, found {tok.value!r}")

    def parse(self) -> Any:
        node = self._sum()
        # A single trailing statement terminator is tolerated.
        self._accept(";")
        tok = self._peek()
        if tok is not None:
            raise ExpressionError(f"unexpected {tok.value!r} at position {tok.pos}")
        return node

    def _sum(self) -> Any:
        node = self._unary()
        while self._accept("+"):
            node = Add(node, self._unary())
        return node

    def _unary(self) -> Any:
        if self._accept("-"):
            return Negate(self._unary())
        return self._postfix()

    def _postfix(self) -> Any:
        node = self._primary()
        while self._accept("."):
            tok = self._next()
            if tok.kind != "name":
                raise ExpressionError(f"expected method name at position {tok.pos}")
            self._expect("(")
            node = Call(tok.value, (node,) + self._args())
        return node

    def _args(self) -> Tuple[Any, ...]:
        args: List[Any] = []
        if self._accept(")"):
            return ()
        while True:
            args.append(self._sum())
            if self._accept(")"):
                return tuple(args)
            self._expect(",")

    def _primary(self) -> Any:
        tok = self._next()
        if tok.kind == "number":
            return Literal(int(tok.value))
        if tok.kind == "string":
            return Literal(_unescape(tok.value))
        if tok.kind == "name":
            if self._accept("("):
                return Call(tok.value, self._args())
            return Name(tok.value)
        if tok.kind == "op" and tok.value == "(":
            node = self._sum()
            self._expect(")")
            return node
        raise ExpressionError(f"unexpected {tok.value!r} at position {tok.pos}")


def parse(source: str) -> Any:
    """Parse a formula into an expression tree."""
    tokens = tokenize(source)
    if not tokens:
        raise ExpressionError("empty expression")
    return _Parser(tokens).parse()


# ---------------------------------------------------------------------------
# Host functions
# ---------------------------------------------------------------------------


def format_date(ts: datetime, pattern: str) -> str:
    return ts.strftime(pattern)


def sub_days(ts: datetime, days: int) -> datetime:
    return ts - timedelta(days=days)


# name -> (callable, expected argument types)
HostFunction = Tuple[Callable[..., Any], Tuple[type, ...]]

DEFAULT_FUNCTIONS: Dict[str, HostFunction] = {
    "format_date": (format_date, (datetime, str)),
    "sub_days": (sub_days, (datetime, int)),
}


def _type_name(value: Any) -> str:
    if isinstance(value, datetime):
        return "timestamp"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


class Evaluator:
    """Interprets expression trees against a fixed set of variables and functions.

    One evaluator is created per run; it holds no state besides its bindings.
    """

    def __init__(
        self,
        variables: Dict[str, Any],
        functions: Optional[Dict[str, HostFunction]] = None,
    ) -> None:
        self._variables = dict(variables)
        self._functions = dict(DEFAULT_FUNCTIONS if functions is None else functions)

    def evaluate(self, source: str) -> Any:
        return self._eval(parse(source))

    def evaluate_string(self, source: str) -> str:
        """Evaluate `source` and require a string result."""
        value = self.evaluate(source)
        if not isinstance(value, str):
            raise ExpressionError(f"expression must evaluate to a string, got {_type_name(value)}")
        return value

    def _eval(self, node: Any) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Name):
            if node.name not in self._variables:
                raise ExpressionError(f"unknown variable '{node.name}'")
            return self._variables[node.name]
        if isinstance(node, Negate):
            value = self._eval(node.operand)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ExpressionError(f"cannot negate {_type_name(value)}")
            return -value
        if isinstance(node, Add):
            return self._add(self._eval(node.left), self._eval(node.right))
        if isinstance(node, Call):
            return self._call(node.func, [self._eval(arg) for arg in node.args])
        raise ExpressionError(f"unsupported expression node {type(node).__name__}")

    @staticmethod
    def _add(left: Any, right: Any) -> Any:
        if isinstance(left, str) and isinstance(right, (str, int)) and not isinstance(right, bool):
            return left + str(right)
        if isinstance(right, str) and isinstance(left, int) and not isinstance(left, bool):
            return str(left) + right
        if type(left) is int and type(right) is int:
            return left + right
        raise ExpressionError(f"cannot add {_type_name(left)} and {_type_name(right)}")

    def _call(self, name: str, args: List[Any]) -> Any:
        if name not in self._functions:
            raise ExpressionError(f"unknown function '{name}'")
        func, signature = self._functions[name]
        if len(args) != len(signature) or not all(
            isinstance(a, t) and not (t is int and isinstance(a, bool)) for a, t in zip(args, signature)
        ):
            got = ", ".join(_type_name(a) for a in args)
            want = ", ".join(t.__name__ for t in signature)
            raise ExpressionError(f"{name}({got}) does not match {name}({want})")
        try:
            return func(*args)
        except (ValueError, OverflowError) as exc:
            raise ExpressionError(f"{name} failed: {exc}") from exc
