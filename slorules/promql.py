"""A small PromQL syntax checker and label validity checks."""

from __future__ import annotations

import re
from typing import Union

_LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<comment>\#[^\n]*)
    |(?P<duration>(?:\d+(?:ms|[smhdwy]))+)(?![A-Za-z0-9_:])
    |(?P<number>0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*'|`[^`]*`)
    |(?P<ident>[A-Za-z_:][A-Za-z0-9_:]*)
    |(?P<op>==|!=|=~|!~|<=|>=|[-+*/%^<>=(){}\[\],@:])
    """,
    re.X,
)

_AGGREGATORS = {
    "sum", "avg", "count", "min", "max", "group", "stddev", "stdvar",
    "topk", "bottomk", "count_values", "quantile",
}
_PRECEDENCE = {
    "or": 1, "and": 2, "unless": 2,
    "==": 3, "!=": 3, "<": 3, "<=": 3, ">": 3, ">=": 3,
    "+": 4, "-": 4, "*": 5, "/": 5, "%": 5, "atan2": 5, "^": 6,
}
_RESERVED = {"and", "or", "unless", "atan2", "by", "without", "on", "ignoring",
             "group_left", "group_right", "bool", "offset"}
_MATCH_OPS = {"=", "!=", "=~", "!~"}


class _ParseError(Exception):
    pass


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if not match:
            raise _ParseError(f"unexpected character at {pos}")
        kind = match.lastgroup or ""
        if kind not in ("ws", "comment"):
            tokens.append((kind, match.group()))
        pos = match.end()
    tokens.append(("eof", ""))
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self.tokens = _tokenize(text)
        self.pos = 0

    def peek(self, offset: int = 0) -> tuple[str, str]:
        return self.tokens[min(self.pos + offset, len(self.tokens) - 1)]

    def advance(self) -> tuple[str, str]:
        tok = self.peek()
        self.pos += 1
        return tok

    def is_op(self, text: str) -> bool:
        kind, value = self.peek()
        return kind == "op" and value == text

    def is_word(self, *words: str) -> bool:
        kind, value = self.peek()
        return kind == "ident" and value.lower() in words

    def expect_op(self, text: str) -> None:
        if not self.is_op(text):
            raise _ParseError(f"expected {text!r}, got {self.peek()[1]!r}")
        self.advance()

    def expect_kind(self, kind: str) -> str:
        tok_kind, value = self.advance()
        if tok_kind != kind:
            raise _ParseError(f"expected {kind}, got {value!r}")
        return value

    def parse(self) -> None:
        self.expr(1)
        if self.peek()[0] != "eof":
            raise _ParseError(f"unexpected {self.peek()[1]!r}")

    def binop(self) -> str | None:
        kind, value = self.peek()
        if kind == "op" and value in _PRECEDENCE:
            return value
        if kind == "ident" and value.lower() in ("and", "or", "unless", "atan2"):
            return value.lower()
        return None

    def expr(self, min_prec: int) -> None:
        self.unary()
        while True:
            op = self.binop()
            if op is None or _PRECEDENCE[op] < min_prec:
                return
            self.advance()
            if self.is_word("bool"):
                self.advance()
            if self.is_word("on", "ignoring"):
                self.advance()
                self.label_list()
                if self.is_word("group_left", "group_right"):
                    self.advance()
                    if self.is_op("("):
                        self.label_list()
            prec = _PRECEDENCE[op]
            self.expr(prec if op == "^" else prec + 1)

    def label_list(self) -> None:
        self.expect_op("(")
        while not self.is_op(")"):
            self.expect_kind("ident")
            if self.is_op(","):
                self.advance()
            elif not self.is_op(")"):
                raise _ParseError("expected ',' or ')' in label list")
        self.advance()

    def unary(self) -> None:
        if self.is_op("+") or self.is_op("-"):
            self.advance()
            self.unary()
            return
        self.primary()
        self.postfix()

    def postfix(self) -> None:
        while True:
            if self.is_op("["):
                self.advance()
                self.expect_kind("duration")
                if self.is_op(":"):
                    self.advance()
                    if self.peek()[0] == "duration":
                        self.advance()
                self.expect_op("]")
            elif self.is_word("offset"):
                self.advance()
                if self.is_op("-"):
                    self.advance()
                self.expect_kind("duration")
            elif self.is_op("@"):
                self.advance()
                if self.is_word("start", "end"):
                    self.advance()
                    self.expect_op("(")
                    self.expect_op(")")
                else:
                    if self.is_op("-"):
                        self.advance()
                    self.expect_kind("number")
            else:
                return

    def primary(self) -> None:
        kind, value = self.advance()
        if kind in ("number", "string"):
            return
        if kind == "op" and value == "(":
            self.expr(1)
            self.expect_op(")")
            return
        if kind == "op" and value == "{":
            if not self.matchers():
                raise _ParseError("vector selector must contain at least one matcher")
            return
        if kind != "ident":
            raise _ParseError(f"unexpected {value!r}")
        low = value.lower()
        if low in _AGGREGATORS and (self.is_op("(") or self.is_word("by", "without")):
            if self.is_word("by", "without"):
                self.advance()
                self.label_list()
            self.call_args()
            if self.is_word("by", "without"):
                self.advance()
                self.label_list()
            return
        if self.is_op("("):
            if low in _RESERVED:
                raise _ParseError(f"unexpected keyword {value!r}")
            self.call_args()
            return
        if low in ("inf", "nan"):
            return
        if low in _RESERVED:
            raise _ParseError(f"unexpected keyword {value!r}")
        if self.is_op("{"):
            self.advance()
            self.matchers()

    def call_args(self) -> None:
        self.expect_op("(")
        if self.is_op(")"):
            self.advance()
            return
        while True:
            self.expr(1)
            if self.is_op(","):
                self.advance()
                continue
            self.expect_op(")")
            return

    def matchers(self) -> int:
        count = 0
        while not self.is_op("}"):
            self.expect_kind("ident")
            kind, value = self.advance()
            if kind != "op" or value not in _MATCH_OPS:
                raise _ParseError(f"unexpected {value!r} in label matching")
            self.expect_kind("string")
            count += 1
            if self.is_op(","):
                self.advance()
            elif not self.is_op("}"):
                raise _ParseError("expected ',' or '}' in label matching")
        self.advance()
        return count


def is_valid_expression(expr: str) -> bool:
    """Tell whether *expr* is syntactically valid PromQL."""
    try:
        _Parser(expr).parse()
    except _ParseError:
        return False
    return True


def is_valid_label_name(name: str) -> bool:
    """Tell whether *name* is a valid Prometheus label name."""
    return bool(_LABEL_NAME_RE.match(name)) and "\n" not in name


def is_valid_label_value(value: Union[str, bytes]) -> bool:
    """Tell whether *value* is valid UTF-8 text."""
    try:
        if isinstance(value, bytes):
            value.decode("utf-8")
        else:
            value.encode("utf-8")
    except UnicodeError:
        return False
    return True