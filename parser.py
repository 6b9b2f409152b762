import logging
from collections.abc import Iterator

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedInput, VisitError

from expr import Application, Bind, Boolean, Entry, Eval, Expr, If, Lambda, Let, Number, Var

logger = logging.getLogger(__name__)

GRAMMAR = r"""
start: (entry (_NL entry)*)?

?entry: "let" NAME "=" expr       -> bind
      | expr                      -> eval

?expr: "let" NAME "=" expr "in" expr     -> let
     | "\\" NAME "." expr                -> lambda_
     | "if" expr "then" expr "else" expr -> if_
     | app

?app: atom
    | app atom                    -> application

?atom: NUMBER                     -> number
     | "true"                     -> true
     | "false"                    -> false
     | NAME                       -> var
     | "(" expr ")"

NAME: /[a-zA-Z][a-zA-Z0-9]*/
NUMBER: /[0-9]+/
COMMENT: /--[^\n]*/
_NL: /(\r?\n[\t ]*)+/

%import common.WS_INLINE
%ignore WS_INLINE
%ignore COMMENT
"""

class ParseError(Exception):
    """Raised when source text does not match the grammar."""

    def __init__(self, message: str, line: int, column: int):
        super().__init__(f"{line}:{column}: {message}")
        self.message = message
        self.line = line
        self.column = column

class EntryBreaks:
    """Keep a line break only where it ends a top-level entry.

    Breaks inside parentheses, and breaks followed by a line indented deeper
    than the line the entry started on, continue the current entry.
    """

    always_accept = ("_NL",)

    def process(self, stream: Iterator[Token]) -> Iterator[Token]:
        depth = 0
        indent: int | None = None
        pending: Token | None = None
        for token in stream:
            if token.type == "_NL":
                if depth == 0 and indent is not None:
                    pending = token
                continue
            if pending is not None:
                if token.column - 1 <= indent:
                    yield pending
                    indent = None
                pending = None
            if indent is None:
                indent = token.column - 1
            if token.type == "LPAR":
                depth += 1
            elif token.type == "RPAR" and depth:
                depth -= 1
            yield token

@v_args(inline=True)
class ToAst(Transformer):
    def start(self, *entries: Entry) -> list[Entry]:
        return list(entries)

    def bind(self, name: Token, expr: Expr) -> Bind:
        return Bind(name.value, expr)

    def eval(self, expr: Expr) -> Eval:
        return Eval(expr)

    def let(self, name: Token, bound: Expr, body: Expr) -> Let:
        return Let(name.value, bound, body)

    def lambda_(self, name: Token, body: Expr) -> Lambda:
        return Lambda(name.value, body)

    def if_(self, cond: Expr, cons: Expr, alt: Expr) -> If:
        return If(cond, cons, alt)

    def application(self, fn: Expr, arg: Expr) -> Application:
        return Application(fn, arg)

    def number(self, token: Token) -> Number:
        return Number(float(int(token.value)))

    def true(self) -> Boolean:
        return Boolean(True)

    def false(self) -> Boolean:
        return Boolean(False)

    def var(self, name: Token) -> Var:
        return Var(name.value)

parser = Lark(GRAMMAR, parser="lalr", postlex=EntryBreaks())

def parse(text: str) -> list[Entry]:
    """Parse a whole program into top-level entries."""
    try:
        tree = parser.parse(text)
    except UnexpectedInput as e:
        raise ParseError(str(e).strip().splitlines()[0], e.line, e.column) from e
    try:
        entries = ToAst().transform(tree)
    except VisitError as e:
        raise e.orig_exc from e
    logger.debug("parsed %d top-level entries", len(entries))
    return entries

def parse_expr(text: str) -> Expr:
    """Parse text holding exactly one expression."""
    entries = parse(text)
    if len(entries) != 1 or not isinstance(entries[0], Eval):
        raise ParseError(f"expected a single expression, got {len(entries)} entries", 1, 1)
    return entries[0].expr
