import enum
import logging
import re
from dataclasses import dataclass
from typing import NamedTuple, Optional, Union

logger = logging.getLogger(__name__)

# Literals are bounded to a signed 32-bit range.
MAX_INT = 2**31 - 1
MAX_DEPTH = 200

OPERAND = "an operand"

token_re = re.compile(r"\s*(?:(\d+)|([-+*/()])|(\S))")


class TokenKind(enum.Enum):
    INTEGER = enum.auto()
    PLUS = enum.auto()
    MINUS = enum.auto()
    MUL = enum.auto()
    DIV = enum.auto()
    LPAREN = enum.auto()
    RPAREN = enum.auto()
    EOF = enum.auto()


SYMBOLS = {
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.MUL,
    "/": TokenKind.DIV,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
}


class Token(NamedTuple):
    kind: TokenKind
    literal: Union[int, str, None]
    pos: int

    def __str__(self):
        if self.kind is TokenKind.EOF:
            return "end of input"
        return f"{self.kind.name} {self.literal!r}"


class EvalError(Exception):
    """Base class for errors that abort the evaluation of one line."""


class LexError(EvalError):
    def __init__(self, char, pos):
        super().__init__(f"unknown character {char!r} at position {pos}")
        self.char = char
        self.pos = pos


class IntegerOverflow(EvalError):
    def __init__(self, digits, pos, max_int):
        super().__init__(
            f"integer literal {digits} at position {pos} is larger than {max_int}"
        )
        self.digits = digits
        self.pos = pos
        self.max_int = max_int


class ParseError(EvalError):
    """The token stream does not match the grammar.

    ``expected`` is the ``TokenKind`` the parser needed, or ``OPERAND`` when
    either an integer or an opening parenthesis would have done. ``token`` is
    the lookahead that was found instead.
    """

    def __init__(self, expected, token):
        name = expected.name if isinstance(expected, TokenKind) else expected
        super().__init__(f"expected {name}, got {token} at position {token.pos}")
        self.expected = expected
        self.token = token
        self.pos = token.pos


class NestingTooDeep(EvalError):
    """Parentheses open more than ``max_depth`` levels deep."""

    def __init__(self, token, max_depth):
        super().__init__(
            f"parentheses nested deeper than {max_depth} levels at position {token.pos}"
        )
        self.token = token
        self.pos = token.pos
        self.max_depth = max_depth


class Lexer:
    def __init__(self, text, max_int=MAX_INT):
        self.text = text
        self.max_int = max_int
        self.pos = 0

    def __iter__(self):
        while True:
            token = self.next_token()
            yield token
            if token.kind is TokenKind.EOF:
                return

    def next_token(self):
        m = token_re.match(self.text, self.pos)
        if m is None:
            # only whitespace, or nothing at all, is left
            self.pos = len(self.text)
            return Token(TokenKind.EOF, None, self.pos)

        self.pos = m.end()
        start = m.start(m.lastindex)
        number, symbol, other = m.groups()
        if number:
            return Token(TokenKind.INTEGER, self.integer(number, start), start)
        if symbol:
            return Token(SYMBOLS[symbol], symbol, start)
        raise LexError(other, start)

    def integer(self, digits, pos):
        # int() rejects strings longer than sys.get_int_max_str_digits()
        significant = digits.lstrip("0") or "0"
        if len(significant) > len(str(self.max_int)):
            raise IntegerOverflow(digits, pos, self.max_int)
        value = int(significant)
        if value > self.max_int:
            raise IntegerOverflow(digits, pos, self.max_int)
        return value


def tokenize(text, max_int=MAX_INT):
    return iter(Lexer(text, max_int))


@dataclass(frozen=True)
class Literal:
    value: int


@dataclass(frozen=True)
class BinaryOp:
    left: "Node"
    op: Token
    right: "Node"


Node = Union[Literal, BinaryOp]


class Parser:
    """Recursive-descent parser with one token of lookahead.

        expr   := term ( (PLUS | MINUS) term )*
        term   := factor ( (MUL | DIV) factor )*
        factor := INTEGER | LPAREN expr RPAREN

    Input left over after a complete ``expr`` is ignored unless ``strict``
    is set, in which case it is reported as a ``ParseError``.
    """

    def __init__(self, lexer, strict=False, max_depth=MAX_DEPTH):
        self.lexer = lexer
        self.strict = strict
        self.max_depth = max_depth
        self.depth = 0
        self.current_token = self.lexer.next_token()

    def eat(self, kind):
        token = self.current_token
        if token.kind is not kind:
            raise ParseError(kind, token)
        self.current_token = self.lexer.next_token()
        return token

    def factor(self):
        token = self.current_token
        match token.kind:
            case TokenKind.LPAREN:
                if self.depth >= self.max_depth:
                    raise NestingTooDeep(token, self.max_depth)
                self.eat(TokenKind.LPAREN)
                self.depth += 1
                node = self.expr()
                self.eat(TokenKind.RPAREN)
                self.depth -= 1
                return node

            case TokenKind.INTEGER:
                self.eat(TokenKind.INTEGER)
                return Literal(token.literal)

            case _:
                raise ParseError(OPERAND, token)

    def term(self):
        node = self.factor()
        while self.current_token.kind in (TokenKind.MUL, TokenKind.DIV):
            op = self.eat(self.current_token.kind)
            node = BinaryOp(node, op, self.factor())
        return node

    def expr(self):
        node = self.term()
        while self.current_token.kind in (TokenKind.PLUS, TokenKind.MINUS):
            op = self.eat(self.current_token.kind)
            node = BinaryOp(node, op, self.term())
        return node

    def parse(self) -> Node:
        node = self.expr()
        if self.strict:
            self.eat(TokenKind.EOF)
        elif self.current_token.kind is not TokenKind.EOF:
            logger.debug(
                "ignoring input after position %d", self.current_token.pos
            )
        return node


def render(node: Node) -> str:
    """Render a tree as ``(op left right)``, operator first.

    Walks with an explicit stack of ``(is_text, item)`` pairs, so long
    operator chains are not limited by the interpreter's recursion depth.
    """
    out = []
    stack = [(False, node)]
    while stack:
        is_text, item = stack.pop()
        if is_text:
            out.append(item)
            continue

        match item:
            case Literal(value):
                out.append(str(value))
            case BinaryOp(left, op, right):
                out.append(f"({op.literal} ")
                stack += [(True, ")"), (False, right), (True, " "), (False, left)]
            case _:
                raise TypeError(f"not an AST node: {item!r}")
    return "".join(out)


def evaluate_line(text, strict=False, max_int=MAX_INT) -> str:
    """Parse one line and return its prefix rendering.

    Raises an ``EvalError`` subclass when the line cannot be lexed or parsed.
    """
    tree = Parser(Lexer(text, max_int), strict=strict).parse()
    result = render(tree)
    logger.debug("%r -> %s", text, result)
    return result


def format_error(source: Optional[str], error: EvalError) -> str:
    """Format an error with the source line and a caret under its position."""
    if source is None or "\n" in source:
        return str(error)
    # keep tabs so the caret lines up however the terminal expands them
    padding = "".join(c if c == "\t" else " " for c in source[: error.pos])
    pointer = padding + "^"
    return "\n".join([str(error), f"  {source}", f"  {pointer}"])
