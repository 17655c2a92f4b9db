"""Pratt parser for band-math programs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Final, NoReturn

from .ast import BooleanLiteral, Expression, ExpressionStatement, Identifier, InfixExpression, NumberLiteral, PrefixExpression, Program, Statement
from .lexer import Lexer, Token, TokenKind

logger = logging.getLogger(__name__)


class Precedence(IntEnum):
    LOWEST = 0
    MASK = 1
    EQUALS = 2
    LESSGREATER = 3
    SUM = 4
    PRODUCT = 5
    PREFIX = 6


_INFIX_PRECEDENCE: dict[TokenKind, Precedence] = {
    TokenKind.HASH: Precedence.MASK,
    TokenKind.EQ: Precedence.EQUALS,
    TokenKind.NOT_EQ: Precedence.EQUALS,
    TokenKind.LT: Precedence.LESSGREATER,
    TokenKind.GT: Precedence.LESSGREATER,
    TokenKind.PLUS: Precedence.SUM,
    TokenKind.MINUS: Precedence.SUM,
    TokenKind.ASTERISK: Precedence.PRODUCT,
    TokenKind.SLASH: Precedence.PRODUCT,
}

_PREFIX_OPERATORS = {TokenKind.BANG, TokenKind.MINUS}

MAX_EXPRESSION_DEPTH: Final[int] = 200

_EXPRESSION_START = ("IDENT", "NUMBER", "TRUE", "FALSE", "LPAREN", "BANG", "MINUS")


class ParseError(SyntaxError):
    def __init__(
        self,
        message: str,
        start: int,
        end: int,
        expected: tuple[str, ...] = (),
        found: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.start = start
        self.end = end
        self.expected = expected
        self.found = found

    def __str__(self) -> str:
        expected_text = ""
        if self.expected:
            expected_text = f"; expected {', '.join(self.expected)}"
        found_text = ""
        if self.found is not None:
            found_text = f"; found {self.found}"
        return f"{self.message} at span [{self.start}, {self.end}){expected_text}{found_text}"


@dataclass(frozen=True)
class ParseResult:
    program: Program
    errors: tuple[ParseError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class Parser:
    """Pulls tokens lazily from a lexer; bad statements are recorded in ``errors`` and skipped."""

    lexer: Lexer
    errors: list[ParseError] = field(default_factory=list)
    max_depth: int = MAX_EXPRESSION_DEPTH
    _lookahead: list[Token] = field(default_factory=list, repr=False)
    _nesting: int = field(default=0, repr=False)

    def parse_program(self) -> Program:
        statements: list[Statement] = []
        while self._peek().kind is not TokenKind.EOF:
            try:
                statements.append(self._parse_statement())
            except ParseError as err:
                logger.debug("Parse error: %s", err)
                self.errors.append(err)
                self._synchronize()
        return Program(statements=tuple(statements))

    def _peek(self) -> Token:
        if not self._lookahead:
            self._lookahead.append(self.lexer.next_token())
        return self._lookahead[0]

    def _advance(self) -> Token:
        tok = self._peek()
        if tok.kind is not TokenKind.EOF:
            self._lookahead.pop(0)
        return tok

    def _match(self, kind: TokenKind) -> bool:
        if self._peek().kind is kind:
            self._advance()
            return True
        return False

    def _expect(self, kind: TokenKind) -> Token:
        tok = self._peek()
        if tok.kind is not kind:
            self._error(tok, message=f"expected {kind.name}", expected=(kind.name,))
        return self._advance()

    def _error(self, tok: Token, *, message: str, expected: tuple[str, ...] = ()) -> NoReturn:
        if tok.kind is TokenKind.EOF:
            found = "EOF"
        else:
            found = f"{tok.kind.name}({tok.text})"
        raise ParseError(message, tok.pos, tok.end, expected=tuple(dict.fromkeys(expected)), found=found)

    def _synchronize(self) -> None:
        while self._peek().kind not in {TokenKind.SEMICOLON, TokenKind.EOF}:
            self._advance()
        self._match(TokenKind.SEMICOLON)

    def _parse_statement(self) -> Statement:
        expr, _ = self._parse_expression(Precedence.LOWEST)
        self._match(TokenKind.SEMICOLON)
        return ExpressionStatement(expression=expr)

    def _nested_too_deeply(self, tok: Token) -> NoReturn:
        self._error(tok, message=f"expression nested too deeply (limit {self.max_depth})")

    # Returns the expression and its tree depth; nesting and depth are both
    # capped at max_depth.
    def _parse_expression(self, precedence: Precedence) -> tuple[Expression, int]:
        self._nesting += 1
        try:
            if self._nesting > self.max_depth:
                self._nested_too_deeply(self._peek())
            left, depth = self._parse_prefix()

            while True:
                tok = self._peek()
                bp = _INFIX_PRECEDENCE.get(tok.kind)
                if bp is None or bp <= precedence:
                    break
                self._advance()
                right, right_depth = self._parse_expression(bp)
                depth = max(depth, right_depth) + 1
                if depth > self.max_depth:
                    self._nested_too_deeply(tok)
                left = InfixExpression(op=tok.text, left=left, right=right)

            return left, depth
        finally:
            self._nesting -= 1

    def _parse_prefix(self) -> tuple[Expression, int]:
        tok = self._peek()

        if tok.kind is TokenKind.IDENT:
            self._advance()
            return Identifier(value=tok.text), 1

        if tok.kind is TokenKind.NUMBER:
            self._advance()
            return NumberLiteral(value=float(tok.text)), 1

        if tok.kind in {TokenKind.TRUE, TokenKind.FALSE}:
            self._advance()
            return BooleanLiteral(value=tok.kind is TokenKind.TRUE), 1

        if tok.kind in _PREFIX_OPERATORS:
            self._advance()
            right, depth = self._parse_expression(Precedence.PREFIX)
            if depth + 1 > self.max_depth:
                self._nested_too_deeply(tok)
            return PrefixExpression(op=tok.text, right=right), depth + 1

        if tok.kind is TokenKind.LPAREN:
            self._advance()
            expr, depth = self._parse_expression(Precedence.LOWEST)
            self._expect(TokenKind.RPAREN)
            return expr, depth

        if tok.kind is TokenKind.ILLEGAL:
            self._error(tok, message=f"illegal character {tok.text!r}", expected=_EXPRESSION_START)

        self._error(tok, message=f"no prefix parse rule for {tok.kind.name}", expected=_EXPRESSION_START)


def parse_program(source: str) -> ParseResult:
    parser = Parser(Lexer(source))
    program = parser.parse_program()
    return ParseResult(program=program, errors=tuple(parser.errors))
