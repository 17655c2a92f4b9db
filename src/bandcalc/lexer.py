"""Tokenization for band-math formulas."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator


class TokenKind(str, Enum):
    ILLEGAL = "ILLEGAL"
    EOF = "EOF"

    IDENT = "IDENT"
    NUMBER = "NUMBER"

    PLUS = "+"
    MINUS = "-"
    ASTERISK = "*"
    SLASH = "/"
    BANG = "!"
    LT = "<"
    GT = ">"
    EQ = "=="
    NOT_EQ = "!="
    HASH = "#"

    SEMICOLON = ";"
    LPAREN = "("
    RPAREN = ")"

    TRUE = "TRUE"
    FALSE = "FALSE"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    pos: int
    end: int


_SINGLE_TOKENS = {
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "*": TokenKind.ASTERISK,
    "/": TokenKind.SLASH,
    "<": TokenKind.LT,
    ">": TokenKind.GT,
    "#": TokenKind.HASH,
    ";": TokenKind.SEMICOLON,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
}

_TWO_CHAR_TOKENS = {
    "==": TokenKind.EQ,
    "!=": TokenKind.NOT_EQ,
}

_KEYWORDS = {
    "true": TokenKind.TRUE,
    "false": TokenKind.FALSE,
}

_WHITESPACE = {" ", "\t", "\r", "\n", "\f", "\v"}


def _is_ident_start(ch: str) -> bool:
    return ch == "_" or ("a" <= ch <= "z") or ("A" <= ch <= "Z")


def _is_ident_continue(ch: str) -> bool:
    return _is_ident_start(ch) or _is_digit(ch)


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def lookup_ident(ident: str) -> TokenKind:
    return _KEYWORDS.get(ident, TokenKind.IDENT)


class Lexer:
    """Produces tokens one at a time; iterating restarts from the beginning."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.index = 0

    def __iter__(self) -> Iterator[Token]:
        lexer = Lexer(self.source)
        while True:
            tok = lexer.next_token()
            yield tok
            if tok.kind is TokenKind.EOF:
                return

    def _skip_whitespace(self) -> None:
        while self.index < len(self.source) and self.source[self.index] in _WHITESPACE:
            self.index += 1

    def _scan_while(self, predicate) -> str:
        start = self.index
        while self.index < len(self.source) and predicate(self.source[self.index]):
            self.index += 1
        return self.source[start : self.index]

    def _scan_number(self) -> str:
        start = self.index
        self._scan_while(_is_digit)
        if self.index < len(self.source) and self.source[self.index] == ".":
            self.index += 1
            self._scan_while(_is_digit)
        return self.source[start : self.index]

    def next_token(self) -> Token:
        self._skip_whitespace()
        source = self.source
        i = self.index

        if i >= len(source):
            return Token(TokenKind.EOF, "", len(source), len(source))

        pair = source[i : i + 2]
        if pair in _TWO_CHAR_TOKENS:
            self.index = i + 2
            return Token(_TWO_CHAR_TOKENS[pair], pair, i, i + 2)

        ch = source[i]
        if ch in _SINGLE_TOKENS:
            self.index = i + 1
            return Token(_SINGLE_TOKENS[ch], ch, i, i + 1)

        if ch == "!":
            self.index = i + 1
            return Token(TokenKind.BANG, ch, i, i + 1)

        if _is_ident_start(ch):
            ident = self._scan_while(_is_ident_continue)
            return Token(lookup_ident(ident), ident, i, self.index)

        if _is_digit(ch):
            text = self._scan_number()
            return Token(TokenKind.NUMBER, text, i, self.index)

        # A lone "=" lands here too; there is no assignment form.
        self.index = i + 1
        return Token(TokenKind.ILLEGAL, ch, i, i + 1)


def tokenize(source: str) -> list[Token]:
    return list(Lexer(source))
