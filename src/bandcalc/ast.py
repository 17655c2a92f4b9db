"""AST nodes for band-math programs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class NumberLiteral:
    value: float

    def __str__(self) -> str:
        if float(self.value).is_integer():
            return str(int(self.value))
        return repr(float(self.value))


@dataclass(frozen=True)
class BooleanLiteral:
    value: bool

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class Identifier:
    """A band reference such as ``B5``; never a variable."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PrefixExpression:
    op: str
    right: "Expression"

    def __str__(self) -> str:
        return f"({self.op}{self.right})"


@dataclass(frozen=True)
class InfixExpression:
    op: str
    left: "Expression"
    right: "Expression"

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True)
class ExpressionStatement:
    expression: "Expression"

    def __str__(self) -> str:
        return f"{self.expression};"


@dataclass(frozen=True)
class BlockStatement:
    statements: tuple["Statement", ...]

    def __str__(self) -> str:
        return " ".join(str(stmt) for stmt in self.statements)


@dataclass(frozen=True)
class Program:
    statements: tuple["Statement", ...]

    def __str__(self) -> str:
        return " ".join(str(stmt) for stmt in self.statements)


Expression = Union[NumberLiteral, BooleanLiteral, Identifier, PrefixExpression, InfixExpression]
Statement = Union[ExpressionStatement, BlockStatement]
Node = Union[Program, ExpressionStatement, BlockStatement, NumberLiteral, BooleanLiteral, Identifier, PrefixExpression, InfixExpression]
