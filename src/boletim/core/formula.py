"""Final-grade formulas written by school administrators.

A formula is plain arithmetic over the period grades, e.g. ``(eval1 + eval2) * 0.4 + eval3 * 0.2``.
It is tokenized against a fixed allow-list and parsed by a small recursive-descent parser
into ``Literal | Placeholder | BinaryOp`` nodes; nothing is ever handed to ``eval``.

Grammar::

    expr   := term (("+" | "-") term)*
    term   := factor (("*" | "/") factor)*
    factor := ("+" | "-") factor | "(" expr ")" | NUMBER | PLACEHOLDER
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from boletim.config.settings import settings

ALLOWED_CHARACTERS = re.compile(r"^[\d.+\-*/()\s]*$", re.ASCII)
PLACEHOLDER_PATTERN = re.compile(r"eval\d+", re.ASCII)
TOKEN_PATTERN = re.compile(r"\s*(?:(?P<placeholder>eval\d+)|(?P<number>\d+(?:\.\d*)?|\.\d+)|(?P<op>[+\-*/()]))", re.ASCII)
MULTIPLICATION_ALIASES = ("x", "×")


class FormulaError(ValueError):
    pass


@dataclass(frozen=True)
class Literal:
    value: float


@dataclass(frozen=True)
class Placeholder:
    name: str
    value: Optional[float]


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


Node = Union[Literal, Placeholder, BinaryOp]


@dataclass(frozen=True)
class FormulaEvaluation:
    value: float
    expression: str
    unresolved: Tuple[str, ...]


def placeholder_bindings(grades: Sequence[float]) -> Dict[str, float]:
    """eval1..evalN, numbered in the order the periods were supplied."""
    return {f"eval{index}": grade for index, grade in enumerate(grades, start=1)}


def normalize(formula: str) -> str:
    expression = formula.strip().lower()
    for alias in MULTIPLICATION_ALIASES:
        expression = expression.replace(alias, "*")
    return expression


def validate(expression: str) -> None:
    if len(expression) > settings.max_formula_length:
        raise FormulaError(f"Fórmula excede {settings.max_formula_length} caracteres")
    leftover = PLACEHOLDER_PATTERN.sub(" ", expression)
    if not ALLOWED_CHARACTERS.match(leftover):
        invalid = sorted({ch for ch in leftover if not ALLOWED_CHARACTERS.match(ch)})
        raise FormulaError(f"Caracteres inválidos na fórmula: {' '.join(invalid)}")


def tokenize(expression: str) -> List[Tuple[str, str]]:
    tokens: List[Tuple[str, str]] = []
    pos = 0
    end = len(expression.rstrip())
    while pos < end:
        match = TOKEN_PATTERN.match(expression, pos)
        if match is None or match.end() == pos:
            raise FormulaError(f"Símbolo inesperado na posição {pos + 1}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: List[Tuple[str, str]], bindings: Mapping[str, float], max_depth: int) -> None:
        self.tokens = tokens
        self.bindings = bindings
        self.max_depth = max_depth
        self.pos = 0
        self.depth = 0

    def parse(self) -> Node:
        if not self.tokens:
            raise FormulaError("Fórmula vazia")
        node = self._expr()
        if self.pos < len(self.tokens):
            raise FormulaError(f"Símbolo inesperado: {self.tokens[self.pos][1]}")
        return node

    def _peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self) -> Tuple[str, str]:
        token = self._peek()
        if token is None:
            raise FormulaError("Fórmula terminou inesperadamente")
        self.pos += 1
        return token

    def _is_op(self, *ops: str) -> bool:
        token = self._peek()
        return token is not None and token[0] == "op" and token[1] in ops

    def _expr(self) -> Node:
        node = self._term()
        while self._is_op("+", "-"):
            op = self._take()[1]
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._factor()
        while self._is_op("*", "/"):
            op = self._take()[1]
            node = BinaryOp(op, node, self._factor())
        return node

    def _factor(self) -> Node:
        self.depth += 1
        if self.depth > self.max_depth:
            raise FormulaError("Fórmula com aninhamento excessivo")
        try:
            kind, text = self._take()
            if kind == "number":
                return Literal(float(text))
            if kind == "placeholder":
                return Placeholder(text, self.bindings.get(text))
            if text in ("+", "-"):
                # Unary sign as 0 +/- operand keeps the tree to three node kinds.
                return BinaryOp(text, Literal(0.0), self._factor())
            if text == "(":
                node = self._expr()
                if not self._is_op(")"):
                    raise FormulaError("Parêntese não fechado")
                self._take()
                return node
            raise FormulaError(f"Símbolo inesperado: {text}")
        finally:
            self.depth -= 1


def parse(formula: str, bindings: Mapping[str, float], max_depth: Optional[int] = None) -> Node:
    expression = normalize(formula)
    validate(expression)
    depth = settings.max_formula_depth if max_depth is None else max_depth
    return _Parser(tokenize(expression), bindings, depth).parse()


def evaluate(node: Node) -> float:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, Placeholder):
        return node.value if node.value is not None else 0.0

    left = evaluate(node.left)
    right = evaluate(node.right)
    if node.op == "+":
        return left + right
    if node.op == "-":
        return left - right
    if node.op == "*":
        return left * right
    if right == 0:
        raise FormulaError("Divisão por zero")
    return left / right


def unresolved_placeholders(node: Node) -> List[str]:
    if isinstance(node, Placeholder):
        return [node.name] if node.value is None else []
    if isinstance(node, BinaryOp):
        names = unresolved_placeholders(node.left)
        names.extend(n for n in unresolved_placeholders(node.right) if n not in names)
        return names
    return []


def evaluate_formula(formula: str, grades: Sequence[float]) -> FormulaEvaluation:
    """Parse and evaluate ``formula`` against the period grades; raises FormulaError."""
    tree = parse(formula, placeholder_bindings(grades))
    value = evaluate(tree)
    if not math.isfinite(value):
        raise FormulaError("Resultado não numérico")
    return FormulaEvaluation(value, normalize(formula), tuple(unresolved_placeholders(tree)))


def round_grade(value: float) -> float:
    """One decimal, halves away from zero, using the exact stored binary value."""
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
