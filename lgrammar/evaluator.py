"""
Arithmetic evaluation for parametric productions.

Expressions are plain calculator text: decimal literals combined with
``+ - * /`` and unary signs, evaluated with the usual precedence. There
are no variables (parameters are substituted textually before
evaluation), no function calls and no parentheses; the parentheses in a
production delimit the clauses to evaluate, not sub-expressions.

    evaluate("3*2")         -> "6"
    evaluate("1*.65")       -> "0.65"
    evaluate_clauses("F(2*3,1/4)A") -> "F(6,0.25)A"

The text is parsed with Python's own expression grammar and then walked
under a whitelist, so anything beyond the four operators is rejected
rather than executed.
"""

import ast
import math
import operator
import re
from typing import Callable, Dict

from .errors import InvalidExpression

BinaryHandler = Callable[[float, float], float]
UnaryHandler = Callable[[float], float]

BINARY_OPERATORS: Dict[type, BinaryHandler] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}

UNARY_OPERATORS: Dict[type, UnaryHandler] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

# Digits, decimal point, exponent marker, the four operators, whitespace
_EXPRESSION_CHARS = re.compile(r"[0-9.eE+\-*/\s]+")
# Leading zeros of an integer part, which Python literals do not allow
_LEADING_ZEROS = re.compile(r"(?<![\d.eE])0+(?=\d)")

SIGNIFICANT_DIGITS = 15


def format_number(value: float) -> str:
    """
    Format a result the way a calculator prints it.

    Integral values lose their decimal point, everything else keeps up to
    15 significant digits so float noise does not leak into the string.
    """
    if value.is_integer() and abs(value) < 10 ** SIGNIFICANT_DIGITS:
        return str(int(value))
    return f"{value:.{SIGNIFICANT_DIGITS}g}"


def evaluate_number(expr: str) -> float:
    """
    Evaluate an arithmetic expression to a float.

    Raises:
        InvalidExpression: if the text is not a well-formed expression over
            numeric literals, or the result is not finite
    """
    if not _EXPRESSION_CHARS.fullmatch(expr) or '**' in expr or '//' in expr:
        raise InvalidExpression(expr)
    try:
        tree = ast.parse(_LEADING_ZEROS.sub("", expr.strip()), mode='eval')
    except SyntaxError:
        raise InvalidExpression(expr) from None

    def loop(node) -> float:
        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise InvalidExpression(expr)
            try:
                return float(node.value)
            except OverflowError:
                raise InvalidExpression(expr, "literal out of range") from None
        if isinstance(node, ast.BinOp) and type(node.op) in BINARY_OPERATORS:
            left = loop(node.left)
            right = loop(node.right)
            try:
                return BINARY_OPERATORS[type(node.op)](left, right)
            except ZeroDivisionError:
                raise InvalidExpression(expr, "division by zero") from None
            except OverflowError:
                raise InvalidExpression(expr, "result is not finite") from None
        if isinstance(node, ast.UnaryOp) and type(node.op) in UNARY_OPERATORS:
            return UNARY_OPERATORS[type(node.op)](loop(node.operand))
        raise InvalidExpression(expr)

    result = loop(tree.body)
    if not math.isfinite(result):
        raise InvalidExpression(expr, "result is not finite")
    return result


def evaluate(expr: str) -> str:
    """Evaluate an arithmetic expression and return the formatted number."""
    return format_number(evaluate_number(expr))


def evaluate_clauses(text: str) -> str:
    """
    Evaluate every parenthesized clause in ``text``.

    Each ``(...)`` group is split on commas, each part evaluated on its
    own and the results rejoined, so ``A(1+1,2*3)`` becomes ``A(2,6)``.
    Groups do not nest: a group ends at the first ``)`` after its ``(``.
    An unterminated ``(`` leaves the rest of the text as it is.

    Raises:
        InvalidExpression: if any part of any clause cannot be evaluated
    """
    pieces = []
    pos = 0
    while True:
        open_idx = text.find('(', pos)
        if open_idx == -1:
            break
        close_idx = text.find(')', open_idx)
        if close_idx == -1:
            break
        clause = text[open_idx + 1:close_idx]
        pieces.append(text[pos:open_idx + 1])
        pieces.append(','.join(evaluate(part) for part in clause.split(',')))
        pos = close_idx
    pieces.append(text[pos:])
    return ''.join(pieces)
