"""
Symbol-by-symbol reading of a derived string.

A derived string is a flat sequence of symbols, some of which carry a
parenthesized parameter list. An interpreter (a turtle, typically) wants
to walk it one module at a time with the parameter values already
parsed:

    list(iter_modules("F(1,.5)[+A]"))
    # [Module('F', (1.0, 0.5)), Module('['), Module('+'), Module('A'), Module(']')]

A parenthesized group that does not hold numbers is not a parameter
list; its symbols are reported one by one like any others.
"""

from typing import Iterator, List, Tuple

from .errors import InvalidExpression
from .evaluator import evaluate_number


class Module:
    """A symbol with the numeric parameters attached to it, if any."""

    __slots__ = ('symbol', 'params', 'text')

    def __init__(self, symbol: str, params: Tuple[float, ...] = (), text: str = ""):
        self.symbol = symbol
        self.params = params
        self.text = text or symbol

    @property
    def is_parametric(self) -> bool:
        return bool(self.params)

    def __eq__(self, other):
        if isinstance(other, Module):
            return self.symbol == other.symbol and self.params == other.params
        return False

    def __hash__(self):
        return hash((self.symbol, self.params))

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        if self.params:
            return f"Module({self.symbol!r}, {self.params!r})"
        return f"Module({self.symbol!r})"


def _read_params(text: str, start: int):
    """Parse ``(v1,...,vn)`` at ``start``; None if there is no numeric group."""
    close_idx = text.find(')', start + 1)
    if close_idx == -1:
        return None
    try:
        params = tuple(evaluate_number(v) for v in text[start + 1:close_idx].split(','))
    except InvalidExpression:
        return None
    return params, close_idx


def iter_modules(text: str) -> Iterator[Module]:
    """Yield the modules of ``text`` left to right."""
    i = 0
    while i < len(text):
        symbol = text[i]
        if i + 1 < len(text) and text[i + 1] == '(':
            group = _read_params(text, i + 1)
            if group is not None:
                params, close_idx = group
                yield Module(symbol, params, text[i:close_idx + 1])
                i = close_idx + 1
                continue
        yield Module(symbol)
        i += 1


def parse_modules(text: str) -> List[Module]:
    """All modules of ``text`` as a list."""
    return list(iter_modules(text))
