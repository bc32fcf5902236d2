"""
Rule matching at a single position of the working string.

The matcher tries rules in the order it is given and reports the first
one that applies. Each variant has its own test:

    context     the stripped context around the symbol must equal the
                rule's left + predicate + right, consumes one symbol
    parametric  the text must start with name( and carry as many
                comma-separated values as the rule declares parameters,
                consumes through the closing parenthesis
    simple      the key must equal the symbol, consumes one symbol

When nothing applies the caller copies the symbol unchanged.
"""

from typing import Dict, Iterable, Optional, Tuple

from .context import DROP, strip_context
from .evaluator import evaluate_clauses
from .rules import CONTEXT, PARAMETRIC, ContextRule, ParametricRule, Rule, SimpleRule


class MatchResult:
    """A rule that applies at a position, with its expanded production."""

    __slots__ = ('rule', 'production', 'consumed')

    def __init__(self, rule: Rule, production: str, consumed: int):
        self.rule = rule
        self.production = production
        self.consumed = consumed

    def __eq__(self, other):
        if isinstance(other, MatchResult):
            return (self.rule == other.rule and self.production == other.production
                    and self.consumed == other.consumed)
        return False

    def __repr__(self) -> str:
        return (f"MatchResult({self.rule.key!r} -> {self.production!r}, "
                f"consumed={self.consumed})")


class _Contexts:
    """Stripped left and right context of one position, computed on demand."""

    def __init__(self, text: str, position: int, ignore: Iterable[str], unmatched_bracket: str):
        self.text = text
        self.position = position
        self.ignore = ignore
        self.unmatched_bracket = unmatched_bracket
        self._cache: Dict[str, str] = {}

    def left(self) -> str:
        if 'left' not in self._cache:
            self._cache['left'] = strip_context(
                self.text[:self.position], self.ignore, self.unmatched_bracket)
        return self._cache['left']

    def right(self) -> str:
        if 'right' not in self._cache:
            self._cache['right'] = strip_context(
                self.text[self.position + 1:], self.ignore, self.unmatched_bracket)
        return self._cache['right']


def match_context(rule: ContextRule, text: str, position: int,
                  ignore: Iterable[str] = "", unmatched_bracket: str = DROP,
                  contexts: Optional[_Contexts] = None) -> Optional[MatchResult]:
    """Test a context-sensitive rule at ``position``."""
    left_len = len(rule.left)
    right_len = len(rule.right)
    # Not enough room on either side, before any stripping
    if position < left_len or position > len(text) - right_len - 1:
        return None

    if contexts is None:
        contexts = _Contexts(text, position, ignore, unmatched_bracket)
    left = contexts.left()
    right = contexts.right()
    if len(left) < left_len or len(right) < right_len:
        return None

    window = left[len(left) - left_len:] + text[position] + right[:right_len]
    if window != rule.literal:
        return None
    return MatchResult(rule, rule.production, 1)


def parse_parameters(text: str, position: int, symbol: str) -> Optional[Tuple[list, int]]:
    """
    Read the ``symbol(v1,...,vn)`` token starting at ``position``.

    Returns:
        (values, close_index) where close_index is the index of the
        token's closing parenthesis, or None if there is no such token
    """
    prefix = symbol + '('
    if not text.startswith(prefix, position):
        return None
    start = position + len(prefix)
    close_idx = text.find(')', start)
    if close_idx == -1:
        return None
    return text[start:close_idx].split(','), close_idx


def expand_parametric(rule: ParametricRule, values) -> str:
    """
    Substitute ``values`` for the rule's parameter names and evaluate the
    resulting clauses.

    Raises:
        InvalidExpression: if a clause does not evaluate to a number
    """
    production = rule.production
    for name, value in zip(rule.param_names, values):
        production = production.replace(name, value)
    return evaluate_clauses(production)


def match_parametric(rule: ParametricRule, text: str, position: int) -> Optional[MatchResult]:
    """Test a parametric rule at ``position``. Wrong arity is a non-match."""
    # Shortest possible token is name(v)
    if position > len(text) - 4 or not rule.can_match:
        return None
    token = parse_parameters(text, position, rule.symbol)
    if token is None:
        return None
    values, close_idx = token
    if len(values) != rule.arity:
        return None
    return MatchResult(rule, expand_parametric(rule, values), close_idx - position + 1)


def match_simple(rule: SimpleRule, text: str, position: int) -> Optional[MatchResult]:
    """Test a simple rule at ``position``."""
    if rule.key == text[position]:
        return MatchResult(rule, rule.production, 1)
    return None


def match_rule(rule: Rule, text: str, position: int, ignore: Iterable[str] = "",
               unmatched_bracket: str = DROP,
               contexts: Optional[_Contexts] = None) -> Optional[MatchResult]:
    """Test one rule of any variant at ``position``."""
    if rule.kind == CONTEXT:
        return match_context(rule, text, position, ignore, unmatched_bracket, contexts)
    if rule.kind == PARAMETRIC:
        return match_parametric(rule, text, position)
    return match_simple(rule, text, position)


def try_match(text: str, position: int, rules: Iterable[Rule], ignore: Iterable[str] = "",
              unmatched_bracket: str = DROP) -> Optional[MatchResult]:
    """
    Return the first rule in ``rules`` that applies at ``position``.

    Args:
        text: The working string
        position: Index of the symbol being rewritten
        rules: Rules in precedence order
        ignore: Symbols excluded from context comparison
        unmatched_bracket: Stripping policy for a ``]`` that closes nothing

    Returns:
        MatchResult for the first applicable rule, or None

    Raises:
        InvalidExpression: if a matching parametric rule produces a clause
            that does not evaluate
    """
    contexts = _Contexts(text, position, ignore, unmatched_bracket)
    for rule in rules:
        result = match_rule(rule, text, position, ignore, unmatched_bracket, contexts)
        if result is not None:
            return result
    return None


def all_matches(text: str, position: int, rules: Iterable[Rule], ignore: Iterable[str] = "",
                unmatched_bracket: str = DROP) -> list:
    """Every rule in ``rules`` that applies at ``position``, in order."""
    contexts = _Contexts(text, position, ignore, unmatched_bracket)
    matches = []
    for rule in rules:
        result = match_rule(rule, text, position, ignore, unmatched_bracket, contexts)
        if result is not None:
            matches.append(result)
    return matches
