"""
Rule classification and the ordered rule store.

A rule is a (key, production) pair. The key decides which of three
shapes the rule has:

    AB<C>B      context-sensitive: rewrite C only between AB and B
    F(a,b)      parametric: rewrite F(1,2) with a, b bound to 1 and 2
    A           simple: rewrite every A

Classification is tested in that order, so a key that happens to look
like both a context rule and a parametric rule is a context rule. Any
key that is neither is simple and is compared by exact equality against
a single symbol; a multi-symbol simple key therefore never matches.
"""

import logging
import re
from typing import Dict, Iterator, List, Optional

from .errors import DuplicateRuleKey, MalformedParametricRule, MalformedRuleKey

logger = logging.getLogger(__name__)

CONTEXT = "context"
PARAMETRIC = "parametric"
SIMPLE = "simple"

RULE_KINDS = (CONTEXT, PARAMETRIC, SIMPLE)

INSERTION = "insertion"
CATEGORY = "category"

PRECEDENCE_POLICIES = (INSERTION, CATEGORY)

# left<center>right, center is exactly one symbol
CONTEXT_PATTERN = re.compile(r"(.+)<(.)>(.+)")
# name(p1,p2,...), parameter names are letters only
PARAM_PATTERN = re.compile(r"(.)\(([a-zA-Z,]+)\)")


def classify_rule(key: str) -> str:
    """Return CONTEXT, PARAMETRIC or SIMPLE for a rule key."""
    if CONTEXT_PATTERN.search(key):
        return CONTEXT
    if PARAM_PATTERN.search(key):
        return PARAMETRIC
    return SIMPLE


class Rule:
    """A production keyed on a predicate. Subclasses carry the parsed key."""

    kind = SIMPLE

    def __init__(self, key: str, production: str,
                 name: Optional[str] = None, description: Optional[str] = None):
        self.key = key
        self.production = production
        self.name = name
        self.description = description

    @property
    def can_match(self) -> bool:
        """False for rules whose key can never match any input."""
        return True

    @property
    def label(self) -> str:
        """Display name: the rule name if it has one, else its key."""
        return self.name or self.key

    def to_dict(self) -> Dict:
        result = {"key": self.key, "production": self.production}
        if self.name:
            result["name"] = self.name
        if self.description:
            result["description"] = self.description
        return result

    def __eq__(self, other):
        if isinstance(other, Rule):
            return self.key == other.key and self.production == other.production
        return False

    def __hash__(self):
        return hash((self.key, self.production))

    def __repr__(self) -> str:
        base = f"{self.key} => {self.production}"
        if self.name:
            base = f"@{self.name}: {base}"
        return f"{type(self).__name__}({base!r})"


class SimpleRule(Rule):
    """Rewrites a single symbol wherever it appears."""

    kind = SIMPLE

    @property
    def can_match(self) -> bool:
        return len(self.key) == 1


class ContextRule(Rule):
    """Rewrites its predicate only between the given left and right context."""

    kind = CONTEXT

    def __init__(self, key: str, production: str,
                 name: Optional[str] = None, description: Optional[str] = None):
        super().__init__(key, production, name, description)
        match_obj = CONTEXT_PATTERN.search(key)
        self.left = match_obj.group(1)
        self.predicate = match_obj.group(2)
        self.right = match_obj.group(3)

    @property
    def literal(self) -> str:
        """The text a stripped window must equal for this rule to match."""
        return self.left + self.predicate + self.right


class ParametricRule(Rule):
    """
    Rewrites name(v1,...,vn) by substituting the values for the declared
    parameter names in the production and evaluating its clauses.

    Substitution is textual and applied in declaration order, so a
    parameter name must not occur inside a later one (for example ``a``
    and ``ab``): replacing ``a`` first would corrupt ``ab``.
    """

    kind = PARAMETRIC

    def __init__(self, key: str, production: str,
                 name: Optional[str] = None, description: Optional[str] = None):
        super().__init__(key, production, name, description)
        match_obj = PARAM_PATTERN.search(key)
        self.symbol = match_obj.group(1)
        self.param_names: List[str] = match_obj.group(2).split(',')

    @property
    def arity(self) -> int:
        return len(self.param_names)

    @property
    def can_match(self) -> bool:
        # An empty name would substitute between every character
        return all(self.param_names)

    def has_duplicate_params(self) -> bool:
        return len(set(self.param_names)) != len(self.param_names)


_RULE_CLASSES = {
    CONTEXT: ContextRule,
    PARAMETRIC: ParametricRule,
    SIMPLE: SimpleRule,
}


def parse_rule(key: str, production: str, name: Optional[str] = None,
               description: Optional[str] = None, strict: bool = False) -> Rule:
    """
    Build the rule variant matching the shape of ``key``.

    In strict mode a key that could never match raises instead of
    producing an inert rule.

    Raises:
        MalformedParametricRule: strict mode, empty or duplicate parameter names
        MalformedRuleKey: strict mode, simple key that is not one symbol
    """
    rule = _RULE_CLASSES[classify_rule(key)](key, production, name, description)

    if isinstance(rule, ParametricRule):
        if strict and (not rule.can_match or rule.has_duplicate_params()):
            raise MalformedParametricRule(
                f"Parametric rule {key!r} has empty or duplicate parameter names")
    elif not rule.can_match and strict:
        raise MalformedRuleKey(
            f"Rule key {key!r} is neither a context, parametric nor single-symbol key")

    if not rule.can_match:
        logger.warning("Rule %r can never match and will be ignored", key)
    return rule


def check_precedence(policy: str) -> str:
    if policy not in PRECEDENCE_POLICIES:
        raise ValueError(f"Unknown precedence: {policy}. "
                         f"Valid options: {', '.join(PRECEDENCE_POLICIES)}")
    return policy


class RuleSet:
    """
    Rules in registration order, indexed by key.

    Registration order is the tie-breaker for precedence, so the rules are
    kept in an explicit list; the key index only serves duplicate
    detection and lookup.
    """

    def __init__(self):
        self._rules: List[Rule] = []
        self._index: Dict[str, int] = {}

    def add(self, rule: Rule) -> Rule:
        """Append a rule. Raises DuplicateRuleKey if the key is taken."""
        if rule.key in self._index:
            raise DuplicateRuleKey(rule.key)
        self._index[rule.key] = len(self._rules)
        self._rules.append(rule)
        return rule

    def get(self, key: str) -> Optional[Rule]:
        idx = self._index.get(key)
        return self._rules[idx] if idx is not None else None

    def remove(self, key: str) -> Rule:
        """Remove and return the rule registered under ``key``."""
        if key not in self._index:
            raise KeyError(f"No rule for key {key!r}")
        rule = self._rules.pop(self._index[key])
        self._index = {r.key: i for i, r in enumerate(self._rules)}
        return rule

    def clear(self) -> None:
        self._rules = []
        self._index = {}

    def ordered(self, precedence: str = INSERTION) -> List[Rule]:
        """
        Rules in the order the matcher tries them.

        INSERTION: registration order, whatever the variant.
        CATEGORY: context rules, then parametric, then simple; registration
        order within each bucket.
        """
        check_precedence(precedence)
        if precedence == INSERTION:
            return list(self._rules)
        return sorted(self._rules, key=lambda r: RULE_KINDS.index(r.kind))

    def keys(self) -> List[str]:
        return [rule.key for rule in self._rules]

    def copy(self) -> 'RuleSet':
        new_set = RuleSet()
        new_set._rules = self._rules.copy()
        new_set._index = self._index.copy()
        return new_set

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __contains__(self, key: str) -> bool:
        return key in self._index

    def __getitem__(self, key: str) -> Rule:
        if key not in self._index:
            raise KeyError(f"No rule for key {key!r}")
        return self._rules[self._index[key]]

    def __repr__(self) -> str:
        return f"RuleSet({len(self._rules)} rules)"
