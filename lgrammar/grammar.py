"""
Grammar, derivation engine and rule file loader for lgrammar.

A Grammar holds an axiom, an ordered rule set and an ignore set, and
grows one generation per call to grow(). Each generation is a single
left-to-right pass: at every position the first applicable rule is
rewritten, and symbols no rule applies to are copied unchanged.

DSL Format (.lsys or .rules files):
    # Comment
    :axiom FA
    :ignore +-&^/
    :include leaves.lsys

    A => AB
    @grow: F(x) => F(x*1.2)
    @tip "Leaf at the end of a branch": ^^^<L>] => q

JSON Format:
    {
        "name": "plant",
        "axiom": "FA",
        "ignore": "+-",
        "rules": [
            {"key": "A", "production": "AB", "name": "grow"},
            or just ["A", "AB"]
        ]
    }

Tracing:
    Use Grammar.grow(trace=True) to see which rules fired where.
"""

import json
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .context import DROP, check_bracket_policy
from .errors import RuleSyntaxError
from .matcher import MatchResult, all_matches, try_match
from .modules import Module, iter_modules
from .rules import INSERTION, Rule, RuleSet, check_precedence, parse_rule

logger = logging.getLogger(__name__)

RulesType = Union[Dict[str, str], Iterable[Tuple[str, str]]]

# :axiom TEXT, :ignore TEXT, :include PATH
_DIRECTIVE = re.compile(r':(axiom|ignore|include)(?:\s+(.*))?$')


# ============================================================
# Rule files
# ============================================================

class RuleFile:
    """The axiom, ignore set and rules read from a rules file."""

    def __init__(self, name: Optional[str] = None, description: Optional[str] = None):
        self.name = name
        self.description = description
        self.axiom: Optional[str] = None
        self.ignore = ""
        self.rules: List[Dict] = []

    def add_rule(self, key: str, production: str, name: Optional[str] = None,
                 description: Optional[str] = None) -> None:
        entry = {"key": key, "production": production}
        if name:
            entry["name"] = name
        if description:
            entry["description"] = description
        self.rules.append(entry)

    def extend(self, other: 'RuleFile') -> None:
        """Merge an included file. The including file's axiom wins."""
        if other.axiom is not None and self.axiom is None:
            self.axiom = other.axiom
        self.ignore += other.ignore
        self.rules.extend(other.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        return f"RuleFile(axiom={self.axiom!r}, {len(self.rules)} rules)"


def parse_rule_line(line: str) -> Optional[Tuple[str, str, Optional[str], Optional[str]]]:
    """
    Parse a single rule line.

    Formats:
        key => production
        @name: key => production
        @name "description": key => production

    Returns: (key, production, name, description) or None if not a rule
    """
    line = line.strip()

    # Skip empty lines and comments
    if not line or line.startswith('#'):
        return None

    name = None
    description = None
    if line.startswith('@'):
        match_obj = re.match(r'@([\w-]+)\s+"([^"]+)":\s*(.+)', line)
        if match_obj:
            name = match_obj.group(1)
            description = match_obj.group(2)
            line = match_obj.group(3)
        else:
            match_obj = re.match(r'@([\w-]+):\s*(.+)', line)
            if match_obj:
                name = match_obj.group(1)
                line = match_obj.group(2)

    if '=>' not in line:
        return None

    key, production = line.split('=>', 1)
    key = key.strip()
    if not key:
        return None
    return key, production.strip(), name, description


def load_rules_from_dsl(
    text: str,
    base_path: Optional[Path] = None,
    _included_files: Optional[set] = None
) -> RuleFile:
    """
    Load a rule file from DSL text.

    Args:
        text: DSL text containing directives and rules
        base_path: Base path for resolving relative :include paths
        _included_files: Internal tracking for circular include detection

    Raises:
        RuleSyntaxError: on an unparseable line or a circular include
        FileNotFoundError: if an included file does not exist
    """
    result = RuleFile()

    if _included_files is None:
        _included_files = set()

    for lineno, line in enumerate(text.split('\n'), 1):
        line_stripped = line.strip()
        if not line_stripped or line_stripped.startswith('#'):
            continue

        directive = _DIRECTIVE.match(line_stripped)
        argument = (directive.group(2) or '').strip() if directive else ''
        if directive and directive.group(1) == 'axiom':
            result.axiom = argument
            continue

        if directive and directive.group(1) == 'ignore':
            result.ignore += argument
            continue

        if directive and directive.group(1) == 'include':
            include_path_str = argument
            if not include_path_str:
                raise RuleSyntaxError(":include needs a path", lineno)
            include_path = base_path / include_path_str if base_path else Path(include_path_str)

            abs_path = include_path.resolve()
            if abs_path in _included_files:
                raise RuleSyntaxError(f"Circular include detected: {include_path}", lineno)
            if not include_path.exists():
                raise FileNotFoundError(f"Include file not found: {include_path}")

            _included_files.add(abs_path)
            result.extend(load_rules_from_file(include_path, _included_files=_included_files))
            continue

        parsed = parse_rule_line(line_stripped)
        if parsed is None:
            raise RuleSyntaxError(f"Cannot parse rule: {line_stripped!r}", lineno)
        result.add_rule(*parsed)

    return result


def load_rules_from_file(
    path: Union[str, Path],
    _included_files: Optional[set] = None
) -> RuleFile:
    """
    Load a rule file from a .lsys/.rules or .json file.

    :include directives are resolved relative to the containing file.
    """
    path = Path(path)
    text = path.read_text()

    if path.suffix == '.json':
        return load_rules_from_json(text)

    if _included_files is None:
        _included_files = {path.resolve()}
    return load_rules_from_dsl(text, base_path=path.parent, _included_files=_included_files)


def load_rules_from_json(text: str) -> RuleFile:
    """
    Load a rule file from JSON text.

    Expected format:
        {
            "name": "plant",
            "description": "optional",
            "axiom": "FA",
            "ignore": "+-",
            "rules": [
                {"key": "A", "production": "AB", "name": "...", "description": "..."},
                or just ["A", "AB"]
            ]
        }
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise RuleSyntaxError(f"Invalid JSON: {e}") from e

    result = RuleFile(name=data.get('name'), description=data.get('description'))
    result.axiom = data.get('axiom')
    result.ignore = data.get('ignore', '')

    for rule in data.get('rules', []):
        if isinstance(rule, dict):
            if 'key' not in rule or 'production' not in rule:
                raise RuleSyntaxError(f"Rule needs 'key' and 'production': {rule!r}")
            result.add_rule(rule['key'], rule['production'],
                            rule.get('name'), rule.get('description'))
        else:
            key, production = rule[0], rule[1]
            result.add_rule(key, production)

    return result


# ============================================================
# Tracing
# ============================================================

class RewriteStep:
    """A single rewrite within a generation."""

    def __init__(self, position: int, rule: Rule, before: str, after: str):
        self.position = position
        self.rule = rule
        self.before = before
        self.after = after

    def __repr__(self) -> str:
        return f"{self.rule.label}@{self.position}: {self.before} → {self.after}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "position": self.position,
            "rule_key": self.rule.key,
            "rule_name": self.rule.name,
            "kind": self.rule.kind,
            "before": self.before,
            "after": self.after,
        }


class GrowthTrace:
    """
    A trace of the rewrites performed by one generation.

    Provides multiple formatting options:
        - Default repr: verbose multi-line format
        - format("compact"): single line showing rule chain
        - format("rules"): just the rules applied
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self, generation: int, initial: str):
        self.generation = generation
        self.initial = initial
        self.final: Optional[str] = None
        self.steps: List[RewriteStep] = []

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace in different styles.

        Args:
            style: One of "verbose", "compact", "rules"
        """
        if style == "compact":
            rules = [s.rule.label for s in self.steps]
            return f"{self.initial} --[{', '.join(rules)}]--> {self.final}"

        elif style == "rules":
            rules = [s.rule.label for s in self.steps]
            return " -> ".join(rules) if rules else "(no rules applied)"

        elif style == "verbose":
            return repr(self)

        raise ValueError(f"Unknown trace style: {style}. Valid options: verbose, compact, rules")

    def __repr__(self) -> str:
        lines = [f"Generation {self.generation}: {self.initial}"]
        for i, step in enumerate(self.steps, 1):
            if step.rule.description:
                lines.append(f"  {i}. {step} ({step.rule.description})")
            else:
                lines.append(f"  {i}. {step}")
        lines.append(f"Result: {self.final}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any rewriting was done."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        return {
            "generation": self.generation,
            "initial": self.initial,
            "final": self.final,
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }

    def rule_counts(self) -> Dict[str, int]:
        """Count how many times each rule was applied."""
        counts: Dict[str, int] = {}
        for step in self.steps:
            counts[step.rule.label] = counts.get(step.rule.label, 0) + 1
        return counts

    def rules_applied(self) -> List[str]:
        """Rules in order of application."""
        return [s.rule.label for s in self.steps]

    def summary(self) -> str:
        if not self.steps:
            return "No rewriting performed"
        counts = self.rule_counts()
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} rewrites using {len(counts)} unique rules. "
                f"Most used: {most_used[0]} ({most_used[1]}x)")


# ============================================================
# Grammar
# ============================================================

class Grammar:
    """
    An L-system: an axiom rewritten by an ordered set of rules.

    Example:
        from lgrammar import Grammar

        plant = Grammar("FA", ignore="+-")
        plant.add_rule("A", "[+FA][-FA]")
        plant.add_rule("F(x)", "F(x*1.2)")
        plant.grow()
        print(plant.current_string())

        # Or in one go
        Grammar.from_dsl('''
            :axiom A
            A => AB
        ''')(3)  # => "ABBB"
    """

    def __init__(self, axiom: str = "", rules: Optional[RulesType] = None, ignore: str = "",
                 precedence: str = INSERTION, unmatched_bracket: str = DROP,
                 strict: bool = False):
        """
        Initialize a Grammar.

        Args:
            axiom: Generation 0 string
            rules: Optional mapping or sequence of (key, production) pairs
            ignore: Symbols excluded from context comparison
            precedence: "insertion" (first registered rule wins) or
                "category" (context, then parametric, then simple)
            unmatched_bracket: "drop" or "keep" a ``]`` that closes nothing
                when stripping context
            strict: Reject rule keys that could never match
        """
        self._axiom = axiom
        self._current = axiom
        self._generation = 0
        self._rules = RuleSet()
        self._ignore = ""
        self._precedence = check_precedence(precedence)
        self._unmatched_bracket = check_bracket_policy(unmatched_bracket)
        self.strict = strict

        if rules:
            self.add_rules(rules)
        if ignore:
            self.add_ignore_symbols(ignore)

    # ============================================================
    # Configuration
    # ============================================================

    @property
    def axiom(self) -> str:
        return self._axiom

    @property
    def generation(self) -> int:
        """Number of generations grown so far."""
        return self._generation

    @property
    def ignore_symbols(self) -> str:
        return self._ignore

    @property
    def precedence(self) -> str:
        return self._precedence

    @property
    def unmatched_bracket(self) -> str:
        return self._unmatched_bracket

    @property
    def rules(self) -> List[Rule]:
        """All rules in registration order."""
        return list(self._rules)

    def set_axiom(self, axiom: str) -> 'Grammar':
        """Set the axiom. Ignored once the grammar has grown."""
        if self._generation == 0:
            self._axiom = axiom
        else:
            logger.debug("Ignoring axiom %r, grammar already at generation %d",
                         axiom, self._generation)
        return self

    def add_ignore_symbols(self, symbols: str) -> 'Grammar':
        """Add symbols to the ignore set. Duplicates are harmless."""
        self._ignore += symbols
        return self

    def set_precedence(self, precedence: str) -> 'Grammar':
        self._precedence = check_precedence(precedence)
        return self

    def set_unmatched_bracket(self, policy: str) -> 'Grammar':
        self._unmatched_bracket = check_bracket_policy(policy)
        return self

    # ============================================================
    # Rules
    # ============================================================

    def add_rule(self, key: str, production: str, name: Optional[str] = None,
                 description: Optional[str] = None) -> 'Grammar':
        """
        Register a rule. Rules may be added at any time, even after growth.

        Raises:
            DuplicateRuleKey: if a rule with this key already exists
            MalformedRuleKey: strict mode, if the key could never match
        """
        rule = parse_rule(key, production, name, description, strict=self.strict)
        self._rules.add(rule)
        logger.debug("Added %s rule %r => %r", rule.kind, key, production)
        return self

    def add_rules(self, rules: RulesType) -> 'Grammar':
        """Register several rules, from a mapping or from (key, production) pairs."""
        pairs = rules.items() if isinstance(rules, dict) else rules
        for key, production in pairs:
            self.add_rule(key, production)
        return self

    def remove_rule(self, key: str) -> Rule:
        """Remove and return the rule for ``key``. Raises KeyError if absent."""
        return self._rules.remove(key)

    def get_rule(self, key: str) -> Optional[Rule]:
        return self._rules.get(key)

    def clear(self) -> 'Grammar':
        """Remove all rules."""
        self._rules.clear()
        return self

    def load_file(self, path: Union[str, Path]) -> 'Grammar':
        """Load axiom, ignore set and rules from a file (.lsys, .rules or .json)."""
        return self._apply(load_rules_from_file(path))

    def load_dsl(self, text: str) -> 'Grammar':
        """Load axiom, ignore set and rules from DSL text."""
        return self._apply(load_rules_from_dsl(text))

    def load_json(self, text: str) -> 'Grammar':
        return self._apply(load_rules_from_json(text))

    def _apply(self, rule_file: RuleFile) -> 'Grammar':
        """
        Merge a loaded rule file. Either everything is applied or, if any
        rule is rejected, nothing is.
        """
        staged = self._rules.copy()
        for entry in rule_file.rules:
            staged.add(parse_rule(entry["key"], entry["production"], entry.get("name"),
                                  entry.get("description"), strict=self.strict))

        if rule_file.axiom is not None:
            self.set_axiom(rule_file.axiom)
        if rule_file.ignore:
            self.add_ignore_symbols(rule_file.ignore)
        self._rules = staged
        logger.debug("Loaded %d rules", len(rule_file.rules))
        return self

    # ============================================================
    # Derivation
    # ============================================================

    def current_string(self) -> str:
        """The current generation's string; the axiom before any growth."""
        if self._generation == 0:
            self._current = self._axiom
        return self._current

    def grow(self, trace: bool = False) -> Optional[GrowthTrace]:
        """
        Grow one generation.

        The new string is built in full before it replaces the current
        one, so an error midway (an InvalidExpression from a parametric
        rule) leaves the grammar at its previous generation.

        Args:
            trace: If True, return a GrowthTrace of the rewrites

        Returns:
            GrowthTrace if trace=True, otherwise None

        Raises:
            InvalidExpression: if a parametric production does not evaluate
        """
        text = self.current_string()
        rules = self._rules.ordered(self._precedence)
        trace_obj = GrowthTrace(self._generation + 1, text) if trace else None

        output = []
        rewrites = 0
        position = 0
        while position < len(text):
            result = try_match(text, position, rules, self._ignore, self._unmatched_bracket)
            if result is None:
                output.append(text[position])
                position += 1
                continue
            if trace_obj is not None:
                trace_obj.add_step(RewriteStep(
                    position=position,
                    rule=result.rule,
                    before=text[position:position + result.consumed],
                    after=result.production,
                ))
            output.append(result.production)
            rewrites += 1
            position += result.consumed

        self._current = ''.join(output)
        self._generation += 1
        logger.debug("Generation %d: %d -> %d symbols, %d rewrites",
                     self._generation, len(text), len(self._current), rewrites)

        if trace_obj is not None:
            trace_obj.final = self._current
            return trace_obj
        return None

    def reset(self) -> 'Grammar':
        """Return to generation 0. Rules, ignore set and axiom are kept."""
        self._generation = 0
        self._current = self._axiom
        return self

    def rules_matching(self, position: int, text: Optional[str] = None) -> List[MatchResult]:
        """
        Find every rule that applies at a position, ignoring precedence.

        Useful for debugging why a symbol was (or was not) rewritten.

        Args:
            position: Index into the string
            text: String to test, defaults to the current string
        """
        if text is None:
            text = self.current_string()
        return all_matches(text, position, self._rules, self._ignore, self._unmatched_bracket)

    def modules(self) -> Iterator[Module]:
        """Iterate the current string symbol by symbol with parameters attached."""
        return iter_modules(self.current_string())

    # ============================================================
    # Export
    # ============================================================

    def to_dsl(self, name: Optional[str] = None) -> str:
        """Export axiom, ignore set and rules as DSL text."""
        lines = []
        if name:
            lines.append(f"# {name}")
            lines.append("")
        lines.append(f":axiom {self._axiom}")
        if self._ignore:
            lines.append(f":ignore {self._ignore}")
        lines.append("")

        for rule in self._rules:
            if rule.name:
                name_part = f"@{rule.name}"
                if rule.description:
                    name_part += f" \"{rule.description}\""
                name_part += ": "
            else:
                name_part = ""
            lines.append(f"{name_part}{rule.key} => {rule.production}")

        return "\n".join(lines)

    def to_dict(self) -> Dict:
        """Export to a dictionary compatible with load_rules_from_json()."""
        return {
            "axiom": self._axiom,
            "ignore": self._ignore,
            "rules": [rule.to_dict() for rule in self._rules],
        }

    def to_json(self, name: Optional[str] = None, description: Optional[str] = None,
                indent: Optional[int] = 2) -> str:
        result = self.to_dict()
        if name:
            result["name"] = name
        if description:
            result["description"] = description
        return json.dumps(result, indent=indent)

    # ============================================================
    # Protocols
    # ============================================================

    def __str__(self) -> str:
        return self.current_string()

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return (f"Grammar(axiom={self._axiom!r}, {len(self._rules)} rules, "
                f"generation={self._generation})")

    def __call__(self, generations: int = 1) -> str:
        """Grow ``generations`` times and return the current string."""
        for _ in range(generations):
            self.grow()
        return self.current_string()

    def __iter__(self) -> Iterator[Rule]:
        """Iterate over rules in registration order."""
        return iter(self._rules)

    def __contains__(self, key: str) -> bool:
        return key in self._rules

    def __getitem__(self, key: str) -> Rule:
        return self._rules[key]

    def copy(self) -> 'Grammar':
        """Copy rules, ignore set, settings and axiom, at generation 0."""
        new_grammar = Grammar(self._axiom, ignore=self._ignore, precedence=self._precedence,
                              unmatched_bracket=self._unmatched_bracket, strict=self.strict)
        new_grammar._rules = self._rules.copy()
        return new_grammar

    # Class method constructors for fluent creation
    @classmethod
    def from_dsl(cls, text: str, **kwargs) -> 'Grammar':
        """Create a grammar from DSL text. Keyword arguments go to the constructor."""
        return cls(**kwargs).load_dsl(text)

    @classmethod
    def from_file(cls, path: Union[str, Path], **kwargs) -> 'Grammar':
        """Create a grammar from a rules file."""
        return cls(**kwargs).load_file(path)

    @classmethod
    def from_json(cls, text: str, **kwargs) -> 'Grammar':
        return cls(**kwargs).load_json(text)
