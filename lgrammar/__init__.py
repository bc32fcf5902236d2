"""
lgrammar - L-system grammars with context-sensitive and parametric rules

Grows branching structures by rewriting a symbol string with production
rules, one generation per pass. The derived string is meant for a turtle
interpreter; lgrammar only produces it.

Quick Start:
    from lgrammar import Grammar

    plant = Grammar("A")
    plant.add_rule("A", "AB")
    plant(2)  # => "ABB"

Rule Syntax:
    A           simple: rewrite every A
    AB<C>B      context-sensitive: rewrite C only after AB and before B,
                ignoring bracketed side branches and ignored symbols
    F(a,b)      parametric: match F(1,2), bind a=1, b=2, substitute
                into the production and evaluate its (...) clauses

Example Rules File (plant.lsys):
    :axiom FA
    :ignore +-&^/
    @branch: A => [&FA]/[&FA]
    @thicken: F(x) => F(x*1.2)
    F => F(.95)
"""

__version__ = "0.1.0"

from .errors import (
    LGrammarError,
    DuplicateRuleKey,
    InvalidExpression,
    MalformedRuleKey,
    MalformedParametricRule,
    RuleSyntaxError,
)

from .rules import (
    classify_rule,
    parse_rule,
    Rule,
    SimpleRule,
    ContextRule,
    ParametricRule,
    RuleSet,
    CONTEXT,
    PARAMETRIC,
    SIMPLE,
    INSERTION,
    CATEGORY,
)

from .context import strip_context, DROP, KEEP

from .evaluator import evaluate, evaluate_number, evaluate_clauses, format_number

from .matcher import MatchResult, try_match, all_matches

from .modules import Module, iter_modules, parse_modules

from .grammar import (
    Grammar,
    GrowthTrace,
    RewriteStep,
    RuleFile,
    parse_rule_line,
    load_rules_from_dsl,
    load_rules_from_file,
    load_rules_from_json,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Errors
    "LGrammarError",
    "DuplicateRuleKey",
    "InvalidExpression",
    "MalformedRuleKey",
    "MalformedParametricRule",
    "RuleSyntaxError",
    # Rules
    "classify_rule",
    "parse_rule",
    "Rule",
    "SimpleRule",
    "ContextRule",
    "ParametricRule",
    "RuleSet",
    "CONTEXT",
    "PARAMETRIC",
    "SIMPLE",
    "INSERTION",
    "CATEGORY",
    # Context stripping
    "strip_context",
    "DROP",
    "KEEP",
    # Arithmetic
    "evaluate",
    "evaluate_number",
    "evaluate_clauses",
    "format_number",
    # Matching
    "MatchResult",
    "try_match",
    "all_matches",
    # Modules
    "Module",
    "iter_modules",
    "parse_modules",
    # Grammar
    "Grammar",
    "GrowthTrace",
    "RewriteStep",
    # Rule files
    "RuleFile",
    "parse_rule_line",
    "load_rules_from_dsl",
    "load_rules_from_file",
    "load_rules_from_json",
]
