"""Exception hierarchy for lgrammar."""


class LGrammarError(Exception):
    """Base exception for all lgrammar errors."""


class DuplicateRuleKey(LGrammarError, KeyError):
    """Raised when a rule is registered under a key that already exists."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Rule already defined for key {key!r}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class InvalidExpression(LGrammarError, ValueError):
    """Raised when arithmetic text cannot be evaluated."""

    def __init__(self, expression: str, reason: str = "not a valid arithmetic expression"):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Cannot evaluate {expression!r}: {reason}")


class MalformedRuleKey(LGrammarError, ValueError):
    """Raised in strict mode for a rule key that could never match."""


class MalformedParametricRule(MalformedRuleKey):
    """Raised in strict mode for a parametric key with bad parameter names."""


class RuleSyntaxError(LGrammarError, ValueError):
    """Raised when a rules file line cannot be parsed."""

    def __init__(self, message: str, lineno: int = 0):
        self.lineno = lineno
        if lineno:
            message = f"line {lineno}: {message}"
        super().__init__(message)
