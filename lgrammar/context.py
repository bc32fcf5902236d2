"""
Context stripping for context-sensitive rules.

Context is compared against the structural path through a branching
string, not against its side branches. Stripping removes ignored symbols
first, then every fully bracketed span:

    strip_context("ABC[DE]F")        -> "ABCF"
    strip_context("ABC[DE][SG[HI]L]M") -> "ABCM"
    strip_context("A+B-C", "+-")     -> "ABC"

A ``]`` with no open ``[`` before it is either dropped (the default,
which keeps the result free of brackets) or kept literally.
"""

from typing import Iterable

DROP = "drop"
KEEP = "keep"

BRACKET_POLICIES = (DROP, KEEP)


def check_bracket_policy(policy: str) -> str:
    if policy not in BRACKET_POLICIES:
        raise ValueError(f"Unknown unmatched bracket policy: {policy}. "
                         f"Valid options: {', '.join(BRACKET_POLICIES)}")
    return policy


def strip_context(text: str, ignore: Iterable[str] = "", unmatched_bracket: str = DROP) -> str:
    """
    Reduce ``text`` to the symbols relevant for context matching.

    Args:
        text: The substring on one side of the symbol being matched
        ignore: Symbols excluded from context comparison
        unmatched_bracket: DROP or KEEP, what to do with a ``]`` that
            closes nothing

    Returns:
        ``text`` without ignored symbols and without bracketed spans
    """
    check_bracket_policy(unmatched_bracket)
    ignored = set(ignore)

    output = []
    rollback = []
    for symbol in text:
        if symbol in ignored:
            continue
        if symbol == '[':
            rollback.append(len(output))
        elif symbol == ']':
            if rollback:
                del output[rollback.pop():]
            elif unmatched_bracket == KEEP:
                output.append(symbol)
        else:
            output.append(symbol)
    return ''.join(output)
