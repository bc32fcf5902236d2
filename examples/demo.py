#!/usr/bin/env python3
"""
lgrammar Feature Demonstration

This script demonstrates the major features of the lgrammar library.
"""

from pathlib import Path
from lgrammar import Grammar, strip_context, InvalidExpression


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_basic_usage():
    """Demonstrate simple rewriting."""
    section("Simple Rules")

    algae = Grammar("A", rules={"A": "AB", "B": "A"})
    print(f"  Axiom: {algae}")
    for _ in range(5):
        algae.grow()
        print(f"  Generation {algae.generation}: {algae}")


def demo_context():
    """Demonstrate context-sensitive rules and context stripping."""
    section("Context-Sensitive Rules")

    grammar = Grammar("ABCBACA")
    grammar.add_rule("AB<C>B", "CA")
    print(f"  ABCBACA with AB<C>B => CA: {grammar(1)}")

    print("\n  Context stripping ignores side branches:")
    for text in ["ABC[DE]F", "ABC[DE][SG[HI]L]M"]:
        print(f"    {text} -> {strip_context(text)}")
    print(f"    A+B-C (ignoring +-) -> {strip_context('A+B-C', '+-')}")


def demo_parametric():
    """Demonstrate parametric rules."""
    section("Parametric Rules")

    grammar = Grammar.from_dsl('''
        :axiom FA(1)F(1,2)A
        A(x) => A(x*.65)
        F(a,b) => F(a*.95,b/2)
    ''')
    print(f"  Axiom: {grammar}")
    for _ in range(3):
        grammar.grow()
        print(f"  Generation {grammar.generation}: {grammar}")

    print("\n  Modules of the last generation:")
    for module in grammar.modules():
        print(f"    {module.symbol} {module.params}")

    broken = Grammar("A(1)", rules={"A(x)": "A(y*2)"})
    try:
        broken.grow()
    except InvalidExpression as e:
        print(f"\n  Unsubstituted variable: {e}")
        print(f"  Grammar stays at generation {broken.generation}: {broken}")


def demo_tracing():
    """Demonstrate tracing."""
    section("Tracing")

    grammar = Grammar.from_dsl('''
        :axiom FA
        @branch: A => [+FA][-FA]
        @grow: F => FF
    ''')
    grammar.grow()
    trace = grammar.grow(trace=True)

    print(f"  Rules: {trace.format('rules')}")
    print(f"  Summary: {trace.summary()}")


def demo_file_loading():
    """Demonstrate loading grammars from files."""
    section("Loading Grammars from Files")

    examples_dir = Path(__file__).parent
    plant = Grammar.from_file(examples_dir / "plant.lsys", unmatched_bracket="keep")

    print(f"  Loaded {len(plant)} rules from plant.lsys")
    for rule in plant:
        print(f"    {rule.kind:<10} {rule.key} => {rule.production}")

    plant(3)
    print(f"\n  After 3 generations: {len(plant.current_string())} symbols")


def main():
    """Run all demonstrations."""
    print("lgrammar - L-system grammars")
    print("Feature Demonstration")

    demo_basic_usage()
    demo_context()
    demo_parametric()
    demo_tracing()
    demo_file_loading()

    print()


if __name__ == "__main__":
    main()
