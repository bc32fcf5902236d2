#!/usr/bin/env python3
"""
lgrammar Command-Line Interface

Provides one-shot derivation, an interactive REPL and script execution.

Usage:
    lgrammar -a A -r "A=>AB" -n 3          # Grow three generations, print result
    lgrammar -f plant.lsys -n 5 --all      # Print every generation
    lgrammar -f plant.lsys                 # REPL with rules preloaded
    lgrammar script.lgs                    # Run script
    echo ":grow 3" | lgrammar -f plant.lsys  # Filter mode

Script Format (.lgs files):
    :load plant.lsys
    :axiom FA
    A => AB
    :grow 3
    :show

REPL Commands:
    :help              Show help
    :axiom TEXT        Set the axiom (only before growth)
    :rule KEY => PROD  Add a rule
    :ignore TEXT       Add symbols to the ignore set
    :load FILE         Load rules from file
    :rules             List rules
    :clear             Clear all rules
    :grow [N]          Grow N generations (default 1)
    :show              Show the current string
    :modules           Show the current string symbol by symbol
    :reset             Back to generation 0
    :precedence NAME   Set precedence (insertion, category)
    :brackets NAME     Set unmatched bracket policy (drop, keep)
    :trace on|off      Toggle tracing
    :quit              Exit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .context import BRACKET_POLICIES
from .errors import LGrammarError
from .evaluator import format_number
from .grammar import Grammar, parse_rule_line
from .modules import Module
from .rules import PRECEDENCE_POLICIES

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

logger = logging.getLogger(__name__)

# Errors reported to the user instead of ending the session
USER_ERRORS = (LGrammarError, OSError, ValueError, KeyError)


def format_module(module: Module) -> str:
    """One line per module: the symbol, then its parameters if any."""
    if not module.params:
        return module.symbol
    return f"{module.symbol}\t{', '.join(format_number(p) for p in module.params)}"


class LGrammarCompleter:
    """Tab completer for the lgrammar REPL."""

    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":axiom", ":rule", ":ignore", ":load", ":rules", ":clear",
        ":grow", ":show", ":modules", ":reset",
        ":precedence", ":brackets", ":trace",
    ]

    TRACE_OPTIONS = ["on", "off"]

    def __init__(self, repl: 'LGrammarREPL'):
        self.repl = repl

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)

        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> list:
        """Get list of matches for the current input."""
        line = line.lstrip()

        if line.startswith(":precedence "):
            return [p for p in PRECEDENCE_POLICIES if p.startswith(text)]

        if line.startswith(":brackets "):
            return [p for p in BRACKET_POLICIES if p.startswith(text)]

        if line.startswith(":trace "):
            return [t for t in self.TRACE_OPTIONS if t.startswith(text)]

        if line.startswith(":load "):
            return self._complete_path(text)

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        # Rule names, for reference
        if text.startswith("@"):
            names = ["@" + rule.name for rule in self.repl.grammar if rule.name]
            return [n for n in names if n.startswith(text)]

        return []

    def _complete_path(self, text: str) -> list:
        """Complete file paths."""
        import glob

        if not text:
            text = "./"

        matches = []
        for path in glob.glob(text + "*"):
            if Path(path).is_dir():
                matches.append(path + "/")
            else:
                matches.append(path)
        return matches


class LGrammarREPL:
    """Interactive REPL for lgrammar."""

    def __init__(self, grammar: Optional[Grammar] = None):
        self.grammar = grammar if grammar is not None else Grammar()
        self.trace = False
        self.running = True

        if HAS_READLINE:
            self.history_file = Path.home() / ".lgrammar_history"
            try:
                readline.read_history_file(self.history_file)
            except (FileNotFoundError, OSError):
                pass
            readline.set_history_length(1000)

            self.completer = LGrammarCompleter(self)
            readline.set_completer(self.completer.complete)
            readline.parse_and_bind("tab: complete")
            readline.set_completer_delims(" \t\n")

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError as e:
                logger.debug("Could not save history: %s", e)

    def grow(self, generations: int) -> str:
        """Grow and return the current string, with traces if tracing."""
        outputs = []
        for _ in range(generations):
            trace = self.grammar.grow(trace=self.trace)
            if trace is not None:
                outputs.append(f"[{trace.generation}] {trace.format('rules')}")
        outputs.append(self.grammar.current_string())
        return "\n".join(outputs)

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        try:
            return self._dispatch(cmd, arg)
        except USER_ERRORS as e:
            return f"Error: {e}"

    def _dispatch(self, cmd: str, arg: str) -> Optional[str]:
        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "axiom":
            if self.grammar.generation > 0:
                return "Grammar has already grown; use :reset first"
            self.grammar.set_axiom(arg)
            return f"Axiom: {arg}"

        elif cmd == "rule":
            parsed = parse_rule_line(arg)
            if parsed is None:
                return "Usage: :rule KEY => PRODUCTION"
            self.grammar.add_rule(*parsed)
            return f"Added rule {parsed[0]}"

        elif cmd == "ignore":
            if not arg:
                return f"Ignoring: {self.grammar.ignore_symbols!r}"
            self.grammar.add_ignore_symbols(arg)
            return f"Ignoring: {self.grammar.ignore_symbols!r}"

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILENAME"
            before = len(self.grammar)
            self.grammar.load_file(Path(arg))
            return f"Loaded {len(self.grammar) - before} rules from {arg}"

        elif cmd == "rules":
            if not len(self.grammar):
                return "No rules loaded"
            return self.grammar.to_dsl()

        elif cmd == "clear":
            self.grammar.clear()
            return "Cleared all rules"

        elif cmd == "grow":
            generations = int(arg) if arg else 1
            if generations < 0:
                return "Usage: :grow [N] with N >= 0"
            return self.grow(generations)

        elif cmd == "show":
            return f"[{self.grammar.generation}] {self.grammar.current_string()}"

        elif cmd == "modules":
            return "\n".join(format_module(m) for m in self.grammar.modules())

        elif cmd == "reset":
            self.grammar.reset()
            return "Back to generation 0"

        elif cmd == "precedence":
            if not arg:
                return f"Precedence: {self.grammar.precedence}"
            self.grammar.set_precedence(arg.lower())
            return f"Precedence set to: {self.grammar.precedence}"

        elif cmd == "brackets":
            if not arg:
                return f"Unmatched brackets: {self.grammar.unmatched_bracket}"
            self.grammar.set_unmatched_bracket(arg.lower())
            return f"Unmatched brackets: {self.grammar.unmatched_bracket}"

        elif cmd == "trace":
            if arg.lower() in ("on", "true", "1"):
                self.trace = True
            elif arg.lower() in ("off", "false", "0"):
                self.trace = False
            else:
                self.trace = not self.trace
            return f"Tracing {'enabled' if self.trace else 'disabled'}"

        return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """lgrammar REPL Commands:
  :help              Show this help
  :axiom TEXT        Set the axiom (only before growth)
  :rule KEY => PROD  Add a rule
  :ignore TEXT       Add symbols to the ignore set
  :load FILE         Load rules from file (.lsys, .rules or .json)
  :rules             List all rules
  :clear             Clear all rules
  :grow [N]          Grow N generations (default 1)
  :show              Show the current string
  :modules           Show the current string symbol by symbol
  :reset             Back to generation 0
  :precedence NAME   Set precedence (insertion, category)
  :brackets NAME     Set unmatched bracket policy (drop, keep)
  :trace on|off      Toggle tracing
  :quit              Exit

Syntax:
  KEY => PRODUCTION                 Define a rule
  @name: KEY => PRODUCTION          Named rule
  TEXT                              Rewrite TEXT once with the current rules
"""

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        if not line or line.startswith("#"):
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        if "=>" in line:
            parsed = parse_rule_line(line)
            if parsed is None:
                return "Error: Failed to parse rule"
            try:
                self.grammar.add_rule(*parsed)
            except USER_ERRORS as e:
                return f"Error: {e}"
            return f"Added rule {parsed[0]}"

        # Rewrite the text once without touching the grammar's own state
        try:
            scratch = self.grammar.copy()
            scratch.set_axiom(line)
            return scratch(1)
        except USER_ERRORS as e:
            return f"Error: {e}"

    def run(self):
        """Run the REPL loop."""
        print(f"lgrammar {__version__} - L-system grammars")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                line = input(f"lgrammar[{self.grammar.generation}]> ")
                result = self.process_line(line)
                if result:
                    print(result)
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs lgrammar scripts."""

    def __init__(self, grammar: Optional[Grammar] = None):
        self.repl = LGrammarREPL(grammar)

    def run_lines(self, lines: List[str], source: str = "<stdin>", quiet: bool = False) -> int:
        """
        Run script lines. Command confirmations are not printed; output
        of :grow, :show, :modules, :rules and rewritten text is.

        Returns:
            Exit code (0 for success)
        """
        silent = ("axiom", "ignore", "load", "clear", "reset", "precedence", "brackets", "trace")
        for lineno, line in enumerate(lines, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            result = self.repl.process_line(line)
            if result and result.startswith(("Error", "Unknown", "Usage", "Grammar has")):
                print(f"{source}:{lineno}: {result}", file=sys.stderr)
                return 1
            if not self.repl.running:
                break
            if result is None or quiet or "=>" in line:
                continue
            if line.startswith(":") and line[1:].split(None, 1)[0].lower() in silent:
                continue
            print(result)

        return 0

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """Run a script file."""
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1
        return self.run_lines(lines, source=str(path), quiet=quiet)

    def run_stdin(self, quiet: bool = False) -> int:
        """Read script lines from stdin."""
        return self.run_lines(sys.stdin.read().splitlines(), quiet=quiet)


def run_derivation(grammar: Grammar, generations: int, show_all: bool = False,
                   trace: bool = False, modules: bool = False) -> int:
    """Grow ``generations`` times and print the result. Returns an exit code."""
    if show_all:
        print(f"0: {grammar.current_string()}")
    for _ in range(generations):
        trace_obj = grammar.grow(trace=trace)
        if trace_obj is not None:
            print(trace_obj.format("verbose"), file=sys.stderr)
        if show_all:
            print(f"{grammar.generation}: {grammar.current_string()}")

    if modules:
        for module in grammar.modules():
            print(format_module(module))
    elif not show_all:
        print(grammar.current_string())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lgrammar",
        description="lgrammar - grow L-system strings from an axiom and rewriting rules",
        epilog="Examples:\n"
               "  lgrammar -a A -r 'A=>AB' -n 3          Grow three generations\n"
               "  lgrammar -f plant.lsys -n 5 --all      Print every generation\n"
               "  lgrammar -f plant.lsys                 REPL with rules\n"
               "  lgrammar script.lgs                    Run script\n"
               "  echo ':grow 3' | lgrammar -f plant.lsys  Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run"
    )

    parser.add_argument(
        "-a", "--axiom",
        help="Axiom (generation 0 string)"
    )

    parser.add_argument(
        "-r", "--rule",
        action="append",
        default=[],
        help="Rule as KEY=>PRODUCTION (can be specified multiple times)"
    )

    parser.add_argument(
        "-f", "--file",
        action="append",
        default=[],
        help="Load rules from file (can be specified multiple times)"
    )

    parser.add_argument(
        "-i", "--ignore",
        default="",
        help="Symbols ignored when matching context"
    )

    parser.add_argument(
        "-n", "--generations",
        type=int,
        help="Grow this many generations and print the result (default: 1 with --axiom)"
    )

    parser.add_argument(
        "--precedence",
        default="insertion",
        choices=list(PRECEDENCE_POLICIES),
        help="Rule precedence"
    )

    parser.add_argument(
        "--unmatched-bracket",
        default="drop",
        choices=list(BRACKET_POLICIES),
        help="What context stripping does with a ']' that closes nothing"
    )

    parser.add_argument(
        "--strict",
        action="store_true",
        help="Reject rule keys that can never match"
    )

    parser.add_argument(
        "-t", "--trace",
        action="store_true",
        help="Enable tracing"
    )

    parser.add_argument(
        "--all",
        action="store_true",
        help="Print every generation"
    )

    parser.add_argument(
        "-m", "--modules",
        action="store_true",
        help="Print the result symbol by symbol with parameters"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (suppress non-essential output)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log more (-v info, -vv debug)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        grammar = Grammar(
            ignore=args.ignore,
            precedence=args.precedence,
            unmatched_bracket=args.unmatched_bracket,
            strict=args.strict,
        )
        for rules_file in args.file:
            grammar.load_file(Path(rules_file))
            if not args.quiet:
                print(f"Loaded rules from {rules_file}", file=sys.stderr)
        for rule_text in args.rule:
            parsed = parse_rule_line(rule_text)
            if parsed is None:
                print(f"Error: Cannot parse rule: {rule_text!r}", file=sys.stderr)
                sys.exit(1)
            grammar.add_rule(*parsed)
        if args.axiom is not None:
            grammar.set_axiom(args.axiom)

        if args.script:
            runner = ScriptRunner(grammar)
            runner.repl.trace = args.trace
            sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

        elif args.axiom is not None or args.generations is not None:
            generations = args.generations if args.generations is not None else 1
            if generations < 0:
                print("Error: --generations must be >= 0", file=sys.stderr)
                sys.exit(1)
            sys.exit(run_derivation(grammar, generations, show_all=args.all,
                                    trace=args.trace, modules=args.modules))

        elif not sys.stdin.isatty():
            runner = ScriptRunner(grammar)
            runner.repl.trace = args.trace
            sys.exit(runner.run_stdin(quiet=args.quiet))

        else:
            repl = LGrammarREPL(grammar)
            repl.trace = args.trace
            repl.run()

    except USER_ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
