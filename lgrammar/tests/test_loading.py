"""Tests for rule files: DSL, :include, JSON and export."""

import json
from pathlib import Path

import pytest
from lgrammar import Grammar, MalformedRuleKey, RuleSyntaxError
from lgrammar.grammar import (
    parse_rule_line, load_rules_from_dsl, load_rules_from_file, load_rules_from_json,
)


class TestParseRuleLine:
    """Tests for parse_rule_line."""

    def test_plain(self):
        assert parse_rule_line("A => AB") == ("A", "AB", None, None)

    def test_named(self):
        assert parse_rule_line("@grow: F(x) => F(x*1.2)") == ("F(x)", "F(x*1.2)", "grow", None)

    def test_named_with_description(self):
        """Name and quoted description precede the rule."""
        parsed = parse_rule_line('@tip "Curl the leaf": ^^^<L>] => q')
        assert parsed == ("^^^<L>]", "q", "tip", "Curl the leaf")

    def test_empty_production(self):
        """An empty production is allowed."""
        assert parse_rule_line("B =>") == ("B", "", None, None)

    def test_not_a_rule(self):
        """Comments, blanks and lines without => are not rules."""
        assert parse_rule_line("# A => B") is None
        assert parse_rule_line("   ") is None
        assert parse_rule_line("A -> B") is None
        assert parse_rule_line(" => B") is None

    def test_production_may_contain_arrow(self):
        """Only the first => separates key and production."""
        assert parse_rule_line("A => B=>C") == ("A", "B=>C", None, None)


class TestDSLLoading:
    """Tests for loading DSL text."""

    def test_directives(self):
        """:axiom and :ignore are read, rules kept in order."""
        rule_file = load_rules_from_dsl('''
            # A comment
            :axiom FA
            :ignore +-
            :ignore &^

            @branch: A => [+FA][-FA]
            F => FF
        ''')
        assert rule_file.axiom == "FA"
        assert rule_file.ignore == "+-&^"
        assert [r["key"] for r in rule_file.rules] == ["A", "F"]
        assert rule_file.rules[0]["name"] == "branch"

    def test_missing_axiom(self):
        """A file without :axiom leaves the axiom unset."""
        assert load_rules_from_dsl("A => B").axiom is None

    def test_bad_line(self):
        """An unparseable line reports its line number."""
        with pytest.raises(RuleSyntaxError) as exc_info:
            load_rules_from_dsl("A => B\nnonsense\n")
        assert exc_info.value.lineno == 2
        assert "line 2" in str(exc_info.value)

    def test_grammar_from_dsl(self):
        """Grammar.from_dsl builds a ready grammar."""
        grammar = Grammar.from_dsl('''
            :axiom A
            A => AB
        ''')
        assert grammar(3) == "ABBB"

    def test_from_dsl_passes_options(self):
        """Constructor options can be given alongside DSL text."""
        grammar = Grammar.from_dsl(":axiom ]AB\n]<A>B => X", unmatched_bracket="keep")
        assert grammar(1) == "]XB"

    def test_duplicate_in_file(self):
        """Duplicate keys in a file are rejected."""
        with pytest.raises(KeyError):
            Grammar.from_dsl("A => B\nA => C")


class TestAtomicLoading:
    """Tests for loads that fail partway through."""

    def test_duplicate_leaves_grammar_unchanged(self):
        """A duplicate key in loaded text changes nothing."""
        grammar = Grammar("A", rules={"B": "C"})
        with pytest.raises(KeyError):
            grammar.load_dsl(":axiom Z\n:ignore +\nA => AB\nB => X\n")
        assert (len(grammar), grammar.ignore_symbols, grammar.axiom) == (1, "", "A")
        assert grammar["B"].production == "C"

    def test_duplicate_within_file(self):
        """Keys repeated inside one file are rejected before anything is applied."""
        grammar = Grammar("A")
        with pytest.raises(KeyError):
            grammar.load_json(json.dumps({"axiom": "Z", "rules": [["A", "B"], ["A", "C"]]}))
        assert len(grammar) == 0
        assert grammar.axiom == "A"

    def test_strict_rejection_leaves_grammar_unchanged(self, tmp_path):
        path = tmp_path / "bad.lsys"
        path.write_text(":axiom Z\nA => AB\nAB => C\n")
        grammar = Grammar("A", strict=True)
        with pytest.raises(MalformedRuleKey):
            grammar.load_file(path)
        assert len(grammar) == 0
        assert str(grammar) == "A"

    def test_successful_load_applies_everything(self):
        grammar = Grammar("A", rules={"B": "C"})
        grammar.load_dsl(":axiom Z\n:ignore +\nA => AB\n")
        assert [r.key for r in grammar] == ["B", "A"]
        assert grammar.ignore_symbols == "+"
        assert grammar.axiom == "Z"


class TestIncludes:
    """Tests for :include directives."""

    def test_include(self, tmp_path):
        """Included rules come first, at the point of the directive."""
        (tmp_path / "base.lsys").write_text("@grow: F => FF\n")
        (tmp_path / "main.lsys").write_text(":axiom FA\n:include base.lsys\nA => [+FA]\n")

        grammar = Grammar.from_file(tmp_path / "main.lsys")
        assert [r.key for r in grammar] == ["F", "A"]
        assert grammar.axiom == "FA"

    def test_nested_include(self, tmp_path):
        (tmp_path / "a.lsys").write_text("A => B\n")
        (tmp_path / "b.lsys").write_text(":include a.lsys\nB => C\n")
        (tmp_path / "c.lsys").write_text(":include b.lsys\nC => A\n")

        grammar = Grammar.from_file(tmp_path / "c.lsys")
        assert len(grammar) == 3

    def test_including_axiom_wins(self, tmp_path):
        """The including file's axiom takes precedence."""
        (tmp_path / "base.lsys").write_text(":axiom B\n:ignore +\n")
        (tmp_path / "main.lsys").write_text(":axiom A\n:include base.lsys\n")

        rule_file = load_rules_from_file(tmp_path / "main.lsys")
        assert rule_file.axiom == "A"
        assert rule_file.ignore == "+"

    def test_included_axiom_used_when_missing(self, tmp_path):
        (tmp_path / "base.lsys").write_text(":axiom B\n")
        (tmp_path / "main.lsys").write_text(":include base.lsys\n")

        assert load_rules_from_file(tmp_path / "main.lsys").axiom == "B"

    def test_include_subdirectory(self, tmp_path):
        """Include paths are relative to the including file."""
        (tmp_path / "lib").mkdir()
        (tmp_path / "lib" / "base.lsys").write_text("A => B\n")
        (tmp_path / "main.lsys").write_text(":include lib/base.lsys\n")

        assert len(load_rules_from_file(tmp_path / "main.lsys")) == 1

    def test_circular_include(self, tmp_path):
        """Files including each other are detected."""
        (tmp_path / "a.lsys").write_text(":include b.lsys\n")
        (tmp_path / "b.lsys").write_text(":include a.lsys\n")

        with pytest.raises(RuleSyntaxError, match="Circular include"):
            load_rules_from_file(tmp_path / "a.lsys")

    def test_self_include(self, tmp_path):
        (tmp_path / "a.lsys").write_text(":include a.lsys\n")

        with pytest.raises(RuleSyntaxError, match="Circular include"):
            load_rules_from_file(tmp_path / "a.lsys")

    def test_missing_include(self, tmp_path):
        (tmp_path / "main.lsys").write_text(":include nowhere.lsys\n")

        with pytest.raises(FileNotFoundError):
            load_rules_from_file(tmp_path / "main.lsys")

    def test_include_without_path(self):
        with pytest.raises(RuleSyntaxError):
            load_rules_from_dsl(":include\n")

    def test_include_json(self, tmp_path):
        """A DSL file can include a JSON rule file."""
        (tmp_path / "base.json").write_text(json.dumps({"rules": [["A", "B"]]}))
        (tmp_path / "main.lsys").write_text(":include base.json\nB => C\n")

        assert len(load_rules_from_file(tmp_path / "main.lsys")) == 2


class TestJSONLoading:
    """Tests for the JSON rule format."""

    def test_load(self):
        rule_file = load_rules_from_json(json.dumps({
            "name": "plant",
            "axiom": "FA",
            "ignore": "+-",
            "rules": [
                {"key": "A", "production": "[+FA]", "name": "branch"},
                ["F", "FF"],
            ],
        }))
        assert rule_file.name == "plant"
        assert rule_file.axiom == "FA"
        assert rule_file.ignore == "+-"
        assert [r["key"] for r in rule_file.rules] == ["A", "F"]

    def test_invalid_json(self):
        with pytest.raises(RuleSyntaxError):
            load_rules_from_json("{not json")

    def test_rule_missing_production(self):
        with pytest.raises(RuleSyntaxError):
            load_rules_from_json(json.dumps({"rules": [{"key": "A"}]}))

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "algae.json"
        path.write_text(json.dumps({"axiom": "A", "rules": [["A", "AB"], ["B", "A"]]}))

        grammar = Grammar.from_file(path)
        assert grammar(2) == "ABA"


class TestExport:
    """Tests for exporting grammars."""

    def make_grammar(self):
        grammar = Grammar("FA", ignore="+-")
        grammar.add_rule("A", "[+FA][-FA]", name="branch", description="Fork")
        grammar.add_rule("F(x)", "F(x*2)")
        return grammar

    def test_to_dsl(self):
        text = self.make_grammar().to_dsl()
        assert ":axiom FA" in text
        assert ":ignore +-" in text
        assert '@branch "Fork": A => [+FA][-FA]' in text
        assert "F(x) => F(x*2)" in text

    def test_dsl_roundtrip(self):
        """Exported DSL loads back into an equivalent grammar."""
        original = self.make_grammar()
        reloaded = Grammar.from_dsl(original.to_dsl("plant"))
        assert reloaded.axiom == original.axiom
        assert reloaded.ignore_symbols == original.ignore_symbols
        assert reloaded.rules == original.rules
        assert reloaded["A"].description == "Fork"

    def test_json_roundtrip(self):
        original = self.make_grammar()
        reloaded = Grammar.from_json(original.to_json(name="plant"))
        assert reloaded.to_dict() == original.to_dict()

    def test_to_dict(self):
        data = self.make_grammar().to_dict()
        assert data["axiom"] == "FA"
        assert data["rules"][1] == {"key": "F(x)", "production": "F(x*2)"}

    def test_example_files_load(self):
        """The shipped example grammars load and grow."""
        examples = Path(__file__).resolve().parents[2] / "examples"
        if not examples.exists():
            pytest.skip("examples directory not available")

        plant = Grammar.from_file(examples / "plant.lsys", unmatched_bracket="keep")
        assert plant(1).startswith("F(.95)/S!")
        assert plant(1).startswith("F(1.14)/F[^L]")

        signal = Grammar.from_file(examples / "context.lsys")
        assert signal(1) == "abaaaaaa[a]a"
