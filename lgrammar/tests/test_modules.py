"""Tests for reading a derived string module by module."""

from lgrammar.modules import Module, iter_modules, parse_modules


class TestModules:
    """Tests for iter_modules and parse_modules."""

    def test_plain_symbols(self):
        """Symbols without parameters are modules of their own."""
        assert parse_modules("F+F") == [Module("F"), Module("+"), Module("F")]

    def test_parameters(self):
        """Parameter lists are parsed into floats."""
        modules = parse_modules("F(1,.5)[+A]")
        assert modules == [
            Module("F", (1.0, 0.5)),
            Module("["), Module("+"), Module("A"), Module("]"),
        ]
        assert modules[0].is_parametric
        assert not modules[1].is_parametric

    def test_text_is_kept(self):
        """Each module remembers the text it was read from."""
        modules = parse_modules("F(2*3)A")
        assert str(modules[0]) == "F(2*3)"
        assert modules[0].params == (6.0,)
        assert str(modules[1]) == "A"

    def test_non_numeric_group(self):
        """A group that does not hold numbers is read as plain symbols."""
        symbols = [m.symbol for m in iter_modules("F(x)")]
        assert symbols == ["F", "(", "x", ")"]

    def test_unterminated_group(self):
        """An unterminated group is read as plain symbols."""
        symbols = [m.symbol for m in iter_modules("F(1")]
        assert symbols == ["F", "(", "1"]

    def test_empty(self):
        assert parse_modules("") == []

    def test_repr(self):
        assert repr(Module("A")) == "Module('A')"
        assert repr(Module("F", (1.0,))) == "Module('F', (1.0,))"
