"""
Unit tests for symbol key normalization.
"""
import pytest

from anima.services.symbol_normalizer import normalize_symbol, normalize_symbols


class TestNormalizeSymbol:
    @pytest.mark.parametrize("raw, expected", [
        ("koty", "kot"),
        ("Koty", "kot"),
        ("  KOTY  ", "kot"),
        ("psy", "pies"),
        ("ludzie", "człowiek"),
        ("mężczyźni", "mężczyzna"),
        ("wody", "woda"),
        ("oceany", "ocean"),
    ])
    def test_known_plurals(self, raw, expected):
        assert normalize_symbol(raw) == expected

    @pytest.mark.parametrize("raw", ["woda", "morze", "ogień", "droga", "lustro"])
    def test_singulars_unchanged(self, raw):
        # No suffix stripping: "woda" must not become "wod".
        assert normalize_symbol(raw) == raw

    def test_unknown_inflection_is_only_lowercased(self):
        assert normalize_symbol("Wodę") == "wodę"

    @pytest.mark.parametrize("raw", [None, "", "   ", "\t\n"])
    def test_blank_input(self, raw):
        assert normalize_symbol(raw) == ""

    def test_idempotent(self):
        for raw in ["Koty", "Wodę", "  Most ", "gwiazdy"]:
            once = normalize_symbol(raw)
            assert normalize_symbol(once) == once


class TestNormalizeSymbols:
    def test_dedupes_keeping_first_seen_order(self):
        assert normalize_symbols(["koty", "Kot", "woda", "KOTY", "wody"]) == ["kot", "woda"]

    def test_drops_blanks(self):
        assert normalize_symbols(["", None, "  ", "most"]) == ["most"]

    def test_empty(self):
        assert normalize_symbols([]) == []
