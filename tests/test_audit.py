"""
Tests for the consistency auditor and the maintenance passes.
"""
from datetime import datetime

from sqlalchemy import select, update

from anima.models import Entry, Symbol, SymbolConnection
from anima.services import aggregator, audit
from anima.services.serialization import jdump

from conftest import make_analysis


def _state(db):
    symbols = {
        s.name: (s.occurrences, s.level)
        for s in db.execute(select(Symbol).execution_options(populate_existing=True)).scalars()
    }
    names = {
        s.id: s.name
        for s in db.execute(select(Symbol)).scalars()
    }
    edges = {
        tuple(sorted((names.get(c.source_id, "?"), names.get(c.target_id, "?")))): c.strength
        for c in db.execute(
            select(SymbolConnection).execution_options(populate_existing=True)
        ).scalars()
    }
    return symbols, edges


def _seed(db):
    aggregator.ingest(db, "text", "a", make_analysis(["kot", "woda"]))
    aggregator.ingest(db, "text", "b", make_analysis(["kot", "woda", "most"]))
    aggregator.ingest(db, "text", "c", make_analysis(["las"]))


class TestAudit:
    def test_consistent_state_is_untouched(self, db):
        _seed(db)
        before = _state(db)
        result = audit.audit(db)
        assert not result.changed
        assert _state(db) == before

    def test_converges_after_drift(self, db):
        _seed(db)
        expected = _state(db)

        # Corrupt counts, strengths, add an orphan and drop a symbol.
        db.execute(update(Symbol).where(Symbol.name == "kot").values(occurrences=9, level=3))
        db.execute(update(SymbolConnection).values(strength=7))
        db.add(Symbol(name="sierota", occurrences=4, level=2))
        las = db.execute(select(Symbol).where(Symbol.name == "las")).scalar_one()
        db.delete(las)
        db.commit()

        result = audit.audit(db)

        assert result.pruned_symbols == ["sierota"]
        assert result.deleted_count == 1
        assert result.corrected_counts["kot"] == (9, 2)
        assert result.restored_symbols == ["las"]
        assert result.corrected_connections == 3
        assert _state(db) == expected

    def test_idempotent(self, db):
        _seed(db)
        db.execute(update(SymbolConnection).values(strength=5))
        db.commit()
        audit.audit(db)
        after_first = _state(db)
        second = audit.audit(db)
        assert not second.changed
        assert _state(db) == after_first

    def test_restores_missing_edges(self, db):
        _seed(db)
        db.execute(SymbolConnection.__table__.delete())
        db.commit()
        result = audit.audit(db)
        assert result.restored_connections == 3
        _, edges = _state(db)
        assert edges[("kot", "woda")] == 2

    def test_empty_log_empties_library(self, db):
        _seed(db)
        db.execute(Entry.__table__.delete())
        db.commit()
        result = audit.audit(db)
        assert result.deleted_count == 4
        assert _state(db) == ({}, {})


class TestRepairArchetypes:
    def test_rewrites_typos(self, db):
        e = Entry(kind="text", content_text="sen", detected_symbols="[]", dominant_archetype="KIEŃ")
        bad = Entry(kind="text", content_text="sen", detected_symbols="[]", dominant_archetype="Wielka Matka")
        ok = Entry(kind="text", content_text="sen", detected_symbols="[]", dominant_archetype="ANIMA")
        db.add_all([e, bad, ok])
        db.add(Symbol(name="kot", occurrences=1, level=1, archetype="cien"))
        db.commit()

        repair = audit.repair_archetypes(db)

        assert repair.entries[e.id] == ("KIEŃ", "CIEŃ")
        assert repair.entries[bad.id] == ("Wielka Matka", None)
        assert ok.id not in repair.entries
        assert repair.symbols["kot"] == ("cien", "CIEŃ")
        assert repair.total == 3
        db.refresh(e)
        assert e.dominant_archetype == "CIEŃ"


class TestMergeDuplicates:
    def test_collapses_plural_keys(self, db):
        # Entries written before "koty" was mapped to "kot".
        db.add(Entry(kind="text", content_text="a", detected_symbols=jdump(["koty", "woda"])))
        db.add(Entry(kind="text", content_text="b", detected_symbols=jdump(["kot"])))
        db.add(Symbol(name="koty", occurrences=1, level=1))
        db.add(Symbol(name="kot", occurrences=1, level=1))
        db.add(Symbol(name="woda", occurrences=1, level=1))
        db.commit()

        result = audit.merge_duplicate_symbols(db)

        assert len(result.entries_rewritten) == 1
        assert result.merged_symbols == {"koty": "kot"}
        assert result.audit.pruned_symbols == []
        assert result.audit.corrected_counts == {}
        symbols, edges = _state(db)
        assert symbols == {"kot": (2, 1), "woda": (1, 1)}
        assert edges == {("kot", "woda"): 1}

    def test_keeps_metadata_of_renamed_row(self, db):
        description = "Opis " + "x" * 95
        db.add(Entry(kind="text", content_text="a", detected_symbols=jdump(["koty"])))
        koty = Symbol(
            name="koty", occurrences=1, level=1,
            meaning="Instynkt.", category="NATURE", archetype="CIEŃ",
            description=description,
            first_seen=datetime(2024, 1, 1), last_seen=datetime(2024, 1, 2),
        )
        db.add(koty)
        db.commit()
        koty_id = koty.id

        result = audit.merge_duplicate_symbols(db)

        assert result.merged_symbols == {"koty": "kot"}
        kot = db.execute(select(Symbol).where(Symbol.name == "kot")).scalar_one()
        assert kot.id == koty_id
        assert kot.meaning == "Instynkt."
        assert kot.category == "NATURE"
        assert kot.archetype == "CIEŃ"
        assert kot.description == description
        assert kot.first_seen.replace(tzinfo=None) == datetime(2024, 1, 1)
        assert kot.occurrences == 1

    def test_fills_empty_metadata_from_duplicates(self, db):
        db.add(Entry(kind="text", content_text="a", detected_symbols=jdump(["koty"])))
        db.add(Entry(kind="text", content_text="b", detected_symbols=jdump(["kot", "woda"])))
        db.add(Symbol(name="kot", occurrences=1, level=1, archetype="CIEŃ"))
        db.add(Symbol(name="koty", occurrences=1, level=1, meaning="Instynkt.", archetype="ANIMA"))
        db.add(Symbol(name="woda", occurrences=1, level=1))
        db.commit()

        result = audit.merge_duplicate_symbols(db)

        assert result.merged_symbols == {"koty": "kot"}
        kot = db.execute(select(Symbol).where(Symbol.name == "kot")).scalar_one()
        assert kot.meaning == "Instynkt."
        assert kot.archetype == "CIEŃ"
        symbols, edges = _state(db)
        assert symbols == {"kot": (2, 1), "woda": (1, 1)}
        assert edges == {("kot", "woda"): 1}

    def test_most_frequent_row_wins_without_canonical_row(self, db):
        db.add(Entry(kind="text", content_text="a", detected_symbols=jdump(["koty"])))
        db.add(Entry(kind="text", content_text="b", detected_symbols=jdump(["KOTY"])))
        db.add(Symbol(name="KOTY", occurrences=1, level=1, meaning="Rzadki."))
        db.add(Symbol(name="koty", occurrences=3, level=2, meaning="Częsty."))
        db.commit()

        result = audit.merge_duplicate_symbols(db)

        assert result.merged_symbols == {"KOTY": "kot", "koty": "kot"}
        kot = db.execute(select(Symbol).where(Symbol.name == "kot")).scalar_one()
        assert kot.meaning == "Częsty."
        assert _state(db)[0] == {"kot": (2, 1)}
