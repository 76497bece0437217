"""
Tests for the symbol ledger: levels, atomic upsert, decrement and reconcile.
"""
import pytest
from sqlalchemy import select

from anima.models import Entry, Symbol, SymbolConnection
from anima.services import graph, ledger
from anima.services.serialization import jdump


def _symbol(db, name):
    return db.execute(
        select(Symbol).where(Symbol.name == name).execution_options(populate_existing=True)
    ).scalar_one_or_none()


# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------

class TestLevelFor:
    @pytest.mark.parametrize("occurrences, level", [
        (0, 1), (1, 1), (2, 1),
        (3, 2), (5, 2),
        (6, 3), (10, 3),
        (11, 4), (20, 4),
        (21, 5), (500, 5),
    ])
    def test_boundaries(self, occurrences, level):
        assert ledger.level_for(occurrences) == level

    def test_monotonic(self):
        levels = [ledger.level_for(n) for n in range(0, 60)]
        assert levels == sorted(levels)
        assert min(levels) == 1 and max(levels) == ledger.MAX_LEVEL


class TestDescribeSymbol:
    def test_length_grows_with_level(self):
        lengths = [
            len(ledger.describe_symbol("kot", lvl, meaning="Instynkt.", archetype="CIEŃ", category="NATURE"))
            for lvl in range(1, 6)
        ]
        assert lengths == sorted(lengths)
        assert lengths[0] < lengths[-1]

    def test_includes_meaning(self):
        text = ledger.describe_symbol("most", 2, meaning="Przejście")
        assert "Przejście." in text
        assert "[EMERGING]" in text


# ---------------------------------------------------------------------------
# upsert_occurrence
# ---------------------------------------------------------------------------

class TestUpsertOccurrence:
    def test_creates_new_symbol(self, db):
        s = ledger.upsert_occurrence(db, "kot", archetype_hint="CIEŃ",
                                     category_hint="NATURE", meaning_hint="Instynkt")
        db.commit()
        assert s.occurrences == 1
        assert s.level == 1
        assert s.archetype == "CIEŃ"
        assert s.category == "NATURE"
        assert s.meaning == "Instynkt"
        assert s.last_seen is not None

    def test_increments_existing_single_row(self, db):
        for _ in range(3):
            ledger.upsert_occurrence(db, "kot")
        db.commit()
        rows = db.execute(select(Symbol).where(Symbol.name == "kot")).scalars().all()
        assert len(rows) == 1
        assert rows[0].occurrences == 3
        assert rows[0].level == 2

    def test_hints_fill_only_empty_fields(self, db):
        ledger.upsert_occurrence(db, "woda", archetype_hint="ANIMA",
                                 category_hint="NATURE", meaning_hint="Nieświadomość")
        s = ledger.upsert_occurrence(db, "woda", archetype_hint="CIEŃ",
                                     category_hint="SACRED", meaning_hint="Inne")
        db.commit()
        assert s.category == "NATURE"
        assert s.meaning == "Nieświadomość"
        assert s.archetype == "ANIMA"

    def test_hint_fills_previously_empty_field(self, db):
        ledger.upsert_occurrence(db, "most")
        s = ledger.upsert_occurrence(db, "most", category_hint="PERSONA", meaning_hint="Przejście")
        db.commit()
        assert s.category == "PERSONA"
        assert s.meaning == "Przejście"

    def test_level_tracks_count(self, db):
        for n in range(1, 23):
            s = ledger.upsert_occurrence(db, "las")
            assert s.occurrences == n
            assert s.level == ledger.level_for(n)
        db.commit()

    def test_level_up_synthesizes_description(self, db):
        for _ in range(3):
            s = ledger.upsert_occurrence(db, "gwiazda", meaning_hint="Przewodnictwo")
        db.commit()
        assert s.level == 2
        assert s.description
        assert len(s.description) >= 50
        assert "[EMERGING]" in s.description

    def test_long_description_is_kept(self, db):
        s = ledger.upsert_occurrence(db, "lustro")
        s.description = "x" * 80
        db.commit()
        for _ in range(2):
            s = ledger.upsert_occurrence(db, "lustro")
        db.commit()
        assert s.level == 2
        assert s.description == "x" * 80

    def test_on_level_increase_never_raises(self):
        class Broken:
            name = "kot"
            meaning = None
            archetype = None
            category = None

            @property
            def description(self):
                raise RuntimeError("boom")

        assert ledger.on_level_increase(Broken(), 2) is False


# ---------------------------------------------------------------------------
# decrement_occurrence
# ---------------------------------------------------------------------------

class TestDecrementOccurrence:
    def test_decrements_and_recomputes_level(self, db):
        for _ in range(3):
            ledger.upsert_occurrence(db, "kot")
        remaining = ledger.decrement_occurrence(db, "kot")
        db.commit()
        assert remaining == 2
        s = _symbol(db, "kot")
        assert s.occurrences == 2
        assert s.level == 1

    def test_deletes_at_zero_with_connections(self, db):
        a = ledger.upsert_occurrence(db, "kot")
        b = ledger.upsert_occurrence(db, "woda")
        graph.record_cooccurrence(db, a.id, b.id)
        db.commit()

        assert ledger.decrement_occurrence(db, "kot") == 0
        db.commit()
        assert _symbol(db, "kot") is None
        assert db.execute(select(SymbolConnection)).scalars().all() == []
        assert _symbol(db, "woda") is not None

    def test_missing_symbol_is_noop(self, db, caplog):
        ledger.upsert_occurrence(db, "kot")
        db.commit()
        with caplog.at_level("WARNING"):
            assert ledger.decrement_occurrence(db, "nieistniejący") is None
        db.commit()
        assert "not found" in caplog.text
        assert _symbol(db, "kot").occurrences == 1


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------

def _entry(db, keys):
    e = Entry(kind="text", content_text="sen", detected_symbols=jdump(keys))
    db.add(e)
    db.flush()
    return e


class TestReconcile:
    def test_replay_counts_once_per_entry(self, db):
        entries = [_entry(db, ["kot", "woda"]), _entry(db, ["kot"])]
        counts = ledger.replay_counts(entries)
        assert counts == {"kot": 2, "woda": 1}

    def test_prunes_corrects_and_restores(self, db):
        e1 = _entry(db, ["kot", "woda"])
        e2 = _entry(db, ["kot", "most"])
        ledger.upsert_occurrence(db, "kot")           # drifted: 1 instead of 2
        ledger.upsert_occurrence(db, "woda")
        for _ in range(4):
            ledger.upsert_occurrence(db, "sierota")   # orphan: no entry references it
        db.commit()

        result = ledger.reconcile(db, [e1, e2])
        db.commit()

        assert result.pruned == ["sierota"]
        assert result.deleted_count == 1
        assert result.corrected == {"kot": (1, 2)}
        assert result.restored == ["most"]
        assert _symbol(db, "sierota") is None
        assert _symbol(db, "kot").occurrences == 2
        assert _symbol(db, "most").occurrences == 1
        assert _symbol(db, "most").level == 1

    def test_idempotent(self, db):
        entries = [_entry(db, ["kot"]), _entry(db, ["kot", "woda"])]
        ledger.reconcile(db, entries)
        db.commit()
        second = ledger.reconcile(db, entries)
        db.commit()
        assert second.pruned == []
        assert second.corrected == {}
        assert second.restored == []
