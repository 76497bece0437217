"""
Tests for the co-occurrence graph.
"""
from collections import Counter

import pytest
from sqlalchemy import select

from anima.models import SymbolConnection
from anima.services import graph, ledger


def _ids(db, *names):
    ids = [ledger.upsert_occurrence(db, n).id for n in names]
    db.commit()
    return ids


def _edges(db):
    return db.execute(
        select(SymbolConnection)
        .order_by(SymbolConnection.source_id, SymbolConnection.target_id)
        .execution_options(populate_existing=True)
    ).scalars().all()


class TestPairs:
    def test_canonical_pair(self):
        assert graph.canonical_pair(7, 3) == (3, 7)
        assert graph.canonical_pair(3, 7) == (3, 7)

    @pytest.mark.parametrize("n", [0, 1, 2, 3, 5])
    def test_entry_pairs_count(self, n):
        assert len(graph.entry_pairs(range(1, n + 1))) == n * (n - 1) // 2

    def test_entry_pairs_ignores_duplicates(self):
        assert graph.entry_pairs([2, 1, 2]) == [(1, 2)]


class TestRecord:
    def test_symmetric_single_row(self, db):
        a, b = _ids(db, "kot", "woda")
        graph.record_cooccurrence(db, a, b)
        graph.record_cooccurrence(db, b, a)
        db.commit()
        edges = _edges(db)
        assert len(edges) == 1
        assert edges[0].strength == 2
        assert edges[0].source_id < edges[0].target_id

    def test_self_pair_ignored(self, db):
        (a,) = _ids(db, "kot")
        assert graph.record_cooccurrence(db, a, a) is None
        db.commit()
        assert _edges(db) == []

    def test_entry_records_all_pairs(self, db):
        ids = _ids(db, "kot", "woda", "most", "las")
        assert graph.record_entry_cooccurrences(db, ids) == 6
        db.commit()
        edges = _edges(db)
        assert len(edges) == 6
        assert all(e.strength == 1 for e in edges)


class TestRelease:
    def test_decrements_then_deletes(self, db):
        a, b = _ids(db, "kot", "woda")
        graph.record_cooccurrence(db, a, b)
        graph.record_cooccurrence(db, a, b)
        db.commit()

        assert graph.release_cooccurrence(db, b, a) is True
        db.commit()
        assert _edges(db)[0].strength == 1

        assert graph.release_cooccurrence(db, a, b) is True
        db.commit()
        assert _edges(db) == []

    def test_missing_edge_is_noop(self, db, caplog):
        a, b = _ids(db, "kot", "woda")
        with caplog.at_level("WARNING"):
            assert graph.release_cooccurrence(db, a, b) is False
        assert "not found" in caplog.text


class TestCascade:
    def test_removes_every_edge_touching_symbol(self, db):
        a, b, c = _ids(db, "kot", "woda", "most")
        graph.record_entry_cooccurrences(db, [a, b, c])
        db.commit()
        assert graph.cascade_delete_for_symbol(db, a) == 2
        db.commit()
        edges = _edges(db)
        assert [(e.source_id, e.target_id) for e in edges] == [graph.canonical_pair(b, c)]


class TestRebuildStrengths:
    def test_matches_pair_counts(self, db):
        a, b, c = _ids(db, "kot", "woda", "most")
        graph.record_cooccurrence(db, a, b)  # should be 3
        graph.record_cooccurrence(db, a, c)  # should not exist
        db.commit()

        repair = graph.rebuild_strengths(db, Counter({
            graph.canonical_pair(a, b): 3,
            graph.canonical_pair(b, c): 1,
        }))
        db.commit()

        assert (repair.pruned, repair.corrected, repair.restored) == (1, 1, 1)
        strengths = {(e.source_id, e.target_id): e.strength for e in _edges(db)}
        assert strengths == {
            graph.canonical_pair(a, b): 3,
            graph.canonical_pair(b, c): 1,
        }


class TestExport:
    def test_nodes_and_edges(self, db):
        a, b, c = _ids(db, "kot", "woda", "most")
        ledger.upsert_occurrence(db, "kot")
        graph.record_entry_cooccurrences(db, [a, b, c])
        graph.record_cooccurrence(db, a, b)
        db.commit()

        export = graph.export_for_visualization(db)
        assert [n.name for n in export.nodes][0] == "kot"
        assert {n.name for n in export.nodes} == {"kot", "woda", "most"}
        assert len(export.edges) == 3
        assert export.edges[0].strength == 2
        assert all(e.source < e.target for e in export.edges)

    def test_empty(self, db):
        export = graph.export_for_visualization(db)
        assert export.nodes == []
        assert export.edges == []
