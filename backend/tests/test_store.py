"""
Document store tests: predicates, Mongo filter translation, commit fencing
"""
import pytest

from conftest import run
from ledger_guard.errors import IntegrityViolationError
from ledger_guard.store import (
    FieldMatch,
    InMemoryDocumentStore,
    QueryPredicate,
    to_mongo_filter,
)


def by_reference(document):
    return QueryPredicate.of(FieldMatch("reference", document["reference"]))


class TestPredicates:
    """Typed equality filters"""

    def test_exact_match_is_case_sensitive(self):
        match = FieldMatch("staffNumber", "STF-0042")
        assert match.matches({"staffNumber": "STF-0042"})
        assert not match.matches({"staffNumber": "stf-0042"})

    def test_case_insensitive_match(self):
        match = FieldMatch("staffNumber", "STF-0042", case_insensitive=True)
        assert match.matches({"staffNumber": "stf-0042"})

    def test_missing_field_never_matches(self):
        assert not FieldMatch("vendorName", None).matches({})

    def test_numbers_compare_by_value(self):
        assert FieldMatch("amount", 1500).matches({"amount": 1500.0})

    def test_conjunction(self):
        predicate = QueryPredicate.of(FieldMatch("a", 1), FieldMatch("b", "x"))
        assert predicate.matches({"a": 1, "b": "x", "c": None})
        assert not predicate.matches({"a": 1, "b": "y"})
        assert predicate.describe() == "a=1;b=x;"

    def test_mongo_filter(self):
        predicate = QueryPredicate.of(
            FieldMatch("vendorName", "Paper.Hub", case_insensitive=True),
            FieldMatch("amount", 1500.0),
        )
        assert to_mongo_filter(predicate) == {
            "vendorName": {"$regex": "^Paper\\.Hub$", "$options": "i"},
            "amount": 1500.0,
        }


class TestInMemoryStore:
    """Reads return copies; commit_unique fences concurrent writers"""

    def test_reads_are_copies(self):
        store = InMemoryDocumentStore({"expenses": {"e1": {"reference": "R1", "tags": ["a"]}}})
        document = run(store.get("expenses", "e1"))
        document["tags"].append("b")
        assert run(store.get("expenses", "e1")) == {"reference": "R1", "tags": ["a"]}
        assert run(store.get("expenses", "missing")) is None
        assert run(store.get("nowhere", "e1")) is None

    def test_find_returns_keys(self):
        store = InMemoryDocumentStore({"expenses": {"e1": {"reference": "R1"}, "e2": {"reference": "R2"}}})
        found = run(store.find("expenses", QueryPredicate.of(FieldMatch("reference", "R2"))))
        assert found == [("e2", {"reference": "R2"})]

    def test_commit_is_unconditional(self):
        store = InMemoryDocumentStore()
        run(store.commit("expenses", "e1", {"reference": "R1"}))
        run(store.commit("expenses", "e2", {"reference": "R1"}))
        assert store.count("expenses") == 2

    def test_commit_unique_rejects_clash(self):
        store = InMemoryDocumentStore()
        run(store.commit_unique("expenses", "e1", {"reference": "R1"}, by_reference))
        with pytest.raises(IntegrityViolationError, match="already committed as 'e1'"):
            run(store.commit_unique("expenses", "e2", {"reference": "R1"}, by_reference))
        assert store.count("expenses") == 1

    def test_commit_unique_allows_rewrite_of_same_key(self):
        store = InMemoryDocumentStore()
        run(store.commit_unique("expenses", "e1", {"reference": "R1"}, by_reference))
        run(store.commit_unique("expenses", "e1", {"reference": "R1", "status": "approved"}, by_reference))
        assert run(store.get("expenses", "e1"))["status"] == "approved"
