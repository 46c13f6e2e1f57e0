import pytest

from backend.src.models.embedding import Collection
from backend.src.services.vector_index import (
    SQLiteVectorIndex,
    deserialize_vector,
    serialize_vector,
)


def test_vector_serialization_uses_float32() -> None:
    data = serialize_vector([1.0, 0.5, -0.25])

    assert len(data) == 12
    assert deserialize_vector(data).tolist() == [1.0, 0.5, -0.25]


def test_search_orders_by_similarity(vector_index: SQLiteVectorIndex) -> None:
    vector_index.upsert(Collection.NODES, "far", [0.0, 1.0, 0.0, 0.0])
    vector_index.upsert(Collection.NODES, "exact", [1.0, 0.0, 0.0, 0.0])
    vector_index.upsert(Collection.NODES, "close", [1.0, 1.0, 0.0, 0.0])

    hits = vector_index.search(Collection.NODES, [1.0, 0.0, 0.0, 0.0], k=3)

    assert [entity_id for entity_id, _ in hits] == ["exact", "close", "far"]
    assert hits[0][1] == pytest.approx(1.0)
    assert hits[1][1] == pytest.approx(0.7071, abs=1e-3)
    assert hits[2][1] == pytest.approx(0.0)


def test_search_truncates_to_k(vector_index: SQLiteVectorIndex) -> None:
    for i in range(5):
        vector_index.upsert(Collection.NODES, f"n{i}", [1.0, float(i), 0.0, 0.0])

    hits = vector_index.search(Collection.NODES, [1.0, 0.0, 0.0, 0.0], k=2)

    assert [entity_id for entity_id, _ in hits] == ["n0", "n1"]


def test_scores_are_clipped_to_unit_interval(vector_index: SQLiteVectorIndex) -> None:
    vector_index.upsert(Collection.NODES, "opposite", [-1.0, 0.0, 0.0, 0.0])
    vector_index.upsert(Collection.NODES, "zero", [0.0, 0.0, 0.0, 0.0])

    hits = dict(vector_index.search(Collection.NODES, [1.0, 0.0, 0.0, 0.0], k=5))

    assert hits == {"opposite": 0.0, "zero": 0.0}


def test_collections_are_searched_independently(vector_index: SQLiteVectorIndex) -> None:
    vector_index.upsert(Collection.MESSAGES, "m1", [1.0, 0.0, 0.0, 0.0])
    vector_index.upsert(Collection.NODES, "n1", [1.0, 0.0, 0.0, 0.0])

    hits = vector_index.search(Collection.MESSAGES, [1.0, 0.0, 0.0, 0.0], k=5)

    assert [entity_id for entity_id, _ in hits] == ["m1"]


def test_upsert_replaces_and_delete_removes(vector_index: SQLiteVectorIndex) -> None:
    vector_index.upsert(Collection.NODES, "n1", [1.0, 0.0, 0.0, 0.0])
    vector_index.upsert(Collection.NODES, "n1", [0.0, 1.0, 0.0, 0.0])

    hits = vector_index.search(Collection.NODES, [0.0, 1.0, 0.0, 0.0], k=5)
    assert hits == [("n1", pytest.approx(1.0))]

    vector_index.delete(Collection.NODES, "n1")
    vector_index.delete(Collection.NODES, "n1")

    assert vector_index.search(Collection.NODES, [0.0, 1.0, 0.0, 0.0], k=5) == []


def test_vectors_of_other_dimensions_are_ignored(vector_index: SQLiteVectorIndex) -> None:
    vector_index.upsert(Collection.NODES, "small", [1.0, 0.0])
    vector_index.upsert(Collection.NODES, "right", [1.0, 0.0, 0.0, 0.0])

    hits = vector_index.search(Collection.NODES, [1.0, 0.0, 0.0, 0.0], k=5)

    assert [entity_id for entity_id, _ in hits] == ["right"]


def test_empty_index_returns_no_hits(vector_index: SQLiteVectorIndex) -> None:
    assert vector_index.search(Collection.NODES, [1.0, 0.0, 0.0, 0.0], k=5) == []
    assert vector_index.search(Collection.NODES, [1.0, 0.0, 0.0, 0.0], k=0) == []
