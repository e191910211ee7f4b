import pytest

from student360.modules.document_store import (SERVER_TIMESTAMP, DocumentStore, StoreError,
                                               collection_path, document_path)


def test_set_and_get_roundtrip(store):
    store.set("schools/s1", {"name": "Demo", "nested": {"a": 1}})

    assert store.get("schools/s1") == {"name": "Demo", "nested": {"a": 1}}
    assert store.exists("schools/s1")
    assert store.get("schools/missing") is None


def test_set_replaces_and_merge_merges(store):
    store.set("schools/s1", {"name": "Demo", "meta": {"a": 1, "b": 2}})
    store.set("schools/s1", {"meta": {"b": 3}}, merge=True)
    assert store.get("schools/s1") == {"name": "Demo", "meta": {"a": 1, "b": 3}}

    store.set("schools/s1", {"name": "Other"})
    assert store.get("schools/s1") == {"name": "Other"}


def test_server_timestamp_is_resolved(store):
    store.set("schools/s1", {"updatedAt": SERVER_TIMESTAMP, "by": {"at": SERVER_TIMESTAMP}})
    data = store.get("schools/s1")

    assert isinstance(data["updatedAt"], str)
    assert data["by"]["at"] == data["updatedAt"]


def test_add_generates_ids_and_query_orders(store):
    collection = collection_path("schools", "s1", "students", "S-1", "notes")
    first = store.add(collection, {"n": 1, "createdAt": SERVER_TIMESTAMP})
    second = store.add(collection, {"n": 2, "createdAt": SERVER_TIMESTAMP})

    assert first != second
    assert len(first) == 20

    newest_first = store.query(collection, order_by="createdAt", descending=True)
    assert [doc_id for doc_id, _ in newest_first] == [second, first]

    limited = store.query(collection, order_by="createdAt", descending=True, limit=1)
    assert [data["n"] for _, data in limited] == [2]


def test_query_only_returns_direct_children(store):
    store.set("schools/s1/students/S-1", {"name": "A"})
    store.add("schools/s1/students/S-1/notes", {"comment": "x"})

    results = store.query("schools/s1/students")
    assert [doc_id for doc_id, _ in results] == ["S-1"]


def test_batch_commits_all_writes(store):
    with store.batch() as batch:
        batch.set("schools/s1/students/S-1", {"name": "A"})
        batch.set("schools/s1/students/S-2", {"name": "B"})

    assert store.exists("schools/s1/students/S-1")
    assert store.exists("schools/s1/students/S-2")


def test_batch_rolls_back_on_failure(store):
    with pytest.raises(TypeError):
        with store.batch() as batch:
            batch.set("schools/s1/students/S-1", {"name": "A"})
            batch.set("schools/s1/students/S-2", {"name": object()})

    assert not store.exists("schools/s1/students/S-1")


def test_invalid_paths_are_rejected(store):
    with pytest.raises(StoreError):
        document_path("schools")
    with pytest.raises(StoreError):
        collection_path("schools", "s1")
    with pytest.raises(StoreError):
        store.get("schools//s1")
    with pytest.raises(StoreError):
        store.query("schools", order_by="name; DROP TABLE documents")


def test_documents_persist_across_instances(tmp_path):
    db_path = tmp_path / "persist.db"
    DocumentStore(db_path).set("users/u1", {"role": "admin"})

    assert DocumentStore(db_path).get("users/u1") == {"role": "admin"}
