from __future__ import annotations

import pytest

from ragchat.rag.errors import InvalidStatusTransition
from ragchat.rag.lifecycle import DocumentRegistry
from ragchat.rag.types import DocumentStatus

from conftest import add_chunk


def _create(registry: DocumentRegistry, name="a.txt"):
    return registry.create(filename=name, content="hello", file_type="text", size=5)


def test_new_document_is_processing(registry: DocumentRegistry):
    doc = _create(registry)

    assert doc.status is DocumentStatus.PROCESSING
    assert doc.processed_at is None
    assert registry.get(doc.id) is doc


def test_mark_processed_records_counts(registry: DocumentRegistry):
    doc = _create(registry)
    registry.mark_processed(doc.id, chunk_count=3, embedded_count=2)

    assert doc.status is DocumentStatus.PROCESSED
    assert doc.processed_at is not None
    assert (doc.chunk_count, doc.embedded_count) == (3, 2)
    assert doc.grounded is True


def test_processed_without_embeddings_is_not_grounded(registry: DocumentRegistry):
    doc = _create(registry)
    registry.mark_processed(doc.id, chunk_count=3, embedded_count=0)

    assert doc.grounded is False
    assert registry.stats()["ungrounded_count"] == 1


def test_mark_failed_keeps_content_and_sets_last_error(registry: DocumentRegistry):
    doc = _create(registry)
    registry.mark_failed(doc.id, "fetch failed")

    assert doc.status is DocumentStatus.FAILED
    assert doc.content == "hello"
    assert doc.last_error == "fetch failed"


@pytest.mark.parametrize(
    "first,second",
    [
        ("processed", "failed"),
        ("failed", "processed"),
        ("processed", "processed"),
    ],
)
def test_terminal_states_are_final(registry: DocumentRegistry, first, second):
    doc = _create(registry)

    def apply(target):
        if target == "processed":
            registry.mark_processed(doc.id, chunk_count=0, embedded_count=0)
        else:
            registry.mark_failed(doc.id, "x")

    apply(first)
    with pytest.raises(InvalidStatusTransition):
        apply(second)
    assert doc.status.value == first


def test_transition_table():
    assert DocumentStatus.PROCESSING.transition(DocumentStatus.PROCESSED) is DocumentStatus.PROCESSED
    with pytest.raises(InvalidStatusTransition):
        DocumentStatus.PROCESSED.transition(DocumentStatus.PROCESSING)
    with pytest.raises(InvalidStatusTransition):
        DocumentStatus.PROCESSING.transition(DocumentStatus.PROCESSING)


def test_delete_cascades_to_chunks(registry: DocumentRegistry, store):
    doc = _create(registry)
    other = _create(registry, "b.txt")
    add_chunk(store, doc.id, "c1", [1.0])
    add_chunk(store, doc.id, "c2", [1.0])
    add_chunk(store, other.id, "c3", [1.0])

    assert registry.delete(doc.id) is True
    assert registry.get(doc.id) is None
    assert store.by_document(doc.id) == []
    assert len(store) == 1
    assert registry.delete(doc.id) is False


def test_update_content_sets_size(registry: DocumentRegistry):
    doc = registry.create(filename="page", content="", file_type="web", size=0, source="web_search", url="https://x")
    registry.update_content(doc.id, "héllo")

    assert doc.content == "héllo"
    assert doc.size == 6


def test_list_newest_first_and_stats(registry: DocumentRegistry):
    a = _create(registry, "a.txt")
    b = _create(registry, "b.txt")
    registry.mark_processed(b.id, chunk_count=1, embedded_count=1)

    listed = registry.list()
    assert {d.id for d in listed} == {a.id, b.id}
    assert listed[0].created_at >= listed[1].created_at

    stats = registry.stats()
    assert stats["documents_count"] == 2
    assert stats["processed_count"] == 1
    assert stats["total_size_bytes"] == 10


def test_unknown_document_raises_key_error(registry: DocumentRegistry):
    with pytest.raises(KeyError):
        registry.mark_processed("nope", chunk_count=0, embedded_count=0)
