import pytest

from pluploader.models import upload_identity

def test_identity_distinguishes_chunk_counts():
    assert upload_identity("photo.jpg", 1) != upload_identity("photo.jpg", 10)
    assert upload_identity("a:1", 2) != upload_identity("a", 12)
    assert upload_identity("photo.jpg", 3) == upload_identity("photo.jpg", 3)

def test_get_or_create_reuses_existing_record(table):
    first = table.get_or_create("a:2", "a", 2)
    table.append_chunk("a:2", b"xx")
    second = table.get_or_create("a:2", "a", 2)

    assert second is first
    assert second.received == 1
    assert len(table) == 1

def test_append_chunk_refreshes_timestamp(table, clock):
    table.get_or_create("a:2", "a", 2)
    clock.advance(60)

    received = table.append_chunk("a:2", b"abc", index=0)

    upload = table.get("a:2")
    assert received == 1
    assert upload.last_updated == clock.now
    assert upload.size == 3

def test_append_chunk_requires_existing_record(table):
    with pytest.raises(KeyError):
        table.append_chunk("missing:1", b"x")

def test_delete_tolerates_absent_record(table):
    table.get_or_create("a:1", "a", 1)
    table.delete("a:1")
    table.delete("a:1")

    assert "a:1" not in table
    assert table.get("a:1") is None

def test_take_completed_only_once(table):
    table.get_or_create("a:2", "a", 2)
    table.append_chunk("a:2", b"one", 0)
    assert table.take_completed("a:2") is None
    assert "a:2" in table

    table.append_chunk("a:2", b"two", 1)
    upload = table.take_completed("a:2")

    assert upload is not None
    assert upload.assemble() == b"onetwo"
    assert "a:2" not in table
    assert table.take_completed("a:2") is None

def test_snapshot_is_a_copy(table):
    table.get_or_create("a:1", "a", 1)
    table.get_or_create("b:1", "b", 1)

    snapshot = table.snapshot_identities()
    table.delete("a:1")

    assert snapshot == {"a:1", "b:1"}
    assert table.snapshot_identities() == {"b:1"}

def test_assemble_orders_by_declared_index(table):
    table.get_or_create("a:3", "a", 3)
    table.append_chunk("a:3", b"C", 2)
    table.append_chunk("a:3", b"A", 0)
    table.append_chunk("a:3", b"B", 1)

    assert table.get("a:3").assemble() == b"ABC"

def test_retried_index_replaces_buffer_without_counting(table, clock):
    table.get_or_create("a:3", "a", 3)
    table.append_chunk("a:3", b"A", 0)
    table.append_chunk("a:3", b"b", 1)
    clock.advance(30)

    received = table.append_chunk("a:3", b"B", 1)

    upload = table.get("a:3")
    assert received == 2
    assert not upload.is_complete
    assert upload.last_updated == clock.now
    assert table.take_completed("a:3") is None

    table.append_chunk("a:3", b"C", 2)
    assert table.take_completed("a:3").assemble() == b"ABC"
