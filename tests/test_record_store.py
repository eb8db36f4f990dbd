import threading
from datetime import datetime, timezone

import pytest

from storefront.errors import ConstraintViolation, DuplicateKey, StoreUnavailable
from storefront.json_store import JsonRecordStore
from storefront.record_store import Kind


def _item(store, name="Hoodie", price=20.0):
    return store.insert(Kind.ITEMS, {"name": name, "price": price})


def test_insert_then_get_reads_the_write(store):
    item_id = _item(store, "Black Hoodie", 39.5)
    row = store.get(Kind.ITEMS, item_id)
    assert row["name"] == "Black Hoodie"
    assert row["price"] == 39.5
    assert row["description"] is None
    assert isinstance(row["created_at"], str)


def test_timestamps_render_identically_on_every_backend(store):
    stamp = datetime(2026, 1, 2, 3, 4, 5, 678, tzinfo=timezone.utc)
    item_id = store.insert(Kind.ITEMS, {"name": "Hoodie", "created_at": stamp})
    assert store.get(Kind.ITEMS, item_id)["created_at"] == "2026-01-02T03:04:05.000678+00:00"

    store.update(Kind.ITEMS, item_id, {"updated_at": stamp})
    assert store.query(Kind.ITEMS)[0]["updated_at"] == "2026-01-02T03:04:05.000678+00:00"


def test_default_timestamps_are_utc(store):
    row = store.get(Kind.ITEMS, _item(store))
    assert row["created_at"].endswith("+00:00")
    assert datetime.fromisoformat(row["created_at"]).tzinfo is not None


def test_get_missing_returns_none(store):
    assert store.get(Kind.ITEMS, 999) is None


def test_duplicate_email_raises_duplicate_key(store):
    store.insert(Kind.ACCOUNTS, {"email": "a@b.co", "password_hash": "x"})
    with pytest.raises(DuplicateKey):
        store.insert(Kind.ACCOUNTS, {"email": "a@b.co", "password_hash": "y"})
    assert len(store.query(Kind.ACCOUNTS)) == 1


def test_email_uniqueness_preserves_case(store):
    store.insert(Kind.ACCOUNTS, {"email": "Jane@b.co", "password_hash": "x"})
    store.insert(Kind.ACCOUNTS, {"email": "jane@b.co", "password_hash": "x"})
    assert [a["email"] for a in store.query(Kind.ACCOUNTS)] == ["Jane@b.co", "jane@b.co"]


def test_missing_required_column_is_a_constraint_violation(store):
    with pytest.raises(ConstraintViolation):
        store.insert(Kind.ITEMS, {"description": "no name"})


def test_unknown_field_is_rejected(store):
    with pytest.raises(ConstraintViolation):
        store.insert(Kind.ITEMS, {"name": "x", "colour": "red"})
    with pytest.raises(ConstraintViolation):
        store.query(Kind.ITEMS, {"colour": "red"})


def test_photo_must_reference_an_existing_item(store):
    with pytest.raises(ConstraintViolation):
        store.insert(Kind.PHOTOS, {"item_id": 404, "image_ref": "k"})


def test_items_are_listed_newest_first(store):
    ids = [_item(store, f"n{i}") for i in range(3)]
    assert [r["id"] for r in store.query(Kind.ITEMS)] == list(reversed(ids))
    assert [r["id"] for r in store.query(Kind.ITEMS, descending=False)] == ids


def test_query_filters_by_equality(store):
    store.insert(Kind.ORDERS, _order_fields(status="active"))
    archived = store.insert(Kind.ORDERS, _order_fields(status="archived"))
    rows = store.query(Kind.ORDERS, {"status": "archived"})
    assert [r["id"] for r in rows] == [archived]


def test_photos_are_ordered_by_sort_order(store):
    item_id = _item(store)
    store.insert(Kind.PHOTOS, {"item_id": item_id, "image_ref": "c", "sort_order": 3})
    store.insert(Kind.PHOTOS, {"item_id": item_id, "image_ref": "a", "sort_order": 1})
    store.insert(Kind.PHOTOS, {"item_id": item_id, "image_ref": "b", "sort_order": 2})
    assert [p["image_ref"] for p in store.query(Kind.PHOTOS, {"item_id": item_id})] == ["a", "b", "c"]


def test_update_and_delete_report_counts(store):
    item_id = _item(store)
    assert store.update(Kind.ITEMS, item_id, {"name": "Renamed"}) == 1
    assert store.get(Kind.ITEMS, item_id)["name"] == "Renamed"
    assert store.update(Kind.ITEMS, 12345, {"name": "x"}) == 0
    assert store.delete(Kind.ITEMS, item_id) == 1
    assert store.delete(Kind.ITEMS, item_id) == 0
    assert store.get(Kind.ITEMS, item_id) is None


def test_update_to_duplicate_email_fails(store):
    store.insert(Kind.ACCOUNTS, {"email": "a@b.co", "password_hash": "x"})
    other = store.insert(Kind.ACCOUNTS, {"email": "c@d.co", "password_hash": "x"})
    with pytest.raises(DuplicateKey):
        store.update(Kind.ACCOUNTS, other, {"email": "a@b.co"})


def test_deleting_an_item_cascades_to_its_photos(store):
    keep = _item(store, "keep")
    gone = _item(store, "gone")
    store.insert(Kind.PHOTOS, {"item_id": keep, "image_ref": "k1"})
    store.insert(Kind.PHOTOS, {"item_id": gone, "image_ref": "g1"})
    store.insert(Kind.PHOTOS, {"item_id": gone, "image_ref": "g2"})

    store.delete(Kind.ITEMS, gone)

    assert store.query(Kind.PHOTOS, {"item_id": gone}) == []
    assert [p["image_ref"] for p in store.query(Kind.PHOTOS)] == ["k1"]


def test_ids_are_never_reused(store):
    first = _item(store)
    store.delete(Kind.ITEMS, first)
    second = _item(store)
    assert second > first


def test_concurrent_inserts_get_distinct_ids(store):
    ids = []
    lock = threading.Lock()

    def worker(n):
        new_id = _item(store, f"t{n}")
        with lock:
            ids.append(new_id)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(set(ids)) == 8


def test_json_store_persists_between_instances(tmp_path):
    path = str(tmp_path / "state.json")
    a = JsonRecordStore(path)
    item_id = a.insert(Kind.ITEMS, {"name": "persisted"})
    b = JsonRecordStore(path)
    assert b.get(Kind.ITEMS, item_id)["name"] == "persisted"
    assert b.insert(Kind.ITEMS, {"name": "next"}) == item_id + 1


def test_json_store_sees_writes_made_by_another_instance(tmp_path):
    path = str(tmp_path / "state.json")
    reader = JsonRecordStore(path)
    assert reader.query(Kind.ITEMS) == []
    JsonRecordStore(path).insert(Kind.ITEMS, {"name": "external"})
    assert [r["name"] for r in reader.query(Kind.ITEMS)] == ["external"]


def test_corrupt_json_file_is_store_unavailable(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreUnavailable):
        JsonRecordStore(str(path)).query(Kind.ITEMS)


def _order_fields(**overrides):
    fields = {
        "full_name": "Dana", "phone": "5551234567", "email": "d@x.io", "address": "1 Main St",
        "items_json": '{"items": []}', "total_price": 0.0,
    }
    fields.update(overrides)
    return fields
