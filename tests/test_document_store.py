from datetime import datetime, timezone

import pytest

from ixiclinic_admin.document_store import DocumentNotFoundError, WriteBatch, comparable, encode_value
from ixiclinic_admin.models import Document

from conftest import seed


def test_set_and_get_roundtrip(store):
    seed(store, "accounts", "acc-1", {"email": "a@clinic.com", "settings": {"centerName": "Centro"}})

    snapshot = store.collection("accounts").document("acc-1").get()

    assert snapshot.exists
    assert snapshot.id == "acc-1"
    assert snapshot.get("settings.centerName") == "Centro"
    assert snapshot.to_dict()["email"] == "a@clinic.com"


def test_missing_document(store):
    snapshot = store.document("accounts/nope").get()

    assert not snapshot.exists
    assert snapshot.to_dict() is None
    assert snapshot.get("email") is None


def test_update_uses_dotted_paths(store):
    seed(store, "accounts", "acc-1", {"billingInfo": {"subscriptionStatus": "trial", "plan": {"name": "x"}}})

    store.document("accounts/acc-1").update({"billingInfo.subscriptionStatus": "active", "settings.city": "Santiago"})

    data = store.document("accounts/acc-1").get().to_dict()
    assert data["billingInfo"] == {"subscriptionStatus": "active", "plan": {"name": "x"}}
    assert data["settings"] == {"city": "Santiago"}


def test_update_of_missing_document_raises(store):
    with pytest.raises(DocumentNotFoundError):
        store.document("accounts/ghost").update({"email": "x@y.com"})


def test_merge_keeps_other_fields(store):
    seed(store, "accounts", "acc-1", {"email": "a@clinic.com", "isActive": True})

    store.document("accounts/acc-1").set({"isActive": False}, merge=True)

    assert store.document("accounts/acc-1").get().to_dict() == {"email": "a@clinic.com", "isActive": False}


def test_datetimes_are_stored_as_utc_iso(store):
    seed(store, "patients", "p1", {"createdAt": datetime(2024, 3, 1, 12, 30)})

    assert store.document("patients/p1").get().get("createdAt") == "2024-03-01T12:30:00+00:00"


def test_where_and_order_by(store):
    seed(store, "accounts", "a", {"status": "active", "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc)})
    seed(store, "accounts", "b", {"status": "trial", "createdAt": datetime(2024, 2, 1, tzinfo=timezone.utc)})
    seed(store, "accounts", "c", {"status": "active", "createdAt": datetime(2024, 3, 1, tzinfo=timezone.utc)})
    seed(store, "accounts", "d", {"status": "active"})

    results = store.collection("accounts").where("status", "==", "active").order_by("createdAt", "desc").stream()

    assert [s.id for s in results] == ["c", "a", "d"]


def test_order_by_mixed_value_types(store):
    seed(store, "accounts", "text", {"rank": "gold"})
    seed(store, "accounts", "number", {"rank": 3})
    seed(store, "accounts", "naive", {"rank": "2024-01-01T00:00:00"})
    seed(store, "accounts", "aware", {"rank": "2024-02-01T00:00:00+00:00"})
    seed(store, "accounts", "object", {"rank": {"level": 1}})

    results = store.collection("accounts").order_by("rank").stream()

    assert [s.id for s in results] == ["number", "naive", "aware", "text", "object"]


def test_descendants_cover_every_depth_below_a_document(store):
    seed(store, "accounts/acc-1/patients", "p1", {"firstName": "Luis"})
    seed(store, "accounts/acc-1/patients/p1/notes", "n1", {"text": "Control"})
    seed(store, "accounts/acc-10/patients", "p2", {"firstName": "Otro"})
    seed(store, "accounts", "acc-1", {"email": "uno@clinic.com"})

    paths = [s.reference.path for s in store.descendants("accounts/acc-1")]

    assert paths == ["accounts/acc-1/patients/p1", "accounts/acc-1/patients/p1/notes/n1"]


def test_range_filters_compare_dates(store):
    seed(store, "appointments", "old", {"date": "2024-01-10T09:00:00+00:00"})
    seed(store, "appointments", "new", {"date": "2024-05-10T09:00:00Z"})
    seed(store, "appointments", "undated", {})

    since = datetime(2024, 3, 1, tzinfo=timezone.utc)
    results = store.collection("appointments").where("date", ">=", since).stream()

    assert [s.id for s in results] == ["new"]


def test_limit_and_count(store):
    for i in range(5):
        seed(store, "patients", f"p{i}", {"n": i})

    assert len(store.collection("patients").order_by("n").limit(2).stream()) == 2
    assert store.collection("patients").count() == 5


def test_unsupported_operator_is_rejected(store):
    with pytest.raises(ValueError):
        store.collection("accounts").where("email", "like", "%a%")


def test_invalid_paths_are_rejected(store):
    with pytest.raises(ValueError):
        store.collection("accounts/acc-1")
    with pytest.raises(ValueError):
        store.document("accounts")


def test_collection_group_spans_flat_and_nested_collections(store):
    seed(store, "patients", "flat", {"accountId": "acc-1"})
    seed(store, "accounts/acc-1/patients", "nested-1", {})
    seed(store, "accounts/acc-2/patients", "nested-2", {})
    seed(store, "accounts/acc-1/users", "u1", {})

    ids = {s.id for s in store.collection_group("patients").stream()}

    assert ids == {"flat", "nested-1", "nested-2"}


def test_nested_documents_are_owned_by_their_account(store, db_session):
    seed(store, "accounts/acc-9/patients", "p1", {})

    row = db_session.query(Document).filter(Document.doc_id == "p1").one()

    assert row.kind == "patients"
    assert row.account_id == "acc-9"


def test_batch_commits_all_operations(store):
    seed(store, "patients", "p1", {"accountId": "acc-1"})
    batch = store.batch()
    batch.set(store.document("patients/p2"), {"accountId": "acc-1"})
    batch.delete(store.document("patients/p1"))

    assert len(batch) == 2
    assert batch.commit() == 2
    assert len(batch) == 0
    assert [s.id for s in store.collection("patients").stream()] == ["p2"]


def test_failed_batch_rolls_back_everything(store, monkeypatch):
    seed(store, "patients", "p1", {"accountId": "acc-1"})
    seed(store, "patients", "p2", {"accountId": "acc-1"})

    original_apply = WriteBatch._apply
    calls = []

    def failing_apply(self, action, ref, payload, merge):
        calls.append(ref.id)
        if len(calls) == 2:
            raise RuntimeError("disk full")
        return original_apply(self, action, ref, payload, merge)

    monkeypatch.setattr(WriteBatch, "_apply", failing_apply)

    batch = store.batch()
    batch.delete(store.document("patients/p1"))
    batch.delete(store.document("patients/p2"))
    with pytest.raises(RuntimeError):
        batch.commit()

    monkeypatch.undo()
    assert {s.id for s in store.collection("patients").stream()} == {"p1", "p2"}


def test_comparable_normalises_dates():
    aware = datetime(2024, 1, 1, tzinfo=timezone.utc)

    assert comparable("2024-01-01T00:00:00Z") == aware
    assert comparable("2024-01-01") == aware
    assert comparable(datetime(2024, 1, 1)) == aware
    assert comparable("not-a-date") == "not-a-date"
    assert comparable(42) == 42


def test_encode_value_handles_nested_values():
    encoded = encode_value({"when": datetime(2024, 1, 1, tzinfo=timezone.utc), "tags": ("a", "b")})

    assert encoded == {"when": "2024-01-01T00:00:00+00:00", "tags": ["a", "b"]}
