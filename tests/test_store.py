import pytest

from backoffice.store import MemoryStore, SqliteStore, open_store
from lifecycle.errors import NotFoundError, ValidationError
from lifecycle.models import Client


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return SqliteStore(str(tmp_path / "store.sqlite"))


def test_ids_per_kind_start_at_one(any_store):
    c = any_store.create("client", {"name": "A", "email": "a@a", "phone": "1"})
    u = any_store.create("user", {"name": "U", "email": "u@u", "password": "x"})
    assert (c.id, u.id) == (1, 1)
    assert isinstance(c, Client)


def test_ids_never_reused_after_delete(any_store):
    first = any_store.create("client", {"name": "A", "email": "a@a", "phone": "1"})
    any_store.delete("client", first.id)
    second = any_store.create("client", {"name": "B", "email": "b@b", "phone": "2"})
    assert second.id == 2


def test_derive_receives_assigned_id(any_store):
    seen = []

    def derive(new_id):
        seen.append(new_id)
        return {"phone": f"#{new_id}"}

    any_store.create("client", {"name": "A", "email": "a@a", "phone": "-"})
    c = any_store.create("client", {"name": "B", "email": "b@b"}, derive=derive)
    assert seen == [2]
    assert any_store.get("client", 2).phone == "#2" == c.phone


def test_get_update_delete_missing(any_store):
    with pytest.raises(NotFoundError):
        any_store.get("client", 1)
    with pytest.raises(NotFoundError):
        any_store.update("client", 1, {"name": "x"})
    with pytest.raises(NotFoundError):
        any_store.delete("client", 1)


def test_update_and_list(any_store):
    any_store.create("client", {"name": "A", "email": "a@a", "phone": "1"})
    any_store.create("client", {"name": "B", "email": "b@b", "phone": "2"})
    updated = any_store.update("client", 2, {"phone": "99"})
    assert updated.phone == "99"
    assert [c.phone for c in any_store.list("client")] == ["1", "99"]


def test_bad_fields_leave_store_untouched(any_store):
    with pytest.raises(ValidationError):
        any_store.create("client", {"name": "A", "color": "red"})
    any_store.create("client", {"name": "A", "email": "a@a", "phone": "1"})
    with pytest.raises(ValidationError):
        any_store.update("client", 1, {"id": 5})
    with pytest.raises(ValidationError):
        any_store.update("client", 1, {"color": "red"})
    assert [c.name for c in any_store.list("client")] == ["A"]


def test_unknown_kind(any_store):
    with pytest.raises(ValueError):
        any_store.list("invoice")


def test_sqlite_survives_reopen(tmp_path):
    path = str(tmp_path / "durable.sqlite")
    s1 = SqliteStore(path)
    s1.create("client", {"name": "A", "email": "a@a", "phone": "1"})
    s1.delete("client", 1)

    s2 = SqliteStore(path)
    assert s2.list("client") == []
    assert s2.create("client", {"name": "B", "email": "b@b", "phone": "2"}).id == 2


def test_sqlite_roundtrips_equipment(tmp_path, clock):
    from lifecycle.service import LifecycleService

    svc = LifecycleService(SqliteStore(str(tmp_path / "eq.sqlite")), clock=clock)
    c = svc.create_client("H", "h@h", "1")
    u = svc.register_user("U", "u@h", "x", "EMPLOYEE")
    eq = svc.create_equipment(c.id, u.id, "Kit", "Kit")
    svc.set_step_completion(svc.list_cleaning_steps(eq.id)[0].id, True)
    eq = svc.get_equipment(eq.id)
    assert eq.code == "EQ-0001"
    assert eq.status.value == "CLEANING"
    assert eq.cleaning_started_at.tzinfo is not None
    assert svc.list_employees()[0].id == u.id


def test_open_store():
    assert isinstance(open_store("memory"), MemoryStore)
    with pytest.raises(ValueError):
        open_store("redis")
