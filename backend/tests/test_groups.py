import pytest

from app.errors import ConstraintViolationError, NotFoundError
from app.schemas import GroupCreate, GroupUpdate
from app.services.group_store import row_to_group, row_to_group_user


async def test_create_group(store):
    group = await store.create(GroupCreate(name="Trip", description="Weekend trip", created_by="admin"))
    assert group.id is not None
    assert group.name == "Trip"
    assert group.description == "Weekend trip"
    assert group.created_by == "admin"
    assert group.created_at is not None


async def test_get_returns_created_group(store):
    created = await store.create(GroupCreate(name="admins", description="Ops team"))
    group = await store.get(created.id)
    assert group.name == "admins"
    assert group.description == "Ops team"
    assert group == created


async def test_get_missing_group(store):
    with pytest.raises(NotFoundError):
        await store.get(999)


async def test_create_duplicate_name(store):
    await store.create(GroupCreate(name="admins"))
    with pytest.raises(ConstraintViolationError):
        await store.create(GroupCreate(name="admins"))
    assert len(await store.get_all()) == 1


async def test_list_groups(store):
    await store.create(GroupCreate(name="G1"))
    await store.create(GroupCreate(name="G2"))
    groups = await store.get_all()
    assert [g.name for g in groups] == ["G1", "G2"]


async def test_list_groups_empty(store):
    assert await store.get_all() == []


async def test_update_group(store):
    created = await store.create(GroupCreate(name="Old", description="before", created_by="admin"))
    updated = await store.update(GroupUpdate(id=created.id, name="New", description="after"))
    assert updated.id == created.id
    assert updated.name == "New"
    assert updated.description == "after"
    assert updated.created_by == "admin"
    assert (await store.get(created.id)).name == "New"


async def test_update_missing_group(store):
    with pytest.raises(NotFoundError):
        await store.update(GroupUpdate(id=42, name="Nobody"))


async def test_update_to_taken_name(store):
    await store.create(GroupCreate(name="first"))
    second = await store.create(GroupCreate(name="second"))
    with pytest.raises(ConstraintViolationError):
        await store.update(GroupUpdate(id=second.id, name="first"))


async def test_delete_group(store):
    created = await store.create(GroupCreate(name="Del"))
    await store.delete(created.id)
    assert await store.exists(created.id) is False
    assert await store.get_all() == []


async def test_delete_missing_group_is_noop(store):
    await store.create(GroupCreate(name="Keep"))
    await store.delete(999)
    assert len(await store.get_all()) == 1


async def test_delete_all(store):
    await store.create(GroupCreate(name="G1"))
    await store.create(GroupCreate(name="G2"))
    await store.delete_all()
    assert await store.get_all() == []


async def test_exists(store):
    created = await store.create(GroupCreate(name="G"))
    assert await store.exists(created.id) is True
    assert await store.exists(created.id + 1) is False


async def test_exists_with_name(store):
    await store.create(GroupCreate(name="admins"))
    assert await store.exists_with_name("admins") is True
    assert await store.exists_with_name("never-created") is False


def test_row_to_group_without_row():
    with pytest.raises(NotFoundError, match="No group found"):
        row_to_group(None)


def test_row_to_group_user_without_row():
    with pytest.raises(NotFoundError, match="No group user found"):
        row_to_group_user(None)
