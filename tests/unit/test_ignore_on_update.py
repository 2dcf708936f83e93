from __future__ import annotations

import pytest

from tests.models import User

USER_ID = "user-1"


@pytest.fixture
def new_user():
    return User(id=USER_ID, name="Name", set_on_update="set", dont_set_on_update="kept")


async def _stored(users):
    users.session.expunge_all()
    return await users.get_by_id(USER_ID)


@pytest.mark.asyncio
async def test_ignored_field_is_written_on_create(users, new_user):
    await users.create(new_user)

    stored = await _stored(users)
    assert stored.set_on_update == "set"
    assert stored.dont_set_on_update == "kept"


@pytest.mark.asyncio
async def test_detached_update_leaves_ignored_field(users, new_user):
    await users.create(new_user)
    users.session.expunge_all()

    await users.update(
        User(id=USER_ID, name="Name", set_on_update="changed", dont_set_on_update="changed")
    )

    stored = await _stored(users)
    assert stored.set_on_update == "changed"
    assert stored.dont_set_on_update == "kept"


@pytest.mark.asyncio
async def test_tracked_update_reverts_ignored_field(users, new_user):
    user = await users.create(new_user)
    user.set_on_update = "changed"
    user.dont_set_on_update = "changed"

    await users.update(user)

    assert user.dont_set_on_update == "kept"
    stored = await _stored(users)
    assert stored.set_on_update == "changed"
    assert stored.dont_set_on_update == "kept"


@pytest.mark.asyncio
async def test_save_of_existing_record_leaves_ignored_field(users, new_user):
    await users.create(new_user)

    await users.save(User(id=USER_ID, name="Other", dont_set_on_update="changed"))

    stored = await _stored(users)
    assert stored.name == "Other"
    assert stored.dont_set_on_update == "kept"


@pytest.mark.asyncio
async def test_synchronized_updates_leave_ignored_field(users, new_user):
    await users.create(new_user)

    result = await users.synchronize_collection(
        users.as_queryable(),
        [User(id=USER_ID, set_on_update="synced", dont_set_on_update="changed")],
    )

    assert len(result.updated) == 1
    stored = await _stored(users)
    assert stored.set_on_update == "synced"
    assert stored.dont_set_on_update == "kept"
