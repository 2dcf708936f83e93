from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from crudrepo.errors import NotFoundError
from crudrepo.infrastructure.db_factory import (
    TRANSACTION_DEPTH_KEY,
    in_transaction_scope,
    transaction,
)
from crudrepo.repositories.sqlalchemy_repository import SqlAlchemyCrudRepository
from tests.models import Author, Book


@pytest.fixture
def books(session):
    return SqlAlchemyCrudRepository(session, Book)


@pytest.fixture
def commits(session, monkeypatch):
    calls = []
    original = session.commit

    async def counting_commit():
        calls.append(1)
        await original()

    monkeypatch.setattr(session, "commit", counting_commit)
    return calls


@pytest.mark.asyncio
async def test_each_call_commits_outside_a_scope(authors, commits):
    await authors.create(Author(name="A1"))
    await authors.create(Author(name="A2"))

    assert len(commits) == 2


@pytest.mark.asyncio
async def test_nested_scopes_commit_once(authors, books, session, commits):
    async with transaction(session):
        author = await authors.create(Author(name="A1"))
        async with transaction(session):
            await books.create(Book(name="B1", author_id=author.id))
        assert in_transaction_scope(session)
        await authors.update(Author(id=author.id, name="A1x"))

    assert len(commits) == 1
    assert not in_transaction_scope(session)
    assert session.info[TRANSACTION_DEPTH_KEY] == 0


@pytest.mark.asyncio
async def test_keys_are_assigned_inside_a_scope(authors, session):
    async with transaction(session):
        author = await authors.create(Author(name="A1"))
        assert author.id not in (None, 0)


@pytest.mark.asyncio
async def test_failure_rolls_back_every_repository(authors, books, session):
    with pytest.raises(IntegrityError):
        async with transaction(session):
            await authors.create(Author(name="A1"))
            await books.create(Book(name=None, author_id=1))

    assert await authors.get_all() == []
    assert await books.get_all() == []
    assert not in_transaction_scope(session)


@pytest.mark.asyncio
async def test_application_error_rolls_back(authors, session):
    with pytest.raises(RuntimeError):
        async with transaction(session):
            await authors.create(Author(name="A1"))
            raise RuntimeError("abort")

    assert await authors.get_all() == []


@pytest.mark.asyncio
async def test_failed_batch_inside_a_scope_is_undone(authors, session, seeded_authors):
    async with transaction(session):
        with pytest.raises(NotFoundError):
            await authors.update_many([Author(id=1, name="X"), Author(id=99, name="ghost")])

        assert (await authors.get_by_id(1)).name == "A1"
        await authors.create(Author(name="A4"))

    session.expunge_all()
    names = sorted(a.name for a in await authors.get_all())
    assert names == ["A1", "A2", "A3", "A4"]


@pytest.mark.asyncio
async def test_failed_insert_inside_a_scope_keeps_earlier_calls(authors, session):
    async with transaction(session):
        await authors.create(Author(name="kept"))
        with pytest.raises(IntegrityError):
            await authors.create_many([Author(name="dropped"), Author(name=None)])

    session.expunge_all()
    assert [a.name for a in await authors.get_all()] == ["kept"]
