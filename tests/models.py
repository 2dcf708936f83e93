"""
Mapped models shared by the test suite.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from crudrepo.domain.markers import fully_updatable, ignore_on_update, updatable


class Base(DeclarativeBase):
    pass


class Author(Base):
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    age: Mapped[int] = mapped_column(default=0)


class Book(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    author_id: Mapped[int] = mapped_column(ForeignKey("authors.id"))


class User(Base):
    """Natural (string) key; one field is only ever written on insert."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    set_on_update: Mapped[str] = mapped_column(default="")
    dont_set_on_update: Mapped[str] = mapped_column(default="", info=ignore_on_update())


@fully_updatable
class AutoUpdateModel(Base):
    __tablename__ = "auto_update_models"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    age: Mapped[int] = mapped_column(default=0)


class AutoPropertyUpdateModel(Base):
    __tablename__ = "auto_property_update_models"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), info=updatable())
    age: Mapped[int] = mapped_column(default=0)
    created_by: Mapped[str] = mapped_column(default="", info={**updatable(), **ignore_on_update()})


class UnmarkedModel(Base):
    __tablename__ = "unmarked_models"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))


class CompositeKeyModel(Base):
    __tablename__ = "composite_key_models"

    part_a: Mapped[int] = mapped_column(primary_key=True)
    part_b: Mapped[int] = mapped_column(primary_key=True)
