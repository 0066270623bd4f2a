"""Shared SQLModel base class with an attached query manager."""

from __future__ import annotations

from typing import ClassVar

from sqlmodel import SQLModel

from courtbook.db.query_manager import ManagerDescriptor


class QueryModel(SQLModel, table=False):
    """Base for table models exposing `Model.objects` query helpers."""

    objects: ClassVar[ManagerDescriptor] = ManagerDescriptor()
