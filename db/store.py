# WORKFLOW: Record store - the persistence boundary of the ingestion pipeline.
# Used by: Change detector, entity upserter, run orchestrator
# Functions:
# 1. insert() - Append one row and commit
# 2. insert_all() - Append several rows under one commit
# 3. update() - Apply field changes to a loaded row and commit
# 4. upsert_by_key() - Atomic insert-or-update on a unique key (ON CONFLICT)
# 5. most_recent() - Latest row for a filter, ordered by a timestamp column
# 6. get() - Primary-key lookup
# 7. ping() - Connectivity probe
#
# Write flow: Component -> RecordStore -> Session -> Commit (one write or one row group per commit)
# Every write is individually durable; a failed write rolls back only itself.

"""
Record store over a SQLAlchemy session.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Type

from sqlalchemy import case, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import Base
from etl.errors import StorageError

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class RecordStore:
    """Minimal insert / upsert-by-key / most-recent contract over one session."""

    def __init__(self, session: Session):
        self.session = session

    def insert(self, record: Base) -> Base:
        try:
            self.session.add(record)
            self.session.commit()
            self.session.refresh(record)
            return record
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(f"Insert into {record.__tablename__} failed: {e}") from e

    def insert_all(self, *records: Base) -> List[Base]:
        """Append several rows in one commit; either all are stored or none."""
        try:
            self.session.add_all(records)
            self.session.commit()
            for record in records:
                self.session.refresh(record)
            return list(records)
        except SQLAlchemyError as e:
            self.session.rollback()
            tables = ", ".join(sorted({r.__tablename__ for r in records}))
            raise StorageError(f"Insert into {tables} failed: {e}") from e

    def update(self, record: Base, **changes: Any) -> Base:
        try:
            for field, value in changes.items():
                setattr(record, field, value)
            self.session.commit()
            return record
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(f"Update of {record.__tablename__} failed: {e}") from e

    def upsert_by_key(
        self,
        model: Type[Base],
        values: Dict[str, Any],
        key: str,
        preserve: Iterable[str] = (),
        non_decreasing: Iterable[str] = (),
    ) -> None:
        """
        Insert ``values`` or update the row whose ``key`` already matches.

        The statement is a single ``INSERT ... ON CONFLICT DO UPDATE`` so two
        writers racing on the same key resolve in the database (last write
        wins). Columns in ``preserve`` keep their stored value on conflict;
        columns in ``non_decreasing`` never move backwards.
        """
        table = model.__table__
        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise StorageError(f"Upsert is not supported on dialect '{dialect}'")

        preserve = set(preserve)
        non_decreasing = set(non_decreasing)
        stmt = insert(table).values(**values)
        updates = {}
        for column in values:
            if column == key or column in preserve:
                continue
            if column in non_decreasing:
                updates[column] = case(
                    (table.c[column] < stmt.excluded[column], stmt.excluded[column]),
                    else_=table.c[column],
                )
            else:
                updates[column] = stmt.excluded[column]
        if updates:
            stmt = stmt.on_conflict_do_update(index_elements=[table.c[key]], set_=updates)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=[table.c[key]])

        try:
            self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(f"Upsert into {table.name} failed: {e}") from e

    def most_recent(self, model: Type[Base], order_by: str, **filters: Any) -> Optional[Base]:
        column = getattr(model, order_by)
        stmt = (
            select(model)
            .filter_by(**filters)
            .order_by(column.desc(), *[c.desc() for c in model.__table__.primary_key])
            .limit(1)
        )
        try:
            return self.session.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(f"Query on {model.__tablename__} failed: {e}") from e

    def get(self, model: Type[Base], key: Any) -> Optional[Base]:
        try:
            return self.session.get(model, key)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StorageError(f"Lookup on {model.__tablename__} failed: {e}") from e

    def rollback(self) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback failed: {e}")

    def ping(self) -> bool:
        try:
            self.session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Record store ping failed: {e}")
            self.rollback()
            return False

    def close(self) -> None:
        self.session.close()
