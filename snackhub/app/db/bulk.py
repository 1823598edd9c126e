from __future__ import annotations

from typing import Iterable, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

BATCH_SIZE = 500

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _chunks(rows: Sequence[dict], size: int) -> Iterable[Sequence[dict]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def inserted_ids(
    session: Session,
    model,
    rows: Sequence[dict],
    *,
    conflict_columns: Sequence[str] | None = None,
    chunk_size: int = BATCH_SIZE,
) -> list:
    """
    INSERT ... ON CONFLICT DO NOTHING, chunked. Returns the primary keys of
    the rows actually inserted.

    Without `conflict_columns` the conflict clause has no target, so a
    collision on ANY unique key (id, email, name, ...) skips the row.
    Existing rows are never touched.
    """
    if not rows:
        return []

    dialect = session.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"insert-if-absent is not supported on {dialect!r}") from None

    table = model.__table__
    pk = list(table.primary_key.columns)[0]
    ids: list = []
    for batch in _chunks(list(rows), chunk_size):
        stmt = insert(table).values(list(batch))
        if conflict_columns:
            stmt = stmt.on_conflict_do_nothing(index_elements=[table.c[name] for name in conflict_columns])
        else:
            stmt = stmt.on_conflict_do_nothing()
        ids.extend(session.execute(stmt.returning(pk)).scalars())
    return ids


def insert_if_absent(
    session: Session,
    model,
    rows: Sequence[dict],
    *,
    conflict_columns: Sequence[str] | None = None,
    chunk_size: int = BATCH_SIZE,
) -> int:
    """Same as `inserted_ids`, but only the number of inserted rows."""
    return len(inserted_ids(session, model, rows, conflict_columns=conflict_columns, chunk_size=chunk_size))
