"""
Transaction coordinator.

A unit of work is one session, one transaction, one upper bound on duration.
Everything inside commits together or rolls back together; a deadline miss
is reported as `TransactionTimeoutError`, separate from data errors.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from snackhub.app.db.session import Store
from snackhub.services.errors import TransactionTimeoutError, UnitOfWorkCancelled

logger = logging.getLogger(__name__)

# Shared by the zipcode resync and the bundle load: they must never overlap
RECONCILE_LOCK_KEY = 7_301_452_113

# psycopg: query_canceled (statement_timeout)
_SQLSTATE_QUERY_CANCELED = "57014"


@dataclass
class UnitOfWork:
    name: str
    session: Session
    timeout_seconds: float
    cancel_event: threading.Event | None = None
    started_at: float = field(default_factory=time.monotonic)

    @property
    def deadline(self) -> float:
        return self.started_at + self.timeout_seconds

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def checkpoint(self, step: str) -> None:
        """Abort (and roll back) if the unit was cancelled or ran out of time."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise UnitOfWorkCancelled(self.name, step)
        if time.monotonic() >= self.deadline:
            raise TransactionTimeoutError(self.name, self.timeout_seconds, step)


def _apply_postgres_guards(uow: UnitOfWork) -> None:
    # `SET LOCAL x = %s` cannot be parameterized; set_config(..., is_local=true) can.
    budget_ms = max(1, int(uow.remaining() * 1000))
    uow.session.execute(
        text("SELECT set_config('statement_timeout', :v, true)"),
        {"v": str(budget_ms)},
    )
    uow.session.execute(text("SELECT pg_advisory_xact_lock(:k)"), {"k": RECONCILE_LOCK_KEY})


def _is_statement_timeout(exc: OperationalError) -> bool:
    return getattr(exc.orig, "sqlstate", None) == _SQLSTATE_QUERY_CANCELED


@contextmanager
def unit_of_work(
    store: Store,
    name: str,
    *,
    timeout_seconds: float,
    cancel_event: threading.Event | None = None,
) -> Iterator[UnitOfWork]:
    session = store.session()
    uow = UnitOfWork(name=name, session=session, timeout_seconds=timeout_seconds, cancel_event=cancel_event)
    logger.info("unit %s: begin (timeout=%ss)", name, timeout_seconds)
    try:
        with session.begin():
            if store.dialect == "postgresql":
                _apply_postgres_guards(uow)
            yield uow
            # last chance to abort: once committed, effects are permanent
            uow.checkpoint("commit")
    except OperationalError as exc:
        logger.warning("unit %s: rolled back after database error", name)
        if _is_statement_timeout(exc):
            raise TransactionTimeoutError(name, timeout_seconds, "statement") from exc
        raise
    except Exception as exc:
        logger.warning("unit %s: rolled back (%s)", name, type(exc).__name__)
        raise
    finally:
        session.close()

    logger.info("unit %s: committed in %.3fs", name, time.monotonic() - uow.started_at)
