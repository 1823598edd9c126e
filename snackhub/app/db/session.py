from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


class Store:
    """
    Handle on the destination database.

    Opened once by an entry point (seed CLI, FastAPI lifespan, test fixture),
    passed explicitly to whoever needs a session, and closed on shutdown.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._sessionmaker = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    @classmethod
    def open(cls, url: str, **engine_kwargs) -> "Store":
        if url.startswith("sqlite"):
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        else:
            engine_kwargs.setdefault("pool_pre_ping", True)
        engine = create_engine(url, **engine_kwargs)

        if engine.dialect.name == "sqlite":
            # SQLite ignores FOREIGN KEY clauses unless asked per connection
            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_conn, _record):
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        return cls(engine)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def session(self) -> Session:
        return self._sessionmaker()

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
