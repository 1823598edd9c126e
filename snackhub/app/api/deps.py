from __future__ import annotations

from typing import Generator

from fastapi import Request

from snackhub.app.db.session import Store


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_db(request: Request) -> Generator:
    db = get_store(request).session()
    try:
        yield db
    finally:
        db.close()
