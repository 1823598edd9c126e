"""
Attach company addresses to zipcode rows.

The link is optional: zipcode coverage is never complete, so an address with
no match is stored without `zipcode_id`. A miss is not an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from snackhub.app.db.models.models_v1 import CompanyAddress, Zipcode

logger = logging.getLogger(__name__)


@dataclass
class ZipcodeIndex:
    """(postal_code, address) -> zipcode id, built once per load."""

    by_key: dict[tuple[str, str], str] = field(default_factory=dict)

    @classmethod
    def from_session(cls, session: Session) -> "ZipcodeIndex":
        index = cls()
        rows = session.execute(
            select(Zipcode.id, Zipcode.postal_code, Zipcode.address).order_by(Zipcode.id.asc())
        )
        for zid, postal_code, address in rows:
            # first row wins when the feed repeats a key
            index.by_key.setdefault(_key(postal_code, address), zid)
        return index

    def __len__(self) -> int:
        return len(self.by_key)


def _key(postal_code: str, address: str) -> tuple[str, str]:
    return (postal_code.strip(), address.strip())


def resolve(postal_code: str, address: str, index: ZipcodeIndex) -> str | None:
    zid = index.by_key.get(_key(postal_code, address))
    if zid is None:
        logger.debug("no zipcode for (%s, %s)", postal_code, address)
    return zid


def relink_addresses(session: Session, index: ZipcodeIndex | None = None) -> int:
    """
    Re-resolve `zipcode_id` for every stored address.

    Used after the zipcode table is replaced (the delete nulls the links).
    Returns how many addresses changed.
    """
    if index is None:
        index = ZipcodeIndex.from_session(session)

    changed = 0
    for addr in session.execute(
        select(CompanyAddress).execution_options(populate_existing=True)
    ).scalars():
        zid = resolve(addr.postal_code, addr.address, index)
        if addr.zipcode_id != zid:
            addr.zipcode_id = zid
            changed += 1
    session.flush()
    return changed
