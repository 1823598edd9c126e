"""
Zipcode reference data: feed parsing, change detection and resync.

The zipcode table is never patched row by row. A resync either loads an
empty table, leaves an identical table alone, or replaces it wholesale.

Change detection hashes only the fields that matter for fee calculation
(postal_code, fee_type, is_active). The free-text address is cosmetic, and
rows are sorted before hashing, so reordering or re-spacing the upstream feed
never triggers a spurious replace.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from snackhub.app.db.bulk import BATCH_SIZE, insert_if_absent
from snackhub.app.db.ids import new_id
from snackhub.app.db.models.core_types import FeeType, ResyncBranch
from snackhub.app.db.models.models_v1 import Zipcode
from snackhub.services.address_resolver import relink_addresses
from snackhub.services.errors import MalformedRowError, MissingDatasetError

logger = logging.getLogger(__name__)

FIELD_COUNT = 4


@dataclass(frozen=True)
class ZipcodeRow:
    postal_code: str  # kept as text: leading zeros matter
    fee_type: FeeType
    is_active: bool
    address: str


@dataclass(frozen=True)
class MalformedRow:
    line_number: int
    raw: str
    reason: str

    def to_error(self) -> MalformedRowError:
        return MalformedRowError(self.line_number, self.raw, self.reason)


@dataclass(frozen=True)
class ZipcodeFeed:
    """Parse outcome: either rows, or the first malformed line."""

    rows: tuple[ZipcodeRow, ...] = ()
    malformed: MalformedRow | None = None

    @property
    def ok(self) -> bool:
        return self.malformed is None

    def unwrap(self) -> tuple[ZipcodeRow, ...]:
        if self.malformed is not None:
            raise self.malformed.to_error()
        return self.rows


@dataclass
class ResyncReport:
    branch: ResyncBranch
    stored_before: int
    deleted: int = 0
    inserted: int = 0
    relinked_addresses: int = 0


# ---------- PARSING ----------
def _parse_line(line: str, line_number: int) -> ZipcodeRow | MalformedRow:
    fields = line.split("\t")
    if len(fields) != FIELD_COUNT:
        return MalformedRow(line_number, line, f"expected {FIELD_COUNT} tab-separated fields, got {len(fields)}")

    postal_code, fee_type, is_active, address = (f.strip() for f in fields)
    if not (postal_code and fee_type and is_active and address):
        return MalformedRow(line_number, line, "blank required field")

    try:
        fee = FeeType(fee_type)
    except ValueError:
        return MalformedRow(line_number, line, f"unknown fee type {fee_type!r}")

    return ZipcodeRow(
        postal_code=postal_code,
        fee_type=fee,
        is_active=is_active.lower() == "true",
        address=address,
    )


def parse_zipcode_feed(text: str) -> ZipcodeFeed:
    """
    Parse the tab-separated zipcode feed.

    Line 1 is a header and is skipped; blank lines are ignored. Each data
    line must hold exactly postal_code, fee_type, is_active, address. The
    first bad line stops parsing: partial reference data is never accepted.
    """
    rows: list[ZipcodeRow] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        if line_number == 1 or not line.strip():
            continue
        parsed = _parse_line(line, line_number)
        if isinstance(parsed, MalformedRow):
            logger.error("malformed zipcode row at line %d: %r", line_number, line)
            return ZipcodeFeed(malformed=parsed)
        rows.append(parsed)
    return ZipcodeFeed(rows=tuple(rows))


def read_zipcode_feed(path: str | Path) -> ZipcodeFeed:
    path = Path(path)
    if not path.is_file():
        raise MissingDatasetError("zipcodes", str(path))
    feed = parse_zipcode_feed(path.read_text(encoding="utf-8-sig"))
    logger.info("zipcode feed %s: %d rows parsed", path, len(feed.rows))
    return feed


# ---------- CHANGE DETECTION ----------
def _fingerprint_key(postal_code: str, fee_type, is_active: bool) -> tuple[str, str, bool]:
    return (postal_code.strip(), FeeType(fee_type).value, bool(is_active))


def _digest(keys: Iterable[tuple[str, str, bool]]) -> str:
    payload = json.dumps(sorted(keys), separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def fingerprint(rows: Iterable[ZipcodeRow]) -> str:
    return _digest(_fingerprint_key(r.postal_code, r.fee_type, r.is_active) for r in rows)


def stored_fingerprint(session: Session) -> str:
    result = session.execute(select(Zipcode.postal_code, Zipcode.fee_type, Zipcode.is_active))
    return _digest(_fingerprint_key(*row) for row in result)


def stored_count(session: Session) -> int:
    return int(session.scalar(select(func.count(Zipcode.id))) or 0)


def needs_resync(stored_count: int, incoming: Iterable[ZipcodeRow], stored_digest: str | None) -> bool:
    """
    True when the stored table must be (re)loaded from `incoming`.

    An empty table always needs loading; otherwise the content fingerprints
    decide. Row counts alone are never trusted.
    """
    if stored_count == 0:
        return True
    return fingerprint(incoming) != stored_digest


# ---------- RESYNC ----------
def unique_rows(rows: Iterable[ZipcodeRow]) -> tuple[ZipcodeRow, ...]:
    """Drop repeated (postal_code, address) pairs, first occurrence wins."""
    seen: set[tuple[str, str]] = set()
    kept: list[ZipcodeRow] = []
    for r in rows:
        key = (r.postal_code, r.address)
        if key in seen:
            continue
        seen.add(key)
        kept.append(r)
    return tuple(kept)


def _to_insert_rows(rows: Iterable[ZipcodeRow]) -> list[dict]:
    return [
        {
            "id": new_id(),
            "postal_code": r.postal_code,
            "fee_type": r.fee_type,
            "is_active": r.is_active,
            "address": r.address,
        }
        for r in rows
    ]


def resync_zipcodes(
    session: Session,
    rows: Iterable[ZipcodeRow],
    *,
    chunk_size: int = BATCH_SIZE,
    checkpoint: Callable[[str], None] | None = None,
) -> ResyncReport:
    """
    Bring the zipcode table in line with `rows`, inside the caller's transaction.

    Duplicate (postal_code, address) pairs in the feed are skipped.
    """
    rows = unique_rows(rows)
    if not rows:
        raise MissingDatasetError("zipcodes")

    count = stored_count(session)
    if count == 0:
        report = ResyncReport(ResyncBranch.empty_load, stored_before=0)
    elif needs_resync(count, rows, stored_fingerprint(session)):
        report = ResyncReport(ResyncBranch.full_replace, stored_before=count)
    else:
        logger.info("zipcodes unchanged (%d rows), nothing to do", count)
        return ResyncReport(ResyncBranch.no_op, stored_before=count)

    if checkpoint:
        checkpoint("zipcodes.detect")

    if report.branch is ResyncBranch.full_replace:
        report.deleted = session.execute(delete(Zipcode)).rowcount or 0
        if checkpoint:
            checkpoint("zipcodes.delete")

    report.inserted = insert_if_absent(
        session,
        Zipcode,
        _to_insert_rows(rows),
        conflict_columns=("postal_code", "address"),
        chunk_size=chunk_size,
    )
    if checkpoint:
        checkpoint("zipcodes.insert")

    if report.branch is ResyncBranch.full_replace:
        report.relinked_addresses = relink_addresses(session)

    logger.info(
        "zipcodes %s: deleted=%d inserted=%d relinked_addresses=%d",
        report.branch.value,
        report.deleted,
        report.inserted,
        report.relinked_addresses,
    )
    return report
