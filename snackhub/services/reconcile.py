"""
Reconciliation entry point: zipcode resync, then the bundle load.

The two run as separate units of work, one after the other. A failed load
does not undo a committed resync (and vice versa); each unit is safe to
re-run as a whole, which is the only retry policy.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from snackhub.app.core.config import Settings
from snackhub.app.db.session import Store
from snackhub.app.schemas.datasets import DatasetBundle, load_bundle_dir
from snackhub.services.loader import LoadReport, load_bundle
from snackhub.services.transactions import unit_of_work
from snackhub.services.zipcodes import ResyncReport, ZipcodeRow, read_zipcode_feed, resync_zipcodes

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    resync: ResyncReport
    load: LoadReport

    def as_dict(self) -> dict:
        return {
            "zipcode_branch": self.resync.branch.value,
            "zipcodes_deleted": self.resync.deleted,
            "zipcodes_inserted": self.resync.inserted,
            "addresses_relinked": self.resync.relinked_addresses,
            "inserted": dict(self.load.inserted),
            "unresolved_addresses": self.load.unresolved_addresses,
            "totals": dict(self.load.totals),
        }


def run_zipcode_resync(
    store: Store,
    rows: tuple[ZipcodeRow, ...],
    settings: Settings,
    cancel_event: threading.Event | None = None,
) -> ResyncReport:
    with unit_of_work(
        store,
        "zipcode-resync",
        timeout_seconds=settings.UNIT_TIMEOUT_SECONDS,
        cancel_event=cancel_event,
    ) as uow:
        return resync_zipcodes(
            uow.session,
            rows,
            chunk_size=settings.INSERT_CHUNK_SIZE,
            checkpoint=uow.checkpoint,
        )


def run_bundle_load(
    store: Store,
    bundle: DatasetBundle,
    settings: Settings,
    cancel_event: threading.Event | None = None,
) -> LoadReport:
    with unit_of_work(
        store,
        "bundle-load",
        timeout_seconds=settings.UNIT_TIMEOUT_SECONDS,
        cancel_event=cancel_event,
    ) as uow:
        return load_bundle(
            uow.session,
            bundle,
            seed_company_id=settings.SEED_COMPANY_ID,
            chunk_size=settings.INSERT_CHUNK_SIZE,
            checkpoint=uow.checkpoint,
        )


def reconcile(
    store: Store,
    settings: Settings,
    *,
    zipcode_feed: str | Path | None = None,
    data_dir: str | Path | None = None,
    cancel_event: threading.Event | None = None,
) -> ReconcileReport:
    feed_path = Path(zipcode_feed or settings.ZIPCODE_FEED)
    bundle_dir = Path(data_dir or settings.DATA_DIR)

    # Input errors surface before any transaction is opened
    rows = read_zipcode_feed(feed_path).unwrap()
    bundle = load_bundle_dir(bundle_dir)

    resync = run_zipcode_resync(store, rows, settings, cancel_event)
    load = run_bundle_load(store, bundle, settings, cancel_event)

    report = ReconcileReport(resync=resync, load=load)
    logger.info("reconcile done: %s", report.as_dict())
    return report
