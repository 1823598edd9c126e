from __future__ import annotations

import argparse
import logging
import sys

from snackhub.app.core.config import settings
from snackhub.app.core.logging import configure_logging
from snackhub.app.db.session import Store
from snackhub.services.errors import ReconcileError
from snackhub.services.reconcile import reconcile

logger = logging.getLogger("snackhub.seed")


def run_seed(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile zipcodes and the seed dataset bundle into the store")
    parser.add_argument("--data-dir", default=settings.DATA_DIR, help="directory holding the JSON bundle")
    parser.add_argument("--zipcodes", default=settings.ZIPCODE_FEED, help="tab-separated zipcode feed")
    parser.add_argument("--database-url", default=settings.DATABASE_URL)
    args = parser.parse_args(argv)

    configure_logging(settings.LOG_LEVEL)

    with Store.open(args.database_url) as store:
        try:
            report = reconcile(store, settings, zipcode_feed=args.zipcodes, data_dir=args.data_dir)
        except ReconcileError as exc:
            logger.error("SEED FAILED: %s", exc)
            return 1

    logger.info(
        "SEED OK: zipcodes=%s inserted=%s",
        report.resync.branch.value,
        report.load.inserted,
    )
    return 0


if __name__ == "__main__":
    sys.exit(run_seed())
