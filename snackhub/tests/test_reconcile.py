import json
from pathlib import Path

import pytest
from sqlalchemy import func, select

from snackhub.app.db import seed
from snackhub.app.db.base import Base
from snackhub.app.db.models.core_types import ResyncBranch
from snackhub.app.db.models.models_v1 import Company, OrderRequest, User, Zipcode
from snackhub.app.db.session import Store
from snackhub.app.schemas.datasets import DATASET_FILES, load_bundle_dir
from snackhub.services.errors import DatasetValidationError, MalformedRowError, MissingDatasetError
from snackhub.services.reconcile import reconcile

from conftest import ZIPCODE_FEED, make_bundle_data


def write_inputs(settings, data=None, feed=ZIPCODE_FEED) -> None:
    data = make_bundle_data() if data is None else data
    data_dir = Path(settings.DATA_DIR)
    data_dir.mkdir(parents=True, exist_ok=True)
    for filename, (attr, _, _) in DATASET_FILES.items():
        if attr in data:
            (data_dir / filename).write_text(json.dumps(data[attr], ensure_ascii=False), encoding="utf-8")
    Path(settings.ZIPCODE_FEED).write_text(feed, encoding="utf-8")


def test_reconcile_first_run_then_rerun_is_a_no_op(store, settings):
    write_inputs(settings)

    first = reconcile(store, settings)
    assert first.resync.branch is ResyncBranch.empty_load
    assert first.load.inserted["users"] == 3
    assert first.load.totals["nz2p1larko8dcbyr7ej08v98"] == 3500

    second = reconcile(store, settings)
    assert second.resync.branch is ResyncBranch.no_op
    assert second.load.total_inserted == 0
    assert second.as_dict()["zipcode_branch"] == "no-op"

    with store.session() as s:
        assert s.scalar(select(func.count(Zipcode.id))) == 4
        assert s.get(OrderRequest, "nz2p1larko8dcbyr7ej08v98").total_amount == 3500


def test_reconcile_malformed_feed_opens_no_transaction(store, settings):
    write_inputs(settings, feed="header\n63000\tJEJU\n")

    with pytest.raises(MalformedRowError):
        reconcile(store, settings)

    with store.session() as s:
        assert s.scalar(select(func.count(Zipcode.id))) == 0


def test_missing_required_dataset(store, settings):
    write_inputs(settings)
    (Path(settings.DATA_DIR) / "users.json").unlink()

    with pytest.raises(MissingDatasetError) as exc:
        reconcile(store, settings)

    assert exc.value.name == "users.json"
    # the bundle is read before any unit opens: zipcodes untouched too
    with store.session() as s:
        assert s.scalar(select(func.count(Zipcode.id))) == 0
        assert s.scalar(select(func.count(User.id))) == 0


def test_invalid_bundle_leaves_existing_zipcodes_alone(store, settings):
    write_inputs(settings)
    reconcile(store, settings)

    changed_feed = ZIPCODE_FEED.replace("04524\tSTANDARD\tfalse", "04524\tSTANDARD\ttrue")
    write_inputs(settings, feed=changed_feed)
    (Path(settings.DATA_DIR) / "products.json").write_text("[{\"id\": 1}]", encoding="utf-8")

    with pytest.raises(DatasetValidationError):
        reconcile(store, settings)

    with store.session() as s:
        is_active = s.execute(select(Zipcode.is_active).where(Zipcode.postal_code == "04524")).scalar_one()
    assert is_active is False


def test_optional_datasets_may_be_absent(tmp_path):
    data = make_bundle_data()
    for attr in ("company_addresses", "carts", "order_requests", "order_request_items", "orders", "order_items"):
        data.pop(attr)
    data_dir = tmp_path / "bundle"
    data_dir.mkdir()
    for filename, (attr, _, _) in DATASET_FILES.items():
        if attr in data:
            (data_dir / filename).write_text(json.dumps(data[attr], ensure_ascii=False), encoding="utf-8")

    bundle = load_bundle_dir(data_dir)

    assert len(bundle.users) == 3
    assert bundle.orders == []


def test_invalid_dataset_names_the_file(tmp_path):
    data_dir = tmp_path / "bundle"
    data_dir.mkdir()
    data = make_bundle_data()
    data["products"][0]["price"] = -1
    for filename, (attr, _, required) in DATASET_FILES.items():
        if required:
            (data_dir / filename).write_text(json.dumps(data[attr], ensure_ascii=False), encoding="utf-8")

    with pytest.raises(DatasetValidationError) as exc:
        load_bundle_dir(data_dir)

    assert exc.value.name == "products.json"


# ---------- seed CLI ----------
@pytest.fixture
def file_store_url(tmp_path):
    url = f"sqlite+pysqlite:///{tmp_path / 'seed.db'}"
    with Store.open(url) as s:
        Base.metadata.create_all(bind=s.engine)
    return url


def test_seed_cli_ok(monkeypatch, settings, file_store_url):
    write_inputs(settings)
    monkeypatch.setattr(seed, "settings", settings)

    assert seed.run_seed(["--database-url", file_store_url]) == 0

    with Store.open(file_store_url) as s, s.session() as session:
        assert session.scalar(select(func.count(User.id))) == 3


def test_seed_cli_reports_failure(monkeypatch, settings, file_store_url):
    write_inputs(settings)
    monkeypatch.setattr(seed, "settings", settings.model_copy(update={"SEED_COMPANY_ID": "nobody"}))

    assert seed.run_seed(["--database-url", file_store_url]) == 1


def test_seed_cli_absorbs_existing_email(monkeypatch, settings, file_store_url):
    write_inputs(settings)
    monkeypatch.setattr(seed, "settings", settings)
    with Store.open(file_store_url) as s, s.session() as session, session.begin():
        session.add(Company(id="cmp-existing", name="기존회사"))
        session.flush()
        session.add(
            User(id="usr-existing", company_id="cmp-existing", email="admin@snack.co", name="기존", password="x")
        )

    assert seed.run_seed(["--database-url", file_store_url]) == 0

    with Store.open(file_store_url) as s, s.session() as session:
        assert session.scalar(select(func.count(User.id))) == 3
