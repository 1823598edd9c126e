import os

import pytest
from sqlalchemy.pool import StaticPool

from snackhub.app.core.config import Settings
from snackhub.app.db.base import Base
from snackhub.app.db.models import models_v1  # noqa: F401  (register tables)
from snackhub.app.db.session import Store
from snackhub.app.schemas.datasets import DatasetBundle

TEST_DATABASE_URL = os.getenv("SNACKHUB_TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")

SEED_COMPANY_ID = "qbmyqigrfzbdk0o1egs2kjyf"
OTHER_COMPANY_ID = "m4r7ebyx9s0nwu2ka3l6zq1d"

ZIPCODE_FEED = (
    "postalCode\tfeeType\tisActive\tjuso\n"
    "63000\tJEJU\ttrue\t제주특별자치도 제주시 첨단로 242\n"
    "63001\tJEJU\ttrue\t제주특별자치도 제주시 애월읍\n"
    "\n"
    "23100\tREMOTE_ISLAND\tTRUE\t인천광역시 옹진군 연평면\n"
    "04524\tSTANDARD\tfalse\t서울특별시 중구 세종대로 110\n"
)


@pytest.fixture(scope="function")
def store() -> Store:
    """
    Fresh store per test.

    In-memory SQLite by default (StaticPool: every session sees the same
    database); point SNACKHUB_TEST_DATABASE_URL at Postgres to run the same
    tests there. The schema is dropped at the end of each test.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        s = Store.open(TEST_DATABASE_URL, poolclass=StaticPool)
    else:
        s = Store.open(TEST_DATABASE_URL)

    Base.metadata.create_all(bind=s.engine)
    try:
        yield s
    finally:
        Base.metadata.drop_all(bind=s.engine)
        s.close()


@pytest.fixture
def db_session(store):
    session = store.session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        SEED_COMPANY_ID=SEED_COMPANY_ID,
        DATA_DIR=str(tmp_path / "data"),
        ZIPCODE_FEED=str(tmp_path / "zipcodes.tsv"),
        UNIT_TIMEOUT_SECONDS=30,
        INSERT_CHUNK_SIZE=2,
    )


def make_bundle_data() -> dict:
    """Seed bundle shaped like the exported JSON files (camelCase keys)."""
    return {
        "companies": [
            {"id": SEED_COMPANY_ID, "name": "스낵컴퍼니", "businessNumber": "123-45-67890"},
            {"id": OTHER_COMPANY_ID, "name": "제주상사"},
        ],
        "company_addresses": [
            # matches a zipcode row -> linked
            {
                "id": "addr00000000000000000001",
                "companyId": SEED_COMPANY_ID,
                "postalCode": "63000",
                "address": "제주특별자치도 제주시 첨단로 242",
            },
            # no zipcode row for this pair -> stored without a link
            {
                "id": "addr00000000000000000002",
                "companyId": OTHER_COMPANY_ID,
                "postalCode": "06236",
                "address": "서울특별시 강남구 테헤란로 152",
            },
        ],
        "categories": [
            {"id": "cat00000000000000000snack", "name": "스낵"},
            {"id": "cat0000000000000000drink", "name": "음료"},
        ],
        "sub_categories": [
            {"id": "sub000000000000000000chip", "parentId": "cat00000000000000000snack", "name": "과자"},
            {"id": "sub00000000000000000candy", "parentId": "cat00000000000000000snack", "name": "사탕"},
            {"id": "sub00000000000000000water", "parentId": "cat0000000000000000drink", "name": "생수"},
        ],
        "users": [
            {
                "id": "usr00000000000000000admin",
                "companyId": SEED_COMPANY_ID,
                "email": "admin@snack.co",
                "name": "관리자",
                "password": "$2b$10$hash",
                "role": "ROOT_ADMIN",
            },
            {
                "id": "usr0000000000000000member",
                "companyId": SEED_COMPANY_ID,
                "email": "member@snack.co",
                "name": "김스낵",
                "password": "$2b$10$hash",
            },
            {
                "id": "usr00000000000000000jejux",
                "companyId": OTHER_COMPANY_ID,
                "email": "jeju@jeju.co",
                "name": "제주",
                "password": "$2b$10$hash",
                "role": "ADMIN",
            },
        ],
        "products": [
            {
                "id": "prd0000000000000000000001",
                "companyId": SEED_COMPANY_ID,
                "categoryId": "sub000000000000000000chip",
                "name": "새우깡",
                "price": 1000,
            },
            {
                "id": "prd0000000000000000000002",
                "companyId": SEED_COMPANY_ID,
                "categoryId": "sub000000000000000000chip",
                "name": "포카칩",
                "price": 500,
            },
            {
                "id": "prd0000000000000000000003",
                "companyId": SEED_COMPANY_ID,
                "categoryId": "sub00000000000000000water",
                "name": "삼다수",
                "price": 700,
            },
        ],
        "carts": [{"id": "bhcxqfshp43wkskocodegc7x", "userId": "usr0000000000000000member"}],
        "order_requests": [
            {"id": "nz2p1larko8dcbyr7ej08v98", "requesterId": "usr0000000000000000member"},
            {"id": "xp569x8t45rbax2m2pqhqsnl", "requesterId": "usr00000000000000000jejux", "status": "APPROVED"},
        ],
        "order_request_items": [
            {
                "id": "ux1idk821b5j1qmv6b30ncko",
                "orderRequestId": "nz2p1larko8dcbyr7ej08v98",
                "productId": "prd0000000000000000000001",
                "quantity": 2,
            },
            {
                "id": "fugejwfmuo43d7po46psreto",
                "orderRequestId": "nz2p1larko8dcbyr7ej08v98",
                "productId": "prd0000000000000000000002",
                "quantity": 3,
            },
            {
                "id": "vsqr28wsy0oxz1fzstc9s8l1",
                "orderRequestId": "xp569x8t45rbax2m2pqhqsnl",
                "productId": "prd0000000000000000000003",
                "quantity": 4,
                "price": 650,
            },
        ],
        "orders": [
            {
                "id": "ord0000000000000000000001",
                "userId": "usr00000000000000000jejux",
                "orderRequestId": "xp569x8t45rbax2m2pqhqsnl",
                "status": "PROCESSING",
            },
        ],
        "order_items": [
            {
                "id": "oit0000000000000000000001",
                "orderId": "ord0000000000000000000001",
                "productId": "prd0000000000000000000003",
                "quantity": 4,
                "price": 650,
            },
        ],
    }


@pytest.fixture
def bundle_data() -> dict:
    return make_bundle_data()


@pytest.fixture
def bundle(bundle_data) -> DatasetBundle:
    return DatasetBundle.model_validate(bundle_data)
