# tests/conftest.py
# ------------------------------------------------------------
# Purpose: Shared fixtures so no test needs real MySQL or S3.
# - bo_engine: in-memory SQLite with an attached "bo" schema
#   holding out_brands / brands_groups, like the BO database
# - FakeEngine: scripted lookups, can fail for chosen IO IDs
#   and counts how many connections were opened/closed
# - s3_client: real boto3 client (fake creds) for Stubber use
# ------------------------------------------------------------

from contextlib import contextmanager

import boto3
import pytest
from sqlalchemy import create_engine, event, text
from sqlalchemy.pool import StaticPool

IO_ACME = "eab7e510-eb50-11e9-b544-fb4e13fb7f1d"
IO_GLOBEX = "5f1c2d3e-aaaa-bbbb-cccc-000000000002"
IO_MISSING = "ffffffff-0000-0000-0000-000000000000"


@pytest.fixture
def bo_engine():
    """SQLite engine where `bo.out_brands` / `bo.brands_groups` exist and are seeded."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,  # one shared connection, so the attached DB survives
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _attach_bo(dbapi_conn, _record):
        dbapi_conn.execute("ATTACH DATABASE ':memory:' AS bo")

    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE bo.brands_groups (id INTEGER PRIMARY KEY, name TEXT)"))
        conn.execute(text("CREATE TABLE bo.out_brands (mongodb_id TEXT, brands_group_id INTEGER)"))
        conn.execute(text("INSERT INTO bo.brands_groups (id, name) VALUES (42, 'Acme Group'), (7, 'Globex')"))
        conn.execute(
            text("INSERT INTO bo.out_brands (mongodb_id, brands_group_id) VALUES (:m, :g)"),
            [{"m": IO_ACME, "g": 42}, {"m": IO_GLOBEX, "g": 7}],
        )
    yield engine
    engine.dispose()


class _FakeResult:
    def __init__(self, rows):
        self._rows = rows

    def mappings(self):
        return self

    def all(self):
        return list(self._rows)


class FakeConnection:
    def __init__(self, engine):
        self.engine = engine

    def execute(self, statement, params):
        mongodb_id = params["mongodb_id"]
        self.engine.queries.append(mongodb_id)
        if mongodb_id in self.engine.failing:
            raise RuntimeError(f"Lost connection to MySQL server during query ({mongodb_id})")
        row = self.engine.rows.get(mongodb_id)
        return _FakeResult([row] if row else [])


class FakeEngine:
    """Minimal stand-in for a SQLAlchemy Engine: connect() is a scoped connection."""

    def __init__(self, rows=None, failing=()):
        self.rows = rows or {}
        self.failing = set(failing)
        self.queries = []
        self.opened = 0
        self.closed = 0

    @contextmanager
    def connect(self):
        self.opened += 1
        try:
            yield FakeConnection(self)
        finally:
            self.closed += 1


@pytest.fixture
def fake_engine():
    return FakeEngine(
        rows={
            IO_ACME: {"brand_group_id": 42, "brand_group_name": "Acme Group"},
            IO_GLOBEX: {"brand_group_id": 7, "brand_group_name": "Globex"},
        }
    )


@pytest.fixture
def s3_client():
    """Real botocore client with dummy credentials; wrap it in a Stubber before use."""
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def processed_records():
    # Two brands, one exact duplicate for ACME (same fields, different order)
    return [
        {"io_id": IO_ACME, "date": "2025-11-01", "clicks": 10, "campaign": "Black Friday, EU"},
        {"io_id": IO_GLOBEX, "date": "2025-11-01", "clicks": 3, "campaign": "Always on"},
        {"campaign": "Black Friday, EU", "clicks": 10, "date": "2025-11-01", "io_id": IO_ACME},
        {"io_id": IO_ACME, "date": "2025-11-02", "clicks": 12, "campaign": 'Say "hi"'},
    ]
