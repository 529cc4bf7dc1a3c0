"""Pytest configuration and fixtures."""

import copy
import os
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.database import Base, get_db
from src.exceptions import UpstreamUnavailable
from src.main import app
from src.models import Vendor
from src.models.enums import VendorType
from src.services.auth import create_access_token
from src.services.image_storage import ImageStorageClient, get_image_storage
from src.services.presence import (
    CATEGORY_STATUS,
    PresenceStore,
    change_channel,
    get_presence_store,
    is_leaf,
    split_path,
)


class AuthHeaders(dict):
    """Dict subclass that also stores vendor_id."""

    def __init__(self, *args, vendor_id: int | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.vendor_id = vendor_id


class MemoryPresenceStore(PresenceStore):
    """In-memory presence store with the same path API as the Redis store."""

    def __init__(self) -> None:
        self.data: dict[str, dict] = {"vendorStatus": {}, "vendorType": {}, "categoryStatus": {}}
        self.published: list[tuple[str, dict]] = []
        self.unavailable = False

    def _check(self) -> None:
        if self.unavailable:
            raise UpstreamUnavailable("presence", "Presence store unavailable")

    def get(self, path):
        self._check()
        node = self.data[split_path(path)[0]]
        for part in split_path(path)[1:]:
            if not isinstance(node, dict) or part not in node:
                return None if is_leaf(split_path(path)) else {}
            node = node[part]
        return copy.deepcopy(node)

    def set(self, path, value):
        self._check()
        parts = split_path(path)
        if not is_leaf(parts):
            raise ValueError(f"Only single flags can be set, got {path!r}")
        node = self.data[parts[0]]
        for part in parts[1:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
        self.published.append((change_channel(parts[0]), {"path": "/".join(parts)}))

    def remove(self, path):
        self._check()
        parts = split_path(path)
        if len(parts) == 1:
            self.data[parts[0]] = {}
        else:
            node = self.data[parts[0]]
            for part in parts[1:-1]:
                node = node.get(part, {})
            node.pop(parts[-1], None)
            if parts[0] == CATEGORY_STATUS and len(parts) == 3 and not node:
                self.data[CATEGORY_STATUS].pop(parts[1], None)
        self.published.append((change_channel(parts[0]), {"path": "/".join(parts)}))

    def publish(self, channel, message):
        self._check()
        self.published.append((channel, message))

    def events(self, channel: str) -> list[dict]:
        return [message for published, message in self.published if published == channel]


# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace(
        "/food_marketplace", "/food_marketplace_test"
    )
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        # For PostgreSQL, create the test database
        from sqlalchemy_utils import create_database, database_exists

        # Create test database if it doesn't exist
        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield
    # Don't drop database - just leave it for next run (each test cleans up after itself)


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def presence():
    """In-memory presence store."""
    return MemoryPresenceStore()


@pytest.fixture
def images():
    """Image store client that never reaches the network."""
    return MagicMock(spec=ImageStorageClient)


@pytest.fixture(scope="function")
def client(db, presence, images):
    """Create a test client with database, presence and image store overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_presence_store] = lambda: presence
    app.dependency_overrides[get_image_storage] = lambda: images
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_vendor(db):
    """Factory for durable vendors."""

    def _make_vendor(
        vendor_id: int,
        name: str = "Campus Bites",
        vendor_type: VendorType | None = None,
        **fields,
    ) -> Vendor:
        vendor = Vendor(
            id=vendor_id,
            name=name,
            vendor_type=vendor_type.value if vendor_type else None,
            **fields,
        )
        db.add(vendor)
        db.commit()
        db.refresh(vendor)
        return vendor

    return _make_vendor


@pytest.fixture
def vendor(make_vendor):
    """An unclassified vendor with id 1."""
    return make_vendor(1, description="Fresh food near the library", landmark="Library")


@pytest.fixture
def seller_headers(vendor):
    """Auth headers for the vendor fixture."""
    token = create_access_token(vendor.id)
    return AuthHeaders({"Authorization": f"Bearer {token}"}, vendor_id=vendor.id)
