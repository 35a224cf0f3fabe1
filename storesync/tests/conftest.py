"""Pytest configuration for storesync tests

WHAT: Provides shared fixtures for service, scheduler and HTTP endpoint tests
WHY: Ensures consistent test setup, database isolation, and a fake store API
REFERENCES:
    - storesync/database.py: Database configuration
    - storesync/services/store_client.py: Store API client (driven via httpx.MockTransport)
    - storesync/main.py: FastAPI application
"""

import os
import re
from datetime import datetime
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Ensure project root is in path
import sys
from pathlib import Path
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Set test environment (storesync.database builds its engine at import time)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine(tmp_path):
    """Create a file-backed SQLite engine.

    A file database (rather than :memory:) gives every session its own
    connection, which is what concurrent synchronizer runs expect.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'storesync_test.db'}",
        connect_args={"check_same_thread": False},
    )

    from storesync.database import Base
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_db_engine) -> Callable[[], Session]:
    """Session factory handed to synchronizers, orchestrator and scheduler."""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_db_engine)


@pytest.fixture
def test_db_session(session_factory) -> Generator[Session, None, None]:
    """Session used by tests to arrange data."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def make_tenant(test_db_session):
    """Factory for Tenant rows."""
    from storesync.models import Tenant

    def _make(name: str, store_domain: str, is_active: bool = True):
        tenant = Tenant(
            name=name,
            store_domain=store_domain,
            access_token=f"shpat_{name.lower().replace(' ', '_')}",
            is_active=is_active,
            created_at=datetime.utcnow(),
        )
        test_db_session.add(tenant)
        test_db_session.commit()
        test_db_session.refresh(tenant)
        return tenant

    return _make


@pytest.fixture
def test_tenant(make_tenant):
    return make_tenant("Alpha Store", "alpha.myshopify.com")


@pytest.fixture
def test_tenant_b(make_tenant):
    """Second tenant (for isolation tests)."""
    return make_tenant("Beta Store", "beta.myshopify.com")


# ============================================================================
# Fake Store API
# ============================================================================

_VERSION_PREFIX = re.compile(r"^/admin/api/[^/]+")


class FakeStoreAPI:
    """In-process store REST API served through httpx.MockTransport.

    Collections are paged by `page_size` and linked with rel="next" Link
    headers carrying an opaque page_info cursor, like the real API.
    """

    def __init__(self):
        self.collections: Dict[Tuple[str, str], Tuple[str, List[Any], int]] = {}
        self.failures: Dict[Tuple[str, str], Tuple[int, Any]] = {}
        self.shops: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []

    def set_collection(self, host: str, path: str, key: str, records: List[Any], page_size: int = 250) -> None:
        self.collections[(host, path)] = (key, list(records), page_size)

    def fail(self, host: str, path: str, status_code: int = 500, errors: Any = "Internal Server Error") -> None:
        self.failures[(host, path)] = (status_code, errors)

    def set_shop(self, host: str, shop: Dict[str, Any]) -> None:
        self.shops[host] = shop

    def requests_for(self, host: str, path: str) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.host == host and _VERSION_PREFIX.sub("", r.url.path) == path
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        path = _VERSION_PREFIX.sub("", request.url.path)

        if (host, path) in self.failures:
            status_code, errors = self.failures[(host, path)]
            return httpx.Response(status_code, json={"errors": errors})

        if path == "/shop.json" and host in self.shops:
            return httpx.Response(200, json={"shop": self.shops[host]})

        if (host, path) not in self.collections:
            return httpx.Response(404, json={"errors": "Not Found"})

        key, records, page_size = self.collections[(host, path)]
        page_info = request.url.params.get("page_info")
        page = int(page_info.split("-")[1]) if page_info else 0

        chunk = records[page * page_size:(page + 1) * page_size]
        headers = {}
        if (page + 1) * page_size < len(records):
            next_url = f"https://{host}{request.url.path}?limit={page_size}&page_info=cursor-{page + 1}"
            headers["Link"] = f'<{next_url}>; rel="next"'

        return httpx.Response(200, json={key: chunk}, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client_factory(self, tenant, **overrides):
        """Drop-in for StoreClient.for_tenant without retries or backoff."""
        from storesync.deps import Settings
        from storesync.services.store_client import StoreClient

        options = {"transport": self.transport, "max_retries": 1, "retry_backoff": 0}
        options.update(overrides)
        return StoreClient.for_tenant(tenant, settings=Settings(), **options)


@pytest.fixture
def fake_store() -> FakeStoreAPI:
    return FakeStoreAPI()


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def orchestrator(session_factory, fake_store):
    from storesync.services.tenant_sync import TenantSyncOrchestrator

    return TenantSyncOrchestrator(session_factory=session_factory, client_factory=fake_store.client_factory)


@pytest.fixture
def sync_scheduler(orchestrator, session_factory):
    from storesync.deps import Settings
    from storesync.services.sync_scheduler import SyncScheduler

    return SyncScheduler(orchestrator, session_factory=session_factory, settings=Settings())


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def app(session_factory, orchestrator, sync_scheduler):
    """Create FastAPI test application with test database and fake store."""
    from storesync.main import create_app
    from storesync.database import get_db
    from storesync.deps import get_orchestrator

    test_app = create_app()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    test_app.state.scheduler = sync_scheduler

    return test_app


@pytest.fixture
def client(app):
    """Create TestClient for HTTP testing (lifespan not started)."""
    from fastapi.testclient import TestClient

    return TestClient(app)


# ============================================================================
# Payload Helpers
# ============================================================================

def customer_payload(external_id: int, **fields) -> Dict[str, Any]:
    payload = {
        "id": external_id,
        "email": f"customer{external_id}@example.com",
        "first_name": "Test",
        "last_name": f"Customer {external_id}",
        "phone": None,
        "total_spent": "0.00",
        "orders_count": 0,
    }
    payload.update(fields)
    return payload


def order_payload(external_id: int, customer_id: Optional[int] = None, line_items=None, **fields) -> Dict[str, Any]:
    payload = {
        "id": external_id,
        "name": f"#{1000 + external_id}",
        "total_price": "25.00",
        "subtotal_price": "20.00",
        "total_tax": "5.00",
        "currency": "USD",
        "financial_status": "paid",
        "fulfillment_status": None,
        "processed_at": "2024-01-15T10:30:00-05:00",
        "customer": {"id": customer_id} if customer_id is not None else None,
        "line_items": line_items or [],
    }
    payload.update(fields)
    return payload


def line_item_payload(external_id: int, title: str, quantity: int = 1, price: str = "10.00") -> Dict[str, Any]:
    return {
        "id": external_id,
        "title": title,
        "quantity": quantity,
        "price": price,
        "variant_id": 5000 + external_id,
        "sku": f"SKU-{external_id}",
        "product_id": 9000 + external_id,
    }


def product_payload(external_id: int, **fields) -> Dict[str, Any]:
    payload = {
        "id": external_id,
        "title": f"Product {external_id}",
        "handle": f"product-{external_id}",
        "body_html": "<p>Description</p>",
        "vendor": "Acme",
        "product_type": "Widget",
        "status": "active",
    }
    payload.update(fields)
    return payload
