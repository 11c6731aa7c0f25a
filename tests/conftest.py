"""
Shared fixtures.

Settings are read from the environment once, so the test environment is
set before anything from oms is imported. Every test gets its own
in-memory SQLite database; external APIs are replaced by in-process fakes.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_PASSWORD"] = "staff-password"
os.environ["CRON_SECRET"] = "cron-secret"
os.environ["ADMIN_SECRET"] = "admin-secret"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from oms import models  # noqa: F401  (registers every table)
from oms.api.deps import get_carrier, get_crm, get_stripe
from oms.exceptions import CarrierNotFound, NotFoundError
from oms.models.base import Base, get_db
from oms.models.order import Order
from oms.models.order_pack import OrderPack


# ────────────────────────────────────────────
# Fake external clients
# ────────────────────────────────────────────

class FakeCarrier:
    """SendCloud stand-in that records every call"""

    name = "SendCloud"

    def __init__(self):
        self.calls = []
        self.next_parcel_id = 5000
        self.tracking = {}        # tracking_number -> response dict
        self.missing_tracking = set()
        self.methods = []
        self.return_statuses = {}

    def is_configured(self):
        return True

    def call_names(self):
        return [name for name, _ in self.calls]

    async def create_parcel(self, payload):
        self.calls.append(("create_parcel", payload))
        self.next_parcel_id += 1
        parcel_id = self.next_parcel_id
        return {
            "id": parcel_id,
            "tracking_number": f"3SABCD{parcel_id}",
            "tracking_url": f"https://tracking.sendcloud.sc/forward?code=3SABCD{parcel_id}",
            "label": {"label_printer": f"https://panel.sendcloud.sc/api/v2/labels/label_printer/{parcel_id}"},
        }

    async def get_parcel(self, parcel_id):
        self.calls.append(("get_parcel", parcel_id))
        return {
            "id": parcel_id,
            "tracking_number": f"3SABCD{parcel_id}",
            "tracking_url": f"https://tracking.sendcloud.sc/forward?code=3SABCD{parcel_id}",
            "label": {"normal_printer": f"https://panel.sendcloud.sc/api/v2/labels/normal_printer/{parcel_id}"},
        }

    async def get_tracking(self, tracking_number):
        self.calls.append(("get_tracking", tracking_number))
        if tracking_number in self.missing_tracking:
            raise CarrierNotFound(f"Tracking number {tracking_number} not found at SendCloud", service=self.name)
        return self.tracking.get(tracking_number, {"statuses": []})

    async def create_return(self, payload):
        self.calls.append(("create_return", payload))
        return {"return_id": 777, "parcel_id": 888}

    async def get_return(self, return_id):
        self.calls.append(("get_return", return_id))
        return self.return_statuses.get(str(return_id), {})

    async def list_shipping_methods(self):
        self.calls.append(("list_shipping_methods", None))
        return list(self.methods)

    async def download_label(self, parcel_id):
        self.calls.append(("download_label", parcel_id))
        return b"%PDF-1.4 fake label"


class FakeStripe:
    """Stripe stand-in; construct_event trusts the payload when a signature is present"""

    name = "Stripe"

    def __init__(self):
        self.customers = {}
        self.invoices = {}        # stripe customer id -> [invoice dicts]
        self.subscriptions = {}

    def is_configured(self):
        return True

    def construct_event(self, payload, signature):
        import json
        from oms.connectors.stripe_connector import InvalidSignature
        if signature != "valid":
            raise InvalidSignature("Invalid signature")
        return json.loads(payload)

    def retrieve_customer(self, customer_id):
        if customer_id not in self.customers:
            raise NotFoundError("Customer not found or invalid mode")
        return self.customers[customer_id]

    def list_paid_invoices(self, customer_id, limit=10):
        return self.invoices.get(customer_id, [])[:limit]

    def latest_subscription(self, customer_id):
        return self.subscriptions.get(customer_id)


class FakeCrm:
    name = "HubSpot"

    def __init__(self):
        self.owners = {}          # email -> owner dict

    def is_configured(self):
        return True

    async def find_owner_by_email(self, email):
        if email not in self.owners:
            raise NotFoundError("Contact not found in HubSpot")
        return self.owners[email]


# ────────────────────────────────────────────
# Database
# ────────────────────────────────────────────

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def carrier():
    return FakeCarrier()


@pytest.fixture
def stripe_client():
    return FakeStripe()


@pytest.fixture
def crm():
    return FakeCrm()


@pytest.fixture
def pack(db):
    pack = OrderPack(value="starter-1", label="Starter pack", weight=1.25, height=10, width=20, length=30)
    db.add(pack)
    db.commit()
    return pack


@pytest.fixture
def make_order(db, pack):
    """Factory for a label-ready order; keyword arguments override fields."""
    def _make(**overrides):
        fields = {
            "name": "Jeanne Martin",
            "email": "jeanne@example.com",
            "phone": "+33612345678",
            "shipping_address_line1": "Rue de la Paix",
            "house_number": "12",
            "city": "Paris",
            "postal_code": "75002",
            "country": "FR",
            "paid": True,
            "ok_to_ship": True,
            "order_pack_list_id": pack.id,
            "order_pack": pack.value,
            "order_pack_label": pack.label,
            "order_pack_quantity": 1,
            "shipping_method": 8,
        }
        fields.update(overrides)
        order = Order(**fields)
        db.add(order)
        db.commit()
        return order
    return _make


# ────────────────────────────────────────────
# HTTP client
# ────────────────────────────────────────────

@pytest.fixture
def app(db, carrier, stripe_client, crm):
    from oms.main import app

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_carrier] = lambda: carrier
    app.dependency_overrides[get_stripe] = lambda: stripe_client
    app.dependency_overrides[get_crm] = lambda: crm
    app.state.shipping_methods_cache.clear()
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client(app):
    return TestClient(app)


@pytest.fixture
def client(app):
    client = TestClient(app)
    client.cookies.set("oms_authenticated", "true")
    return client
