from decimal import Decimal

import pytest

from app.database import Base, make_engine, make_session_factory
from app.errors import DeliveryError, RenderError
from app.messaging.mailer import Mailer
from app.models import AdminUser, Product
from app.orders import OrderStore
from app.schemas import OrderRequest
from app.workflow import OrderWorkflow


class FakeTransport:
    """Mail transport that records messages in memory for test assertions."""

    def __init__(self):
        self.sent = []
        self.should_fail = False

    def deliver(self, message):
        if self.should_fail:
            raise DeliveryError("SMTP error")
        self.sent.append(message)


class FakeRenderer:
    def __init__(self):
        self.rendered = []
        self.should_fail = False

    def render(self, order):
        if self.should_fail:
            raise RenderError("browser failed to launch")
        self.rendered.append((order.order_no, order.invoice_no, order.status))
        return b"%PDF-1.4 fake invoice"


class FakeProducer:
    def __init__(self):
        self.events = []

    def publish_event(self, event_data, routing_key):
        self.events.append((routing_key, event_data))


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def seeded(session_factory):
    db = session_factory()
    db.add_all([
        Product(id=1, title="Dried Black Lime", hsn="0813", stock=10),
        Product(id=2, title="Lime Powder", hsn="0908", stock=1),
        Product(id=3, title="Gift Box", hsn=None, stock=5, status="Inactive"),
        AdminUser(name="Asha", email="admin@vitalimes.com", role="ADMIN"),
        AdminUser(name="Ravi", email="staff@vitalimes.com", role="STAFF"),
        AdminUser(name="Uma", email="uma@example.com", role="USER"),
        AdminUser(name="Kiran", email=None, role="STAFF"),
    ])
    db.commit()
    db.close()


@pytest.fixture
def store(session_factory, seeded):
    return OrderStore(session_factory)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def producer():
    return FakeProducer()


@pytest.fixture
def workflow(store, renderer, transport, producer):
    return OrderWorkflow(
        store=store,
        renderer=renderer,
        mailer=Mailer(transport, "orders@vitalimes.com"),
        producer=producer,
        frontend_url="https://vitalimes.com",
    )


@pytest.fixture
def make_order_request():
    def _make(**overrides):
        data = {
            "name": "Meena Raj",
            "address": "12 Beach Road",
            "city": "Thoothukudi",
            "state": "Tamil Nadu",
            "country": "India",
            "pin": "628001",
            "mobile": "9876543210",
            "email": "meena@example.com",
            "total_amount": Decimal("420.00"),
            "products": [
                {"id": 1, "title": "Dried Black Lime", "qty": 2, "weight": "250g", "price": 120, "sale_price": 105},
                {"id": 2, "title": "Lime Powder", "qty": 1, "weight": "100g", "price": 210},
            ],
        }
        data.update(overrides)
        return OrderRequest(**data)

    return _make


@pytest.fixture
def order_no(store, make_order_request):
    return store.create_pending(make_order_request())
