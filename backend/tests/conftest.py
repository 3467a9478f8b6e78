"""
Pytest fixtures for pastil backend tests.

Provides an in-memory database, a test client, a manual clock and scheduler
for the cancellation window, and a small pantry of ingredients and products.
"""

from datetime import datetime, timedelta

import pytest

from pastil import create_app
from pastil.extensions import db
from pastil.models import FinishedProduct, RecipeLine, Sale
from pastil.services import inventory_service
from pastil.services.cancellation_service import CancellationWindow
from pastil.services.notification_service import get_notification_sink
from pastil.services.units import PIECE, VOLUME, WEIGHT


class ManualClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class ScheduledCall:
    def __init__(self, delay_seconds, callback):
        self.delay_seconds = delay_seconds
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Records call_later() requests; fire_all() runs the ones still live."""

    def __init__(self):
        self.calls = []

    def call_later(self, delay_seconds, callback):
        call = ScheduledCall(delay_seconds, callback)
        self.calls.append(call)
        return call

    @property
    def live(self):
        return [c for c in self.calls if not c.cancelled and not c.fired]

    def fire_all(self):
        for call in self.live:
            call.fired = True
            call.callback()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def clock():
    return ManualClock(datetime(2024, 5, 10, 12, 0, 0))


@pytest.fixture(scope='function')
def scheduler():
    return ManualScheduler()


@pytest.fixture(scope='function')
def sink(app):
    """The application's notification sink, emptied for this test."""
    with app.app_context():
        sink = get_notification_sink()
    sink.drain()
    return sink


@pytest.fixture(scope='function')
def window(app, sink, clock, scheduler, monkeypatch):
    """Cancellation window on manual time, installed as the app's window."""
    window = CancellationWindow(sink, window_seconds=30, clock=clock, scheduler=scheduler)
    monkeypatch.setitem(app.extensions, "pastil.cancellation_window", window)
    return window


@pytest.fixture(scope='function')
def make_item(db_session):
    def _make(name, unit_type=WEIGHT, qty=10.0, cost_cents=5000, image_path=None):
        return inventory_service.create_item(
            name=name, unit_type=unit_type, qty=qty, cost_cents=cost_cents, image_path=image_path,
        )
    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name, selling_price_cents, lines=(), image_path=None):
        product = FinishedProduct(name=name, selling_price_cents=selling_price_cents, image_path=image_path)
        for item, qty in lines:
            product.recipe_lines.append(RecipeLine(item=item, qty=qty))
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def pantry(make_item, make_product):
    """
    rice 10 kg @ 50.00/kg, chicken 2 kg @ 200.00/kg, sauce 1 L @ 80.00/L, leaf 10 pcs @ 2.00/pc.

    pastil: rice 150 g, chicken 50 g, sauce 10 ml, leaf 1
    extra_rice: rice 150 g, leaf 1
    """
    rice = make_item("Rice", WEIGHT, 10.0, 5000)
    chicken = make_item("Chicken", WEIGHT, 2.0, 20000)
    sauce = make_item("Soy Sauce", VOLUME, 1.0, 8000)
    leaf = make_item("Banana Leaf", PIECE, 10, 200)

    pastil = make_product("Pastil", 4500, [(rice, 150), (chicken, 50), (sauce, 10), (leaf, 1)])
    extra_rice = make_product("Extra Rice", 1500, [(rice, 150), (leaf, 1)])

    return {
        "rice": rice,
        "chicken": chicken,
        "sauce": sauce,
        "leaf": leaf,
        "pastil": pastil,
        "extra_rice": extra_rice,
    }


@pytest.fixture(scope='function')
def make_sale(db_session):
    def _make(transaction_number, transaction_id="t-1", **overrides):
        values = dict(
            transaction_id=transaction_id,
            transaction_number=transaction_number,
            product_id=None,
            product_name="Pastil",
            qty=1,
            cost_cents=1000,
            selling_price_cents=4500,
            total_cents=4500,
            payment_method="Cash",
            customer_type="Walk-in",
            dine_in_takeout="dine_in",
            created_at=datetime(2024, 5, 10, 12, 0, 0),
        )
        values.update(overrides)
        sale = Sale(**values)
        db_session.add(sale)
        db_session.commit()
        return sale
    return _make


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Current on-hand quantity read straight from the database."""
    def _stock(item_id: int) -> float:
        return db_session.execute(
            db.text("SELECT qty FROM inventory_items WHERE id = :id"), {"id": item_id}
        ).scalar()
    return _stock
