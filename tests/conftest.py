"""
Pytest configuration and shared fixtures for PackTrack tests.
"""
import os
import tempfile
from datetime import date, datetime, timedelta

import pytest

from packtrack import create_app
from packtrack.extensions import db
from packtrack.models import Material, Order, OrderItem, Product, Recipe
from packtrack.models.product import PRODUCT_MANUFACTURED, PRODUCT_RESALE
from packtrack.services.lot_ledger import create_lot


@pytest.fixture(scope='function')
def app():
    """Create and configure a new app instance for each test."""
    db_fd, db_path = tempfile.mkstemp()

    app = create_app({
        'TESTING': True,
        'DATABASE_URL': f'sqlite:///{db_path}',
        'SECRET_KEY': 'test-secret-key',
        'APPROVAL_RESALE_FAILURE_POLICY': 'warn',
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def app_context(app):
    """Provide an application context for tests that need it."""
    with app.app_context():
        yield


@pytest.fixture
def db_session(app_context):
    yield db.session
    db.session.rollback()


# --- domain factories -------------------------------------------------------

@pytest.fixture
def make_material(db_session):
    def _make(name='Papel Kraft 200g', admin_unit_cost=4.0, stock_qty=0.0, min_stock=0.0, reorder_point=0.0):
        material = Material(
            name=name,
            admin_unit_cost=admin_unit_cost,
            stock_qty=stock_qty,
            min_stock=min_stock,
            reorder_point=reorder_point,
        )
        db_session.add(material)
        db_session.commit()
        return material
    return _make


@pytest.fixture
def add_lot(db_session):
    """Create a lot with an explicit receipt day so FIFO order is deterministic."""
    base = datetime(2024, 1, 1, 8, 0, 0)

    def _add(material, quantity, unit_cost, day=1, source_ref=None):
        lot = create_lot(
            material.id,
            quantity,
            unit_cost,
            source_ref=source_ref or f'NF-{material.id}-{day}',
            created_at=base + timedelta(days=day - 1),
        )
        db_session.commit()
        return lot
    return _add


@pytest.fixture
def make_product(db_session):
    def _make(name='Saco Kraft', kind=PRODUCT_MANUFACTURED, recipes=None, stock_qty=0.0,
              lead_time_days=None, min_stock=0.0, reorder_point=0.0):
        product = Product(
            name=name,
            kind=kind,
            stock_qty=stock_qty,
            lead_time_days=lead_time_days,
            min_stock=min_stock,
            reorder_point=reorder_point,
        )
        db_session.add(product)
        db_session.flush()
        for material, grams in (recipes or []):
            db_session.add(Recipe(
                product_id=product.id,
                material_id=material.id,
                consumption_per_unit_g=grams,
                cost_per_unit=grams / 1000.0 * material.admin_unit_cost,
            ))
        db_session.commit()
        return product
    return _make


@pytest.fixture
def make_resale_product(make_product):
    def _make(name='Fita Adesiva', stock_qty=10.0, **kwargs):
        return make_product(name=name, kind=PRODUCT_RESALE, stock_qty=stock_qty, **kwargs)
    return _make


@pytest.fixture
def make_order(db_session):
    counter = {'n': 0}

    def _make(lines, number=None, kind='orcamento', order_date=date(2024, 3, 1),
              lead_time_days=None, expected_delivery_date=None):
        """``lines`` is a list of (product, qty) or (product, (pieces, length_mm))."""
        counter['n'] += 1
        order = Order(
            number=number or f'PED-{counter["n"]:04d}',
            kind=kind,
            order_date=order_date,
            lead_time_days=lead_time_days,
            expected_delivery_date=expected_delivery_date,
        )
        for product, qty in lines:
            item = OrderItem(product_id=product.id)
            if isinstance(qty, tuple):
                item.piece_count, item.piece_length_mm = qty
            else:
                item.quantity = qty
            order.items.append(item)
        db_session.add(order)
        db_session.commit()
        return order
    return _make
