"""
Day-scoped document numbers.

INV-YYYYMMDD-XXXX: four digits, restarting at 0001 every day, never reused.
"""

import threading
from datetime import date

import pytest

from conftest import stock_of
from phonepos import create_app
from phonepos.extensions import db
from phonepos.models import DocumentSequence, Role, Sale
from phonepos.services import auth_service, document_service, products_service, sales_service
from phonepos.services.concurrency import atomic


DAY = date(2025, 3, 9)


def _allocate(on_date=DAY):
    with atomic():
        return document_service.next_invoice_number(on_date)


def test_format_pads_to_four_digits():
    assert document_service.format_document_number("INV-20250309", 7) == "INV-20250309-0007"


def test_format_grows_past_9999():
    assert document_service.format_document_number("INV-20250309", 10_000) == "INV-20250309-10000"


def test_sequence_key_uses_calendar_day():
    assert document_service.sequence_key("INV", DAY) == "INV-20250309"


def test_numbers_increase_within_a_day():
    assert [_allocate() for _ in range(3)] == [
        "INV-20250309-0001",
        "INV-20250309-0002",
        "INV-20250309-0003",
    ]


def test_each_day_restarts_at_one():
    _allocate()
    _allocate()
    assert _allocate(date(2025, 3, 10)) == "INV-20250310-0001"


def test_rollback_does_not_consume_a_number():
    try:
        with atomic():
            document_service.next_invoice_number(DAY)
            raise RuntimeError("sale failed")
    except RuntimeError:
        pass
    assert _allocate() == "INV-20250309-0001"


def test_lost_sequence_row_reseeds_from_issued_invoices(admin_user, make_product):
    product = make_product(stock=5)
    payload = {"items": [{"product_id": product.id, "quantity": 1}], "paid_cents": product.price_cents}
    for _ in range(2):
        sales_service.create_sale(payload, user_id=admin_user.id, on_date=DAY)

    db.session.query(DocumentSequence).delete()
    db.session.commit()

    sale = sales_service.create_sale(payload, user_id=admin_user.id, on_date=DAY)
    assert sale.invoice_no == "INV-20250309-0003"


def test_invoice_numbers_are_unique_across_sales(admin_user, make_product):
    product = make_product(stock=20)
    payload = {"items": [{"product_id": product.id, "quantity": 1}], "paid_cents": product.price_cents}

    numbers = [sales_service.create_sale(payload, user_id=admin_user.id).invoice_no for _ in range(12)]

    assert len(set(numbers)) == 12
    assert numbers == sorted(numbers)


def test_repair_tickets_use_their_own_sequence():
    with atomic():
        ticket = document_service.next_repair_ticket(DAY)
    assert ticket == "RPR-20250309-0001"
    assert _allocate() == "INV-20250309-0001"


# =============================================================================
# CONCURRENCY
# =============================================================================


@pytest.fixture
def file_app(tmp_path):
    """A separate app on a file-backed SQLite database so threads share data."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'LOG_LEVEL': 'WARNING',
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def test_concurrent_sales_get_gap_free_numbers(file_app):
    workers = 8

    with file_app.app_context():
        user = auth_service.create_user(name="Till", phone="09777777777", password="secret123", role=Role.SELLER)
        product = products_service.create_product({
            "name": "Galaxy A15", "brand": "Samsung", "model": "A155", "price_cents": 10_000, "stock": workers,
        })
        user_id, product_id = user.id, product.id
        db.session.remove()

    payload = {"items": [{"product_id": product_id, "quantity": 1}], "paid_cents": 10_000}
    created = []
    errors = []
    lock = threading.Lock()

    def worker():
        with file_app.app_context():
            try:
                sale = sales_service.create_sale(payload, user_id=user_id, on_date=DAY)
                with lock:
                    created.append(sale.invoice_no)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert sorted(created) == [f"INV-20250309-{n:04d}" for n in range(1, workers + 1)]
    with file_app.app_context():
        assert db.session.query(Sale).count() == workers
        sequence = db.session.query(DocumentSequence).filter_by(prefix="INV-20250309").one()
        assert sequence.next_number == workers + 1
        assert stock_of(product_id) == 0
        db.session.remove()
