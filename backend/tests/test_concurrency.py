# Overview: Threaded concurrency tests against a file-backed SQLite database.

"""
Concurrency Tests

Two writers race for the same stock. A shared :memory: database cannot
model this, so each test builds its own app on a temporary SQLite file and
runs every worker in its own thread and app context.

Verify that:
1. Two OUT movements that each fit alone but not together: exactly one wins
2. Two scans of the same order: it is fulfilled exactly once
3. Concurrent order creation never hands out the same code twice
"""

import threading

import pytest
from stockline import create_app
from stockline.extensions import db
from stockline.models import USER_ROLE_OPERATOR
from stockline.services import catalog_service, ledger_service, order_service
from stockline.services.ledger_service import InsufficientStockError
from stockline.services.order_service import AlreadyProcessedError


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "concurrency.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'RETRY_ATTEMPTS': 5,
        'RETRY_BACKOFF': 0.01,
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    with file_app.app_context():
        warehouse = catalog_service.create_warehouse(name="Race Warehouse")
        user = catalog_service.create_user(name="Racer", email="racer@example.com", role=USER_ROLE_OPERATOR)
        item = catalog_service.create_item(
            sku="RACE-1", name="Contested", warehouse_id=warehouse.id, opening_quantity=5,
        )
        return {"user_id": user.id, "item_id": item.id}


def _run_concurrently(app, target, count=2):
    """Run target() in `count` threads, each in its own app context; collect outcomes."""
    barrier = threading.Barrier(count)
    outcomes = []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            barrier.wait()
            try:
                result = target()
                outcome = ("ok", result)
            except Exception as exc:
                outcome = ("error", exc)
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def test_competing_out_movements_exactly_one_wins(file_app, seeded):
    """quantity 5, two OUT 4 at once: one succeeds, one InsufficientStockError, final 1."""
    def take_four():
        return ledger_service.apply_movement(
            item_id=seeded["item_id"], type="OUT", quantity=4, user_id=seeded["user_id"],
        ).id

    outcomes = _run_concurrently(file_app, take_four)

    successes = [o for o in outcomes if o[0] == "ok"]
    failures = [o for o in outcomes if o[0] == "error"]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0][1], InsufficientStockError)

    with file_app.app_context():
        assert ledger_service.get_item(seeded["item_id"]).quantity == 1
        assert len(ledger_service.list_movements(item_id=seeded["item_id"])) == 2


def test_double_scan_fulfills_once(file_app, seeded):
    with file_app.app_context():
        order = order_service.create_order(
            direction="OUT",
            lines=[{"item_id": seeded["item_id"], "quantity": 2}],
            created_by_user_id=seeded["user_id"],
        )
        order_id = order.id
        code = order.code

    def fulfill():
        return order_service.fulfill_order(order_id, seeded["user_id"]).id

    outcomes = _run_concurrently(file_app, fulfill)

    assert sorted(o[0] for o in outcomes) == ["error", "ok"]
    error = next(o[1] for o in outcomes if o[0] == "error")
    assert isinstance(error, AlreadyProcessedError)

    with file_app.app_context():
        assert ledger_service.get_item(seeded["item_id"]).quantity == 3
        assert len(ledger_service.list_movements(correlation_token=code)) == 1
        assert order_service.get_order(order_id).fulfillment_count == 1


def test_concurrent_creation_allocates_distinct_codes(file_app, seeded):
    def create():
        return order_service.create_order(
            direction="IN",
            lines=[{"item_id": seeded["item_id"], "quantity": 1}],
            created_by_user_id=seeded["user_id"],
        ).code

    outcomes = _run_concurrently(file_app, create, count=4)

    assert all(o[0] == "ok" for o in outcomes), outcomes
    codes = sorted(o[1] for o in outcomes)
    assert codes == ["ORD-0001", "ORD-0002", "ORD-0003", "ORD-0004"]
