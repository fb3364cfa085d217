# Overview: Pytest coverage for the stock ledger (movements and the non-negative invariant).

"""
Ledger Tests

Verify that:
1. IN/OUT movements change quantity by exactly their signed amount
2. An OUT larger than on-hand is rejected and writes nothing
3. quantity always equals the net of its movement history
4. Invalid input is rejected before the database is touched
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from stockline.extensions import db
from stockline.models import InventoryItem, Movement, MovementType
from stockline.services import ledger_service
from stockline.services.concurrency import StorageError
from stockline.services.ledger_service import InsufficientStockError, ItemNotFoundError
from stockline.validation import ValidationError


def _net_history(item_id: int) -> int:
    return sum(m.quantity_delta for m in db.session.query(Movement).filter_by(item_id=item_id))


class TestApplyMovement:

    def test_in_movement_increases_quantity(self, db_session, make_item, admin_user):
        item = make_item("SKU-IN", 5)
        movement = ledger_service.apply_movement(
            item_id=item.id, type="IN", quantity=7, user_id=admin_user.id,
        )

        assert movement.type == MovementType.IN.value
        assert movement.quantity == 7
        assert ledger_service.get_item(item.id).quantity == 12

    def test_out_movement_decreases_quantity(self, db_session, make_item, admin_user):
        item = make_item("SKU-OUT", 10)
        ledger_service.apply_movement(item_id=item.id, type=MovementType.OUT, quantity=4, user_id=admin_user.id)
        assert ledger_service.get_item(item.id).quantity == 6

    def test_out_to_exactly_zero_then_one_more_fails(self, db_session, make_item, admin_user):
        """50 on hand, OUT 50 succeeds, OUT 1 is rejected with available=0."""
        item = make_item("SKU-ZERO", 50)

        ledger_service.apply_movement(item_id=item.id, type="OUT", quantity=50, user_id=admin_user.id)
        assert ledger_service.get_item(item.id).quantity == 0

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger_service.apply_movement(item_id=item.id, type="OUT", quantity=1, user_id=admin_user.id)

        assert exc_info.value.available == 0
        assert exc_info.value.required == 1
        assert exc_info.value.details["item_id"] == item.id
        assert ledger_service.get_item(item.id).quantity == 0

    def test_rejected_out_writes_no_movement(self, db_session, make_item, admin_user):
        item = make_item("SKU-REJ", 3)
        before = db.session.query(Movement).filter_by(item_id=item.id).count()

        with pytest.raises(InsufficientStockError):
            ledger_service.apply_movement(item_id=item.id, type="OUT", quantity=4, user_id=admin_user.id)

        assert db.session.query(Movement).filter_by(item_id=item.id).count() == before
        assert ledger_service.get_item(item.id).quantity == 3

    def test_quantity_matches_movement_history(self, db_session, make_item, admin_user):
        item = make_item("SKU-HIST", 20)
        for type_, qty in [("OUT", 5), ("IN", 2), ("OUT", 17), ("IN", 9)]:
            ledger_service.apply_movement(item_id=item.id, type=type_, quantity=qty, user_id=admin_user.id)

        stored = ledger_service.get_item(item.id).quantity
        assert stored == 9
        assert stored == _net_history(item.id)

    def test_version_increments_on_each_movement(self, db_session, make_item, admin_user):
        item = make_item("SKU-VER", 0)
        start = ledger_service.get_item(item.id).version_id

        ledger_service.apply_movement(item_id=item.id, type="IN", quantity=1, user_id=admin_user.id)
        ledger_service.apply_movement(item_id=item.id, type="IN", quantity=1, user_id=admin_user.id)

        assert ledger_service.get_item(item.id).version_id == start + 2

    def test_movement_records_attribution(self, db_session, make_item, admin_user, customer):
        item = make_item("SKU-ATTR", 10)
        movement = ledger_service.apply_movement(
            item_id=item.id, type="OUT", quantity=1, user_id=admin_user.id,
            client_id=customer.id, correlation_token="TOKEN-1", note="manual pick",
        )

        data = movement.to_dict()
        assert data["user_id"] == admin_user.id
        assert data["client_id"] == customer.id
        assert data["correlation_token"] == "TOKEN-1"
        assert data["quantity_delta"] == -1
        assert data["occurred_at"].endswith("Z")


class TestApplyMovementValidation:

    @pytest.mark.parametrize("quantity", [0, -1, True, 1.5])
    def test_bad_quantity_rejected(self, db_session, make_item, quantity):
        item = make_item("SKU-BADQ", 10)
        with pytest.raises(ValidationError):
            ledger_service.apply_movement(item_id=item.id, type="OUT", quantity=quantity)
        assert ledger_service.get_item(item.id).quantity == 10

    def test_bad_type_rejected(self, db_session, make_item):
        item = make_item("SKU-BADT", 10)
        with pytest.raises(ValidationError):
            ledger_service.apply_movement(item_id=item.id, type="SIDEWAYS", quantity=1)

    def test_unknown_item(self, db_session):
        with pytest.raises(ItemNotFoundError):
            ledger_service.apply_movement(item_id=99999, type="IN", quantity=1)
        assert db.session.query(Movement).count() == 0


class TestLedgerReads:

    def test_list_movements_newest_first(self, db_session, make_item, admin_user):
        item = make_item("SKU-LIST", 10)
        ledger_service.apply_movement(item_id=item.id, type="OUT", quantity=1, user_id=admin_user.id)
        ledger_service.apply_movement(item_id=item.id, type="OUT", quantity=2, user_id=admin_user.id)

        movements = ledger_service.list_movements(item_id=item.id)
        assert [m.quantity for m in movements] == [2, 1, 10]

    def test_list_movements_by_token(self, db_session, make_item, admin_user):
        item = make_item("SKU-TOK", 10)
        ledger_service.apply_movement(item_id=item.id, type="OUT", quantity=1, correlation_token="A")
        ledger_service.apply_movement(item_id=item.id, type="OUT", quantity=2, correlation_token="B")

        movements = ledger_service.list_movements(correlation_token="B")
        assert len(movements) == 1
        assert movements[0].quantity == 2

    def test_net_quantity_for_token(self, db_session, make_item):
        a = make_item("SKU-NA", 10)
        b = make_item("SKU-NB", 10)
        ledger_service.apply_movement(item_id=a.id, type="OUT", quantity=3, correlation_token="T")
        ledger_service.apply_movement(item_id=b.id, type="IN", quantity=4, correlation_token="T")
        ledger_service.apply_movement(item_id=a.id, type="IN", quantity=1, correlation_token="T")

        assert ledger_service.net_quantity_for_token("T") == {a.id: -2, b.id: 4}

    def test_get_item_missing(self, db_session):
        with pytest.raises(ItemNotFoundError):
            ledger_service.get_item(424242)


class TestItemCreation:

    def test_opening_balance_is_a_movement(self, db_session, make_item):
        item = make_item("SKU-OPEN", 25)
        assert item.quantity == 25

        movements = ledger_service.list_movements(item_id=item.id)
        assert len(movements) == 1
        assert movements[0].type == "IN"
        assert movements[0].note == "Opening balance"

    def test_zero_opening_balance_has_no_movement(self, db_session, make_item):
        item = make_item("SKU-EMPTY", 0)
        assert item.quantity == 0
        assert ledger_service.list_movements(item_id=item.id) == []

    def test_duplicate_sku_rejected(self, db_session, make_item):
        make_item("SKU-DUP", 1)
        with pytest.raises(ValidationError):
            make_item("SKU-DUP", 1)
        assert db.session.query(InventoryItem).filter_by(sku="SKU-DUP").count() == 1


class TestStorageFailure:
    """A storage error after the movement was flushed leaves nothing behind."""

    @staticmethod
    def _flush_then_fail(monkeypatch, exc):
        calls = []
        original = ledger_service._apply_movement_locked

        def failing(req):
            calls.append(req)
            original(req)
            raise exc

        monkeypatch.setattr(ledger_service, "_apply_movement_locked", failing)
        return calls

    def test_retries_exhausted_rolls_back(self, app, db_session, make_item, admin_user, monkeypatch):
        item = make_item("SKU-LOCKED", 5)
        calls = self._flush_then_fail(
            monkeypatch, OperationalError("UPDATE inventory_items", {}, Exception("database is locked")),
        )

        with pytest.raises(StorageError) as exc_info:
            ledger_service.apply_movement(item_id=item.id, type="OUT", quantity=2, user_id=admin_user.id)

        assert exc_info.value.code == "STORAGE_FAILURE"
        assert len(calls) == app.config["RETRY_ATTEMPTS"]
        assert ledger_service.get_item(item.id).quantity == 5
        assert db.session.query(Movement).filter_by(item_id=item.id).count() == 1

    def test_non_retryable_error_fails_once(self, db_session, make_item, admin_user, monkeypatch):
        item = make_item("SKU-BROKEN", 5)
        calls = self._flush_then_fail(
            monkeypatch, IntegrityError("INSERT INTO movements", {}, Exception("constraint failed")),
        )

        with pytest.raises(StorageError):
            ledger_service.apply_movement(item_id=item.id, type="IN", quantity=3, user_id=admin_user.id)

        assert len(calls) == 1
        assert ledger_service.get_item(item.id).quantity == 5
        assert db.session.query(Movement).filter_by(item_id=item.id).count() == 1
