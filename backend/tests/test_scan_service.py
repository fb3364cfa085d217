# Overview: Pytest coverage for scanned-token resolution and scan-driven processing.

"""
Scan Resolver Tests

Resolution order: order QR payload, then item SKU (case-insensitive),
then bare order code. Resolution never writes; processing goes through
the same engine as the API.
"""

import pytest
from stockline.extensions import db
from stockline.models import Movement, OrderStatus
from stockline.services import ledger_service, order_service, scan_service
from stockline.services.order_service import AlreadyProcessedError
from stockline.services.scan_service import SCAN_KIND_ITEM, SCAN_KIND_ORDER, UnknownTokenError


@pytest.fixture
def pending_order(db_session, make_item, operator_user):
    item = make_item("SCAN-1", 10)
    return order_service.create_order(
        direction="OUT", lines=[{"item_id": item.id, "quantity": 2}], created_by_user_id=operator_user.id,
    )


class TestResolveToken:

    def test_qr_payload_resolves_order(self, pending_order):
        result = scan_service.resolve_token(pending_order.qr_code)
        assert result.kind == SCAN_KIND_ORDER
        assert result.order.id == pending_order.id
        assert result.can_process is True
        assert result.is_reprocess is False

    def test_qr_payload_with_wrong_code_falls_back_to_code(self, pending_order):
        token = f"ORDER|99999|{pending_order.code}"
        assert scan_service.resolve_token(token).order.id == pending_order.id

    def test_qr_payload_id_code_mismatch_unknown(self, pending_order):
        with pytest.raises(UnknownTokenError):
            scan_service.resolve_token(f"ORDER|{pending_order.id}|ORD-9999")

    def test_sku_case_insensitive_and_trimmed(self, db_session, make_item):
        item = make_item("LPT-001", 5)
        result = scan_service.resolve_token("  lpt-001 ")
        assert result.kind == SCAN_KIND_ITEM
        assert result.item.id == item.id
        assert result.can_process is True

    def test_bare_order_code(self, pending_order):
        result = scan_service.resolve_token(pending_order.code)
        assert result.kind == SCAN_KIND_ORDER
        assert result.order.id == pending_order.id

    def test_sku_wins_over_order_code(self, db_session, make_item, operator_user):
        item = make_item("ORD-0001", 5)
        order_service.create_order(
            direction="IN", lines=[{"item_id": item.id, "quantity": 1}], created_by_user_id=operator_user.id,
        )
        assert scan_service.resolve_token("ORD-0001").kind == SCAN_KIND_ITEM

    @pytest.mark.parametrize("token", ["", "   ", "NOPE-123", "ORDER|", "ORDER|abc"])
    def test_unknown_tokens(self, db_session, token):
        with pytest.raises(UnknownTokenError):
            scan_service.resolve_token(token)

    def test_completed_order_not_processable_for_operator(self, pending_order, operator_user):
        order_service.fulfill_order(pending_order.id, operator_user.id)
        result = scan_service.resolve_token(pending_order.qr_code)
        assert result.can_process is False
        assert "already" in result.message

    def test_completed_order_offers_reprocess_when_elevated(self, pending_order, operator_user):
        order_service.fulfill_order(pending_order.id, operator_user.id)
        result = scan_service.resolve_token(pending_order.qr_code, elevated=True)
        assert result.can_process is True
        assert result.is_reprocess is True

    def test_cancelled_order_shows_reason(self, pending_order):
        order_service.cancel_order(pending_order.id, "damaged pallet")
        result = scan_service.resolve_token(pending_order.code, elevated=True)
        assert result.can_process is False
        assert "damaged pallet" in result.message

    def test_resolution_has_no_side_effects(self, pending_order):
        before = db.session.query(Movement).count()
        scan_service.resolve_token(pending_order.qr_code)
        assert db.session.query(Movement).count() == before
        assert order_service.get_order(pending_order.id).status == OrderStatus.PENDING.value

    def test_to_dict_includes_order_summary(self, pending_order):
        data = scan_service.resolve_token(pending_order.qr_code).to_dict()
        assert data["kind"] == "order"
        assert data["order"]["code"] == pending_order.code
        assert len(data["order"]["lines"]) == 1


class TestProcessScan:

    def test_process_order_scan_fulfills(self, pending_order, operator_user):
        order = scan_service.process_order_scan(pending_order.qr_code, user_id=operator_user.id)
        assert order.status == OrderStatus.COMPLETED.value
        assert ledger_service.list_movements(correlation_token=order.code)[0].quantity == 2

    def test_process_order_scan_twice_rejected(self, pending_order, operator_user):
        scan_service.process_order_scan(pending_order.code, user_id=operator_user.id)
        with pytest.raises(AlreadyProcessedError):
            scan_service.process_order_scan(pending_order.code, user_id=operator_user.id)

    def test_process_order_scan_with_item_token_rejected(self, db_session, make_item, operator_user):
        make_item("ONLY-ITEM", 1)
        with pytest.raises(UnknownTokenError):
            scan_service.process_order_scan("ONLY-ITEM", user_id=operator_user.id)

    def test_process_item_scan_applies_movement(self, db_session, make_item, operator_user):
        item = make_item("KEY-003", 100)
        movement = scan_service.process_item_scan(
            "key-003", type="OUT", quantity=5, user_id=operator_user.id,
        )
        assert movement.note == "Scan KEY-003"
        assert ledger_service.get_item(item.id).quantity == 95

    def test_process_item_scan_with_order_token_rejected(self, pending_order, operator_user):
        with pytest.raises(UnknownTokenError):
            scan_service.process_item_scan(
                pending_order.qr_code, type="IN", quantity=1, user_id=operator_user.id,
            )
