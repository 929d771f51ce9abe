"""
Order status transitions and their stock effects.

Verifies:
- Only pending->processing, pending/processing->cancelled and
  processing->delivered are allowed; delivered and cancelled are terminal
- Cancel restores stock exactly once; double cancel is a no-op
- A stale current status is rejected without touching anything
- In order_confirmed mode, confirm re-checks and decrements atomically
"""

import pytest

from storefront.errors import InsufficientStockError, InvalidTransitionError, OrderNotFoundError
from storefront.models import AuditLogEntry
from storefront.services import order_service
from storefront.services.order_status_service import (
    ALLOWED_TRANSITIONS,
    is_transition_allowed,
    transition_order_status,
)


@pytest.fixture
def place(db_session, customer):
    def _place(*lines):
        return order_service.place_order(
            customer,
            [{"product_id": p.id, "quantity": q} for p, q in lines],
        )
    return _place


class TestTransitionTable:
    @pytest.mark.parametrize(
        "src,dst",
        [
            ("pending", "processing"),
            ("pending", "cancelled"),
            ("processing", "cancelled"),
            ("processing", "delivered"),
        ],
    )
    def test_allowed(self, src, dst):
        assert is_transition_allowed(src, dst)

    @pytest.mark.parametrize(
        "src,dst",
        [
            ("pending", "delivered"),
            ("processing", "pending"),
            ("delivered", "cancelled"),
            ("delivered", "processing"),
            ("cancelled", "pending"),
            ("cancelled", "processing"),
        ],
    )
    def test_rejected(self, src, dst):
        assert not is_transition_allowed(src, dst)

    def test_terminal_states_have_no_exits(self):
        assert ALLOWED_TRANSITIONS["delivered"] == set()
        assert ALLOWED_TRANSITIONS["cancelled"] == set()


class TestTransitions:
    def test_full_lifecycle_keeps_stock_out(self, place, product_a, stock_of):
        order = place((product_a, 3))
        assert stock_of(product_a.id) == 2

        order = transition_order_status(order.id, "pending", "processing")
        assert order.status == "processing"
        assert stock_of(product_a.id) == 2

        order = transition_order_status(order.id, "processing", "delivered")
        assert order.status == "delivered"
        assert stock_of(product_a.id) == 2

    def test_cancel_pending_restores_stock(self, place, product_a, product_c, stock_of):
        order = place((product_a, 3), (product_c, 4))
        transition_order_status(order.id, "pending", "cancelled")

        assert stock_of(product_a.id) == 5
        assert stock_of(product_c.id) == 10

    def test_cancel_after_confirm_restores_stock(self, place, product_a, stock_of):
        order = place((product_a, 3))
        transition_order_status(order.id, "pending", "processing")
        order = transition_order_status(order.id, "processing", "cancelled")

        assert order.status == "cancelled"
        assert order.stock_committed is False
        assert stock_of(product_a.id) == 5

    def test_double_cancel_is_noop(self, db_session, place, product_a, stock_of):
        order = place((product_a, 3))
        transition_order_status(order.id, "pending", "cancelled")
        again = transition_order_status(order.id, "pending", "cancelled")

        assert again.status == "cancelled"
        assert stock_of(product_a.id) == 5
        assert db_session.query(AuditLogEntry).filter_by(event_type="order.status_changed").count() == 1

    def test_restore_ignores_restock_in_between(self, place, product_a, stock_of):
        from storefront.services import inventory_service

        order = place((product_a, 3))
        inventory_service.record_stock_inbound(product_a.id, 10, "50.00")
        transition_order_status(order.id, "pending", "cancelled")
        assert stock_of(product_a.id) == 15

    def test_delivered_cannot_be_cancelled(self, place, product_a, stock_of):
        order = place((product_a, 3))
        transition_order_status(order.id, "pending", "processing")
        transition_order_status(order.id, "processing", "delivered")

        with pytest.raises(InvalidTransitionError):
            transition_order_status(order.id, "delivered", "cancelled")
        assert stock_of(product_a.id) == 2

    def test_pending_cannot_skip_to_delivered(self, place, product_a):
        order = place((product_a, 1))
        with pytest.raises(InvalidTransitionError):
            transition_order_status(order.id, "pending", "delivered")

    def test_stale_current_status_rejected(self, place, product_a, stock_of):
        order = place((product_a, 3))
        transition_order_status(order.id, "pending", "processing")

        # A second screen still shows the order as pending
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition_order_status(order.id, "pending", "processing")

        assert exc_info.value.details == {
            "expected_status": "pending",
            "current_status": "processing",
        }
        assert stock_of(product_a.id) == 2

    def test_without_current_status_uses_live_status(self, place, product_a):
        order = place((product_a, 1))
        order = transition_order_status(order.id, None, "processing")
        assert order.status == "processing"

    def test_unknown_status_rejected(self, place, product_a):
        order = place((product_a, 1))
        with pytest.raises(InvalidTransitionError):
            transition_order_status(order.id, "pending", "shipped")

    def test_unknown_order(self, db_session):
        with pytest.raises(OrderNotFoundError):
            transition_order_status(999999, "pending", "processing")

    def test_audit_entries_for_cancel(self, db_session, place, product_a):
        order = place((product_a, 2))
        transition_order_status(order.id, "pending", "cancelled", actor="ops@shop.test")

        change = db_session.query(AuditLogEntry).filter_by(event_type="order.status_changed").one()
        assert change.actor == "ops@shop.test"
        assert change.old_values == {"status": "pending"}
        assert change.new_values == {"status": "cancelled"}
        assert '"Awaiting confirmation" to "Cancelled"' in change.description

        system = db_session.query(AuditLogEntry).filter_by(event_type="system.event").one()
        assert system.actor == "System"
        assert "Stock returned to inventory" in system.description


class TestConfirmMode:
    def test_stock_moves_on_confirm_and_back_on_cancel(self, confirm_mode, place, product_a, stock_of):
        order = place((product_a, 3))
        assert stock_of(product_a.id) == 5

        order = transition_order_status(order.id, "pending", "processing")
        assert order.stock_committed is True
        assert stock_of(product_a.id) == 2

        transition_order_status(order.id, "processing", "cancelled")
        assert stock_of(product_a.id) == 5

    def test_cancel_unconfirmed_order_leaves_stock(self, confirm_mode, place, product_a, stock_of):
        order = place((product_a, 3))
        transition_order_status(order.id, "pending", "cancelled")
        assert stock_of(product_a.id) == 5

    def test_confirm_shortfall_aborts_everything(
        self, confirm_mode, db_session, place, product_a, product_b, stock_of
    ):
        order = place((product_a, 3), (product_b, 2))
        # Someone else takes product B's stock in the meantime
        other = place((product_b, 2))
        transition_order_status(other.id, "pending", "processing")
        assert stock_of(product_b.id) == 0

        with pytest.raises(InsufficientStockError) as exc_info:
            transition_order_status(order.id, "pending", "processing")

        assert exc_info.value.product_id == product_b.id
        assert stock_of(product_a.id) == 5
        db_session.expire_all()
        assert order_service.get_order_details(order.id)["status"] == "pending"

    def test_confirm_ignores_deactivation(self, confirm_mode, db_session, place, product_a, stock_of):
        order = place((product_a, 1))
        product_a.is_active = False
        db_session.commit()

        transition_order_status(order.id, "pending", "processing")
        assert stock_of(product_a.id) == 4
