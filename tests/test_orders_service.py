import re

import pytest
from bson import ObjectId

import services.orders as orders_service
from app.config.settings import settings
from core.errors import (
    ConflictError, ForbiddenError, InvalidOperationError, InvalidTransitionError, NotFoundError, UnavailableError,
    ValidationError
)
from domain.events import OrderStatusChanged
from services.events import publisher
from services.orders import (
    add_customer_rating, add_seller_rating, cancel_order, create_order, get_all_orders, get_my_orders, get_order,
    get_order_stats, transition_order_status, update_payment, update_pricing
)


def advance(db, order_id, *steps):
    order = None
    for actor, status in steps:
        order = transition_order_status(db, order_id, actor, status)
    return order


def stored(db, order_id):
    return db.orders.find_one({"_id": ObjectId(order_id)})


class TestCreateOrder:
    def test_prices_and_snapshots_the_listing(self, order, buyer, seller):
        assert order.buyer_id == buyer.id
        assert order.seller_id == seller.id
        assert order.subtotal == 200
        assert order.delivery_fee == 10
        assert order.total_amount == 210
        assert order.items[0].product_snapshot.title == "Olive oil"
        assert order.items[0].product_snapshot.image == "https://cdn.example.com/oil.jpg"
        assert order.status == "pending"
        assert order.payment.method == "cash"
        assert order.version == 1

    def test_records_creation_in_history(self, order, buyer):
        assert len(order.status_history) == 1
        assert order.status_history[0].status == "pending"
        assert order.status_history[0].updated_by == buyer.id

    def test_defaults_delivery_address_to_buyer_profile(self, order):
        assert order.delivery.address.street == "Nile Corniche 12"

    def test_pickup_has_no_delivery_fee(self, db, buyer, product):
        order = create_order(db, buyer, {"order_type": "product", "product": product})

        assert order.delivery_fee == 0
        assert order.total_amount == 100

    def test_service_orders_have_quantity_one(self, db, buyer, service):
        order = create_order(db, buyer, {"order_type": "service", "service": service, "quantity": 4})

        assert order.items[0].quantity == 1
        assert order.total_amount == 300
        assert order.items[0].product_snapshot.title == "Pump repair"

    def test_order_is_persisted(self, db, order):
        document = stored(db, order.id)

        assert document["order_number"] == order.order_number
        assert document["total_amount"] == 210
        assert document["version"] == 1

    def test_order_numbers_are_unique_and_formatted(self, db, buyer, product):
        numbers = [create_order(db, buyer, {"order_type": "product", "product": product}).order_number
                   for _ in range(5)]

        assert len(set(numbers)) == 5
        assert all(re.match(r"^ORD-\d{8}-\d{6}$", number) for number in numbers)
        assert [int(number[-6:]) for number in numbers] == [1, 2, 3, 4, 5]

    def test_missing_listing_reference(self, db, buyer):
        with pytest.raises(ValidationError):
            create_order(db, buyer, {"order_type": "product"})

    def test_unknown_product(self, db, buyer):
        with pytest.raises(NotFoundError) as exc_info:
            create_order(db, buyer, {"order_type": "product", "product": str(ObjectId())})
        assert exc_info.value.detail == "Product not found"

    def test_unavailable_product(self, db, buyer, product):
        db.products.update_one({"_id": ObjectId(product)}, {"$set": {"is_available": False}})

        with pytest.raises(UnavailableError):
            create_order(db, buyer, {"order_type": "product", "product": product})

    def test_cannot_order_own_listing(self, db, seller, product):
        with pytest.raises(InvalidOperationError):
            create_order(db, seller, {"order_type": "product", "product": product})

    def test_invalid_payload(self, db, buyer, product):
        with pytest.raises(ValidationError):
            create_order(db, buyer, {"order_type": "barter", "product": product})

    def test_seller_is_notified(self, db, order, seller):
        notification = db.notifications.find_one({"recipient_id": seller.id})

        assert notification["type"] == "order_created"
        assert notification["related_order"] == order.id


class TestTransitions:
    def test_seller_confirms(self, db, order, seller):
        updated = transition_order_status(db, order.id, seller, "confirmed")

        assert updated.status == "confirmed"
        assert updated.confirmed_at is not None
        assert len(updated.status_history) == 2
        assert updated.version == 2
        document = stored(db, order.id)
        assert document["status"] == "confirmed"
        assert len(document["status_history"]) == 2
        assert document["version"] == 2

    def test_confirming_twice_is_invalid(self, db, order, buyer, seller):
        transition_order_status(db, order.id, seller, "confirmed")

        with pytest.raises(InvalidTransitionError):
            transition_order_status(db, order.id, buyer, "confirmed")

    def test_illegal_transition_leaves_order_untouched(self, db, order, seller):
        with pytest.raises(InvalidTransitionError):
            transition_order_status(db, order.id, seller, "shipped")

        document = stored(db, order.id)
        assert document["status"] == "pending"
        assert len(document["status_history"]) == 1
        assert document["version"] == 1

    def test_buyer_cannot_confirm(self, db, order, buyer):
        with pytest.raises(ForbiddenError):
            transition_order_status(db, order.id, buyer, "confirmed")

    def test_stranger_cannot_touch_the_order(self, db, order, stranger):
        with pytest.raises(ForbiddenError):
            transition_order_status(db, order.id, stranger, "cancelled")

    def test_delivered_order_cannot_be_cancelled(self, db, order, buyer, seller):
        advance(db, order.id, (seller, "confirmed"), (seller, "processing"), (seller, "shipped"))

        delivered = transition_order_status(db, order.id, buyer, "delivered")
        assert delivered.status == "delivered"

        with pytest.raises(InvalidTransitionError):
            transition_order_status(db, order.id, buyer, "cancelled")

    def test_completing_cash_order_marks_it_paid(self, db, order, buyer, seller):
        completed = advance(db, order.id, (seller, "confirmed"), (seller, "processing"), (seller, "shipped"),
                            (buyer, "delivered"), (buyer, "completed"))

        assert completed.status == "completed"
        assert completed.payment.status == "paid"
        assert completed.payment.paid_amount == 210
        assert stored(db, order.id)["payment"]["status"] == "paid"
        assert len(completed.status_history) == 6

    def test_admin_drives_the_whole_lifecycle(self, db, order, admin):
        completed = advance(db, order.id, (admin, "confirmed"), (admin, "processing"), (admin, "shipped"),
                            (admin, "delivered"), (admin, "completed"))

        assert completed.status == "completed"

    def test_unknown_order(self, db, seller):
        with pytest.raises(NotFoundError):
            transition_order_status(db, str(ObjectId()), seller, "confirmed")

    def test_malformed_order_id(self, db, seller):
        with pytest.raises(ValidationError):
            transition_order_status(db, "not-an-id", seller, "confirmed")

    def test_other_party_is_notified(self, db, order, buyer, seller):
        transition_order_status(db, order.id, seller, "confirmed")

        notification = db.notifications.find_one({"recipient_id": buyer.id})
        assert notification["type"] == "order_confirmed"
        assert notification["data"]["previous_status"] == "pending"
        assert db.notifications.count_documents({"recipient_id": seller.id, "type": "order_confirmed"}) == 0

    def test_admin_change_notifies_both_parties(self, db, order, admin, buyer, seller):
        transition_order_status(db, order.id, admin, "confirmed")

        assert db.notifications.count_documents({"type": "order_confirmed", "recipient_id": buyer.id}) == 1
        assert db.notifications.count_documents({"type": "order_confirmed", "recipient_id": seller.id}) == 1

    def test_failing_subscriber_does_not_undo_the_change(self, db, order, buyer, seller):
        def explode(db, event):
            raise RuntimeError("push gateway down")

        publisher.subscribe(OrderStatusChanged, explode)
        try:
            updated = transition_order_status(db, order.id, seller, "confirmed")
        finally:
            publisher.unsubscribe(OrderStatusChanged, explode)

        assert updated.status == "confirmed"
        assert stored(db, order.id)["status"] == "confirmed"
        assert db.notifications.count_documents({"recipient_id": buyer.id, "type": "order_confirmed"}) == 1


class TestConcurrency:
    def test_retries_when_the_order_changed_underneath(self, db, order, buyer, seller, monkeypatch):
        stale = orders_service._load_order(db, order.id)
        transition_order_status(db, order.id, seller, "confirmed")

        real_load = orders_service._load_order
        calls = []

        def load(db_, order_id):
            calls.append(order_id)
            return stale.model_copy(deep=True) if len(calls) == 1 else real_load(db_, order_id)

        monkeypatch.setattr(orders_service, "_load_order", load)
        cancelled = transition_order_status(db, order.id, buyer, "cancelled")

        assert len(calls) == 2
        assert cancelled.status == "cancelled"
        assert [entry.status for entry in cancelled.status_history] == ["pending", "confirmed", "cancelled"]
        assert stored(db, order.id)["version"] == 3

    def test_retry_revalidates_against_fresh_state(self, db, order, buyer, seller, monkeypatch):
        stale = orders_service._load_order(db, order.id)
        transition_order_status(db, order.id, buyer, "cancelled")

        real_load = orders_service._load_order
        calls = []

        def load(db_, order_id):
            calls.append(order_id)
            return stale.model_copy(deep=True) if len(calls) == 1 else real_load(db_, order_id)

        monkeypatch.setattr(orders_service, "_load_order", load)
        with pytest.raises(InvalidTransitionError):
            transition_order_status(db, order.id, seller, "confirmed")

        assert stored(db, order.id)["status"] == "cancelled"

    def test_gives_up_after_max_retries(self, db, order, seller, monkeypatch):
        stale = orders_service._load_order(db, order.id)
        db.orders.update_one({"_id": ObjectId(order.id)}, {"$inc": {"version": 1}})
        calls = []

        def load(db_, order_id):
            calls.append(order_id)
            return stale.model_copy(deep=True)

        monkeypatch.setattr(orders_service, "_load_order", load)
        with pytest.raises(ConflictError):
            transition_order_status(db, order.id, seller, "confirmed")

        assert len(calls) == settings.ORDER_UPDATE_MAX_RETRIES
        assert stored(db, order.id)["status"] == "pending"


class TestCancelOrder:
    def test_buyer_cancels_pending_order(self, db, order, buyer, seller):
        cancelled = cancel_order(db, order.id, buyer, "Found it cheaper")

        assert cancelled.status == "cancelled"
        assert cancelled.cancellation.reason == "Found it cheaper"
        assert cancelled.cancellation.cancelled_by == buyer.id
        assert cancelled.cancellation.refund_status == "processed"
        assert db.notifications.count_documents({"recipient_id": seller.id, "type": "order_cancelled"}) == 1

    def test_refund_is_pending_when_money_is_owed(self, db, order, seller):
        transition_order_status(db, order.id, seller, "confirmed")

        cancelled = cancel_order(db, order.id, seller, "Out of stock", refund_amount=50)

        assert cancelled.cancellation.refund_amount == 50
        assert cancelled.cancellation.refund_status == "pending"

    def test_refund_cannot_exceed_total(self, db, order, buyer):
        with pytest.raises(ValidationError):
            cancel_order(db, order.id, buyer, "Oops", refund_amount=500)

    def test_refused_once_processing(self, db, order, buyer, seller):
        advance(db, order.id, (seller, "confirmed"), (seller, "processing"))

        with pytest.raises(InvalidTransitionError):
            cancel_order(db, order.id, buyer, "Too slow")
        assert stored(db, order.id)["status"] == "processing"

    def test_stranger_cannot_cancel(self, db, order, stranger):
        with pytest.raises(ForbiddenError):
            cancel_order(db, order.id, stranger, "Not mine")


class TestPaymentAndPricing:
    def test_mark_paid_defaults_amount_to_total(self, db, order, buyer):
        updated = update_payment(db, order.id, buyer, "paid", transaction_id="tx-1")

        assert updated.payment.status == "paid"
        assert updated.payment.paid_amount == 210
        assert updated.payment.transaction_id == "tx-1"
        assert updated.payment.paid_at is not None
        assert updated.status == "pending"

    def test_invalid_payment_status(self, db, order, buyer):
        with pytest.raises(ValidationError):
            update_payment(db, order.id, buyer, "maybe")

    def test_seller_updates_pricing(self, db, order, seller):
        updated = update_pricing(db, order.id, seller, delivery_fee=20,
                                 discount={"type": "percentage", "amount": 10})

        assert updated.delivery_fee == 20
        assert updated.total_amount == pytest.approx(198)
        assert stored(db, order.id)["total_amount"] == pytest.approx(198)

    def test_overshooting_percentage_discount_zeroes_the_total(self, db, order, seller):
        updated = update_pricing(db, order.id, seller, discount={"type": "percentage", "amount": 150})

        assert updated.total_amount == 0
        assert stored(db, order.id)["total_amount"] == 0

    def test_buyer_cannot_update_pricing(self, db, order, buyer):
        with pytest.raises(ForbiddenError):
            update_pricing(db, order.id, buyer, delivery_fee=0)

    def test_pricing_frozen_once_processing(self, db, order, seller):
        advance(db, order.id, (seller, "confirmed"), (seller, "processing"))

        with pytest.raises(InvalidOperationError):
            update_pricing(db, order.id, seller, service_fee=5)


class TestRatings:
    @pytest.fixture
    def completed(self, db, order, buyer, seller):
        return advance(db, order.id, (seller, "confirmed"), (seller, "processing"), (seller, "shipped"),
                       (buyer, "delivered"), (buyer, "completed"))

    def test_buyer_rates_once(self, db, completed, buyer):
        rated = add_customer_rating(db, completed.id, buyer, 5, "Great oil")

        assert rated.customer_rating.rating == 5
        assert stored(db, completed.id)["customer_rating"]["review"] == "Great oil"

        with pytest.raises(InvalidOperationError):
            add_customer_rating(db, completed.id, buyer, 1)

    def test_seller_rates_buyer(self, db, completed, seller):
        rated = add_seller_rating(db, completed.id, seller, 4)

        assert rated.seller_rating.rating == 4

    def test_seller_cannot_leave_customer_rating(self, db, completed, seller):
        with pytest.raises(ForbiddenError):
            add_customer_rating(db, completed.id, seller, 5)

    def test_only_completed_orders_can_be_rated(self, db, order, buyer):
        with pytest.raises(InvalidOperationError):
            add_customer_rating(db, order.id, buyer, 5)

    def test_rating_out_of_range(self, db, completed, buyer):
        with pytest.raises(ValidationError):
            add_customer_rating(db, completed.id, buyer, 6)


class TestQueries:
    def test_get_order_checks_parties(self, db, order, buyer, seller, admin, stranger):
        assert get_order(db, order.id, buyer).id == order.id
        assert get_order(db, order.id, seller).id == order.id
        assert get_order(db, order.id, admin).id == order.id
        with pytest.raises(ForbiddenError):
            get_order(db, order.id, stranger)

    def test_my_orders_by_role(self, db, order, buyer, seller):
        assert get_my_orders(db, buyer)["total"] == 1
        assert get_my_orders(db, buyer, role="buyer")["total"] == 1
        assert get_my_orders(db, buyer, role="seller")["total"] == 0
        assert get_my_orders(db, seller, role="seller")["data"][0].id == order.id

    def test_my_orders_status_filter(self, db, order, seller):
        assert get_my_orders(db, seller, status="pending")["total"] == 1
        assert get_my_orders(db, seller, status="shipped")["total"] == 0
        with pytest.raises(ValidationError):
            get_my_orders(db, seller, status="lost")

    def test_all_orders_is_admin_only(self, db, order, admin, buyer):
        assert get_all_orders(db, admin)["total"] == 1
        assert get_all_orders(db, admin, payment_status="paid")["total"] == 0
        with pytest.raises(ForbiddenError):
            get_all_orders(db, buyer)

    def test_stats(self, db, order, buyer, seller, admin, product):
        second = create_order(db, buyer, {"order_type": "product", "product": product})
        cancel_order(db, second.id, buyer, "Duplicate")

        stats = get_order_stats(db, admin)

        assert stats["summary"]["total_orders"] == 2
        assert stats["summary"]["cancelled_orders"] == 1
        assert stats["summary"]["total_revenue"] == 210
        assert stats["orders_by_status"] == {"pending": 1, "cancelled": 1}
        assert stats["orders_by_type"] == {"product": 2}
        assert len(stats["recent_orders"]) == 2
