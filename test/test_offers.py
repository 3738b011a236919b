from datetime import date, timedelta

import pytest

from eshop_api.exceptions import ServiceError
from eshop_api.models import ApiApplyOffer, InstantDiscount, Order
from eshop_api.services.offers import apply_place_order, check_offer_place_order
from eshop_api.utils.php import php_unserialize


@pytest.fixture
def instant_discount(db):
    offer = InstantDiscount(offer_name="Weekend deal", amount=100, discount_amount=15, max_discount_amount=30,
                            start_date=date.today() - timedelta(days=2), end_date=date.today() + timedelta(days=2),
                            repeat_usage=1, no_of_repeat_usage=2, status=1)
    db.add(offer)
    db.commit()
    return offer


@pytest.mark.parametrize("args, message", [
    ((None, "cashback", 100, 1), "Offer Id blank"),
    ((1, "cashback", 100, None), "User Id blank"),
    ((1, None, 100, 1), "Offer Type blank"),
    ((1, "cashback", 0, 1), "Amount is blank"),
    ((1, "bogo", 100, 1), "Invalid offer type"),
])
def test_check_offer_rejects_incomplete_input(db, args, message):
    with pytest.raises(ServiceError) as exc_info:
        check_offer_place_order(db, *args)
    assert exc_info.value.message == message


def test_check_offer_amount_threshold(db, instant_discount):
    assert check_offer_place_order(db, instant_discount.id, "instant_discount", 150, 1) == "Offer is applicable"
    with pytest.raises(ServiceError, match="Invalid amount instant_discount"):
        check_offer_place_order(db, instant_discount.id, "instant_discount", 100, 1)
    with pytest.raises(ServiceError, match="Service not available"):
        check_offer_place_order(db, instant_discount.id + 1, "instant_discount", 150, 1)


def test_apply_place_order_records_usage_and_details(db, user, instant_discount):
    order = Order(user_id=user.id, total=200, final_total=200, wallet_balance=20, payment_method="COD",
                  active_status="received")
    db.add(order)
    db.commit()

    for _ in range(3):
        apply_place_order(db, instant_discount.id, "instant_discount", 200, user.id, order.id, 15)
    db.commit()

    usage = db.query(ApiApplyOffer).one()
    assert usage.offer_type == "instant_discount"
    assert usage.no_of_times_used == 2
    db.refresh(order)
    details = php_unserialize(order.offer_type_details)
    assert details["type"] == "instant_discount"
    assert details["offer_name"] == "Weekend deal"
    assert details["offer_discount_amount"] == 15
    assert float(order.offer_discount) == 15


def test_apply_place_order_unknown_offer(db, user):
    with pytest.raises(ServiceError, match="Cashback offer not available"):
        apply_place_order(db, 42, "cashback", 200, user.id, 1, 10)
