from datetime import date, timedelta

from conftest import api, make_product
from eshop_api.models import Cashback, Order, OrderItem, ProductVariant, Transaction
from eshop_api.services.auth import create_client_token


def _order(client, user, variant, qty=2, final_total="180", payment_method="COD", **extra):
    payload = {
        "user_id": str(user.id),
        "mobile": user.mobile,
        "product_variant_id": str(variant.id),
        "quantity": str(qty),
        "final_total": final_total,
        "payment_method": payment_method,
    }
    payload.update(extra)
    return api(client, "place_order", **payload)


def test_place_cod_order_reduces_stock(client, db, settings_rows, user, product):
    _, variant = product

    res = _order(client, user, variant)

    body = res.json()
    assert res.status_code == 200
    assert body["message"] == "Order placed successfully"
    assert body["final_amount"] == "180"
    assert body["order_item_data"][0]["product_name"] == "Mango"
    assert body["balance"] == [{"balance": "100"}]
    db.refresh(variant)
    assert variant.stock == 8
    assert db.query(Transaction).count() == 0
    order = db.query(Order).one()
    assert order.active_status == "received"
    assert float(order.total) == 180


def test_place_order_with_wallet(client, db, settings_rows, user, product):
    _, variant = product

    body = _order(client, user, variant, is_wallet_used="1", wallet_balance_used="50").json()

    assert body["final_amount"] == "130"
    db.refresh(user)
    assert float(user.balance) == 50
    wallet_txn = db.query(Transaction).filter_by(transaction_type="wallet").one()
    assert wallet_txn.type == "debit"
    assert wallet_txn.message == "Used against Order Placement"


def test_place_prepaid_order_records_transaction(client, db, settings_rows, user, product):
    _, variant = product

    _order(client, user, variant, payment_method="Razorpay", txn_id="pay_123")

    txn = db.query(Transaction).one()
    assert txn.status == "success"
    assert txn.txn_id == "pay_123"
    assert float(txn.amount) == 180


def test_place_order_requires_fields(client, settings_rows, user):
    res = api(client, "place_order", user_id=str(user.id))

    assert res.status_code == 400
    assert res.json()["message"] == "mobile, product_variant_id, quantity, final_total, payment_method is required"


def test_place_order_rejects_insufficient_stock(client, db, settings_rows, user, product):
    _, variant = product

    res = _order(client, user, variant, qty=11)

    assert res.status_code == 400
    assert res.json()["message"] == f"Product out of stock or insufficient quantity for product variant ID {variant.id}"
    assert db.query(Order).count() == 0


def test_place_order_applies_promo_code(client, settings_rows, user, product, promo_code):
    _, variant = product

    body = _order(client, user, variant, promo_code="SAVE10").json()

    assert body["final_amount"] == "162"


def test_place_order_rejects_unknown_promo_code(client, settings_rows, user, product):
    _, variant = product

    res = _order(client, user, variant, promo_code="NOPE")

    assert res.status_code == 400
    assert res.json()["message"] == "The promo code is not valid"


def test_place_order_adds_exclusive_tax(client, settings_rows, user, taxed_product):
    _, variant = taxed_product

    body = _order(client, user, variant, qty=1, final_total="220").json()

    assert body["final_amount"] == "220"
    assert body["order_item_data"][0]["tax_amount"] == "20"


def test_place_phonepe_order_requires_payment(client, db, settings_rows, user, product):
    _, variant = product

    body = _order(client, user, variant, payment_method="PhonePe").json()

    assert body["message"] == "Order placed successfully. Payment required."
    assert body["payment_required"] is True
    assert body["payment_method"] == "PhonePe"
    assert db.query(Transaction).count() == 0


def test_place_order_with_cashback_offer(client, db, settings_rows, user, product):
    _, variant = product
    offer = Cashback(cashback_name="Festive", amount=100, cashback_percent=5, max_cashback=20,
                     start_date=date.today() - timedelta(days=1), end_date=date.today() + timedelta(days=1),
                     repeat_usage=0, status=1)
    db.add(offer)
    db.commit()

    body = _order(client, user, variant, final_total="160", offer_id=str(offer.id), offer_type="cashback",
                  offer_discount_amount="20").json()

    assert body["final_amount"] == "160"
    assert body["offer_discount_amount"] == "20"
    orders = api(client, "get_orders", user_id=str(user.id)).json()
    assert orders["data"][0]["offer_type"] == "cashback"
    assert orders["data"][0]["offer_name"] == "Festive"
    assert orders["data"][0]["offer_discount"] == "20"


def test_place_order_rejects_offer_above_amount(client, db, settings_rows, user, product):
    _, variant = product
    offer = Cashback(cashback_name="Big spender", amount=1000, start_date=date.today(),
                     end_date=date.today(), status=1)
    db.add(offer)
    db.commit()

    res = _order(client, user, variant, offer_id=str(offer.id), offer_type="cashback", offer_discount_amount="20")

    assert res.status_code == 400
    assert res.json()["message"] == "Invalid amount cashback"


def test_get_orders(client, settings_rows, user, product):
    _, variant = product
    _order(client, user, variant)

    body = api(client, "get_orders", user_id=str(user.id)).json()

    assert body["message"] == "Orders retrieved successfully"
    assert body["total"] == "1"
    assert body["received"] == "1"
    assert body["cancelled"] == "0"
    order = body["data"][0]
    assert order["final_total"] == "180"
    assert order["status"][0][0] == "received"
    assert order["order_items"][0]["product_name"] == "Mango"
    assert order["order_items"][0]["net_amount"] == "180"
    assert "Retail Invoice" in order["invoice_html"]


def test_get_orders_filters_status_and_skips_invoice(client, settings_rows, user, product):
    _, variant = product
    _order(client, user, variant)

    body = api(client, "get_orders", user_id=str(user.id), active_status="delivered", download_invoice="0").json()
    assert body["total"] == "0"

    body = api(client, "get_orders", user_id=str(user.id), download_invoice="0").json()
    assert body["data"][0]["invoice_html"] == ""


def test_get_orders_requires_user(client):
    res = api(client, "get_orders")

    assert res.status_code == 400
    assert res.json()["message"] == "User ID is required"
    assert res.json()["delivered"] == "0"


def test_cancel_cod_order_returns_wallet_and_stock(client, db, settings_rows, user, product):
    _, variant = product
    order_id = _order(client, user, variant, is_wallet_used="1", wallet_balance_used="50").json()["order_id"]

    body = api(client, "update_order_status", order_id=order_id, status="cancelled").json()

    assert body["message"] == "Order status updated successfully"
    assert body["data"]["order"]["active_status"] == "cancelled"
    assert [item["active_status"] for item in body["data"]["order_items"]] == ["cancelled"]
    db.refresh(user)
    db.refresh(variant)
    assert float(user.balance) == 100
    assert variant.stock == 10


def test_update_order_status_link(client, settings_rows, user, product):
    _, variant = product
    order_id = _order(client, user, variant).json()["order_id"]

    body = client.get(f"/app/v1/api/update_order_status/{order_id}/processed").json()

    assert body["data"]["order"]["active_status"] == "processed"
    assert [entry[0] for entry in body["data"]["order"]["status"]] == ["received", "processed"]


def test_update_order_status_rejects_unknown_status(client, settings_rows, user, product):
    _, variant = product
    order_id = _order(client, user, variant).json()["order_id"]

    res = api(client, "update_order_status", order_id=order_id, status="lost")

    assert res.status_code == 400
    assert res.json()["message"] == (
        "Invalid status value. Allowed values: received, processed, shipped, delivered, cancelled, returned"
    )


def test_return_requires_delivery(client, settings_rows, user, product):
    _, variant = product
    order_id = _order(client, user, variant).json()["order_id"]

    res = api(client, "update_order_status", order_id=order_id, status="returned")

    assert res.status_code == 400
    assert res.json()["message"] == "Only delivered orders can be returned"


def test_final_status_is_locked(client, settings_rows, user, product):
    _, variant = product
    order_id = _order(client, user, variant).json()["order_id"]
    api(client, "update_order_status", order_id=order_id, status="delivered")

    res = api(client, "update_order_status", order_id=order_id, status="cancelled")

    assert res.json()["message"] == "Order can't be cancelled as it is already delivered"


def test_cancel_prepaid_item_refunds_wallet(client, db, settings_rows, user, product, category, client_key):
    _, mango = product
    _, apple = make_product(db, category, name="Apple", price=50, special_price=0)
    payload = {
        "user_id": str(user.id),
        "mobile": user.mobile,
        "product_variant_id": f"{mango.id},{apple.id}",
        "quantity": "1,1",
        "final_total": "140",
        "payment_method": "Razorpay",
        "txn_id": "pay_456",
    }
    order_id = api(client, "place_order", **payload).json()["order_id"]
    mango_item = db.query(OrderItem).filter_by(order_id=int(order_id), product_variant_id=mango.id).one()
    token = create_client_token(client_key)

    res = client.post(
        "/app/v1/api/update_order_item_status",
        json={"order_item_id": str(mango_item.id), "status": "cancelled"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert res.json() == {"error": False, "message": "Status updated successfully", "data": []}
    db.refresh(user)
    db.refresh(mango)
    assert float(user.balance) == 190
    assert mango.stock == 10
    order = db.get(Order, int(order_id))
    db.refresh(order)
    assert float(order.total) == 50
    refund = db.query(Transaction).filter_by(transaction_type="wallet").one()
    assert refund.type == "refund"
    assert refund.order_item_id == mango_item.id


def test_update_order_item_status_requires_token(client, settings_rows, user, product):
    res = api(client, "update_order_item_status", order_item_id="1", status="cancelled")

    assert res.status_code == 401
    assert res.json()["message"] == "Unauthorized access not allowed"


def test_update_order_item_status_requires_fields(client, client_key):
    token = create_client_token(client_key)

    res = client.post("/app/v1/api/update_order_item_status", json={"status": "cancelled"},
                      headers={"Authorization": f"Bearer {token}"})

    assert res.status_code == 400
    assert res.json()["message"] == "Order item ID and status are required"


def test_invoice(client, settings_rows, user, product):
    _, variant = product
    order_id = _order(client, user, variant).json()["order_id"]

    res = client.get(f"/app/v1/api/invoice/{order_id}")

    assert res.status_code == 200
    assert f"#{order_id}" in res.text
    assert client.get("/app/v1/api/invoice/999").status_code == 404


def test_untracked_stock_is_not_decremented(client, db, settings_rows, user, category):
    _, variant = make_product(db, category, name="Bread", stock=None)

    body = _order(client, user, variant, qty=50, final_total="4500").json()

    assert body["message"] == "Order placed successfully"
    assert db.get(ProductVariant, variant.id).stock is None


def _cancel_item(client, db, client_key, order_id, variant):
    item = db.query(OrderItem).filter_by(order_id=int(order_id), product_variant_id=variant.id).one()
    return client.post(
        "/app/v1/api/update_order_item_status",
        json={"order_item_id": str(item.id), "status": "cancelled"},
        headers={"Authorization": f"Bearer {create_client_token(client_key)}"},
    )


def test_cod_item_cancel_blocked_below_minimum_amount(client, db, settings_rows, user, product, category,
                                                      client_key):
    _, mango = product
    _, lemon = make_product(db, category, name="Lemon", price=30, special_price=0)
    order_id = api(client, "place_order", user_id=str(user.id), mobile=user.mobile,
                   product_variant_id=f"{mango.id},{lemon.id}", quantity="1,1", payment_method="COD").json()["order_id"]

    res = _cancel_item(client, db, client_key, order_id, mango)

    assert res.status_code == 400
    assert res.json()["message"] == (
        "Cannot cancel this item as the remaining order total would fall below the minimum order amount of 50"
    )
    db.refresh(mango)
    assert mango.stock == 9


def test_cod_item_cancel_recalculates_promo_and_returns_wallet(client, db, settings_rows, user, product, category,
                                                               promo_code, client_key):
    _, mango = product
    _, apple = make_product(db, category, name="Apple", price=60, special_price=0)
    order_id = api(client, "place_order", user_id=str(user.id), mobile=user.mobile,
                   product_variant_id=f"{mango.id},{apple.id}", quantity="1,1", payment_method="COD",
                   promo_code="SAVE10", delivery_charge="30", is_wallet_used="1",
                   wallet_balance_used="20").json()["order_id"]
    order = db.get(Order, int(order_id))
    assert float(order.promo_discount) == 15
    assert float(order.total_payable) == 145

    res = _cancel_item(client, db, client_key, order_id, apple)

    assert res.json()["message"] == "Status updated successfully"
    db.refresh(order)
    assert float(order.total) == 90
    assert float(order.promo_discount) == 0
    assert float(order.delivery_charge) == 30
    assert float(order.wallet_balance) == 0
    assert float(order.final_total) == 120
    assert float(order.total_payable) == 120
    db.refresh(user)
    assert float(user.balance) == 85
    refund = db.query(Transaction).filter_by(transaction_type="wallet", type="credit").one()
    assert float(refund.amount) == 5


def test_prepaid_item_cancel_adds_delivery_charge_below_minimum(client, db, settings_rows, user, product, category,
                                                                client_key):
    _, mango = product
    _, lemon = make_product(db, category, name="Lemon", price=40, special_price=0)
    order_id = api(client, "place_order", user_id=str(user.id), mobile=user.mobile,
                   product_variant_id=f"{mango.id},{lemon.id}", quantity="1,1", payment_method="Razorpay",
                   txn_id="pay_789").json()["order_id"]

    _cancel_item(client, db, client_key, order_id, mango)

    order = db.get(Order, int(order_id))
    db.refresh(order)
    assert float(order.total) == 40
    assert float(order.delivery_charge) == 30
    assert float(order.final_total) == 70
    db.refresh(user)
    assert float(user.balance) == 190
