import hashlib

from conftest import api
from eshop_api.config import settings
from eshop_api.models import Order, ProductVariant, Transaction

CALLBACK_AUTH = hashlib.sha256(b"hook:hook-pass").hexdigest()


def _phonepe_order(client, user, variant):
    body = api(client, "place_order", user_id=str(user.id), mobile=user.mobile, product_variant_id=str(variant.id),
               quantity="2", final_total="180", payment_method="PhonePe").json()
    return body["order_id"]


def _initiate(client, user, order_id, amount="180"):
    return client.post("/api/payment/phonepe/initiate",
                       json={"user_id": str(user.id), "order_id": order_id, "amount": amount})


def test_initiate_records_pending_transaction(client, db, settings_rows, user, product, phonepe):
    _, variant = product
    order_id = _phonepe_order(client, user, variant)

    body = _initiate(client, user, order_id).json()

    assert body["message"] == "Payment initiated successfully"
    assert body["data"]["phonepe_order_id"] == f"OMO{order_id}"
    assert body["data"]["redirect_url"] == "https://mercury.phonepe.test/pay"
    assert body["data"]["platform"] == "web"
    assert phonepe.initiated == [(order_id, str(user.id), 180.0)]
    txn = db.query(Transaction).one()
    assert txn.status == "pending"
    assert txn.transaction_type == "PhonePe"
    assert db.get(Order, int(order_id)).active_status == "awaiting_payment"


def test_initiate_is_also_served_under_the_client_api(client, settings_rows, user, product):
    _, variant = product
    order_id = _phonepe_order(client, user, variant)

    res = client.post("/app/v1/api/phonepe/initiate", json={"user_id": str(user.id), "order_id": order_id,
                                                           "amount": "180"})

    assert res.json()["data"]["merchant_order_id"] == f"ORDER_{order_id}_1700000000000"


def test_initiate_validates_input(client, user, phonepe):
    res = client.post("/api/payment/phonepe/initiate", json={"user_id": str(user.id)})
    assert res.status_code == 400
    assert res.json()["message"] == "Missing required parameters. user_id, order_id, and amount are required."

    res = _initiate(client, user, "1", amount="0")
    assert res.json()["message"] == "Invalid amount. Amount must be greater than 0."

    phonepe.config.client_id = ""
    res = _initiate(client, user, "1")
    assert res.status_code == 503
    assert res.json()["data"][0]["status"] == "UNAVAILABLE"


def test_callback_completes_payment(client, db, settings_rows, user, product):
    _, variant = product
    order_id = _phonepe_order(client, user, variant)
    _initiate(client, user, order_id)
    event = {
        "event": "checkout.order.completed",
        "payload": {
            "orderId": f"OMO{order_id}",
            "merchantOrderId": f"ORDER_{order_id}_1700000000000",
            "state": "COMPLETED",
            "amount": 18000,
            "paymentDetails": [{"transactionId": "T123"}],
        },
    }

    res = client.post("/api/payment/phonepe-callback", json=event, headers={"Authorization": CALLBACK_AUTH})

    assert res.json() == {"status": "success", "message": "Callback processed successfully"}
    assert db.query(Transaction).one().status == "success"
    order = db.get(Order, int(order_id))
    db.refresh(order)
    assert order.active_status == "received"


def test_callback_failed_payment(client, db, settings_rows, user, product):
    _, variant = product
    order_id = _phonepe_order(client, user, variant)
    _initiate(client, user, order_id)
    event = {"payload": {"orderId": f"OMO{order_id}", "merchantOrderId": f"ORDER_{order_id}_1700000000000",
                         "state": "FAILED"}}

    res = client.post("/api/payment/phonepe-callback", json=event, headers={"Authorization": CALLBACK_AUTH})

    assert res.json()["message"] == "Failed payment callback processed"
    assert db.query(Transaction).one().status == "failed"
    order = db.get(Order, int(order_id))
    db.refresh(order)
    assert order.active_status == "payment_failed"


def test_callback_authorization(client):
    res = client.post("/api/payment/phonepe-callback", json={})
    assert res.status_code == 401
    assert res.json() == {"status": "error", "message": "Unauthorized"}

    res = client.post("/api/payment/phonepe-callback", json={}, headers={"Authorization": "nope"})
    assert res.status_code == 400
    assert res.json()["message"] == "Invalid callback authorization"


def test_status_reports_gateway_state(client, settings_rows, user, product, phonepe):
    phonepe.amount = 180.0

    body = client.post("/api/payment/phonepe/status", json={"merchant_order_id": "ORDER_1_1700000000000"}).json()

    assert body["message"] == "Payment status retrieved successfully"
    assert body["data"]["state"] == "COMPLETED"
    assert body["data"]["amount"] == 180.0
    assert body["data"]["payment_details"][0]["transaction_id"] == "T123"

    res = client.post("/api/payment/phonepe/status", json={})
    assert res.status_code == 400
    assert res.json()["message"] == "Merchant order ID is required."


def test_response_redirects_browser(client, settings_rows, user, product):
    _, variant = product
    order_id = _phonepe_order(client, user, variant)
    frontend = settings.phonepe.frontend_domain

    res = client.get("/api/payment/response", params={"merchantOrderId": f"ORDER_{order_id}_1", "state": "COMPLETED",
                                                      "transactionId": "T9"}, follow_redirects=False)
    assert res.status_code == 302
    assert res.headers["location"] == f"{frontend}/payment-success?order={order_id}"

    res = client.get("/api/payment/response", params={"merchantOrderId": f"ORDER_{order_id}_1", "state": "FAILED",
                                                      "code": "PAYMENT_ERROR"}, follow_redirects=False)
    assert res.headers["location"] == f"{frontend}/payment-failed?order={order_id}&code=PAYMENT_ERROR"


def test_response_requires_gateway_confirmation(client, db, settings_rows, user, product, phonepe):
    _, variant = product
    order_id = _phonepe_order(client, user, variant)
    merchant_order_id = f"ORDER_{order_id}_1700000000000"
    _initiate(client, user, order_id)
    phonepe.state = "PENDING"

    res = client.get("/api/payment/response", params={"merchantOrderId": merchant_order_id, "state": "COMPLETED",
                                                      "transactionId": "T9"}, follow_redirects=False)

    frontend = settings.phonepe.frontend_domain
    assert res.headers["location"] == f"{frontend}/payment-failed?order={order_id}&code=PAYMENT_NOT_CONFIRMED"
    assert db.query(Transaction).one().status == "pending"
    assert db.get(Order, int(order_id)).active_status == "awaiting_payment"


def test_response_redirects_mobile_app(client):
    res = client.get("/api/payment/response", params={"merchantOrderId": "ORDER_5_1", "state": "COMPLETED",
                                                      "transactionId": "T9", "platform": "app"},
                     follow_redirects=False)

    scheme = settings.phonepe.mobile_app_scheme
    assert res.headers["location"] == f"{scheme}payment/success?orderId=ORDER_5_1&txnId=T9"


def test_cancelled_order_stays_cancelled_through_payment(client, db, settings_rows, user, product):
    _, variant = product
    order_id = _phonepe_order(client, user, variant)
    api(client, "update_order_status", order_id=order_id, status="cancelled")

    res = _initiate(client, user, order_id)

    assert res.status_code == 400
    assert res.json()["message"] == "Order can't be awaiting_payment as it is already cancelled"

    merchant_order_id = f"ORDER_{order_id}_1700000000000"
    client.post("/api/payment/phonepe/status", json={"merchant_order_id": merchant_order_id})
    event = {"payload": {"orderId": f"OMO{order_id}", "merchantOrderId": merchant_order_id, "state": "COMPLETED",
                         "amount": 18000, "paymentDetails": [{"transactionId": "T123"}]}}
    client.post("/api/payment/phonepe-callback", json=event, headers={"Authorization": CALLBACK_AUTH})

    order = db.get(Order, int(order_id))
    db.refresh(order)
    assert order.active_status == "cancelled"
    assert db.get(ProductVariant, variant.id).stock == 10
    assert db.query(Transaction).count() == 0
