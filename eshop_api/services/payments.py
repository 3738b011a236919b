"""
PhonePe checkout flows and wallet top-ups backed by gateway verification
"""
from loguru import logger
from sqlalchemy.orm import Session

from eshop_api.config import settings
from eshop_api.exceptions import PaymentGatewayError, ServiceError
from eshop_api.services.orders import update_order_status
from eshop_api.services.phonepe import PhonePeClient, extract_order_id
from eshop_api.services.transactions import add_transaction, find_by_txn_id, update_transaction_status
from eshop_api.services.wallet import fetch_user_data, update_wallet_balance
from eshop_api.utils.php import num_str, to_float

COMPLETED = "COMPLETED"
FAILED = "FAILED"
FALLBACK_OPTIONS = ["COD", "OTHER"]


def _set_order_status(db: Session, order_id, status: str):
    """Order status change that must not abort the payment flow"""
    try:
        update_order_status(db, order_id, status)
    except ServiceError as exc:
        logger.warning(f"Could not move order {order_id} to {status}: {exc.message}")


def _mark_paid(db: Session, order_id, txn_id, message: str = "Payment completed successfully"):
    try:
        update_transaction_status(db, "success", message, txn_id=txn_id, order_id=order_id)
    except ServiceError as exc:
        logger.warning(f"No pending PhonePe transaction {txn_id} for order {order_id}: {exc.message}")
    _set_order_status(db, order_id, "received")


def initiate_phonepe_payment(db: Session, client: PhonePeClient, data: dict) -> dict:
    """Start a PhonePe checkout for an order already placed with ``payment_method=PhonePe``"""
    user_id, order_id, amount = data.get("user_id"), data.get("order_id"), data.get("amount")
    platform = data.get("platform") or "web"
    if not user_id or not order_id or not amount:
        raise ServiceError(
            "Missing required parameters. user_id, order_id, and amount are required.", status_code=400
        )
    if to_float(amount) <= 0:
        raise ServiceError("Invalid amount. Amount must be greater than 0.", status_code=400)
    if not client.is_available():
        raise ServiceError(
            "PhonePe payment gateway is currently unavailable. Please try another payment method or try again later.",
            data=[{"paymentMethod": "PHONEPE", "status": "UNAVAILABLE", "fallbackOptions": FALLBACK_OPTIONS}],
            status_code=503,
        )

    try:
        update_order_status(db, order_id, "awaiting_payment")
    except ServiceError as exc:
        raise ServiceError(exc.message, status_code=400) from exc
    try:
        payment = client.initiate_payment(order_id, user_id, to_float(amount))
    except PaymentGatewayError as exc:
        logger.error(f"PhonePe initiate failed for order {order_id}: {exc.message} ({exc.code})")
        _set_order_status(db, order_id, "pending")
        if exc.status_code == 401 or exc.code in ("UnauthorizedAccess", "401"):
            raise ServiceError(
                "Payment gateway authentication failed. Please try another payment method.",
                data=[{"paymentMethod": "PHONEPE", "status": "AUTHENTICATION_FAILED", "fallbackOptions": FALLBACK_OPTIONS}],
                status_code=503,
            ) from exc
        raise ServiceError(exc.message or "Failed to initialize payment", status_code=400) from exc

    add_transaction(db, {
        "user_id": user_id,
        "order_id": order_id,
        "txn_id": payment["order_id"],
        "amount": amount,
        "status": "pending",
        "message": f"Payment initiated via PhonePe with merchant order ID {payment['merchant_order_id']}",
        "transaction_type": "PhonePe",
        "type": "credit",
    })
    return {
        "redirect_url": payment["redirect_url"],
        "merchant_order_id": payment["merchant_order_id"],
        "phonepe_order_id": payment["order_id"],
        "state": payment["state"],
        "expire_at": payment["expire_at"],
        "platform": platform,
    }


def phonepe_payment_status(db: Session, client: PhonePeClient, merchant_order_id) -> dict:
    if not merchant_order_id:
        raise ServiceError("Merchant order ID is required.", status_code=400)
    try:
        status = client.check_status(merchant_order_id)
    except PaymentGatewayError as exc:
        raise ServiceError(exc.message or "Failed to check payment status", status_code=400) from exc

    details = status["payment_details"]
    if status["state"] == COMPLETED and details and details[0].get("transactionId"):
        order_id = extract_order_id(merchant_order_id)
        if order_id:
            _mark_paid(db, order_id, status["order_id"])
    return {
        "merchant_order_id": merchant_order_id,
        "phonepe_order_id": status["order_id"],
        "state": status["state"],
        "amount": status["amount"],
        "payment_details": [
            {
                "transaction_id": detail.get("transactionId"),
                "payment_mode": detail.get("paymentMode"),
                "timestamp": detail.get("timestamp"),
                "state": detail.get("state"),
                "error_code": detail.get("errorCode"),
                "detailed_error_code": detail.get("detailedErrorCode"),
            }
            for detail in details
        ],
    }


def handle_phonepe_callback(db: Session, client: PhonePeClient, authorization, body) -> str:
    """Apply a server-to-server callback; returns the acknowledgement message"""
    callback = client.validate_callback(authorization, body)
    order_id = extract_order_id(callback["merchant_order_id"])
    logger.info(f"PhonePe callback for order {order_id}: {callback['state']}")
    if callback["state"] == COMPLETED:
        if order_id:
            _mark_paid(db, order_id, callback["order_id"])
        return "Callback processed successfully"
    if callback["state"] == FAILED:
        if order_id:
            try:
                update_transaction_status(db, "failed", "Payment failed", txn_id=callback["order_id"], order_id=order_id)
            except ServiceError as exc:
                logger.warning(f"No PhonePe transaction to fail for order {order_id}: {exc.message}")
            _set_order_status(db, order_id, "payment_failed")
        return "Failed payment callback processed"
    return "Callback acknowledged"


def payment_response_url(db: Session, client: PhonePeClient, params: dict, is_mobile_app: bool) -> str:
    """Where to send the shopper after the PhonePe hosted page.

    A COMPLETED state in the query string is only trusted once the gateway
    confirms it for the same merchant order.
    """
    phonepe = settings.phonepe
    merchant_order_id = params.get("merchantOrderId") or ""
    transaction_id = params.get("transactionId") or ""
    state = params.get("state")
    if is_mobile_app:
        outcome = "success" if state == COMPLETED else "failure"
        return f"{phonepe.mobile_app_scheme}payment/{outcome}?orderId={merchant_order_id}&txnId={transaction_id}"

    order_id = extract_order_id(merchant_order_id)
    order_ref = order_id or merchant_order_id
    code = params.get("code") or "unknown"
    if state == COMPLETED:
        try:
            confirmed = client.check_status(merchant_order_id)["state"] == COMPLETED
        except PaymentGatewayError as exc:
            logger.warning(f"Could not confirm PhonePe order {merchant_order_id}: {exc.message}")
            confirmed = False
        if confirmed:
            if order_id:
                _mark_paid(db, order_id, transaction_id or merchant_order_id, "Payment completed successfully via PhonePe")
            return f"{phonepe.frontend_domain}/payment-success?order={order_ref}"
        logger.warning(f"PhonePe did not confirm {merchant_order_id} reported as COMPLETED")
        code = "PAYMENT_NOT_CONFIRMED"
    return f"{phonepe.frontend_domain}/payment-failed?order={order_ref}&code={code}"


def verify_payment(client: PhonePeClient, txn_id, payment_method: str) -> float:
    """Amount actually paid for a gateway transaction; raises ``ServiceError`` when unverified"""
    if not txn_id:
        raise ServiceError("Transaction ID is required")
    if payment_method.lower() != "phonepe":
        raise ServiceError(f"Unsupported payment method: {payment_method}")
    try:
        status = client.check_status(txn_id)
    except PaymentGatewayError as exc:
        raise ServiceError(exc.message or "Payment verification failed") from exc
    if status["state"] != COMPLETED:
        raise ServiceError("Payment verification failed")
    return status["amount"]


def add_wallet_credit(db: Session, client: PhonePeClient, data: dict) -> dict:
    """Top up a wallet after confirming the payment with the gateway"""
    if not data.get("payment_method"):
        raise ServiceError("Payment method is required for wallet credit", status_code=400)
    payment_method = str(data["payment_method"]).lower()
    user_id = data.get("user_id")
    txn_id = str(data.get("txn_id") or "")
    user = fetch_user_data(db, user_id) if user_id else None
    if user is None:
        raise ServiceError("User not found!", status_code=400)
    old_balance = to_float(user["balance"])

    existing = find_by_txn_id(db, txn_id) if txn_id else None
    if existing is not None and str(existing.status or "").lower() == "success":
        raise ServiceError("Transaction already processed")

    amount = verify_payment(client, txn_id, payment_method)
    try:
        new_balance = update_wallet_balance(
            db, "credit", user_id, amount, f"{payment_method} - Wallet credited on successful payment confirmation.",
            txn_id=txn_id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {
        "error": False,
        "message": "Wallet Transaction Added Successfully",
        "amount": num_str(amount),
        "old_balance": num_str(old_balance),
        "new_balance": num_str(new_balance),
        "user_data": [fetch_user_data(db, user_id)],
        "data": [],
    }
