"""
Cashback and instant discount offers applied at checkout
"""
from datetime import date
from decimal import Decimal

from loguru import logger
from sqlalchemy import and_, insert, select, text, update
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.models import ApiApplyOffer
from eshop_api.utils.php import php_date, php_serialize, to_float, to_int

OFFER_TYPES = ("cashback", "instant_discount")

OFFER_QUERIES = {
    "cashback": """
        SELECT cashback_name AS offer_name, amount, cashback_percent, max_cashback,
               end_date AS expiry_date, start_date, repeat_usage, no_of_repeat_usage
        FROM cashback
        WHERE id = :id AND status = 1 AND start_date <= :today AND end_date >= :today
    """,
    "instant_discount": """
        SELECT offer_name, amount, discount_amount AS discount, max_discount_amount,
               end_date AS expiry_date, start_date, repeat_usage, no_of_repeat_usage
        FROM instant_discount
        WHERE id = :id AND status = 1 AND start_date <= :today AND end_date >= :today
    """,
}


def _active_offer(db: Session, offer_id, offer_type: str):
    return db.execute(text(OFFER_QUERIES[offer_type]), {"id": offer_id, "today": date.today()}).fetchone()


def check_offer_place_order(db: Session, offer_id, offer_type, amount, user_id) -> str:
    """Raise ``ServiceError`` unless the offer can be used for an order of ``amount``"""
    if not offer_id or not user_id or not offer_type or not amount:
        if not user_id:
            raise ServiceError("User Id blank")
        if not offer_id:
            raise ServiceError("Offer Id blank")
        if not offer_type:
            raise ServiceError("Offer Type blank")
        raise ServiceError("Amount is blank")
    if offer_type not in OFFER_TYPES:
        raise ServiceError("Invalid offer type")

    offer = _active_offer(db, offer_id, offer_type)
    if offer is None:
        raise ServiceError("Service not available")
    if not to_float(offer.amount) < to_float(amount):
        raise ServiceError(f"Invalid amount {offer_type}")
    return "Offer is applicable"


def _record_usage(db: Session, offer_id, offer_type: str, user_id, offer):
    today = date.today()
    table = ApiApplyOffer.__table__
    match = and_(
        table.c.user_id == int(user_id),
        table.c.current_date == today,
        table.c.offer_type == offer_type,
        table.c.offer_type_id == int(offer_id),
    )
    usage = db.execute(select(table.c.no_of_times_used).where(match)).fetchone()
    if usage is None:
        db.execute(insert(table).values(
            user_id=int(user_id),
            no_of_times_used=1,
            offer_type_id=int(offer_id),
            offer_type=offer_type,
            current_date=today,
        ))
        return
    if to_int(offer.repeat_usage) == 1:
        times_used = to_int(usage.no_of_times_used) + 1
        if to_int(offer.no_of_repeat_usage) >= times_used:
            db.execute(update(table).where(match).values(no_of_times_used=times_used))


def offer_details(offer_id, offer_type: str, user_id, offer, discount) -> dict:
    """Dict stored PHP-serialized in ``orders.offer_type_details``"""
    details = {"id": offer_id, "type": offer_type, "user_id": user_id}
    if offer_type == "cashback":
        details.update({
            "cashback_name": offer.offer_name,
            "amount": offer.amount,
            "cashback_percent": offer.cashback_percent,
            "max_cashback": offer.max_cashback,
        })
    else:
        details.update({
            "offer_name": offer.offer_name,
            "amount": offer.amount,
            "discount": offer.discount,
            "max_discount_amount": offer.max_discount_amount,
        })
    details.update({
        "start_date": php_date(offer.start_date),
        "end_date": php_date(offer.expiry_date),
        "repeat_usage": offer.repeat_usage,
        "no_of_repeat_usage": offer.no_of_repeat_usage,
        "offer_discount_amount": discount,
    })
    # DECIMAL columns come back as Decimal on some drivers
    return {key: float(value) if isinstance(value, Decimal) else value for key, value in details.items()}


def apply_place_order(db: Session, offer_id, offer_type, amount, user_id, order_id, discount) -> str:
    """Record offer usage and attach the offer to an order. Does not commit."""
    if offer_type not in OFFER_TYPES:
        raise ServiceError("Invalid offer type")
    offer = _active_offer(db, offer_id, offer_type)
    if offer is None:
        raise ServiceError(
            "Cashback offer not available" if offer_type == "cashback" else "Instant discount offer not available"
        )
    _record_usage(db, offer_id, offer_type, user_id, offer)

    serialized = php_serialize(offer_details(offer_id, offer_type, user_id, offer, discount))
    order = db.execute(
        text("SELECT final_total, wallet_balance FROM orders WHERE user_id = :user_id AND id = :id"),
        {"user_id": user_id, "id": order_id}
    ).fetchone()
    if order is None:
        raise ServiceError("Order not found")
    final_total = to_float(order.final_total) - to_float(order.wallet_balance)
    db.execute(
        text("""
            UPDATE orders SET offer_type_details = :details, final_total = :final_total, offer_discount = :discount
            WHERE user_id = :user_id AND id = :id
        """),
        {"details": serialized, "final_total": final_total, "discount": to_float(discount),
         "user_id": user_id, "id": order_id}
    )
    logger.info(f"Offer {offer_type}#{offer_id} applied to order {order_id} for user {user_id}")
    return "Offer applied successfully"
