"""
Order placement, listing, status changes and refunds
"""
import json
import random
from datetime import date, datetime, timedelta
from typing import List

from loguru import logger
from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.models import Order, OrderItem
from eshop_api.services.catalog import attribute_values, decode_images
from eshop_api.services.invoice import generate_invoice_html
from eshop_api.services.offers import OFFER_TYPES, apply_place_order, check_offer_place_order
from eshop_api.services.transactions import add_transaction
from eshop_api.services.wallet import update_wallet_balance
from eshop_api.utils.helpers import image_url, split_ids, system_settings
from eshop_api.utils.php import (
    load_status, num_str, parse_offer_details, php_date, round2, row_dict, status_date, stringify,
    to_float, to_int,
)

ALLOWED_STATUSES = ("received", "processed", "shipped", "delivered", "cancelled", "returned")
FINAL_STATUSES = ("delivered", "cancelled", "returned")
REFUND_STATUSES = ("cancelled", "returned")
# Set by the payment flow, outside the fulfilment lifecycle
PAYMENT_STATUSES = ("awaiting_payment", "payment_failed", "pending")
COUNTED_STATUSES = ("awaiting", "received", "processed", "shipped", "delivered", "cancelled", "returned")

GATEWAY_REFUND_METHODS = ("Razorpay", "Paystack", "Flutterwave")
UNPAID_METHODS = ("cod", "bank transfer", "bank_transfer")

OTP_MESSAGE = "Here is your OTP. Please, give it to delivery boy only while getting your order."

ORDER_SORTS = {
    "id": "o.id",
    "o.id": "o.id",
    "date_added": "o.date_added",
    "o.date_added": "o.date_added",
    "final_total": "o.final_total",
    "o.final_total": "o.final_total",
}
TIME_SLOT_SORTS = ("id", "title", "from_time", "to_time", "last_order_time")
PROMO_SORTS = ("id", "promo_code", "start_date", "end_date", "discount", "minimum_order_amount")


def _is_unpaid_method(payment_method) -> bool:
    return str(payment_method or "").lower() in UNPAID_METHODS


def _order_table(table: str):
    if table == "orders":
        return "orders", "Order"
    return "order_items", "Order item"


def get_time_slots(db: Session, status=None, sort: str = "from_time", order: str = "ASC") -> List[dict]:
    query = "SELECT * FROM time_slots"
    params = {}
    if status is not None and status != "":
        query += " WHERE status = :status"
        params["status"] = to_int(status)
    sort = sort if sort in TIME_SLOT_SORTS else "from_time"
    order = "DESC" if str(order).upper() == "DESC" else "ASC"
    query += f" ORDER BY {sort} {order}"
    return [stringify(row_dict(row)) for row in db.execute(text(query), params).fetchall()]


def validate_order_status(db: Session, id, status: str, table: str = "order_items") -> dict:
    """Check a lifecycle transition and return the current row; raises ``ServiceError``"""
    if status not in ALLOWED_STATUSES:
        raise ServiceError("Invalid status value. Allowed values: " + ", ".join(ALLOWED_STATUSES))
    table_name, label = _order_table(table)
    row = row_dict(db.execute(text(f"SELECT * FROM {table_name} WHERE id = :id"), {"id": id}).fetchone())
    if row is None:
        raise ServiceError(f"{label} not found")

    current = row["active_status"]
    if current in FINAL_STATUSES and status != current:
        raise ServiceError(f"Order can't be {status} as it is already {current}")
    if status == "returned" and current != "delivered":
        raise ServiceError("Only delivered orders can be returned")

    if table_name == "order_items" and status == "cancelled":
        min_amount = to_float(system_settings(db).get("min_amount"))
        items = db.execute(
            text("SELECT sub_total, active_status FROM order_items WHERE order_id = :order_id"),
            {"order_id": row["order_id"]}
        ).fetchall()
        current_total = sum(
            to_float(item.sub_total) for item in items if item.active_status not in REFUND_STATUSES
        )
        new_total = current_total - to_float(row["sub_total"])
        if 0 < new_total < min_amount:
            order = db.execute(
                text("SELECT payment_method FROM orders WHERE id = :id"), {"id": row["order_id"]}
            ).fetchone()
            if order is not None and str(order.payment_method or "").lower() == "cod":
                raise ServiceError(
                    "Cannot cancel this item as the remaining order total would fall below "
                    f"the minimum order amount of {num_str(min_amount)}"
                )
    return row


def _promo_discount(db: Session, promo_code: str, total: float) -> float:
    """Discount granted by a promo code on ``total``; zero when the code does not qualify"""
    if not promo_code or total <= 0:
        return 0.0
    promo = db.execute(
        text("""
            SELECT discount, discount_type, minimum_order_amount, max_discount_amount
            FROM promo_codes
            WHERE promo_code = :code AND status = 1
        """),
        {"code": promo_code}
    ).fetchone()
    if promo is None or total < to_float(promo.minimum_order_amount):
        return 0.0
    if promo.discount_type == "percentage":
        discount = total * to_float(promo.discount) / 100
        cap = to_float(promo.max_discount_amount)
        if cap > 0 and discount > cap:
            discount = cap
        return discount
    return to_float(promo.discount)


def validate_promo_code(db: Session, promo_code: str, user_id, total) -> float:
    """Discount for a promo code at checkout; raises ``ServiceError`` when it cannot be used"""
    promo = db.execute(
        text("""
            SELECT * FROM promo_codes
            WHERE promo_code = :code AND status = 1 AND start_date <= :today AND end_date >= :today
        """),
        {"code": promo_code, "today": date.today()}
    ).fetchone()
    if promo is None:
        raise ServiceError("The promo code is not valid")
    minimum = to_float(promo.minimum_order_amount)
    if to_float(total) < minimum:
        raise ServiceError(
            f"This promo code is applicable only for amount greater than or equal to {num_str(minimum)}"
        )
    used = db.execute(
        text("SELECT COUNT(id) FROM orders WHERE promo_code = :code AND user_id = :user_id"),
        {"code": promo_code, "user_id": user_id}
    ).scalar() or 0
    if used and not to_int(promo.repeat_usage):
        raise ServiceError("This promo code cannot be redeemed as it exceeds the usage limit")
    if used and to_int(promo.no_of_repeat_usage) and used >= to_int(promo.no_of_repeat_usage):
        raise ServiceError("This promo code cannot be redeemed as it exceeds the usage limit")
    return round2(_promo_discount(db, promo_code, to_float(total)))


def get_promo_codes(db: Session, limit=25, offset=0, sort="id", order="DESC", search="") -> List[dict]:
    """Promo codes running today, shown under the cart"""
    where = "status = 1 AND start_date <= :today AND end_date >= :today"
    params = {"today": date.today(), "limit": to_int(limit, 25), "offset": to_int(offset)}
    if search and search.strip():
        where += " AND (promo_code LIKE :search OR message LIKE :search)"
        params["search"] = f"%{search.strip()}%"
    sort = sort if sort in PROMO_SORTS else "id"
    order = "ASC" if str(order).upper() == "ASC" else "DESC"
    rows = db.execute(
        text(f"SELECT * FROM promo_codes WHERE {where} ORDER BY {sort} {order} LIMIT :limit OFFSET :offset"),
        params
    ).fetchall()
    codes = []
    for row in rows:
        code = stringify(row_dict(row))
        code["image"] = image_url(row.image) if row.image else ""
        codes.append(code)
    return codes


def _delivery_date(value) -> str:
    raw = str(value).strip()
    for fmt in ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(raw, fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return raw[:10]


def _full_address(db: Session, address_id):
    row = db.execute(
        text("""
            SELECT a.address, a.landmark, a.state, a.country, a.pincode, a.mobile,
                   a.latitude, a.longitude, ar.name AS area, c.name AS city
            FROM addresses a
            LEFT JOIN areas ar ON ar.id = a.area_id
            LEFT JOIN cities c ON c.id = a.city_id
            WHERE a.id = :id
        """),
        {"id": address_id}
    ).fetchone()
    if row is None:
        return None
    parts = [row.address, row.landmark, row.area, row.city, row.state, row.country, row.pincode]
    return row, ", ".join(str(part) for part in parts if part)


def place_order(db: Session, data: dict) -> dict:
    """Price, persist and stock-adjust an order in one unit of work.

    Raises ``ServiceError`` with the client-facing message when any check
    fails; nothing is written in that case.
    """
    if not data.get("user_id") or not data.get("product_variant_id") or not data.get("quantity") \
            or not data.get("payment_method"):
        raise ServiceError("Missing required parameters")

    user_id = data["user_id"]
    variant_ids = split_ids(data["product_variant_id"])
    quantities = [to_int(qty) for qty in split_ids(data["quantity"])]
    if len(quantities) < len(variant_ids):
        raise ServiceError("Quantity is required for every product variant")

    time_slot = ""
    if data.get("select_time_slot_id"):
        slot = db.execute(
            text("SELECT title FROM time_slots WHERE id = :id"), {"id": data["select_time_slot_id"]}
        ).fetchone()
        if slot is not None:
            time_slot = slot.title
    elif data.get("delivery_time"):
        time_slot = data["delivery_time"]

    for variant_id, qty in zip(variant_ids, quantities):
        stock = db.execute(
            text("SELECT stock, availability FROM product_variants WHERE id = :id"), {"id": variant_id}
        ).fetchone()
        if stock is None:
            raise ServiceError(f"Product variant with ID {variant_id} not found")
        out_of_stock = stock.availability is not None and to_int(stock.availability) == 0
        if out_of_stock or (stock.stock is not None and to_int(stock.stock) < qty):
            raise ServiceError(
                f"Product out of stock or insufficient quantity for product variant ID {variant_id}"
            )

    variants = []
    for variant_id in variant_ids:
        row = db.execute(
            text("""
                SELECT pv.id, pv.product_id, pv.price, pv.special_price, pv.attribute_value_ids,
                       p.type, p.download_allowed, p.download_link, p.name AS product_name,
                       p.is_prices_inclusive_tax, p.image, t.percentage AS tax_percentage
                FROM product_variants pv
                LEFT JOIN products p ON pv.product_id = p.id
                LEFT JOIN taxes t ON t.id = p.tax
                WHERE pv.id = :id
            """),
            {"id": variant_id}
        ).fetchone()
        variants.append(row_dict(row))

    types = [variant["type"] for variant in variants]
    downloads = [to_int(variant["download_allowed"]) for variant in variants]
    if "digital_product" in types and 0 in downloads and not data.get("email"):
        raise ServiceError("Email is required for digital products")

    settings = system_settings(db)
    pickup_enabled = to_int(settings.get("local_pickup"))
    local_pickup = to_int(data.get("local_pickup"))
    if not pickup_enabled and local_pickup == 1:
        raise ServiceError("You cannot select Local pickup because this is disabled")
    delivery_charge = 0.0 if (pickup_enabled == 1 and local_pickup == 1) else to_float(data.get("delivery_charge"))

    names = attribute_values(db, variants)
    gross_total = 0.0
    item_data = []
    for variant, qty in zip(variants, quantities):
        special_price = to_float(variant["special_price"])
        price = special_price if special_price > 0 else to_float(variant["price"])
        percentage = to_float(variant["tax_percentage"])
        item_tax = 0.0
        final_price = price
        if not to_int(variant["is_prices_inclusive_tax"]) and percentage > 0:
            item_tax = round2(price * percentage / 100)
            final_price = price + item_tax
        elif percentage > 0:
            item_tax = round2(price * percentage / (100 + percentage))
        sub_total = round2(final_price * qty)
        gross_total += sub_total
        item_data.append({
            "user_id": user_id,
            "product_name": variant["product_name"] or f"Product {variant['product_id']}",
            "variant_name": names.get(str(variant["id"]), ("", ""))[0],
            "product_variant_id": variant["id"],
            "quantity": qty,
            "price": round2(final_price),
            "tax_percent": percentage,
            "tax_amount": round2(item_tax * qty),
            "sub_total": sub_total,
            "image": image_url(variant["image"]),
            "product_id": variant["product_id"],
        })

    gross_total = round2(gross_total)
    promo_code = data.get("promo_code") or ""
    promo_discount = validate_promo_code(db, promo_code, user_id, gross_total) if promo_code else 0.0
    offer_discount = to_float(data.get("offer_discount_amount"))
    total_discount = to_float(data.get("discount")) + offer_discount
    final_total = round2(gross_total + delivery_charge - promo_discount - offer_discount)

    wallet_used = 0.0
    if str(data.get("is_wallet_used", "")) == "1":
        wallet_amount = to_float(data.get("wallet_balance_used"))
        if wallet_amount > final_total:
            raise ServiceError("Wallet Balance should not exceed the total amount")
        user = db.execute(text("SELECT balance FROM users WHERE id = :id"), {"id": user_id}).fetchone()
        if user is None:
            raise ServiceError("User not found")
        if to_float(user.balance) < wallet_amount:
            raise ServiceError("Insufficient wallet balance")
        if wallet_amount > 0:
            update_wallet_balance(db, "debit", user_id, wallet_amount, "Used against Order Placement")
            wallet_used = wallet_amount
            final_total = round2(final_total - wallet_used)

    status = data.get("active_status") or "received"
    history = [[status, status_date()]]
    otp = random.randint(100000, 999999) if settings.get("is_delivery_boy_otp_setting_on") == "1" else 0

    order = Order(
        user_id=user_id,
        mobile=data.get("mobile"),
        email=data.get("email") or "",
        total=gross_total,
        promo_code=promo_code,
        promo_discount=promo_discount,
        total_payable=final_total,
        delivery_charge=delivery_charge,
        is_delivery_charge_returnable=to_int(data.get("is_delivery_charge_returnable")),
        wallet_balance=wallet_used,
        final_total=round2(final_total + wallet_used),
        discount=total_discount,
        payment_method=data["payment_method"],
        status=_dump_status(history),
        active_status=status,
        is_local_pickup=local_pickup,
        city=str(to_int(data.get("city_id"))),
        notes=data.get("order_note") or "",
        offer_type_details=data.get("offer_type_details") or "",
        offer_discount=offer_discount,
        otp=otp,
        address="",
    )
    if time_slot:
        order.delivery_time = time_slot
    if data.get("delivery_date"):
        order.delivery_date = _delivery_date(data["delivery_date"])
    if data.get("address_id"):
        order.address_id = to_int(data["address_id"])
        found = _full_address(db, data["address_id"])
        if found is not None:
            address, full_address = found
            order.latitude = address.latitude or ""
            order.longitude = address.longitude or ""
            order.address = full_address
            order.mobile = address.mobile or data.get("mobile")
    db.add(order)
    db.flush()

    for variant, item in zip(variants, item_data):
        order_item = OrderItem(
            user_id=user_id,
            order_id=order.id,
            product_name=item["product_name"],
            variant_name=item["variant_name"],
            product_variant_id=variant["id"],
            quantity=item["quantity"],
            price=item["price"],
            discounted_price=to_float(variant["special_price"]),
            tax_percent=item["tax_percent"],
            tax_amount=item["tax_amount"],
            sub_total=item["sub_total"],
            status=_dump_status(history),
            active_status=status,
        )
        db.add(order_item)
        db.flush()
        item["order_item_id"] = order_item.id
        if to_int(variant["download_allowed"]) and variant["download_link"]:
            order_item.hash_link = f"{variant['download_link']}-{order_item.id}"
            item["hash_link"] = order_item.hash_link
        db.execute(
            text("UPDATE product_variants SET stock = stock - :qty WHERE id = :id AND stock IS NOT NULL"),
            {"qty": item["quantity"], "id": variant["id"]}
        )

    # PhonePe records its own pending transaction when the payment is initiated
    if not _is_unpaid_method(data["payment_method"]) and data["payment_method"] != "PhonePe":
        add_transaction(db, {
            "transaction_type": "transaction",
            "user_id": user_id,
            "order_id": order.id,
            "type": "credit",
            "txn_id": data.get("txn_id") or "",
            "amount": round2(final_total + wallet_used),
            "status": "success",
            "message": f"Payment for order #{order.id}",
        }, commit=False)

    balance = db.execute(text("SELECT balance FROM users WHERE id = :id"), {"id": user_id}).scalar()
    db.commit()
    logger.info(
        f"Order {order.id} placed by user {user_id}: total={gross_total} final={final_total} "
        f"wallet={wallet_used} method={data['payment_method']}"
    )

    order_item_data = stringify(item_data)
    body = {
        "order_id": str(order.id),
        "final_amount": num_str(final_total),
        "offer_discount_amount": num_str(offer_discount),
        "order_item_data": order_item_data,
        "otp": str(otp) if otp else "0",
        "otp_msg": OTP_MESSAGE if otp else "",
    }
    return {
        **body,
        "balance": [{"balance": stringify(balance or 0)}],
        "data": {**body, "balance": stringify(balance or 0)},
    }


def submit_order(db: Session, form: dict) -> dict:
    """Checkout: offer validation, order placement, offer usage and follow-up transactions.

    Returns the response body for ``place_order``. Missing input raises
    ``ServiceError`` with status 400.
    """
    required = ("user_id", "mobile", "product_variant_id", "quantity", "final_total", "payment_method")
    missing = [param for param in required if not form.get(param)]
    if missing:
        raise ServiceError(f"{', '.join(missing)} is required", status_code=400)

    data = dict(form)
    data["is_delivery_charge_returnable"] = data.get("is_delivery_charge_returnable") or 0
    for key in ("product_variant_id", "quantity"):
        if isinstance(data[key], (list, tuple)):
            data[key] = ",".join(str(value) for value in data[key])

    if data.get("offer_id"):
        if data.get("offer_type") not in OFFER_TYPES:
            raise ServiceError(
                "Invalid or missing offer_type. Must be 'cashback' or 'instant_discount'", status_code=400
            )
        data["offer_discount_amount"] = to_float(data.get("offer_discount_amount"))
    else:
        data["offer_id"] = ""
        data["offer_type"] = ""
        data["offer_discount_amount"] = 0

    payment_method = data["payment_method"]
    if payment_method == "PhonePe":
        result = place_order(db, data)
        return {
            "error": False,
            "message": "Order placed successfully. Payment required.",
            "order_id": result["order_id"],
            "final_amount": result["final_amount"],
            "offer_discount_amount": num_str(data["offer_discount_amount"]),
            "order_item_data": result["order_item_data"],
            "balance": result["balance"],
            "payment_method": "PhonePe",
            "payment_required": True,
        }

    if data["offer_id"]:
        try:
            check_offer_place_order(db, data["offer_id"], data["offer_type"], data["final_total"], data["user_id"])
        except ServiceError as exc:
            raise ServiceError(exc.message, status_code=400) from exc

    result = place_order(db, data)
    if data["offer_id"]:
        apply_place_order(
            db, data["offer_id"], data["offer_type"], data["final_total"], data["user_id"],
            result["order_id"], data["offer_discount_amount"]
        )
    if payment_method == "bank_transfer":
        add_transaction(db, {
            "status": "awaiting",
            "order_id": result["order_id"],
            "user_id": data["user_id"],
            "type": payment_method,
            "amount": data["final_total"],
        }, commit=False)
    db.commit()

    return {
        "error": False,
        "message": "Order placed successfully",
        "order_id": result["order_id"],
        "final_amount": result["final_amount"],
        "offer_discount_amount": num_str(data["offer_discount_amount"]) if data["offer_id"] else 0,
        "order_item_data": result["order_item_data"],
        "balance": result["balance"],
    }


def _variant_attributes(db: Session, product_variant_id) -> dict:
    row = db.execute(
        text("SELECT id, attribute_value_ids FROM product_variants WHERE id = :id"), {"id": product_variant_id}
    ).fetchone()
    if row is None:
        return {"varaint_ids": "", "variant_values": "", "attr_name": ""}
    variant = row_dict(row)
    values, attrs = attribute_values(db, [variant])[str(variant["id"])]
    ids = sorted(split_ids(variant["attribute_value_ids"]), key=lambda value: to_int(value))
    return {
        "varaint_ids": ",".join(ids) if values else "",
        "variant_values": values,
        "attr_name": attrs.replace(",", ", "),
    }


def _item_counters(db: Session, user_id, product_variant_id) -> dict:
    row = db.execute(
        text("""
            SELECT COUNT(id) AS ordered,
                   SUM(CASE WHEN active_status = 'cancelled' THEN 1 ELSE 0 END) AS cancelled,
                   SUM(CASE WHEN active_status = 'returned' THEN 1 ELSE 0 END) AS returned
            FROM order_items
            WHERE user_id = :user_id AND product_variant_id = :variant
        """),
        {"user_id": user_id, "variant": product_variant_id}
    ).fetchone()
    return {
        "order_counter": str(to_int(row.ordered)),
        "order_cancel_counter": str(to_int(row.cancelled)),
        "order_return_counter": str(to_int(row.returned)),
    }


def _format_order_item(db: Session, item: dict, user_id, email: str) -> dict:
    history = load_status(item["status"])
    rating = db.execute(
        text("SELECT comment, images, rating FROM product_rating WHERE product_id = :product_id AND user_id = :user_id"),
        {"product_id": item["product_id"], "user_id": user_id}
    ).fetchone()
    user_rating, comment, rating_images = "0", "", []
    if rating is not None:
        user_rating = stringify(rating.rating)
        comment = rating.comment or ""
        rating_images = [image_url(path) for path in decode_images(rating.images)]

    formatted = {
        "id": str(item["id"]),
        "user_id": stringify(item["user_id"]),
        "order_id": stringify(item["order_id"]),
        "product_name": item["product_name"] or "",
        "variant_name": item["variant_name"] or "",
        "product_variant_id": stringify(item["product_variant_id"]),
        "quantity": stringify(item["quantity"]),
        "price": stringify(item["price"]),
        "discounted_price": stringify(item["discounted_price"]),
        "tax_percent": stringify(item["tax_percent"]),
        "tax_amount": stringify(item["tax_amount"]),
        "discount": stringify(item["discount"] or 0),
        "sub_total": stringify(item["sub_total"]),
        "deliver_by": item["deliver_by"] or "",
        "updated_by": stringify(item["updated_by"] or 0),
        "status": history,
        "active_status": item["active_status"],
        "hash_link": item["hash_link"] or "NULL",
        "is_sent": stringify(item["is_sent"] or 0),
        "is_download": stringify(item["is_download"] or 0),
        "date_added": php_date(item["date_added"]),
        "product_id": stringify(item["product_id"]),
        "is_cancelable": stringify(item["is_cancelable"] if item["is_cancelable"] is not None else 1),
        "cancelable_till": item["cancelable_till"] or "shipped",
        "is_returnable": stringify(item["is_returnable"] if item["is_returnable"] is not None else 1),
        "is_already_returned": "1" if any(entry[0] == "returned" for entry in history) else "0",
        "is_already_cancelled": "1" if any(entry[0] == "cancelled" for entry in history) else "0",
        "return_request_submitted": "",
        "image": image_url(item["image"]),
        "name": item["name"] or "",
        "download_allowed": stringify(item["download_allowed"] or 0),
        "download_link": item["download_link"] or "",
        "product_rating": user_rating,
        "type": item["type"] or "variable_product",
        "special_price": stringify(item["special_price"] or item["price"]),
        "main_price": stringify(item["main_price"] or item["price"]),
        "user_rating": user_rating,
        "user_rating_images": rating_images,
        "user_rating_comment": comment,
    }
    formatted.update(_item_counters(db, user_id, item["product_variant_id"]))
    formatted["net_amount"] = num_str(round2(to_float(item["sub_total"]) - to_float(item["tax_amount"])))
    formatted.update(_variant_attributes(db, item["product_variant_id"]))
    formatted["image_sm"] = image_url(item["image"], "sm")
    formatted["image_md"] = image_url(item["image"], "md")
    formatted["email"] = email
    return formatted


def _order_items(db: Session, order_id) -> List[dict]:
    rows = db.execute(
        text("""
            SELECT oi.*, p.id AS product_id, p.is_returnable, p.is_cancelable, p.cancelable_till,
                   p.image, p.name, p.download_allowed, p.download_link, p.type,
                   pv.price AS main_price, pv.special_price,
                   t.percentage AS tax_percentage
            FROM order_items oi
            LEFT JOIN product_variants pv ON oi.product_variant_id = pv.id
            LEFT JOIN products p ON pv.product_id = p.id
            LEFT JOIN taxes t ON t.id = p.tax
            WHERE oi.order_id = :order_id
            ORDER BY oi.id
        """),
        {"order_id": order_id}
    ).fetchall()
    return [row_dict(row) for row in rows]


def _order_filters(user_id, active_status, start_date, end_date, search):
    conditions = ["o.user_id = :user_id"]
    params = {"user_id": user_id}
    expanding = []
    if active_status:
        conditions.append("o.active_status IN :statuses")
        params["statuses"] = list(active_status)
        expanding.append(bindparam("statuses", expanding=True))
    if start_date and end_date:
        conditions.append("o.date_added >= :start_date AND o.date_added < :end_date")
        params["start_date"] = datetime.strptime(str(start_date)[:10], "%Y-%m-%d")
        params["end_date"] = datetime.strptime(str(end_date)[:10], "%Y-%m-%d") + timedelta(days=1)
    if search:
        conditions.append(
            "(CAST(o.id AS CHAR(64)) LIKE :search OR o.mobile LIKE :search OR u.username LIKE :search)"
        )
        params["search"] = f"%{search}%"
    return " AND ".join(conditions), params, expanding


def get_orders(db: Session, user_id, active_status=None, limit=25, offset=0, sort="o.id", order="DESC",
               download_invoice=True, start_date=None, end_date=None, search="") -> dict:
    """Orders of a user with their items, per-status counts and optional invoice HTML"""
    counts = {status: "0" for status in COUNTED_STATUSES}
    for row in db.execute(
        text("SELECT active_status, COUNT(id) AS total FROM orders WHERE user_id = :user_id GROUP BY active_status"),
        {"user_id": user_id}
    ).fetchall():
        if row.active_status in counts:
            counts[row.active_status] = str(row.total)

    try:
        where, params, expanding = _order_filters(user_id, active_status, start_date, end_date, search)
    except ValueError:
        raise ServiceError("Invalid date format, expected YYYY-MM-DD")
    sort = ORDER_SORTS.get(sort, "o.id")
    order = "ASC" if str(order).upper() == "ASC" else "DESC"

    total_stmt = text(f"SELECT COUNT(o.id) FROM orders o LEFT JOIN users u ON o.user_id = u.id WHERE {where}")
    list_stmt = text(f"""
        SELECT o.*, u.username, u.country_code AS user_country_code, u.email AS user_email, u.mobile AS user_mobile
        FROM orders o
        LEFT JOIN users u ON o.user_id = u.id
        WHERE {where}
        ORDER BY {sort} {order}
        LIMIT :limit OFFSET :offset
    """)
    if expanding:
        total_stmt = total_stmt.bindparams(*expanding)
        list_stmt = list_stmt.bindparams(*expanding)
    total = db.execute(total_stmt, params).scalar() or 0
    rows = db.execute(list_stmt, {**params, "limit": to_int(limit, 25), "offset": to_int(offset)}).fetchall()

    settings = system_settings(db) if download_invoice else {}
    orders = []
    for row in rows:
        order_row = row_dict(row)
        items = _order_items(db, order_row["id"])
        email = order_row["email"] or order_row["user_email"] or " "
        formatted_items = [_format_order_item(db, item, user_id, email) for item in items]
        history = load_status(order_row["status"])
        offer = parse_offer_details(order_row["offer_type_details"])
        first = items[0] if items else {}
        tax_percents = [to_float(item["tax_percent"]) for item in items]

        invoice_html = ""
        if download_invoice:
            invoice_order = {**order_row, "email": email.strip(), "mobile": order_row["mobile"] or order_row["user_mobile"]}
            invoice_html = generate_invoice_html(invoice_order, items, settings)

        delivery_time = order_row["delivery_time"] or ""
        orders.append({
            "id": str(order_row["id"]),
            "user_id": stringify(order_row["user_id"]),
            "delivery_boy_id": "",
            "address_id": stringify(order_row["address_id"]),
            "mobile": order_row["mobile"] or "",
            "total": stringify(order_row["total"] or 0),
            "delivery_charge": stringify(order_row["delivery_charge"] or 0),
            "is_delivery_charge_returnable": stringify(order_row["is_delivery_charge_returnable"]),
            "wallet_balance": stringify(order_row["wallet_balance"] or 0),
            "final_total": stringify(order_row["final_total"] or 0),
            "total_payable": stringify(order_row["total_payable"] or 0),
            "discount": stringify(order_row["discount"] or 0),
            "promo_code": order_row["promo_code"] or "",
            "promo_discount": stringify(order_row["promo_discount"] or 0),
            "offer_discount": stringify(order_row["offer_discount"]) if order_row["offer_discount"] else "0.00",
            "offer_type": offer.get("type") or "",
            "offer_name": offer.get("offer_name") or offer.get("cashback_name") or "",
            "payment_method": order_row["payment_method"] or "",
            "notes": order_row["notes"] or "",
            "is_local_pickup": stringify(order_row["is_local_pickup"] or 0),
            "is_pos_order": "0",
            "address": order_row["address"] or "",
            "latitude": order_row["latitude"] or "",
            "longitude": order_row["longitude"] or "",
            "delivery_time": delivery_time.split(" ")[0] if delivery_time else "",
            "delivery_date": php_date(order_row["delivery_date"]).split(" ")[0],
            "date_added": php_date(order_row["date_added"]),
            "status": history,
            "active_status": order_row["active_status"] or "",
            "pickup_location": "",
            "pickup_time": "",
            "username": order_row["username"] or "",
            "country_code": order_row["user_country_code"] or "91",
            "email": order_row["user_email"] or " ",
            "name": first.get("product_name") or "",
            "download_allowed": stringify(first.get("download_allowed") or 0),
            "user_name": order_row["username"] or "",
            "recipient_contact": order_row["mobile"] or order_row["user_mobile"] or "",
            "courier_agency": "",
            "tracking_id": "",
            "url": "",
            "order_attachments": [],
            "attachments": [],
            "seller_notes": "",
            "is_returnable": "1",
            "is_cancelable": "1",
            "is_already_returned": "1" if any(entry[0] == "returned" for entry in history) else "0",
            "is_already_cancelled": "1" if any(entry[0] == "cancelled" for entry in history) else "0",
            "return_request_submitted": "",
            "already_print_once": "0",
            "is_printed": None,
            "total_tax_percent": num_str(max(tax_percents)) if tax_percents else "0",
            "total_tax_amount": num_str(round2(sum(to_float(item["tax_amount"]) for item in items))),
            "otp": str(to_int(order_row["otp"])),
            "city": order_row["city"] or "0",
            "order_items": formatted_items,
            "order_note": order_row["notes"] or "",
            "invoice_html": invoice_html,
            "offer_type_details": order_row["offer_type_details"] or "",
        })

    return {
        "error": False,
        "message": "Orders retrieved successfully",
        "total": str(total),
        "data": orders,
        **counts,
    }


def get_invoice_html(db: Session, order_id) -> str:
    row = db.execute(
        text("""
            SELECT o.*, u.username, u.email AS user_email, u.mobile AS user_mobile
            FROM orders o LEFT JOIN users u ON o.user_id = u.id
            WHERE o.id = :id
        """),
        {"id": order_id}
    ).fetchone()
    if row is None:
        raise ServiceError("Order not found")
    order = row_dict(row)
    order["email"] = order["email"] or order["user_email"] or ""
    order["mobile"] = order["mobile"] or order["user_mobile"] or ""
    return generate_invoice_html(order, _order_items(db, order_id), system_settings(db))


def _dump_status(history: list) -> str:
    return json.dumps(history)


def _append_status(raw, status: str, stamp: str) -> str:
    history = load_status(raw)
    history.append([status, stamp])
    return _dump_status(history)


def _restock(db: Session, product_variant_id, quantity):
    db.execute(
        text("UPDATE product_variants SET stock = stock + :qty WHERE id = :id AND stock IS NOT NULL"),
        {"qty": to_int(quantity), "id": product_variant_id}
    )


def update_order_item_status(db: Session, order_item_id, status: str) -> str:
    """Move one order item through the lifecycle; cancels and returns restock and refund"""
    item = validate_order_status(db, order_item_id, status, "order_items")
    try:
        db.execute(
            text("UPDATE order_items SET status = :status, active_status = :active WHERE id = :id"),
            {"status": _append_status(item["status"], status, status_date()), "active": status, "id": order_item_id}
        )
        if status in REFUND_STATUSES and item["active_status"] not in REFUND_STATUSES:
            _restock(db, item["product_variant_id"], item["quantity"])
            process_refund(db, order_item_id, status, "order_items")
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Order item {order_item_id} moved to {status}")
    return "Status updated successfully"


def _order_snapshot(db: Session, order_id) -> dict:
    row = db.execute(
        text("""
            SELECT o.*, u.username, u.email AS user_email, u.mobile AS user_mobile
            FROM orders o LEFT JOIN users u ON o.user_id = u.id
            WHERE o.id = :id
        """),
        {"id": order_id}
    ).fetchone()
    order = stringify(row_dict(row)) if row is not None else {}
    if order:
        order["status"] = load_status(row.status)
    items = []
    for item_row in db.execute(
        text("""
            SELECT oi.*, pv.product_id, p.name AS product_name
            FROM order_items oi
            LEFT JOIN product_variants pv ON oi.product_variant_id = pv.id
            LEFT JOIN products p ON pv.product_id = p.id
            WHERE oi.order_id = :order_id
        """),
        {"order_id": order_id}
    ).fetchall():
        item = stringify(row_dict(item_row))
        item["status"] = load_status(item_row.status)
        items.append(item)
    return {"order": order, "order_items": items}


def update_order_status(db: Session, order_id, status: str) -> dict:
    """Move a whole order and all its items to ``status``.

    Payment statuses (``awaiting_payment``, ``payment_failed``, ``pending``)
    skip the lifecycle checks but never reopen a delivered, cancelled or
    returned order. Cancelling or returning restocks items not already
    cancelled or returned and refunds the order.
    """
    if status in PAYMENT_STATUSES:
        order = row_dict(db.execute(text("SELECT * FROM orders WHERE id = :id"), {"id": order_id}).fetchone())
        if order is None:
            raise ServiceError("Order not found")
        if order["active_status"] in FINAL_STATUSES:
            raise ServiceError(f"Order can't be {status} as it is already {order['active_status']}")
    else:
        order = validate_order_status(db, order_id, status, "orders")

    stamp = status_date()
    try:
        db.execute(
            text("UPDATE orders SET status = :status, active_status = :active WHERE id = :id"),
            {"status": _append_status(order["status"], status, stamp), "active": status, "id": order_id}
        )
        items = db.execute(
            text("SELECT id, status, active_status, product_variant_id, quantity FROM order_items WHERE order_id = :id"),
            {"id": order_id}
        ).fetchall()
        for item in items:
            if status in REFUND_STATUSES and item.active_status not in REFUND_STATUSES:
                _restock(db, item.product_variant_id, item.quantity)
            db.execute(
                text("UPDATE order_items SET status = :status, active_status = :active WHERE id = :id"),
                {"status": _append_status(item.status, status, stamp), "active": status, "id": item.id}
            )
        if status in REFUND_STATUSES and order["active_status"] not in REFUND_STATUSES:
            process_refund(db, order_id, status, "orders")
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Order {order_id} moved to {status}")
    return _order_snapshot(db, order_id)


def _is_paid(db: Session, order_id) -> bool:
    row = db.execute(
        text("""
            SELECT id FROM transactions
            WHERE order_id = :order_id AND status = 'success' AND transaction_type != 'wallet'
        """),
        {"order_id": str(order_id)}
    ).fetchone()
    return row is not None


def _refund_order_item(db: Session, order_item_id, settings: dict) -> str:
    item = db.execute(
        text("SELECT order_id, sub_total FROM order_items WHERE id = :id"), {"id": order_item_id}
    ).fetchone()
    if item is None:
        raise ServiceError("Order item not found")
    order = row_dict(db.execute(text("SELECT * FROM orders WHERE id = :id"), {"id": item.order_id}).fetchone())
    if order is None:
        raise ServiceError("Order not found")

    current_price = to_float(item.sub_total)
    payment_method = order["payment_method"] or ""
    total = to_float(order["total"])
    delivery_charge = to_float(order["delivery_charge"])
    promo_discount = to_float(order["promo_discount"])
    wallet_balance = to_float(order["wallet_balance"])
    min_amount = to_float(settings.get("min_amount"))

    counts = db.execute(
        text("""
            SELECT COUNT(id) AS total_items,
                   SUM(CASE WHEN id != :id AND active_status IN ('cancelled', 'returned') THEN 1 ELSE 0 END) AS closed
            FROM order_items WHERE order_id = :order_id
        """),
        {"id": order_item_id, "order_id": item.order_id}
    ).fetchone()
    last_item = to_int(counts.closed) + 1 >= to_int(counts.total_items)

    new_total = round2(total - current_price)
    new_delivery_charge = delivery_charge if new_total > 0 else 0.0
    if new_total < min_amount and delivery_charge == 0:
        new_delivery_charge = to_float(settings.get("delivery_charge"))
        if order["address_id"]:
            area = db.execute(
                text("""
                    SELECT ar.delivery_charges FROM addresses a
                    JOIN areas ar ON ar.id = a.area_id
                    WHERE a.id = :id
                """),
                {"id": order["address_id"]}
            ).fetchone()
            if area is not None:
                new_delivery_charge = to_float(area.delivery_charges)

    new_promo_discount = _promo_discount(db, order["promo_code"], new_total) if order["promo_code"] else 0.0
    new_final_total = new_total + new_delivery_charge - new_promo_discount

    if _is_unpaid_method(payment_method):
        if wallet_balance <= current_price:
            returnable = wallet_balance
        else:
            returnable = current_price if wallet_balance > 0 else 0.0
        if promo_discount != new_promo_discount and not last_item:
            returnable = returnable - promo_discount + new_promo_discount
        returnable = max(0.0, returnable)
        if returnable > 0:
            new_wallet_balance = 0.0 if wallet_balance <= current_price else max(0.0, wallet_balance - current_price)
        else:
            new_wallet_balance = wallet_balance
        new_total_payable = new_final_total - new_wallet_balance
    else:
        returnable = current_price
        if promo_discount != new_promo_discount:
            returnable = returnable - promo_discount + new_promo_discount
        if last_item and to_int(order["is_delivery_charge_returnable"]) == 1:
            returnable += delivery_charge
        returnable = max(0.0, returnable)
        new_wallet_balance = 0.0 if last_item else max(0.0, wallet_balance - returnable)
        new_total_payable = 0.0

    if new_total <= 0:
        new_total = new_wallet_balance = new_delivery_charge = new_final_total = new_total_payable = 0.0

    returnable = round2(returnable)
    if returnable > 0:
        if payment_method in GATEWAY_REFUND_METHODS:
            update_wallet_balance(db, "refund", order["user_id"], returnable,
                                  f"Amount Refund for Order Item ID: {order_item_id}", order_item_id)
        else:
            update_wallet_balance(db, "credit", order["user_id"], returnable,
                                  f"Refund Amount Credited for Order Item ID: {order_item_id}", order_item_id)

    db.execute(
        text("""
            UPDATE orders SET total = :total, final_total = :final_total, total_payable = :total_payable,
                   promo_discount = :promo_discount, delivery_charge = :delivery_charge,
                   wallet_balance = :wallet_balance
            WHERE id = :id
        """),
        {
            "total": new_total,
            "final_total": round2(new_final_total),
            "total_payable": round2(new_total_payable),
            "promo_discount": round2(max(new_promo_discount, 0.0)),
            "delivery_charge": new_delivery_charge,
            "wallet_balance": round2(new_wallet_balance),
            "id": item.order_id,
        }
    )
    logger.info(
        f"Refund for order item {order_item_id}: returnable={returnable} "
        f"order {item.order_id} total {total} -> {new_total}"
    )
    return "Refund processed successfully"


def _refund_order(db: Session, order_id, status: str) -> str:
    order = row_dict(db.execute(text("SELECT * FROM orders WHERE id = :id"), {"id": order_id}).fetchone())
    if order is None:
        raise ServiceError("Order not found")
    payment_method = str(order["payment_method"] or "").lower()
    wallet_balance = to_float(order["wallet_balance"])
    message = f"Wallet Amount Credited for Order ID: {order_id}"

    transfer_accepted = False
    if payment_method in ("bank transfer", "bank_transfer"):
        receipts = db.execute(
            text("SELECT status FROM order_bank_transfer WHERE order_id = :id"), {"id": order_id}
        ).fetchall()
        transfer_accepted = any(to_int(receipt.status) == 2 for receipt in receipts)
        if wallet_balance == 0 and status == "cancelled" and not transfer_accepted:
            return "Refund processed successfully"

    settled = payment_method != "cod" and (
        payment_method in ("bank transfer", "bank_transfer") or _is_paid(db, order_id)
    )
    if settled:
        returnable = to_float(order["total"])
        if to_int(order["is_delivery_charge_returnable"]) == 1:
            returnable += to_float(order["delivery_charge"])
        if payment_method in ("bank transfer", "bank_transfer") and not transfer_accepted:
            returnable -= to_float(order["total_payable"])
        returnable = round2(returnable)
        if returnable > 0:
            update_wallet_balance(db, "credit", order["user_id"], returnable, message)
    elif wallet_balance > 0:
        update_wallet_balance(db, "credit", order["user_id"], wallet_balance, message)
        db.execute(text("UPDATE orders SET wallet_balance = 0 WHERE id = :id"), {"id": order_id})
    logger.info(f"Refund for order {order_id} ({payment_method}) processed")
    return "Refund processed successfully"


def process_refund(db: Session, id, status: str, type: str = "order_items") -> str:
    """Credit the customer's wallet for a cancelled or returned item or order. Does not commit."""
    if status not in REFUND_STATUSES:
        raise ServiceError("Refund cannot be processed. Invalid status")
    if type == "order_items":
        return _refund_order_item(db, id, system_settings(db))
    if type == "orders":
        return _refund_order(db, id, status)
    raise ServiceError("Invalid refund type")
