"""
Cart pricing and cart mutations
"""
from datetime import datetime
from typing import List

from loguru import logger
from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.services.catalog import fetch_product, get_variants_values_by_id
from eshop_api.utils.helpers import get_settings, image_url, split_ids
from eshop_api.utils.php import number_format, row_dict, stringify, to_float, to_int


def empty_cart_total() -> dict:
    return {
        "sub_total": "0.00",
        "quantity": "0",
        "delivery_charge": "0.00",
        "tax_amount": "0.00",
        "tax_percentage": "0",
        "overall_amount": "0.00",
        "total_arr": 0,
        "variant_id": [],
        "cart_count": "0",
        "total_items": "0",
        "0": {"total_items": "0", "cart_count": "0"},
    }


def flash_sale_price(db: Session, product_id, price) -> float:
    """Discounted price from an active flash sale, or ``None``"""
    rows = db.execute(
        text("""
            SELECT fs.discount
            FROM flash_sales fs
            JOIN flash_sale_products fsp ON fs.id = fsp.flash_sale_id
            WHERE fsp.product_id = :product_id
              AND fs.start_date <= :now AND fs.end_date >= :now
              AND fs.status = 1
        """),
        {"product_id": product_id, "now": datetime.now()}
    ).fetchall()
    sale_price = None
    for row in rows:
        price = to_float(price)
        sale_price = round(price - price * to_float(row.discount) / 100, 2)
    return sale_price


def get_user_cart(db: Session, user_id, is_saved_for_later=0, product_variant_id="") -> List[dict]:
    """Active cart lines, newest first, priced the way the client displays them"""
    query = """
        SELECT c.user_id, c.product_variant_id, c.qty, c.is_saved_for_later, c.date_created,
               c.id AS cart_id,
               p.is_prices_inclusive_tax, p.name, p.id, p.image, p.short_description,
               p.minimum_order_quantity, p.shipping_method, p.pickup_location, p.is_on_sale,
               p.type, p.sale_discount, p.quantity_step_size, p.total_allowed_quantity,
               pv.price, pv.weight, pv.special_price,
               tax.percentage AS tax_percentage
        FROM cart c
        JOIN product_variants pv ON pv.id = c.product_variant_id
        JOIN products p ON p.id = pv.product_id
        LEFT JOIN taxes tax ON tax.id = p.tax
        WHERE c.user_id = :user_id
          AND p.status = 1
          AND pv.status = 1
          AND c.qty != 0
          AND c.is_saved_for_later = :saved
    """
    params = {"user_id": user_id, "saved": to_int(is_saved_for_later)}
    if product_variant_id:
        query += " AND c.product_variant_id = :product_variant_id"
        params["product_variant_id"] = product_variant_id
    query += " ORDER BY c.id DESC"

    items = []
    for row in db.execute(text(query), params).fetchall():
        item = row_dict(row)
        price = to_float(item["price"])
        special_price = item["special_price"]
        sale_price = flash_sale_price(db, item["id"], price)
        if sale_price is not None:
            special_price = sale_price
        if not (0 < to_float(special_price) < price):
            special_price = price
        special_price = to_float(special_price)

        percentage = to_float(item["tax_percentage"])
        percentage = percentage if percentage > 0 else 0
        price_tax = special_tax = 0
        if not to_int(item["is_prices_inclusive_tax"]) and percentage > 0:
            price_tax = price * percentage / 100
            special_tax = special_price * percentage / 100
        tax_amount = special_price * percentage / 100

        item["price"] = price + price_tax
        item["special_price"] = special_price + special_tax
        item["net_amount"] = item["special_price"] - tax_amount
        item["tax_percentage"] = item["tax_percentage"] or "0"
        item["tax_amount"] = tax_amount or 0
        item["minimum_order_quantity"] = item["minimum_order_quantity"] or 1
        item["quantity_step_size"] = item["quantity_step_size"] or 1
        item["total_allowed_quantity"] = item["total_allowed_quantity"] or ""

        item = stringify(item)
        item["image_sm"] = image_url(item["image"], "sm")
        item["image_md"] = image_url(item["image"], "md")
        item["image"] = image_url(item["image"])
        item["product_variants"] = get_variants_values_by_id(db, item["product_variant_id"])
        items.append(item)
    return items


def get_cart_count(db: Session, user_id) -> int:
    return db.execute(
        text("SELECT COUNT(id) AS total FROM cart WHERE user_id = :user_id"),
        {"user_id": user_id}
    ).scalar() or 0


def is_variant_available_in_cart(db: Session, product_variant_id, user_id) -> bool:
    row = db.execute(
        text("SELECT id FROM cart WHERE product_variant_id = :variant AND user_id = :user_id"),
        {"variant": product_variant_id, "user_id": user_id}
    ).fetchone()
    return row is not None


def get_cart_total(db: Session, user_id, product_variant_id="", is_saved_for_later=0, address_id="") -> dict:
    """Cart totals; tax is summed per unit then multiplied by quantity"""
    items = get_user_cart(db, user_id, is_saved_for_later, product_variant_id)
    if not items:
        return empty_cart_total()

    sub_total = tax_amount = tax_percentage = 0.0
    quantity = 0
    variant_ids = []
    for item in items:
        qty = to_int(item["qty"])
        quantity += qty
        price = to_float(item["price"])
        special_price = to_float(item["special_price"])
        if 0 < special_price < price:
            price = special_price
        tax = to_float(item["tax_percentage"])
        sub_total += price * qty
        tax_percentage += tax
        if to_int(item["is_prices_inclusive_tax"]) == 1:
            tax_amount += (price - price * (100 / (100 + tax))) * qty
        else:
            tax_amount += price * (tax / 100) * qty
        variant_ids.append(item["product_variant_id"])

    overall = sub_total + tax_amount
    count = str(len(items))
    return {
        "sub_total": number_format(sub_total),
        "quantity": str(quantity),
        "delivery_charge": "0.00",
        "tax_amount": number_format(tax_amount),
        "tax_percentage": stringify(tax_percentage),
        "overall_amount": number_format(overall),
        "total_arr": overall,
        "variant_id": variant_ids,
        "cart_count": count,
        "total_items": count,
        "0": {"total_items": count, "cart_count": count},
    }


def validate_stock(db: Session, variant_ids: list, quantities: list):
    """Raise ``ServiceError`` when any requested quantity cannot be sold"""
    for index, variant_id in enumerate(variant_ids):
        row = db.execute(
            text("""
                SELECT pv.stock, pv.availability, p.name, p.total_allowed_quantity
                FROM product_variants pv
                JOIN products p ON p.id = pv.product_id
                WHERE pv.id = :id
            """),
            {"id": variant_id}
        ).fetchone()
        if row is None:
            raise ServiceError("Product variant not found")
        if to_int(row.availability, 1) != 1:
            raise ServiceError(f"{row.name} is not available for purchase!")
        qty = to_int(quantities[index] if index < len(quantities) else 0)
        allowed = to_int(row.total_allowed_quantity)
        if allowed > 0 and qty > allowed:
            raise ServiceError(f"Maximum allowed quantity for {row.name} is {allowed}!")
        # Untracked stock is stored as NULL
        if row.stock is not None and qty > to_int(row.stock):
            raise ServiceError(f"Only {row.stock} item(s) available for {row.name}")


def remove_from_cart(db: Session, data: dict) -> bool:
    if not data or not data.get("user_id"):
        return False
    params = {"user_id": data["user_id"]}
    variant_ids = split_ids(data.get("product_variant_id"))
    if variant_ids:
        stmt = text(
            "DELETE FROM cart WHERE user_id = :user_id AND product_variant_id IN :variants"
        ).bindparams(bindparam("variants", expanding=True))
        params["variants"] = [int(variant) for variant in variant_ids]
    else:
        stmt = text("DELETE FROM cart WHERE user_id = :user_id")
    db.execute(stmt, params)
    db.commit()
    return True


def add_to_cart(db: Session, data: dict, check_status: bool = True):
    """Upsert comma separated variants and quantities; quantity 0 removes the line"""
    variant_ids = split_ids(data.get("product_variant_id"))
    quantities = split_ids(data.get("qty"))
    if check_status:
        validate_stock(db, variant_ids, quantities)

    saved = 1 if str(data.get("is_saved_for_later", "")) == "1" else 0
    for index, variant_id in enumerate(variant_ids):
        qty = to_int(quantities[index] if index < len(quantities) else 0)
        if qty == 0:
            remove_from_cart(db, {"user_id": data["user_id"], "product_variant_id": variant_id})
            continue
        params = {"user_id": data["user_id"], "variant": variant_id, "qty": qty, "saved": saved}
        if is_variant_available_in_cart(db, variant_id, data["user_id"]):
            db.execute(
                text("""
                    UPDATE cart SET qty = :qty, is_saved_for_later = :saved
                    WHERE user_id = :user_id AND product_variant_id = :variant
                """),
                params
            )
        else:
            db.execute(
                text("""
                    INSERT INTO cart (user_id, product_variant_id, qty, is_saved_for_later, date_created)
                    VALUES (:user_id, :variant, :qty, :saved, :now)
                """),
                {**params, "now": datetime.now()}
            )
    db.commit()
    logger.info(f"Cart updated for user {data['user_id']}: variants={variant_ids} qty={quantities}")


def is_single_product_type(db: Session, product_variant_id, user_id) -> bool:
    """Digital and physical products cannot share a cart"""
    row = db.execute(
        text("""
            SELECT p.type FROM product_variants pv
            JOIN products p ON pv.product_id = p.id
            WHERE pv.id = :id
        """),
        {"id": product_variant_id}
    ).fetchone()
    if row is None:
        return True
    is_digital = row.type == "digital_product"
    others = db.execute(
        text("""
            SELECT p.type FROM cart c
            JOIN product_variants pv ON c.product_variant_id = pv.id
            JOIN products p ON pv.product_id = p.id
            WHERE c.user_id = :user_id AND c.product_variant_id != :id AND c.is_saved_for_later = 0
        """),
        {"user_id": user_id, "id": product_variant_id}
    ).fetchall()
    return all((other.type == "digital_product") == is_digital for other in others)


def get_delivery_charge(db: Session, address_id, total) -> str:
    """Delivery charge for an address; free above ``minimum_cart_amt``"""
    if not address_id:
        return "0"
    system_settings = get_settings(db, "system_settings", True)
    minimum = system_settings.get("minimum_cart_amt") or "0"
    if to_float(total) >= to_float(minimum):
        return "0"
    row = db.execute(
        text("""
            SELECT c.delivery_charge FROM addresses a
            LEFT JOIN cities c ON a.city_id = c.id
            WHERE a.id = :id
        """),
        {"id": address_id}
    ).fetchone()
    if row is not None and row.delivery_charge is not None:
        return stringify(row.delivery_charge)
    return system_settings.get("delivery_charge") or "0"


def attach_product_details(db: Session, user_id, items: List[dict]) -> List[dict]:
    """Add ``product_details`` to cart lines; park unavailable products and drop missing ones"""
    kept = []
    for item in items:
        variant = db.execute(
            text("SELECT product_id FROM product_variants WHERE id = :id"),
            {"id": item["product_variant_id"]}
        ).fetchone()
        product = fetch_product(db, variant.product_id) if variant is not None else []
        if not product:
            db.execute(text("DELETE FROM cart WHERE id = :id"), {"id": item["cart_id"]})
            continue
        product[0]["net_amount"] = item["net_amount"]
        if product[0]["availability"] is not None and to_int(product[0]["availability"]) == 0:
            db.execute(text("UPDATE cart SET is_saved_for_later = 1 WHERE id = :id"), {"id": item["cart_id"]})
            continue
        item["product_details"] = product
        kept.append(item)
    db.commit()
    return kept
