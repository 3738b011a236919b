"""
Serviceable zipcodes and product deliverability
"""
from typing import List

from sqlalchemy import text
from sqlalchemy.orm import Session

from eshop_api.services.cart import get_user_cart
from eshop_api.utils.helpers import split_ids
from eshop_api.utils.php import php_date, to_int

# products.deliverable_type
DELIVERABLE_NONE = 0
DELIVERABLE_ALL = 1
DELIVERABLE_INCLUDED = 2
DELIVERABLE_EXCLUDED = 3


def get_zipcodes(db: Session, search: str = "", limit: int = 25, offset: int = 0) -> dict:
    where, params = "", {}
    if search and search.strip():
        where = " WHERE zipcode LIKE :search"
        params["search"] = f"%{search.strip()}%"
    total = db.execute(text(f"SELECT COUNT(id) FROM zipcodes{where}"), params).scalar() or 0
    rows = db.execute(
        text(f"SELECT id, zipcode, date_created FROM zipcodes{where} ORDER BY id LIMIT :limit OFFSET :offset"),
        {**params, "limit": int(limit), "offset": int(offset)}
    ).fetchall()
    data = [
        {"id": str(row.id), "zipcode": row.zipcode, "date_created": php_date(row.date_created)}
        for row in rows
    ]
    return {
        "error": not data,
        "message": "Pincodes retrieved successfully" if data else "Pincodes(s) does not exist",
        "total": str(total),
        "data": data,
    }


def find_zipcode_id(db: Session, zipcode) -> int:
    row = db.execute(text("SELECT id FROM zipcodes WHERE zipcode = :zipcode"), {"zipcode": str(zipcode)}).fetchone()
    return row.id if row is not None else None


def is_product_deliverable(db: Session, type: str, type_id, product_id) -> bool:
    """Whether a product ships to a zipcode id (``type='zipcode'``) or an area id (``type='area'``)"""
    product = db.execute(
        text("SELECT deliverable_type, deliverable_zipcodes FROM products WHERE id = :id"),
        {"id": to_int(product_id)}
    ).fetchone()
    if product is None:
        return False
    deliverable_type = to_int(product.deliverable_type)
    if deliverable_type == DELIVERABLE_ALL:
        return True
    if deliverable_type not in (DELIVERABLE_INCLUDED, DELIVERABLE_EXCLUDED):
        return False

    if type == "zipcode":
        zipcode_id = to_int(type_id)
    elif type == "area":
        area = db.execute(text("SELECT zipcode_id FROM areas WHERE id = :id"), {"id": to_int(type_id)}).fetchone()
        if area is None:
            return deliverable_type == DELIVERABLE_EXCLUDED
        zipcode_id = to_int(area.zipcode_id)
    else:
        return False

    listed = str(zipcode_id) in split_ids(product.deliverable_zipcodes)
    if deliverable_type == DELIVERABLE_INCLUDED:
        return listed
    return not listed


def check_cart_products_deliverable(db: Session, user_id, area_id=0) -> List[dict]:
    """Per cart line deliverability for the area of a delivery address"""
    products = []
    for item in get_user_cart(db, user_id, 0):
        row = {
            "is_deliverable": False,
            "delivery_by": "",
            "product_id": item["id"],
            "variant_id": item["product_variant_id"],
            "name": item["name"] or "",
            "message": "Not deliverable to selected address",
        }
        if to_int(area_id) > 0 and is_product_deliverable(db, "area", area_id, item["id"]):
            row["is_deliverable"] = True
            row["delivery_by"] = "local"
            row["message"] = "Deliverable to selected address"
        products.append(row)
    return products
