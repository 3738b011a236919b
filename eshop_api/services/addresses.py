"""
Delivery addresses of a user
"""
from typing import List

from loguru import logger
from sqlalchemy import text
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.models import Address
from eshop_api.services.zipcodes import find_zipcode_id
from eshop_api.utils.php import row_dict, stringify, to_int

NOT_SERVICEABLE = "Sorry!! Not Delivering to this pincode. Please contact +91 8500820088"
ADDRESS_FIELDS = (
    "user_id", "type", "name", "mobile", "country_code", "alternate_mobile", "address", "landmark",
    "area_id", "city_id", "state", "country", "latitude", "longitude", "pincode",
)


def get_address(db: Session, user_id=None, id=None, fetch_latest: bool = False, is_default: bool = False) -> List[dict]:
    """Addresses newest first, with area charges and city name resolved"""
    where, params = ["1 = 1"], {}
    if user_id:
        where.append("addr.user_id = :user_id")
        params["user_id"] = to_int(user_id)
    if id:
        where.append("addr.id = :id")
        params["id"] = to_int(id)
    if is_default:
        where.append("addr.is_default = 1")
    sql = f"""
        SELECT addr.*, a.name AS area, a.minimum_free_delivery_order_amount AS area_min_amount,
               a.delivery_charges AS area_delivery_charges, c.name AS city
        FROM addresses addr
        LEFT JOIN areas a ON a.id = addr.area_id
        LEFT JOIN cities c ON c.id = addr.city_id
        WHERE {" AND ".join(where)}
        ORDER BY addr.id DESC
    """
    if fetch_latest:
        sql += " LIMIT 1"

    addresses = []
    for row in db.execute(text(sql), params).fetchall():
        address = row_dict(row)
        area_min = address.pop("area_min_amount")
        area_charges = address.pop("area_delivery_charges")
        if to_int(address.get("area_id")):
            address["minimum_free_delivery_order_amount"] = area_min if area_min is not None else 0
            address["delivery_charges"] = area_charges if area_charges is not None else 0
        address["pincode_name"] = address.get("pincode") or ""
        addresses.append(stringify(address))
    return addresses


def list_addresses(db: Session, user_id) -> List[dict]:
    """Addresses of a user; the newest one becomes default when none is"""
    if not user_id:
        raise ServiceError("User ID is required")
    addresses = get_address(db, user_id)
    if not addresses:
        raise ServiceError("No Details Found !")
    if not any(address["is_default"] == "1" for address in addresses):
        db.execute(text("UPDATE addresses SET is_default = 1 WHERE id = :id"), {"id": to_int(addresses[0]["id"])})
        db.commit()
        addresses = get_address(db, user_id)
    return addresses


def set_address(db: Session, data: dict) -> int:
    """Insert, or update when ``data['id']`` is given; returns the address id"""
    values = {field: data[field] for field in ADDRESS_FIELDS if data.get(field)}
    if data.get("pincode_name"):
        zipcode_id = find_zipcode_id(db, data["pincode_name"])
        if zipcode_id is not None:
            area = db.execute(
                text("SELECT id, city_id FROM areas WHERE zipcode_id = :zipcode_id ORDER BY id LIMIT 1"),
                {"zipcode_id": zipcode_id}
            ).fetchone()
            if area is not None:
                values["area_id"] = area.id
                values["city_id"] = area.city_id

    try:
        if data.get("is_default") and str(data["is_default"]) not in ("0", "false"):
            db.execute(
                text("UPDATE addresses SET is_default = 0 WHERE user_id = :user_id"),
                {"user_id": to_int(data.get("user_id"))}
            )
            values["is_default"] = 1

        if data.get("id"):
            address_id = to_int(data["id"])
            if values:
                assignments = ", ".join(f"{column} = :{column}" for column in values)
                db.execute(text(f"UPDATE addresses SET {assignments} WHERE id = :id"), {**values, "id": address_id})
        else:
            address = Address(**values)
            address.is_default = values.get("is_default", 0)
            db.add(address)
            db.flush()
            address_id = address.id
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Address {address_id} saved for user {data.get('user_id')}")
    return address_id


def _check_pincode(db: Session, data: dict):
    if data.get("pincode_name") and find_zipcode_id(db, data["pincode_name"]) is None:
        raise ServiceError(NOT_SERVICEABLE)


def add_address(db: Session, data: dict) -> List[dict]:
    if not data.get("user_id"):
        raise ServiceError("User ID is required")
    _check_pincode(db, data)
    data = {key: value for key, value in data.items() if key != "id"}
    set_address(db, data)
    return get_address(db, data["user_id"], fetch_latest=True)


def update_address(db: Session, data: dict) -> List[dict]:
    if not data.get("id"):
        raise ServiceError("Address ID is required")
    _check_pincode(db, data)
    set_address(db, data)
    return get_address(db, id=data["id"], fetch_latest=True)


def delete_address(db: Session, id):
    if not id:
        raise ServiceError("Address ID is required")
    db.execute(text("DELETE FROM addresses WHERE id = :id"), {"id": to_int(id)})
    db.commit()
