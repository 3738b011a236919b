"""
Zipcode listing and deliverability checks
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from eshop_api.services.zipcodes import (
    check_cart_products_deliverable, find_zipcode_id, get_zipcodes, is_product_deliverable,
)
from eshop_api.utils.database import get_db
from eshop_api.utils.helpers import get_payload, response, validate
from eshop_api.utils.php import to_int

router = APIRouter(tags=["zipcodes"])


@router.post("/get_zipcodes")
async def zipcodes(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    limit = to_int(payload.get("limit"), 25)
    offset = to_int(payload.get("offset"))
    return get_zipcodes(db, payload.get("search") or "", limit if limit > 0 else 25, max(offset, 0))


@router.post("/is_product_delivarable")
async def product_deliverable(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    if not payload.get("product_id"):
        return response(True, "Product ID is required")
    zipcode = payload.get("zipcode")
    if not zipcode:
        return response(True, "Zipcode is required")
    zipcode_id = find_zipcode_id(db, zipcode)
    if zipcode_id is None:
        return response(True, f'Cannot deliver to "{zipcode}".')
    if is_product_deliverable(db, "zipcode", zipcode_id, payload["product_id"]):
        return response(False, f"Product is deliverable on {zipcode}.")
    return response(True, f"Product is not deliverable on {zipcode}.")


@router.post("/check_cart_products_delivarable")
async def cart_deliverable(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    validate(payload, {"address_id": "required|numeric", "user_id": "required"})
    address = db.execute(
        text("SELECT area_id, pincode FROM addresses WHERE id = :id"), {"id": to_int(payload["address_id"])}
    ).fetchone()
    if address is None:
        return response(True, "Address not available.")

    products = check_cart_products_deliverable(db, payload["user_id"], address.area_id or 0)
    if not products:
        return response(False, "Product(s) are deliverable")
    if any(not product["is_deliverable"] for product in products):
        return response(
            True,
            "Some of the item(s) are not deliverable on selected address. "
            "Try changing address or modify your cart items.",
            products,
        )
    return response(False, "Product(s) are deliverable.", products)
