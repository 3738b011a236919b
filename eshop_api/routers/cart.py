"""
Cart endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.services import cart as cart_service
from eshop_api.services.orders import get_promo_codes
from eshop_api.utils.database import get_db
from eshop_api.utils.helpers import get_payload, get_settings, response, validate
from eshop_api.utils.php import to_int

router = APIRouter(tags=["cart"])


def _totals(total: dict) -> dict:
    return {
        "total_quantity": total["quantity"],
        "sub_total": total["sub_total"],
        "tax_percentage": total["tax_percentage"] or "0",
        "tax_amount": total["tax_amount"] or "0",
        "overall_amount": total["overall_amount"],
        "total_arr": total["total_arr"],
        "variant_id": total["variant_id"],
    }


@router.post("/get_user_cart")
@router.post("/get_cart")
async def user_cart(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    validate(payload, {
        "user_id": "required|numeric",
        "is_saved_for_later": "numeric",
        "only_delivery_charge": "numeric",
        "delivery_pincode": "numeric",
    })
    user_id = payload["user_id"]
    saved_for_later = 1 if str(payload.get("is_saved_for_later", "")) == "1" else 0
    address_id = to_int(payload.get("address_id"))

    items = cart_service.get_user_cart(db, user_id, saved_for_later)
    has_pickup = any(item.get("shipping_method") == "pickup" for item in items)
    total = cart_service.get_cart_total(db, user_id, "", saved_for_later, address_id or "")
    items = cart_service.attach_product_details(db, user_id, items)

    if not items:
        empty = cart_service.get_cart_total(db, user_id)
        return {
            "error": True,
            "message": "Cart Is Empty !",
            **_totals(empty),
            "delivery_charge": empty["delivery_charge"] or "0",
            "data": [],
        }

    delivery_charge = total["delivery_charge"] or "0"
    if has_pickup:
        delivery_charge = cart_service.get_delivery_charge(db, address_id, total["sub_total"])
    promo_codes = get_promo_codes(
        db,
        limit=to_int(payload.get("limit"), 25),
        offset=to_int(payload.get("offset")),
        sort=payload.get("sort") or "id",
        order=payload.get("order") or "DESC",
        search=(payload.get("search") or "").strip(),
    )
    return {
        "error": False,
        "message": "Data Retrieved From Cart !",
        **_totals(total),
        "delivery_charge": delivery_charge,
        "data": items,
        "promo_codes": promo_codes,
    }


@router.post("/remove_from_cart")
async def remove_from_cart(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    validate(payload, {"user_id": "required|numeric", "product_variant_id": "required"})
    system_settings = get_settings(db, "system_settings", True)
    cart_service.remove_from_cart(db, payload)
    total = cart_service.get_cart_total(db, payload["user_id"])
    return response(False, "Removed From Cart !", {
        "total_quantity": total["quantity"],
        "sub_total": total["sub_total"],
        "total_items": total["total_items"],
        "max_items_cart": system_settings.get("max_items_cart"),
    })


@router.post("/manage_cart")
async def manage_cart(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    validate(payload, {"user_id": "required|numeric", "product_variant_id": "required", "qty": "required|numeric"})
    user_id = payload["user_id"]
    variant_id = payload["product_variant_id"]
    saved_for_later = payload.get("is_saved_for_later") or 0

    if not cart_service.is_single_product_type(db, variant_id, user_id):
        raise ServiceError("You can only add either digital product or physical product to cart")

    system_settings = get_settings(db, "system_settings", True)
    max_items = system_settings.get("max_items_cart")
    check_status = not (to_int(payload["qty"]) == 0 or str(saved_for_later) == "1")
    if (
        not cart_service.is_variant_available_in_cart(db, variant_id, user_id)
        and max_items
        and cart_service.get_cart_count(db, user_id) >= to_int(max_items)
    ):
        raise ServiceError(f"Maximum {max_items} Item(s) Can Be Added Only!")

    try:
        cart_service.add_to_cart(db, payload, check_status)
    except ServiceError as exc:
        total = cart_service.get_cart_total(db, user_id)
        return {
            "error": True,
            "message": exc.message,
            **_totals(total),
            "cart": cart_service.get_user_cart(db, user_id, saved_for_later),
            "data": [],
        }

    total = cart_service.get_cart_total(db, user_id)
    items = cart_service.attach_product_details(db, user_id, cart_service.get_user_cart(db, user_id, saved_for_later))
    return {
        "error": False,
        "message": "Cart Updated !",
        **_totals(total),
        "cart": items,
        "data": {
            "total_quantity": total["quantity"],
            "sub_total": total["sub_total"],
            "total_items": str(len(items)),
            "tax_percentage": total["tax_percentage"],
            "tax_amount": total["tax_amount"],
            "cart_count": str(len(items)),
            "max_items_cart": max_items,
            "overall_amount": total["overall_amount"],
        },
    }
