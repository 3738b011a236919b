"""
Catalogue, settings and time slot endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eshop_api.services.app_settings import get_all_settings
from eshop_api.services.catalog import get_categories, get_products
from eshop_api.services.orders import get_time_slots
from eshop_api.utils.database import get_db
from eshop_api.utils.helpers import get_payload, response, validate
from eshop_api.utils.php import to_int

router = APIRouter(tags=["catalog"])


@router.post("/get_categories")
async def categories(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    data, total = get_categories(
        db,
        category_id=payload.get("id"),
        limit=to_int(payload.get("limit"), 25),
        offset=to_int(payload.get("offset")),
        sort=payload.get("sort") or "row_order",
        order=payload.get("order") or "ASC",
    )
    return {
        "message": "Category retrieved successfully" if data else "Category does not exist",
        "error": not data,
        "total": total,
        "data": data,
        "popular_categories": [],
    }


@router.post("/get_products")
async def products(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    return get_products(db, payload)


@router.post("/get_settings")
async def settings(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    validate(payload, {"user_id": "numeric"})
    type = "payment_method" if payload.get("type") == "payment_method" else "all"
    return get_all_settings(db, type, payload.get("user_id"))


@router.post("/get_time_slots")
async def time_slots(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    slots = get_time_slots(db, status=1, sort=payload.get("sort") or "from_time", order=payload.get("order") or "ASC")
    return response(False, "Time slots retrieved successfully", slots)
