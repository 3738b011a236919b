"""
Address book and favorites
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eshop_api.services.addresses import add_address, delete_address, list_addresses, update_address
from eshop_api.services.favorites import add_to_favorites, get_favorites, remove_from_favorites
from eshop_api.utils.database import get_db
from eshop_api.utils.helpers import get_payload, response
from eshop_api.utils.php import to_int

router = APIRouter(tags=["addresses"])


@router.post("/get_address")
async def addresses(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    data = list_addresses(db, payload.get("user_id"))
    return response(False, "Address Retrieved Successfully", data)


@router.post("/add_address")
async def create_address(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    data = add_address(db, payload)
    return response(False, "Address Added Successfully", data)


@router.post("/update_address")
async def edit_address(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    data = update_address(db, payload)
    return response(False, "Address updated Successfully", data)


@router.post("/delete_address")
async def remove_address(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    delete_address(db, payload.get("id"))
    return response(False, "Address Deleted Successfully")


@router.post("/add_to_favorites")
async def favorite(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    message = add_to_favorites(db, payload.get("user_id"), payload.get("product_id"))
    return response(False, message)


@router.post("/remove_from_favorites")
async def unfavorite(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    message = remove_from_favorites(db, payload.get("user_id"), payload.get("product_id"))
    return response(False, message)


@router.post("/get_favorites")
async def favorites(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    return get_favorites(
        db,
        payload.get("user_id"),
        limit=to_int(payload.get("limit"), 25),
        offset=to_int(payload.get("offset")),
    )
