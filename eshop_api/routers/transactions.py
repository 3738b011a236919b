"""
Transaction history and wallet top-ups
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.services import transactions as transaction_service
from eshop_api.services.payments import add_wallet_credit
from eshop_api.services.phonepe import PhonePeClient, get_phonepe
from eshop_api.services.wallet import fetch_user_data, get_user_balance
from eshop_api.utils.database import get_db
from eshop_api.utils.helpers import get_payload, response
from eshop_api.utils.php import to_int

router = APIRouter(tags=["transactions"])


@router.post("/transactions")
async def transactions(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    user_id = payload.get("user_id")
    if not user_id:
        raise ServiceError("User ID is required", status_code=400)
    total, data = transaction_service.get_transactions(
        db,
        id=str(payload.get("id") or ""),
        user_id=str(user_id),
        transaction_type=str(payload.get("transaction_type") or "transaction"),
        type=str(payload.get("type") or ""),
        search=str(payload.get("search") or ""),
        offset=to_int(payload.get("offset")),
        limit=to_int(payload.get("limit"), 25) or 25,
        sort=str(payload.get("sort") or "id"),
        order=str(payload.get("order") or "DESC"),
    )
    user = fetch_user_data(db, user_id)
    return {
        "error": False,
        "message": "Transactions Retrieved Successfully",
        "total": str(total),
        "balance": get_user_balance(db, user_id),
        "user_data": [user] if user else [],
        "data": data,
    }


@router.post("/add_transaction")
async def add_transaction(
    payload: dict = Depends(get_payload),
    db: Session = Depends(get_db),
    phonepe: PhonePeClient = Depends(get_phonepe),
):
    if str(payload.get("transaction_type")) == "wallet" and payload.get("type") == "credit":
        return add_wallet_credit(db, phonepe, payload)
    data = transaction_service.add_transaction(db, payload)
    return response(False, "Transaction added successfully", [data])


@router.post("/edit_transaction")
async def edit_transaction(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    for field in ("id", "status", "txn_id"):
        if payload.get(field) is None:
            raise ServiceError(f"{field} is required", status_code=400)
    data = transaction_service.edit_transaction(db, payload)
    return response(False, "Transaction Updated Successfully", [data])
