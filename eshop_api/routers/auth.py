"""
Login and registration
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eshop_api.services.auth import login, register
from eshop_api.utils.database import get_db
from eshop_api.utils.helpers import get_payload, response

router = APIRouter(tags=["auth"])


@router.post("/login")
async def login_user(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    user = login(db, payload.get("mobile"), payload.get("password"), payload.get("fcm_id") or "")
    return response(False, "Login successful", [user])


@router.post("/register")
async def register_user(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    user = register(db, payload)
    return response(False, "Registration successful", [user])
