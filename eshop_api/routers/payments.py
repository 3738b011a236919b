"""
PhonePe checkout: initiate, status, server callback and browser return
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger
from sqlalchemy.orm import Session

from eshop_api.config import settings
from eshop_api.exceptions import PaymentGatewayError
from eshop_api.services.payments import (
    handle_phonepe_callback, initiate_phonepe_payment, payment_response_url, phonepe_payment_status,
)
from eshop_api.services.phonepe import PhonePeClient, get_phonepe
from eshop_api.utils.database import get_db
from eshop_api.utils.helpers import get_payload, response

router = APIRouter(prefix="/api/payment", tags=["payments"])
api_router = APIRouter(tags=["payments"])


async def initiate(
    payload: dict = Depends(get_payload),
    db: Session = Depends(get_db),
    phonepe: PhonePeClient = Depends(get_phonepe),
):
    data = initiate_phonepe_payment(db, phonepe, payload)
    return response(False, "Payment initiated successfully", data)


async def status(
    payload: dict = Depends(get_payload),
    db: Session = Depends(get_db),
    phonepe: PhonePeClient = Depends(get_phonepe),
):
    data = phonepe_payment_status(db, phonepe, payload.get("merchant_order_id"))
    return response(False, "Payment status retrieved successfully", data)


for _router in (router, api_router):
    _router.add_api_route("/phonepe/initiate", initiate, methods=["POST"])
    _router.add_api_route("/phonepe/status", status, methods=["POST"])


@router.post("/phonepe-callback")
async def callback(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    phonepe: PhonePeClient = Depends(get_phonepe),
):
    if not authorization:
        logger.warning("PhonePe callback without Authorization header")
        return JSONResponse(status_code=401, content={"status": "error", "message": "Unauthorized"})
    body = await request.body()
    try:
        message = handle_phonepe_callback(db, phonepe, authorization, body)
    except (PaymentGatewayError, ValueError) as exc:
        logger.warning(f"PhonePe callback rejected: {exc}")
        return JSONResponse(status_code=400, content={"status": "error", "message": str(exc)})
    except Exception as exc:
        logger.exception(f"PhonePe callback failed: {exc}")
        return JSONResponse(status_code=500, content={"status": "error", "message": "Internal server error"})
    return {"status": "success", "message": message}


@router.get("/response")
async def payment_response(
    request: Request,
    db: Session = Depends(get_db),
    phonepe: PhonePeClient = Depends(get_phonepe),
):
    params = dict(request.query_params)
    is_mobile_app = params.get("platform") == "app" or request.headers.get("x-platform") == "app"
    try:
        url = payment_response_url(db, phonepe, params, is_mobile_app)
    except Exception as exc:
        logger.exception(f"Payment response handling failed: {exc}")
        url = f"{settings.phonepe.frontend_domain}/payment-error"
    return RedirectResponse(url, status_code=302)
