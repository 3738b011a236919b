"""
Checkout, order history, status changes and invoices
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import HTMLResponse, JSONResponse
from loguru import logger
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.services import orders as order_service
from eshop_api.services.auth import validate_token
from eshop_api.utils.database import get_db
from eshop_api.utils.helpers import get_payload, response, split_ids
from eshop_api.utils.php import to_int

router = APIRouter(tags=["orders"])


def _as_bad_request(exc: ServiceError) -> ServiceError:
    return ServiceError(exc.message, data=exc.data, status_code=400)


@router.post("/place_order")
async def place_order(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    try:
        return order_service.submit_order(db, payload)
    except ServiceError as exc:
        if exc.status_code == 200:
            raise _as_bad_request(exc) from exc
        raise


@router.post("/get_orders")
async def orders(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    if not payload.get("user_id"):
        counts = {status: "0" for status in order_service.COUNTED_STATUSES}
        return JSONResponse(
            status_code=400,
            content={"error": True, "message": "User ID is required", "total": "0", "data": [], **counts},
        )
    active_status = payload.get("active_status")
    if active_status and not isinstance(active_status, list):
        active_status = split_ids(active_status)
    return order_service.get_orders(
        db,
        payload["user_id"],
        active_status=active_status or None,
        limit=to_int(payload.get("limit"), 25),
        offset=to_int(payload.get("offset")),
        sort=payload.get("sort") or "o.id",
        order=payload.get("order") or "DESC",
        download_invoice=str(payload.get("download_invoice", "1")) != "0",
        start_date=payload.get("start_date") or None,
        end_date=payload.get("end_date") or None,
        search=payload.get("search") or "",
    )


@router.post("/update_order_item_status")
async def order_item_status(
    payload: dict = Depends(get_payload),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    validate_token(db, authorization)
    order_item_id = payload.get("order_item_id") or payload.get("order_id") or payload.get("id")
    status = payload.get("status")
    if not order_item_id or not status:
        raise ServiceError("Order item ID and status are required", status_code=400)
    try:
        message = order_service.update_order_item_status(db, str(order_item_id), str(status))
    except ServiceError as exc:
        raise _as_bad_request(exc) from exc
    return response(False, message)


def _change_order_status(db: Session, order_id, status):
    if not order_id or not status:
        raise ServiceError("Order ID and status are required", status_code=400)
    try:
        data = order_service.update_order_status(db, str(order_id), str(status))
    except ServiceError as exc:
        raise _as_bad_request(exc) from exc
    return response(False, "Order status updated successfully", data)


@router.post("/update_order_status")
async def order_status(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    order_id = payload.get("order_id") or payload.get("id")
    return _change_order_status(db, order_id, payload.get("status"))


@router.get("/update_order_status/{order_id}/{status}")
async def order_status_link(order_id: str, status: str, db: Session = Depends(get_db)):
    return _change_order_status(db, order_id, status)


@router.get("/invoice/{order_id}", response_class=HTMLResponse)
async def invoice(order_id: int, db: Session = Depends(get_db)):
    try:
        html = order_service.get_invoice_html(db, order_id)
    except ServiceError:
        logger.warning(f"Invoice requested for missing order {order_id}")
        return HTMLResponse("Order not found", status_code=404)
    return HTMLResponse(html)
