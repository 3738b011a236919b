"""
Product ratings and review images
"""
import json
import os
import time

from fastapi import APIRouter, Depends, Request
from loguru import logger
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from eshop_api.config import settings
from eshop_api.exceptions import ServiceError
from eshop_api.services import ratings as rating_service
from eshop_api.utils.database import get_db
from eshop_api.utils.helpers import get_payload, response
from eshop_api.utils.php import to_int

router = APIRouter(tags=["ratings"])

REVIEW_IMAGE_DIR = "review_images"


async def _save_review_images(uploads: list) -> list:
    """Write uploaded files under the upload dir; returns their stored paths"""
    target = os.path.join(settings.upload_dir, REVIEW_IMAGE_DIR)
    os.makedirs(target, exist_ok=True)
    stamp = int(time.time() * 1000)
    paths = []
    for index, upload in enumerate(uploads):
        name = f"{stamp}_{index}_{'_'.join((upload.filename or 'image').split())}"
        with open(os.path.join(target, name), "wb") as f:
            f.write(await upload.read())
        paths.append(f"uploads/{REVIEW_IMAGE_DIR}/{name}")
    logger.info(f"Saved {len(paths)} review image(s) to {target}")
    return paths


def _image_list(value) -> list:
    if not value:
        return []
    if isinstance(value, list):
        return value
    value = str(value)
    try:
        decoded = json.loads(value)
    except ValueError:
        return value.split(",") if "," in value else [value]
    return decoded if isinstance(decoded, list) else [value]


@router.post("/set_product_rating")
async def set_rating(request: Request, payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    if "multipart/form-data" in request.headers.get("content-type", ""):
        form = await request.form()
        uploads = [
            item for item in form.getlist("images") + form.getlist("images[]")
            if isinstance(item, UploadFile)
        ]
        payload = {key: value for key, value in payload.items() if not isinstance(value, UploadFile)}
        if uploads:
            payload["images"] = await _save_review_images(uploads)
    else:
        payload["images"] = _image_list(payload.get("images"))
    result = rating_service.set_product_rating(db, payload)
    return response(False, result["message"], result["data"])


@router.post("/delete_product_rating")
async def delete_rating(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    if not payload.get("user_id") or not payload.get("product_id"):
        raise ServiceError("User ID and Product ID are required", status_code=400)
    message = rating_service.delete_product_rating(db, payload["user_id"], payload["product_id"])
    return response(False, message)


@router.post("/get_product_rating")
async def product_rating(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    if not payload.get("product_id"):
        raise ServiceError("Product ID is required", status_code=400)
    return rating_service.get_product_rating(
        db,
        payload["product_id"],
        user_id=payload.get("user_id") or None,
        limit=to_int(payload.get("limit"), 25),
        offset=to_int(payload.get("offset")),
        sort=payload.get("sort") or "id",
        order=payload.get("order") or "DESC",
        has_images=payload.get("has_images") or 0,
    )


@router.post("/get_product_review_images")
async def review_images(payload: dict = Depends(get_payload), db: Session = Depends(get_db)):
    if not payload.get("product_id"):
        raise ServiceError("Product ID is required", status_code=400)
    return rating_service.get_product_review_images(
        db, payload["product_id"], to_int(payload.get("limit"), 10), to_int(payload.get("offset"))
    )
