"""
Favourite products of a user
"""
from html import escape

from loguru import logger
from sqlalchemy import text
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.services.catalog import decode_images, get_min_max_price, get_product_variants
from eshop_api.utils.helpers import image_url
from eshop_api.utils.php import php_date, stringify, to_int


def add_to_favorites(db: Session, user_id, product_id) -> str:
    if not user_id or not product_id:
        raise ServiceError("User ID and Product ID are required", status_code=400)
    params = {"user_id": to_int(user_id), "product_id": to_int(product_id)}
    exists = db.execute(
        text("SELECT COUNT(id) FROM favorites WHERE user_id = :user_id AND product_id = :product_id"),
        params
    ).scalar()
    if exists:
        raise ServiceError("Already added to favorite!", status_code=400)
    active = db.execute(
        text("SELECT COUNT(id) FROM products WHERE id = :product_id AND status = 1"),
        params
    ).scalar()
    if not active:
        raise ServiceError("Product not found or inactive", status_code=400)
    db.execute(text("INSERT INTO favorites (user_id, product_id) VALUES (:user_id, :product_id)"), params)
    db.commit()
    logger.info(f"Product {product_id} added to favorites of user {user_id}")
    return "Added to favorite"


def remove_from_favorites(db: Session, user_id, product_id=None) -> str:
    """Remove one favourite, or all of them when ``product_id`` is empty"""
    if not user_id:
        raise ServiceError("User ID is required", status_code=400)
    where = "user_id = :user_id"
    params = {"user_id": to_int(user_id)}
    if product_id:
        where += " AND product_id = :product_id"
        params["product_id"] = to_int(product_id)

    if not db.execute(text(f"SELECT COUNT(id) FROM favorites WHERE {where}"), params).scalar():
        message = "Item not added as favorite!" if product_id else "No favorites found for this user"
        raise ServiceError(message, status_code=400)
    result = db.execute(text(f"DELETE FROM favorites WHERE {where}"), params)
    if not result.rowcount:
        db.rollback()
        raise ServiceError("No favorites were removed", status_code=400)
    db.commit()
    return "Removed from favorite"


def _favorite_variants(variants: list) -> list:
    return [
        {
            "id": variant["id"],
            "product_id": variant["product_id"],
            "attribute_value_ids": variant["attribute_value_ids"],
            "price": variant["price"] or "0",
            "special_price": variant["special_price"] or "0",
            "sku": variant["sku"],
            "stock": variant["stock"],
            "weight": variant["weight"],
            "images": variant["images"],
            "availability": variant["availability"],
            "status": variant["status"],
            "attr_name": variant["attr_name"].strip() or "Unit",
            "variant_values": variant["variant_values"].strip() or "1 Pc",
            "cart_count": "0",
        }
        for variant in variants
    ]


def _format_favorite(db: Session, user_id, product) -> dict:
    variants = _favorite_variants(get_product_variants(db, product.id))
    default_variant = variants[0]["id"] if variants else ""
    image = product.image or ""
    return {
        "id": str(product.id),
        "user_id": str(user_id),
        "name": escape(product.name or ""),
        "slug": product.slug or "",
        "category_id": str(product.category_id or 0),
        "sub_category_id": "0",
        "short_description": escape(product.short_description or ""),
        "type": product.type or "",
        "image": image_url(image),
        "image_md": image_url(image, "md"),
        "image_sm": image_url(image, "sm"),
        "availability": stringify(product.availability or 0),
        "status": "1",
        "date_added": php_date(product.date_added),
        "product_variant_id": default_variant,
        "default_variant": default_variant,
        "variants": variants,
        "min_max_price": stringify(get_min_max_price(db, product.id)),
        "is_favorite": "1",
        "relative_path": image,
        "other_images": [
            {"image": other, "image_url": image_url(other)} for other in decode_images(product.other_images)
        ],
        "total_allowed_quantity": stringify(product.total_allowed_quantity) if product.total_allowed_quantity else "",
        "minimum_order_quantity": stringify(product.minimum_order_quantity or 1),
        "quantity_step_size": stringify(product.quantity_step_size or 1),
        "cod_allowed": "1",
    }


def get_favorites(db: Session, user_id, limit=25, offset=0) -> dict:
    empty = {"error": True, "message": "No Favourite(s) Product Are Added", "total": 0, "data": []}
    if not user_id:
        return {**empty, "message": "User ID is required"}
    params = {"user_id": to_int(user_id)}
    total = db.execute(
        text("""
            SELECT COUNT(f.id) FROM favorites f
            JOIN products p ON p.id = f.product_id
            WHERE f.user_id = :user_id
        """),
        params
    ).scalar() or 0
    if not total:
        return empty
    products = db.execute(
        text("""
            SELECT p.* FROM favorites f
            JOIN products p ON p.id = f.product_id
            WHERE f.user_id = :user_id
            ORDER BY f.id DESC
            LIMIT :limit OFFSET :offset
        """),
        {**params, "limit": to_int(limit, 25), "offset": to_int(offset)}
    ).fetchall()
    if not products:
        return empty
    return {
        "error": False,
        "message": "Data Retrieved Successfully",
        "total": total,
        "data": [_format_favorite(db, user_id, product) for product in products],
    }
