"""
Product ratings and review images
"""
import json
import math
from datetime import datetime
from typing import List

from loguru import logger
from sqlalchemy import text
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.utils.helpers import image_url
from eshop_api.utils.php import num_str, php_date, to_float, to_int

RATING_SORTS = {
    "id": "pr.id",
    "user_id": "pr.user_id",
    "product_id": "pr.product_id",
    "rating": "pr.rating",
    "data_added": "pr.data_added",
}


def parse_review_images(raw) -> List[str]:
    """Stored review images (JSON list or a bare path) as CDN URLs"""
    if not raw:
        return []
    if isinstance(raw, list):
        return [image_url(image) for image in raw]
    raw = str(raw)
    if raw.startswith(("[", "{")):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return []
        return [image_url(image) for image in decoded] if isinstance(decoded, list) else []
    return [image_url(raw)]


def update_product_rating(db: Session, product_id):
    """Recompute ``products.rating`` and ``products.no_of_ratings``"""
    row = db.execute(
        text("SELECT AVG(rating) AS avg_rating, COUNT(id) AS total FROM product_rating WHERE product_id = :id"),
        {"id": product_id}
    ).fetchone()
    db.execute(
        text("UPDATE products SET rating = :rating, no_of_ratings = :total WHERE id = :id"),
        {"rating": to_float(row.avg_rating), "total": to_int(row.total), "id": product_id}
    )


def set_product_rating(db: Session, data: dict) -> dict:
    """Insert or replace a user's rating of a product"""
    missing = [field for field in ("user_id", "product_id", "rating") if not data.get(field)]
    if missing:
        raise ServiceError(f"{', '.join(missing)} are required fields!", status_code=400)
    rating = to_float(data["rating"])
    if not 1 <= rating <= 5:
        raise ServiceError("Rating must be between 1 and 5", status_code=400)

    purchased = db.execute(
        text("""
            SELECT COUNT(oi.id)
            FROM order_items oi
            JOIN product_variants pv ON oi.product_variant_id = pv.id
            JOIN orders o ON oi.order_id = o.id
            WHERE pv.product_id = :product_id AND o.user_id = :user_id AND o.active_status = 'delivered'
        """),
        {"product_id": data["product_id"], "user_id": data["user_id"]}
    ).scalar() or 0

    existing = db.execute(
        text("SELECT id FROM product_rating WHERE user_id = :user_id AND product_id = :product_id"),
        {"user_id": data["user_id"], "product_id": data["product_id"]}
    ).fetchone()
    params = {
        "user_id": data["user_id"],
        "product_id": data["product_id"],
        "rating": rating,
        "comment": data.get("comment") or "",
    }
    images = data.get("images") or []
    set_images = ""
    if images:
        params["images"] = json.dumps(list(images))
        set_images = ", images = :images"

    try:
        if existing is not None:
            db.execute(
                text(f"UPDATE product_rating SET rating = :rating, comment = :comment{set_images} WHERE id = :id"),
                {**params, "id": existing.id}
            )
        else:
            params.setdefault("images", None)
            db.execute(
                text("""
                    INSERT INTO product_rating (user_id, product_id, rating, comment, images, data_added)
                    VALUES (:user_id, :product_id, :rating, :comment, :images, :now)
                """),
                {**params, "now": datetime.now()}
            )
        update_product_rating(db, data["product_id"])
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Rating {rating} saved for product {data['product_id']} by user {data['user_id']}")
    return {
        "message": "Product rating updated successfully" if existing is not None else "Product rating added successfully",
        "data": {"product_id": str(data["product_id"]), "has_purchased": "1" if purchased else "0"},
    }


def delete_product_rating(db: Session, user_id, product_id) -> str:
    existing = db.execute(
        text("SELECT id FROM product_rating WHERE user_id = :user_id AND product_id = :product_id"),
        {"user_id": user_id, "product_id": product_id}
    ).fetchone()
    if existing is None:
        return "No rating found to delete"
    try:
        db.execute(
            text("DELETE FROM product_rating WHERE user_id = :user_id AND product_id = :product_id"),
            {"user_id": user_id, "product_id": product_id}
        )
        update_product_rating(db, product_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return "Product rating deleted successfully"


def _format_rating(row) -> dict:
    return {
        "id": str(row.id),
        "user_id": str(row.user_id),
        "product_id": str(row.product_id),
        "rating": num_str(to_float(row.rating)),
        "images": parse_review_images(row.images),
        "comment": row.comment or "",
        "data_added": php_date(row.data_added),
        "user_name": row.user_name or "",
        "user_profile": image_url(row.user_profile) if row.user_profile else "",
    }


def get_product_rating(db: Session, product_id, user_id=None, limit=25, offset=0, sort="id", order="DESC",
                       has_images=0) -> dict:
    """Ratings of a product with star distribution and image count"""
    product_id = to_int(product_id)
    where = "pr.product_id = :product_id"
    params = {"product_id": product_id}
    if user_id:
        where += " AND pr.user_id = :user_id"
        params["user_id"] = to_int(user_id)
    if to_int(has_images) == 1:
        where += " AND pr.images IS NOT NULL AND pr.images != ''"

    matching = db.execute(text(f"SELECT COUNT(pr.id) FROM product_rating pr WHERE {where}"), params).scalar() or 0
    sort_field = RATING_SORTS.get(sort, "pr.id")
    direction = "ASC" if str(order).upper() == "ASC" else "DESC"
    rows = db.execute(
        text(f"""
            SELECT pr.id, pr.user_id, pr.product_id, pr.rating, pr.comment, pr.images, pr.data_added,
                   u.username AS user_name, u.image AS user_profile
            FROM product_rating pr
            LEFT JOIN users u ON u.id = pr.user_id
            WHERE {where}
            ORDER BY {sort_field} {direction}
            LIMIT :limit OFFSET :offset
        """),
        {**params, "limit": to_int(limit, 25), "offset": to_int(offset)}
    ).fetchall()

    stars = {f"star_{star}": 0 for star in range(1, 6)}
    total_images = 0
    all_ratings = db.execute(
        text("SELECT rating, images FROM product_rating WHERE product_id = :product_id"),
        {"product_id": product_id}
    ).fetchall()
    for rating in all_ratings:
        star = math.ceil(to_float(rating.rating))
        if 1 <= star <= 5:
            stars[f"star_{star}"] += 1
        total_images += len(parse_review_images(rating.images))

    product_rating = db.execute(text("SELECT rating FROM products WHERE id = :id"), {"id": product_id}).scalar()
    return {
        "error": False,
        "message": "Rating retrieved successfully",
        "no_of_rating": matching,
        "total": str(len(all_ratings)),
        **{key: str(value) for key, value in stars.items()},
        "total_images": str(total_images) if total_images else "",
        "product_rating": num_str(round(to_float(product_rating), 1)),
        "data": [_format_rating(row) for row in rows],
    }


def get_product_review_images(db: Session, product_id, limit=10, offset=0) -> dict:
    """Every review image of a product, newest review first, paginated per image"""
    rows = db.execute(
        text("""
            SELECT pr.id, pr.user_id, pr.product_id, pr.rating, pr.images, pr.data_added,
                   u.username, u.image AS user_image
            FROM product_rating pr
            LEFT JOIN users u ON pr.user_id = u.id
            WHERE pr.product_id = :product_id AND pr.images IS NOT NULL AND pr.images != ''
            ORDER BY pr.data_added DESC
        """),
        {"product_id": to_int(product_id)}
    ).fetchall()
    images = []
    for row in rows:
        for image in parse_review_images(row.images):
            images.append({
                "id": str(row.id),
                "user_id": str(row.user_id),
                "product_id": str(row.product_id),
                "rating": num_str(to_float(row.rating)),
                "username": row.username or "Unknown",
                "user_image": image_url(row.user_image) if row.user_image else "",
                "image": image,
                "data_added": php_date(row.data_added),
            })
    offset, limit = to_int(offset), to_int(limit, 10)
    return {
        "error": False,
        "message": "Product review images retrieved successfully",
        "total": str(len(images)),
        "data": images[offset:offset + limit],
    }
