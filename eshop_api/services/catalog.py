"""
Catalogue reads: categories, products, variants and their attribute values
"""
import json
import math
from typing import Dict, List

from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

from eshop_api.utils.helpers import image_url, split_ids
from eshop_api.utils.php import row_dict, stringify, to_float

CATEGORY_SORTS = {"id": "id", "name": "name", "row_order": "row_order"}
PRODUCT_SORTS = {
    "id": "p.id",
    "name": "p.name",
    "date_added": "p.date_added",
    "rating": "p.rating",
    "price": "min_price",
}


def decode_images(raw) -> list:
    if not raw:
        return []
    if isinstance(raw, list):
        return raw
    try:
        decoded = json.loads(raw)
    except ValueError:
        return []
    return decoded if isinstance(decoded, list) else []


def attribute_values(db: Session, variants: List[dict]) -> Dict[str, tuple]:
    """Map each variant id to its ``(variant_values, attr_name)`` strings"""
    wanted = set()
    for variant in variants:
        wanted.update(split_ids(variant.get("attribute_value_ids")))
    values = {}
    if wanted:
        rows = db.execute(
            text("""
                SELECT av.id, av.value, a.name
                FROM attribute_values av
                LEFT JOIN attributes a ON a.id = av.attribute_id
                WHERE av.id IN :ids
            """).bindparams(bindparam("ids", expanding=True)),
            {"ids": [int(value_id) for value_id in wanted]}
        ).fetchall()
        values = {str(row.id): (row.value, row.name or "") for row in rows}

    result = {}
    for variant in variants:
        names, attrs = [], []
        for value_id in split_ids(variant.get("attribute_value_ids")):
            if value_id in values:
                value, attr = values[value_id]
                if value not in names:
                    names.append(value)
                if attr and attr not in attrs:
                    attrs.append(attr)
        result[str(variant["id"])] = (",".join(names), ",".join(attrs))
    return result


def get_variants_values_by_id(db: Session, variant_id) -> List[dict]:
    row = db.execute(
        text("SELECT * FROM product_variants WHERE id = :id"),
        {"id": variant_id}
    ).fetchone()
    if row is None:
        return []
    variant = row_dict(row)
    values, attrs = attribute_values(db, [variant])[str(variant["id"])]
    variant["images"] = decode_images(variant.get("images"))
    variant["variant_values"] = values
    variant["attr_name"] = attrs
    return [stringify(variant)]


def get_product_variants(db: Session, product_id) -> List[dict]:
    rows = db.execute(
        text("SELECT * FROM product_variants WHERE product_id = :product_id AND status = 1 ORDER BY id"),
        {"product_id": product_id}
    ).fetchall()
    variants = [row_dict(row) for row in rows]
    values = attribute_values(db, variants)
    result = []
    for variant in variants:
        variant_values, attr_name = values[str(variant["id"])]
        images = decode_images(variant.get("images"))
        result.append({
            "id": str(variant["id"]),
            "product_id": str(variant["product_id"]),
            "attribute_value_ids": variant.get("attribute_value_ids") or "",
            "price": stringify(variant.get("price")),
            "special_price": stringify(variant.get("special_price")) if variant.get("special_price") else "",
            "sku": variant.get("sku") or "",
            "stock": stringify(variant.get("stock") or 0),
            "weight": stringify(variant.get("weight") or 0),
            "images": [image_url(image) for image in images],
            "images_sm": [image_url(image, "sm") for image in images],
            "images_md": [image_url(image, "md") for image in images],
            "availability": stringify(1 if variant.get("availability") is None else variant["availability"]),
            "status": stringify(variant.get("status")),
            "date_added": stringify(variant.get("date_added")),
            "variant_ids": variant.get("attribute_value_ids") or "",
            "attr_name": f" {attr_name}" if attr_name else "",
            "variant_values": f" {variant_values}" if variant_values else "",
            "cart_count": "0",
        })
    return result


def get_min_max_price(db: Session, product_id) -> dict:
    rows = db.execute(
        text("SELECT price, special_price FROM product_variants WHERE product_id = :product_id AND status = 1"),
        {"product_id": product_id}
    ).fetchall()
    prices = [to_float(row.price) for row in rows]
    specials = [to_float(row.special_price) for row in rows if to_float(row.special_price) > 0]
    min_price = min(prices) if prices else 0
    min_special = min(specials) if specials else 0
    discount = 0
    if min_price > 0 and min_special > 0:
        discount = round((min_price - min_special) / min_price * 100)
    return {
        "min_price": min_price,
        "max_price": max(prices) if prices else 0,
        "special_price": min_special,
        "max_special_price": max(specials) if specials else 0,
        "discount_in_percentage": discount,
    }


def fetch_product(db: Session, product_id) -> List[dict]:
    """Active product by id with variants and price range, PHP shaped"""
    if not product_id:
        return []
    row = db.execute(
        text("""
            SELECT p.*, c.name AS category_name, tax.percentage AS tax_percentage, tax.id AS tax_id
            FROM products p
            LEFT JOIN categories c ON c.id = p.category_id
            LEFT JOIN taxes tax ON tax.id = p.tax
            WHERE p.id = :id AND p.status = 1
        """),
        {"id": product_id}
    ).fetchone()
    if row is None:
        return []
    product = row_dict(row)
    other_images = decode_images(product.get("other_images"))
    availability = product.get("availability")
    product = stringify(product)
    # Keep null availability distinguishable from 0
    product["availability"] = None if availability is None else str(availability)
    product["image_sm"] = image_url(product["image"], "sm")
    product["image_md"] = image_url(product["image"], "md")
    product["image"] = image_url(product["image"])
    product["other_images"] = [image_url(image) for image in other_images]
    product["variants"] = get_product_variants(db, product_id)
    product["min_max_price"] = get_min_max_price(db, product_id)
    return [product]


def _category_tree(db: Session, parent_id: int, level: int) -> List[dict]:
    rows = db.execute(
        text("SELECT * FROM categories WHERE parent_id = :parent_id AND status = 1 ORDER BY row_order ASC"),
        {"parent_id": parent_id}
    ).fetchall()
    return [_format_category(db, row_dict(row), level) for row in rows]


def _format_category(db: Session, category: dict, level: int) -> dict:
    children = _category_tree(db, category["id"], level + 1)
    result = stringify(category)
    result.update({
        "children": children,
        "text": category["name"],
        "state": {"opened": True},
        "level": level,
        "image": image_url(category.get("image"), "sm"),
        "banner": image_url(category.get("banner")) if category.get("banner") else "",
    })
    if level == 0:
        result["icon"] = "jstree-folder"
    return result


def get_categories(db: Session, category_id=None, limit: int = 25, offset: int = 0,
                   sort: str = "row_order", order: str = "ASC"):
    """Top level categories (or one category) with nested children"""
    sort_column = CATEGORY_SORTS.get(sort, "row_order")
    order = "DESC" if str(order).upper() == "DESC" else "ASC"
    where = "status = 1 AND parent_id = 0"
    params = {"limit": int(limit), "offset": int(offset)}
    if category_id:
        where = "status = 1 AND id = :id"
        params["id"] = category_id
    total = db.execute(text(f"SELECT COUNT(id) AS total FROM categories WHERE {where}"), params).scalar() or 0
    rows = db.execute(
        text(f"SELECT * FROM categories WHERE {where} ORDER BY {sort_column} {order} LIMIT :limit OFFSET :offset"),
        params
    ).fetchall()
    return [_format_category(db, row_dict(row), 0) for row in rows], int(total)


def get_products(db: Session, filters: dict) -> dict:
    """Active products filtered by id, ids, category and search text"""
    conditions = ["p.status = 1"]
    params = {}
    if filters.get("id"):
        conditions.append("p.id = :id")
        params["id"] = filters["id"]
    product_ids = split_ids(filters.get("product_ids"))
    if product_ids:
        conditions.append("p.id IN :product_ids")
        params["product_ids"] = [int(pid) for pid in product_ids]
    if filters.get("category_id"):
        category_ids = [int(cid) for cid in split_ids(filters["category_id"])]
        conditions.append("(p.category_id IN :category_ids OR c.parent_id IN :category_ids)")
        params["category_ids"] = category_ids
    search = (filters.get("search") or "").strip()
    if search:
        conditions.append("(p.name LIKE :search OR p.short_description LIKE :search)")
        params["search"] = f"%{search}%"
    where = " AND ".join(conditions)

    sort_column = PRODUCT_SORTS.get(filters.get("sort") or "id", "p.id")
    order = "DESC" if str(filters.get("order") or "").upper() == "DESC" else "ASC"
    base = f"""
        FROM products p
        LEFT JOIN categories c ON c.id = p.category_id
        LEFT JOIN (
            SELECT product_id, MIN(price) AS min_price, MAX(price) AS max_price
            FROM product_variants WHERE status = 1 GROUP BY product_id
        ) pr ON pr.product_id = p.id
        WHERE {where}
    """
    expanding = [bindparam(name, expanding=True) for name in ("product_ids", "category_ids") if name in params]

    count_stmt = text(f"SELECT COUNT(p.id) AS total, MIN(pr.min_price) AS low, MAX(pr.max_price) AS high {base}")
    if expanding:
        count_stmt = count_stmt.bindparams(*expanding)
    summary = db.execute(count_stmt, params).fetchone()

    params.update({"limit": int(filters.get("limit") or 25), "offset": int(filters.get("offset") or 0)})
    page_stmt = text(f"SELECT p.id {base} ORDER BY {sort_column} {order} LIMIT :limit OFFSET :offset")
    if expanding:
        page_stmt = page_stmt.bindparams(*expanding)
    rows = db.execute(page_stmt, params).fetchall()

    data = []
    for row in rows:
        data.extend(fetch_product(db, row.id))
    return {
        "error": False,
        "message": "Products retrieved successfully" if data else "No products available",
        "min_price": str(int(to_float(summary.low))),
        "max_price": str(math.ceil(to_float(summary.high))),
        "search": search,
        "filters": [],
        "tags": [],
        "total": str(summary.total or 0),
        "offset": str(params["offset"]),
        "data": data,
    }
