"""
Payment and wallet transaction records
"""
from datetime import datetime

from loguru import logger
from sqlalchemy import text
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.utils.php import php_date, stringify

SORTABLE = ("id", "user_id", "order_id", "amount", "status", "transaction_date", "date_created")
SEARCHABLE = ("id", "transaction_type", "type", "order_id", "txn_id", "amount", "status", "message",
              "transaction_date", "date_created")


def add_transaction(db: Session, data: dict, commit: bool = True) -> dict:
    """Insert a transaction row and return the stored values"""
    trans_data = {
        "transaction_type": data.get("transaction_type") or "transaction",
        "user_id": data.get("user_id"),
        "order_id": data.get("order_id") or None,
        "order_item_id": data.get("order_item_id") or None,
        "type": str(data.get("type") or "").lower(),
        "txn_id": data.get("txn_id") or "",
        "payu_txn_id": data.get("payu_txn_id") or None,
        "amount": data.get("amount"),
        "status": data.get("status"),
        "currency_code": data.get("currency_code") or None,
        "payer_email": data.get("payer_email") or None,
        "message": data.get("message") or "",
        "transaction_date": data.get("transaction_date") or datetime.now(),
        "is_refund": data.get("is_refund") or 0,
    }
    if trans_data["order_id"] is not None:
        trans_data["order_id"] = str(trans_data["order_id"])
    db.execute(
        text("""
            INSERT INTO transactions
                (transaction_type, user_id, order_id, order_item_id, type, txn_id, payu_txn_id, amount,
                 status, currency_code, payer_email, message, transaction_date, is_refund, date_created)
            VALUES
                (:transaction_type, :user_id, :order_id, :order_item_id, :type, :txn_id, :payu_txn_id, :amount,
                 :status, :currency_code, :payer_email, :message, :transaction_date, :is_refund, :now)
        """),
        {**trans_data, "now": datetime.now()}
    )
    if commit:
        db.commit()
    logger.info(
        f"Transaction added: user={trans_data['user_id']} order={trans_data['order_id']} "
        f"type={trans_data['type']} status={trans_data['status']}"
    )
    trans_data["transaction_date"] = php_date(trans_data["transaction_date"])
    trans_data["is_refund"] = stringify(trans_data["is_refund"])
    return trans_data


def _format_transaction(row) -> dict:
    item = dict(row._mapping)
    return {
        "id": str(item["id"]),
        "transaction_type": item.get("transaction_type") or "wallet",
        "user_id": stringify(item.get("user_id")),
        "order_id": str(item["order_id"]) if item.get("order_id") not in (None, "", "0", 0) else None,
        "order_item_id": str(item["order_item_id"]) if item.get("order_item_id") else None,
        "type": item.get("type") or "",
        "txn_id": item.get("txn_id") or None,
        "payu_txn_id": item.get("payu_txn_id") or "",
        "amount": stringify(item.get("amount")),
        "status": item.get("status") or None,
        "currency_code": item.get("currency_code") or "",
        "payer_email": item.get("payer_email") or "",
        "message": item.get("message") or "",
        "transaction_date": php_date(item.get("transaction_date")),
        "date_created": php_date(item.get("date_created")),
        "is_refund": stringify(item.get("is_refund") or 0),
    }


def get_transactions(db: Session, id="", user_id="", transaction_type="transaction", type="", search="",
                     offset=0, limit=25, sort="id", order="DESC"):
    """Filtered, paginated transactions as ``(total, rows)``"""
    conditions, params = [], {}
    if user_id:
        conditions.append("user_id = :user_id")
        params["user_id"] = user_id
    if id:
        conditions.append("id = :id")
        params["id"] = id
    if transaction_type:
        conditions.append("transaction_type = :transaction_type")
        params["transaction_type"] = transaction_type
    if type:
        conditions.append("type = :type")
        params["type"] = type
    if search:
        conditions.append("(" + " OR ".join(f"CAST({column} AS CHAR(64)) LIKE :search" for column in SEARCHABLE) + ")")
        params["search"] = f"%{search}%"
    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    total = db.execute(text(f"SELECT COUNT(id) AS total FROM transactions {where}"), params).scalar() or 0
    sort = sort if sort in SORTABLE else "id"
    order = "ASC" if order == "ASC" else "DESC"
    rows = db.execute(
        text(f"SELECT * FROM transactions {where} ORDER BY {sort} {order} LIMIT :limit OFFSET :offset"),
        {**params, "limit": int(limit), "offset": int(offset)}
    ).fetchall()
    return int(total), [_format_transaction(row) for row in rows]


def edit_transaction(db: Session, data: dict) -> dict:
    trans_data = {
        "id": str(data["id"]),
        "status": str(data["status"]),
        "txn_id": str(data["txn_id"]),
        "message": str(data.get("message") or ""),
    }
    db.execute(
        text("UPDATE transactions SET status = :status, txn_id = :txn_id, message = :message, updated_at = :now WHERE id = :id"),
        {**trans_data, "now": datetime.now()}
    )
    db.commit()
    return trans_data


def update_transaction_status(db: Session, status: str, message: str = "", id=None, txn_id=None,
                              order_id=None, commit: bool = True) -> int:
    """Set status by row id, or by gateway txn id plus order id; returns affected rows"""
    params = {"status": status, "message": message, "now": datetime.now()}
    if id:
        where = "id = :id"
        params["id"] = id
    elif txn_id and order_id:
        where = "txn_id = :txn_id AND order_id = :order_id"
        params.update({"txn_id": txn_id, "order_id": str(order_id)})
    else:
        raise ServiceError("Transaction ID or txn_id + order_id required")
    result = db.execute(
        text(f"UPDATE transactions SET status = :status, message = :message, updated_at = :now WHERE {where}"),
        params
    )
    if commit:
        db.commit()
    if not result.rowcount:
        raise ServiceError("No transaction found with provided details")
    return result.rowcount


def get_pending_transactions(db: Session, order_id, user_id=None) -> list:
    query = "SELECT * FROM transactions WHERE order_id = :order_id AND status = 'pending'"
    params = {"order_id": str(order_id)}
    if user_id:
        query += " AND user_id = :user_id"
        params["user_id"] = user_id
    return [_format_transaction(row) for row in db.execute(text(query), params).fetchall()]


def find_by_txn_id(db: Session, txn_id):
    return db.execute(
        text("SELECT * FROM transactions WHERE txn_id = :txn_id ORDER BY id DESC"),
        {"txn_id": txn_id}
    ).fetchone()
