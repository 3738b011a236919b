"""
User wallet balance movements
"""
from datetime import datetime

from loguru import logger
from sqlalchemy import text
from sqlalchemy.orm import Session

from eshop_api.exceptions import ServiceError
from eshop_api.utils.php import stringify, to_float


def get_user_balance(db: Session, user_id) -> str:
    row = db.execute(text("SELECT balance FROM users WHERE id = :id"), {"id": user_id}).fetchone()
    return stringify(row.balance) if row is not None else "0"


def update_wallet_balance(db: Session, operation: str, user_id, amount, message: str = None,
                          order_item_id=None, txn_id=None) -> float:
    """Credit, refund or debit a wallet and record a ``wallet`` transaction.

    Does not commit; callers run this inside their own unit of work.
    Returns the new balance.
    """
    row = db.execute(text("SELECT balance FROM users WHERE id = :id"), {"id": user_id}).fetchone()
    if row is None:
        raise ServiceError("User not found")
    balance = to_float(row.balance)
    amount = to_float(amount)
    if amount == 0:
        raise ServiceError("Amount can't be Zero!")
    if operation == "debit" and amount > balance:
        raise ServiceError("Debited amount can't exceeds the user balance!")
    if balance < 0:
        raise ServiceError(f"User's Wallet balance less than {stringify(balance)} can be used only")

    if operation in ("credit", "refund"):
        new_balance = balance + amount
    elif operation == "debit":
        new_balance = balance - amount
    else:
        raise ServiceError(f"Unknown wallet operation: {operation}")

    db.execute(text("UPDATE users SET balance = :balance WHERE id = :id"), {"balance": new_balance, "id": user_id})
    db.execute(
        text("""
            INSERT INTO transactions
                (transaction_type, user_id, type, txn_id, amount, message, status, transaction_date, order_item_id, is_refund)
            VALUES ('wallet', :user_id, :type, :txn_id, :amount, :message, 'success', :now, :order_item_id, 0)
        """),
        {
            "user_id": user_id,
            "type": operation,
            "amount": amount,
            "message": message or ("Balance Debited" if operation == "debit" else "Balance Credited"),
            "now": datetime.now(),
            "order_item_id": order_item_id,
            "txn_id": txn_id or "",
        }
    )
    logger.info(f"Wallet {operation} of {amount} for user {user_id}: {balance} -> {new_balance}")
    return new_balance


def fetch_user_data(db: Session, user_id) -> dict:
    """User summary block returned alongside wallet and transaction responses"""
    row = db.execute(
        text("""
            SELECT u.id, u.username, u.email, u.mobile, u.balance, u.dob, u.referral_code,
                   u.friends_code, u.city AS cities, u.area, u.street, u.pincode
            FROM users u WHERE u.id = :id
        """),
        {"id": user_id}
    ).fetchone()
    if row is None:
        return None
    user = stringify(dict(row._mapping))
    user["balance"] = user["balance"] or "0"
    count = db.execute(
        text("SELECT COUNT(id) FROM cart WHERE user_id = :id AND is_saved_for_later = 0 AND qty != 0"),
        {"id": user_id}
    ).scalar()
    user["cart_total_items"] = str(count or 0)
    return user
