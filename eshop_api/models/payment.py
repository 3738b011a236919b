"""
Transaction model (wallet movements and gateway payments)
"""
from sqlalchemy import Column, Integer, String, DateTime, DECIMAL, Text, SmallInteger
from sqlalchemy.sql import func
from eshop_api.utils.database import Base


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    transaction_type = Column(String(32), default="transaction")
    user_id = Column(Integer, index=True)
    order_id = Column(String(64), nullable=True)
    order_item_id = Column(Integer, nullable=True)
    type = Column(String(32))
    txn_id = Column(String(255))
    payu_txn_id = Column(String(255))
    amount = Column(DECIMAL(10, 2), nullable=False, default=0)
    status = Column(String(32))
    currency_code = Column(String(8))
    payer_email = Column(String(254))
    message = Column(Text)
    transaction_date = Column(DateTime)
    date_created = Column(DateTime(timezone=True), server_default=func.now())
    is_refund = Column(SmallInteger, default=0)
    updated_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<Transaction(id={self.id}, type={self.type}, amount={self.amount}, status={self.status})>"
