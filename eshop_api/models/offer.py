"""
Promo code, cashback, instant discount and offer usage models
"""
from sqlalchemy import Column, Integer, String, Date, DateTime, DECIMAL, Text, SmallInteger
from sqlalchemy.sql import func
from eshop_api.utils.database import Base


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id = Column(Integer, primary_key=True, index=True)
    promo_code = Column(String(64), nullable=False, index=True)
    message = Column(Text)
    start_date = Column(Date)
    end_date = Column(Date)
    no_of_users = Column(Integer, default=0)
    minimum_order_amount = Column(DECIMAL(10, 2), default=0)
    discount = Column(DECIMAL(10, 2), default=0)
    discount_type = Column(String(16), default="percentage")
    max_discount_amount = Column(DECIMAL(10, 2), default=0)
    repeat_usage = Column(SmallInteger, default=0)
    no_of_repeat_usage = Column(Integer, default=0)
    image = Column(String(255))
    status = Column(SmallInteger, default=1)
    date_created = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<PromoCode(id={self.id}, promo_code={self.promo_code})>"


class Cashback(Base):
    __tablename__ = "cashback"

    id = Column(Integer, primary_key=True, index=True)
    cashback_name = Column(String(255), nullable=False)
    amount = Column(DECIMAL(10, 2), default=0)
    cashback_percent = Column(DECIMAL(5, 2), default=0)
    max_cashback = Column(DECIMAL(10, 2), default=0)
    start_date = Column(Date)
    end_date = Column(Date)
    repeat_usage = Column(SmallInteger, default=0)
    no_of_repeat_usage = Column(Integer, default=0)
    status = Column(SmallInteger, default=1)

    def __repr__(self):
        return f"<Cashback(id={self.id}, name={self.cashback_name})>"


class InstantDiscount(Base):
    __tablename__ = "instant_discount"

    id = Column(Integer, primary_key=True, index=True)
    offer_name = Column(String(255), nullable=False)
    amount = Column(DECIMAL(10, 2), default=0)
    discount_amount = Column(DECIMAL(10, 2), default=0)
    max_discount_amount = Column(DECIMAL(10, 2), default=0)
    start_date = Column(Date)
    end_date = Column(Date)
    repeat_usage = Column(SmallInteger, default=0)
    no_of_repeat_usage = Column(Integer, default=0)
    status = Column(SmallInteger, default=1)

    def __repr__(self):
        return f"<InstantDiscount(id={self.id}, name={self.offer_name})>"


class ApiApplyOffer(Base):
    __tablename__ = "api_apply_offer"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    current_date = Column(Date, nullable=False)
    offer_type = Column(String(32), nullable=False)
    offer_type_id = Column(Integer, nullable=False)
    no_of_times_used = Column(Integer, nullable=False, default=1)
    date_created = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ApiApplyOffer(user_id={self.user_id}, offer_type={self.offer_type}, times={self.no_of_times_used})>"
