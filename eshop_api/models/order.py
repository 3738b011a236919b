"""
Order, OrderItem and bank transfer models
"""
from sqlalchemy import Column, Integer, String, DateTime, DECIMAL, ForeignKey, Text, SmallInteger
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from eshop_api.utils.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True)
    address_id = Column(Integer, nullable=True)
    mobile = Column(String(20))
    email = Column(String(254))
    total = Column(DECIMAL(10, 2), nullable=False, default=0)
    delivery_charge = Column(DECIMAL(10, 2), default=0)
    is_delivery_charge_returnable = Column(SmallInteger, default=0)
    wallet_balance = Column(DECIMAL(10, 2), default=0)
    promo_code = Column(String(64))
    promo_discount = Column(DECIMAL(10, 2), default=0)
    discount = Column(DECIMAL(10, 2), default=0)
    total_payable = Column(DECIMAL(10, 2), default=0)
    final_total = Column(DECIMAL(10, 2), default=0)
    payment_method = Column(String(32))
    latitude = Column(String(32))
    longitude = Column(String(32))
    address = Column(Text)
    city = Column(String(100))
    delivery_time = Column(String(64))
    delivery_date = Column(String(32))
    status = Column(Text)
    active_status = Column(String(32), default="received")
    otp = Column(Integer, default=0)
    notes = Column(Text)
    order_note = Column(Text)
    is_local_pickup = Column(SmallInteger, default=0)
    offer_type_details = Column(Text)
    offer_discount = Column(DECIMAL(10, 2), default=0)
    date_added = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="orders")
    order_items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Order(id={self.id}, final_total={self.final_total}, status={self.active_status})>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    order_id = Column(Integer, ForeignKey("orders.id"), index=True)
    product_name = Column(String(255))
    variant_name = Column(String(255))
    product_variant_id = Column(Integer, ForeignKey("product_variants.id"))
    quantity = Column(Integer, nullable=False, default=1)
    price = Column(DECIMAL(10, 2), nullable=False)
    discounted_price = Column(DECIMAL(10, 2), default=0)
    tax_percent = Column(DECIMAL(5, 2), default=0)
    tax_amount = Column(DECIMAL(10, 2), default=0)
    discount = Column(DECIMAL(10, 2), default=0)
    sub_total = Column(DECIMAL(10, 2), nullable=False)
    deliver_by = Column(String(64))
    updated_by = Column(Integer, default=0)
    status = Column(Text)
    active_status = Column(String(32), default="received")
    hash_link = Column(String(255))
    is_sent = Column(SmallInteger, default=0)
    is_download = Column(SmallInteger, default=0)
    date_added = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    order = relationship("Order", back_populates="order_items")

    def __repr__(self):
        return f"<OrderItem(id={self.id}, quantity={self.quantity}, price={self.price})>"


class OrderBankTransfer(Base):
    __tablename__ = "order_bank_transfer"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True)
    attachments = Column(String(255))
    status = Column(SmallInteger, default=0)
    date_created = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<OrderBankTransfer(id={self.id}, order_id={self.order_id}, status={self.status})>"
