"""
Cart and Favorite models
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, SmallInteger
from sqlalchemy.sql import func
from eshop_api.utils.database import Base


class Cart(Base):
    __tablename__ = "cart"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=False)
    qty = Column(Integer, nullable=False, default=1)
    is_saved_for_later = Column(SmallInteger, nullable=False, default=0)
    date_created = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Cart(id={self.id}, user_id={self.user_id}, product_variant_id={self.product_variant_id})>"


class Favorite(Base):
    __tablename__ = "favorites"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    date_added = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Favorite(id={self.id}, user_id={self.user_id}, product_id={self.product_id})>"
