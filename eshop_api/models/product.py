"""
Catalogue models: categories, products, variants, taxes, ratings, flash sales
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, SmallInteger, Float
from sqlalchemy import DECIMAL
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from eshop_api.utils.database import Base


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    parent_id = Column(Integer, default=0)
    slug = Column(String(255))
    image = Column(String(255))
    banner = Column(String(255))
    row_order = Column(Integer, default=0)
    status = Column(SmallInteger, default=1)

    # Relationships
    products = relationship("Product", back_populates="category")

    def __repr__(self):
        return f"<Category(id={self.id}, name={self.name})>"


class Tax(Base):
    __tablename__ = "taxes"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    percentage = Column(DECIMAL(5, 2), nullable=False, default=0)
    status = Column(SmallInteger, default=1)

    def __repr__(self):
        return f"<Tax(id={self.id}, title={self.title}, percentage={self.percentage})>"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255))
    type = Column(String(32), default="simple_product")
    category_id = Column(Integer, ForeignKey("categories.id"))
    tax = Column(Integer, ForeignKey("taxes.id"), nullable=True)
    short_description = Column(Text)
    description = Column(Text)
    image = Column(String(255))
    other_images = Column(Text)
    is_prices_inclusive_tax = Column(SmallInteger, default=0)
    minimum_order_quantity = Column(Integer, default=1)
    quantity_step_size = Column(Integer, default=1)
    total_allowed_quantity = Column(Integer, nullable=True)
    shipping_method = Column(String(32), default="standard")
    pickup_location = Column(String(255))
    is_on_sale = Column(SmallInteger, default=0)
    sale_discount = Column(Integer, default=0)
    deliverable_type = Column(SmallInteger, default=1)
    deliverable_zipcodes = Column(Text)
    download_allowed = Column(SmallInteger, default=0)
    download_link = Column(String(255))
    availability = Column(SmallInteger, nullable=True)
    stock = Column(Integer, nullable=True)
    is_returnable = Column(SmallInteger, default=0)
    is_cancelable = Column(SmallInteger, default=0)
    cancelable_till = Column(String(32))
    rating = Column(Float, default=0)
    no_of_ratings = Column(Integer, default=0)
    status = Column(SmallInteger, default=1)
    date_added = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    category = relationship("Category", back_populates="products")
    variants = relationship("ProductVariant", back_populates="product")

    def __repr__(self):
        return f"<Product(id={self.id}, name={self.name}, type={self.type})>"


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    attribute_value_ids = Column(String(255))
    price = Column(DECIMAL(10, 2), nullable=False)
    special_price = Column(DECIMAL(10, 2), default=0)
    sku = Column(String(100))
    stock = Column(Integer, nullable=True)
    weight = Column(Float, default=0)
    availability = Column(SmallInteger, default=1)
    images = Column(Text)
    status = Column(SmallInteger, default=1)
    date_added = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    product = relationship("Product", back_populates="variants")

    def __repr__(self):
        return f"<ProductVariant(id={self.id}, product_id={self.product_id}, price={self.price})>"


class ProductRating(Base):
    __tablename__ = "product_rating"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    rating = Column(Float, nullable=False)
    images = Column(Text)
    comment = Column(Text)
    data_added = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ProductRating(id={self.id}, product_id={self.product_id}, rating={self.rating})>"


class FlashSale(Base):
    __tablename__ = "flash_sales"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255))
    discount = Column(DECIMAL(5, 2), nullable=False, default=0)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(SmallInteger, default=1)

    def __repr__(self):
        return f"<FlashSale(id={self.id}, discount={self.discount})>"


class FlashSaleProduct(Base):
    __tablename__ = "flash_sale_products"

    id = Column(Integer, primary_key=True, index=True)
    flash_sale_id = Column(Integer, ForeignKey("flash_sales.id"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    def __repr__(self):
        return f"<FlashSaleProduct(flash_sale_id={self.flash_sale_id}, product_id={self.product_id})>"


class Attribute(Base):
    __tablename__ = "attributes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    status = Column(SmallInteger, default=1)

    def __repr__(self):
        return f"<Attribute(id={self.id}, name={self.name})>"


class AttributeValue(Base):
    __tablename__ = "attribute_values"

    id = Column(Integer, primary_key=True, index=True)
    attribute_id = Column(Integer, ForeignKey("attributes.id"), nullable=False)
    value = Column(String(100), nullable=False)
    status = Column(SmallInteger, default=1)

    def __repr__(self):
        return f"<AttributeValue(id={self.id}, attribute_id={self.attribute_id}, value={self.value})>"
