"""
SQLAlchemy models for the eshop schema
"""

# Import all models to make them available when importing from models
from .customer import User, ClientApiKey
from .product import (
    Category, Product, ProductVariant, Tax, ProductRating, FlashSale, FlashSaleProduct,
    Attribute, AttributeValue,
)
from .cart import Cart, Favorite
from .order import Order, OrderItem, OrderBankTransfer
from .payment import Transaction
from .address import Address, City, Area, Zipcode
from .settings import Setting, TimeSlot
from .offer import PromoCode, Cashback, InstantDiscount, ApiApplyOffer

__all__ = [
    "User",
    "ClientApiKey",
    "Category",
    "Product",
    "ProductVariant",
    "Tax",
    "ProductRating",
    "FlashSale",
    "FlashSaleProduct",
    "Attribute",
    "AttributeValue",
    "Cart",
    "Favorite",
    "Order",
    "OrderItem",
    "OrderBankTransfer",
    "Transaction",
    "Address",
    "City",
    "Area",
    "Zipcode",
    "Setting",
    "TimeSlot",
    "PromoCode",
    "Cashback",
    "InstantDiscount",
    "ApiApplyOffer",
]
