"""
User and client API key models
"""
from sqlalchemy import Column, Integer, String, DateTime, Date, DECIMAL, SmallInteger
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from eshop_api.utils.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100))
    email = Column(String(254), index=True)
    mobile = Column(String(20), index=True)
    country_code = Column(String(10))
    password = Column(String(255))
    balance = Column(DECIMAL(10, 2), nullable=False, default=0)
    dob = Column(String(16))
    referral_code = Column(String(32))
    friends_code = Column(String(32))
    city = Column(String(100))
    area = Column(String(100))
    street = Column(String(255))
    pincode = Column(String(16))
    image = Column(String(255))
    fcm_id = Column(String(255))
    type = Column(String(16), default="phone")
    active = Column(SmallInteger, nullable=False, default=1)
    last_login = Column(DateTime)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    orders = relationship("Order", back_populates="user")
    addresses = relationship("Address", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, mobile={self.mobile})>"


class ClientApiKey(Base):
    __tablename__ = "client_api_keys"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100))
    secret = Column(String(255), nullable=False)
    status = Column(SmallInteger, nullable=False, default=1)

    def __repr__(self):
        return f"<ClientApiKey(id={self.id}, name={self.name}, status={self.status})>"
