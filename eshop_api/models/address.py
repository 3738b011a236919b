"""
Address and delivery geography models
"""
from sqlalchemy import Column, Integer, String, DateTime, DECIMAL, ForeignKey, SmallInteger
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from eshop_api.utils.database import Base


class Zipcode(Base):
    __tablename__ = "zipcodes"

    id = Column(Integer, primary_key=True, index=True)
    zipcode = Column(String(16), nullable=False, index=True)
    date_created = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Zipcode(id={self.id}, zipcode={self.zipcode})>"


class City(Base):
    __tablename__ = "cities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    delivery_charge = Column(DECIMAL(10, 2), nullable=True)
    minimum_free_delivery_order_amount = Column(DECIMAL(10, 2), default=0)

    def __repr__(self):
        return f"<City(id={self.id}, name={self.name})>"


class Area(Base):
    __tablename__ = "areas"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    city_id = Column(Integer, ForeignKey("cities.id"))
    zipcode_id = Column(Integer, ForeignKey("zipcodes.id"))
    minimum_free_delivery_order_amount = Column(DECIMAL(10, 2), default=0)
    delivery_charges = Column(DECIMAL(10, 2), default=0)

    def __repr__(self):
        return f"<Area(id={self.id}, name={self.name}, zipcode_id={self.zipcode_id})>"


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True)
    name = Column(String(100))
    type = Column(String(32))
    mobile = Column(String(20))
    alternate_mobile = Column(String(20))
    address = Column(String(255))
    landmark = Column(String(255))
    area_id = Column(Integer, ForeignKey("areas.id"), nullable=True)
    city_id = Column(Integer, ForeignKey("cities.id"), nullable=True)
    pincode = Column(String(16))
    country_code = Column(String(10))
    state = Column(String(100))
    country = Column(String(100))
    latitude = Column(String(32))
    longitude = Column(String(32))
    is_default = Column(SmallInteger, default=0)

    # Relationships
    user = relationship("User", back_populates="addresses")

    def __repr__(self):
        return f"<Address(id={self.id}, user_id={self.user_id}, pincode={self.pincode})>"
