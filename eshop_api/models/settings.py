"""
System settings and delivery time slot models
"""
from sqlalchemy import Column, Integer, String, Text, SmallInteger
from eshop_api.utils.database import Base


class Setting(Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)
    variable = Column(String(64), nullable=False, unique=True)
    value = Column(Text)

    def __repr__(self):
        return f"<Setting(variable={self.variable})>"


class TimeSlot(Base):
    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(64), nullable=False)
    from_time = Column(String(8), nullable=False)
    to_time = Column(String(8), nullable=False)
    last_order_time = Column(String(8))
    status = Column(SmallInteger, default=1)

    def __repr__(self):
        return f"<TimeSlot(id={self.id}, title={self.title})>"
