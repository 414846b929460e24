"""SQLAlchemy ORM models for users and payment orders"""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class UserRecord(Base):
    """Teacher account with credit balance"""

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),)

    username = Column(String(64), primary_key=True)
    password_hash = Column(Text, nullable=False)
    credits = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PaymentOrderRecord(Base):
    """Credit recharge order"""

    __tablename__ = "payment_order"

    order_id = Column(String(64), primary_key=True)
    username = Column(String(64), nullable=False, index=True)
    amount = Column(String(16), nullable=False)
    credits_granted = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    paid_at = Column(DateTime(timezone=True), nullable=True)
