"""SQLAlchemy ORM models for processed payment transactions"""

from sqlalchemy import Column, String, BigInteger, Float, DateTime, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class PaymentTransaction(Base):
    """Payment transaction with its risk decision, written once after processing"""

    __tablename__ = "payment_transaction"

    id = Column(String(64), primary_key=True)
    client_id = Column(Text, nullable=True, index=True)
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)
    source = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, index=True)
    provider = Column(Text, nullable=True)
    risk_score = Column(Float, nullable=True)
    explanation = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
