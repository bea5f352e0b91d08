"""SQLAlchemy ORM models for obligations and card read models"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Date, Integer, Numeric, Text, JSON, Uuid
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class ObligationRecord(Base):
    """Future obligation row (one instance of a plain, recurring or installment series)"""

    __tablename__ = "future_obligation"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    dependent_id = Column(Text, nullable=True)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    direction = Column(String(8), nullable=False)
    expected_date = Column(Date, nullable=False)
    expected_month = Column(String(7), nullable=False, index=True)  # YYYY-MM, derived from expected_date
    category_id = Column(Text, nullable=True)
    account_id = Column(Text, nullable=True)
    card_id = Column(Uuid, nullable=True, index=True)
    counterparty = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="pending")
    settled_on = Column(Date, nullable=True)

    # Series markers
    is_installment = Column(Boolean, nullable=False, default=False)
    installment_index = Column(Integer, nullable=True)
    installment_count = Column(Integer, nullable=True)
    installment_info = Column(JSON, nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    periodicity = Column(String(16), nullable=True)
    series_end_date = Column(Date, nullable=True)
    series_id = Column(Uuid, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CreditCardRecord(Base):
    """Credit card read model"""

    __tablename__ = "credit_card"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    total_limit = Column(Numeric(14, 2), nullable=False)
    closing_day = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
