from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from storybook.db.base import Base


class CreditUsage(Base):
    """Append-only credit log. amount > 0 is a debit, amount < 0 a refund."""

    __tablename__ = "credit_usage"
    __table_args__ = (UniqueConstraint("book_id", "operation", name="uq_credit_usage_book_operation"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    # No FK: the log outlives deleted books
    book_id = Column(String, nullable=True, index=True)
    operation = Column(String, nullable=False)  # DEBIT, REFUND
    amount = Column(Integer, nullable=False)
    description = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
