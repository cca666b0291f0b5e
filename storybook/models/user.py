from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String

from storybook.db.base import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("subscription_credits >= 0", name="ck_users_subscription_credits_non_negative"),
        CheckConstraint("purchased_credits >= 0", name="ck_users_purchased_credits_non_negative"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    email = Column(String, unique=True, nullable=True)
    full_name = Column(String, nullable=True)
    # Two-bucket balance: subscription is spent first, refunds land in purchased
    subscription_credits = Column(Integer, nullable=False, default=0)
    purchased_credits = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    @property
    def total_credits(self) -> int:
        return (self.subscription_credits or 0) + (self.purchased_credits or 0)
