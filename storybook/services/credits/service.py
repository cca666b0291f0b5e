import logging
from dataclasses import dataclass

from sqlalchemy import case, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storybook.models.credit_usage import CreditUsage
from storybook.models.user import User
from storybook.utils.metrics import credit_operations_total

logger = logging.getLogger(__name__)

DEBIT = "DEBIT"
REFUND = "REFUND"


@dataclass(frozen=True)
class CreditBalance:
    subscription: int
    purchased: int

    @property
    def total(self) -> int:
        return self.subscription + self.purchased


class CreditService:
    """
    Two-bucket credit balance with an append-only usage log.

    The running totals on User are the source of truth for the balance; the
    log is an audit trail keyed by (book_id, operation) so that each book has
    at most one debit and at most one refund.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_balance(self, user_id: str) -> CreditBalance | None:
        row = self.db.execute(
            select(User.subscription_credits, User.purchased_credits).where(User.id == user_id)
        ).one_or_none()
        if row is None:
            return None
        return CreditBalance(subscription=row[0] or 0, purchased=row[1] or 0)

    def debit(self, user_id: str, book_id: str, amount: int, description: str) -> bool:
        """
        Atomically take `amount` credits: subscription bucket first, the rest
        from purchased. One conditional UPDATE, so concurrent submissions by
        the same user cannot both spend the same credits, and neither bucket
        can end up negative. Returns False when the balance is insufficient.
        """
        if self._ledger_exists(book_id, DEBIT):
            return True
        sub_covers = User.subscription_credits >= amount
        result = self.db.execute(
            update(User)
            .where(
                User.id == user_id,
                User.subscription_credits + User.purchased_credits >= amount,
            )
            .values(
                subscription_credits=case(
                    (sub_covers, User.subscription_credits - amount),
                    else_=0,
                ),
                purchased_credits=case(
                    (sub_covers, User.purchased_credits),
                    else_=User.purchased_credits - (amount - User.subscription_credits),
                ),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            return False
        try:
            self.db.add(CreditUsage(
                user_id=user_id,
                book_id=book_id,
                operation=DEBIT,
                amount=amount,
                description=description,
            ))
            self.db.commit()
        except IntegrityError:
            # Concurrent debit for the same book won; ours is rolled back with the UPDATE
            self.db.rollback()
            return True
        credit_operations_total.labels(operation=DEBIT).inc()
        logger.info("credits_debited", extra={"user_id": user_id, "book_id": book_id})
        return True

    def refund(self, user_id: str, book_id: str, amount: int, description: str) -> bool:
        """
        Credit `amount` back to the purchased bucket. Only refunds a book that
        was debited and not yet refunded. Returns True if a refund was written.
        """
        if self._ledger_exists(book_id, REFUND):
            return False
        if not self._ledger_exists(book_id, DEBIT):
            return False
        result = self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(purchased_credits=User.purchased_credits + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            logger.error("refund_user_missing", extra={"user_id": user_id, "book_id": book_id})
            return False
        try:
            self.db.add(CreditUsage(
                user_id=user_id,
                book_id=book_id,
                operation=REFUND,
                amount=-amount,
                description=description,
            ))
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        credit_operations_total.labels(operation=REFUND).inc()
        logger.info("credits_refunded", extra={"user_id": user_id, "book_id": book_id})
        return True

    def has_debit(self, book_id: str) -> bool:
        return self._ledger_exists(book_id, DEBIT)

    def has_refund(self, book_id: str) -> bool:
        return self._ledger_exists(book_id, REFUND)

    def list_usage(self, user_id: str) -> list[CreditUsage]:
        return (
            self.db.query(CreditUsage)
            .filter(CreditUsage.user_id == user_id)
            .order_by(CreditUsage.created_at)
            .all()
        )

    def _ledger_exists(self, book_id: str, operation: str) -> bool:
        stmt = exists().where(
            CreditUsage.book_id == book_id,
            CreditUsage.operation == operation,
        )
        return bool(self.db.query(stmt).scalar())


def debit_description(prompt: str, book_id: str) -> str:
    return f"Generate book: {prompt[:50]}... (ID: {book_id})"


def refund_description(book_id: str) -> str:
    return f"Refund for failed book generation (Book ID: {book_id})"
