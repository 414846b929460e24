"""Data access layer for users and payment orders"""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from xiaoe_gateway.infrastructure.database.models import PaymentOrderRecord, UserRecord
from xiaoe_gateway.domain.exceptions import UserExistsError
from xiaoe_gateway.domain.models import OrderStatus, PendingOrder, User


def _to_user(record: UserRecord) -> User:
    return User(username=record.username, password_hash=record.password_hash, credits=record.credits)


def _to_order(record: PaymentOrderRecord) -> PendingOrder:
    return PendingOrder(
        order_id=record.order_id,
        username=record.username,
        amount=record.amount,
        credits_granted=record.credits_granted,
        status=OrderStatus(record.status),
        created_at=record.created_at,
        paid_at=record.paid_at,
    )


class UserRepository:
    """Repository for user accounts and balances"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, username: str) -> Optional[User]:
        """Fetch user, always re-reading the row so balances are never stale"""
        record = self.db.get(UserRecord, username, populate_existing=True)
        return _to_user(record) if record else None

    def create(self, user: User) -> User:
        """Insert a new user; raises UserExistsError on a taken username"""
        if self.db.get(UserRecord, user.username) is not None:
            raise UserExistsError(f"Username {user.username!r} already exists")

        self.db.add(
            UserRecord(
                username=user.username,
                password_hash=user.password_hash,
                credits=user.credits,
            )
        )
        try:
            self.db.flush()
        except IntegrityError as e:
            # Lost a registration race for the same username
            self.db.rollback()
            raise UserExistsError(f"Username {user.username!r} already exists") from e
        return user

    def increment_credits(self, username: str, delta: int) -> Optional[int]:
        """
        Single conditional UPDATE: credits = credits + delta where the result stays >= 0.

        Returns the new balance, or None if the row is missing or the guard refused.
        """
        result = self.db.execute(
            update(UserRecord)
            .where(UserRecord.username == username, UserRecord.credits + delta >= 0)
            .values(credits=UserRecord.credits + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None

        return self.db.execute(
            select(UserRecord.credits).where(UserRecord.username == username)
        ).scalar_one()


class OrderRepository:
    """Repository for recharge orders"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, order: PendingOrder) -> PendingOrder:
        record = PaymentOrderRecord(
            order_id=order.order_id,
            username=order.username,
            amount=order.amount,
            credits_granted=order.credits_granted,
            status=order.status.value,
        )
        self.db.add(record)
        self.db.flush()
        return order

    def get(self, order_id: str) -> Optional[PendingOrder]:
        record = self.db.get(PaymentOrderRecord, order_id, populate_existing=True)
        return _to_order(record) if record else None

    def _transition(self, order_id: str, target: OrderStatus, **values) -> bool:
        """Compare-and-set from pending; only one caller can win the transition"""
        result = self.db.execute(
            update(PaymentOrderRecord)
            .where(
                PaymentOrderRecord.order_id == order_id,
                PaymentOrderRecord.status == OrderStatus.PENDING.value,
            )
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def mark_paid(self, order_id: str) -> bool:
        return self._transition(order_id, OrderStatus.PAID, paid_at=datetime.now(timezone.utc))

    def mark_cancelled(self, order_id: str) -> bool:
        return self._transition(order_id, OrderStatus.CANCELLED)
