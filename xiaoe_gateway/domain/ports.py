"""Persistence and provider interfaces the domain layer depends on"""

from typing import Any, Dict, List, Optional, Protocol

from xiaoe_gateway.domain.models import PendingOrder, User


class UserStore(Protocol):
    def get(self, username: str) -> Optional[User]: ...

    def create(self, user: User) -> User: ...

    def increment_credits(self, username: str, delta: int) -> Optional[int]:
        """
        Atomically add delta to the balance unless the result would be negative.

        Returns the new balance, or None when no row was updated (user missing
        or guard refused).
        """
        ...


class OrderStore(Protocol):
    def create(self, order: PendingOrder) -> PendingOrder: ...

    def get(self, order_id: str) -> Optional[PendingOrder]: ...

    def mark_paid(self, order_id: str) -> bool:
        """Transition pending -> paid; False if the order was not pending"""
        ...

    def mark_cancelled(self, order_id: str) -> bool:
        """Transition pending -> cancelled; False if the order was not pending"""
        ...


class TextGenerator(Protocol):
    async def invoke(self, model: str, prompt: str, expect_strings: bool) -> List[Any]: ...


class PaymentProvider(Protocol):
    name: str

    async def precreate(self, order: PendingOrder) -> str:
        """Register the order with the provider and return a QR code URL"""
        ...

    def verify_notification(self, payload: Dict[str, str], signature: str) -> bool: ...

    def cancel(self, order_id: str) -> None: ...
