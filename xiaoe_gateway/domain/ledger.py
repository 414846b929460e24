"""Credit ledger - the only code path that mutates a user's balance"""

from xiaoe_gateway.domain.exceptions import InsufficientCreditsError, UserNotFoundError
from xiaoe_gateway.domain.ports import UserStore


class CreditLedger:
    """Atomic balance adjustments on top of a UserStore"""

    def __init__(self, users: UserStore):
        self.users = users

    def adjust(self, username: str, delta: int) -> int:
        """
        Apply delta to the user's balance and return the new balance.

        The store performs the increment as a single conditional update, so two
        concurrent adjustments for the same user cannot lose an update and a
        debit can never take the balance below zero.

        Raises:
            UserNotFoundError: The user does not exist
            InsufficientCreditsError: The debit would make the balance negative
        """
        new_balance = self.users.increment_credits(username, delta)
        if new_balance is not None:
            return new_balance

        user = self.users.get(username)
        if user is None:
            raise UserNotFoundError(f"User {username!r} not found")
        raise InsufficientCreditsError(required=-delta, available=user.credits)

    def debit(self, username: str, amount: int) -> int:
        if amount <= 0:
            raise ValueError(f"Debit amount must be positive, got {amount}")
        return self.adjust(username, -amount)

    def grant(self, username: str, amount: int) -> int:
        if amount <= 0:
            raise ValueError(f"Grant amount must be positive, got {amount}")
        return self.adjust(username, amount)
