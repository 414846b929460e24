"""Unit tests for the credit ledger"""

import pytest
from xiaoe_gateway.domain.exceptions import InsufficientCreditsError, UserNotFoundError
from xiaoe_gateway.domain.ledger import CreditLedger
from xiaoe_gateway.domain.models import User


@pytest.fixture
def ledger(user_store) -> CreditLedger:
    user_store.create(User(username="alice", password_hash="x", credits=10))
    return CreditLedger(user_store)


def test_adjust_returns_new_balance(ledger, user_store):
    assert ledger.adjust("alice", -3) == 7
    assert ledger.adjust("alice", 5) == 12
    assert user_store.get("alice").credits == 12


def test_debit_to_exactly_zero_is_allowed(ledger):
    assert ledger.debit("alice", 10) == 0


def test_debit_below_zero_is_refused(ledger, user_store):
    """Ledger refuses overdrafts even when the caller skipped its own check"""
    with pytest.raises(InsufficientCreditsError) as exc_info:
        ledger.debit("alice", 11)

    assert exc_info.value.required == 11
    assert exc_info.value.available == 10
    assert user_store.get("alice").credits == 10


def test_unknown_user(ledger):
    with pytest.raises(UserNotFoundError):
        ledger.grant("nobody", 50)


@pytest.mark.parametrize("amount", [0, -5])
def test_non_positive_amounts_rejected(ledger, amount):
    with pytest.raises(ValueError):
        ledger.debit("alice", amount)
    with pytest.raises(ValueError):
        ledger.grant("alice", amount)
