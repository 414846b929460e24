"""Recharge orders and payment notification handling"""

import json
import logging
import secrets
import time
from typing import Dict, Optional, Tuple
from urllib.parse import unquote

from xiaoe_gateway.domain.exceptions import (
    NotificationRejectedError,
    OrderNotFoundError,
    OrderStateError,
    PaymentProviderError,
    SignatureInvalidError,
    UserNotFoundError,
)
from xiaoe_gateway.domain.ledger import CreditLedger
from xiaoe_gateway.domain.models import NotificationAck, OrderStatus, PendingOrder
from xiaoe_gateway.domain.ports import OrderStore, PaymentProvider, UserStore

logger = logging.getLogger(__name__)

SUCCESS_TRADE_STATUSES = frozenset({"TRADE_SUCCESS", "TRADE_FINISHED"})
ORDER_ID_PREFIX = "XIAOE_"


def generate_order_id() -> str:
    """Millisecond timestamp plus a random suffix so same-millisecond orders stay unique"""
    return f"{ORDER_ID_PREFIX}{int(time.time() * 1000)}{secrets.token_hex(8)}"


def encode_passback(username: str, order_id: str) -> str:
    return json.dumps({"username": username, "orderId": order_id}, separators=(",", ":"))


def decode_passback(raw: Optional[str]) -> Dict[str, str]:
    """Decode the URL-encoded JSON context round-tripped through the provider"""
    if not raw:
        return {}
    try:
        context = json.loads(unquote(raw))
    except ValueError as e:
        raise NotificationRejectedError(f"Unreadable passback_params: {e}") from e
    if not isinstance(context, dict):
        raise NotificationRejectedError("passback_params is not a JSON object")
    return context


class RechargeService:
    """Creates and cancels credit recharge orders"""

    def __init__(
        self,
        users: UserStore,
        orders: OrderStore,
        provider: PaymentProvider,
        amount: str,
        credits_granted: int,
    ):
        self.users = users
        self.orders = orders
        self.provider = provider
        self.amount = amount
        self.credits_granted = credits_granted

    def open_order(self, username: str) -> PendingOrder:
        """
        Persist a pending order for the user.

        Must be committed before `request_payment` so a fast notification can
        always find the order.
        """
        if self.users.get(username) is None:
            raise UserNotFoundError(f"User {username!r} not found")

        order = PendingOrder(
            order_id=generate_order_id(),
            username=username,
            amount=self.amount,
            credits_granted=self.credits_granted,
        )
        return self.orders.create(order)

    async def request_payment(self, order: PendingOrder) -> str:
        """Ask the provider for a payment QR code URL"""
        try:
            return await self.provider.precreate(order)
        except PaymentProviderError:
            raise
        except Exception as e:
            raise PaymentProviderError(f"{self.provider.name} order creation failed: {e}") from e

    def cancel_order(self, username: str, order_id: str) -> PendingOrder:
        order = self.orders.get(order_id)
        if order is None or order.username != username:
            raise OrderNotFoundError(f"Order {order_id!r} not found")
        if not self.orders.mark_cancelled(order_id):
            current = self.orders.get(order_id)
            raise OrderStateError(f"Order {order_id!r} is {current.status.value}, not pending")

        self.provider.cancel(order_id)
        order.status = OrderStatus.CANCELLED
        return order


class PaymentNotificationHandler:
    """
    Applies provider notifications to orders and balances.

    Credits are granted only when this handler performs the pending -> paid
    transition itself, which makes redelivered notifications harmless.
    """

    def __init__(self, orders: OrderStore, users: UserStore, provider: PaymentProvider):
        self.orders = orders
        self.ledger = CreditLedger(users)
        self.provider = provider

    def handle_notification(self, payload: Dict[str, str], signature: str) -> NotificationAck:
        """
        Verify and apply a notification.

        Raises:
            SignatureInvalidError: Signature does not match the payload
            NotificationRejectedError: Passback context is unreadable or disagrees with the order
            OrderNotFoundError: Notification references an unknown order
        """
        if not signature or not self.provider.verify_notification(payload, signature):
            raise SignatureInvalidError("Payment notification signature verification failed")

        trade_status = payload.get("trade_status", "")
        ack = NotificationAck(order_id=payload.get("out_trade_no"), trade_status=trade_status)

        # Non-terminal notifications are acknowledged whatever their passback holds
        if trade_status not in SUCCESS_TRADE_STATUSES:
            ack.notes.append("non-terminal status ignored")
            return ack

        context = decode_passback(payload.get("passback_params"))
        order_id = ack.order_id or context.get("orderId")
        ack.order_id = order_id

        if not order_id:
            raise NotificationRejectedError("Notification does not reference an order")

        order = self.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id!r} not found")

        passback_user = context.get("username")
        if passback_user and passback_user != order.username:
            raise NotificationRejectedError(
                f"Passback user {passback_user!r} does not own order {order_id!r}"
            )

        if not self.orders.mark_paid(order_id):
            current = self.orders.get(order_id)
            if current is not None and current.status == OrderStatus.CANCELLED:
                logger.warning("Payment received for cancelled order", extra={"order_id": order_id})
                ack.notes.append("order cancelled, not credited")
            else:
                ack.notes.append("already paid")
            return ack

        ack.new_balance = self.ledger.grant(order.username, order.credits_granted)
        ack.credited = True
        ack.credits_granted = order.credits_granted
        return ack


def split_signature(form: Dict[str, str]) -> Tuple[Dict[str, str], str]:
    """Separate the signature field from the signed notification fields"""
    payload = {k: v for k, v in form.items() if k not in ("sign", "sign_type")}
    return payload, form.get("sign", "")
