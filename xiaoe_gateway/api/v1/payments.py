"""Recharge order endpoints and the payment provider notification callback"""

import logging
from typing import Callable, Dict
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from xiaoe_gateway.api.v1.schemas import (
    CancelOrderRequest,
    CreateOrderRequest,
    CreateOrderResponse,
    OrderStatusResponse,
)
from xiaoe_gateway.api.dependencies import get_payment_provider, get_request_id
from xiaoe_gateway.config import settings
from xiaoe_gateway.domain.exceptions import (
    NotificationRejectedError,
    OrderNotFoundError,
    OrderStateError,
    PaymentProviderError,
    SignatureInvalidError,
    UserNotFoundError,
)
from xiaoe_gateway.domain.models import NotificationAck
from xiaoe_gateway.domain.payments import PaymentNotificationHandler, RechargeService, split_signature
from xiaoe_gateway.domain.ports import PaymentProvider
from xiaoe_gateway.infrastructure.database.session import get_db
from xiaoe_gateway.infrastructure.database.repositories import OrderRepository, UserRepository
from xiaoe_gateway.infrastructure.observability.metrics import (
    payment_notification_counter,
    payment_order_counter,
    record_notification,
)
from xiaoe_gateway.infrastructure.observability.logging import log_payment_event

router = APIRouter()


def _recharge_service(db: Session, provider: PaymentProvider) -> RechargeService:
    return RechargeService(
        UserRepository(db),
        OrderRepository(db),
        provider,
        amount=settings.recharge_amount,
        credits_granted=settings.recharge_credits,
    )


def apply_notification(db: Session, provider: PaymentProvider, payload: Dict[str, str], signature: str) -> NotificationAck:
    """Run the notification handler and commit; rolls back and re-raises on any failure"""
    handler = PaymentNotificationHandler(OrderRepository(db), UserRepository(db), provider)
    try:
        ack = handler.handle_notification(payload, signature)
        db.commit()
    except Exception:
        db.rollback()
        raise

    record_notification(ack.credited, ack.notes, ack.credits_granted)
    return ack


def settlement_callback(session_factory: Callable[[], Session], provider: PaymentProvider):
    """Notification delivery for simulated settlements, each in its own session"""

    def deliver(payload: Dict[str, str], signature: str) -> None:
        db = session_factory()
        try:
            ack = apply_notification(db, provider, payload, signature)
        finally:
            db.close()
        log_payment_event("settlement", "notification_applied", ack.order_id, credited=ack.credited, notes=ack.notes)

    return deliver


@router.post("/create-alipay-order", response_model=CreateOrderResponse)
async def create_order(
    request_body: CreateOrderRequest,
    request: Request,
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """
    Open a recharge order and return the payment QR code.

    The order is committed before the provider is contacted so that its
    notification can never arrive for an order we have not stored.
    """
    request_id = get_request_id(request)
    service = _recharge_service(db, provider)

    try:
        order = service.open_order(request_body.username)
        db.commit()
    except UserNotFoundError:
        db.rollback()
        raise HTTPException(status_code=404, detail="User not found")
    except Exception as e:
        db.rollback()
        logging.error(f"Order creation failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Failed to create payment order")

    try:
        qr_code_url = await service.request_payment(order)
    except PaymentProviderError as e:
        payment_order_counter.labels(outcome="failed").inc()
        logging.error(f"Payment provider error: {e}", extra={"request_id": request_id, "order_id": order.order_id})
        raise HTTPException(status_code=500, detail="Failed to create payment order")

    payment_order_counter.labels(outcome="created").inc()
    log_payment_event(request_id, "order_created", order.order_id, order.username, provider=provider.name)
    return CreateOrderResponse(qr_code_url=qr_code_url, order_id=order.order_id)


@router.post("/cancel-order", response_model=OrderStatusResponse)
def cancel_order(
    request_body: CancelOrderRequest,
    request: Request,
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """Cancel a pending order; a later payment for it is not credited"""
    try:
        order = _recharge_service(db, provider).cancel_order(request_body.username, request_body.order_id)
        db.commit()
    except OrderNotFoundError:
        db.rollback()
        raise HTTPException(status_code=404, detail="Order not found")
    except OrderStateError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))

    payment_order_counter.labels(outcome="cancelled").inc()
    log_payment_event(get_request_id(request), "order_cancelled", order.order_id, order.username)
    return OrderStatusResponse(order_id=order.order_id, status=order.status.value, credits_granted=order.credits_granted)


@router.get("/order-status/{order_id}", response_model=OrderStatusResponse)
def get_order_status(order_id: str, db: Session = Depends(get_db)):
    """Poll an order after the QR code was shown"""
    order = OrderRepository(db).get(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")

    return OrderStatusResponse(
        order_id=order.order_id,
        status=order.status.value,
        credits_granted=order.credits_granted,
        paid_at=order.paid_at.isoformat() if order.paid_at else None,
    )


@router.post("/alipay-payment-notify", response_class=PlainTextResponse)
async def payment_notify(
    request: Request,
    db: Session = Depends(get_db),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    """
    Provider callback. Answers "success" only after the credit is committed;
    any "failure" makes the provider redeliver.
    """
    request_id = get_request_id(request)
    form = await request.form()
    payload, signature = split_signature({k: str(v) for k, v in form.items()})

    try:
        ack = apply_notification(db, provider, payload, signature)
    except (SignatureInvalidError, NotificationRejectedError, OrderNotFoundError) as e:
        payment_notification_counter.labels(outcome="rejected").inc()
        logging.warning(f"Payment notification rejected: {e}", extra={"request_id": request_id})
        return PlainTextResponse("failure", status_code=400)
    except Exception as e:
        payment_notification_counter.labels(outcome="error").inc()
        logging.error(f"Payment notification failed: {e}", extra={"request_id": request_id})
        return PlainTextResponse("failure", status_code=500)

    log_payment_event(
        request_id,
        "notification_applied",
        ack.order_id,
        trade_status=ack.trade_status,
        credited=ack.credited,
        new_balance=ack.new_balance,
        notes=ack.notes,
    )
    return PlainTextResponse("success")
