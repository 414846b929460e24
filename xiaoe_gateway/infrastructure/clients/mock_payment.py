"""Simulated payment provider for development and demos

Orders settle on their own after a delay, through the same notification path
a real provider would use. Each settlement is a task owned by the scheduler so
cancelling an order, or shutting the service down, drops the pending credit.
"""

import asyncio
import hashlib
import hmac
import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple
from urllib.parse import quote

from xiaoe_gateway.domain.models import PendingOrder
from xiaoe_gateway.domain.payments import encode_passback
from xiaoe_gateway.utils.signing import signing_content

logger = logging.getLogger(__name__)

SettleCallback = Callable[[Dict[str, str], str], None]


class SettlementScheduler:
    """Owns one delayed settlement task per order"""

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}

    def schedule(self, order_id: str, delay: float, callback: Callable[[], Awaitable[None]]) -> asyncio.Task:
        self.cancel(order_id)

        async def run() -> None:
            await asyncio.sleep(delay)
            await callback()

        task = asyncio.get_running_loop().create_task(run(), name=f"settle-{order_id}")
        self._tasks[order_id] = task
        task.add_done_callback(lambda t: self._finished(order_id, t))
        return task

    def _finished(self, order_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(order_id) is task:
            del self._tasks[order_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Simulated settlement failed",
                extra={"order_id": order_id},
                exc_info=task.exception(),
            )

    def cancel(self, order_id: str) -> bool:
        task = self._tasks.pop(order_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def pending(self) -> list:
        return sorted(order_id for order_id, task in self._tasks.items() if not task.done())

    async def aclose(self) -> None:
        """Cancel every outstanding settlement and wait for them to unwind"""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


class MockPaymentProvider:
    """HMAC-signed stand-in for a real payment gateway"""

    name = "mock"

    def __init__(
        self,
        secret: str,
        scheduler: Optional[SettlementScheduler] = None,
        delay: float = 5.0,
        on_settle: Optional[SettleCallback] = None,
    ):
        self.secret = secret.encode("utf-8")
        self.scheduler = scheduler or SettlementScheduler()
        self.delay = delay
        self.on_settle = on_settle

    @property
    def configured(self) -> bool:
        return bool(self.secret)

    def sign(self, payload: Dict[str, str]) -> str:
        return hmac.new(self.secret, signing_content(payload).encode("utf-8"), hashlib.sha256).hexdigest()

    def verify_notification(self, payload: Dict[str, str], signature: str) -> bool:
        return hmac.compare_digest(self.sign(payload), signature)

    def build_notification(self, order: PendingOrder, trade_status: str = "TRADE_SUCCESS") -> Tuple[Dict[str, str], str]:
        """Notification fields and signature as the provider would post them"""
        payload = {
            "trade_status": trade_status,
            "out_trade_no": order.order_id,
            "total_amount": order.amount,
            "passback_params": quote(encode_passback(order.username, order.order_id)),
        }
        return payload, self.sign(payload)

    async def precreate(self, order: PendingOrder) -> str:
        if self.on_settle is not None:
            self.scheduler.schedule(order.order_id, self.delay, lambda: self._settle(order))
        return f"mock://pay/{order.order_id}"

    async def _settle(self, order: PendingOrder) -> None:
        payload, signature = self.build_notification(order)
        self.on_settle(payload, signature)

    def cancel(self, order_id: str) -> None:
        if self.scheduler.cancel(order_id):
            logger.info("Simulated settlement cancelled", extra={"order_id": order_id})
