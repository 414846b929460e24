"""Alipay client: QR code order creation and notification verification"""

import logging
from typing import Dict, Optional
from urllib.parse import quote

from alipay import AliPay
from alipay.exceptions import AliPayException, AliPayValidationError
from alipay.utils import AliPayConfig
from starlette.concurrency import run_in_threadpool

from xiaoe_gateway.config import Settings, settings as default_settings
from xiaoe_gateway.domain.exceptions import PaymentProviderError
from xiaoe_gateway.domain.models import PendingOrder
from xiaoe_gateway.domain.payments import encode_passback

logger = logging.getLogger(__name__)

SUCCESS_CODE = "10000"


def as_pem(key: str, label: str) -> str:
    """Accept either full PEM text or the bare base64 body the merchant console hands out"""
    key = key.strip()
    if key.startswith("-----BEGIN"):
        return key
    body = "\n".join(key[i : i + 64] for i in range(0, len(key), 64))
    return f"-----BEGIN {label}-----\n{body}\n-----END {label}-----\n"


class AlipayClient:
    """Client for Alipay face-to-face (QR code) payments"""

    name = "alipay"

    def __init__(
        self,
        app_id: str,
        private_key: str,
        alipay_public_key: str,
        notify_url: str,
        subject: str,
        sandbox: bool = False,
        timeout: float | None = None,
        sdk: Optional[AliPay] = None,
    ):
        self.app_id = app_id
        self.notify_url = notify_url
        self.subject = subject
        self.timeout = timeout or default_settings.http_timeout_seconds
        self._sdk = sdk
        if self._sdk is None and app_id and private_key and alipay_public_key:
            self._sdk = AliPay(
                appid=app_id,
                app_notify_url=notify_url,
                app_private_key_string=as_pem(private_key, "RSA PRIVATE KEY"),
                alipay_public_key_string=as_pem(alipay_public_key, "PUBLIC KEY"),
                sign_type="RSA2",
                debug=sandbox,
                config=AliPayConfig(timeout=self.timeout),
            )

    @classmethod
    def from_settings(cls, config: Settings = default_settings) -> "AlipayClient":
        return cls(
            app_id=config.alipay_app_id,
            private_key=config.alipay_private_key,
            alipay_public_key=config.alipay_public_key,
            notify_url=config.alipay_notify_url,
            subject=config.recharge_subject,
            sandbox=config.alipay_sandbox,
            timeout=config.http_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return self._sdk is not None

    async def precreate(self, order: PendingOrder) -> str:
        """
        Create a QR code payment for the order.

        The SDK signs the request and checks the signature on Alipay's answer.

        Raises:
            PaymentProviderError: Client not configured, network failure, unsigned or refused answer
        """
        if not self.configured:
            raise PaymentProviderError("Alipay credentials are not configured")

        try:
            result = await run_in_threadpool(
                self._sdk.api_alipay_trade_precreate,
                subject=self.subject,
                out_trade_no=order.order_id,
                total_amount=order.amount,
                notify_url=self.notify_url,
                # The provider returns this verbatim in the notification
                passback_params=quote(encode_passback(order.username, order.order_id)),
            )
        except AliPayValidationError as e:
            raise PaymentProviderError("Alipay response signature did not verify") from e
        except AliPayException as e:
            raise PaymentProviderError(f"Alipay error: {e}") from e
        except OSError as e:
            raise PaymentProviderError(f"Alipay unreachable: {e}") from e
        except ValueError as e:
            raise PaymentProviderError("Alipay returned an unreadable body") from e

        if result.get("code") != SUCCESS_CODE or not result.get("qr_code"):
            raise PaymentProviderError(
                f"Alipay refused order {order.order_id}: {result.get('sub_msg') or result.get('msg')}"
            )
        return result["qr_code"]

    def verify_notification(self, payload: Dict[str, str], signature: str) -> bool:
        """RSA2 check of the notification fields (sign and sign_type excluded)"""
        if self._sdk is None:
            logger.error("Alipay public key is not configured; rejecting notification")
            return False
        data = {k: v for k, v in payload.items() if k not in ("sign", "sign_type")}
        try:
            return bool(self._sdk.verify(data, signature))
        except (AliPayException, ValueError) as e:
            logger.warning(f"Alipay notification signature unreadable: {e}")
            return False

    def cancel(self, order_id: str) -> None:
        # Unpaid precreate orders expire on the Alipay side
        return None
