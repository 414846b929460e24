"""Unit tests for the Alipay client: notification verification and QR order creation"""

import base64
import json
from urllib.parse import unquote

import pytest
from alipay.exceptions import AliPayException, AliPayValidationError
from Cryptodome.Hash import SHA256
from Cryptodome.PublicKey import RSA
from Cryptodome.Signature import pkcs1_15

from xiaoe_gateway.domain.exceptions import PaymentProviderError
from xiaoe_gateway.domain.models import PendingOrder
from xiaoe_gateway.infrastructure.clients.alipay import AlipayClient, as_pem


class FakeSdk:
    """Records precreate calls instead of reaching the gateway"""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def api_alipay_trade_precreate(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture(scope="module")
def app_key():
    return RSA.generate(2048)


@pytest.fixture(scope="module")
def alipay_key():
    return RSA.generate(2048)


@pytest.fixture
def order() -> PendingOrder:
    return PendingOrder(order_id="XIAOE_42", username="alice", amount="0.50", credits_granted=50)


def make_client(app_key, alipay_key, sdk=None) -> AlipayClient:
    return AlipayClient(
        app_id="2021000000000000",
        private_key=app_key.export_key().decode(),
        alipay_public_key=alipay_key.publickey().export_key().decode(),
        notify_url="https://example.test/api/alipay-payment-notify",
        subject="recharge",
        sandbox=True,
        timeout=1.0,
        sdk=sdk,
    )


def alipay_sign(key, payload: dict) -> str:
    """Sign notification fields the way Alipay does: sorted k=v pairs, RSA2"""
    content = "&".join(f"{k}={v}" for k, v in sorted(payload.items()))
    signature = pkcs1_15.new(key).sign(SHA256.new(content.encode("utf-8")))
    return base64.b64encode(signature).decode("ascii")


def test_bare_base64_key_is_wrapped_as_pem(alipay_key):
    pem = alipay_key.publickey().export_key().decode()
    body = "".join(line for line in pem.splitlines() if not line.startswith("-----"))

    wrapped = as_pem(body, "PUBLIC KEY")

    assert wrapped.startswith("-----BEGIN PUBLIC KEY-----")
    assert RSA.import_key(wrapped).n == alipay_key.n
    assert as_pem(pem, "PUBLIC KEY") == pem


def test_bare_keys_configure_the_client(app_key, alipay_key):
    def bare(pem: str) -> str:
        return "".join(line for line in pem.splitlines() if not line.startswith("-----"))

    client = AlipayClient(
        "2021000000000000",
        bare(app_key.export_key(pkcs=8).decode()),
        bare(alipay_key.publickey().export_key().decode()),
        "https://n.test",
        "s",
    )
    assert client.configured is True


def test_notification_signature_verifies(app_key, alipay_key):
    client = make_client(app_key, alipay_key)
    payload = {"trade_status": "TRADE_SUCCESS", "out_trade_no": "XIAOE_42", "total_amount": "0.50"}
    signature = alipay_sign(alipay_key, payload)

    assert client.verify_notification(payload, signature) is True
    # sign_type is not part of the signed content
    assert client.verify_notification({**payload, "sign_type": "RSA2"}, signature) is True


def test_tampered_notification_fails(app_key, alipay_key):
    client = make_client(app_key, alipay_key)
    payload = {"trade_status": "TRADE_SUCCESS", "out_trade_no": "XIAOE_42"}
    signature = alipay_sign(alipay_key, payload)

    assert client.verify_notification({**payload, "out_trade_no": "XIAOE_43"}, signature) is False
    assert client.verify_notification(payload, alipay_sign(app_key, payload)) is False
    assert client.verify_notification(payload, "not-base64!!") is False


def test_unconfigured_client_rejects_notifications():
    client = AlipayClient("", "", "", "https://n.test", "s")
    assert client.configured is False
    assert client.verify_notification({"a": "1"}, "sig") is False


async def test_precreate_returns_qr_code_and_sends_passback(app_key, alipay_key, order):
    sdk = FakeSdk(result={"code": "10000", "msg": "Success", "qr_code": "https://qr.alipay.test/abc"})

    qr_code = await make_client(app_key, alipay_key, sdk).precreate(order)

    assert qr_code == "https://qr.alipay.test/abc"
    call = sdk.calls[0]
    assert call["out_trade_no"] == "XIAOE_42"
    assert call["total_amount"] == "0.50"
    assert call["notify_url"] == "https://example.test/api/alipay-payment-notify"
    assert json.loads(unquote(call["passback_params"])) == {"username": "alice", "orderId": "XIAOE_42"}


async def test_precreate_refusal_raises(app_key, alipay_key, order):
    sdk = FakeSdk(result={"code": "40004", "msg": "Business Failed", "sub_msg": "bad app"})
    with pytest.raises(PaymentProviderError, match="bad app"):
        await make_client(app_key, alipay_key, sdk).precreate(order)


async def test_precreate_unverified_response_raises(app_key, alipay_key, order):
    sdk = FakeSdk(error=AliPayValidationError())
    with pytest.raises(PaymentProviderError, match="signature"):
        await make_client(app_key, alipay_key, sdk).precreate(order)


async def test_precreate_unsigned_error_raises(app_key, alipay_key, order):
    sdk = FakeSdk(error=AliPayException("40002", "Invalid Arguments"))
    with pytest.raises(PaymentProviderError):
        await make_client(app_key, alipay_key, sdk).precreate(order)


async def test_precreate_network_error_raises(app_key, alipay_key, order):
    sdk = FakeSdk(error=TimeoutError("timed out"))
    with pytest.raises(PaymentProviderError, match="unreachable"):
        await make_client(app_key, alipay_key, sdk).precreate(order)


async def test_precreate_without_credentials_raises(order):
    client = AlipayClient("", "", "", "https://n.test", "s")
    with pytest.raises(PaymentProviderError, match="not configured"):
        await client.precreate(order)
