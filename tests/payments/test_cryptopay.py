"""CryptoPayClient поверх httpx.MockTransport; circuit breaker в памяти."""
import hashlib
import hmac
import json
from decimal import Decimal

import httpx
import pybreaker
import pytest

from sharehub.core.errors import ExternalServiceError
from sharehub.services.payments.cryptopay import CryptoPayClient, verify_webhook_signature

TOKEN = "12345:test-cryptopay-token"


def _client(handler, fail_max=5):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    breaker = pybreaker.CircuitBreaker(fail_max=fail_max, reset_timeout=60)
    return CryptoPayClient(token=TOKEN, base_url="https://pay.test/api", http_client=http, breaker=breaker)


class TestCreateInvoice:
    def test_request_and_response(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["token"] = request.headers.get("Crypto-Pay-API-Token")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"ok": True, "result": {"invoice_id": 77, "status": "active", "bot_invoice_url": "https://t.me/x"}},
            )

        invoice = _client(handler).create_invoice(Decimal("0.25"), "Покупка 2.50 токенов")

        assert seen["url"] == "https://pay.test/api/createInvoice"
        assert seen["token"] == TOKEN
        assert seen["body"]["amount"] == "0.25"
        assert seen["body"]["currency_type"] == "fiat"
        assert seen["body"]["fiat"] == "USD"
        assert seen["body"]["description"] == "Покупка 2.50 токенов"
        assert invoice.invoice_id == "77"
        assert invoice.status == "pending"
        assert invoice.pay_url == "https://t.me/x"

    def test_api_error(self):
        def handler(request):
            return httpx.Response(400, json={"ok": False, "error": {"code": 400, "name": "AMOUNT_TOO_SMALL"}})

        with pytest.raises(ExternalServiceError) as exc:
            _client(handler).create_invoice(Decimal("0.01"), "x")
        assert exc.value.message == "AMOUNT_TOO_SMALL"

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExternalServiceError):
            _client(handler).create_invoice(Decimal("1"), "x")

    def test_breaker_opens(self):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler, fail_max=2)
        for _ in range(4):
            with pytest.raises(ExternalServiceError):
                client.create_invoice(Decimal("1"), "x")
        assert calls["n"] == 2


class TestGetInvoice:
    def test_status_lookup(self):
        def handler(request):
            assert request.url.params["invoice_ids"] == "77"
            return httpx.Response(200, json={"ok": True, "result": {"items": [{"invoice_id": 77, "status": "paid"}]}})

        invoice = _client(handler).get_invoice("77")
        assert invoice.status == "paid"

    def test_unknown_invoice(self):
        def handler(request):
            return httpx.Response(200, json={"ok": True, "result": {"items": []}})

        assert _client(handler).get_invoice("404") is None


class TestWebhookSignature:
    def test_valid_and_tampered(self):
        body = b'{"update_type":"invoice_paid"}'
        secret = hashlib.sha256(TOKEN.encode()).digest()
        signature = hmac.new(secret, body, hashlib.sha256).hexdigest()

        assert verify_webhook_signature(TOKEN, body, signature)
        assert not verify_webhook_signature(TOKEN, body + b" ", signature)
        assert not verify_webhook_signature(TOKEN, body, None)
