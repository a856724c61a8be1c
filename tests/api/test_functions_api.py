"""Контракт /functions/v1/*: bearer, {success, ...} / 500 {error} (нехватка токенов: 400), CORS preflight."""
import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from sharehub.api.routes.functions import get_purchase_service
from sharehub.db.session import get_db
from sharehub.main import app
from sharehub.models.token_purchase import PURCHASE_COMPLETED, TokenPurchase
from sharehub.services.auth.security import create_access_token
from sharehub.services.payments.cryptopay import Invoice
from sharehub.services.payments.service import TokenPurchaseService


@pytest.fixture
def provider():
    client = MagicMock()
    client.create_invoice.return_value = Invoice(invoice_id="501", status="pending", pay_url="https://t.me/pay/501")
    client.get_invoice.return_value = Invoice(invoice_id="501", status="paid")
    return client


@pytest.fixture
def api(db, provider):
    redis_client = MagicMock()
    redis_client.incr.return_value = 1
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_purchase_service] = lambda: TokenPurchaseService(
        db, client=provider, redis_client=redis_client
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(account):
    return {"Authorization": f"Bearer {create_access_token(account.id)}"}


class TestAuth:
    def test_missing_bearer_rejected_before_provider(self, api, provider):
        resp = api.post("/functions/v1/cryptobot-payment", json={"action": "create-invoice", "amount": 1})
        assert resp.status_code == 500
        assert "error" in resp.json()
        provider.create_invoice.assert_not_called()

    def test_invalid_bearer(self, api):
        resp = api.post(
            "/functions/v1/spend-tokens",
            json={"postId": "p"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 500
        assert resp.json() == {"error": "Invalid user token"}

    def test_malformed_body(self, api, make_account):
        resp = api.post(
            "/functions/v1/cryptobot-payment",
            content=b"not json",
            headers={**_auth(make_account()), "Content-Type": "application/json"},
        )
        assert resp.status_code == 500
        assert resp.json() == {"error": "Invalid request body"}

    def test_crud_routes_keep_auth_status(self, api):
        resp = api.get("/tokens/balance")
        assert resp.status_code == 401
        assert resp.json() == {"error": "Missing authorization header"}

    def test_cors_preflight(self, api):
        resp = api.options(
            "/functions/v1/spend-tokens",
            headers={
                "Origin": "https://app.example",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            },
        )
        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "*"


class TestCryptobotPayment:
    def test_create_then_check(self, api, db, make_account, provider):
        account = make_account()

        resp = api.post(
            "/functions/v1/cryptobot-payment",
            json={"action": "create-invoice", "amount": 0.25},
            headers=_auth(account),
        )
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "invoice_url": "https://t.me/pay/501", "invoice_id": "501"}
        assert provider.create_invoice.call_args.kwargs["description"] == "Покупка 2.50 токенов"

        resp = api.post(
            "/functions/v1/cryptobot-payment",
            json={"action": "check-payment", "invoiceId": 501},
            headers=_auth(account),
        )
        assert resp.json() == {"success": True, "status": "paid"}
        db.refresh(account)
        assert Decimal(account.token_balance) == Decimal("2.50")

    def test_amount_below_minimum(self, api, make_account, provider):
        resp = api.post(
            "/functions/v1/cryptobot-payment",
            json={"action": "create-invoice", "amount": 0.24},
            headers=_auth(make_account()),
        )
        assert resp.status_code == 500
        assert "error" in resp.json()
        provider.create_invoice.assert_not_called()

    def test_unknown_action(self, api, make_account):
        resp = api.post("/functions/v1/cryptobot-payment", json={"action": "refund"}, headers=_auth(make_account()))
        assert resp.status_code == 500
        assert resp.json() == {"error": "Invalid action"}

    def test_purchase_not_found(self, api, make_account):
        resp = api.post(
            "/functions/v1/cryptobot-payment",
            json={"action": "check-payment", "invoiceId": "501"},
            headers=_auth(make_account()),
        )
        assert resp.status_code == 500
        assert resp.json() == {"error": "Purchase not found"}


class TestWebhook:
    def _signed(self, body: dict):
        from sharehub.core.config import settings

        raw = json.dumps(body).encode()
        secret = hashlib.sha256(settings.cryptopay_api_token.encode()).digest()
        return raw, hmac.new(secret, raw, hashlib.sha256).hexdigest()

    def test_invoice_paid_settles_once(self, api, db, make_account):
        account = make_account()
        db.add(TokenPurchase(user_id=account.id, amount=Decimal("1"), tokens_amount=Decimal("10"), payment_id="900"))
        db.commit()
        raw, signature = self._signed({"update_type": "invoice_paid", "payload": {"invoice_id": 900, "status": "paid"}})

        for _ in range(2):
            resp = api.post(
                "/functions/v1/cryptobot-payment/webhook",
                content=raw,
                headers={"crypto-pay-api-signature": signature, "Content-Type": "application/json"},
            )
            assert resp.status_code == 200

        db.refresh(account)
        assert Decimal(account.token_balance) == Decimal("10")
        purchase = db.query(TokenPurchase).filter(TokenPurchase.payment_id == "900").one()
        assert purchase.status == PURCHASE_COMPLETED

    def test_bad_signature(self, api):
        resp = api.post(
            "/functions/v1/cryptobot-payment/webhook",
            content=b'{"update_type":"invoice_paid"}',
            headers={"crypto-pay-api-signature": "deadbeef"},
        )
        assert resp.status_code == 401


class TestSpendTokens:
    def test_insufficient_then_topped_up(self, api, db, make_account, make_post):
        owner = make_account()
        viewer = make_account(balance="5")
        post = make_post(owner, token_cost="10")

        resp = api.post("/functions/v1/spend-tokens", json={"postId": post.id}, headers=_auth(viewer))
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "Недостаточно токенов", "required": 10.0, "balance": 5.0}

        viewer.token_balance = Decimal("10")
        db.commit()

        resp = api.post("/functions/v1/spend-tokens", json={"postId": post.id}, headers=_auth(viewer))
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "newBalance": 0.0}

        resp = api.post("/functions/v1/spend-tokens", json={"postId": post.id}, headers=_auth(viewer))
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "newBalance": 0.0, "message": "Already unlocked"}

    def test_missing_identifier(self, api, make_account):
        resp = api.post("/functions/v1/spend-tokens", json={}, headers=_auth(make_account()))
        assert resp.status_code == 500
        assert "error" in resp.json()


class TestGatedFeed:
    def test_locked_post_hides_body_until_unlocked(self, api, make_account, make_post):
        owner = make_account()
        viewer = make_account(balance="10")
        post = make_post(owner, token_cost="3")

        body = api.get(f"/posts/{post.id}", headers=_auth(viewer)).json()
        assert body["locked"] is True
        assert body["blocked_by"] == "tokens"
        assert body["content"] is None
        assert body["token_cost"] == 3.0

        api.post("/functions/v1/spend-tokens", json={"postId": post.id}, headers=_auth(viewer))

        body = api.get(f"/posts/{post.id}", headers=_auth(viewer)).json()
        assert body["locked"] is False
        assert body["content"] == "body"
