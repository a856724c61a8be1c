"""
Crypto Pay (CryptoBot) API client using httpx sync client.
Sync interface: используется и в API-хендлерах, и в Celery-воркерах (no event loop issues).
"""
import hashlib
import hmac
import logging
import time
from decimal import Decimal

import httpx
import pybreaker
from pydantic import BaseModel

from sharehub.core.config import settings
from sharehub.core.errors import ExternalServiceError
from sharehub.services.circuit_breaker import get_circuit_breaker
from sharehub.utils.metrics import (
    cryptopay_request_duration_seconds,
    cryptopay_requests_total,
)

logger = logging.getLogger(__name__)

# Статусы провайдера: active (ждёт оплаты), paid, expired. Наружу active отдаём как pending.
_STATUS_MAP = {"active": "pending"}


class Invoice(BaseModel):
    invoice_id: str
    status: str
    pay_url: str | None = None
    amount: str | None = None
    payload: str | None = None

    @classmethod
    def from_api(cls, item: dict) -> "Invoice":
        raw_status = str(item.get("status", ""))
        return cls(
            invoice_id=str(item["invoice_id"]),
            status=_STATUS_MAP.get(raw_status, raw_status),
            pay_url=item.get("pay_url") or item.get("bot_invoice_url"),
            amount=item.get("amount"),
            payload=item.get("payload"),
        )


class CryptoPayClient:
    """
    Thin wrapper over Crypto Pay API: createInvoice / getInvoices.
    Auth: static token in Crypto-Pay-API-Token header.
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        http_client: httpx.Client | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
    ) -> None:
        self._token = token or settings.cryptopay_api_token
        self._base_url = (base_url or settings.cryptopay_api_url).rstrip("/")
        self._client = http_client
        self._breaker = breaker

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=settings.cryptopay_timeout)
        return self._client

    @property
    def breaker(self) -> pybreaker.CircuitBreaker:
        if self._breaker is None:
            self._breaker = get_circuit_breaker("cryptopay")
        return self._breaker

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _record_request(self, method: str, status: str, duration: float) -> None:
        cryptopay_requests_total.labels(method=method, status=status).inc()
        cryptopay_request_duration_seconds.labels(method=method).observe(duration)

    def _api_call(self, method: str, params: dict | None = None, body: dict | None = None) -> dict:
        url = f"{self._base_url}/{method}"
        headers = {"Crypto-Pay-API-Token": self._token}
        if body is not None:
            resp = self.client.post(url, json=body, headers=headers)
        else:
            resp = self.client.get(url, params=params, headers=headers)
        try:
            data = resp.json()
        except ValueError:
            raise ExternalServiceError(f"Crypto Pay {method}: HTTP {resp.status_code}")
        if not data.get("ok"):
            error = data.get("error") or {}
            name = error.get("name") if isinstance(error, dict) else str(error)
            raise ExternalServiceError(name or f"Crypto Pay {method} failed")
        return data["result"]

    def _call(self, method: str, params: dict | None = None, body: dict | None = None) -> dict:
        start = time.time()
        try:
            result = self.breaker.call(self._api_call, method, params, body)
        except pybreaker.CircuitBreakerError:
            self._record_request(method, "circuit_open", time.time() - start)
            logger.warning("cryptopay_circuit_open", extra={"method": method})
            raise ExternalServiceError("Payment provider temporarily unavailable")
        except httpx.HTTPError as e:
            self._record_request(method, "error", time.time() - start)
            logger.error("cryptopay_request_failed", extra={"method": method, "error": str(e)})
            raise ExternalServiceError(f"Crypto Pay {method} request failed") from e
        except ExternalServiceError as e:
            self._record_request(method, "error", time.time() - start)
            logger.error("cryptopay_api_error", extra={"method": method, "error": e.message})
            raise
        self._record_request(method, "success", time.time() - start)
        return result

    def create_invoice(
        self,
        amount: Decimal,
        description: str,
        fiat: str | None = None,
        paid_btn_url: str | None = None,
        payload: str | None = None,
    ) -> Invoice:
        """Создать счёт в фиате. Возвращает invoice_id и ссылку на оплату."""
        body = {
            "amount": str(amount),
            "currency_type": "fiat",
            "fiat": fiat or settings.cryptopay_fiat,
            "description": description,
        }
        if paid_btn_url:
            body["paid_btn_name"] = "callback"
            body["paid_btn_url"] = paid_btn_url
        if payload:
            body["payload"] = payload
        result = self._call("createInvoice", body=body)
        invoice = Invoice.from_api(result)
        logger.info(
            "cryptopay_invoice_created",
            extra={"invoice_id": invoice.invoice_id, "amount": str(amount)},
        )
        return invoice

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        """Статус счёта по id. None если провайдер счёт не вернул."""
        result = self._call("getInvoices", params={"invoice_ids": str(invoice_id)})
        items = result.get("items") or []
        if not items:
            return None
        return Invoice.from_api(items[0])


def verify_webhook_signature(token: str, raw_body: bytes, signature: str | None) -> bool:
    """
    Crypto Pay webhook: HMAC-SHA256(raw_body) с ключом SHA256(api_token), hex.
    """
    if not signature:
        return False
    secret = hashlib.sha256(token.encode("utf-8")).digest()
    expected = hmac.new(secret, raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)
