"""
Функции /functions/v1/*: покупка токенов через CryptoBot и разблокировка контента за токены.

Контракт: POST с JSON, Authorization: Bearer <token>; 200 -> {success, ...}, иначе {error} с кодом 500.
Исключение: нехватка токенов -> 400 {success: false, error, required, balance}.
Webhook CryptoBot живёт на отдельном роутере с обычными кодами ответа.
CORS preflight отвечает CORSMiddleware (Allow-Origin: *).
"""
import json
import logging
from typing import Callable

from fastapi import APIRouter, Body, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from sqlalchemy.orm import Session

from sharehub.api.deps import get_current_account
from sharehub.core.config import settings
from sharehub.core.errors import AuthError, InsufficientBalanceError, ShareHubError, ValidationError
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.schemas.functions import (
    ACTION_CHECK_PAYMENT,
    ACTION_CREATE_INVOICE,
    CryptobotPaymentIn,
    InvoiceCreatedOut,
    PaymentStatusOut,
    SpendTokensIn,
    SpendTokensOut,
)
from sharehub.services.payments.cryptopay import verify_webhook_signature
from sharehub.services.payments.service import TokenPurchaseService
from sharehub.services.tokens.service import TokenSpendService

logger = logging.getLogger(__name__)


class FunctionRoute(APIRoute):
    """Ошибки функций: 500 {error}; InsufficientBalanceError отдаётся как есть (400)."""

    def get_route_handler(self) -> Callable:
        handler = super().get_route_handler()

        async def function_handler(request: Request) -> Response:
            try:
                return await handler(request)
            except InsufficientBalanceError as e:
                return JSONResponse(status_code=e.status_code, content=e.payload())
            except ShareHubError as e:
                logger.warning(
                    "function_failed",
                    extra={"path": request.url.path, "error": e.message, "status_code": e.status_code},
                )
                return JSONResponse(status_code=500, content={"error": e.message})
            except RequestValidationError:
                logger.warning("function_bad_request", extra={"path": request.url.path})
                return JSONResponse(status_code=500, content={"error": "Invalid request body"})

        return function_handler


router = APIRouter(prefix="/functions/v1", tags=["functions"], route_class=FunctionRoute)
webhook_router = APIRouter(prefix="/functions/v1", tags=["functions"])

SIGNATURE_HEADER = "crypto-pay-api-signature"


def get_purchase_service(db: Session = Depends(get_db)) -> TokenPurchaseService:
    return TokenPurchaseService(db)


def get_spend_service(db: Session = Depends(get_db)) -> TokenSpendService:
    return TokenSpendService(db)


def _enqueue_watcher(invoice_id: str, user_id: str) -> None:
    """Серверный опрос счёта; недоступный брокер не ломает создание счёта."""
    if not settings.payment_watcher_enabled:
        return
    from sharehub.workers.tasks.payments import watch_invoice

    try:
        watch_invoice.delay(invoice_id, user_id)
    except Exception as e:
        logger.warning(
            "payment_watcher_enqueue_failed",
            extra={"invoice_id": invoice_id, "user_id": user_id, "error": str(e)},
        )


@router.post("/cryptobot-payment")
def cryptobot_payment(
    body: CryptobotPaymentIn = Body(...),
    account: Account = Depends(get_current_account),
    service: TokenPurchaseService = Depends(get_purchase_service),
) -> dict:
    if body.action == ACTION_CREATE_INVOICE:
        if body.amount is None:
            raise ValidationError("Некорректная сумма")
        purchase = service.create_invoice(account, body.amount)
        _enqueue_watcher(purchase.payment_id, account.id)
        return InvoiceCreatedOut(invoice_url=purchase.pay_url, invoice_id=purchase.payment_id).model_dump()

    if body.action == ACTION_CHECK_PAYMENT:
        if body.invoice_id is None or str(body.invoice_id).strip() == "":
            raise ValidationError("invoiceId is required")
        status = service.check_payment(body.invoice_id, account_id=account.id)
        return PaymentStatusOut(status=status).model_dump()

    raise ValidationError("Invalid action")


@webhook_router.post("/cryptobot-payment/webhook")
async def cryptobot_webhook(request: Request, db: Session = Depends(get_db)) -> dict:
    """
    Push-уведомление Crypto Pay. Подпись: HMAC-SHA256 тела с ключом SHA256(api token).
    Обрабатывается только invoice_paid; начисление идемпотентно.
    """
    raw = await request.body()
    if not verify_webhook_signature(settings.cryptopay_api_token, raw, request.headers.get(SIGNATURE_HEADER)):
        logger.warning("cryptopay_webhook_bad_signature")
        raise AuthError("Invalid signature")
    try:
        update = json.loads(raw)
    except ValueError:
        raise ValidationError("Invalid JSON")

    if update.get("update_type") != "invoice_paid":
        return {"ok": True}
    invoice_id = str((update.get("payload") or {}).get("invoice_id") or "")
    if not invoice_id:
        raise ValidationError("invoice_id is required")

    service = TokenPurchaseService(db)
    credited = await run_in_threadpool(service.settle_paid_invoice, invoice_id)
    logger.info("cryptopay_webhook_processed", extra={"invoice_id": invoice_id, "status": "credited" if credited else "noop"})
    return {"ok": True}


@router.post("/spend-tokens")
def spend_tokens(
    body: SpendTokensIn = Body(...),
    account: Account = Depends(get_current_account),
    service: TokenSpendService = Depends(get_spend_service),
) -> dict:
    result = service.spend(account.id, post_id=body.post_id, media_id=body.media_id)
    out = SpendTokensOut(new_balance=float(result.new_balance), message=result.message)
    return out.model_dump(by_alias=True, exclude_none=True)
