"""
TokenPurchaseService: покупка токенов через CryptoBot (Crypto Pay).

Ответственности:
- Валидация суммы и rate-limit на создание счетов
- Создание счёта у провайдера и pending-записи TokenPurchase
- Проверка статуса счёта и однократное начисление токенов (pending -> completed)
- Истечение зависших pending-счетов
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

import redis
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sharehub.core.config import settings
from sharehub.core.errors import (
    ExternalServiceError,
    NotFoundError,
    PurchaseNotFoundError,
    RateLimitError,
    ValidationError,
)
from sharehub.models.token_purchase import (
    PURCHASE_COMPLETED,
    PURCHASE_EXPIRED,
    PURCHASE_PENDING,
    TokenPurchase,
)
from sharehub.models.user import Account
from sharehub.services.payments.config import (
    CENT,
    describe_purchase,
    get_max_amount,
    get_min_amount,
    tokens_for_amount,
)
from sharehub.services.payments.cryptopay import CryptoPayClient
from sharehub.utils.metrics import token_purchases_total, tokens_credited_total

logger = logging.getLogger(__name__)


def validate_amount(amount: Decimal | float | str) -> Decimal:
    """
    Проверка суммы покупки до обращения к провайдеру.
    Ровно минимум допустим, на цент меньше: нет.
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("Некорректная сумма")
    if not value.is_finite():
        raise ValidationError("Некорректная сумма")
    if value != value.quantize(CENT):
        raise ValidationError("Сумма указывается с точностью до цента")
    min_amount, max_amount = get_min_amount(), get_max_amount()
    if value < min_amount:
        raise ValidationError(f"Минимальная сумма для покупки - ${min_amount}")
    if value > max_amount:
        raise ValidationError(f"Максимальная сумма для покупки - ${max_amount}")
    return value.quantize(CENT)


class TokenPurchaseService:
    def __init__(
        self,
        db: Session,
        client: CryptoPayClient | None = None,
        redis_client: redis.Redis | None = None,
    ):
        self.db = db
        self.client = client or CryptoPayClient()
        self._redis = redis_client or redis.Redis.from_url(settings.redis_url, decode_responses=True)

    # ------------------------------------------------------------------
    # Invoice creation
    # ------------------------------------------------------------------

    def create_invoice(self, account: Account, amount: Decimal | float | str) -> TokenPurchase:
        """
        Создаёт счёт у провайдера и pending-запись TokenPurchase по его invoice_id.
        Ошибка провайдера -> ExternalServiceError, запись не создаётся.
        """
        value = validate_amount(amount)
        if not self._check_rate_limit(account.id):
            raise RateLimitError("Слишком много счетов. Попробуйте позже.")

        tokens = tokens_for_amount(value)
        logger.info(
            "token_invoice_requested",
            extra={"user_id": account.id, "amount": str(value), "tokens": str(tokens)},
        )
        invoice = self.client.create_invoice(
            amount=value,
            description=describe_purchase(tokens),
            paid_btn_url=settings.public_base_url,
            payload=account.id,
        )
        if not invoice.pay_url:
            raise ExternalServiceError("Failed to create invoice")

        purchase = TokenPurchase(
            user_id=account.id,
            amount=value,
            tokens_amount=tokens,
            payment_id=invoice.invoice_id,
            status=PURCHASE_PENDING,
            pay_url=invoice.pay_url,
        )
        try:
            self.db.add(purchase)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "token_purchase_save_failed",
                extra={"user_id": account.id, "invoice_id": invoice.invoice_id},
            )
            raise
        self.db.refresh(purchase)
        token_purchases_total.labels(event="invoice_created").inc()
        return purchase

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def check_payment(self, invoice_id: str | int, account_id: str | None = None) -> str:
        """
        Спрашивает у провайдера статус счёта.
        paid -> однократное начисление; expired -> локальная запись expired; иначе без побочных эффектов.
        Returns: статус (pending / paid / expired / ...).
        """
        invoice_id = str(invoice_id)
        if account_id is not None:
            purchase = self.get_purchase(invoice_id)
            if purchase is not None and purchase.user_id != account_id:
                raise NotFoundError("Invoice not found")

        invoice = self.client.get_invoice(invoice_id)
        if invoice is None:
            raise ExternalServiceError("Invoice not found")

        if invoice.status == "paid":
            self.settle_paid_invoice(invoice_id)
            return "paid"
        if invoice.status == PURCHASE_EXPIRED:
            self.mark_expired(invoice_id)
        return invoice.status

    def settle_paid_invoice(self, invoice_id: str) -> bool:
        """
        Переводит покупку в completed и начисляет tokens_amount. Idempotent.
        Условный UPDATE ... WHERE status != completed и начисление: одна транзакция БД.
        Returns: True если начисление произошло сейчас, False если уже было.
        """
        purchase = self.get_purchase(invoice_id)
        if purchase is None:
            logger.error("token_purchase_not_found", extra={"invoice_id": invoice_id})
            raise PurchaseNotFoundError("Purchase not found")
        if purchase.status == PURCHASE_COMPLETED:
            return False

        user_id = purchase.user_id
        tokens = Decimal(purchase.tokens_amount)
        try:
            res = self.db.execute(
                update(TokenPurchase)
                .where(
                    TokenPurchase.id == purchase.id,
                    TokenPurchase.status.in_((PURCHASE_PENDING, PURCHASE_EXPIRED)),
                )
                .values(status=PURCHASE_COMPLETED, completed_at=datetime.now(timezone.utc))
            )
            if res.rowcount == 0:
                # Параллельная проверка успела раньше
                self.db.rollback()
                return False
            credited = self.db.execute(
                update(Account)
                .where(Account.id == user_id)
                .values(
                    token_balance=Account.token_balance + tokens,
                    total_purchased=Account.total_purchased + tokens,
                )
            )
            if credited.rowcount == 0:
                self.db.rollback()
                logger.error("token_purchase_account_missing", extra={"invoice_id": invoice_id, "user_id": user_id})
                raise NotFoundError("Profile not found")
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("token_purchase_settle_failed", extra={"invoice_id": invoice_id})
            raise

        token_purchases_total.labels(event="completed").inc()
        tokens_credited_total.inc(float(tokens))
        logger.info(
            "token_purchase_completed",
            extra={"invoice_id": invoice_id, "user_id": user_id, "tokens": str(tokens)},
        )
        return True

    def mark_expired(self, invoice_id: str) -> bool:
        res = self.db.execute(
            update(TokenPurchase)
            .where(TokenPurchase.payment_id == invoice_id, TokenPurchase.status == PURCHASE_PENDING)
            .values(status=PURCHASE_EXPIRED)
        )
        self.db.commit()
        if res.rowcount:
            token_purchases_total.labels(event="expired").inc()
            logger.info("token_purchase_expired", extra={"invoice_id": invoice_id})
        return bool(res.rowcount)

    def expire_stale(self, older_than: datetime) -> int:
        """Pending-счета старше older_than -> expired (без изменения баланса)."""
        res = self.db.execute(
            update(TokenPurchase)
            .where(TokenPurchase.status == PURCHASE_PENDING, TokenPurchase.created_at < older_than)
            .values(status=PURCHASE_EXPIRED)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if res.rowcount:
            token_purchases_total.labels(event="expired").inc(res.rowcount)
        return res.rowcount

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_purchase(self, invoice_id: str) -> TokenPurchase | None:
        return (
            self.db.query(TokenPurchase)
            .filter(TokenPurchase.payment_id == str(invoice_id))
            .one_or_none()
        )

    def list_purchases(self, user_id: str, limit: int = 50) -> list[TokenPurchase]:
        return (
            self.db.query(TokenPurchase)
            .filter(TokenPurchase.user_id == user_id)
            .order_by(TokenPurchase.created_at.desc())
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------
    # Rate-limit (Redis: общий для всех реплик API)
    # ------------------------------------------------------------------

    def _check_rate_limit(self, user_id: str) -> bool:
        key = f"purchase_rate:{user_id}"
        try:
            current = self._redis.incr(key)
            if current == 1:
                self._redis.expire(key, settings.purchase_rate_window_seconds)
            return current <= settings.purchase_rate_limit
        except redis.RedisError as e:
            logger.warning("purchase_rate_limit_redis_error", extra={"error": str(e)})
            return True  # fail open: при недоступности Redis разрешаем покупку
