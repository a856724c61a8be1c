"""
Celery tasks: серверное наблюдение за оплатой счёта (запасной путь к webhook)
и периодическое истечение неоплаченных pending-счетов.
"""
import logging
from datetime import datetime, timedelta, timezone

from sharehub.core.celery_app import celery_app
from sharehub.core.config import settings
from sharehub.db.session import SessionLocal
from sharehub.services.notifications.service import TYPE_PAYMENT_TIMEOUT, NotificationService
from sharehub.services.payments.polling import POLL_TIMEOUT, TIMEOUT_MESSAGE, PaymentPoller
from sharehub.services.payments.service import TokenPurchaseService
from sharehub.utils.metrics import token_purchases_total

logger = logging.getLogger(__name__)


@celery_app.task(
    name="sharehub.workers.tasks.payments.watch_invoice",
    time_limit=900,
    soft_time_limit=880,
)
def watch_invoice(invoice_id: str, user_id: str) -> dict:
    """Опрашивает провайдера до paid / expired / таймаута. Таймаут не трогает баланс."""
    db = SessionLocal()
    service = TokenPurchaseService(db)
    try:
        purchase = service.get_purchase(invoice_id)
        if purchase is None:
            logger.error("watch_invoice_purchase_not_found", extra={"invoice_id": invoice_id})
            return {"ok": False, "error": "purchase_not_found"}

        result = PaymentPoller(service.check_payment).poll(invoice_id)
        if result.status == POLL_TIMEOUT:
            token_purchases_total.labels(event="timeout").inc()
            NotificationService(db).notify(
                user_id,
                TYPE_PAYMENT_TIMEOUT,
                f"{TIMEOUT_MESSAGE} (счёт {invoice_id})",
            )
            db.commit()
        logger.info(
            "watch_invoice_finished",
            extra={"invoice_id": invoice_id, "user_id": user_id, "status": result.status, "attempt": result.attempts},
        )
        return {"ok": True, "status": result.status, "attempts": result.attempts}
    finally:
        service.client.close()
        db.close()


@celery_app.task(name="sharehub.workers.tasks.payments.expire_stale_purchases")
def expire_stale_purchases() -> dict:
    db = SessionLocal()
    try:
        cutoff = datetime.now(timezone.utc) - timedelta(hours=settings.purchase_pending_ttl_hours)
        expired = TokenPurchaseService(db).expire_stale(cutoff)
        if expired:
            logger.info("stale_purchases_expired", extra={"count": expired})
        return {"ok": True, "expired": expired}
    finally:
        db.close()
