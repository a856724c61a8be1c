"""
Celery-задачи оплаты: таймаут наблюдения -> уведомление без изменения баланса.
Задача закрывает свою сессию в finally; в тестах она общая с фикстурой, поэтому close подменяется.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

from sharehub.models.notification import Notification
from sharehub.models.token_purchase import PURCHASE_EXPIRED, PURCHASE_PENDING, TokenPurchase
from sharehub.services.notifications.service import TYPE_PAYMENT_TIMEOUT
from sharehub.services.payments.polling import POLL_PAID, POLL_TIMEOUT, PollResult
from sharehub.services.payments.service import TokenPurchaseService
from sharehub.workers.tasks.payments import expire_stale_purchases, watch_invoice


def _purchase(db, account, payment_id="700", created_at=None):
    purchase = TokenPurchase(
        user_id=account.id,
        amount=Decimal("1"),
        tokens_amount=Decimal("10"),
        payment_id=payment_id,
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(purchase)
    db.commit()
    return purchase


class TestWatchInvoice:
    def _service(self, db):
        redis_client = MagicMock()
        redis_client.incr.return_value = 1
        return TokenPurchaseService(db, client=MagicMock(), redis_client=redis_client)

    def test_timeout_notifies_without_mutation(self, db, make_account):
        account = make_account(balance="1")
        _purchase(db, account)
        poller = MagicMock()
        poller.return_value.poll.return_value = PollResult(status=POLL_TIMEOUT, attempts=60)

        with patch("sharehub.workers.tasks.payments.SessionLocal", return_value=db), patch.object(db, "close"), \
                patch("sharehub.workers.tasks.payments.TokenPurchaseService", return_value=self._service(db)), \
                patch("sharehub.workers.tasks.payments.PaymentPoller", poller):
            result = watch_invoice("700", account.id)

        assert result == {"ok": True, "status": POLL_TIMEOUT, "attempts": 60}
        db.refresh(account)
        assert Decimal(account.token_balance) == Decimal("1")
        purchase = db.query(TokenPurchase).filter(TokenPurchase.payment_id == "700").one()
        assert purchase.status == PURCHASE_PENDING
        notes = db.query(Notification).filter(Notification.user_id == account.id).all()
        assert [n.type for n in notes] == [TYPE_PAYMENT_TIMEOUT]

    def test_paid_no_notification(self, db, make_account):
        account = make_account()
        _purchase(db, account)
        poller = MagicMock()
        poller.return_value.poll.return_value = PollResult(status=POLL_PAID, attempts=2)

        with patch("sharehub.workers.tasks.payments.SessionLocal", return_value=db), patch.object(db, "close"), \
                patch("sharehub.workers.tasks.payments.TokenPurchaseService", return_value=self._service(db)), \
                patch("sharehub.workers.tasks.payments.PaymentPoller", poller):
            result = watch_invoice("700", account.id)

        assert result["status"] == POLL_PAID
        assert db.query(Notification).count() == 0

    def test_unknown_purchase(self, db):
        with patch("sharehub.workers.tasks.payments.SessionLocal", return_value=db), patch.object(db, "close"), \
                patch("sharehub.workers.tasks.payments.TokenPurchaseService", return_value=self._service(db)):
            assert watch_invoice("missing", "u1") == {"ok": False, "error": "purchase_not_found"}


class TestExpireStale:
    def test_sweep(self, db, make_account):
        account = make_account()
        _purchase(db, account, payment_id="old", created_at=datetime.now(timezone.utc) - timedelta(days=3))
        _purchase(db, account, payment_id="fresh")

        with patch("sharehub.workers.tasks.payments.SessionLocal", return_value=db), patch.object(db, "close"):
            assert expire_stale_purchases() == {"ok": True, "expired": 1}

        statuses = {p.payment_id: p.status for p in db.query(TokenPurchase).all()}
        assert statuses == {"old": PURCHASE_EXPIRED, "fresh": PURCHASE_PENDING}
