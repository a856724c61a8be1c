"""
Опрос статуса счёта с фиксированным интервалом и ограниченным числом попыток.
Запасной путь к webhook: по умолчанию 60 попыток раз в 5 секунд (~5 минут).
"""
from __future__ import annotations

import logging
import random
import threading
from typing import Callable

from pydantic import BaseModel

from sharehub.services.payments.config import (
    get_poll_interval,
    get_poll_jitter,
    get_poll_max_attempts,
)

logger = logging.getLogger(__name__)

POLL_PAID = "paid"
POLL_TIMEOUT = "timeout"
POLL_CANCELLED = "cancelled"

# Статусы провайдера, после которых ждать оплаты бессмысленно
TERMINAL_STATUSES = frozenset({"expired"})

TIMEOUT_MESSAGE = "Время ожидания истекло. Проверьте статус платежа вручную"


class PollResult(BaseModel):
    status: str
    attempts: int
    message: str | None = None

    model_config = {"frozen": True}


class PaymentPoller:
    """
    check(invoice_id) -> статус провайдера. Ошибка проверки не прерывает опрос:
    следующая попытка: через обычный интервал.
    Отмена: cancel() из другого потока (stop_event).
    """

    def __init__(
        self,
        check: Callable[[str], str],
        interval: float | None = None,
        max_attempts: int | None = None,
        jitter: float | None = None,
        stop_event: threading.Event | None = None,
        wait: Callable[[float], bool] | None = None,
    ) -> None:
        self._check = check
        self.interval = get_poll_interval() if interval is None else interval
        self.max_attempts = get_poll_max_attempts() if max_attempts is None else max_attempts
        self.jitter = get_poll_jitter() if jitter is None else jitter
        self._stop = stop_event or threading.Event()
        # wait(delay) -> True если опрос отменён
        self._wait = wait or self._stop.wait

    def cancel(self) -> None:
        self._stop.set()

    def _delay(self) -> float:
        if self.jitter <= 0:
            return self.interval
        return self.interval + random.uniform(0, self.jitter)

    def poll(self, invoice_id: str) -> PollResult:
        for attempt in range(1, self.max_attempts + 1):
            if self._wait(self._delay()) or self._stop.is_set():
                logger.info("payment_poll_cancelled", extra={"invoice_id": invoice_id, "attempt": attempt})
                return PollResult(status=POLL_CANCELLED, attempts=attempt - 1)
            try:
                status = self._check(invoice_id)
            except Exception as e:
                logger.warning(
                    "payment_poll_check_failed",
                    extra={"invoice_id": invoice_id, "attempt": attempt, "error": str(e)},
                )
                continue
            if status == POLL_PAID:
                return PollResult(status=POLL_PAID, attempts=attempt)
            if status in TERMINAL_STATUSES:
                return PollResult(status=status, attempts=attempt)

        logger.info("payment_poll_timeout", extra={"invoice_id": invoice_id, "attempt": self.max_attempts})
        return PollResult(status=POLL_TIMEOUT, attempts=self.max_attempts, message=TIMEOUT_MESSAGE)
