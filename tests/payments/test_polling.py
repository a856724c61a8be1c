"""PaymentPoller: фиксированный интервал, ограничение попыток, отмена."""
import threading
import unittest
from unittest.mock import MagicMock

from sharehub.services.payments.polling import (
    POLL_CANCELLED,
    POLL_PAID,
    POLL_TIMEOUT,
    TIMEOUT_MESSAGE,
    PaymentPoller,
)


class _Clock:
    """Фиктивное ожидание: копит задержки, не спит."""

    def __init__(self):
        self.delays = []

    def __call__(self, delay):
        self.delays.append(delay)
        return False


class TestPaymentPoller(unittest.TestCase):
    def test_never_paid_times_out_after_max_attempts(self):
        check = MagicMock(return_value="pending")
        clock = _Clock()
        poller = PaymentPoller(check, interval=5.0, max_attempts=60, jitter=0.0, wait=clock)

        result = poller.poll("1001")

        self.assertEqual(result.status, POLL_TIMEOUT)
        self.assertEqual(result.attempts, 60)
        self.assertEqual(result.message, TIMEOUT_MESSAGE)
        self.assertEqual(check.call_count, 60)
        self.assertEqual(clock.delays, [5.0] * 60)
        self.assertEqual(sum(clock.delays), 300.0)

    def test_paid_stops_early(self):
        check = MagicMock(side_effect=["pending", "pending", "paid"])
        poller = PaymentPoller(check, interval=5.0, max_attempts=60, jitter=0.0, wait=_Clock())

        result = poller.poll("1001")

        self.assertEqual(result.status, POLL_PAID)
        self.assertEqual(result.attempts, 3)
        self.assertIsNone(result.message)

    def test_expired_is_terminal(self):
        check = MagicMock(side_effect=["pending", "expired"])
        poller = PaymentPoller(check, interval=1.0, max_attempts=10, jitter=0.0, wait=_Clock())

        result = poller.poll("1001")

        self.assertEqual(result.status, "expired")
        self.assertEqual(check.call_count, 2)

    def test_check_errors_do_not_stop_polling(self):
        check = MagicMock(side_effect=[RuntimeError("network"), RuntimeError("network"), "paid"])
        poller = PaymentPoller(check, interval=1.0, max_attempts=5, jitter=0.0, wait=_Clock())

        result = poller.poll("1001")

        self.assertEqual(result.status, POLL_PAID)
        self.assertEqual(result.attempts, 3)

    def test_cancel_stops_before_next_check(self):
        stop = threading.Event()
        check = MagicMock(return_value="pending")

        def wait(delay):
            if check.call_count == 2:
                stop.set()
            return stop.is_set()

        poller = PaymentPoller(check, interval=1.0, max_attempts=60, jitter=0.0, stop_event=stop, wait=wait)
        result = poller.poll("1001")

        self.assertEqual(result.status, POLL_CANCELLED)
        self.assertEqual(result.attempts, 2)
        self.assertEqual(check.call_count, 2)

    def test_jitter_bounds(self):
        clock = _Clock()
        poller = PaymentPoller(MagicMock(return_value="pending"), interval=5.0, max_attempts=20, jitter=1.0, wait=clock)
        poller.poll("1001")
        for delay in clock.delays:
            self.assertGreaterEqual(delay, 5.0)
            self.assertLessEqual(delay, 6.0)

    def test_defaults_from_settings(self):
        poller = PaymentPoller(MagicMock())
        self.assertEqual(poller.interval, 5.0)
        self.assertEqual(poller.max_attempts, 60)
