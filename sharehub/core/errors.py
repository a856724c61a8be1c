"""
Доменные ошибки. CRUD-роуты отдают status_code; функции /functions/v1/* сводят всё к 500 {error},
кроме нехватки токенов (400).
"""
from decimal import Decimal


class ShareHubError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def payload(self) -> dict:
        return {"error": self.message}


class AuthError(ShareHubError):
    """Missing or invalid bearer credential."""

    status_code = 401


class ValidationError(ShareHubError):
    status_code = 400


class RateLimitError(ShareHubError):
    status_code = 429


class ForbiddenError(ShareHubError):
    status_code = 403


class NotFoundError(ShareHubError):
    status_code = 404


class PurchaseNotFoundError(NotFoundError):
    # Счёт оплачен, но локальной записи нет: для вызывающего это сбой проверки, не 404.
    status_code = 500


class InsufficientBalanceError(ShareHubError):
    """Не хватает токенов. Не фатальна: UI предлагает пополнить баланс."""

    status_code = 400

    def __init__(self, required: Decimal, balance: Decimal) -> None:
        super().__init__("Недостаточно токенов")
        self.required = required
        self.balance = balance

    def payload(self) -> dict:
        return {
            "success": False,
            "error": self.message,
            "required": float(self.required),
            "balance": float(self.balance),
        }


class ExternalServiceError(ShareHubError):
    """Payment provider or other upstream failure."""

    status_code = 500
