"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from decimal import Decimal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: через запятую. Пусто или "*" = разрешить всем (контракт функций требует Allow-Origin: *).
    cors_origins: str = "*"
    # Публичный адрес API (кнопка «callback» в счёте CryptoBot, ссылки на файлы).
    public_base_url: str = "http://localhost:8000"

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # AUTH (JWT bearer)
    # ===========================================
    jwt_secret_key: str  # Required, no default
    jwt_algorithm: str = "HS256"
    jwt_ttl_seconds: int = 7 * 24 * 3600
    bcrypt_rounds: int = 12
    username_min_length: int = 3
    username_max_length: int = 32
    password_min_length: int = 6
    # Сколько живёт отметка «пароль к контенту введён»
    content_password_grant_ttl_seconds: int = 24 * 3600

    # ===========================================
    # CRYPTO PAY (CryptoBot)
    # ===========================================
    cryptopay_api_token: str  # Required, no default
    cryptopay_api_url: str = "https://pay.crypt.bot/api"
    cryptopay_fiat: str = "USD"
    cryptopay_timeout: float = 15.0

    # ===========================================
    # TOKENS
    # ===========================================
    # Курс: 1 единица фиата = 10 токенов
    tokens_per_fiat_unit: Decimal = Decimal("10")
    purchase_min_amount: Decimal = Decimal("0.25")
    purchase_max_amount: Decimal = Decimal("1000")
    purchase_rate_limit: int = 5  # счетов на аккаунт за окно
    purchase_rate_window_seconds: int = 60

    # ===========================================
    # PAYMENT SETTLEMENT POLLING (fallback to webhook)
    # ===========================================
    payment_poll_interval_seconds: float = 5.0
    payment_poll_max_attempts: int = 60
    payment_poll_jitter_seconds: float = 0.0
    # Неоплаченные pending-счета старше этого срока помечаются expired
    purchase_pending_ttl_hours: int = 24
    # Ставить ли Celery-задачу опроса после создания счёта
    payment_watcher_enabled: bool = True

    # ===========================================
    # REALTIME (Redis pub/sub)
    # ===========================================
    realtime_enabled: bool = True

    # ===========================================
    # STORAGE (uploads)
    # ===========================================
    storage_base_path: str = "/data/uploads"
    public_media_path: str = "/uploads"
    max_file_size_mb: int = 50
    allowed_image_extensions: str = ".jpg,.jpeg,.png,.webp,.gif"
    allowed_video_extensions: str = ".mp4,.webm,.mov"

    # ===========================================
    # INTERNAL SERVICES
    # ===========================================
    http_client_timeout: float = 10.0

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("allowed_image_extensions", "allowed_video_extensions")
    @classmethod
    def parse_extensions(cls, v: str) -> str:
        """Validate extensions format."""
        return v.lower().strip()

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        """Ensure JWT secret is reasonably secure."""
        if len(v) < 16:
            raise ValueError("jwt_secret_key must be at least 16 characters")
        if v in ("changeme", "secret", "password"):
            raise ValueError("jwt_secret_key is too weak, please change it")
        return v

    @model_validator(mode="after")
    def check_purchase_bounds(self) -> "Settings":
        if self.purchase_min_amount <= 0:
            raise ValueError("purchase_min_amount must be positive")
        if self.purchase_min_amount > self.purchase_max_amount:
            raise ValueError("purchase_min_amount must not exceed purchase_max_amount")
        return self

    @property
    def allowed_image_extensions_set(self) -> set[str]:
        return {ext.strip() for ext in self.allowed_image_extensions.split(",") if ext.strip()}

    @property
    def allowed_video_extensions_set(self) -> set[str]:
        return {ext.strip() for ext in self.allowed_video_extensions.split(",") if ext.strip()}

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Игнорировать неизвестные поля из .env


settings = Settings()
