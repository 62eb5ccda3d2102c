from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    BUSINESS_NAME: str = "CleanCar"
    BUSINESS_TIMEZONE: str = "Europe/Copenhagen"

    STORE_PROVIDER: str = "memory"
    STORE_DATA_DIR: str = "./data/store"

    MAX_ACTIVE_APPOINTMENTS: int = 3
    BOOKING_WINDOW_MONTHS: int = 3
    EXTENDED_BOOKING_WINDOW_MONTHS: int = 6

    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    PAYMENT_CURRENCY: str = "dkk"
    MOCK_PAYMENTS_WEBHOOK_SECRET: str = "dev-webhook-secret"

    PAYMENT_RETRY_ATTEMPTS: int = 3
    PAYMENT_RETRY_BACKOFF_SECONDS: float = 1.0
    PURCHASE_CLAIM_TTL_SECONDS: int = 120

    EMAIL_API_URL: str = "https://api.example-mail.com/v1/send"
    EMAIL_API_KEY: str | None = None
    EMAIL_FROM: str = "noreply@cleancar.com"
    COMPANY_EMAIL: str | None = None
    NOTIFICATIONS_ENABLED: bool = False


settings = Settings()
