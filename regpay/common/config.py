"""Central environment-driven settings for the registration payments service.

The process loads this once at startup. Gateway credentials, URLs and the
pipeline's time budgets are all controlled by environment variables (see
`.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


PAYHERE_HOSTS = {
    "sandbox": "https://sandbox.payhere.lk",
    "live": "https://www.payhere.lk",
}


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "registration-payments"
    log_level: str = "INFO"
    postgres_dsn: str
    api_key: str
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"

    payhere_mode: str = "sandbox"
    payhere_merchant_id: str
    payhere_merchant_secret: str
    payhere_app_id: str = ""
    payhere_app_secret: str = ""
    payhere_currency: str = "LKR"
    payhere_notify_url: str = "http://localhost:8000/competitions/payment/notify"
    payhere_return_url: str = "http://localhost:8000/competitions/payment/return"
    payhere_cancel_url: str = "http://localhost:8000/competitions/payment/return"
    frontend_url: str = "http://localhost:3000"

    notification_api_url: str = ""
    notification_timeout_seconds: float = 5.0
    gateway_timeout_seconds: float = 5.0
    webhook_deadline_seconds: float = 8.0

    code_max_attempts: int = 10
    cart_expiry_minutes: int = 30
    cart_expiry_disabled: bool = False
    fail_payment_on_invalid_signature: bool = True
    pending_sweep_age_seconds: int = 600
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def payhere_host(self) -> str:
        return PAYHERE_HOSTS.get(self.payhere_mode, PAYHERE_HOSTS["sandbox"])

    @property
    def payhere_checkout_url(self) -> str:
        return f"{self.payhere_host}/pay/checkout"


settings = CommonSettings()
