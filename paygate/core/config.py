"""
Application configuration.
All settings are loaded from environment variables (or a .env file).
"""
import os

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEV_JWT_SECRET = "change_me_to_a_long_random_secret"

PAYPAL_BASE_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}


def _default_public_base_url() -> str:
    # Render exposes the public hostname of the service
    return os.environ.get("RENDER_EXTERNAL_URL") or "http://localhost:3001"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Everything has a local-development default; app_env=production
    refuses the development signing secret and empty PayPal credentials.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: comma-separated (e.g. https://shop.example.com). Empty = local defaults.
    cors_origins: str = ""
    # Base URL used to build download links returned by /verify
    public_base_url: str = _default_public_base_url()

    # ===========================================
    # PAYMENT PROCESSOR (PayPal REST)
    # ===========================================
    paypal_env: str = "sandbox"  # sandbox, live
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_timeout: float = 10.0

    # ===========================================
    # PRODUCT
    # ===========================================
    product_name: str = "email_summarizer"
    # Compared with the processor's value as a string: use its canonical format
    product_amount: str = "5.00"
    product_currency: str = "EUR"

    # ===========================================
    # ASSET DELIVERY
    # ===========================================
    asset_filename: str = "Email_Summarizer.zip"
    # Remote origin for the asset. Empty = stream asset_file_path instead.
    asset_origin_url: str = ""
    asset_file_path: str = "files/Email_Summarizer.zip"
    origin_timeout: float = 30.0
    stream_chunk_size: int = 64 * 1024

    # ===========================================
    # DOWNLOAD TOKENS
    # ===========================================
    jwt_secret_key: str = DEV_JWT_SECRET
    download_token_ttl_seconds: int = 3600  # 1 hour
    consumption_sweep_interval_seconds: int = 60

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5
    log_level: str = "INFO"

    @field_validator("paypal_env")
    @classmethod
    def validate_paypal_env(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in PAYPAL_BASE_URLS:
            raise ValueError(f"paypal_env must be one of {sorted(PAYPAL_BASE_URLS)}")
        return v

    @field_validator("product_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("public_base_url", "asset_origin_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @field_validator("download_token_ttl_seconds", "stream_chunk_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret(cls, v: str, info) -> str:
        """Ensure the signing secret is reasonably secure in production."""
        if info.data.get("app_env") == "production":
            if v == DEV_JWT_SECRET or len(v) < 32:
                raise ValueError("jwt_secret_key must be a random string of at least 32 characters")
        return v

    @field_validator("paypal_client_secret")
    @classmethod
    def validate_paypal_credentials(cls, v: str, info) -> str:
        if info.data.get("app_env") == "production" and not (v and info.data.get("paypal_client_id")):
            raise ValueError("paypal_client_id and paypal_client_secret are required in production")
        return v

    @property
    def paypal_base_url(self) -> str:
        return PAYPAL_BASE_URLS[self.paypal_env]

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
