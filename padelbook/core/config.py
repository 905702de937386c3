import os
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_PATH = os.path.join(os.path.dirname(BASE_DIR), ".env")

LOCAL_HOSTS = ("localhost", "127.0.0.1")


def _env_bool(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def is_local_url(url: str) -> bool:
    return urlparse(url).hostname in LOCAL_HOSTS


def _env_list(key: str, default: str) -> List[str]:
    raw = os.environ.get(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "padelbook"
    db_user: str = "postgres"
    db_password: str = ""
    secret_key: str = "changeme"
    server_port: int = 8000
    app_base_url: str = "http://localhost:8000"
    currency: str = "XOF"
    payment_provider: str = "lomi"
    payments_sandbox: bool = True
    payments_always_success: bool = False
    simulation_success_rate: float = 0.8
    lomi_api_url: str = "https://api.lomi.africa/v1"
    lomi_api_key: Optional[str] = None
    lomi_webhook_secret: Optional[str] = None
    lomi_allowed_providers: List[str] = field(default_factory=lambda: ["WAVE"])
    lomi_product_id: Optional[str] = None
    checkout_expiration_minutes: int = 30
    stripe_api_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    checkout_function_url: str = ""
    session_ttl_minutes: int = 60
    log_level: str = "INFO"

    def __post_init__(self):
        self.app_base_url = self.app_base_url.rstrip("/")
        if not self.checkout_function_url:
            self.checkout_function_url = f"{self.app_base_url}/functions/v1/create-checkout-session"

    @classmethod
    def from_env(cls, env_path: str = ENV_PATH) -> "Settings":
        """Build settings from the process environment, loading `.env` first if present."""
        load_dotenv(env_path, override=False)
        app_base_url = os.environ.get("APP_BASE_URL", "http://localhost:8000")
        local = is_local_url(app_base_url)
        return cls(
            db_host=os.environ.get("DB_HOST", "localhost"),
            db_port=int(os.environ.get("DB_PORT", "5432")),
            db_name=os.environ.get("DB_NAME", "padelbook"),
            db_user=os.environ.get("DB_USER", "postgres"),
            db_password=os.environ.get("DB_PASSWORD", ""),
            secret_key=os.environ.get("SECRET_KEY", "changeme"),
            server_port=int(os.environ.get("SERVER_PORT", "8000")),
            app_base_url=app_base_url,
            currency=os.environ.get("CURRENCY", "XOF").upper(),
            payment_provider=os.environ.get("PAYMENT_PROVIDER", "lomi").lower(),
            payments_sandbox=_env_bool("PAYMENTS_SANDBOX", local),
            payments_always_success=_env_bool("PAYMENTS_ALWAYS_SUCCESS", False),
            simulation_success_rate=float(os.environ.get("SIMULATION_SUCCESS_RATE", "0.8")),
            lomi_api_url=os.environ.get("LOMI_API_URL", "https://api.lomi.africa/v1").rstrip("/"),
            lomi_api_key=os.environ.get("LOMI_API_KEY") or None,
            lomi_webhook_secret=os.environ.get("LOMI_WEBHOOK_SECRET") or None,
            lomi_allowed_providers=_env_list("LOMI_ALLOWED_PROVIDERS", "WAVE"),
            lomi_product_id=os.environ.get("LOMI_PRODUCT_ID") or None,
            checkout_expiration_minutes=int(os.environ.get("CHECKOUT_EXPIRATION_MINUTES", "30")),
            stripe_api_key=os.environ.get("STRIPE_API_KEY") or None,
            stripe_webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET") or None,
            checkout_function_url=os.environ.get("CHECKOUT_FUNCTION_URL", ""),
            session_ttl_minutes=int(os.environ.get("SESSION_TTL_MINUTES", "60")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
