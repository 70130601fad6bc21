import os
from dataclasses import dataclass
from pathlib import Path
import json
from typing import Optional


@dataclass
class AppConfig:
    database_url: str
    secret_key: str
    log_level: str
    environment: str
    currency: str
    frontend_url: str
    webhook_url: str
    gateway_access_token: str
    gateway_base_url: str
    gateway_timeout: float
    statement_descriptor: str
    port: int

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def return_url(self, kind: str, order_id: int) -> str:
        base = self.frontend_url.rstrip("/")
        return f"{base}/{kind}?order_id={order_id}"


RETURN_KINDS = ("success", "failure", "pending")
SETTINGS_FILE_KEYS = {"FRONTEND_URL", "CURRENCY", "STATEMENT_DESCRIPTOR"}


def validate_currency(value: Optional[str]) -> str:
    v = (value or "MXN").strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def _load_settings_file(path: Optional[Path] = None) -> dict:
    path = path or Path(os.getenv("STOREFRONT_SETTINGS_FILE", "data/settings.json"))
    if not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        return {}
    # secrets never come from the settings file
    return {k: v for k, v in data.items() if k in SETTINGS_FILE_KEYS}


def load_env(settings_file: Optional[Path] = None) -> AppConfig:
    # data/settings.json wins for non-secret keys, environment is the fallback
    s = _load_settings_file(settings_file)
    port = int(os.getenv("PORT", "3001"))
    database_url = os.getenv("DATABASE_URL", "sqlite:///data/store.db")
    secret_key = os.getenv("SECRET_KEY", "dev_secret")
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    environment = (os.getenv("APP_ENV") or os.getenv("FLASK_ENV") or "development").strip().lower()
    currency = validate_currency(s.get("CURRENCY") or os.getenv("CURRENCY"))
    frontend_url = (s.get("FRONTEND_URL") or os.getenv("FRONTEND_URL") or "http://localhost:4321").rstrip("/")
    webhook_url = os.getenv("WEBHOOK_URL") or f"http://localhost:{port}/api/webhook"
    descriptor = s.get("STATEMENT_DESCRIPTOR") or os.getenv("STATEMENT_DESCRIPTOR") or "TIENDA ONLINE"
    return AppConfig(
        database_url=database_url,
        secret_key=secret_key,
        log_level=log_level,
        environment=environment,
        currency=currency,
        frontend_url=frontend_url,
        webhook_url=webhook_url,
        gateway_access_token=os.getenv("MERCADOPAGO_ACCESS_TOKEN", ""),
        gateway_base_url=os.getenv("MERCADOPAGO_API_URL", "https://api.mercadopago.com").rstrip("/"),
        gateway_timeout=float(os.getenv("MERCADOPAGO_TIMEOUT", "10")),
        statement_descriptor=descriptor,
        port=port,
    )
