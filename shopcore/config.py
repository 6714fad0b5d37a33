import os
from dataclasses import dataclass
from pathlib import Path
import json
from typing import Optional


@dataclass
class AppConfig:
    database_url: str
    secret_key: str
    jwt_secret: str
    log_level: str
    currency: str
    razorpay_profile: str
    razorpay_key_id: Optional[str]
    razorpay_key_secret: Optional[str]
    gateway_timeout: float

    @property
    def payments_enabled(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)


def validate_currency(value: Optional[str]) -> str:
    v = (value or "INR").strip().upper()
    if len(v) != 3:
        raise ValueError("Invalid currency code: expected ISO4217 length 3")
    return v


def _load_settings_file() -> dict:
    try:
        path = Path(__file__).resolve().parents[1] / "data" / "settings.json"
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        pass
    return {}


def _lookup(settings: dict, key: str, default: Optional[str] = None) -> Optional[str]:
    return settings.get(key) or os.getenv(key) or default


def razorpay_credentials(settings: dict, profile: str) -> tuple:
    """Resolve key id/secret for the active profile, falling back to the unsuffixed keys."""
    suffix = profile.upper()
    key_id = _lookup(settings, f"RAZORPAY_KEY_ID_{suffix}") or _lookup(settings, "RAZORPAY_KEY_ID")
    key_secret = _lookup(settings, f"RAZORPAY_KEY_SECRET_{suffix}") or _lookup(settings, "RAZORPAY_KEY_SECRET")
    return key_id, key_secret


def load_env() -> AppConfig:
    # 設定以 data/settings.json 為主，環境變數為後備
    s = _load_settings_file()
    database_url = os.getenv("DATABASE_URL", "sqlite:///data/app.db")
    secret_key = _lookup(s, "SECRET_KEY", "dev_secret")
    jwt_secret = _lookup(s, "JWT_SECRET", secret_key)
    log_level = _lookup(s, "LOG_LEVEL", "INFO")
    currency = validate_currency(_lookup(s, "CURRENCY"))
    profile = (_lookup(s, "RAZORPAY_PROFILE", "test")).lower()
    key_id, key_secret = razorpay_credentials(s, profile)
    timeout = float(_lookup(s, "GATEWAY_TIMEOUT", "10"))
    if timeout <= 0:
        raise ValueError("GATEWAY_TIMEOUT must be > 0")
    return AppConfig(
        database_url=database_url,
        secret_key=secret_key,
        jwt_secret=jwt_secret,
        log_level=log_level,
        currency=currency,
        razorpay_profile=profile,
        razorpay_key_id=key_id,
        razorpay_key_secret=key_secret,
        gateway_timeout=timeout,
    )
