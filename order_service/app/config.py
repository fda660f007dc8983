import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .errors import ConfigError


class SellerDetails(BaseModel):
    """Statutory identifiers printed on every invoice."""
    model_config = ConfigDict(frozen=True)

    name: str = "VITALIME AGRO TECH PRIVATE LIMITED"
    address_lines: tuple = (
        "5/109, Meenakshi Nagar, Alampatti",
        "Thoothukudi, TAMIL NADU, 628503",
        "INDIA",
    )
    pan: str = "AAJCV8259L"
    gst_registration: str = "33AAJCV8259L1ZN"
    fssai_license: str = "12422029000832"


class Settings(BaseModel):
    """Process-wide configuration. Built once by load_settings() and frozen."""
    model_config = ConfigDict(frozen=True)

    database_url: str = "sqlite:///./vitalimes.db"
    frontend_url: str = ""
    public_base_url: str = ""

    smtp_host: Optional[str] = None
    smtp_port: int = 465
    smtp_secure: bool = True
    smtp_timeout: float = 30.0
    email_user: Optional[str] = None
    email_pass: Optional[str] = None

    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None
    razorpay_base_url: str = "https://api.razorpay.com/v1"
    gateway_timeout: float = 10.0

    rabbitmq_host: Optional[str] = None

    chrome_bin: str = "chromium"
    render_timeout: float = 60.0
    invoice_dir: str = "invoices"

    log_level: str = "INFO"
    log_json: bool = False

    seller: SellerDetails = SellerDetails()

    @property
    def mail_enabled(self) -> bool:
        return bool(self.smtp_host)

    @property
    def gateway_enabled(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    def validate_presence(self):
        """Reject half-configured features. Returns self so it chains."""
        missing = []
        if self.smtp_host and not (self.email_user and self.email_pass):
            missing += [name for name, value in (("EMAIL_USER", self.email_user),
                                                 ("EMAIL_PASS", self.email_pass)) if not value]
        if bool(self.razorpay_key_id) != bool(self.razorpay_key_secret):
            missing.append("RAZORPAY_KEY_SECRET" if self.razorpay_key_id else "RAZORPAY_KEY_ID")
        if not self.database_url:
            missing.append("DATABASE_URL")
        if missing:
            raise ConfigError(f"Missing configuration: {', '.join(missing)}")
        return self


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ=None) -> Settings:
    """Read settings from the environment, validate them and return a frozen copy."""
    env = os.environ if environ is None else environ
    values = {
        "database_url": env.get("DATABASE_URL", "sqlite:///./vitalimes.db"),
        "frontend_url": env.get("FRONTEND_URL", "").rstrip("/"),
        "public_base_url": env.get("PUBLIC_BASE_URL", "").rstrip("/"),
        "smtp_host": env.get("SMTP_HOST") or None,
        "smtp_port": int(env.get("SMTP_PORT") or 465),
        "smtp_secure": _flag(env.get("SMTP_SECURE"), True),
        "smtp_timeout": float(env.get("SMTP_TIMEOUT") or 30),
        "email_user": env.get("EMAIL_USER") or None,
        "email_pass": env.get("EMAIL_PASS") or None,
        "razorpay_key_id": env.get("RAZORPAY_KEY_ID") or None,
        "razorpay_key_secret": env.get("RAZORPAY_KEY_SECRET") or None,
        "razorpay_base_url": env.get("RAZORPAY_BASE_URL", "https://api.razorpay.com/v1").rstrip("/"),
        "rabbitmq_host": env.get("RABBITMQ_HOST") or None,
        "chrome_bin": env.get("CHROME_BIN", "chromium"),
        "render_timeout": float(env.get("RENDER_TIMEOUT") or 60),
        "invoice_dir": env.get("INVOICE_DIR", "invoices"),
        "log_level": env.get("LOG_LEVEL", "INFO").upper(),
        "log_json": _flag(env.get("LOG_JSON"), False),
    }
    return Settings(**values).validate_presence()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
