import os


def _normalize_database_url(url: str) -> str:
    # Render/Heroku sometimes provide postgres:// which SQLAlchemy expects as postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _csv(raw: str) -> list:
    return [p.strip() for p in (raw or "").split(",") if p.strip()]


def _delays(raw: str) -> tuple:
    out = []
    for part in _csv(raw):
        try:
            out.append(float(part))
        except ValueError:
            continue
    return tuple(out) or (5.0, 10.0, 15.0)


def _flag(name: str, default: str = "0") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Base directory of the backend (one level above this `datagod` package)
    BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    INSTANCE_DIR = os.path.join(BACKEND_DIR, "instance")

    ENV = (os.getenv("DATAGOD_ENV", "dev") or "dev").strip().lower()
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")

    _default_sqlite_path = os.path.join(INSTANCE_DIR, "datagod.db").replace("\\", "/")
    _db_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL") or f"sqlite:///{_default_sqlite_path}"
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(_db_url)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CORS: comma-separated origins for web builds
    CORS_ORIGINS = _csv(os.getenv("CORS_ORIGINS", ""))

    # Paystack
    PAYSTACK_SECRET_KEY = (os.getenv("PAYSTACK_SECRET_KEY") or "").strip()

    # Upstream data providers
    CODECRAFT_API_URL = (os.getenv("CODECRAFT_API_URL") or "https://api.codecraftnetwork.com/api").rstrip("/")
    CODECRAFT_API_KEY = (os.getenv("CODECRAFT_API_KEY") or "").strip()
    MTN_API_BASE_URL = (os.getenv("MTN_API_BASE_URL") or "https://sykesofficial.net").rstrip("/")
    MTN_API_KEY = (os.getenv("MTN_API_KEY") or "").strip()
    MTN_WEBHOOK_SECRET = (os.getenv("MTN_WEBHOOK_SECRET") or "").strip()
    DATAKAZINA_API_URL = (os.getenv("DATAKAZINA_API_URL") or "https://reseller.dakazinabusinessconsult.com/api/v1").rstrip("/")
    DATAKAZINA_API_KEY = (os.getenv("DATAKAZINA_API_KEY") or "").strip()
    PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))

    # Fulfillment orchestration
    FULFILLMENT_POLL_DELAYS = _delays(os.getenv("FULFILLMENT_POLL_DELAYS", "5,10,15"))
    FULFILLMENT_MAX_ATTEMPTS = int(os.getenv("FULFILLMENT_MAX_ATTEMPTS", "3"))
    FULFILLMENT_ASYNC = _flag("FULFILLMENT_ASYNC", "1")

    # Notifications
    SMS_ENABLED = _flag("SMS_ENABLED")
    TERMII_API_KEY = (os.getenv("TERMII_API_KEY") or "").strip()
    TERMII_SENDER_ID = os.getenv("TERMII_SENDER_ID", "DATAGOD")
    EMAIL_ENABLED = _flag("EMAIL_ENABLED")
    BREVO_API_KEY = (os.getenv("BREVO_API_KEY") or "").strip()
    EMAIL_SENDER = os.getenv("EMAIL_SENDER", "noreply@datagod.app")
    ADMIN_PHONES = _csv(os.getenv("ADMIN_PHONES", ""))
    ADMIN_EMAILS = _csv(os.getenv("ADMIN_EMAILS", ""))
