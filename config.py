import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() not in ("0", "false", "no", "off")


class Config:
    # --------------------------
    # 🔹 Flask Configuration
    # --------------------------
    # Empty means create_app() generates a per-process secret.
    SECRET_KEY = os.environ.get("SECRET_KEY", "")
    PROPAGATE_EXCEPTIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    try:
        PORT = int(os.environ.get("PORT", "5000"))
    except ValueError:
        PORT = 5000
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")
    # Trust X-Forwarded-* headers when running behind a reverse proxy (nginx/caddy/traefik)
    TRUST_PROXY = _flag("TRUST_PROXY", "0")

    # --------------------------
    # 🔹 Admin identity (single account)
    # --------------------------
    # ADMIN_PASSWORD may be plain text or a werkzeug hash (pbkdf2:/scrypt:).
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "")
    ADMIN_NAME = os.environ.get("ADMIN_NAME", "Administrator")
    ADMIN_ROLE = os.environ.get("ADMIN_ROLE", "admin")
    try:
        TOKEN_TTL_HOURS = float(os.environ.get("TOKEN_TTL_HOURS", "24"))
    except ValueError:
        TOKEN_TTL_HOURS = 24.0

    # Flask-Limiter
    RATELIMIT_ENABLED = _flag("RATELIMIT_ENABLED", "1")
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    LOGIN_RATE_LIMIT = os.environ.get("LOGIN_RATE_LIMIT", "10 per minute")

    # --------------------------
    # 🔹 Storage (flat files)
    # --------------------------
    DATA_DIR = os.environ.get("DATA_DIR", os.path.join(os.getcwd(), "data"))
    STUDENTS_FILE = os.environ.get("STUDENTS_FILE", os.path.join(DATA_DIR, "students.xlsx"))
    RECEIPTS_DIR = os.environ.get("RECEIPTS_DIR", os.path.join(DATA_DIR, "receipts"))
    REQUIRED_STUDENT_FIELDS = tuple(
        f.strip()
        for f in os.environ.get("REQUIRED_STUDENT_FIELDS", "name,phone,email,totalFee,amountPaid").split(",")
        if f.strip()
    )

    # --------------------------
    # 🔹 Receipt branding
    # --------------------------
    BRAND_NAME = os.environ.get("BRAND_NAME", "Training Institute")
    BRAND_TAGLINE = os.environ.get("BRAND_TAGLINE", "Payment Receipt")
    BRAND_ADDRESS = os.environ.get("BRAND_ADDRESS", "")
    BRAND_COLOR = os.environ.get("BRAND_COLOR", "#2c3e50")
    SUPPORT_PHONE = os.environ.get("SUPPORT_PHONE", "")
    SUPPORT_EMAIL = os.environ.get("SUPPORT_EMAIL", "")
    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "$")

    # --------------------------
    # Email (Flask-Mail SMTP)
    # --------------------------
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "")
    try:
        MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    except ValueError:
        MAIL_PORT = 587
    MAIL_USE_TLS = _flag("MAIL_USE_TLS", "1")
    MAIL_USE_SSL = os.environ.get("MAIL_USE_SSL", "0").strip().lower() in ("1", "true", "yes")
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME", "")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD", "")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "") or MAIL_USERNAME or None
    # Seconds to wait before reporting a simulated delivery (no SMTP configured)
    try:
        MAIL_SIMULATION_DELAY = float(os.environ.get("MAIL_SIMULATION_DELAY", "1.5"))
    except ValueError:
        MAIL_SIMULATION_DELAY = 1.5
