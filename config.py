# config.py
import os

from dotenv import load_dotenv

load_dotenv()


def _float(name, default):
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _int(name, default):
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def load_config():
    """Read settings from the environment (and .env) at call time."""
    generation_timeout = _float("GENERATION_TIMEOUT_SECONDS", 25.0)
    return {
        "SECRET_KEY": os.getenv("FLASK_SECRET_KEY", "dev-secret-key"),
        # OpenAI
        "OPENAI_API_KEY": os.getenv("OPENAI_API_KEY"),
        "OPENAI_MODEL": os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        "GENERATION_TIMEOUT_SECONDS": generation_timeout,
        "GENERATION_MAX_TOKENS": _int("GENERATION_MAX_TOKENS", 1000),
        "GENERATION_TEMPERATURE": _float("GENERATION_TEMPERATURE", 0.5),
        # Plan state
        "REDIS_URL": os.getenv("REDIS_URL"),
        "PLAN_TTL_SECONDS": _int("PLAN_TTL_SECONDS", 3600),
        "ADVANCE_LOCK_TIMEOUT_SECONDS": _float(
            "ADVANCE_LOCK_TIMEOUT_SECONDS", generation_timeout + 30
        ),
        # Email
        "SMTP_HOST": os.getenv("SMTP_HOST"),
        "SMTP_PORT": _int("SMTP_PORT", 587),
        "SMTP_USERNAME": os.getenv("SMTP_USERNAME"),
        "SMTP_PASSWORD": os.getenv("SMTP_PASSWORD"),
        "EMAIL_FROM": os.getenv("EMAIL_FROM") or os.getenv("SMTP_USERNAME") or "plans@localhost",
        # Mailing list
        "KLAVIYO_API_KEY": os.getenv("KLAVIYO_API_KEY"),
        "KLAVIYO_LIST_ID": os.getenv("KLAVIYO_LIST_ID"),
    }
