import os
import json


def _parse_cors_origins(value: str | None) -> list[str]:
    if not value:
        return ["*"]

    cleaned = value.strip()
    if not cleaned:
        return ["*"]

    if cleaned.startswith("["):
        try:
            parsed = json.loads(cleaned)
            if isinstance(parsed, list):
                origins = [str(item).strip() for item in parsed if str(item).strip()]
                if origins:
                    return origins
        except json.JSONDecodeError:
            pass

    origins = [item.strip() for item in cleaned.split(",") if item.strip()]
    return origins or ["*"]


def _parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


APP_NAME = os.environ.get("APP_NAME", "BuildFlow")
APP_URL = os.environ.get("APP_URL", "http://localhost:8000").rstrip("/")
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./buildflow.db")
SECRET_KEY = os.environ.get("SECRET_KEY", "buildflow-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))
AUTH_COOKIE_NAME = "auth-token"
VENDOR_COOKIE_NAME = "vendor-token"
CORS_ORIGINS = _parse_cors_origins(os.environ.get("CORS_ORIGINS"))
UPLOAD_DIR = os.environ.get("UPLOAD_DIR", "uploads")
MAX_UPLOAD_BYTES = 50 * 1024 * 1024
CRON_SECRET = os.environ.get("CRON_SECRET", "")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("LOG_FORMAT", "text").lower()
SEED_DEMO = _parse_bool(os.environ.get("SEED_DEMO"))
