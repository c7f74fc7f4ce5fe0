# backend/femenine/config.py
from __future__ import annotations
import os


def _split_origins(raw: str) -> set[str]:
    return {o.strip() for o in raw.split(",") if o.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/femenine.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///femenine.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sales defaults (decimal strings, parsed with Decimal)
    DEFAULT_TAX_RATE = os.environ.get("DEFAULT_TAX_RATE", "0.19")
    DEFAULT_TAX_INCLUDED = os.environ.get("DEFAULT_TAX_INCLUDED", "false").lower() == "true"
    PRICE_TOLERANCE = os.environ.get("PRICE_TOLERANCE", "0.01")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = _split_origins(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    ))

    # bcrypt cost factor for password hashes
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
