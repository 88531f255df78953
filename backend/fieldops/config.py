# backend/fieldops/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/fieldops.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///fieldops.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Visit dates are business-local calendar days. Accepts "UTC", a fixed
    # offset ("+02:00") or an IANA zone name ("Africa/Cairo").
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "+02:00")
    VISIT_WINDOW_DAYS = int(os.environ.get("VISIT_WINDOW_DAYS", "7"))

    PROPAGATION_RETRY_ATTEMPTS = int(os.environ.get("PROPAGATION_RETRY_ATTEMPTS", "3"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    }
