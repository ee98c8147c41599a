# backend/ecodues/config.py
from __future__ import annotations
import os
from decimal import Decimal


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ecodues.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ecodues.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Upstream party lookup: "first_match" (oldest row wins) or "latest_match"
    DUE_RESOLUTION_POLICY = os.environ.get("DUE_RESOLUTION_POLICY", "first_match")

    # Used when a business purchase does not carry its own rate
    DEFAULT_PLASTIC_COST_PER_GRAM = Decimal(os.environ.get("DEFAULT_PLASTIC_COST_PER_GRAM", "0.10"))
