# pharmacy_pos/core/config.py
import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Pharmacy POS & Inventory")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ))

    # ---------- Database ----------
    DATABASE_URL: str = os.getenv("DATABASE_URL",
                                  "sqlite:///./pharmacy_pos.db")

    # ---------- Counter ----------
    # Used when a request does not identify the pharmacist
    DEFAULT_PHARMACIST_ID: str = os.getenv("DEFAULT_PHARMACIST_ID",
                                           "system-user")
    INVOICE_PREFIX: str = os.getenv("INVOICE_PREFIX", "INV")
    # Store timezone: decides what "today" means for expiry and invoice days
    TIMEZONE: str = os.getenv("TIMEZONE", "Asia/Kolkata")

    # ---------- Stock health ----------
    EXPIRY_ALERT_DAYS: int = int(os.getenv("EXPIRY_ALERT_DAYS", "30"))

    # ---------- Logging ----------
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
