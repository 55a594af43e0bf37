# fieldops/config.py

import os
from datetime import time

from dotenv import load_dotenv

load_dotenv()


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _get_time(name: str, default: str) -> time:
    raw = os.getenv(name, default).strip()
    try:
        return time.fromisoformat(raw)
    except ValueError:
        return time.fromisoformat(default)


def _get_weekdays(name: str, default: str) -> list[int]:
    raw = os.getenv(name, default).strip()
    days = []
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit() and 0 <= int(part) <= 6:
            days.append(int(part))
    return sorted(set(days))


class Settings:
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./fieldops.db")

    SECRET_KEY = os.getenv("SECRET_KEY", "change-me-later").strip()
    ALGORITHM = os.getenv("ALGORITHM", "HS256").strip()
    ACCESS_TOKEN_EXPIRE_MINUTES = _get_int("ACCESS_TOKEN_EXPIRE_MINUTES", 30)

    # Working calendar used when a service person has no weekly pattern of their own
    TIMEZONE = os.getenv("TIMEZONE", "Asia/Kolkata").strip()
    WORKDAY_START = _get_time("WORKDAY_START", "08:00")
    WORKDAY_END = _get_time("WORKDAY_END", "18:00")
    WORKING_DAYS = _get_weekdays("WORKING_DAYS", "0,1,2,3,4,5")  # 0=Mon ... 6=Sun

    SUGGEST_DEFAULT_LIMIT = _get_int("SUGGEST_DEFAULT_LIMIT", 5)
    SUGGEST_MAX_CANDIDATES = _get_int("SUGGEST_MAX_CANDIDATES", 50)
    SUGGEST_LOAD_WINDOW_HOURS = _get_int("SUGGEST_LOAD_WINDOW_HOURS", 24)

    LIST_DEFAULT_LIMIT = _get_int("LIST_DEFAULT_LIMIT", 100)

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()


settings = Settings()
