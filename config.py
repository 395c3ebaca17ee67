import os
from typing import List

# Settings are read once from the environment at import time.

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "cgpa_db")

PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# 4-year program, 2 terms per year
TOTAL_PLANNED_TERMS = int(os.getenv("TOTAL_PLANNED_TERMS", 8))


def _split_origins(value: str) -> List[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


CORS_ORIGINS = _split_origins(os.getenv("CORS_ORIGINS", "*"))
