"""Runtime configuration read from environment variables.

Every value has a development default so the package works out of the box
with in-memory adapters. Production deployments set ``STOREFRONT_STORAGE=sql``
and point ``DATABASE_URL`` at PostgreSQL (``postgresql+psycopg://...``).
"""

import os

STORAGE_BACKEND = os.getenv("STOREFRONT_STORAGE", "memory")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")
DB_ECHO = os.getenv("DB_ECHO", "0") == "1"

ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "ORD")
# SQL databases without sequences (SQLite): how many times an order insert
# is retried when two writers computed the same internal sequence value.
ORDER_NUMBER_RETRIES = int(os.getenv("ORDER_NUMBER_RETRIES", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
