"""Root conftest: shared test configuration."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
# SQLite has no REPEATABLE READ; SERIALIZABLE is its default behaviour
os.environ.setdefault("WRITE_ISOLATION_LEVEL", "SERIALIZABLE")
os.environ.setdefault("READ_ISOLATION_LEVEL", "SERIALIZABLE")
os.environ.setdefault("LOG_FORMAT", "text")
