"""Root conftest — shared test configuration."""

import os

# Ensure tests never reach real Google, Pusher or Postgres
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test-maps-key")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ["CRON_SECRET"] = ""
for _key in (
    "PUSHER_APP_ID", "PUSHER_KEY", "PUSHER_SECRET",
    "PUSHER_BEAMS_INSTANCE_ID", "PUSHER_BEAMS_SECRET_KEY",
):
    os.environ[_key] = ""
