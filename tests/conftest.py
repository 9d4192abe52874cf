"""
Test configuration: point the app at a private in-memory SQLite database
before config.settings is first imported.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("LOG_LEVEL", "WARNING")
