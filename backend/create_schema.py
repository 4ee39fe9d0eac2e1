#!/usr/bin/env python3
"""
Create the Dugout tables (predictions, health and sync/resolution logs).
No psql required. From repo root: python3 backend/create_schema.py
Requires DUGOUT_DATABASE_URL (or DATABASE_URL) in the environment, or .env in backend/.
Existing tables are left untouched.
"""
import asyncio
import os
import sys

# Backend dir on path so "shared" resolves (run from repo root or backend/)
_backend_dir = os.path.dirname(os.path.abspath(__file__))
if _backend_dir not in sys.path:
    sys.path.insert(0, _backend_dir)
os.chdir(_backend_dir)

from sqlalchemy.exc import SQLAlchemyError

from shared.config import get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import setup_logging


async def main() -> None:
    settings = get_settings()
    setup_logging("create_schema")
    db = DatabaseManager(settings)
    await db.connect()
    try:
        await db.create_schema()
        print(f"Schema ensured on {settings.database_url_safe_log}")
    except (SQLAlchemyError, OSError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
