"""
Create any missing InvoicePe tables and list what the database now has.

Usage:
    python scripts/create_tables.py

For a fresh database; production schema changes go through alembic/versions.
"""

import asyncio
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text

from invoicepe.database import Base, engine
import invoicepe.models  # noqa: F401  (registers tables on Base.metadata)


async def create_tables():
    if engine is None:
        print("DATABASE_URL not set")
        return

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

        result = await conn.execute(text(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'"
        ))
        tables = sorted(row[0] for row in result.fetchall())
        print(f"Found tables: {tables}")

    await engine.dispose()


if __name__ == "__main__":
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(create_tables())
