"""Create the Inkwell tables directly from the SQLAlchemy metadata.

Intended for local development and CI databases; production schemas are
managed by the alembic revisions.
"""

import argparse
import asyncio

import dotenv
from sqlalchemy import text

dotenv.load_dotenv()

from inkwell.database import engine  # noqa: E402
from inkwell.models import metadata  # noqa: E402


async def init_db(drop: bool = False) -> None:
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            # gen_random_uuid() for the primary key defaults
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        if drop:
            await conn.run_sync(metadata.drop_all)
            print("✓ Existing tables dropped")

        await conn.run_sync(metadata.create_all)
        print(f"✓ Created tables: {', '.join(sorted(metadata.tables))}")

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the Inkwell database tables")
    parser.add_argument("--drop", action="store_true", help="drop existing tables first")
    args = parser.parse_args()
    asyncio.run(init_db(drop=args.drop))
