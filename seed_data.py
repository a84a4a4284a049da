#!/usr/bin/env python3
"""
Sample Data Utility

Wipes the library collections and loads the sample users, books,
comments, favorites and reading progress.
"""

import asyncio
import random
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from utilities.logger import setup_logging
from utilities.config import config
from library.database import LibraryDatabase
from library.seed import SAMPLE_USERS, FixtureGenerator


async def seed(rng_seed=None):
    """Seed the configured database."""
    print("\n" + "=" * 80)
    print("🌱 SEEDING DATABASE")
    print("=" * 80)

    db = LibraryDatabase(config.mongodb_url, config.mongodb_database)
    try:
        await db.connect()
        generator = FixtureGenerator(
            db,
            rng=random.Random(rng_seed) if rng_seed is not None else None,
            upload_dir=config.upload_dir
        )
        summary = await generator.run()

        print(f"👥 Users: {summary.users}")
        print(f"📚 Books: {summary.books}")
        print(f"💬 Comments: {summary.comments}")
        print(f"⭐ Favorites: {summary.favorites}")
        print(f"📖 Reading entries: {summary.reading_entries}")
        print()
        print("🔑 Sample accounts:")
        for user in SAMPLE_USERS:
            print(f"     {user['role']:<6} {user['email']} / {user['password']}")

    except Exception as e:
        print(f"❌ Error seeding database: {e}")
        sys.exit(1)
    finally:
        await db.disconnect()


async def main():
    """Main function."""
    rng_seed = None
    args = sys.argv[1:]
    if args and args[0] in ("-h", "--help"):
        print("Usage: python seed_data.py [--seed N]")
        print()
        print("Options:")
        print("  --seed N  - Seed the random generator for repeatable sample data")
        sys.exit(0)
    if args:
        if args[0] != "--seed" or len(args) < 2:
            print("Usage: python seed_data.py [--seed N]")
            sys.exit(1)
        try:
            rng_seed = int(args[1])
        except ValueError:
            print(f"❌ Invalid seed: {args[1]}")
            sys.exit(1)

    # Setup logging
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )

    await seed(rng_seed)


if __name__ == "__main__":
    asyncio.run(main())
