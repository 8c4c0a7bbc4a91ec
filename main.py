"""
Entry point for the hold'em table service.
Starts the HTTP API backed by the SQLite table store.
"""

import argparse
import asyncio
import logging

from holdem.config import Config
from holdem.database import init_database
from holdem.http_api import start_api_server
from holdem.table_service import TableManager


async def main(config: Config):
    print("🃏 Starting Hold'em table server")
    print("=" * 50)

    db = init_database(config.db_path)
    stats = db.get_database_stats()
    print(f"📊 Database: {stats['total_tables']} tables, {stats['total_actions']} actions logged")

    manager = TableManager(db, config)
    runner = await start_api_server(manager, config)
    print(f"✅ Listening on http://{config.host}:{config.port}")
    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        db.close()


if __name__ == "__main__":
    config = Config.from_env()
    parser = argparse.ArgumentParser(description="Run the Hold'em table server")
    parser.add_argument("--host", default=config.host, help="Host to bind to")
    parser.add_argument("--port", default=config.port, type=int, help="Port to bind to")
    parser.add_argument("--db", default=config.db_path, help="SQLite database file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.debug:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    config.host = args.host
    config.port = args.port
    config.db_path = args.db

    try:
        asyncio.run(main(config))
    except KeyboardInterrupt:
        print("\n👋 Server shutting down...")
