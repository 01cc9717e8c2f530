#!/usr/bin/env python3
"""
Startup Script for the Happy Thoughts API
Prepares the configured storage backend before starting the FastAPI server.
"""

import os
import sys
import logging

import uvicorn

from app_config import Settings, ensure_parent_directory, load_settings
from schema_migration import check_database_schema, fix_database_schema, import_thoughts_from_json
from thought_store import SqliteThoughtStore

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def ensure_storage_ready(settings: Settings) -> bool:
    """Make sure the storage backend is usable before the server starts"""
    if not settings.use_database:
        ensure_parent_directory(settings.thoughts_file)
        logger.info(f"📁 File storage mode - thoughts in {settings.thoughts_file}")
        return True

    db_path = settings.database_path
    if os.path.exists(db_path):
        logger.info(f"🔍 Checking database schema at: {db_path}")
        schema_info = check_database_schema(db_path)
        if schema_info.get("exists") and not schema_info.get("needs_migration"):
            logger.info("✅ Database schema is up to date")
        else:
            logger.info(f"🔧 Database needs migration, missing: {schema_info.get('missing_columns', 'all tables')}")
    else:
        logger.info(f"📁 Database does not exist at {db_path}, creating it")

    result = fix_database_schema(db_path)
    if not result["success"]:
        logger.error(f"💥 Migration failed: {result['error']}")
        return False

    imported = import_thoughts_from_json(SqliteThoughtStore(db_path), settings.thoughts_file)
    if imported:
        logger.info(f"🎉 Seeded database with {imported} thoughts")
    return True


def start_server(settings: Settings):
    """Start the FastAPI server"""
    reload = settings.environment == "development" and os.getenv("RELOAD") == "true"
    logger.info(f"🚀 Starting FastAPI server on {settings.host}:{settings.port}")
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=reload,
        log_level=settings.log_level.lower()
    )


def main():
    """Main startup function"""
    logger.info("🎯 Happy Thoughts Backend Startup")
    settings = load_settings()

    if not ensure_storage_ready(settings):
        logger.error("❌ Storage preparation failed, cannot start server")
        sys.exit(1)

    try:
        start_server(settings)
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped by user")


if __name__ == "__main__":
    main()
