#!/usr/bin/env python3
"""Initialize the Flow Catalog database with its tables and sample data.

This script:
1. Creates the database if it doesn't exist
2. Creates required extensions and checks compatibility
3. Creates all Flow Catalog tables
4. Optionally loads the order lifecycle sample project for development
"""

import asyncio
import os
import sys
import argparse
import logging
from uuid import uuid4
from dotenv import load_dotenv
import asyncpg

from flow_catalog.catalog import CatalogService
from flow_catalog.constants import DATABASE_REQUIREMENTS
from flow_catalog.database import DatabaseManager
from flow_catalog.flow_hierarchy import FlowHierarchyResolver
from flow_catalog.repositories import (
    SqlBusinessFlowRepository,
    SqlColumnRepository,
    SqlCrudMappingRepository,
    SqlFlowEdgeRepository,
    SqlFlowNodeRepository,
    SqlRoleRepository,
    SqlTableRepository,
)
from flow_catalog.roles import RoleService
from flow_catalog.sample_data import load_sample_data
from flow_catalog.traceability import TraceabilityIndex
from flow_catalog.validators import validate_database_compatibility_async

# Setup logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()


def plain_url(database_url: str) -> str:
    """asyncpg.connect() expects the driverless postgresql:// scheme."""
    if database_url.startswith("postgresql+asyncpg://"):
        return database_url.replace("postgresql+asyncpg://", "postgresql://", 1)
    if database_url.startswith("postgresql://"):
        return database_url
    raise ValueError("Invalid database URL format")


async def create_database_if_not_exists(database_url: str) -> bool:
    """Create database if it doesn't exist.

    Args:
        database_url: PostgreSQL connection string

    Returns:
        bool: True if database was created, False if already existed
    """
    url = plain_url(database_url).replace("postgresql://", "", 1)

    # Extract database name and create admin URL
    parts = url.split("/")
    if len(parts) < 2:
        raise ValueError("Database name not found in URL")

    db_name = parts[-1].split("?")[0]
    admin_url = "postgresql://" + "/".join(parts[:-1]) + "/postgres"

    conn = await asyncpg.connect(admin_url)
    try:
        exists = await conn.fetchval(
            "SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = $1)",
            db_name
        )
        if exists:
            logger.info(f"Database already exists: {db_name}")
            return False
        await conn.execute(f'CREATE DATABASE "{db_name}"')
        logger.info(f"Created database: {db_name}")
        return True
    finally:
        await conn.close()


async def create_extensions(database_url: str):
    """Create required PostgreSQL extensions, then validate compatibility.

    Args:
        database_url: PostgreSQL connection string
    """
    conn = await asyncpg.connect(plain_url(database_url))
    try:
        for ext in DATABASE_REQUIREMENTS["required_extensions"]:
            await conn.execute(f'CREATE EXTENSION IF NOT EXISTS "{ext}"')
            logger.info(f"Created extension: {ext}")

        logger.info("Validating PostgreSQL compatibility...")
        await validate_database_compatibility_async(conn)
    finally:
        await conn.close()


async def load_sample_project(db_manager: DatabaseManager, project_id: str):
    """Load the sample project inside one session."""
    async with db_manager.get_session() as session:
        columns = SqlColumnRepository(session)
        roles = SqlRoleRepository(session)
        flows = SqlBusinessFlowRepository(session)
        nodes = SqlFlowNodeRepository(session)

        summary = await load_sample_data(
            project_id,
            CatalogService(SqlTableRepository(session), columns),
            RoleService(roles),
            FlowHierarchyResolver(flows, nodes, SqlFlowEdgeRepository(session), roles),
            TraceabilityIndex(SqlCrudMappingRepository(session), columns, roles, flows, nodes),
        )
    logger.info(f"Sample project {project_id} loaded: {summary}")


async def main():
    """Main initialization function."""
    parser = argparse.ArgumentParser(description="Initialize Flow Catalog database")
    parser.add_argument(
        "--no-sample-data",
        action="store_true",
        help="Skip loading sample data"
    )
    parser.add_argument(
        "--project-id",
        help="Project to load sample data into (defaults to a new id)"
    )
    parser.add_argument(
        "--database-url",
        help="Database URL (overrides DATABASE_URL env var)"
    )
    args = parser.parse_args()

    # Get database URL
    database_url = args.database_url or os.getenv("DATABASE_URL")
    if not database_url:
        logger.error("DATABASE_URL not provided")
        sys.exit(1)

    db_manager = DatabaseManager(database_url)
    try:
        await create_database_if_not_exists(database_url)
        await create_extensions(database_url)

        await db_manager.initialize(validate=False)
        await db_manager.create_all_tables()

        if not args.no_sample_data:
            await load_sample_project(db_manager, args.project_id or str(uuid4()))

        logger.info("Database initialization completed successfully!")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)
    finally:
        await db_manager.close()


if __name__ == "__main__":
    asyncio.run(main())
