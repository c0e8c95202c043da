"""Database compatibility checks for Flow Catalog.

A PostgreSQL instance backing the catalog must meet the minimums declared in
``constants.DATABASE_REQUIREMENTS``. Both an async (asyncpg) and a sync
(psycopg2) variant are provided; the sync one is meant for scripts that run
before the application starts. Every check raises RuntimeError on failure.
"""
import re
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import asyncpg
import psycopg2

from .constants import DATABASE_REQUIREMENTS, EXTENSION_VERSIONS

logger = logging.getLogger(__name__)

VERSION_QUERY = "SELECT version()"
EXTENSION_VERSION_QUERY = "SELECT extversion FROM pg_extension WHERE extname = {param}"


def parse_version(version_string: Optional[str]) -> Optional[Tuple[int, ...]]:
    """Parse a dotted version ("16.1", "1.3") into a comparable tuple."""
    if not version_string:
        return None
    match = re.match(r'\s*(\d+(?:\.\d+)*)', version_string)
    if not match:
        return None
    return tuple(int(part) for part in match.group(1).split('.'))


def parse_postgresql_version(version_string: str) -> Optional[Tuple[int, ...]]:
    """Parse PostgreSQL version from version() output.

    Args:
        version_string: Output from SELECT version()

    Returns:
        Version tuple (e.g. "PostgreSQL 16.1 on ..." -> (16, 1)) or None
    """
    match = re.search(r'PostgreSQL (\d+(?:\.\d+)?)', version_string or "")
    if match:
        return parse_version(match.group(1))
    return None


def check_postgresql_version(version_string: str) -> Tuple[int, ...]:
    """Raise RuntimeError unless ``version_string`` meets the minimum version."""
    version = parse_postgresql_version(version_string)
    if version is None:
        logger.warning(f"Could not parse PostgreSQL version from: {version_string}")
        raise RuntimeError("Unable to determine PostgreSQL version")

    min_version_string = DATABASE_REQUIREMENTS["min_postgresql_version"]
    if version < parse_version(min_version_string):
        found = ".".join(str(p) for p in version)
        raise RuntimeError(
            f"PostgreSQL {min_version_string}+ required, but found {found}. "
            f"Please upgrade your PostgreSQL installation."
        )

    logger.info(f"PostgreSQL version {version_string.split(' on ')[0]} meets requirement "
                f"(>= {min_version_string})")
    return version


def check_missing_extensions(installed: Dict[str, bool]) -> None:
    missing = [name for name, present in installed.items() if not present]
    if missing:
        raise RuntimeError(
            f"Required PostgreSQL extensions not installed: {', '.join(missing)}. "
            f"Please install them with: CREATE EXTENSION IF NOT EXISTS <extension_name>;"
        )


def check_extension_version(ext_name: str, version: Optional[str]) -> None:
    """Raise RuntimeError when an installed extension is older than required."""
    min_version = EXTENSION_VERSIONS.get(ext_name)
    if min_version is None:
        return
    parsed = parse_version(version)
    if parsed is None or parsed < parse_version(min_version):
        raise RuntimeError(
            f"Extension {ext_name} {min_version}+ required, but found {version}"
        )
    logger.info(f"Extension {ext_name} version: {version} (minimum: {min_version})")


async def validate_postgresql_version_async(connection: asyncpg.Connection) -> None:
    """Validate PostgreSQL version meets minimum requirements (async).

    Raises:
        RuntimeError: If version is below minimum requirement
    """
    check_postgresql_version(await connection.fetchval(VERSION_QUERY))


def validate_postgresql_version_sync(connection) -> None:
    """Validate PostgreSQL version meets minimum requirements (sync, psycopg2)."""
    cursor = connection.cursor()
    try:
        cursor.execute(VERSION_QUERY)
        version_string = cursor.fetchone()[0]
    finally:
        cursor.close()
    check_postgresql_version(version_string)


async def validate_extensions_async(
    connection: asyncpg.Connection,
    required: Optional[Iterable[str]] = None,
) -> Dict[str, bool]:
    """Validate required PostgreSQL extensions are installed (async).

    Returns:
        Dict mapping extension name to installation status

    Raises:
        RuntimeError: If any required extension is missing or too old
    """
    names: List[str] = list(required or DATABASE_REQUIREMENTS["required_extensions"])
    results = {}
    for ext_name in names:
        results[ext_name] = await connection.fetchval(
            "SELECT EXISTS(SELECT 1 FROM pg_extension WHERE extname = $1)",
            ext_name
        )
    check_missing_extensions(results)

    for ext_name in names:
        if ext_name in EXTENSION_VERSIONS:
            version = await connection.fetchval(EXTENSION_VERSION_QUERY.format(param="$1"), ext_name)
            check_extension_version(ext_name, version)

    return results


def validate_extensions_sync(connection, required: Optional[Iterable[str]] = None) -> Dict[str, bool]:
    """Validate required PostgreSQL extensions are installed (sync, psycopg2)."""
    names: List[str] = list(required or DATABASE_REQUIREMENTS["required_extensions"])
    results = {}
    cursor = connection.cursor()
    try:
        for ext_name in names:
            cursor.execute(
                "SELECT EXISTS(SELECT 1 FROM pg_extension WHERE extname = %s)",
                (ext_name,)
            )
            results[ext_name] = cursor.fetchone()[0]
        check_missing_extensions(results)

        for ext_name in names:
            if ext_name in EXTENSION_VERSIONS:
                cursor.execute(EXTENSION_VERSION_QUERY.format(param="%s"), (ext_name,))
                row = cursor.fetchone()
                check_extension_version(ext_name, row[0] if row else None)
    finally:
        cursor.close()

    return results


async def validate_database_compatibility_async(connection: asyncpg.Connection) -> None:
    """Perform full database compatibility validation (async).

    Raises:
        RuntimeError: If any requirement is not met
    """
    logger.info("Validating database compatibility...")
    await validate_postgresql_version_async(connection)
    await validate_extensions_async(connection)
    logger.info("Database compatibility validation passed")


def validate_database_compatibility_sync(connection) -> None:
    """Perform full database compatibility validation (sync).

    Raises:
        RuntimeError: If any requirement is not met
    """
    logger.info("Validating database compatibility...")
    validate_postgresql_version_sync(connection)
    validate_extensions_sync(connection)
    logger.info("Database compatibility validation passed")


def validate_database_url_sync(database_url: str) -> None:
    """Connect with psycopg2 and run the full compatibility check.

    Accepts SQLAlchemy-style ``postgresql+asyncpg://`` URLs as well.
    """
    dsn = database_url.replace("postgresql+asyncpg://", "postgresql://", 1)
    connection = psycopg2.connect(dsn)
    try:
        validate_database_compatibility_sync(connection)
    finally:
        connection.close()
