"""Unit tests for database validators."""
import pytest
from unittest.mock import MagicMock, patch

from flow_catalog.validators import (
    parse_version,
    parse_postgresql_version,
    validate_postgresql_version_async,
    validate_postgresql_version_sync,
    validate_extensions_async,
    validate_extensions_sync,
    validate_database_compatibility_async,
    validate_database_compatibility_sync,
    validate_database_url_sync,
)


class TestParsePostgreSQLVersion:
    """Test PostgreSQL version parsing."""

    def test_parse_standard_version(self):
        version_string = "PostgreSQL 16.1 on x86_64-pc-linux-gnu, compiled by gcc"
        assert parse_postgresql_version(version_string) == (16, 1)

    def test_parse_major_version_only(self):
        assert parse_postgresql_version("PostgreSQL 16 on x86_64-pc-linux-gnu") == (16,)

    def test_parse_with_extra_info(self):
        version_string = "PostgreSQL 16.2 (Ubuntu 16.2-1.pgdg22.04+1) on x86_64-pc-linux-gnu"
        assert parse_postgresql_version(version_string) == (16, 2)

    def test_two_digit_minor_compares_numerically(self):
        assert parse_postgresql_version("PostgreSQL 14.10 on x") > parse_postgresql_version("PostgreSQL 14.9 on x")

    def test_parse_invalid_format(self):
        assert parse_postgresql_version("Not a PostgreSQL version string") is None

    def test_parse_extension_version(self):
        assert parse_version("1.3") == (1, 3)
        assert parse_version(None) is None


class TestValidatePostgreSQLVersionAsync:
    """Test async PostgreSQL version validation."""

    @pytest.mark.asyncio
    async def test_valid_version(self, mock_asyncpg_connection):
        await validate_postgresql_version_async(mock_asyncpg_connection)
        mock_asyncpg_connection.fetchval.assert_called_with("SELECT version()")

    @pytest.mark.asyncio
    async def test_minimum_version_is_accepted(self, mock_asyncpg_connection):
        mock_asyncpg_connection.answers["version"] = "PostgreSQL 14.0 on x86_64-pc-linux-gnu"
        await validate_postgresql_version_async(mock_asyncpg_connection)

    @pytest.mark.asyncio
    async def test_version_too_old(self, mock_asyncpg_connection):
        mock_asyncpg_connection.answers["version"] = "PostgreSQL 13.4 on x86_64-pc-linux-gnu"

        with pytest.raises(RuntimeError) as exc_info:
            await validate_postgresql_version_async(mock_asyncpg_connection)

        assert "PostgreSQL 14.0+ required" in str(exc_info.value)
        assert "found 13.4" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unparseable_version(self, mock_asyncpg_connection):
        mock_asyncpg_connection.answers["version"] = "Unknown database version"

        with pytest.raises(RuntimeError) as exc_info:
            await validate_postgresql_version_async(mock_asyncpg_connection)

        assert "Unable to determine PostgreSQL version" in str(exc_info.value)


class TestValidatePostgreSQLVersionSync:
    """Test sync PostgreSQL version validation."""

    def test_valid_version(self, mock_psycopg2_connection):
        validate_postgresql_version_sync(mock_psycopg2_connection)

        cursor = mock_psycopg2_connection.cursor()
        cursor.execute.assert_called_with("SELECT version()")
        cursor.close.assert_called()

    def test_version_too_old(self, mock_psycopg2_connection):
        mock_psycopg2_connection.answers["version"] = "PostgreSQL 12.0 on x86_64-pc-linux-gnu"

        with pytest.raises(RuntimeError) as exc_info:
            validate_postgresql_version_sync(mock_psycopg2_connection)

        assert "PostgreSQL 14.0+ required" in str(exc_info.value)


class TestValidateExtensionsAsync:
    """Test async extension validation."""

    @pytest.mark.asyncio
    async def test_all_extensions_present(self, mock_asyncpg_connection):
        results = await validate_extensions_async(mock_asyncpg_connection)
        assert results == {"pgcrypto": True}

    @pytest.mark.asyncio
    async def test_missing_extension(self, mock_asyncpg_connection):
        mock_asyncpg_connection.answers["installed"] = False

        with pytest.raises(RuntimeError) as exc_info:
            await validate_extensions_async(mock_asyncpg_connection)

        assert "Required PostgreSQL extensions not installed: pgcrypto" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_extension_too_old(self, mock_asyncpg_connection):
        mock_asyncpg_connection.answers["extversion"] = "1.2"

        with pytest.raises(RuntimeError) as exc_info:
            await validate_extensions_async(mock_asyncpg_connection)

        assert "pgcrypto 1.3+ required" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_custom_extension_list(self, mock_asyncpg_connection):
        results = await validate_extensions_async(mock_asyncpg_connection, required=["pg_trgm"])
        assert results == {"pg_trgm": True}


class TestValidateExtensionsSync:
    """Test sync extension validation."""

    def test_all_extensions_present(self, mock_psycopg2_connection):
        assert validate_extensions_sync(mock_psycopg2_connection) == {"pgcrypto": True}

    def test_missing_extension(self, mock_psycopg2_connection):
        mock_psycopg2_connection.answers["installed"] = False

        with pytest.raises(RuntimeError) as exc_info:
            validate_extensions_sync(mock_psycopg2_connection)

        assert "pgcrypto" in str(exc_info.value)
        mock_psycopg2_connection.cursor().close.assert_called()


class TestValidateDatabaseCompatibility:
    """Test full database compatibility validation."""

    @pytest.mark.asyncio
    async def test_full_validation_async(self, mock_asyncpg_connection):
        await validate_database_compatibility_async(mock_asyncpg_connection)
        assert mock_asyncpg_connection.fetchval.call_count >= 3

    def test_full_validation_sync(self, mock_psycopg2_connection):
        validate_database_compatibility_sync(mock_psycopg2_connection)

    def test_validate_url_uses_plain_postgres_dsn(self, mock_psycopg2_connection):
        with patch("flow_catalog.validators.psycopg2.connect", return_value=mock_psycopg2_connection) as connect:
            validate_database_url_sync("postgresql+asyncpg://u:p@db:5432/catalog")

        connect.assert_called_once_with("postgresql://u:p@db:5432/catalog")
        mock_psycopg2_connection.close.assert_called_once()

    def test_validate_url_closes_connection_on_failure(self):
        conn = MagicMock()
        conn.cursor().fetchone.return_value = ("PostgreSQL 9.6 on x",)
        with patch("flow_catalog.validators.psycopg2.connect", return_value=conn):
            with pytest.raises(RuntimeError):
                validate_database_url_sync("postgresql://u:p@db/catalog")
        conn.close.assert_called_once()
