"""Database requirements and domain limits for Flow Catalog.

This module defines the minimum requirements that any PostgreSQL instance
must meet to back the catalog, plus the fixed limits the entities enforce.
"""

import os

# Database version requirements
DATABASE_REQUIREMENTS = {
    "min_postgresql_version": "14.0",
    "required_extensions": [
        "pgcrypto",      # gen_random_uuid() for server-side ids
    ],
    "recommended_extensions": [
        "pg_stat_statements",  # Query performance monitoring
    ]
}

# Version compatibility matrix
VERSION_COMPATIBILITY = {
    "0.1.x": {
        "postgresql": "14.0+",
        "sqlalchemy": "2.0+",
        "pydantic": "2.0+",
    }
}

# Extension version requirements (if specific versions needed)
EXTENSION_VERSIONS = {
    "pgcrypto": "1.3",
}

# Connection pool settings
CONNECTION_POOL_DEFAULTS = {
    "min_size": 5,
    "max_size": 10,
    "max_inactive_connection_lifetime": 300,  # 5 minutes
}

# ============================================================================
# Domain limits
# ============================================================================

SLUG_MIN_LENGTH = 2
SLUG_MAX_LENGTH = 100

ROLE_NAME_MAX_LENGTH = 50

DEFAULT_LANE_HEIGHT = 120
MIN_LANE_HEIGHT = 60
MAX_LANE_HEIGHT = 500

TABLE_NAME_PATTERN = r"^[a-z][a-z0-9_]*$"
HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

# Marker shown in a matrix cell when a fact carries neither how nor description
MATRIX_PRESENCE_MARKER = "○"

# Upper bound on parent hops when resolving breadcrumbs
MAX_FLOW_DEPTH = int(os.getenv("FLOW_CATALOG_MAX_FLOW_DEPTH", "64"))

CSV_REQUIRED_HEADERS = ("table_name", "column_name")

CSV_TEMPLATE_HEADERS = (
    "table_name",
    "column_name",
    "display_name",
    "data_type",
    "description",
    "is_primary_key",
    "is_foreign_key",
    "is_nullable",
    "is_unique",
    "default_value",
    "foreign_key_table",
    "foreign_key_column",
)
