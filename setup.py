from setuptools import find_packages, setup

setup(
    name="flow-catalog",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "sqlalchemy[asyncio]>=2.0.0",
        "pydantic>=2.0.0",
        "asyncpg>=0.29.0",  # Required for async database operations
        "psycopg2-binary>=2.9.9",  # Sync connection support for validators/scripts
        "python-dotenv>=1.0.0",  # .env loading in init_db.py
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    description="Flow Catalog - data catalog, business flows and CRUD traceability",
    author="Flow Catalog Team",
)
