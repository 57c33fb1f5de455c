"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import JSON, Numeric
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# Commission percentages: fixed-point, two decimal places
PercentType = Numeric(5, 2, asdecimal=True)

# Money amounts
MoneyType = Numeric(12, 2, asdecimal=True)
