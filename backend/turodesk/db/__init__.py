"""Database module - PostgreSQL pool, schema and queries."""

from .postgres import Database, init_schema, vector_literal, affected_rows
from .queries import DatabaseQueries

__all__ = ['Database', 'init_schema', 'vector_literal', 'affected_rows', 'DatabaseQueries']
