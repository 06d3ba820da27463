"""数据库模块"""

from .dialect import SqlDialect, is_uri
from .executor import SqlExecutor
from .introspector import SchemaIntrospector
from .models import Column, QueryResult, StatementOutcome, TableMetadata
from .mysql import MySqlDialect
from .pool import PoolRegistry, create_dialects
from .postgres import PostgresDialect

__all__ = [
    "SqlDialect",
    "MySqlDialect",
    "PostgresDialect",
    "PoolRegistry",
    "create_dialects",
    "SqlExecutor",
    "SchemaIntrospector",
    "Column",
    "TableMetadata",
    "QueryResult",
    "StatementOutcome",
    "is_uri",
]
