"""
PostgreSQL 方言实现 (asyncpg)

asyncpg 不支持一次调用返回多条语句的结果，用户 SQL 先用 sqlglot
分词器按顶层分号拆分，再在同一连接上逐条执行。
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional, Sequence

import asyncpg
import sqlglot
import structlog
from sqlglot.errors import TokenError
from sqlglot.tokens import TokenType

from .dialect import RESERVED_TABLE_PREFIX, SqlDialect, group_catalog_rows
from .models import StatementOutcome, TableMetadata

logger = structlog.get_logger(__name__)


def split_statements(sql: str) -> list[str]:
    """
    按顶层分号拆分 SQL

    字符串、引用标识符、注释与 $$ 块中的分号不会被拆分；
    分词失败时整段作为一条语句交给服务器报错。
    """
    try:
        tokens = sqlglot.tokenize(sql, read="postgres")
    except TokenError:
        return [sql] if sql.strip() else []

    statements = []
    current = []
    for token in tokens:
        if token.token_type == TokenType.SEMICOLON:
            if current:
                statements.append(sql[current[0].start:current[-1].end + 1])
            current = []
            continue
        current.append(token)
    if current:
        statements.append(sql[current[0].start:current[-1].end + 1])
    return statements


def _parse_status(status: Optional[str]) -> tuple[str, Optional[int]]:
    """解析命令状态，如 'INSERT 0 3' -> ('INSERT', 3)，'CREATE TABLE' -> ('CREATE', None)"""
    parts = (status or "").split()
    if not parts:
        return "", None
    affected = None
    if len(parts) > 1 and parts[-1].isdigit():
        affected = int(parts[-1])
    return parts[0], affected


def _quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class PostgresDialect(SqlDialect):
    """PostgreSQL 方言"""

    name = "postgres"
    status_columns = ("status", "command", "affected_rows")
    sync_drivername = "postgresql+psycopg2"
    engine_databases = frozenset({"postgres", "template0", "template1"})

    def quote(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def placeholder(self, index: int) -> str:
        return f"${index}"

    def default_port(self) -> int:
        return 5432

    def server_credentials(self) -> dict[str, Any]:
        return {
            "host": self.settings.pg_host,
            "port": self.settings.pg_port,
            "user": self.settings.pg_user,
            "password": self.settings.pg_password,
        }

    # ============================================
    # 连接池
    # ============================================
    async def create_pool(self, identifier: str) -> asyncpg.Pool:
        params = self.connect_params(identifier)
        logger.debug("创建 PostgreSQL 连接池", host=params["host"], database=params["database"])
        return await asyncpg.create_pool(
            host=params["host"],
            port=int(params["port"]),
            user=params["user"],
            password=params["password"] or None,
            database=params["database"] or None,
            min_size=1,
            max_size=self.settings.pool_max_size,
        )

    async def close_pool(self, pool: asyncpg.Pool) -> None:
        await pool.close()

    @asynccontextmanager
    async def _root_connection(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """连接维护库 postgres (建库/删库)"""
        creds = self.server_credentials()
        conn = await asyncpg.connect(
            host=creds["host"],
            port=int(creds["port"]),
            user=creds["user"],
            password=creds["password"] or None,
            database="postgres",
        )
        try:
            yield conn
        finally:
            await conn.close()

    # ============================================
    # 执行
    # ============================================
    async def _run_statement(self, conn: asyncpg.Connection, statement: str) -> StatementOutcome:
        stmt = await conn.prepare(statement)
        records = await stmt.fetch()
        attributes = stmt.get_attributes()
        if attributes:
            columns = [attr.name for attr in attributes]
            return StatementOutcome(
                columns=columns,
                rows=[dict(zip(columns, record.values())) for record in records],
            )
        command, affected = _parse_status(stmt.get_statusmsg())
        return StatementOutcome(columns=None, affected_rows=affected, command=command)

    async def execute(self, pool: asyncpg.Pool, sql: str) -> list[StatementOutcome]:
        statements = split_statements(sql)
        outcomes = []
        async with pool.acquire() as conn:
            for statement in statements:
                outcomes.append(await self._run_statement(conn, statement))
        return outcomes

    async def execute_script(self, pool: asyncpg.Pool, script: str) -> None:
        async with pool.acquire() as conn:
            await conn.execute(script)

    async def fetch_all(self, pool: asyncpg.Pool, sql: str, args: Sequence = ()) -> list[dict]:
        async with pool.acquire() as conn:
            records = await conn.fetch(self.bind(sql), *args)
        return [dict(r) for r in records]

    async def execute_params(self, pool: asyncpg.Pool, sql: str, args: Sequence = ()) -> int:
        async with pool.acquire() as conn:
            status = await conn.execute(self.bind(sql), *args)
        return _parse_status(status)[1] or 0

    async def insert_rows(
        self, pool: asyncpg.Pool, table: str, columns: Sequence[str], rows: Sequence[Sequence]
    ) -> None:
        if not rows:
            return
        async with pool.acquire() as conn:
            await conn.copy_records_to_table(
                table, records=[tuple(r) for r in rows], columns=list(columns)
            )

    def status_row(self, outcome: StatementOutcome) -> dict[str, Any]:
        return {
            "status": "Success",
            "command": outcome.command,
            "affected_rows": outcome.affected_rows,
        }

    # ============================================
    # Schema 内省
    # ============================================
    async def introspect_schema(self, pool: asyncpg.Pool) -> list[TableMetadata]:
        # 列注释单独存放在 pg_description 中
        sql = """
            SELECT c.relname AS table_name,
                   a.attname AS column_name,
                   format_type(a.atttypid, NULL) AS data_type,
                   d.description AS column_comment
            FROM pg_catalog.pg_class c
            JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
            LEFT JOIN pg_catalog.pg_attribute a
              ON a.attrelid = c.oid AND a.attnum > 0 AND NOT a.attisdropped
            LEFT JOIN pg_catalog.pg_description d
              ON d.objoid = c.oid AND d.objsubid = a.attnum
            WHERE n.nspname = 'public'
              AND c.relkind IN ('r', 'p')
              AND left(c.relname, ?) <> ?
            ORDER BY c.relname, a.attnum
        """
        rows = await self.fetch_all(pool, sql, (len(RESERVED_TABLE_PREFIX), RESERVED_TABLE_PREFIX))
        return group_catalog_rows(rows)

    async def list_base_tables(self, pool: asyncpg.Pool) -> list[str]:
        rows = await self.fetch_all(
            pool,
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_type = 'BASE TABLE' ORDER BY table_name",
        )
        return [r["table_name"] for r in rows]

    async def table_exists(self, pool: asyncpg.Pool, table: str) -> bool:
        rows = await self.fetch_all(
            pool,
            "SELECT 1 AS found FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = ?",
            (table,),
        )
        return bool(rows)

    async def column_exists(self, pool: asyncpg.Pool, table: str, column: str) -> bool:
        rows = await self.fetch_all(
            pool,
            "SELECT 1 AS found FROM information_schema.columns "
            "WHERE table_schema = 'public' AND table_name = ? AND column_name = ?",
            (table, column),
        )
        return bool(rows)

    # ============================================
    # 物理库生命周期
    # ============================================
    async def database_exists(self, name: str) -> bool:
        async with self._root_connection() as conn:
            found = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", name)
        return found is not None

    async def create_database(self, name: str, if_not_exists: bool = False) -> None:
        # PostgreSQL 没有 CREATE DATABASE IF NOT EXISTS
        async with self._root_connection() as conn:
            if if_not_exists:
                found = await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", name)
                if found is not None:
                    return
            await conn.execute(f"CREATE DATABASE {self.quote(name)}")

    async def list_databases(self) -> list[str]:
        async with self._root_connection() as conn:
            records = await conn.fetch(
                "SELECT datname FROM pg_database WHERE NOT datistemplate ORDER BY datname"
            )
        return [r["datname"] for r in records if r["datname"] not in self.engine_databases]

    async def drop_database_safely(self, name: str) -> None:
        async with self._root_connection() as conn:
            # 存在活动连接时 DROP DATABASE 会失败，先断开其他后端
            await conn.execute(
                "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
                "WHERE datname = $1 AND pid <> pg_backend_pid()",
                name,
            )
            await conn.execute(f"DROP DATABASE IF EXISTS {self.quote(name)}")

    async def _describe_table(self, conn: asyncpg.Connection, table: str) -> tuple[list, Optional[str]]:
        columns = await conn.fetch(
            """
            SELECT a.attname AS name,
                   format_type(a.atttypid, a.atttypmod) AS type,
                   a.attnotnull AS not_null,
                   col_description(c.oid, a.attnum) AS comment
            FROM pg_catalog.pg_attribute a
            JOIN pg_catalog.pg_class c ON c.oid = a.attrelid
            JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = 'public' AND c.relname = $1
              AND a.attnum > 0 AND NOT a.attisdropped
            ORDER BY a.attnum
            """,
            table,
        )
        table_comment = await conn.fetchval(
            "SELECT obj_description(c.oid, 'pg_class') FROM pg_catalog.pg_class c "
            "JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace "
            "WHERE n.nspname = 'public' AND c.relname = $1",
            table,
        )
        return list(columns), table_comment

    async def copy_table(
        self,
        source_pool: asyncpg.Pool,
        source_db: str,
        source_table: str,
        target_pool: asyncpg.Pool,
        target_db: str,
        target_table: str,
        replace: bool = False,
    ) -> None:
        # 跨库无法 LIKE / SELECT，逐列重建 DDL，注释单独补写，数据经内存复制
        async with source_pool.acquire() as src:
            columns, table_comment = await self._describe_table(src, source_table)
            records = await src.fetch(f"SELECT * FROM {self.quote(source_table)}")

        target = self.quote(target_table)
        col_defs = ", ".join(
            f"{self.quote(c['name'])} {c['type']}" + (" NOT NULL" if c["not_null"] else "")
            for c in columns
        )
        async with target_pool.acquire() as dst:
            async with dst.transaction():
                if replace:
                    await dst.execute(f"DROP TABLE IF EXISTS {target}")
                await dst.execute(f"CREATE TABLE {target} ({col_defs})")
                if table_comment:
                    await dst.execute(f"COMMENT ON TABLE {target} IS {_quote_literal(table_comment)}")
                for c in columns:
                    if c["comment"]:
                        await dst.execute(
                            f"COMMENT ON COLUMN {target}.{self.quote(c['name'])} "
                            f"IS {_quote_literal(c['comment'])}"
                        )
                if records:
                    await dst.copy_records_to_table(
                        target_table,
                        records=[tuple(r.values()) for r in records],
                        columns=[c["name"] for c in columns],
                    )


__all__ = ["PostgresDialect", "split_statements"]
