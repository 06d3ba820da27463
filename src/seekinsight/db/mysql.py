"""
MySQL 方言实现 (aiomysql)
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional, Sequence

import aiomysql
import structlog
from pymysql.constants import CLIENT, FIELD_TYPE
from pymysql.converters import conversions

from .dialect import RESERVED_TABLE_PREFIX, SqlDialect, group_catalog_rows
from .models import StatementOutcome, TableMetadata

logger = structlog.get_logger(__name__)

# 日期/时间类型按字符串返回，避免时区换算
_STRING_TEMPORAL_TYPES = (FIELD_TYPE.DATE, FIELD_TYPE.DATETIME, FIELD_TYPE.TIMESTAMP)


def _build_conversions() -> dict:
    conv = dict(conversions)
    for field_type in _STRING_TEMPORAL_TYPES:
        conv[field_type] = str
    return conv


def _decode(value: Optional[Any]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class MySqlDialect(SqlDialect):
    """MySQL 方言"""

    name = "mysql"
    status_columns = ("status", "message", "affected_rows", "insert_id", "warning_count")
    sync_drivername = "mysql+pymysql"
    engine_databases = frozenset({"mysql", "information_schema", "performance_schema", "sys"})

    _conv = _build_conversions()

    def quote(self, name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    def placeholder(self, index: int) -> str:
        return "%s"

    def default_port(self) -> int:
        return 3306

    def server_credentials(self) -> dict[str, Any]:
        return {
            "host": self.settings.mysql_host,
            "port": self.settings.mysql_port,
            "user": self.settings.mysql_user,
            "password": self.settings.mysql_password,
        }

    # ============================================
    # 连接池
    # ============================================
    async def create_pool(self, identifier: str) -> aiomysql.Pool:
        params = self.connect_params(identifier)
        logger.debug("创建 MySQL 连接池", host=params["host"], database=params["database"])
        return await aiomysql.create_pool(
            host=params["host"],
            port=int(params["port"]),
            user=params["user"],
            password=params["password"],
            db=params["database"] or None,
            minsize=1,
            maxsize=self.settings.pool_max_size,
            autocommit=True,
            charset="utf8mb4",
            client_flag=CLIENT.MULTI_STATEMENTS,
            conv=self._conv,
        )

    async def close_pool(self, pool: aiomysql.Pool) -> None:
        pool.close()
        await pool.wait_closed()

    @asynccontextmanager
    async def _root_connection(self) -> AsyncGenerator[aiomysql.Connection, None]:
        """不指定库的服务器级连接 (建库/删库)"""
        creds = self.server_credentials()
        conn = await aiomysql.connect(
            host=creds["host"],
            port=int(creds["port"]),
            user=creds["user"],
            password=creds["password"],
            autocommit=True,
            charset="utf8mb4",
        )
        try:
            yield conn
        finally:
            conn.close()

    # ============================================
    # 执行
    # ============================================
    @staticmethod
    def _read_outcome(cur: aiomysql.Cursor, rows: Sequence) -> StatementOutcome:
        if cur.description is None:
            result = getattr(cur, "_result", None)
            return StatementOutcome(
                columns=None,
                affected_rows=max(cur.rowcount, 0),
                insert_id=cur.lastrowid or 0,
                warning_count=getattr(result, "warning_count", 0) or 0,
                message=_decode(getattr(result, "message", None)),
            )
        columns = [d[0] for d in cur.description]
        return StatementOutcome(
            columns=columns,
            rows=[dict(zip(columns, row)) for row in rows],
        )

    async def execute(self, pool: aiomysql.Pool, sql: str) -> list[StatementOutcome]:
        outcomes = []
        async with pool.acquire() as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql)
                while True:
                    rows = await cur.fetchall() if cur.description is not None else ()
                    outcomes.append(self._read_outcome(cur, rows))
                    if not await cur.nextset():
                        break
        return outcomes

    async def execute_script(self, pool: aiomysql.Pool, script: str) -> None:
        await self.execute(pool, script)

    async def fetch_all(self, pool: aiomysql.Pool, sql: str, args: Sequence = ()) -> list[dict]:
        async with pool.acquire() as conn:
            async with conn.cursor(aiomysql.DictCursor) as cur:
                await cur.execute(self.bind(sql), tuple(args) if args else None)
                return list(await cur.fetchall())

    async def execute_params(self, pool: aiomysql.Pool, sql: str, args: Sequence = ()) -> int:
        async with pool.acquire() as conn:
            async with conn.cursor() as cur:
                await cur.execute(self.bind(sql), tuple(args) if args else None)
                return cur.rowcount

    async def insert_rows(
        self, pool: aiomysql.Pool, table: str, columns: Sequence[str], rows: Sequence[Sequence]
    ) -> None:
        if not rows:
            return
        cols = ", ".join(self.quote(c) for c in columns)
        marks = ", ".join(["%s"] * len(columns))
        sql = f"INSERT INTO {self.quote(table)} ({cols}) VALUES ({marks})"
        async with pool.acquire() as conn:
            async with conn.cursor() as cur:
                await cur.executemany(sql, [tuple(r) for r in rows])

    def status_row(self, outcome: StatementOutcome) -> dict[str, Any]:
        return {
            "status": "Success",
            "message": outcome.message or "Query executed successfully",
            "affected_rows": outcome.affected_rows,
            "insert_id": outcome.insert_id,
            "warning_count": outcome.warning_count,
        }

    # ============================================
    # Schema 内省
    # ============================================
    async def introspect_schema(self, pool: aiomysql.Pool) -> list[TableMetadata]:
        # 无参数执行，LIKE 中的 % 不会被当作占位符
        sql = f"""
            SELECT t.TABLE_NAME AS table_name,
                   c.COLUMN_NAME AS column_name,
                   c.DATA_TYPE AS data_type,
                   c.COLUMN_COMMENT AS column_comment
            FROM information_schema.TABLES t
            LEFT JOIN information_schema.COLUMNS c
              ON c.TABLE_SCHEMA = t.TABLE_SCHEMA AND c.TABLE_NAME = t.TABLE_NAME
            WHERE t.TABLE_SCHEMA = DATABASE()
              AND t.TABLE_TYPE = 'BASE TABLE'
              AND t.TABLE_NAME NOT LIKE '{_like_prefix(RESERVED_TABLE_PREFIX)}%'
            ORDER BY t.TABLE_NAME, c.ORDINAL_POSITION
        """
        return group_catalog_rows(await self.fetch_all(pool, sql))

    async def list_base_tables(self, pool: aiomysql.Pool) -> list[str]:
        rows = await self.fetch_all(
            pool,
            "SELECT TABLE_NAME AS table_name FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_TYPE = 'BASE TABLE' ORDER BY TABLE_NAME",
        )
        return [r["table_name"] for r in rows]

    async def table_exists(self, pool: aiomysql.Pool, table: str) -> bool:
        rows = await self.fetch_all(
            pool,
            "SELECT 1 AS found FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = ?",
            (table,),
        )
        return bool(rows)

    async def column_exists(self, pool: aiomysql.Pool, table: str, column: str) -> bool:
        rows = await self.fetch_all(
            pool,
            "SELECT 1 AS found FROM information_schema.COLUMNS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = ? AND COLUMN_NAME = ?",
            (table, column),
        )
        return bool(rows)

    # ============================================
    # 物理库生命周期
    # ============================================
    async def database_exists(self, name: str) -> bool:
        async with self._root_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT 1 FROM information_schema.SCHEMATA WHERE SCHEMA_NAME = %s", (name,)
                )
                return (await cur.fetchone()) is not None

    async def create_database(self, name: str, if_not_exists: bool = False) -> None:
        clause = "IF NOT EXISTS " if if_not_exists else ""
        async with self._root_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(f"CREATE DATABASE {clause}{self.quote(name)}")

    async def list_databases(self) -> list[str]:
        async with self._root_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SHOW DATABASES")
                rows = await cur.fetchall()
        return [r[0] for r in rows if r[0] not in self.engine_databases]

    async def drop_database_safely(self, name: str) -> None:
        async with self._root_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(f"DROP DATABASE IF EXISTS {self.quote(name)}")

    async def copy_table(
        self,
        source_pool: aiomysql.Pool,
        source_db: str,
        source_table: str,
        target_pool: aiomysql.Pool,
        target_db: str,
        target_table: str,
        replace: bool = False,
    ) -> None:
        # 目标池已绑定目标库 (可能是另一台服务器)，目标表不加库名限定；
        # 结构取自 SHOW CREATE TABLE，数据经内存复制
        async with source_pool.acquire() as src:
            async with src.cursor() as cur:
                await cur.execute(f"SHOW CREATE TABLE {self.quote(source_table)}")
                ddl = (await cur.fetchone())[1]
                await cur.execute(f"SELECT * FROM {self.quote(source_table)}")
                columns = [d[0] for d in cur.description]
                rows = await cur.fetchall()

        target = self.quote(target_table)
        ddl = _retarget_ddl(ddl, self.quote(source_table), target)
        async with target_pool.acquire() as dst:
            async with dst.cursor() as cur:
                if replace:
                    await cur.execute(f"DROP TABLE IF EXISTS {target}")
                await cur.execute(ddl)
                if rows:
                    cols = ", ".join(self.quote(c) for c in columns)
                    marks = ", ".join(["%s"] * len(columns))
                    await cur.executemany(
                        f"INSERT INTO {target} ({cols}) VALUES ({marks})",
                        [tuple(r) for r in rows],
                    )
        logger.debug("表已复制", source=f"{source_db}.{source_table}", target=target_table, rows=len(rows))


def _retarget_ddl(ddl: str, source: str, target: str) -> str:
    """把 SHOW CREATE TABLE 输出中的表名替换为目标表名"""
    prefix = f"CREATE TABLE {source}"
    if not ddl.startswith(prefix):
        raise ValueError(f"Unexpected table definition for {source}")
    return f"CREATE TABLE {target}" + ddl[len(prefix):]


def _like_prefix(prefix: str) -> str:
    """转义 LIKE 通配符 _ (MySQL 字符串中反斜杠需要双写)"""
    return prefix.replace("_", "\\\\_")


__all__ = ["MySqlDialect"]
