"""
SeekInsight CLI - 网关运维命令行

使用方式:
    seekinsight serve                       # 启动 HTTP 网关
    seekinsight init                        # 执行系统初始化
    seekinsight sql "SELECT 1" --db mydb    # 执行 SQL
    seekinsight python script.py --db mydb  # 执行 Python 脚本
    seekinsight tables --db mydb            # 查看表结构
    seekinsight notebooks                   # 列出笔记本
    seekinsight databases                   # 列出物理库
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from fastapi.encoders import jsonable_encoder

from ..config.settings import get_settings
from ..errors import ProvisioningError
from ..gateway import Gateway
from ..observability.logging import configure_logging
from .display import ResultDisplay


def build_parser() -> argparse.ArgumentParser:
    """构建命令行解析器"""
    parser = argparse.ArgumentParser(
        prog="seekinsight",
        description="SeekInsight - 多方言数据库网关与 Python 执行桥",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  seekinsight sql "SELECT * FROM fitness_metrics LIMIT 5" --db seekinsight_demo
  seekinsight python analysis.py --db seekinsight_demo --mode SCHEMA
  seekinsight tables --db seekinsight_demo
        """,
    )
    parser.add_argument("--json", action="store_true", help="以 JSON 输出结果")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="启动 HTTP 网关")
    sub.add_parser("init", help="执行系统初始化 (建库、迁移、示例数据)")
    sub.add_parser("notebooks", help="列出笔记本")
    sub.add_parser("databases", help="列出非系统物理库")

    sql = sub.add_parser("sql", help="执行 SQL")
    sql.add_argument("sql", help="SQL 文本，'-' 表示从标准输入读取")
    sql.add_argument("--db", "-d", dest="database", required=True, help="逻辑库名或连接 URI")

    py = sub.add_parser("python", help="执行 Python 脚本")
    py.add_argument("script", help="脚本文件路径，'-' 表示从标准输入读取")
    py.add_argument("--db", "-d", dest="database", required=True, help="逻辑库名或连接 URI")
    py.add_argument("--mode", choices=["EXECUTION", "SCHEMA"], default="EXECUTION", help="执行模式")
    py.add_argument("--params", default=None, help="注入参数 (JSON 对象)")

    tables = sub.add_parser("tables", help="查看表结构")
    tables.add_argument("--db", "-d", dest="database", required=True, help="逻辑库名或连接 URI")
    tables.add_argument("--count", action="store_true", help="同时统计行数")

    return parser


def _read_source(value: str, is_file: bool) -> str:
    if value == "-":
        return sys.stdin.read()
    if is_file:
        return Path(value).read_text(encoding="utf-8")
    return value


def _dump(data) -> None:
    print(json.dumps(jsonable_encoder(data), ensure_ascii=False, indent=2))


async def run_command(args: argparse.Namespace, display: ResultDisplay) -> int:
    """执行子命令，返回进程退出码"""
    gateway = Gateway(get_settings())
    try:
        if args.command == "init":
            try:
                seeded = await gateway.provisioner.provision()
            except ProvisioningError as e:
                display.print_error(str(e))
                return 1
            display.print_success("初始化完成" if seeded else "已初始化，仅执行了迁移检查")
            return 0

        if args.command == "sql":
            result = await gateway.executor.run(args.database, _read_source(args.sql, is_file=False))
            if args.json:
                _dump(result.to_dict())
            else:
                display.print_query_result(result.rows, result.columns)
            return 0

        if args.command == "python":
            params = json.loads(args.params) if args.params else None
            result = await gateway.bridge.run(
                _read_source(args.script, is_file=True), args.database, mode=args.mode, params=params
            )
            if args.json:
                _dump(result.to_dict())
            else:
                display.print_python_result(result.to_dict())
            return 1 if result.error else 0

        if args.command == "tables":
            tables = await gateway.introspector.list_tables(args.database)
            if args.count:
                for t in tables:
                    t.row_count = await gateway.introspector.refresh_row_count(args.database, t.table_name)
            data = [t.to_dict() for t in tables]
            if args.json:
                _dump(data)
            else:
                display.print_tables(data)
            return 0

        if args.command == "notebooks":
            notebooks = await gateway.notebooks.list_notebooks()
            if args.json:
                _dump(notebooks)
            else:
                display.print_notebooks(notebooks)
            return 0

        if args.command == "databases":
            databases = await gateway.list_databases()
            if args.json:
                _dump(databases)
            else:
                display.print_databases(databases)
            return 0

        display.print_error(f"未知命令: {args.command}")
        return 2
    finally:
        await gateway.close()


def main(argv: Optional[list[str]] = None) -> int:
    """CLI 入口"""
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        from ..main import run

        run()
        return 0

    settings = get_settings()
    configure_logging(settings.effective_log_level if settings.is_debug else "WARNING")
    display = ResultDisplay()
    try:
        return asyncio.run(run_command(args, display))
    except KeyboardInterrupt:
        display.print_warning("已中断")
        return 130
    except Exception as e:
        display.print_error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
