"""
SeekInsight CLI 结果展示模块
使用 rich 库美化终端输出
"""

import json
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

# 终端表格最多展示的行数
MAX_DISPLAY_ROWS = 50


class ResultDisplay:
    """CLI 结果展示器"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(legacy_windows=False)

    def print(self, message: str, style: Optional[str] = None):
        self.console.print(message, style=style)

    def print_error(self, message: str):
        self.console.print(f"✗ {escape(message)}", style="bold red")

    def print_success(self, message: str):
        self.console.print(f"✓ {escape(message)}", style="bold green")

    def print_info(self, message: str):
        self.console.print(f"• {escape(message)}", style="blue")

    def print_warning(self, message: str):
        self.console.print(f"! {escape(message)}", style="yellow")

    def print_sql(self, sql: str):
        """高亮显示 SQL"""
        syntax = Syntax(sql, "sql", theme="monokai", word_wrap=True)
        self.console.print(Panel(syntax, title="SQL", border_style="cyan"))

    def print_query_result(self, rows: list[dict], columns: list[str]):
        """以表格形式显示 {rows, columns}"""
        if not columns:
            self.print_warning("查询没有返回列")
            return

        table = Table(box=box.ROUNDED, show_lines=False, header_style="bold magenta")
        for column in columns:
            table.add_column(str(column), overflow="fold")
        for row in rows[:MAX_DISPLAY_ROWS]:
            table.add_row(*[_format_cell(row.get(c)) for c in columns])
        self.console.print(table)

        if len(rows) > MAX_DISPLAY_ROWS:
            self.print_info(f"共 {len(rows)} 行，仅显示前 {MAX_DISPLAY_ROWS} 行")
        else:
            self.print_info(f"共 {len(rows)} 行")

    def print_tables(self, tables: list[dict]):
        """显示 Schema 内省结果"""
        for t in tables:
            table = Table(title=t["tableName"], box=box.SIMPLE, title_style="bold")
            table.add_column("列名", style="cyan")
            table.add_column("类型")
            table.add_column("注释", style="dim")
            for col in t["columns"]:
                table.add_row(col["name"], col["type"], col["comment"] or "")
            self.console.print(table)

    def print_python_result(self, result: dict):
        """显示 Python 执行结果"""
        for line in result.get("logs", []):
            self.console.print(escape(line))
        if result.get("error"):
            self.print_error("执行失败")
            return
        if result.get("schemaData"):
            self.console.print(Panel(
                json.dumps(result["schemaData"], ensure_ascii=False, indent=2),
                title="参数 Schema",
                border_style="green",
            ))
        if result.get("plotlyData"):
            self.print_info("已生成 Plotly 图表数据")

    def print_notebooks(self, notebooks: list[dict]):
        table = Table(title="笔记本", box=box.SIMPLE)
        table.add_column("ID", style="cyan")
        table.add_column("数据库")
        table.add_column("主题")
        table.add_column("浏览", justify="right")
        table.add_column("自有")
        for nb in notebooks:
            table.add_row(
                str(nb["id"]),
                str(nb["db_name"]),
                str(nb.get("topic") or ""),
                str(nb.get("views") or 0),
                "是" if nb.get("is_owner", True) else "否",
            )
        self.console.print(table)

    def print_databases(self, databases: list[str]):
        table = Table(title="可用数据库", box=box.SIMPLE)
        table.add_column("名称", style="cyan")
        for name in databases:
            table.add_row(name)
        self.console.print(table)


def _format_cell(value: Any) -> str:
    if value is None:
        return "[dim]NULL[/dim]"
    return escape(str(value))


__all__ = ["ResultDisplay"]
