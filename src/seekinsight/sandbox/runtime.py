"""
Python 子进程运行时

本文件的源码会被原样写入子进程脚本，位于用户代码之前，
因此只能依赖标准库和子进程环境中已安装的 pandas / sqlalchemy / plotly / httpx，
不能导入 seekinsight 包内的其他模块。

子进程与网关之间通过 stdout 上带标签前缀的单行 JSON 通信:
    __PLOTLY_DATA__:<plotly figure json>
    __SCHEMA_JSON__:<参数 schema>
    __SI_DISPLAY_BLOCK__:{"type": "html" | "markdown", "content": ..., "height": ...}
    __SI_CMD__:{"action": "layout", "payload": {...}}
"""

import json
import os
import sys

SHIM_VERSION = "2"

PLOT_TAG = "__PLOTLY_DATA__:"
SCHEMA_TAG = "__SCHEMA_JSON__:"
DISPLAY_TAG = "__SI_DISPLAY_BLOCK__:"
CMD_TAG = "__SI_CMD__:"

MODE_SCHEMA = "SCHEMA"
MODE_EXECUTION = "EXECUTION"

# select 从 SQL 加载选项时的上限
MAX_SELECT_OPTIONS = 50


def _emit(tag, payload):
    print(tag + json.dumps(payload, default=str), flush=True)


class SIParams:
    """
    参数访问器

    SCHEMA 模式: 记录每个参数声明的形状并返回默认值，不读取注入值。
    EXECUTION 模式: 返回外部注入的值 (缺省时回退到默认值)。
    """

    def __init__(self, mode, injected, options_loader=None):
        self.mode = mode
        self.injected = injected or {}
        self.schema = {}
        self._options_loader = options_loader

    def get(self, key, default=None, label=None):
        if self.mode == MODE_SCHEMA:
            self.schema[key] = {"type": "text", "default": default, "label": label or key}
            return default
        return self.injected.get(key, default)

    def slider(self, key, label=None, min=0, max=100, step=1, default=None, dtype=None):
        if default is None:
            default = min
        if self.mode == MODE_SCHEMA:
            self.schema[key] = {
                "type": "slider", "label": label or key,
                "min": min, "max": max, "step": step, "default": default,
                "dtype": dtype,
            }
            return default

        val = self.injected.get(key, default)
        try:
            if dtype == "int":
                return int(float(val))
            if dtype == "float":
                return float(val)
            # 边界、步长、默认值全为整数时按整数返回
            if all(isinstance(v, int) and not isinstance(v, bool) for v in (min, max, step, default)):
                return int(float(val))
            return float(val)
        except (TypeError, ValueError):
            return default

    def select(self, key, label=None, options=None, sql=None, default=None):
        if self.mode == MODE_SCHEMA:
            final_opts = list(options or [])
            if sql and not final_opts and self._options_loader is not None:
                final_opts = self._options_loader(sql)
            if default is None and final_opts:
                default = final_opts[0]
            self.schema[key] = {
                "type": "select", "label": label or key,
                "options": final_opts, "default": default,
            }
            return default
        return self.injected.get(key, default)


class SILayout:
    """界面布局控制 (侧边栏 / 顶栏显隐)"""

    def __init__(self, mode):
        self.mode = mode

    def _send(self, payload):
        if self.mode == MODE_EXECUTION:
            _emit(CMD_TAG, {"action": "layout", "payload": payload})

    def sidebar(self, visible=True):
        self._send({"showSidebar": bool(visible)})

    def header(self, visible=True):
        self._send({"showHeader": bool(visible)})

    def configure(self, sidebar=None, header=None):
        payload = {}
        if sidebar is not None:
            payload["showSidebar"] = bool(sidebar)
        if header is not None:
            payload["showHeader"] = bool(header)
        if payload:
            self._send(payload)


class SIWrapper:
    """用户代码可用的数据库 / 绘图 / 富文本 / AI 接口"""

    def __init__(self, db_url, mode, params, connect_timeout=10, llm=None):
        self.db_url = db_url
        self.mode = mode
        self.connect_timeout = connect_timeout
        self.llm = llm or {}
        self._engine = None
        self.params = SIParams(mode, params, options_loader=self._load_options)
        self.layout = SILayout(mode)

    @property
    def engine(self):
        if self._engine is None:
            from sqlalchemy import create_engine
            from sqlalchemy.engine import make_url

            url = make_url(self.db_url)
            connect_args = {}
            if url.get_backend_name() in ("mysql", "postgresql"):
                connect_args["connect_timeout"] = self.connect_timeout
            self._engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        return self._engine

    def sql(self, query):
        """执行查询返回 DataFrame；数据库错误写入 stderr 并返回空 DataFrame"""
        import pandas as pd

        try:
            return pd.read_sql(query, self.engine)
        except Exception as e:
            print(f"SQL Error: {e}", file=sys.stderr, flush=True)
            return pd.DataFrame()

    def _load_options(self, query):
        df = self.sql(query)
        if df.empty:
            return []
        return df.iloc[:, 0].unique().tolist()[:MAX_SELECT_OPTIONS]

    def plot(self, fig):
        if self.mode == MODE_EXECUTION:
            import plotly.io as pio

            print(PLOT_TAG + pio.to_json(fig, validate=False), flush=True)

    def html(self, content, height=400):
        if self.mode == MODE_EXECUTION:
            _emit(DISPLAY_TAG, {"type": "html", "content": str(content), "height": height})

    def markdown(self, content):
        if self.mode == MODE_EXECUTION:
            _emit(DISPLAY_TAG, {"type": "markdown", "content": str(content)})

    def ai_complete(self, prompt, model=None):
        """调用与主应用相同的 LLM (OpenAI 兼容 chat/completions)"""
        import httpx

        api_key = self.llm.get("api_key")
        if not api_key:
            raise RuntimeError("AI completion is not configured (SI_LLM_API_KEY is empty)")
        base_url = (self.llm.get("base_url") or "").rstrip("/")
        response = httpx.post(
            f"{base_url}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": model or self.llm.get("model"),
                "messages": [{"role": "user", "content": str(prompt)}],
            },
            timeout=120.0,
        )
        response.raise_for_status()
        return response.json()["choices"][0]["message"]["content"]

    def finalize(self):
        if self.mode == MODE_SCHEMA:
            _emit(SCHEMA_TAG, self.params.schema)


def bootstrap(environ=None):
    """根据环境变量创建 SI 对象"""
    environ = os.environ if environ is None else environ
    mode = MODE_SCHEMA if environ.get("SI_EXEC_MODE") == MODE_SCHEMA else MODE_EXECUTION
    try:
        injected = json.loads(environ.get("SI_PARAMS") or "{}")
    except ValueError:
        injected = {}
    if not isinstance(injected, dict):
        injected = {}
    try:
        connect_timeout = int(environ.get("SI_CONNECT_TIMEOUT", "10"))
    except ValueError:
        connect_timeout = 10
    return SIWrapper(
        environ.get("SI_DB_URL", ""),
        mode,
        injected,
        connect_timeout=connect_timeout,
        llm={
            "api_key": environ.get("SI_LLM_API_KEY", ""),
            "base_url": environ.get("SI_LLM_BASE_URL", ""),
            "model": environ.get("SI_LLM_MODEL", ""),
        },
    )


if __name__ == "__main__":
    SI = bootstrap()
    params = SI.params
    layout = SI.layout

    def sql(query):
        return SI.sql(query)

    def forge_plotly(fig):
        return SI.plot(fig)
