# -*- coding: utf-8 -*-
"""
Prometheus 指标

- seekinsight_request_total / seekinsight_request_latency_seconds (HTTP 请求)
- seekinsight_sql_query_total / seekinsight_sql_query_latency_seconds (SQL 执行)
- seekinsight_python_execution_total / seekinsight_python_execution_latency_seconds (Python 执行)
"""

import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Histogram, generate_latest


def _get_or_create_counter(name: str, description: str, labelnames: list):
    """获取或创建 Counter，避免重复注册"""
    if name in REGISTRY._names_to_collectors:
        return REGISTRY._names_to_collectors[name]
    return Counter(name, description, labelnames=labelnames)


def _get_or_create_histogram(name: str, description: str, labelnames: list, buckets: tuple):
    """获取或创建 Histogram，避免重复注册"""
    if name in REGISTRY._names_to_collectors:
        return REGISTRY._names_to_collectors[name]
    return Histogram(name, description, labelnames=labelnames, buckets=buckets)


# ============================================
# HTTP 请求指标
# ============================================
REQUEST_COUNT = _get_or_create_counter(
    "seekinsight_request_total",
    "HTTP request count",
    labelnames=["method", "path", "status"],
)

REQUEST_LATENCY = _get_or_create_histogram(
    "seekinsight_request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=["method", "path", "status"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

# ============================================
# SQL 执行指标
# ============================================
SQL_QUERY_COUNT = _get_or_create_counter(
    "seekinsight_sql_query_total",
    "User SQL execution count",
    labelnames=["db_type", "status"],
)

SQL_QUERY_LATENCY = _get_or_create_histogram(
    "seekinsight_sql_query_latency_seconds",
    "User SQL execution latency in seconds",
    labelnames=["db_type", "status"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)

# ============================================
# Python 执行指标
# ============================================
PYTHON_EXECUTION_COUNT = _get_or_create_counter(
    "seekinsight_python_execution_total",
    "Python bridge execution count",
    labelnames=["mode", "outcome"],
)

PYTHON_EXECUTION_LATENCY = _get_or_create_histogram(
    "seekinsight_python_execution_latency_seconds",
    "Python bridge execution latency in seconds",
    labelnames=["mode", "outcome"],
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 300),
)


def setup_metrics(app: FastAPI) -> None:
    """挂载指标中间件与 /metrics 端点"""

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next: Callable) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        # 使用路由模板避免高基数 (如 /notebooks/{notebook_id})
        route = request.scope.get("route")
        path = getattr(route, "path", None) or "unmatched"
        method = request.method.upper()
        status = response.status_code

        REQUEST_COUNT.labels(method=method, path=path, status=status).inc()
        REQUEST_LATENCY.labels(method=method, path=path, status=status).observe(duration)

        return response

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "setup_metrics",
    "REQUEST_COUNT", "REQUEST_LATENCY",
    "SQL_QUERY_COUNT", "SQL_QUERY_LATENCY",
    "PYTHON_EXECUTION_COUNT", "PYTHON_EXECUTION_LATENCY",
]
