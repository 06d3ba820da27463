"""
SeekInsight API 路由

处理函数只做请求校验、调用一个核心操作，并把异常映射为 {message} 错误响应。
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..errors import (
    DatasetNotFoundError,
    NotebookNotFoundError,
    ProtectedDatabaseError,
    UnsupportedDatabaseError,
)
from ..gateway import Gateway
from ..sandbox.bridge import PythonExecutionResult

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["SeekInsight"])


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def _error(status_code: int, e: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": str(e)})


def _handle(e: Exception, action: str) -> JSONResponse:
    """领域异常映射为 4xx，其余一律 500 并返回原始错误信息"""
    if isinstance(e, (NotebookNotFoundError, DatasetNotFoundError)):
        return _error(404, e)
    if isinstance(e, (ProtectedDatabaseError, UnsupportedDatabaseError)):
        return _error(400, e)
    logger.debug(f"{action} 失败", error=str(e))
    return _error(500, e)


# ============================================
# 请求模型
# ============================================

class SqlRequest(BaseModel):
    """SQL 执行请求"""
    model_config = ConfigDict(populate_by_name=True)

    sql: str = Field(..., description="原样执行的 SQL，可包含多条语句")
    db_name: str = Field(..., alias="dbName", min_length=1)


class PythonRequest(BaseModel):
    """Python 执行请求"""
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(..., description="用户 Python 代码")
    db_name: str = Field(..., alias="dbName", min_length=1)
    execution_mode: Optional[str] = Field(default=None, alias="executionMode")
    params: Optional[dict[str, Any]] = None


class RowCountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    db_name: str = Field(..., alias="dbName", min_length=1)
    table_name: str = Field(..., alias="tableName", min_length=1)


class CreateNotebookRequest(BaseModel):
    topic: Optional[str] = None
    user_id: int = 0


class ConnectNotebookRequest(BaseModel):
    uri: str = Field(..., min_length=1, description="外部数据库连接 URI")
    topic: Optional[str] = None
    user_id: int = 0


class CloneNotebookRequest(BaseModel):
    source_db_name: str = Field(..., min_length=1)
    new_topic: Optional[str] = None
    suggestions_json: Optional[str] = None


class UpdateNotebookRequest(BaseModel):
    topic: Optional[str] = None
    icon_name: Optional[str] = None
    suggestions_json: Optional[str] = None


class ImportDatasetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    db_name: str = Field(..., alias="dbName", min_length=1)
    dataset_id: str = Field(..., alias="datasetId", min_length=1)


# ============================================
# SQL / Python
# ============================================

@router.post("/sql")
async def run_sql(body: SqlRequest, gateway: Gateway = Depends(get_gateway)):
    """执行 SQL，返回 {rows, columns}"""
    try:
        result = await gateway.executor.run(body.db_name, body.sql)
        return JSONResponse(content=jsonable_encoder(result.to_dict()))
    except Exception as e:
        return _handle(e, "SQL 执行")


@router.post("/python")
async def run_python(body: PythonRequest, gateway: Gateway = Depends(get_gateway)):
    """执行 Python，出错时返回 500 {logs, error: true}"""
    try:
        result = await gateway.bridge.run(
            body.code, body.db_name, mode=body.execution_mode, params=body.params
        )
    except Exception as e:
        # /python 的错误响应统一为 {logs, error: true}
        logger.debug("Python 执行失败", error=str(e))
        result = PythonExecutionResult(logs=[str(e)], error=True, outcome="error")
    status_code = 500 if result.error else 200
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result.to_dict()))


# ============================================
# 数据库与 Schema
# ============================================

@router.get("/databases")
async def list_databases(gateway: Gateway = Depends(get_gateway)):
    try:
        return await gateway.list_databases()
    except Exception as e:
        return _handle(e, "列出数据库")


@router.get("/tables")
async def list_tables(
    db_name: str = Query(..., alias="dbName", min_length=1),
    gateway: Gateway = Depends(get_gateway),
):
    try:
        tables = await gateway.introspector.list_tables(db_name)
        return [t.to_dict() for t in tables]
    except Exception as e:
        return _handle(e, "Schema 内省")


@router.post("/tables/count")
async def count_rows(body: RowCountRequest, gateway: Gateway = Depends(get_gateway)):
    try:
        count = await gateway.introspector.refresh_row_count(body.db_name, body.table_name)
        return {"tableName": body.table_name, "rowCount": count}
    except Exception as e:
        return _handle(e, "行数统计")


# ============================================
# 笔记本
# ============================================

@router.get("/notebooks")
async def list_notebooks(gateway: Gateway = Depends(get_gateway)):
    try:
        return jsonable_encoder(await gateway.notebooks.list_notebooks())
    except Exception as e:
        return _handle(e, "列出笔记本")


@router.post("/notebooks")
async def create_notebook(
    body: Optional[CreateNotebookRequest] = None,
    gateway: Gateway = Depends(get_gateway),
):
    body = body or CreateNotebookRequest()
    try:
        notebook = await gateway.notebooks.create_notebook(topic=body.topic, user_id=body.user_id)
        return jsonable_encoder(notebook)
    except Exception as e:
        return _handle(e, "创建笔记本")


@router.post("/notebooks/connect")
async def connect_notebook(body: ConnectNotebookRequest, gateway: Gateway = Depends(get_gateway)):
    try:
        notebook = await gateway.notebooks.connect_external(
            body.uri, topic=body.topic, user_id=body.user_id
        )
        return jsonable_encoder(notebook)
    except Exception as e:
        return _handle(e, "连接外部数据库")


@router.post("/notebooks/clone")
async def clone_notebook(body: CloneNotebookRequest, gateway: Gateway = Depends(get_gateway)):
    try:
        notebook = await gateway.notebooks.clone_notebook(
            body.source_db_name,
            new_topic=body.new_topic,
            suggestions_json=body.suggestions_json,
        )
        return jsonable_encoder(notebook)
    except Exception as e:
        return _handle(e, "克隆笔记本")


@router.patch("/notebooks/{notebook_id}")
async def update_notebook(
    notebook_id: str,
    body: UpdateNotebookRequest,
    gateway: Gateway = Depends(get_gateway),
):
    try:
        notebook = await gateway.notebooks.update_notebook(
            notebook_id,
            topic=body.topic,
            icon_name=body.icon_name,
            suggestions_json=body.suggestions_json,
        )
        return jsonable_encoder(notebook)
    except Exception as e:
        return _handle(e, "更新笔记本")


@router.post("/notebooks/{notebook_id}/view")
async def record_view(notebook_id: str, gateway: Gateway = Depends(get_gateway)):
    try:
        await gateway.notebooks.record_view(notebook_id)
        return {"success": True}
    except Exception as e:
        return _handle(e, "记录浏览")


@router.delete("/notebooks/{notebook_id}")
async def delete_notebook(notebook_id: str, gateway: Gateway = Depends(get_gateway)):
    try:
        dropped = await gateway.notebooks.delete_notebook(notebook_id)
        return {"success": True, "dropped": dropped}
    except Exception as e:
        return _handle(e, "删除笔记本")


# ============================================
# 示例数据集
# ============================================

@router.get("/datasets")
async def list_datasets(gateway: Gateway = Depends(get_gateway)):
    return gateway.datasets.list_datasets()


@router.post("/datasets/import")
async def import_dataset(body: ImportDatasetRequest, gateway: Gateway = Depends(get_gateway)):
    try:
        dataset, tables = await gateway.datasets.import_dataset(body.db_name, body.dataset_id)
        return {"success": True, "topicName": dataset.topic_name, "tables": tables}
    except Exception as e:
        return _handle(e, "导入数据集")


# ============================================
# 健康检查
# ============================================

@router.get("/health")
async def health(gateway: Gateway = Depends(get_gateway)):
    return {"status": "ok", "dbType": gateway.dialect.name}


__all__ = ["router", "get_gateway"]
