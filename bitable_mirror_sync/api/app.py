"""
HTTP 触发接口

GET/POST /api/sync 执行一次同步，由定时任务（cron/Vercel 等）调用。
"""
import threading
from typing import Callable, Optional

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger
from pydantic import BaseModel

from ..core.sync_service import SyncService, create_service
from ..errors import ConfigError, SyncError, SyncInProgressError


class SyncResponse(BaseModel):
    """同步成功的响应"""
    success: bool = True
    message: str = "Sync complete."
    synced: int
    deleted: int


class ErrorResponse(BaseModel):
    """同步失败的响应"""
    success: bool = False
    error: str


class ServiceHolder:
    """延迟创建 SyncService，配置错误时下次请求会重新尝试"""

    def __init__(self, factory: Callable[[], SyncService]):
        self._factory = factory
        self._service: Optional[SyncService] = None
        self._lock = threading.Lock()

    def get(self) -> SyncService:
        with self._lock:
            if self._service is None:
                self._service = self._factory()
            return self._service


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code,
                        content=ErrorResponse(error=message).model_dump())


def create_app(service_factory: Callable[[], SyncService] = create_service) -> FastAPI:
    """创建 FastAPI 应用"""
    app = FastAPI(title="Bitable Mirror Sync", version="1.0.0")
    holder = ServiceHolder(service_factory)
    app.state.services = holder

    @app.get("/")
    def index():
        return {"message": "Sync API is running"}

    @app.api_route("/api/sync", methods=["GET", "POST"], response_model=SyncResponse,
                   responses={409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    def run_sync():
        try:
            service = holder.get()
            result = service.run_sync()
        except SyncInProgressError as e:
            return _error(409, str(e))
        except ConfigError as e:
            logger.error(f"Sync not started, configuration error: {e}")
            return _error(500, str(e))
        except SyncError as e:
            return _error(500, str(e))

        return SyncResponse(**result.to_dict())

    @app.get("/api/debug-data", responses={500: {"model": ErrorResponse}})
    def debug_data(limit: int = Query(5, ge=1, le=100)):
        try:
            return holder.get().sample_rows(limit)
        except SyncError as e:
            logger.error(f"Debug data failed: {e}")
            return _error(500, str(e))

    @app.get("/api/metrics")
    def metrics(format: str = Query("json", pattern="^(json|prometheus)$")):
        try:
            service = holder.get()
        except SyncError as e:
            return _error(500, str(e))

        if service.metrics is None:
            return _error(404, "Metrics are disabled")
        if format == "prometheus":
            return PlainTextResponse(service.metrics.export_metrics("prometheus"))
        return service.metrics.get_metrics()

    return app
