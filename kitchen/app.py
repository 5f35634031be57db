"""
厨房库存后端服务 - 主应用入口
提供食材台账、餐品配方、餐品制作、预算和库存告警的API服务

主要功能模块：
- 计量单位与食材台账
- 餐品配方管理
- 餐品制作（原子扣减库存并记录成本）
- 预算周期与使用情况
- 低库存/库存过剩告警
- 操作日志记录

技术栈：FastAPI + DuckDB
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import api_router
from .api.deps import get_db
from .config.settings import settings
from .core.database import DatabaseManager, db_manager
from .core.error_handler import (
    application_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.exceptions import BaseApplicationError, StorageError
from .core.log_config import configure_logging
from .schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    configure_logging(settings.log_level)
    # 启动时初始化数据库
    try:
        db_manager.init_database()
    except StorageError as e:
        # 不要让应用启动失败，允许在运行时重试
        logger.error("Database initialization failed: %s", e.message)

    yield

    db_manager.close()


def create_app() -> FastAPI:
    """创建FastAPI应用"""
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="厨房食材库存与成本管理API",
        debug=settings.debug,
        lifespan=lifespan
    )

    # 添加中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册异常处理器
    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # 注册路由
    app.include_router(
        api_router,
        prefix=settings.api_prefix,
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
        },
    )

    # 健康检查
    @app.get("/health")
    def health_check(db: DatabaseManager = Depends(get_db)):
        try:
            db.execute_one("SELECT 1")
            return {
                "status": "healthy",
                "version": settings.api_version,
                "database": "connected"
            }
        except StorageError as e:
            return {
                "status": "unhealthy",
                "version": settings.api_version,
                "database": f"error: {e.message}"
            }

    @app.get("/")
    def root():
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "description": "厨房食材库存与成本管理API"
        }

    return app


# 应用实例
app = create_app()
