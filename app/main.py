"""FastAPI应用主入口

配置应用实例、中间件、路由和生命周期事件
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

import boto3
from botocore.config import Config as BotoConfig
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from app.core.config import get_settings, settings
from app.core.database import DatabaseManager
from app.core.logging import setup_logging
from app.core.redis import RedisManager
from app.features.files.metadata_store import SQLMetadataStore
from app.features.files.notifications import SESUploadNotifier
from app.features.files.object_storage import S3ObjectStorage
from app.features.files.router import router as files_router
from app.shared.exceptions import BaseAPIException, ValidationError
from app.shared.schemas import APIResponse, HealthCheckResponse


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理

    启动时创建数据库、Redis和对象存储客户端并挂到 app.state 上，
    关闭时清理资源。未配置的服务会被跳过
    """
    config = get_settings()
    logger.info("正在启动FastAPI应用...")

    db_manager = None
    redis_manager = None

    if config.async_database_url:
        db_manager = DatabaseManager(config.async_database_url, echo=config.debug)
        try:
            await db_manager.run_migrations()
        except Exception as migration_error:
            # 生产环境下迁移失败应该停止启动
            if not config.debug:
                logger.error("生产环境下数据库迁移失败，应用启动终止")
                raise
            logger.warning(f"数据库迁移失败，使用备用方法建表: {migration_error}")
            await db_manager.create_tables()
        app.state.db_manager = db_manager
        app.state.metadata_store = SQLMetadataStore(db_manager.async_session)
    else:
        logger.warning("数据库未配置，跳过数据库相关操作")

    if config.async_redis_url:
        redis_manager = RedisManager(config.async_redis_url)
        app.state.redis_manager = redis_manager
    else:
        logger.warning("Redis未配置，下载URL缓存已禁用")

    s3_config = config.s3_config
    if s3_config:
        s3_client = boto3.client(
            **s3_config,
            config=BotoConfig(signature_version="s3v4", retries={"max_attempts": 3, "mode": "standard"}),
        )
        app.state.object_storage = S3ObjectStorage(
            s3_client,
            config.bucket_name,
            cache=redis_manager,
            cache_ttl=config.download_grant_cache_ttl,
        )
        logger.info(f"对象存储已初始化: bucket={config.bucket_name}, endpoint={config.endpoint_url}")
    else:
        logger.warning("对象存储未配置，文件接口将返回503")

    if config.notifications_enabled:
        app.state.notifier = SESUploadNotifier(
            boto3.client("ses", region_name=config.region_name),
            config.notification_sender,
            app_name=config.app_name,
        )

    logger.info("应用启动完成")

    yield

    logger.info("正在关闭FastAPI应用...")
    try:
        if redis_manager is not None:
            await redis_manager.close()
        if db_manager is not None:
            await db_manager.close()
        logger.info("应用关闭完成")
    except Exception as e:
        logger.error(f"应用关闭时出错: {e}")


# 创建FastAPI应用实例
app = FastAPI(
    title=settings.app_name,
    description="基于FastAPI的文件存储服务，文件内容直接通过预签名URL上传到S3兼容的对象存储",
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan
)


# 配置CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException) -> JSONResponse:
    """业务异常处理器

    把自定义异常转换为统一的API响应格式，验证错误附带全部错误列表
    """
    logger.warning(f"业务异常: {exc.status_code} {exc.error_type} - {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        headers=exc.headers,
        content=APIResponse(
            success=False,
            data=None,
            message=exc.detail,
            code=exc.status_code,
            error_type=exc.error_type,
            errors=exc.errors if isinstance(exc, ValidationError) else None
        ).model_dump(mode="json")
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求格式异常处理器

    请求体无法解析时（例如不是JSON对象）同样返回统一格式和错误列表
    """
    errors = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    ]
    logger.warning(f"请求格式错误: {errors}")

    return JSONResponse(
        status_code=422,
        content=APIResponse(
            success=False,
            data=None,
            message="数据验证失败",
            code=422,
            error_type="ValidationError",
            errors=errors
        ).model_dump(mode="json")
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTP异常处理器

    将HTTPException转换为统一的API响应格式
    """
    logger.warning(f"HTTP异常: {exc.status_code} - {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=APIResponse(
            success=False,
            data=None,
            message=str(exc.detail),
            code=exc.status_code,
            error_type="HTTPException"
        ).model_dump(mode="json")
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """通用异常处理器

    处理未捕获的异常，避免暴露内部错误信息
    """
    logger.error(f"未处理的异常: {type(exc).__name__}: {str(exc)}")

    return JSONResponse(
        status_code=500,
        content=APIResponse(
            success=False,
            data=None,
            message="服务器内部错误" if not settings.debug else str(exc),
            code=500,
            error_type=type(exc).__name__
        ).model_dump(mode="json")
    )


@app.get(
    "/health",
    response_model=APIResponse[HealthCheckResponse],
    summary="健康检查",
    description="检查应用和各个服务的健康状态"
)
async def health_check(request: Request) -> APIResponse[HealthCheckResponse]:
    """健康检查端点

    检查数据库、Redis和对象存储的状态。Redis是可选的，不影响整体健康状态

    Returns:
        APIResponse[HealthCheckResponse]: 健康检查结果
    """
    db_manager = getattr(request.app.state, "db_manager", None)
    database_healthy = bool(db_manager and await db_manager.ping())

    redis_manager = getattr(request.app.state, "redis_manager", None)
    redis_healthy = bool(redis_manager and await redis_manager.ping())

    storage_healthy = getattr(request.app.state, "object_storage", None) is not None

    overall_healthy = database_healthy and storage_healthy

    health_data = HealthCheckResponse(
        status="healthy" if overall_healthy else "unhealthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.app_version,
        database=database_healthy,
        redis=redis_healthy,
        storage=storage_healthy
    )

    return APIResponse(
        success=overall_healthy,
        data=health_data,
        message="健康检查完成",
        code=200 if overall_healthy else 503
    )


@app.get(
    "/",
    response_model=APIResponse[dict],
    summary="API信息",
    description="获取API基本信息"
)
async def root() -> APIResponse[dict]:
    return APIResponse(
        success=True,
        data={
            "name": settings.app_name,
            "version": settings.app_version,
            "description": "基于FastAPI的文件存储服务",
            "docs_url": "/docs",
            "health_url": "/health"
        },
        message="欢迎使用文件存储API",
        code=200
    )


# 注册路由
app.include_router(
    files_router,
    prefix="/api/files",
    tags=["文件"]
)


if __name__ == "__main__":
    import uvicorn

    setup_logging(settings)
    logger.info(f"启动开发服务器: {settings.app_name} v{settings.app_version}")

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="info" if not settings.debug else "debug"
    )
