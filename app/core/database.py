"""数据库连接模块

提供SQLAlchemy异步数据库连接和会话管理
"""

import asyncio
from typing import Any

from alembic import command
from alembic.config import Config
from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel


class DatabaseManager:
    """数据库管理器

    管理异步数据库引擎和会话工厂，由应用生命周期创建并注入到各个服务中
    """

    def __init__(self, database_url: str, echo: bool = False) -> None:
        """初始化数据库管理器

        创建异步引擎和会话工厂，配置连接池参数

        Args:
            database_url: 异步数据库连接URL
            echo: 是否打印SQL语句
        """
        self.database_url = database_url
        self.engine = create_async_engine(
            database_url,
            echo=echo,
            **self._engine_options(database_url),
        )

        self.async_session = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # 提交后不过期对象
            autoflush=True,
        )

        logger.info(f"数据库引擎已初始化: {database_url.split('@')[1] if '@' in database_url else database_url.split(':')[0]}")

    @staticmethod
    def _engine_options(database_url: str) -> dict[str, Any]:
        # SQLite 仅用于本地开发和测试，不配置连接池参数
        if database_url.startswith("sqlite"):
            return {}
        return {
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,  # 连接前ping检查
            "pool_recycle": 3600,
        }

    async def run_migrations(self) -> None:
        """运行数据库迁移

        使用 Alembic 升级到最新版本，Alembic 是同步的，因此放到执行器线程中运行
        """
        try:
            await asyncio.get_running_loop().run_in_executor(
                None, self._run_alembic_upgrade
            )
            logger.info("数据库迁移完成")
        except Exception as e:
            logger.error(f"数据库迁移失败: {e}")
            raise

    def _run_alembic_upgrade(self) -> None:
        alembic_cfg = Config("alembic.ini")
        command.upgrade(alembic_cfg, "head")

    async def create_tables(self) -> None:
        """直接创建所有表

        用于测试以及开发环境下迁移失败时的备用方案，不支持增量迁移
        """
        # 确保模型已注册到元数据
        from app.features.files import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.warning("已通过 create_all 创建数据库表")

    async def ping(self) -> bool:
        """检查数据库连接

        Returns:
            bool: 连接是否正常
        """
        try:
            async with self.async_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"数据库健康检查失败: {e}")
            return False

    async def close(self) -> None:
        """关闭数据库连接

        在应用关闭时调用，清理资源
        """
        await self.engine.dispose()
        logger.info("数据库连接已关闭")
