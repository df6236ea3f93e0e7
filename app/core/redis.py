"""Redis连接模块

提供Redis异步连接池和缓存操作
"""

import hashlib
import json
from datetime import datetime
from typing import Any, Optional

import redis.asyncio as redis
from loguru import logger


class RedisManager:
    """Redis管理器

    管理Redis连接池和提供缓存操作方法。
    缓存只是加速手段，所有读写失败都会记录日志并按未命中处理
    """

    def __init__(self, redis_url: str, namespace: str = "filevault") -> None:
        """初始化Redis管理器

        Args:
            redis_url: Redis连接URL
            namespace: 缓存键前缀
        """
        self.namespace = namespace
        self.redis_pool = redis.ConnectionPool.from_url(
            redis_url,
            max_connections=20,
            retry_on_timeout=True,
            socket_keepalive=True,
            health_check_interval=30,
            decode_responses=True,
        )
        self.redis_client = redis.Redis(connection_pool=self.redis_pool)

        logger.info("Redis连接池已初始化")

    async def ping(self) -> bool:
        """检查Redis连接状态

        Returns:
            bool: 连接是否正常
        """
        try:
            await self.redis_client.ping()
            return True
        except Exception as e:
            logger.error(f"Redis连接检查失败: {e}")
            return False

    async def close(self) -> None:
        """关闭Redis连接"""
        await self.redis_client.aclose()
        await self.redis_pool.disconnect()
        logger.info("Redis连接已关闭")

    def _serialize_value(self, value: Any) -> str:
        def json_serializer(obj: Any) -> str:
            if isinstance(obj, datetime):
                return obj.isoformat()
            raise TypeError(f"Object of type {type(obj)} is not JSON serializable")

        return json.dumps(value, default=json_serializer, ensure_ascii=False)

    def _deserialize_value(self, value: str) -> Any:
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value

    def build_key(self, module: str, *args: Any) -> str:
        """构建缓存键名

        格式: {namespace}:{module}:{参数哈希}

        Args:
            module: 模块名
            *args: 参与构建键名的参数

        Returns:
            str: 缓存键名
        """
        args_str = ":".join(str(arg) for arg in args)
        args_hash = hashlib.sha256(args_str.encode()).hexdigest()[:16]

        return f"{self.namespace}:{module}:{args_hash}"

    async def get(self, key: str) -> Optional[Any]:
        """获取缓存值

        Args:
            key: 缓存键

        Returns:
            Optional[Any]: 缓存值，不存在或读取失败返回None
        """
        try:
            value = await self.redis_client.get(key)
            if value is None:
                return None
            return self._deserialize_value(value)
        except Exception as e:
            logger.error(f"Redis获取缓存失败 {key}: {e}")
            return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        """设置缓存值

        Args:
            key: 缓存键
            value: 缓存值
            ttl: 过期时间（秒），None表示不过期

        Returns:
            bool: 是否设置成功
        """
        try:
            serialized_value = self._serialize_value(value)
            if ttl:
                await self.redis_client.setex(key, ttl, serialized_value)
            else:
                await self.redis_client.set(key, serialized_value)
            return True
        except Exception as e:
            logger.error(f"Redis设置缓存失败 {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """删除缓存

        Args:
            key: 缓存键

        Returns:
            bool: 是否删除了已存在的键
        """
        try:
            result = await self.redis_client.delete(key)
            return result > 0
        except Exception as e:
            logger.error(f"Redis删除缓存失败 {key}: {e}")
            return False
