"""对象存储客户端

签发预签名上传/下载URL，探测对象是否存在以及删除对象。
兼容 AWS S3 和 Cloudflare R2 等 S3 协议服务
"""

import asyncio
import functools
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Protocol, TypeVar
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from app.core.redis import RedisManager
from app.shared.exceptions import StoreUnavailableError

from .models import utcnow

T = TypeVar("T")

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


@dataclass(frozen=True)
class Capability:
    """预签名URL及其有效期"""

    url: str
    expires_at: datetime
    expires_in: int
    headers: dict[str, str]


@dataclass(frozen=True)
class ProbeResult:
    """HEAD 请求得到的对象信息"""

    size_bytes: int
    content_type: Optional[str] = None
    etag: Optional[str] = None


class ObjectStorage(Protocol):
    """对象存储接口"""

    async def issue_upload_grant(self, storage_key: str, content_type: str, ttl: int) -> Capability: ...

    async def issue_download_grant(self, storage_key: str, download_file_name: str, ttl: int) -> Capability: ...

    async def probe(self, storage_key: str) -> Optional[ProbeResult]: ...

    async def delete(self, storage_key: str) -> None: ...


def content_disposition(file_name: str) -> str:
    """构造下载时的 Content-Disposition 头

    同时提供 ASCII 回退文件名和 RFC 5987 编码的原始文件名
    """
    fallback = file_name.encode("ascii", "ignore").decode("ascii")
    fallback = fallback.replace("\\", "_").replace('"', "_").strip() or "download"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


class S3ObjectStorage:
    """基于 boto3 的对象存储客户端

    boto3 是同步库，所有网络调用都放到默认执行器中运行，避免阻塞事件循环
    """

    def __init__(
        self,
        s3_client: Any,
        bucket_name: str,
        cache: Optional[RedisManager] = None,
        cache_ttl: int = 60,
    ) -> None:
        """初始化对象存储客户端

        Args:
            s3_client: boto3 S3 客户端
            bucket_name: 存储桶名称
            cache: 可选的下载URL缓存
            cache_ttl: 下载URL缓存时间（秒）
        """
        self.s3_client = s3_client
        self.bucket_name = bucket_name
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def _presign(self, operation: str, params: dict[str, Any], ttl: int) -> str:
        try:
            return await self._call(
                self.s3_client.generate_presigned_url,
                operation,
                Params={"Bucket": self.bucket_name, **params},
                ExpiresIn=ttl,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"生成预签名URL失败 {operation} {params.get('Key')}: {e}")
            raise StoreUnavailableError("对象存储暂时不可用") from e

    async def issue_upload_grant(self, storage_key: str, content_type: str, ttl: int) -> Capability:
        """签发预签名上传URL

        URL 只允许以指定的 Content-Type 向该键写入一次 PUT

        Args:
            storage_key: 对象存储键名
            content_type: 文件MIME类型
            ttl: 有效期（秒）

        Returns:
            Capability: 上传URL
        """
        expires_at = utcnow() + timedelta(seconds=ttl)
        url = await self._presign(
            "put_object",
            {"Key": storage_key, "ContentType": content_type},
            ttl,
        )
        logger.info(f"预签名上传URL已生成: {storage_key}")
        return Capability(
            url=url,
            expires_at=expires_at,
            expires_in=ttl,
            headers={"Content-Type": content_type},
        )

    def _cache_key(self, cache: RedisManager, storage_key: str) -> str:
        return cache.build_key("download-grant", self.bucket_name, storage_key)

    async def _cached_download_grant(
        self, storage_key: str, download_file_name: str, ttl: int
    ) -> Optional[Capability]:
        if self.cache is None:
            return None

        cached = await self.cache.get(self._cache_key(self.cache, storage_key))
        if not isinstance(cached, dict):
            return None
        if cached.get("file_name") != download_file_name or cached.get("ttl") != ttl:
            return None

        expires_at = datetime.fromisoformat(cached["expires_at"])
        remaining = int((expires_at - utcnow()).total_seconds())
        if remaining <= 0:
            return None

        logger.debug(f"下载URL缓存命中: {storage_key}")
        return Capability(url=cached["url"], expires_at=expires_at, expires_in=remaining, headers={})

    async def issue_download_grant(self, storage_key: str, download_file_name: str, ttl: int) -> Capability:
        """签发预签名下载URL

        下载时浏览器会以 download_file_name 作为建议文件名保存

        Args:
            storage_key: 对象存储键名
            download_file_name: 展示给用户的文件名
            ttl: 有效期（秒）

        Returns:
            Capability: 下载URL
        """
        cached = await self._cached_download_grant(storage_key, download_file_name, ttl)
        if cached is not None:
            return cached

        expires_at = utcnow() + timedelta(seconds=ttl)
        url = await self._presign(
            "get_object",
            {
                "Key": storage_key,
                "ResponseContentDisposition": content_disposition(download_file_name),
            },
            ttl,
        )
        logger.info(f"预签名下载URL已生成: {storage_key}")

        if self.cache is not None and self.cache_ttl < ttl:
            await self.cache.set(
                self._cache_key(self.cache, storage_key),
                {
                    "url": url,
                    "file_name": download_file_name,
                    "ttl": ttl,
                    "expires_at": expires_at,
                },
                self.cache_ttl,
            )

        return Capability(url=url, expires_at=expires_at, expires_in=ttl, headers={})

    async def probe(self, storage_key: str) -> Optional[ProbeResult]:
        """检查对象是否存在并获取大小

        Args:
            storage_key: 对象存储键名

        Returns:
            Optional[ProbeResult]: 对象信息，对象不存在返回None
        """
        try:
            head = await self._call(
                self.s3_client.head_object, Bucket=self.bucket_name, Key=storage_key
            )
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_OBJECT_CODES:
                return None
            logger.error(f"检查文件存在失败 {storage_key}: {e}")
            raise StoreUnavailableError("对象存储暂时不可用") from e
        except BotoCoreError as e:
            logger.error(f"检查文件存在失败 {storage_key}: {e}")
            raise StoreUnavailableError("对象存储暂时不可用") from e

        return ProbeResult(
            size_bytes=int(head.get("ContentLength") or 0),
            content_type=head.get("ContentType"),
            etag=(head.get("ETag") or "").strip('"') or None,
        )

    async def delete(self, storage_key: str) -> None:
        """删除对象

        删除不存在的键不会报错

        Args:
            storage_key: 对象存储键名
        """
        try:
            await self._call(
                self.s3_client.delete_object, Bucket=self.bucket_name, Key=storage_key
            )
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code not in _MISSING_OBJECT_CODES:
                logger.error(f"删除文件失败 {storage_key}: {e}")
                raise StoreUnavailableError("对象存储暂时不可用") from e
        except BotoCoreError as e:
            logger.error(f"删除文件失败 {storage_key}: {e}")
            raise StoreUnavailableError("对象存储暂时不可用") from e

        if self.cache is not None:
            await self.cache.delete(self._cache_key(self.cache, storage_key))

        logger.info(f"文件已删除: {storage_key}")
