"""核心配置模块

处理环境变量读取、Railway URL的异步转换以及文件传输相关的业务参数
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_FILE_TYPES = [
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "text/plain",
    "text/csv",
    "application/json",
    "application/zip",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
]


class Settings(BaseSettings):
    """应用配置类

    自动从环境变量读取配置，并处理Railway注入的同步URL转换为异步URL
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # 数据库配置
    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL数据库连接URL（Railway注入的同步URL）"
    )

    # Redis配置
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis连接URL（Railway注入的同步URL）"
    )

    # 对象存储配置（S3 或 S3 兼容服务，例如 Cloudflare R2）
    service_name: str = Field(default="s3", description="S3兼容服务名称")
    endpoint_url: Optional[str] = Field(
        default=None,
        description="对象存储端点URL，AWS S3 可留空"
    )
    aws_access_key_id: Optional[str] = Field(
        default=None,
        description="对象存储访问密钥ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None,
        description="对象存储秘密访问密钥"
    )
    region_name: str = Field(default="us-east-1", description="对象存储区域名称")
    bucket_name: Optional[str] = Field(default=None, description="存放文件内容的存储桶")

    # 身份令牌配置
    jwt_secret: Optional[str] = Field(default=None, description="校验身份令牌的密钥或公钥")
    jwt_algorithm: str = Field(default="HS256", description="身份令牌签名算法")
    jwt_audience: Optional[str] = Field(default=None, description="身份令牌的 aud 声明")

    # 应用配置
    app_name: str = Field(default="FileVault Backend", description="应用名称")
    app_version: str = Field(default="0.1.0", description="应用版本")
    debug: bool = Field(default=False, description="调试模式")
    host: str = Field(default="0.0.0.0", description="服务器主机")
    port: int = Field(default=8000, description="服务器端口")
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:8000",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:8000",
        ],
        description="允许跨域访问的来源"
    )

    # 文件传输配置
    grant_ttl_seconds: int = Field(default=300, description="预签名URL有效期（秒）")
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, description="声明文件大小上限（字节）")
    allowed_file_types: list[str] = Field(
        default=DEFAULT_ALLOWED_FILE_TYPES,
        description="允许上传的文件MIME类型"
    )
    storage_name_max_length: int = Field(default=100, description="存储文件名最大长度")
    allow_cross_owner_download: bool = Field(
        default=False,
        description="是否允许仅凭文件ID为其他用户的文件签发下载URL"
    )

    # 缓存TTL配置（秒）
    download_grant_cache_ttl: int = Field(
        default=60,
        description="下载URL缓存时间，必须小于URL有效期"
    )

    # 通知配置
    notifications_enabled: bool = Field(default=False, description="上传完成后是否发送邮件")
    notification_sender: str = Field(
        default="noreply@filevault.local",
        description="通知邮件发件人"
    )

    @computed_field
    @property
    def async_database_url(self) -> Optional[str]:
        """将Railway的同步PostgreSQL URL转换为异步URL

        Railway注入的DATABASE_URL使用postgresql://前缀，
        但asyncpg需要postgresql+asyncpg://前缀

        Returns:
            Optional[str]: 异步数据库连接URL，如果未配置则返回None
        """
        if not self.database_url:
            return None

        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        return self.database_url

    @computed_field
    @property
    def async_redis_url(self) -> Optional[str]:
        """处理Redis URL确保兼容性

        Returns:
            Optional[str]: Redis连接URL，如果未配置则返回None
        """
        if not self.redis_url:
            return None

        if not self.redis_url.startswith(("redis://", "rediss://")):
            return f"redis://{self.redis_url}"
        return self.redis_url

    @computed_field
    @property
    def s3_config(self) -> Optional[dict[str, str]]:
        """对象存储客户端配置字典

        AWS S3 可以使用默认凭证链，因此只要求配置存储桶；
        显式配置的端点和密钥会原样传给boto3

        Returns:
            Optional[dict]: boto3客户端参数，如果未配置存储桶则返回None
        """
        if not self.bucket_name:
            return None

        config = {
            "service_name": self.service_name,
            "region_name": self.region_name,
        }
        if self.endpoint_url:
            config["endpoint_url"] = self.endpoint_url
        if self.aws_access_key_id and self.aws_secret_access_key:
            config["aws_access_key_id"] = self.aws_access_key_id
            config["aws_secret_access_key"] = self.aws_secret_access_key
        return config


@lru_cache
def get_settings() -> Settings:
    """获取应用配置单例

    使用lru_cache确保配置只被加载一次

    Returns:
        Settings: 应用配置实例
    """
    return Settings()


# 导出配置实例供其他模块使用
settings = get_settings()
