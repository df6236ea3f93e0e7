"""文件传输数据模型

定义文件元数据表以及每个操作各自的请求/响应模型
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from sqlalchemy import BigInteger, Column, DateTime, Index, UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """当前UTC时间（带时区）"""
    return datetime.now(timezone.utc)


class FileStatus(str, Enum):
    """文件传输状态"""

    PENDING_UPLOAD = "pending_upload"
    UPLOADED = "uploaded"


class FileRecord(SQLModel, table=True):
    """文件记录表

    一行对应一次文件传输，主键为 (owner_id, file_id)；
    file_id 全局唯一，storage_key 创建后不再重新计算
    """

    __tablename__ = "file_records"
    __table_args__ = (
        UniqueConstraint("file_id", name="uq_file_records_file_id"),
        Index("ix_file_records_owner_created", "owner_id", "created_at"),
    )

    owner_id: str = Field(primary_key=True, max_length=128, description="文件所有者身份ID")
    file_id: str = Field(primary_key=True, max_length=64, description="文件ID")
    file_name: str = Field(max_length=1024, description="用户提交的原始文件名")
    sanitized_storage_name: str = Field(max_length=255, description="清理后的存储文件名")
    file_type: str = Field(max_length=255, description="文件MIME类型")
    declared_size: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, nullable=True),
        description="客户端声明的文件大小（字节）"
    )
    actual_size: Optional[int] = Field(
        default=None,
        sa_column=Column(BigInteger, nullable=True),
        description="确认上传时实际测得的文件大小（字节）"
    )
    storage_key: str = Field(max_length=1024, description="对象存储键名")
    status: str = Field(
        default=FileStatus.PENDING_UPLOAD.value,
        max_length=20,
        description="上传状态: pending_upload, uploaded"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
        description="创建时间"
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
        description="上传确认时间"
    )

    @property
    def is_uploaded(self) -> bool:
        return self.status == FileStatus.UPLOADED.value

    @property
    def effective_size(self) -> int:
        """优先使用实际大小，其次为声明大小"""
        if self.actual_size is not None:
            return self.actual_size
        return self.declared_size or 0


class UploadGrantRequest(SQLModel):
    """上传URL请求模型

    字段不在这里做类型校验，类型错误和业务规则在业务层一起返回
    """

    file_name: Optional[Any] = Field(default=None, description="文件名")
    file_type: Optional[Any] = Field(default=None, description="文件MIME类型")
    declared_size: Optional[Any] = Field(default=None, description="文件大小（字节），可选")


class UploadGrant(SQLModel):
    """上传URL响应模型"""

    operation: Literal["upload_grant"] = "upload_grant"
    file_id: str = Field(description="文件ID")
    upload_url: str = Field(description="预签名上传URL")
    expires_in: int = Field(description="URL过期时间（秒）")
    expires_at: datetime = Field(description="URL过期时刻")
    headers: dict[str, str] = Field(default_factory=dict, description="上传时必须携带的请求头")


class UploadConfirmation(SQLModel):
    """上传确认响应模型"""

    operation: Literal["upload_confirmation"] = "upload_confirmation"
    file_id: str
    file_name: str
    status: str
    actual_size: int
    completed_at: datetime


class DownloadGrant(SQLModel):
    """下载URL响应模型"""

    operation: Literal["download_grant"] = "download_grant"
    download_url: str = Field(description="预签名下载URL")
    expires_in: int = Field(description="URL剩余有效时间（秒）")
    expires_at: datetime = Field(description="URL过期时刻")
    file_name: str
    file_type: str
    size_bytes: int


class DeletionReceipt(SQLModel):
    """删除文件响应模型"""

    operation: Literal["deletion"] = "deletion"
    file_id: str
    file_name: str
    deleted_at: datetime


class FileSummary(SQLModel):
    """文件列表中的单个文件"""

    file_id: str
    file_name: str
    file_type: str
    size: int
    status: str
    created_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileSummary":
        return cls(
            file_id=record.file_id,
            file_name=record.file_name,
            file_type=record.file_type,
            size=record.effective_size,
            status=record.status,
            created_at=record.created_at,
            completed_at=record.completed_at,
        )


class FileInventory(SQLModel):
    """用户文件清单及存储用量"""

    operation: Literal["inventory"] = "inventory"
    files: list[FileSummary] = Field(default_factory=list)
    total_count: int = 0
    uploaded_count: int = 0
    total_bytes: int = 0
    total_megabytes: str = "0.00"
