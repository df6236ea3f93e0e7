"""元数据存储客户端

提供按 (owner_id, file_id) 访问文件记录的接口以及基于 SQLModel 的实现
"""

from typing import Any, Optional, Protocol

from loguru import logger
from sqlalchemy import delete, update
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.shared.exceptions import (
    AlreadyExistsError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)

from .models import FileRecord

# 创建后唯一允许修改的字段
MUTABLE_FIELDS = frozenset({"status", "actual_size", "completed_at"})

REQUIRED_FIELDS = (
    "owner_id",
    "file_id",
    "file_name",
    "sanitized_storage_name",
    "file_type",
    "storage_key",
    "status",
)


def check_required_fields(record: FileRecord) -> None:
    """检查写入前的必填字段

    Raises:
        ValidationError: 缺少任一必填字段
    """
    missing = [name for name in REQUIRED_FIELDS if not getattr(record, name, None)]
    if record.created_at is None:
        missing.append("created_at")
    if missing:
        raise ValidationError([f"缺少必填字段: {name}" for name in missing])


def check_mutable_fields(fields: dict[str, Any]) -> None:
    """检查部分更新只涉及可变字段"""
    immutable = sorted(set(fields) - MUTABLE_FIELDS)
    if immutable:
        raise ValueError(f"以下字段创建后不可修改: {', '.join(immutable)}")


class MetadataStore(Protocol):
    """元数据存储接口

    所有方法在传输或后端错误时抛出 StoreUnavailableError
    """

    async def get(self, owner_id: str, file_id: str) -> Optional[FileRecord]: ...

    async def get_by_file_id(self, file_id: str) -> Optional[FileRecord]: ...

    async def put(self, record: FileRecord) -> FileRecord: ...

    async def update_status(self, owner_id: str, file_id: str, **fields: Any) -> FileRecord: ...

    async def delete(self, owner_id: str, file_id: str) -> bool: ...

    async def list_by_owner(self, owner_id: str) -> list[FileRecord]: ...


class SQLMetadataStore:
    """基于 SQLModel 和异步 SQLAlchemy 的元数据存储

    每个操作使用独立会话，部分更新通过单条 UPDATE 语句原子完成
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, owner_id: str, file_id: str) -> Optional[FileRecord]:
        """按 (owner_id, file_id) 获取文件记录

        Args:
            owner_id: 文件所有者ID
            file_id: 文件ID

        Returns:
            Optional[FileRecord]: 文件记录，不存在返回None
        """
        try:
            async with self._session_factory() as session:
                return await session.get(FileRecord, (owner_id, file_id))
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"读取文件记录失败 {owner_id}/{file_id}: {e}")
            raise StoreUnavailableError("元数据存储暂时不可用") from e

    async def get_by_file_id(self, file_id: str) -> Optional[FileRecord]:
        """仅按文件ID查找记录（不校验所有者）

        Args:
            file_id: 文件ID

        Returns:
            Optional[FileRecord]: 文件记录，不存在返回None
        """
        statement = select(FileRecord).where(FileRecord.file_id == file_id).limit(1)
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"按文件ID查找记录失败 {file_id}: {e}")
            raise StoreUnavailableError("元数据存储暂时不可用") from e

    async def put(self, record: FileRecord) -> FileRecord:
        """创建文件记录

        Args:
            record: 待写入的文件记录

        Returns:
            FileRecord: 写入后的文件记录

        Raises:
            ValidationError: 缺少必填字段或字段超出列定义
            AlreadyExistsError: 主键或文件ID已存在
        """
        check_required_fields(record)
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
                await session.refresh(record)
        except DataError as e:
            logger.warning(f"文件记录字段超出列定义 {record.owner_id}/{record.file_id}: {e}")
            raise ValidationError(["文件记录字段超出长度或取值范围"]) from e
        except IntegrityError as e:
            logger.warning(f"文件记录已存在: {record.owner_id}/{record.file_id}")
            raise AlreadyExistsError(f"文件记录已存在: {record.file_id}") from e
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"写入文件记录失败 {record.owner_id}/{record.file_id}: {e}")
            raise StoreUnavailableError("元数据存储暂时不可用") from e

        logger.info(f"文件记录已创建: {record.file_id} - {record.file_name}")
        return record

    async def update_status(self, owner_id: str, file_id: str, **fields: Any) -> FileRecord:
        """部分更新文件记录

        所有字段通过一条 UPDATE 语句写入，读者不会看到中间状态

        Args:
            owner_id: 文件所有者ID
            file_id: 文件ID
            **fields: 需要更新的字段，只允许 status、actual_size、completed_at

        Returns:
            FileRecord: 更新后的文件记录

        Raises:
            NotFoundError: 记录不存在
        """
        check_mutable_fields(fields)
        statement = (
            update(FileRecord)
            .where(FileRecord.owner_id == owner_id, FileRecord.file_id == file_id)
            .values(**fields)
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                await session.commit()
                if result.rowcount == 0:
                    raise NotFoundError(f"文件记录不存在: {file_id}")
                record = await session.get(
                    FileRecord, (owner_id, file_id), populate_existing=True
                )
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"更新文件记录失败 {owner_id}/{file_id}: {e}")
            raise StoreUnavailableError("元数据存储暂时不可用") from e

        if record is None:
            raise NotFoundError(f"文件记录不存在: {file_id}")

        logger.info(f"文件记录已更新: {file_id} -> {fields.get('status', record.status)}")
        return record

    async def delete(self, owner_id: str, file_id: str) -> bool:
        """删除文件记录

        Returns:
            bool: 是否删除了已存在的记录
        """
        statement = delete(FileRecord).where(
            FileRecord.owner_id == owner_id, FileRecord.file_id == file_id
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"删除文件记录失败 {owner_id}/{file_id}: {e}")
            raise StoreUnavailableError("元数据存储暂时不可用") from e

        return result.rowcount > 0

    async def list_by_owner(self, owner_id: str) -> list[FileRecord]:
        """列出用户的全部文件记录，按创建时间倒序

        Args:
            owner_id: 文件所有者ID

        Returns:
            list[FileRecord]: 文件记录列表
        """
        statement = (
            select(FileRecord)
            .where(FileRecord.owner_id == owner_id)
            .order_by(FileRecord.created_at.desc(), FileRecord.file_id.desc())
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"查询用户文件列表失败 {owner_id}: {e}")
            raise StoreUnavailableError("元数据存储暂时不可用") from e
