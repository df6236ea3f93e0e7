"""文件传输协调器

管理文件从签发上传URL、确认上传、签发下载URL到删除的完整生命周期，
保证元数据记录与对象存储中的内容保持一致
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from loguru import logger

from app.core.config import Settings
from app.shared.best_effort import run_best_effort
from app.shared.exceptions import (
    NotFoundError,
    NotReadyError,
    UnauthorizedError,
    UploadNotFoundError,
    ValidationError,
)

from .metadata_store import MetadataStore
from .models import (
    DeletionReceipt,
    DownloadGrant,
    FileRecord,
    FileStatus,
    UploadConfirmation,
    UploadGrant,
    utcnow,
)
from .naming import build_storage_key, generate_file_id, sanitize_storage_name
from .notifications import UploadNotifier
from .object_storage import ObjectStorage
from .validation import validate_upload_request


@dataclass(frozen=True)
class TransferPolicy:
    """文件传输规则"""

    grant_ttl_seconds: int = 300
    max_upload_bytes: int = 50 * 1024 * 1024
    allowed_file_types: frozenset[str] = field(default_factory=frozenset)
    storage_name_max_length: int = 100
    allow_cross_owner_download: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "TransferPolicy":
        return cls(
            grant_ttl_seconds=settings.grant_ttl_seconds,
            max_upload_bytes=settings.max_upload_bytes,
            allowed_file_types=frozenset(settings.allowed_file_types),
            storage_name_max_length=settings.storage_name_max_length,
            allow_cross_owner_download=settings.allow_cross_owner_download,
        )


def _require_owner(owner_id: Optional[str]) -> str:
    if not owner_id:
        raise UnauthorizedError("缺少用户身份")
    return owner_id


class TransferCoordinator:
    """文件传输协调器

    状态流转: pending_upload -> uploaded -> (删除后记录不存在)。
    协调器本身不持有可变状态，并发安全依赖元数据存储的单条记录原子性
    """

    def __init__(
        self,
        metadata_store: MetadataStore,
        object_storage: ObjectStorage,
        policy: TransferPolicy,
        notifier: Optional[UploadNotifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """初始化协调器

        Args:
            metadata_store: 元数据存储
            object_storage: 对象存储
            policy: 文件传输规则
            notifier: 可选的上传完成通知
            clock: 当前时间来源
        """
        self.metadata_store = metadata_store
        self.object_storage = object_storage
        self.policy = policy
        self.notifier = notifier
        self.clock = clock

    async def issue_upload_grant(
        self,
        owner_id: Optional[str],
        file_name: Any,
        file_type: Any,
        declared_size: Any = None,
    ) -> UploadGrant:
        """签发上传URL

        先写入 pending_upload 记录，写入成功后才签发URL，
        因此不会出现没有对应记录的上传URL

        Args:
            owner_id: 当前用户ID
            file_name: 文件名
            file_type: 文件MIME类型
            declared_size: 声明的文件大小（字节）

        Returns:
            UploadGrant: 文件ID和上传URL

        Raises:
            UnauthorizedError: 缺少用户身份
            ValidationError: 请求不合法，列出全部错误
            StoreUnavailableError: 元数据或对象存储不可用
        """
        owner_id = _require_owner(owner_id)

        errors = validate_upload_request(
            file_name,
            file_type,
            declared_size,
            allowed_file_types=self.policy.allowed_file_types,
            max_upload_bytes=self.policy.max_upload_bytes,
        )
        if errors:
            logger.info(f"上传请求校验失败 {owner_id}: {errors}")
            raise ValidationError(errors)

        file_id = generate_file_id()
        sanitized = sanitize_storage_name(file_name, self.policy.storage_name_max_length)
        record = FileRecord(
            owner_id=owner_id,
            file_id=file_id,
            file_name=file_name,
            sanitized_storage_name=sanitized,
            file_type=file_type,
            declared_size=declared_size,
            storage_key=build_storage_key(owner_id, file_id, sanitized),
            status=FileStatus.PENDING_UPLOAD.value,
            created_at=self.clock(),
        )
        record = await self.metadata_store.put(record)

        capability = await self.object_storage.issue_upload_grant(
            record.storage_key, record.file_type, self.policy.grant_ttl_seconds
        )

        logger.info(f"上传URL已签发: {file_id} ({declared_size} bytes) -> {record.storage_key}")
        return UploadGrant(
            file_id=file_id,
            upload_url=capability.url,
            expires_in=capability.expires_in,
            expires_at=capability.expires_at,
            headers=capability.headers,
        )

    async def confirm_upload(
        self,
        owner_id: Optional[str],
        file_id: str,
        email: Optional[str] = None,
    ) -> UploadConfirmation:
        """确认上传完成

        探测对象存储中的实际内容后把记录标记为 uploaded。
        可以安全重试，重复确认会重新探测并写入相同结果

        Args:
            owner_id: 当前用户ID
            file_id: 文件ID
            email: 用户邮箱，存在时首次确认会发送通知

        Returns:
            UploadConfirmation: 确认结果

        Raises:
            NotFoundError: 文件记录不存在
            UploadNotFoundError: 对象存储中没有文件内容，状态保持不变
        """
        owner_id = _require_owner(owner_id)

        record = await self.metadata_store.get(owner_id, file_id)
        if record is None:
            raise NotFoundError(f"文件记录不存在: {file_id}")

        probe = await self.object_storage.probe(record.storage_key)
        if probe is None:
            logger.warning(f"确认上传时对象不存在: {file_id} -> {record.storage_key}")
            raise UploadNotFoundError()

        first_confirmation = not record.is_uploaded
        updated = await self.metadata_store.update_status(
            owner_id,
            file_id,
            status=FileStatus.UPLOADED.value,
            actual_size=probe.size_bytes,
            completed_at=self.clock(),
        )

        logger.info(f"文件上传已完成: {file_id} - {updated.file_name} ({probe.size_bytes} bytes)")

        if first_confirmation and email and self.notifier is not None:
            await run_best_effort(
                "发送上传完成通知",
                self.notifier.upload_completed(email, updated),
                file_id=file_id,
            )

        return UploadConfirmation(
            file_id=updated.file_id,
            file_name=updated.file_name,
            status=updated.status,
            actual_size=probe.size_bytes,
            completed_at=updated.completed_at,
        )

    async def _find_downloadable(self, owner_id: str, file_id: str) -> Optional[FileRecord]:
        record = await self.metadata_store.get(owner_id, file_id)
        if record is not None:
            return record

        other = await self.metadata_store.get_by_file_id(file_id)
        if other is None:
            return None

        if self.policy.allow_cross_owner_download:
            logger.info(f"跨用户下载: {owner_id} -> {other.owner_id}/{file_id}")
            return other

        logger.warning(f"拒绝跨用户下载请求: {owner_id} -> {file_id}")
        return None

    async def issue_download_grant(self, owner_id: Optional[str], file_id: str) -> DownloadGrant:
        """签发下载URL

        Args:
            owner_id: 当前用户ID
            file_id: 文件ID

        Returns:
            DownloadGrant: 下载URL和文件信息

        Raises:
            NotFoundError: 文件记录不存在
            NotReadyError: 文件尚未上传完成
        """
        owner_id = _require_owner(owner_id)

        record = await self._find_downloadable(owner_id, file_id)
        if record is None:
            raise NotFoundError(f"文件记录不存在: {file_id}")

        if not record.is_uploaded:
            raise NotReadyError()

        capability = await self.object_storage.issue_download_grant(
            record.storage_key, record.file_name, self.policy.grant_ttl_seconds
        )

        logger.info(f"下载URL已签发: {file_id} - {record.file_name}")
        return DownloadGrant(
            download_url=capability.url,
            expires_in=capability.expires_in,
            expires_at=capability.expires_at,
            file_name=record.file_name,
            file_type=record.file_type,
            size_bytes=record.effective_size,
        )

    async def delete_file(self, owner_id: Optional[str], file_id: str) -> DeletionReceipt:
        """删除文件

        先尽力删除对象存储中的内容，再删除元数据记录。
        对象删除失败只记录日志，遗留的对象没有记录指向它，不会被任何查询访问到

        Args:
            owner_id: 当前用户ID
            file_id: 文件ID

        Returns:
            DeletionReceipt: 删除结果

        Raises:
            NotFoundError: 文件记录不存在
        """
        owner_id = _require_owner(owner_id)

        record = await self.metadata_store.get(owner_id, file_id)
        if record is None:
            raise NotFoundError(f"文件记录不存在: {file_id}")

        if record.is_uploaded:
            await run_best_effort(
                "删除对象存储中的文件",
                self.object_storage.delete(record.storage_key),
                file_id=file_id,
                storage_key=record.storage_key,
            )

        await self.metadata_store.delete(owner_id, file_id)

        logger.info(f"文件已删除: {file_id} - {record.file_name}")
        return DeletionReceipt(
            file_id=file_id,
            file_name=record.file_name,
            deleted_at=self.clock(),
        )
