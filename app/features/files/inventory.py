"""文件清单与存储用量统计"""

from typing import Optional

from loguru import logger

from app.shared.exceptions import UnauthorizedError

from .metadata_store import MetadataStore
from .models import FileInventory, FileRecord, FileSummary


def total_uploaded_bytes(records: list[FileRecord]) -> int:
    """统计已上传文件占用的字节数，未完成的上传不计入"""
    return sum(record.effective_size for record in records if record.is_uploaded)


class InventoryAggregator:
    """用户文件清单

    只读取元数据，不访问对象存储，也不产生任何副作用
    """

    def __init__(self, metadata_store: MetadataStore) -> None:
        self.metadata_store = metadata_store

    async def list(self, owner_id: Optional[str]) -> FileInventory:
        """列出用户文件并计算存储用量

        Args:
            owner_id: 当前用户ID

        Returns:
            FileInventory: 按创建时间倒序的文件列表以及汇总数据
        """
        if not owner_id:
            raise UnauthorizedError("缺少用户身份")

        records = await self.metadata_store.list_by_owner(owner_id)
        total_bytes = total_uploaded_bytes(records)
        total_megabytes = f"{total_bytes / 1024 / 1024:.2f}"

        logger.info(f"文件列表已查询: {owner_id} count={len(records)} size={total_megabytes}MB")
        return FileInventory(
            files=[FileSummary.from_record(record) for record in records],
            total_count=len(records),
            uploaded_count=sum(1 for record in records if record.is_uploaded),
            total_bytes=total_bytes,
            total_megabytes=total_megabytes,
        )
