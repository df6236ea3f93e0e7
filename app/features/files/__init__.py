"""文件功能模块

提供文件上传、确认、下载、删除以及存储用量统计
"""

from .coordinator import TransferCoordinator, TransferPolicy
from .inventory import InventoryAggregator
from .router import router

__all__ = ["router", "TransferCoordinator", "TransferPolicy", "InventoryAggregator"]
