"""文件功能的依赖注入

存储客户端在应用启动时创建并挂到 app.state 上，路由通过这里取用；
测试可以用 dependency_overrides 替换为内存实现
"""

from typing import Optional

from fastapi import Depends, Request

from app.core.config import Settings, get_settings
from app.shared.exceptions import StoreUnavailableError

from .coordinator import TransferCoordinator, TransferPolicy
from .inventory import InventoryAggregator
from .metadata_store import MetadataStore
from .notifications import UploadNotifier
from .object_storage import ObjectStorage


def get_metadata_store(request: Request) -> MetadataStore:
    store = getattr(request.app.state, "metadata_store", None)
    if store is None:
        raise StoreUnavailableError("元数据存储未配置")
    return store


def get_object_storage(request: Request) -> ObjectStorage:
    storage = getattr(request.app.state, "object_storage", None)
    if storage is None:
        raise StoreUnavailableError("对象存储未配置")
    return storage


def get_notifier(request: Request) -> Optional[UploadNotifier]:
    return getattr(request.app.state, "notifier", None)


def get_coordinator(
    metadata_store: MetadataStore = Depends(get_metadata_store),
    object_storage: ObjectStorage = Depends(get_object_storage),
    notifier: Optional[UploadNotifier] = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> TransferCoordinator:
    return TransferCoordinator(
        metadata_store,
        object_storage,
        TransferPolicy.from_settings(settings),
        notifier=notifier,
    )


def get_inventory(
    metadata_store: MetadataStore = Depends(get_metadata_store),
) -> InventoryAggregator:
    return InventoryAggregator(metadata_store)
