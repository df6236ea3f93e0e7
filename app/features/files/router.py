"""文件功能路由模块

提供文件上传、确认、下载、删除和列表的API端点
"""

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from app.core.security import Identity, get_identity
from app.shared.schemas import APIResponse

from .coordinator import TransferCoordinator
from .dependencies import get_coordinator, get_inventory
from .inventory import InventoryAggregator
from .models import (
    DeletionReceipt,
    DownloadGrant,
    FileInventory,
    UploadConfirmation,
    UploadGrant,
    UploadGrantRequest,
)


router = APIRouter()


@router.post(
    "/upload-url",
    response_model=APIResponse[UploadGrant],
    summary="获取预签名上传URL",
    description="创建待上传的文件记录并生成预签名URL，客户端使用此URL直接上传文件到对象存储"
)
async def issue_upload_grant(
    request: UploadGrantRequest,
    identity: Identity = Depends(get_identity),
    coordinator: TransferCoordinator = Depends(get_coordinator),
) -> APIResponse[UploadGrant]:
    """获取预签名上传URL

    Args:
        request: 上传URL请求数据
        identity: 当前用户身份
        coordinator: 文件传输协调器

    Returns:
        APIResponse[UploadGrant]: 包含文件ID和预签名URL的响应
    """
    try:
        logger.info(f"请求预签名上传URL: {request.file_name} ({request.declared_size} bytes)")

        grant = await coordinator.issue_upload_grant(
            identity.owner_id,
            request.file_name,
            request.file_type,
            request.declared_size,
        )

        return APIResponse(
            success=True,
            data=grant,
            message="预签名上传URL生成成功",
            code=200
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"生成预签名上传URL失败: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"生成预签名上传URL失败: {str(e)}"
        )


@router.post(
    "/{file_id}/complete",
    response_model=APIResponse[UploadConfirmation],
    summary="确认文件上传完成",
    description="客户端上传完成后调用此接口，服务端检查对象存储后把文件标记为已上传"
)
async def confirm_upload(
    file_id: str,
    identity: Identity = Depends(get_identity),
    coordinator: TransferCoordinator = Depends(get_coordinator),
) -> APIResponse[UploadConfirmation]:
    try:
        confirmation = await coordinator.confirm_upload(
            identity.owner_id, file_id, email=identity.email
        )

        return APIResponse(
            success=True,
            data=confirmation,
            message="文件上传完成",
            code=200
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"确认上传失败: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"确认上传失败: {str(e)}"
        )


@router.get(
    "/{file_id}/download-url",
    response_model=APIResponse[DownloadGrant],
    summary="获取文件下载URL",
    description="为已上传完成的文件生成预签名下载URL"
)
async def issue_download_grant(
    file_id: str,
    identity: Identity = Depends(get_identity),
    coordinator: TransferCoordinator = Depends(get_coordinator),
) -> APIResponse[DownloadGrant]:
    try:
        grant = await coordinator.issue_download_grant(identity.owner_id, file_id)

        return APIResponse(
            success=True,
            data=grant,
            message="下载URL生成成功",
            code=200
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"生成下载URL失败: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"生成下载URL失败: {str(e)}"
        )


@router.delete(
    "/{file_id}",
    response_model=APIResponse[DeletionReceipt],
    summary="删除文件",
    description="删除文件记录以及对象存储中的文件内容"
)
async def delete_file(
    file_id: str,
    identity: Identity = Depends(get_identity),
    coordinator: TransferCoordinator = Depends(get_coordinator),
) -> APIResponse[DeletionReceipt]:
    try:
        receipt = await coordinator.delete_file(identity.owner_id, file_id)

        return APIResponse(
            success=True,
            data=receipt,
            message="文件已删除",
            code=200
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"删除文件失败: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"删除文件失败: {str(e)}"
        )


@router.get(
    "",
    response_model=APIResponse[FileInventory],
    summary="获取文件列表",
    description="按创建时间倒序列出当前用户的文件并统计存储用量"
)
async def list_files(
    identity: Identity = Depends(get_identity),
    inventory: InventoryAggregator = Depends(get_inventory),
) -> APIResponse[FileInventory]:
    """获取文件列表

    Returns:
        APIResponse[FileInventory]: 文件列表和存储用量
    """
    try:
        result = await inventory.list(identity.owner_id)

        return APIResponse(
            success=True,
            data=result,
            message="获取文件列表成功",
            code=200
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"获取文件列表失败: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"获取文件列表失败: {str(e)}"
        )
