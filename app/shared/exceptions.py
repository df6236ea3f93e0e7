"""自定义异常类定义

定义文件传输流程中使用的各类异常
提供统一的错误处理机制
"""

from typing import Any, Optional

from fastapi import HTTPException


class BaseAPIException(HTTPException):
    """API异常基类

    所有自定义API异常都应该继承这个类
    提供统一的异常处理接口
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_type: str = "APIError",
        headers: Optional[dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_type = error_type


class ValidationError(BaseAPIException):
    """数据验证异常

    当请求数据验证失败时抛出，errors 中列出所有违反的规则
    """

    def __init__(self, errors: list[str], detail: str = "数据验证失败"):
        super().__init__(
            status_code=422,
            detail=detail,
            error_type="ValidationError"
        )
        self.errors = list(errors)


class NotFoundError(BaseAPIException):
    """资源不存在异常

    当前用户名下没有对应的文件记录时抛出
    """

    def __init__(self, detail: str = "资源不存在"):
        super().__init__(
            status_code=404,
            detail=detail,
            error_type="NotFoundError"
        )


class NotReadyError(BaseAPIException):
    """文件尚未就绪异常

    文件记录存在但上传尚未确认完成时抛出
    """

    def __init__(self, detail: str = "文件尚未上传完成"):
        super().__init__(
            status_code=409,
            detail=detail,
            error_type="NotReadyError"
        )


class UploadNotFoundError(BaseAPIException):
    """上传内容不存在异常

    确认上传时对象存储中没有找到文件内容
    """

    def __init__(self, detail: str = "文件尚未上传到对象存储"):
        super().__init__(
            status_code=400,
            detail=detail,
            error_type="UploadNotFoundError"
        )


class AlreadyExistsError(BaseAPIException):
    """资源冲突异常

    当写入的记录主键已存在时抛出
    """

    def __init__(self, detail: str = "资源已存在"):
        super().__init__(
            status_code=409,
            detail=detail,
            error_type="AlreadyExistsError"
        )


class StoreUnavailableError(BaseAPIException):
    """存储不可用异常

    元数据存储或对象存储发生传输或后端错误时抛出，调用方可以重试
    """

    def __init__(self, detail: str = "存储服务暂时不可用"):
        super().__init__(
            status_code=503,
            detail=detail,
            error_type="StoreUnavailableError"
        )


class UnauthorizedError(BaseAPIException):
    """未授权异常

    当请求未携带身份令牌或令牌无效时抛出
    """

    def __init__(self, detail: str = "未授权访问"):
        super().__init__(
            status_code=401,
            detail=detail,
            error_type="UnauthorizedError",
            headers={"WWW-Authenticate": "Bearer"}
        )
