"""共享数据模式

定义统一的API响应格式
"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar('T')


class APIResponse(BaseModel, Generic[T]):
    """统一API响应格式

    提供标准化的API响应结构，包含成功状态、数据、消息和状态码
    """
    success: bool = Field(description="操作是否成功")
    data: Optional[T] = Field(default=None, description="响应数据")
    message: str = Field(description="响应消息")
    code: int = Field(description="HTTP状态码")
    error_type: Optional[str] = Field(default=None, description="错误类型")
    errors: Optional[list[str]] = Field(default=None, description="验证失败的全部规则")


class HealthCheckResponse(BaseModel):
    """健康检查响应

    用于系统健康状态检查
    """
    status: str = Field(description="服务状态")
    timestamp: str = Field(description="检查时间")
    version: str = Field(description="应用版本")
    database: bool = Field(description="数据库连接状态")
    redis: bool = Field(description="Redis连接状态")
    storage: bool = Field(description="存储服务状态")
