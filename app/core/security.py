"""身份声明模块

从已签名的 Bearer 令牌中读取调用方身份。令牌由外部身份服务签发，这里只做校验
"""

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from app.shared.exceptions import UnauthorizedError

from .config import Settings, get_settings


security = HTTPBearer(auto_error=False)

# 与 file_records.owner_id 列长度一致
OWNER_ID_MAX_LENGTH = 128


@dataclass(frozen=True)
class Identity:
    """已校验的调用方身份"""

    owner_id: str
    email: Optional[str] = None


def decode_identity(token: str, settings: Settings) -> Identity:
    """校验令牌并提取身份

    Args:
        token: Bearer 令牌
        settings: 应用配置

    Returns:
        Identity: 调用方身份

    Raises:
        UnauthorizedError: 令牌无效或缺少 sub 声明
    """
    if not settings.jwt_secret:
        logger.error("未配置 JWT_SECRET，拒绝所有请求")
        raise UnauthorizedError("身份校验未配置")

    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"verify_aud": settings.jwt_audience is not None},
        )
    except jwt.PyJWTError as e:
        logger.warning(f"身份令牌无效: {e}")
        raise UnauthorizedError("身份令牌无效") from e

    owner_id = claims.get("sub")
    if not owner_id:
        raise UnauthorizedError("身份令牌缺少 sub 声明")

    owner_id = str(owner_id)
    if len(owner_id) > OWNER_ID_MAX_LENGTH:
        logger.warning(f"身份令牌 sub 声明过长: {len(owner_id)} 个字符")
        raise UnauthorizedError("身份令牌 sub 声明过长")

    return Identity(owner_id=owner_id, email=claims.get("email"))


async def get_identity(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> Identity:
    """获取当前请求的身份的依赖注入函数

    在FastAPI路由中使用: identity: Identity = Depends(get_identity)
    """
    if creds is None or not creds.credentials:
        raise UnauthorizedError("用户未登录")
    return decode_identity(creds.credentials, settings)
