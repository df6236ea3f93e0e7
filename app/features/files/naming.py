"""文件ID与存储键名生成"""

import re
import uuid

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9.-]")


def generate_file_id() -> str:
    """生成全局唯一的文件ID"""
    return f"file_{uuid.uuid4().hex}"


def sanitize_storage_name(file_name: str, max_length: int = 100) -> str:
    """清理文件名，使其可以安全地作为存储键的一部分

    不在 [A-Za-z0-9.-] 范围内的字符一律替换为下划线，并截断到最大长度

    Args:
        file_name: 原始文件名
        max_length: 最大长度

    Returns:
        str: 清理后的文件名
    """
    return _UNSAFE_CHARS.sub("_", file_name)[:max_length]


def build_storage_key(owner_id: str, file_id: str, sanitized_storage_name: str) -> str:
    # owner/{owner_id}/{file_id}_{sanitized_storage_name}
    return f"owner/{owner_id}/{file_id}_{sanitized_storage_name}"
