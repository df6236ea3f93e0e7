"""上传请求校验

收集所有违反的规则，而不是在第一个错误处停止
"""

from typing import Any, Iterable

# 与 file_records 表的列长度保持一致
FILE_NAME_MAX_LENGTH = 1024


def validate_upload_request(
    file_name: Any,
    file_type: Any,
    declared_size: Any,
    *,
    allowed_file_types: Iterable[str],
    max_upload_bytes: int,
) -> list[str]:
    """校验上传请求

    请求体字段不做类型转换，类型错误也作为普通规则收集

    Args:
        file_name: 文件名
        file_type: 文件MIME类型
        declared_size: 声明的文件大小（字节），可为None
        allowed_file_types: 允许的MIME类型
        max_upload_bytes: 文件大小上限（字节）

    Returns:
        list[str]: 所有违反的规则，为空表示校验通过
    """
    errors: list[str] = []

    if file_name is not None and not isinstance(file_name, str):
        errors.append("file_name 必须是字符串")
    elif not file_name or not file_name.strip():
        errors.append("file_name 不能为空")
    elif len(file_name) > FILE_NAME_MAX_LENGTH:
        errors.append(f"file_name 长度不能超过 {FILE_NAME_MAX_LENGTH} 个字符")

    if file_type is not None and not isinstance(file_type, str):
        errors.append("file_type 必须是字符串")
    elif not file_type or not file_type.strip():
        errors.append("file_type 不能为空")
    elif file_type not in set(allowed_file_types):
        errors.append(f"不允许的文件类型: {file_type}")

    if declared_size is not None:
        # bool 是 int 的子类
        if isinstance(declared_size, bool) or not isinstance(declared_size, int):
            errors.append("declared_size 必须是整数")
        elif declared_size < 0:
            errors.append("declared_size 不能为负数")
        elif declared_size > max_upload_bytes:
            errors.append(f"文件大小不能超过 {max_upload_bytes // (1024 * 1024)}MB")

    return errors
