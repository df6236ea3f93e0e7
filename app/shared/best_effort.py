"""尽力而为的副作用执行策略

用于那些失败不应影响主流程的操作，例如删除孤立对象、发送通知邮件。
失败只记录日志，不向调用方抛出
"""

from typing import Any, Awaitable

from loguru import logger


async def run_best_effort(action: str, operation: Awaitable[Any], **context: Any) -> bool:
    """执行一个尽力而为的异步操作

    Args:
        action: 操作描述，用于日志
        operation: 待执行的协程
        **context: 附加到日志中的上下文字段

    Returns:
        bool: 操作是否成功
    """
    try:
        await operation
    except Exception as e:
        logger.bind(**context).warning(f"{action}失败，已忽略: {type(e).__name__}: {e}")
        return False
    return True
