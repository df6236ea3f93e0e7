from datetime import datetime, timezone

import pytest

from app.core.redis import RedisManager

pytestmark = pytest.mark.anyio

# 端口1上没有Redis服务，用来模拟连接失败
UNREACHABLE_URL = "redis://127.0.0.1:1/0"


@pytest.fixture
async def redis_manager():
    manager = RedisManager(UNREACHABLE_URL, namespace="test")
    yield manager
    await manager.close()


async def test_build_key_is_stable_and_namespaced(redis_manager):
    first = redis_manager.build_key("download-grant", "bucket", "owner/u1/file_a_a.txt")
    second = redis_manager.build_key("download-grant", "bucket", "owner/u1/file_a_a.txt")
    other = redis_manager.build_key("download-grant", "bucket", "owner/u1/file_b_a.txt")

    assert first == second
    assert first != other
    assert first.startswith("test:download-grant:")


async def test_serialize_datetime(redis_manager):
    value = {"expires_at": datetime(2026, 1, 1, tzinfo=timezone.utc)}

    serialized = redis_manager._serialize_value(value)

    assert redis_manager._deserialize_value(serialized) == {"expires_at": "2026-01-01T00:00:00+00:00"}


async def test_failures_treated_as_miss(redis_manager):
    assert await redis_manager.ping() is False
    assert await redis_manager.get("test:key") is None
    assert await redis_manager.set("test:key", {"a": 1}, 60) is False
    assert await redis_manager.delete("test:key") is False
