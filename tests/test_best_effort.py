import pytest

from app.shared.best_effort import run_best_effort

pytestmark = pytest.mark.anyio


async def test_success_returns_true():
    calls = []

    async def action():
        calls.append("done")

    assert await run_best_effort("测试操作", action()) is True
    assert calls == ["done"]


async def test_failure_is_suppressed():
    async def action():
        raise RuntimeError("boom")

    assert await run_best_effort("测试操作", action(), file_id="file_1") is False
