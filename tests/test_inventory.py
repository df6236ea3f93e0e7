from datetime import datetime, timedelta, timezone

import pytest

from app.features.files.inventory import InventoryAggregator, total_uploaded_bytes
from app.features.files.models import FileRecord, FileStatus
from app.shared.exceptions import UnauthorizedError

pytestmark = pytest.mark.anyio

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _record(owner_id, file_id, status, declared_size=None, actual_size=None, minutes=0):
    return FileRecord(
        owner_id=owner_id,
        file_id=file_id,
        file_name=f"{file_id}.txt",
        sanitized_storage_name=f"{file_id}.txt",
        file_type="text/plain",
        declared_size=declared_size,
        actual_size=actual_size,
        storage_key=f"owner/{owner_id}/{file_id}_{file_id}.txt",
        status=status.value,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


async def _seed(metadata_store, *records):
    for record in records:
        await metadata_store.put(record)


async def test_totals_count_only_uploaded(metadata_store):
    await _seed(
        metadata_store,
        _record("u1", "file_a", FileStatus.UPLOADED, declared_size=90, actual_size=100, minutes=1),
        _record("u1", "file_b", FileStatus.PENDING_UPLOAD, declared_size=50, minutes=2),
        _record("u1", "file_c", FileStatus.UPLOADED, actual_size=200, minutes=3),
    )

    inventory = await InventoryAggregator(metadata_store).list("u1")

    assert inventory.total_count == 3
    assert inventory.uploaded_count == 2
    assert inventory.total_bytes == 300
    assert inventory.total_megabytes == "0.00"


async def test_newest_first(metadata_store):
    await _seed(
        metadata_store,
        _record("u1", "file_old", FileStatus.UPLOADED, actual_size=1, minutes=1),
        _record("u1", "file_new", FileStatus.PENDING_UPLOAD, minutes=5),
        _record("u1", "file_mid", FileStatus.UPLOADED, actual_size=1, minutes=3),
    )

    inventory = await InventoryAggregator(metadata_store).list("u1")

    assert [f.file_id for f in inventory.files] == ["file_new", "file_mid", "file_old"]


async def test_only_owner_files_listed(metadata_store):
    await _seed(
        metadata_store,
        _record("u1", "file_a", FileStatus.UPLOADED, actual_size=10),
        _record("u2", "file_b", FileStatus.UPLOADED, actual_size=20),
    )

    inventory = await InventoryAggregator(metadata_store).list("u2")

    assert [f.file_id for f in inventory.files] == ["file_b"]
    assert inventory.total_bytes == 20


async def test_empty_inventory(metadata_store):
    inventory = await InventoryAggregator(metadata_store).list("u1")

    assert inventory.files == []
    assert inventory.total_count == 0
    assert inventory.total_bytes == 0
    assert inventory.total_megabytes == "0.00"


async def test_megabytes_formatting(metadata_store):
    await _seed(
        metadata_store,
        _record("u1", "file_a", FileStatus.UPLOADED, actual_size=3 * 1024 * 1024 // 2),
    )

    inventory = await InventoryAggregator(metadata_store).list("u1")

    assert inventory.total_megabytes == "1.50"


async def test_summary_size_falls_back_to_declared(metadata_store):
    await _seed(metadata_store, _record("u1", "file_a", FileStatus.PENDING_UPLOAD, declared_size=42))

    inventory = await InventoryAggregator(metadata_store).list("u1")

    assert inventory.files[0].size == 42
    assert inventory.total_bytes == 0


async def test_missing_identity(metadata_store):
    with pytest.raises(UnauthorizedError):
        await InventoryAggregator(metadata_store).list("")
    assert metadata_store.calls == []


async def test_total_uploaded_bytes_ignores_pending():
    records = [
        _record("u1", "file_a", FileStatus.UPLOADED, actual_size=7),
        _record("u1", "file_b", FileStatus.PENDING_UPLOAD, declared_size=1000),
    ]
    assert total_uploaded_bytes(records) == 7
