from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt
import pytest
from fastapi.testclient import TestClient

from app.core.config import DEFAULT_ALLOWED_FILE_TYPES, Settings, get_settings
from app.features.files.coordinator import TransferCoordinator, TransferPolicy
from app.features.files.dependencies import get_metadata_store, get_object_storage
from app.features.files.metadata_store import check_mutable_fields, check_required_fields
from app.features.files.models import FileRecord
from app.features.files.object_storage import Capability, ProbeResult
from app.main import app
from app.shared.exceptions import AlreadyExistsError, NotFoundError, StoreUnavailableError

JWT_SECRET = "test-secret"


class InMemoryMetadataStore:
    """元数据存储的内存实现，返回副本以模拟真实存储的读写隔离"""

    def __init__(self) -> None:
        self.records: dict[tuple[str, str], FileRecord] = {}
        self.unavailable: set[str] = set()
        self.calls: list[str] = []

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.unavailable:
            raise StoreUnavailableError("元数据存储暂时不可用")

    @staticmethod
    def _copy(record: Optional[FileRecord]) -> Optional[FileRecord]:
        if record is None:
            return None
        return FileRecord(**record.model_dump())

    async def get(self, owner_id: str, file_id: str) -> Optional[FileRecord]:
        self._enter("get")
        return self._copy(self.records.get((owner_id, file_id)))

    async def get_by_file_id(self, file_id: str) -> Optional[FileRecord]:
        self._enter("get_by_file_id")
        for (_, fid), record in self.records.items():
            if fid == file_id:
                return self._copy(record)
        return None

    async def put(self, record: FileRecord) -> FileRecord:
        self._enter("put")
        check_required_fields(record)
        if any(fid == record.file_id for (_, fid) in self.records):
            raise AlreadyExistsError(f"文件记录已存在: {record.file_id}")
        self.records[(record.owner_id, record.file_id)] = self._copy(record)
        return self._copy(record)

    async def update_status(self, owner_id: str, file_id: str, **fields: Any) -> FileRecord:
        self._enter("update_status")
        check_mutable_fields(fields)
        record = self.records.get((owner_id, file_id))
        if record is None:
            raise NotFoundError(f"文件记录不存在: {file_id}")
        updated = FileRecord(**{**record.model_dump(), **fields})
        self.records[(owner_id, file_id)] = updated
        return self._copy(updated)

    async def delete(self, owner_id: str, file_id: str) -> bool:
        self._enter("delete")
        return self.records.pop((owner_id, file_id), None) is not None

    async def list_by_owner(self, owner_id: str) -> list[FileRecord]:
        self._enter("list_by_owner")
        owned = [r for (owner, _), r in self.records.items() if owner == owner_id]
        owned.sort(key=lambda r: (r.created_at, r.file_id), reverse=True)
        return [self._copy(r) for r in owned]


class FakeObjectStorage:
    """对象存储的内存实现

    objects 保存每个键的字节内容，测试通过 simulate_upload 模拟客户端直传
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.issued: list[tuple[str, str]] = []
        self.deleted: list[str] = []
        self.fail_delete = False
        self.fail_grants = False

    def simulate_upload(self, storage_key: str, data: bytes) -> None:
        self.objects[storage_key] = data

    def _capability(self, operation: str, storage_key: str, ttl: int, headers: dict[str, str]) -> Capability:
        if self.fail_grants:
            raise StoreUnavailableError("对象存储暂时不可用")
        self.issued.append((operation, storage_key))
        return Capability(
            url=f"https://storage.test/{storage_key}?op={operation}",
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl),
            expires_in=ttl,
            headers=headers,
        )

    async def issue_upload_grant(self, storage_key: str, content_type: str, ttl: int) -> Capability:
        return self._capability("put", storage_key, ttl, {"Content-Type": content_type})

    async def issue_download_grant(self, storage_key: str, download_file_name: str, ttl: int) -> Capability:
        return self._capability("get", storage_key, ttl, {})

    async def probe(self, storage_key: str) -> Optional[ProbeResult]:
        data = self.objects.get(storage_key)
        if data is None:
            return None
        return ProbeResult(size_bytes=len(data))

    async def delete(self, storage_key: str) -> None:
        if self.fail_delete:
            raise StoreUnavailableError("对象存储暂时不可用")
        self.deleted.append(storage_key)
        self.objects.pop(storage_key, None)


class FakeNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    async def upload_completed(self, email: str, record: FileRecord) -> None:
        if self.fail:
            raise RuntimeError("SES unavailable")
        self.sent.append((email, record.file_id))


class SteppingClock:
    """每次调用前进一秒，保证创建时间严格递增"""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def anyio_backend():
    # 只使用 asyncio
    return "asyncio"


@pytest.fixture
def policy():
    return TransferPolicy(allowed_file_types=frozenset(DEFAULT_ALLOWED_FILE_TYPES))


@pytest.fixture
def metadata_store():
    return InMemoryMetadataStore()


@pytest.fixture
def object_storage():
    return FakeObjectStorage()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def coordinator(metadata_store, object_storage, policy, notifier):
    return TransferCoordinator(
        metadata_store, object_storage, policy, notifier=notifier, clock=SteppingClock()
    )


@pytest.fixture
def test_settings():
    return Settings(jwt_secret=JWT_SECRET, bucket_name="test-bucket")


@pytest.fixture
def client(metadata_store, object_storage, test_settings):
    app.dependency_overrides[get_metadata_store] = lambda: metadata_store
    app.dependency_overrides[get_object_storage] = lambda: object_storage
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_token(sub: Optional[str] = "u1", email: Optional[str] = "u1@example.com", secret: str = JWT_SECRET) -> str:
    claims: dict[str, Any] = {"exp": datetime.now(timezone.utc) + timedelta(hours=1)}
    if sub is not None:
        claims["sub"] = sub
    if email is not None:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def token_factory():
    return make_token
