import pytest

from app.core.config import DEFAULT_ALLOWED_FILE_TYPES
from app.features.files.validation import validate_upload_request

MB = 1024 * 1024


def _validate(file_name="a.txt", file_type="text/plain", declared_size=None):
    return validate_upload_request(
        file_name,
        file_type,
        declared_size,
        allowed_file_types=DEFAULT_ALLOWED_FILE_TYPES,
        max_upload_bytes=50 * MB,
    )


def test_valid_request():
    assert _validate(declared_size=10) == []


def test_declared_size_optional():
    assert _validate(declared_size=None) == []


@pytest.mark.parametrize("file_name", ["", "   ", None])
def test_blank_file_name(file_name):
    assert _validate(file_name=file_name) == ["file_name 不能为空"]


def test_blank_file_type():
    assert _validate(file_type="") == ["file_type 不能为空"]


def test_disallowed_file_type():
    assert _validate(file_type="application/x-msdownload") == ["不允许的文件类型: application/x-msdownload"]


def test_negative_size():
    assert _validate(declared_size=-1) == ["declared_size 不能为负数"]


def test_size_limit_is_inclusive():
    assert _validate(declared_size=50 * MB) == []
    assert _validate(declared_size=50 * MB + 1) == ["文件大小不能超过 50MB"]


def test_collects_all_errors():
    errors = _validate(file_name="", file_type="video/mp4", declared_size=100 * MB)
    assert errors == [
        "file_name 不能为空",
        "不允许的文件类型: video/mp4",
        "文件大小不能超过 50MB",
    ]


def test_file_name_length_limit():
    assert _validate(file_name="a" * 1024) == []
    assert _validate(file_name="a" * 2000 + ".txt") == ["file_name 长度不能超过 1024 个字符"]


@pytest.mark.parametrize("declared_size", ["ten", "10", 1.5, True])
def test_declared_size_must_be_integer(declared_size):
    assert _validate(declared_size=declared_size) == ["declared_size 必须是整数"]


def test_wrong_types_reported_with_other_violations():
    errors = _validate(file_name=123, file_type="application/x-evil", declared_size="ten")
    assert errors == [
        "file_name 必须是字符串",
        "不允许的文件类型: application/x-evil",
        "declared_size 必须是整数",
    ]


def test_non_string_file_type():
    assert _validate(file_type=["text/plain"]) == ["file_type 必须是字符串"]
