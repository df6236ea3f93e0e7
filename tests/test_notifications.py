from datetime import datetime, timezone

import boto3
import pytest
from botocore.stub import ANY, Stubber

from app.features.files.models import FileRecord, FileStatus
from app.features.files.notifications import SESUploadNotifier, render_upload_success_email

pytestmark = pytest.mark.anyio


def _record(file_name="a.txt"):
    return FileRecord(
        owner_id="u1",
        file_id="file_a",
        file_name=file_name,
        sanitized_storage_name="a.txt",
        file_type="text/plain",
        declared_size=10,
        actual_size=12,
        storage_key="owner/u1/file_a_a.txt",
        status=FileStatus.UPLOADED.value,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        completed_at=datetime(2026, 1, 1, 8, 30, tzinfo=timezone.utc),
    )


async def test_render_email():
    message = render_upload_success_email("u1@example.com", _record(), app_name="FileVault")

    assert message.to == "u1@example.com"
    assert message.subject == "File Upload Successful - a.txt"
    assert "12 bytes" in message.html_body
    assert "2026-01-01 08:30 UTC" in message.html_body
    assert '"a.txt"' in message.text_body


async def test_render_email_escapes_file_name():
    message = render_upload_success_email("u1@example.com", _record("<b>x</b>.txt"))

    assert "&lt;b&gt;x&lt;/b&gt;.txt" in message.html_body
    assert "<b>x</b>" not in message.html_body


async def test_ses_notifier_sends_email():
    ses_client = boto3.client(
        "ses",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    notifier = SESUploadNotifier(ses_client, "noreply@example.com")

    with Stubber(ses_client) as stubber:
        stubber.add_response(
            "send_email",
            {"MessageId": "msg-1"},
            {
                "Source": "noreply@example.com",
                "Destination": {"ToAddresses": ["u1@example.com"]},
                "Message": ANY,
            },
        )

        await notifier.upload_completed("u1@example.com", _record())

        stubber.assert_no_pending_responses()


async def test_ses_notifier_returns_message_id():
    ses_client = boto3.client(
        "ses",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    notifier = SESUploadNotifier(ses_client, "noreply@example.com")
    message = render_upload_success_email("u1@example.com", _record())

    with Stubber(ses_client) as stubber:
        stubber.add_response("send_email", {"MessageId": "msg-2"})

        assert await notifier.send(message) == "msg-2"
