"""上传完成通知

通过 Amazon SES 向文件所有者发送上传成功邮件
"""

import asyncio
import functools
from dataclasses import dataclass
from html import escape
from typing import Any, Optional, Protocol

from loguru import logger

from .models import FileRecord


@dataclass(frozen=True)
class EmailMessage:
    """待发送的邮件"""

    to: str
    subject: str
    html_body: str
    text_body: str


class UploadNotifier(Protocol):
    """上传完成通知接口"""

    async def upload_completed(self, email: str, record: FileRecord) -> None: ...


def render_upload_success_email(
    email: str, record: FileRecord, app_name: str = "FileVault"
) -> EmailMessage:
    """生成上传成功邮件内容

    Args:
        email: 收件人
        record: 已确认上传的文件记录
        app_name: 邮件中显示的产品名称

    Returns:
        EmailMessage: 邮件内容
    """
    completed = (record.completed_at or record.created_at).strftime("%Y-%m-%d %H:%M UTC")
    name = escape(record.file_name)

    html_body = f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #333;">
    <h2>File Upload Successful</h2>
    <p>Your file has been uploaded successfully to {escape(app_name)}.</p>
    <p>
      <strong>Name:</strong> {name}<br>
      <strong>Size:</strong> {record.effective_size} bytes<br>
      <strong>Uploaded:</strong> {completed}
    </p>
    <p>You can now download or delete it from your file list.</p>
    <p style="font-size: 12px; color: #666;">
      This is an automated message. If you didn't upload this file, please contact support.
    </p>
  </body>
</html>
"""

    text_body = (
        "File Upload Successful!\n\n"
        f'Your file "{record.file_name}" has been uploaded successfully to {app_name}.\n'
        f"Upload Date: {completed}\n\n"
        "You can now download or delete it from your file list.\n"
    )

    return EmailMessage(
        to=email,
        subject=f"File Upload Successful - {record.file_name}",
        html_body=html_body,
        text_body=text_body,
    )


class SESUploadNotifier:
    """基于 Amazon SES 的上传完成通知"""

    def __init__(self, ses_client: Any, sender: str, app_name: str = "FileVault") -> None:
        self.ses_client = ses_client
        self.sender = sender
        self.app_name = app_name

    async def send(self, message: EmailMessage) -> Optional[str]:
        """发送邮件

        Returns:
            Optional[str]: SES 返回的消息ID
        """
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(
            None,
            functools.partial(
                self.ses_client.send_email,
                Source=self.sender,
                Destination={"ToAddresses": [message.to]},
                Message={
                    "Subject": {"Data": message.subject, "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": message.html_body, "Charset": "UTF-8"},
                        "Text": {"Data": message.text_body, "Charset": "UTF-8"},
                    },
                },
            ),
        )
        message_id = response.get("MessageId")
        logger.info(f"通知邮件已发送: {message_id}")
        return message_id

    async def upload_completed(self, email: str, record: FileRecord) -> None:
        await self.send(render_upload_success_email(email, record, self.app_name))
