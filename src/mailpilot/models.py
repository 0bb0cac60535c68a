from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return str(value)


@dataclass(slots=True)
class Template:
    id: str
    name: str
    subject: str = ""
    body: str = ""
    signature: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Template:
        return cls(
            id=_text(data, "id"),
            name=_text(data, "name"),
            subject=_text(data, "subject"),
            body=_text(data, "body"),
            signature=_text(data, "signature"),
        )


@dataclass(slots=True)
class Recipient:
    id: str
    name: str
    company: str = ""
    email: str = ""
    template_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Recipient:
        return cls(
            id=_text(data, "id"),
            name=_text(data, "name"),
            company=_text(data, "company"),
            email=_text(data, "email"),
            template_id=_text(data, "templateId"),
        )


@dataclass(slots=True)
class Signature:
    name: str
    content: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Signature:
        return cls(name=_text(data, "name"), content=_text(data, "content"))


@dataclass(slots=True)
class Attachment:
    file_path: str
    file_name: str
    data: str = ""
    mime_type: str = "application/octet-stream"
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "fileName": self.file_name,
            "enabled": self.enabled,
            "data": self.data,
            "mimeType": self.mime_type,
        }


@dataclass(slots=True)
class SendMailRequest:
    to: str
    subject: str
    body: str
    attachments: list[Attachment] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "action": "sendMail",
            "to": self.to,
            "subject": self.subject,
            "body": self.body,
            "attachments": [a.to_dict() for a in self.attachments if a.enabled],
        }


@dataclass(slots=True)
class SaveTemplateRequest:
    id: str
    name: str
    subject: str
    body: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "action": "saveTemplate",
            "id": self.id,
            "name": self.name,
            "subject": self.subject,
            "body": self.body,
        }


@dataclass(slots=True)
class ConnectionTestResult:
    success: bool
    message: str = ""
    error: str = ""


@dataclass(slots=True)
class SendMailResult:
    success: bool
    error: str = ""


@dataclass(slots=True)
class SettingsResult:
    settings: dict[str, Any] = field(default_factory=dict)
    signature: str = ""


@dataclass(slots=True)
class MailDraft:
    to: str
    subject: str = ""
    body: str = ""


@dataclass(slots=True)
class BatchResult:
    to: str
    success: bool
    error: str = ""


@dataclass(slots=True)
class IngestResult:
    attachments: list[Attachment] = field(default_factory=list)
    recipient: Recipient | None = None
    template: Template | None = None
    failed: list[str] = field(default_factory=list)
