from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path

from mailpilot.attachments import read_attachments
from mailpilot.client import BackendClient, ConfigurationError, MailPilotError, RequestClient
from mailpilot.config import Settings
from mailpilot.core.matching import (
    SafetyWarning,
    match_recipient_by_file_name,
    match_template_by_file_name,
    validate_send_safety,
)
from mailpilot.models import (
    Attachment,
    BatchResult,
    ConnectionTestResult,
    IngestResult,
    MailDraft,
    Recipient,
    SaveTemplateRequest,
    SendMailRequest,
    SendMailResult,
    SettingsResult,
    Signature,
    Template,
)

MAX_BATCH_RECIPIENTS = 3
NOT_CONFIGURED_MESSAGE = "backend URL is not configured"


def apply_template_variables(text: str, recipient: Recipient | None) -> str:
    if recipient is None:
        return text
    replacements = {
        "{{name}}": recipient.name,
        "{{company}}": recipient.company,
        "{{email}}": recipient.email,
        "{{id}}": recipient.id,
    }
    for placeholder, value in replacements.items():
        text = text.replace(placeholder, value)
    return text


def resolve_linked_template(recipient: Recipient, templates: Sequence[Template]) -> Template | None:
    if not recipient.template_id:
        return None
    for template in templates:
        if template.id == recipient.template_id:
            return template
    return None


def find_recipients(recipients: Sequence[Recipient], recipient_ids: Sequence[str]) -> list[Recipient]:
    by_id = {recipient.id: recipient for recipient in recipients}
    missing = [recipient_id for recipient_id in recipient_ids if recipient_id not in by_id]
    if missing:
        raise LookupError(f"宛先が見つかりません: {', '.join(missing)}")
    return [by_id[recipient_id] for recipient_id in recipient_ids]


def select_template(
    recipient: Recipient,
    templates: Sequence[Template],
    template_id: str | None = None,
) -> Template | None:
    """An explicit id must exist; without one, fall back to the recipient's linked template."""
    if template_id:
        for template in templates:
            if template.id == template_id:
                return template
        raise LookupError(f"テンプレートが見つかりません: {template_id}")
    return resolve_linked_template(recipient, templates)


def build_client(settings: Settings, logger: logging.Logger | logging.LoggerAdapter) -> BackendClient:
    transport = RequestClient(
        settings.endpoint,
        logger=logger,
        timeout_sec=settings.timeout_sec,
        max_attempts=settings.max_attempts,
        max_redirects=settings.max_redirects,
    )
    return BackendClient(transport, logger=logger)


class MailService:
    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger | logging.LoggerAdapter,
        client: BackendClient | None = None,
    ):
        self.settings = settings
        self.logger = logger
        self.client = client or build_client(settings, logger)

    def _ensure_configured(self) -> None:
        if not self.settings.endpoint.is_configured:
            raise ConfigurationError(NOT_CONFIGURED_MESSAGE)

    def reconfigure(
        self,
        base_url: str,
        signature: str,
        auth_id: str | None = None,
        auth_password: str | None = None,
    ) -> Path:
        self.settings.gas_url = base_url
        self.settings.signature = signature
        if auth_id is not None:
            self.settings.basic_auth_id = auth_id
        if auth_password is not None:
            self.settings.basic_auth_pw = auth_password

        path = self.settings.save()
        self.client.transport.set_base_url(self.settings.gas_url)
        self.client.transport.set_basic_auth(self.settings.basic_auth_id, self.settings.basic_auth_pw)
        self.logger.info("Settings saved: %s", path)
        return path

    def test_connection(self) -> ConnectionTestResult:
        if not self.settings.endpoint.is_configured:
            return ConnectionTestResult(success=False, error=NOT_CONFIGURED_MESSAGE)
        try:
            return self.client.test_connection()
        except MailPilotError as exc:
            return ConnectionTestResult(success=False, error=str(exc))

    def get_templates(self) -> list[Template]:
        self._ensure_configured()
        return self.client.get_templates()

    def get_recipients(self) -> list[Recipient]:
        self._ensure_configured()
        return self.client.get_recipients()

    def get_signatures(self) -> list[Signature]:
        self._ensure_configured()
        return self.client.get_signatures()

    def get_settings(self) -> SettingsResult:
        local_signature = self.settings.signature
        if not self.settings.endpoint.is_configured:
            return SettingsResult(signature=local_signature)

        try:
            result = self.client.get_settings()
        except MailPilotError as exc:
            self.logger.warning("Remote settings unavailable, using local settings: %s", exc)
            return SettingsResult(signature=local_signature)

        if not result.signature and local_signature:
            result.signature = local_signature
        return result

    def save_template(self, template_id: str, name: str, subject: str, body: str) -> None:
        self._ensure_configured()
        self.client.save_template(SaveTemplateRequest(id=template_id, name=name, subject=subject, body=body))

    def send_mail(
        self,
        to: str,
        subject: str,
        body: str,
        attachments: Sequence[Attachment] = (),
    ) -> SendMailResult:
        self._ensure_configured()
        return self.client.send_mail(
            SendMailRequest(to=to, subject=subject, body=body, attachments=list(attachments))
        )

    def compose(
        self,
        template: Template,
        recipient: Recipient | None,
        signature: str = "",
    ) -> MailDraft:
        body = apply_template_variables(template.body, recipient)
        if signature:
            body = f"{body}\n\n{signature}"
        return MailDraft(
            to=recipient.email if recipient else "",
            subject=apply_template_variables(template.subject, recipient),
            body=body,
        )

    def send_batch(
        self,
        drafts: Sequence[MailDraft],
        attachments: Sequence[Attachment] = (),
    ) -> list[BatchResult]:
        self._ensure_configured()
        if len(drafts) > MAX_BATCH_RECIPIENTS:
            raise ValueError(f"at most {MAX_BATCH_RECIPIENTS} recipients per batch, got {len(drafts)}")

        results: list[BatchResult] = []
        for draft in drafts:
            if not draft.to.strip():
                continue
            try:
                sent = self.send_mail(draft.to, draft.subject, draft.body, attachments)
                results.append(BatchResult(to=draft.to, success=sent.success))
            except MailPilotError as exc:
                self.logger.error("Send to %s failed: %s", draft.to, exc)
                results.append(BatchResult(to=draft.to, success=False, error=str(exc)))

        self.logger.info(
            "Batch finished: %s/%s sent", sum(1 for r in results if r.success), len(results)
        )
        return results

    def validate(
        self,
        recipient: Recipient | None,
        attachments: Sequence[Attachment],
        body: str,
    ) -> list[SafetyWarning]:
        warnings = validate_send_safety(
            recipient,
            attachments,
            body,
            corporate_suffixes=self.settings.corporate_suffixes,
        )
        for warning in warnings:
            self.logger.info("Send safety warning: %s", warning.message)
        return warnings

    def ingest_files(
        self,
        paths: Iterable[Path],
        recipients: Sequence[Recipient] = (),
        templates: Sequence[Template] = (),
    ) -> IngestResult:
        attachments, failed = read_attachments(
            paths,
            max_bytes=self.settings.max_attachment_bytes,
            logger=self.logger,
        )
        result = IngestResult(attachments=attachments, failed=failed)
        for attachment in attachments:
            if result.recipient is None and recipients:
                result.recipient = match_recipient_by_file_name(attachment.file_name, recipients, self.logger)
            if result.template is None and templates:
                result.template = match_template_by_file_name(attachment.file_name, templates, self.logger)
        if result.recipient is not None and result.template is None:
            result.template = resolve_linked_template(result.recipient, templates)
        return result
