from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from mailpilot.client import BackendError, ConfigurationError, RetryLimitExceeded, TransportError
from mailpilot.core.matching import ATTACHMENT_MISMATCH
from mailpilot.models import (
    ConnectionTestResult,
    MailDraft,
    Recipient,
    SendMailResult,
    SettingsResult,
)
from mailpilot.services import (
    MailService,
    apply_template_variables,
    find_recipients,
    resolve_linked_template,
    select_template,
)


@pytest.fixture()
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def service(settings, test_logger, client) -> MailService:  # noqa: ANN001
    settings.gas_url = "https://script.example.com/exec"
    return MailService(settings=settings, logger=test_logger, client=client)


def test_apply_template_variables(recipients) -> None:  # noqa: ANN001
    text = "{{company}} {{name}}様 ({{email}}, #{{id}})"
    assert apply_template_variables(text, recipients[0]) == "ABC Corp Yamada Taro様 (yamada@abc.example, #1)"
    assert apply_template_variables(text, None) == text


def test_resolve_linked_template(recipients, templates) -> None:  # noqa: ANN001
    assert resolve_linked_template(recipients[0], templates).id == "t2"
    assert resolve_linked_template(recipients[1], templates) is None


def test_select_template_prefers_explicit_id(recipients, templates) -> None:  # noqa: ANN001
    assert select_template(recipients[0], templates, "t1").id == "t1"
    assert select_template(recipients[0], templates).id == "t2"
    assert select_template(recipients[1], templates) is None


def test_select_template_rejects_unknown_id(recipients, templates) -> None:  # noqa: ANN001
    with pytest.raises(LookupError, match="t9"):
        select_template(recipients[0], templates, "t9")


def test_find_recipients_keeps_requested_order(recipients) -> None:  # noqa: ANN001
    found = find_recipients(recipients, ["3", "1"])
    assert [recipient.id for recipient in found] == ["3", "1"]

    with pytest.raises(LookupError, match="9"):
        find_recipients(recipients, ["1", "9"])


def test_remote_calls_require_backend_url(settings, test_logger, client) -> None:  # noqa: ANN001
    service = MailService(settings=settings, logger=test_logger, client=client)

    with pytest.raises(ConfigurationError):
        service.get_templates()
    with pytest.raises(ConfigurationError):
        service.send_mail("a@example.com", "s", "b")

    result = service.test_connection()
    assert result.success is False
    assert result.error
    client.test_connection.assert_not_called()
    client.get_templates.assert_not_called()


def test_connection_failure_is_reported_not_raised(service, client) -> None:  # noqa: ANN001
    client.test_connection.side_effect = RetryLimitExceeded(TransportError("down"), 3)

    result = service.test_connection()

    assert result == ConnectionTestResult(success=False, error=str(client.test_connection.side_effect))


def test_settings_fall_back_to_local_signature(service, client) -> None:  # noqa: ANN001
    service.settings.signature = "ローカル署名"
    client.get_settings.side_effect = BackendError("broken")
    assert service.get_settings().signature == "ローカル署名"

    client.get_settings.side_effect = None
    client.get_settings.return_value = SettingsResult(settings={"a": 1}, signature="")
    result = service.get_settings()
    assert result.signature == "ローカル署名"
    assert result.settings == {"a": 1}

    client.get_settings.return_value = SettingsResult(signature="リモート署名")
    assert service.get_settings().signature == "リモート署名"


def test_settings_without_url_are_local(settings, test_logger, client) -> None:  # noqa: ANN001
    settings.signature = "ローカル署名"
    service = MailService(settings=settings, logger=test_logger, client=client)

    assert service.get_settings() == SettingsResult(signature="ローカル署名")
    client.get_settings.assert_not_called()


def test_reconfigure_persists_and_updates_client(service, client) -> None:  # noqa: ANN001
    path = service.reconfigure("https://new.example.com/exec", "署名", auth_id="id", auth_password="pw")

    saved = json.loads(Path(path).read_text(encoding="utf-8"))
    assert saved["gas_url"] == "https://new.example.com/exec"
    assert saved["basic_auth_id"] == "id"
    client.transport.set_base_url.assert_called_once_with("https://new.example.com/exec")
    client.transport.set_basic_auth.assert_called_once_with("id", "pw")


def test_compose_applies_variables_and_signature(service, recipients, templates) -> None:  # noqa: ANN001
    draft = service.compose(templates[0], recipients[1], "--\n営業部")

    assert draft.to == "tanaka@tanaka.example"
    assert draft.subject == "お見積りの件"
    assert draft.body == "株式会社田中商事 田中 太郎様\n見積書を送付します。\n\n--\n営業部"


def test_send_batch_continues_after_failure(service, client) -> None:  # noqa: ANN001
    client.send_mail.side_effect = [
        BackendError("Quota exceeded"),
        SendMailResult(success=True),
    ]
    drafts = [
        MailDraft(to="a@example.com", subject="s", body="b"),
        MailDraft(to="  ", subject="s", body="b"),
        MailDraft(to="c@example.com", subject="s", body="b"),
    ]

    results = service.send_batch(drafts)

    assert [(r.to, r.success, r.error) for r in results] == [
        ("a@example.com", False, "Quota exceeded"),
        ("c@example.com", True, ""),
    ]
    assert client.send_mail.call_count == 2


def test_send_batch_limits_recipients(service) -> None:  # noqa: ANN001
    drafts = [MailDraft(to=f"{i}@example.com") for i in range(4)]
    with pytest.raises(ValueError):
        service.send_batch(drafts)


def test_validate_uses_configured_suffixes(service) -> None:  # noqa: ANN001
    service.settings.corporate_suffixes = ["Inc."]
    recipient = Recipient(id="7", name="Kato", company="ZX Inc.")
    attachment = MagicMock(enabled=True, file_name="zx.pdf")

    assert service.validate(recipient, [attachment], "ZX Inc. 加藤様") == []

    service.settings.corporate_suffixes = []
    assert [w.code for w in service.validate(recipient, [attachment], "ZX Inc. 加藤様")] == [ATTACHMENT_MISMATCH]


def test_ingest_files_suggests_recipient_and_linked_template(
    service,  # noqa: ANN001
    recipients,  # noqa: ANN001
    templates,  # noqa: ANN001
    tmp_path: Path,
) -> None:
    first = tmp_path / "memo.txt"
    first.write_text("memo", encoding="utf-8")
    second = tmp_path / "ABC_2024.pdf"
    second.write_bytes(b"%PDF")

    result = service.ingest_files([first, second, tmp_path / "missing.pdf"], recipients, templates)

    assert [a.file_name for a in result.attachments] == ["memo.txt", "ABC_2024.pdf"]
    assert result.recipient.id == "1"
    assert result.template.id == "t2"
    assert len(result.failed) == 1
