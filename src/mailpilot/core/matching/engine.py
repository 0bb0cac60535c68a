from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from mailpilot.models import Attachment, Recipient, Template

module_logger = logging.getLogger(__name__)

# Japanese legal-entity forms; they carry no information about who the company is.
DEFAULT_CORPORATE_SUFFIXES: tuple[str, ...] = (
    "株式会社",
    "有限会社",
    "合同会社",
    "合資会社",
    "合名会社",
    "(株)",
    "（株）",
    "㈱",
)

TOKEN_DELIMITERS = re.compile(r"[_ ()\-]")
SPACES = (" ", "　")
COMPANY_PART_LENGTH = 3
MIN_FRAGMENT_LENGTH = 2

NO_RECIPIENT = "no_recipient"
ATTACHMENT_MISMATCH = "attachment_mismatch"
BODY_MISSING_RECIPIENT = "body_missing_recipient"


@dataclass(frozen=True, slots=True)
class SafetyWarning:
    code: str
    message: str
    file_name: str | None = None

    def __str__(self) -> str:
        return self.message


def normalize(value: str | None) -> str:
    if not value:
        return ""
    result = value.lower()
    for space in SPACES:
        result = result.replace(space, "")
    return result


def split_file_name(file_name: str) -> list[str]:
    """Drop the extension and split the base name on ``_``, space, ``(``, ``)`` and ``-``."""
    suffix = Path(file_name).suffix
    base_name = file_name[: -len(suffix)] if suffix else file_name
    return [part for part in TOKEN_DELIMITERS.split(base_name) if part]


def strip_corporate_suffixes(value: str, suffixes: Iterable[str] = DEFAULT_CORPORATE_SUFFIXES) -> str:
    for suffix in suffixes:
        value = value.replace(normalize(suffix), "")
    return value


def _fragments(value: str) -> list[str]:
    return [part for part in value.split() if len(part) >= MIN_FRAGMENT_LENGTH]


def _any_fragment_in(text: str, source: str) -> bool:
    return any(part in text for part in _fragments(source))


def _company_part_in(text: str, company: str) -> bool:
    if len(company) < COMPANY_PART_LENGTH:
        return False
    return any(
        company[i : i + COMPANY_PART_LENGTH] in text
        for i in range(len(company) - COMPANY_PART_LENGTH + 1)
    )


def match_recipient_by_file_name(
    file_name: str,
    recipients: Sequence[Recipient],
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> Recipient | None:
    """First token, then first recipient, whose name/company contains the token."""
    log = logger or module_logger
    for part in split_file_name(file_name):
        token = normalize(part)
        if not token:
            continue
        for recipient in recipients:
            name = normalize(recipient.name)
            company = normalize(recipient.company)
            if token in name or token in company or token in name + company:
                log.info("Recipient matched: %s -> %s (%s)", part, recipient.name, recipient.company)
                return recipient
    return None


def match_template_by_file_name(
    file_name: str,
    templates: Sequence[Template],
    logger: logging.Logger | logging.LoggerAdapter | None = None,
) -> Template | None:
    log = logger or module_logger
    for part in split_file_name(file_name):
        token = normalize(part)
        if not token:
            continue
        for template in templates:
            name = normalize(template.name)
            if token in name or name in token:
                log.info("Template matched: %s -> %s", part, template.name)
                return template
    return None


def _attachment_matches(
    attachment: Attachment,
    company: str,
    name: str,
    suffixes: Sequence[str],
) -> bool:
    file_name = strip_corporate_suffixes(normalize(attachment.file_name), suffixes)
    if company in file_name:
        return True
    if _company_part_in(file_name, company):
        return True
    return _any_fragment_in(file_name, name)


def _body_matches(body: str, recipient: Recipient) -> bool:
    text = normalize(body)
    if normalize(recipient.company) in text:
        return True
    if _any_fragment_in(text, recipient.company.lower()):
        return True
    return _any_fragment_in(text, recipient.name.lower())


def validate_send_safety(
    recipient: Recipient | None,
    attachments: Sequence[Attachment],
    body: str,
    corporate_suffixes: Sequence[str] = DEFAULT_CORPORATE_SUFFIXES,
) -> list[SafetyWarning]:
    """Advisory checks run before sending.

    Each enabled attachment's file name must mention the recipient's company
    (whole, or any three consecutive characters of it once legal-entity
    suffixes are removed) or the recipient's name. The body must mention the
    company or a word of the company or person name. Nothing here blocks a
    send; the caller decides what to do with the warnings.
    """
    if recipient is None:
        return [SafetyWarning(NO_RECIPIENT, "宛先が選択されていません")]

    warnings: list[SafetyWarning] = []
    company = strip_corporate_suffixes(normalize(recipient.company), corporate_suffixes)
    name = normalize(recipient.name)

    for attachment in attachments:
        if not attachment.enabled:
            continue
        if _attachment_matches(attachment, company, name, corporate_suffixes):
            continue
        warnings.append(
            SafetyWarning(
                ATTACHMENT_MISMATCH,
                f"添付ファイル「{attachment.file_name}」が宛先「{recipient.company}」と一致しない可能性があります",
                file_name=attachment.file_name,
            )
        )

    if not _body_matches(body, recipient):
        warnings.append(
            SafetyWarning(BODY_MISSING_RECIPIENT, "本文に宛先の会社名または氏名が見つかりません")
        )

    return warnings
