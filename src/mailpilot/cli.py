from __future__ import annotations

import subprocess
import sys
import uuid
from pathlib import Path
from typing import NoReturn

import typer
from rich import print

from mailpilot.client import MailPilotError
from mailpilot.config import Settings
from mailpilot.core.logging import configure_logging, get_logger, log_startup_info
from mailpilot.core.matching import match_recipient_by_file_name, match_template_by_file_name
from mailpilot.models import Recipient
from mailpilot.services import (
    MailService,
    find_recipients,
    resolve_linked_template,
    run_doctor_checks,
    select_template,
)

app = typer.Typer(no_args_is_help=True, help="mailpilot: テンプレートと宛先を使ったメール送信クライアント")


def _load_service(base_dir: Path | None = None) -> MailService:
    settings = Settings.load(base_dir=base_dir)
    settings.ensure_directories()
    session_id = uuid.uuid4().hex
    launch = configure_logging(settings.logs_dir, session_id=session_id)
    logger = get_logger("mailpilot", session_id)
    log_startup_info(logger, settings.loaded_from, launch)
    for skipped in settings.skipped_files:
        logger.warning("Config file skipped: %s", skipped)
    return MailService(settings=settings, logger=logger)


def _fail(exc: Exception) -> NoReturn:
    print(f"[red]エラー[/red]: {exc.__class__.__name__}: {exc}")
    raise typer.Exit(1)


def _find_recipients(service: MailService, recipient_ids: list[str]) -> list[Recipient]:
    recipients = service.get_recipients()
    try:
        return find_recipients(recipients, recipient_ids)
    except LookupError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _read_body(body: str | None, body_file: Path | None) -> str:
    if body_file is not None:
        return body_file.read_text(encoding="utf-8")
    return body or ""


@app.command("config")
def config_command(
    url: str | None = typer.Option(None, help="GAS WebアプリURL"),
    signature: str | None = typer.Option(None, help="デフォルト署名"),
    auth_id: str | None = typer.Option(None, help="Basic認証ID"),
    auth_pw: str | None = typer.Option(None, help="Basic認証パスワード"),
) -> None:
    service = _load_service()
    settings = service.settings
    if any(value is not None for value in (url, signature, auth_id, auth_pw)):
        path = service.reconfigure(
            url if url is not None else settings.gas_url,
            signature if signature is not None else settings.signature,
            auth_id=auth_id,
            auth_password=auth_pw,
        )
        print(f"[green]設定を保存しました[/green]: {path}")

    print(f"- gas_url: {settings.gas_url or '(未設定)'}")
    print(f"- signature: {settings.signature or '(なし)'}")
    print(f"- basic_auth: {'有効' if service.client.transport.get_auth_header() else '無効'}")


@app.command("test")
def test_command() -> None:
    service = _load_service()
    result = service.test_connection()
    if result.success:
        print(f"[green]接続OK[/green] {result.message}")
        return
    print(f"[red]接続失敗[/red]: {result.error}")
    raise typer.Exit(1)


@app.command("templates")
def templates_command() -> None:
    service = _load_service()
    try:
        templates = service.get_templates()
    except MailPilotError as exc:
        _fail(exc)
    print(f"テンプレート: {len(templates)}件")
    for template in templates:
        print(f"- {template.id}: {template.name} / {template.subject}")


@app.command("recipients")
def recipients_command() -> None:
    service = _load_service()
    try:
        recipients = service.get_recipients()
    except MailPilotError as exc:
        _fail(exc)
    print(f"宛先: {len(recipients)}件")
    for recipient in recipients:
        print(f"- {recipient.id}: {recipient.company} {recipient.name} <{recipient.email}>")


@app.command("signatures")
def signatures_command() -> None:
    service = _load_service()
    try:
        signatures = service.get_signatures()
    except MailPilotError as exc:
        _fail(exc)
    print(f"署名: {len(signatures)}件")
    for signature in signatures:
        print(f"- {signature.name}")


@app.command("match")
def match_command(files: list[Path] = typer.Argument(..., help="マッチングするファイル")) -> None:
    service = _load_service()
    try:
        recipients = service.get_recipients()
        templates = service.get_templates()
    except MailPilotError as exc:
        _fail(exc)

    for file_path in files:
        recipient = match_recipient_by_file_name(file_path.name, recipients, service.logger)
        template = match_template_by_file_name(file_path.name, templates, service.logger)
        if template is None and recipient is not None:
            template = resolve_linked_template(recipient, templates)
        recipient_label = f"{recipient.company} {recipient.name}" if recipient else "[yellow]なし[/yellow]"
        template_label = template.name if template else "[yellow]なし[/yellow]"
        print(f"- {file_path.name}: 宛先={recipient_label}, テンプレート={template_label}")


@app.command("validate")
def validate_command(
    recipient_id: str = typer.Option(..., help="宛先ID"),
    files: list[Path] = typer.Argument(None, help="添付ファイル"),
    body: str | None = typer.Option(None, help="本文"),
    body_file: Path | None = typer.Option(None, help="本文ファイル (UTF-8)"),
) -> None:
    service = _load_service()
    try:
        [recipient] = _find_recipients(service, [recipient_id])
    except MailPilotError as exc:
        _fail(exc)
    ingest = service.ingest_files(files or [])
    warnings = service.validate(recipient, ingest.attachments, _read_body(body, body_file))
    if not warnings:
        print("[green]問題は見つかりませんでした[/green]")
        return
    for warning in warnings:
        print(f"[yellow]警告[/yellow]: {warning.message}")
    raise typer.Exit(2)


@app.command("send")
def send_command(
    recipient_id: list[str] = typer.Option(..., help="宛先ID (最大3件)"),
    files: list[Path] = typer.Argument(None, help="添付ファイル"),
    template_id: str | None = typer.Option(None, help="テンプレートID (省略時は宛先の紐付けテンプレート)"),
    force: bool = typer.Option(False, "--force", help="警告があっても送信する"),
) -> None:
    service = _load_service()
    try:
        recipients = _find_recipients(service, recipient_id)
        templates = service.get_templates()
        signature = service.get_settings().signature
    except MailPilotError as exc:
        _fail(exc)

    ingest = service.ingest_files(files or [])
    for failure in ingest.failed:
        print(f"[yellow]読み込み失敗[/yellow]: {failure}")

    drafts = []
    blocked = False
    for recipient in recipients:
        try:
            template = select_template(recipient, templates, template_id)
        except LookupError as exc:
            raise typer.BadParameter(str(exc), param_hint="--template-id") from exc
        if template is None:
            raise typer.BadParameter(f"テンプレートが決まりません: {recipient.id}")
        draft = service.compose(template, recipient, signature)
        for warning in service.validate(recipient, ingest.attachments, draft.body):
            print(f"[yellow]警告[/yellow] ({recipient.email}): {warning.message}")
            blocked = True
        drafts.append(draft)

    if blocked and not force:
        print("[red]警告があるため送信を中止しました[/red] (--force で送信)")
        raise typer.Exit(2)

    try:
        results = service.send_batch(drafts, ingest.attachments)
    except (MailPilotError, ValueError) as exc:
        _fail(exc)

    for result in results:
        if result.success:
            print(f"[green]送信完了[/green]: {result.to}")
        else:
            print(f"[red]送信エラー[/red]: {result.to}: {result.error}")
    if not all(result.success for result in results):
        raise typer.Exit(1)


@app.command("doctor")
def doctor_command() -> None:
    service = _load_service()
    checks = run_doctor_checks(service.settings, service)

    print("doctor の結果:")
    for check in checks:
        status = check["status"].upper()
        print(f"- [{status}] {check['check']}: {check['detail']}")


@app.command("tests")
def tests_command() -> None:
    result = subprocess.run([sys.executable, "-m", "pytest", "-q"], check=False)
    if result.returncode != 0:
        raise typer.Exit(result.returncode)
    print("[green]テストが成功しました[/green]")


if __name__ == "__main__":
    app()
