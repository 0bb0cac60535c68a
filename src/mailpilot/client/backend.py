from __future__ import annotations

import json
import logging
from typing import Any

from mailpilot.client.errors import BackendError, ProtocolError
from mailpilot.client.transport import RequestClient
from mailpilot.models import (
    ConnectionTestResult,
    Recipient,
    SaveTemplateRequest,
    SendMailRequest,
    SendMailResult,
    SettingsResult,
    Signature,
    Template,
)

ACTION_TEST = "test"
ACTION_GET_TEMPLATES = "getTemplates"
ACTION_GET_RECIPIENTS = "getRecipients"
ACTION_GET_SIGNATURES = "getSignatures"
ACTION_GET_SETTINGS = "getSettings"
ACTION_SEND_MAIL = "sendMail"
ACTION_SAVE_TEMPLATE = "saveTemplate"


class BackendClient:
    """One method per backend action on top of :class:`RequestClient`."""

    def __init__(
        self,
        transport: RequestClient,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.transport = transport
        self.logger = logger or transport.logger

    @staticmethod
    def _decode(body: bytes, action: str) -> Any:
        try:
            return json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ProtocolError(f"{action}: invalid JSON response: {exc}") from exc

    def _envelope(self, body: bytes, action: str) -> dict[str, Any]:
        data = self._decode(body, action)
        if not isinstance(data, dict):
            raise ProtocolError(f"{action}: expected a JSON object, got {type(data).__name__}")
        error = data.get("error")
        if error:
            self.logger.error("Backend error on %s: %s", action, error)
            raise BackendError(str(error), action=action)
        return data

    def _fetch(self, action: str) -> dict[str, Any]:
        return self._envelope(self.transport.get({"action": action}), action)

    @staticmethod
    def _items(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
        items = data.get(key) or []
        return [item for item in items if isinstance(item, dict)]

    def test_connection(self) -> ConnectionTestResult:
        self.logger.info("Connection test: %s", self.transport.base_url)
        body = self.transport.get({"action": ACTION_TEST})
        try:
            data = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            # Deployments may answer with an HTML page; reaching it is enough.
            self.logger.info("Connection test OK (non-JSON response)")
            return ConnectionTestResult(success=True, message="接続成功")

        if not isinstance(data, dict):
            return ConnectionTestResult(success=True, message="接続成功")

        error = data.get("error")
        if error:
            self.logger.error("Backend error on %s: %s", ACTION_TEST, error)
            raise BackendError(str(error), action=ACTION_TEST)

        result = ConnectionTestResult(
            success=bool(data.get("success")),
            message=str(data.get("message") or ""),
        )
        self.logger.info("Connection test result: success=%s", result.success)
        return result

    def get_templates(self) -> list[Template]:
        self.logger.info("Fetching templates")
        data = self._fetch(ACTION_GET_TEMPLATES)
        templates = [Template.from_dict(item) for item in self._items(data, "templates")]
        self.logger.info("Templates fetched: %s", len(templates))
        return templates

    def get_recipients(self) -> list[Recipient]:
        self.logger.info("Fetching recipients")
        data = self._fetch(ACTION_GET_RECIPIENTS)
        recipients = [Recipient.from_dict(item) for item in self._items(data, "recipients")]
        self.logger.info("Recipients fetched: %s", len(recipients))
        return recipients

    def get_signatures(self) -> list[Signature]:
        self.logger.info("Fetching signatures")
        data = self._fetch(ACTION_GET_SIGNATURES)
        signatures = [Signature.from_dict(item) for item in self._items(data, "signatures")]
        self.logger.info("Signatures fetched: %s", len(signatures))
        return signatures

    def get_settings(self) -> SettingsResult:
        self.logger.info("Fetching settings")
        data = self._fetch(ACTION_GET_SETTINGS)
        settings = data.get("settings")
        result = SettingsResult(
            settings=settings if isinstance(settings, dict) else {},
            signature=str(data.get("signature") or ""),
        )
        self.logger.info("Settings fetched")
        return result

    def send_mail(self, request: SendMailRequest) -> SendMailResult:
        self.logger.info("Sending mail: to=%s, subject=%s", request.to, request.subject)
        data = self._envelope(self.transport.post(request.to_payload()), ACTION_SEND_MAIL)
        result = SendMailResult(success=bool(data.get("success")))
        self.logger.info("Mail sent: success=%s", result.success)
        return result

    def save_template(self, request: SaveTemplateRequest) -> None:
        self.logger.info("Saving template: id=%s, name=%s", request.id, request.name)
        self._envelope(self.transport.post(request.to_payload()), ACTION_SAVE_TEMPLATE)
        self.logger.info("Template saved")
