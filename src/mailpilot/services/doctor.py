from __future__ import annotations

import platform
import sys

from mailpilot.config import Settings
from mailpilot.services.mailer import MailService


def run_doctor_checks(settings: Settings, service: MailService) -> list[dict[str, str]]:
    checks: list[dict[str, str]] = []

    checks.append(
        {
            "check": "python_version",
            "status": "ok" if sys.version_info >= (3, 10) else "warn",
            "detail": platform.python_version(),
        }
    )

    checks.append(
        {
            "check": "config_file",
            "status": "ok" if settings.loaded_from else "warn",
            "detail": ", ".join(str(p) for p in settings.loaded_from) or "設定ファイルなし（デフォルト設定）",
        }
    )

    for skipped in settings.skipped_files:
        checks.append({"check": "config_file_invalid", "status": "warn", "detail": skipped})

    checks.append(
        {
            "check": "logs_dir",
            "status": "ok" if settings.logs_dir.exists() else "warn",
            "detail": str(settings.logs_dir),
        }
    )

    if not settings.endpoint.is_configured:
        checks.append(
            {
                "check": "backend_url",
                "status": "warn",
                "detail": "GAS URLが設定されていません",
            }
        )
        return checks

    checks.append({"check": "backend_url", "status": "ok", "detail": settings.gas_url})

    result = service.test_connection()
    checks.append(
        {
            "check": "connection",
            "status": "ok" if result.success else "warn",
            "detail": result.message or result.error,
        }
    )
    return checks
