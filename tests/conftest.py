from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from mailpilot.config import EndpointConfig, Settings
from mailpilot.models import Recipient, Template


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", headers: dict | None = None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.closed = False

    def close(self) -> None:
        self.closed = True


class RecordingSleeper:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path) -> None:
    for name in [
        "MAILPILOT_HOME",
        "MAILPILOT_GAS_URL",
        "MAILPILOT_BASIC_AUTH_ID",
        "MAILPILOT_BASIC_AUTH_PW",
        "MAILPILOT_LOG_DIR",
        "MAILPILOT_CORPORATE_SUFFIXES",
    ]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MAILPILOT_CONFIG_DIR", str(tmp_path / "user-config"))


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    root = tmp_path / "project"
    root.mkdir(parents=True, exist_ok=True)
    s = Settings.load(base_dir=root)
    s.ensure_directories()
    return s


@pytest.fixture()
def test_logger() -> logging.Logger:
    logger = logging.getLogger("mailpilot-test")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.INFO)
    return logger


@pytest.fixture()
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture()
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def endpoint() -> EndpointConfig:
    return EndpointConfig(base_url="https://script.example.com/exec")


@pytest.fixture()
def recipients() -> list[Recipient]:
    return [
        Recipient(id="1", name="Yamada Taro", company="ABC Corp", email="yamada@abc.example", template_id="t2"),
        Recipient(id="2", name="田中 太郎", company="株式会社田中商事", email="tanaka@tanaka.example"),
        Recipient(id="3", name="Suzuki Hanako", company="Blue Ocean", email="suzuki@blue.example"),
    ]


@pytest.fixture()
def templates() -> list[Template]:
    return [
        Template(id="t1", name="見積書", subject="お見積りの件", body="{{company}} {{name}}様\n見積書を送付します。"),
        Template(id="t2", name="請求書", subject="ご請求の件", body="{{company}} {{name}}様\n請求書を送付します。"),
    ]


@pytest.fixture()
def response():
    return FakeResponse
