from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from mailpilot.core.matching import DEFAULT_CORPORATE_SUFFIXES

APP_NAME = "mailpilot"
SUFFIX_SEPARATOR = ";"
CONFIG_FILE_NAME = "mailpilot-config.json"

# JSON key -> Settings attribute
_PERSISTED_FIELDS = {
    "gas_url": "gas_url",
    "signature": "signature",
    "basic_auth_id": "basic_auth_id",
    "basic_auth_pw": "basic_auth_pw",
}


@dataclass(slots=True)
class EndpointConfig:
    base_url: str = ""
    auth_id: str = ""
    auth_password: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url.strip())


@dataclass(slots=True)
class Settings:
    root_dir: Path
    user_config_dir: Path
    logs_dir: Path
    gas_url: str = ""
    signature: str = ""
    basic_auth_id: str = ""
    basic_auth_pw: str = ""
    timeout_sec: float = 30.0
    max_attempts: int = 3
    max_redirects: int = 10
    max_attachment_mb: int = 15
    corporate_suffixes: list[str] = field(default_factory=lambda: list(DEFAULT_CORPORATE_SUFFIXES))
    loaded_from: list[Path] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)

    @classmethod
    def load(cls, base_dir: Path | None = None) -> Settings:
        load_dotenv(override=False)

        root_env = os.getenv("MAILPILOT_HOME")
        root_dir = Path(root_env).expanduser().resolve() if root_env else (base_dir or Path.cwd()).resolve()

        user_config_dir = Path(
            os.getenv("MAILPILOT_CONFIG_DIR", Path.home() / ".config" / APP_NAME)
        ).expanduser().resolve()
        logs_dir = Path(os.getenv("MAILPILOT_LOG_DIR", root_dir / "logs")).expanduser().resolve()

        settings = cls(
            root_dir=root_dir,
            user_config_dir=user_config_dir,
            logs_dir=logs_dir,
            timeout_sec=float(os.getenv("MAILPILOT_TIMEOUT_SEC", "30")),
            max_attempts=int(os.getenv("MAILPILOT_MAX_ATTEMPTS", "3")),
            max_redirects=int(os.getenv("MAILPILOT_MAX_REDIRECTS", "10")),
            max_attachment_mb=int(os.getenv("MAILPILOT_MAX_ATTACHMENT_MB", "15")),
        )

        # Distribution defaults first, then the user's file on top.
        settings._merge_file(root_dir / CONFIG_FILE_NAME, override_all=True)
        settings._merge_file(settings.user_config_path, override_all=False)

        gas_url = os.getenv("MAILPILOT_GAS_URL")
        if gas_url:
            settings.gas_url = gas_url
        auth_id = os.getenv("MAILPILOT_BASIC_AUTH_ID")
        if auth_id:
            settings.basic_auth_id = auth_id
        auth_pw = os.getenv("MAILPILOT_BASIC_AUTH_PW")
        if auth_pw:
            settings.basic_auth_pw = auth_pw
        # ";"-separated: suffixes such as "Co., Ltd." contain commas
        suffixes_env = os.getenv("MAILPILOT_CORPORATE_SUFFIXES")
        if suffixes_env:
            settings.corporate_suffixes = [
                s.strip() for s in suffixes_env.split(SUFFIX_SEPARATOR) if s.strip()
            ]

        return settings

    def _merge_file(self, path: Path, *, override_all: bool) -> None:
        if not path.exists():
            return
        try:
            with path.open("r", encoding="utf-8-sig") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            self.skipped_files.append(f"{path}: {exc}")
            return
        if not isinstance(data, dict):
            self.skipped_files.append(f"{path}: not a JSON object")
            return

        for key, attr in _PERSISTED_FIELDS.items():
            value = data.get(key)
            if not isinstance(value, str):
                continue
            # User-level values only replace lower layers when non-empty
            if override_all or value:
                setattr(self, attr, value)

        suffixes = data.get("corporate_suffixes")
        if isinstance(suffixes, list) and all(isinstance(s, str) for s in suffixes):
            if override_all or suffixes:
                self.corporate_suffixes = [s.strip() for s in suffixes if s.strip()]
        self.loaded_from.append(path)

    @property
    def user_config_path(self) -> Path:
        return self.user_config_dir / CONFIG_FILE_NAME

    @property
    def endpoint(self) -> EndpointConfig:
        return EndpointConfig(
            base_url=self.gas_url,
            auth_id=self.basic_auth_id,
            auth_password=self.basic_auth_pw,
        )

    @property
    def max_attachment_bytes(self) -> int:
        return self.max_attachment_mb * 1024 * 1024

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {key: getattr(self, attr) for key, attr in _PERSISTED_FIELDS.items()}
        data["corporate_suffixes"] = list(self.corporate_suffixes)
        return data

    def save(self) -> Path:
        self.user_config_dir.mkdir(parents=True, exist_ok=True)
        path = self.user_config_path
        path.write_text(json.dumps(self.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
        return path

    def ensure_directories(self) -> None:
        for path in [self.root_dir, self.logs_dir, self.user_config_dir]:
            path.mkdir(parents=True, exist_ok=True)
