from __future__ import annotations

import json
from pathlib import Path

from mailpilot.config import CONFIG_FILE_NAME, Settings
from mailpilot.core.matching import DEFAULT_CORPORATE_SUFFIXES


def _write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


def test_defaults_without_files(tmp_path: Path) -> None:
    settings = Settings.load(base_dir=tmp_path)

    assert settings.gas_url == ""
    assert not settings.endpoint.is_configured
    assert settings.timeout_sec == 30.0
    assert settings.max_attempts == 3
    assert settings.max_redirects == 10
    assert settings.corporate_suffixes == list(DEFAULT_CORPORATE_SUFFIXES)
    assert settings.loaded_from == []


def test_user_file_overrides_distribution_file_when_non_empty(tmp_path: Path) -> None:
    _write(
        tmp_path / CONFIG_FILE_NAME,
        {"gas_url": "https://dist.example.com/exec", "signature": "配布署名", "basic_auth_id": "dist"},
    )
    _write(
        tmp_path / "user-config" / CONFIG_FILE_NAME,
        {"gas_url": "https://user.example.com/exec", "signature": "", "basic_auth_pw": "pw"},
    )

    settings = Settings.load(base_dir=tmp_path)

    assert settings.gas_url == "https://user.example.com/exec"
    assert settings.signature == "配布署名"
    assert settings.basic_auth_id == "dist"
    assert settings.basic_auth_pw == "pw"
    assert len(settings.loaded_from) == 2


def test_environment_has_highest_precedence(monkeypatch, tmp_path: Path) -> None:
    _write(tmp_path / "user-config" / CONFIG_FILE_NAME, {"gas_url": "https://user.example.com/exec"})
    monkeypatch.setenv("MAILPILOT_GAS_URL", "https://env.example.com/exec")
    monkeypatch.setenv("MAILPILOT_CORPORATE_SUFFIXES", "株式会社; Inc. ;")

    settings = Settings.load(base_dir=tmp_path)

    assert settings.gas_url == "https://env.example.com/exec"
    assert settings.corporate_suffixes == ["株式会社", "Inc."]


def test_malformed_file_is_skipped(tmp_path: Path) -> None:
    (tmp_path / CONFIG_FILE_NAME).write_text("{not json", encoding="utf-8")

    settings = Settings.load(base_dir=tmp_path)

    assert settings.gas_url == ""
    assert len(settings.skipped_files) == 1


def test_save_round_trips_user_layer(tmp_path: Path) -> None:
    settings = Settings.load(base_dir=tmp_path)
    settings.gas_url = "https://saved.example.com/exec"
    settings.signature = "営業部 山田"

    path = settings.save()

    assert json.loads(path.read_text(encoding="utf-8"))["signature"] == "営業部 山田"
    reloaded = Settings.load(base_dir=tmp_path)
    assert reloaded.gas_url == "https://saved.example.com/exec"
    assert reloaded.endpoint.base_url == "https://saved.example.com/exec"


def test_suffixes_with_commas_survive_environment(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MAILPILOT_CORPORATE_SUFFIXES", "Co., Ltd.;Co.,Ltd.;株式会社")

    settings = Settings.load(base_dir=tmp_path)

    assert settings.corporate_suffixes == ["Co., Ltd.", "Co.,Ltd.", "株式会社"]


def test_suffix_list_from_config_file(monkeypatch, tmp_path: Path) -> None:
    _write(tmp_path / CONFIG_FILE_NAME, {"corporate_suffixes": ["Co., Ltd.", "Inc."]})

    settings = Settings.load(base_dir=tmp_path)
    assert settings.corporate_suffixes == ["Co., Ltd.", "Inc."]

    monkeypatch.setenv("MAILPILOT_CORPORATE_SUFFIXES", "LLC")
    assert Settings.load(base_dir=tmp_path).corporate_suffixes == ["LLC"]


def test_save_keeps_suffix_list(tmp_path: Path) -> None:
    settings = Settings.load(base_dir=tmp_path)
    settings.corporate_suffixes = ["Co., Ltd."]
    settings.save()

    assert Settings.load(base_dir=tmp_path).corporate_suffixes == ["Co., Ltd."]
