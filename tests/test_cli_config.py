"""
CLI 认证配置（cli_config）单元测试。
"""

from __future__ import annotations

from pathlib import Path

import pytest

from dropboxfs.cli_config import TOKEN_ENV_VAR, clear_config, load_config, resolve_token, save_config

from tests.config import SAMPLE_TOKEN


@pytest.fixture(autouse=True)
def _patch_config_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """将配置路径指向临时目录，避免污染用户 ~/.config/dropboxfs。"""
    config_dir = tmp_path / "dropboxfs"
    config_dir.mkdir(parents=True, exist_ok=True)

    def _config_dir():
        return config_dir

    monkeypatch.setattr("dropboxfs.cli_config._config_dir", _config_dir)
    monkeypatch.delenv(TOKEN_ENV_VAR, raising=False)


def test_load_config_missing_returns_none() -> None:
    assert load_config() is None


def test_load_config_invalid_json_returns_none(tmp_path: Path) -> None:
    config_file = tmp_path / "dropboxfs" / "config.json"
    config_file.write_text("not json", encoding="utf-8")
    assert load_config() is None


def test_load_config_missing_token_returns_none(tmp_path: Path) -> None:
    config_file = tmp_path / "dropboxfs" / "config.json"
    config_file.write_text('{"dir_list_limit": 10}', encoding="utf-8")
    assert load_config() is None


def test_save_config_round_trip(tmp_path: Path) -> None:
    save_config(f"  {SAMPLE_TOKEN}\n", dir_list_limit=500)
    cfg = load_config()
    assert cfg == {"token": SAMPLE_TOKEN, "dir_list_limit": 500}
    mode = (tmp_path / "dropboxfs" / "config.json").stat().st_mode & 0o777
    assert mode == 0o600


def test_save_config_without_limit() -> None:
    save_config(SAMPLE_TOKEN)
    cfg = load_config()
    assert cfg is not None
    assert "dir_list_limit" not in cfg


def test_clear_config() -> None:
    save_config(SAMPLE_TOKEN)
    assert clear_config() is True
    assert load_config() is None
    assert clear_config() is False


def test_resolve_token_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    assert resolve_token() is None
    save_config("saved")
    assert resolve_token() == "saved"
    monkeypatch.setenv(TOKEN_ENV_VAR, "from-env")
    assert resolve_token() == "from-env"
    assert resolve_token("explicit") == "explicit"
