"""
CLI 认证配置：本地保存/读取 Dropbox access token。
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

# 设置后优先于本地保存的 token
TOKEN_ENV_VAR = "DROPBOX_ACCESS_TOKEN"


def _config_dir() -> Path:
    """配置目录：~/.config/dropboxfs（所有平台统一）。"""
    return Path.home() / ".config" / "dropboxfs"


def _config_path() -> Path:
    return _config_dir() / "config.json"


def load_config() -> dict[str, Any] | None:
    """读取本地配置；不存在或无效则返回 None。"""
    p = _config_path()
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(data, dict) or not data.get("token"):
        return None
    return data


def save_config(token: str, dir_list_limit: int | None = None) -> None:
    """保存 token（及可选的目录分页大小）到本地。"""
    p = _config_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    data: dict[str, Any] = {"token": token.strip()}
    if dir_list_limit is not None:
        data["dir_list_limit"] = dir_list_limit
    p.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    # token 等同密码，只允许本人读写
    p.chmod(0o600)


def clear_config() -> bool:
    """清除本地配置；存在则删除并返回 True。"""
    p = _config_path()
    if p.exists():
        p.unlink()
        return True
    return False


def resolve_token(token: str | None = None) -> str | None:
    """命令行参数 > 环境变量 > 本地配置。"""
    if token:
        return token
    env = os.environ.get(TOKEN_ENV_VAR)
    if env:
        return env
    cfg = load_config()
    return cfg.get("token") if cfg else None
