"""
Dropbox 元数据模型。

list_folder / get_metadata / upload 返回的每个条目都是带 ".tag" 的 JSON 对象：
- file:    name, path_display, size, client_modified, server_modified, rev
- folder:  name, path_display
Dropbox 没有权限模型，FileInfo.mode 固定返回 SIMULATED_FILE_MODE。
"""

from __future__ import annotations

import enum
import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# 远端返回的原始元数据
Metadata = dict[str, Any]

# list_folder / list_folder_continue 响应：entries, cursor, has_more
ListFolderResult = dict[str, Any]

SIMULATED_FILE_MODE = 0o777

_DROPBOX_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class EntryKind(enum.Enum):
    FILE = "file"
    FOLDER = "folder"


def parse_time(value: str | None) -> datetime | None:
    """解析 Dropbox 时间戳（如 2015-05-12T15:50:38Z），返回 UTC datetime。"""
    if not value:
        return None
    return datetime.strptime(value, _DROPBOX_TIME_FORMAT).replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class FileInfo:
    """
    远端条目的不可变快照。

    kind 区分文件与文件夹；文件夹的 size 为 0、mod_time 为 None。
    """

    kind: EntryKind
    name: str
    path: str = ""
    size: int = 0
    mod_time: datetime | None = None
    meta: Metadata = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_metadata(cls, meta: Metadata) -> FileInfo:
        tag = meta.get(".tag")
        if tag == EntryKind.FOLDER.value:
            return cls(
                kind=EntryKind.FOLDER,
                name=meta.get("name", ""),
                path=meta.get("path_display", ""),
                meta=meta,
            )
        if tag == EntryKind.FILE.value:
            return cls(
                kind=EntryKind.FILE,
                name=meta.get("name", ""),
                path=meta.get("path_display", ""),
                size=int(meta.get("size") or 0),
                mod_time=parse_time(meta.get("client_modified")),
                meta=meta,
            )
        raise ValueError(f"unsupported metadata tag: {tag!r}")

    @classmethod
    def root(cls) -> FileInfo:
        """根目录不能 get_metadata，用一个合成的文件夹条目代替。"""
        return cls(kind=EntryKind.FOLDER, name="", path="/")

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.FOLDER

    @property
    def mode(self) -> int:
        return SIMULATED_FILE_MODE

    @property
    def base_name(self) -> str:
        """名称的最后一段路径。"""
        return posixpath.basename(self.name)
