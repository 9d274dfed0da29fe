"""
文件系统入口：打开句柄，以及直接转发给 Dropbox 的 stat / mkdir / remove / rename。
"""

from __future__ import annotations

import logging

from dropboxfs.client import DropboxClient
from dropboxfs.file import File
from dropboxfs.models import FileInfo
from dropboxfs.pipe import DEFAULT_CAPACITY

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """统一为以 / 开头、无末尾 /、分隔符为 / 的路径；空路径即根目录 "/"。"""
    clean = (path or "").replace("\\", "/").strip().strip("/")
    return "/" + clean


class DropboxFs:
    """
    :param client: Dropbox 客户端
    :param dir_list_limit: 目录首页 limit，0 表示服务端默认
    :param pipe_capacity: 写入管道容量（数据块数）
    """

    def __init__(self, client: DropboxClient, *, dir_list_limit: int = 0, pipe_capacity: int = DEFAULT_CAPACITY):
        self.client = client
        self.dir_list_limit = dir_list_limit
        self.pipe_capacity = pipe_capacity

    def _new_file(self, name: str, info: FileInfo | None = None) -> File:
        return File(
            self.client,
            name,
            dir_list_limit=self.dir_list_limit,
            pipe_capacity=self.pipe_capacity,
            info=info,
        )

    def stat(self, name: str) -> FileInfo:
        name = normalize_path(name)
        if name == "/":
            return FileInfo.root()
        return FileInfo.from_metadata(self.client.get_metadata(name))

    def open(self, name: str) -> File:
        """以读方式打开：文件会立即开始下载，目录只用于 readdir。"""
        name = normalize_path(name)
        info = self.stat(name)
        f = self._new_file(name, info)
        if not info.is_dir:
            f.open_read_stream(0)
        logger.debug("opened %s for reading", name)
        return f

    def create(self, name: str) -> File:
        """以写方式打开（覆盖已有文件），数据在 close 时完成上传。"""
        name = normalize_path(name)
        f = self._new_file(name)
        f.open_write_stream()
        return f

    def mkdir(self, name: str) -> FileInfo:
        return FileInfo.from_metadata(self.client.create_folder(normalize_path(name)))

    def remove(self, name: str) -> None:
        self.client.delete(normalize_path(name))

    def rename(self, old_name: str, new_name: str) -> FileInfo:
        return FileInfo.from_metadata(self.client.move(normalize_path(old_name), normalize_path(new_name)))
