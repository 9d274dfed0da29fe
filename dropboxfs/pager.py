"""
目录分页读取。

Dropbox 的 list_folder 不能按调用方想要的条数返回，每页大小由服务端决定（limit 只是提示）。
DirectoryPager 用一个有界缓冲区把「服务端每页多少条」与「调用方每次要多少条」解耦：
缓冲区空了才去取下一页，每次最多持有一页尚未消费的条目。
"""

from __future__ import annotations

import logging
import posixpath
from collections import deque
from typing import Protocol

from dropboxfs.models import FileInfo, ListFolderResult

logger = logging.getLogger(__name__)

# 单次 list_folder 能返回的最大条数，也是缓冲区容量
DIR_LISTING_MAX_LIMIT = 2000


class ListingClient(Protocol):
    def list_folder(self, path: str, limit: int | None = None) -> ListFolderResult: ...

    def list_folder_continue(self, cursor: str) -> ListFolderResult: ...


class DirectoryPager:
    """
    基于 cursor 的目录条目迭代器。

    :param client: 提供 list_folder / list_folder_continue 的客户端
    :param path: 目录路径
    :param limit: 首次 list_folder 的 limit；0 或 None 表示使用服务端默认值
    :param capacity: 缓冲区容量
    """

    def __init__(
        self,
        client: ListingClient,
        path: str,
        *,
        limit: int | None = None,
        capacity: int = DIR_LISTING_MAX_LIMIT,
    ):
        self.client = client
        self.path = path
        self.limit = limit
        self.capacity = capacity
        self.cursor = ""
        self.done = False
        self._buffer: deque[FileInfo] = deque()

    @property
    def buffered(self) -> int:
        """缓冲区中尚未消费的条目数。"""
        return len(self._buffer)

    def read_all(self) -> list[FileInfo]:
        """一次性取完所有页；与 read_page 的分页状态互不影响。"""
        infos: list[FileInfo] = []
        cursor = ""
        while True:
            if not cursor:
                res = self.client.list_folder(self.path)
            else:
                res = self.client.list_folder_continue(cursor)
            infos.extend(FileInfo.from_metadata(m) for m in res.get("entries", []))
            cursor = res.get("cursor", "")
            if not res.get("has_more"):
                break
        return infos

    def _fetch(self) -> None:
        """取一页放入缓冲区，并推进 cursor / done。"""
        if not self.cursor:
            res = self.client.list_folder(self.path, self.limit or None)
        else:
            res = self.client.list_folder_continue(self.cursor)

        entries = res.get("entries", [])
        if len(self._buffer) + len(entries) > self.capacity:
            raise OverflowError(
                f"listing page of {len(entries)} entries exceeds buffer capacity {self.capacity}"
            )
        self.cursor = res.get("cursor", "")
        self.done = not res.get("has_more")
        self._buffer.extend(FileInfo.from_metadata(m) for m in entries)
        logger.debug("fetched %d entries of %s (done=%s)", len(entries), self.path, self.done)

    def read_page(self, count: int) -> list[FileInfo]:
        """
        读取至多 count 个条目。

        count <= 0 时返回全部条目（等同 read_all）；
        否则只有在分页结束后才会返回少于 count 个条目。
        """
        if count <= 0:
            return self.read_all()

        page: list[FileInfo] = []
        while len(page) < count:
            if not self._buffer:
                if self.done:
                    break
                self._fetch()
            while len(page) < count and self._buffer:
                page.append(self._buffer.popleft())
        return page

    def read_names(self, count: int) -> list[str]:
        """read_page 的结果只保留最后一段名称。"""
        return [posixpath.basename(info.name) for info in self.read_page(count)]
