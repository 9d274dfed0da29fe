"""
Dropbox v2 HTTP API 客户端。

只实现文件句柄需要的几类调用：分页列目录、按偏移下载、整文件流式上传，
以及 stat / mkdir / delete / move 这些直接转发的操作。
参考 https://www.dropbox.com/developers/documentation/http/documentation
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

import httpx

from dropboxfs.models import ListFolderResult, Metadata

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.dropboxapi.com/2"
CONTENT_BASE_URL = "https://content.dropboxapi.com/2"

# 内容类接口把参数放在此请求头中（JSON，非 ASCII 需转义）
DROPBOX_API_ARG_HEADER = "Dropbox-API-Arg"

DOWNLOAD_CHUNK_SIZE = 64 * 1024

# 409 响应 error_summary 中表示路径不存在的前缀
_NOT_FOUND_MARKERS = ("path/not_found", "path_lookup/not_found", "from_lookup/not_found")


def _api_path(path: str) -> str:
    """Dropbox 用空字符串表示根目录，其余路径需以 / 开头。"""
    path = path.strip()
    if path in ("", "/"):
        return ""
    return "/" + path.strip("/")


def _api_arg(arg: dict[str, Any]) -> str:
    """Dropbox-API-Arg 头的值；ensure_ascii 保证中文等字符以 \\uXXXX 形式出现。"""
    return json.dumps(arg, ensure_ascii=True, separators=(",", ":"))


def _raise_for_status(r: httpx.Response) -> None:
    """409 且路径不存在时抛 FileNotFoundError，其余失败交给 raise_for_status。"""
    if r.status_code == 409:
        try:
            summary = r.json().get("error_summary", "")
        except ValueError:
            summary = ""
        if summary.startswith(_NOT_FOUND_MARKERS):
            raise FileNotFoundError(f"not found: {summary}")
    r.raise_for_status()


class DownloadStream:
    """
    流式下载响应的只读文件视图。

    read(size) 从响应体按需拉取数据，读完后返回 b""；close() 释放底层连接。
    """

    def __init__(self, response: httpx.Response, chunk_size: int = DOWNLOAD_CHUNK_SIZE):
        self._response = response
        self._chunks = response.iter_bytes(chunk_size)
        self._buffer = bytearray()
        self._eof = False

    @property
    def metadata(self) -> Metadata:
        """下载接口在 Dropbox-API-Result 头中返回文件元数据。"""
        raw = self._response.headers.get("Dropbox-API-Result")
        return json.loads(raw) if raw else {}

    def _fill(self, size: int) -> None:
        while not self._eof and (size < 0 or len(self._buffer) < size):
            try:
                self._buffer.extend(next(self._chunks))
            except StopIteration:
                self._eof = True

    def read(self, size: int = -1) -> bytes:
        if size == 0:
            return b""
        if size < 0:
            self._fill(-1)
        elif not self._buffer:
            self._fill(1)
        # 有数据就返回，不强求读满 size（与 socket 读语义一致）
        if size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
            return data
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def close(self) -> None:
        self._response.close()


class DropboxClient:
    """
    Dropbox API 客户端。

    认证方式：OAuth2 access token，以 Bearer 头发送。
    """

    def __init__(
        self,
        token: str,
        *,
        timeout: float = 30.0,
        verify: bool = True,
        api_base_url: str = API_BASE_URL,
        content_base_url: str = CONTENT_BASE_URL,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        :param token: Dropbox access token
        :param timeout: 请求超时秒数（下载/上传为单次读写超时，不限总时长）
        :param verify: 是否验证 HTTPS 证书
        :param transport: 自定义 httpx transport（测试时可传 httpx.MockTransport）
        """
        self.token = token
        self.timeout = timeout
        self.verify = verify
        self.api_base_url = api_base_url.rstrip("/")
        self.content_base_url = content_base_url.rstrip("/")
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=self.timeout,
                verify=self.verify,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """关闭底层 HTTP 客户端。"""
        if self._client and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> DropboxClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _rpc(self, endpoint: str, arg: dict[str, Any]) -> dict[str, Any]:
        """RPC 类接口：参数与结果均为 JSON body。"""
        r = self._get_client().post(f"{self.api_base_url}/{endpoint}", json=arg)
        _raise_for_status(r)
        return r.json()

    # ------------------------- 列目录 -------------------------

    def list_folder(self, path: str, limit: int | None = None) -> ListFolderResult:
        """
        列出目录第一页。

        :param path: 目录路径，如 "/" 或 "/docs"
        :param limit: 每页最多条数（服务端只当作提示，实际可能更少）
        :return: 含 entries, cursor, has_more
        """
        arg: dict[str, Any] = {"path": _api_path(path)}
        if limit:
            arg["limit"] = limit
        logger.debug("list_folder %s limit=%s", path, limit)
        return self._rpc("files/list_folder", arg)

    def list_folder_continue(self, cursor: str) -> ListFolderResult:
        """用上一页返回的 cursor 取下一页。"""
        logger.debug("list_folder/continue")
        return self._rpc("files/list_folder/continue", {"cursor": cursor})

    # ------------------------- 下载 -------------------------

    def download(self, path: str, start: int | None = None) -> DownloadStream:
        """
        下载文件，从 start 字节处一直读到末尾；start 为空或 0 时整文件下载。

        返回的流需调用方 close()。
        """
        headers = {DROPBOX_API_ARG_HEADER: _api_arg({"path": _api_path(path)})}
        if start:
            headers["Range"] = f"bytes={start}-"
        client = self._get_client()
        request = client.build_request("POST", f"{self.content_base_url}/files/download", headers=headers)
        r = client.send(request, stream=True)
        if not r.is_success:
            r.read()
            r.close()
            _raise_for_status(r)
        logger.debug("download %s from byte %s", path, start or 0)
        return DownloadStream(r)

    # ------------------------- 上传 -------------------------

    def upload(
        self,
        path: str,
        content: Iterable[bytes] | bytes,
        *,
        mode: str = "overwrite",
        autorename: bool = False,
    ) -> Metadata:
        """
        整文件上传（单次请求，最大 150 MiB）。content 为可迭代的字节块时以 chunked 方式流式发送。

        :param path: 远程文件路径，如 "/docs/a.txt"
        :param mode: add / overwrite
        :return: 服务端最终的文件元数据（size, client_modified 等）
        """
        arg = {"path": _api_path(path), "mode": mode, "autorename": autorename, "mute": False}
        headers = {
            DROPBOX_API_ARG_HEADER: _api_arg(arg),
            "Content-Type": "application/octet-stream",
        }
        r = self._get_client().post(f"{self.content_base_url}/files/upload", content=content, headers=headers)
        _raise_for_status(r)
        meta = r.json()
        # upload 返回的 FileMetadata 不带 .tag
        meta.setdefault(".tag", "file")
        return meta

    # ------------------------- 元数据与目录操作 -------------------------

    def get_metadata(self, path: str) -> Metadata:
        """获取单个文件/文件夹元数据；根目录不支持。"""
        return self._rpc("files/get_metadata", {"path": _api_path(path)})

    def create_folder(self, path: str) -> Metadata:
        meta = self._rpc("files/create_folder_v2", {"path": _api_path(path), "autorename": False})["metadata"]
        # create_folder_v2 返回的 FolderMetadata 不带 .tag
        meta.setdefault(".tag", "folder")
        return meta

    def delete(self, path: str) -> Metadata:
        return self._rpc("files/delete_v2", {"path": _api_path(path)})["metadata"]

    def move(self, from_path: str, to_path: str) -> Metadata:
        arg = {"from_path": _api_path(from_path), "to_path": _api_path(to_path), "autorename": False}
        return self._rpc("files/move_v2", arg)["metadata"]
